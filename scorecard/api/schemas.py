from pydantic import BaseModel
from typing import Optional, Literal, Any

class PeriodInfo(BaseModel):
    label: str
    year: int
    month: int
    start_date: str
    end_date: str

class ServiceLine(BaseModel):
    key: str
    label: str
    value: int | float
    branded: bool = False

class DataCompleteness(BaseModel):
    status: Literal['no_data', 'complete', 'partial']
    hasData: bool
    sourceSnapshotCount: int
    supersededSnapshotCount: int = 0
    unresolvedSnapshotCount: int = 0
    storeSources: dict[str, str] = {}
    latestReportingDate: Optional[str] = None

class ScorecardResponse(BaseModel):
    scope: Literal['advisor', 'store', 'market']
    scopeId: str
    period: PeriodInfo
    metrics: Optional[dict[str, int | float]] = None
    services: Optional[list[ServiceLine]] = None
    derivedPercentages: Optional[dict[str, int | float]] = None
    sourceSnapshotCount: int
    dataCompleteness: DataCompleteness
    advisorCount: int = 0
    storeCount: int = 0
    storeIds: list[str] = []
    marketIds: list[str] = []
    vendorMarketId: Optional[str] = None
    warnings: list[dict[str, Any]] = []
    generatedAt: str

class StoreScorecard(ScorecardResponse):
    storeId: str
    marketId: Optional[str] = None

class MultiStoreBreakdown(BaseModel):
    advisorId: str
    period: PeriodInfo
    isMultiStore: bool
    totalStores: int
    perStoreRollups: list[StoreScorecard]
    combinedRollup: ScorecardResponse

class UnmappedEntry(BaseModel):
    entityType: Literal['advisor', 'store', 'market']
    spreadsheetName: str
    snapshotCount: int
    firstSeen: Optional[str] = None
    lastSeen: Optional[str] = None
    storeNames: list[str] = []

class UnmappedReport(BaseModel):
    period: PeriodInfo
    entries: list[UnmappedEntry]
