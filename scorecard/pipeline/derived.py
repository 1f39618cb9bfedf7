from __future__ import annotations

import math
from dataclasses import dataclass

CEIL = "ceil"        # opportunity-capture ratios: never under-report
ROUND = "round"


@dataclass(frozen=True)
class Ratio:
    key: str
    numerator: str
    denominator: str
    scale: float = 100.0
    rounding: str = ROUND
    places: int = 1


RATIOS = (
    Ratio("gpPercent", "gpSales", "sales"),
    Ratio("avgSpend", "sales", "invoices", scale=1.0, places=2),
    Ratio("tireProtectionPercent", "tireProtection", "retailTires", rounding=CEIL, places=0),
    Ratio("potentialAlignmentsPercent", "potentialAlignmentsSold", "potentialAlignments", rounding=CEIL, places=0),
    Ratio("brakeFlushToServicePercent", "brakeFlush", "brakeService", rounding=CEIL, places=0),
)


def _num(val) -> float:
    if isinstance(val, bool) or not isinstance(val, (int, float)):
        return 0.0
    val = float(val)
    return val if math.isfinite(val) else 0.0


def ratio_value(metrics: dict, ratio: Ratio):
    denom = _num(metrics.get(ratio.denominator))
    if denom == 0:
        return 0
    raw = _num(metrics.get(ratio.numerator)) / denom * ratio.scale
    if ratio.rounding == CEIL:
        # 7/100*100 == 7.000000000000001; strip float noise before rounding up
        return int(math.ceil(round(raw, 6)))
    return round(raw, ratio.places)


def derive(metrics: dict, ratios: tuple = RATIOS) -> dict:
    """Every declared ratio, always present; a zero denominator yields 0."""
    return {ratio.key: ratio_value(metrics, ratio) for ratio in ratios}
