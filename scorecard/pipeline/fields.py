"""Canonical metric key space and the normalizer that maps raw snapshot documents into it.

Uploaded rows reach us in three shapes that grew up independently:

* direct      ``{"allTires": 191}``                     -- the parser's camel-case fields
* nested      ``{"otherServices": {"Tire Balance": 4}}`` -- columns the parser did not know
* template    ``{"tirebalance": 4}``                     -- keys flattened by scorecard templates

Every canonical key is resolved through the same ordered chain: direct field (when present and
non-zero), then each nested label, then each template key, then 0. The first non-zero value
wins, so a document carrying one service under two shapes yields one value no matter how its
keys are ordered.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Mapping

from ..utils import coerce_number

COUNT = "count"
MONEY = "money"

NESTED_KEY = "otherServices"

# Identity columns and ratios the spreadsheet pre-computes; ratios are always recomputed
# from summed counters, never summed themselves.
METADATA_KEYS = frozenset({
    "id",
    "dataLevel",
    "reportType",
    "storeId",
    "storeName",
    "store",
    "market",
    "marketName",
    "employee",
    "employeeName",
    "advisorName",
    "advisorCount",
    "gpPercent",
    "avgSpend",
    "tireProtectionPercent",
    "potentialAlignmentsPercent",
    "brakeFlushToServicePercent",
})


@dataclass(frozen=True)
class FieldSpec:
    key: str
    label: str
    kind: str = COUNT
    nested_labels: tuple = ()
    template_keys: tuple = ()
    core: bool = False

    @property
    def lookup_labels(self) -> tuple:
        return _dedupe((self.label,) + tuple(self.nested_labels))

    @property
    def lookup_template_keys(self) -> tuple:
        return _dedupe((self.key.lower(),) + tuple(self.template_keys))


@dataclass(frozen=True)
class FieldTables:
    """Immutable alias tables. Pass a custom instance to normalize/label to extend them."""

    fields: tuple
    nested_key: str = NESTED_KEY
    metadata_keys: frozenset = field(default=METADATA_KEYS)

    def __post_init__(self):
        seen = set()
        for spec in self.fields:
            if spec.key in seen:
                raise ValueError(f"duplicate canonical key {spec.key}")
            seen.add(spec.key)

    @cached_property
    def keys(self) -> tuple:
        return tuple(spec.key for spec in self.fields)

    @cached_property
    def core_keys(self) -> tuple:
        return tuple(spec.key for spec in self.fields if spec.core)

    @cached_property
    def service_keys(self) -> tuple:
        return tuple(spec.key for spec in self.fields if not spec.core)

    @cached_property
    def by_key(self) -> dict:
        return {spec.key: spec for spec in self.fields}

    @cached_property
    def nested_index(self) -> dict:
        out = {}
        for spec in self.fields:
            for label in spec.lookup_labels:
                out.setdefault(_label_norm(label), spec.key)
        return out

    @cached_property
    def template_index(self) -> dict:
        out = {}
        for spec in self.fields:
            for tkey in spec.lookup_template_keys:
                out.setdefault(tkey, spec.key)
        return out

    def spec(self, key: str) -> FieldSpec:
        return self.by_key[key]


def _dedupe(items) -> tuple:
    out = []
    for item in items:
        if item and item not in out:
            out.append(item)
    return tuple(out)


def _label_norm(label: str) -> str:
    return " ".join(str(label).split()).casefold()


DEFAULT_FIELD_TABLES = FieldTables(fields=(
    FieldSpec("invoices", "Invoices", core=True),
    FieldSpec("sales", "Sales", kind=MONEY, core=True),
    FieldSpec("gpSales", "GP Sales", kind=MONEY, core=True, template_keys=("gpsales", "gpdollars")),
    FieldSpec("allTires", "All Tires", nested_labels=("Tire Units",), template_keys=("tireunits",)),
    FieldSpec("retailTires", "Retail Tires"),
    FieldSpec("tireProtection", "Tire Protection"),
    FieldSpec("tireBalance", "Tire Balance"),
    FieldSpec("tireRotation", "Tire Rotation"),
    FieldSpec("potentialAlignments", "Potential Alignments"),
    FieldSpec("potentialAlignmentsSold", "Potential Alignments Sold"),
    FieldSpec("alignments", "Alignments", nested_labels=("Alignment Service",), template_keys=("alignmentservice",)),
    FieldSpec("brakeService", "Brake Service"),
    FieldSpec("brakeFlush", "Brake Flush"),
    FieldSpec("oilChange", "Oil Change"),
    FieldSpec("premiumOilChange", "Premium Oil Change"),
    FieldSpec("fuelAdditive", "Fuel Additive"),
    FieldSpec("engineFlush", "Engine Flush"),
    FieldSpec("filters", "Filters"),
    FieldSpec("engineAirFilter", "Engine Air Filter"),
    FieldSpec("cabinAirFilter", "Cabin Air Filter"),
    FieldSpec("coolantFlush", "Coolant Flush"),
    FieldSpec("differentialService", "Differential Service"),
    FieldSpec("fuelSystemService", "Fuel System Service"),
    FieldSpec("powerSteeringFlush", "Power Steering Flush"),
    FieldSpec("transmissionFluidService", "Transmission Fluid Service"),
    FieldSpec("shocksStruts", "Shocks & Struts", nested_labels=("Shocks and Struts",), template_keys=("shocksandstruts",)),
    FieldSpec("wiperBlades", "Wiper Blades"),
    FieldSpec("acService", "AC Service"),
    FieldSpec("battery", "Battery", nested_labels=("Batteries",), template_keys=("batteries",)),
    FieldSpec("batteryService", "Battery Service"),
    FieldSpec("enginePerformanceService", "Engine Performance Service"),
    FieldSpec("sparkPlugReplacement", "Spark Plug Replacement"),
    FieldSpec("completeVehicleInspection", "Complete Vehicle Inspection"),
    FieldSpec("beltsReplacement", "Belts Replacement"),
    FieldSpec("hoseReplacement", "Hose Replacement"),
    FieldSpec("climateControlService", "Climate Control Service"),
))

CANONICAL_KEYS = DEFAULT_FIELD_TABLES.keys
CORE_KEYS = DEFAULT_FIELD_TABLES.core_keys
SERVICE_KEYS = DEFAULT_FIELD_TABLES.service_keys


def _nested_doc(raw: Mapping, tables: FieldTables) -> dict:
    nested = raw.get(tables.nested_key)
    if not isinstance(nested, Mapping):
        return {}
    return {_label_norm(label): val for label, val in nested.items()}


def _candidates(raw: Mapping, nested: dict, spec: FieldSpec):
    yield raw.get(spec.key)
    for label in spec.lookup_labels:
        yield nested.get(_label_norm(label))
    for tkey in spec.lookup_template_keys:
        yield raw.get(tkey)


def resolve_raw(raw: Mapping, spec: FieldSpec, tables: FieldTables = DEFAULT_FIELD_TABLES, nested: dict | None = None) -> float | None:
    """First non-zero numeric value along the alias chain; 0.0 if only zeros; None if nothing numeric."""
    if nested is None:
        nested = _nested_doc(raw, tables)
    seen_zero = False
    for candidate in _candidates(raw, nested, spec):
        num = coerce_number(candidate)
        if num is None:
            continue
        if num != 0:
            return num
        seen_zero = True
    return 0.0 if seen_zero else None


def _finish(num: float | None, kind: str):
    if num is None or num < 0:
        num = 0.0
    if kind == MONEY:
        return round(num, 2)
    return int(round(num))


def empty_metric_set(tables: FieldTables = DEFAULT_FIELD_TABLES) -> dict:
    return {spec.key: _finish(0.0, spec.kind) for spec in tables.fields}


def normalize_with_report(raw: Mapping[str, Any] | None, tables: FieldTables = DEFAULT_FIELD_TABLES) -> tuple[dict, list[str]]:
    if not isinstance(raw, Mapping):
        return empty_metric_set(tables), []
    nested = _nested_doc(raw, tables)
    metrics = {spec.key: _finish(resolve_raw(raw, spec, tables, nested), spec.kind) for spec in tables.fields}
    return metrics, normalization_misses(raw, tables)


def normalize(raw: Mapping[str, Any] | None, tables: FieldTables = DEFAULT_FIELD_TABLES) -> dict:
    return normalize_with_report(raw, tables)[0]


def normalization_misses(raw: Mapping[str, Any], tables: FieldTables = DEFAULT_FIELD_TABLES) -> list[str]:
    if not isinstance(raw, Mapping):
        return []
    misses = []
    for key in raw.keys():
        if key in tables.by_key or key in tables.template_index or key in tables.metadata_keys:
            continue
        if key == tables.nested_key:
            continue
        misses.append(str(key))
    nested = raw.get(tables.nested_key)
    if isinstance(nested, Mapping):
        for label in nested.keys():
            if _label_norm(label) not in tables.nested_index:
                misses.append(f"{tables.nested_key}.{label}")
    return sorted(misses)


def populated_core_count(raw: Mapping[str, Any] | None, tables: FieldTables = DEFAULT_FIELD_TABLES) -> int:
    """How many core metrics carry a numeric value; placeholder rows score 0."""
    if not isinstance(raw, Mapping):
        return 0
    nested = _nested_doc(raw, tables)
    return sum(1 for key in tables.core_keys if resolve_raw(raw, tables.spec(key), tables, nested) is not None)


def has_core_metrics(raw: Mapping[str, Any] | None, tables: FieldTables = DEFAULT_FIELD_TABLES) -> bool:
    """False for placeholder rows whose core metrics are all null/blank/non-numeric."""
    return populated_core_count(raw, tables) > 0
