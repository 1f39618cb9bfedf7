from typing import Tuple, List

SCOPES = ("advisor", "store", "market")

COMMON_PATHS = [
    "scope",
    "scopeId",
    "period.label",
    "sourceSnapshotCount",
    "dataCompleteness.status",
    "dataCompleteness.hasData",
]

# Paths a scorecard with data must carry, per scope.
REQUIRED_SCORECARD_PATHS = {
    "advisor": [
        "metrics.sales",
        "metrics.gpSales",
        "metrics.invoices",
        "metrics.alignments",
        "metrics.oilChange",
        "metrics.retailTires",
        "metrics.brakeService",
        "derivedPercentages.gpPercent",
    ],
    "store": [
        "metrics.sales",
        "metrics.gpSales",
        "metrics.invoices",
        "advisorCount",
        "derivedPercentages.gpPercent",
    ],
    "market": [
        "metrics.sales",
        "metrics.gpSales",
        "metrics.invoices",
        "storeCount",
        "advisorCount",
        "derivedPercentages.gpPercent",
    ],
}


class InvalidInput(ValueError):
    """Malformed request input: the only condition the engine does not recover from."""


def validate_scope(scope) -> str:
    if not isinstance(scope, str) or scope.strip().lower() not in SCOPES:
        raise InvalidInput(f"scope must be one of {'|'.join(SCOPES)}, got {scope!r}")
    return scope.strip().lower()


def validate_scope_id(scope_id) -> str:
    if scope_id is None or isinstance(scope_id, bool):
        raise InvalidInput("scope id is required")
    text = str(scope_id).strip()
    if not text:
        raise InvalidInput("scope id is required")
    return text


def _get(path: str, obj: dict):
    cur = obj
    for part in path.split("."):
        if not isinstance(cur, dict):
            return None
        cur = cur.get(part)
    return cur


def validate_scorecard(result: dict, required_paths: List[str] | None = None) -> Tuple[bool, List[str]]:
    reasons = []
    for path in COMMON_PATHS:
        if _get(path, result) is None:
            reasons.append(f"missing {path}")
    completeness = result.get("dataCompleteness") or {}
    has_data = completeness.get("hasData")
    if has_data:
        paths = required_paths or REQUIRED_SCORECARD_PATHS.get(result.get("scope"), [])
        for path in paths:
            if _get(path, result) is None:
                reasons.append(f"missing {path}")
        for key, val in (result.get("derivedPercentages") or {}).items():
            if not isinstance(val, (int, float)) or val != val:
                reasons.append(f"derivedPercentages.{key} is not a number")
    else:
        for key in ("metrics", "services", "derivedPercentages"):
            if result.get(key) is not None:
                reasons.append(f"{key} present without data")
    return (len(reasons) == 0), reasons
