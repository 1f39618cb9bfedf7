import hashlib, json, math
from datetime import datetime, date, timezone
from dateutil import parser as date_parser, tz

def sha256_json(obj) -> str:
    return hashlib.sha256(json.dumps(obj, sort_keys=True, default=str).encode()).hexdigest()

def now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def parse_timestamp(val, local_tz: str = "UTC") -> datetime | None:
    """Parse an upload timestamp into an aware UTC datetime.

    Naive values are read in ``local_tz`` (uploads are stamped in store-local time).
    Returns None for empty or unparseable input.
    """
    if val is None:
        return None
    if isinstance(val, datetime):
        dt = val
    elif isinstance(val, date):
        dt = datetime(val.year, val.month, val.day)
    else:
        text = str(val).strip()
        if not text:
            return None
        try:
            dt = date_parser.isoparse(text)
        except (ValueError, OverflowError):
            try:
                dt = date_parser.parse(text)
            except (ValueError, OverflowError):
                return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz.gettz(local_tz) or timezone.utc)
    return dt.astimezone(timezone.utc)

def parse_date(val) -> date | None:
    if val is None:
        return None
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    text = str(val).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None

def coerce_number(val) -> float | None:
    """Spreadsheet cell → float, or None when the cell holds nothing numeric.

    Accepts "$1,234.50" and "42.7%" style text; rejects bools, NaN and infinities.
    """
    if val is None or isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        num = float(val)
    else:
        text = str(val).strip().replace("$", "").replace(",", "").rstrip("%").strip()
        if not text:
            return None
        try:
            num = float(text)
        except ValueError:
            return None
    if not math.isfinite(num):
        return None
    return num
