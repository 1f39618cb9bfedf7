from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from ..config import settings
from .validation import InvalidInput


@dataclass(frozen=True, order=True)
class Period:
    """A calendar month. Snapshots inside it hold month-to-date cumulative totals."""

    year: int
    month: int

    def __post_init__(self):
        for name in ("year", "month"):
            val = getattr(self, name)
            if isinstance(val, bool) or not isinstance(val, int):
                raise InvalidInput(f"period {name} must be an integer, got {val!r}")
        if not 1 <= self.month <= 12:
            raise InvalidInput(f"period month must be 1-12, got {self.month}")
        if not settings.period_min_year <= self.year <= settings.period_max_year:
            raise InvalidInput(
                f"period year must be {settings.period_min_year}-{settings.period_max_year}, got {self.year}"
            )

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        if self.month == 12:
            return date(self.year, 12, 31)
        return date(self.year, self.month + 1, 1) - timedelta(days=1)

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def contains(self, day: date | None) -> bool:
        return day is not None and day.year == self.year and day.month == self.month

    def as_dict(self) -> dict:
        return {
            "label": self.label,
            "year": self.year,
            "month": self.month,
            "start_date": self.start.isoformat(),
            "end_date": self.end.isoformat(),
        }

    @classmethod
    def parse(cls, text: str) -> "Period":
        """Parse ``YYYY-MM`` (a trailing ``-DD`` is tolerated and ignored)."""
        if not isinstance(text, str):
            raise InvalidInput(f"period must be YYYY-MM, got {text!r}")
        parts = text.strip().split("-")
        if len(parts) not in (2, 3) or not all(p.isascii() and p.isdigit() for p in parts):
            raise InvalidInput(f"period must be YYYY-MM, got {text!r}")
        return cls(int(parts[0]), int(parts[1]))

    @classmethod
    def from_parts(cls, year, month) -> "Period":
        return cls(_as_int(year, "year"), _as_int(month, "month"))

    @classmethod
    def containing(cls, day: date) -> "Period":
        return cls(day.year, day.month)


def _as_int(val, name: str) -> int:
    if isinstance(val, bool):
        raise InvalidInput(f"period {name} must be numeric, got {val!r}")
    if isinstance(val, int):
        return val
    text = str(val).strip() if val is not None else ""
    if not (text.isascii() and text.isdigit()):
        raise InvalidInput(f"period {name} must be numeric, got {val!r}")
    return int(text)


def resolve_period(period: str | None = None, year=None, month=None) -> Period:
    if period:
        return Period.parse(period)
    if year is None or month is None:
        raise InvalidInput("period (YYYY-MM) or both year and month are required")
    return Period.from_parts(year, month)
