"""Domain models for the monthly menu recap."""

from dataclasses import dataclass
from datetime import date

from nutrition_scanner.domain.scans import PublicScan


@dataclass(frozen=True)
class CalendarDay:
    """One cell of the recap calendar."""

    date: date
    day_of_week: int
    scan: PublicScan | None
    is_current_month: bool


CalendarWeek = list[CalendarDay]
