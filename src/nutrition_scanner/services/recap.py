"""Monthly menu recap calendar and public menu views."""

import calendar
from datetime import UTC, date, datetime, timedelta

from nutrition_scanner.domain.calendar import CalendarDay, CalendarWeek
from nutrition_scanner.domain.scans import PublicScan, SchoolCategory

DAYS_PER_WEEK = 7
WEEKDAY_LABELS = ("Sen", "Sel", "Rab", "Kam", "Jum", "Sab", "Min")
MONTH_LABELS = (
    "Januari",
    "Februari",
    "Maret",
    "April",
    "Mei",
    "Juni",
    "Juli",
    "Agustus",
    "September",
    "Oktober",
    "November",
    "Desember",
)

DailyMenuMap = dict[date, PublicScan]


def scan_day(scan: PublicScan) -> date:
    """Return the UTC calendar date a scan was taken on."""
    scan_date = scan.scan_date
    if scan_date.tzinfo is not None:
        scan_date = scan_date.astimezone(UTC)
    return scan_date.date()


def build_daily_menu_map(scans: list[PublicScan]) -> DailyMenuMap:
    """Map each date to the first scan seen for it."""
    menu_map: DailyMenuMap = {}
    for scan in scans:
        menu_map.setdefault(scan_day(scan), scan)
    return menu_map


def generate_month_calendar(
    year: int, month: int, menu_map: DailyMenuMap
) -> list[CalendarWeek]:
    """Lay out a month as Monday-first weeks padded to seven days."""
    first_day = date(year, month, 1)
    days_in_month = calendar.monthrange(year, month)[1]
    last_day = date(year, month, days_in_month)

    cells: list[CalendarDay] = []
    leading = first_day.weekday()
    for offset in range(leading, 0, -1):
        day = first_day - timedelta(days=offset)
        cells.append(_cell(day, len(cells), menu_map.get(day), current=False))
    for day_number in range(1, days_in_month + 1):
        day = date(year, month, day_number)
        cells.append(_cell(day, len(cells), menu_map.get(day), current=True))
    trailing = (DAYS_PER_WEEK - len(cells) % DAYS_PER_WEEK) % DAYS_PER_WEEK
    for offset in range(1, trailing + 1):
        day = last_day + timedelta(days=offset)
        cells.append(_cell(day, len(cells), None, current=False))

    return [
        cells[start : start + DAYS_PER_WEEK]
        for start in range(0, len(cells), DAYS_PER_WEEK)
    ]


def month_recap(
    scans: list[PublicScan], year: int, month: int
) -> list[CalendarWeek]:
    """Build the recap grid showing the latest scan of each day."""
    latest_first = sorted(scans, key=lambda scan: scan.scan_date, reverse=True)
    return generate_month_calendar(year, month, build_daily_menu_map(latest_first))


def latest_by_category(
    scans: list[PublicScan], day: date | None = None
) -> dict[SchoolCategory, PublicScan | None]:
    """Return the first scan of the day for every school category."""
    target = day or datetime.now(tz=UTC).date()
    latest: dict[SchoolCategory, PublicScan | None] = dict.fromkeys(SchoolCategory)
    for scan in scans:
        category = scan.school_category
        if category is None or latest[category] is not None:
            continue
        if scan_day(scan) == target:
            latest[category] = scan
    return latest


def _cell(
    day: date, position: int, scan: PublicScan | None, *, current: bool
) -> CalendarDay:
    return CalendarDay(
        date=day,
        day_of_week=position % DAYS_PER_WEEK,
        scan=scan,
        is_current_month=current,
    )
