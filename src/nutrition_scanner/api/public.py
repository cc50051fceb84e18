"""Public transparency endpoints: recent scans, monthly recap and today's menu."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Query, Request

from nutrition_scanner.domain.calendar import CalendarDay
from nutrition_scanner.domain.scans import PublicScan
from nutrition_scanner.services.recap import (
    MONTH_LABELS,
    WEEKDAY_LABELS,
    latest_by_category,
    month_recap,
)

router = APIRouter(prefix="/api/public", tags=["public"])


@router.get("/scans")
async def list_public_scans(request: Request) -> list[dict[str, object]]:
    """Return the most recent scans without owner information."""
    scans = _recent_scans(request)
    return [scan.model_dump(mode="json") for scan in scans]


@router.get("/recap")
async def recap(
    request: Request,
    year: Annotated[int | None, Query(ge=2000, le=9999)] = None,
    month: Annotated[int | None, Query(ge=1, le=12)] = None,
) -> dict[str, object]:
    """Return a Monday-first calendar of the month's menus."""
    today = datetime.now(tz=UTC).date()
    year = year or today.year
    month = month or today.month
    weeks = month_recap(_recent_scans(request), year, month)
    return {
        "year": year,
        "month": month,
        "month_label": MONTH_LABELS[month - 1],
        "weekday_labels": list(WEEKDAY_LABELS),
        "weeks": [[_serialize_day(day) for day in week] for week in weeks],
    }


@router.get("/today")
async def today_menu(request: Request) -> list[dict[str, object]]:
    """Return today's latest menu for every school category."""
    latest = latest_by_category(_recent_scans(request))
    return [
        {
            "category": category.value,
            "label": category.label,
            "scan": scan.model_dump(mode="json") if scan is not None else None,
        }
        for category, scan in latest.items()
    ]


def _recent_scans(request: Request) -> list[PublicScan]:
    container = request.app.state.container
    return container.scan_service.list_public_scans(
        container.settings.public_scan_limit
    )


def _serialize_day(day: CalendarDay) -> dict[str, object]:
    return {
        "date": day.date.isoformat(),
        "day_of_week": day.day_of_week,
        "is_current_month": day.is_current_month,
        "scan": day.scan.model_dump(mode="json") if day.scan is not None else None,
    }
