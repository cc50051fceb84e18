"""Authenticated scan endpoints: save, review, history and exports."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response

from nutrition_scanner.api.auth import require_user
from nutrition_scanner.api.models import ReviewRequest
from nutrition_scanner.domain.models import UserRecord
from nutrition_scanner.domain.scans import EvaluationStatus, SchoolCategory, Scan
from nutrition_scanner.errors import ScanNotFound
from nutrition_scanner.services.export import XLSX_MEDIA_TYPE, export_filename
from nutrition_scanner.services.history import HistoryBrowser, HistoryFilters
from nutrition_scanner.services.nutrition import daily_value_percentages
from nutrition_scanner.services.review import ReviewController

if TYPE_CHECKING:
    from nutrition_scanner.containers import AppContainer

router = APIRouter(prefix="/api", tags=["scans"])
_logger = logging.getLogger(__name__)

CurrentUser = Annotated[UserRecord, Depends(require_user)]


def _container(request: Request) -> AppContainer:
    return request.app.state.container


@router.post("/save-scan")
async def save_scan(
    scan: Scan, request: Request, user: CurrentUser
) -> dict[str, object]:
    """Persist a reviewed scan for the session user."""
    saved = _container(request).scan_service.save_scan(user.id, scan)
    _logger.info("Scan saved", extra={"scan_id": saved.id})
    return {"success": True, "data": saved.model_dump(mode="json")}


@router.post("/review")
async def review_scan(
    payload: ReviewRequest, request: Request, user: CurrentUser
) -> dict[str, object]:
    """Apply review edits and return the scan with a consistent summary."""
    controller = ReviewController(_container(request).scan_service)
    controller.start_review(payload.scan)
    for edit in payload.edits:
        controller.apply_edit(edit.target, edit.index, edit.field, edit.value)
    if payload.school_category is not None:
        controller.set_category(payload.school_category)
    scan = controller.scan
    return {
        "scan": scan.model_dump(mode="json"),
        "daily_values": daily_value_percentages(
            scan.nutrition_facts.nutrition_summary
        ),
    }


@router.get("/scans")
async def list_scans(  # noqa: PLR0913
    request: Request,
    user: CurrentUser,
    q: str = "",
    status: EvaluationStatus | None = None,
    category: SchoolCategory | None = None,
    month: Annotated[str | None, Query(pattern=r"^\d{4}-\d{2}$")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
) -> dict[str, object]:
    """Return one page of the user's filtered scan history."""
    browser = _history(request, user)
    browser.set_filters(
        HistoryFilters(query=q, status=status, category=category, month=month)
    )
    items = browser.go_to_page(page)
    return {
        "items": [scan.model_dump(mode="json") for scan in items],
        "page": browser.page,
        "page_count": browser.page_count,
        "total": len(browser.filtered),
    }


@router.get("/scans/export")
async def export_scans(
    request: Request,
    user: CurrentUser,
    q: str = "",
    status: EvaluationStatus | None = None,
    category: SchoolCategory | None = None,
    month: Annotated[str | None, Query(pattern=r"^\d{4}-\d{2}$")] = None,
) -> Response:
    """Download the filtered history as a spreadsheet."""
    browser = _history(request, user)
    browser.set_filters(
        HistoryFilters(query=q, status=status, category=category, month=month)
    )
    return _xlsx_response(browser.export_all())


@router.get("/scans/{scan_id}")
async def get_scan(
    scan_id: str, request: Request, user: CurrentUser
) -> dict[str, object]:
    """Return a saved scan with its daily value percentages."""
    scan = _owned_scan(request, user, scan_id)
    return {
        "scan": scan.model_dump(mode="json"),
        "daily_values": daily_value_percentages(
            scan.nutrition_facts.nutrition_summary
        ),
    }


@router.get("/scans/{scan_id}/export")
async def export_scan(
    scan_id: str, request: Request, user: CurrentUser
) -> Response:
    """Download a single scan as a spreadsheet."""
    scan = _owned_scan(request, user, scan_id)
    browser = HistoryBrowser(_container(request).scan_service)
    return _xlsx_response(browser.export_one(scan))


@router.get("/scans/{scan_id}/share-card")
async def share_card(
    scan_id: str, request: Request, user: CurrentUser
) -> Response:
    """Render the scan's share card as PNG."""
    scan = _owned_scan(request, user, scan_id)
    image = await _container(request).share_card_service.render(scan)
    return Response(
        content=image,
        media_type="image/png",
        headers=_attachment(f"scan-{scan_id}.png"),
    )


@router.delete("/scans/{scan_id}")
async def delete_scan(
    scan_id: str, request: Request, user: CurrentUser
) -> dict[str, object]:
    """Delete one of the user's scans."""
    _owned_scan(request, user, scan_id)
    _container(request).scan_service.delete_scan(user.id, scan_id)
    return {"success": True}


def _history(request: Request, user: UserRecord) -> HistoryBrowser:
    container = _container(request)
    browser = HistoryBrowser(
        container.scan_service, page_size=container.settings.history_page_size
    )
    browser.fetch_scans(user.id)
    return browser


def _owned_scan(request: Request, user: UserRecord, scan_id: str) -> Scan:
    scan = _container(request).scan_service.get_user_scan(user.id, scan_id)
    if scan is None:
        raise ScanNotFound
    return scan


def _xlsx_response(content: bytes | None) -> Response:
    if content is None:
        return Response(status_code=204)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers=_attachment(export_filename()),
    )


def _attachment(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}
