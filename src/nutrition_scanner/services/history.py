"""Scan history browsing: search, filters, pagination and export."""

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import UTC

from nutrition_scanner.domain.scans import EvaluationStatus, SchoolCategory, Scan
from nutrition_scanner.services.export import export_scans_to_xlsx
from nutrition_scanner.services.scans import ScanService

_logger = logging.getLogger(__name__)

PAGE_SIZE = 6


@dataclass(frozen=True)
class HistoryFilters:
    """Filter state for the history view; empty values match everything."""

    query: str = ""
    status: EvaluationStatus | None = None
    category: SchoolCategory | None = None
    month: str | None = None


def search_scans(scans: list[Scan], text: str) -> list[Scan]:
    """Keep scans whose menu item names contain the text, ignoring case."""
    needle = text.strip().lower()
    if not needle:
        return list(scans)
    return [scan for scan in scans if needle in scan.item_names.lower()]


def apply_filters(scans: list[Scan], filters: HistoryFilters) -> list[Scan]:
    """Apply the text search, then every other filter as an AND."""
    return [
        scan
        for scan in search_scans(scans, filters.query)
        if _matches_status(scan, filters.status)
        and _matches_category(scan, filters.category)
        and _matches_month(scan, filters.month)
    ]


def page_count(total: int, page_size: int = PAGE_SIZE) -> int:
    """Return the number of pages needed for total items."""
    return math.ceil(total / page_size)


def clamp_page(page: int, total: int, page_size: int = PAGE_SIZE) -> int:
    """Clamp a 1-based page number into the valid range."""
    return max(1, min(page, page_count(total, page_size)))


def paginate(scans: list[Scan], page: int, page_size: int = PAGE_SIZE) -> list[Scan]:
    """Return one page of scans; pages below 1 read as the first page."""
    start = (max(page, 1) - 1) * page_size
    return scans[start : start + page_size]


def scan_month(scan: Scan) -> str:
    """Return the scan's UTC year-month as YYYY-MM."""
    scan_date = scan.scan_date
    if scan_date.tzinfo is not None:
        scan_date = scan_date.astimezone(UTC)
    return scan_date.strftime("%Y-%m")


def _matches_status(scan: Scan, status: EvaluationStatus | None) -> bool:
    return status is None or scan.evaluation_status == status


def _matches_category(scan: Scan, category: SchoolCategory | None) -> bool:
    return category is None or scan.school_category == category


def _matches_month(scan: Scan, month: str | None) -> bool:
    return not month or scan_month(scan) == month


@dataclass
class HistoryBrowser:
    """Local view over a user's scan history."""

    scan_service: ScanService
    page_size: int = PAGE_SIZE
    scans: list[Scan] = field(default_factory=list)
    filters: HistoryFilters = field(default_factory=HistoryFilters)
    page: int = 1

    def fetch_scans(self, user_id: str) -> list[Scan]:
        """Load the user's scans in store order and reset to the first page."""
        self.scans = self.scan_service.list_user_scans(user_id)
        self.page = 1
        return self.scans

    def search(self, text: str) -> list[Scan]:
        """Change the text search."""
        return self.set_filters(replace(self.filters, query=text))

    def set_filters(self, filters: HistoryFilters) -> list[Scan]:
        """Replace the filter state and recompute the filtered view."""
        self.filters = filters
        self.page = 1
        return self.filtered

    @property
    def filtered(self) -> list[Scan]:
        """Return the scans that pass every filter."""
        return apply_filters(self.scans, self.filters)

    @property
    def page_count(self) -> int:
        """Return the page count of the filtered view."""
        return page_count(len(self.filtered), self.page_size)

    @property
    def page_items(self) -> list[Scan]:
        """Return the current page of the filtered view."""
        return paginate(self.filtered, self.page, self.page_size)

    def go_to_page(self, page: int) -> list[Scan]:
        """Move to a page, clamped to the available range."""
        self.page = clamp_page(page, len(self.filtered), self.page_size)
        return self.page_items

    def delete_scan(self, user_id: str, scan_id: str) -> None:
        """Delete a scan from the store, then from the local list."""
        self.scan_service.delete_scan(user_id, scan_id)
        self.scans = [scan for scan in self.scans if scan.id != scan_id]
        self.page = clamp_page(self.page, len(self.filtered), self.page_size)

    def export_all(self) -> bytes | None:
        """Export the filtered scans to a spreadsheet."""
        return export_scans_to_xlsx(self.filtered)

    def export_one(self, scan: Scan) -> bytes | None:
        """Export a single scan to a spreadsheet."""
        return export_scans_to_xlsx([scan])
