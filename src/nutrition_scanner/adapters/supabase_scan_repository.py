"""Supabase repository for nutrition scans."""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from pydantic import TypeAdapter, ValidationError
from supabase import Client

from nutrition_scanner.domain.scans import (
    MenuItemDetection,
    NutritionAnalysis,
    PublicScan,
    Scan,
)
from nutrition_scanner.services.scans import ScanRepository

_logger = logging.getLogger(__name__)

_TABLE = "nutrition_scans"
_SCAN_COLUMNS = (
    "id, user_id, image_url, scan_date, menu_items, nutrition_facts, "
    "school_category, created_at"
)
_PUBLIC_COLUMNS = (
    "id, image_url, scan_date, nutrition_facts, school_category, created_at"
)
_MENU_ITEMS = TypeAdapter(list[MenuItemDetection])

_RowT = TypeVar("_RowT")


@dataclass
class SupabaseScanRepository(ScanRepository):
    """Supabase implementation for nutrition scans."""

    client: Client

    def create_scan(self, user_id: str, scan: Scan) -> Scan:
        """Insert a scan row and return it as stored."""
        payload = scan.model_dump(
            mode="json",
            include={
                "image_url",
                "scan_date",
                "menu_items",
                "nutrition_facts",
                "school_category",
            },
        )
        payload["user_id"] = user_id
        response = self.client.table(_TABLE).insert(payload).execute()
        if not response.data:
            raise RuntimeError("Failed to create scan")
        return _parse_scan(response.data[0])

    def get_user_scan(self, user_id: str, scan_id: str) -> Scan | None:
        """Return one scan owned by the user."""
        response = (
            self.client.table(_TABLE)
            .select(_SCAN_COLUMNS)
            .eq("id", scan_id)
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        scans = _parse_rows(response.data, _parse_scan)
        return scans[0] if scans else None

    def list_user_scans(self, user_id: str) -> list[Scan]:
        """Return a user's scans ordered by scan date, newest first."""
        response = (
            self.client.table(_TABLE)
            .select(_SCAN_COLUMNS)
            .eq("user_id", user_id)
            .order("scan_date", desc=True)
            .execute()
        )
        return _parse_rows(response.data, _parse_scan)

    def delete_scan(self, user_id: str, scan_id: str) -> None:
        """Delete a scan owned by the user."""
        self.client.table(_TABLE).delete().eq("id", scan_id).eq(
            "user_id", user_id
        ).execute()

    def list_public_scans(self, limit: int) -> list[PublicScan]:
        """Return recent scans for the public menu views."""
        response = (
            self.client.table(_TABLE)
            .select(_PUBLIC_COLUMNS)
            .order("scan_date", desc=True)
            .limit(limit)
            .execute()
        )
        return _parse_rows(response.data, _parse_public_scan)


def _parse_rows(
    rows: list[dict[str, object]] | None,
    parser: Callable[[dict[str, object]], _RowT],
) -> list[_RowT]:
    """Parse rows, skipping any that no longer fit the scan model."""
    parsed = []
    for row in rows or []:
        try:
            parsed.append(parser(row))
        except ValidationError as exc:
            _logger.warning(
                "Skipping unreadable scan row %s (%s errors)",
                row.get("id"),
                exc.error_count(),
            )
    return parsed


def _parse_public_scan(row: dict[str, object]) -> PublicScan:
    return PublicScan(
        id=str(row["id"]),
        image_url=str(row.get("image_url") or ""),
        scan_date=row.get("scan_date") or row.get("created_at"),
        nutrition_facts=_parse_facts(row.get("nutrition_facts")),
        school_category=row.get("school_category") or None,
    )


def _parse_scan(row: dict[str, object]) -> Scan:
    return Scan(
        id=str(row["id"]),
        image_url=str(row.get("image_url") or ""),
        scan_date=row.get("scan_date") or row.get("created_at"),
        menu_items=_parse_menu_items(row.get("menu_items")),
        nutrition_facts=_parse_facts(row.get("nutrition_facts")),
        school_category=row.get("school_category") or None,
        user_id=str(row["user_id"]) if row.get("user_id") else None,
        created_at=row.get("created_at"),
    )


def _parse_menu_items(raw: object) -> list[MenuItemDetection]:
    try:
        if isinstance(raw, str):
            return _MENU_ITEMS.validate_json(raw)
        return _MENU_ITEMS.validate_python(raw or [])
    except ValidationError:
        _logger.warning("Unreadable menu_items column, using empty list")
        return []


def _parse_facts(raw: object) -> NutritionAnalysis:
    """Parse the nutrition facts column, falling back to an empty analysis."""
    try:
        if isinstance(raw, str):
            raw = json.loads(raw)
        if not raw:
            return NutritionAnalysis.empty()
        return NutritionAnalysis.model_validate(raw)
    except (ValueError, ValidationError):
        _logger.warning("Unreadable nutrition_facts column, using empty analysis")
        return NutritionAnalysis.empty()
