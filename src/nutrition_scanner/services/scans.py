"""Scan persistence service."""

import logging
from dataclasses import dataclass
from typing import Protocol

from nutrition_scanner.domain.scans import PublicScan, Scan
from nutrition_scanner.errors import PersistenceFailure, ValidationFailure
from nutrition_scanner.services.nutrition import reconcile_summary

_logger = logging.getLogger(__name__)

PUBLIC_SCAN_LIMIT = 50


class ScanRepository(Protocol):
    """Persistence interface for nutrition scans."""

    def create_scan(self, user_id: str, scan: Scan) -> Scan:
        """Insert a scan and return the stored row."""

    def get_user_scan(self, user_id: str, scan_id: str) -> Scan | None:
        """Return one scan owned by the user."""

    def list_user_scans(self, user_id: str) -> list[Scan]:
        """Return a user's scans, newest first."""

    def delete_scan(self, user_id: str, scan_id: str) -> None:
        """Delete a scan owned by the user."""

    def list_public_scans(self, limit: int) -> list[PublicScan]:
        """Return recent scans without ownership fields."""


@dataclass
class ScanService:
    """Validates and persists scans, translating store errors."""

    repository: ScanRepository

    def save_scan(self, user_id: str, scan: Scan) -> Scan:
        """Persist a reviewed scan for its owner."""
        if scan.school_category is None:
            raise ValidationFailure
        facts = reconcile_summary(scan.nutrition_facts)
        if facts is not scan.nutrition_facts:
            _logger.info("Rebuilt nutrition summary from items before saving")
            scan = scan.model_copy(update={"nutrition_facts": facts})
        try:
            return self.repository.create_scan(user_id, scan)
        except Exception as exc:
            _logger.exception("Failed to save scan", extra={"user_id": user_id})
            raise PersistenceFailure("Failed to save scan") from exc

    def get_user_scan(self, user_id: str, scan_id: str) -> Scan | None:
        """Return one of the user's scans."""
        try:
            return self.repository.get_user_scan(user_id, scan_id)
        except Exception as exc:
            _logger.exception("Failed to load scan", extra={"scan_id": scan_id})
            raise PersistenceFailure("Failed to load scan") from exc

    def list_user_scans(self, user_id: str) -> list[Scan]:
        """Return the user's scan history."""
        try:
            return self.repository.list_user_scans(user_id)
        except Exception as exc:
            _logger.exception("Failed to list scans", extra={"user_id": user_id})
            raise PersistenceFailure("Failed to load scan history") from exc

    def delete_scan(self, user_id: str, scan_id: str) -> None:
        """Delete one of the user's scans."""
        try:
            self.repository.delete_scan(user_id, scan_id)
        except Exception as exc:
            _logger.exception("Failed to delete scan", extra={"scan_id": scan_id})
            raise PersistenceFailure("Failed to delete scan") from exc

    def list_public_scans(self, limit: int = PUBLIC_SCAN_LIMIT) -> list[PublicScan]:
        """Return the public menu feed."""
        try:
            return self.repository.list_public_scans(min(limit, PUBLIC_SCAN_LIMIT))
        except Exception as exc:
            _logger.exception("Failed to list public scans")
            raise PersistenceFailure("Failed to load menus") from exc
