"""Review and edit flow for an analyzed scan."""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeVar

from pydantic import ValidationError

from nutrition_scanner.domain.scans import (
    NUTRIENT_FIELDS,
    MenuItemDetection,
    SchoolCategory,
    Scan,
)
from nutrition_scanner.errors import InputError, ValidationFailure
from nutrition_scanner.services.nutrition import summarize_items
from nutrition_scanner.services.scans import ScanService

_logger = logging.getLogger(__name__)

_ItemT = TypeVar("_ItemT")

MENU_ITEM_FIELDS = ("nama_menu", "estimasi_gram", "deskripsi", "proses_pengolahan")
NUTRITION_ITEM_FIELDS = ("grams", *NUTRIENT_FIELDS)


class ViewState(Enum):
    """Stage of the scan workflow."""

    UPLOAD = "upload"
    REVIEW = "review"
    RESULTS = "results"


class EditTarget(str, Enum):
    """Which item list an edit applies to."""

    MENU_ITEM = "menu_item"
    NUTRITION_ITEM = "nutrition_item"


@dataclass
class ReviewController:
    """Holds the working copy of a scan while the user corrects it.

    Nutrition item edits re-aggregate the summary in the same step, so the
    summary always equals the field-wise sum of the current items.
    """

    scan_service: ScanService
    state: ViewState = ViewState.UPLOAD
    scan: Scan | None = None
    saved_scan: Scan | None = None
    saving: bool = field(default=False, init=False)

    def start_review(self, scan: Scan) -> None:
        """Load a freshly analyzed scan for review."""
        self.scan = scan.model_copy(deep=True)
        self.saved_scan = None
        self.state = ViewState.REVIEW

    def begin_edit(self, scan: Scan) -> None:
        """Load an existing scan into the review state."""
        self.start_review(scan)

    def update_menu_item(self, index: int, field_name: str, value: object) -> Scan:
        """Replace one field of a detected menu item."""
        scan = self._working_scan()
        if field_name not in MENU_ITEM_FIELDS:
            raise InputError(f"Unknown menu item field: {field_name}")
        items = list(scan.menu_items)
        current = _item_at(items, index)
        if field_name == "estimasi_gram":
            value = _to_amount(value)
        try:
            items[index] = MenuItemDetection.model_validate(
                {**current.model_dump(), field_name: value}
            )
        except ValidationError as exc:
            raise InputError(f"Invalid value for {field_name}") from exc
        self.scan = scan.model_copy(update={"menu_items": items})
        return self.scan

    def update_nutrition_item(
        self, index: int, field_name: str, value: object
    ) -> Scan:
        """Replace one numeric field of a nutrition item and refresh the summary."""
        scan = self._working_scan()
        if field_name not in NUTRITION_ITEM_FIELDS:
            raise InputError(f"Unknown nutrition field: {field_name}")
        items = list(scan.nutrition_facts.items)
        current = _item_at(items, index)
        items[index] = current.model_copy(update={field_name: _to_amount(value)})
        facts = scan.nutrition_facts.model_copy(
            update={"items": items, "nutrition_summary": summarize_items(items)}
        )
        self.scan = scan.model_copy(update={"nutrition_facts": facts})
        return self.scan

    def set_category(self, value: SchoolCategory | str | None) -> Scan:
        """Set the school category the menu is served to."""
        scan = self._working_scan()
        category = None
        if value:
            try:
                category = SchoolCategory(value)
            except ValueError as exc:
                raise InputError(f"Unknown school category: {value}") from exc
        self.scan = scan.model_copy(update={"school_category": category})
        return self.scan

    def apply_edit(
        self, target: EditTarget, index: int, field_name: str, value: object
    ) -> Scan:
        """Apply one edit to either item list."""
        if target is EditTarget.MENU_ITEM:
            return self.update_menu_item(index, field_name, value)
        return self.update_nutrition_item(index, field_name, value)

    def save(self, user_id: str) -> Scan:
        """Persist the working scan and move on to the results view."""
        scan = self._working_scan()
        if scan.school_category is None:
            raise ValidationFailure("Pilih kategori sekolah dulu!")
        if self.saving:
            raise InputError("Scan is already being saved")
        self.saving = True
        try:
            saved = self.scan_service.save_scan(user_id, scan)
        finally:
            self.saving = False
        _logger.info("Saved scan %s", saved.id)
        self.saved_scan = saved
        self.state = ViewState.RESULTS
        return saved

    def cancel(self) -> None:
        """Discard the working scan and return to upload."""
        self.scan = None
        self.saved_scan = None
        self.state = ViewState.UPLOAD

    def _working_scan(self) -> Scan:
        if self.scan is None or self.state is not ViewState.REVIEW:
            raise InputError("No scan under review")
        return self.scan


def _item_at(items: list[_ItemT], index: int) -> _ItemT:
    if not 0 <= index < len(items):
        raise InputError(f"Item index out of range: {index}")
    return items[index]


def _to_amount(value: object) -> float:
    """Coerce user input to a non-negative number, treating junk as zero."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, int | float):
        amount = float(value)
    elif isinstance(value, str):
        try:
            amount = float(value.strip().replace(",", "."))
        except ValueError:
            return 0.0
    else:
        return 0.0
    if math.isnan(amount) or math.isinf(amount) or amount < 0:
        return 0.0
    return amount
