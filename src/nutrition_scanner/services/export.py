"""Spreadsheet export and share card rendering."""

import io
import logging
import textwrap
from dataclasses import dataclass
from datetime import UTC, date, datetime

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from PIL import Image, ImageDraw, ImageFont, ImageOps

from nutrition_scanner.domain.scans import Scan
from nutrition_scanner.errors import ExportFailure
from nutrition_scanner.services.analysis import ImageFetcher

_logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
SHEET_TITLE = "Nutrition History"
COLUMNS = (
    ("Date", 18),
    ("Food Items", 25),
    ("Calories", 12),
    ("Protein", 12),
    ("Fat", 12),
    ("Carbs", 12),
    ("Sodium", 12),
    ("Fiber", 12),
    ("Kategori Sekolah", 18),
    ("Status Nutrisi", 30),
)

CARD_SIZE = (1080, 1540)
_CARD_MARGIN = 40
_PHOTO_SIZE = (1000, 640)
_BACKGROUND = (255, 255, 255)
_ACCENT = (22, 163, 74)
_TEXT = (23, 23, 23)
_MUTED = (115, 115, 115)
_TILE = (240, 253, 244)
_GRID = (
    ("Kalori", "calories_kcal", "kcal"),
    ("Protein", "protein_g", "g"),
    ("Lemak", "fat_g", "g"),
    ("Karbohidrat", "carbs_g", "g"),
    ("Natrium", "sodium_mg", "mg"),
    ("Serat", "fiber_g", "g"),
)


def export_filename(today: date | None = None) -> str:
    """Return the download name for a history export."""
    day = today or datetime.now(tz=UTC).date()
    return f"nutrition-history-{day.isoformat()}.xlsx"


def export_scans_to_xlsx(scans: list[Scan]) -> bytes | None:
    """Write one row per scan to an xlsx workbook; empty input writes nothing."""
    if not scans:
        return None
    try:
        workbook = Workbook()
        worksheet = workbook.active
        worksheet.title = SHEET_TITLE
        worksheet.append([header for header, _ in COLUMNS])
        for cell in worksheet[1]:
            cell.font = Font(bold=True)
        for index, (_, width) in enumerate(COLUMNS, start=1):
            worksheet.column_dimensions[get_column_letter(index)].width = width
        for scan in scans:
            worksheet.append(_scan_row(scan))
        buffer = io.BytesIO()
        workbook.save(buffer)
    except Exception as exc:
        _logger.exception("Spreadsheet export failed")
        raise ExportFailure("Failed to export history") from exc
    return buffer.getvalue()


def _scan_row(scan: Scan) -> list[object]:
    summary = scan.nutrition_facts.nutrition_summary
    evaluation = scan.nutrition_facts.summary_evaluation
    notes = (
        f"{evaluation.status.value} - {evaluation.reason}"
        if evaluation
        else "No evaluation found"
    )
    return [
        _format_date(scan.scan_date),
        scan.item_names,
        summary.calories_kcal,
        summary.protein_g,
        summary.fat_g,
        summary.carbs_g,
        summary.sodium_mg,
        summary.fiber_g,
        scan.school_category.value if scan.school_category else "",
        notes,
    ]


def _format_date(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%d %H:%M")


def render_share_card(scan: Scan, image_bytes: bytes | None = None) -> bytes:
    """Render a fixed-size PNG card summarizing the scan."""
    try:
        card = Image.new("RGB", CARD_SIZE, _BACKGROUND)
        draw = ImageDraw.Draw(card)
        title_font = ImageFont.load_default(size=56)
        body_font = ImageFont.load_default(size=34)
        small_font = ImageFont.load_default(size=28)

        draw.rectangle((0, 0, CARD_SIZE[0], 120), fill=_ACCENT)
        draw.text(
            (_CARD_MARGIN, 30), "Analisis Nutrisi", font=title_font, fill=_BACKGROUND
        )

        top = 150
        if image_bytes:
            with Image.open(io.BytesIO(image_bytes)) as photo:
                fitted = ImageOps.fit(photo.convert("RGB"), _PHOTO_SIZE)
            card.paste(fitted, (_CARD_MARGIN, top))
        else:
            right = _CARD_MARGIN + _PHOTO_SIZE[0]
            draw.rectangle((_CARD_MARGIN, top, right, top + _PHOTO_SIZE[1]), fill=_TILE)
        top += _PHOTO_SIZE[1] + 30

        scanned_on = _format_date(scan.scan_date)
        draw.text((_CARD_MARGIN, top), scanned_on, font=small_font, fill=_MUTED)
        top += 50
        for line in textwrap.wrap(scan.item_names or "-", width=48)[:3]:
            draw.text((_CARD_MARGIN, top), line, font=body_font, fill=_TEXT)
            top += 46
        top += 20

        summary = scan.nutrition_facts.nutrition_summary
        tile_width = (CARD_SIZE[0] - 2 * _CARD_MARGIN - 2 * 20) // 3
        tile_height = 150
        for index, (label, field_name, unit) in enumerate(_GRID):
            column, row = index % 3, index // 3
            left = _CARD_MARGIN + column * (tile_width + 20)
            upper = top + row * (tile_height + 20)
            draw.rounded_rectangle(
                (left, upper, left + tile_width, upper + tile_height),
                radius=16,
                fill=_TILE,
            )
            value = getattr(summary, field_name)
            amount = f"{value:.0f} {unit}"
            draw.text((left + 20, upper + 20), amount, font=body_font, fill=_TEXT)
            draw.text((left + 20, upper + 90), label, font=small_font, fill=_MUTED)

        footer = []
        if scan.school_category:
            footer.append(scan.school_category.label)
        if scan.evaluation_status:
            footer.append(scan.evaluation_status.value)
        if footer:
            draw.text(
                (_CARD_MARGIN, CARD_SIZE[1] - 80),
                " · ".join(footer),
                font=body_font,
                fill=_ACCENT,
            )

        buffer = io.BytesIO()
        card.save(buffer, format="PNG")
    except Exception as exc:
        _logger.exception("Share card generation failed", extra={"scan_id": scan.id})
        raise ExportFailure from exc
    return buffer.getvalue()


@dataclass
class ShareCardService:
    """Fetches a scan's photo and renders its share card."""

    image_fetcher: ImageFetcher

    async def render(self, scan: Scan) -> bytes:
        """Return the PNG share card for a scan."""
        try:
            image = await self.image_fetcher.fetch(scan.image_url)
        except Exception as exc:
            _logger.exception(
                "Share card image fetch failed", extra={"scan_id": scan.id}
            )
            raise ExportFailure from exc
        return render_share_card(scan, image.content)
