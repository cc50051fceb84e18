"""Pydantic models for API request payloads."""

from typing import Any

from pydantic import BaseModel, Field

from nutrition_scanner.domain.scans import SchoolCategory, Scan
from nutrition_scanner.services.review import EditTarget


class AnalyzeRequest(BaseModel):
    """Analyze endpoint payload."""

    image_url: str | None = Field(default=None, alias="imageUrl")


class ScanEdit(BaseModel):
    """Single field edit applied during review."""

    target: EditTarget
    index: int = Field(ge=0)
    field: str
    value: str | float | None = None


class ReviewRequest(BaseModel):
    """A scan under review with the edits to apply."""

    scan: Scan
    edits: list[ScanEdit] = Field(default_factory=list)
    school_category: SchoolCategory | None = None


class ChatRequest(BaseModel):
    """Chat endpoint payload."""

    message: Any = None
