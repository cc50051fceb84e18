"""Domain models for menu scans."""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

NUTRIENT_FIELDS = (
    "calories_kcal",
    "protein_g",
    "fat_g",
    "carbs_g",
    "sodium_mg",
    "fiber_g",
)


def _new_item_id() -> str:
    return uuid4().hex


class SchoolCategory(str, Enum):
    """School level a scanned menu is served to."""

    TK = "TK"
    SD_1_3 = "SD_1_3"
    SD_4_5 = "SD_4_5"
    SMP = "SMP"
    SMA = "SMA"

    @property
    def label(self) -> str:
        """Return the display label for the category."""
        return _CATEGORY_LABELS[self]


_CATEGORY_LABELS = {
    SchoolCategory.TK: "TK/PAUD",
    SchoolCategory.SD_1_3: "SD Kelas 1–3",
    SchoolCategory.SD_4_5: "SD Kelas 4–5",
    SchoolCategory.SMP: "SMP/MTS",
    SchoolCategory.SMA: "SMA/SMK/MA",
}


class EvaluationStatus(str, Enum):
    """Qualitative verdict over a meal's nutrition summary."""

    BALANCED = "Layak"
    UNBALANCED = "Tidak Layak"


# Older prompts asked the model for "Kurang sesuai" instead of "Tidak Layak".
_STATUS_ALIASES = {"kurang sesuai": EvaluationStatus.UNBALANCED.value}


class MenuItemDetection(BaseModel):
    """Single food item detected on the menu photo."""

    model_config = ConfigDict(extra="forbid")

    item_id: str = Field(default_factory=_new_item_id)
    nama_menu: str
    estimasi_gram: float = Field(ge=0)
    deskripsi: str = ""
    proses_pengolahan: str = ""


class NutritionItem(BaseModel):
    """Computed nutrients for one food item."""

    model_config = ConfigDict(extra="forbid")

    item_id: str = Field(default_factory=_new_item_id)
    name: str
    grams: float = Field(ge=0)
    calories_kcal: float = Field(ge=0)
    protein_g: float = Field(ge=0)
    fat_g: float = Field(ge=0)
    carbs_g: float = Field(ge=0)
    sodium_mg: float = Field(ge=0)
    fiber_g: float = Field(ge=0)


class NutritionSummary(BaseModel):
    """Totals of every nutrient field across a meal's items."""

    model_config = ConfigDict(extra="forbid")

    calories_kcal: float = 0.0
    protein_g: float = 0.0
    fat_g: float = 0.0
    carbs_g: float = 0.0
    sodium_mg: float = 0.0
    fiber_g: float = 0.0

    @classmethod
    def zero(cls) -> "NutritionSummary":
        """Return an all-zero summary."""
        return cls()


class SummaryEvaluation(BaseModel):
    """Verdict on whether the meal is nutritionally balanced."""

    model_config = ConfigDict(extra="forbid")

    status: EvaluationStatus
    reason: str
    recommendation: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> object:
        if isinstance(value, str):
            return _STATUS_ALIASES.get(value.strip().lower(), value.strip())
        return value


class NutritionAnalysis(BaseModel):
    """Per-item nutrients, their summary and an optional evaluation."""

    model_config = ConfigDict(extra="forbid")

    nutrition_summary: NutritionSummary
    items: list[NutritionItem]
    summary_evaluation: SummaryEvaluation | None = None

    @classmethod
    def empty(cls) -> "NutritionAnalysis":
        """Return an analysis with no items and a zero summary."""
        return cls(nutrition_summary=NutritionSummary.zero(), items=[])


class Scan(BaseModel):
    """A menu scan, transient during review and immutable once persisted."""

    id: str | None = None
    image_url: str
    scan_date: datetime
    menu_items: list[MenuItemDetection]
    nutrition_facts: NutritionAnalysis
    school_category: SchoolCategory | None = None
    user_id: str | None = None
    created_at: datetime | None = None

    @property
    def item_names(self) -> str:
        """Return menu item names joined for display and search."""
        return ", ".join(item.nama_menu for item in self.menu_items)

    @property
    def evaluation_status(self) -> EvaluationStatus | None:
        """Return the evaluation status, if the scan was evaluated."""
        evaluation = self.nutrition_facts.summary_evaluation
        return evaluation.status if evaluation else None

    def nutrition_item_for(self, menu_item_id: str) -> NutritionItem | None:
        """Return the nutrition item paired with a detected menu item."""
        for item in self.nutrition_facts.items:
            if item.item_id == menu_item_id:
                return item
        return None


class PublicScan(BaseModel):
    """Public projection of a scan without ownership fields."""

    id: str
    image_url: str
    scan_date: datetime
    nutrition_facts: NutritionAnalysis
    school_category: SchoolCategory | None = None

    @property
    def item_names(self) -> list[str]:
        """Return the nutrition item names."""
        return [item.name for item in self.nutrition_facts.items]
