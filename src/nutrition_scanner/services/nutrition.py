"""Nutrient aggregation helpers."""

import math
from collections.abc import Iterable

from nutrition_scanner.domain.scans import (
    NUTRIENT_FIELDS,
    NutritionAnalysis,
    NutritionItem,
    NutritionSummary,
)

DAILY_VALUES = {
    "calories_kcal": 2000.0,
    "protein_g": 50.0,
    "fat_g": 65.0,
    "carbs_g": 300.0,
    "sodium_mg": 2300.0,
    "fiber_g": 25.0,
}


def summarize_items(items: Iterable[NutritionItem]) -> NutritionSummary:
    """Sum every nutrient field across items; empty input yields zeros."""
    totals = dict.fromkeys(NUTRIENT_FIELDS, 0.0)
    for item in items:
        for field_name in NUTRIENT_FIELDS:
            totals[field_name] += getattr(item, field_name)
    return NutritionSummary(**totals)


def daily_value_percentages(summary: NutritionSummary) -> dict[str, int]:
    """Return each summary field as a rounded percent of its daily value."""
    return {
        field_name: math.floor(getattr(summary, field_name) / reference * 100 + 0.5)
        for field_name, reference in DAILY_VALUES.items()
    }


def reconcile_summary(analysis: NutritionAnalysis) -> NutritionAnalysis:
    """Return the analysis with its summary rebuilt from its items."""
    summary = summarize_items(analysis.items)
    if summary == analysis.nutrition_summary:
        return analysis
    return analysis.model_copy(update={"nutrition_summary": summary})
