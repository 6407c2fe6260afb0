"""Nutrition calculator for per-item macro contributions and day totals."""
import math
from typing import Iterable, Mapping, Optional

from portioner.data_layer.models import MacroTotals, MealPlanItem, Product, ZERO_MACROS


DENSITY_FIELDS = (
    "calories_per_100g",
    "protein_per_100g",
    "carbs_per_100g",
    "fat_per_100g",
)


def density_problem(product: Product) -> Optional[str]:
    """Return a reason string if the product's per-100g data is unusable.

    Args:
        product: Product to inspect

    Returns:
        None when all four densities are finite and non-negative
    """
    for name in DENSITY_FIELDS:
        value = getattr(product, name, None)
        if value is None:
            return f"missing {name}"
        try:
            value = float(value)
        except (TypeError, ValueError):
            return f"non-numeric {name}"
        if not math.isfinite(value):
            return f"non-finite {name}"
        if value < 0:
            return f"negative {name}"
    return None


def macros_per_gram(product: Product) -> MacroTotals:
    """Nutrient density vector (per gram) for a product."""
    return MacroTotals(
        calories=product.calories_per_100g / 100.0,
        protein=product.protein_per_100g / 100.0,
        carbs=product.carbs_per_100g / 100.0,
        fat=product.fat_per_100g / 100.0,
    )


def macros_for_grams(product: Product, grams: float) -> MacroTotals:
    """Macros contributed by `grams` of a product.

    Macro-ignored products contribute nothing regardless of quantity.
    """
    if product.ignore_macros or grams <= 0:
        return ZERO_MACROS
    return macros_per_gram(product).scaled(grams)


def calculate_item_macros(item: MealPlanItem, grams: Optional[float] = None) -> MacroTotals:
    """Macros for a plan item at its stored quantity or an override."""
    quantity = item.quantity_grams if grams is None else grams
    return macros_for_grams(item.product, quantity)


def compute_totals(
    items: Iterable[MealPlanItem],
    grams_override: Optional[Mapping[str, float]] = None,
) -> MacroTotals:
    """Total macros for a list of items.

    Solver classification and display both read totals from here.

    Args:
        items: Plan items with embedded products
        grams_override: Optional item id -> grams map (e.g. solver output)

    Returns:
        MacroTotals summed over all items
    """
    total = ZERO_MACROS
    for item in items:
        grams = item.quantity_grams
        if grams_override is not None and item.id in grams_override:
            grams = grams_override[item.id]
        total = total + macros_for_grams(item.product, grams)
    return total


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return int(math.floor(value + 0.5))
