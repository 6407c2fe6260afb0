"""Single-item preview: a starting quantity for one newly added item.

A reduced form of the solver. Only the new item's meal slot is considered;
no other item is changed or re-solved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from portioner.data_layer.models import (
    MacroTotals,
    MealPlanItem,
    MealType,
    PortioningSettings,
    Product,
    ZERO_MACROS,
)
from portioner.nutrition.calculator import (
    compute_totals,
    density_problem,
    macros_for_grams,
    macros_per_gram,
)
from portioner.planning.eligibility import (
    constant_grams,
    is_adjustable,
    is_allowed_for_meal,
    portion_bounds,
)
from portioner.planning.solver import SNACK_CALORIE_SHARE, round_to_step

logger = logging.getLogger(__name__)


IGNORED_PREVIEW_GRAMS = 100.0
# Below this many kcal per gram a product barely moves the calorie total
NEGLIGIBLE_CALORIE_DENSITY = 0.05


@dataclass
class PortionPreview:
    grams: float
    macros: MacroTotals = ZERO_MACROS
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "grams": self.grams,
            "macros": self.macros.to_dict(),
            "warnings": list(self.warnings),
        }


def slot_calorie_target(meal_type: MealType, daily_calories: float) -> float:
    """Calorie allowance for one meal slot of a full day.

    Snacks take the snack share; the three main meals split the rest.
    """
    if MealType(meal_type) == MealType.SNACK:
        return daily_calories * SNACK_CALORIE_SHARE
    return daily_calories * (1 - SNACK_CALORIE_SHARE) / 3


def _committed(item: MealPlanItem) -> bool:
    """True if the item already holds calories the slot must account for."""
    if not is_adjustable(item):
        return True
    return item.quantity_grams > 0


def preview_portion(
    product: Product,
    meal_type: MealType,
    existing_items: List[MealPlanItem],
    daily_targets: MacroTotals,
    settings: Optional[PortioningSettings] = None,
) -> PortionPreview:
    """Estimate a starting quantity for `product` added to `meal_type`.

    The new item gets its share of what is left of the slot's calorie
    allowance after the slot's committed items. Unportioned adjustable items
    in the same slot are expected to share that remainder with it.

    Args:
        product: Product being added
        meal_type: Target meal slot
        existing_items: Items already planned for the day (any slot)
        daily_targets: Resolved daily targets
        settings: Portioning settings; defaults when None

    Returns:
        PortionPreview with grams, the macros at those grams and warnings
    """
    settings = settings or PortioningSettings()
    meal_type = MealType(meal_type)

    if not is_allowed_for_meal(product, meal_type):
        return PortionPreview(
            grams=0.0,
            warnings=[f"{product.name} is not allowed for {meal_type.value}"],
        )

    if product.ignore_macros:
        return PortionPreview(grams=IGNORED_PREVIEW_GRAMS)

    problem = density_problem(product)
    if problem is not None:
        return PortionPreview(grams=0.0, warnings=[f"{product.name}: {problem}"])

    if product.is_fixed:
        grams = product.fixed_portion_grams or 0.0
        warnings = [] if grams > 0 else [f"{product.name} has no fixed portion"]
        return PortionPreview(grams=grams, macros=macros_for_grams(product, grams), warnings=warnings)

    warnings: List[str] = []
    bounds = portion_bounds(product, settings)
    slot_items = [item for item in existing_items if item.meal_type == meal_type]
    committed = [item for item in slot_items if _committed(item)]
    committed_grams = {item.id: constant_grams(item) for item in committed}
    committed_calories = compute_totals(committed, committed_grams).calories
    unportioned = sum(1 for item in slot_items if not _committed(item))

    allowance = slot_calorie_target(meal_type, daily_targets.calories)
    remaining = max(0.0, allowance - committed_calories)
    if remaining <= 0:
        warnings.append(f"{meal_type.value.capitalize()} already meets its calorie allowance")
    share = remaining / (1 + unportioned)

    density = macros_per_gram(product).calories
    if density <= NEGLIGIBLE_CALORIE_DENSITY:
        warnings.append(f"{product.name} contributes negligible calories; using the minimum portion")
        raw = bounds.low
    else:
        raw = share / density

    grams = round_to_step(raw, bounds.step)
    if grams < bounds.low:
        if remaining > 0:
            warnings.append(f"Clamped to minimum portion {bounds.low:g}g")
        grams = bounds.low
    elif grams > bounds.high:
        warnings.append(f"Clamped to maximum portion {bounds.high:g}g")
        grams = bounds.high

    logger.debug(
        "Preview %s in %s: %.1f kcal share -> %sg", product.id, meal_type.value, share, grams
    )
    return PortionPreview(grams=grams, macros=macros_for_grams(product, grams), warnings=warnings)
