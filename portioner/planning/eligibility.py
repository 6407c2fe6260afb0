"""Eligibility filter: meal-slot eligibility, adjustability and portion bounds."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from portioner.data_layer.models import MealPlanItem, MealType, PortioningSettings, Product
from portioner.nutrition.calculator import density_problem


def is_allowed_for_meal(product: Product, meal_type: MealType) -> bool:
    """True if the product has no meal restriction or lists this meal."""
    if not product.meal_eligibility:
        return True
    return MealType(meal_type) in product.meal_eligibility


def is_adjustable(item: MealPlanItem) -> bool:
    """True if the solver may change this item's quantity."""
    if item.is_locked:
        return False
    if item.product.is_fixed:
        return False
    if item.product.ignore_macros:
        return False
    return True


def constant_grams(item: MealPlanItem) -> float:
    """Quantity a constant item contributes: the fixed portion or its current grams."""
    if item.product.is_fixed and item.product.fixed_portion_grams is not None:
        return item.product.fixed_portion_grams
    return item.quantity_grams


@dataclass(frozen=True)
class PortionBounds:
    """Step-aligned [low, high] range for one adjustable item."""

    low: float
    high: float
    step: float

    def contains(self, grams: float) -> bool:
        return self.low - 1e-9 <= grams <= self.high + 1e-9

    def on_step(self, grams: float) -> bool:
        ratio = grams / self.step
        return abs(ratio - round(ratio)) < 1e-6


def effective_step(product: Product, settings: PortioningSettings) -> float:
    """Product step if set, else the settings rounding; non-positive means 1 g."""
    step = product.portion_step_grams
    if step is None or step <= 0:
        step = settings.rounding
    if step is None or step <= 0:
        step = 1
    return step


def portion_bounds(product: Product, settings: PortioningSettings) -> PortionBounds:
    """Tighter of settings and product bounds, aligned inward to the step.

    The result may be empty (low > high); validate_item reports that.
    """
    step = effective_step(product, settings)
    low = settings.min_grams
    if product.min_portion_grams is not None:
        low = max(low, product.min_portion_grams)
    high = settings.max_grams
    if product.max_portion_grams is not None:
        high = min(high, product.max_portion_grams)
    low = max(0.0, low)
    aligned_low = math.ceil(low / step - 1e-9) * step
    aligned_high = math.floor(high / step + 1e-9) * step
    return PortionBounds(low=aligned_low, high=aligned_high, step=step)


def validate_item(item: MealPlanItem, settings: PortioningSettings) -> Optional[str]:
    """Reason the item is unusable for a solve, or None if it is fine.

    Checks negative quantities, broken densities, fixed products without a
    fixed portion and adjustable items whose bounds are empty.
    """
    if item.quantity_grams is None or not math.isfinite(item.quantity_grams):
        return "quantity is missing"
    if item.quantity_grams < 0:
        return f"negative quantity {item.quantity_grams}g"
    product = item.product
    if product.ignore_macros:
        return None
    problem = density_problem(product)
    if problem is not None:
        return problem
    if product.is_fixed:
        if product.fixed_portion_grams is None or product.fixed_portion_grams <= 0:
            return "fixed product has no fixed portion"
        return None
    if (
        product.min_portion_grams is not None
        and product.max_portion_grams is not None
        and product.min_portion_grams > product.max_portion_grams
    ):
        return (
            f"min portion {product.min_portion_grams:g}g exceeds "
            f"max portion {product.max_portion_grams:g}g"
        )
    if is_adjustable(item):
        bounds = portion_bounds(product, settings)
        if bounds.low > bounds.high:
            return f"no {bounds.step:g}g step fits between the portion bounds"
    return None
