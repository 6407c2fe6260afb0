"""Nutrition aggregator for summing macros across meals and days."""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from portioner.data_layer.models import MEAL_ORDER, MacroTotals, MealPlanItem, MealType, ZERO_MACROS
from portioner.nutrition.calculator import compute_totals


@dataclass
class DayMacros:
    """Macros for one day, broken down by meal slot."""

    date: str
    meals: Dict[MealType, MacroTotals] = field(default_factory=dict)
    totals: MacroTotals = ZERO_MACROS
    target_diff: Optional[MacroTotals] = None


class NutritionAggregator:
    """Aggregator for combining item macros into meal, day and week views."""

    @staticmethod
    def aggregate_meal(
        items: Iterable[MealPlanItem],
        meal_type: MealType,
        grams_override: Optional[Mapping[str, float]] = None,
    ) -> MacroTotals:
        """Sum macros for the items of one meal slot.

        Args:
            items: All items of the day
            meal_type: Slot to aggregate
            grams_override: Optional item id -> grams map

        Returns:
            MacroTotals for that slot
        """
        return compute_totals(
            [item for item in items if item.meal_type == meal_type],
            grams_override,
        )

    @staticmethod
    def aggregate_day(
        date: str,
        items: List[MealPlanItem],
        grams_override: Optional[Mapping[str, float]] = None,
        targets: Optional[MacroTotals] = None,
    ) -> DayMacros:
        """Per-meal and total macros for a day.

        Args:
            date: ISO date of the day
            items: All items of the day
            grams_override: Optional item id -> grams map
            targets: When given, target_diff = totals - targets

        Returns:
            DayMacros with one entry per meal type
        """
        meals = {
            meal_type: NutritionAggregator.aggregate_meal(items, meal_type, grams_override)
            for meal_type in MEAL_ORDER
        }
        totals = ZERO_MACROS
        for meal_totals in meals.values():
            totals = totals + meal_totals
        target_diff = totals - targets if targets is not None else None
        return DayMacros(date=date, meals=meals, totals=totals, target_diff=target_diff)

    @staticmethod
    def weekly_averages(days: List[DayMacros]) -> MacroTotals:
        """Average day totals over days that have anything planned.

        Args:
            days: DayMacros for a week

        Returns:
            Average MacroTotals, zero when nothing is planned
        """
        planned = [d for d in days if d.totals.calories > 0]
        if not planned:
            return ZERO_MACROS
        total = ZERO_MACROS
        for day in planned:
            total = total + day.totals
        return total.scaled(1.0 / len(planned))
