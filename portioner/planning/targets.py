"""Target resolution: one concrete {calories, protein, carbs, fat} tuple per date.

Pure functions only. Precedence for target_based settings:
    1. weekly override for the date's week (calories by weekday)
    2. previous week's override carried over, when this week has none
    3. weekend targets on Saturday/Sunday when enabled
    4. weekday targets
Missing values fall back to DEFAULT_DAILY_TARGETS; a missing fat target is
derived from the calories left after protein and carbs.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Optional, Tuple

from portioner.data_layer.models import (
    DEFAULT_DAILY_TARGETS,
    MacroTotals,
    NutritionMode,
    NutritionSettings,
    WeeklyTargetsOverride,
)
from portioner.nutrition.calculator import round_half_up
from portioner.planning.week_targets import calories_for_date, week_start_monday


def derive_fat_from_calories(calories: float, protein_g: float, carbs_g: float) -> int:
    """Fat grams that fill the calories left after protein and carbs (4/4/9).

    Clamped to 0 when protein and carbs already use every calorie.
    """
    remaining = calories - protein_g * 4 - carbs_g * 4
    return max(0, round_half_up(remaining / 9))


def _first(*values: Optional[float]) -> Optional[float]:
    for value in values:
        if value is not None:
            return value
    return None


def _override_for_week(
    day: date,
    weekly_override: Optional[WeeklyTargetsOverride],
    previous_week_override: Optional[WeeklyTargetsOverride],
) -> Optional[WeeklyTargetsOverride]:
    week_start = week_start_monday(day).isoformat()
    if weekly_override is not None and weekly_override.week_start == week_start:
        return weekly_override
    if previous_week_override is not None:
        previous_start = (week_start_monday(day) - timedelta(days=7)).isoformat()
        if previous_week_override.week_start == previous_start:
            return previous_week_override
    return None


def select_overrides(
    overrides: Iterable[WeeklyTargetsOverride],
    day: date,
) -> Tuple[Optional[WeeklyTargetsOverride], Optional[WeeklyTargetsOverride]]:
    """Pick (this week's, previous week's) override for `day` from stored overrides."""
    week_start = week_start_monday(day)
    current = previous = None
    for override in overrides:
        if override.week_start == week_start.isoformat():
            current = override
        elif override.week_start == (week_start - timedelta(days=7)).isoformat():
            previous = override
    return current, previous


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def resolve(
    day: date,
    settings: Optional[NutritionSettings],
    weekly_override: Optional[WeeklyTargetsOverride] = None,
    previous_week_override: Optional[WeeklyTargetsOverride] = None,
) -> MacroTotals:
    """Resolve the daily targets for `day`.

    Args:
        day: Calendar date being planned
        settings: User nutrition settings; None yields the documented defaults
        weekly_override: Override whose week_start should match day's week
        previous_week_override: Last week's override, carried over when the
            current week has no override of its own

    Returns:
        MacroTotals with calories, protein, carbs and fat
    """
    defaults = DEFAULT_DAILY_TARGETS
    if settings is None:
        return defaults

    if settings.mode != NutritionMode.TARGET_BASED:
        # Manual mode: reference line for display only
        return MacroTotals(
            calories=_first(settings.daily_calorie_target, defaults.calories),
            protein=_first(settings.protein_target_grams, defaults.protein),
            carbs=_first(settings.carbs_target_grams, defaults.carbs),
            fat=_first(settings.fat_target_grams, defaults.fat),
        )

    weekend = is_weekend(day) and settings.weekend_targets_enabled
    if weekend:
        calories = _first(settings.weekend_calorie_target, settings.daily_calorie_target, defaults.calories)
        protein = _first(settings.weekend_protein_target_grams, settings.protein_target_grams, defaults.protein)
        carbs = _first(settings.weekend_carbs_target_grams, settings.carbs_target_grams, defaults.carbs)
        fat = _first(settings.weekend_fat_target_grams, settings.fat_target_grams)
    else:
        calories = _first(settings.daily_calorie_target, defaults.calories)
        protein = _first(settings.protein_target_grams, defaults.protein)
        carbs = _first(settings.carbs_target_grams, defaults.carbs)
        fat = settings.fat_target_grams

    override = _override_for_week(day, weekly_override, previous_week_override)
    if override is not None:
        calories = calories_for_date(day, override.schedule)
        protein = _first(override.protein, protein)
        carbs = _first(override.carbs, carbs)
        fat = _first(override.fat, fat)

    if fat is None:
        fat = derive_fat_from_calories(calories, protein, carbs)

    return MacroTotals(calories=calories, protein=protein, carbs=carbs, fat=fat)
