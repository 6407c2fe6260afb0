"""Weekly calorie schedules: flat weeks and zig-zag calorie cycling.

Meal plan weeks run Monday to Sunday. Schedules produced here are stored as
WeeklyTargetsOverride records and consumed by the target resolver.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List

from portioner.data_layer.models import DAY_NAMES, WeeklyCalorieSchedule
from portioner.nutrition.calculator import round_half_up


@dataclass(frozen=True)
class PlanModeConfig:
    label: str
    weekly_deficit_kg: float
    daily_calorie_adjustment: int  # negative for deficit

PLAN_MODES: Dict[str, PlanModeConfig] = {
    "maintain": PlanModeConfig("Maintain", 0.0, 0),
    "mild_loss": PlanModeConfig("Mild Weight Loss", 0.25, -250),
    "loss": PlanModeConfig("Weight Loss", 0.5, -500),
    "extreme_loss": PlanModeConfig("Extreme Weight Loss", 1.0, -1000),
}

ZIGZAG_SCHEDULES = ("schedule_1", "schedule_2")


def week_start_monday(day: date) -> date:
    """Monday that starts the meal plan week containing `day`."""
    return day - timedelta(days=day.weekday())


def next_week_start_from_weigh_in(today: date) -> date:
    """Monday of the week that a weigh-in on `today` plans for.

    A Sunday weigh-in plans the week starting tomorrow; any other day plans
    the next upcoming Monday (a Monday plans the following Monday).
    """
    days_until_monday = (7 - today.weekday()) % 7
    if days_until_monday == 0:
        days_until_monday = 7
    return today + timedelta(days=days_until_monday)


def build_flat_schedule(daily_calories: float) -> WeeklyCalorieSchedule:
    """Same calories every day of the week."""
    return WeeklyCalorieSchedule(*([daily_calories] * 7))


def target_calories_for_plan(tdee: float, plan_mode: str) -> int:
    """Daily calories for a plan mode. Raises KeyError for unknown modes."""
    return round_half_up(tdee + PLAN_MODES[plan_mode].daily_calorie_adjustment)


def build_zigzag_schedule(tdee: float, plan_mode: str, schedule_type: str) -> WeeklyCalorieSchedule:
    """Calorie-cycling week with the same weekly total as a flat plan.

    schedule_1: maintenance calories on Saturday and Sunday, weekdays absorb
    the whole weekly deficit.
    schedule_2: low/medium/high days spread through the week.

    Raises:
        KeyError: Unknown plan_mode
        ValueError: Unknown schedule_type
    """
    target_daily = target_calories_for_plan(tdee, plan_mode)
    weekly_total = target_daily * 7

    if schedule_type == "schedule_1":
        high_day = round_half_up(tdee)
        low_day = round_half_up((weekly_total - high_day * 2) / 5)
        return WeeklyCalorieSchedule(
            monday=low_day,
            tuesday=low_day,
            wednesday=low_day,
            thursday=low_day,
            friday=low_day,
            saturday=high_day,
            sunday=high_day,
        )
    if schedule_type == "schedule_2":
        low = round_half_up(target_daily * 0.85)
        med = target_daily
        high = round_half_up(target_daily * 1.15)
        raw_total = low * 2 + med * 3 + high * 2
        med_adjusted = med + round_half_up((weekly_total - raw_total) / 3)
        return WeeklyCalorieSchedule(
            monday=low,
            tuesday=med_adjusted,
            wednesday=low,
            thursday=med_adjusted,
            friday=high,
            saturday=high,
            sunday=med_adjusted,
        )
    raise ValueError(f"Unknown zig-zag schedule '{schedule_type}'; expected one of {ZIGZAG_SCHEDULES}")


def calories_for_date(day: date, schedule: WeeklyCalorieSchedule) -> float:
    """Calories the schedule assigns to the weekday of `day`."""
    return getattr(schedule, DAY_NAMES[day.weekday()])


def weekly_average(schedule: WeeklyCalorieSchedule) -> int:
    return round_half_up(sum(schedule.to_dict().values()) / 7)


def schedule_to_list(schedule: WeeklyCalorieSchedule) -> List[Dict[str, object]]:
    """[{"day": "Monday", "calories": ...}, ...] in week order, for display."""
    return [
        {"day": name.capitalize(), "calories": getattr(schedule, name)}
        for name in DAY_NAMES
    ]
