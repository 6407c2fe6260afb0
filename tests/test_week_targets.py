"""Tests for weekly calorie schedules."""
import pytest
from datetime import date

from portioner.data_layer.models import WeeklyCalorieSchedule
from portioner.planning.week_targets import (
    build_flat_schedule,
    build_zigzag_schedule,
    calories_for_date,
    next_week_start_from_weigh_in,
    schedule_to_list,
    target_calories_for_plan,
    week_start_monday,
    weekly_average,
)


class TestWeekDates:
    """Tests for Monday-based week helpers."""

    def test_week_start_monday(self):
        """Test any day maps to its week's Monday."""
        assert week_start_monday(date(2026, 10, 22)) == date(2026, 10, 19)
        assert week_start_monday(date(2026, 10, 19)) == date(2026, 10, 19)
        assert week_start_monday(date(2026, 10, 25)) == date(2026, 10, 19)

    def test_sunday_weigh_in_plans_tomorrow(self):
        """Test a Sunday weigh-in plans the week starting the next day."""
        assert next_week_start_from_weigh_in(date(2026, 10, 25)) == date(2026, 10, 26)

    def test_midweek_weigh_in(self):
        """Test a midweek weigh-in plans the next Monday."""
        assert next_week_start_from_weigh_in(date(2026, 10, 21)) == date(2026, 10, 26)

    def test_monday_weigh_in_plans_following_week(self):
        """Test a Monday weigh-in skips to the following Monday."""
        assert next_week_start_from_weigh_in(date(2026, 10, 19)) == date(2026, 10, 26)


class TestSchedules:
    """Tests for flat and zig-zag schedules."""

    def test_flat_schedule(self):
        """Test every day gets the same calories."""
        schedule = build_flat_schedule(2100)
        assert set(schedule.to_dict().values()) == {2100}

    def test_plan_mode_adjustment(self):
        """Test daily deficit per plan mode."""
        assert target_calories_for_plan(2500, "maintain") == 2500
        assert target_calories_for_plan(2500, "mild_loss") == 2250
        assert target_calories_for_plan(2500, "loss") == 2000
        assert target_calories_for_plan(2500, "extreme_loss") == 1500

    def test_unknown_plan_mode(self):
        """Test unknown plan modes raise KeyError."""
        with pytest.raises(KeyError):
            target_calories_for_plan(2500, "bulk")

    def test_zigzag_schedule_1_maintenance_weekend(self):
        """Test weekend at maintenance with weekdays carrying the deficit."""
        schedule = build_zigzag_schedule(2500, "loss", "schedule_1")
        assert schedule.saturday == 2500
        assert schedule.sunday == 2500
        assert schedule.monday == 1800
        assert schedule.friday == 1800
        assert sum(schedule.to_dict().values()) == 2000 * 7

    def test_zigzag_schedule_2_keeps_weekly_total(self):
        """Test low/medium/high days keep the flat plan's weekly total."""
        schedule = build_zigzag_schedule(2333, "loss", "schedule_2")
        target = target_calories_for_plan(2333, "loss")
        assert schedule.monday < schedule.tuesday < schedule.friday
        assert abs(sum(schedule.to_dict().values()) - target * 7) <= 3

    def test_unknown_schedule_type(self):
        """Test unknown zig-zag schedules raise ValueError."""
        with pytest.raises(ValueError):
            build_zigzag_schedule(2500, "loss", "schedule_3")


class TestScheduleLookups:
    """Tests for schedule lookups and display helpers."""

    @pytest.fixture
    def schedule(self):
        return WeeklyCalorieSchedule(1900, 2100, 1900, 2100, 2400, 2400, 2100)

    def test_calories_for_date(self, schedule):
        """Test lookup by weekday."""
        assert calories_for_date(date(2026, 10, 23), schedule) == 2400  # Friday
        assert calories_for_date(date(2026, 10, 19), schedule) == 1900  # Monday

    def test_weekly_average(self, schedule):
        """Test rounded weekly average."""
        assert weekly_average(schedule) == 2129

    def test_schedule_to_list(self, schedule):
        """Test display list in week order."""
        rows = schedule_to_list(schedule)
        assert rows[0] == {"day": "Monday", "calories": 1900}
        assert rows[-1] == {"day": "Sunday", "calories": 2100}
        assert len(rows) == 7
