"""Tests for daily target resolution."""
import pytest
from datetime import date

from portioner.data_layer.models import (
    MacroTotals,
    NutritionMode,
    NutritionSettings,
    WeeklyCalorieSchedule,
    WeeklyTargetsOverride,
)
from portioner.planning.targets import (
    derive_fat_from_calories,
    is_weekend,
    resolve,
    select_overrides,
)


WEDNESDAY = date(2026, 10, 21)
FRIDAY = date(2026, 10, 23)
SATURDAY = date(2026, 10, 24)


@pytest.fixture
def settings():
    """Target-based settings with weekday and weekend targets."""
    return NutritionSettings(
        mode=NutritionMode.TARGET_BASED,
        daily_calorie_target=2200,
        protein_target_grams=160,
        carbs_target_grams=220,
        fat_target_grams=70,
        weekend_targets_enabled=True,
        weekend_calorie_target=2500,
        weekend_protein_target_grams=160,
        weekend_carbs_target_grams=260,
    )


@pytest.fixture
def override():
    """Override for the week of 2026-10-19."""
    return WeeklyTargetsOverride(
        week_start="2026-10-19",
        schedule=WeeklyCalorieSchedule(1900, 2100, 1900, 2100, 2400, 2400, 2100),
        protein=170,
    )


class TestResolveDefaults:
    """Tests for fallback behavior."""

    def test_no_settings_uses_defaults(self):
        """Test documented defaults when no settings exist."""
        assert resolve(WEDNESDAY, None) == MacroTotals(2000, 150, 200, 65)

    def test_manual_mode_returns_weekday_values(self):
        """Test manual mode ignores weekend and overrides."""
        manual = NutritionSettings(
            mode=NutritionMode.MANUAL,
            daily_calorie_target=1800,
            protein_target_grams=140,
            weekend_targets_enabled=True,
            weekend_calorie_target=3000,
        )
        targets = resolve(SATURDAY, manual)
        assert targets == MacroTotals(1800, 140, 200, 65)


class TestResolveTargetBased:
    """Tests for target_based resolution."""

    def test_weekday_targets(self, settings):
        """Test Monday-Friday use weekday targets."""
        assert resolve(WEDNESDAY, settings) == MacroTotals(2200, 160, 220, 70)

    def test_weekend_targets(self, settings):
        """Test weekend values with weekday fat as fallback."""
        assert resolve(SATURDAY, settings) == MacroTotals(2500, 160, 260, 70)

    def test_weekend_disabled(self, settings):
        """Test weekend dates use weekday targets when weekend targets are off."""
        settings.weekend_targets_enabled = False
        assert resolve(SATURDAY, settings) == MacroTotals(2200, 160, 220, 70)

    def test_fat_derived_when_missing(self, settings):
        """Test missing fat is derived from remaining calories."""
        settings.fat_target_grams = None
        targets = resolve(SATURDAY, settings)
        # (2500 - 160*4 - 260*4) / 9 = 91.1
        assert targets.fat == 91

    def test_override_for_matching_week(self, settings, override):
        """Test override calories by weekday and override protein."""
        targets = resolve(FRIDAY, settings, weekly_override=override)
        assert targets.calories == 2400
        assert targets.protein == 170
        assert targets.carbs == 220
        assert targets.fat == 70

    def test_override_beats_weekend_calories(self, settings, override):
        """Test weekly override wins over weekend targets."""
        targets = resolve(SATURDAY, settings, weekly_override=override)
        assert targets.calories == 2400
        assert targets.carbs == 260

    def test_override_for_other_week_ignored(self, settings, override):
        """Test an override only applies to its own week."""
        next_wednesday = date(2026, 10, 28)
        assert resolve(next_wednesday, settings, weekly_override=override).calories == 2200

    def test_previous_week_override_carries_over(self, settings, override):
        """Test last week's override applies when this week has none."""
        next_friday = date(2026, 10, 30)
        targets = resolve(next_friday, settings, previous_week_override=override)
        assert targets.calories == 2400
        assert targets.protein == 170

    def test_stale_override_not_carried(self, settings, override):
        """Test an override two weeks old is not carried over."""
        two_weeks_later = date(2026, 11, 4)
        assert resolve(two_weeks_later, settings, previous_week_override=override).calories == 2200


class TestHelpers:
    """Tests for fat derivation and override selection."""

    def test_derive_fat(self):
        """Test 4/4/9 fat derivation."""
        assert derive_fat_from_calories(2000, 150, 200) == 67

    def test_derive_fat_clamped_to_zero(self):
        """Test protein and carbs over calories yields zero fat."""
        assert derive_fat_from_calories(1000, 200, 200) == 0

    def test_is_weekend(self):
        assert is_weekend(SATURDAY) is True
        assert is_weekend(FRIDAY) is False

    def test_select_overrides(self, override):
        """Test current and previous week overrides are picked by week start."""
        older = WeeklyTargetsOverride("2026-10-12", override.schedule)
        current, previous = select_overrides([older, override], date(2026, 10, 22))
        assert current is override
        assert previous is older

    def test_select_overrides_none(self, override):
        """Test unrelated weeks select nothing."""
        assert select_overrides([override], date(2026, 12, 1)) == (None, None)
