"""Tests for the single-item portion preview."""
import pytest

from portioner.data_layer.models import (
    MacroTotals,
    MealPlanItem,
    MealType,
    PortioningSettings,
    Product,
    ProductType,
)
from portioner.planning.preview import preview_portion, slot_calorie_target


DAILY = MacroTotals(2000, 150, 200, 65)

RICE = Product("rice", "Rice", 130, 2.7, 28, 0.3)
CHICKEN = Product("chicken", "Chicken", 165, 31, 0, 3.6)


class TestSlotAllowance:
    """Tests for per-slot calorie allowances."""

    def test_snack_allowance(self):
        assert abs(slot_calorie_target(MealType.SNACK, 2000) - 200) < 1e-6

    def test_main_meal_allowance(self):
        assert abs(slot_calorie_target(MealType.LUNCH, 2000) - 600) < 1e-6


class TestPreviewPortion:
    """Tests for preview_portion."""

    def test_share_of_remaining_slot_calories(self):
        """The new item shares what committed items leave with unportioned ones."""
        existing = [
            MealPlanItem("l1", CHICKEN, MealType.LUNCH, 100, is_locked=True),
            MealPlanItem("l2", RICE, MealType.LUNCH, 0),
            MealPlanItem("d1", CHICKEN, MealType.DINNER, 300),
        ]
        preview = preview_portion(RICE, MealType.LUNCH, existing, DAILY, PortioningSettings())
        # (600 - 165) / 2 = 217.5 kcal at 1.3 kcal/g = 167.3g -> 165g
        assert preview.grams == 165
        assert abs(preview.macros.calories - 214.5) < 0.01
        assert preview.warnings == []

    def test_empty_slot(self):
        """An empty slot gives the whole allowance to the new item."""
        preview = preview_portion(CHICKEN, MealType.DINNER, [], DAILY)
        # 600 kcal / 1.65 = 363.6g -> 365g
        assert preview.grams == 365

    def test_clamped_to_max(self):
        product = Product("nuts", "Nuts", 100, 0, 0, 0, max_portion_grams=50)
        preview = preview_portion(product, MealType.SNACK, [], DAILY)
        assert preview.grams == 50
        assert any("maximum" in w for w in preview.warnings)

    def test_slot_already_full(self):
        """A full slot yields the minimum portion with a warning."""
        existing = [MealPlanItem("l1", CHICKEN, MealType.LUNCH, 450)]
        preview = preview_portion(RICE, MealType.LUNCH, existing, DAILY)
        assert preview.grams == 10
        assert any("already meets" in w for w in preview.warnings)

    def test_negligible_density(self):
        water = Product("water", "Sparkling water", 0, 0, 0, 0)
        preview = preview_portion(water, MealType.LUNCH, [], DAILY)
        assert preview.grams == 10
        assert any("negligible" in w for w in preview.warnings)

    def test_fixed_product(self):
        """Fixed products preview at their fixed portion."""
        bar = Product(
            "bar", "Protein bar", 360, 33, 38, 10,
            product_type=ProductType.FIXED, fixed_portion_grams=60,
        )
        preview = preview_portion(bar, MealType.SNACK, [], DAILY)
        assert preview.grams == 60
        assert abs(preview.macros.calories - 216) < 0.01

    def test_ignored_product(self):
        coffee = Product("coffee", "Coffee", 2, 0.3, 0, 0, ignore_macros=True)
        preview = preview_portion(coffee, MealType.BREAKFAST, [], DAILY)
        assert preview.grams == 100
        assert preview.macros == MacroTotals()

    def test_ineligible_product(self):
        oats = Product(
            "oats", "Oats", 389, 16.9, 66.3, 6.9,
            meal_eligibility=frozenset({MealType.BREAKFAST}),
        )
        preview = preview_portion(oats, MealType.DINNER, [], DAILY)
        assert preview.grams == 0
        assert preview.warnings == ["Oats is not allowed for dinner"]

    def test_does_not_touch_existing_items(self):
        existing = [MealPlanItem("l2", RICE, MealType.LUNCH, 0)]
        preview_portion(RICE, MealType.LUNCH, existing, DAILY)
        assert existing[0].quantity_grams == 0

    @pytest.mark.parametrize("meal", ["breakfast", MealType.BREAKFAST])
    def test_meal_type_as_string(self, meal):
        preview = preview_portion(RICE, meal, [], DAILY)
        assert preview.grams > 0

    def test_to_dict(self):
        data = preview_portion(RICE, MealType.LUNCH, [], DAILY).to_dict()
        assert set(data) == {"grams", "macros", "warnings"}
