"""Tests for data layer components."""
import pytest
import json
import shutil
import yaml
from datetime import date
from pathlib import Path
from tempfile import NamedTemporaryFile

from portioner.data_layer import day_plan_db
from portioner.data_layer.day_plan_db import DayPlanDB
from portioner.data_layer.exceptions import (
    ErrorCode,
    IneligibleProductError,
    InvalidItemError,
    InvalidProductError,
    PortionerError,
    ProductNotFoundError,
)
from portioner.data_layer.models import MealType, NutritionMode, ProductType
from portioner.data_layer.product_db import ProductDB
from portioner.data_layer.settings_loader import NutritionSettingsLoader


FIXTURES = Path(__file__).parent / "fixtures"


def write_temp(data, suffix):
    with NamedTemporaryFile(mode="w", suffix=suffix, delete=False) as f:
        if suffix == ".json":
            json.dump(data, f)
        else:
            yaml.safe_dump(data, f)
        return f.name


class TestProductDB:
    """Tests for ProductDB."""

    @pytest.fixture
    def db(self):
        return ProductDB(str(FIXTURES / "products.json"))

    def test_load_products(self, db):
        """Test loading products from JSON file."""
        products = db.get_all_products()
        assert [p.id for p in products] == ["chicken-breast", "protein-bar", "black-coffee"]

    def test_parse_editable_product(self, db):
        chicken = db.get_product_by_id("chicken-breast")
        assert chicken.calories_per_100g == 165
        assert chicken.portion_step_grams == 5
        assert chicken.meal_eligibility == frozenset({MealType.LUNCH, MealType.DINNER})

    def test_parse_fixed_product(self, db):
        bar = db.get_product_by_id("protein-bar")
        assert bar.product_type == ProductType.FIXED
        assert bar.fixed_portion_grams == 60

    def test_ignored_product_without_nutrition(self, db):
        """Test macro-ignored products load with zero densities."""
        coffee = db.get_product_by_id("black-coffee")
        assert coffee.ignore_macros is True
        assert coffee.calories_per_100g == 0

    def test_unknown_product(self, db):
        assert db.get_product_by_id("nope") is None
        with pytest.raises(ProductNotFoundError):
            db.require("nope")

    def test_missing_density_raises(self):
        path = write_temp({"products": [{"id": "x", "name": "X", "calories_per_100g": 100}]}, ".json")
        try:
            with pytest.raises(InvalidProductError) as exc_info:
                ProductDB(path)
            assert exc_info.value.code == ErrorCode.INVALID_PRODUCT
            assert "protein_per_100g" in str(exc_info.value)
        finally:
            Path(path).unlink()

    def test_unknown_meal_type_raises(self):
        data = {
            "id": "x", "name": "X",
            "calories_per_100g": 1, "protein_per_100g": 1, "carbs_per_100g": 1, "fat_per_100g": 1,
            "meal_eligibility": ["brunch"],
        }
        with pytest.raises(InvalidProductError):
            ProductDB.parse_product(data)


class TestNutritionSettingsLoader:
    """Tests for NutritionSettingsLoader."""

    def test_load_settings(self):
        """Test loading nutrition settings from YAML file."""
        settings = NutritionSettingsLoader(str(FIXTURES / "nutrition_settings.yaml")).load()
        assert settings.mode == NutritionMode.TARGET_BASED
        assert settings.daily_calorie_target == 500
        assert settings.protein_target_grams == 94
        assert settings.weekend_targets_enabled is True
        assert settings.weekend_fat_target_grams is None
        assert settings.max_grams_per_item == 450
        assert settings.min_grams_per_item is None

    def test_load_weekly_overrides(self):
        overrides = NutritionSettingsLoader(str(FIXTURES / "nutrition_settings.yaml")).load_weekly_overrides()
        assert len(overrides) == 1
        assert overrides[0].week_start == "2026-10-26"
        assert overrides[0].schedule.friday == 2400
        assert overrides[0].protein == 170
        assert overrides[0].carbs is None

    def test_empty_file_means_defaults(self):
        path = write_temp(None, ".yaml")
        try:
            loader = NutritionSettingsLoader(path)
            settings = loader.load()
            assert settings.daily_calorie_target is None
            assert loader.load_weekly_overrides() == []
        finally:
            Path(path).unlink()

    def test_unknown_mode(self):
        path = write_temp({"mode": "auto"}, ".yaml")
        try:
            with pytest.raises(PortionerError) as exc_info:
                NutritionSettingsLoader(path).load()
            assert exc_info.value.code == ErrorCode.INVALID_SETTINGS
        finally:
            Path(path).unlink()

    def test_non_numeric_value(self):
        path = write_temp({"weekday": {"calories": "lots"}}, ".yaml")
        try:
            with pytest.raises(PortionerError):
                NutritionSettingsLoader(path).load()
        finally:
            Path(path).unlink()

    def test_incomplete_override_schedule(self):
        path = write_temp(
            {"weekly_overrides": [{"week_start": "2026-10-26", "schedule": {"monday": 1900}}]},
            ".yaml",
        )
        try:
            with pytest.raises(PortionerError) as exc_info:
                NutritionSettingsLoader(path).load_weekly_overrides()
            assert "tuesday" in exc_info.value.message
        finally:
            Path(path).unlink()

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            NutritionSettingsLoader("does/not/exist.yaml").load()


class TestDayPlanDB:
    """Tests for DayPlanDB."""

    @pytest.fixture
    def product_db(self):
        return ProductDB(str(FIXTURES / "products.json"))

    @pytest.fixture
    def day_path(self):
        """Writable copy of the day plan fixture."""
        with NamedTemporaryFile(mode="w", suffix=".json", delete=False) as f:
            temp_path = f.name
        shutil.copyfile(FIXTURES / "day_plan.json", temp_path)
        yield temp_path
        Path(temp_path).unlink()

    def test_load_plan(self, day_path, product_db):
        plan = DayPlanDB(day_path, product_db)
        items = plan.get_items()
        assert plan.plan_date == date(2026, 10, 19)
        assert [item.id for item in items] == ["l1", "b1"]
        assert items[0].product.id == "chicken-breast"
        assert items[0].meal_type == MealType.LUNCH
        assert items[1].quantity_grams == 250

    def test_unknown_product_reference(self, product_db):
        path = write_temp(
            {"date": "2026-10-19", "items": [{"id": "x", "product_id": "nope", "meal_type": "lunch"}]},
            ".json",
        )
        try:
            with pytest.raises(ProductNotFoundError):
                DayPlanDB(path, product_db)
        finally:
            Path(path).unlink()

    def test_unknown_meal_type(self, product_db):
        path = write_temp(
            {"date": "2026-10-19", "items": [{"id": "x", "product_id": "chicken-breast", "meal_type": "brunch"}]},
            ".json",
        )
        try:
            with pytest.raises(InvalidItemError):
                DayPlanDB(path, product_db)
        finally:
            Path(path).unlink()

    def test_write_quantities(self, day_path, product_db):
        """Test batch update writes only changed quantities back."""
        plan = DayPlanDB(day_path, product_db)
        changed = plan.write_quantities({"l1": 305, "b1": 250})
        assert changed == 1

        with open(day_path) as f:
            data = json.load(f)
        assert data["items"][0]["quantity_grams"] == 305
        assert data["items"][1]["quantity_grams"] == 250
        assert data["date"] == "2026-10-19"
        assert DayPlanDB(day_path, product_db).get_items()[0].quantity_grams == 305

    def test_failed_write_keeps_old_file(self, tmp_path, product_db, monkeypatch):
        """Test an error while serialising leaves the plan file and memory as they were."""
        path = tmp_path / "day_plan.json"
        shutil.copyfile(FIXTURES / "day_plan.json", path)
        original = path.read_text()
        plan = DayPlanDB(str(path), product_db)

        def broken_dump(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(day_plan_db.json, "dump", broken_dump)
        with pytest.raises(OSError):
            plan.write_quantities({"l1": 305})

        assert path.read_text() == original
        assert [p.name for p in tmp_path.iterdir()] == ["day_plan.json"]
        assert plan.get_items()[0].quantity_grams == 0

    def test_write_replaces_file(self, tmp_path, product_db):
        """Test a successful write leaves no temporary files behind."""
        path = tmp_path / "day_plan.json"
        shutil.copyfile(FIXTURES / "day_plan.json", path)
        DayPlanDB(str(path), product_db).write_quantities({"l1": 305})
        assert [p.name for p in tmp_path.iterdir()] == ["day_plan.json"]
        assert json.loads(path.read_text())["items"][0]["quantity_grams"] == 305

    def test_add_item(self, day_path, product_db):
        plan = DayPlanDB(day_path, product_db)
        item = plan.add_item("d1", "chicken-breast", MealType.DINNER)
        assert item.product.id == "chicken-breast"
        assert len(plan.get_items()) == 3

    def test_add_ineligible_item(self, day_path, product_db):
        plan = DayPlanDB(day_path, product_db)
        with pytest.raises(IneligibleProductError):
            plan.add_item("b2", "chicken-breast", "breakfast")
