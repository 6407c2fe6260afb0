"""Data models for the meal portioning engine."""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional


class MealType(str, Enum):
    """Meal slot a plan item belongs to."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


MEAL_ORDER = (MealType.BREAKFAST, MealType.LUNCH, MealType.DINNER, MealType.SNACK)
MAIN_MEALS = (MealType.BREAKFAST, MealType.LUNCH, MealType.DINNER)

DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class ProductType(str, Enum):
    """Whether the solver may resize a product."""

    EDITABLE = "editable"
    FIXED = "fixed"


class NutritionMode(str, Enum):
    TARGET_BASED = "target_based"
    MANUAL = "manual"


@dataclass(frozen=True)
class MacroTotals:
    """Calories and macros (grams) for an item, meal or day."""

    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0

    def __add__(self, other: "MacroTotals") -> "MacroTotals":
        return MacroTotals(
            calories=self.calories + other.calories,
            protein=self.protein + other.protein,
            carbs=self.carbs + other.carbs,
            fat=self.fat + other.fat,
        )

    def __sub__(self, other: "MacroTotals") -> "MacroTotals":
        return MacroTotals(
            calories=self.calories - other.calories,
            protein=self.protein - other.protein,
            carbs=self.carbs - other.carbs,
            fat=self.fat - other.fat,
        )

    def scaled(self, factor: float) -> "MacroTotals":
        return MacroTotals(
            calories=self.calories * factor,
            protein=self.protein * factor,
            carbs=self.carbs * factor,
            fat=self.fat * factor,
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "calories": self.calories,
            "protein": self.protein,
            "carbs": self.carbs,
            "fat": self.fat,
        }


ZERO_MACROS = MacroTotals()

# Used when no user settings exist at all
DEFAULT_DAILY_TARGETS = MacroTotals(calories=2000, protein=150, carbs=200, fat=65)


@dataclass(frozen=True)
class Product:
    """A catalog food reference. Read-only for the duration of a solve.

    Portion bounds and step are optional; None defers to PortioningSettings.
    An empty meal_eligibility set allows every meal.
    """

    id: str
    name: str
    calories_per_100g: float
    protein_per_100g: float
    carbs_per_100g: float
    fat_per_100g: float
    product_type: ProductType = ProductType.EDITABLE
    fixed_portion_grams: Optional[float] = None
    min_portion_grams: Optional[float] = None
    max_portion_grams: Optional[float] = None
    portion_step_grams: Optional[float] = None
    ignore_macros: bool = False
    meal_eligibility: FrozenSet[MealType] = frozenset()

    @property
    def is_fixed(self) -> bool:
        return self.product_type == ProductType.FIXED


@dataclass(frozen=True)
class MealPlanItem:
    """One product line in a day/meal slot, with an embedded product snapshot."""

    id: str
    product: Product
    meal_type: MealType
    quantity_grams: float = 0.0
    is_locked: bool = False


@dataclass(frozen=True)
class PortioningSettings:
    """Explicit solver configuration.

    rounding <= 0 means whole grams. tolerance_percent is the wider
    calorie band separating best-effort from infeasible results.
    """

    min_grams: float = 10
    max_grams: float = 500
    rounding: float = 5
    tolerance_percent: float = 2

    @classmethod
    def from_nutrition_settings(
        cls, settings: Optional["NutritionSettings"]
    ) -> "PortioningSettings":
        """Build solver settings, falling back to defaults field by field."""
        defaults = cls()
        if settings is None:
            return defaults
        return cls(
            min_grams=_or_default(settings.min_grams_per_item, defaults.min_grams),
            max_grams=_or_default(settings.max_grams_per_item, defaults.max_grams),
            rounding=_or_default(settings.portion_rounding, defaults.rounding),
            tolerance_percent=_or_default(
                settings.target_tolerance_percent, defaults.tolerance_percent
            ),
        )


def _or_default(value: Optional[float], default: float) -> float:
    return default if value is None else value


@dataclass
class NutritionSettings:
    """User nutrition settings record (weekday/weekend targets + portioning)."""

    mode: NutritionMode = NutritionMode.TARGET_BASED
    # Weekday targets (Mon-Fri)
    daily_calorie_target: Optional[float] = None
    protein_target_grams: Optional[float] = None
    carbs_target_grams: Optional[float] = None
    fat_target_grams: Optional[float] = None
    # Weekend targets (Sat-Sun)
    weekend_targets_enabled: bool = False
    weekend_calorie_target: Optional[float] = None
    weekend_protein_target_grams: Optional[float] = None
    weekend_carbs_target_grams: Optional[float] = None
    weekend_fat_target_grams: Optional[float] = None
    # Portioning
    min_grams_per_item: Optional[float] = None
    max_grams_per_item: Optional[float] = None
    portion_rounding: Optional[float] = None
    target_tolerance_percent: Optional[float] = None


@dataclass
class WeeklyCalorieSchedule:
    """Calories per weekday for one Monday-Sunday week."""

    monday: float
    tuesday: float
    wednesday: float
    thursday: float
    friday: float
    saturday: float
    sunday: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "monday": self.monday,
            "tuesday": self.tuesday,
            "wednesday": self.wednesday,
            "thursday": self.thursday,
            "friday": self.friday,
            "saturday": self.saturday,
            "sunday": self.sunday,
        }


@dataclass
class WeeklyTargetsOverride:
    """Explicit calorie plan for one week, e.g. a zig-zag schedule.

    week_start is the ISO date (YYYY-MM-DD) of the week's Monday. Macro
    fields left as None fall back to the standing settings.
    """

    week_start: str
    schedule: WeeklyCalorieSchedule
    protein: Optional[float] = None
    carbs: Optional[float] = None
    fat: Optional[float] = None
