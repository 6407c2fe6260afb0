"""Nutrition settings loader for targets and portioning preferences from YAML."""
import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional

from portioner.data_layer.exceptions import ErrorCode, PortionerError
from portioner.data_layer.models import (
    DAY_NAMES,
    NutritionMode,
    NutritionSettings,
    WeeklyCalorieSchedule,
    WeeklyTargetsOverride,
)


class NutritionSettingsLoader:
    """Loader for user nutrition settings from YAML."""

    def __init__(self, yaml_path: str):
        """Initialize settings loader from YAML file.

        Args:
            yaml_path: Path to YAML file containing nutrition settings
        """
        self.yaml_path = Path(yaml_path)
        self._data: Optional[Dict[str, Any]] = None

    def _read(self) -> Dict[str, Any]:
        if self._data is None:
            with open(self.yaml_path, "r") as f:
                data = yaml.safe_load(f)
            # An empty file means "no settings": every field falls back to defaults
            self._data = data or {}
        return self._data

    def load(self) -> NutritionSettings:
        """Load nutrition settings from YAML file.

        Returns:
            NutritionSettings object

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            PortionerError: If mode or a numeric field is invalid
        """
        data = self._read()
        weekday = data.get("weekday") or {}
        weekend = data.get("weekend") or {}
        portioning = data.get("portioning") or {}

        mode_value = data.get("mode", NutritionMode.TARGET_BASED.value)
        try:
            mode = NutritionMode(mode_value)
        except ValueError:
            raise PortionerError(
                ErrorCode.INVALID_SETTINGS,
                f"Unknown nutrition mode '{mode_value}'",
                {"mode": mode_value, "path": str(self.yaml_path)},
            )

        return NutritionSettings(
            mode=mode,
            daily_calorie_target=_number(weekday, "calories"),
            protein_target_grams=_number(weekday, "protein"),
            carbs_target_grams=_number(weekday, "carbs"),
            fat_target_grams=_number(weekday, "fat"),
            weekend_targets_enabled=bool(weekend.get("enabled", False)),
            weekend_calorie_target=_number(weekend, "calories"),
            weekend_protein_target_grams=_number(weekend, "protein"),
            weekend_carbs_target_grams=_number(weekend, "carbs"),
            weekend_fat_target_grams=_number(weekend, "fat"),
            min_grams_per_item=_number(portioning, "min_grams_per_item"),
            max_grams_per_item=_number(portioning, "max_grams_per_item"),
            portion_rounding=_number(portioning, "portion_rounding"),
            target_tolerance_percent=_number(portioning, "target_tolerance_percent"),
        )

    def load_weekly_overrides(self) -> List[WeeklyTargetsOverride]:
        """Load weekly calorie overrides (zig-zag or flat weeks).

        Returns:
            List of WeeklyTargetsOverride, in file order

        Raises:
            PortionerError: If a schedule is missing a weekday
        """
        overrides = []
        for entry in self._read().get("weekly_overrides") or []:
            schedule_data = entry.get("schedule") or {}
            missing = [day for day in DAY_NAMES if schedule_data.get(day) is None]
            if missing:
                raise PortionerError(
                    ErrorCode.INVALID_SETTINGS,
                    f"Weekly override {entry.get('week_start')} is missing {', '.join(missing)}",
                    {"week_start": str(entry.get("week_start")), "missing": missing},
                )
            overrides.append(
                WeeklyTargetsOverride(
                    # YAML reads bare dates as datetime.date
                    week_start=str(entry["week_start"]),
                    schedule=WeeklyCalorieSchedule(
                        **{day: float(schedule_data[day]) for day in DAY_NAMES}
                    ),
                    protein=_number(entry, "protein"),
                    carbs=_number(entry, "carbs"),
                    fat=_number(entry, "fat"),
                )
            )
        return overrides


def _number(section: Dict[str, Any], key: str) -> Optional[float]:
    value = section.get(key)
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise PortionerError(
            ErrorCode.INVALID_SETTINGS,
            f"Setting '{key}' must be a number, got {value!r}",
            {"key": key},
        )
