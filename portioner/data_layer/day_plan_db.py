"""Day plan store: one day's meal plan items in a JSON file."""
import copy
import json
import logging
import os
import tempfile
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Mapping

from portioner.data_layer.exceptions import IneligibleProductError, InvalidItemError
from portioner.data_layer.models import MealPlanItem, MealType
from portioner.data_layer.product_db import ProductDB

logger = logging.getLogger(__name__)


class DayPlanDB:
    """A single day's plan loaded from JSON, with products resolved from a catalog.

    File format:
        {"date": "YYYY-MM-DD", "items": [{"id", "product_id", "meal_type",
        "quantity_grams", "is_locked"}, ...]}
    """

    def __init__(self, json_path: str, product_db: ProductDB):
        """Initialize day plan from JSON file.

        Args:
            json_path: Path to the day plan JSON file
            product_db: Catalog used to resolve product_id references
        """
        self.json_path = Path(json_path)
        self.product_db = product_db
        self._data: Dict[str, Any] = {}
        self._items: List[MealPlanItem] = []
        self._load_plan()

    def _load_plan(self):
        """Load plan from JSON file."""
        with open(self.json_path, "r") as f:
            self._data = json.load(f)

        self._items = [self._parse_item(item_data) for item_data in self._data.get("items", [])]

    def _parse_item(self, item_data: dict) -> MealPlanItem:
        """Parse a single plan item, embedding its product snapshot.

        Raises:
            InvalidItemError: Missing id or unknown meal type
            ProductNotFoundError: Unknown product_id
        """
        item_id = item_data.get("id")
        if not item_id:
            raise InvalidItemError("<unknown>", "missing id")
        try:
            meal_type = MealType(item_data.get("meal_type"))
        except ValueError:
            raise InvalidItemError(item_id, f"unknown meal type {item_data.get('meal_type')!r}")
        product_id = item_data.get("product_id")
        if not product_id:
            raise InvalidItemError(item_id, "missing product_id")

        return MealPlanItem(
            id=str(item_id),
            product=self.product_db.require(product_id),
            meal_type=meal_type,
            quantity_grams=float(item_data.get("quantity_grams", 0.0)),
            is_locked=bool(item_data.get("is_locked", False)),
        )

    @property
    def plan_date(self) -> date:
        """Calendar date of this plan."""
        return date.fromisoformat(self._data["date"])

    def get_items(self) -> List[MealPlanItem]:
        """Get all items of the day in file order."""
        return self._items.copy()

    def add_item(self, item_id: str, product_id: str, meal_type: MealType, quantity_grams: float = 0.0) -> MealPlanItem:
        """Append a new item to the in-memory plan.

        Raises:
            IneligibleProductError: Product is not allowed for the meal
            ProductNotFoundError: Unknown product_id
        """
        product = self.product_db.require(product_id)
        meal_type = MealType(meal_type)
        if product.meal_eligibility and meal_type not in product.meal_eligibility:
            raise IneligibleProductError(product_id, meal_type.value)
        item = MealPlanItem(id=item_id, product=product, meal_type=meal_type, quantity_grams=quantity_grams)
        self._items.append(item)
        self._data.setdefault("items", []).append(
            {
                "id": item_id,
                "product_id": product_id,
                "meal_type": meal_type.value,
                "quantity_grams": quantity_grams,
                "is_locked": False,
            }
        )
        return item

    def write_quantities(self, quantities: Mapping[str, float]) -> int:
        """Batch-update quantities and write the file back.

        Only items present in `quantities` change; everything else in the
        file is preserved. The new contents go to a temporary file in the
        same directory which then replaces the plan, so a failed write
        leaves the old file and the in-memory plan untouched.

        Args:
            quantities: item id -> grams

        Returns:
            Number of items whose quantity changed
        """
        data = copy.deepcopy(self._data)
        changed = 0
        for item_data in data.get("items", []):
            item_id = item_data.get("id")
            if item_id in quantities and item_data.get("quantity_grams") != quantities[item_id]:
                item_data["quantity_grams"] = quantities[item_id]
                changed += 1

        self._write_atomic(data)
        self._data = data
        self._items = [self._parse_item(item_data) for item_data in data.get("items", [])]
        logger.info("Wrote %d changed quantities to %s", changed, self.json_path)
        return changed

    def _write_atomic(self, data: Dict[str, Any]) -> None:
        """Write data as JSON via a temporary file and os.replace."""
        with tempfile.NamedTemporaryFile(
            "w", dir=self.json_path.parent, prefix=f".{self.json_path.name}.", suffix=".tmp", delete=False
        ) as f:
            tmp_path = Path(f.name)
            try:
                json.dump(data, f, indent=2)
                f.write("\n")
            except Exception:
                f.close()
                tmp_path.unlink()
                raise
        os.replace(tmp_path, self.json_path)
