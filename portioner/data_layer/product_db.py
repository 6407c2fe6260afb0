"""Product catalog for loading food products from JSON."""
import json
from pathlib import Path
from typing import Dict, List, Optional

from portioner.data_layer.exceptions import InvalidProductError, ProductNotFoundError
from portioner.data_layer.models import MealType, Product, ProductType


DENSITY_KEYS = ("calories_per_100g", "protein_per_100g", "carbs_per_100g", "fat_per_100g")


class ProductDB:
    """Catalog of products loaded from JSON."""

    def __init__(self, json_path: str):
        """Initialize product catalog from JSON file.

        Args:
            json_path: Path to JSON file containing {"products": [...]}
        """
        self.json_path = Path(json_path)
        self._products: Dict[str, Product] = {}
        self._load_products()

    def _load_products(self):
        """Load products from JSON file."""
        with open(self.json_path, "r") as f:
            data = json.load(f)

        for product_data in data.get("products", []):
            product = self.parse_product(product_data)
            self._products[product.id] = product

    @staticmethod
    def parse_product(product_data: dict) -> Product:
        """Parse a single product from dictionary data.

        Args:
            product_data: Dictionary containing product data

        Returns:
            Product object

        Raises:
            InvalidProductError: Missing id, missing densities or unknown enum values
        """
        product_id = product_data.get("id")
        if not product_id:
            raise InvalidProductError("<unknown>", "missing id")

        ignore_macros = bool(product_data.get("ignore_macros", False))
        densities = {}
        for key in DENSITY_KEYS:
            value = product_data.get(key)
            if value is None:
                # Macro-ignored products (water, coffee) may omit nutrition data
                if ignore_macros:
                    value = 0.0
                else:
                    raise InvalidProductError(product_id, f"missing {key}")
            try:
                densities[key] = float(value)
            except (TypeError, ValueError):
                raise InvalidProductError(product_id, f"non-numeric {key}")

        try:
            product_type = ProductType(product_data.get("product_type", ProductType.EDITABLE.value))
            eligibility = frozenset(MealType(m) for m in product_data.get("meal_eligibility", []))
        except ValueError as e:
            raise InvalidProductError(product_id, str(e))

        return Product(
            id=str(product_id),
            name=product_data.get("name", str(product_id)),
            product_type=product_type,
            fixed_portion_grams=_optional_float(product_data.get("fixed_portion_grams")),
            min_portion_grams=_optional_float(product_data.get("min_portion_grams")),
            max_portion_grams=_optional_float(product_data.get("max_portion_grams")),
            portion_step_grams=_optional_float(product_data.get("portion_step_grams")),
            ignore_macros=ignore_macros,
            meal_eligibility=eligibility,
            **densities,
        )

    def get_all_products(self) -> List[Product]:
        """Get all products in the catalog.

        Returns:
            List of all Product objects
        """
        return list(self._products.values())

    def get_product_by_id(self, product_id: str) -> Optional[Product]:
        """Get a product by its ID, or None if unknown."""
        return self._products.get(product_id)

    def require(self, product_id: str) -> Product:
        """Get a product by its ID.

        Raises:
            ProductNotFoundError: If the product is not in the catalog
        """
        product = self._products.get(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product


def _optional_float(value) -> Optional[float]:
    return None if value is None else float(value)
