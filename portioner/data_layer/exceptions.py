"""Structured error types for the portioning engine.

Only malformed data is raised. "The targets could not be hit" is a normal
solver outcome reported through SolveStatus, never an exception.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes, string-valued for serialization."""

    INVALID_PRODUCT = "INVALID_PRODUCT"
    INVALID_ITEM = "INVALID_ITEM"
    INVALID_TARGETS = "INVALID_TARGETS"
    INVALID_SETTINGS = "INVALID_SETTINGS"
    DUPLICATE_ITEM = "DUPLICATE_ITEM"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    INELIGIBLE_PRODUCT = "INELIGIBLE_PRODUCT"


class PortionerError(Exception):
    """Base exception for all portioning errors.

    Attributes:
        code: ErrorCode identifying the failure
        message: Human-readable description
        context: Relevant identifiers (item id, product id, field name)
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        self.context = context or {}
        super().__init__(f"[{code.value}] {message}")

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code!r}, "
            f"message={self.message!r}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """API-friendly representation."""
        return {
            "error_code": self.code.value,
            "message": self.message,
            "context": self.context,
        }


class InvalidProductError(PortionerError):
    """Raised when product nutrition or portion data is unusable."""

    def __init__(self, product_id: str, reason: str):
        self.product_id = product_id
        self.reason = reason
        super().__init__(
            ErrorCode.INVALID_PRODUCT,
            f"Product '{product_id}' is invalid: {reason}",
            {"product_id": product_id, "reason": reason},
        )


class InvalidItemError(PortionerError):
    """Raised for a meal plan item the solver cannot use."""

    def __init__(self, item_id: str, reason: str):
        self.item_id = item_id
        self.reason = reason
        super().__init__(
            ErrorCode.INVALID_ITEM,
            f"Item '{item_id}' is invalid: {reason}",
            {"item_id": item_id, "reason": reason},
        )


class ProductNotFoundError(PortionerError):
    """Raised when a day plan references a product missing from the catalog."""

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(
            ErrorCode.PRODUCT_NOT_FOUND,
            f"Product '{product_id}' not found in product catalog",
            {"product_id": product_id},
        )


class IneligibleProductError(PortionerError):
    """Raised at the boundary when a product is not allowed in a meal slot."""

    def __init__(self, product_id: str, meal_type: str):
        self.product_id = product_id
        self.meal_type = meal_type
        super().__init__(
            ErrorCode.INELIGIBLE_PRODUCT,
            f"Product '{product_id}' is not allowed for {meal_type}",
            {"product_id": product_id, "meal_type": meal_type},
        )


class SolverInputError(PortionerError):
    """Raised for structurally malformed solver calls (fail fast)."""
