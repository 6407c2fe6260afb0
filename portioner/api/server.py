"""FastAPI server for the meal portioning engine."""

from datetime import date
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from portioner.data_layer.exceptions import IneligibleProductError, PortionerError, SolverInputError
from portioner.data_layer.models import (
    MacroTotals,
    MealPlanItem,
    MealType,
    NutritionMode,
    NutritionSettings,
    PortioningSettings,
    Product,
    WeeklyCalorieSchedule,
    WeeklyTargetsOverride,
)
from portioner.data_layer.product_db import ProductDB
from portioner.output.formatters import format_result_json
from portioner.planning.eligibility import is_allowed_for_meal
from portioner.planning.preview import preview_portion
from portioner.planning.solver import solve
from portioner.planning.targets import resolve, select_overrides


products_path = "data/products/products.json"

app = FastAPI(title="Meal Portioner API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Local development
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ProductModel(BaseModel):
    id: str
    name: str
    calories_per_100g: Optional[float] = None
    protein_per_100g: Optional[float] = None
    carbs_per_100g: Optional[float] = None
    fat_per_100g: Optional[float] = None
    product_type: str = "editable"
    fixed_portion_grams: Optional[float] = None
    min_portion_grams: Optional[float] = None
    max_portion_grams: Optional[float] = None
    portion_step_grams: Optional[float] = None
    ignore_macros: bool = False
    meal_eligibility: List[str] = Field(default_factory=list)


class ItemModel(BaseModel):
    id: str
    product: ProductModel
    meal_type: str
    quantity_grams: float = 0.0
    is_locked: bool = False


class TargetsModel(BaseModel):
    calories: float
    protein: float
    carbs: float
    fat: float


class SettingsModel(BaseModel):
    min_grams: float = 10
    max_grams: float = 500
    rounding: float = 5
    tolerance_percent: float = 2


class SolveRequest(BaseModel):
    date: Optional[str] = None
    items: List[ItemModel] = Field(default_factory=list)
    targets: TargetsModel
    settings: SettingsModel = Field(default_factory=SettingsModel)


class PreviewRequest(BaseModel):
    product: ProductModel
    meal_type: str
    existing_items: List[ItemModel] = Field(default_factory=list)
    daily_targets: TargetsModel
    settings: SettingsModel = Field(default_factory=SettingsModel)


class NutritionSettingsModel(BaseModel):
    mode: str = "target_based"
    daily_calorie_target: Optional[float] = None
    protein_target_grams: Optional[float] = None
    carbs_target_grams: Optional[float] = None
    fat_target_grams: Optional[float] = None
    weekend_targets_enabled: bool = False
    weekend_calorie_target: Optional[float] = None
    weekend_protein_target_grams: Optional[float] = None
    weekend_carbs_target_grams: Optional[float] = None
    weekend_fat_target_grams: Optional[float] = None


class WeeklyOverrideModel(BaseModel):
    week_start: str
    schedule: Dict[str, float]
    protein: Optional[float] = None
    carbs: Optional[float] = None
    fat: Optional[float] = None


class TargetsRequest(BaseModel):
    date: str
    settings: Optional[NutritionSettingsModel] = None
    weekly_overrides: List[WeeklyOverrideModel] = Field(default_factory=list)


def _build_product(model: ProductModel) -> Product:
    return ProductDB.parse_product(model.model_dump())


def _build_item(model: ItemModel) -> MealPlanItem:
    return MealPlanItem(
        id=model.id,
        product=_build_product(model.product),
        meal_type=MealType(model.meal_type),
        quantity_grams=model.quantity_grams,
        is_locked=model.is_locked,
    )


def _build_targets(model: TargetsModel) -> MacroTotals:
    return MacroTotals(
        calories=model.calories,
        protein=model.protein,
        carbs=model.carbs,
        fat=model.fat,
    )


def _build_settings(model: SettingsModel) -> PortioningSettings:
    return PortioningSettings(
        min_grams=model.min_grams,
        max_grams=model.max_grams,
        rounding=model.rounding,
        tolerance_percent=model.tolerance_percent,
    )


def _error_response(exc: Exception) -> HTTPException:
    if isinstance(exc, SolverInputError):
        return HTTPException(status_code=422, detail=exc.to_dict())
    if isinstance(exc, PortionerError):
        return HTTPException(status_code=400, detail=exc.to_dict())
    if isinstance(exc, (ValueError, TypeError)):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


@app.post("/api/solve")
def solve_day(request: SolveRequest) -> Dict[str, Any]:
    try:
        items = [_build_item(item) for item in request.items]
        result = solve(items, _build_targets(request.targets), _build_settings(request.settings))
        return format_result_json(items, result, plan_date=request.date)
    except Exception as exc:
        raise _error_response(exc) from exc


@app.post("/api/preview")
def preview_item(request: PreviewRequest) -> Dict[str, Any]:
    try:
        product = _build_product(request.product)
        meal_type = MealType(request.meal_type)
        if not is_allowed_for_meal(product, meal_type):
            raise IneligibleProductError(product.id, meal_type.value)
        existing = [_build_item(item) for item in request.existing_items]
        preview = preview_portion(
            product,
            meal_type,
            existing,
            _build_targets(request.daily_targets),
            _build_settings(request.settings),
        )
        return preview.to_dict()
    except Exception as exc:
        raise _error_response(exc) from exc


@app.post("/api/targets")
def resolve_targets(request: TargetsRequest) -> Dict[str, Any]:
    try:
        day = date.fromisoformat(request.date)
        settings = None
        if request.settings is not None:
            data = request.settings.model_dump()
            data["mode"] = NutritionMode(data["mode"])
            settings = NutritionSettings(**data)
        overrides = [
            WeeklyTargetsOverride(
                week_start=o.week_start,
                schedule=WeeklyCalorieSchedule(**o.schedule),
                protein=o.protein,
                carbs=o.carbs,
                fat=o.fat,
            )
            for o in request.weekly_overrides
        ]
        current, previous = select_overrides(overrides, day)
        targets = resolve(day, settings, current, previous)
        return {"date": day.isoformat(), "targets": targets.to_dict()}
    except Exception as exc:
        raise _error_response(exc) from exc


@app.get("/api/products")
def list_products() -> List[Dict[str, str]]:
    try:
        product_db = ProductDB(products_path)
        return [{"id": p.id, "name": p.name} for p in product_db.get_all_products()]
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
