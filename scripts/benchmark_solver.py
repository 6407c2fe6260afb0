#!/usr/bin/env python3
"""Benchmark solve_many: run time and status summary for a synthetic week.

Run from repo root:
  python scripts/benchmark_solver.py

Optional: days and items per meal via env.
"""
from __future__ import annotations

import os
import sys
import time
from collections import Counter

# Allow importing portioner when run from repo root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from portioner.data_layer.models import MEAL_ORDER, MacroTotals, MealPlanItem, Product
from portioner.planning.solver import solve_many


def make_product(pid: str, calories: float, protein: float, carbs: float, fat: float) -> Product:
    return Product(
        id=pid,
        name=pid,
        calories_per_100g=calories,
        protein_per_100g=protein,
        carbs_per_100g=carbs,
        fat_per_100g=fat,
    )


PRODUCTS = [
    make_product("chicken", 165.0, 31.0, 0.0, 3.6),
    make_product("rice", 130.0, 2.7, 28.0, 0.3),
    make_product("oats", 389.0, 16.9, 66.3, 6.9),
    make_product("yogurt", 59.0, 10.0, 3.6, 0.4),
    make_product("almonds", 579.0, 21.0, 22.0, 50.0),
]


def make_day(day_index: int, items_per_meal: int) -> list:
    items = []
    for meal in MEAL_ORDER:
        for n in range(items_per_meal):
            product = PRODUCTS[(day_index + n + len(items)) % len(PRODUCTS)]
            items.append(
                MealPlanItem(
                    id=f"d{day_index}-{meal.value}-{n}",
                    product=product,
                    meal_type=meal,
                    quantity_grams=100.0 if n % 2 == 0 else 0.0,
                )
            )
    return items


def main() -> None:
    n_days = int(os.environ.get("PORTIONER_DAYS", "7"))
    items_per_meal = int(os.environ.get("PORTIONER_ITEMS_PER_MEAL", "3"))
    targets = MacroTotals(calories=2200, protein=150, carbs=230, fat=70)

    days = {f"day-{d}": (make_day(d, items_per_meal), targets) for d in range(n_days)}

    t0 = time.perf_counter()
    results = solve_many(days)
    t1 = time.perf_counter()

    statuses = Counter(result.status.value for result in results.values())
    nudges = sum(result.iterations for result in results.values())

    print("--- Portion solver benchmark ---")
    print(f"Days: {n_days}, items per meal: {items_per_meal}")
    print(f"Wall time: {t1 - t0:.4f}s")
    print(f"Statuses: {dict(statuses)}")
    print(f"Total nudges: {nudges}")
    for day, result in results.items():
        print(f"  {day}: {result.status.value} ({result.achieved.calories:.0f} kcal)")


if __name__ == "__main__":
    main()
