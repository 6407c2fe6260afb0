"""Formatters for solve results (JSON and Markdown)."""

import json
from typing import Any, Dict, List, Optional

from portioner.data_layer.models import MEAL_ORDER, MacroTotals, MealPlanItem
from portioner.nutrition.aggregator import NutritionAggregator
from portioner.nutrition.calculator import calculate_item_macros
from portioner.planning.reporting import Diagnostics, describe
from portioner.planning.solver import SolveResult, SolveStatus


STATUS_HEADLINES = {
    SolveStatus.ACHIEVED: "✅ **Portions hit the daily targets**",
    SolveStatus.BEST_EFFORT: "⚠️ **Closest achievable portions (saved as best effort)**",
    SolveStatus.INFEASIBLE: "❌ **Targets cannot be reached; quantities left unchanged**",
}


def format_grams(grams: float) -> str:
    """Format grams without a trailing .0 (e.g. "305g", "12.5g")."""
    if grams == int(grams):
        return f"{int(grams)}g"
    return f"{grams:.1f}".rstrip("0").rstrip(".") + "g"


def format_item_string(item: MealPlanItem, grams: float) -> str:
    """Format an item line, e.g. "305g Chicken breast (locked)"."""
    tags = []
    if item.is_locked:
        tags.append("locked")
    if item.product.is_fixed:
        tags.append("fixed")
    if item.product.ignore_macros:
        tags.append("macros ignored")
    suffix = f" ({', '.join(tags)})" if tags else ""
    return f"{format_grams(grams)} {item.product.name}{suffix}"


def format_macro_breakdown(totals: MacroTotals, indent: str = "") -> str:
    """Format macro totals as a readable breakdown.

    Args:
        totals: MacroTotals to render
        indent: Optional indentation prefix

    Returns:
        Formatted string with calories and macros
    """
    lines = [
        f"{indent}**Calories:** {totals.calories:.0f} kcal",
        f"{indent}**Protein:** {totals.protein:.1f}g",
        f"{indent}**Carbs:** {totals.carbs:.1f}g",
        f"{indent}**Fat:** {totals.fat:.1f}g",
    ]
    return "\n".join(lines)


def _rounded(totals: MacroTotals) -> Dict[str, float]:
    return {name: round(value, 1) for name, value in totals.to_dict().items()}


def format_result_markdown(
    items: List[MealPlanItem],
    result: SolveResult,
    plan_date: Optional[str] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> str:
    """Format a solve result as Markdown.

    Args:
        items: The day's items, in plan order
        result: SolveResult from the solver
        plan_date: Optional ISO date for the header
        diagnostics: Precomputed diagnostics; computed when None

    Returns:
        Formatted Markdown string
    """
    diagnostics = diagnostics or describe(result)
    lines = []

    lines.append(f"# Portions for {plan_date}\n" if plan_date else "# Portions\n")
    lines.append(STATUS_HEADLINES[result.status] + "\n")

    if diagnostics.violations:
        lines.append("## Off Target\n")
        for violation in diagnostics.violations:
            lines.append(f"- {violation}")
        lines.append("")

    if diagnostics.suggested_fixes:
        lines.append("## Suggestions\n")
        for hint in diagnostics.suggested_fixes:
            lines.append(f"- {hint}")
        lines.append("")

    if diagnostics.notes:
        lines.append("## Notes\n")
        for note in diagnostics.notes:
            lines.append(f"- {note}")
        lines.append("")

    # Show what would have been saved so an infeasible day is still explained
    quantities = result.proposed_quantities or result.quantities
    counted = [item for item in items if item.id not in result.skipped_items]
    day = NutritionAggregator.aggregate_day(plan_date or "", counted, quantities)
    for meal_type in MEAL_ORDER:
        meal_items = [item for item in items if item.meal_type == meal_type]
        if not meal_items:
            continue
        lines.append(f"## {meal_type.value.capitalize()}")
        for item in meal_items:
            grams = quantities.get(item.id, item.quantity_grams)
            line = f"- {format_item_string(item, grams)}"
            if item.id in result.skipped_items:
                line += " (skipped: invalid data)"
            elif result.status == SolveStatus.INFEASIBLE and grams != item.quantity_grams:
                line += f" (not saved, currently {format_grams(item.quantity_grams)})"
            lines.append(line)
        lines.append("")
        lines.append("### Meal Totals")
        lines.append(format_macro_breakdown(day.meals[meal_type]))
        lines.append("")

    lines.append("## Daily Totals")
    lines.append(format_macro_breakdown(day.totals))
    lines.append("")

    lines.append("## Targets")
    lines.append(format_macro_breakdown(result.targets))
    lines.append("")

    return "\n".join(lines)


def format_result_json(
    items: List[MealPlanItem],
    result: SolveResult,
    plan_date: Optional[str] = None,
    diagnostics: Optional[Diagnostics] = None,
) -> Dict[str, Any]:
    """Format a solve result as JSON (for API usage).

    Args:
        items: The day's items, in plan order
        result: SolveResult from the solver
        plan_date: Optional ISO date
        diagnostics: Precomputed diagnostics; computed when None

    Returns:
        Dictionary ready for JSON serialization
    """
    diagnostics = diagnostics or describe(result)

    items_json = []
    for item in items:
        grams = result.quantities.get(item.id, item.quantity_grams)
        skipped = item.id in result.skipped_items
        macros = MacroTotals() if skipped else calculate_item_macros(item, grams)
        items_json.append({
            "id": item.id,
            "product_id": item.product.id,
            "name": item.product.name,
            "meal_type": item.meal_type.value,
            "quantity_grams": grams,
            "proposed_grams": result.proposed_quantities.get(item.id, grams),
            "is_locked": item.is_locked,
            "skipped": skipped,
            "macros": _rounded(macros),
            "display": format_item_string(item, grams),
        })

    return {
        "date": plan_date,
        "status": result.status.value,
        "quantities": dict(result.quantities),
        "items": items_json,
        "achieved": _rounded(result.achieved),
        "proposed_totals": _rounded(result.proposed_totals),
        "targets": _rounded(result.targets),
        "issues": [issue.value for issue in result.issues],
        "iterations": result.iterations,
        "diagnostics": diagnostics.to_dict(),
    }


def format_result_json_string(
    items: List[MealPlanItem],
    result: SolveResult,
    plan_date: Optional[str] = None,
    indent: int = 2,
) -> str:
    """Format a solve result as a JSON string.

    Args:
        items: The day's items
        result: SolveResult from the solver
        plan_date: Optional ISO date
        indent: JSON indentation level

    Returns:
        JSON string
    """
    return json.dumps(format_result_json(items, result, plan_date), indent=indent)
