"""Result diagnostics: user-facing status, macro violations and remediation hints.

Reporting only. Nothing here changes quantities or re-runs the solver.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from portioner.data_layer.models import MacroTotals
from portioner.nutrition.calculator import round_half_up
from portioner.planning.solver import (
    CALORIE_TOLERANCE,
    MACRO_LABELS,
    MACRO_TOLERANCE,
    ConstraintIssue,
    SolveResult,
    SolveStatus,
)


BANNER_BY_STATUS = {
    SolveStatus.ACHIEVED: "none",
    SolveStatus.BEST_EFFORT: "amber",
    SolveStatus.INFEASIBLE: "red",
}

# Hints keyed by the constraint class that caused the shortfall
ISSUE_SUGGESTIONS = {
    ConstraintIssue.BOUND_CLAMPED_MAX: "Increase max grams per item",
    ConstraintIssue.BOUND_CLAMPED_MIN: "Decrease min grams per item",
    ConstraintIssue.MIN_PORTION_OVERSHOOT: "Decrease min grams per item",
    ConstraintIssue.CONSTANTS_EXCEED_TARGET: "Unlock a locked item or reduce a fixed portion",
    ConstraintIssue.NO_ADJUSTABLE_ITEMS: "Add more foods or unlock a locked item",
    ConstraintIssue.ALL_ITEMS_AT_BOUNDS: "Add more foods",
    ConstraintIssue.ZERO_CALORIE_SLOT: "Add a calorie-bearing food to the meal",
    ConstraintIssue.ROUNDING_RESIDUAL: "Use a finer portion rounding step",
    ConstraintIssue.INVALID_ITEM: "Check product nutrition data for skipped items",
    ConstraintIssue.INVALID_TARGET: "Check daily targets for negative values",
}

# Always reported, even on an achieved day
DATA_ISSUES = (ConstraintIssue.INVALID_ITEM, ConstraintIssue.INVALID_TARGET)

MACRO_FOOD_WORDS = {"protein": "protein", "carbs": "carb", "fat": "fat"}


@dataclass
class Diagnostics:
    """What the caller shows for one solve."""

    status: SolveStatus
    failed: bool
    best_effort: bool
    banner: str
    should_save: bool
    differences: Dict[str, float] = field(default_factory=dict)
    violations: List[str] = field(default_factory=list)
    suggested_fixes: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "failed": self.failed,
            "best_effort": self.best_effort,
            "banner": self.banner,
            "should_save": self.should_save,
            "differences": dict(self.differences),
            "violations": list(self.violations),
            "suggested_fixes": list(self.suggested_fixes),
            "notes": list(self.notes),
        }


def macro_differences(achieved: MacroTotals, targets: MacroTotals) -> Dict[str, float]:
    """achieved - target per macro (positive means over target)."""
    return {name: getattr(achieved, name) - getattr(targets, name) for name, _ in MACRO_LABELS}


def is_within_tolerance(achieved: MacroTotals, targets: MacroTotals) -> bool:
    """The tight on-target check: calories under 5 kcal off, macros within 1 g."""
    for name, delta in macro_differences(achieved, targets).items():
        if name == "calories":
            if abs(delta) >= CALORIE_TOLERANCE:
                return False
        elif abs(delta) > MACRO_TOLERANCE + 1e-9:
            return False
    return True


def format_delta(name: str, delta: float) -> str:
    """Signed rounded delta, e.g. "+12g" or "-25 kcal"."""
    rounded = round_half_up(abs(delta))
    sign = "+" if delta > 0 else "-" if rounded else ""
    unit = " kcal" if name == "calories" else "g"
    return f"{sign}{rounded}{unit}"


def macro_violations(achieved: MacroTotals, targets: MacroTotals) -> List[str]:
    """One "Label: delta" string per macro outside the tight tolerance."""
    violations = []
    labels = dict(MACRO_LABELS)
    for name, delta in macro_differences(achieved, targets).items():
        limit_exceeded = (
            abs(delta) >= CALORIE_TOLERANCE
            if name == "calories"
            else abs(delta) > MACRO_TOLERANCE + 1e-9
        )
        if limit_exceeded:
            violations.append(f"{labels[name]}: {format_delta(name, delta)}")
    return violations


def _macro_suggestions(differences: Dict[str, float]) -> List[str]:
    hints = []
    for name, word in MACRO_FOOD_WORDS.items():
        delta = differences[name]
        if delta < -MACRO_TOLERANCE:
            hints.append(f"Add a higher-{word} food")
        elif delta > MACRO_TOLERANCE:
            hints.append(f"Swap a food for a lower-{word} option")
    return hints


def suggested_fixes(result: SolveResult, differences: Dict[str, float]) -> List[str]:
    """Generic remediation hints derived from the result's constraint classes."""
    hints: List[str] = []
    for issue in result.issues:
        if result.status == SolveStatus.ACHIEVED and issue not in DATA_ISSUES:
            continue
        if issue == ConstraintIssue.MACRO_MISMATCH:
            hints.extend(_macro_suggestions(differences))
        elif issue in ISSUE_SUGGESTIONS:
            hints.append(ISSUE_SUGGESTIONS[issue])
    seen = set()
    unique = []
    for hint in hints:
        if hint not in seen:
            seen.add(hint)
            unique.append(hint)
    return unique


def describe(result: SolveResult) -> Diagnostics:
    """Map a solve result to the user-facing tri-state and diagnostics.

    Violations are measured on the proposed totals so an infeasible day
    still explains how far the best attempt landed from target.
    """
    differences = macro_differences(result.proposed_totals, result.targets)
    return Diagnostics(
        status=result.status,
        failed=result.status == SolveStatus.INFEASIBLE,
        best_effort=result.status == SolveStatus.BEST_EFFORT,
        banner=BANNER_BY_STATUS[result.status],
        should_save=result.should_save,
        differences=differences,
        violations=macro_violations(result.proposed_totals, result.targets),
        suggested_fixes=suggested_fixes(result, differences),
        notes=list(result.notes),
    )
