"""Allocation solver: gram quantities for a day's adjustable items.

Pipeline (a heuristic, not a proven optimum):
    1. Partition items into constants (fixed, locked, macro-ignored),
       variables (adjustable) and skipped (malformed).
    2. Residual target = targets - constants, clamped at zero per macro.
    3. Proportional pass: split the residual calories across active meal
       slots, then across each slot's items in proportion to their current
       quantities, re-scaling around items that hit a bound.
    4. Round every item to its step and clamp to its bounds.
    5. Nudge pass: steepest descent on the weighted deviation (calories
       first, then protein, carbs and fat). A move shifts one item by one
       step, or trades one step between two items.
    6. Refine: repeat 3-5 from the nudged quantities until the result no
       longer changes, so solving a solved day returns it unchanged.
    7. Classify: achieved / best_effort / infeasible.

Infeasible results return the input quantities untouched so callers cannot
persist a partial solve. The best attempt is kept on the result for
diagnostics only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from portioner.data_layer.exceptions import ErrorCode, SolverInputError
from portioner.data_layer.models import (
    MAIN_MEALS,
    MEAL_ORDER,
    MacroTotals,
    MealPlanItem,
    MealType,
    PortioningSettings,
    ZERO_MACROS,
)
from portioner.nutrition.calculator import compute_totals, macros_per_gram, round_half_up
from portioner.planning.eligibility import (
    PortionBounds,
    constant_grams,
    is_adjustable,
    portion_bounds,
    validate_item,
)

logger = logging.getLogger(__name__)


# Tight tolerance observed by the UI: |calories| < 5 kcal, each macro <= 1 g
CALORIE_TOLERANCE = 5.0
MACRO_TOLERANCE = 1.0

SNACK_CALORIE_SHARE = 0.10
MAX_NUDGES_PER_ITEM = 20
MAX_REFINE_ROUNDS = 10

# Weight of one calorie tolerance unit against one macro tolerance unit
CALORIE_WEIGHT = 25.0
# Cost per kcal beyond the best-effort calorie band; no macro gain pays for it
CALORIE_BAND_PENALTY = 1e6

_EPS = 1e-9

MACRO_LABELS = (
    ("calories", "Calories"),
    ("protein", "Protein"),
    ("carbs", "Carbs"),
    ("fat", "Fat"),
)


class SolveStatus(str, Enum):
    ACHIEVED = "achieved"
    BEST_EFFORT = "best_effort"
    INFEASIBLE = "infeasible"


class ConstraintIssue(str, Enum):
    """Constraint classes that kept a solve from landing on target."""

    INVALID_ITEM = "invalid_item"
    INVALID_TARGET = "invalid_target"
    CONSTANTS_EXCEED_TARGET = "constants_exceed_target"
    NO_ADJUSTABLE_ITEMS = "no_adjustable_items"
    BOUND_CLAMPED_MAX = "bound_clamped_max"
    BOUND_CLAMPED_MIN = "bound_clamped_min"
    MIN_PORTION_OVERSHOOT = "min_portion_overshoot"
    ZERO_CALORIE_SLOT = "zero_calorie_slot"
    ALL_ITEMS_AT_BOUNDS = "all_items_at_bounds"
    ROUNDING_RESIDUAL = "rounding_residual"
    MACRO_MISMATCH = "macro_mismatch"


@dataclass
class SolveResult:
    """Outcome of one solve.

    quantities always covers every input item. achieved is the total of
    quantities over the items that were not skipped. On INFEASIBLE,
    quantities equal the input quantities and proposed_* hold the attempt.
    """

    status: SolveStatus
    quantities: Dict[str, float]
    achieved: MacroTotals
    targets: MacroTotals
    proposed_quantities: Dict[str, float] = field(default_factory=dict)
    proposed_totals: MacroTotals = ZERO_MACROS
    issues: List[ConstraintIssue] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    clamped_items: Dict[str, str] = field(default_factory=dict)  # item id -> "min" | "max"
    skipped_items: List[str] = field(default_factory=list)
    iterations: int = 0
    settings: PortioningSettings = field(default_factory=PortioningSettings)

    @property
    def failed(self) -> bool:
        return self.status == SolveStatus.INFEASIBLE

    @property
    def should_save(self) -> bool:
        """Whether the caller may persist quantities."""
        return self.status != SolveStatus.INFEASIBLE

    def add_issue(self, issue: ConstraintIssue) -> None:
        if issue not in self.issues:
            self.issues.append(issue)


# --- Tolerance classification ---


def calorie_band(targets: MacroTotals, settings: PortioningSettings) -> float:
    """Wider calorie band for best-effort results; never tighter than the UI tolerance."""
    return max(CALORIE_TOLERANCE, abs(targets.calories) * settings.tolerance_percent / 100.0)


def macros_within_tolerance(achieved: MacroTotals, targets: MacroTotals) -> bool:
    return (
        abs(achieved.protein - targets.protein) <= MACRO_TOLERANCE + _EPS
        and abs(achieved.carbs - targets.carbs) <= MACRO_TOLERANCE + _EPS
        and abs(achieved.fat - targets.fat) <= MACRO_TOLERANCE + _EPS
    )


def classify(
    achieved: MacroTotals,
    targets: MacroTotals,
    settings: PortioningSettings,
) -> SolveStatus:
    """Tri-state classification of day totals against targets."""
    calorie_deviation = abs(achieved.calories - targets.calories)
    if calorie_deviation < CALORIE_TOLERANCE and macros_within_tolerance(achieved, targets):
        return SolveStatus.ACHIEVED
    if calorie_deviation <= calorie_band(targets, settings) + _EPS:
        return SolveStatus.BEST_EFFORT
    return SolveStatus.INFEASIBLE


def deviation_cost(totals: MacroTotals, targets: MacroTotals, band: float = CALORIE_TOLERANCE) -> float:
    """Weighted squared deviation of day totals from targets.

    Each nutrient is measured in units of its tolerance; calories count
    CALORIE_WEIGHT times as much as a macro. Calories further than `band`
    from target are penalised first, so macros never steer a day out of
    the calorie band.
    """
    calorie_gap = abs(totals.calories - targets.calories)
    cost = CALORIE_WEIGHT * (calorie_gap / CALORIE_TOLERANCE) ** 2
    cost += CALORIE_BAND_PENALTY * max(0.0, calorie_gap - band)
    for name in ("protein", "carbs", "fat"):
        cost += ((getattr(totals, name) - getattr(targets, name)) / MACRO_TOLERANCE) ** 2
    return cost


def _improves(cost: float, reference: float) -> bool:
    """Strictly lower than reference, beyond float noise."""
    return cost < reference - _EPS * max(1.0, abs(reference))


# --- Helpers ---


def round_to_step(grams: float, step: float) -> float:
    """Nearest multiple of step, halves rounded up."""
    return _tidy(round_half_up(grams / step) * step)


def _tidy(grams: float) -> float:
    return round(float(grams), 6)


def _check_settings(settings: PortioningSettings) -> None:
    if settings.min_grams < 0 or settings.max_grams < 0:
        raise SolverInputError(
            ErrorCode.INVALID_SETTINGS,
            "Portion bounds must be non-negative",
            {"min_grams": settings.min_grams, "max_grams": settings.max_grams},
        )
    if settings.min_grams > settings.max_grams:
        raise SolverInputError(
            ErrorCode.INVALID_SETTINGS,
            f"min_grams {settings.min_grams:g} exceeds max_grams {settings.max_grams:g}",
            {"min_grams": settings.min_grams, "max_grams": settings.max_grams},
        )
    if settings.tolerance_percent < 0:
        raise SolverInputError(
            ErrorCode.INVALID_SETTINGS,
            "tolerance_percent must be non-negative",
            {"tolerance_percent": settings.tolerance_percent},
        )


def _check_item_ids(items: List[MealPlanItem]) -> None:
    seen = set()
    for item in items:
        if item.id in seen:
            raise SolverInputError(
                ErrorCode.DUPLICATE_ITEM,
                f"Item id '{item.id}' appears more than once",
                {"item_id": item.id},
            )
        seen.add(item.id)


def _sanitize_targets(targets: Optional[MacroTotals], result_notes: List[str]) -> Tuple[MacroTotals, bool]:
    if targets is None:
        raise SolverInputError(ErrorCode.INVALID_TARGETS, "Targets are required")
    values = {}
    clamped = False
    for name, label in MACRO_LABELS:
        value = getattr(targets, name)
        if value is None:
            raise SolverInputError(
                ErrorCode.INVALID_TARGETS, f"{label} target is missing", {"macro": name}
            )
        if value < 0:
            result_notes.append(f"{label} target {value:g} is negative; using 0")
            value = 0.0
            clamped = True
        values[name] = value
    return MacroTotals(**values), clamped


def _totals(items: Iterable[MealPlanItem], quantities: Mapping[str, float]) -> MacroTotals:
    return compute_totals(items, quantities)


def _slot_weights(slot_items: List[MealPlanItem], quantities: Mapping[str, float]) -> Dict[str, float]:
    """Current quantities as weights; items without one take the slot mean."""
    current = {item.id: quantities[item.id] for item in slot_items}
    positive = [grams for grams in current.values() if grams > 0]
    fill = sum(positive) / len(positive) if positive else 1.0
    return {item_id: grams if grams > 0 else fill for item_id, grams in current.items()}


def _slot_calorie_targets(
    slots: Dict[MealType, List[MealPlanItem]],
    residual_calories: float,
) -> Dict[MealType, float]:
    """Equal shares for active main meals; snacks take a fixed share on top."""
    active_main = [meal for meal in MAIN_MEALS if meal in slots]
    has_snack = MealType.SNACK in slots
    shares: Dict[MealType, float] = {}
    if active_main:
        snack_calories = residual_calories * SNACK_CALORIE_SHARE if has_snack else 0.0
        each = (residual_calories - snack_calories) / len(active_main)
        for meal in active_main:
            shares[meal] = each
        if has_snack:
            shares[MealType.SNACK] = snack_calories
    elif has_snack:
        shares[MealType.SNACK] = residual_calories
    return shares


def _fill_slot(
    slot_items: List[MealPlanItem],
    calorie_target: float,
    bounds: Dict[str, PortionBounds],
    weights: Dict[str, float],
    clamped: Dict[str, str],
) -> Tuple[Dict[str, float], bool]:
    """Proportional split of a slot's calories with bounded re-scaling.

    Returns raw (unrounded) grams per item and whether the slot had no
    calorie density to scale with.
    """
    density = {item.id: macros_per_gram(item.product).calories for item in slot_items}
    grams: Dict[str, float] = {}
    free = list(slot_items)
    remaining = calorie_target

    for _ in range(len(slot_items) + 1):
        if not free:
            break
        denominator = sum(weights[item.id] * density[item.id] for item in free)
        if denominator <= 0:
            for item in free:
                grams[item.id] = bounds[item.id].low
            return grams, True
        scale = remaining / denominator
        hit = []
        for item in free:
            wanted = scale * weights[item.id]
            if wanted < bounds[item.id].low:
                hit.append((item, bounds[item.id].low, "min"))
            elif wanted > bounds[item.id].high:
                hit.append((item, bounds[item.id].high, "max"))
        if not hit:
            for item in free:
                grams[item.id] = scale * weights[item.id]
            break
        for item, value, side in hit:
            grams[item.id] = value
            clamped[item.id] = side
            remaining -= value * density[item.id]
            free.remove(item)
    return grams, False


def _proportional_grams(
    slots: Dict[MealType, List[MealPlanItem]],
    slot_targets: Dict[MealType, float],
    bounds: Dict[str, PortionBounds],
    quantities: Mapping[str, float],
) -> Tuple[Dict[str, float], Dict[str, str], List[MealType]]:
    """Proportional pass weighted by `quantities`, rounded to step and clamped.

    Returns:
        Tuple of (grams per variable item, items the split clamped, slots
        with no calorie density)
    """
    clamped: Dict[str, str] = {}
    empty_slots: List[MealType] = []
    grams: Dict[str, float] = {}
    for meal, members in slots.items():
        weights = _slot_weights(members, quantities)
        raw, no_density = _fill_slot(members, slot_targets[meal], bounds, weights, clamped)
        if no_density:
            empty_slots.append(meal)
        for item in members:
            item_bounds = bounds[item.id]
            rounded = round_to_step(raw[item.id], item_bounds.step)
            grams[item.id] = _tidy(min(item_bounds.high, max(item_bounds.low, rounded)))
    return grams, clamped, empty_slots


def _moves(order: List[str]):
    """Candidate moves in preference order: single steps, then one-step trades."""
    for item_id in order:
        yield ((item_id, -1),)
        yield ((item_id, 1),)
    for up in order:
        for down in order:
            if up != down:
                yield ((up, 1), (down, -1))


def _descend(
    variables: List[MealPlanItem],
    grams: Dict[str, float],
    bounds: Dict[str, PortionBounds],
    totals: MacroTotals,
    targets: MacroTotals,
    band: float,
) -> Tuple[Dict[str, float], int]:
    """Nudge quantities one step at a time while the deviation cost drops.

    Each round takes the move with the lowest cost. Items are tried largest
    first, ties in input order, and the earlier of two equal moves wins.
    Stops when no move strictly improves or at the iteration cap.
    """
    grams = dict(grams)
    step_macros = {
        item.id: macros_per_gram(item.product).scaled(bounds[item.id].step) for item in variables
    }
    cost = deviation_cost(totals, targets, band)
    cap = MAX_NUDGES_PER_ITEM * len(variables)
    moves = 0
    while moves < cap:
        order = [
            variables[idx].id
            for idx in sorted(range(len(variables)), key=lambda idx: (-grams[variables[idx].id], idx))
        ]
        best = None
        best_cost = cost
        for move in _moves(order):
            change = ZERO_MACROS
            moved = {}
            for item_id, direction in move:
                candidate = _tidy(grams[item_id] + direction * bounds[item_id].step)
                if not bounds[item_id].contains(candidate):
                    break
                moved[item_id] = candidate
                change = change + step_macros[item_id].scaled(direction)
            else:
                candidate_cost = deviation_cost(totals + change, targets, band)
                if _improves(candidate_cost, best_cost):
                    best = (moved, change)
                    best_cost = candidate_cost
        if best is None:
            break
        moved, change = best
        grams.update(moved)
        totals = totals + change
        cost = best_cost
        moves += 1
        logger.debug("Nudged %s (cost %.3f)", moved, cost)
    return grams, moves


def _on_grid(
    variables: List[MealPlanItem],
    bounds: Dict[str, PortionBounds],
    quantities: Mapping[str, float],
) -> bool:
    """Whether every variable item sits inside its bounds on its step."""
    return all(
        bounds[item.id].contains(quantities[item.id]) and bounds[item.id].on_step(quantities[item.id])
        for item in variables
    )


def _refine(
    usable: List[MealPlanItem],
    variables: List[MealPlanItem],
    base: Dict[str, float],
    current: Dict[str, float],
    slots: Dict[MealType, List[MealPlanItem]],
    slot_targets: Dict[MealType, float],
    bounds: Dict[str, PortionBounds],
    targets: MacroTotals,
    band: float,
) -> Tuple[Dict[str, float], int]:
    """One proportional pass and nudge pass starting from `current`.

    `current` is kept unless it is off the step grid or the new attempt
    has a strictly lower deviation cost.
    """
    grams, _, _ = _proportional_grams(slots, slot_targets, bounds, current)
    start = dict(base)
    start.update(grams)
    grams, moves = _descend(variables, grams, bounds, _totals(usable, start), targets, band)
    if not _on_grid(variables, bounds, current):
        return grams, moves

    attempt = dict(base)
    attempt.update(grams)
    kept = dict(base)
    kept.update(current)
    attempt_cost = deviation_cost(_totals(usable, attempt), targets, band)
    if _improves(attempt_cost, deviation_cost(_totals(usable, kept), targets, band)):
        return grams, moves
    return dict(current), moves


def _active_bounds(
    variables: List[MealPlanItem],
    grams: Dict[str, float],
    bounds: Dict[str, PortionBounds],
    totals: MacroTotals,
    targets: MacroTotals,
    band: float,
) -> Dict[str, str]:
    """Items sitting on a bound that blocks a step which would lower the cost."""
    cost = deviation_cost(totals, targets, band)
    active: Dict[str, str] = {}
    for item in variables:
        item_bounds = bounds[item.id]
        step = macros_per_gram(item.product).scaled(item_bounds.step)
        at = grams[item.id]
        if abs(at - item_bounds.high) <= _EPS:
            if _improves(deviation_cost(totals + step, targets, band), cost):
                active[item.id] = "max"
                continue
        if abs(at - item_bounds.low) <= _EPS:
            if _improves(deviation_cost(totals - step, targets, band), cost):
                active[item.id] = "min"
    return active


# --- Solve ---


def solve(
    items: List[MealPlanItem],
    targets: MacroTotals,
    settings: Optional[PortioningSettings] = None,
) -> SolveResult:
    """Compute gram quantities for the adjustable items of one day.

    Args:
        items: Every item of the day (adjustable, fixed, locked, ignored)
        targets: Resolved daily targets
        settings: Portioning settings; defaults when None

    Returns:
        SolveResult; never raises for unreachable targets

    Raises:
        SolverInputError: Duplicate item ids, missing targets or invalid settings
    """
    settings = settings or PortioningSettings()
    items = list(items)
    _check_settings(settings)
    _check_item_ids(items)
    notes: List[str] = []
    targets, target_clamped = _sanitize_targets(targets, notes)

    input_quantities = {item.id: item.quantity_grams for item in items}
    result = SolveResult(
        status=SolveStatus.INFEASIBLE,
        quantities=dict(input_quantities),
        achieved=ZERO_MACROS,
        targets=targets,
        notes=notes,
        settings=settings,
    )
    if target_clamped:
        result.add_issue(ConstraintIssue.INVALID_TARGET)

    constants: List[MealPlanItem] = []
    variables: List[MealPlanItem] = []
    usable: List[MealPlanItem] = []
    for item in items:
        problem = validate_item(item, settings)
        if problem is not None:
            logger.warning("Skipping item %s (%s): %s", item.id, item.product.name, problem)
            result.skipped_items.append(item.id)
            result.notes.append(f"{item.product.name}: {problem}; item skipped")
            result.add_issue(ConstraintIssue.INVALID_ITEM)
            continue
        usable.append(item)
        if is_adjustable(item):
            variables.append(item)
        else:
            constants.append(item)

    base = dict(input_quantities)
    for item in constants:
        base[item.id] = constant_grams(item)
    constant_totals = _totals(constants, base)

    residual_values = {}
    for name, label in MACRO_LABELS:
        remaining = getattr(targets, name) - getattr(constant_totals, name)
        if remaining < -1e-6:
            unit = " kcal" if name == "calories" else "g"
            result.notes.append(
                f"Fixed and locked items exceed the {label.lower()} target by {-remaining:.0f}{unit}"
            )
            result.add_issue(ConstraintIssue.CONSTANTS_EXCEED_TARGET)
            remaining = 0.0
        residual_values[name] = max(0.0, remaining)
    residual = MacroTotals(**residual_values)

    if not variables:
        result.add_issue(ConstraintIssue.NO_ADJUSTABLE_ITEMS)
        return _finish(result, usable, input_quantities, base)

    bounds = {item.id: portion_bounds(item.product, settings) for item in variables}

    if _on_grid(variables, bounds, input_quantities) and classify(
        _totals(usable, base), targets, settings
    ) == SolveStatus.ACHIEVED:
        logger.debug("Day already on target; keeping current quantities")
        return _finish(result, usable, input_quantities, base)

    slots: Dict[MealType, List[MealPlanItem]] = {}
    for meal in MEAL_ORDER:
        members = [item for item in variables if item.meal_type == meal]
        if members:
            slots[meal] = members
    slot_targets = _slot_calorie_targets(slots, residual.calories)

    _, split_clamped, empty_slots = _proportional_grams(slots, slot_targets, bounds, input_quantities)
    for meal, members in slots.items():
        logger.debug("Slot %s: %.1f kcal across %d items", meal.value, slot_targets[meal], len(members))
        if meal in empty_slots:
            result.add_issue(ConstraintIssue.ZERO_CALORIE_SLOT)
            result.notes.append(f"{meal.value.capitalize()} has no calorie-bearing adjustable items")
        for item in members:
            item_bounds = bounds[item.id]
            min_calories = item_bounds.low * macros_per_gram(item.product).calories
            if split_clamped.get(item.id) == "min" and min_calories > slot_targets[meal] + CALORIE_TOLERANCE:
                result.add_issue(ConstraintIssue.MIN_PORTION_OVERSHOOT)
                result.notes.append(
                    f"{item.product.name}: minimum portion {item_bounds.low:g}g alone exceeds "
                    f"the {meal.value} calorie allowance"
                )

    band = calorie_band(targets, settings)
    grams = {item.id: input_quantities[item.id] for item in variables}
    for _ in range(MAX_REFINE_ROUNDS):
        refined, moves = _refine(
            usable, variables, base, grams, slots, slot_targets, bounds, targets, band
        )
        result.iterations += moves
        if refined == grams:
            break
        grams = refined
    else:
        logger.warning("Refinement stopped after %d rounds without settling", MAX_REFINE_ROUNDS)

    proposed = dict(base)
    proposed.update(grams)
    proposed_totals = _totals(usable, proposed)

    clamped = _active_bounds(variables, grams, bounds, proposed_totals, targets, band)
    result.clamped_items = clamped
    for item_id, side in clamped.items():
        result.add_issue(
            ConstraintIssue.BOUND_CLAMPED_MIN if side == "min" else ConstraintIssue.BOUND_CLAMPED_MAX
        )

    status = classify(proposed_totals, targets, settings)
    if status != SolveStatus.ACHIEVED and len(clamped) == len(variables):
        result.add_issue(ConstraintIssue.ALL_ITEMS_AT_BOUNDS)
        status = SolveStatus.INFEASIBLE
    return _finish(result, usable, input_quantities, proposed, status)


def _finish(
    result: SolveResult,
    usable: List[MealPlanItem],
    input_quantities: Dict[str, float],
    proposed: Dict[str, float],
    status: Optional[SolveStatus] = None,
) -> SolveResult:
    proposed_totals = _totals(usable, proposed)
    if status is None:
        status = classify(proposed_totals, result.targets, result.settings)
        if status == SolveStatus.BEST_EFFORT and ConstraintIssue.NO_ADJUSTABLE_ITEMS in result.issues:
            status = SolveStatus.INFEASIBLE

    result.status = status
    result.proposed_quantities = proposed
    result.proposed_totals = proposed_totals

    if status != SolveStatus.ACHIEVED:
        calorie_deviation = abs(proposed_totals.calories - result.targets.calories)
        if calorie_deviation < CALORIE_TOLERANCE:
            result.add_issue(ConstraintIssue.MACRO_MISMATCH)
        elif not any(
            issue in result.issues
            for issue in (
                ConstraintIssue.BOUND_CLAMPED_MAX,
                ConstraintIssue.BOUND_CLAMPED_MIN,
                ConstraintIssue.CONSTANTS_EXCEED_TARGET,
                ConstraintIssue.NO_ADJUSTABLE_ITEMS,
                ConstraintIssue.ZERO_CALORIE_SLOT,
            )
        ):
            result.add_issue(ConstraintIssue.ROUNDING_RESIDUAL)

    if status == SolveStatus.INFEASIBLE:
        result.quantities = dict(input_quantities)
        result.achieved = _totals(usable, input_quantities)
    else:
        result.quantities = dict(proposed)
        result.achieved = proposed_totals

    logger.info(
        "Solve finished: %s (%.0f kcal vs %.0f target, %d nudges)",
        status.value,
        proposed_totals.calories,
        result.targets.calories,
        result.iterations,
    )
    return result


def apply_quantities(items: List[MealPlanItem], result: SolveResult) -> List[MealPlanItem]:
    """Items with the solved quantities applied; unchanged when infeasible."""
    if not result.should_save:
        return list(items)
    return [
        replace(item, quantity_grams=result.quantities.get(item.id, item.quantity_grams))
        for item in items
    ]


def solve_many(
    days: Mapping[str, Tuple[List[MealPlanItem], MacroTotals]],
    settings: Optional[PortioningSettings] = None,
) -> Dict[str, SolveResult]:
    """Solve independent days (e.g. "Generate All" for a week).

    Each day is solved from its own snapshot; no state is shared between
    days, so results do not depend on iteration order.
    """
    return {day: solve(items, targets, settings) for day, (items, targets) in days.items()}
