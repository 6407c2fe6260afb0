#!/usr/bin/env python3
"""Command-line interface for the meal portioning engine."""

import argparse
import logging
import sys
from pathlib import Path

from portioner.data_layer.day_plan_db import DayPlanDB
from portioner.data_layer.exceptions import PortionerError
from portioner.data_layer.models import PortioningSettings
from portioner.data_layer.product_db import ProductDB
from portioner.data_layer.settings_loader import NutritionSettingsLoader
from portioner.output.formatters import format_result_json_string, format_result_markdown
from portioner.planning.reporting import describe
from portioner.planning.solver import SolveStatus, solve
from portioner.planning.targets import resolve, select_overrides


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compute gram portions for a day's meal plan from nutrition targets"
    )
    parser.add_argument(
        "day",
        type=str,
        help="Path to the day plan JSON file",
    )
    parser.add_argument(
        "--settings",
        type=str,
        default="config/nutrition_settings.yaml",
        help="Path to nutrition settings YAML file (default: config/nutrition_settings.yaml)"
    )
    parser.add_argument(
        "--products",
        type=str,
        default="data/products/products.json",
        help="Path to products JSON file (default: data/products/products.json)"
    )
    parser.add_argument(
        "--output",
        type=str,
        choices=["markdown", "json"],
        default="markdown",
        help="Output format: markdown (default) or json"
    )
    parser.add_argument(
        "--write",
        action="store_true",
        help="Write solved quantities back to the day file (never on infeasible results)"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging from the solver"
    )
    return parser


def main(argv=None):
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    day_path = Path(args.day)
    if not day_path.exists():
        print(f"Error: Day plan file not found: {day_path}", file=sys.stderr)
        sys.exit(1)

    products_path = Path(args.products)
    if not products_path.exists():
        print(f"Error: Products file not found: {products_path}", file=sys.stderr)
        sys.exit(1)

    settings_path = Path(args.settings)

    try:
        if settings_path.exists():
            print(f"Loading nutrition settings from {settings_path}...", file=sys.stderr)
            loader = NutritionSettingsLoader(str(settings_path))
            nutrition_settings = loader.load()
            overrides = loader.load_weekly_overrides()
        else:
            print(f"No settings file at {settings_path}; using default targets", file=sys.stderr)
            nutrition_settings = None
            overrides = []

        print(f"Loading products from {products_path}...", file=sys.stderr)
        product_db = ProductDB(str(products_path))

        print(f"Loading day plan from {day_path}...", file=sys.stderr)
        day_plan = DayPlanDB(str(day_path), product_db)
        plan_date = day_plan.plan_date
        items = day_plan.get_items()
        print(f"Found {len(items)} items for {plan_date.isoformat()}", file=sys.stderr)

        current, previous = select_overrides(overrides, plan_date)
        targets = resolve(plan_date, nutrition_settings, current, previous)
        settings = PortioningSettings.from_nutrition_settings(nutrition_settings)

        print("Solving portions...", file=sys.stderr)
        result = solve(items, targets, settings)
        diagnostics = describe(result)

        if args.output == "json":
            print(format_result_json_string(items, result, plan_date.isoformat()))
        else:
            print(format_result_markdown(items, result, plan_date.isoformat(), diagnostics))

        if args.write:
            if result.should_save:
                changed = day_plan.write_quantities(result.quantities)
                print(f"Updated {changed} quantities in {day_path}", file=sys.stderr)
            else:
                print("Not saving: targets cannot be reached", file=sys.stderr)

        # Print summary to stderr
        if result.status == SolveStatus.ACHIEVED:
            print("\n✅ Portions hit the daily targets", file=sys.stderr)
        else:
            print(f"\n⚠️  Solve finished as {result.status.value}:", file=sys.stderr)
            for violation in diagnostics.violations:
                print(f"   - {violation}", file=sys.stderr)
            for hint in diagnostics.suggested_fixes:
                print(f"   * {hint}", file=sys.stderr)

    except PortionerError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
