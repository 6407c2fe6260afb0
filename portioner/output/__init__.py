"""Output formatting for solve results."""

from portioner.output.formatters import (
    format_result_json,
    format_result_json_string,
    format_result_markdown,
    format_item_string,
    format_macro_breakdown,
)

__all__ = [
    "format_result_json",
    "format_result_json_string",
    "format_result_markdown",
    "format_item_string",
    "format_macro_breakdown",
]
