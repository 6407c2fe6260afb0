"""Planning module: target resolution, portion solving and diagnostics."""

from .solver import ConstraintIssue, SolveResult, SolveStatus, solve, solve_many
from .preview import PortionPreview, preview_portion
from .reporting import Diagnostics, describe
from .targets import resolve

__all__ = [
    "ConstraintIssue",
    "SolveResult",
    "SolveStatus",
    "solve",
    "solve_many",
    "PortionPreview",
    "preview_portion",
    "Diagnostics",
    "describe",
    "resolve",
]
