from .regression import (
    compare_results,
    compute_cost_summary,
    detect_improvement,
    detect_regression,
    format_cost,
    format_delta,
)
from .statistics import compute_scorer_stats, compute_stats, group_key, t_critical

__all__ = [
    "compare_results",
    "compute_cost_summary",
    "compute_scorer_stats",
    "compute_stats",
    "detect_improvement",
    "detect_regression",
    "format_cost",
    "format_delta",
    "group_key",
    "t_critical",
]
