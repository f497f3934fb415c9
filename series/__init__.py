"""
Series package: cumulative contributor series building, reconciliation and shareable state.
"""
from .builder import to_cumulative_series, reconcile_with_total, rescale_to_total, normalize_to_relative_start, format_elapsed_label

__all__ = ["to_cumulative_series", "reconcile_with_total", "rescale_to_total", "normalize_to_relative_start", "format_elapsed_label"]
