from __future__ import annotations

# Public API re-exports (keep small & stable)
from .columns import analyze_columns
from .filters import apply_filters, loose_equals
from .numeric import format_number, format_number_short, to_number
from .suggest import ChartMapping, SuggestionCache, suggest_chart_mapping

__all__ = [
    "analyze_columns",
    "apply_filters", "loose_equals",
    "format_number", "format_number_short", "to_number",
    "ChartMapping", "SuggestionCache", "suggest_chart_mapping",
]
