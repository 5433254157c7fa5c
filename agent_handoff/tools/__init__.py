"""Tool-name taxonomy and invocation aggregation."""

from .names import MCP_CATEGORY, category_order, classify_tool_name
from .summarizer import SummaryCollector, build_sample_data, make_diff, truncate

__all__ = [
    "MCP_CATEGORY",
    "SummaryCollector",
    "build_sample_data",
    "category_order",
    "classify_tool_name",
    "make_diff",
    "truncate",
]
