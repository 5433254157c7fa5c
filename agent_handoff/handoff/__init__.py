"""Handoff document generation: caps, grouping, renderers, assembler."""

from .caps import INLINE_CAPS, REFERENCE_CAPS, DisplayCaps, get_display_caps
from .grouping import detect_category, group_mcp_by_namespace
from .markdown import generate_handoff_markdown, get_source_labels
from .renderers import render_tool

__all__ = [
    "DisplayCaps",
    "INLINE_CAPS",
    "REFERENCE_CAPS",
    "detect_category",
    "generate_handoff_markdown",
    "get_display_caps",
    "get_source_labels",
    "group_mcp_by_namespace",
    "render_tool",
]
