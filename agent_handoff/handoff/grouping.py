"""Collapse MCP plugin tools that share a namespace into one entry."""

from ..models import ToolSample, ToolUsageSummary
from ..tools.names import MCP_CATEGORY, classify_tool_name

# Max samples kept for a merged namespace
MCP_GROUP_SAMPLE_CAP = 5

MCP_PREFIX = "mcp__"


def detect_category(tool: ToolUsageSummary) -> str:
    """Category of an aggregate.

    The first sample's structured data is authoritative; without it the
    tool name is classified, with ``mcp`` as the catch-all.
    """
    if tool.samples:
        data = tool.samples[0].data
        category = getattr(data, "category", None)
        if category:
            return category
    return classify_tool_name(tool.name) or MCP_CATEGORY


def mcp_namespace(name: str) -> str | None:
    """Namespace of an ``mcp__<namespace>__<action>`` tool name, if any."""
    if not name.startswith(MCP_PREFIX):
        return None
    parts = name.split("__")
    return parts[1] if len(parts) >= 3 else None


def group_label(namespace: str) -> str:
    return f"MCP: {namespace}"


def _merge(namespace: str, tools: list[ToolUsageSummary]) -> ToolUsageSummary:
    samples: list[ToolSample] = []
    for tool in tools:
        for sample in tool.samples:
            if len(samples) >= MCP_GROUP_SAMPLE_CAP:
                break
            samples.append(sample)
    errors = sum(tool.error_count or 0 for tool in tools)
    return ToolUsageSummary(
        name=group_label(namespace),
        count=sum(tool.count for tool in tools),
        samples=samples,
        error_count=errors or None,
    )


def group_mcp_by_namespace(summaries: list[ToolUsageSummary]) -> list[ToolUsageSummary]:
    """Merge ``mcp__<ns>__*`` tools sharing a namespace.

    Output order: every non-candidate in input order, then namespaces with a
    single tool (unchanged), then one merged entry per namespace with two or
    more tools. Namespaces keep first-seen order within each run.
    """
    passthrough: list[ToolUsageSummary] = []
    buckets: dict[str, list[ToolUsageSummary]] = {}

    for tool in summaries:
        namespace = mcp_namespace(tool.name) if detect_category(tool) == MCP_CATEGORY else None
        if namespace is None:
            passthrough.append(tool)
            continue
        buckets.setdefault(namespace, []).append(tool)

    singles = [tools[0] for tools in buckets.values() if len(tools) == 1]
    merged = [_merge(ns, tools) for ns, tools in buckets.items() if len(tools) > 1]
    return passthrough + singles + merged
