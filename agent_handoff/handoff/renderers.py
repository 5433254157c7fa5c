"""Per-category markdown renderers for the Tool Activity section.

Each renderer turns one ToolUsageSummary into a list of markdown lines.
Renderers are registered by category; anything without a renderer goes
through `render_fallback`. Renderers never raise on odd data: a sample
whose structured payload is missing or belongs to another category is
printed from its plain `summary`.
"""

from typing import Callable, Optional

from ..models import ToolSample, ToolUsageSummary
from .caps import DisplayCaps, take
from .grouping import detect_category

Renderer = Callable[[ToolUsageSummary, DisplayCaps], list[str]]

_RENDERERS: dict[str, Renderer] = {}

FALLBACK_SAMPLES = 5

# Files listed after the detailed write/edit samples
OVERFLOW_FILE_LIMIT = 10

COMPACT_LABELS = {
    "search": "Search",
    "fetch": "Fetch",
    "task": "Task",
    "ask": "Ask",
    "mcp": "MCP",
}


def register_renderer(*categories: str) -> Callable[[Renderer], Renderer]:
    """Decorator to register a renderer for one or more categories."""
    def decorator(fn: Renderer) -> Renderer:
        for category in categories:
            _RENDERERS[category] = fn
        return fn
    return decorator


def get_renderer(category: str) -> Renderer:
    return _RENDERERS.get(category, render_fallback)


def render_tool(tool: ToolUsageSummary, caps: DisplayCaps) -> list[str]:
    """Render one aggregate with the renderer for its category."""
    return get_renderer(detect_category(tool))(tool, caps)


def _heading(label: str, tool: ToolUsageSummary) -> list[str]:
    error_str = f", {tool.error_count} errors" if tool.error_count else ""
    return [f"### {label} ({tool.count} calls{error_str})", ""]


def _data(sample: ToolSample, category: str):
    """Structured payload of a sample if it belongs to `category`."""
    data = sample.data
    if data is not None and getattr(data, "category", None) == category:
        return data
    return None


def _quoted_block(lines: list[str], fence: str = "```") -> list[str]:
    return [f"> {fence}", *(f"> {line}" for line in lines), "> ```"]


# ── Shell ───────────────────────────────────────────────────────────────────


def render_shell_sample(sample: ToolSample, max_output_lines: int) -> list[str]:
    d = _data(sample, "shell")
    if d is None:
        return [f"> `{sample.summary}`", ""]

    lines = [f"> `$ {d.command}`"]
    if d.exit_code is not None:
        error_tag = "  **[ERROR]**" if d.errored else ""
        lines.append(f"> Exit: {d.exit_code}{error_tag}")

    # stdout tail, else the error message of a failed call
    if d.stdout_tail:
        lines.extend(_quoted_block(d.stdout_tail.split("\n")[:max_output_lines]))
    elif d.errored and d.error_message:
        lines.extend(_quoted_block(d.error_message.split("\n")[:max_output_lines]))

    lines.append("")
    return lines


@register_renderer("shell")
def render_shell(tool: ToolUsageSummary, caps: DisplayCaps) -> list[str]:
    lines = _heading("Shell", tool)
    detailed = take(tool.samples, caps.shell_detailed, total=tool.count)
    for sample in detailed.shown:
        lines.extend(render_shell_sample(sample, caps.shell_stdout_lines))

    if detailed.remaining > 0:
        all_ok = "" if tool.error_count else " (all exit 0)"
        lines.append(f"*...and {detailed.remaining} more shell calls{all_ok}*")
        lines.append("")
    return lines


# ── Write / Edit ────────────────────────────────────────────────────────────


def _stats_tag(d, with_removed: bool = True) -> str:
    if d.diff_stats is None:
        return ""
    if with_removed:
        return f" (+{d.diff_stats.added} -{d.diff_stats.removed} lines)"
    return f" (+{d.diff_stats.added} lines)"


def render_diff(diff: str, max_lines: int) -> list[str]:
    """Diff body without ---/+++ headers, capped at `max_lines`."""
    body = [line for line in diff.split("\n") if not line.startswith("---") and not line.startswith("+++")]
    capped = take(body, max_lines)
    lines = _quoted_block(capped.shown, fence="```diff")
    if capped.remaining > 0:
        lines.append(f"> *+{capped.remaining} lines truncated*")
    return lines


def render_file_change_sample(sample: ToolSample, category: str, max_diff_lines: int) -> list[str]:
    d = _data(sample, category)
    if d is None:
        return [f"> `{sample.summary}`", ""]

    if category == "write":
        new_tag = " (new file)" if d.is_new_file else ""
        lines = [f"> **`{d.file_path}`**{new_tag}{_stats_tag(d, with_removed=False)}"]
    else:
        lines = [f"> **`{d.file_path}`**{_stats_tag(d)}"]

    if d.diff:
        lines.extend(render_diff(d.diff, max_diff_lines))
    lines.append("")
    return lines


def _render_file_changes(tool: ToolUsageSummary, caps: DisplayCaps, category: str, label: str, noun: str) -> list[str]:
    lines = _heading(label, tool)
    detailed = take(tool.samples, caps.write_edit_detailed, total=tool.count)
    for sample in detailed.shown:
        lines.extend(render_file_change_sample(sample, category, caps.write_edit_diff_lines))

    overflow = []
    for sample in tool.samples[len(detailed.shown):]:
        d = _data(sample, category)
        if d is None:
            continue
        stats = f" (+{d.diff_stats.added} -{d.diff_stats.removed})" if d.diff_stats else ""
        overflow.append(f"`{d.file_path}`{stats}")
    listed = take(overflow, OVERFLOW_FILE_LIMIT)

    if detailed.remaining > 0:
        file_list = f": {', '.join(listed.shown)}" if listed.shown else ""
        lines.append(f"*...and {detailed.remaining} more {noun}{file_list}*")
        lines.append("")
    return lines


@register_renderer("write")
def render_write(tool: ToolUsageSummary, caps: DisplayCaps) -> list[str]:
    return _render_file_changes(tool, caps, "write", "Write", "writes")


@register_renderer("edit")
def render_edit(tool: ToolUsageSummary, caps: DisplayCaps) -> list[str]:
    return _render_file_changes(tool, caps, "edit", "Edit", "edits")


# ── Read / Grep / Glob ──────────────────────────────────────────────────────


def format_read_sample(sample: ToolSample) -> str:
    d = _data(sample, "read")
    if d is None:
        return f"`{sample.summary}`"
    if d.line_start and d.line_end:
        line_range = f" (lines {d.line_start}-{d.line_end})"
    elif d.line_start:
        line_range = f" (from line {d.line_start})"
    else:
        line_range = ""
    return f"`{d.file_path}`{line_range}"


def format_grep_sample(sample: ToolSample) -> str:
    d = _data(sample, "grep")
    if d is None:
        return f"`{sample.summary}`"
    path = f" in `{d.target_path}`" if d.target_path else ""
    count = f" — {d.match_count} matches" if d.match_count is not None else ""
    return f'`"{d.pattern}"`{path}{count}'


def format_glob_sample(sample: ToolSample) -> str:
    d = _data(sample, "glob")
    if d is None:
        return f"`{sample.summary}`"
    count = f" — {d.result_count} files" if d.result_count is not None else ""
    return f"`{d.pattern}`{count}"


def _render_list(
    tool: ToolUsageSummary,
    label: str,
    limit: int,
    fmt: Callable[[ToolSample], str],
    overflow_noun: str = "",
) -> list[str]:
    lines = _heading(label, tool)
    shown = take(tool.samples, limit, total=tool.count)
    for sample in shown.shown:
        lines.append(f"- {fmt(sample)}")
    if shown.remaining > 0:
        noun = f" {overflow_noun}" if overflow_noun else ""
        lines.append(f"- *...and {shown.remaining} more{noun}*")
    lines.append("")
    return lines


@register_renderer("read")
def render_read(tool: ToolUsageSummary, caps: DisplayCaps) -> list[str]:
    return _render_list(tool, "Read", caps.read_entries, format_read_sample, "files read")


@register_renderer("grep")
def render_grep(tool: ToolUsageSummary, caps: DisplayCaps) -> list[str]:
    return _render_list(tool, "Grep", caps.grep_glob_search_fetch, format_grep_sample, "grep searches")


@register_renderer("glob")
def render_glob(tool: ToolUsageSummary, caps: DisplayCaps) -> list[str]:
    return _render_list(tool, "Glob", caps.grep_glob_search_fetch, format_glob_sample, "glob calls")


# ── Compact: Search, Fetch, Task, Ask, MCP ──────────────────────────────────


def format_compact_sample(sample: ToolSample) -> str:
    d = sample.data
    category = getattr(d, "category", None)

    if category == "search":
        count = f" — {d.result_count} results" if d.result_count is not None else ""
        return f'"{d.query}"{count}'
    if category == "fetch":
        preview = f' — "{d.result_preview}..."' if d.result_preview else ""
        return f"`{d.url}`{preview}"
    if category == "task":
        agent = f" (type: `{d.agent_type}`)" if d.agent_type else ""
        result = f' — "{d.result_summary}"' if d.result_summary else ""
        return f'"{d.description}"{agent}{result}'
    if category == "ask":
        return f'"{d.question}"'
    if category == "mcp":
        params = f"({d.params})" if d.params else ""
        result = f' — "{d.result}"' if d.result else ""
        return f"`{d.tool_name}{params}`{result}"
    return f"`{sample.summary}`"


def compact_label(tool: ToolUsageSummary, category: str) -> str:
    return COMPACT_LABELS.get(category, tool.name)


def render_compact(tool: ToolUsageSummary, caps: DisplayCaps, category: Optional[str] = None) -> list[str]:
    category = category or detect_category(tool)
    limit = caps.grep_glob_search_fetch if category in ("search", "fetch") else caps.mcp_task_ask
    return _render_list(tool, compact_label(tool, category), limit, format_compact_sample)


for _category in COMPACT_LABELS:
    register_renderer(_category)(render_compact)


# ── Fallback ────────────────────────────────────────────────────────────────


def render_fallback(tool: ToolUsageSummary, caps: Optional[DisplayCaps] = None) -> list[str]:
    """Plain summaries for anything without a category renderer."""
    return _render_list(tool, tool.name, FALLBACK_SAMPLES, lambda sample: f"`{sample.summary}`")
