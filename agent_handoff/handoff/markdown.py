"""Build the handoff markdown document shared by every provider."""

from datetime import datetime, timezone
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping, Optional, Sequence

from ..models import ConversationMessage, SessionNotes, ToolUsageSummary, UnifiedSession
from ..tools.names import category_order
from .caps import DisplayCaps, get_display_caps
from .grouping import group_mcp_by_namespace
from .renderers import render_tool

RECENT_MESSAGE_COUNT = 10
MESSAGE_MAX_CHARS = 500
MAX_KEY_DECISIONS = 5

CLOSING_DIRECTIVE = (
    "**You are continuing this session. Pick up exactly where it left off — "
    "review the conversation above, check pending tasks, and keep going.**"
)


@lru_cache(maxsize=1)
def get_source_labels() -> Mapping[str, str]:
    """Source tag -> human label, built once from the provider registry.

    Read-only after the first call. Building it twice yields the same
    mapping, so concurrent first calls are harmless.
    """
    from ..providers import get_all_providers

    return MappingProxyType({p.name: p.display_name for p in get_all_providers()})


def format_timestamp(value: datetime) -> str:
    """`YYYY-MM-DD HH:MM`, in UTC for timezone-aware values."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%d %H:%M")


def sort_tools(summaries: Sequence[ToolUsageSummary]) -> list[ToolUsageSummary]:
    """Stable sort by category priority (shell first, MCP/unknown last)."""
    return sorted(summaries, key=lambda tool: category_order(tool.name))


def render_tool_activity(summaries: Sequence[ToolUsageSummary], caps: DisplayCaps) -> list[str]:
    """Group, order and render every tool aggregate."""
    lines: list[str] = []
    for tool in sort_tools(group_mcp_by_namespace(list(summaries))):
        lines.extend(render_tool(tool, caps))
        lines.append("")
    return lines


def _overview_rows(
    session: UnifiedSession,
    source_label: str,
    notes: Optional[SessionNotes],
    files_modified: Sequence[str],
    messages: Sequence[ConversationMessage],
) -> list[str]:
    rows = [
        "| Field | Value |",
        "|-------|-------|",
        f"| **Source** | {source_label} |",
        f"| **Session ID** | `{session.id}` |",
        f"| **Working Directory** | `{session.cwd}` |",
    ]
    if session.repo:
        branch = f" @ `{session.branch}`" if session.branch else ""
        rows.append(f"| **Repository** | {session.repo}{branch} |")
    if session.model:
        rows.append(f"| **Model** | {session.model} |")
    if notes and notes.model and notes.model != session.model:
        rows.append(f"| **Model** | {notes.model} |")
    rows.append(f"| **Last Active** | {format_timestamp(session.updated_at)} |")
    if notes and notes.token_usage:
        usage = notes.token_usage
        rows.append(f"| **Tokens Used** | {usage.input:,} in / {usage.output:,} out |")
    if notes and notes.cache_tokens:
        cache = notes.cache_tokens
        rows.append(f"| **Cache Tokens** | {cache.read:,} read / {cache.creation:,} created |")
    if notes and notes.thinking_tokens:
        rows.append(f"| **Thinking Tokens** | {notes.thinking_tokens:,} |")
    if notes and notes.active_time_ms:
        minutes = int(notes.active_time_ms / 60000 + 0.5)
        rows.append(f"| **Active Time** | {minutes} min |")
    rows.append(f"| **Files Modified** | {len(files_modified)} |")
    rows.append(f"| **Messages** | {len(messages)} |")
    return rows


def _clip(text: str, limit: int = MESSAGE_MAX_CHARS) -> str:
    return text[:limit] + ("…" if len(text) > limit else "")


def generate_handoff_markdown(
    session: UnifiedSession,
    messages: Sequence[ConversationMessage],
    files_modified: Sequence[str],
    pending_tasks: Sequence[str],
    tool_summaries: Sequence[ToolUsageSummary] = (),
    session_notes: Optional[SessionNotes] = None,
    mode: str = "inline",
    source_labels: Optional[Mapping[str, str]] = None,
) -> str:
    """Generate the handoff document for a session.

    Sections appear in a fixed order and each optional section is present
    only when it has data. Output is fully determined by the arguments.

    Args:
        session: The session being handed off.
        messages: Conversation turns, oldest first; the last 10 are shown.
        files_modified: Paths written or edited during the session.
        pending_tasks: Unfinished work items.
        tool_summaries: Per-tool aggregates for the Tool Activity section.
        session_notes: Token usage, reasoning highlights, compacted summary.
        mode: ``"inline"`` (default) or ``"reference"`` for looser caps.
        source_labels: Source tag -> label mapping; defaults to the
            provider registry.

    Raises:
        ValueError: If `mode` is not a known handoff mode.
    """
    caps = get_display_caps(mode)
    labels = get_source_labels() if source_labels is None else source_labels
    source_label = labels.get(session.source) or session.source

    lines: list[str] = ["# Session Handoff Context", "", "", "## Session Overview", ""]
    lines.extend(_overview_rows(session, source_label, session_notes, files_modified, messages))
    lines.extend(["", ""])

    if session.summary:
        lines.extend(["## Summary", "", f"> {session.summary}", "", ""])

    if session_notes and session_notes.compact_summary:
        lines.extend(["## Session Context (Compacted)", "", f"> {session_notes.compact_summary}", "", ""])

    if tool_summaries:
        lines.extend(["## Tool Activity", ""])
        lines.extend(render_tool_activity(tool_summaries, caps))
        lines.append("")

    if session_notes and session_notes.reasoning:
        lines.extend(["## Key Decisions", ""])
        for thought in session_notes.reasoning[:MAX_KEY_DECISIONS]:
            lines.append(f"- {thought}")
        lines.extend(["", ""])

    recent = list(messages)[-RECENT_MESSAGE_COUNT:]
    if recent:
        lines.extend(["## Recent Conversation", ""])
        for msg in recent:
            role = "User" if msg.role == "user" else "Assistant"
            lines.extend([f"### {role}", "", _clip(msg.content), ""])
        lines.append("")

    if files_modified:
        lines.extend(["## Files Modified", ""])
        for path in files_modified:
            lines.append(f"- `{path}`")
        lines.extend(["", ""])

    if pending_tasks:
        lines.extend(["## Pending Tasks", ""])
        for task in pending_tasks:
            lines.append(f"- [ ] {task}")
        lines.extend(["", ""])

    lines.extend(["---", "", CLOSING_DIRECTIVE])
    return "\n".join(lines)
