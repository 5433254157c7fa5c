"""Unified session model shared by all providers and the handoff generator."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import ClassVar, Optional, Union


# Session source tags, in registry display order
SOURCES = (
    "claude",
    "droid",
    "amp",
    "cline",
    "roo-code",
    "kilo-code",
    "copilot",
    "crush",
    "antigravity",
    "kiro",
)


@dataclass
class UnifiedSession:
    """One conversation session, independent of the tool that recorded it."""

    # Identity
    id: str
    source: str  # one of SOURCES
    original_path: Path  # backing file, directory or database

    # Project context
    cwd: str

    # Size
    lines: int
    bytes: int

    # Timing
    created_at: datetime
    updated_at: datetime

    # Optional metadata
    repo: Optional[str] = None
    branch: Optional[str] = None
    summary: Optional[str] = None
    model: Optional[str] = None


@dataclass(frozen=True)
class ToolCall:
    """A tool call attached to an assistant turn."""

    name: str
    arguments: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ConversationMessage:
    """A single user or assistant turn."""

    role: str  # "user" or "assistant"
    content: str
    timestamp: Optional[datetime] = None
    tool_calls: tuple[ToolCall, ...] = ()


# ── Structured tool samples ─────────────────────────────────────────────────
# One variant per category. `category` is the tag the renderers dispatch on.


@dataclass(frozen=True)
class DiffStats:
    added: int
    removed: int


@dataclass(frozen=True)
class ShellSample:
    category: ClassVar[str] = "shell"

    command: str
    exit_code: Optional[int] = None
    errored: bool = False
    stdout_tail: Optional[str] = None
    error_message: Optional[str] = None


@dataclass(frozen=True)
class ReadSample:
    category: ClassVar[str] = "read"

    file_path: str
    line_start: Optional[int] = None
    line_end: Optional[int] = None


@dataclass(frozen=True)
class WriteSample:
    category: ClassVar[str] = "write"

    file_path: str
    is_new_file: bool = False
    diff: Optional[str] = None
    diff_stats: Optional[DiffStats] = None


@dataclass(frozen=True)
class EditSample:
    category: ClassVar[str] = "edit"

    file_path: str
    diff: Optional[str] = None
    diff_stats: Optional[DiffStats] = None


@dataclass(frozen=True)
class GrepSample:
    category: ClassVar[str] = "grep"

    pattern: str
    target_path: Optional[str] = None
    match_count: Optional[int] = None


@dataclass(frozen=True)
class GlobSample:
    category: ClassVar[str] = "glob"

    pattern: str
    result_count: Optional[int] = None


@dataclass(frozen=True)
class SearchSample:
    category: ClassVar[str] = "search"

    query: str
    result_count: Optional[int] = None


@dataclass(frozen=True)
class FetchSample:
    category: ClassVar[str] = "fetch"

    url: str
    result_preview: Optional[str] = None


@dataclass(frozen=True)
class TaskSample:
    category: ClassVar[str] = "task"

    description: str
    agent_type: Optional[str] = None
    result_summary: Optional[str] = None


@dataclass(frozen=True)
class AskSample:
    category: ClassVar[str] = "ask"

    question: str


@dataclass(frozen=True)
class McpSample:
    category: ClassVar[str] = "mcp"

    tool_name: str
    params: Optional[str] = None
    result: Optional[str] = None


StructuredToolSample = Union[
    ShellSample,
    ReadSample,
    WriteSample,
    EditSample,
    GrepSample,
    GlobSample,
    SearchSample,
    FetchSample,
    TaskSample,
    AskSample,
    McpSample,
]


@dataclass(frozen=True)
class ToolSample:
    """One observed tool invocation kept for display."""

    summary: str  # always present; the fallback rendering
    data: Optional[StructuredToolSample] = None


@dataclass
class ToolUsageSummary:
    """Aggregated invocations of one tool (or one synthetic group of tools).

    `samples` is capped upstream, so `count` may exceed `len(samples)`.
    """

    name: str
    count: int
    samples: list[ToolSample] = field(default_factory=list)
    error_count: Optional[int] = None


@dataclass(frozen=True)
class TokenUsage:
    input: int
    output: int


@dataclass(frozen=True)
class CacheTokens:
    read: int
    creation: int


@dataclass
class SessionNotes:
    """Optional session-level annotations."""

    model: Optional[str] = None
    token_usage: Optional[TokenUsage] = None
    cache_tokens: Optional[CacheTokens] = None
    thinking_tokens: Optional[int] = None
    active_time_ms: Optional[int] = None
    reasoning: list[str] = field(default_factory=list)
    compact_summary: Optional[str] = None

    def is_empty(self) -> bool:
        return not (
            self.model
            or self.token_usage
            or self.cache_tokens
            or self.thinking_tokens
            or self.active_time_ms
            or self.reasoning
            or self.compact_summary
        )


@dataclass
class SessionContext:
    """Everything extracted from a session for a cross-tool handoff."""

    session: UnifiedSession
    recent_messages: list[ConversationMessage]
    files_modified: list[str]
    pending_tasks: list[str]
    tool_summaries: list[ToolUsageSummary]
    markdown: str
    session_notes: Optional[SessionNotes] = None
