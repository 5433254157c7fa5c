"""Base class for session providers."""

import json
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from ..config import VerbosityConfig, get_preset
from ..handoff.markdown import generate_handoff_markdown
from ..models import (
    ConversationMessage,
    SessionContext,
    SessionNotes,
    ToolUsageSummary,
    UnifiedSession,
)

logger = logging.getLogger(__name__)

SUMMARY_MAX_CHARS = 80


def detect_automated_session(first_prompt: str) -> tuple[bool, str]:
    """Detect if a session is system-generated/automated rather than human-initiated.

    These are sessions started by tools, CI bots, system commands, or context injections
    rather than a human typing a prompt. Shared across all providers.

    Returns (is_automated, automation_type) tuple.
    """
    if not first_prompt or not first_prompt.strip():
        return False, ""

    prompt_start = first_prompt[:500].strip()
    prompt_lower = prompt_start.lower()

    # XML-tagged system content
    if prompt_start.startswith("<system-notification>"):
        return True, "system-notification"
    if prompt_start.startswith("<command-message>") or prompt_start.startswith("<command-name>"):
        return True, "command-message"
    if prompt_start.startswith("<local-command-caveat>") or prompt_start.startswith("<local-command-stdout>"):
        return True, "command-caveat"
    if prompt_start.startswith("<system-reminder>"):
        return True, "system-reminder"

    # Bracketed system directives
    if prompt_start.startswith("[SYSTEM DIRECTIVE"):
        return True, "system-directive"
    if prompt_start.startswith("[COMPACTION CONTEXT"):
        return True, "compaction-context"

    # Sub-agent continuation prompts
    if prompt_lower.startswith("summarize the task tool output above"):
        return True, "subagent-continuation"
    if prompt_lower.startswith("this session is being continued from a previous conversation"):
        return True, "compaction-context"

    return False, ""


def find_first_real_prompt(user_messages: list[str]) -> str:
    """First user message that a human typed, skipping injected content."""
    for text in user_messages:
        is_auto, _ = detect_automated_session(text)
        if not is_auto and text.strip():
            return text
    return ""


def clean_summary(text: str, max_len: int = SUMMARY_MAX_CHARS) -> str:
    """Single-line session summary from a prompt or title."""
    if not text:
        return ""
    text = re.sub(r"<[^>]+>", " ", text)
    first_line = next((line.strip() for line in text.splitlines() if line.strip()), "")
    first_line = " ".join(first_line.split())
    return first_line[:max_len]


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO-8601 string, a datetime or an epoch value (seconds or milliseconds)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # Anything past ~2001 in milliseconds is larger than 1e12
        seconds = value / 1000 if value > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def iter_jsonl(path: Path) -> Iterator[dict]:
    """Yield each JSON object in a JSONL file, skipping malformed lines."""
    with open(path) as f:
        for lineno, line in enumerate(f, 1):
            if not line.strip():
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                logger.debug(f"{path}:{lineno}: skipping malformed line")
                continue
            if isinstance(data, dict):
                yield data


def count_lines(path: Path) -> int:
    """Number of lines in a text file, 0 if unreadable."""
    try:
        with open(path, "rb") as f:
            return sum(1 for _ in f)
    except OSError:
        return 0


class SessionProvider(ABC):
    """Abstract base class for session providers.

    Each AI coding tool (Claude Code, Droid, Amp, ...) implements this
    interface to discover its sessions, normalize them into UnifiedSession
    and extract the context needed for a handoff.
    """

    # Provider identity
    name: str = ""  # session source tag: "claude", "droid", etc.
    display_name: str = ""  # human-readable: "Claude Code", "Factory Droid"
    icon: str = ""  # emoji for terminal output
    color: str = ""  # rich color name

    @abstractmethod
    def get_sessions_dir(self) -> Path:
        """Return the directory (or database file) where sessions are stored."""
        ...

    def is_available(self) -> bool:
        """Check if this provider's session storage exists."""
        return self.get_sessions_dir().exists()

    @abstractmethod
    def discover_session_files(self) -> list[Path]:
        """Discover all session files in the sessions directory."""
        ...

    @abstractmethod
    def parse_session(self, path: Path) -> UnifiedSession | None:
        """Parse a session file into a UnifiedSession."""
        ...

    def load_sessions(self) -> list[UnifiedSession]:
        """Load all sessions from this provider, newest first."""
        sessions = []
        for path in self.discover_session_files():
            try:
                session = self.parse_session(path)
                if session:
                    sessions.append(session)
            except Exception as e:
                logger.debug(f"{self.name}: skipping unparseable session {path}: {e}")
                continue
        sessions.sort(key=lambda s: s.updated_at.timestamp(), reverse=True)
        return sessions

    @abstractmethod
    def get_resume_command(self, session: UnifiedSession) -> str:
        """Get the command that resumes a session natively (display only)."""
        ...

    @abstractmethod
    def extract_context(self, session: UnifiedSession, config: Optional[VerbosityConfig] = None) -> SessionContext:
        """Extract everything needed to continue this session in another tool."""
        ...

    def build_context(
        self,
        session: UnifiedSession,
        messages: list[ConversationMessage],
        files_modified: list[str],
        pending_tasks: list[str],
        tool_summaries: list[ToolUsageSummary],
        session_notes: Optional[SessionNotes],
        config: Optional[VerbosityConfig] = None,
    ) -> SessionContext:
        """Trim extracted data to the configured window and render the markdown."""
        config = config or get_preset("standard")
        recent = messages[-config.recent_messages:] if config.recent_messages > 0 else []
        tasks = pending_tasks[:config.max_pending_tasks]
        if session_notes is not None:
            session_notes.reasoning = session_notes.reasoning[:config.max_highlights]
            if session_notes.is_empty():
                session_notes = None

        if session_notes and session_notes.model and not session.model:
            session.model = session_notes.model

        markdown = generate_handoff_markdown(
            session,
            recent,
            files_modified,
            tasks,
            tool_summaries,
            session_notes,
            mode=config.mode,
        )
        return SessionContext(
            session=session,
            recent_messages=recent,
            files_modified=files_modified,
            pending_tasks=tasks,
            tool_summaries=tool_summaries,
            markdown=markdown,
            session_notes=session_notes,
        )
