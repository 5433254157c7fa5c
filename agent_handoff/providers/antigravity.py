"""Antigravity session provider.

Antigravity writes JSONL conversation logs under
~/.gemini/antigravity/code_tracker/<project>/. Each line may carry a
binary prefix before the JSON object; entries are ``{type, content,
timestamp}``. Raw file snapshots stored alongside are not read.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..config import VerbosityConfig, get_preset
from ..models import ConversationMessage, SessionContext, UnifiedSession
from . import register_provider
from .base import SessionProvider, clean_summary, parse_timestamp

logger = logging.getLogger(__name__)

SESSIONS_DIR = Path.home() / ".gemini" / "antigravity" / "code_tracker"

NO_REPO_DIR = "no_repo"
ROLES = ("user", "assistant")


def parse_line(line: str) -> Optional[dict]:
    """One entry from a log line, skipping any bytes before the first ``{``."""
    start = line.find("{")
    if start == -1:
        return None
    try:
        data = json.loads(line[start:])
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict) or not isinstance(data.get("type"), str) or not isinstance(data.get("content"), str):
        return None
    timestamp = data.get("timestamp")
    return {
        "type": data["type"],
        "content": data["content"],
        "timestamp": timestamp if isinstance(timestamp, str) else "",
    }


def read_entries(path: Path) -> list[dict]:
    """Conversation entries (user and assistant only) from a log file."""
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            entries = [parse_line(line.strip()) for line in f]
    except OSError as e:
        logger.debug(f"antigravity: failed to read {path}: {e}")
        return []
    return [e for e in entries if e and e["type"] in ROLES]


def project_name(path: Path) -> str:
    name = path.parent.name
    return "antigravity" if name == NO_REPO_DIR else name


@register_provider
class AntigravityProvider(SessionProvider):
    """Provider for Antigravity conversation logs."""

    name = "antigravity"
    display_name = "Antigravity"
    icon = "🌌"
    color = "bright_blue"

    def get_sessions_dir(self) -> Path:
        return SESSIONS_DIR

    def discover_session_files(self) -> list[Path]:
        files = []
        sessions_dir = self.get_sessions_dir()
        if not sessions_dir.exists():
            return files

        for project_dir in sessions_dir.iterdir():
            if project_dir.is_dir():
                files.extend(p for p in project_dir.glob("*.jsonl") if p.is_file())
        return files

    def parse_session(self, path: Path) -> UnifiedSession | None:
        entries = read_entries(path)
        if not entries:
            return None

        first_user = next((e["content"] for e in entries if e["type"] == "user"), "")
        summary = clean_summary(first_user)
        if not summary:
            return None

        stat = path.stat()
        mtime = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        return UnifiedSession(
            id=path.stem,
            source=self.name,
            original_path=path,
            cwd="",
            lines=len(entries),
            bytes=stat.st_size,
            created_at=parse_timestamp(entries[0]["timestamp"]) or mtime,
            updated_at=parse_timestamp(entries[-1]["timestamp"]) or mtime,
            repo=project_name(path),
            summary=summary,
        )

    def get_resume_command(self, session: UnifiedSession) -> str:
        return f"antigravity {session.cwd or '.'}"

    def extract_context(self, session: UnifiedSession, config: Optional[VerbosityConfig] = None) -> SessionContext:
        config = config or get_preset("standard")
        try:
            fallback = datetime.fromtimestamp(session.original_path.stat().st_mtime, tz=timezone.utc)
        except OSError:
            fallback = session.updated_at

        messages = [
            ConversationMessage(
                role=entry["type"],
                content=entry["content"],
                timestamp=parse_timestamp(entry["timestamp"]) or fallback,
            )
            for entry in read_entries(session.original_path)
        ]

        # Logs carry no tool calls, todos or token counts
        return self.build_context(session, messages, [], [], [], None, config)
