"""Kiro session provider.

Kiro stores one JSON document per session under
``<app data>/Kiro/workspace-sessions/<workspace>/``, next to a
``sessions.json`` index that is not itself a session.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..config import VerbosityConfig, get_preset
from ..models import ConversationMessage, SessionContext, UnifiedSession
from . import register_provider
from .base import SessionProvider, clean_summary
from .content import extract_text_content

logger = logging.getLogger(__name__)

INDEX_FILE = "sessions.json"


def default_sessions_dir() -> Path:
    home = Path.home()
    if sys.platform == "darwin":
        base = home / "Library" / "Application Support"
    elif sys.platform == "win32":
        base = home / "AppData" / "Roaming"
    else:
        base = home / ".config"
    return base / "Kiro" / "workspace-sessions"


SESSIONS_DIR = default_sessions_dir()


def load_session(path: Path) -> Optional[dict]:
    """Load a session file; None unless it has a sessionId and a history list."""
    try:
        with open(path) as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.debug(f"kiro: failed to parse session {path}: {e}")
        return None
    if not isinstance(data, dict) or not isinstance(data.get("sessionId"), str) or not isinstance(
        data.get("history"), list
    ):
        logger.debug(f"kiro: {path} is missing sessionId or history")
        return None
    return data


def history_messages(data: dict) -> list[tuple[str, str]]:
    """(role, text) pairs from the history, skipping entries without text."""
    result = []
    for entry in data["history"]:
        message = entry.get("message") if isinstance(entry, dict) else None
        if not isinstance(message, dict):
            continue
        text = extract_text_content(message.get("content", ""), text_only=True).strip()
        if text:
            result.append(("user" if message.get("role") == "user" else "assistant", text))
    return result


def project_name(data: dict) -> str:
    if data.get("title"):
        return data["title"]
    if data.get("workspacePath"):
        return Path(data["workspacePath"]).name
    return "kiro"


@register_provider
class KiroProvider(SessionProvider):
    """Provider for Kiro sessions."""

    name = "kiro"
    display_name = "Kiro"
    icon = "👻"
    color = "bright_cyan"

    def get_sessions_dir(self) -> Path:
        return SESSIONS_DIR

    def discover_session_files(self) -> list[Path]:
        files = []
        sessions_dir = self.get_sessions_dir()
        if not sessions_dir.exists():
            return files

        for workspace_dir in sessions_dir.iterdir():
            if not workspace_dir.is_dir():
                continue
            files.extend(p for p in workspace_dir.glob("*.json") if p.is_file() and p.name != INDEX_FILE)
        return files

    def parse_session(self, path: Path) -> UnifiedSession | None:
        data = load_session(path)
        if data is None:
            return None

        first_user = next((text for role, text in history_messages(data) if role == "user"), "")
        summary = clean_summary(first_user) or clean_summary(project_name(data))

        # No per-message timestamps; the file times are the best proxy
        stat = path.stat()
        created = getattr(stat, "st_birthtime", stat.st_mtime)
        return UnifiedSession(
            id=data["sessionId"],
            source=self.name,
            original_path=path,
            cwd=data.get("workspacePath") or "",
            lines=len(data["history"]),
            bytes=stat.st_size,
            created_at=datetime.fromtimestamp(created, tz=timezone.utc),
            updated_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            summary=summary,
            model=data.get("selectedModel") or None,
        )

    def get_resume_command(self, session: UnifiedSession) -> str:
        return f"kiro {session.cwd or '.'}"

    def extract_context(self, session: UnifiedSession, config: Optional[VerbosityConfig] = None) -> SessionContext:
        config = config or get_preset("standard")
        data = load_session(session.original_path)
        if data is None:
            return self.build_context(session, [], [], [], [], None, config)

        if data.get("selectedModel"):
            session.model = data["selectedModel"]
        messages = [ConversationMessage(role=role, content=text) for role, text in history_messages(data)]

        # Kiro records no tool calls, todos or token counts
        return self.build_context(session, messages, [], [], [], None, config)
