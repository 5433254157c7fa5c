"""Crush session provider.

Crush keeps every session in one SQLite database. Sessions are addressed
by id inside that file, so ``discover_session_files`` returns virtual
``<db>/<id>`` paths the same way other database-backed providers do.
"""

import json
import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Optional

from ..config import VerbosityConfig, get_preset
from ..models import ConversationMessage, SessionContext, SessionNotes, TokenUsage, UnifiedSession
from . import register_provider
from .base import SessionProvider, clean_summary, parse_timestamp

logger = logging.getLogger(__name__)

DB_PATH = Path.home() / ".crush" / "crush.db"

SESSIONS_QUERY = """
    SELECT s.id, s.title, MIN(m.created_at), MAX(m.created_at), COUNT(m.rowid)
    FROM sessions s LEFT JOIN messages m ON m.session_id = s.id
    WHERE s.id = ?
    GROUP BY s.id
"""
MESSAGES_QUERY = "SELECT role, parts, created_at, model FROM messages WHERE session_id = ? ORDER BY created_at ASC"


def _connect(db_path: Path) -> Optional[sqlite3.Connection]:
    """Open the database read-only; None if it is missing or unreadable."""
    if not db_path.exists():
        return None
    try:
        conn = sqlite3.connect(f"file:{db_path}?mode=ro", uri=True)
        conn.execute("SELECT 1")
        return conn
    except sqlite3.Error as e:
        logger.debug(f"crush: cannot open {db_path}: {e}")
        return None


def text_from_parts(parts_json: Optional[str]) -> str:
    """Plain text from a message's ``parts`` column: ``[{"type": "text", "data": {"text": ...}}]``."""
    try:
        parts = json.loads(parts_json or "")
    except (json.JSONDecodeError, TypeError):
        return ""
    if not isinstance(parts, list):
        return ""
    texts = []
    for part in parts:
        if isinstance(part, dict) and part.get("type") == "text":
            text = (part.get("data") or {}).get("text")
            if text:
                texts.append(text)
    return "\n".join(texts)


@register_provider
class CrushProvider(SessionProvider):
    """Provider for Crush sessions."""

    name = "crush"
    display_name = "Crush"
    icon = "💘"
    color = "bright_magenta"

    def get_sessions_dir(self) -> Path:
        return DB_PATH

    def discover_session_files(self) -> list[Path]:
        """One virtual path per session id."""
        db_path = self.get_sessions_dir()
        conn = _connect(db_path)
        if conn is None:
            return []
        try:
            with closing(conn):
                rows = conn.execute("SELECT id FROM sessions").fetchall()
        except sqlite3.Error as e:
            logger.debug(f"crush: cannot list sessions: {e}")
            return []
        return [db_path / str(session_id) for (session_id,) in rows]

    def _messages(self, db_path: Path, session_id: str) -> list[tuple]:
        conn = _connect(db_path)
        if conn is None:
            return []
        try:
            with closing(conn):
                return conn.execute(MESSAGES_QUERY, (session_id,)).fetchall()
        except sqlite3.Error as e:
            logger.debug(f"crush: cannot read messages for {session_id}: {e}")
            return []

    def parse_session(self, path: Path) -> UnifiedSession | None:
        session_id = path.name
        conn = _connect(path.parent)
        if conn is None:
            return None
        try:
            with closing(conn):
                row = conn.execute(SESSIONS_QUERY, (session_id,)).fetchone()
        except sqlite3.Error as e:
            logger.debug(f"crush: cannot read session {session_id}: {e}")
            return None
        if row is None:
            return None

        _, title, first_at, last_at, msg_count = row
        if not msg_count:
            return None

        summary = title or ""
        if not summary:
            first_user = next((r for r in self._messages(path.parent, session_id) if r[0] == "user"), None)
            summary = text_from_parts(first_user[1]) if first_user else ""
        summary = clean_summary(summary)
        if not summary:
            return None

        created_at = parse_timestamp(first_at)
        if created_at is None:
            return None
        return UnifiedSession(
            id=session_id,
            source=self.name,
            original_path=path.parent,
            cwd="",
            lines=msg_count,
            bytes=0,
            created_at=created_at,
            updated_at=parse_timestamp(last_at) or created_at,
            summary=summary,
        )

    def get_resume_command(self, session: UnifiedSession) -> str:
        return "crush"

    def _token_usage(self, db_path: Path, session_id: str) -> Optional[TokenUsage]:
        conn = _connect(db_path)
        if conn is None:
            return None
        try:
            with closing(conn):
                row = conn.execute(
                    "SELECT prompt_tokens, completion_tokens FROM sessions WHERE id = ?", (session_id,)
                ).fetchone()
        except sqlite3.Error as e:
            logger.debug(f"crush: cannot read token usage for {session_id}: {e}")
            return None
        if not row or not (row[0] or row[1]):
            return None
        return TokenUsage(input=row[0] or 0, output=row[1] or 0)

    def extract_context(self, session: UnifiedSession, config: Optional[VerbosityConfig] = None) -> SessionContext:
        config = config or get_preset("standard")
        messages = []
        model = None
        for role, parts, created_at, row_model in self._messages(session.original_path, session.id):
            content = text_from_parts(parts)
            if not content:
                continue
            role = "user" if role == "user" else "assistant"
            messages.append(ConversationMessage(role=role, content=content, timestamp=parse_timestamp(created_at)))
            if not model and row_model and role == "assistant":
                model = row_model

        # Crush records no file edits, tool calls or todo lists
        notes = SessionNotes(model=model, token_usage=self._token_usage(session.original_path, session.id))
        return self.build_context(session, messages, [], [], [], notes, config)
