"""Factory Droid session provider."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..config import VerbosityConfig, get_preset
from ..models import CacheTokens, SessionContext, SessionNotes, TokenUsage, UnifiedSession
from . import register_provider
from .base import SessionProvider, clean_summary, find_first_real_prompt, iter_jsonl, parse_timestamp
from .content import ContentReader, extract_text_content

logger = logging.getLogger(__name__)

SESSIONS_DIR = Path.home() / ".factory" / "sessions"


def decode_path(encoded: str) -> str:
    """Decode directory name back to original path."""
    return encoded.replace("-", "/")


def load_settings(session_path: Path) -> dict:
    """Read the ``<id>.settings.json`` file stored beside a session."""
    settings_path = session_path.with_suffix(".settings.json")
    if not settings_path.exists():
        return {}
    try:
        with open(settings_path) as f:
            settings = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.debug(f"droid: unreadable settings {settings_path}: {e}")
        return {}
    return settings if isinstance(settings, dict) else {}


def settings_notes(settings: dict) -> SessionNotes:
    """Model, token usage and active time recorded in Droid settings."""
    usage = settings.get("tokenUsage") or {}
    input_tokens = usage.get("inputTokens") or 0
    output_tokens = usage.get("outputTokens") or 0
    cache_read = usage.get("cacheReadTokens") or 0
    cache_creation = usage.get("cacheCreationTokens") or 0

    return SessionNotes(
        model=settings.get("model") or None,
        token_usage=TokenUsage(input=input_tokens, output=output_tokens) if input_tokens or output_tokens else None,
        cache_tokens=CacheTokens(read=cache_read, creation=cache_creation) if cache_read or cache_creation else None,
        thinking_tokens=usage.get("thinkingTokens") or None,
        active_time_ms=settings.get("assistantActiveTimeMs") or None,
    )


@register_provider
class DroidProvider(SessionProvider):
    """Provider for Factory Droid sessions."""

    name = "droid"
    display_name = "Factory Droid"
    icon = "🤖"
    color = "green"

    def get_sessions_dir(self) -> Path:
        return SESSIONS_DIR

    def discover_session_files(self) -> list[Path]:
        """Discover all JSONL session files."""
        files = []
        sessions_dir = self.get_sessions_dir()
        if not sessions_dir.exists():
            return files

        for project_dir in sessions_dir.iterdir():
            if not project_dir.is_dir():
                continue
            for jsonl_file in project_dir.glob("*.jsonl"):
                files.append(jsonl_file)

        return files

    def parse_session(self, path: Path) -> UnifiedSession | None:
        """Parse a Droid JSONL session file."""
        try:
            stat = path.stat()
        except OSError:
            return None

        session_id = path.stem
        title = ""
        cwd = ""
        user_texts = []
        first_ts: Optional[datetime] = None
        last_ts: Optional[datetime] = None
        lines = 0

        for data in iter_jsonl(path):
            lines += 1
            if data.get("type") == "session_start":
                session_id = data.get("id") or session_id
                title = data.get("title") or data.get("sessionTitle") or ""
                cwd = data.get("cwd", "")
                continue
            if data.get("type") != "message":
                continue

            ts = parse_timestamp(data.get("timestamp"))
            if ts:
                first_ts = first_ts or ts
                last_ts = ts

            msg = data.get("message") or {}
            if msg.get("role") == "user":
                text = extract_text_content(msg.get("content", ""), text_only=True)
                if text:
                    user_texts.append(text)

        if not user_texts and not title:
            return None

        settings = load_settings(path)
        modified_time = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        summary = clean_summary(title or find_first_real_prompt(user_texts))

        return UnifiedSession(
            id=session_id,
            source=self.name,
            original_path=path,
            cwd=cwd or decode_path(path.parent.name),
            lines=lines,
            bytes=stat.st_size,
            created_at=first_ts or modified_time,
            updated_at=last_ts or modified_time,
            summary=summary or None,
            model=settings.get("model") or None,
        )

    def get_resume_command(self, session: UnifiedSession) -> str:
        return f"droid -s {session.id}"

    def extract_context(self, session: UnifiedSession, config: Optional[VerbosityConfig] = None) -> SessionContext:
        config = config or get_preset("standard")
        reader = ContentReader(max_highlights=config.max_highlights)

        try:
            for data in iter_jsonl(session.original_path):
                if data.get("type") != "message":
                    continue
                msg = data.get("message") or {}
                reader.add_turn(msg.get("role", ""), msg.get("content", ""), parse_timestamp(data.get("timestamp")))
        except OSError as e:
            logger.debug(f"droid: cannot read {session.original_path}: {e}")
        reader.finish()

        notes = settings_notes(load_settings(session.original_path))
        notes.reasoning = reader.reasoning
        return self.build_context(
            session,
            reader.messages,
            reader.collector.files_modified,
            reader.pending_tasks,
            reader.collector.summaries(),
            notes,
            config,
        )
