"""Amp session provider.

Amp keeps one JSON document per thread under ~/.local/share/amp/threads.
Threads carry no tool results or per-message timestamps, so a handoff
holds only the conversation, model, token usage and pending-task hints.
"""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..config import VerbosityConfig, get_preset
from ..models import ConversationMessage, SessionContext, SessionNotes, TokenUsage, UnifiedSession
from ..tools.summarizer import truncate
from . import register_provider
from .base import SessionProvider, clean_summary, count_lines, parse_timestamp

logger = logging.getLogger(__name__)

THREADS_DIR = Path.home() / ".local" / "share" / "amp" / "threads"

TASK_KEYWORDS = ("todo", "next step", "remaining", "need to")
TASK_SCAN_MESSAGES = 3
TASK_MAX_CHARS = 120
MODEL_TAG_PREFIX = "model:"


def load_thread(path: Path) -> Optional[dict]:
    """Load a thread file; None unless it has an id, created time and messages."""
    try:
        with open(path) as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.debug(f"amp: failed to parse thread {path}: {e}")
        return None
    if (
        not isinstance(data, dict)
        or not isinstance(data.get("id"), str)
        or not isinstance(data.get("created"), (int, float))
        or not isinstance(data.get("messages"), list)
    ):
        logger.debug(f"amp: {path} is missing id, created or messages")
        return None
    return data


def message_text(message: dict) -> str:
    content = message.get("content")
    if not isinstance(content, list):
        return ""
    texts = [
        block["text"] for block in content
        if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)
    ]
    return "\n".join(texts).strip()


def thread_model(thread: dict) -> Optional[str]:
    """Model from ``model:<id>`` environment tags."""
    tags = ((thread.get("env") or {}).get("initial") or {}).get("tags")
    if not isinstance(tags, list):
        return None
    for tag in tags:
        if isinstance(tag, str) and tag.startswith(MODEL_TAG_PREFIX):
            return tag[len(MODEL_TAG_PREFIX):]
    return None


def thread_notes(thread: dict) -> SessionNotes:
    """Model and token totals from the usage ledger, ignoring title generation."""
    notes = SessionNotes(model=thread_model(thread))
    events = (thread.get("usageLedger") or {}).get("events")
    if not isinstance(events, list):
        return notes

    input_tokens = output_tokens = 0
    for event in events:
        if not isinstance(event, dict) or event.get("operationType") == "title-generation":
            continue
        tokens = event.get("tokens") or {}
        input_tokens += tokens.get("input") or 0
        output_tokens += tokens.get("output") or 0
        if not notes.model and event.get("model"):
            notes.model = event["model"]

    if input_tokens or output_tokens:
        notes.token_usage = TokenUsage(input=input_tokens, output=output_tokens)
    return notes


def pending_task_hints(messages: list[dict], limit: int = 5) -> list[str]:
    """Sentences mentioning follow-up work in the last few assistant messages."""
    tasks: list[str] = []
    assistant = [m for m in messages if isinstance(m, dict) and m.get("role") == "assistant"]
    for msg in assistant[-TASK_SCAN_MESSAGES:]:
        for sentence in re.split(r"[.!\n]", message_text(msg)):
            if len(tasks) >= limit:
                return tasks
            lower = sentence.lower()
            if sentence.strip() and any(keyword in lower for keyword in TASK_KEYWORDS):
                tasks.append(truncate(sentence.strip(), TASK_MAX_CHARS))
    return tasks


@register_provider
class AmpProvider(SessionProvider):
    """Provider for Amp threads."""

    name = "amp"
    display_name = "Amp"
    icon = "⚡"
    color = "magenta"

    def get_sessions_dir(self) -> Path:
        return THREADS_DIR

    def discover_session_files(self) -> list[Path]:
        sessions_dir = self.get_sessions_dir()
        if not sessions_dir.exists():
            return []
        return [p for p in sessions_dir.glob("*.json") if p.is_file()]

    def parse_session(self, path: Path) -> UnifiedSession | None:
        thread = load_thread(path)
        if thread is None:
            return None

        first_user = ""
        for msg in thread["messages"]:
            if isinstance(msg, dict) and msg.get("role") == "user":
                first_user = message_text(msg)
                if first_user:
                    break
        summary = clean_summary(thread.get("title") or first_user)
        if not summary:
            return None

        stat = path.stat()
        return UnifiedSession(
            id=thread["id"],
            source=self.name,
            original_path=path,
            cwd="",
            lines=count_lines(path),
            bytes=stat.st_size,
            created_at=parse_timestamp(thread["created"]),
            updated_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            summary=summary,
            model=thread_model(thread),
        )

    def get_resume_command(self, session: UnifiedSession) -> str:
        return f"amp threads continue {session.id}"

    def extract_context(self, session: UnifiedSession, config: Optional[VerbosityConfig] = None) -> SessionContext:
        config = config or get_preset("standard")
        thread = load_thread(session.original_path)
        if thread is None:
            return self.build_context(session, [], [], [], [], None, config)

        # Threads have no per-message timestamps
        created = parse_timestamp(thread["created"])
        messages = []
        for msg in thread["messages"]:
            if not isinstance(msg, dict) or msg.get("role") not in ("user", "assistant"):
                continue
            text = message_text(msg)
            if text:
                messages.append(ConversationMessage(role=msg["role"], content=text, timestamp=created))

        return self.build_context(
            session,
            messages,
            [],
            pending_task_hints(thread["messages"], config.max_pending_tasks),
            [],
            thread_notes(thread),
            config,
        )
