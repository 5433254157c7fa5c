"""Cline-family session providers (Cline, Roo Code, Kilo Code).

All three VS Code extensions write the same ``tasks/<id>/ui_messages.json``
format under the editor's globalStorage directory; they differ only in
extension id.
"""

import json
import logging
import sys
from datetime import timezone
from pathlib import Path
from typing import Optional

from ..config import VerbosityConfig, get_preset
from ..models import CacheTokens, ConversationMessage, SessionContext, SessionNotes, TokenUsage, UnifiedSession
from ..tools.summarizer import truncate
from . import register_provider
from .base import SessionProvider, clean_summary, parse_timestamp

logger = logging.getLogger(__name__)

UI_MESSAGES_FILE = "ui_messages.json"
REASONING_MIN_CHARS = 10
REASONING_MAX_CHARS = 200
TASK_MAX_CHARS = 200


def global_storage_dirs() -> list[Path]:
    """Candidate editor globalStorage directories for this platform."""
    home = Path.home()
    if sys.platform == "darwin":
        base = home / "Library" / "Application Support"
        editors = ("Code", "Code - Insiders", "Cursor", "Windsurf")
    elif sys.platform == "win32":
        base = home / "AppData" / "Roaming"
        editors = ("Code", "Code - Insiders", "Cursor")
    else:
        base = home / ".config"
        editors = ("Code", "Code - Insiders", "Cursor")
    return [base / editor / "User" / "globalStorage" for editor in editors]


def read_ui_messages(path: Path) -> list[dict]:
    try:
        with open(path) as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.debug(f"cline: failed to parse {path}: {e}")
        return []
    if not isinstance(data, list):
        return []
    return [m for m in data if isinstance(m, dict)]


def classify_role(msg: dict) -> Optional[str]:
    """Conversation role of a raw event, None for API and status events."""
    if msg.get("type") != "say":
        return None
    say = msg.get("say")
    if say == "user_feedback":
        return "user"
    if say == "text":
        # Streaming assistant chunks are partial; complete text is user input
        return "assistant" if msg.get("partial") is True else "user"
    if say in ("completion_result", "reasoning"):
        return "assistant"
    return None


def first_user_message(messages: list[dict]) -> str:
    for msg in messages:
        if classify_role(msg) == "user" and msg.get("text"):
            return msg["text"]
    return ""


def build_conversation(messages: list[dict]) -> list[ConversationMessage]:
    """Conversation turns, keeping only the last of consecutive streaming chunks."""
    result: list[ConversationMessage] = []
    last_streamed = False

    for msg in messages:
        role = classify_role(msg)
        text = (msg.get("text") or "").strip()
        if not role or not text:
            continue

        message = ConversationMessage(role=role, content=text, timestamp=parse_timestamp(msg.get("ts")))
        streamed = role == "assistant" and msg.get("say") == "text" and msg.get("partial") is True
        if streamed and last_streamed and result and result[-1].role == "assistant":
            result[-1] = message
        else:
            result.append(message)
        last_streamed = streamed

    return result


def token_notes(messages: list[dict]) -> SessionNotes:
    """Token and cache totals from ``api_req_started`` events."""
    totals = {"tokensIn": 0, "tokensOut": 0, "cacheWrites": 0, "cacheReads": 0}
    found = False

    for msg in messages:
        if msg.get("type") != "say" or msg.get("say") != "api_req_started" or not msg.get("text"):
            continue
        try:
            meta = json.loads(msg["text"])
        except (json.JSONDecodeError, TypeError):
            continue
        if not isinstance(meta, dict):
            continue
        for key in totals:
            value = meta.get(key)
            if isinstance(value, (int, float)) and value:
                totals[key] += value
                found = True

    notes = SessionNotes()
    if found:
        notes.token_usage = TokenUsage(input=totals["tokensIn"], output=totals["tokensOut"])
    if totals["cacheWrites"] or totals["cacheReads"]:
        notes.cache_tokens = CacheTokens(read=totals["cacheReads"], creation=totals["cacheWrites"])
    return notes


def reasoning_highlights(messages: list[dict], limit: int) -> list[str]:
    highlights = []
    for msg in messages:
        if len(highlights) >= limit:
            break
        if msg.get("type") != "say" or msg.get("say") != "reasoning":
            continue
        text = msg.get("text") or ""
        if len(text) < REASONING_MIN_CHARS:
            continue
        highlights.append(truncate(text.strip(), REASONING_MAX_CHARS))
    return highlights


def pending_tasks(messages: list[dict], limit: int) -> list[str]:
    """Unchecked items and TODO lines from the last message that has any."""
    tasks: list[str] = []
    for msg in reversed(messages):
        if msg.get("type") != "say" or msg.get("say") not in ("completion_result", "text"):
            continue
        for line in (msg.get("text") or "").splitlines():
            if len(tasks) >= limit:
                break
            stripped = line.strip()
            lower = stripped.lower()
            if len(stripped) > 5 and (
                lower.startswith("- [ ]") or lower.startswith("todo:") or "next step" in lower
            ):
                tasks.append(truncate(stripped, TASK_MAX_CHARS))
        if tasks:
            break
    return tasks


class ClineFamilyProvider(SessionProvider):
    """Shared implementation; subclasses set identity and extension ids."""

    extension_ids: tuple[str, ...] = ()

    def get_sessions_dir(self) -> Path:
        """First globalStorage directory holding one of this provider's extensions."""
        for base in global_storage_dirs():
            for ext_id in self.extension_ids:
                tasks_dir = base / ext_id / "tasks"
                if tasks_dir.exists():
                    return tasks_dir
        return global_storage_dirs()[0] / self.extension_ids[0] / "tasks"

    def is_available(self) -> bool:
        return any(
            (base / ext_id / "tasks").exists()
            for base in global_storage_dirs()
            for ext_id in self.extension_ids
        )

    def discover_session_files(self) -> list[Path]:
        files = []
        for base in global_storage_dirs():
            for ext_id in self.extension_ids:
                tasks_dir = base / ext_id / "tasks"
                if not tasks_dir.exists():
                    continue
                for task_dir in tasks_dir.iterdir():
                    ui_file = task_dir / UI_MESSAGES_FILE
                    if task_dir.is_dir() and ui_file.exists():
                        files.append(ui_file)
        return files

    def parse_session(self, path: Path) -> UnifiedSession | None:
        messages = read_ui_messages(path)
        if not messages:
            return None

        summary = clean_summary(first_user_message(messages))
        if not summary:
            return None

        stat = path.stat()
        mtime = parse_timestamp(stat.st_mtime)
        created_at = parse_timestamp(messages[0].get("ts")) or mtime
        updated_at = parse_timestamp(messages[-1].get("ts")) or mtime

        return UnifiedSession(
            id=path.parent.name,
            source=self.name,
            original_path=path,
            cwd="",
            lines=len(messages),
            bytes=stat.st_size,
            created_at=created_at.astimezone(timezone.utc),
            updated_at=updated_at.astimezone(timezone.utc),
            summary=summary,
        )

    def get_resume_command(self, session: UnifiedSession) -> str:
        return f"code {session.cwd or '.'}"

    def extract_context(self, session: UnifiedSession, config: Optional[VerbosityConfig] = None) -> SessionContext:
        config = config or get_preset("standard")
        messages = read_ui_messages(session.original_path)

        notes = token_notes(messages)
        notes.reasoning = reasoning_highlights(messages, config.max_highlights)

        # ui_messages.json records no file-level tool calls
        return self.build_context(
            session,
            build_conversation(messages),
            [],
            pending_tasks(messages, config.max_pending_tasks),
            [],
            notes,
            config,
        )


@register_provider
class ClineProvider(ClineFamilyProvider):
    name = "cline"
    display_name = "Cline"
    icon = "🔷"
    color = "blue"
    extension_ids = ("saoudrizwan.claude-dev",)


@register_provider
class RooCodeProvider(ClineFamilyProvider):
    name = "roo-code"
    display_name = "Roo Code"
    icon = "🦘"
    color = "red"
    extension_ids = ("rooveterinaryinc.roo-cline", "roo-code.roo-cline")


@register_provider
class KiloCodeProvider(ClineFamilyProvider):
    name = "kilo-code"
    display_name = "Kilo Code"
    icon = "🪁"
    color = "yellow"
    extension_ids = ("kilocode.kilo-code",)
