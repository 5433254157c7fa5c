"""Claude Code session provider."""

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

SESSIONS_DIR = Path.home() / ".claude" / "projects"


def decode_path(encoded: str) -> str:
    """Decode directory name back to original path."""
    return encoded.replace("-", "/")


class _UsageTotals:
    """Token usage summed once per API message id."""

    def __init__(self):
        self.input = 0
        self.output = 0
        self.cache_read = 0
        self.cache_creation = 0
        self._seen: set[str] = set()

    def add(self, message: dict) -> None:
        usage = message.get("usage")
        if not isinstance(usage, dict):
            return
        msg_id = message.get("id")
        if msg_id:
            if msg_id in self._seen:
                return
            self._seen.add(msg_id)
        self.input += usage.get("input_tokens") or 0
        self.output += usage.get("output_tokens") or 0
        self.cache_read += usage.get("cache_read_input_tokens") or 0
        self.cache_creation += usage.get("cache_creation_input_tokens") or 0

    def token_usage(self) -> Optional[TokenUsage]:
        if self.input or self.output:
            return TokenUsage(input=self.input, output=self.output)
        return None

    def cache_tokens(self) -> Optional[CacheTokens]:
        if self.cache_read or self.cache_creation:
            return CacheTokens(read=self.cache_read, creation=self.cache_creation)
        return None


@register_provider
class ClaudeCodeProvider(SessionProvider):
    """Provider for Claude Code sessions."""

    name = "claude"
    display_name = "Claude Code"
    icon = "🧠"
    color = "cyan"

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
        """Parse a Claude Code JSONL session file."""
        try:
            stat = path.stat()
        except OSError:
            return None

        session_id = ""
        cwd = ""
        git_branch = ""
        model = None
        title = ""
        user_texts = []
        first_ts: Optional[datetime] = None
        last_ts: Optional[datetime] = None
        lines = 0

        for data in iter_jsonl(path):
            lines += 1
            msg_type = data.get("type")

            if msg_type == "summary" and data.get("summary") and not title:
                title = data["summary"]
                continue
            if msg_type not in ("user", "assistant"):
                continue

            session_id = session_id or data.get("sessionId", "")
            cwd = cwd or data.get("cwd", "")
            git_branch = git_branch or data.get("gitBranch", "")

            ts = parse_timestamp(data.get("timestamp"))
            if ts:
                first_ts = first_ts or ts
                last_ts = ts

            msg = data.get("message") or {}
            if msg_type == "assistant" and not model and msg.get("model"):
                model = msg["model"]
            if msg_type == "user" and not data.get("isCompactSummary"):
                text = extract_text_content(msg.get("content", ""), text_only=True)
                if text:
                    user_texts.append(text)

        # Skip sessions with nothing a human said
        if not user_texts:
            return None

        modified_time = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        summary = clean_summary(title or find_first_real_prompt(user_texts))

        return UnifiedSession(
            id=session_id or path.stem,
            source=self.name,
            original_path=path,
            cwd=cwd or decode_path(path.parent.name),
            lines=lines,
            bytes=stat.st_size,
            created_at=first_ts or modified_time,
            updated_at=last_ts or modified_time,
            branch=git_branch or None,
            summary=summary or None,
            model=model,
        )

    def get_resume_command(self, session: UnifiedSession) -> str:
        return f"claude --resume {session.id}"

    def extract_context(self, session: UnifiedSession, config: Optional[VerbosityConfig] = None) -> SessionContext:
        config = config or get_preset("standard")
        reader = ContentReader(max_highlights=config.max_highlights)
        usage = _UsageTotals()
        model = session.model
        compact_summary = None

        try:
            entries = list(iter_jsonl(session.original_path))
        except OSError as e:
            logger.debug(f"claude: cannot read {session.original_path}: {e}")
            entries = []

        for data in entries:
            if data.get("type") not in ("user", "assistant"):
                continue
            msg = data.get("message") or {}

            if data.get("isCompactSummary"):
                compact_summary = extract_text_content(msg.get("content", ""), text_only=True).strip() or None
                continue

            if data.get("type") == "assistant":
                usage.add(msg)
                model = model or msg.get("model")

            reader.add_turn(msg.get("role", data.get("type")), msg.get("content", ""), parse_timestamp(data.get("timestamp")))

        reader.finish()

        notes = SessionNotes(
            model=model,
            token_usage=usage.token_usage(),
            cache_tokens=usage.cache_tokens(),
            reasoning=reader.reasoning,
            compact_summary=compact_summary,
        )
        return self.build_context(
            session,
            reader.messages,
            reader.collector.files_modified,
            reader.pending_tasks,
            reader.collector.summaries(),
            notes,
            config,
        )
