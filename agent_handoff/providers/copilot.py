"""GitHub Copilot CLI session provider.

Each session is a directory under ~/.copilot/session-state holding a
``workspace.yaml`` metadata file and an ``events.jsonl`` event log.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import yaml

from ..config import VerbosityConfig, get_preset
from ..models import ConversationMessage, SessionContext, SessionNotes, ToolCall, UnifiedSession
from ..tools.summarizer import SummaryCollector
from . import register_provider
from .base import SessionProvider, count_lines, iter_jsonl, parse_timestamp

logger = logging.getLogger(__name__)

SESSIONS_DIR = Path.home() / ".copilot" / "session-state"

WORKSPACE_FILE = "workspace.yaml"
EVENTS_FILE = "events.jsonl"
MODEL_SCAN_EVENTS = 50
RECENT_EVENTS = 20
SUMMARY_MAX_CHARS = 60


def load_workspace(session_dir: Path) -> Optional[dict]:
    path = session_dir / WORKSPACE_FILE
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (yaml.YAMLError, IOError) as e:
        logger.debug(f"copilot: failed to parse {path}: {e}")
        return None
    return data if isinstance(data, dict) else None


def session_model(events_path: Path) -> Optional[str]:
    """Model selected in the ``session.start`` event near the top of the log."""
    if not events_path.exists():
        return None
    for i, event in enumerate(iter_jsonl(events_path)):
        if i >= MODEL_SCAN_EVENTS:
            break
        if event.get("type") == "session.start":
            return (event.get("data") or {}).get("selectedModel")
    return None


def workspace_summary(workspace: dict) -> str:
    summary = str(workspace.get("summary") or "")
    # Block scalars that survived as literal text
    if summary.startswith("|"):
        summary = summary.lstrip("|").lstrip("\n")
    return summary.split("\n")[0][:SUMMARY_MAX_CHARS]


def _tool_calls(requests: list) -> tuple[ToolCall, ...]:
    calls = []
    for request in requests:
        if isinstance(request, dict):
            args = request.get("arguments")
            calls.append(ToolCall(name=request.get("name") or "unknown", arguments=args if isinstance(args, dict) else {}))
    return tuple(calls)


def collect_tool_requests(events: list[dict]) -> SummaryCollector:
    """Aggregate every assistant ``toolRequests`` entry. Copilot logs no results."""
    collector = SummaryCollector()
    for event in events:
        if event.get("type") != "assistant.message":
            continue
        for call in _tool_calls((event.get("data") or {}).get("toolRequests") or []):
            collector.record(call.name, call.arguments, is_new_file=False)
    return collector


@register_provider
class CopilotProvider(SessionProvider):
    """Provider for GitHub Copilot CLI sessions."""

    name = "copilot"
    display_name = "GitHub Copilot CLI"
    icon = "🐙"
    color = "white"

    def get_sessions_dir(self) -> Path:
        return SESSIONS_DIR

    def discover_session_files(self) -> list[Path]:
        """Session directories that contain a workspace.yaml."""
        sessions_dir = self.get_sessions_dir()
        if not sessions_dir.exists():
            return []
        return [d for d in sessions_dir.iterdir() if d.is_dir() and (d / WORKSPACE_FILE).exists()]

    def parse_session(self, path: Path) -> UnifiedSession | None:
        workspace = load_workspace(path)
        if not workspace or not workspace.get("id"):
            return None

        events_path = path / EVENTS_FILE
        size = events_path.stat().st_size if events_path.exists() else 0
        # Sessions with an empty event log never did anything
        if size == 0:
            return None

        created_at = parse_timestamp(workspace.get("created_at"))
        updated_at = parse_timestamp(workspace.get("updated_at")) or created_at
        if created_at is None:
            return None

        return UnifiedSession(
            id=str(workspace["id"]),
            source=self.name,
            original_path=path,
            cwd=str(workspace.get("cwd") or ""),
            lines=count_lines(events_path),
            bytes=size,
            created_at=created_at,
            updated_at=updated_at,
            repo=workspace.get("repository") or None,
            branch=workspace.get("branch") or None,
            summary=workspace_summary(workspace) or None,
            model=session_model(events_path),
        )

    def get_resume_command(self, session: UnifiedSession) -> str:
        return f"copilot --resume {session.id}"

    def extract_context(self, session: UnifiedSession, config: Optional[VerbosityConfig] = None) -> SessionContext:
        config = config or get_preset("standard")
        events_path = session.original_path / EVENTS_FILE
        try:
            events = list(iter_jsonl(events_path))
        except OSError as e:
            logger.debug(f"copilot: cannot read {events_path}: {e}")
            events = []

        messages = []
        for event in events[-RECENT_EVENTS:]:
            data = event.get("data") or {}
            timestamp = parse_timestamp(event.get("timestamp"))
            if event.get("type") == "user.message":
                content = data.get("content") or data.get("transformedContent") or ""
                if content:
                    messages.append(ConversationMessage(role="user", content=content, timestamp=timestamp))
            elif event.get("type") == "assistant.message":
                content = data.get("content") or ""
                if content and not isinstance(content, str):
                    content = json.dumps(content)
                calls = _tool_calls(data.get("toolRequests") or [])
                if not content and calls:
                    content = f"[Used tools: {', '.join(c.name for c in calls)}]"
                if content:
                    messages.append(ConversationMessage(
                        role="assistant", content=content, timestamp=timestamp, tool_calls=calls,
                    ))

        # Nothing but metadata: fall back to the workspace summary
        if not messages and session.summary:
            messages = [
                ConversationMessage(role="user", content=session.summary, timestamp=session.created_at),
                ConversationMessage(
                    role="assistant",
                    content=f"[Session worked on: {session.summary}]",
                    timestamp=session.updated_at,
                ),
            ]

        collector = collect_tool_requests(events)
        notes = SessionNotes(model=session.model)
        return self.build_context(
            session,
            messages,
            collector.files_modified,
            [],
            collector.summaries(),
            notes,
            config,
        )
