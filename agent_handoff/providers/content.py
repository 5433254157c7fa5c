"""Shared reader for Anthropic-style message content blocks.

Claude Code and Factory Droid both store turns as ``{"role", "content"}``
where content is either a string or a list of typed blocks (``text``,
``thinking``, ``tool_use``, ``tool_result``). ContentReader walks those
turns in order and accumulates what a handoff needs.
"""

import logging
from datetime import datetime
from typing import Optional

from ..models import ConversationMessage, ToolCall
from ..tools.summarizer import PendingCall, SummaryCollector, truncate

logger = logging.getLogger(__name__)

TODO_TOOLS = ("TodoWrite", "todo_write")
REASONING_MIN_CHARS = 10
REASONING_MAX_CHARS = 200
SYSTEM_REMINDER = "<system-reminder>"


def extract_text_content(content, text_only: bool = False) -> str:
    """Extract text from message content (handles both string and list formats)."""
    if isinstance(content, str):
        if content.strip().startswith(SYSTEM_REMINDER):
            return ""
        return content
    if isinstance(content, list):
        texts = []
        for item in content:
            if isinstance(item, dict):
                if item.get("type") == "text":
                    text = item.get("text", "")
                    if text and not text.strip().startswith(SYSTEM_REMINDER):
                        texts.append(text)
                elif item.get("type") == "tool_result" and not text_only:
                    texts.append(f"(tool_result: {truncate(tool_result_text(item.get('content')), 50)})")
            elif isinstance(item, str):
                texts.append(item)
        return " ".join(texts)
    return ""


def tool_result_text(content) -> str:
    """Flatten a tool_result payload (string or list of text blocks)."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, dict) and item.get("type") == "text":
                parts.append(item.get("text", ""))
            elif isinstance(item, str):
                parts.append(item)
        return "\n".join(parts)
    return str(content)


class ContentReader:
    """Accumulates messages, tool activity, todos and reasoning for one session.

    Tool calls are counted when the ``tool_use`` block appears and their
    samples are filled in when the matching ``tool_result`` arrives, so the
    sample carries the output and error flag. Calls that never get a result
    keep a sample built from their arguments alone.
    """

    def __init__(self, max_highlights: int = 5):
        self.max_highlights = max_highlights
        self.collector = SummaryCollector()
        self.messages: list[ConversationMessage] = []
        self.reasoning: list[str] = []
        self._open_calls: dict[str, PendingCall] = {}
        self._todos: Optional[list] = None

    def add_turn(self, role: str, content, timestamp: Optional[datetime] = None) -> None:
        if role == "assistant":
            self._add_assistant(content, timestamp)
        elif role == "user":
            self._add_user(content, timestamp)

    def _add_user(self, content, timestamp: Optional[datetime]) -> None:
        if isinstance(content, list):
            for block in content:
                if isinstance(block, dict) and block.get("type") == "tool_result":
                    self._close_call(block)
        text = extract_text_content(content, text_only=True).strip()
        if text:
            self.messages.append(ConversationMessage(role="user", content=text, timestamp=timestamp))

    def _add_assistant(self, content, timestamp: Optional[datetime]) -> None:
        if not isinstance(content, list):
            text = extract_text_content(content).strip()
            if text:
                self.messages.append(ConversationMessage(role="assistant", content=text, timestamp=timestamp))
            return

        texts = []
        calls = []
        for block in content:
            if not isinstance(block, dict):
                continue
            block_type = block.get("type")
            if block_type == "text":
                text = block.get("text", "")
                if text and not text.strip().startswith(SYSTEM_REMINDER):
                    texts.append(text)
            elif block_type == "thinking":
                self._add_reasoning(block.get("thinking", ""))
            elif block_type == "tool_use":
                name = block.get("name") or "unknown"
                args = block.get("input") if isinstance(block.get("input"), dict) else {}
                calls.append(ToolCall(name=name, arguments=args))
                self._open_call(block.get("id"), name, args)

        if texts:
            content_text = "\n".join(texts).strip()
        elif calls:
            content_text = f"[Used tools: {', '.join(c.name for c in calls)}]"
        else:
            return
        self.messages.append(ConversationMessage(
            role="assistant", content=content_text, timestamp=timestamp, tool_calls=tuple(calls),
        ))

    def _add_reasoning(self, thought: str) -> None:
        thought = (thought or "").strip()
        if len(thought) < REASONING_MIN_CHARS or len(self.reasoning) >= self.max_highlights:
            return
        self.reasoning.append(truncate(" ".join(thought.split()), REASONING_MAX_CHARS))

    def _open_call(self, call_id: Optional[str], name: str, args: dict) -> None:
        if name in TODO_TOOLS:
            todos = args.get("todos")
            if isinstance(todos, list):
                self._todos = todos
            return
        if not call_id:
            self.collector.record(name, args)
            return
        call = self.collector.begin(name, args)
        if call is not None:
            self._open_calls[call_id] = call

    def _close_call(self, block: dict) -> None:
        call = self._open_calls.pop(block.get("tool_use_id"), None)
        if call is None:
            return
        self.collector.complete(
            call,
            result=tool_result_text(block.get("content")),
            errored=bool(block.get("is_error")),
        )

    def finish(self) -> None:
        """Forget calls still waiting for a result; they keep a result-less sample."""
        self._open_calls.clear()

    @property
    def pending_tasks(self) -> list[str]:
        """Unfinished items from the most recent todo list."""
        tasks = []
        for todo in self._todos or []:
            if not isinstance(todo, dict) or todo.get("status") == "completed":
                continue
            text = todo.get("content") or todo.get("activeForm") or ""
            if text:
                tasks.append(text)
        return tasks
