"""Tests for session providers."""

import json
import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path

import pytest

from agent_handoff.config import get_preset
from agent_handoff.models import SOURCES, ShellSample, UnifiedSession, WriteSample
from agent_handoff.providers import amp, antigravity, claude_code, cline, copilot, crush, droid, kiro
from agent_handoff.providers.amp import AmpProvider
from agent_handoff.providers.antigravity import AntigravityProvider
from agent_handoff.providers.base import (
    clean_summary,
    detect_automated_session,
    find_first_real_prompt,
    parse_timestamp,
)
from agent_handoff.providers.claude_code import ClaudeCodeProvider
from agent_handoff.providers.content import ContentReader
from agent_handoff.providers.cline import ClineProvider, KiloCodeProvider, RooCodeProvider
from agent_handoff.providers.copilot import CopilotProvider
from agent_handoff.providers.crush import CrushProvider
from agent_handoff.providers.droid import DroidProvider
from agent_handoff.providers.kiro import KiroProvider


def write_jsonl(path: Path, entries: list) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [e if isinstance(e, str) else json.dumps(e) for e in entries]
    path.write_text("\n".join(lines) + "\n")
    return path


def make_session(source: str, session_id: str = "test-123") -> UnifiedSession:
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    return UnifiedSession(
        id=session_id,
        source=source,
        original_path=Path("/tmp/test"),
        cwd="/home/user/project",
        lines=0,
        bytes=0,
        created_at=now,
        updated_at=now,
    )


class TestHelpers:
    """Tests for shared provider helpers."""

    def test_clean_summary(self):
        assert clean_summary("  <b>Fix</b> the\n second line") == "Fix the"
        assert clean_summary("x" * 200) == "x" * 80
        assert clean_summary("") == ""

    def test_parse_timestamp_iso(self):
        assert parse_timestamp("2025-01-01T10:00:00Z") == datetime(2025, 1, 1, 10, tzinfo=timezone.utc)

    def test_parse_timestamp_epoch(self):
        """Seconds and milliseconds are both accepted."""
        expected = datetime(2025, 1, 1, 10, tzinfo=timezone.utc)
        assert parse_timestamp(1735725600) == expected
        assert parse_timestamp(1735725600000) == expected

    def test_parse_timestamp_without_offset_is_utc(self):
        assert parse_timestamp("2024-01-01T10:00:00") == datetime(2024, 1, 1, 10, tzinfo=timezone.utc)

    def test_parse_timestamp_invalid(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None

    def test_automated_prompts(self):
        assert detect_automated_session("<system-reminder>x</system-reminder>") == (True, "system-reminder")
        assert detect_automated_session("Fix the bug") == (False, "")

    def test_first_real_prompt_skips_injected(self):
        prompts = ["<command-name>/clear</command-name>", "", "Add a login page"]
        assert find_first_real_prompt(prompts) == "Add a login page"


class TestContentReader:
    """Tests for the shared content-block reader."""

    def test_unanswered_call_keeps_call_order(self):
        """A call that never gets a result still comes first."""
        reader = ContentReader()
        reader.add_turn("assistant", [{"type": "tool_use", "id": "r0", "name": "Read", "input": {"file_path": "a.py"}}])
        for i in range(6):
            reader.add_turn("assistant", [
                {"type": "tool_use", "id": f"b{i}", "name": "Bash", "input": {"command": f"cmd{i}"}},
            ])
            reader.add_turn("user", [{"type": "tool_result", "tool_use_id": f"b{i}", "content": "ok"}])
        reader.finish()

        summaries = reader.collector.summaries()
        assert [t.name for t in summaries] == ["Read", "Bash"]
        assert [s.summary for s in summaries[1].samples] == ["$ cmd0", "$ cmd1", "$ cmd2", "$ cmd3", "$ cmd4"]

    def test_result_errors_counted(self):
        reader = ContentReader()
        reader.add_turn("assistant", [{"type": "tool_use", "id": "t", "name": "Bash", "input": {"command": "make"}}])
        reader.add_turn("user", [{"type": "tool_result", "tool_use_id": "t", "content": "fail", "is_error": True}])

        [bash] = reader.collector.summaries()
        assert bash.error_count == 1
        assert bash.samples[0].data.errored


class TestClaudeCodeProvider:
    """Tests for Claude Code provider."""

    @pytest.fixture
    def claude_provider(self):
        return ClaudeCodeProvider()

    @pytest.fixture
    def session_file(self, tmp_path, monkeypatch):
        """A session with tool calls, todos, thinking and duplicated usage."""
        monkeypatch.setattr(claude_code, "SESSIONS_DIR", tmp_path)
        base = {"sessionId": "abc123", "cwd": "/home/user/webapp", "gitBranch": "main"}
        usage = {"input_tokens": 100, "output_tokens": 50,
                 "cache_read_input_tokens": 10, "cache_creation_input_tokens": 5}
        entries = [
            {**base, "type": "user", "timestamp": "2025-01-01T10:00:00Z",
             "message": {"role": "user", "content": "Fix the login bug"}},
            {**base, "type": "assistant", "timestamp": "2025-01-01T10:01:00Z",
             "message": {"role": "assistant", "id": "msg_1", "model": "claude-sonnet-4", "usage": usage,
                         "content": [
                             {"type": "thinking", "thinking": "Need to look at the auth module first."},
                             {"type": "text", "text": "Let me check."},
                             {"type": "tool_use", "id": "tu1", "name": "Bash", "input": {"command": "pytest"}},
                         ]}},
            {**base, "type": "assistant", "timestamp": "2025-01-01T10:01:01Z",
             "message": {"role": "assistant", "id": "msg_1", "model": "claude-sonnet-4", "usage": usage,
                         "content": [
                             {"type": "tool_use", "id": "tu2", "name": "Edit",
                              "input": {"file_path": "/home/user/webapp/auth.py",
                                        "old_string": "a", "new_string": "b"}},
                         ]}},
            "not json",
            {**base, "type": "user", "timestamp": "2025-01-01T10:02:00Z",
             "message": {"role": "user", "content": [
                 {"type": "tool_result", "tool_use_id": "tu1", "content": "3 passed"},
                 {"type": "tool_result", "tool_use_id": "tu2", "content": "ok"},
             ]}},
            {**base, "type": "assistant", "timestamp": "2025-01-01T10:03:00Z",
             "message": {"role": "assistant", "id": "msg_2", "model": "claude-sonnet-4",
                         "usage": {"input_tokens": 20, "output_tokens": 10},
                         "content": [
                             {"type": "tool_use", "id": "tu3", "name": "TodoWrite", "input": {"todos": [
                                 {"content": "Add tests", "status": "pending"},
                                 {"content": "Fix bug", "status": "completed"},
                             ]}},
                         ]}},
            {**base, "type": "assistant", "timestamp": "2025-01-01T10:05:00Z",
             "message": {"role": "assistant", "id": "msg_3", "content": [{"type": "text", "text": "Done with the fix."}]}},
        ]
        return write_jsonl(tmp_path / "-home-user-webapp" / "abc123.jsonl", entries)

    def test_provider_attributes(self, claude_provider):
        """Test provider has required attributes."""
        assert claude_provider.name == "claude"
        assert claude_provider.display_name == "Claude Code"
        assert claude_provider.icon == "🧠"
        assert claude_provider.color == "cyan"

    def test_get_resume_command(self, claude_provider):
        """Test resume command generation."""
        assert claude_provider.get_resume_command(make_session("claude", "test-456")) == "claude --resume test-456"

    def test_parse_session(self, claude_provider, session_file):
        session = claude_provider.parse_session(session_file)
        assert session is not None
        assert session.id == "abc123"
        assert session.source == "claude"
        assert session.cwd == "/home/user/webapp"
        assert session.branch == "main"
        assert session.summary == "Fix the login bug"
        assert session.model == "claude-sonnet-4"
        assert session.lines == 6
        assert session.created_at == datetime(2025, 1, 1, 10, tzinfo=timezone.utc)
        assert session.updated_at == datetime(2025, 1, 1, 10, 5, tzinfo=timezone.utc)

    def test_summary_entry_preferred(self, claude_provider, tmp_path):
        path = write_jsonl(tmp_path / "p" / "s.jsonl", [
            {"type": "summary", "summary": "Login bug fix"},
            {"type": "user", "message": {"role": "user", "content": "Fix the login bug"}},
        ])
        assert claude_provider.parse_session(path).summary == "Login bug fix"

    def test_empty_session_skipped(self, claude_provider, tmp_path):
        path = write_jsonl(tmp_path / "p" / "empty.jsonl", [{"type": "file-history-snapshot"}])
        assert claude_provider.parse_session(path) is None

    def test_load_sessions(self, claude_provider, session_file):
        sessions = claude_provider.load_sessions()
        assert [s.id for s in sessions] == ["abc123"]

    def test_extract_context(self, claude_provider, session_file):
        session = claude_provider.parse_session(session_file)
        context = claude_provider.extract_context(session)

        assert context.files_modified == ["/home/user/webapp/auth.py"]
        assert context.pending_tasks == ["Add tests"]
        assert [t.name for t in context.tool_summaries] == ["Bash", "Edit"]

        bash = context.tool_summaries[0].samples[0].data
        assert isinstance(bash, ShellSample)
        assert bash.exit_code == 0
        assert bash.stdout_tail == "3 passed"

        notes = context.session_notes
        assert notes.token_usage.input == 120
        assert notes.token_usage.output == 60
        assert notes.cache_tokens.read == 10
        assert notes.cache_tokens.creation == 5
        assert notes.reasoning == ["Need to look at the auth module first."]

        contents = [m.content for m in context.recent_messages]
        assert contents == [
            "Fix the login bug",
            "Let me check.",
            "[Used tools: Edit]",
            "[Used tools: TodoWrite]",
            "Done with the fix.",
        ]

    def test_markdown(self, claude_provider, session_file):
        context = claude_provider.extract_context(claude_provider.parse_session(session_file))
        assert "| **Source** | Claude Code |" in context.markdown
        assert "### Shell (1 calls)" in context.markdown
        assert "### Edit (1 calls)" in context.markdown
        assert "- [ ] Add tests" in context.markdown
        assert "## Key Decisions" in context.markdown

    def test_compact_summary(self, claude_provider, tmp_path):
        path = write_jsonl(tmp_path / "p" / "c.jsonl", [
            {"type": "user", "message": {"role": "user", "content": "Keep going"}},
            {"type": "user", "isCompactSummary": True,
             "message": {"role": "user", "content": "Previously: refactored auth"}},
        ])
        context = claude_provider.extract_context(claude_provider.parse_session(path))
        assert context.session_notes.compact_summary == "Previously: refactored auth"
        assert "## Session Context (Compacted)" in context.markdown

    def test_minimal_preset_trims_messages(self, claude_provider, session_file):
        context = claude_provider.extract_context(claude_provider.parse_session(session_file), get_preset("minimal"))
        assert len(context.recent_messages) == 4
        assert context.recent_messages[-1].content == "Done with the fix."


class TestDroidProvider:
    """Tests for Factory Droid provider."""

    @pytest.fixture
    def droid_provider(self):
        return DroidProvider()

    @pytest.fixture
    def session_file(self, tmp_path, monkeypatch):
        monkeypatch.setattr(droid, "SESSIONS_DIR", tmp_path)
        project_dir = tmp_path / "-w"
        entries = [
            {"type": "session_start", "id": "s1", "title": "Refactor auth", "cwd": "/w"},
            {"type": "message", "timestamp": "2025-01-01T09:00:00Z",
             "message": {"role": "user", "content": [{"type": "text", "text": "Refactor the auth module"}]}},
            {"type": "message", "timestamp": "2025-01-01T09:01:00Z",
             "message": {"role": "assistant", "content": [
                 {"type": "text", "text": "Creating a helper."},
                 {"type": "tool_use", "id": "t1", "name": "Create",
                  "input": {"file_path": "/w/new.py", "content": "x = 1\ny = 2"}},
             ]}},
            {"type": "message", "timestamp": "2025-01-01T09:02:00Z",
             "message": {"role": "user", "content": [
                 {"type": "tool_result", "tool_use_id": "t1", "content": "File created successfully at /w/new.py"},
             ]}},
        ]
        path = write_jsonl(project_dir / "s1.jsonl", entries)
        (project_dir / "s1.settings.json").write_text(json.dumps({
            "model": "claude-opus-4",
            "tokenUsage": {"inputTokens": 1000, "outputTokens": 200, "thinkingTokens": 50},
            "assistantActiveTimeMs": 120000,
        }))
        return path

    def test_provider_attributes(self, droid_provider):
        """Test provider has required attributes."""
        assert droid_provider.name == "droid"
        assert droid_provider.display_name == "Factory Droid"
        assert droid_provider.icon == "🤖"
        assert droid_provider.color == "green"

    def test_get_resume_command(self, droid_provider):
        """Test resume command generation."""
        assert droid_provider.get_resume_command(make_session("droid")) == "droid -s test-123"

    def test_parse_session(self, droid_provider, session_file):
        session = droid_provider.parse_session(session_file)
        assert session.id == "s1"
        assert session.summary == "Refactor auth"
        assert session.cwd == "/w"
        assert session.model == "claude-opus-4"

    def test_extract_context(self, droid_provider, session_file):
        context = droid_provider.extract_context(droid_provider.parse_session(session_file))
        assert context.files_modified == ["/w/new.py"]

        write = context.tool_summaries[0].samples[0].data
        assert isinstance(write, WriteSample)
        assert write.is_new_file
        assert write.diff_stats.added == 2

        notes = context.session_notes
        assert notes.thinking_tokens == 50
        assert notes.active_time_ms == 120000
        assert "| **Active Time** | 2 min |" in context.markdown
        assert "| **Tokens Used** | 1,000 in / 200 out |" in context.markdown
        assert "(new file)" in context.markdown

    def test_missing_settings(self, droid_provider, session_file):
        session_file.with_suffix(".settings.json").unlink()
        session = droid_provider.parse_session(session_file)
        assert session.model is None
        assert droid_provider.extract_context(session).session_notes is None


class TestAmpProvider:
    """Tests for Amp provider."""

    @pytest.fixture
    def thread_file(self, tmp_path, monkeypatch):
        monkeypatch.setattr(amp, "THREADS_DIR", tmp_path)
        thread = {
            "id": "T-1",
            "title": "Add caching",
            "created": 1735725600000,
            "messages": [
                {"role": "user", "messageId": 0, "content": [{"type": "text", "text": "Cache the API calls"}]},
                {"role": "assistant", "messageId": 1, "content": [
                    {"type": "text", "text": "I added the cache. Next step is to add eviction. Everything else works."},
                ]},
            ],
            "usageLedger": {"events": [
                {"operationType": "title-generation", "model": "small", "tokens": {"input": 5, "output": 5}},
                {"model": "claude-x", "tokens": {"input": 100, "output": 40}},
            ]},
            "env": {"initial": {"tags": ["client:cli", "model:claude-opus-4"]}},
        }
        path = tmp_path / "T-1.json"
        path.write_text(json.dumps(thread))
        return path

    def test_parse_session(self, thread_file):
        session = AmpProvider().parse_session(thread_file)
        assert session.id == "T-1"
        assert session.source == "amp"
        assert session.summary == "Add caching"
        assert session.model == "claude-opus-4"
        assert session.created_at == datetime(2025, 1, 1, 10, tzinfo=timezone.utc)

    def test_extract_context(self, thread_file):
        provider = AmpProvider()
        context = provider.extract_context(provider.parse_session(thread_file))
        assert context.session_notes.token_usage.input == 100
        assert context.session_notes.token_usage.output == 40
        assert context.pending_tasks == ["Next step is to add eviction"]
        assert [m.role for m in context.recent_messages] == ["user", "assistant"]
        assert context.tool_summaries == []
        assert "## Tool Activity" not in context.markdown

    def test_invalid_thread(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"title": "no id"}))
        assert AmpProvider().parse_session(path) is None

    def test_discover(self, thread_file):
        assert AmpProvider().discover_session_files() == [thread_file]


class TestClineProviders:
    """Tests for the Cline-family providers."""

    @pytest.fixture
    def task_file(self, tmp_path, monkeypatch):
        monkeypatch.setattr(cline, "global_storage_dirs", lambda: [tmp_path])
        messages = [
            {"ts": 1700000000000, "type": "say", "say": "text", "text": "Build a todo app"},
            {"ts": 1700000001000, "type": "say", "say": "api_req_started",
             "text": json.dumps({"tokensIn": 100, "tokensOut": 20, "cacheReads": 5})},
            {"ts": 1700000002000, "type": "say", "say": "reasoning", "text": "The user wants a simple todo app."},
            {"ts": 1700000003000, "type": "say", "say": "text", "partial": True, "text": "Creating"},
            {"ts": 1700000004000, "type": "say", "say": "text", "partial": True, "text": "Creating the app"},
            {"ts": 1700000005000, "type": "say", "say": "completion_result",
             "text": "Done.\n- [ ] Add persistence\n- [ ] Style it"},
        ]
        task_dir = tmp_path / "saoudrizwan.claude-dev" / "tasks" / "1700000000000"
        task_dir.mkdir(parents=True)
        path = task_dir / "ui_messages.json"
        path.write_text(json.dumps(messages))
        return path

    def test_identities(self):
        assert [p.name for p in (ClineProvider(), RooCodeProvider(), KiloCodeProvider())] == [
            "cline", "roo-code", "kilo-code",
        ]

    def test_discovery_per_extension(self, task_file):
        """Each provider only finds tasks of its own extension."""
        assert ClineProvider().discover_session_files() == [task_file]
        assert RooCodeProvider().discover_session_files() == []
        assert ClineProvider().is_available()
        assert not KiloCodeProvider().is_available()

    def test_parse_session(self, task_file):
        session = ClineProvider().parse_session(task_file)
        assert session.id == "1700000000000"
        assert session.source == "cline"
        assert session.summary == "Build a todo app"
        assert session.lines == 6
        assert session.created_at == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)

    def test_extract_context(self, task_file):
        provider = ClineProvider()
        context = provider.extract_context(provider.parse_session(task_file))
        assert [m.content for m in context.recent_messages] == [
            "Build a todo app",
            "The user wants a simple todo app.",
            "Creating the app",
            "Done.\n- [ ] Add persistence\n- [ ] Style it",
        ]
        assert context.pending_tasks == ["- [ ] Add persistence", "- [ ] Style it"]
        notes = context.session_notes
        assert notes.token_usage.input == 100
        assert notes.token_usage.output == 20
        assert notes.cache_tokens.read == 5
        assert notes.cache_tokens.creation == 0
        assert notes.reasoning == ["The user wants a simple todo app."]
        assert "| **Source** | Cline |" in context.markdown


class TestCopilotProvider:
    """Tests for GitHub Copilot CLI provider."""

    @pytest.fixture
    def session_dir(self, tmp_path, monkeypatch):
        monkeypatch.setattr(copilot, "SESSIONS_DIR", tmp_path)
        session_dir = tmp_path / "sess-1"
        session_dir.mkdir()
        (session_dir / "workspace.yaml").write_text(
            "id: sess-1\n"
            "cwd: /home/u/repo\n"
            "repository: u/repo\n"
            "branch: feature\n"
            "summary: Add login page\n"
            "created_at: 2025-01-01T10:00:00Z\n"
            "updated_at: 2025-01-01T11:00:00Z\n"
        )
        write_jsonl(session_dir / "events.jsonl", [
            {"type": "session.start", "data": {"selectedModel": "gpt-5"}, "timestamp": "2025-01-01T10:00:00Z"},
            {"type": "user.message", "data": {"content": "Add a login page"}, "timestamp": "2025-01-01T10:00:05Z"},
            {"type": "assistant.message", "timestamp": "2025-01-01T10:00:10Z", "data": {"content": "", "toolRequests": [
                {"name": "bash", "arguments": {"command": "ls"}},
                {"name": "edit", "arguments": {"path": "src/login.tsx"}},
                {"name": "report_intent", "arguments": {}},
            ]}},
            {"type": "assistant.message", "data": {"content": "Added the page."}, "timestamp": "2025-01-01T10:01:00Z"},
        ])
        return session_dir

    def test_discover(self, session_dir):
        assert CopilotProvider().discover_session_files() == [session_dir]

    def test_parse_session(self, session_dir):
        session = CopilotProvider().parse_session(session_dir)
        assert session.id == "sess-1"
        assert session.source == "copilot"
        assert session.repo == "u/repo"
        assert session.branch == "feature"
        assert session.summary == "Add login page"
        assert session.model == "gpt-5"
        assert session.updated_at == datetime(2025, 1, 1, 11, tzinfo=timezone.utc)

    def test_empty_events_skipped(self, session_dir):
        (session_dir / "events.jsonl").write_text("")
        assert CopilotProvider().parse_session(session_dir) is None

    def test_extract_context(self, session_dir):
        provider = CopilotProvider()
        context = provider.extract_context(provider.parse_session(session_dir))
        assert [m.content for m in context.recent_messages] == [
            "Add a login page",
            "[Used tools: bash, edit, report_intent]",
            "Added the page.",
        ]
        assert [t.name for t in context.tool_summaries] == ["bash", "edit"]
        assert context.files_modified == ["src/login.tsx"]
        assert "| **Repository** | u/repo @ `feature` |" in context.markdown

    def test_resume_command(self):
        assert CopilotProvider().get_resume_command(make_session("copilot")) == "copilot --resume test-123"


class TestCrushProvider:
    """Tests for Crush provider."""

    @pytest.fixture
    def db_path(self, tmp_path, monkeypatch):
        path = tmp_path / "crush.db"
        monkeypatch.setattr(crush, "DB_PATH", path)
        with closing(sqlite3.connect(path)) as conn:
            conn.executescript("""
                CREATE TABLE sessions (id TEXT PRIMARY KEY, title TEXT, prompt_tokens INTEGER, completion_tokens INTEGER);
                CREATE TABLE messages (session_id TEXT, role TEXT, parts TEXT, created_at INTEGER, model TEXT);
            """)
            conn.execute("INSERT INTO sessions VALUES ('c1', NULL, 10, 5)")
            conn.execute("INSERT INTO sessions VALUES ('c2', 'Empty', 0, 0)")
            conn.execute(
                "INSERT INTO messages VALUES (?, ?, ?, ?, ?)",
                ("c1", "user", json.dumps([{"type": "text", "data": {"text": "Write a parser"}}]), 1735725600, None),
            )
            conn.execute(
                "INSERT INTO messages VALUES (?, ?, ?, ?, ?)",
                ("c1", "assistant", json.dumps([{"type": "text", "data": {"text": "Here it is."}}]), 1735725660,
                 "claude-3"),
            )
            conn.commit()
        return path

    def test_discover(self, db_path):
        assert sorted(CrushProvider().discover_session_files()) == [db_path / "c1", db_path / "c2"]

    def test_load_sessions_skips_empty(self, db_path):
        sessions = CrushProvider().load_sessions()
        assert [s.id for s in sessions] == ["c1"]
        session = sessions[0]
        assert session.summary == "Write a parser"
        assert session.lines == 2
        assert session.original_path == db_path
        assert session.updated_at == datetime(2025, 1, 1, 10, 1, tzinfo=timezone.utc)

    def test_extract_context(self, db_path):
        provider = CrushProvider()
        session = provider.load_sessions()[0]
        context = provider.extract_context(session)
        assert [m.role for m in context.recent_messages] == ["user", "assistant"]
        assert context.session_notes.model == "claude-3"
        assert context.session_notes.token_usage.input == 10
        assert context.session.model == "claude-3"

    def test_missing_database(self, tmp_path, monkeypatch):
        monkeypatch.setattr(crush, "DB_PATH", tmp_path / "absent.db")
        provider = CrushProvider()
        assert not provider.is_available()
        assert provider.discover_session_files() == []


class TestAntigravityProvider:
    """Tests for Antigravity provider."""

    @pytest.fixture
    def log_file(self, tmp_path, monkeypatch):
        monkeypatch.setattr(antigravity, "SESSIONS_DIR", tmp_path)
        path = tmp_path / "no_repo" / "conv-1.jsonl"
        path.parent.mkdir()
        lines = [
            "\x08\x12" + json.dumps({"type": "user", "content": "Port the parser", "timestamp": "2025-02-01T08:00:00Z"}),
            json.dumps({"type": "snapshot", "content": "ignored"}),
            "garbage without json",
            json.dumps({"type": "assistant", "content": "Ported.", "timestamp": "2025-02-01T08:05:00Z"}),
        ]
        path.write_text("\n".join(lines) + "\n")
        return path

    def test_discover(self, log_file):
        assert AntigravityProvider().discover_session_files() == [log_file]

    def test_parse_session(self, log_file):
        session = AntigravityProvider().parse_session(log_file)
        assert session.id == "conv-1"
        assert session.source == "antigravity"
        assert session.repo == "antigravity"
        assert session.summary == "Port the parser"
        assert session.lines == 2
        assert session.created_at == datetime(2025, 2, 1, 8, tzinfo=timezone.utc)
        assert session.updated_at == datetime(2025, 2, 1, 8, 5, tzinfo=timezone.utc)

    def test_project_dir_is_repo(self, tmp_path):
        path = tmp_path / "webapp" / "c.jsonl"
        path.parent.mkdir()
        path.write_text(json.dumps({"type": "user", "content": "hi"}) + "\n")
        assert AntigravityProvider().parse_session(path).repo == "webapp"

    def test_no_user_text_skipped(self, tmp_path):
        path = tmp_path / "p" / "c.jsonl"
        path.parent.mkdir()
        path.write_text(json.dumps({"type": "assistant", "content": "hello"}) + "\n")
        assert AntigravityProvider().parse_session(path) is None

    def test_extract_context(self, log_file):
        provider = AntigravityProvider()
        context = provider.extract_context(provider.parse_session(log_file))
        assert [(m.role, m.content) for m in context.recent_messages] == [
            ("user", "Port the parser"),
            ("assistant", "Ported."),
        ]
        assert context.session_notes is None
        assert context.tool_summaries == []
        assert "| **Source** | Antigravity |" in context.markdown


class TestKiroProvider:
    """Tests for Kiro provider."""

    @pytest.fixture
    def session_file(self, tmp_path, monkeypatch):
        monkeypatch.setattr(kiro, "SESSIONS_DIR", tmp_path)
        workspace = tmp_path / "ws-1"
        workspace.mkdir()
        (workspace / "sessions.json").write_text(json.dumps([{"sessionId": "k1"}]))
        path = workspace / "k1.json"
        path.write_text(json.dumps({
            "sessionId": "k1",
            "workspacePath": "/home/user/shop",
            "selectedModel": "claude-sonnet-4",
            "history": [
                {"message": {"role": "user", "content": "Add a cart page"}},
                {"message": {"role": "assistant", "content": [{"type": "text", "text": "Cart page added."}]}},
                {"message": {"role": "assistant", "content": ""}},
            ],
        }))
        return path

    def test_discover_skips_index(self, session_file):
        assert KiroProvider().discover_session_files() == [session_file]

    def test_parse_session(self, session_file):
        session = KiroProvider().parse_session(session_file)
        assert session.id == "k1"
        assert session.source == "kiro"
        assert session.cwd == "/home/user/shop"
        assert session.summary == "Add a cart page"
        assert session.model == "claude-sonnet-4"
        assert session.lines == 3

    def test_summary_falls_back_to_project(self, tmp_path):
        path = tmp_path / "s.json"
        path.write_text(json.dumps({"sessionId": "k2", "workspacePath": "/w/shop", "history": []}))
        assert KiroProvider().parse_session(path).summary == "shop"

    def test_invalid_session(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"sessionId": "k3"}))
        assert KiroProvider().parse_session(path) is None

    def test_extract_context(self, session_file):
        provider = KiroProvider()
        context = provider.extract_context(provider.parse_session(session_file))
        assert [(m.role, m.content) for m in context.recent_messages] == [
            ("user", "Add a cart page"),
            ("assistant", "Cart page added."),
        ]
        assert "| **Model** | claude-sonnet-4 |" in context.markdown
        assert provider.get_resume_command(context.session) == "kiro /home/user/shop"


class TestProviderRegistry:
    """Tests for provider registry."""

    def test_all_sources_registered(self):
        """Every session source has exactly one provider, in display order."""
        from agent_handoff.providers import get_all_providers

        assert [p.name for p in get_all_providers()] == list(SOURCES)

    def test_get_provider_by_name(self):
        """Test getting provider by name."""
        from agent_handoff.providers import get_provider

        assert get_provider("droid").name == "droid"
        assert get_provider("claude").name == "claude"
        assert get_provider("unknown-provider") is None

    def test_get_available_providers(self):
        """Test getting available providers."""
        from agent_handoff.providers import get_available_providers

        assert isinstance(get_available_providers(), list)

    def test_find_session_by_prefix(self, tmp_path, monkeypatch):
        import agent_handoff.providers as providers

        monkeypatch.setattr(claude_code, "SESSIONS_DIR", tmp_path)
        monkeypatch.setattr(providers, "get_available_providers", lambda: [ClaudeCodeProvider()])
        for session_id in ("aaa111", "aab222"):
            write_jsonl(tmp_path / "p" / f"{session_id}.jsonl", [
                {"type": "user", "sessionId": session_id, "message": {"role": "user", "content": "hi"}},
            ])

        provider, session = providers.find_session("aaa")
        assert provider.name == "claude"
        assert session.id == "aaa111"
        assert providers.find_session("aa") is None
        assert providers.find_session("zzz") is None
