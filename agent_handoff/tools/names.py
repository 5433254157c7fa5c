"""Canonical tool names and their semantic categories.

Every provider reports tools under its own names (Claude Code's ``Bash``,
Copilot's ``bash``, Cline's ``execute_command``...). The sets below map all
known names onto one closed set of categories. They are also the single
source for the display order of the Tool Activity section.
"""

from typing import Optional

SHELL_TOOLS = frozenset({
    "Bash", "bash", "shell", "Execute", "exec_command", "run_shell_command",
    "run_terminal_cmd", "execute_command", "local_shell",
})
WRITE_TOOLS = frozenset({
    "Write", "write", "Create", "create", "write_file", "write_to_file",
    "create_file",
})
EDIT_TOOLS = frozenset({
    "Edit", "edit", "MultiEdit", "NotebookEdit", "ApplyPatch", "apply_patch",
    "replace", "replace_in_file", "edit_file", "search_replace",
    "str_replace_editor", "str_replace_based_edit_tool",
})
READ_TOOLS = frozenset({
    "Read", "read", "view", "read_file", "read_many_files", "NotebookRead",
    "LS", "list_files", "list_directory",
})
GREP_TOOLS = frozenset({
    "Grep", "grep", "search_file_content", "search_files", "grep_search",
    "rg",
})
GLOB_TOOLS = frozenset({
    "Glob", "glob", "file_search", "glob_file_search",
})
SEARCH_TOOLS = frozenset({
    "WebSearch", "web_search", "google_web_search", "codebase_search",
})
FETCH_TOOLS = frozenset({
    "WebFetch", "web_fetch", "webfetch", "FetchUrl", "fetch",
})
TASK_TOOLS = frozenset({
    "Task", "task", "Agent", "spawn_agent",
})
TASK_OUTPUT_TOOLS = frozenset({
    "TaskOutput", "AgentOutput",
})
ASK_TOOLS = frozenset({
    "AskUserQuestion", "ask_user", "ask_followup_question",
})

# Bookkeeping tools that never show up in the Tool Activity section
SKIP_TOOLS = frozenset({
    "TodoWrite", "TodoRead", "todo_write", "update_todo_list", "report_intent",
    "ExitPlanMode", "think", "attempt_completion",
})

# Reserved catch-all category for plugin (MCP) and unknown tools
MCP_CATEGORY = "mcp"

CATEGORIES = (
    "shell", "write", "edit", "read", "grep", "glob",
    "search", "fetch", "task", "ask", MCP_CATEGORY,
)

# (tool set, category, display priority)
_CATEGORY_SETS = (
    (SHELL_TOOLS, "shell", 0),
    (WRITE_TOOLS, "write", 1),
    (EDIT_TOOLS, "edit", 2),
    (READ_TOOLS, "read", 3),
    (GREP_TOOLS, "grep", 4),
    (GLOB_TOOLS, "glob", 5),
    (SEARCH_TOOLS, "search", 6),
    (FETCH_TOOLS, "fetch", 7),
    (TASK_TOOLS, "task", 8),
    (TASK_OUTPUT_TOOLS, "task", 8),
    (ASK_TOOLS, "ask", 9),
)

# Priority for anything absent from every set
UNKNOWN_PRIORITY = 10


def _build_lookup() -> tuple[dict[str, str], dict[str, int]]:
    categories: dict[str, str] = {}
    order: dict[str, int] = {}
    for tools, category, priority in _CATEGORY_SETS:
        for name in tools:
            categories[name] = category
            order[name] = priority
    return categories, order


_NAME_TO_CATEGORY, _NAME_TO_ORDER = _build_lookup()


def classify_tool_name(name: str) -> Optional[str]:
    """Return the category for a raw tool name.

    Known names map to their category, bookkeeping tools return ``None``
    (callers drop them), and everything else, including ``mcp__*`` plugin
    tools, falls into the ``mcp`` catch-all.
    """
    if name in SKIP_TOOLS:
        return None
    return _NAME_TO_CATEGORY.get(name, MCP_CATEGORY)


def category_order(name: str) -> int:
    """Display priority of a tool name: shell first, unknown/MCP last."""
    return _NAME_TO_ORDER.get(name, UNKNOWN_PRIORITY)
