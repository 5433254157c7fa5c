"""Aggregate raw tool invocations into ToolUsageSummary records.

Providers feed every tool call they find to a SummaryCollector. The
collector keeps counts per tool name, the first few samples per tool
(oldest first) and the list of files touched by write/edit tools.
"""

import difflib
import json
from dataclasses import dataclass, field
from typing import Optional

from ..models import (
    AskSample,
    DiffStats,
    EditSample,
    FetchSample,
    GlobSample,
    GrepSample,
    McpSample,
    ReadSample,
    SearchSample,
    ShellSample,
    StructuredToolSample,
    TaskSample,
    ToolSample,
    ToolUsageSummary,
    WriteSample,
)
from .names import classify_tool_name

# Samples kept per tool; later invocations only bump the count
SAMPLES_PER_TOOL = 5

# Lines of shell output kept for the stdout tail
STDOUT_TAIL_LINES = 5

PARAMS_MAX_CHARS = 100
RESULT_MAX_CHARS = 100
PREVIEW_MAX_CHARS = 80

FILE_PATH_KEYS = ("file_path", "path", "filePath", "absolute_path", "target_file", "notebook_path")


def truncate(text: str, max_len: int = 100) -> str:
    """Truncate text with ellipsis."""
    if len(text) <= max_len:
        return text
    return text[:max_len - 3] + "..."


def _first_str(args: dict, *keys: str) -> str:
    for key in keys:
        value = args.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


def _int_or_none(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _one_line(text: str) -> str:
    return " ".join(text.split())


def make_diff(old: str, new: str, file_path: str = "") -> tuple[str, DiffStats]:
    """Build a unified diff between two file contents and count +/- lines."""
    diff_lines = list(difflib.unified_diff(
        old.splitlines(),
        new.splitlines(),
        fromfile=f"a/{file_path}",
        tofile=f"b/{file_path}",
        lineterm="",
    ))
    added = sum(1 for line in diff_lines if line.startswith("+") and not line.startswith("+++"))
    removed = sum(1 for line in diff_lines if line.startswith("-") and not line.startswith("---"))
    return "\n".join(diff_lines), DiffStats(added=added, removed=removed)


def _edit_pairs(args: dict) -> list[tuple[str, str]]:
    """Old/new string pairs from single and multi-edit argument shapes."""
    edits = args.get("edits")
    if isinstance(edits, list):
        pairs = []
        for edit in edits:
            if isinstance(edit, dict):
                pairs.append((str(edit.get("old_string", "")), str(edit.get("new_string", ""))))
        return pairs
    old = args.get("old_string", args.get("old_str"))
    new = args.get("new_string", args.get("new_str"))
    if isinstance(old, str) or isinstance(new, str):
        return [(old or "", new or "")]
    return []


def build_sample_data(
    category: str,
    name: str,
    args: dict,
    result: Optional[str] = None,
    errored: bool = False,
    is_new_file: bool = False,
) -> StructuredToolSample:
    """Build the structured sample for one invocation of a classified tool."""
    fp = _first_str(args, *FILE_PATH_KEYS)

    if category == "shell":
        command = _first_str(args, "command", "cmd", "commandLine")
        if not command and isinstance(args.get("command"), list):
            command = " ".join(str(part) for part in args["command"])
        if result is None:
            return ShellSample(command=command, errored=errored)
        if errored:
            return ShellSample(command=command, exit_code=1, errored=True, error_message=result.strip() or None)
        tail = "\n".join(result.rstrip().splitlines()[-STDOUT_TAIL_LINES:])
        return ShellSample(command=command, exit_code=0, stdout_tail=tail or None)

    if category == "read":
        offset = _int_or_none(args.get("offset", args.get("start_line")))
        limit = _int_or_none(args.get("limit"))
        end = _int_or_none(args.get("end_line"))
        if end is None and offset is not None and limit:
            end = offset + limit - 1
        return ReadSample(file_path=fp or _first_str(args, "dir_path"), line_start=offset, line_end=end)

    if category == "write":
        content = args.get("content", args.get("file_text"))
        if isinstance(content, str):
            diff, stats = make_diff("", content, fp)
            return WriteSample(file_path=fp, is_new_file=is_new_file, diff=diff, diff_stats=stats)
        return WriteSample(file_path=fp, is_new_file=is_new_file)

    if category == "edit":
        pairs = _edit_pairs(args)
        if pairs:
            old = "\n".join(p[0] for p in pairs)
            new = "\n".join(p[1] for p in pairs)
            diff, stats = make_diff(old, new, fp)
            return EditSample(file_path=fp, diff=diff, diff_stats=stats)
        patch = _first_str(args, "patch", "input", "diff")
        if patch:
            return EditSample(file_path=fp, diff=patch)
        return EditSample(file_path=fp)

    if category == "grep":
        match_count = None
        if result is not None and not errored:
            match_count = len([line for line in result.splitlines() if line.strip()])
        return GrepSample(
            pattern=_first_str(args, "pattern", "regex", "query"),
            target_path=fp or None,
            match_count=match_count,
        )

    if category == "glob":
        result_count = None
        if result is not None and not errored:
            result_count = len([line for line in result.splitlines() if line.strip()])
        return GlobSample(pattern=_first_str(args, "pattern", "glob_pattern") or fp, result_count=result_count)

    if category == "search":
        return SearchSample(query=_first_str(args, "query", "search_term"))

    if category == "fetch":
        preview = truncate(_one_line(result), PREVIEW_MAX_CHARS) if result and not errored else None
        return FetchSample(url=_first_str(args, "url", "uri"), result_preview=preview)

    if category == "task":
        return TaskSample(
            description=_first_str(args, "description", "prompt"),
            agent_type=_first_str(args, "subagent_type", "agent_type") or None,
            result_summary=truncate(_one_line(result), 120) if result else None,
        )

    if category == "ask":
        return AskSample(question=truncate(_first_str(args, "question", "prompt"), PREVIEW_MAX_CHARS))

    params = json.dumps(args, ensure_ascii=False)[:PARAMS_MAX_CHARS] if args else None
    return McpSample(
        tool_name=name,
        params=params,
        result=truncate(_one_line(result), RESULT_MAX_CHARS) if result else None,
    )


def summarize_call(name: str, category: str, args: dict) -> str:
    """One-line, human-readable description of a tool call."""
    if category == "shell":
        command = _first_str(args, "command", "cmd")
        if command:
            return truncate(f"$ {_one_line(command)}", 120)
    if category in ("read", "write", "edit"):
        fp = _first_str(args, *FILE_PATH_KEYS)
        if fp:
            return f"{name} {fp}"
    args_str = json.dumps(args, ensure_ascii=False)[:PARAMS_MAX_CHARS] if args else ""
    return f"{name}({args_str})" if args_str else name


@dataclass
class PendingCall:
    """Handle for a call recorded by `SummaryCollector.begin`."""

    name: str
    category: str
    args: dict
    slot: Optional[int]  # sample index, None when over the cap


@dataclass
class _ToolEntry:
    count: int = 0
    errors: int = 0
    samples: list[ToolSample] = field(default_factory=list)


class SummaryCollector:
    """Accumulates tool invocations for one session."""

    def __init__(self, sample_cap: int = SAMPLES_PER_TOOL):
        self.sample_cap = sample_cap
        self._tools: dict[str, _ToolEntry] = {}
        self._files: dict[str, None] = {}  # insertion-ordered set

    def add(self, name: str, sample: ToolSample, errored: bool = False) -> None:
        """Count one invocation of `name`, keeping `sample` while under the cap."""
        entry = self._tools.setdefault(name, _ToolEntry())
        entry.count += 1
        if errored:
            entry.errors += 1
        if len(entry.samples) < self.sample_cap:
            entry.samples.append(sample)

    def record(
        self,
        name: str,
        args: Optional[dict] = None,
        result: Optional[str] = None,
        errored: bool = False,
        is_new_file: Optional[bool] = None,
    ) -> Optional[str]:
        """Classify and record a raw tool call.

        Returns the category, or None when the tool is bookkeeping and was
        dropped. When `is_new_file` is not given it is read from the tool
        result ("File created ...").
        """
        args = args if isinstance(args, dict) else {}
        category = classify_tool_name(name)
        if category is None:
            return None

        self._track_call(category, args)
        self.add(name, self._sample(name, category, args, result, errored, is_new_file), errored=errored)
        return category

    def begin(self, name: str, args: Optional[dict] = None) -> Optional[PendingCall]:
        """Record a call whose result arrives later.

        The call is counted and its sample slot reserved now, so samples stay
        in call order even if results arrive late or never. Pass the returned
        handle to `complete` once the result is known.
        """
        args = args if isinstance(args, dict) else {}
        category = classify_tool_name(name)
        if category is None:
            return None

        self._track_call(category, args)
        entry = self._tools.setdefault(name, _ToolEntry())
        slot = len(entry.samples) if len(entry.samples) < self.sample_cap else None
        self.add(name, self._sample(name, category, args))
        return PendingCall(name=name, category=category, args=args, slot=slot)

    def complete(
        self,
        call: PendingCall,
        result: Optional[str] = None,
        errored: bool = False,
        is_new_file: Optional[bool] = None,
    ) -> None:
        """Attach a result to a call started with `begin`."""
        entry = self._tools[call.name]
        if errored:
            entry.errors += 1
        if call.slot is not None:
            entry.samples[call.slot] = self._sample(call.name, call.category, call.args, result, errored, is_new_file)

    def _track_call(self, category: str, args: dict) -> None:
        if category in ("write", "edit"):
            self.track_file(_first_str(args, *FILE_PATH_KEYS))

    @staticmethod
    def _sample(
        name: str,
        category: str,
        args: dict,
        result: Optional[str] = None,
        errored: bool = False,
        is_new_file: Optional[bool] = None,
    ) -> ToolSample:
        if is_new_file is None:
            is_new_file = category == "write" and bool(result) and "created" in result.lower()
        data = build_sample_data(category, name, args, result=result, errored=errored, is_new_file=is_new_file)
        return ToolSample(summary=summarize_call(name, category, args), data=data)

    def track_file(self, file_path: str) -> None:
        if file_path:
            self._files.setdefault(file_path, None)

    @property
    def files_modified(self) -> list[str]:
        return list(self._files)

    def summaries(self) -> list[ToolUsageSummary]:
        """Per-tool summaries in order of first occurrence."""
        return [
            ToolUsageSummary(
                name=name,
                count=entry.count,
                samples=list(entry.samples),
                error_count=entry.errors or None,
            )
            for name, entry in self._tools.items()
        ]
