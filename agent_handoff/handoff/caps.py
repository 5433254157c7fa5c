"""Display budgets for the Tool Activity section."""

from dataclasses import dataclass
from typing import Generic, Literal, Optional, Sequence, TypeVar

T = TypeVar("T")

HandoffMode = Literal["inline", "reference"]
MODES: tuple[str, ...] = ("inline", "reference")


@dataclass(frozen=True)
class DisplayCaps:
    """How much detail each tool category gets before collapsing to a count."""

    shell_detailed: int
    shell_stdout_lines: int
    write_edit_detailed: int
    write_edit_diff_lines: int
    read_entries: int
    grep_glob_search_fetch: int
    mcp_task_ask: int


# Tighter: the document is injected into another tool's prompt
INLINE_CAPS = DisplayCaps(
    shell_detailed=5,
    shell_stdout_lines=3,
    write_edit_detailed=3,
    write_edit_diff_lines=50,
    read_entries=15,
    grep_glob_search_fetch=8,
    mcp_task_ask=3,
)

# Looser: the document is written to a file for a human to read
REFERENCE_CAPS = DisplayCaps(
    shell_detailed=8,
    shell_stdout_lines=5,
    write_edit_detailed=5,
    write_edit_diff_lines=200,
    read_entries=20,
    grep_glob_search_fetch=10,
    mcp_task_ask=5,
)

_CAPS_BY_MODE = {
    "inline": INLINE_CAPS,
    "reference": REFERENCE_CAPS,
}


def get_display_caps(mode: str = "inline") -> DisplayCaps:
    """Return the caps for a handoff mode. Raises ValueError for anything else."""
    try:
        return _CAPS_BY_MODE[mode]
    except KeyError:
        raise ValueError(f"Unknown handoff mode {mode!r}; expected one of {', '.join(MODES)}") from None


@dataclass(frozen=True)
class Bounded(Generic[T]):
    """The first N items of a sequence plus how many were left out."""

    shown: list[T]
    remaining: int


def take(items: Sequence[T], limit: int, total: Optional[int] = None) -> Bounded[T]:
    """Take at most `limit` items.

    `total` is the true number of items when `items` is itself a capped
    sample (a tool's call count versus its kept samples); `remaining` is
    counted against it so shown + remaining always equals the total.
    """
    shown = list(items[:max(limit, 0)])
    if total is None:
        total = len(items)
    return Bounded(shown=shown, remaining=max(total - len(shown), 0))
