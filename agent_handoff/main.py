#!/usr/bin/env python3
"""Agent Handoff - continue AI coding sessions across tools.

Entry point for the CLI application.
"""

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .handoff.markdown import format_timestamp
from .models import UnifiedSession
from .tools.summarizer import truncate

console = Console()
err_console = Console(stderr=True)

SIMILAR_SESSIONS_SHOWN = 3


def _provider_badge(source: str) -> Text:
    from .providers import get_provider

    provider = get_provider(source)
    text = Text()
    if provider:
        text.append(f"{provider.icon} ", style="bold")
        text.append(provider.display_name, style=f"{provider.color} bold")
    else:
        text.append(source, style="bold")
    return text


def _resolve_session(session_id: str):
    """Find a session or print similar ids and exit with status 1."""
    from .providers import discover_all_sessions, find_session

    found = find_session(session_id)
    if found is not None and found[0] is not None:
        return found

    err_console.print(f"[red]Session not found:[/red] {session_id}")
    needle = session_id.lower()[:4]
    similar = [s for s in discover_all_sessions() if needle and needle in s.id.lower()]
    if similar:
        err_console.print("Similar sessions:")
        for s in similar[:SIMILAR_SESSIONS_SHOWN]:
            err_console.print(f"  {s.id}  [dim]{s.summary or ''}[/dim]")
    sys.exit(1)


def cmd_providers(args):
    """List providers and whether their session storage exists."""
    from .providers import get_all_providers

    providers = get_all_providers()

    if args.status:
        table = Table(title="Provider Status")
        table.add_column("", width=2)
        table.add_column("Provider")
        table.add_column("Source")
        table.add_column("Path", style="dim")
        table.add_column("Sessions", justify="right")
        for p in providers:
            available = p.is_available()
            count = str(len(p.load_sessions())) if available else "-"
            table.add_row(
                Text("✓", style="green") if available else Text("✗", style="red"),
                _provider_badge(p.name),
                p.name,
                str(p.get_sessions_dir()),
                count,
            )
        console.print(table)
    else:
        console.print("Available providers:")
        for p in providers:
            status = "✓" if p.is_available() else "✗"
            console.print(f"  {status} {p.icon} {p.display_name} ({p.name})")


def cmd_list(args):
    """List sessions, newest first."""
    from .providers import discover_all_sessions

    sessions = discover_all_sessions(source=args.source)
    if not sessions:
        console.print("No sessions found.")
        return

    table = Table()
    table.add_column("Updated", style="cyan", no_wrap=True)
    table.add_column("Source")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Directory", style="green")
    table.add_column("Summary")
    for s in sessions[:args.limit]:
        table.add_row(
            format_timestamp(s.updated_at),
            _provider_badge(s.source),
            s.id[:12],
            truncate(s.cwd, 30),
            truncate(s.summary or "", 60),
        )
    console.print(table)
    if len(sessions) > args.limit:
        console.print(f"[dim]...and {len(sessions) - args.limit} more[/dim]")


def _session_details(session: UnifiedSession, resume_command: str) -> Text:
    text = Text()
    text.append("━━━ Session Details ━━━\n", style="bold cyan")
    text.append("\n")
    text.append("Source: ", style="bold")
    text.append_text(_provider_badge(session.source))
    text.append("\n")
    text.append("Summary: ", style="bold")
    text.append(f"{truncate(session.summary or '(none)', 80)}\n")
    text.append("Directory: ", style="bold")
    text.append(f"{session.cwd or '(unknown)'}\n", style="dim")
    if session.repo:
        text.append("Repository: ", style="bold")
        text.append(f"{session.repo}\n")
    if session.branch:
        text.append("Branch: ", style="bold")
        text.append(f"{session.branch}\n")
    text.append("Created: ", style="bold")
    text.append(f"{format_timestamp(session.created_at)}\n")
    text.append("Updated: ", style="bold")
    text.append(f"{format_timestamp(session.updated_at)}\n")
    if session.model:
        text.append("Model: ", style="bold")
        text.append(f"{session.model}\n", style="yellow")
    text.append("Size: ", style="bold")
    text.append(f"{session.lines:,} lines, {session.bytes:,} bytes\n")
    text.append("Session ID: ", style="bold")
    text.append(f"{session.id}\n", style="dim")
    text.append("Path: ", style="bold")
    text.append(f"{session.original_path}\n", style="dim")
    text.append("\n")
    text.append("━━━ Resume Command ━━━\n", style="bold yellow")
    text.append(f"{resume_command}\n")
    return text


def cmd_show(args):
    """Show details for one session."""
    provider, session = _resolve_session(args.session_id)
    console.print(_session_details(session, provider.get_resume_command(session)))


def cmd_handoff(args):
    """Print (or write) the handoff document for a session."""
    from dataclasses import replace

    from .config import load_config

    try:
        config = load_config(preset=args.preset)
    except ValueError as e:
        err_console.print(f"[red]{e}[/red]")
        sys.exit(2)
    if args.reference:
        config = replace(config, mode="reference")

    provider, session = _resolve_session(args.session_id)
    context = provider.extract_context(session, config)

    if args.output:
        Path(args.output).write_text(context.markdown)
        err_console.print(f"Wrote handoff for {session.id} to {args.output}")
    else:
        # Plain stdout so the document can be piped into another tool
        print(context.markdown)


def main():
    """Main entry point for agent-handoff CLI."""
    parser = argparse.ArgumentParser(
        description="Continue AI coding sessions in a different tool",
        prog="agent-handoff",
    )
    parser.add_argument(
        "--version", "-V",
        action="store_true",
        help="Show version"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    providers_parser = subparsers.add_parser("providers", help="List supported tools")
    providers_parser.add_argument("--status", "-s", action="store_true", help="Show detailed status")

    list_parser = subparsers.add_parser("list", help="List sessions")
    list_parser.add_argument("--source", "-S", help="Only sessions from this source")
    list_parser.add_argument("--limit", "-l", type=int, default=20, help="Max sessions to show")

    show_parser = subparsers.add_parser("show", help="Show session details")
    show_parser.add_argument("session_id", help="Session id or unique prefix")

    handoff_parser = subparsers.add_parser("handoff", help="Generate handoff markdown")
    handoff_parser.add_argument("session_id", help="Session id or unique prefix")
    handoff_parser.add_argument("--reference", "-r", action="store_true", help="Use the larger reference caps")
    handoff_parser.add_argument("--preset", "-p", help="Verbosity preset (minimal, standard, verbose)")
    handoff_parser.add_argument("--output", "-o", help="Write to this file instead of stdout")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.version:
        from . import __version__
        print(f"agent-handoff {__version__}")
        return

    if args.command == "providers":
        cmd_providers(args)
    elif args.command == "list":
        cmd_list(args)
    elif args.command == "show":
        cmd_show(args)
    elif args.command == "handoff":
        cmd_handoff(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
