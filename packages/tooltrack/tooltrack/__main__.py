"""Entry point: python -m tooltrack — report tool metrics for recorded sessions."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from tooltrack.core.errors import SessionNotFoundError, ToolTrackError
from tooltrack.core.identifiers import SessionId
from tooltrack.metrics.aggregator import MetricsAggregator
from tooltrack.metrics.summary import format_summary, summarize
from tooltrack.runtime.event_store import SQLiteToolEventStore
from tooltrack.settings import SettingsManager, TrackerSettings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tooltrack",
        description="Report tool usage metrics recorded for agent sessions.",
    )
    parser.add_argument("--db", help="Path to the tool event database")
    parser.add_argument("--config-dir", help="Directory holding settings.json")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    stats = sub.add_parser("stats", help="Show metrics for a session (latest by default)")
    stats.add_argument("session", nargs="?", help="Session id")
    stats.add_argument("--json", action="store_true", help="Print raw ToolStats as JSON")
    stats.add_argument("--detailed", action="store_true", help="Include the operation mix")

    sub.add_parser("sessions", help="List recorded sessions, most recent first")

    tools = sub.add_parser("tools", help="List raw tool names recorded for a session")
    tools.add_argument("session", nargs="?", help="Session id")

    return parser


def _resolve_session(store: SQLiteToolEventStore, session: str | None) -> SessionId:
    sessions = store.list_sessions()
    if session is None:
        if not sessions:
            raise SessionNotFoundError(
                "No sessions found. Run an agent session first, then try again."
            )
        return sessions[0]
    if session not in sessions:
        raise SessionNotFoundError(f"Session not found: {session}")
    return SessionId(session)


def _cmd_stats(args: argparse.Namespace, store: SQLiteToolEventStore, settings: TrackerSettings) -> int:
    session_id = _resolve_session(store, args.session)
    aggregator = MetricsAggregator(
        store, legacy_write_policy=settings.legacy_write_policy
    )
    stats = aggregator.calculate_metrics(session_id)
    if args.json:
        print(stats.model_dump_json(indent=2))
    else:
        print(format_summary(summarize(stats), detailed=args.detailed))
    return 0


def _cmd_sessions(args: argparse.Namespace, store: SQLiteToolEventStore, settings: TrackerSettings) -> int:
    for session_id in store.list_sessions():
        print(session_id)
    return 0


def _cmd_tools(args: argparse.Namespace, store: SQLiteToolEventStore, settings: TrackerSettings) -> int:
    session_id = _resolve_session(store, args.session)
    counts = store.tool_name_counts(session_id)
    if not counts:
        print("No tool events found for this session")
        return 0
    print(f"Tool names for session {session_id}:")
    for name, count in counts.items():
        print(f"  {name} -> {count} calls")
    return 0


_COMMANDS = {
    "stats": _cmd_stats,
    "sessions": _cmd_sessions,
    "tools": _cmd_tools,
}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    settings = SettingsManager(args.config_dir).load()
    db_path = Path(args.db or settings.db_path)
    if not db_path.exists():
        print(f"No tool event database at {db_path}", file=sys.stderr)
        return 1

    try:
        store = SQLiteToolEventStore(db_path)
    except ToolTrackError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    try:
        return _COMMANDS[args.command](args, store, settings)
    except SessionNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
