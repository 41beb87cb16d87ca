"""Command-line entry point for ThreadKeeper."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .capture import CaptureOptions, build_capturer, resolve_history_minutes
from .collectors.clipboard import read_clipboard, write_clipboard
from .config import (
    AI_SUMMARY_ENABLED,
    CLIPBOARD_CAPTURE,
    DATA_DIR,
    DEBUG_PORT,
    DEFAULT_BROWSER,
    HISTORY_MINUTES_BACK,
    HISTORY_MODE,
    LOG_LEVEL,
    RELAY_PORT,
    RETENTION_DAYS,
)
from .exceptions import CaptureError
from .models import RestoreResult, SessionSnapshot, StoredSession
from .platform_probe import PlatformProbe
from .relay_server import TabRelayService
from .restorer import SessionRestorer, UrlOpener, get_process_launcher
from .session_store import SessionStore
from .summarizer import SessionSummarizer

logger = logging.getLogger(__name__)


class ThreadKeeperApp:
    """Wires the collectors, store, restorer and relay together."""

    def __init__(self, probe: Optional[PlatformProbe] = None, data_dir: Optional[Path] = None,
                 relay: Optional[TabRelayService] = None):
        self.probe = probe or PlatformProbe()
        self.data_dir = Path(data_dir or DATA_DIR or self.probe.app_data_dir())
        self.store = SessionStore(self.data_dir)
        self.relay = relay
        clipboard_reader = read_clipboard if CLIPBOARD_CAPTURE else (lambda: "")
        self.capturer = build_capturer(self.probe, relay=self.relay, debug_port=DEBUG_PORT,
                                       clipboard_reader=clipboard_reader)
        self.restorer = SessionRestorer(
            self.store,
            launcher=get_process_launcher(self.probe.os_kind),
            url_opener=UrlOpener(DEFAULT_BROWSER),
            clipboard_writer=write_clipboard,
        )
        self._summarizer: Optional[SessionSummarizer] = None

    @property
    def summarizer(self) -> SessionSummarizer:
        if self._summarizer is None:
            self._summarizer = SessionSummarizer()
        return self._summarizer

    def capture(self) -> SessionSnapshot:
        minutes = resolve_history_minutes(HISTORY_MODE, HISTORY_MINUTES_BACK, self.store.latest_captured_at())
        return self.capturer.capture(CaptureOptions(
            history_minutes_back=minutes,
            clipboard_capture=CLIPBOARD_CAPTURE,
        ))

    def summarize(self, snapshot: SessionSnapshot) -> str:
        if not AI_SUMMARY_ENABLED:
            return ""
        return self.summarizer.summarize(snapshot)


def print_help():
    """Print the interactive command list."""
    print("=" * 60)
    print("ThreadKeeper")
    print("=" * 60)
    print("Commands:")
    print("  capture        Capture the current context and save it after approval")
    print("  list           List stored sessions, newest first")
    print("  show <id>      Show a stored session")
    print("  restore <id>   Restore a stored session")
    print("  help           Show this message")
    print("  quit           Stop the relay and exit")
    print("=" * 60)
    print()


def print_snapshot(snapshot: SessionSnapshot, summary: str = ""):
    if summary:
        print(summary)
        print()
    print(f"Windows ({len(snapshot.windows)}):")
    for w in snapshot.windows:
        print(f"  {w.process_name}: {w.title}")
    print(f"Browser tabs ({len(snapshot.browser_tabs)}):")
    for t in snapshot.browser_tabs:
        print(f"  [{t.browser_kind}] {t.title} <{t.url}>")
    print(f"Browser history ({len(snapshot.browser_history)}):")
    for h in snapshot.browser_history:
        print(f"  {h.visited_at:%H:%M} {h.title} <{h.url}>")
    if snapshot.recent_files:
        print(f"Recent files ({len(snapshot.recent_files)}):")
        for path in snapshot.recent_files:
            print(f"  {path}")
    if snapshot.clipboard:
        preview = snapshot.clipboard.replace("\n", " ")[:80]
        print(f"Clipboard: {preview}")


def print_session(session: StoredSession):
    print(f"Session {session.id}")
    print(f"Captured {session.captured_at:%Y-%m-%d %H:%M:%S %Z}")
    if session.user_note:
        print(f"Note: {session.user_note}")
    print()
    print_snapshot(
        SessionSnapshot(
            windows=session.windows,
            clipboard=session.clipboard,
            recent_files=session.recent_files,
            browser_tabs=session.browser_tabs,
            browser_history=session.browser_history,
        ),
        summary=session.ai_summary,
    )


def print_restore_result(result: RestoreResult):
    if not result.success:
        print("✗ Session could not be loaded\n")
        return
    for outcome in result.window_outcomes:
        print(f"  {outcome.process_name} ({outcome.outcome})")
    print(f"✓ Restored {len(result.window_outcomes)} apps, opened {result.urls_opened} URLs"
          + (", clipboard restored" if result.clipboard_restored else ""))
    print()


def confirm(prompt: str) -> bool:
    try:
        answer = input(prompt)
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def run_capture(app: ThreadKeeperApp, note: str = "", summarize: bool = True, assume_yes: bool = False) -> int:
    try:
        snapshot = app.capture()
    except CaptureError as e:
        print(f"✗ {e}\n")
        return 1

    summary = app.summarize(snapshot) if summarize else ""
    print_snapshot(snapshot, summary)
    print()

    if not assume_yes and not confirm("Save this session? [y/N] "):
        print("Session discarded\n")
        return 0

    session = app.store.save(snapshot, ai_summary=summary, user_note=note)
    print(f"✓ Saved session {session.id}\n")
    return 0


def run_list(app: ThreadKeeperApp) -> int:
    entries = app.store.list_index()
    if not entries:
        print("No stored sessions\n")
        return 0
    for entry in entries:
        first_line = entry.ai_summary.splitlines()[0] if entry.ai_summary else ""
        print(f"{entry.id}  {entry.captured_at:%Y-%m-%d %H:%M}  {first_line}")
    print()
    return 0


def run_show(app: ThreadKeeperApp, session_id: str) -> int:
    session = app.store.load(session_id)
    if session is None:
        print(f"✗ Session {session_id} not found or failed its integrity check\n")
        return 1
    print_session(session)
    return 0


def run_restore(app: ThreadKeeperApp, session_id: str) -> int:
    result = app.restorer.restore(session_id)
    print_restore_result(result)
    return 0 if result.success else 1


def run_serve(app: ThreadKeeperApp) -> int:
    """Relay in the background, commands from stdin in the foreground."""
    if app.relay is not None and app.relay.start():
        print(f"Tab relay listening on 127.0.0.1:{app.relay.port}")
    removed = app.store.prune(RETENTION_DAYS)
    if removed:
        print(f"Pruned {removed} sessions older than {RETENTION_DAYS} days")
    print_help()

    try:
        while True:
            try:
                line = input("> ").strip()
            except EOFError:
                break
            if not line:
                continue
            command, _, argument = line.partition(" ")
            command = command.lower()
            argument = argument.strip()

            if command in ("quit", "exit"):
                break
            elif command == "capture":
                run_capture(app)
            elif command == "list":
                run_list(app)
            elif command == "show" and argument:
                run_show(app, argument)
            elif command == "restore" and argument:
                run_restore(app, argument)
            elif command == "help":
                print_help()
            else:
                print(f"Unknown command: {line}\n")
    except KeyboardInterrupt:
        print("\n\nInterrupted. Goodbye!")
    finally:
        if app.relay is not None:
            app.relay.stop()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="thread-keeper", description="Capture and restore working context.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("serve", help="Run the tab relay and an interactive prompt")

    capture = subparsers.add_parser("capture", help="Capture the current context")
    capture.add_argument("--note", default="", help="Note stored with the session")
    capture.add_argument("--no-summary", action="store_true", help="Skip the AI summary")
    capture.add_argument("--yes", action="store_true", help="Save without asking for approval")

    subparsers.add_parser("list", help="List stored sessions")

    show = subparsers.add_parser("show", help="Show a stored session")
    show.add_argument("session_id")

    restore = subparsers.add_parser("restore", help="Restore a stored session")
    restore.add_argument("session_id")

    prune = subparsers.add_parser("prune", help="Delete old sessions")
    prune.add_argument("--days", type=int, default=RETENTION_DAYS, help="Retention horizon in days")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    probe = PlatformProbe()
    relay = None
    if args.command == "serve":
        data_dir = Path(DATA_DIR or probe.app_data_dir())
        relay = TabRelayService(port=RELAY_PORT, token_file=data_dir / ".relay-token")
    app = ThreadKeeperApp(probe=probe, relay=relay)

    if args.command == "serve":
        return run_serve(app)
    if args.command == "capture":
        return run_capture(app, note=args.note, summarize=not args.no_summary, assume_yes=args.yes)
    if args.command == "list":
        return run_list(app)
    if args.command == "show":
        return run_show(app, args.session_id)
    if args.command == "restore":
        return run_restore(app, args.session_id)
    if args.command == "prune":
        removed = app.store.prune(args.days)
        print(f"Pruned {removed} sessions older than {args.days} days")
        return 0
    return 2


if __name__ == "__main__":
    sys.exit(main())
