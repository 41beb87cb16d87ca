"""Capture orchestration: run every collector in parallel and assemble a snapshot."""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from .collectors.base import HistorySource, NullTabSource, RecentFilesSource, WindowSource
from .collectors.clipboard import read_clipboard
from .collectors.history_collector import ChromiumHistorySource
from .collectors.recent_files import get_recent_files_source
from .collectors.tab_collector import (
    DebugProtocolTabSource,
    RelayTabSource,
    TabCollector,
    get_fallback_tab_source,
)
from .collectors.window_collector import get_window_source
from .exceptions import CaptureError
from .models import SessionSnapshot
from .platform_probe import PlatformProbe

logger = logging.getLogger(__name__)

HISTORY_MODE_FIXED = "fixed"
HISTORY_MODE_SINCE_LAST = "since-last"
MIN_SINCE_LAST_MINUTES = 15


@dataclass
class CaptureOptions:
    history_minutes_back: int = 60
    clipboard_capture: bool = True


def resolve_history_minutes(mode: str, minutes: int, last_captured_at: Optional[datetime],
                            now: Optional[datetime] = None) -> int:
    """
    Work out how far back to read browser history.

    In ``since-last`` mode the window reaches back to the previous capture,
    never less than 15 minutes. Without a previous capture, or in ``fixed``
    mode, ``minutes`` is used unchanged.
    """
    if mode != HISTORY_MODE_SINCE_LAST or last_captured_at is None:
        return minutes
    now = now or datetime.now(timezone.utc)
    elapsed = (now - last_captured_at).total_seconds() / 60
    return max(MIN_SINCE_LAST_MINUTES, math.ceil(elapsed))


class ContextCapturer:
    """Fan-out/fan-in over the window, tab, history, recent-file and clipboard collectors."""

    def __init__(
        self,
        window_source: WindowSource,
        tab_collector: TabCollector,
        history_source: HistorySource,
        recent_files_source: RecentFilesSource,
        clipboard_reader: Callable[[], str] = read_clipboard,
    ):
        self.window_source = window_source
        self.tab_collector = tab_collector
        self.history_source = history_source
        self.recent_files_source = recent_files_source
        self.clipboard_reader = clipboard_reader

    def capture(self, options: Optional[CaptureOptions] = None) -> SessionSnapshot:
        """
        Take a snapshot of the current working context.

        Each collector that raises contributes an empty result.

        Raises:
            CaptureError: if every collector failed
        """
        options = options or CaptureOptions()
        snapshot = SessionSnapshot()

        with ThreadPoolExecutor(max_workers=5) as executor:
            futures = {
                "windows": executor.submit(self.window_source.collect),
                "browser_tabs": executor.submit(self.tab_collector.collect),
                "browser_history": executor.submit(self.history_source.collect, options.history_minutes_back),
                "recent_files": executor.submit(self.recent_files_source.collect),
            }
            if options.clipboard_capture:
                futures["clipboard"] = executor.submit(self.clipboard_reader)

            failures = 0
            for field_name, future in futures.items():
                try:
                    value = future.result()
                except Exception as e:
                    logger.warning("Collector '%s' failed: %s", field_name, e)
                    failures += 1
                    continue
                setattr(snapshot, field_name, value if field_name == "clipboard" else list(value))

        if failures == len(futures):
            raise CaptureError("Every collector failed; nothing was captured")

        logger.info(
            "Captured %d windows, %d tabs, %d history entries, %d recent files",
            len(snapshot.windows),
            len(snapshot.browser_tabs),
            len(snapshot.browser_history),
            len(snapshot.recent_files),
        )
        return snapshot


def build_capturer(probe: PlatformProbe, relay=None, debug_port: int = 9222,
                   clipboard_reader: Callable[[], str] = read_clipboard) -> ContextCapturer:
    """Select the per-OS collectors once."""
    relay_source = RelayTabSource(relay) if relay is not None else NullTabSource()
    tab_collector = TabCollector(
        relay_source=relay_source,
        debug_source=DebugProtocolTabSource(port=debug_port),
        fallback_source=get_fallback_tab_source(probe.os_kind),
    )
    return ContextCapturer(
        window_source=get_window_source(probe.os_kind),
        tab_collector=tab_collector,
        history_source=ChromiumHistorySource(probe.browser_history_profiles()),
        recent_files_source=get_recent_files_source(probe),
        clipboard_reader=clipboard_reader,
    )
