"""
Recent browser history from Chromium-family History databases.

Chromium stores ``last_visit_time`` as microseconds since 1601-01-01 (the
Windows FILETIME epoch). The running browser keeps the database locked, so
each profile is copied to a scratch file and the copy is queried read-only.
"""

import logging
import os
import shutil
import sqlite3
import tempfile
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from ..models import HistoryEntry
from ..platform_probe import BrowserProfile
from ..utils.urls import is_http_url, normalize_history_url
from .base import HistorySource

logger = logging.getLogger(__name__)

# Milliseconds between 1601-01-01 and 1970-01-01
CHROME_EPOCH_OFFSET_MS = 11_644_473_600_000

MAX_ROWS_PER_PROFILE = 60
MAX_ENTRIES = 40

_HISTORY_QUERY = """
    SELECT url, title, last_visit_time
    FROM   urls
    WHERE  last_visit_time > ?
      AND  (url LIKE 'http://%' OR url LIKE 'https://%')
      AND  url NOT LIKE 'chrome://%'
      AND  url NOT LIKE 'edge://%'
    ORDER  BY last_visit_time DESC
    LIMIT  ?
"""


def chrome_time_to_datetime(chrome_micros: int) -> datetime:
    """Convert a Chromium timestamp to an aware UTC datetime (millisecond precision)."""
    unix_ms = int(chrome_micros) // 1000 - CHROME_EPOCH_OFFSET_MS
    return datetime.fromtimestamp(unix_ms / 1000, tz=timezone.utc)


def datetime_to_chrome_time(value: datetime) -> int:
    """Convert a datetime to Chromium microseconds since 1601-01-01."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return round(value.timestamp() * 1_000_000) + CHROME_EPOCH_OFFSET_MS * 1000


def dedupe_history(entries: Sequence[HistoryEntry], limit: int = MAX_ENTRIES) -> List[HistoryEntry]:
    """
    Newest first, one entry per URL with query and fragment stripped.

    When two entries share a normalized URL the later visit survives.
    """
    ordered = sorted(entries, key=lambda e: e.visited_at, reverse=True)
    seen = set()
    unique = []
    for entry in ordered:
        key = normalize_history_url(entry.url)
        if key in seen:
            continue
        seen.add(key)
        unique.append(entry)
    return unique[:limit]


class ChromiumHistorySource(HistorySource):
    """Reads every existing Chromium profile's History database."""

    def __init__(self, profiles: Sequence[BrowserProfile], scratch_dir: Optional[str] = None,
                 now=None):
        self.profiles = list(profiles)
        self.scratch_dir = scratch_dir
        # Injectable clock for tests
        self._now = now or (lambda: datetime.now(timezone.utc))

    def collect(self, minutes_back: int) -> List[HistoryEntry]:
        profiles = [p for p in self.profiles if Path(p.history_path).is_file()]
        if not profiles:
            return []

        cutoff = datetime_to_chrome_time(self._now()) - minutes_back * 60 * 1_000_000
        entries: List[HistoryEntry] = []
        for profile in profiles:
            try:
                entries.extend(self._read_profile(profile, cutoff))
            except (OSError, sqlite3.Error) as e:
                logger.warning("History read failed (%s): %s", profile.browser_kind, e)

        unique = dedupe_history(entries)
        logger.info("Browser history: %d entries (last %d min)", len(unique), minutes_back)
        return unique

    def _read_profile(self, profile: BrowserProfile, cutoff: int) -> List[HistoryEntry]:
        fd, scratch = tempfile.mkstemp(prefix="tk-hist-", suffix=".db", dir=self.scratch_dir)
        os.close(fd)
        try:
            shutil.copyfile(profile.history_path, scratch)
            uri = Path(scratch).resolve().as_uri() + "?mode=ro"
            with closing(sqlite3.connect(uri, uri=True)) as conn:
                rows = conn.execute(_HISTORY_QUERY, (cutoff, MAX_ROWS_PER_PROFILE)).fetchall()
        finally:
            try:
                os.remove(scratch)
            except OSError as e:
                logger.debug("Could not remove scratch copy %s: %s", scratch, e)

        entries = []
        for url, title, visit_time in rows:
            if not is_http_url(url):
                continue
            entries.append(HistoryEntry(
                url=url,
                title=title or url,
                visited_at=chrome_time_to_datetime(visit_time),
                browser_kind=profile.browser_kind,
            ))
        return entries
