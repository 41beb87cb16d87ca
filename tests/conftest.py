"""Shared pytest fixtures for ThreadKeeper tests."""

from datetime import datetime, timezone
from typing import List

import pytest

from thread_keeper.collectors.base import TabSource
from thread_keeper.models import BrowserTab, HistoryEntry, SessionSnapshot, WindowInfo
from thread_keeper.session_store import SessionStore


class StaticTabSource(TabSource):
    """Tab source returning a fixed list, or raising if given an exception."""

    def __init__(self, name: str, tabs=None, error: Exception = None):
        self.name = name
        self.tabs = list(tabs or [])
        self.error = error
        self.calls = 0

    def collect(self) -> List[BrowserTab]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.tabs)


class FakeClock:
    """Mutable clock for stores and history sources."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(tmp_path, clock):
    """A fresh session store in a temporary data directory."""
    return SessionStore(tmp_path / "data", clock=clock)


@pytest.fixture
def sample_snapshot():
    """A snapshot touching every field."""
    return SessionSnapshot(
        windows=[
            WindowInfo(process_name="Code", title="main.py - thread-keeper"),
            WindowInfo(process_name="chrome", title="Docs - Google Chrome"),
        ],
        clipboard="git rebase -i HEAD~3",
        recent_files=["/home/user/notes/plan.md"],
        browser_tabs=[
            BrowserTab(url="https://docs.python.org/3/library/sqlite3.html", title="sqlite3", browser_kind="chrome"),
        ],
        browser_history=[
            HistoryEntry(
                url="https://github.com/pallets/flask",
                title="pallets/flask",
                visited_at=datetime(2025, 3, 1, 11, 45, 30, 123000, tzinfo=timezone.utc),
                browser_kind="chrome",
            ),
        ],
    )
