"""Unit tests for Chromium history reading."""

import sqlite3
from contextlib import closing
from datetime import datetime, timedelta, timezone

import pytest

from thread_keeper.collectors.history_collector import (
    CHROME_EPOCH_OFFSET_MS,
    ChromiumHistorySource,
    chrome_time_to_datetime,
    datetime_to_chrome_time,
    dedupe_history,
)
from thread_keeper.models import HistoryEntry
from thread_keeper.platform_probe import BrowserProfile

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _make_history_db(path, rows):
    path.parent.mkdir(parents=True, exist_ok=True)
    with closing(sqlite3.connect(path)) as conn:
        conn.execute("CREATE TABLE urls (id INTEGER PRIMARY KEY, url TEXT, title TEXT, last_visit_time INTEGER)")
        conn.executemany(
            "INSERT INTO urls (url, title, last_visit_time) VALUES (?, ?, ?)",
            [(url, title, datetime_to_chrome_time(visited)) for url, title, visited in rows],
        )
        conn.commit()


def _entry(url, minutes_ago, kind="chrome"):
    return HistoryEntry(url=url, title=url, visited_at=NOW - timedelta(minutes=minutes_ago), browser_kind=kind)


class TestEpochConversion:

    def test_unix_epoch(self):
        assert chrome_time_to_datetime(CHROME_EPOCH_OFFSET_MS * 1000) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_round_trip_within_a_millisecond(self):
        value = datetime(2024, 11, 5, 8, 30, 15, 987654, tzinfo=timezone.utc)
        back = chrome_time_to_datetime(datetime_to_chrome_time(value))
        assert abs(back - value) < timedelta(milliseconds=1)


class TestDedupeHistory:

    def test_later_visit_survives(self):
        older = _entry("https://a.example/page?utm=1", 30)
        newer = _entry("https://a.example/page#top", 5)
        assert dedupe_history([older, newer]) == [newer]

    def test_sorted_newest_first_and_capped(self):
        entries = [_entry(f"https://site{n}.example/", n) for n in range(50)]
        result = dedupe_history(list(reversed(entries)))
        assert len(result) == 40
        assert result[0].url == "https://site0.example/"


class TestChromiumHistorySource:

    def test_reads_recent_http_rows(self, tmp_path):
        db = tmp_path / "Chrome" / "History"
        _make_history_db(db, [
            ("https://recent.example/", "Recent", NOW - timedelta(minutes=10)),
            ("https://old.example/", "Old", NOW - timedelta(hours=3)),
            ("chrome://settings/", "Settings", NOW - timedelta(minutes=1)),
            ("https://untitled.example/", "", NOW - timedelta(minutes=2)),
        ])
        source = ChromiumHistorySource([BrowserProfile("chrome", db)], scratch_dir=str(tmp_path), now=lambda: NOW)

        entries = source.collect(60)

        assert [e.url for e in entries] == ["https://untitled.example/", "https://recent.example/"]
        assert entries[0].title == "https://untitled.example/"
        assert entries[1].browser_kind == "chrome"
        assert abs(entries[1].visited_at - (NOW - timedelta(minutes=10))) < timedelta(milliseconds=1)

    def test_scratch_copy_is_removed(self, tmp_path):
        db = tmp_path / "Edge" / "History"
        _make_history_db(db, [("https://a.example/", "A", NOW)])
        scratch = tmp_path / "scratch"
        scratch.mkdir()
        ChromiumHistorySource([BrowserProfile("edge", db)], scratch_dir=str(scratch), now=lambda: NOW).collect(60)
        assert list(scratch.iterdir()) == []

    def test_missing_and_corrupt_profiles_are_skipped(self, tmp_path):
        good = tmp_path / "Chrome" / "History"
        _make_history_db(good, [("https://a.example/", "A", NOW - timedelta(minutes=1))])
        corrupt = tmp_path / "Brave" / "History"
        corrupt.parent.mkdir()
        corrupt.write_bytes(b"this is not a database")
        profiles = [
            BrowserProfile("edge", tmp_path / "Edge" / "History"),
            BrowserProfile("brave", corrupt),
            BrowserProfile("chrome", good),
        ]
        entries = ChromiumHistorySource(profiles, scratch_dir=str(tmp_path), now=lambda: NOW).collect(60)
        assert [e.url for e in entries] == ["https://a.example/"]

    def test_no_profiles(self):
        assert ChromiumHistorySource([]).collect(60) == []

    @pytest.mark.parametrize("minutes_back, expected", [(5, 0), (15, 1)])
    def test_window_is_respected(self, tmp_path, minutes_back, expected):
        db = tmp_path / "Chrome" / "History"
        _make_history_db(db, [("https://a.example/", "A", NOW - timedelta(minutes=10))])
        source = ChromiumHistorySource([BrowserProfile("chrome", db)], scratch_dir=str(tmp_path), now=lambda: NOW)
        assert len(source.collect(minutes_back)) == expected
