"""Unit tests for ranked tab collection."""

from unittest.mock import MagicMock, patch

import httpx

from conftest import StaticTabSource
from thread_keeper.collectors.base import TabScope
from thread_keeper.collectors.tab_collector import (
    AppleScriptTabSource,
    DebugProtocolTabSource,
    RelayTabSource,
    TabCollector,
    UIAutomationTabSource,
    choose_tabs,
    merge_and_cap,
    parse_applescript_tabs,
    parse_debug_targets,
    parse_uia_output,
)
from thread_keeper.exceptions import ToolUnavailableError
from thread_keeper.models import BrowserTab, RelayTab
from thread_keeper.utils import ToolResult


def _tab(n, kind="chrome"):
    return BrowserTab(url=f"https://site{n}.example/", title=f"Site {n}", browser_kind=kind)


class TestMergeAndCap:

    def test_dedupes_by_exact_url_keeping_first(self):
        first = BrowserTab("https://a.example/", "First", "chrome")
        second = BrowserTab("https://a.example/", "Second", "msedge")
        assert merge_and_cap([first, second]) == [first]

    def test_caps_at_limit(self):
        tabs = [_tab(n) for n in range(40)]
        assert merge_and_cap(tabs) == tabs[:30]

    def test_idempotent(self):
        tabs = [_tab(n) for n in range(35)] + [_tab(3)]
        once = merge_and_cap(tabs)
        assert merge_and_cap(once) == once


class TestChooseTabs:

    def test_debug_protocol_wins_when_non_empty(self):
        assert choose_tabs([_tab(1), _tab(2)], [_tab(3)]) == [_tab(1), _tab(2)]

    def test_fallback_used_when_debug_empty(self):
        assert choose_tabs([], [_tab(3)]) == [_tab(3)]


class TestTabCollector:

    def test_relay_short_circuits_other_sources(self):
        relay = StaticTabSource("relay", [_tab(1)])
        debug = StaticTabSource("debug", [_tab(2)])
        fallback = StaticTabSource("fallback", [_tab(3)])
        assert TabCollector(relay, debug, fallback).collect() == [_tab(1)]
        assert debug.calls == 0
        assert fallback.calls == 0

    def test_empty_relay_falls_through_to_debug_protocol(self):
        relay = StaticTabSource("relay", [])
        debug = StaticTabSource("debug", [_tab(1), _tab(2)])
        fallback = StaticTabSource("fallback", [_tab(3)])
        assert TabCollector(relay, debug, fallback).collect() == [_tab(1), _tab(2)]
        assert fallback.calls == 1

    def test_failing_source_counts_as_empty(self):
        relay = StaticTabSource("relay", error=RuntimeError("boom"))
        debug = StaticTabSource("debug", error=RuntimeError("boom"))
        fallback = StaticTabSource("fallback", [_tab(3)])
        assert TabCollector(relay, debug, fallback).collect() == [_tab(3)]

    def test_non_http_urls_are_dropped(self):
        relay = StaticTabSource("relay", [])
        debug = StaticTabSource("debug", [BrowserTab("chrome://settings", "Settings", "chrome"), _tab(1)])
        assert TabCollector(relay, debug, StaticTabSource("fallback")).collect() == [_tab(1)]


class TestRelayTabSource:

    def test_converts_relay_tabs(self):
        relay = MagicMock()
        relay.latest_tabs.return_value = (
            RelayTab(url="https://a.example/x", title="A", active=True),
            RelayTab(url="file:///etc/passwd", title="nope"),
        )
        assert RelayTabSource(relay).collect() == [BrowserTab("https://a.example/x", "A", "chrome")]


class TestDebugProtocolTabSource:

    @patch("thread_keeper.collectors.tab_collector.httpx.get")
    def test_connection_refused_yields_empty(self, mock_get):
        mock_get.side_effect = httpx.ConnectError("refused")
        assert DebugProtocolTabSource().collect() == []

    @patch("thread_keeper.collectors.tab_collector.httpx.get")
    def test_reads_page_targets(self, mock_get):
        response = MagicMock()
        response.json.return_value = [
            {"type": "page", "url": "https://a.example/", "title": "A - Google Chrome"},
            {"type": "service_worker", "url": "https://a.example/sw.js", "title": "sw"},
            {"type": "page", "url": "devtools://devtools/x", "title": "DevTools"},
        ]
        mock_get.return_value = response
        assert DebugProtocolTabSource(port=9333).collect() == [BrowserTab("https://a.example/", "A", "chrome")]
        assert mock_get.call_args.args[0] == "http://127.0.0.1:9333/json"
        assert mock_get.call_args.kwargs["timeout"] == 1.5

    def test_parse_debug_targets_rejects_non_list(self):
        assert parse_debug_targets({"type": "page"}) == []


class TestUIAutomation:

    def test_scope_is_active_tab_per_window(self):
        assert UIAutomationTabSource.scope is TabScope.ACTIVE_PER_WINDOW
        assert AppleScriptTabSource.scope is TabScope.ALL_TABS

    def test_parse_adds_scheme_and_strips_suffix(self):
        output = '{"proc":"msedge","url":"github.com/pallets","winTitle":"Pallets - Microsoft Edge"}'
        assert parse_uia_output(output) == [BrowserTab("https://github.com/pallets", "Pallets", "msedge")]

    def test_tool_failure_yields_empty(self):
        executor = MagicMock()
        executor.execute.return_value = ToolResult(failure=ToolUnavailableError("no powershell"))
        assert UIAutomationTabSource(executor=executor).collect() == []


class TestAppleScriptTabs:

    def test_parse_lines(self):
        output = "https://a.example/|||A\nfile:///tmp/x|||local\nhttps://b.example/|||"
        assert parse_applescript_tabs(output, "safari") == [
            BrowserTab("https://a.example/", "A", "safari"),
            BrowserTab("https://b.example/", "https://b.example/", "safari"),
        ]

    def test_failed_browsers_are_skipped(self):
        executor = MagicMock()
        executor.execute.side_effect = [
            ToolResult(output="https://a.example/|||A"),
            ToolResult(failure=ToolUnavailableError("not installed")),
            ToolResult(output=""),
            ToolResult(output="https://b.example/|||B"),
        ]
        tabs = AppleScriptTabSource(executor=executor).collect()
        assert [t.url for t in tabs] == ["https://a.example/", "https://b.example/"]
        assert [t.browser_kind for t in tabs] == ["chrome", "safari"]
