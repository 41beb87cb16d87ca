"""
Open browser tab collection.

Tabs come from three sources, in priority order:

1. The extension relay: every tab of every window, pushed by the companion
   browser extension. Authoritative whenever it holds anything.
2. The Chromium remote-debugging endpoint (``--remote-debugging-port``):
   every tab, with page titles.
3. Platform scraping: UI Automation on Windows (the address bar of each
   browser window, so only the active tab per window) or AppleScript on
   macOS (every tab of Chrome, Edge, Brave and Safari).

Sources 2 and 3 run concurrently when the relay is empty; ``choose_tabs``
decides between them.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

import httpx

from ..exceptions import MalformedOutputError
from ..models import BrowserTab
from ..platform_probe import MACOS, WINDOWS
from ..utils import AppleScriptExecutor, PowerShellExecutor, escape_applescript_string, parse_json_output
from ..utils.urls import is_http_url, strip_browser_suffix
from .base import NullTabSource, TabScope, TabSource

logger = logging.getLogger(__name__)

MAX_TABS = 30
DEBUG_PROTOCOL_TIMEOUT = 1.5
UIA_TIMEOUT = 25.0
APPLESCRIPT_TIMEOUT = 5.0
RELAY_BROWSER_KIND = "chrome"


def merge_and_cap(tabs: Sequence[BrowserTab], limit: int = MAX_TABS) -> List[BrowserTab]:
    """De-duplicate by exact URL keeping first occurrence, then cap."""
    seen = set()
    unique = []
    for tab in tabs:
        if tab.url in seen:
            continue
        seen.add(tab.url)
        unique.append(tab)
    return unique[:limit]


def choose_tabs(debug_tabs: Sequence[BrowserTab], fallback_tabs: Sequence[BrowserTab]) -> List[BrowserTab]:
    """
    Precedence between the debug-protocol and scraping results.

    The debug protocol sees every tab with its title, so any non-empty
    result from it wins outright over the scraped one.
    """
    return list(debug_tabs) if debug_tabs else list(fallback_tabs)


class RelayTabSource(TabSource):
    """Reads the latest snapshot held by the tab relay service."""

    name = "relay"
    scope = TabScope.ALL_TABS

    def __init__(self, relay):
        self.relay = relay

    def collect(self) -> List[BrowserTab]:
        if self.relay is None:
            return []
        return [
            tab.to_browser_tab(RELAY_BROWSER_KIND)
            for tab in self.relay.latest_tabs()
            if is_http_url(tab.url)
        ]


class DebugProtocolTabSource(TabSource):
    """Lists page targets from a Chromium remote-debugging port."""

    name = "debug-protocol"
    scope = TabScope.ALL_TABS

    def __init__(self, port: int = 9222, host: str = "127.0.0.1", timeout: float = DEBUG_PROTOCOL_TIMEOUT):
        self.url = f"http://{host}:{port}/json"
        self.timeout = timeout

    def collect(self) -> List[BrowserTab]:
        try:
            response = httpx.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            targets = response.json()
        except httpx.HTTPError as e:
            # Normal when the browser was not started with remote debugging
            logger.debug("Debug protocol unavailable at %s: %s", self.url, e)
            return []
        except ValueError as e:
            logger.warning("Debug protocol returned invalid JSON: %s", e)
            return []
        return parse_debug_targets(targets)


def parse_debug_targets(targets) -> List[BrowserTab]:
    """Turn the ``/json`` target list into tabs."""
    if not isinstance(targets, list):
        return []
    tabs = []
    for target in targets:
        if not isinstance(target, dict) or target.get("type") != "page":
            continue
        url = target.get("url")
        if not is_http_url(url):
            continue
        title = strip_browser_suffix(str(target.get("title") or ""))
        tabs.append(BrowserTab(url=url, title=title or url, browser_kind="chrome"))
    return tabs


# Chromium lazily builds its UI Automation tree. Phase 1 touches the root of
# every browser window, one settle delay follows, then phase 2 reads the
# address bar of each window. Emits [{proc, url, winTitle}] as JSON.
_UIA_SCRIPT = r'''
[Console]::OutputEncoding = [System.Text.Encoding]::UTF8
Add-Type -AssemblyName UIAutomationClient -ErrorAction SilentlyContinue
Add-Type -AssemblyName UIAutomationTypes -ErrorAction SilentlyContinue

$AE    = [System.Windows.Automation.AutomationElement]
$Scope = [System.Windows.Automation.TreeScope]
$Value = [System.Windows.Automation.ValuePattern]
$True_ = [System.Windows.Automation.Condition]::TrueCondition

$browsers = @('chrome', 'msedge', 'firefox', 'brave', 'opera')
$targets  = [System.Collections.Generic.List[hashtable]]::new()

# Phase 1: wake every window first
foreach ($b in $browsers) {
  Get-Process -Name $b -ErrorAction SilentlyContinue |
    Where-Object { $_.MainWindowHandle -ne 0 } |
    ForEach-Object {
      try {
        $root = $AE::FromHandle([System.IntPtr]::new([Int64]$_.MainWindowHandle))
        if ($root) {
          $null = $root.FindAll($Scope::Children, $True_)
          $targets.Add(@{ proc = $b; root = $root })
        }
      } catch {}
    }
}

if ($targets.Count -gt 0) { Start-Sleep -Milliseconds 1000 }

# Phase 2: most specific control first
$omnibox = [System.Windows.Automation.PropertyCondition]::new($AE::ClassNameProperty, 'OmniboxViewViews')
$urlbar  = [System.Windows.Automation.PropertyCondition]::new($AE::AutomationIdProperty, 'urlbar-input')
$edit    = [System.Windows.Automation.AndCondition]::new(
  [System.Windows.Automation.PropertyCondition]::new($AE::ControlTypeProperty, [System.Windows.Automation.ControlType]::Edit),
  [System.Windows.Automation.PropertyCondition]::new($AE::IsValuePatternAvailableProperty, $true))

$out = [System.Collections.Generic.List[PSObject]]::new()

foreach ($t in $targets) {
  try {
    $root  = $t.root
    $title = $root.Current.Name
    $url   = $null

    try {
      $el = $root.FindFirst($Scope::Descendants, $omnibox)
      if ($el) {
        $v = "$($el.GetCurrentPropertyValue($Value::ValueProperty))"
        if ($v.Length -gt 3) {
          if ($v -notmatch '^https?://') { $v = 'https://' + $v }
          $url = $v
        }
      }
    } catch {}

    if (-not $url) {
      try {
        $el = $root.FindFirst($Scope::Descendants, $urlbar)
        if ($el) {
          $v = $el.GetCurrentPattern($Value::Pattern).Current.Value
          if ($v -match '^https?://') { $url = $v }
        }
      } catch {}
    }

    if (-not $url) {
      foreach ($e in $root.FindAll($Scope::Descendants, $edit)) {
        try {
          $v = $e.GetCurrentPattern($Value::Pattern).Current.Value
          if ($v -match '^https?://') { $url = $v; break }
        } catch {}
      }
    }

    if ($url) {
      $out.Add([PSCustomObject]@{ proc = $t.proc; url = "$url"; winTitle = $title })
    }
  } catch {}
}

if ($out.Count -eq 0) { Write-Output '[]' } else { $out | ConvertTo-Json -Compress -Depth 2 }
'''


def parse_uia_output(output: str) -> List[BrowserTab]:
    """
    Parse the UI Automation script output.

    Raises:
        MalformedOutputError: if the output is not JSON
    """
    tabs = []
    for item in parse_json_output(output):
        if not isinstance(item, dict) or not isinstance(item.get("url"), str):
            continue
        url = item["url"].strip()
        if url and "://" not in url:
            url = "https://" + url
        if not is_http_url(url):
            continue
        title = strip_browser_suffix(str(item.get("winTitle") or ""))
        tabs.append(BrowserTab(url=url, title=title or url, browser_kind=str(item.get("proc") or "browser")))
    return tabs


class UIAutomationTabSource(TabSource):
    """Windows: reads the address bar of every browser window (active tab only)."""

    name = "ui-automation"
    scope = TabScope.ACTIVE_PER_WINDOW

    def __init__(self, executor: Optional[PowerShellExecutor] = None, timeout: float = UIA_TIMEOUT):
        self.executor = executor or PowerShellExecutor()
        self.timeout = timeout

    def collect(self) -> List[BrowserTab]:
        result = self.executor.execute(_UIA_SCRIPT, timeout=self.timeout)
        if not result.ok:
            logger.warning("UI Automation tab scrape failed: %s", result.failure)
            return []
        try:
            return parse_uia_output(result.output)
        except MalformedOutputError as e:
            logger.warning("UI Automation tab scrape returned unreadable output: %s", e)
            return []


# (application name, browser kind, title property)
MAC_BROWSERS = [
    ("Google Chrome", "chrome", "title"),
    ("Microsoft Edge", "msedge", "title"),
    ("Brave Browser", "brave", "title"),
    ("Safari", "safari", "name"),
]


def _mac_tabs_script(app_name: str, title_property: str) -> str:
    app = escape_applescript_string(app_name)
    return f'''
    if application "{app}" is running then
        tell application "{app}"
            set tabData to ""
            repeat with w in windows
                repeat with t in tabs of w
                    set tabData to tabData & (URL of t) & "|||" & ({title_property} of t) & linefeed
                end repeat
            end repeat
            return tabData
        end tell
    end if
    return ""
    '''


def parse_applescript_tabs(output: str, browser_kind: str) -> List[BrowserTab]:
    """Parse ``url|||title`` lines, dropping non-http(s) URLs."""
    tabs = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        url, _, title = line.partition("|||")
        url = url.strip()
        if not is_http_url(url):
            continue
        tabs.append(BrowserTab(url=url, title=title.strip() or url, browser_kind=browser_kind))
    return tabs


class AppleScriptTabSource(TabSource):
    """macOS: every tab of every window of the scriptable browsers."""

    name = "applescript"
    scope = TabScope.ALL_TABS

    def __init__(self, executor: Optional[AppleScriptExecutor] = None, timeout: float = APPLESCRIPT_TIMEOUT):
        self.executor = executor or AppleScriptExecutor()
        self.timeout = timeout

    def collect(self) -> List[BrowserTab]:
        tabs: List[BrowserTab] = []
        for app_name, browser_kind, title_property in MAC_BROWSERS:
            result = self.executor.execute(_mac_tabs_script(app_name, title_property), timeout=self.timeout)
            if not result.ok:
                # Not installed, not running, or automation permission denied
                logger.debug("AppleScript tab query for %s failed: %s", app_name, result.failure)
                continue
            tabs.extend(parse_applescript_tabs(result.output, browser_kind))
        return tabs


def get_fallback_tab_source(os_kind: str) -> TabSource:
    """Pick the platform scraping source for the detected OS."""
    if os_kind == WINDOWS:
        return UIAutomationTabSource()
    if os_kind == MACOS:
        return AppleScriptTabSource()
    return NullTabSource()


class TabCollector:
    """Resolves the open tab list through the ranked sources."""

    def __init__(self, relay_source: TabSource, debug_source: TabSource, fallback_source: TabSource,
                 limit: int = MAX_TABS):
        self.relay_source = relay_source
        self.debug_source = debug_source
        self.fallback_source = fallback_source
        self.limit = limit

    def collect(self) -> List[BrowserTab]:
        relay_tabs = self._safe_collect(self.relay_source)
        if relay_tabs:
            logger.info("Browser tabs captured: %d (via extension relay)", len(relay_tabs))
            return merge_and_cap(relay_tabs, self.limit)

        with ThreadPoolExecutor(max_workers=2) as executor:
            debug_future = executor.submit(self._safe_collect, self.debug_source)
            fallback_future = executor.submit(self._safe_collect, self.fallback_source)
            debug_tabs = debug_future.result()
            fallback_tabs = fallback_future.result()

        tabs = merge_and_cap(choose_tabs(debug_tabs, fallback_tabs), self.limit)
        logger.info(
            "Browser tabs captured: %d (%s: %d, %s: %d)",
            len(tabs), self.debug_source.name, len(debug_tabs), self.fallback_source.name, len(fallback_tabs),
        )
        return tabs

    @staticmethod
    def _safe_collect(source: TabSource) -> List[BrowserTab]:
        try:
            return [tab for tab in source.collect() if is_http_url(tab.url)]
        except Exception as e:
            logger.warning("Tab source '%s' failed: %s", source.name, e)
            return []
