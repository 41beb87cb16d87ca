"""Window enumeration via PowerShell (Windows) and System Events (macOS)."""

import logging
from typing import List, Optional

from ..exceptions import MalformedOutputError
from ..models import WindowInfo
from ..platform_probe import MACOS, WINDOWS
from ..utils import AppleScriptExecutor, PowerShellExecutor, parse_json_output
from .base import NullWindowSource, WindowSource

logger = logging.getLogger(__name__)

WINDOW_TOOL_TIMEOUT = 10.0

_WINDOWS_SCRIPT = (
    "[Console]::OutputEncoding = [System.Text.Encoding]::UTF8; "
    "Get-Process | Where-Object MainWindowTitle | "
    "Select-Object Name, MainWindowTitle | ConvertTo-Json -Compress"
)

# One "process|||title" line per window; ||| avoids clashes with tabs/commas in titles
_MAC_SCRIPT = '''
set output to ""
tell application "System Events"
    set procs to every process whose visible is true
    repeat with p in procs
        set pName to name of p
        try
            repeat with w in (every window of p)
                set wTitle to name of w
                if wTitle is not missing value and wTitle is not "" then
                    set output to output & pName & "|||" & wTitle & linefeed
                end if
            end repeat
        on error
            -- Skip processes that refuse window access
        end try
    end repeat
end tell
return output
'''


def parse_powershell_windows(output: str) -> List[WindowInfo]:
    """
    Parse ``Get-Process | ConvertTo-Json`` output.

    Raises:
        MalformedOutputError: if the output is not JSON
    """
    windows = []
    for item in parse_json_output(output):
        if not isinstance(item, dict):
            continue
        title = str(item.get("MainWindowTitle") or "")
        if not title:
            continue
        windows.append(WindowInfo(process_name=str(item.get("Name") or ""), title=title))
    return windows


def parse_applescript_windows(output: str) -> List[WindowInfo]:
    """Parse ``process|||title`` lines, skipping anything that does not fit."""
    windows = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        parts = line.split("|||", 1)
        if len(parts) != 2:
            continue
        name, title = parts[0].strip(), parts[1].strip()
        if title:
            windows.append(WindowInfo(process_name=name, title=title))
    return windows


class WindowsWindowSource(WindowSource):
    """Top-level windows from PowerShell's process table."""

    def __init__(self, executor: Optional[PowerShellExecutor] = None, timeout: float = WINDOW_TOOL_TIMEOUT):
        self.executor = executor or PowerShellExecutor()
        self.timeout = timeout

    def collect(self) -> List[WindowInfo]:
        result = self.executor.execute(_WINDOWS_SCRIPT, timeout=self.timeout)
        if not result.ok:
            logger.warning("Window enumeration failed: %s", result.failure)
            return []
        try:
            return parse_powershell_windows(result.output)
        except MalformedOutputError as e:
            logger.warning("Window enumeration returned unreadable output: %s", e)
            return []


class MacWindowSource(WindowSource):
    """Windows of visible processes from the macOS accessibility tree."""

    def __init__(self, executor: Optional[AppleScriptExecutor] = None, timeout: float = WINDOW_TOOL_TIMEOUT):
        self.executor = executor or AppleScriptExecutor()
        self.timeout = timeout

    def collect(self) -> List[WindowInfo]:
        result = self.executor.execute(_MAC_SCRIPT, timeout=self.timeout)
        if not result.ok:
            logger.warning("Window enumeration failed: %s", result.failure)
            return []
        return parse_applescript_windows(result.output)


def get_window_source(os_kind: str) -> WindowSource:
    """Pick the window source for the detected OS."""
    if os_kind == WINDOWS:
        return WindowsWindowSource()
    if os_kind == MACOS:
        return MacWindowSource()
    return NullWindowSource()
