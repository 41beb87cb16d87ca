"""Recently used files: Windows Recent folder shortcuts, macOS Spotlight."""

import logging
import os
from pathlib import Path
from typing import List, Optional

from ..exceptions import MalformedOutputError
from ..platform_probe import MACOS, WINDOWS, PlatformProbe
from ..utils import PowerShellExecutor, parse_json_output, run_tool
from .base import NullRecentFilesSource, RecentFilesSource

logger = logging.getLogger(__name__)

MAX_RECENT_FILES = 10

# Resolve the newest .lnk shortcuts to their targets
_RESOLVE_LNK_SCRIPT = (
    "$sh = New-Object -ComObject WScript.Shell; "
    "$r = Get-ChildItem $args[0] -Filter '*.lnk' | "
    "  Sort-Object LastWriteTime -Descending | Select-Object -First 15 | "
    "  ForEach-Object { try { $t = $sh.CreateShortcut($_.FullName).TargetPath; if ($t) { $t } } catch {} }; "
    "if ($r) { @($r) | ConvertTo-Json -Compress } else { '[]' }"
)


class WindowsRecentFilesSource(RecentFilesSource):
    """Targets of the shortcuts Windows keeps in the Recent folder."""

    def __init__(self, recent_dir: Path, executor: Optional[PowerShellExecutor] = None, timeout: float = 8.0):
        self.recent_dir = Path(recent_dir)
        self.executor = executor or PowerShellExecutor()
        self.timeout = timeout

    def collect(self) -> List[str]:
        if not self.recent_dir.is_dir():
            return []
        result = self.executor.execute(_RESOLVE_LNK_SCRIPT, args=[str(self.recent_dir)], timeout=self.timeout)
        if result.ok:
            try:
                paths = [p for p in parse_json_output(result.output) if isinstance(p, str) and p]
                return paths[:MAX_RECENT_FILES]
            except MalformedOutputError as e:
                logger.warning("Recent files output unreadable: %s", e)
        else:
            logger.warning("Resolving recent shortcuts failed: %s", result.failure)
        # Opening a .lnk still follows the shortcut, so the raw paths are usable
        return self._shortcut_paths()

    def _shortcut_paths(self) -> List[str]:
        try:
            shortcuts = [p for p in self.recent_dir.iterdir() if p.suffix.lower() == ".lnk"]
        except OSError:
            return []
        shortcuts.sort(key=_mtime, reverse=True)
        return [str(p) for p in shortcuts[:MAX_RECENT_FILES]]


class SpotlightRecentFilesSource(RecentFilesSource):
    """Files Spotlight reports as used within the last day."""

    def __init__(self, home: Path, timeout: float = 10.0):
        self.home = Path(home)
        self.timeout = timeout

    def collect(self) -> List[str]:
        result = run_tool(
            ["mdfind", "-onlyin", str(self.home), "kMDItemLastUsedDate >= $time.today(-1)"],
            timeout=self.timeout,
        )
        if not result.ok:
            logger.warning("Spotlight recent files query failed: %s", result.failure)
            return []
        files = [Path(line) for line in result.output.splitlines() if line.strip()]
        files = [p for p in files if p.is_file()]
        files.sort(key=_mtime, reverse=True)
        return [str(p) for p in files[:MAX_RECENT_FILES]]


def _mtime(path: Path) -> float:
    try:
        return os.stat(path).st_mtime
    except OSError:
        return 0.0


def get_recent_files_source(probe: PlatformProbe) -> RecentFilesSource:
    """Pick the recent-files source for the detected OS."""
    if probe.os_kind == WINDOWS:
        recent_dir = probe.recent_files_dir()
        if recent_dir is not None:
            return WindowsRecentFilesSource(recent_dir)
    if probe.os_kind == MACOS:
        return SpotlightRecentFilesSource(probe.home)
    return NullRecentFilesSource()
