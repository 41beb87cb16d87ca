"""OS detection and platform-specific file locations."""

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

WINDOWS = "windows"
MACOS = "macos"
LINUX = "linux"

APP_NAME = "ThreadKeeper"


def detect_os_kind(platform: Optional[str] = None) -> str:
    """
    Map ``sys.platform`` to one of ``windows``, ``macos`` or ``linux``.

    Anything that is neither Windows nor macOS is treated as Linux.
    """
    platform = platform or sys.platform
    if platform.startswith("win"):
        return WINDOWS
    if platform == "darwin":
        return MACOS
    return LINUX


@dataclass(frozen=True)
class BrowserProfile:
    """A Chromium-family profile and the path to its History database."""
    browser_kind: str
    history_path: Path


class PlatformProbe:
    """Supplies OS identity and canonical file-system locations."""

    def __init__(self, os_kind: Optional[str] = None, home: Optional[Path] = None):
        self.os_kind = os_kind or detect_os_kind()
        self.home = Path(home) if home else Path.home()

    @property
    def is_windows(self) -> bool:
        return self.os_kind == WINDOWS

    @property
    def is_mac(self) -> bool:
        return self.os_kind == MACOS

    def app_data_dir(self) -> Path:
        """Directory holding sessions, the index, signing key and relay token."""
        if self.is_mac:
            return self.home / "Library" / "Application Support" / APP_NAME
        if self.is_windows:
            appdata = os.getenv("APPDATA")
            base = Path(appdata) if appdata else self.home / "AppData" / "Roaming"
            return base / APP_NAME
        xdg = os.getenv("XDG_DATA_HOME")
        base = Path(xdg) if xdg else self.home / ".local" / "share"
        return base / "thread-keeper"

    def browser_history_profiles(self) -> List[BrowserProfile]:
        """
        Default-profile History databases of the Chromium browsers we know.

        Paths are returned whether or not they exist; the history reader
        skips missing ones.
        """
        if self.is_mac:
            support = self.home / "Library" / "Application Support"
            roots = [
                ("chrome", support / "Google" / "Chrome"),
                ("edge", support / "Microsoft Edge"),
                ("brave", support / "BraveSoftware" / "Brave-Browser"),
                ("chrome", support / "Google" / "Chrome Beta"),
            ]
        elif self.is_windows:
            local = self.home / "AppData" / "Local"
            roots = [
                ("chrome", local / "Google" / "Chrome" / "User Data"),
                ("edge", local / "Microsoft" / "Edge" / "User Data"),
                ("brave", local / "BraveSoftware" / "Brave-Browser" / "User Data"),
                ("chrome", local / "Google" / "Chrome Beta" / "User Data"),
            ]
        else:
            config = self.home / ".config"
            roots = [
                ("chrome", config / "google-chrome"),
                ("edge", config / "microsoft-edge"),
                ("brave", config / "BraveSoftware" / "Brave-Browser"),
                ("chrome", config / "google-chrome-beta"),
                ("chromium", config / "chromium"),
            ]
        return [BrowserProfile(kind, root / "Default" / "History") for kind, root in roots]

    def recent_files_dir(self) -> Optional[Path]:
        """
        The OS "recent items" folder, or None where the OS uses another
        mechanism (macOS Spotlight).
        """
        if self.is_windows:
            appdata = os.getenv("APPDATA")
            base = Path(appdata) if appdata else self.home / "AppData" / "Roaming"
            return base / "Microsoft" / "Windows" / "Recent"
        return None
