"""Capability interfaces implemented once per operating system."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import List

from ..models import BrowserTab, HistoryEntry, WindowInfo


class WindowSource(ABC):
    """Enumerates visible top-level application windows."""

    @abstractmethod
    def collect(self) -> List[WindowInfo]:
        """
        Return every window with a non-empty title.

        Implementations never raise; tool failures yield an empty list.
        """
        pass


class TabScope(Enum):
    """How much of a browser a tab source can see."""
    ALL_TABS = "all_tabs"
    ACTIVE_PER_WINDOW = "active_per_window"


class TabSource(ABC):
    """Produces open browser tabs; every returned URL is http(s)."""

    name: str = "tabs"
    scope: TabScope = TabScope.ALL_TABS

    @abstractmethod
    def collect(self) -> List[BrowserTab]:
        """Return the tabs this source can see, or an empty list."""
        pass


class HistorySource(ABC):
    """Recovers recently visited pages."""

    @abstractmethod
    def collect(self, minutes_back: int) -> List[HistoryEntry]:
        """Return pages visited within the last ``minutes_back`` minutes, newest first."""
        pass


class RecentFilesSource(ABC):
    """Lists recently used documents."""

    @abstractmethod
    def collect(self) -> List[str]:
        """Return absolute paths, most recent first."""
        pass


class NullWindowSource(WindowSource):
    """Used on platforms without a window enumeration strategy."""

    def collect(self) -> List[WindowInfo]:
        return []


class NullTabSource(TabSource):
    """Used on platforms without a UI-automation strategy."""

    name = "none"

    def collect(self) -> List[BrowserTab]:
        return []


class NullRecentFilesSource(RecentFilesSource):
    """Used on platforms without a recent-items strategy."""

    def collect(self) -> List[str]:
        return []
