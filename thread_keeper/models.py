"""Data models for captured and stored sessions."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def format_instant(value: datetime) -> str:
    """Serialize an instant as ISO-8601 with an explicit UTC offset."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_instant(value: str) -> datetime:
    """
    Parse an ISO-8601 instant.

    Accepts the trailing ``Z`` JavaScript writes and treats naive values as UTC.

    Raises:
        ValueError: if the string is not an ISO-8601 timestamp
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class WindowInfo:
    """A visible top-level window."""
    process_name: str
    title: str

    def to_dict(self) -> Dict[str, Any]:
        return {"processName": self.process_name, "title": self.title}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WindowInfo":
        return cls(process_name=str(data.get("processName", "")), title=str(data.get("title", "")))


@dataclass(frozen=True)
class BrowserTab:
    """An open browser tab. ``url`` is always http(s)."""
    url: str
    title: str
    browser_kind: str

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "title": self.title, "browserKind": self.browser_kind}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BrowserTab":
        url = str(data.get("url", ""))
        return cls(
            url=url,
            title=str(data.get("title") or url),
            browser_kind=str(data.get("browserKind") or "browser"),
        )


@dataclass(frozen=True)
class HistoryEntry:
    """A recently visited page recovered from a browser history database."""
    url: str
    title: str
    visited_at: datetime
    browser_kind: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "visitedAt": format_instant(self.visited_at),
            "browserKind": self.browser_kind,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        url = str(data.get("url", ""))
        return cls(
            url=url,
            title=str(data.get("title") or url),
            visited_at=parse_instant(str(data["visitedAt"])),
            browser_kind=str(data.get("browserKind") or "browser"),
        )


@dataclass(frozen=True)
class RelayTab:
    """Tab record as pushed by the companion browser extension."""
    url: str
    title: str
    active: bool = False
    window_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"url": self.url, "title": self.title, "active": self.active}
        if self.window_id is not None:
            data["windowId"] = self.window_id
        return data

    def to_browser_tab(self, browser_kind: str = "chrome") -> BrowserTab:
        return BrowserTab(url=self.url, title=self.title or self.url, browser_kind=browser_kind)


@dataclass
class SessionSnapshot:
    """Point-in-time capture, mutable until it is stored."""
    windows: List[WindowInfo] = field(default_factory=list)
    clipboard: str = ""
    recent_files: List[str] = field(default_factory=list)
    browser_tabs: List[BrowserTab] = field(default_factory=list)
    browser_history: List[HistoryEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "windows": [w.to_dict() for w in self.windows],
            "clipboard": self.clipboard,
            "recentFiles": list(self.recent_files),
            "browserTabs": [t.to_dict() for t in self.browser_tabs],
            "browserHistory": [h.to_dict() for h in self.browser_history],
        }


@dataclass(frozen=True)
class StoredSession:
    """An approved snapshot persisted by the session store."""
    id: str
    captured_at: datetime
    windows: List[WindowInfo]
    clipboard: str
    recent_files: List[str]
    browser_tabs: List[BrowserTab]
    browser_history: List[HistoryEntry]
    ai_summary: str = ""
    user_note: str = ""
    approved: bool = True

    @classmethod
    def from_snapshot(
        cls,
        snapshot: SessionSnapshot,
        session_id: str,
        captured_at: datetime,
        ai_summary: str = "",
        user_note: str = "",
        approved: bool = True,
    ) -> "StoredSession":
        return cls(
            id=session_id,
            captured_at=captured_at,
            windows=list(snapshot.windows),
            clipboard=snapshot.clipboard,
            recent_files=list(snapshot.recent_files),
            browser_tabs=list(snapshot.browser_tabs),
            browser_history=list(snapshot.browser_history),
            ai_summary=ai_summary,
            user_note=user_note,
            approved=approved,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "capturedAt": format_instant(self.captured_at)}
        data.update(
            SessionSnapshot(
                windows=self.windows,
                clipboard=self.clipboard,
                recent_files=self.recent_files,
                browser_tabs=self.browser_tabs,
                browser_history=self.browser_history,
            ).to_dict()
        )
        data.update({
            "aiSummary": self.ai_summary,
            "userNote": self.user_note,
            "approved": self.approved,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredSession":
        """Build from a record already migrated to the current schema."""
        return cls(
            id=str(data["id"]),
            captured_at=parse_instant(str(data["capturedAt"])),
            windows=[WindowInfo.from_dict(w) for w in data.get("windows", [])],
            clipboard=str(data.get("clipboard", "")),
            recent_files=[str(p) for p in data.get("recentFiles", [])],
            browser_tabs=[BrowserTab.from_dict(t) for t in data.get("browserTabs", [])],
            browser_history=[HistoryEntry.from_dict(h) for h in data.get("browserHistory", [])],
            ai_summary=str(data.get("aiSummary", "")),
            user_note=str(data.get("userNote", "")),
            approved=bool(data.get("approved", False)),
        )

    def index_entry(self) -> "IndexEntry":
        return IndexEntry(id=self.id, captured_at=self.captured_at, ai_summary=self.ai_summary)


@dataclass(frozen=True)
class IndexEntry:
    """Lightweight projection of a stored session kept in index.json."""
    id: str
    captured_at: datetime
    ai_summary: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "capturedAt": format_instant(self.captured_at), "aiSummary": self.ai_summary}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexEntry":
        return cls(
            id=str(data["id"]),
            captured_at=parse_instant(str(data["capturedAt"])),
            ai_summary=str(data.get("aiSummary", "")),
        )


FOCUSED = "focused"
LAUNCHED = "launched"


@dataclass(frozen=True)
class WindowOutcome:
    """What the restorer did for one recorded process."""
    process_name: str
    outcome: str


@dataclass
class RestoreResult:
    """Best-effort summary of a restoration."""
    success: bool
    window_outcomes: List[WindowOutcome] = field(default_factory=list)
    urls_opened: int = 0
    clipboard_restored: bool = False
