"""
Upgrade stored session records to the current schema.

Version 0 is the shape written before ``schemaVersion`` existed: windows keyed
``name``, tabs and history keyed ``browser``, an optional flat ``browserUrls``
list instead of ``browserTabs``, and possibly no ``browserHistory`` at all.
Migrations run once, at load time, so the rest of the code only ever sees the
current shape.
"""

from typing import Any, Callable, Dict

CURRENT_SCHEMA_VERSION = 1


def _migrate_v0_to_v1(record: Dict[str, Any]) -> Dict[str, Any]:
    windows = []
    for w in record.get("windows") or []:
        if not isinstance(w, dict):
            continue
        windows.append({
            "processName": w.get("processName", w.get("name", "")),
            "title": w.get("title", ""),
        })
    record["windows"] = windows

    tabs = record.get("browserTabs")
    if tabs is None:
        tabs = [{"url": url, "title": url, "browser": "browser"}
                for url in record.get("browserUrls") or [] if isinstance(url, str)]
    record["browserTabs"] = [
        {
            "url": t.get("url", ""),
            "title": t.get("title") or t.get("url", ""),
            "browserKind": t.get("browserKind", t.get("browser", "browser")),
        }
        for t in tabs if isinstance(t, dict)
    ]
    record.pop("browserUrls", None)

    record["browserHistory"] = [
        {
            "url": h.get("url", ""),
            "title": h.get("title") or h.get("url", ""),
            "visitedAt": h.get("visitedAt"),
            "browserKind": h.get("browserKind", h.get("browser", "browser")),
        }
        for h in record.get("browserHistory") or []
        if isinstance(h, dict) and h.get("visitedAt")
    ]

    record.setdefault("recentFiles", [])
    record.setdefault("clipboard", "")
    record.setdefault("aiSummary", "")
    record.setdefault("userNote", "")
    record.setdefault("approved", True)
    return record


_MIGRATIONS: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    0: _migrate_v0_to_v1,
}


def migrate_session_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply every migration between the record's version and the current one.

    Raises:
        ValueError: if the record claims a version this code does not know
    """
    record = dict(record)
    version = record.get("schemaVersion", 0)
    if not isinstance(version, int) or version < 0 or version > CURRENT_SCHEMA_VERSION:
        raise ValueError(f"Unsupported session schema version: {version!r}")
    while version < CURRENT_SCHEMA_VERSION:
        record = _MIGRATIONS[version](record)
        version += 1
        record["schemaVersion"] = version
    return record
