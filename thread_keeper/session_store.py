"""
Durable storage for approved sessions.

Layout under the data directory::

    index.json            [IndexEntry, ...] newest first
    .session-key          HMAC key (hex), owner-only permissions
    sessions/<id>.json    full StoredSession
    sessions/<id>.sig     HMAC-SHA256 of the exact bytes of <id>.json

A session is written file first, signature second and index last, so the
index never references a file that does not exist yet.
"""

import hashlib
import hmac
import json
import logging
import os
import re
import secrets
import tempfile
import threading
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .exceptions import SessionNotFoundError, SessionTamperedError
from .models import IndexEntry, SessionSnapshot, StoredSession, parse_instant
from .session_migrations import CURRENT_SCHEMA_VERSION, migrate_session_record

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 90

_SESSION_ID = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}")

# Serializes index read-modify-write cycles (capture and prune may overlap)
_index_lock = threading.RLock()


def _atomic_write(path: Path, data: bytes) -> None:
    fd, tmp = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except BaseException:
        try:
            os.remove(tmp)
        except OSError:
            pass
        raise


class SessionSigner:
    """HMAC-SHA256 signatures with a key generated once per data directory."""

    def __init__(self, key_path: Path):
        self.key_path = Path(key_path)
        self._key: Optional[bytes] = None
        self._lock = threading.Lock()

    def _load_key(self) -> bytes:
        with self._lock:
            if self._key is not None:
                return self._key
            self.key_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                fd = os.open(self.key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            except FileExistsError:
                self._key = bytes.fromhex(self.key_path.read_text(encoding="utf-8").strip())
            else:
                key = secrets.token_bytes(32)
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(key.hex())
                self._key = key
            return self._key

    def sign(self, data: bytes) -> str:
        return hmac.new(self._load_key(), data, hashlib.sha256).hexdigest()

    def verify(self, data: bytes, signature: str) -> bool:
        return hmac.compare_digest(self.sign(data), signature.strip())


class SessionStore:
    """Saves, loads, lists and prunes stored sessions."""

    def __init__(self, data_dir: Path, signer: Optional[SessionSigner] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.data_dir = Path(data_dir)
        self.sessions_dir = self.data_dir / "sessions"
        self.index_path = self.data_dir / "index.json"
        self.signer = signer or SessionSigner(self.data_dir / ".session-key")
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _session_path(self, session_id: str) -> Path:
        return self.sessions_dir / f"{session_id}.json"

    def _signature_path(self, session_id: str) -> Path:
        return self.sessions_dir / f"{session_id}.sig"

    # -- index -------------------------------------------------------------

    def _read_index(self) -> List[Dict[str, Any]]:
        if not self.index_path.exists():
            return []
        try:
            raw = json.loads(self.index_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Session index unreadable, treating as empty: %s", e)
            return []
        if not isinstance(raw, list):
            logger.warning("Session index is not a list, treating as empty")
            return []
        return [e for e in raw if isinstance(e, dict) and isinstance(e.get("id"), str)]

    def _write_index(self, entries: List[Dict[str, Any]]) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        _atomic_write(self.index_path, json.dumps(entries, indent=2, ensure_ascii=False).encode("utf-8"))

    def list_index(self) -> List[IndexEntry]:
        """Index entries, newest first. Entries that cannot be parsed are skipped."""
        entries = []
        for raw in self._read_index():
            try:
                entries.append(IndexEntry.from_dict(raw))
            except (KeyError, ValueError):
                continue
        return entries

    def latest_captured_at(self) -> Optional[datetime]:
        entries = self.list_index()
        return entries[0].captured_at if entries else None

    # -- save / load -------------------------------------------------------

    def save(self, snapshot: SessionSnapshot, ai_summary: str = "", user_note: str = "",
             approved: bool = True) -> StoredSession:
        """Persist an approved snapshot and return the stored record."""
        session = StoredSession.from_snapshot(
            snapshot,
            session_id=str(uuid.uuid4()),
            captured_at=self._clock(),
            ai_summary=ai_summary,
            user_note=user_note,
            approved=approved,
        )
        record = session.to_dict()
        record["schemaVersion"] = CURRENT_SCHEMA_VERSION
        data = json.dumps(record, indent=2, ensure_ascii=False).encode("utf-8")

        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        _atomic_write(self._session_path(session.id), data)
        _atomic_write(self._signature_path(session.id), self.signer.sign(data).encode("ascii"))

        with _index_lock:
            index = self._read_index()
            index.insert(0, session.index_entry().to_dict())
            self._write_index(index)

        logger.info("Session saved: %s", session.id)
        return session

    def _read_verified(self, session_id: str) -> bytes:
        """
        Read a session file and check it against its signature.

        Raises:
            SessionNotFoundError: bad id or missing/unreadable file
            SessionTamperedError: signature present but not matching
        """
        if not _SESSION_ID.fullmatch(session_id or ""):
            raise SessionNotFoundError(f"Invalid session id: {session_id!r}")
        try:
            data = self._session_path(session_id).read_bytes()
        except OSError as e:
            raise SessionNotFoundError(f"Session {session_id} not readable: {e}") from e

        sig_path = self._signature_path(session_id)
        if sig_path.exists():
            signature = sig_path.read_text(encoding="ascii", errors="replace")
            if not self.signer.verify(data, signature):
                raise SessionTamperedError(f"Session {session_id} does not match its signature")
        # No signature file: written before signing existed, accepted as-is
        return data

    def load(self, session_id: str) -> Optional[StoredSession]:
        """Load a session, or None if it is missing, unreadable or tampered with."""
        try:
            data = self._read_verified(session_id)
            record = migrate_session_record(json.loads(data.decode("utf-8")))
            return StoredSession.from_dict(record)
        except SessionTamperedError as e:
            logger.warning("Integrity check failed, ignoring session: %s", e)
            return None
        except SessionNotFoundError as e:
            logger.debug("%s", e)
            return None
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Session %s is malformed: %s", session_id, e)
            return None

    def load_all(self) -> List[StoredSession]:
        """Every loadable session in index order (newest first)."""
        sessions = []
        for entry in self._read_index():
            session = self.load(entry["id"])
            if session is not None:
                sessions.append(session)
        return sessions

    # -- retention ---------------------------------------------------------

    def prune(self, max_age_days: int = DEFAULT_RETENTION_DAYS) -> int:
        """
        Delete sessions captured more than ``max_age_days`` ago.

        Index entries with unparseable timestamps are kept.

        Returns:
            Number of sessions removed
        """
        cutoff = self._clock() - timedelta(days=max_age_days)
        with _index_lock:
            index = self._read_index()
            kept, expired = [], []
            for entry in index:
                try:
                    captured_at = parse_instant(str(entry["capturedAt"]))
                except (KeyError, ValueError):
                    kept.append(entry)
                    continue
                (expired if captured_at < cutoff else kept).append(entry)

            if not expired:
                return 0

            for entry in expired:
                session_id = entry["id"]
                if not _SESSION_ID.fullmatch(session_id):
                    continue
                for path in (self._session_path(session_id), self._signature_path(session_id)):
                    try:
                        path.unlink()
                    except FileNotFoundError:
                        pass
                    except OSError as e:
                        logger.warning("Could not delete %s: %s", path, e)

            self._write_index(kept)

        logger.info("Pruned %d sessions older than %d days", len(expired), max_age_days)
        return len(expired)
