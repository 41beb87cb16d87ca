"""Unit tests for the signed session store."""

import json
import os
import stat
import sys
from datetime import timedelta

import pytest

from thread_keeper.models import SessionSnapshot
from thread_keeper.session_store import SessionSigner, SessionStore


class TestSessionSigner:

    def test_key_created_once_with_owner_permissions(self, tmp_path):
        key_path = tmp_path / ".session-key"
        signer = SessionSigner(key_path)
        signature = signer.sign(b"payload")
        assert len(bytes.fromhex(key_path.read_text(encoding="utf-8"))) == 32
        if sys.platform != "win32":
            assert stat.S_IMODE(os.stat(key_path).st_mode) == 0o600
        # A second signer over the same key file agrees
        assert SessionSigner(key_path).verify(b"payload", signature)

    def test_verify_rejects_other_data(self, tmp_path):
        signer = SessionSigner(tmp_path / ".session-key")
        assert not signer.verify(b"other", signer.sign(b"payload"))


class TestSaveAndLoad:

    def test_round_trip(self, store, sample_snapshot):
        saved = store.save(sample_snapshot, ai_summary="Task: testing", user_note="before lunch")
        loaded = store.load(saved.id)
        assert loaded == saved
        assert loaded.browser_history == sample_snapshot.browser_history
        assert loaded.user_note == "before lunch"

    def test_files_written(self, store, sample_snapshot):
        saved = store.save(sample_snapshot)
        record = json.loads((store.sessions_dir / f"{saved.id}.json").read_text(encoding="utf-8"))
        assert record["schemaVersion"] == 1
        assert record["browserTabs"][0]["browserKind"] == "chrome"
        assert (store.sessions_dir / f"{saved.id}.sig").exists()

    def test_flipped_byte_is_rejected(self, store, sample_snapshot):
        saved = store.save(sample_snapshot)
        path = store.sessions_dir / f"{saved.id}.json"
        data = bytearray(path.read_bytes())
        data[10] ^= 0x01
        path.write_bytes(bytes(data))
        assert store.load(saved.id) is None

    def test_missing_signature_is_accepted(self, store, sample_snapshot):
        saved = store.save(sample_snapshot)
        (store.sessions_dir / f"{saved.id}.sig").unlink()
        assert store.load(saved.id) == saved

    @pytest.mark.parametrize("session_id", ["../index", "not-a-uuid", "", "../../etc/passwd"])
    def test_invalid_ids_are_rejected(self, store, session_id):
        assert store.load(session_id) is None

    def test_id_with_trailing_newline_is_rejected(self, store, sample_snapshot):
        saved = store.save(sample_snapshot)
        assert store.load(saved.id + "\n") is None

    def test_unknown_id(self, store):
        assert store.load("0b7e8f7c-3a6c-4d8e-9a43-1f2a3b4c5d6e") is None

    def test_malformed_json_is_none(self, store, sample_snapshot):
        saved = store.save(sample_snapshot)
        (store.sessions_dir / f"{saved.id}.json").write_text("{", encoding="utf-8")
        (store.sessions_dir / f"{saved.id}.sig").unlink()
        assert store.load(saved.id) is None


class TestIndex:

    def test_newest_first(self, store, clock):
        first = store.save(SessionSnapshot(clipboard="one"))
        clock.now += timedelta(minutes=5)
        second = store.save(SessionSnapshot(clipboard="two"))
        assert [e.id for e in store.list_index()] == [second.id, first.id]
        assert store.latest_captured_at() == second.captured_at
        assert [s.id for s in store.load_all()] == [second.id, first.id]

    def test_load_all_skips_tampered(self, store):
        kept = store.save(SessionSnapshot(clipboard="keep"))
        broken = store.save(SessionSnapshot(clipboard="break"))
        (store.sessions_dir / f"{broken.id}.json").write_text("{}", encoding="utf-8")
        assert [s.id for s in store.load_all()] == [kept.id]

    def test_empty_store(self, store):
        assert store.list_index() == []
        assert store.latest_captured_at() is None
        assert store.load_all() == []

    def test_corrupt_index_reads_as_empty(self, store):
        store.data_dir.mkdir(parents=True)
        store.index_path.write_text("garbage", encoding="utf-8")
        assert store.list_index() == []


class TestPrune:

    def test_removes_only_expired(self, store, clock):
        start = clock.now
        clock.now = start - timedelta(days=100)
        old = store.save(SessionSnapshot(clipboard="old"))
        clock.now = start - timedelta(days=10)
        recent = store.save(SessionSnapshot(clipboard="recent"))
        clock.now = start

        assert store.prune(90) == 1
        assert [e.id for e in store.list_index()] == [recent.id]
        assert not (store.sessions_dir / f"{old.id}.json").exists()
        assert not (store.sessions_dir / f"{old.id}.sig").exists()
        assert store.load(recent.id) is not None

    def test_unparseable_timestamps_are_retained(self, store, clock):
        saved = store.save(SessionSnapshot())
        index = json.loads(store.index_path.read_text(encoding="utf-8"))
        index.append({"id": "legacy", "capturedAt": "yesterday-ish"})
        store.index_path.write_text(json.dumps(index), encoding="utf-8")

        clock.now += timedelta(days=365)
        assert store.prune(90) == 1
        remaining = json.loads(store.index_path.read_text(encoding="utf-8"))
        assert [e["id"] for e in remaining] == ["legacy"]
        assert not (store.sessions_dir / f"{saved.id}.json").exists()

    def test_nothing_to_prune(self, store, sample_snapshot):
        store.save(sample_snapshot)
        assert store.prune(90) == 0
