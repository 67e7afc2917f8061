"""Local cache backend and snapshot store tests."""

import json
import logging

import pytest

from trias_assessment.cache import FileCache, MemoryCache, SnapshotStore, cache_key
from trias_assessment.constants import ASSESSMENT_STORE
from trias_assessment.engine import AssessmentEngine
from trias_assessment.errors import CacheError, ErrorReason
from trias_assessment.models.session import (
    Answer,
    PersistedAssessment,
    SessionState,
    SessionStatus,
)

from test_engine import MockSynchronizer, make_catalog, signed_in


def persisted(**state) -> PersistedAssessment:
    return PersistedAssessment(state=SessionState(**state), language="nl")


class TestCacheKey:
    def test_fixed_versioned_key(self):
        assert cache_key("assessment") == "trias:assessment:v1"
        assert cache_key("auth", namespace="x", version=7) == "x:auth:v7"


class TestFileCache:
    """One JSON file per key, written atomically."""

    def test_round_trip_and_delete(self, tmp_path):
        cache = FileCache(tmp_path / "nested")
        assert cache.get("trias:auth:v1") is None, "Missing key reads as None"

        cache.set("trias:auth:v1", '{"a": 1}')
        assert cache.get("trias:auth:v1") == '{"a": 1}'
        files = [p.name for p in (tmp_path / "nested").iterdir()]
        assert files == ["trias_auth_v1.json"], f"Unexpected files: {files}"

        cache.delete("trias:auth:v1")
        assert cache.get("trias:auth:v1") is None
        cache.delete("trias:auth:v1")  # Deleting twice is fine

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        cache = FileCache(tmp_path)
        cache.set("k", "one")
        cache.set("k", "two")
        assert cache.get("k") == "two"
        assert [p.name for p in tmp_path.iterdir()] == ["k.json"]

    def test_write_failure_raises_cache_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        cache = FileCache(blocker / "sub")
        with pytest.raises(CacheError) as exc_info:
            cache.set("k", "v")
        assert exc_info.value.reason == ErrorReason.CACHE_FAILURE


class TestSnapshotStore:
    """Versioned envelope; bad records are discarded, not migrated."""

    def test_save_and_load(self):
        cache = MemoryCache()
        store = SnapshotStore(cache, ASSESSMENT_STORE, PersistedAssessment)
        value = persisted(
            session_id="s1",
            status=SessionStatus.IN_PROGRESS,
            question_cursor=1,
            answers={"A1": Answer(question_id="A1", selected_option=3)},
        )
        store.save(value)

        envelope = json.loads(cache.get("trias:assessment:v1"))
        assert envelope["version"] == 1, "Envelope carries the format version"
        assert store.load() == value

    def test_version_mismatch_is_discarded(self, caplog):
        cache = MemoryCache()
        cache.set("trias:assessment:v1", json.dumps({"version": 0, "state": {}}))
        store = SnapshotStore(cache, ASSESSMENT_STORE, PersistedAssessment)
        with caplog.at_level(logging.WARNING):
            assert store.load() is None
        assert "Discarding cached record" in caplog.text

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            json.dumps([1, 2]),
            json.dumps({"version": 1, "state": {"state": {"status": "paused"}, "language": "en"}}),
        ],
        ids=["garbage", "wrong-shape", "invalid-status"],
    )
    def test_unreadable_record_is_discarded(self, raw):
        cache = MemoryCache()
        cache.set("trias:assessment:v1", raw)
        assert SnapshotStore(cache, ASSESSMENT_STORE, PersistedAssessment).load() is None

    def test_engine_starts_fresh_on_bad_record(self):
        """An engine over a stale record starts at not_started."""
        cache = MemoryCache()
        cache.set("trias:assessment:v1", "{broken")
        catalog = make_catalog({"A": 1})
        engine = AssessmentEngine(
            MockSynchronizer(catalog), cache, signed_in(cache), catalog=catalog,
        )
        assert engine.status == SessionStatus.NOT_STARTED

    def test_engine_survives_restart_on_disk(self, tmp_path):
        """FileCache keeps a completed session across engine instances."""
        catalog = make_catalog({"A": 1})
        store = SnapshotStore(FileCache(tmp_path), ASSESSMENT_STORE, PersistedAssessment)
        store.save(persisted(session_id="s9", status=SessionStatus.COMPLETED))

        cache = FileCache(tmp_path)
        engine = AssessmentEngine(
            MockSynchronizer(catalog), cache, signed_in(cache), catalog=catalog,
        )
        assert engine.is_completed()
        assert engine.session_id == "s9"
        assert engine.language == "nl"
