"""
Tests for RecordStore: dirty tracking, debounced flush and persistence
"""

import json
import logging
import threading
import time

from dye_analyzer.data.record_store import (
    JsonRecordPersistence,
    MemoryRecordPersistence,
    RecordPersistence,
    RecordStore,
    StoreState,
)
from dye_analyzer.schemas.record import Location, Record


def make_record(record_id: str, hex_code: str = "FF0000") -> Record:
    return Record(id=record_id, display_name="Velvet Top Hat", hex=hex_code, location=Location(x=1, y=2, z=3))


def wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class FailingPersistence(RecordPersistence):
    def __init__(self):
        self.fail = True
        self.saved = {}

    def save(self, records):
        if self.fail:
            raise OSError("disk full")
        self.saved = dict(records)
        return True

    def load(self):
        return {}


class BlockingPersistence(MemoryRecordPersistence):
    def __init__(self):
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def save(self, records):
        self.started.set()
        self.release.wait(5.0)
        return super().save(records)


class TestMapOperations:
    def test_put_get_remove(self, memory_store):
        record = make_record("a")
        memory_store.put(record)

        assert memory_store.get("a") is record
        assert "a" in memory_store
        assert len(memory_store) == 1

        assert memory_store.remove("a") is record
        assert memory_store.get("a") is None
        assert memory_store.remove("a") is None

    def test_same_hex_different_ids_are_kept(self, memory_store):
        memory_store.put(make_record("a", "123456"))
        memory_store.put(make_record("b", "123456"))
        assert sorted(memory_store.ids()) == ["a", "b"]

    def test_update_applies_to_current_record(self, memory_store):
        memory_store.put(make_record("a"))
        memory_store.put(memory_store.get("a").model_copy(update={"word_match": "RED"}))

        updated = memory_store.update("a", lambda r: r.model_copy(update={"special_pattern": "paired"}))

        assert updated.word_match == "RED"
        assert memory_store.get("a").special_pattern == "paired"
        assert memory_store.update("ghost", lambda r: r) is None
        assert memory_store.is_dirty

    def test_replace_only_existing(self, memory_store):
        assert memory_store.replace(make_record("ghost")) is False
        assert "ghost" not in memory_store

        memory_store.put(make_record("a", "111111"))
        assert memory_store.replace(make_record("a", "222222")) is True
        assert memory_store.get("a").hex == "222222"

    def test_snapshot_is_a_copy(self, memory_store):
        memory_store.put(make_record("a"))
        snapshot = memory_store.snapshot()
        memory_store.put(make_record("b"))
        assert list(snapshot) == ["a"]


class TestStateMachine:
    def test_starts_clean(self, memory_store):
        assert memory_store.state is StoreState.CLEAN
        assert memory_store.force_sync() is False

    def test_mutation_marks_dirty_and_sync_cleans(self, memory_store):
        memory_store.put(make_record("a"))
        assert memory_store.state is StoreState.DIRTY

        assert memory_store.force_sync() is True
        assert memory_store.state is StoreState.CLEAN
        assert memory_store.flush_count == 1
        assert memory_store.persistence.load().keys() == {"a"}

    def test_force_sync_flushes_once(self, memory_store):
        memory_store.put(make_record("a"))
        memory_store.force_sync()
        memory_store.force_sync()
        assert memory_store.persistence.save_count == 1

    def test_removing_missing_id_stays_clean(self, memory_store):
        memory_store.remove("nope")
        assert memory_store.state is StoreState.CLEAN

    def test_clear_flushes_immediately(self, memory_store):
        memory_store.put(make_record("a"))
        memory_store.put(make_record("b"))
        memory_store.force_sync()

        assert memory_store.clear() is True
        assert len(memory_store) == 0
        assert memory_store.state is StoreState.CLEAN
        assert memory_store.persistence.load() == {}

    def test_mutation_during_save_stays_dirty(self):
        persistence = BlockingPersistence()
        store = RecordStore(persistence, debounce_seconds=60.0)
        store.put(make_record("a"))

        syncer = threading.Thread(target=store.force_sync)
        syncer.start()
        assert persistence.started.wait(5.0)
        assert store.state is StoreState.SAVING

        store.put(make_record("b"))
        persistence.release.set()
        syncer.join(5.0)

        assert store.state is StoreState.DIRTY
        assert persistence.load().keys() == {"a"}

        assert store.force_sync() is True
        assert store.state is StoreState.CLEAN
        assert persistence.load().keys() == {"a", "b"}
        store.close()


class TestFailures:
    def test_failed_save_stays_dirty(self, caplog):
        persistence = FailingPersistence()
        store = RecordStore(persistence, debounce_seconds=60.0)
        store.put(make_record("a"))

        with caplog.at_level(logging.ERROR, logger="dye_analyzer.data.record_store"):
            assert store.force_sync() is False

        assert store.state is StoreState.DIRTY
        assert store.failed_flush_count == 1
        assert "disk full" in caplog.text

        persistence.fail = False
        assert store.force_sync() is True
        assert store.state is StoreState.CLEAN
        assert persistence.saved.keys() == {"a"}
        store.close()

    def test_backend_returning_false_stays_dirty(self):
        class RefusingPersistence(MemoryRecordPersistence):
            def save(self, records):
                return False

        store = RecordStore(RefusingPersistence(), debounce_seconds=60.0)
        store.put(make_record("a"))
        assert store.force_sync() is False
        assert store.is_dirty
        store.persistence = MemoryRecordPersistence()
        store.close()


class TestDebounce:
    def test_burst_coalesces_into_one_flush(self):
        persistence = MemoryRecordPersistence()
        store = RecordStore(persistence, debounce_seconds=0.2)

        for i in range(20):
            store.put(make_record(f"r{i}"))

        assert wait_for(lambda: store.state is StoreState.CLEAN)
        time.sleep(0.4)
        assert persistence.save_count == 1
        assert len(persistence.load()) == 20
        store.close()

    def test_no_flush_before_quiet_period(self):
        persistence = MemoryRecordPersistence()
        store = RecordStore(persistence, debounce_seconds=0.5)

        store.put(make_record("a"))
        time.sleep(0.1)
        assert persistence.save_count == 0
        assert store.is_dirty

        assert wait_for(lambda: persistence.save_count == 1)
        store.close()

    def test_worker_waits_out_forced_sync(self):
        class SlowPersistence(MemoryRecordPersistence):
            def save(self, records):
                time.sleep(0.5)
                return super().save(records)

        class CountingStore(RecordStore):
            flush_attempts = 0

            def _flush(self, wait):
                self.flush_attempts += 1
                return super()._flush(wait)

        persistence = SlowPersistence()
        store = CountingStore(persistence, debounce_seconds=0.05)
        store.put(make_record("a"))

        assert store.force_sync() is True
        time.sleep(0.2)

        assert store.flush_attempts < 5
        assert persistence.save_count == 1
        assert store.state is StoreState.CLEAN
        store.close()

    def test_close_flushes_pending(self):
        persistence = MemoryRecordPersistence()
        store = RecordStore(persistence, debounce_seconds=60.0)
        store.put(make_record("a"))
        store.close()
        assert persistence.load().keys() == {"a"}


def test_concurrent_writers_and_readers():
    store = RecordStore(MemoryRecordPersistence(), debounce_seconds=0.05)
    errors = []

    def writer(prefix):
        for i in range(100):
            store.put(make_record(f"{prefix}-{i}"))

    def reader():
        try:
            for _ in range(100):
                for record in store.values():
                    assert record.id
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=writer, args=(p,)) for p in "abcd"]
    threads += [threading.Thread(target=reader) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(store) == 400
    store.close()
    assert store.state is StoreState.CLEAN
    assert len(store.persistence.load()) == 400


class TestJsonPersistence:
    def test_round_trip(self, tmp_path):
        path = tmp_path / "collection.json"
        store = RecordStore(JsonRecordPersistence(path), debounce_seconds=60.0)
        store.put(make_record("a", "#abcdef"))
        store.close()

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["a"]["hex"] == "ABCDEF"
        assert not path.with_suffix(".json.tmp").exists()

        reloaded = RecordStore(JsonRecordPersistence(path))
        assert reloaded.load() == 1
        assert reloaded.get("a").location == Location(x=1, y=2, z=3)
        assert reloaded.state is StoreState.CLEAN

    def test_bad_entries_skipped(self, tmp_json, caplog):
        good = make_record("good").model_dump(mode="json")
        path = tmp_json({"good": good, "bad": {"id": "bad"}}, name="collection.json")

        with caplog.at_level(logging.WARNING):
            records = JsonRecordPersistence(path).load()

        assert list(records) == ["good"]
        assert "Failed to parse record bad" in caplog.text

    def test_missing_file_is_empty(self, tmp_path):
        assert JsonRecordPersistence(tmp_path / "none.json").load() == {}

    def test_write_error_returns_false(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x", encoding="utf-8")
        persistence = JsonRecordPersistence(blocker / "collection.json")
        assert persistence.save({"a": make_record("a")}) is False
