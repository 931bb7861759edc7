"""
Record Store

Keyed collection of classified Records with dirty tracking and debounced
write-back.

State machine:
    CLEAN  -> DIRTY   on put / remove / clear
    DIRTY  -> SAVING  when a flush starts
    SAVING -> CLEAN   on success (DIRTY again if mutated mid-save, or on failure)

Mutations only request a flush. A single background worker waits for a
quiet period of `debounce_seconds` after the last mutation, then persists
a full snapshot. `force_sync()` bypasses the debounce. At most one flush
runs at a time.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from pydantic import ValidationError

from dye_analyzer.config.paths import DEFAULT_DEBOUNCE_SECONDS
from dye_analyzer.schemas.record import Record
from dye_analyzer.utils.file_io import read_json, write_json_atomic

logger = logging.getLogger(__name__)


class StoreState(str, Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    SAVING = "saving"


# ================================================================
# Persistence backends
# ================================================================


class RecordPersistence(ABC):
    """Persistence I/O used by RecordStore at flush time."""

    @abstractmethod
    def save(self, records: Dict[str, Record]) -> bool:
        """Persist the full keyed record set. Return True on success."""
        pass

    @abstractmethod
    def load(self) -> Dict[str, Record]:
        """Return the persisted keyed record set (empty if none)."""
        pass


class MemoryRecordPersistence(RecordPersistence):
    """Keeps the last saved snapshot in memory."""

    def __init__(self):
        self._saved: Dict[str, Record] = {}
        self.save_count = 0

    def save(self, records: Dict[str, Record]) -> bool:
        self._saved = {rid: r.model_copy(deep=True) for rid, r in records.items()}
        self.save_count += 1
        return True

    def load(self) -> Dict[str, Record]:
        return {rid: r.model_copy(deep=True) for rid, r in self._saved.items()}


class JsonRecordPersistence(RecordPersistence):
    """
    One JSON object keyed by record id.

    Writes go to a temp file that replaces the target, so a crash mid-write
    never leaves a truncated collection behind.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def save(self, records: Dict[str, Record]) -> bool:
        payload = {rid: record.model_dump(mode="json") for rid, record in records.items()}
        try:
            write_json_atomic(payload, self.path)
        except OSError as e:
            logger.error(f"Failed to write collection {self.path}: {e}", exc_info=True)
            return False
        logger.info(f"Saved {len(payload)} records to {self.path}")
        return True

    def load(self) -> Dict[str, Record]:
        data = read_json(self.path)
        records: Dict[str, Record] = {}
        for rid, raw in data.items():
            try:
                records[rid] = Record.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Failed to parse record {rid}: {e}")
        if records:
            logger.info(f"Loaded {len(records)} records from {self.path}")
        return records


# ================================================================
# Store
# ================================================================


class RecordStore:
    """
    Concurrent map of Records with debounced persistence.

    put / remove / get / values are individually atomic. Iteration works
    on a snapshot, so a concurrent writer never corrupts an iterating
    reader (the reader may or may not see the write).
    """

    def __init__(
        self,
        persistence: Optional[RecordPersistence] = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ):
        """
        Args:
            persistence: Backend called at flush time (in-memory if None)
            debounce_seconds: Quiet period after the last mutation before a flush
        """
        self.persistence = persistence or MemoryRecordPersistence()
        self.debounce_seconds = debounce_seconds

        self._records: Dict[str, Record] = {}
        self._lock = threading.RLock()
        self._cond = threading.Condition(self._lock)

        self._mutation_seq = 0
        self._saved_seq = 0
        self._saving = False
        self._flush_requested = False
        self._last_mutation = 0.0
        self._closed = False

        self.flush_count = 0
        self.failed_flush_count = 0

        self._worker: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> int:
        """Replace contents with the persisted set. Leaves the store CLEAN."""
        records = self.persistence.load()
        with self._lock:
            self._records = dict(records)
            self._saved_seq = self._mutation_seq
        return len(records)

    # ------------------------------------------------------------------
    # Map operations
    # ------------------------------------------------------------------

    def put(self, record: Record) -> None:
        with self._lock:
            self._records[record.id] = record
            self._mark_dirty()

    def replace(self, record: Record) -> bool:
        """Overwrite an existing record. Returns False (no-op) if the id is gone."""
        with self._lock:
            if record.id not in self._records:
                return False
            self._records[record.id] = record
            self._mark_dirty()
            return True

    def update(self, record_id: str, fn: Callable[[Record], Record]) -> Optional[Record]:
        """
        Apply `fn` to the current record under the store lock and store the result.

        Returns:
            The stored record, or None (no-op) if the id is gone
        """
        with self._lock:
            current = self._records.get(record_id)
            if current is None:
                return None
            record = fn(current)
            self._records[record_id] = record
            self._mark_dirty()
            return record

    def get(self, record_id: str) -> Optional[Record]:
        with self._lock:
            return self._records.get(record_id)

    def remove(self, record_id: str) -> Optional[Record]:
        with self._lock:
            record = self._records.pop(record_id, None)
            if record is not None:
                self._mark_dirty()
            return record

    def clear(self) -> bool:
        """Empty the store and flush immediately. Returns the flush outcome."""
        with self._lock:
            self._records.clear()
            self._mark_dirty()
        logger.info("Cleared collection")
        return self.force_sync()

    def __contains__(self, record_id: str) -> bool:
        with self._lock:
            return record_id in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.values())

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._records.keys())

    def values(self) -> List[Record]:
        with self._lock:
            return list(self._records.values())

    def items(self) -> List[Tuple[str, Record]]:
        with self._lock:
            return list(self._records.items())

    def snapshot(self) -> Dict[str, Record]:
        with self._lock:
            return dict(self._records)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> StoreState:
        with self._lock:
            if self._saving:
                return StoreState.SAVING
            if self._mutation_seq != self._saved_seq:
                return StoreState.DIRTY
            return StoreState.CLEAN

    @property
    def is_dirty(self) -> bool:
        with self._lock:
            return self._mutation_seq != self._saved_seq

    def _mark_dirty(self) -> None:
        # caller holds self._lock
        self._mutation_seq += 1
        self._last_mutation = time.monotonic()
        self._flush_requested = True
        self._ensure_worker()
        self._cond.notify_all()

    # ------------------------------------------------------------------
    # Flushing
    # ------------------------------------------------------------------

    def force_sync(self) -> bool:
        """
        Flush now if DIRTY, waiting out any flush already in progress.

        Returns:
            True if a flush ran and succeeded
        """
        return self._flush(wait=True)

    def _flush(self, wait: bool) -> bool:
        with self._cond:
            if self._saving:
                if not wait:
                    # another flush owns the snapshot; try again after the next quiet period
                    self._flush_requested = True
                    return False
                while self._saving:
                    self._cond.wait()
            if self._mutation_seq == self._saved_seq:
                return False
            self._saving = True
            seq = self._mutation_seq
            snapshot = dict(self._records)

        ok = False
        try:
            ok = bool(self.persistence.save(snapshot))
        except Exception as e:
            logger.error(f"Failed to save collection: {e}", exc_info=True)

        with self._cond:
            self._saving = False
            if ok:
                self._saved_seq = seq
                self.flush_count += 1
                logger.debug(f"Flushed {len(snapshot)} records (seq={seq})")
            else:
                self.failed_flush_count += 1
                logger.error("Collection flush failed; store stays dirty until the next flush")
            self._cond.notify_all()
        return ok

    def _ensure_worker(self) -> None:
        # caller holds self._lock
        if self._worker is None or not self._worker.is_alive():
            if self._closed:
                return
            self._worker = threading.Thread(target=self._run, name="record-store-flush", daemon=True)
            self._worker.start()

    def _run(self) -> None:
        while True:
            with self._cond:
                while not self._closed:
                    if self._saving:
                        # re-check dirty state once the running flush finishes
                        self._cond.wait()
                        continue
                    if not self._flush_requested or self._mutation_seq == self._saved_seq:
                        self._flush_requested = False
                        self._cond.wait()
                        continue
                    remaining = self._last_mutation + self.debounce_seconds - time.monotonic()
                    if remaining <= 0:
                        break
                    self._cond.wait(remaining)
                if self._closed:
                    return
                self._flush_requested = False
            self._flush(wait=False)

    def close(self) -> None:
        """Flush pending changes and stop the background worker."""
        self.force_sync()
        with self._cond:
            self._closed = True
            self._cond.notify_all()
            worker = self._worker
        if worker is not None:
            worker.join(timeout=5.0)
