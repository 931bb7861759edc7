"""
Collection Service

Owner of the RecordStore. Routes observations into the collection
(scan mode) or into a throwaway export buffer (export mode) and answers
queries over the stored records.

Scan and export are mutually exclusive: starting one while the other is
active raises ModeConflictError and leaves both modes untouched.
"""

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from dye_analyzer.data.record_store import RecordStore
from dye_analyzer.pipeline import AnalysisPipeline, Observation, is_tracked_item
from dye_analyzer.schemas.record import Record
from dye_analyzer.utils.color_space import is_valid_hex, normalize_hex

logger = logging.getLogger(__name__)


class CollectionError(Exception):
    """Base exception for collection errors"""

    pass


class ModeConflictError(CollectionError):
    """Scan and export requested at the same time"""

    pass


class RecordNotFoundError(CollectionError):
    """Record id not in the collection"""

    pass


class ObservationMode(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    EXPORTING = "exporting"


@dataclass
class SearchResult:
    """Outcome of a hex search over the collection."""

    valid: List[str] = field(default_factory=list)
    invalid: List[str] = field(default_factory=list)
    records: List[Record] = field(default_factory=list)
    locations: List[str] = field(default_factory=list)


@dataclass
class CollectionStats:
    """
    Collection summary.

    `buckets` maps match kind ("normal", "fade", "custom") to counts of
    best-match tiers 0-2 ("t0", "t1", "t2").
    """

    total: int = 0
    unmatched: int = 0
    tiers: Dict[int, int] = field(default_factory=lambda: {0: 0, 1: 0, 2: 0, 3: 0})
    buckets: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: {kind: {"t0": 0, "t1": 0, "t2": 0} for kind in ("normal", "fade", "custom")}
    )
    dupes: int = 0
    words: int = 0
    patterns: int = 0


def match_kind(record: Record) -> Optional[str]:
    best = record.best_match
    if best is None:
        return None
    if best.is_custom:
        return "custom"
    if best.is_fade:
        return "fade"
    return "normal"


def parse_search_hexes(values: Iterable[str]) -> SearchResult:
    """Split raw search terms ('#ff0000', 'FF0000 00FF00', ...) into valid and invalid hexes."""
    result = SearchResult()
    for value in values:
        for term in str(value).split():
            clean = normalize_hex(term)
            if not clean:
                continue
            if is_valid_hex(clean):
                if clean not in result.valid:
                    result.valid.append(clean)
            else:
                result.invalid.append(term)
    return result


def export_text(records: Iterable[Record]) -> str:
    """
    Plain-text export, one record per line:

        Export - 2 pieces

        Velvet Top Hat | #FF0000 | Top: Ruby (ΔE: 0.00 | Abs: 0) | Pattern: paired | At: 1, 64, -3
    """
    records = list(records)
    lines = [f"Export - {len(records)} piece{'' if len(records) == 1 else 's'}", ""]
    for record in records:
        top = "N/A"
        if record.best_match is not None:
            best = record.best_match
            top = f"{best.name} (ΔE: {best.delta_e:.2f} | Abs: {best.absolute_distance})"
        line = f"{record.display_name or 'Unknown'} | #{record.hex} | Top: {top}"
        if record.special_pattern:
            line += f" | Pattern: {record.special_pattern}"
        if record.location is not None:
            line += f" | At: {record.location}"
        lines.append(line)
    return "\n".join(lines) + "\n"


class CollectionService:
    """
    Scan/export mode handling and collection queries.

    Args:
        store: Backing RecordStore (owned; closed by close())
        pipeline: Builds Records from observations
        dupes_enabled: Zero-arg callable read by stats()
    """

    def __init__(
        self,
        store: RecordStore,
        pipeline: AnalysisPipeline,
        dupes_enabled: Optional[Callable[[], bool]] = None,
    ):
        self.store = store
        self.pipeline = pipeline
        self.dupes_enabled = dupes_enabled or (lambda: True)

        self._mode = ObservationMode.IDLE
        self._mode_lock = threading.Lock()
        self._export_buffer: Dict[str, Record] = {}

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    @property
    def mode(self) -> ObservationMode:
        return self._mode

    @property
    def is_scanning(self) -> bool:
        return self._mode is ObservationMode.SCANNING

    @property
    def is_exporting(self) -> bool:
        return self._mode is ObservationMode.EXPORTING

    def start_scan(self):
        """
        Raises:
            ModeConflictError: If exporting
        """
        with self._mode_lock:
            if self._mode is ObservationMode.EXPORTING:
                logger.warning("Cannot start scanning while exporting")
                raise ModeConflictError("Stop exporting before starting a scan")
            self._mode = ObservationMode.SCANNING
        logger.info("Scanning started")

    def stop_scan(self) -> bool:
        """Leave scan mode and flush the collection. Returns the flush outcome."""
        with self._mode_lock:
            if self._mode is ObservationMode.SCANNING:
                self._mode = ObservationMode.IDLE
        flushed = self.store.force_sync()
        logger.info("Scanning stopped, collection saved")
        return flushed

    def start_export(self):
        """
        Raises:
            ModeConflictError: If scanning
        """
        with self._mode_lock:
            if self._mode is ObservationMode.SCANNING:
                logger.warning("Cannot start exporting while scanning")
                raise ModeConflictError("Stop scanning before starting an export")
            self._export_buffer = {}
            self._mode = ObservationMode.EXPORTING
        logger.info("Exporting started")

    def stop_export(self) -> List[Record]:
        """Leave export mode and return the buffered records."""
        with self._mode_lock:
            if self._mode is ObservationMode.EXPORTING:
                self._mode = ObservationMode.IDLE
            records = list(self._export_buffer.values())
        logger.info(f"Exporting stopped ({len(records)} pieces)")
        return records

    def export_buffer(self) -> List[Record]:
        with self._mode_lock:
            return list(self._export_buffer.values())

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def observe(self, observation: Observation) -> Optional[Record]:
        """
        Classify one observed item into the active mode's destination.

        Returns:
            The new Record, or None if idle, untracked, already seen or unmatched
        """
        mode = self._mode
        if mode is ObservationMode.IDLE:
            return None
        if not is_tracked_item(observation.display_name):
            return None

        if mode is ObservationMode.EXPORTING:
            with self._mode_lock:
                if observation.id in self._export_buffer:
                    return None
        elif observation.id in self.store:
            return None

        record = self.pipeline.process(observation)
        if record is None:
            return None

        if mode is ObservationMode.EXPORTING:
            with self._mode_lock:
                self._export_buffer.setdefault(record.id, record)
        else:
            self.store.put(record)
        return record

    def observe_all(self, observations: Iterable[Observation]) -> List[Record]:
        return [r for r in (self.observe(o) for o in observations) if r is not None]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, record_id: str) -> Record:
        """
        Raises:
            RecordNotFoundError: If record_id is not stored
        """
        record = self.store.get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Record {record_id} not found")
        return record

    def remove(self, record_id: str) -> Record:
        record = self.store.remove(record_id)
        if record is None:
            raise RecordNotFoundError(f"Record {record_id} not found")
        return record

    def records(self) -> List[Record]:
        return self.store.values()

    def search(self, hexes: Iterable[str]) -> SearchResult:
        result = parse_search_hexes(hexes)
        wanted = set(result.valid)
        for record in self.store.values():
            if record.hex in wanted:
                result.records.append(record)
                if record.location is not None:
                    location = str(record.location)
                    if location not in result.locations:
                        result.locations.append(location)
        return result

    def dupes(self) -> Dict[str, List[str]]:
        """Hex -> ids of every record sharing that hex, for hexes held by more than one record."""
        by_hex: Dict[str, List[str]] = {}
        for record in self.store.values():
            by_hex.setdefault(record.hex, []).append(record.id)
        return {hex_code: ids for hex_code, ids in by_hex.items() if len(ids) > 1}

    def stats(self) -> CollectionStats:
        records = self.store.values()
        stats = CollectionStats(total=len(records))

        for record in records:
            kind = match_kind(record)
            if kind is None:
                stats.unmatched += 1
            else:
                tier = record.best_match.tier
                stats.tiers[tier] += 1
                if tier <= 2:
                    stats.buckets[kind][f"t{tier}"] += 1
            if record.word_match:
                stats.words += 1
            if record.special_pattern:
                stats.patterns += 1

        if self.dupes_enabled():
            counts = Counter(record.hex for record in records)
            stats.dupes = sum(n for n in counts.values() if n > 1)

        return stats

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def rebuild(self, what: str = "analysis") -> int:
        passes = {
            "words": self.pipeline.rebuild_words,
            "patterns": self.pipeline.rebuild_patterns,
            "matches": self.pipeline.rebuild_matches,
            "analysis": self.pipeline.rebuild_analysis,
        }
        if what not in passes:
            raise CollectionError(f"Unknown rebuild pass: {what}. Available: {', '.join(passes)}")
        return passes[what](self.store)

    def clear(self) -> bool:
        return self.store.clear()

    def close(self):
        self.store.close()
