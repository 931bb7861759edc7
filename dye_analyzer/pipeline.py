"""
Analysis Pipeline Module

Turns an observed item into a classified Record and re-runs analysis
over the stored collection.

Observation → classify (MatchRanker) → pattern / word (PatternDetector) → Record
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional

from dye_analyzer.config.policy import MatchPolicy
from dye_analyzer.core.color_ranker import MatchRanker, detect_piece_type
from dye_analyzer.core.pattern_detector import PatternDetector
from dye_analyzer.data.record_store import RecordStore
from dye_analyzer.schemas.record import Location, MatchSnapshot, Record
from dye_analyzer.utils.color_space import normalize_hex

logger = logging.getLogger(__name__)

FORMATTING_RE = re.compile(r"§[0-9a-fk-or]", re.IGNORECASE)

TRACKED_ITEMS = (
    "Velvet Top Hat",
    "Cashmere Jacket",
    "Satin Trousers",
    "Oxford Shoes",
)


def strip_formatting(text: Optional[str]) -> str:
    """Remove '§x' color/style codes from a display string."""
    if not text:
        return ""
    return FORMATTING_RE.sub("", text)


def is_tracked_item(name: Optional[str], tracked: Iterable[str] = TRACKED_ITEMS) -> bool:
    clean = strip_formatting(name)
    return any(item in clean for item in tracked)


@dataclass
class Observation:
    """
    One item as reported by a scanning source.

    Attributes:
        id: Stable item identifier
        display_name: Raw name, may contain formatting codes
        hex: Item color
        location: Where the item was seen (optional)
    """

    id: str
    display_name: str
    hex: str
    location: Optional[Location] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Observation":
        location = data.get("location")
        if isinstance(location, (list, tuple)):
            location = Location(x=location[0], y=location[1], z=location[2])
        elif isinstance(location, dict):
            location = Location(**location)
        return cls(
            id=str(data["id"]),
            display_name=str(data.get("display_name") or data.get("name") or ""),
            hex=str(data["hex"]),
            location=location,
        )


class AnalysisPipeline:
    """
    Classification plus pattern/word detection for collection records.

    The policy is read once per call through `policy_provider` so toggle
    edits apply to the next observation, never halfway through one.
    """

    def __init__(
        self,
        ranker: MatchRanker,
        detector: PatternDetector,
        policy_provider: Optional[Callable[[], MatchPolicy]] = None,
    ):
        self.ranker = ranker
        self.detector = detector
        self.policy_provider = policy_provider or MatchPolicy

    def process(self, observation: Observation, policy: Optional[MatchPolicy] = None) -> Optional[Record]:
        """
        Build a Record for one observation.

        Args:
            observation: Observed item
            policy: Policy snapshot (read from policy_provider if None)

        Returns:
            Record, or None if nothing in the catalog matches
        """
        policy = policy or self.policy_provider()
        hex_code = normalize_hex(observation.hex)
        name = strip_formatting(observation.display_name)

        logger.debug(f"Processing {observation.id}: {name} #{hex_code}")

        result = self.ranker.classify(hex_code, name, policy)
        if result is None:
            return None

        return Record(
            id=observation.id,
            display_name=name,
            hex=hex_code,
            location=observation.location,
            best_match=MatchSnapshot.from_candidate(result.best_match),
            top3=[MatchSnapshot.from_candidate(c) for c in result.top3],
            word_match=self.detector.detect_word_match(hex_code) if policy.words_enabled else None,
            special_pattern=self.detector.detect_pattern(hex_code) if policy.patterns_enabled else None,
            observed_at=datetime.now(),
        )

    # ------------------------------------------------------------------
    # Rebuild passes
    # ------------------------------------------------------------------

    def _rebuild(self, store: RecordStore, label: str, update: Callable[[Record], dict]) -> int:
        updated = 0
        for record_id in store.ids():
            # applied to the current record; skipped if removed since the id list was taken
            if store.update(record_id, lambda r: r.model_copy(update=update(r))) is not None:
                updated += 1
        logger.info(f"Rebuilt {label} for {updated} records")
        return updated

    def rebuild_words(self, store: RecordStore) -> int:
        words = self.detector.word_list
        enabled = self.policy_provider().words_enabled

        def update(record: Record) -> dict:
            match = self.detector.detect_word_match(record.hex) if enabled and words else None
            return {"word_match": match}

        return self._rebuild(store, "words", update)

    def rebuild_patterns(self, store: RecordStore) -> int:
        enabled = self.policy_provider().patterns_enabled

        def update(record: Record) -> dict:
            return {"special_pattern": self.detector.detect_pattern(record.hex) if enabled else None}

        return self._rebuild(store, "patterns", update)

    def rebuild_matches(self, store: RecordStore) -> int:
        """Recompute top3 only; best_match is left as stored."""
        policy = self.policy_provider()

        def update(record: Record) -> dict:
            result = self.ranker.rank(record.hex, detect_piece_type(record.display_name), policy)
            top3 = [MatchSnapshot.from_candidate(c) for c in result.top3] if result else None
            return {"top3": top3}

        return self._rebuild(store, "matches", update)

    def rebuild_analysis(self, store: RecordStore) -> int:
        """Recompute best_match and top3 with the current catalog and policy."""
        policy = self.policy_provider()

        def update(record: Record) -> dict:
            result = self.ranker.rank(record.hex, detect_piece_type(record.display_name), policy)
            if result is None:
                return {"best_match": None, "top3": None}
            return {
                "best_match": MatchSnapshot.from_candidate(result.best_match),
                "top3": [MatchSnapshot.from_candidate(c) for c in result.top3],
            }

        return self._rebuild(store, "analysis", update)
