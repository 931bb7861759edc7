"""
Color Ranker Module

Scores a query color against every enabled catalog source and produces
the ranked best match / top 3.

Ranking steps:
    1. candidate generation per source (custom, target, fade) with filters
    2. tiering from CIE76 ΔE
    3. keep the 10 closest by ΔE
    4. exact matches (ΔE < 0.01) first
    5. remaining tier <= 2 candidates by policy priority class, then ΔE
    6. tier 3 candidates by ΔE
"""

import logging
from typing import Dict, List, Optional, Tuple

from dye_analyzer.config.policy import MatchPolicy, PriorityClass
from dye_analyzer.core.color_catalog import ColorCatalog
from dye_analyzer.schemas.match import ClassificationResult, ColorSource, LabColor, MatchCandidate, PieceType
from dye_analyzer.utils.color_delta import absolute_distance, delta_e_cie1976

logger = logging.getLogger(__name__)

PIECE_KEYWORDS: Dict[PieceType, Tuple[str, ...]] = {
    PieceType.HELMET: ("hat", "helm", "crown", "hood", "cap", "mask"),
    PieceType.CHESTPLATE: ("jacket", "chest", "tunic", "shirt", "vest", "robe", "coat", "plate"),
    PieceType.LEGGINGS: ("trousers", "leggings", "pants", "legs", "shorts"),
    PieceType.BOOTS: ("shoes", "boots", "sneakers", "feet", "sandals"),
}

THREE_PIECE_MARKER = "3p"
HIGH_FADE_LIMIT = 2.0
EXACT_MATCH_THRESHOLD = 0.01
PRE_RANK_LIMIT = 10
TOP_N = 3

SOURCE_ORDER = (ColorSource.CUSTOM, ColorSource.TARGET, ColorSource.FADE)


def detect_piece_type(item_name: Optional[str]) -> PieceType:
    """
    Infer the piece category from a free-text item name.

    Case-insensitive keyword search, checked helmet -> chestplate ->
    leggings -> boots. No keyword hit gives PieceType.UNKNOWN.

    Example:
        >>> detect_piece_type("Velvet Top Hat")
        <PieceType.HELMET: 'helmet'>
    """
    if not item_name:
        return PieceType.UNKNOWN
    lower = item_name.lower()
    for piece_type, keywords in PIECE_KEYWORDS.items():
        if any(keyword in lower for keyword in keywords):
            return piece_type
    return PieceType.UNKNOWN


def _piece_types_named(color_name: str) -> List[PieceType]:
    lower = color_name.lower()
    return [piece for piece, keywords in PIECE_KEYWORDS.items() if any(k in lower for k in keywords)]


def can_match_piece(color_name: str, piece_type: PieceType) -> bool:
    """
    True if a catalog color may be used for piece_type.

    Usable when the color name mentions piece_type's keywords, or mentions
    no piece keyword at all (a generic color). UNKNOWN matches everything.
    """
    if piece_type is PieceType.UNKNOWN:
        return True
    named = _piece_types_named(color_name)
    return not named or piece_type in named


def calculate_tier(delta_e: float, is_custom: bool, is_fade: bool) -> int:
    """
    Bucket ΔE into a tier (0 best ~ 3 worst).

    Custom colors start at tier 1; exact custom hits are handled by the
    exact-match carve-out instead.
    """
    if is_custom:
        if delta_e <= 2:
            return 1
        if delta_e <= 5:
            return 2
        return 3

    if is_fade:
        if delta_e <= 1:
            return 0
        if delta_e <= 2:
            return 1
        if delta_e <= 5:
            return 2
        return 3

    if delta_e <= 1:
        return 0
    if delta_e <= 2:
        return 1
    if delta_e <= 5:
        return 2
    return 3


_PRIORITY_CLASSES: Dict[Tuple[bool, bool, int], PriorityClass] = {
    (True, False, 1): PriorityClass.CUSTOM_T1,
    (True, False, 2): PriorityClass.CUSTOM_T2,
    (False, True, 0): PriorityClass.FADE_T0,
    (False, True, 1): PriorityClass.FADE_T1,
    (False, True, 2): PriorityClass.FADE_T2,
    (False, False, 0): PriorityClass.NORMAL_T0,
    (False, False, 1): PriorityClass.NORMAL_T1,
    (False, False, 2): PriorityClass.NORMAL_T2,
}


def match_priority(is_custom: bool, is_fade: bool, tier: int) -> PriorityClass:
    """Priority class for a candidate. Combinations outside the table fall back to NORMAL_T2."""
    return _PRIORITY_CLASSES.get((is_custom, is_fade, tier), PriorityClass.NORMAL_T2)


class MatchRanker:
    """
    Ranks catalog colors against a query hex.

    Stateless apart from the shared catalog; one instance can serve any
    number of threads.
    """

    def __init__(self, catalog: ColorCatalog):
        self.catalog = catalog

    def classify(
        self, hex_code: str, item_name: Optional[str], policy: Optional[MatchPolicy] = None
    ) -> Optional[ClassificationResult]:
        """Infer the piece type from item_name, then rank."""
        return self.rank(hex_code, detect_piece_type(item_name), policy)

    def rank(
        self,
        hex_code: str,
        piece_type: PieceType = PieceType.UNKNOWN,
        policy: Optional[MatchPolicy] = None,
    ) -> Optional[ClassificationResult]:
        """
        Rank the catalog against one query color.

        Args:
            hex_code: Query hex. Malformed input ranks as black.
            piece_type: Category used by the piece and 3p filters
            policy: Snapshot to rank with (defaults to MatchPolicy())

        Returns:
            ClassificationResult, or None when no candidate survives the
            enabled sources and filters
        """
        ordered = self.ranked_candidates(hex_code, piece_type, policy)
        if not ordered:
            logger.warning(f"No matches found for hex: {hex_code}")
            return None

        top3 = ordered[:TOP_N]
        best = top3[0]
        return ClassificationResult(best_match=best, top3=top3, tier=best.tier)

    def ranked_candidates(
        self,
        hex_code: str,
        piece_type: PieceType = PieceType.UNKNOWN,
        policy: Optional[MatchPolicy] = None,
    ) -> List[MatchCandidate]:
        """Full ordered list (at most 10) before top-3 truncation."""
        policy = policy or MatchPolicy()

        candidates = self.generate_candidates(hex_code, piece_type, policy)
        candidates.sort(key=lambda c: c.delta_e)
        closest = candidates[:PRE_RANK_LIMIT]

        exact = [c for c in closest if c.delta_e < EXACT_MATCH_THRESHOLD]
        rest = [c for c in closest if c.delta_e >= EXACT_MATCH_THRESHOLD]

        prioritized = [c for c in rest if c.tier <= 2]
        unprioritized = [c for c in rest if c.tier > 2]

        prioritized.sort(
            key=lambda c: (policy.priority_rank(match_priority(c.is_custom, c.is_fade, c.tier)), c.delta_e)
        )
        unprioritized.sort(key=lambda c: c.delta_e)

        return exact + prioritized + unprioritized

    def generate_candidates(
        self, hex_code: str, piece_type: PieceType, policy: MatchPolicy
    ) -> List[MatchCandidate]:
        """Score every entry of every enabled source that passes the filters, in catalog order."""
        query_lab = self.catalog.lab_for(hex_code)
        candidates: List[MatchCandidate] = []

        for source in SOURCE_ORDER:
            if source is ColorSource.CUSTOM and not policy.custom_colors_enabled:
                continue
            if source is ColorSource.FADE and not policy.fade_dyes_enabled:
                continue
            for entry in self.catalog.entries(source):
                candidate = self._score(hex_code, query_lab, entry.name, entry.hex, source, piece_type, policy)
                if candidate is not None:
                    candidates.append(candidate)

        return candidates

    def _score(
        self,
        query_hex: str,
        query_lab: LabColor,
        name: str,
        target_hex: str,
        source: ColorSource,
        piece_type: PieceType,
        policy: MatchPolicy,
    ) -> Optional[MatchCandidate]:
        if policy.piece_specific_enabled and not can_match_piece(name, piece_type):
            return None

        if (
            piece_type is PieceType.HELMET
            and not policy.three_piece_sets_enabled
            and THREE_PIECE_MARKER in name.lower()
        ):
            return None

        is_custom = source is ColorSource.CUSTOM
        is_fade = source is ColorSource.FADE
        delta_e = delta_e_cie1976(query_lab, self.catalog.lab_for(target_hex))

        if is_fade and not policy.show_high_fades and delta_e > HIGH_FADE_LIMIT:
            return None

        return MatchCandidate(
            name=name,
            target_hex=target_hex,
            delta_e=delta_e,
            absolute_distance=absolute_distance(query_hex, target_hex),
            tier=calculate_tier(delta_e, is_custom, is_fade),
            source=source,
        )
