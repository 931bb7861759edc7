"""
Match Data Schemas

Transient data structures produced while classifying one query color.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, NamedTuple


class LabColor(NamedTuple):
    """CIE L*a*b* value. Immutable; indexable as (L, a, b)."""

    L: float
    a: float
    b: float


class ColorSource(str, Enum):
    """Which catalog source a color entry came from."""

    CUSTOM = "custom"
    TARGET = "target"
    FADE = "fade"


class PieceType(str, Enum):
    """Item category inferred from a display name."""

    HELMET = "helmet"
    CHESTPLATE = "chestplate"
    LEGGINGS = "leggings"
    BOOTS = "boots"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ColorEntry:
    """A named catalog color. hex is 6 uppercase hex digits."""

    name: str
    hex: str
    source: ColorSource = ColorSource.TARGET


@dataclass(frozen=True)
class MatchCandidate:
    """
    One catalog color scored against a query.

    Attributes:
        name: Catalog color name
        target_hex: Catalog hex
        delta_e: CIE76 ΔE against the query (>= 0)
        absolute_distance: RGB Manhattan distance (0~765)
        tier: 0 (best) ~ 3 (worst)
        source: Catalog source the entry came from
    """

    name: str
    target_hex: str
    delta_e: float
    absolute_distance: int
    tier: int
    source: ColorSource

    @property
    def is_custom(self) -> bool:
        return self.source is ColorSource.CUSTOM

    @property
    def is_fade(self) -> bool:
        return self.source is ColorSource.FADE


@dataclass
class ClassificationResult:
    """Ranked outcome for one query color."""

    best_match: MatchCandidate
    top3: List[MatchCandidate] = field(default_factory=list)
    tier: int = 3
