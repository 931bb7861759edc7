"""
Match Policy

Read-only snapshot of the ranking toggles and priority order. A ranker
takes one snapshot at the start of a call and never re-reads settings
mid-ranking.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Tuple


class PriorityClass(str, Enum):
    """Buckets used to reorder non-exact candidates with tier <= 2."""

    CUSTOM_T1 = "custom_t1"
    CUSTOM_T2 = "custom_t2"
    FADE_T0 = "fade_t0"
    FADE_T1 = "fade_t1"
    FADE_T2 = "fade_t2"
    NORMAL_T0 = "normal_t0"
    NORMAL_T1 = "normal_t1"
    NORMAL_T2 = "normal_t2"


DEFAULT_PRIORITY_ORDER: Tuple[PriorityClass, ...] = tuple(PriorityClass)


def parse_priority_order(values: Iterable[Any]) -> Tuple[PriorityClass, ...]:
    """
    Build a total order over all 8 priority classes.

    Unknown names are dropped, duplicates keep their first position and
    classes missing from `values` are appended in default order.
    """
    order = []
    for value in values:
        if isinstance(value, PriorityClass):
            klass = value
        else:
            try:
                klass = PriorityClass(str(value).lower())
            except ValueError:
                continue
        if klass not in order:
            order.append(klass)
    for klass in DEFAULT_PRIORITY_ORDER:
        if klass not in order:
            order.append(klass)
    return tuple(order)


@dataclass(frozen=True)
class MatchPolicy:
    """
    Ranking policy snapshot.

    Attributes:
        custom_colors_enabled: Rank custom colors
        fade_dyes_enabled: Rank fade dye stages
        piece_specific_enabled: Drop colors named for another piece type
        three_piece_sets_enabled: Allow "3p" set colors on helmets
        show_high_fades: Keep fade candidates with ΔE > 2
        words_enabled: Run word detection
        patterns_enabled: Run hex pattern detection
        priority_order: Total order over PriorityClass
    """

    custom_colors_enabled: bool = True
    fade_dyes_enabled: bool = True
    piece_specific_enabled: bool = False
    three_piece_sets_enabled: bool = False
    show_high_fades: bool = False
    words_enabled: bool = True
    patterns_enabled: bool = True
    priority_order: Tuple[PriorityClass, ...] = field(default=DEFAULT_PRIORITY_ORDER)

    def __post_init__(self):
        object.__setattr__(self, "priority_order", parse_priority_order(self.priority_order))

    def priority_rank(self, klass: PriorityClass) -> int:
        return self.priority_order.index(klass)

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> "MatchPolicy":
        """Snapshot a policy from a settings dict (see ConfigManager)."""
        toggles = settings.get("toggles", {})
        defaults = cls()
        return cls(
            custom_colors_enabled=bool(toggles.get("custom_colors_enabled", defaults.custom_colors_enabled)),
            fade_dyes_enabled=bool(toggles.get("fade_dyes_enabled", defaults.fade_dyes_enabled)),
            piece_specific_enabled=bool(toggles.get("piece_specific_enabled", defaults.piece_specific_enabled)),
            three_piece_sets_enabled=bool(
                toggles.get("three_piece_sets_enabled", defaults.three_piece_sets_enabled)
            ),
            show_high_fades=bool(toggles.get("show_high_fades", defaults.show_high_fades)),
            words_enabled=bool(toggles.get("words_enabled", defaults.words_enabled)),
            patterns_enabled=bool(toggles.get("patterns_enabled", defaults.patterns_enabled)),
            priority_order=parse_priority_order(settings.get("priority_order", ())),
        )
