"""
Pattern Detector Module

Structural hex patterns (paired, repeating, palindrome, AxBxCx) and
wildcard word matching against a user word list.
"""

import re
from typing import Callable, Dict, Iterable, Mapping, Optional, Set, Union

PAIRED = "paired"
REPEATING = "repeating"
PALINDROME = "palindrome"
AXBXCX_PREFIX = "axbxcx_"

PATTERN_TYPES = (PAIRED, REPEATING, PALINDROME, AXBXCX_PREFIX)

WILDCARD = "X"
WORD_PATTERN_RE = re.compile(r"^[0-9A-FX]{1,6}$")


def detect_pattern(hex_code: Optional[str]) -> Optional[str]:
    """
    Classify the shape of a 6-digit hex.

    First match wins, in this order:
        paired      AABBCC
        repeating   ABCABC
        palindrome  ABCCBA
        axbxcx_<c>  positions 0, 2, 4 equal; <c> is that digit lowercased

    Returns:
        Pattern name, or None (also for input that is not 6 characters)

    Example:
        >>> detect_pattern("111111")
        'paired'
        >>> detect_pattern("A1A2A3")
        'axbxcx_a'
    """
    if hex_code is None or len(hex_code) != 6:
        return None

    c = hex_code.upper()

    if c[0] == c[1] and c[2] == c[3] and c[4] == c[5]:
        return PAIRED
    if c[0] == c[3] and c[1] == c[4] and c[2] == c[5]:
        return REPEATING
    if c[0] == c[5] and c[1] == c[4] and c[2] == c[3]:
        return PALINDROME
    if c[0] == c[2] == c[4]:
        return AXBXCX_PREFIX + c[0].lower()

    return None


def matches_word_pattern(hex_code: str, pattern: str) -> bool:
    """
    Position-wise match with 'X' as wildcard. Lengths must be equal.

    An empty pattern never matches.
    """
    hex_code = hex_code.upper()
    pattern = pattern.upper()
    if not pattern or len(hex_code) != len(pattern):
        return False
    return all(p == WILDCARD or p == h for h, p in zip(hex_code, pattern))


def detect_word_match(hex_code: Optional[str], word_list: Mapping[str, str]) -> Optional[str]:
    """First word (in word_list iteration order) whose pattern matches hex_code."""
    if not hex_code:
        return None
    for word, pattern in word_list.items():
        if matches_word_pattern(hex_code, pattern):
            return word
    return None


class PatternDetector:
    """
    Pattern and word detection bound to a word list.

    `word_list` may be a mapping or a zero-argument callable returning one;
    a callable is re-read on every call so settings edits apply immediately.
    """

    def __init__(self, word_list: Union[Mapping[str, str], Callable[[], Mapping[str, str]], None] = None):
        self._word_list = word_list if word_list is not None else {}

    @property
    def word_list(self) -> Dict[str, str]:
        source = self._word_list() if callable(self._word_list) else self._word_list
        return dict(source)

    def detect_pattern(self, hex_code: Optional[str]) -> Optional[str]:
        return detect_pattern(hex_code)

    def detect_word_match(self, hex_code: Optional[str]) -> Optional[str]:
        return detect_word_match(hex_code, self.word_list)

    def pieces_with_pattern(self, pattern_type: str, hex_by_id: Mapping[str, str]) -> Set[str]:
        """Ids whose hex has exactly pattern_type (e.g. 'paired', 'axbxcx_f')."""
        return {item_id for item_id, hex_code in hex_by_id.items() if detect_pattern(hex_code) == pattern_type}

    def pieces_with_words(self, hex_by_id: Mapping[str, str]) -> Set[str]:
        words = self.word_list
        return {item_id for item_id, hex_code in hex_by_id.items() if detect_word_match(hex_code, words)}

    def pattern_counts(self, hexes: Iterable[str]) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for hex_code in hexes:
            pattern = detect_pattern(hex_code)
            if pattern is not None:
                counts[pattern] = counts.get(pattern, 0) + 1
        return counts
