import pytest

from dye_analyzer.core.pattern_detector import (
    PatternDetector,
    detect_pattern,
    detect_word_match,
    matches_word_pattern,
)


@pytest.mark.parametrize(
    "hex_code,expected",
    [
        ("111111", "paired"),
        ("AABBCC", "paired"),
        ("123123", "repeating"),
        ("ABAABA", "repeating"),
        ("123321", "palindrome"),
        ("A1A2A3", "axbxcx_a"),
        ("121212", "axbxcx_1"),
        ("a1a2a3", "axbxcx_a"),
        ("123456", None),
        ("12345", None),
        ("", None),
        (None, None),
    ],
)
def test_detect_pattern(hex_code, expected):
    assert detect_pattern(hex_code) == expected


def test_matches_word_pattern():
    assert matches_word_pattern("DEAD00", "DEADXX")
    assert matches_word_pattern("dead00", "deadxx")
    assert not matches_word_pattern("DEAD00", "BEEFXX")
    assert not matches_word_pattern("DEAD00", "DEAD")
    assert not matches_word_pattern("DEAD00", "")


def test_detect_word_match_first_wins():
    words = {"DEAD": "DEADXX", "ANY": "XXXXXX"}
    assert detect_word_match("DEAD00", words) == "DEAD"
    assert detect_word_match("123456", words) == "ANY"
    assert detect_word_match("123456", {"DEAD": "DEADXX"}) is None
    assert detect_word_match(None, words) is None


class TestPatternDetector:
    def test_reads_word_list_provider_each_call(self):
        words = {"BEEF": "BEEFXX"}
        detector = PatternDetector(lambda: words)
        assert detector.detect_word_match("BEEF00") == "BEEF"

        words["DEAD"] = "DEADXX"
        assert detector.detect_word_match("DEAD00") == "DEAD"

    def test_pieces_with_pattern(self):
        detector = PatternDetector()
        hexes = {"a": "111111", "b": "123123", "c": "222222"}
        assert detector.pieces_with_pattern("paired", hexes) == {"a", "c"}
        assert detector.pattern_counts(hexes.values()) == {"paired": 2, "repeating": 1}

    def test_pieces_with_words(self):
        detector = PatternDetector({"FF": "FFXXXX"})
        assert detector.pieces_with_words({"a": "FF0000", "b": "00FF00"}) == {"a"}
