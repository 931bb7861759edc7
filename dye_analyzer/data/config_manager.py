"""
User Settings Manager

JSON-backed settings: ranking toggles, custom colors, word list and the
priority order. Values are addressed with dotted keys ("toggles.words_enabled").
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from dye_analyzer.config.policy import DEFAULT_PRIORITY_ORDER, MatchPolicy, PriorityClass, parse_priority_order
from dye_analyzer.core.pattern_detector import WORD_PATTERN_RE
from dye_analyzer.utils.file_io import read_json, write_json

logger = logging.getLogger(__name__)

DEFAULT_TOGGLES: Dict[str, bool] = {
    "words_enabled": True,
    "patterns_enabled": True,
    "dupes_enabled": True,
    "fade_dyes_enabled": True,
    "custom_colors_enabled": True,
    "show_high_fades": False,
    "three_piece_sets_enabled": False,
    "piece_specific_enabled": False,
}

# short option names accepted by `toggle`
TOGGLE_ALIASES: Dict[str, str] = {
    "words": "words_enabled",
    "pattern": "patterns_enabled",
    "patterns": "patterns_enabled",
    "dupes": "dupes_enabled",
    "fade": "fade_dyes_enabled",
    "custom": "custom_colors_enabled",
    "highfades": "show_high_fades",
    "3p": "three_piece_sets_enabled",
    "sets": "piece_specific_enabled",
}


class SettingsError(Exception):
    """Base exception for settings errors"""

    pass


class InvalidWordPatternError(SettingsError):
    """Word pattern is not 1-6 characters of 0-9, A-F, X"""

    pass


class WordNotFoundError(SettingsError):
    """Word not present in the word list"""

    pass


class UnknownToggleError(SettingsError):
    """Toggle option name not recognized"""

    pass


def _default_settings() -> Dict[str, Any]:
    return {
        "toggles": dict(DEFAULT_TOGGLES),
        "custom_colors": {},
        "word_list": {},
        "priority_order": [p.value for p in DEFAULT_PRIORITY_ORDER],
    }


class ConfigManager:
    def __init__(self, path: Optional[Path] = None, data: Optional[Dict] = None):
        self.config_path = Path(path) if path else None
        self._config = _default_settings()
        if data:
            self._merge(data)
        elif self.config_path and self.config_path.exists():
            self._merge(read_json(self.config_path))

    def _merge(self, data: Dict[str, Any]):
        for key, value in data.items():
            if isinstance(value, dict) and isinstance(self._config.get(key), dict):
                self._config[key].update(value)
            else:
                self._config[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        keys = key.split(".")
        val = self._config
        try:
            for k in keys:
                val = val[k]
            return val
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any):
        keys = key.split(".")
        val = self._config
        for k in keys[:-1]:
            val = val.setdefault(k, {})
        val[keys[-1]] = value

    def save(self, path: Optional[Path] = None):
        target = path or self.config_path
        if target:
            write_json(self._config, target)

    def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self._config)

    def policy(self) -> MatchPolicy:
        return MatchPolicy.from_settings(self.snapshot())

    # ------------------------------------------------------------------
    # Toggles
    # ------------------------------------------------------------------

    @staticmethod
    def resolve_toggle(option: str) -> str:
        option = option.lower()
        if option in DEFAULT_TOGGLES:
            return option
        if option in TOGGLE_ALIASES:
            return TOGGLE_ALIASES[option]
        raise UnknownToggleError(
            f"Invalid toggle option: {option}. Available: {', '.join(sorted(TOGGLE_ALIASES))}"
        )

    def is_enabled(self, option: str) -> bool:
        name = self.resolve_toggle(option)
        return bool(self.get(f"toggles.{name}", DEFAULT_TOGGLES[name]))

    def toggle(self, option: str) -> bool:
        """Flip a toggle and return its new state."""
        name = self.resolve_toggle(option)
        state = not self.is_enabled(name)
        self.set(f"toggles.{name}", state)
        logger.info(f"Toggle {name} -> {state}")
        return state

    # ------------------------------------------------------------------
    # Custom colors / word list
    # ------------------------------------------------------------------

    def custom_colors(self) -> Dict[str, str]:
        return dict(self.get("custom_colors", {}))

    def set_custom_color(self, name: str, hex_code: str):
        self.set("custom_colors", {**self.custom_colors(), name: hex_code})

    def remove_custom_color(self, name: str) -> Optional[str]:
        colors = self.custom_colors()
        removed = colors.pop(name, None)
        self.set("custom_colors", colors)
        return removed

    def word_list(self) -> Dict[str, str]:
        return dict(self.get("word_list", {}))

    def add_word(self, word: str, pattern: str) -> str:
        """
        Add or replace a word pattern.

        Args:
            word: Word label, stored uppercase
            pattern: 1-6 characters of 0-9, A-F or X (wildcard); '#' is stripped

        Returns:
            Normalized pattern

        Raises:
            InvalidWordPatternError: If the pattern is malformed
        """
        word = word.upper()
        pattern = pattern.replace("#", "").upper()
        if not WORD_PATTERN_RE.match(pattern):
            raise InvalidWordPatternError(
                f"Invalid pattern {pattern!r}: must be 1-6 characters of 0-9, A-F or X"
            )
        self.set("word_list", {**self.word_list(), word: pattern})
        logger.info(f"Added word {word} ({pattern})")
        return pattern

    def remove_word(self, word: str) -> str:
        """
        Raises:
            WordNotFoundError: If the word is not in the list
        """
        word = word.upper()
        words = self.word_list()
        if word not in words:
            raise WordNotFoundError(f"Word not found: {word}")
        pattern = words.pop(word)
        self.set("word_list", words)
        logger.info(f"Removed word {word} ({pattern})")
        return pattern

    def priority_order(self) -> List[PriorityClass]:
        return list(parse_priority_order(self.get("priority_order", [])))

    def set_priority_order(self, order: List[str]):
        self.set("priority_order", [p.value for p in parse_priority_order(order)])
