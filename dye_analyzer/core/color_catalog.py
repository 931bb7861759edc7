"""
Color Catalog Module

Holds the three color sources (custom, target, fade) and a memoized Lab
cache keyed by normalized hex.

Target and fade palettes are static after construction. Custom colors are
the only runtime-mutable source; each mutation bumps `version` and swaps
in a fresh Lab cache so no reader sees a value cached before the change.
"""

import logging
import re
import threading
from typing import Dict, List, Mapping, Optional

from dye_analyzer.schemas.match import ColorEntry, ColorSource, LabColor
from dye_analyzer.utils.color_space import hex_to_lab, is_valid_hex, normalize_hex

logger = logging.getLogger(__name__)

FADE_STAGE_SEPARATOR = " - "
_STAGE_RE = re.compile(r" - Stage (\d+)$")


class CatalogError(Exception):
    """Base exception for catalog errors"""

    pass


class InvalidHexError(CatalogError):
    """Hex code is not 6 hex digits"""

    pass


class CustomColorNotFoundError(CatalogError):
    """Custom color name not present"""

    pass


def fade_base_name(name: str) -> str:
    """'Aurora - Stage 3' -> 'Aurora'"""
    return name.split(FADE_STAGE_SEPARATOR)[0]


def fade_stage(name: str) -> Optional[int]:
    """'Aurora - Stage 3' -> 3, None if the name has no stage suffix"""
    match = _STAGE_RE.search(name)
    return int(match.group(1)) if match else None


class ColorCatalog:
    """
    Versioned color catalog with a shared Lab cache.

    Safe for any number of concurrent readers; custom-color mutations are
    serialized on an internal lock.
    """

    def __init__(
        self,
        target_colors: Optional[Mapping[str, str]] = None,
        fade_dyes: Optional[Mapping[str, str]] = None,
        custom_colors: Optional[Mapping[str, str]] = None,
    ):
        """
        Args:
            target_colors: name -> hex, insertion ordered
            fade_dyes: name -> hex, names follow "<Base> - Stage N"
            custom_colors: name -> hex, user defined
        """
        self._lock = threading.RLock()
        self._target: Dict[str, str] = self._normalize_source(target_colors or {}, ColorSource.TARGET)
        self._fade: Dict[str, str] = self._normalize_source(fade_dyes or {}, ColorSource.FADE)
        self._fade_bases = {fade_base_name(name) for name in self._fade}
        self._custom: Dict[str, str] = self._normalize_source(custom_colors or {}, ColorSource.CUSTOM)
        self._version = 0
        self._lab_cache: Dict[str, LabColor] = {}

        logger.info(f"Loaded {len(self._target)} target colors and {len(self._fade)} fade dyes")

    @staticmethod
    def _normalize_source(colors: Mapping[str, str], source: ColorSource) -> Dict[str, str]:
        normalized = {}
        for name, hex_code in colors.items():
            if not is_valid_hex(hex_code):
                logger.warning(f"Skipping {source.value} color {name!r}: invalid hex {hex_code!r}")
                continue
            normalized[name] = normalize_hex(hex_code)
        return normalized

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    @property
    def version(self) -> int:
        return self._version

    def target_entries(self) -> List[ColorEntry]:
        return [ColorEntry(name, hex_code, ColorSource.TARGET) for name, hex_code in self._target.items()]

    def fade_entries(self) -> List[ColorEntry]:
        return [ColorEntry(name, hex_code, ColorSource.FADE) for name, hex_code in self._fade.items()]

    def custom_entries(self) -> List[ColorEntry]:
        with self._lock:
            items = list(self._custom.items())
        return [ColorEntry(name, hex_code, ColorSource.CUSTOM) for name, hex_code in items]

    def entries(self, source: ColorSource) -> List[ColorEntry]:
        if source is ColorSource.CUSTOM:
            return self.custom_entries()
        if source is ColorSource.FADE:
            return self.fade_entries()
        return self.target_entries()

    def custom_colors(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._custom)

    def is_empty(self) -> bool:
        with self._lock:
            return not (self._target or self._fade or self._custom)

    # ------------------------------------------------------------------
    # Lab cache
    # ------------------------------------------------------------------

    def lab_for(self, hex_code: str) -> LabColor:
        """Cached hex -> Lab. Malformed hex yields black's Lab, like hex_to_lab."""
        key = normalize_hex(hex_code)
        cache = self._lab_cache
        lab = cache.get(key)
        if lab is None:
            lab = hex_to_lab(key)
            # a concurrent invalidation swaps the dict; this write then lands in the discarded one
            cache[key] = lab
        return lab

    def invalidate_cache(self) -> None:
        with self._lock:
            self._version += 1
            self._lab_cache = {}

    def warm_cache(self) -> int:
        """Precompute Lab for every catalog hex. Returns cache size."""
        with self._lock:
            hexes = list(self._target.values()) + list(self._fade.values()) + list(self._custom.values())
        for hex_code in hexes:
            self.lab_for(hex_code)
        return len(self._lab_cache)

    def cached_hexes(self) -> List[str]:
        return list(self._lab_cache.keys())

    # ------------------------------------------------------------------
    # Custom colors
    # ------------------------------------------------------------------

    def add_custom_color(self, name: str, hex_code: str) -> ColorEntry:
        """
        Add or replace a custom color.

        Raises:
            InvalidHexError: If hex_code is not 6 hex digits
        """
        value = normalize_hex(hex_code)
        if not is_valid_hex(value):
            raise InvalidHexError(f"Invalid hex code: {hex_code!r}. Must be 6 characters (0-9, A-F)")
        with self._lock:
            self._custom[name] = value
            self.invalidate_cache()
        logger.info(f"Added custom color {name} (#{value})")
        return ColorEntry(name, value, ColorSource.CUSTOM)

    def remove_custom_color(self, name: str) -> ColorEntry:
        """
        Remove a custom color.

        Raises:
            CustomColorNotFoundError: If no custom color has that name
        """
        with self._lock:
            if name not in self._custom:
                raise CustomColorNotFoundError(f"Custom color not found: {name}")
            value = self._custom.pop(name)
            self.invalidate_cache()
        logger.info(f"Removed custom color {name} (#{value})")
        return ColorEntry(name, value, ColorSource.CUSTOM)

    def replace_custom_colors(self, colors: Mapping[str, str]) -> None:
        normalized = self._normalize_source(colors, ColorSource.CUSTOM)
        with self._lock:
            self._custom = normalized
            self.invalidate_cache()

    # ------------------------------------------------------------------
    # Fade families
    # ------------------------------------------------------------------

    def fade_bases(self) -> List[str]:
        return sorted(self._fade_bases)

    def is_fade_family(self, name: str) -> bool:
        """True if name is a known fade base name, with or without a stage suffix."""
        if name in self._fade_bases:
            return True
        return any(name.startswith(base + " - Stage") for base in self._fade_bases)

    def fade_family(self, base: str) -> List[ColorEntry]:
        """All stages of a fade family ordered by stage number."""
        members = [entry for entry in self.fade_entries() if fade_base_name(entry.name) == base]
        return sorted(members, key=lambda e: (fade_stage(e.name) is None, fade_stage(e.name) or 0))
