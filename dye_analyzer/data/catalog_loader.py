"""
Catalog Loader

Reads the static target / fade palettes from a JSON file:

    {
        "TARGET_COLORS": {"Ruby": "FF0000", ...},
        "FADE_DYES": {"Aurora - Stage 1": "1A2B3C", ...}
    }

Key order in the file is kept as catalog iteration order.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from dye_analyzer.core.color_catalog import ColorCatalog

logger = logging.getLogger(__name__)

TARGET_KEY = "TARGET_COLORS"
FADE_KEY = "FADE_DYES"


class CatalogLoadError(Exception):
    """Catalog file missing or malformed"""

    pass


def read_palettes(path: Path) -> Tuple[Dict[str, str], Dict[str, str]]:
    """
    Read (target_colors, fade_dyes) from a catalog file.

    Raises:
        CatalogLoadError: If the file is missing, not JSON, or has non-object sections
    """
    path = Path(path)
    if not path.exists():
        raise CatalogLoadError(f"Catalog not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise CatalogLoadError(f"Invalid JSON in catalog {path}: {e}") from e

    if not isinstance(data, dict):
        raise CatalogLoadError(f"Catalog {path} must be a JSON object")

    sections = []
    for key in (TARGET_KEY, FADE_KEY):
        section = data.get(key, {})
        if not isinstance(section, dict):
            raise CatalogLoadError(f"Catalog section {key} must be an object")
        sections.append({str(name): str(hex_code) for name, hex_code in section.items()})

    return sections[0], sections[1]


def load_catalog(path: Path, custom_colors: Optional[Mapping[str, str]] = None) -> ColorCatalog:
    """Build a ColorCatalog from a catalog file plus user custom colors."""
    target, fades = read_palettes(path)
    logger.debug(f"Read catalog {path}")
    return ColorCatalog(target_colors=target, fade_dyes=fades, custom_colors=custom_colors)
