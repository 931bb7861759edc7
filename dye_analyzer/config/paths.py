"""
Shared path configuration for the analyzer's data files.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

DEFAULT_DEBOUNCE_SECONDS = 2.0


def _normalize_path(value: Optional[str], default: Path) -> Path:
    if value is None or value == "":
        return default.resolve()
    candidate = Path(value).expanduser()
    if not candidate.is_absolute():
        candidate = (Path.cwd() / candidate).resolve()
    return candidate


def data_home() -> Path:
    return _normalize_path(os.getenv("DYE_ANALYZER_HOME"), Path.cwd() / ".dye_analyzer")


def catalog_path() -> Path:
    return _normalize_path(os.getenv("DYE_ANALYZER_CATALOG"), data_home() / "colors.json")


def settings_path() -> Path:
    return _normalize_path(os.getenv("DYE_ANALYZER_SETTINGS"), data_home() / "settings.json")


def collection_path() -> Path:
    return _normalize_path(os.getenv("DYE_ANALYZER_COLLECTION"), data_home() / "collection.json")


def debounce_seconds() -> float:
    raw = os.getenv("DYE_ANALYZER_DEBOUNCE")
    if not raw:
        return DEFAULT_DEBOUNCE_SECONDS
    try:
        return max(0.0, float(raw))
    except ValueError:
        return DEFAULT_DEBOUNCE_SECONDS
