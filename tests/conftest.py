import json
from pathlib import Path

import pytest

from dye_analyzer.core.color_catalog import ColorCatalog
from dye_analyzer.core.color_ranker import MatchRanker
from dye_analyzer.core.pattern_detector import PatternDetector
from dye_analyzer.data.config_manager import ConfigManager
from dye_analyzer.data.record_store import MemoryRecordPersistence, RecordStore
from dye_analyzer.pipeline import AnalysisPipeline

TARGET_COLORS = {
    "Ruby": "FF0000",
    "Emerald": "00FF00",
    "Sapphire": "0000FF",
    "Onyx": "000000",
    "Snow": "FFFFFF",
}

FADE_DYES = {
    "Aurora - Stage 1": "FC0000",
    "Aurora - Stage 2": "00FC00",
    "Aurora - Stage 3": "0000FC",
}


@pytest.fixture
def tmp_json(tmp_path: Path):
    def _make(data, name="sample.json"):
        path = tmp_path / name
        path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        return path

    return _make


@pytest.fixture
def catalog_file(tmp_json):
    return tmp_json({"TARGET_COLORS": TARGET_COLORS, "FADE_DYES": FADE_DYES}, name="colors.json")


@pytest.fixture
def catalog():
    return ColorCatalog(target_colors=TARGET_COLORS, fade_dyes=FADE_DYES)


@pytest.fixture
def ranker(catalog):
    return MatchRanker(catalog)


@pytest.fixture
def config():
    return ConfigManager(data={"word_list": {"RED": "FFXXXX"}})


@pytest.fixture
def memory_store():
    """In-memory store with a long debounce so only explicit syncs flush"""
    store = RecordStore(MemoryRecordPersistence(), debounce_seconds=60.0)
    yield store
    store.close()


@pytest.fixture
def pipeline(ranker, config):
    return AnalysisPipeline(ranker, PatternDetector(config.word_list), policy_provider=config.policy)
