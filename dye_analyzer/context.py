"""
Application Context

Wires the catalog, settings, ranker, detector and collection together.
One AppContext is built per process and passed explicitly to whoever
needs it.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dye_analyzer.config import paths
from dye_analyzer.config.policy import MatchPolicy
from dye_analyzer.core.color_catalog import ColorCatalog
from dye_analyzer.core.color_ranker import MatchRanker
from dye_analyzer.core.pattern_detector import PatternDetector
from dye_analyzer.data.catalog_loader import load_catalog
from dye_analyzer.data.config_manager import ConfigManager
from dye_analyzer.data.record_store import JsonRecordPersistence, RecordPersistence, RecordStore
from dye_analyzer.pipeline import AnalysisPipeline
from dye_analyzer.schemas.match import ColorEntry
from dye_analyzer.services.collection_service import CollectionService

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    config: ConfigManager
    catalog: ColorCatalog
    ranker: MatchRanker
    detector: PatternDetector
    store: RecordStore
    pipeline: AnalysisPipeline
    collection: CollectionService

    def policy(self) -> MatchPolicy:
        return self.config.policy()

    # Settings edits go to the live catalog first, then to disk.

    def add_custom_color(self, name: str, hex_code: str) -> ColorEntry:
        entry = self.catalog.add_custom_color(name, hex_code)
        self.config.set_custom_color(entry.name, entry.hex)
        self.config.save()
        return entry

    def remove_custom_color(self, name: str) -> ColorEntry:
        entry = self.catalog.remove_custom_color(name)
        self.config.remove_custom_color(name)
        self.config.save()
        return entry

    def add_word(self, word: str, pattern: str) -> str:
        pattern = self.config.add_word(word, pattern)
        self.config.save()
        return pattern

    def remove_word(self, word: str) -> str:
        pattern = self.config.remove_word(word)
        self.config.save()
        return pattern

    def toggle(self, option: str) -> bool:
        state = self.config.toggle(option)
        self.config.save()
        return state

    def close(self):
        self.collection.close()


def build_context(
    catalog_file: Optional[Path] = None,
    settings_file: Optional[Path] = None,
    persistence: Optional[RecordPersistence] = None,
    debounce_seconds: Optional[float] = None,
    load_collection: bool = True,
) -> AppContext:
    """
    Build an AppContext from files (environment defaults where not given).

    A missing catalog file gives an empty catalog; a malformed one raises
    CatalogLoadError.
    """
    catalog_file = Path(catalog_file) if catalog_file else paths.catalog_path()
    settings_file = Path(settings_file) if settings_file else paths.settings_path()
    if persistence is None:
        persistence = JsonRecordPersistence(paths.collection_path())
    if debounce_seconds is None:
        debounce_seconds = paths.debounce_seconds()

    config = ConfigManager(settings_file)

    if catalog_file.exists():
        catalog = load_catalog(catalog_file, config.custom_colors())
    else:
        logger.warning(f"Catalog not found: {catalog_file}; starting with custom colors only")
        catalog = ColorCatalog(custom_colors=config.custom_colors())
    catalog.warm_cache()

    ranker = MatchRanker(catalog)
    detector = PatternDetector(config.word_list)
    store = RecordStore(persistence, debounce_seconds=debounce_seconds)
    if load_collection:
        store.load()
    pipeline = AnalysisPipeline(ranker, detector, policy_provider=config.policy)
    collection = CollectionService(store, pipeline, dupes_enabled=lambda: config.is_enabled("dupes"))

    return AppContext(
        config=config,
        catalog=catalog,
        ranker=ranker,
        detector=detector,
        store=store,
        pipeline=pipeline,
        collection=collection,
    )
