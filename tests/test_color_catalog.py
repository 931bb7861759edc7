"""
Tests for ColorCatalog and the catalog loader
"""

import threading

import pytest

from dye_analyzer.core.color_catalog import (
    ColorCatalog,
    CustomColorNotFoundError,
    InvalidHexError,
    fade_base_name,
    fade_stage,
)
from dye_analyzer.data.catalog_loader import CatalogLoadError, load_catalog, read_palettes
from dye_analyzer.schemas.match import ColorSource
from dye_analyzer.utils.color_space import hex_to_lab


def test_entries_keep_insertion_order(catalog):
    names = [e.name for e in catalog.target_entries()]
    assert names == ["Ruby", "Emerald", "Sapphire", "Onyx", "Snow"]
    assert all(e.source is ColorSource.TARGET for e in catalog.target_entries())


def test_invalid_source_hex_skipped():
    catalog = ColorCatalog(target_colors={"Good": "#abcdef", "Bad": "12345"})
    assert [(e.name, e.hex) for e in catalog.target_entries()] == [("Good", "ABCDEF")]


def test_empty_catalog():
    assert ColorCatalog().is_empty()


def test_lab_cache(catalog):
    assert catalog.cached_hexes() == []
    lab = catalog.lab_for("#ff0000")
    assert lab == hex_to_lab("FF0000")
    assert catalog.cached_hexes() == ["FF0000"]


def test_warm_cache_covers_all_sources(catalog):
    catalog.add_custom_color("Mine", "123456")
    size = catalog.warm_cache()
    assert size == 5 + 3 + 1
    assert "123456" in catalog.cached_hexes()


class TestCustomColors:
    def test_add_normalizes_and_bumps_version(self, catalog):
        version = catalog.version
        catalog.lab_for("FF0000")

        entry = catalog.add_custom_color("Mine", "#a1b2c3")

        assert entry.hex == "A1B2C3"
        assert entry.source is ColorSource.CUSTOM
        assert catalog.custom_colors() == {"Mine": "A1B2C3"}
        assert catalog.version == version + 1
        assert catalog.cached_hexes() == []

    def test_add_invalid_hex(self, catalog):
        with pytest.raises(InvalidHexError):
            catalog.add_custom_color("Bad", "GG0000")
        assert catalog.custom_colors() == {}

    def test_remove(self, catalog):
        catalog.add_custom_color("Mine", "A1B2C3")
        entry = catalog.remove_custom_color("Mine")
        assert entry.hex == "A1B2C3"
        assert catalog.custom_entries() == []

    def test_remove_missing(self, catalog):
        with pytest.raises(CustomColorNotFoundError):
            catalog.remove_custom_color("Nope")

    def test_replace_custom_colors(self, catalog):
        catalog.add_custom_color("Old", "111111")
        catalog.replace_custom_colors({"New": "222222", "Broken": "zz"})
        assert catalog.custom_colors() == {"New": "222222"}

    def test_concurrent_reads_during_mutation(self, catalog):
        errors = []

        def reader():
            try:
                for _ in range(200):
                    catalog.lab_for("FF0000")
                    catalog.custom_entries()
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=reader) for _ in range(4)]
        for t in threads:
            t.start()
        for i in range(50):
            catalog.add_custom_color(f"C{i}", f"{i:06X}")
        for t in threads:
            t.join()

        assert errors == []
        assert len(catalog.custom_colors()) == 50


class TestFadeFamilies:
    def test_base_and_stage(self):
        assert fade_base_name("Aurora - Stage 3") == "Aurora"
        assert fade_stage("Aurora - Stage 3") == 3
        assert fade_stage("Ruby") is None

    def test_is_fade_family(self, catalog):
        assert catalog.is_fade_family("Aurora")
        assert catalog.is_fade_family("Aurora - Stage 7")
        assert not catalog.is_fade_family("Ruby")

    def test_fade_family_ordered_by_stage(self):
        catalog = ColorCatalog(
            fade_dyes={"Tide - Stage 10": "000010", "Tide - Stage 2": "000002", "Tide - Stage 1": "000001"}
        )
        assert [e.name for e in catalog.fade_family("Tide")] == [
            "Tide - Stage 1",
            "Tide - Stage 2",
            "Tide - Stage 10",
        ]
        assert catalog.fade_bases() == ["Tide"]


class TestCatalogLoader:
    def test_load(self, catalog_file):
        catalog = load_catalog(catalog_file, {"Mine": "123456"})
        assert len(catalog.target_entries()) == 5
        assert len(catalog.fade_entries()) == 3
        assert catalog.custom_colors() == {"Mine": "123456"}

    def test_missing_section_is_empty(self, tmp_json):
        target, fades = read_palettes(tmp_json({"TARGET_COLORS": {"Ruby": "FF0000"}}))
        assert target == {"Ruby": "FF0000"}
        assert fades == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogLoadError):
            read_palettes(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "colors.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(CatalogLoadError):
            read_palettes(path)

    def test_bad_section_type(self, tmp_json):
        with pytest.raises(CatalogLoadError):
            read_palettes(tmp_json({"TARGET_COLORS": ["Ruby"]}))
