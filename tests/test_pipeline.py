"""
Tests for AnalysisPipeline: record building and rebuild passes
"""

from dye_analyzer.config.policy import MatchPolicy
from dye_analyzer.data.record_store import MemoryRecordPersistence, RecordStore
from dye_analyzer.pipeline import Observation, is_tracked_item, strip_formatting
from dye_analyzer.schemas.record import Location


def observe(record_id="a", hex_code="#ff0000", name="§6Velvet Top Hat"):
    return Observation(id=record_id, display_name=name, hex=hex_code, location=Location(x=10, y=64, z=-3))


def test_strip_formatting():
    assert strip_formatting("§6§lVelvet §rTop Hat") == "Velvet Top Hat"
    assert strip_formatting(None) == ""


def test_is_tracked_item():
    assert is_tracked_item("§5Shiny Velvet Top Hat")
    assert is_tracked_item("Oxford Shoes")
    assert not is_tracked_item("Diamond Sword")
    assert not is_tracked_item("")


def test_observation_from_dict():
    obs = Observation.from_dict({"id": 7, "name": "Satin Trousers", "hex": "00ff00", "location": [1, 2, 3]})
    assert obs.id == "7"
    assert obs.display_name == "Satin Trousers"
    assert obs.location == Location(x=1, y=2, z=3)


class TestProcess:
    def test_builds_record(self, pipeline):
        record = pipeline.process(observe())

        assert record.id == "a"
        assert record.display_name == "Velvet Top Hat"
        assert record.hex == "FF0000"
        assert record.best_match.name == "Ruby"
        assert record.best_match.delta_e == 0.0
        assert record.best_match.absolute_distance == 0
        assert len(record.top3) == 3
        assert record.top3[1].is_fade
        assert record.word_match == "RED"
        assert record.special_pattern == "paired"
        assert record.location == Location(x=10, y=64, z=-3)

    def test_toggles_disable_words_and_patterns(self, pipeline):
        policy = MatchPolicy(words_enabled=False, patterns_enabled=False)
        record = pipeline.process(observe(), policy)
        assert record.word_match is None
        assert record.special_pattern is None

    def test_no_match_gives_no_record(self, pipeline):
        policy = MatchPolicy(custom_colors_enabled=False)
        pipeline.ranker.catalog = type(pipeline.ranker.catalog)()
        assert pipeline.process(observe(), policy) is None


class TestRebuild:
    def _store_with(self, pipeline, *observations):
        store = RecordStore(MemoryRecordPersistence(), debounce_seconds=60.0)
        for obs in observations:
            store.put(pipeline.process(obs))
        return store

    def test_rebuild_words(self, pipeline, config):
        store = self._store_with(pipeline, observe("a", "00FF00"))
        assert store.get("a").word_match is None

        config.add_word("lime", "00FFXX")
        assert pipeline.rebuild_words(store) == 1
        assert store.get("a").word_match == "LIME"
        store.close()

    def test_rebuild_patterns(self, pipeline, config):
        store = self._store_with(pipeline, observe("a", "123123"))
        config.toggle("patterns")
        pipeline.rebuild_patterns(store)
        assert store.get("a").special_pattern is None

        config.toggle("patterns")
        pipeline.rebuild_patterns(store)
        assert store.get("a").special_pattern == "repeating"
        store.close()

    def test_rebuild_analysis_uses_new_custom_color(self, pipeline):
        store = self._store_with(pipeline, observe("a", "00FF00"))
        assert store.get("a").best_match.name == "Emerald"

        pipeline.ranker.catalog.add_custom_color("Mine", "00FF00")
        assert pipeline.rebuild_analysis(store) == 1

        record = store.get("a")
        assert record.best_match.name == "Mine"
        assert record.best_match.is_custom
        assert record.id == "a"
        store.close()

    def test_rebuild_matches_leaves_best_match(self, pipeline):
        store = self._store_with(pipeline, observe("a", "00FF00"))
        pipeline.ranker.catalog.add_custom_color("Mine", "00FF00")

        pipeline.rebuild_matches(store)

        record = store.get("a")
        assert record.best_match.name == "Emerald"
        assert record.top3[0].name == "Mine"
        store.close()

    def test_rebuild_skips_concurrently_removed(self, pipeline):
        class RacingStore(RecordStore):
            def ids(self):
                snapshot = super().ids()
                self.remove("b")
                return snapshot

        store = RacingStore(MemoryRecordPersistence(), debounce_seconds=60.0)
        store.put(pipeline.process(observe("a", "111111")))
        store.put(pipeline.process(observe("b", "222222")))

        assert pipeline.rebuild_patterns(store) == 1
        assert "b" not in store
        store.close()

    def test_interleaved_rebuilds_keep_each_others_fields(self, pipeline):
        class InterleavingStore(RecordStore):
            interleaved = False

            def update(self, record_id, fn):
                if not self.interleaved:
                    self.interleaved = True
                    pipeline.rebuild_words(self)
                return super().update(record_id, fn)

        store = InterleavingStore(MemoryRecordPersistence(), debounce_seconds=60.0)
        record = pipeline.process(observe("a", "FF0000"))
        store.put(record.model_copy(update={"word_match": None, "special_pattern": None}))

        assert pipeline.rebuild_patterns(store) == 1

        record = store.get("a")
        assert record.word_match == "RED"
        assert record.special_pattern == "paired"
        store.close()
