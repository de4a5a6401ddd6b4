"""
Tests for round expansion and the map catalog.
"""

import pytest

from domain.models.session import Session
from domain.services.round_sequencer import MapCatalog, RoundSequencer, parse_wildcard
from services.error_codes import INVALID_SPEC
from tests.conftest import MAPS, make_participants


@pytest.fixture
def sequencer(catalog):
    return RoundSequencer(catalog)


def _session(rounds):
    return Session(session_id=1, participants=make_participants(8), rounds=rounds)


class TestExpand:
    def test_wildcard_plays_every_map_back_to_back(self, sequencer):
        rounds = sequencer.expand("4-All", 2).value

        assert rounds == [
            "levels/missions/mozdok.blk",
            "levels/missions/mozdok.blk",
            "levels/missions/fire_arc.blk",
            "levels/missions/fire_arc.blk",
            "levels/missions/sinai.blk",
            "levels/missions/sinai.blk",
        ]

    @pytest.mark.parametrize("rounds_per_map", [1, 3, 5])
    def test_wildcard_length_and_no_wildcard_entry(self, sequencer, rounds_per_map):
        rounds = sequencer.expand("4-All", rounds_per_map).value

        assert len(rounds) == 3 * rounds_per_map
        assert "4-All" not in rounds

    def test_single_map_repeats(self, sequencer):
        rounds = sequencer.expand("levels/missions/sinai.blk", 3).value

        assert rounds == ["levels/missions/sinai.blk"] * 3

    def test_unknown_single_map_is_passed_through(self, sequencer):
        assert sequencer.expand("levels/missions/custom.blk", 1).value == ["levels/missions/custom.blk"]

    @pytest.mark.parametrize("rounds_per_map", [0, -1])
    def test_rounds_per_map_below_one_is_invalid(self, sequencer, rounds_per_map):
        result = sequencer.expand("4-All", rounds_per_map)

        assert not result
        assert result.error_code == INVALID_SPEC

    @pytest.mark.parametrize("spec", ["", "   "])
    def test_empty_spec_is_invalid(self, sequencer, spec):
        assert sequencer.expand(spec, 1).error_code == INVALID_SPEC

    def test_wildcard_with_no_maps_is_invalid(self, sequencer):
        result = sequencer.expand("6-All", 2)

        assert result.error_code == INVALID_SPEC
        assert "6" in result.error

    def test_unknown_category_is_invalid(self, sequencer):
        assert sequencer.expand("9-All", 1).error_code == INVALID_SPEC


class TestAdvance:
    def test_advance_reports_next_map_and_round_number(self, sequencer):
        session = _session(["a", "b", "c"])

        step = sequencer.advance(session)

        assert not step.complete
        assert step.next_map == "b"
        assert step.round_number == 2
        assert session.current_map == "b"

    def test_advance_past_last_round_completes(self, sequencer):
        session = _session(["a", "b"])
        sequencer.advance(session)

        step = sequencer.advance(session)

        assert step.complete
        assert step.next_map is None
        assert session.current_map is None

    def test_single_round_session_completes_on_first_advance(self, sequencer):
        assert sequencer.advance(_session(["a"])).complete


class TestMapCatalog:
    def test_parse_wildcard(self):
        assert parse_wildcard("4-All") == "4"
        assert parse_wildcard("levels/missions/mozdok.blk") is None

    def test_maps_in_excludes_wildcard(self, catalog):
        assert catalog.maps_in("2") == ["levels/missions/duel_quarry.blk"]
        assert catalog.maps_in("missing") == []

    def test_name_for_known_and_fallbacks(self, catalog):
        assert catalog.name_for("levels/missions/fire_arc.blk") == "Fire Arc"
        assert catalog.name_for("4-All") == "All 4v4 maps"
        assert catalog.name_for("8-All") == "All 8v8 maps"
        assert catalog.name_for("levels/missions/custom_map.blk") == "custom_map"

    def test_search_is_case_insensitive_and_limited(self, catalog):
        assert [e.name for e in catalog.search("4", "fire")] == ["Fire Arc"]
        assert len(catalog.search("4", "", limit=2)) == 2
        assert catalog.search("7", "x") == []

    def test_categories_keep_file_order(self):
        assert MapCatalog.from_dict(MAPS).categories == ["4", "2", "6"]

    def test_load_reads_json_file(self, tmp_path):
        path = tmp_path / "maps.json"
        path.write_text('{"1": [{"name": "Joust", "value": "levels/missions/joust.blk"}]}', encoding="utf-8")

        catalog = MapCatalog.load(path)

        assert catalog.maps_in("1") == ["levels/missions/joust.blk"]
