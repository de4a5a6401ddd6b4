"""
Tests for team formation: affiliation groups first, mixed split otherwise.
"""

import pytest

from domain.models.participant import Participant
from domain.models.team import MIXED_LABEL, Team
from domain.services.team_formation_service import TeamFormationService, form_teams
from services.error_codes import TEAM_FORMATION_FAILED, VALIDATION_ERROR
from tests.conftest import make_participants


def _by_affiliation(participant):
    return participant.affiliation


class TestNoAffiliations:
    def test_eight_players_split_into_two_mixed_fours(self):
        pool = make_participants(8)

        result = form_teams(pool, _by_affiliation, min_per_team=4)

        assert result.success
        pair = result.value
        assert len(pair.team_a) == 4
        assert len(pair.team_b) == 4
        assert pair.team_a.label == MIXED_LABEL
        assert pair.team_b.label == MIXED_LABEL
        assert pair.is_mixed_split
        assert pair.team_a.user_ids().isdisjoint(pair.team_b.user_ids())

    def test_split_is_first_half_second_half_in_input_order(self):
        pool = make_participants(9)

        pair = form_teams(pool, _by_affiliation, min_per_team=4).value

        assert [p.user_id for p in pair.team_a.members] == [1, 2, 3, 4]
        assert [p.user_id for p in pair.team_b.members] == [5, 6, 7, 8, 9]

    def test_deterministic_across_calls(self):
        pool = make_participants(10)

        first = form_teams(pool, _by_affiliation, 4).value
        second = form_teams(pool, _by_affiliation, 4).value

        assert first.team_a.user_ids() == second.team_a.user_ids()
        assert first.team_b.user_ids() == second.team_b.user_ids()

    @pytest.mark.parametrize("count", [8, 9, 12, 15])
    def test_union_covers_whole_pool(self, count):
        pool = make_participants(count)

        pair = form_teams(pool, _by_affiliation, 4).value

        assert pair.size == count
        assert pair.team_a.user_ids() | pair.team_b.user_ids() == {p.user_id for p in pool}

    def test_too_few_players_fails(self):
        result = form_teams(make_participants(7), _by_affiliation, 4)

        assert not result.success
        assert result.error_code == TEAM_FORMATION_FAILED


class TestAffiliationGroups:
    def test_two_largest_groups_face_each_other(self):
        pool = (
            make_participants(4, start=1, affiliation="C-Team")
            + make_participants(6, start=10, affiliation="A-Team")
            + make_participants(5, start=20, affiliation="B-Team")
        )

        pair = form_teams(pool, _by_affiliation, 4).value

        assert pair.team_a.label == "A-Team"
        assert pair.team_b.label == "B-Team"
        assert not pair.is_mixed_split

    def test_equal_sized_groups_keep_discovery_order(self):
        pool = (
            make_participants(4, start=1, affiliation="B-Team")
            + make_participants(4, start=10, affiliation="A-Team")
            + make_participants(4, start=20, affiliation="C-Team")
        )

        pair = form_teams(pool, _by_affiliation, 4).value

        assert (pair.team_a.label, pair.team_b.label) == ("B-Team", "A-Team")

    def test_unaffiliated_sit_out_when_two_groups_are_eligible(self):
        pool = (
            make_participants(4, start=1, affiliation="A-Team")
            + make_participants(3, start=10)
            + make_participants(4, start=20, affiliation="B-Team")
        )

        pair = form_teams(pool, _by_affiliation, 4).value

        assert pair.size == 8
        assert not pair.team_a.contains(10)
        assert not pair.team_b.contains(10)

    def test_single_group_faces_mixed_rest(self):
        pool = make_participants(5, start=1, affiliation="A-Team") + make_participants(4, start=10)

        pair = form_teams(pool, _by_affiliation, 4).value

        assert pair.team_a.label == "A-Team"
        assert pair.team_b.label == MIXED_LABEL
        assert pair.team_b.user_ids() == {10, 11, 12, 13}

    def test_undersized_groups_join_the_mixed_side(self):
        pool = (
            make_participants(4, start=1, affiliation="A-Team")
            + make_participants(2, start=10, affiliation="B-Team")
            + make_participants(2, start=20)
        )

        pair = form_teams(pool, _by_affiliation, 4).value

        assert pair.team_b.label == MIXED_LABEL
        assert pair.team_b.user_ids() == {10, 11, 20, 21}

    def test_single_group_with_small_rest_fails(self):
        pool = make_participants(6, start=1, affiliation="A-Team") + make_participants(3, start=10)

        result = form_teams(pool, _by_affiliation, 4)

        assert result.error_code == TEAM_FORMATION_FAILED

    def test_mixed_label_is_not_an_affiliation(self):
        pool = make_participants(8, affiliation=MIXED_LABEL)

        pair = form_teams(pool, _by_affiliation, 4).value

        assert pair.is_mixed_split


class TestRosterHygiene:
    def test_unregistered_participants_are_ignored(self):
        pool = make_participants(8) + [Participant(user_id=99)]

        pair = form_teams(pool, _by_affiliation, 4).value

        assert pair.size == 8
        assert not pair.team_b.contains(99)

    def test_unregistered_do_not_count_toward_minimum(self):
        pool = make_participants(7) + [Participant(user_id=99)]

        assert not form_teams(pool, _by_affiliation, 4)

    def test_duplicates_are_ignored(self):
        pool = make_participants(8)
        pool = pool + pool[:2]

        assert form_teams(pool, _by_affiliation, 4).value.size == 8

    def test_min_per_team_must_be_positive(self):
        result = form_teams(make_participants(8), _by_affiliation, 0)

        assert result.error_code == VALIDATION_ERROR

    def test_team_rejects_unregistered_members(self):
        with pytest.raises(ValueError):
            Team("A-Team", [Participant(user_id=1)])


class TestTeamFormationService:
    def test_uses_participant_affiliation_by_default(self):
        service = TeamFormationService(min_per_team=2)
        pool = make_participants(2, start=1, affiliation="A-Team") + make_participants(2, start=5, affiliation="B-Team")

        pair = service.form(pool).value

        assert {pair.team_a.label, pair.team_b.label} == {"A-Team", "B-Team"}

    def test_lookup_overrides_participant_affiliation(self):
        service = TeamFormationService(min_per_team=2)
        pool = make_participants(4, affiliation="A-Team")

        pair = service.form(pool, affiliation_of=lambda p: None).value

        assert pair.is_mixed_split

    def test_split_ignores_affiliations(self):
        service = TeamFormationService()
        pool = make_participants(4, start=1, affiliation="A-Team") + make_participants(4, start=10, affiliation="B-Team")

        pair = service.split(pool, per_team=4).value

        assert pair.is_mixed_split
        assert pair.team_a.user_ids() == {1, 2, 3, 4}
