"""Tests for level grouping and partner positions."""

import random

import pytest

from padelmatch.config import EngineSettings
from padelmatch.models import Player
from padelmatch.services.level_policy import is_compatible
from padelmatch.services.matchmaking import (
    balance_group,
    group_players_by_level,
    partner_of,
)


def _players(levels):
    return [
        Player(id=i + 1, name=f"P{i + 1}", level=level, category=4, phone=f"+5491100000{i + 1:03d}")
        for i, level in enumerate(levels)
    ]


def _levels(group):
    return [p.level for p in group.players]


class TestPartners:
    def test_partnership_convention(self):
        assert partner_of(0) == 3
        assert partner_of(3) == 0
        assert partner_of(1) == 2
        assert partner_of(2) == 1

    def test_balance_pairs_strongest_with_weakest(self):
        group = _players([3.6, 3.0, 3.4, 3.2])
        assert [p.level for p in balance_group(group)] == [3.0, 3.4, 3.2, 3.6]


class TestGroupPlayersByLevel:
    def test_fewer_than_four_are_all_leftover(self):
        players = _players([3.0, 3.1, 3.2])
        result = group_players_by_level(players, EngineSettings())
        assert result.groups == []
        assert [p.id for p in result.leftovers] == [1, 2, 3]

    def test_single_group_balanced(self):
        result = group_players_by_level(_players([3.0, 3.25, 3.5, 3.75]), EngineSettings())
        assert len(result.groups) == 1
        assert _levels(result.groups[0]) == [3.0, 3.5, 3.25, 3.75]
        assert result.groups[0].tolerance_used == 1.0
        assert result.leftovers == []

    def test_balance_off_keeps_level_order(self):
        result = group_players_by_level(_players([3.75, 3.0, 3.5, 3.25]), EngineSettings(balance_pairs=False))
        assert _levels(result.groups[0]) == [3.0, 3.25, 3.5, 3.75]

    def test_extended_tolerance_when_default_is_short(self):
        result = group_players_by_level(_players([3.0, 3.25, 3.5, 4.25]), EngineSettings())
        assert len(result.groups) == 1
        assert result.groups[0].tolerance_used == 1.5

    def test_three_closest_candidates_join_anchor(self):
        result = group_players_by_level(_players([3.0, 3.1, 3.2, 3.3, 3.9]), EngineSettings())
        assert sorted(_levels(result.groups[0])) == [3.0, 3.1, 3.2, 3.3]
        assert [p.level for p in result.leftovers] == [3.9]

    def test_isolated_anchor_is_left_over(self):
        result = group_players_by_level(_players([1.0, 4.0, 4.1, 4.2, 4.3]), EngineSettings())
        assert len(result.groups) == 1
        assert [p.level for p in result.leftovers] == [1.0]

    def test_two_groups(self):
        levels = [2.0, 2.1, 2.2, 2.3, 5.0, 5.1, 5.2, 5.3]
        result = group_players_by_level(_players(levels), EngineSettings())
        assert len(result.groups) == 2
        assert result.grouped_count == 8
        assert sorted(result.groups[0].player_ids) == [1, 2, 3, 4]
        assert sorted(result.groups[1].player_ids) == [5, 6, 7, 8]

    def test_no_player_in_two_groups(self):
        levels = [3.0, 3.0, 3.0, 3.0, 3.0, 3.0, 3.0, 3.0, 3.0]
        result = group_players_by_level(_players(levels), EngineSettings())
        grouped = [pid for g in result.groups for pid in g.player_ids]
        assert len(grouped) == len(set(grouped)) == 8
        assert len(result.leftovers) == 1

    def test_equal_levels_keep_id_order(self):
        result = group_players_by_level(_players([3.0, 3.0, 3.0, 3.0, 3.0]), EngineSettings(balance_pairs=False))
        assert result.groups[0].player_ids == [1, 2, 3, 4]
        assert [p.id for p in result.leftovers] == [5]


class TestGroupingProperties:
    @pytest.mark.parametrize("seed", [1, 7, 42, 2025])
    def test_mixed_pool_groups_respect_their_tolerance(self, seed):
        rng = random.Random(seed)
        levels = [round(rng.uniform(1.0, 7.0), 1) for _ in range(30)]
        players = _players(levels)
        settings = EngineSettings()

        result = group_players_by_level(players, settings)

        assert result.groups
        grouped = [pid for g in result.groups for pid in g.player_ids]
        assert len(grouped) == len(set(grouped))
        assert sorted(grouped + [p.id for p in result.leftovers]) == [p.id for p in players]
        for group in result.groups:
            assert len(group.players) == 4
            assert group.tolerance_used in (settings.default_tolerance, settings.extended_tolerance)
            # Some member (the anchor) has every other member within the tolerance used
            assert any(
                all(is_compatible(other.level, anchor.level, group.tolerance_used) for other in group.players)
                for anchor in group.players
            )
            positions = balance_group(group.players)
            assert [p.level for p in positions] == _levels(group)
