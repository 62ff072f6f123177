# tests/test_analyzer.py

import random

import pytest

from mindsweeper.analyzer import (
    Analyzer,
    Belief,
    Component,
    ComponentPossibilities,
    Partition,
    reachable_budgets,
)
from mindsweeper.config import GameConfig, GameMode, GridConfig
from mindsweeper.engine import LocalGame


def opened_game(grid, mine_ids, first_click_id=0, mode=GameMode.NORMAL):
    """Build a board from an explicit layout and reveal one cell."""
    config = GameConfig(grid, mode=mode, punish_guessing=False)
    game = LocalGame.from_layout(config, mine_ids, rng=random.Random(0))
    game.reveal_tile(first_click_id)
    analyzer = Analyzer(config)
    analyzer.absorb(game)
    return game, analyzer


def possibilities_with_counts(counts):
    """Component possibilities carrying only arrangement counts."""
    return ComponentPossibilities(
        unknown_tile_ids=(),
        possible_mines_by_mine_count={k: frozenset() for k in counts},
        possible_safe_by_mine_count={k: frozenset() for k in counts},
        arrangement_count_by_mine_count=dict(counts),
    )


# -----------------------------------------------------------------------------
# Local propagation
# -----------------------------------------------------------------------------


def test_fresh_analyzer_knows_nothing():
    analyzer = Analyzer(GameConfig(GridConfig.beginner()))

    assert all(tile == Belief.UNKNOWN for tile in analyzer.tiles)
    assert analyzer.known_mine_count == 0
    assert analyzer.known_safe_tile_ids() == []


def test_absorb_copies_revealed_clues():
    """5x3 board with mines on the right edge: columns 0-3 open up."""
    game, analyzer = opened_game(GridConfig(5, 3, 2), [4, 14])

    assert game.format_board().split("\n") == ["0001-", "0002-", "0001-"]
    assert analyzer.get_tile(3) == 1
    assert analyzer.get_tile(8) == 2
    assert analyzer.get_tile(13) == 1
    for tile_id in (4, 9, 14):
        assert analyzer.get_tile(tile_id) == Belief.UNKNOWN


def test_propagation_resolves_mines_then_safe_cells():
    """A 2 with two unknown neighbours pins both, which satisfies the 1 below."""
    _, analyzer = opened_game(GridConfig(5, 3, 2), [4, 9])

    assert analyzer.get_tile(4) == Belief.KNOWN_MINE
    assert analyzer.get_tile(9) == Belief.KNOWN_MINE
    assert analyzer.get_tile(14) == Belief.KNOWN_SAFE
    assert analyzer.known_mine_count == 2
    assert analyzer.find_safe_moves(False) == [14]


def test_all_mines_known_makes_the_rest_safe():
    """The 3 at cell 12 pins the whole mine total, so cells no clue touches are safe too."""
    game, analyzer = opened_game(GridConfig(8, 3, 3), [5, 13, 21])

    assert game.format_board().split("\n") == ["00002---", "00003---", "00002---"]
    assert analyzer.known_mine_count == 3
    for tile_id in (6, 7, 14, 15, 22, 23):
        assert analyzer.get_tile(tile_id) == Belief.KNOWN_SAFE
    assert analyzer.find_safe_moves(False) == [6, 7, 14, 15, 22, 23]


def test_absorb_is_idempotent():
    rng = random.Random(11)
    grid = GridConfig.beginner()
    for _ in range(10):
        mine_ids = rng.sample(range(grid.tile_count), grid.mine_count)
        safe_ids = [t for t in range(grid.tile_count) if t not in mine_ids]
        game, analyzer = opened_game(grid, mine_ids, rng.choice(safe_ids))

        before = list(analyzer.tiles)
        known_before = analyzer.known_mine_count
        analyzer.absorb(game)

        assert analyzer.tiles == before
        assert analyzer.known_mine_count == known_before


def test_copy_is_independent():
    _, analyzer = opened_game(GridConfig(5, 3, 2), [4, 14])
    clone = analyzer.copy()

    clone.tiles[4] = Belief.KNOWN_MINE
    clone.known_mine_count = 1

    assert analyzer.get_tile(4) == Belief.UNKNOWN
    assert analyzer.known_mine_count == 0


def test_absorb_rejects_other_configs():
    game, _ = opened_game(GridConfig(5, 3, 2), [4, 14])

    with pytest.raises(AssertionError):
        Analyzer(GameConfig(GridConfig.beginner())).absorb(game)


# -----------------------------------------------------------------------------
# Partitioning
# -----------------------------------------------------------------------------


def test_partition_splits_component_and_bucket():
    """8x3 board: the clues 2 and 1 at the bottom link cells 5, 13 and 21."""
    _, analyzer = opened_game(GridConfig(8, 3, 3), [4, 6, 21])

    assert analyzer.get_tile(4) == Belief.KNOWN_MINE
    partition = analyzer.partition()

    assert partition.components == [Component([12, 20], [5, 13, 21])]
    assert partition.unconstrained_tile_ids == [6, 7, 14, 15, 22, 23]
    assert partition.known_mine_count == 1


def test_partition_is_complete_and_disjoint():
    rng = random.Random(5)
    grid = GridConfig.intermediate()
    for _ in range(10):
        mine_ids = rng.sample(range(grid.tile_count), grid.mine_count)
        safe_ids = [t for t in range(grid.tile_count) if t not in mine_ids]
        _, analyzer = opened_game(grid, mine_ids, rng.choice(safe_ids))

        partition = analyzer.partition()
        seen = []
        for component in partition.components:
            assert component.number_tile_ids
            seen.extend(component.unknown_tile_ids)
        seen.extend(partition.unconstrained_tile_ids)

        unknown = [t for t, tile in enumerate(analyzer.tiles) if tile == Belief.UNKNOWN]
        assert sorted(seen) == unknown
        assert len(seen) == len(set(seen))
        assert partition.known_mine_count == analyzer.tiles.count(Belief.KNOWN_MINE)


# -----------------------------------------------------------------------------
# Component search
# -----------------------------------------------------------------------------


def test_single_arrangement_component():
    _, analyzer = opened_game(GridConfig(5, 3, 2), [4, 14])
    (component,) = analyzer.partition().components

    possibilities = analyzer.analyze_component(component)

    assert possibilities.arrangement_count_by_mine_count == {2: 1}
    assert possibilities.possible_mines_by_mine_count[2] == {4, 14}
    assert possibilities.possible_safe_by_mine_count[2] == {9}
    assert possibilities.certain_mines(2) == {4, 14}
    assert possibilities.certain_safe(2) == {9}


def test_two_arrangement_component():
    _, analyzer = opened_game(GridConfig(8, 3, 3), [4, 6, 21])
    (component,) = analyzer.partition().components

    possibilities = analyzer.analyze_component(component)

    assert possibilities.arrangement_count_by_mine_count == {1: 2}
    assert possibilities.mine_counts == [1]
    assert possibilities.certain_safe(1) == {5}
    assert possibilities.certain_mines(1) == frozenset()


def test_required_and_forbidden_filters():
    _, analyzer = opened_game(GridConfig(8, 3, 3), [4, 6, 21])
    (component,) = analyzer.partition().components

    with_13 = analyzer.analyze_component(component, required=[13])
    without_13 = analyzer.analyze_component(component, forbidden=[13])
    with_5 = analyzer.analyze_component(component, required=[5])

    assert with_13.arrangement_count_by_mine_count == {1: 1}
    assert with_13.possible_mines_by_mine_count[1] == {13}
    assert without_13.possible_mines_by_mine_count[1] == {21}
    assert with_5.arrangement_count_by_mine_count == {}


def test_find_arrangement_enumerates_in_search_order():
    _, analyzer = opened_game(GridConfig(8, 3, 3), [4, 6, 21])
    (component,) = analyzer.partition().components

    # cells are tried safe before mine, so the last cell flips first
    assert analyzer.find_arrangement(component, 1, 0) == [21]
    assert analyzer.find_arrangement(component, 1, 1) == [13]
    assert analyzer.find_arrangement(component, 1, 0, forbidden=[21]) == [13]
    with pytest.raises(IndexError):
        analyzer.find_arrangement(component, 1, 2)
    with pytest.raises(IndexError):
        analyzer.find_arrangement(component, 2, 0)


def test_contradictory_beliefs_raise():
    _, analyzer = opened_game(GridConfig(5, 3, 2), [4, 14])
    # the 2 at cell 8 cannot be satisfied once 4 and 9 are both taken as safe
    analyzer.tiles[4] = Belief.KNOWN_SAFE
    analyzer.tiles[9] = Belief.KNOWN_SAFE

    with pytest.raises(RuntimeError):
        analyzer.analyze_component(Component([8, 13], [14]))


def test_every_arrangement_satisfies_its_clues():
    rng = random.Random(3)
    grid = GridConfig.beginner()
    for _ in range(5):
        mine_ids = set(rng.sample(range(grid.tile_count), grid.mine_count))
        safe_ids = [t for t in range(grid.tile_count) if t not in mine_ids]
        _, analyzer = opened_game(grid, mine_ids, rng.choice(safe_ids))

        for component in analyzer.partition().components:
            possibilities = analyzer.analyze_component(component)
            unknown = set(component.unknown_tile_ids)
            true_mines = sorted(unknown & mine_ids)
            found_true_layout = False

            for mine_count, arrangement_count in possibilities.arrangement_count_by_mine_count.items():
                for index in range(arrangement_count):
                    arrangement = set(analyzer.find_arrangement(component, mine_count, index))
                    assert len(arrangement) == mine_count
                    for number_id in component.number_tile_ids:
                        adjacent = grid.adjacent(number_id)
                        known = sum(1 for a in adjacent if analyzer.get_tile(a) == Belief.KNOWN_MINE)
                        placed = sum(1 for a in adjacent if a in arrangement)
                        assert known + placed == analyzer.get_tile(number_id)
                    if sorted(arrangement) == true_mines:
                        found_true_layout = True

            assert found_true_layout


# -----------------------------------------------------------------------------
# Global mine budget
# -----------------------------------------------------------------------------


def test_reachable_budgets_never_overspend():
    reachable = reachable_budgets(3, [[1, 2], [1, 2]])

    assert reachable == [{3}, {2, 1}, {1, 0}]


@pytest.mark.parametrize(
    "mine_total, counts, bucket_size, expected, implies_safe, implies_mine",
    [
        (3, [{1: 1, 2: 1}, {1: 1, 2: 1}], 2, [{1, 2}, {1, 2}], False, False),
        (2, [{1: 1, 2: 1}, {1: 1}], 3, [{1}, {1}], True, False),
        (4, [{1: 1}, {1: 1}], 2, [{1}, {1}], False, True),
        (3, [{1: 1, 2: 1}], 1, [{2}], False, True),
        (3, [], 3, [], False, True),
    ],
)
def test_distribution(mine_total, counts, bucket_size, expected, implies_safe, implies_mine):
    analyzer = Analyzer(GameConfig(GridConfig(9, 9, mine_total)))
    partition = Partition(
        components=[Component() for _ in counts],
        unconstrained_tile_ids=list(range(100, 100 + bucket_size)),
    )

    distribution = analyzer.analyze_distribution(
        partition, [possibilities_with_counts(c) for c in counts]
    )

    assert [set(s) for s in distribution.possible_mine_counts_by_component] == expected
    assert distribution.unconstrained_implies_safe is implies_safe
    assert distribution.unconstrained_implies_mine is implies_mine


def test_distribution_without_room_for_leftovers_raises():
    """Whatever the component takes, the bucket of one cannot hold the rest."""
    analyzer = Analyzer(GameConfig(GridConfig(9, 9, 5)))
    partition = Partition(components=[Component()], unconstrained_tile_ids=[80])

    with pytest.raises(RuntimeError):
        analyzer.analyze_distribution(partition, [possibilities_with_counts({1: 1, 2: 1})])


# -----------------------------------------------------------------------------
# Safe-move query
# -----------------------------------------------------------------------------


def test_component_search_finds_hidden_safe_cell():
    _, analyzer = opened_game(GridConfig(5, 3, 2), [4, 14])

    assert analyzer.find_safe_moves(False) == [9]
    assert analyzer.get_tile(4) == Belief.KNOWN_MINE
    assert analyzer.get_tile(14) == Belief.KNOWN_MINE
    assert analyzer.known_mine_count == 2


def test_mindless_mode_skips_component_search():
    _, analyzer = opened_game(GridConfig(5, 3, 2), [4, 14], mode=GameMode.MINDLESS)

    assert analyzer.find_safe_moves(False) == []
    assert analyzer.find_safe_moves(True) == []
    assert analyzer.get_tile(9) == Belief.UNKNOWN


def test_exhaustive_search_with_bucket():
    _, analyzer = opened_game(GridConfig(8, 3, 3), [4, 6, 21])

    assert analyzer.find_safe_moves(True) == [5]
    for tile_id in (6, 7, 13, 14, 15, 21, 22, 23):
        assert analyzer.get_tile(tile_id) == Belief.UNKNOWN


def test_non_exhaustive_returns_known_safe_without_searching():
    _, analyzer = opened_game(GridConfig(8, 3, 3), [4, 6, 21])
    analyzer.tiles[23] = Belief.KNOWN_SAFE

    assert analyzer.find_safe_moves(False) == [23]
    assert analyzer.get_tile(5) == Belief.UNKNOWN
    assert analyzer.find_safe_moves(True) == [5, 23]


def test_safe_moves_are_sound():
    rng = random.Random(17)
    grid = GridConfig.intermediate()
    for _ in range(5):
        mine_ids = set(rng.sample(range(grid.tile_count), grid.mine_count))
        safe_ids = [t for t in range(grid.tile_count) if t not in mine_ids]
        _, analyzer = opened_game(grid, mine_ids, rng.choice(safe_ids))

        for tile_id in analyzer.find_safe_moves(True):
            assert tile_id not in mine_ids
        for tile_id, tile in enumerate(analyzer.tiles):
            if tile == Belief.KNOWN_MINE:
                assert tile_id in mine_ids
