"""Constraint analysis of a minesweeper board.

The analyzer keeps one belief per cell and refines it in three tiers:

1. Local propagation: a clue whose remaining mines are zero, or equal to its
   unknown neighbours, resolves all of them.
2. Component search: unknown cells linked through shared clues form
   independent components, each searched exhaustively.
3. Global budget: per-component mine counts are combined with the total mine
   count and the unconstrained cells to rule out impossible counts.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum
from typing import (
    Deque,
    Dict,
    FrozenSet,
    Iterable,
    Iterator,
    List,
    Sequence,
    Set,
    Tuple,
)

from .bitset import BitSet
from .config import GameConfig, GameMode
from .oracle import Oracle
from .utils import get_neighborhoods

logger = logging.getLogger(__name__)


class Belief(IntEnum):
    """
    Belief about a hidden cell.

    A revealed cell stores its clue (0..8) in place of a Belief, so every
    belief value is negative and ``tile >= 0`` means "revealed".
    """

    UNKNOWN = -3
    KNOWN_SAFE = -2
    KNOWN_MINE = -1


@dataclass
class Component:
    """Connected group of unknown cells and the clue cells that link them (sorted ids)."""

    number_tile_ids: List[int] = field(default_factory=list)
    unknown_tile_ids: List[int] = field(default_factory=list)


@dataclass
class Partition:
    """All unknown cells split into components plus the unconstrained bucket."""

    components: List[Component] = field(default_factory=list)
    unconstrained_tile_ids: List[int] = field(default_factory=list)
    known_mine_count: int = 0


@dataclass
class ComponentPossibilities:
    """
    Result of exhaustively searching one component.

    For each achievable mine count ``k`` it holds the cells that are a mine in
    at least one arrangement with ``k`` mines, the cells that are safe in at
    least one such arrangement, and how many arrangements have ``k`` mines.
    """

    unknown_tile_ids: Tuple[int, ...]
    possible_mines_by_mine_count: Dict[int, FrozenSet[int]]
    possible_safe_by_mine_count: Dict[int, FrozenSet[int]]
    arrangement_count_by_mine_count: Dict[int, int]

    @property
    def mine_counts(self) -> List[int]:
        return sorted(self.arrangement_count_by_mine_count)

    def certain_safe(self, mine_count: int) -> FrozenSet[int]:
        """Cells safe in every arrangement with ``mine_count`` mines."""
        return frozenset(self.unknown_tile_ids) - self.possible_mines_by_mine_count[mine_count]

    def certain_mines(self, mine_count: int) -> FrozenSet[int]:
        """Cells mined in every arrangement with ``mine_count`` mines."""
        return frozenset(self.unknown_tile_ids) - self.possible_safe_by_mine_count[mine_count]


@dataclass
class MineDistribution:
    """Which per-component mine counts survive the global mine budget."""

    possible_mine_counts_by_component: List[FrozenSet[int]]
    unconstrained_implies_safe: bool
    unconstrained_implies_mine: bool


def reachable_budgets(
    budget: int, mine_counts_by_component: Sequence[Sequence[int]]
) -> List[Set[int]]:
    """
    Forward pass of the budgeted combination search.

    Returns:
        A list whose entry ``i`` holds every remaining budget reachable after
        choosing a mine count for each of the first ``i`` components, never
        spending more than is left.
    """
    reachable: List[Set[int]] = [{budget}]
    for mine_counts in mine_counts_by_component:
        nxt: Set[int] = set()
        for remaining in reachable[-1]:
            for mine_count in mine_counts:
                if mine_count > remaining:
                    break
                nxt.add(remaining - mine_count)
        reachable.append(nxt)
    return reachable


def _mask_to_ids(tile_ids: Sequence[int], mask: int) -> FrozenSet[int]:
    ids: List[int] = []
    while mask:
        lowest = mask & -mask
        ids.append(tile_ids[lowest.bit_length() - 1])
        mask ^= lowest
    return frozenset(ids)


class Analyzer:
    """Belief tracker and deduction engine for one game configuration."""

    def __init__(self, config: GameConfig) -> None:
        self.config = config
        grid = config.grid_config
        self._neighborhoods = get_neighborhoods(grid.width, grid.height)
        self.known_mine_count: int = 0
        self.tiles: List[int] = [Belief.UNKNOWN] * grid.tile_count

    def copy(self) -> "Analyzer":
        clone = Analyzer(self.config)
        clone.known_mine_count = self.known_mine_count
        clone.tiles = list(self.tiles)
        return clone

    def get_tile(self, tile_id: int) -> int:
        return self.tiles[tile_id]

    def may_be_mine(self, tile_id: int) -> bool:
        tile = self.tiles[tile_id]
        return tile == Belief.UNKNOWN or tile == Belief.KNOWN_MINE

    def known_safe_tile_ids(self) -> List[int]:
        return [i for i, tile in enumerate(self.tiles) if tile == Belief.KNOWN_SAFE]

    # -------------------------------------------------------------------------
    # Local deduction
    # -------------------------------------------------------------------------

    def absorb(self, board: Oracle) -> None:
        """
        Pull newly revealed clues from the board and propagate them locally.

        Safe to call repeatedly: without new clues the beliefs do not change.
        """
        assert board.config == self.config, "board and analyzer disagree on the game config"

        tiles = self.tiles
        for tile_id, clue in enumerate(board.iter_adjacent_mine_counts()):
            tile = tiles[tile_id]
            if tile == Belief.UNKNOWN or tile == Belief.KNOWN_SAFE:
                if clue is not None:
                    tiles[tile_id] = clue
            elif tile == Belief.KNOWN_MINE:
                assert clue is None, "a cell known to be a mine was reported revealed"
            else:
                assert clue is None or clue == tile, "a revealed cell changed its clue"

        self._propagate()

        if self.known_mine_count == self.config.grid_config.mine_count:
            for tile_id, tile in enumerate(tiles):
                if tile == Belief.UNKNOWN:
                    tiles[tile_id] = Belief.KNOWN_SAFE

    def _propagate(self) -> None:
        tiles = self.tiles
        neighborhoods = self._neighborhoods

        stalled = BitSet.with_capacity(len(tiles))
        queue: Deque[int] = deque(i for i, tile in enumerate(tiles) if tile > 0)

        while queue:
            tile_id = queue.popleft()
            remaining_mine_count = tiles[tile_id]
            unknown_ids: List[int] = []
            for adjacent_id in neighborhoods[tile_id]:
                adjacent = tiles[adjacent_id]
                if adjacent == Belief.KNOWN_MINE:
                    remaining_mine_count -= 1
                elif adjacent == Belief.UNKNOWN:
                    unknown_ids.append(adjacent_id)

            if not unknown_ids:
                continue

            if remaining_mine_count == 0:
                resolved = Belief.KNOWN_SAFE
            elif remaining_mine_count == len(unknown_ids):
                resolved = Belief.KNOWN_MINE
                self.known_mine_count += len(unknown_ids)
            else:
                stalled.insert(tile_id)
                continue

            for unknown_id in unknown_ids:
                tiles[unknown_id] = resolved
                for number_id in neighborhoods[unknown_id]:
                    if tiles[number_id] >= 0 and stalled.remove(number_id):
                        queue.append(number_id)

    # -------------------------------------------------------------------------
    # Partitioning
    # -------------------------------------------------------------------------

    def partition(self) -> Partition:
        """
        Split the unknown cells into independent components.

        Unknown cells are linked through the revealed cells adjacent to them;
        an unknown cell with no revealed neighbour goes to the unconstrained
        bucket instead.
        """
        tiles = self.tiles
        neighborhoods = self._neighborhoods
        visited = BitSet.with_capacity(len(tiles))
        partition = Partition()

        for tile_id, tile in enumerate(tiles):
            if tile == Belief.KNOWN_MINE:
                partition.known_mine_count += 1
                continue
            if tile != Belief.UNKNOWN or not visited.insert(tile_id):
                continue

            number_ids: List[int] = []
            unknown_ids: List[int] = [tile_id]
            pending_unknown_ids: List[int] = [tile_id]
            while pending_unknown_ids:
                pending_number_ids: List[int] = []
                for unknown_id in pending_unknown_ids:
                    for number_id in neighborhoods[unknown_id]:
                        if tiles[number_id] >= 0 and visited.insert(number_id):
                            number_ids.append(number_id)
                            pending_number_ids.append(number_id)

                pending_unknown_ids = []
                for number_id in pending_number_ids:
                    for adjacent_id in neighborhoods[number_id]:
                        if tiles[adjacent_id] == Belief.UNKNOWN and visited.insert(adjacent_id):
                            unknown_ids.append(adjacent_id)
                            pending_unknown_ids.append(adjacent_id)

            if number_ids:
                partition.components.append(
                    Component(sorted(number_ids), sorted(unknown_ids))
                )
            else:
                partition.unconstrained_tile_ids.append(tile_id)

        return partition

    # -------------------------------------------------------------------------
    # Component search
    # -------------------------------------------------------------------------

    def _iter_arrangements(self, unknown_tile_ids: Sequence[int]) -> Iterator[Tuple[int, int]]:
        """
        Enumerate every mine arrangement of a component's unknown cells.

        Cells are assigned in the given order, safe before mine. Each revealed
        neighbour keeps a budget of mines and of safe cells it can still take;
        an assignment that would overdraw a budget is pruned immediately.

        Yields:
            ``(mine_mask, mine_count)`` where bit ``j`` of ``mine_mask`` is set
            iff ``unknown_tile_ids[j]`` is a mine.
        """
        tiles = self.tiles
        neighborhoods = self._neighborhoods

        mine_budget: Dict[int, int] = {}
        safe_budget: Dict[int, int] = {}
        links: List[Tuple[int, ...]] = []
        for unknown_id in unknown_tile_ids:
            number_ids = tuple(a for a in neighborhoods[unknown_id] if tiles[a] >= 0)
            links.append(number_ids)
            for number_id in number_ids:
                if number_id in mine_budget:
                    continue
                known_mines = 0
                unknown = 0
                for adjacent_id in neighborhoods[number_id]:
                    adjacent = tiles[adjacent_id]
                    if adjacent == Belief.KNOWN_MINE:
                        known_mines += 1
                    elif adjacent == Belief.UNKNOWN:
                        unknown += 1
                mine_budget[number_id] = tiles[number_id] - known_mines
                safe_budget[number_id] = unknown - mine_budget[number_id]

        if any(b < 0 for b in mine_budget.values()) or any(b < 0 for b in safe_budget.values()):
            return

        n = len(unknown_tile_ids)
        # stage per depth: 0 untried, 1 safe tried, 2 mine tried
        stage = [0] * n
        applied = [False] * n
        mine_mask = 0
        mine_count = 0
        depth = 0

        while depth >= 0:
            if depth == n:
                yield mine_mask, mine_count
                depth -= 1
                continue

            step = stage[depth]
            if applied[depth]:
                budget = mine_budget if step == 2 else safe_budget
                for number_id in links[depth]:
                    budget[number_id] += 1
                applied[depth] = False
                if step == 2:
                    mine_mask ^= 1 << depth
                    mine_count -= 1

            if step == 2:
                stage[depth] = 0
                depth -= 1
                continue

            step += 1
            stage[depth] = step
            budget = mine_budget if step == 2 else safe_budget
            number_ids = links[depth]
            if all(budget[number_id] > 0 for number_id in number_ids):
                for number_id in number_ids:
                    budget[number_id] -= 1
                applied[depth] = True
                if step == 2:
                    mine_mask |= 1 << depth
                    mine_count += 1
                depth += 1

    @staticmethod
    def _mask_of(unknown_tile_ids: Sequence[int], tile_ids: Iterable[int]) -> int:
        position = {tile_id: j for j, tile_id in enumerate(unknown_tile_ids)}
        mask = 0
        for tile_id in tile_ids:
            j = position.get(tile_id)
            if j is not None:
                mask |= 1 << j
        return mask

    def _iter_filtered(
        self,
        unknown_tile_ids: Sequence[int],
        required: Sequence[int],
        forbidden: Sequence[int],
    ) -> Iterator[Tuple[int, int]]:
        required_mask = self._mask_of(unknown_tile_ids, required)
        forbidden_mask = self._mask_of(unknown_tile_ids, forbidden)
        for mine_mask, mine_count in self._iter_arrangements(unknown_tile_ids):
            if required and not mine_mask & required_mask:
                continue
            if mine_mask & forbidden_mask:
                continue
            yield mine_mask, mine_count

    def analyze_component(
        self,
        component: Component,
        required: Sequence[int] = (),
        forbidden: Sequence[int] = (),
    ) -> ComponentPossibilities:
        """
        Exhaustively search one component, grouped by mine count.

        Args:
            component: The component to search.
            required: If given, keep only arrangements that place a mine on at
                least one of these cells.
            forbidden: Keep only arrangements with no mine on these cells.

        Returns:
            The component's possibilities.

        Raises:
            RuntimeError: If an unrestricted search finds no arrangement, which
                means the beliefs contradict the revealed clues.
        """
        unknown_ids = component.unknown_tile_ids
        full_mask = (1 << len(unknown_ids)) - 1

        mines_by_count: Dict[int, int] = {}
        safe_by_count: Dict[int, int] = {}
        counts: Dict[int, int] = {}
        for mine_mask, mine_count in self._iter_filtered(unknown_ids, required, forbidden):
            mines_by_count[mine_count] = mines_by_count.get(mine_count, 0) | mine_mask
            safe_by_count[mine_count] = safe_by_count.get(mine_count, 0) | (full_mask ^ mine_mask)
            counts[mine_count] = counts.get(mine_count, 0) + 1

        if not counts and not required and not forbidden:
            raise RuntimeError("No satisfying arrangements found for a component.")

        return ComponentPossibilities(
            unknown_tile_ids=tuple(unknown_ids),
            possible_mines_by_mine_count={
                k: _mask_to_ids(unknown_ids, m) for k, m in mines_by_count.items()
            },
            possible_safe_by_mine_count={
                k: _mask_to_ids(unknown_ids, m) for k, m in safe_by_count.items()
            },
            arrangement_count_by_mine_count=counts,
        )

    def find_arrangement(
        self,
        component: Component,
        mine_count: int,
        index: int,
        required: Sequence[int] = (),
        forbidden: Sequence[int] = (),
    ) -> List[int]:
        """
        Return the ``index``-th arrangement with ``mine_count`` mines.

        Arrangements are counted in the same order ``analyze_component`` sees
        them, with the same ``required`` and ``forbidden`` filters.

        Raises:
            IndexError: If there are not that many such arrangements.
        """
        unknown_ids = component.unknown_tile_ids
        for mine_mask, count in self._iter_filtered(unknown_ids, required, forbidden):
            if count != mine_count:
                continue
            if index == 0:
                return sorted(_mask_to_ids(unknown_ids, mine_mask))
            index -= 1
        raise IndexError("arrangement index out of range")

    # -------------------------------------------------------------------------
    # Global mine budget
    # -------------------------------------------------------------------------

    def analyze_distribution(
        self,
        partition: Partition,
        possibilities: Sequence[ComponentPossibilities],
    ) -> MineDistribution:
        """
        Combine the components' mine counts with the global mine budget.

        A count is kept for a component only if some choice of counts for the
        other components leaves a remainder that fits in the unconstrained
        bucket.

        Raises:
            RuntimeError: If no combination of counts is globally consistent.
        """
        budget = self.config.grid_config.mine_count - partition.known_mine_count
        bucket_size = len(partition.unconstrained_tile_ids)
        mine_counts = [p.mine_counts for p in possibilities]

        reachable = reachable_budgets(budget, mine_counts)
        leftovers = {r for r in reachable[-1] if r <= bucket_size}
        if not leftovers:
            raise RuntimeError("No globally consistent mine distribution exists.")

        possible: List[Set[int]] = [set() for _ in possibilities]
        completable = leftovers
        for i in reversed(range(len(possibilities))):
            completable_before: Set[int] = set()
            for remaining in reachable[i]:
                for mine_count in mine_counts[i]:
                    if mine_count > remaining:
                        break
                    if remaining - mine_count in completable:
                        possible[i].add(mine_count)
                        completable_before.add(remaining)
            completable = completable_before

        return MineDistribution(
            possible_mine_counts_by_component=[frozenset(s) for s in possible],
            unconstrained_implies_safe=leftovers == {0},
            unconstrained_implies_mine=leftovers == {bucket_size},
        )

    # -------------------------------------------------------------------------
    # Safe-move query
    # -------------------------------------------------------------------------

    def find_safe_moves(self, exhaustive: bool) -> List[int]:
        """
        Find cells that are certainly safe to reveal.

        Without ``exhaustive``, cells already known safe from local propagation
        are returned as soon as there are any; only when there are none does
        the full component and budget analysis run. In mindless mode the full
        analysis never runs.

        Args:
            exhaustive: Run the full analysis even if known-safe cells exist.

        Returns:
            Ids of every cell currently known safe, ascending. Cells proven
            safe or mined along the way have their beliefs upgraded.
        """
        mindless = self.config.mode is GameMode.MINDLESS
        if not exhaustive or mindless:
            known_safe = self.known_safe_tile_ids()
            if known_safe or mindless:
                return known_safe

        tiles = self.tiles
        partition = self.partition()
        possibilities = [self.analyze_component(c) for c in partition.components]
        distribution = self.analyze_distribution(partition, possibilities)

        logger.debug(
            "analyzed %d components, %d unconstrained cells, %d known mines",
            len(partition.components),
            len(partition.unconstrained_tile_ids),
            partition.known_mine_count,
        )

        for component, mine_counts, possibility in zip(
            partition.components,
            distribution.possible_mine_counts_by_component,
            possibilities,
        ):
            maybe_mine: Set[int] = set()
            maybe_safe: Set[int] = set()
            for mine_count in mine_counts:
                maybe_mine |= possibility.possible_mines_by_mine_count[mine_count]
                maybe_safe |= possibility.possible_safe_by_mine_count[mine_count]
            for tile_id in component.unknown_tile_ids:
                if tile_id not in maybe_mine:
                    tiles[tile_id] = Belief.KNOWN_SAFE
                elif tile_id not in maybe_safe:
                    tiles[tile_id] = Belief.KNOWN_MINE
                    self.known_mine_count += 1

        if partition.unconstrained_tile_ids:
            if distribution.unconstrained_implies_mine:
                for tile_id in partition.unconstrained_tile_ids:
                    tiles[tile_id] = Belief.KNOWN_MINE
                self.known_mine_count += len(partition.unconstrained_tile_ids)
            elif distribution.unconstrained_implies_safe:
                for tile_id in partition.unconstrained_tile_ids:
                    tiles[tile_id] = Belief.KNOWN_SAFE

        return self.known_safe_tile_ids()
