"""Exact layout counting and sampling used to arbitrate guesses.

A guess is arbitrated by comparing two exact integers: the number of complete
mine layouts consistent with everything revealed, and the number of those in
which the guessed cell is a mine. Layout counts multiply the number of
arrangements of each component with the number of ways to place the leftover
mines in the unconstrained bucket, so they are computed with Python's
arbitrary-precision integers and never converted to floats.
"""

import logging
import random
from typing import Dict, List, Optional, Sequence, Tuple

from .analyzer import Analyzer, Belief, ComponentPossibilities, Partition, reachable_budgets
from .utils import big_binomial, weighted_index

logger = logging.getLogger(__name__)


class LayoutSampler:
    """
    Counts and samples complete layouts for one partition.

    ``weight(i, r)`` is the number of ways to finish a layout when components
    ``i..`` are still open and ``r`` mines remain; it is tabulated backwards
    over the reachable budgets so both the total and the conditional draws are
    exact.
    """

    def __init__(
        self,
        partition: Partition,
        possibilities: Sequence[ComponentPossibilities],
        mine_total: int,
    ) -> None:
        self.partition = partition
        self.possibilities = possibilities
        self.budget = mine_total - partition.known_mine_count

        bucket_size = len(partition.unconstrained_tile_ids)
        counts = [p.arrangement_count_by_mine_count for p in possibilities]
        reachable = reachable_budgets(self.budget, [sorted(c) for c in counts])

        weights: List[Dict[int, int]] = [{} for _ in range(len(counts) + 1)]
        weights[-1] = {r: big_binomial(bucket_size, r) for r in reachable[-1]}
        for i in reversed(range(len(counts))):
            later = weights[i + 1]
            weights[i] = {
                r: sum(n * later[r - k] for k, n in counts[i].items() if k <= r)
                for r in reachable[i]
            }
        self._weights = weights

    @property
    def total_weight(self) -> int:
        """Number of complete layouts consistent with the partition."""
        if self.budget < 0:
            return 0
        return self._weights[0].get(self.budget, 0)

    def sample_mine_counts(self, rng: random.Random) -> Tuple[List[int], int]:
        """
        Draw per-component mine counts with probability proportional to the
        number of layouts realizing them.

        Returns:
            The mine count chosen for each component and the number of mines
            left for the unconstrained bucket.

        Raises:
            ValueError: If there is no consistent layout.
        """
        remaining = self.budget
        chosen: List[int] = []
        for i, possibility in enumerate(self.possibilities):
            later = self._weights[i + 1]
            options = [
                (k, n * later[remaining - k])
                for k, n in sorted(possibility.arrangement_count_by_mine_count.items())
                if k <= remaining
            ]
            k, _ = options[weighted_index([w for _, w in options], rng)]
            chosen.append(k)
            remaining -= k

        if big_binomial(len(self.partition.unconstrained_tile_ids), remaining) == 0:
            raise ValueError("no consistent layout to sample from.")
        return chosen, remaining


def _locate_candidates(
    partition: Partition, candidate_ids: Sequence[int]
) -> Tuple[Optional[int], List[int]]:
    """Return the component index holding the candidates (None for the bucket)."""
    for i, component in enumerate(partition.components):
        members = set(component.unknown_tile_ids)
        inside = [t for t in candidate_ids if t in members]
        if inside:
            if len(inside) != len(candidate_ids):
                raise RuntimeError("arbitration candidates span several components.")
            return i, inside
    if len(candidate_ids) != 1:
        raise RuntimeError("arbitration candidates must share one component.")
    return None, list(candidate_ids)


class _Restriction:
    """A partition narrowed to layouts where the candidates are mines, or are all safe."""

    def __init__(
        self,
        analyzer: Analyzer,
        candidate_ids: Sequence[int],
        as_mine: bool,
        partition: Optional[Partition] = None,
        possibilities: Optional[Sequence[ComponentPossibilities]] = None,
    ) -> None:
        if partition is None:
            partition = analyzer.partition()
        if possibilities is None:
            possibilities = [analyzer.analyze_component(c) for c in partition.components]

        self.analyzer = analyzer
        self.index, self.candidate_ids = _locate_candidates(partition, candidate_ids)
        self.as_mine = as_mine
        self.possibilities = list(possibilities)

        if self.index is None:
            # settle the unconstrained candidate outside the bucket
            self.partition = Partition(
                components=partition.components,
                unconstrained_tile_ids=[
                    t for t in partition.unconstrained_tile_ids if t != self.candidate_ids[0]
                ],
                known_mine_count=partition.known_mine_count + (1 if as_mine else 0),
            )
        else:
            self.partition = partition
            self.possibilities[self.index] = analyzer.analyze_component(
                partition.components[self.index], **self._filters(self.index)
            )

        self.sampler = LayoutSampler(
            self.partition, self.possibilities, analyzer.config.grid_config.mine_count
        )

    def _filters(self, i: int) -> Dict[str, Sequence[int]]:
        if i != self.index:
            return {}
        if self.as_mine:
            return {"required": self.candidate_ids}
        return {"forbidden": self.candidate_ids}

    def sample(self, rng: random.Random) -> List[int]:
        """Draw one complete layout uniformly among those the restriction allows."""
        mine_counts, leftover = self.sampler.sample_mine_counts(rng)
        mine_ids: List[int] = []
        for i, (component, mine_count) in enumerate(zip(self.partition.components, mine_counts)):
            arrangement_count = self.possibilities[i].arrangement_count_by_mine_count[mine_count]
            mine_ids.extend(
                self.analyzer.find_arrangement(
                    component, mine_count, rng.randrange(arrangement_count), **self._filters(i)
                )
            )
        mine_ids.extend(rng.sample(self.partition.unconstrained_tile_ids, leftover))
        if self.index is None and self.as_mine:
            mine_ids.append(self.candidate_ids[0])
        return sorted(mine_ids)


def _unknown_candidates(analyzer: Analyzer, tile_ids: Sequence[int]) -> List[int]:
    return [t for t in tile_ids if analyzer.get_tile(t) == Belief.UNKNOWN]


def arbitrate(analyzer: Analyzer, tile_ids: Sequence[int], rng: random.Random) -> bool:
    """
    Decide whether revealing ``tile_ids`` hits a mine.

    The analyzer must already have absorbed the current board. The answer is
    True with probability equal to the exact fraction of consistent layouts
    that put a mine on at least one of the cells still unknown. Cells known to
    be mines or safe are not arbitrated here.

    Args:
        analyzer: Up-to-date analyzer for the board being played.
        tile_ids: The cell being revealed, or the cells being chorded into.
        rng: Random source of the game.

    Returns:
        True if the reveal hits a mine.
    """
    candidate_ids = _unknown_candidates(analyzer, tile_ids)
    if not candidate_ids:
        return False

    partition = analyzer.partition()
    possibilities = [analyzer.analyze_component(c) for c in partition.components]

    forced = _Restriction(analyzer, candidate_ids, True, partition, possibilities)
    mine_weight = forced.sampler.total_weight
    if mine_weight == 0:
        logger.debug("reveal of %s is safe in every consistent layout", candidate_ids)
        return False

    mine_total = analyzer.config.grid_config.mine_count
    total_weight = LayoutSampler(partition, possibilities, mine_total).total_weight
    if total_weight < mine_weight:
        raise RuntimeError("board has fewer consistent layouts than mine-forcing ones.")

    logger.debug(
        "arbitrating %s: %d of %d consistent layouts hold a mine",
        candidate_ids,
        mine_weight,
        total_weight,
    )
    return rng.randrange(total_weight) < mine_weight


def sample_layout(
    analyzer: Analyzer,
    tile_ids: Sequence[int],
    rng: random.Random,
    as_mine: bool,
) -> List[int]:
    """
    Sample a complete layout consistent with everything the analyzer knows.

    Layouts are drawn uniformly among those where at least one of the unknown
    ``tile_ids`` is a mine (``as_mine``) or where all of them are safe.

    Returns:
        Ids of the currently unknown cells that hold a mine in the layout.
        Cells already known to be mines keep their mines and are not listed.

    Raises:
        ValueError: If no layout satisfies the restriction.
    """
    candidate_ids = _unknown_candidates(analyzer, tile_ids)
    if not candidate_ids:
        raise ValueError("no unknown cell to restrict the layout on.")
    restriction = _Restriction(analyzer, candidate_ids, as_mine)
    if restriction.sampler.total_weight == 0:
        raise ValueError("no consistent layout satisfies the restriction.")
    return restriction.sample(rng)
