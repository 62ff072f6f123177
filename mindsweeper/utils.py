"""Utility functions for the Mindsweeper engine."""

import random
from math import comb
from typing import Dict, List, Sequence, Tuple

# Module-level cache: (width, height) -> neighbours of each cell id
_NEIGHBORHOODS_CACHE: Dict[Tuple[int, int], Tuple[Tuple[int, ...], ...]] = {}


def get_neighborhoods(width: int, height: int) -> Tuple[Tuple[int, ...], ...]:
    """
    Precompute and cache 8-connected neighbour ids for every cell in a grid.

    Cells are addressed row-major (``id = row * width + col``). Neighbours are
    listed top-left to bottom-right.

    Args:
        width: Grid width (number of columns). Must be positive.
        height: Grid height (number of rows). Must be positive.

    Returns:
        A tuple indexed by cell id whose entries are the ids of that cell's
        neighbours under 8-connectivity.

    Raises:
        ValueError: If width or height is non-positive.
    """
    if width <= 0 or height <= 0:
        raise ValueError("width and height must be positive.")

    key = (width, height)
    cached = _NEIGHBORHOODS_CACHE.get(key)
    if cached is not None:
        return cached

    neighborhoods: List[Tuple[int, ...]] = []
    for y in range(height):
        for x in range(width):
            nbrs: List[int] = []
            for dy in (-1, 0, 1):
                for dx in (-1, 0, 1):
                    if dx == 0 and dy == 0:
                        continue
                    nx, ny = x + dx, y + dy
                    if 0 <= nx < width and 0 <= ny < height:
                        nbrs.append(ny * width + nx)
            neighborhoods.append(tuple(nbrs))

    result = tuple(neighborhoods)
    _NEIGHBORHOODS_CACHE[key] = result
    return result


def big_binomial(n: int, k: int) -> int:
    """Exact binomial coefficient, zero when ``k`` is outside ``[0, n]``."""
    if k < 0 or k > n:
        return 0
    return comb(n, k)


def weighted_index(weights: Sequence[int], rng: random.Random) -> int:
    """
    Pick an index with probability proportional to its integer weight.

    Draws a uniform integer below the total weight and walks the cumulative
    sum, so arbitrarily large weights keep their exact ratios.

    Args:
        weights: Non-negative integer weights.
        rng: Random source.

    Returns:
        The chosen index.

    Raises:
        ValueError: If there are no weights or they are all zero.
    """
    total = sum(weights)
    if total <= 0:
        raise ValueError("weights must contain a positive entry.")

    target = rng.randrange(total)
    for i, weight in enumerate(weights):
        if target < weight:
            return i
        target -= weight

    raise AssertionError("cumulative weights did not cover the drawn target")
