"""In-process Mindsweeper board with no-guess generation and guess arbitration."""

import logging
import random
from collections import deque
from typing import Deque, Iterable, Iterator, List, Optional, Sequence, Set

from .analyzer import Analyzer, Belief
from .arbiter import arbitrate, sample_layout
from .config import GameConfig, GameMode, GameStatus
from .oracle import Oracle

logger = logging.getLogger(__name__)

# Layouts won by the first click alone are rejected this many times in a row
# before one is accepted, so configurations where every layout is trivial
# still terminate.
_MAX_TRIVIAL_REJECTIONS = 100


class GenerationError(RuntimeError):
    """Raised when no acceptable layout was found within the attempt limit."""


class LocalGame(Oracle):
    """
    A board held in memory, implementing the ``Oracle`` contract.

    Use ``LocalGame.generate`` for a board guaranteed to be solvable by
    deduction from its first click, or ``LocalGame.from_layout`` for an
    explicit layout.
    """

    def __init__(
        self,
        config: GameConfig,
        mines: Sequence[bool],
        rng: Optional[random.Random] = None,
        analyzer: Optional[Analyzer] = None,
    ) -> None:
        """
        Initialize a board from a complete hidden layout.

        Args:
            config: Game configuration.
            mines: One flag per cell id, True where a mine is.
            rng: Random source used for arbitration.
            analyzer: Belief snapshot consistent with this layout. Reveals are
                only arbitrated once an analyzer is attached; without one, the
                first reveal attaches a fresh analyzer.

        Raises:
            ValueError: If the layout does not match the configuration.
        """
        grid = config.grid_config
        if len(mines) != grid.tile_count:
            raise ValueError("layout size does not match the grid.")
        if sum(1 for m in mines if m) != grid.mine_count:
            raise ValueError("layout mine count does not match the grid.")

        self._config = config
        self._mines: List[bool] = list(mines)
        self._clues: List[Optional[int]] = [None] * grid.tile_count
        self._hidden_safe_count: int = grid.safe_count
        self._status: GameStatus = GameStatus.ONGOING
        self._analyzer = analyzer
        self._rng = rng or random.Random()

        self.first_click_id: Optional[int] = None
        self.generation_attempts: int = 0

    @classmethod
    def from_layout(
        cls,
        config: GameConfig,
        mine_ids: Iterable[int],
        rng: Optional[random.Random] = None,
    ) -> "LocalGame":
        """Build a board with mines exactly on ``mine_ids``."""
        mines = [False] * config.grid_config.tile_count
        for tile_id in mine_ids:
            mines[tile_id] = True
        return cls(config, mines, rng)

    @classmethod
    def generate(
        cls,
        config: GameConfig,
        first_click_id: int,
        rng: Optional[random.Random] = None,
        max_attempts: Optional[int] = None,
    ) -> "LocalGame":
        """
        Generate a board that can be won from ``first_click_id`` by deduction alone.

        Random layouts with no mine on or next to the first click are played
        out with the analyzer's safe moves; the first layout that is won this
        way is returned, unrevealed.

        Args:
            config: Game configuration.
            first_click_id: Cell the player will reveal first.
            rng: Random source for the layout and later arbitration.
            max_attempts: Optional bound on the number of layouts tried.

        Returns:
            A fresh board; the caller is expected to reveal ``first_click_id``.

        Raises:
            GenerationError: If ``max_attempts`` layouts were all rejected.
        """
        rng = rng or random.Random()
        grid = config.grid_config

        protected: Set[int] = set(grid.adjacent(first_click_id)) | {first_click_id}
        eligible: List[int] = [i for i in range(grid.tile_count) if i not in protected]

        attempts = 0
        trivial_rejections = 0
        while True:
            if max_attempts is not None and attempts >= max_attempts:
                raise GenerationError(
                    f"no deducible layout for {grid} found in {attempts} attempts"
                )
            attempts += 1

            mines = [False] * grid.tile_count
            for tile_id in rng.sample(eligible, grid.mine_count):
                mines[tile_id] = True

            game = cls(config, mines, rng)
            analyzer = Analyzer(config)
            game._reveal_unchecked(first_click_id)
            game._run_autopilot_if_enabled(analyzer)
            analyzer.absorb(game)
            snapshot = analyzer.copy()

            if game._status is GameStatus.WON:
                trivial_rejections += 1
                if trivial_rejections < _MAX_TRIVIAL_REJECTIONS:
                    continue
                logger.warning(
                    "accepting a layout won by the first click after %d trivial layouts",
                    trivial_rejections,
                )
            elif not game._solve_by_deduction(analyzer):
                logger.debug("attempt %d rejected: deduction got stuck", attempts)
                trivial_rejections = 0
                continue

            logger.debug("accepted layout for %s after %d attempts", grid, attempts)
            accepted = cls(config, mines, rng, analyzer=snapshot)
            accepted.first_click_id = first_click_id
            accepted.generation_attempts = attempts
            return accepted

    def _solve_by_deduction(self, analyzer: Analyzer) -> bool:
        """Reveal safe moves until the game is won (True) or none are left (False)."""
        while True:
            safe_moves = analyzer.find_safe_moves(False)
            if not safe_moves:
                return False
            for tile_id in safe_moves:
                if self._clues[tile_id] is not None:
                    continue
                self._reveal_unchecked(tile_id)
                if self._status is GameStatus.WON:
                    return True
            analyzer.absorb(self)

    # -------------------------------------------------------------------------
    # Oracle contract
    # -------------------------------------------------------------------------

    @property
    def config(self) -> GameConfig:
        return self._config

    def adjacent_mine_count(self, tile_id: int) -> Optional[int]:
        return self._clues[tile_id]

    def iter_adjacent_mine_counts(self) -> Iterator[Optional[int]]:
        return iter(self._clues)

    @property
    def hidden_safe_count(self) -> int:
        return self._hidden_safe_count

    @property
    def status(self) -> GameStatus:
        return self._status

    def is_mine(self, tile_id: int) -> bool:
        if self._status.is_ongoing:
            raise RuntimeError("cannot check mine: game is ongoing")
        return self._mines[tile_id]

    def reveal_tile(self, tile_id: int) -> None:
        """
        Reveal one cell, flooding outwards from zero clues.

        Revealing a cell that is already revealed does nothing. When guess
        arbitration is on, whether a cell that might be a mine really is one
        is decided by ``arbitrate`` rather than by the stored layout.

        Raises:
            RuntimeError: If the game is already over.
        """
        if not self._status.is_ongoing:
            raise RuntimeError("cannot reveal tile: game is already over")
        if self._clues[tile_id] is not None:
            return
        if self._hits_mine([tile_id]):
            self._status = GameStatus.LOST
            return

        self._reveal_unchecked(tile_id)
        self._after_move()

    def chord(self, number_tile_id: int, adjacent_hidden_tile_ids: Sequence[int]) -> None:
        """
        Reveal the listed hidden neighbours of ``number_tile_id`` at once.

        Raises:
            RuntimeError: If the game is over or a listed cell is revealed.
        """
        if not self._status.is_ongoing:
            raise RuntimeError("cannot chord: game is already over")
        for tile_id in adjacent_hidden_tile_ids:
            if self._clues[tile_id] is not None:
                raise RuntimeError("cannot chord to revealed tile")
        if self._hits_mine(adjacent_hidden_tile_ids):
            self._status = GameStatus.LOST
            return

        self._chord_unchecked(adjacent_hidden_tile_ids)
        self._after_move()

    def _hits_mine(self, tile_ids: Sequence[int]) -> bool:
        if self._analyzer is None or not self._config.punish_guessing:
            return any(self._mines[tile_id] for tile_id in tile_ids)
        return self._punish(tile_ids)

    def _after_move(self) -> None:
        if self._analyzer is None:
            self._analyzer = Analyzer(self._config)
        if self._status.is_ongoing:
            self._run_autopilot_if_enabled(self._analyzer)

    # -------------------------------------------------------------------------
    # Board mutation
    # -------------------------------------------------------------------------

    def _reveal_unchecked(self, tile_id: int) -> None:
        """Reveal a hidden safe cell and flood fill from zero clues."""
        grid = self._config.grid_config
        frontier: Deque[int] = deque([tile_id])
        visited: Set[int] = {tile_id}

        while frontier:
            current = frontier.popleft()
            if self._clues[current] is not None:
                continue
            assert not self._mines[current], "revealed a mine without checking"

            neighbors = grid.adjacent(current)
            clue = sum(1 for n in neighbors if self._mines[n])
            self._clues[current] = clue
            self._hidden_safe_count -= 1

            if self._hidden_safe_count == 0:
                self._status = GameStatus.WON
                break

            if clue == 0:
                for n in neighbors:
                    if n in visited or self._clues[n] is not None:
                        continue
                    visited.add(n)
                    frontier.append(n)

    def _chord_unchecked(self, tile_ids: Sequence[int]) -> None:
        for tile_id in tile_ids:
            if self._clues[tile_id] is not None:
                continue
            self._reveal_unchecked(tile_id)
            if self._status is GameStatus.WON:
                break

    def _punish(self, tile_ids: Sequence[int]) -> bool:
        """
        Arbitrate a guess and make the hidden layout agree with the verdict.

        Returns:
            True if the guess hits a mine.
        """
        analyzer = self._analyzer
        assert analyzer is not None
        analyzer.absorb(self)

        if any(analyzer.get_tile(tile_id) == Belief.KNOWN_MINE for tile_id in tile_ids):
            return True

        hit = arbitrate(analyzer, tile_ids, self._rng)
        if hit:
            self._relayout(analyzer, sample_layout(analyzer, tile_ids, self._rng, as_mine=True))
        elif any(self._mines[tile_id] for tile_id in tile_ids):
            self._relayout(analyzer, sample_layout(analyzer, tile_ids, self._rng, as_mine=False))
        return hit

    def _relayout(self, analyzer: Analyzer, mine_ids: Sequence[int]) -> None:
        """Overwrite the mines of every unknown cell with ``mine_ids``."""
        new_mines = set(mine_ids)
        for tile_id, belief in enumerate(analyzer.tiles):
            if belief == Belief.UNKNOWN:
                self._mines[tile_id] = tile_id in new_mines
        assert sum(self._mines) == self._config.grid_config.mine_count
        logger.debug("hidden layout rewritten with %d unknown mines", len(new_mines))

    def _run_autopilot_if_enabled(self, analyzer: Analyzer) -> None:
        """In autopilot mode, reveal every cell known safe until nothing changes."""
        if self._config.mode is not GameMode.AUTOPILOT:
            return
        previous_hidden_safe_count = None
        while self._hidden_safe_count != previous_hidden_safe_count:
            previous_hidden_safe_count = self._hidden_safe_count
            analyzer.absorb(self)
            for tile_id in range(len(self._clues)):
                if self._clues[tile_id] is not None or analyzer.may_be_mine(tile_id):
                    continue
                self._reveal_unchecked(tile_id)
                if self._status is GameStatus.WON:
                    return
