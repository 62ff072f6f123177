"""The board accessor contract consumed by the analyzer."""

from abc import ABC, abstractmethod
from typing import Iterator, Optional, Sequence, Tuple

from .config import GameConfig, GameStatus


class Oracle(ABC):
    """
    A live minesweeper board as seen by the engine.

    The analyzer only reads clues through this interface, and the generator
    and arbiter only change the board through ``reveal_tile`` and ``chord``,
    so any implementation (in-process, remote, replayed from a log) can be
    analyzed the same way.
    """

    @property
    @abstractmethod
    def config(self) -> GameConfig:
        raise NotImplementedError

    def neighbor_ids(self, tile_id: int) -> Tuple[int, ...]:
        """Return the ids of the cells adjacent to ``tile_id``."""
        return self.config.grid_config.adjacent(tile_id)

    @abstractmethod
    def adjacent_mine_count(self, tile_id: int) -> Optional[int]:
        """Return the clue of a revealed cell, or None while it is hidden."""
        raise NotImplementedError

    def iter_adjacent_mine_counts(self) -> Iterator[Optional[int]]:
        """Yield ``adjacent_mine_count`` for every cell in id order."""
        for tile_id in range(self.config.grid_config.tile_count):
            yield self.adjacent_mine_count(tile_id)

    @property
    @abstractmethod
    def hidden_safe_count(self) -> int:
        raise NotImplementedError

    @property
    @abstractmethod
    def status(self) -> GameStatus:
        raise NotImplementedError

    @abstractmethod
    def is_mine(self, tile_id: int) -> bool:
        """
        Report whether a cell holds a mine.

        Raises:
            RuntimeError: If the game is still ongoing.
        """
        raise NotImplementedError

    @abstractmethod
    def reveal_tile(self, tile_id: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def chord(self, number_tile_id: int, adjacent_hidden_tile_ids: Sequence[int]) -> None:
        """
        Reveal every listed hidden neighbour of a satisfied clue cell.

        Raises:
            RuntimeError: If one of the listed cells is already revealed.
        """
        raise NotImplementedError

    def format_board(self) -> str:
        """
        Render the board as text: clues as digits, hidden cells as '-'.

        Mines are shown as '*' once the game is over.
        """
        grid = self.config.grid_config
        rows = []
        for y in range(grid.height):
            row = []
            for x in range(grid.width):
                tile_id = y * grid.width + x
                clue = self.adjacent_mine_count(tile_id)
                if clue is not None:
                    row.append(str(clue))
                elif self.status.is_game_over and self.is_mine(tile_id):
                    row.append("*")
                else:
                    row.append("-")
            rows.append("".join(row))
        return "\n".join(rows)
