"""Grid and game configuration for the Mindsweeper engine."""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .utils import get_neighborhoods

_PRESET_NAMES = {
    (9, 9, 10): "Beginner",
    (16, 16, 40): "Intermediate",
    (30, 16, 99): "Expert",
    (30, 20, 130): "Evil",
}


class DegenerateGridError(ValueError):
    """Raised when a grid is too small or too crowded to guarantee a fair first click."""


@dataclass(frozen=True)
class GridConfig:
    """
    Dimensions and mine count of a minefield.

    A configuration is valid iff it is at least 4 wide and 3 tall and leaves
    room for a first click whose whole neighbourhood is mine-free
    (``mine_count <= width * height - 9``).

    Raises:
        DegenerateGridError: If the configuration violates the rule above.
    """

    width: int
    height: int
    mine_count: int

    def __post_init__(self) -> None:
        if (
            self.width < 4
            or self.height < 3
            or self.mine_count < 0
            or self.mine_count > self.width * self.height - 9
        ):
            raise DegenerateGridError(
                f"degenerate grid: {self.width}x{self.height} with {self.mine_count} mines"
            )

    @classmethod
    def beginner(cls) -> "GridConfig":
        return cls(9, 9, 10)

    @classmethod
    def intermediate(cls) -> "GridConfig":
        return cls(16, 16, 40)

    @classmethod
    def expert(cls) -> "GridConfig":
        return cls(30, 16, 99)

    @classmethod
    def evil(cls) -> "GridConfig":
        return cls(30, 20, 130)

    @classmethod
    def standard_configs(cls) -> Tuple["GridConfig", ...]:
        return (cls.beginner(), cls.intermediate(), cls.expert(), cls.evil())

    @property
    def tile_count(self) -> int:
        return self.width * self.height

    @property
    def safe_count(self) -> int:
        return self.tile_count - self.mine_count

    @property
    def mine_density(self) -> float:
        return self.mine_count / self.tile_count

    def adjacent(self, tile_id: int) -> Tuple[int, ...]:
        """Return the ids of the (up to 8) cells adjacent to ``tile_id``."""
        return get_neighborhoods(self.width, self.height)[tile_id]

    def random_tile_id(self, rng: Optional[random.Random] = None) -> int:
        return (rng or random).randrange(self.tile_count)

    def __str__(self) -> str:
        description = f"{self.width}x{self.height} with {self.mine_count} mines"
        name = _PRESET_NAMES.get((self.width, self.height, self.mine_count))
        if name is None:
            return description
        return f"{name} ({description})"


class GameMode(Enum):
    """How much the engine helps the player."""

    NORMAL = "normal"
    # only trivially local deductions count as safe moves
    MINDLESS = "mindless"
    # every deducible safe cell is revealed automatically
    AUTOPILOT = "autopilot"


class GameStatus(Enum):
    ONGOING = "ongoing"
    WON = "won"
    LOST = "lost"

    @property
    def is_ongoing(self) -> bool:
        return self is GameStatus.ONGOING

    @property
    def is_game_over(self) -> bool:
        return self is not GameStatus.ONGOING


@dataclass(frozen=True)
class GameConfig:
    """Grid configuration plus play options."""

    grid_config: GridConfig
    mode: GameMode = GameMode.NORMAL
    punish_guessing: bool = True
