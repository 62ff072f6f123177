"""
Mindsweeper

A minesweeper engine that only deals boards winnable by pure deduction:
- Local propagation: clue-driven belief updates for every cell
- Component search: exhaustive enumeration of independent unknown regions
- Global budget: combining component mine counts with the total mine count
- Guess arbitration: resolving guesses in exact proportion to their odds
"""

from .config import (
    DegenerateGridError,
    GameConfig,
    GameMode,
    GameStatus,
    GridConfig,
)
from .bitset import BitSet
from .oracle import Oracle
from .analyzer import (
    Analyzer,
    Belief,
    Component,
    ComponentPossibilities,
    MineDistribution,
    Partition,
)
from .arbiter import LayoutSampler, arbitrate, sample_layout
from .engine import GenerationError, LocalGame
from .analysis import (
    format_analyzer_beliefs,
    play_deduction_game,
    simulate_games,
    run_standard_level_analysis,
)

__version__ = "1.0.0"

__all__ = [
    # Configuration
    "DegenerateGridError",
    "GameConfig",
    "GameMode",
    "GameStatus",
    "GridConfig",
    # Core classes
    "Analyzer",
    "Belief",
    "BitSet",
    "Component",
    "ComponentPossibilities",
    "GenerationError",
    "LayoutSampler",
    "LocalGame",
    "MineDistribution",
    "Oracle",
    "Partition",
    # Arbitration
    "arbitrate",
    "sample_layout",
    # Analysis functions
    "format_analyzer_beliefs",
    "play_deduction_game",
    "simulate_games",
    "run_standard_level_analysis",
]
