"""Simulation and benchmarking tools for the Mindsweeper engine."""

import logging
import random
import time
from typing import Dict, List, Optional

import matplotlib.pyplot as plt
import numpy as np

from .analyzer import Analyzer, Belief
from .config import GameConfig, GameMode, GameStatus, GridConfig
from .engine import LocalGame

logger = logging.getLogger(__name__)


def format_analyzer_beliefs(analyzer: Analyzer, *, show_coords: bool = True) -> str:
    """
    Format the analyzer's current beliefs as a human-readable string.

    Args:
        analyzer: Analyzer whose beliefs will be displayed.
        show_coords: If True, include coordinate labels and a header.

    Returns:
        A text grid where unknown cells are shown as '-', cells known safe as
        ' ', cells known to be mines as '*', and revealed cells as their clue.
    """
    grid = analyzer.config.grid_config
    w, h = grid.width, grid.height

    def cell_char(x: int, y: int) -> str:
        v = analyzer.get_tile(y * w + x)
        if v == Belief.UNKNOWN:
            return "-"
        if v == Belief.KNOWN_SAFE:
            return " "
        if v == Belief.KNOWN_MINE:
            return "*"
        return str(v)

    lines: List[str] = []
    if show_coords:
        header = " ".join(f"{x:2d}" for x in range(w))
        lines.append("   " + header)
        lines.append("   " + "-" * (3 * w - 1))

    for y in range(h):
        row = " ".join(f" {cell_char(x, y)}" for x in range(w))
        lines.append(f"{y:2d} |" + row if show_coords else row)

    return "\n".join(lines)


def play_deduction_game(
    config: GameConfig,
    *,
    rng: Optional[random.Random] = None,
    first_click_id: Optional[int] = None,
    show_boards: bool = False,
) -> Dict[str, object]:
    """
    Generate one game and play it out using only the analyzer's safe moves.

    Args:
        config: Game configuration.
        rng: Random source for the first click, the layout and arbitration.
        first_click_id: Cell to open with; random if omitted.
        show_boards: If True, print the final board and the analyzer's beliefs.

    Returns:
        A mapping with keys:
        - status: final ``GameStatus``
        - won: whether the game was won
        - stuck: whether play stopped because no safe move was proposed
        - reveal_moves_count: number of ``reveal_tile`` calls after the first click
        - revealed_cells_count: number of revealed cells at the end
        - generation_attempts: layouts tried by the generator
        - generation_seconds: wall time spent generating
    """
    rng = rng or random.Random()
    grid = config.grid_config
    if first_click_id is None:
        first_click_id = grid.random_tile_id(rng)

    start = time.perf_counter()
    game = LocalGame.generate(config, first_click_id, rng)
    generation_seconds = time.perf_counter() - start

    game.reveal_tile(first_click_id)
    analyzer = Analyzer(config)
    reveal_moves_count = 0
    stuck = False

    while game.status.is_ongoing:
        analyzer.absorb(game)
        safe_moves = analyzer.find_safe_moves(False)
        if not safe_moves:
            stuck = True
            break
        for tile_id in safe_moves:
            if game.adjacent_mine_count(tile_id) is not None:
                continue
            game.reveal_tile(tile_id)
            reveal_moves_count += 1
            if game.status.is_game_over:
                break

    revealed_cells_count = sum(1 for clue in game.iter_adjacent_mine_counts() if clue is not None)

    if show_boards:
        print(f"Configuration: {grid}")
        print("Final board:")
        print(game.format_board())
        print()
        print("Analyzer beliefs:")
        print(format_analyzer_beliefs(analyzer, show_coords=True))
        print()
        print(f"Finished with status {game.status.value}.")

    return {
        "status": game.status,
        "won": game.status is GameStatus.WON,
        "stuck": stuck,
        "reveal_moves_count": reveal_moves_count,
        "revealed_cells_count": revealed_cells_count,
        "generation_attempts": game.generation_attempts,
        "generation_seconds": generation_seconds,
    }


def simulate_games(
    config: GameConfig,
    trial_count: int,
    rng: Optional[random.Random] = None,
    just_generate: bool = False,
) -> Dict[str, float]:
    """
    Run many independent games and aggregate their results.

    Args:
        config: Game configuration.
        trial_count: Number of games.
        rng: Random source shared by all games.
        just_generate: If True, only generate the boards without playing them.

    Returns:
        Generation statistics (``avg_generation_attempts``,
        ``std_generation_attempts``, ``avg_generation_seconds``,
        ``std_generation_seconds``) plus, unless ``just_generate``,
        ``win_count``, ``win_rate``, ``stuck_count`` and
        ``avg_reveal_moves_count``.

    Raises:
        ValueError: If ``trial_count`` is not positive.
    """
    if trial_count <= 0:
        raise ValueError("trial_count must be positive.")
    rng = rng or random.Random()
    grid = config.grid_config

    attempts: List[int] = []
    seconds: List[float] = []
    reveal_moves: List[int] = []
    wins = 0
    stuck = 0

    for _ in range(trial_count):
        if just_generate:
            first_click_id = grid.random_tile_id(rng)
            start = time.perf_counter()
            game = LocalGame.generate(config, first_click_id, rng)
            seconds.append(time.perf_counter() - start)
            attempts.append(game.generation_attempts)
            continue

        result = play_deduction_game(config, rng=rng)
        attempts.append(int(result["generation_attempts"]))  # type: ignore[call-overload]
        seconds.append(float(result["generation_seconds"]))  # type: ignore[arg-type]
        reveal_moves.append(int(result["reveal_moves_count"]))  # type: ignore[call-overload]
        if result["won"]:
            wins += 1
        if result["stuck"]:
            stuck += 1

    attempts_arr = np.asarray(attempts, dtype=float)
    seconds_arr = np.asarray(seconds, dtype=float)
    out: Dict[str, float] = {
        "trial_count": float(trial_count),
        "avg_generation_attempts": float(np.mean(attempts_arr)),
        "std_generation_attempts": float(np.std(attempts_arr)),
        "avg_generation_seconds": float(np.mean(seconds_arr)),
        "std_generation_seconds": float(np.std(seconds_arr)),
    }

    if just_generate:
        logger.info(
            "generated %d boards for %s, %.1f attempts on average",
            trial_count,
            grid,
            out["avg_generation_attempts"],
        )
        return out

    out["win_count"] = float(wins)
    out["win_rate"] = wins / trial_count
    out["stuck_count"] = float(stuck)
    out["avg_reveal_moves_count"] = float(np.mean(np.asarray(reveal_moves, dtype=float)))
    logger.info("won %d/%d on %s", wins, trial_count, grid)
    return out


def run_standard_level_analysis(
    trial_count: int,
    punish_guessing: bool = True,
    *,
    mode: GameMode = GameMode.NORMAL,
    rng: Optional[random.Random] = None,
) -> Dict[str, Dict[str, float]]:
    """
    Run simulations on the standard presets and plot summaries.

    Args:
        trial_count: Number of games per preset.
        punish_guessing: Whether guesses are arbitrated.
        mode: Game mode used for every preset.
        rng: Random source shared by all games.

    Returns:
        Mapping from level name to the statistics returned by ``simulate_games``.

    Standard presets:
        - Beginner: 9x9, 10 mines
        - Intermediate: 16x16, 40 mines
        - Expert: 30x16, 99 mines
        - Evil: 30x20, 130 mines
    """
    levels: Dict[str, GridConfig] = {
        "beginner": GridConfig.beginner(),
        "intermediate": GridConfig.intermediate(),
        "expert": GridConfig.expert(),
        "evil": GridConfig.evil(),
    }

    results: Dict[str, Dict[str, float]] = {}
    for level, grid in levels.items():
        config = GameConfig(grid, mode=mode, punish_guessing=punish_guessing)
        results[level] = simulate_games(config, trial_count, rng)

    level_names = list(levels.keys())
    x = np.arange(len(level_names))

    # 1) Win rate by level
    win_rates = [results[n]["win_rate"] for n in level_names]

    plt.figure()  # type: ignore[misc]
    plt.bar(x, win_rates)  # type: ignore[misc]
    plt.xticks(x, level_names)  # type: ignore[misc]
    plt.ylabel("Win rate")  # type: ignore[misc]
    plt.ylim(0.0, 1.0)  # type: ignore[misc]
    plt.title("Win rate by difficulty level")  # type: ignore[misc]
    plt.tight_layout()
    plt.show()  # type: ignore[misc]

    # 2) Generation effort
    avg_attempts = [results[n]["avg_generation_attempts"] for n in level_names]
    std_attempts = [results[n]["std_generation_attempts"] for n in level_names]

    plt.figure()  # type: ignore[misc]
    plt.bar(x, avg_attempts, yerr=std_attempts, capsize=4)  # type: ignore[misc]
    plt.xticks(x, level_names)  # type: ignore[misc]
    plt.ylabel("Average layouts tried")  # type: ignore[misc]
    plt.title("Generation attempts per board")  # type: ignore[misc]
    plt.tight_layout()
    plt.show()  # type: ignore[misc]

    # 3) Generation time
    avg_seconds = [results[n]["avg_generation_seconds"] for n in level_names]

    plt.figure()  # type: ignore[misc]
    plt.bar(x, avg_seconds)  # type: ignore[misc]
    plt.xticks(x, level_names)  # type: ignore[misc]
    plt.ylabel("Average seconds")  # type: ignore[misc]
    plt.title("Generation time per board")  # type: ignore[misc]
    plt.tight_layout()
    plt.show()  # type: ignore[misc]

    return results
