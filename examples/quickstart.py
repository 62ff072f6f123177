"""
Quickstart example for the Mindsweeper engine.

This script demonstrates basic usage of the generator and the analyzer.
"""

import random

from mindsweeper import (
    Analyzer,
    Belief,
    GameConfig,
    GridConfig,
    LocalGame,
    format_analyzer_beliefs,
    simulate_games,
)


def main():
    print("=" * 60)
    print("Mindsweeper - Quickstart Example")
    print("=" * 60)

    rng = random.Random(2024)
    config = GameConfig(GridConfig.intermediate())

    # Example 1: Generate a board and play it by deduction only
    print("\n1. Playing an Intermediate game (16x16, 40 mines) by deduction...")
    print("-" * 60)

    first_click_id = config.grid_config.random_tile_id(rng)
    game = LocalGame.generate(config, first_click_id, rng)
    print(f"Layouts tried before one was accepted: {game.generation_attempts}")

    game.reveal_tile(first_click_id)
    analyzer = Analyzer(config)
    reveal_moves = 0
    while game.status.is_ongoing:
        analyzer.absorb(game)
        safe_moves = analyzer.find_safe_moves(False)
        if not safe_moves:
            print("Stuck: no safe move left.")
            break
        for tile_id in safe_moves:
            game.reveal_tile(tile_id)
            reveal_moves += 1
            if game.status.is_game_over:
                break

    print(f"Result: {game.status.value.upper()}")
    print(f"Reveal moves: {reveal_moves}")

    # Example 2: Show final board state
    print("\n2. Final board state:")
    print("-" * 60)
    print(game.format_board())
    print()
    print(format_analyzer_beliefs(analyzer))

    # Example 3: A guess on a fresh board is arbitrated
    print("\n3. Guessing on an Expert board with guess punishment on...")
    print("-" * 60)

    expert = GameConfig(GridConfig.expert(), punish_guessing=True)
    first_click_id = expert.grid_config.random_tile_id(rng)
    game = LocalGame.generate(expert, first_click_id, rng)
    game.reveal_tile(first_click_id)
    analyzer = Analyzer(expert)
    analyzer.absorb(game)
    guess = next(
        t for t in range(expert.grid_config.tile_count) if analyzer.get_tile(t) == Belief.UNKNOWN
    )
    game.reveal_tile(guess)
    print(f"Guessed cell {guess}: {game.status.value}")

    # Example 4: Compare difficulty levels
    print("\n4. Win rates by difficulty level (10 games each)...")
    print("-" * 60)

    for grid in GridConfig.standard_configs()[:3]:
        results = simulate_games(GameConfig(grid), 10, rng)
        print(
            f"{str(grid):35s}: {results['win_rate']*100:5.1f}% win rate, "
            f"{results['avg_generation_attempts']:.1f} layouts per board"
        )

    print("\n" + "=" * 60)
    print("Done!")
    print("=" * 60)


if __name__ == "__main__":
    main()
