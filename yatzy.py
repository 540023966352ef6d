#!/usr/bin/env python3
"""
Unified entry point for the Yatzy rule engine.

Usage:
    python yatzy.py simulate --games 1000 --seed 7   # Random matches, anomaly check
    python yatzy.py leaderboard --window weekly      # Print a leaderboard
    python yatzy.py serve --port 8080                # Leaderboard JSON API
"""
import argparse
import logging
import random
import sys
from datetime import date

from error_tracking import MemorySink
from game_coordinator import GameCoordinator, play_random_game
from ranking import Window, leaderboard
from score_history import get_all_player_scores, get_player_names


def parse_args(argv=None):
    """Parse command-line arguments.

    Args:
        argv: Optional list of args (for testing). None uses sys.argv.
    """
    parser = argparse.ArgumentParser(description="Yatzy rule engine")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sim = sub.add_parser("simulate", help="Play random matches and report anomalies")
    sim.add_argument("--games", type=int, default=100, help="Number of matches (default: 100)")
    sim.add_argument("--seed", type=int, default=None, help="Random seed")
    sim.add_argument("--save", action="store_true", help="Store results in the score history")
    sim.add_argument("--scores", default=None, help="Score history file")

    board = sub.add_parser("leaderboard", help="Print a leaderboard")
    board.add_argument("--window", choices=[w.value for w in Window], default=Window.ALL_TIME.value)
    board.add_argument("--limit", type=int, default=10, help="Rows to show (default: 10)")
    board.add_argument("--scores", default=None, help="Score history file")

    serve = sub.add_parser("serve", help="Run the leaderboard JSON API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=5000)
    serve.add_argument("--scores", default=None, help="Score history file")
    serve.add_argument("--debug", action="store_true")
    return parser.parse_args(argv)


def simulate(games, seed=None, save=False, scores_path=None):
    """Play `games` random matches. Returns (totals, anomaly reports)."""
    rng = random.Random(seed)
    sink = MemorySink()
    totals = []
    for i in range(games):
        coordinator = GameCoordinator(player_id=f"sim-{i % 10}", name=f"Sim {i % 10}",
                                      sink=sink, rng=rng, scores_path=scores_path)
        play_random_game(coordinator)
        if save:
            coordinator.finish_game()
        totals.append(coordinator.total)
    return totals, sink.reports


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    if args.command == "simulate":
        totals, reports = simulate(args.games, args.seed, args.save, args.scores)
        if totals:
            print(f"{len(totals)} matches: min {min(totals)}, max {max(totals)}, "
                  f"mean {sum(totals) / len(totals):.1f}")
        print(f"{len(reports)} anomaly report(s)")
        return 0

    if args.command == "leaderboard":
        players = get_all_player_scores(path=args.scores)
        names = get_player_names(path=args.scores)
        standings = leaderboard(players, Window(args.window), date.today())
        for s in standings[:args.limit]:
            name = names.get(s.player_id, s.player_id)
            print(f"{s.rank:>3}. {name:<20} {s.record.points:>4}  {s.record.duration:>4}s  {s.record.date}")
        if not standings:
            print("No scores yet")
        return 0

    if args.command == "serve":
        from web import main as run_web
        run_web(["--host", args.host, "--port", str(args.port)]
                + (["--scores", args.scores] if args.scores else [])
                + (["--debug"] if args.debug else []))
        return 0
    return 2


if __name__ == "__main__":
    sys.exit(main())
