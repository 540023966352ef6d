#!/usr/bin/env python3
"""
Yatzy Web — Flask JSON API over the stored score history.

Serves the all-time, monthly and weekly leaderboards and per-player rank
summaries. Reads go through score_history; ordering comes from ranking.
"""
import logging
from datetime import date

from flask import Flask, abort, jsonify, request

from ranking import Window, last_ranks, leaderboard, personal_best
from score_history import get_all_player_scores, get_player_names, get_player_scores

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config.setdefault("SCORES_PATH", None)
app.config.setdefault("LEADERBOARD_LIMIT", 1000)


def _scores_path():
    return app.config["SCORES_PATH"]


def _window_by_name(name):
    """Look up a Window by its URL name."""
    for window in Window:
        if window.value == name:
            return window
    return None


def _reference_date():
    """Reference day for windowed boards: ?date=YYYY-MM-DD, else today."""
    raw = request.args.get("date")
    if not raw:
        return date.today()
    try:
        return date.fromisoformat(raw)
    except ValueError:
        abort(400, description=f"Invalid date: {raw}")


def _record_json(record):
    return {"key": record.key, **record.to_dict()}


@app.route("/api/leaderboard/<window_name>")
def leaderboard_view(window_name):
    """Ranked personal bests for one window."""
    window = _window_by_name(window_name)
    if window is None:
        abort(404, description=f"Unknown leaderboard: {window_name}")
    today = _reference_date()
    players = get_all_player_scores(path=_scores_path())
    names = get_player_names(path=_scores_path())
    standings = leaderboard(players, window, today)[:app.config["LEADERBOARD_LIMIT"]]
    logger.debug("Leaderboard %s: %d players", window.value, len(standings))
    return jsonify([
        {
            "rank": s.rank,
            "playerId": s.player_id,
            "name": names.get(s.player_id, s.player_id),
            **_record_json(s.record),
        }
        for s in standings
    ])


@app.route("/api/players/<player_id>/rank")
def rank_view(player_id):
    """Rank in every window; null means unranked."""
    players = get_all_player_scores(path=_scores_path())
    return jsonify(last_ranks(players, player_id, _reference_date()))


@app.route("/api/players/<player_id>/best")
def best_view(player_id):
    """Personal best per window; null when the player has no record there."""
    records = get_player_scores(player_id, path=_scores_path())
    if not records:
        abort(404, description=f"No scores for player {player_id}")
    today = _reference_date()
    result = {}
    for window in Window:
        best = personal_best(records, window, today)
        result[window.value] = _record_json(best) if best is not None else None
    return jsonify(result)


def main(argv=None):
    """Entry point for the web server."""
    import argparse
    parser = argparse.ArgumentParser(description="Yatzy Leaderboard Server")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=5000, help="Port (default: 5000)")
    parser.add_argument("--scores", default=None, help="Score history file")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    args = parser.parse_args(argv)

    app.config["SCORES_PATH"] = args.scores
    print(f"Starting Yatzy leaderboard server at http://{args.host}:{args.port}")
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
