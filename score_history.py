"""Score history persistence for Yatzy.

Stores finished matches in ~/.yatzy_scores.json, grouped per player and
keyed by an opaque record id. Each player keeps at most MAX_ENTRIES records,
the lowest-ranked being dropped first. No frontend dependency.
"""

import json
import logging
import os
import tempfile
import uuid
from datetime import datetime
from pathlib import Path

from ranking import ScoreRecord, sort_records

logger = logging.getLogger(__name__)

MAX_ENTRIES = 3000


def _default_path():
    """Return the default path for the scores file."""
    return Path.home() / ".yatzy_scores.json"


def _load_data(path=None):
    """Load the scores document. Returns an empty document on missing/corrupt."""
    if path is None:
        path = _default_path()
    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except (FileNotFoundError, json.JSONDecodeError, OSError):
        return {"players": {}}
    if not isinstance(data, dict) or not isinstance(data.get("players"), dict):
        return {"players": {}}
    return data


def _save_data(data, path=None):
    """Atomically write the scores document (temp file + rename)."""
    if path is None:
        path = _default_path()
    path = Path(path)
    raw = json.dumps(data, indent=2).encode()
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    closed = False
    try:
        os.write(fd, raw)
        os.close(fd)
        closed = True
        os.replace(tmp, path)
    except BaseException:
        if not closed:
            os.close(fd)
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def _records_from(player_data):
    scores = player_data.get("scores") if isinstance(player_data, dict) else None
    if not isinstance(scores, dict):
        return []
    records = []
    for key, entry in scores.items():
        if not isinstance(entry, dict):
            continue
        try:
            records.append(ScoreRecord.from_dict(key, entry))
        except (TypeError, ValueError):
            logger.warning("Skipping malformed score entry %s", key)
    return records


def format_date(moment):
    """Format a datetime as D.M.YYYY (no zero padding)."""
    return f"{moment.day}.{moment.month}.{moment.year}"


def make_record(points, duration, now=None):
    """Build a new ScoreRecord stamped with the current local date and time."""
    if now is None:
        now = datetime.now()
    return ScoreRecord(
        key=uuid.uuid4().hex,
        points=int(points),
        duration=int(duration),
        date=format_date(now),
        time=now.strftime("%H:%M:%S"),
    )


def record_score(player_id, points, duration, name=None, path=None, now=None, limit=MAX_ENTRIES):
    """Record a finished match for a player.

    Returns:
        The stored ScoreRecord, or None when it ranked below the best
        `limit` records and was not kept.
    """
    record = make_record(points, duration, now)
    return record if save_record(player_id, record, name=name, path=path, limit=limit) else None


def save_record(player_id, record, name=None, path=None, limit=MAX_ENTRIES):
    """Add an existing ScoreRecord to a player's history.

    Keeps only the best `limit` records for that player. Raises OSError when
    the file cannot be written; callers that must not block gameplay catch it.

    Returns:
        True if the record is among those kept.
    """
    data = _load_data(path)
    players = data["players"]
    player = players.get(player_id)
    if not isinstance(player, dict):
        player = {}
    if name is not None:
        player["name"] = name

    kept = sort_records(_records_from(player) + [record])[:limit]
    player["scores"] = {r.key: r.to_dict() for r in kept}
    players[player_id] = player
    _save_data(data, path)
    return record in kept


def get_player_scores(player_id, path=None):
    """Return one player's records, best first."""
    data = _load_data(path)
    return sort_records(_records_from(data["players"].get(player_id, {})))


def get_all_player_scores(path=None):
    """Return {player_id: [ScoreRecord, ...]} for every stored player."""
    data = _load_data(path)
    return {pid: _records_from(player) for pid, player in data["players"].items()}


def get_player_names(path=None):
    """Return {player_id: display name}; players without a name map to their id."""
    data = _load_data(path)
    names = {}
    for pid, player in data["players"].items():
        name = player.get("name") if isinstance(player, dict) else None
        names[pid] = name or pid
    return names
