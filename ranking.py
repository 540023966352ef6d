"""Score ranking for Yatzy leaderboards.

One comparator orders finished matches everywhere: personal bests,
the all-time, monthly and weekly leaderboards, and rank lookups.
Pure Python, no I/O.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from functools import cmp_to_key
from typing import Iterable, Mapping

DATE_FORMAT = "%d.%m.%Y"
TIME_FORMATS = ("%H:%M:%S", "%H.%M.%S", "%I:%M:%S %p", "%H:%M")

# Monthly trophy points used for yearly badges: gold, silver, bronze
TROPHY_POINTS = {1: 3, 2: 2, 3: 1}


@dataclass(frozen=True)
class ScoreRecord:
    """A finished match as persisted: points, duration and when it was played."""
    key: str
    points: int
    duration: int                               # seconds
    date: str                                   # "D.M.YYYY"
    time: str = ""                              # local clock time, "HH:MM:SS"

    @property
    def played_on(self) -> date | None:
        """Calendar date, or None when the stored date is unparsable."""
        try:
            return datetime.strptime(self.date.strip().split(" ")[0], DATE_FORMAT).date()
        except (ValueError, AttributeError):
            return None

    @property
    def clock(self) -> time:
        for fmt in TIME_FORMATS:
            try:
                return datetime.strptime(self.time.strip(), fmt).time()
            except (ValueError, AttributeError):
                continue
        return time.min

    @property
    def played_at(self) -> datetime:
        """Combined timestamp; records with no usable date sort last."""
        day = self.played_on
        if day is None:
            return datetime.max
        return datetime.combine(day, self.clock)

    def to_dict(self) -> dict:
        return {
            "points": self.points,
            "duration": self.duration,
            "date": self.date,
            "time": self.time,
        }

    @classmethod
    def from_dict(cls, key: str, data: dict) -> ScoreRecord:
        return cls(
            key=str(data.get("key", key)),
            points=int(data.get("points", 0)),
            duration=int(data.get("duration", 0)),
            date=str(data.get("date", "")),
            time=str(data.get("time", "")),
        )


def compare(a: ScoreRecord, b: ScoreRecord) -> int:
    """Order two records: negative when `a` ranks above `b`.

    Higher points first, then shorter duration, then whichever was played
    earlier.
    """
    if a.points != b.points:
        return -1 if a.points > b.points else 1
    if a.duration != b.duration:
        return -1 if a.duration < b.duration else 1
    if a.played_at != b.played_at:
        return -1 if a.played_at < b.played_at else 1
    return 0


rank_key = cmp_to_key(compare)


def is_better(a: ScoreRecord | None, b: ScoreRecord | None) -> bool:
    """True when `a` strictly outranks `b`. A missing record never wins."""
    if a is None:
        return False
    if b is None:
        return True
    return compare(a, b) < 0


def sort_records(records: Iterable[ScoreRecord]) -> list[ScoreRecord]:
    """Return records best-first."""
    return sorted(records, key=rank_key)


# ── Time windows ─────────────────────────────────────────────────────────────

class Window(Enum):
    """Leaderboard time windows"""
    ALL_TIME = "alltime"
    MONTHLY = "monthly"
    WEEKLY = "weekly"


def in_window(record: ScoreRecord, window: Window, today: date | None = None) -> bool:
    """Check whether a record falls inside `window` relative to `today`.

    Weekly uses the ISO week together with its ISO year so the last days of
    December can belong to week 1 of the next year.
    """
    if window is Window.ALL_TIME:
        return True
    if today is None:
        today = date.today()
    played = record.played_on
    if played is None:
        return False
    if window is Window.MONTHLY:
        return (played.year, played.month) == (today.year, today.month)
    if window is Window.WEEKLY:
        return played.isocalendar()[:2] == today.isocalendar()[:2]
    raise ValueError(f"Unknown window: {window!r}")


def personal_best(records: Iterable[ScoreRecord], window: Window = Window.ALL_TIME,
                  today: date | None = None) -> ScoreRecord | None:
    """Return a player's best record inside the window, or None."""
    best = None
    for record in records:
        if in_window(record, window, today) and is_better(record, best):
            best = record
    return best


# ── Leaderboards ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Standing:
    """One leaderboard row."""
    rank: int                                   # 1-based
    player_id: str
    record: ScoreRecord


def leaderboard(players: Mapping[str, Iterable[ScoreRecord]],
                window: Window = Window.ALL_TIME,
                today: date | None = None) -> list[Standing]:
    """Rank every player by their personal best inside the window.

    Args:
        players: player_id -> that player's records (or just their best).
        window: time window to filter records by.
        today: reference date for monthly/weekly windows (default: today).

    Returns:
        Standings best-first. Players with no record in the window are omitted.
    """
    bests = []
    for player_id, records in players.items():
        best = personal_best(records, window, today)
        if best is not None:
            bests.append((player_id, best))
    bests.sort(key=lambda item: (rank_key(item[1]), item[0]))
    return [Standing(rank=i + 1, player_id=pid, record=rec)
            for i, (pid, rec) in enumerate(bests)]


def find_rank(players: Mapping[str, Iterable[ScoreRecord]], player_id: str,
              window: Window = Window.ALL_TIME, today: date | None = None) -> int | None:
    """1-based rank of a player's best record, or None when unranked."""
    for standing in leaderboard(players, window, today):
        if standing.player_id == player_id:
            return standing.rank
    return None


def last_ranks(players: Mapping[str, Iterable[ScoreRecord]], player_id: str,
               today: date | None = None) -> dict:
    """Rank summary across all three windows, as stored after each save."""
    return {
        "allTime": find_rank(players, player_id, Window.ALL_TIME, today),
        "monthly": find_rank(players, player_id, Window.MONTHLY, today),
        "weekly": find_rank(players, player_id, Window.WEEKLY, today),
    }


def yearly_badges(players: Mapping[str, Iterable[ScoreRecord]], year: int) -> dict[str, int]:
    """Award yearly badges from monthly podium finishes.

    Each month's top three earn 3/2/1 trophy points. Players are then grouped
    by distinct point totals: the highest total earns badge 1 (champion), the
    next badge 2, the third badge 3. Tied totals share a badge.

    Returns:
        player_id -> badge (1, 2 or 3) for badge winners only.
    """
    players = {pid: list(records) for pid, records in players.items()}
    trophy_points: dict[str, int] = {}
    for month in range(1, 13):
        standings = leaderboard(players, Window.MONTHLY, date(year, month, 1))
        for standing in standings[:3]:
            trophy_points[standing.player_id] = (
                trophy_points.get(standing.player_id, 0) + TROPHY_POINTS[standing.rank]
            )

    distinct = sorted(set(trophy_points.values()), reverse=True)[:3]
    return {pid: distinct.index(points) + 1
            for pid, points in trophy_points.items() if points in distinct}
