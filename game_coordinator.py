"""
GameCoordinator — Match coordination without any frontend dependency.

Owns the match state, the elapsed-time clock and the per-match consistency
monitor. A frontend reads coordinator properties to decide what to render and
calls the action methods in response to user input.
"""
from __future__ import annotations

import logging
import random
import time

from consistency import ConsistencyMonitor
from error_tracking import AnomalySink, make_sink
from game_engine import (
    NBR_OF_DICES,
    Category,
    DieState,
    GameState,
    Scorecard,
    calculate_score,
    can_roll,
    can_select_category,
    time_bonus,
)
from game_engine import (
    reset_game as engine_reset_game,
)
from game_engine import (
    roll_dice as engine_roll_dice,
)
from game_engine import (
    select_category as engine_select_category,
)
from game_engine import (
    toggle_die_hold as engine_toggle_die,
)
from ranking import ScoreRecord
from score_history import MAX_ENTRIES, make_record, save_record
from settings import load_settings

logger = logging.getLogger(__name__)


class GameCoordinator:
    """Coordinates one player's match: actions, timing, validation and saving."""

    def __init__(self, player_id: str = "local", name: str | None = None,
                 sink: AnomalySink | None = None, clock=time.monotonic,
                 rng: random.Random | None = None, scores_path=None,
                 max_scores: int = MAX_ENTRIES) -> None:
        """Initialize the coordinator.

        Args:
            player_id: Opaque id the finished records are stored under.
            name: Display name saved alongside the records.
            sink: Where anomaly reports go (defaults to the log).
            clock: Monotonic seconds source, shared with the monitor.
            rng: Random source for dice (seed it for reproducible matches).
            scores_path: Score history file (None uses the default location).
            max_scores: Records retained per player.
        """
        self.player_id = player_id
        self.name = name
        self.clock = clock
        self.rng = rng if rng is not None else random.Random()
        self.scores_path = scores_path
        self.max_scores = max_scores
        self.monitor = ConsistencyMonitor(sink=sink, player_id=player_id, clock=clock)
        self.state = GameState.create_initial()
        self.started_at: float | None = None
        self.finished_at: float | None = None
        self.last_record: ScoreRecord | None = None
        self.last_saved = False

        # Last category committed, for a frontend to highlight
        self.last_scored_category = None

    @classmethod
    def from_settings(cls, settings: dict | None = None, **kwargs) -> GameCoordinator:
        """Build a coordinator from saved settings (see settings.py)."""
        if settings is None:
            settings = load_settings()
        kwargs.setdefault("sink", make_sink(settings))
        return cls(player_id=settings["player_id"], name=settings["player_name"],
                   max_scores=settings["max_scores"], **kwargs)

    # ── Properties ────────────────────────────────────────────────────────

    @property
    def dice(self) -> tuple[DieState, ...]:
        return self.state.dice

    @property
    def rolls_used(self) -> int:
        return self.state.rolls_used

    @property
    def rounds_remaining(self) -> int:
        return self.state.rounds_remaining

    @property
    def game_over(self) -> bool:
        return self.state.game_over

    @property
    def scorecard(self) -> Scorecard:
        return self.state.scorecard

    @property
    def total(self) -> int:
        return self.state.scorecard.total

    @property
    def can_roll_now(self) -> bool:
        return can_roll(self.state)

    @property
    def elapsed_seconds(self) -> int:
        """Whole seconds since the first roll, frozen once the match ends."""
        if self.started_at is None:
            return 0
        end = self.finished_at if self.finished_at is not None else self.clock()
        return int(end - self.started_at)

    # ── Actions ───────────────────────────────────────────────────────────

    def roll_dice(self) -> bool:
        """Roll unheld dice. The first roll of a match starts the clock."""
        if not can_roll(self.state):
            return False
        if self.started_at is None:
            self.started_at = self.clock()
        self.state = engine_roll_dice(self.state, self.rng)
        return True

    def toggle_hold(self, die_index: int) -> None:
        self.state = engine_toggle_die(self.state, die_index)

    def select_category(self, category: Category) -> bool:
        """Commit a category. Returns True if the commit was applied.

        Once the match has started, every request is tracked by the monitor,
        including ones the ledger rejects, so a double tap is reported even
        though it scores only once.
        """
        if self.started_at is None:
            return False

        applied = can_select_category(self.state, category)
        total_before = self.total
        points = calculate_score(category, self.state.dice) if applied else 0
        if applied:
            self.state = engine_select_category(self.state, category)
            self.last_scored_category = category
            if self.state.game_over:
                self.finished_at = self.clock()

        self.monitor.track_operation(category, points, total_before, self.total)
        if applied:
            self.monitor.validate_scorecard(self.state.scorecard)
        return applied

    def finish_game(self) -> ScoreRecord | None:
        """Produce the final record once the match is over.

        The final score is the running total plus the time bonus. Saving is
        best-effort: the record is returned whether or not it reached the
        history, and `last_saved` tells which. Returns None while the match
        is still in progress.
        """
        if not self.state.game_over:
            return None
        if self.last_record is not None:
            return self.last_record

        self.monitor.validate_scorecard(self.state.scorecard)
        duration = self.elapsed_seconds
        record = make_record(self.total + time_bonus(duration), duration)
        try:
            self.last_saved = save_record(self.player_id, record, name=self.name,
                                          path=self.scores_path, limit=self.max_scores)
        except OSError:
            logger.warning("Could not save score for %s", self.player_id, exc_info=True)
            self.last_saved = False
        if not self.last_saved:
            logger.info("Score %d for %s is not in the kept history", record.points, self.player_id)
        self.last_record = record
        return record

    def close(self) -> None:
        """Shut down the anomaly sink. Call once the coordinator is done with."""
        self.monitor.sink.close()

    def reset_game(self) -> None:
        """Discard the current match and start a fresh one."""
        self.state = engine_reset_game()
        self.monitor.clear()
        self.started_at = None
        self.finished_at = None
        self.last_record = None
        self.last_saved = False
        self.last_scored_category = None


def play_random_game(coordinator: GameCoordinator) -> GameState:
    """Play the coordinator's match to the end with random choices.

    Each turn rolls, re-rolls a random number of times with random holds,
    then commits a random open category. Baseline for the simulate command
    and the randomized rule tests.
    """
    rng = coordinator.rng
    while not coordinator.game_over:
        coordinator.roll_dice()
        while coordinator.can_roll_now and rng.random() < 0.5:
            for i in range(NBR_OF_DICES):
                if rng.random() < 0.5:
                    coordinator.toggle_hold(i)
            coordinator.roll_dice()
        available = [c for c in Category if can_select_category(coordinator.state, c)]
        coordinator.select_category(rng.choice(available))
    return coordinator.state
