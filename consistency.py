"""Score consistency monitoring for Yatzy.

Recomputes what the running total should be and reports anomalies, and keeps
a short history of commit operations to catch a category being applied twice
in quick succession (a double tap racing the locked state). Anomalies are
reported, never corrected: the game always continues with its own values.
"""
from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Callable, Iterable, Mapping

from error_tracking import CRITICAL, AnomalySink, LoggingSink
from game_engine import BONUS_POINTS, BONUS_POINTS_LIMIT, Category

logger = logging.getLogger(__name__)

HISTORY_SIZE = 20
DUPLICATE_WINDOW = 0.5                          # seconds
UNREALISTIC_BASIC_POINTS = 500
DUPLICATE_POINTS_THRESHOLD = 20

SCORE_ANOMALY = "SCORE_ANOMALY"


class AnomalyType(Enum):
    TOTAL_MISMATCH = "TOTAL_MISMATCH"
    UNREALISTIC_BASIC_POINTS = "UNREALISTIC_BASIC_POINTS"
    INVALID_SECTION_BONUS = "INVALID_SECTION_BONUS"
    NEGATIVE_POINTS = "NEGATIVE_POINTS"
    SUSPICIOUS_DUPLICATE_POINTS = "SUSPICIOUS_DUPLICATE_POINTS"
    DUPLICATE_POINT_OPERATION = "DUPLICATE_POINT_OPERATION"


@dataclass(frozen=True)
class Anomaly:
    type: AnomalyType
    details: dict

    def to_dict(self) -> dict:
        return {"type": self.type.value, **self.details}


@dataclass(frozen=True)
class PointOperation:
    """One commit request as seen by the monitor."""
    timestamp: float
    category: str
    points: int
    total_before: int
    total_after: int

    @property
    def diff(self) -> int:
        return self.total_after - self.total_before


def _slot_dict(slot) -> dict:
    """Slot as a dict in the rendering schema; raises on anything else."""
    if isinstance(slot, Mapping):
        if not isinstance(slot["points"], int):
            raise TypeError(f"Slot points must be an int: {slot!r}")
        return dict(slot)
    return slot.to_dict()


def find_anomalies(total: int, minor_subtotal: int, bonus_applied: bool,
                   slots: Iterable) -> list[Anomaly]:
    """Check a scorecard snapshot. Pure; returns every anomaly found.

    Args:
        total: running total as displayed
        minor_subtotal: running minor-section subtotal
        bonus_applied: whether the section bonus has been added
        slots: CategorySlot objects, or slot dicts shaped like
            CategorySlot.to_dict() ({"kind", "locked", "points", ...})
    """
    slots = [_slot_dict(slot) for slot in slots]
    section_bonus = BONUS_POINTS if bonus_applied else 0
    expected = sum(slot["points"] for slot in slots) + section_bonus
    anomalies = []

    if total != expected:
        anomalies.append(Anomaly(AnomalyType.TOTAL_MISMATCH, {
            "expected": expected, "actual": total, "difference": total - expected,
        }))

    basic_points = total - section_bonus
    if basic_points > UNREALISTIC_BASIC_POINTS:
        anomalies.append(Anomaly(AnomalyType.UNREALISTIC_BASIC_POINTS, {
            "basicPoints": basic_points, "threshold": UNREALISTIC_BASIC_POINTS,
        }))

    if bonus_applied and minor_subtotal < BONUS_POINTS_LIMIT:
        anomalies.append(Anomaly(AnomalyType.INVALID_SECTION_BONUS, {
            "minorPoints": minor_subtotal, "threshold": BONUS_POINTS_LIMIT,
        }))

    if total < 0 or minor_subtotal < 0:
        anomalies.append(Anomaly(AnomalyType.NEGATIVE_POINTS, {
            "totalPoints": total, "minorPoints": minor_subtotal,
        }))

    seen = set()
    duplicates = []
    for slot in slots:
        points = slot["points"]
        if slot["kind"] == Category.YATZY.name or points <= DUPLICATE_POINTS_THRESHOLD:
            continue
        if points in seen:
            duplicates.append(points)
        seen.add(points)
    if duplicates:
        anomalies.append(Anomaly(AnomalyType.SUSPICIOUS_DUPLICATE_POINTS, {
            "duplicateValues": duplicates,
        }))

    return anomalies


class ConsistencyMonitor:
    """Per-match anomaly detector.

    Owns the operation history, so each match gets its own monitor.
    """

    def __init__(self, sink: AnomalySink | None = None, player_id: str | None = None,
                 clock: Callable[[], float] = time.monotonic,
                 history_size: int = HISTORY_SIZE, window: float = DUPLICATE_WINDOW) -> None:
        self.sink = sink if sink is not None else LoggingSink()
        self.player_id = player_id
        self.clock = clock
        self.window = window
        self.history: deque[PointOperation] = deque(maxlen=history_size)

    def validate(self, total: int, minor_subtotal: int, bonus_applied: bool,
                 slots: Iterable) -> list[Anomaly]:
        """Check a snapshot and report any anomalies as one SCORE_ANOMALY.

        Returns the anomalies found (empty when consistent). Never raises.
        """
        try:
            slots = [_slot_dict(slot) for slot in slots]
            anomalies = find_anomalies(total, minor_subtotal, bonus_applied, slots)
        except Exception:
            logger.error("Score validation failed", exc_info=True)
            return []

        if anomalies:
            self._report(SCORE_ANOMALY,
                         f"Score validation failed with {len(anomalies)} anomalie(s)", {
                             "totalPoints": total,
                             "minorPoints": minor_subtotal,
                             "hasAppliedBonus": bonus_applied,
                             "anomalies": [a.to_dict() for a in anomalies],
                             "categories": slots,
                         })
        return anomalies

    def validate_scorecard(self, scorecard) -> list[Anomaly]:
        """Validate a game_engine.Scorecard."""
        return self.validate(scorecard.total, scorecard.minor_subtotal,
                             scorecard.bonus_applied, scorecard.to_dicts())

    def track_operation(self, category, points: int, total_before: int,
                        total_after: int) -> Anomaly | None:
        """Record a commit request and flag a repeat of the same category.

        Returns the DUPLICATE_POINT_OPERATION anomaly raised by this call, if any.
        """
        name = category.name if isinstance(category, Category) else str(category)
        now = self.clock()
        operation = PointOperation(now, name, points, total_before, total_after)
        self.history.append(operation)

        recent = [op for op in self.history
                  if op.category == name and now - op.timestamp < self.window]
        if len(recent) <= 1:
            return None

        anomaly = Anomaly(AnomalyType.DUPLICATE_POINT_OPERATION, {
            "categoryName": name, "operationCount": len(recent),
        })
        self._report(AnomalyType.DUPLICATE_POINT_OPERATION.value,
                     f'Category "{name}" scored {len(recent)} times within '
                     f'{int(self.window * 1000)}ms', {
                         "categoryName": name,
                         "operationCount": len(recent),
                         "operations": [asdict(op) for op in recent],
                         "fullHistory": [asdict(op) for op in self.history],
                     })
        return anomaly

    def clear(self) -> None:
        """Forget the operation history (call when a match resets)."""
        self.history.clear()

    def _report(self, bug_type: str, description: str, context: dict) -> None:
        if self.player_id is not None:
            context = {**context, "playerId": self.player_id}
        try:
            self.sink.log(bug_type, CRITICAL, description, context)
        except Exception:
            logger.warning("Anomaly sink rejected %s", bug_type, exc_info=True)
