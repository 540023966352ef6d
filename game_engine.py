"""
Yatzy Game Engine - Pure rule logic without any frontend dependencies

This module contains the scoring rules, the per-match category ledger and the
running score aggregation. It uses immutable data structures and pure
functions so the rules can be unit tested without a UI.
"""
from dataclasses import dataclass, replace
from typing import Tuple
from enum import Enum
from collections import Counter
import logging

logger = logging.getLogger(__name__)

NBR_OF_DICES = 5
NBR_OF_THROWS = 3
UNSET = 0

BONUS_POINTS_LIMIT = 63
BONUS_POINTS = 35
YATZY_POINTS = 50
FULL_HOUSE_POINTS = 25
SMALL_STRAIGHT_POINTS = 30
LARGE_STRAIGHT_POINTS = 40

# Time bonus thresholds in seconds
FAST_THRESHOLD = 150
SLOW_THRESHOLD = 300
FAST_BONUS = 10
SLOW_BONUS = -10

SMALL_STRAIGHTS = [{1, 2, 3, 4}, {2, 3, 4, 5}, {3, 4, 5, 6}]
LARGE_STRAIGHTS = [{1, 2, 3, 4, 5}, {2, 3, 4, 5, 6}]


# ── Dice evaluation ──────────────────────────────────────────────────────────

def dice_values(dice):
    """
    Extract rolled face values from a hand.

    Accepts DieState objects or plain ints. Unset (0) and malformed dice are
    dropped, so every scoring function below sees only faces 1-6.

    Args:
        dice: Sequence of DieState objects or ints

    Returns:
        List of ints in 1..6
    """
    values = []
    for die in dice or ():
        value = getattr(die, "value", die)
        if isinstance(value, int) and not isinstance(value, bool) and 1 <= value <= 6:
            values.append(value)
    return values


def count_values(dice):
    """Count occurrences of each rolled face value."""
    return Counter(dice_values(dice))


def face_score(dice, face):
    """Sum of the dice showing `face`."""
    return count_values(dice)[face] * face


def two_of_kind_score(dice):
    """Twice the highest face that appears at least twice, else 0."""
    counts = count_values(dice)
    pairs = [value for value, count in counts.items() if count >= 2]
    return max(pairs) * 2 if pairs else 0


def n_of_kind_score(dice, n):
    """
    Score an N-of-a-kind: face * n for the first face with count >= n.

    Faces are scanned in ascending order. With five dice two faces can never
    both reach a count of three, so the order only matters for n <= 2.

    Args:
        dice: Sequence of DieState objects or ints
        n: Number of matching dice required

    Returns:
        Integer score (0 if no face qualifies)
    """
    counts = count_values(dice)
    for face in range(1, 7):
        if counts[face] >= n:
            return face * n
    return 0


def has_full_house(dice):
    """Check if the rolled dice contain both a triple and a pair."""
    counts = sorted(count_values(dice).values(), reverse=True)
    return 3 in counts and 2 in counts


def has_small_straight(dice):
    """Check if the dice contain 4 consecutive values."""
    values = set(dice_values(dice))
    return any(straight.issubset(values) for straight in SMALL_STRAIGHTS)


def has_large_straight(dice):
    """Check if the dice contain 5 consecutive values."""
    values = set(dice_values(dice))
    return any(straight.issubset(values) for straight in LARGE_STRAIGHTS)


def has_yatzy(dice):
    """Check if all five dice are rolled and show the same face."""
    values = dice_values(dice)
    return len(values) == NBR_OF_DICES and len(set(values)) == 1


def chance_score(dice):
    return sum(dice_values(dice))


def full_house_score(dice):
    return FULL_HOUSE_POINTS if has_full_house(dice) else 0


def small_straight_score(dice):
    return SMALL_STRAIGHT_POINTS if has_small_straight(dice) else 0


def large_straight_score(dice):
    return LARGE_STRAIGHT_POINTS if has_large_straight(dice) else 0


def yatzy_score(dice):
    return YATZY_POINTS if has_yatzy(dice) else 0


def _face(face):
    return lambda dice: face_score(dice, face)


def _of_kind(n):
    return lambda dice: n_of_kind_score(dice, n)


class Category(Enum):
    """Yatzy score categories.

    Each member carries (label, scoring function, maximum points per commit).
    """
    ONES = ("Ones", _face(1), 5)
    TWOS = ("Twos", _face(2), 10)
    THREES = ("Threes", _face(3), 15)
    FOURS = ("Fours", _face(4), 20)
    FIVES = ("Fives", _face(5), 25)
    SIXES = ("Sixes", _face(6), 30)
    TWO_OF_KIND = ("2 of a Kind", two_of_kind_score, 12)
    THREE_OF_KIND = ("3 of a Kind", _of_kind(3), 18)
    FOUR_OF_KIND = ("4 of a Kind", _of_kind(4), 24)
    FULL_HOUSE = ("Full House", full_house_score, FULL_HOUSE_POINTS)
    SMALL_STRAIGHT = ("Small Straight", small_straight_score, SMALL_STRAIGHT_POINTS)
    LARGE_STRAIGHT = ("Large Straight", large_straight_score, LARGE_STRAIGHT_POINTS)
    CHANCE = ("Chance", chance_score, 30)
    YATZY = ("Yatzy", yatzy_score, YATZY_POINTS)

    def __init__(self, label, scorer, max_points):
        self.label = label
        self.scorer = scorer
        self.max_points = max_points

    @property
    def is_minor(self):
        return self in MINOR_CATEGORIES

    @classmethod
    def from_label(cls, label):
        """Look up a category by display label or member name. Returns None if unknown."""
        for category in cls:
            if label in (category.label, category.name):
                return category
        return None


MINOR_CATEGORIES = (
    Category.ONES, Category.TWOS, Category.THREES,
    Category.FOURS, Category.FIVES, Category.SIXES,
)

MAX_MINOR_POINTS = sum(c.max_points for c in MINOR_CATEGORIES)  # 105


def calculate_score(category, dice):
    """
    Calculate the candidate score for a category and hand.

    Works with DieState objects or plain ints; never raises.

    Args:
        category: Category enum value
        dice: Sequence of dice

    Returns:
        Integer score for the category (0 if the hand doesn't qualify)
    """
    try:
        return category.scorer(dice)
    except (TypeError, ValueError, AttributeError):
        logger.debug("Unscorable hand %r for %s", dice, category, exc_info=True)
        return 0


def score_all(dice):
    """Return {Category: candidate score} for every category."""
    return {category: calculate_score(category, dice) for category in Category}


# ── Running totals ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ScoreTotals:
    """Running match score: total, minor subtotal, and the one-time bonus flag."""
    total: int = 0
    minor_subtotal: int = 0
    bonus_applied: bool = False

    def apply(self, points: int, is_minor: bool) -> 'ScoreTotals':
        """Return totals after committing `points`.

        The section bonus is added in the same step that first brings the
        minor subtotal to BONUS_POINTS_LIMIT, and never again.
        """
        total = self.total + points
        minor = self.minor_subtotal + points if is_minor else self.minor_subtotal
        bonus_applied = self.bonus_applied
        if not bonus_applied and minor >= BONUS_POINTS_LIMIT:
            total += BONUS_POINTS
            bonus_applied = True
        return ScoreTotals(total=total, minor_subtotal=minor, bonus_applied=bonus_applied)

    @property
    def section_bonus(self) -> int:
        return BONUS_POINTS if self.bonus_applied else 0


def time_bonus(duration_seconds):
    """Bonus applied to the final score based on match duration."""
    if duration_seconds > SLOW_THRESHOLD:
        return SLOW_BONUS
    if duration_seconds > FAST_THRESHOLD:
        return 0
    return FAST_BONUS


# ── Category ledger ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CategorySlot:
    """State of one scorecard row."""
    category: Category
    locked: bool = False
    points: int = 0
    achieved_once: bool = False  # Yatzy only: committed with 50 at least once

    def to_dict(self):
        data = {"kind": self.category.name, "locked": self.locked, "points": self.points}
        if self.category is Category.YATZY:
            data["achievedOnce"] = self.achieved_once
        return data


def refresh_yatzy_slot(slot: CategorySlot, dice) -> CategorySlot:
    """Apply the Yatzy stacking transition after a completed roll.

    An achieved Yatzy slot re-opens when the new hand is another Yatzy and is
    forced back to locked, at its unchanged value, when it is not.
    """
    if not slot.achieved_once:
        return slot
    if has_yatzy(dice):
        if slot.locked:
            logger.debug("Yatzy slot re-opened for stacking at %d points", slot.points)
        return replace(slot, locked=False)
    if not slot.locked:
        logger.debug("Yatzy slot relocked at %d points", slot.points)
        return replace(slot, locked=True)
    return slot


class Scorecard:
    """Manages the Yatzy scorecard: one slot per category plus running totals"""

    def __init__(self):
        """Initialize an empty scorecard"""
        self.slots = {category: CategorySlot(category) for category in Category}
        self.totals = ScoreTotals()

    def is_locked(self, category):
        """Check if a category is frozen"""
        return self.slots[category].locked

    def points(self, category):
        """Committed points for a category"""
        return self.slots[category].points

    def preview(self, category, dice):
        """Points shown for a row: committed value if locked, live candidate otherwise."""
        slot = self.slots[category]
        if slot.locked:
            return slot.points
        if category is Category.YATZY:
            return slot.points + calculate_score(category, dice)
        return calculate_score(category, dice)

    @property
    def total(self):
        return self.totals.total

    @property
    def minor_subtotal(self):
        return self.totals.minor_subtotal

    @property
    def bonus_applied(self):
        return self.totals.bonus_applied

    def committed_total(self):
        """Sum of slot points plus the section bonus, recomputed from scratch."""
        return sum(slot.points for slot in self.slots.values()) + self.totals.section_bonus

    def is_complete(self):
        """Check if every category has been locked"""
        return all(slot.locked for slot in self.slots.values())

    def copy(self):
        """Create a copy of the scorecard (slots are immutable, so a shallow copy is enough)"""
        new_card = Scorecard()
        new_card.slots = dict(self.slots)
        new_card.totals = self.totals
        return new_card

    def with_slot(self, slot):
        """Return new Scorecard with one slot replaced"""
        new_card = self.copy()
        new_card.slots[slot.category] = slot
        return new_card

    def with_commit(self, category, dice):
        """Return (new Scorecard, points added) for committing `category`.

        Locked slots are returned unchanged with 0 points added.
        """
        slot = self.slots[category]
        if slot.locked:
            return self, 0

        points = calculate_score(category, dice)
        if category is Category.YATZY:
            new_slot = replace(slot, locked=True, points=slot.points + points,
                               achieved_once=slot.achieved_once or points > 0)
        else:
            new_slot = replace(slot, locked=True, points=points)

        new_card = self.with_slot(new_slot)
        new_card.totals = self.totals.apply(points, category.is_minor)
        return new_card, points

    def to_dicts(self):
        return [slot.to_dict() for slot in self.slots.values()]


# ── Dice and match state ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class DieState:
    """Pure representation of a single die's state - immutable"""
    value: int = UNSET  # 1-6, or 0 before the first roll
    held: bool = False

    def roll(self, rng) -> 'DieState':
        """Return new DieState with random value (if not held)"""
        if self.held:
            return self
        return replace(self, value=rng.randint(1, 6))

    def toggle_held(self) -> 'DieState':
        """Return new DieState with held status toggled"""
        return replace(self, held=not self.held)


@dataclass(frozen=True)
class GameState:
    """Immutable match state - complete game state at a point in time"""
    dice: Tuple[DieState, ...]  # 5 dice (tuple for immutability)
    scorecard: Scorecard
    rolls_used: int  # 0-3
    rounds_remaining: int  # counts down from the number of categories
    game_over: bool = False

    @staticmethod
    def create_initial():
        """Create a fresh match: unset dice, empty scorecard"""
        return GameState(
            dice=tuple(DieState() for _ in range(NBR_OF_DICES)),
            scorecard=Scorecard(),
            rolls_used=0,
            rounds_remaining=len(Category),
            game_over=False
        )

    @property
    def values(self):
        return [die.value for die in self.dice]


# Game Action Functions

def roll_dice(state: GameState, rng) -> GameState:
    """
    Roll all unheld dice and increment roll counter.

    After the roll the Yatzy slot goes through its stacking transition.
    If already rolled 3 times or the game is over, returns state unchanged.

    Args:
        state: Current game state
        rng: random.Random-like source of die values

    Returns:
        New GameState with rolled dice
    """
    if state.rolls_used >= NBR_OF_THROWS or state.game_over:
        return state

    new_dice = tuple(die.roll(rng) for die in state.dice)
    scorecard = state.scorecard
    yatzy_slot = scorecard.slots[Category.YATZY]
    refreshed = refresh_yatzy_slot(yatzy_slot, new_dice)
    if refreshed != yatzy_slot:
        scorecard = scorecard.with_slot(refreshed)
    return replace(state,
                   dice=new_dice,
                   scorecard=scorecard,
                   rolls_used=state.rolls_used + 1)


def toggle_die_hold(state: GameState, die_index: int) -> GameState:
    """
    Toggle hold status of a specific die.

    If index is invalid, the game is over, or nothing has been rolled yet,
    returns state unchanged.
    """
    if not (0 <= die_index < NBR_OF_DICES) or state.game_over or state.rolls_used == 0:
        return state

    dice_list = list(state.dice)
    dice_list[die_index] = dice_list[die_index].toggle_held()
    return replace(state, dice=tuple(dice_list))


def consumes_round(category: Category, previous: CategorySlot, points: int) -> bool:
    """Whether a commit uses up a round.

    A Yatzy commit that scores nothing on an already achieved slot (a failed
    stacking attempt) is free; every other commit costs one round.
    """
    return not (category is Category.YATZY and points == 0 and previous.achieved_once)


def select_category(state: GameState, category: Category) -> GameState:
    """
    Lock in the score for a category and advance to the next turn.

    Locked categories, commits before the first roll and commits after game
    over are silent no-ops: the same state is returned.

    Args:
        state: Current game state
        category: Category to score

    Returns:
        New GameState with category scored and turn advanced
    """
    if not can_select_category(state, category):
        return state

    previous = state.scorecard.slots[category]
    new_scorecard, points = state.scorecard.with_commit(category, state.dice)
    rounds = state.rounds_remaining
    if consumes_round(category, previous, points):
        rounds = max(rounds - 1, 0)

    logger.debug("Committed %s for %d points (total %d, rounds left %d)",
                 category.name, points, new_scorecard.total, rounds)

    new_dice = tuple(replace(die, held=False) for die in state.dice)
    return replace(state,
                   dice=new_dice,
                   scorecard=new_scorecard,
                   rolls_used=0,
                   rounds_remaining=rounds,
                   game_over=rounds == 0)


def can_roll(state: GameState) -> bool:
    """Player can roll if the game is not over and throws remain."""
    return not state.game_over and state.rolls_used < NBR_OF_THROWS


def can_select_category(state: GameState, category: Category) -> bool:
    """
    Check if category is available to commit.

    Category is available if the game is not over, the hand has been rolled
    this turn, and the slot is unlocked.
    """
    return (not state.game_over
            and state.rolls_used > 0
            and not state.scorecard.is_locked(category))


def reset_game() -> GameState:
    """Create a fresh game state (equivalent to starting over)."""
    return GameState.create_initial()
