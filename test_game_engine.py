"""
Yatzy Rules Test Suite

The rules of the engine, each with positive and negative cases.

Sections:
    1. Dice — values, sentinel, immutability, rolling, holding
    2. Scoring Rules — every category's formula
    3. Running Totals — section bonus, time bonus
    4. Committing — when allowed, locking, rounds, no-op rejections
    5. Yatzy Stacking — re-open, relock, round exception
    6. Game Flow — full match, randomized invariants
"""
import pytest
import random
from dataclasses import replace

from game_engine import (
    DieState, GameState, Category, Scorecard, CategorySlot, ScoreTotals,
    MINOR_CATEGORIES, MAX_MINOR_POINTS,
    roll_dice, toggle_die_hold, select_category,
    can_roll, can_select_category, reset_game,
    calculate_score, score_all, dice_values, time_bonus,
    has_yatzy, has_full_house, has_small_straight, has_large_straight,
    n_of_kind_score, refresh_yatzy_slot,
)


# ── Helpers ──────────────────────────────────────────────────────────────────

def make_dice(*values):
    """Create a tuple of DieState from integer values."""
    return tuple(DieState(value=v) for v in values)


def state_with_dice(*values, rolls_used=1, state=None):
    """Put specific dice on the table with rolls_used > 0 so scoring is legal."""
    if state is None:
        state = GameState.create_initial()
    return replace(state, dice=make_dice(*values), rolls_used=rolls_used)


def commit(state, category, *values):
    """Set the dice and commit a category in one step."""
    return select_category(state_with_dice(*values, state=state), category)


class FixedRng:
    """Stands in for random.Random, handing out queued die values."""

    def __init__(self, *values):
        self.values = list(values)

    def randint(self, low, high):
        return self.values.pop(0)


# ═══════════════════════════════════════════════════════════════════════════════
# 1. DICE
# ═══════════════════════════════════════════════════════════════════════════════

class TestDice:

    def test_new_die_is_unset(self):
        die = DieState()
        assert die.value == 0
        assert die.held is False

    def test_die_is_immutable(self):
        die = DieState(value=3)
        with pytest.raises((AttributeError, Exception)):
            die.value = 6

    def test_rolling_unheld_die_produces_value_1_through_6(self):
        rng = random.Random(1)
        seen = {DieState().roll(rng).value for _ in range(200)}
        assert seen == {1, 2, 3, 4, 5, 6}

    def test_rolling_held_die_preserves_value(self):
        die = DieState(value=5, held=True)
        assert die.roll(FixedRng(1)) is die

    def test_toggle_held_returns_new_instance(self):
        die = DieState(value=4)
        assert die.toggle_held().held is True
        assert die.held is False

    def test_initial_state_has_five_unset_dice(self):
        state = GameState.create_initial()
        assert state.values == [0, 0, 0, 0, 0]
        assert state.rolls_used == 0
        assert state.rounds_remaining == len(Category) == 14
        assert state.game_over is False

    def test_roll_increments_counter_and_rolls_unheld(self):
        state = roll_dice(GameState.create_initial(), FixedRng(1, 2, 3, 4, 5))
        assert state.values == [1, 2, 3, 4, 5]
        assert state.rolls_used == 1

    def test_held_dice_survive_reroll(self):
        state = state_with_dice(6, 6, 1, 2, 3)
        state = toggle_die_hold(toggle_die_hold(state, 0), 1)
        state = roll_dice(state, FixedRng(4, 4, 4))
        assert state.values == [6, 6, 4, 4, 4]

    def test_cannot_roll_more_than_three_times(self):
        state = state_with_dice(1, 2, 3, 4, 5, rolls_used=3)
        assert can_roll(state) is False
        assert roll_dice(state, FixedRng(6, 6, 6, 6, 6)) is state

    def test_cannot_hold_before_first_roll(self):
        state = GameState.create_initial()
        assert toggle_die_hold(state, 0) is state

    def test_hold_ignores_bad_index(self):
        state = state_with_dice(1, 2, 3, 4, 5)
        assert toggle_die_hold(state, 5) is state
        assert toggle_die_hold(state, -1) is state


# ═══════════════════════════════════════════════════════════════════════════════
# 2. SCORING RULES
# ═══════════════════════════════════════════════════════════════════════════════

class TestScoringRules:

    @pytest.mark.parametrize("face,category", list(zip(range(1, 7), MINOR_CATEGORIES)))
    def test_minor_faces_sum_matching_dice(self, face, category):
        dice = make_dice(face, face, face, 1 if face != 1 else 2, 6 if face != 6 else 5)
        assert calculate_score(category, dice) == 3 * face

    def test_minor_face_never_exceeds_five_times_face(self):
        rng = random.Random(42)
        for _ in range(500):
            dice = [rng.randint(1, 6) for _ in range(5)]
            for face, category in zip(range(1, 7), MINOR_CATEGORIES):
                assert calculate_score(category, dice) <= 5 * face

    def test_two_of_kind_takes_highest_pair(self):
        assert calculate_score(Category.TWO_OF_KIND, [2, 2, 5, 5, 1]) == 10
        assert calculate_score(Category.TWO_OF_KIND, [6, 6, 6, 1, 1]) == 12

    def test_two_of_kind_zero_without_pair(self):
        assert calculate_score(Category.TWO_OF_KIND, [1, 2, 3, 4, 6]) == 0

    def test_three_of_kind_counts_only_the_triple(self):
        assert calculate_score(Category.THREE_OF_KIND, [4, 4, 4, 6, 6]) == 12

    def test_four_of_kind_counts_only_the_quad(self):
        assert calculate_score(Category.FOUR_OF_KIND, [2, 2, 2, 2, 6]) == 8
        assert calculate_score(Category.FOUR_OF_KIND, [2, 2, 2, 6, 6]) == 0

    def test_five_of_a_kind_satisfies_three_and_four(self):
        dice = [5, 5, 5, 5, 5]
        assert calculate_score(Category.THREE_OF_KIND, dice) == 15
        assert calculate_score(Category.FOUR_OF_KIND, dice) == 20

    def test_n_of_kind_scans_ascending(self):
        assert n_of_kind_score([6, 6, 1, 1, 3], 2) == 2

    def test_full_house(self):
        assert has_full_house([3, 3, 3, 5, 5]) is True
        assert calculate_score(Category.FULL_HOUSE, [3, 3, 3, 5, 5]) == 25

    def test_full_house_rejects_five_of_a_kind(self):
        assert calculate_score(Category.FULL_HOUSE, [2, 2, 2, 2, 2]) == 0

    def test_small_straight_accepts_extra_die(self):
        assert has_small_straight([1, 2, 3, 4, 4]) is True
        assert has_small_straight([6, 3, 5, 4, 1]) is True
        assert calculate_score(Category.SMALL_STRAIGHT, [2, 3, 4, 5, 2]) == 30

    def test_small_straight_rejects_gap(self):
        assert calculate_score(Category.SMALL_STRAIGHT, [1, 2, 3, 5, 6]) == 0

    def test_large_straight(self):
        assert has_large_straight([5, 4, 3, 2, 1]) is True
        assert calculate_score(Category.LARGE_STRAIGHT, [2, 3, 4, 5, 6]) == 40
        assert calculate_score(Category.LARGE_STRAIGHT, [1, 2, 3, 4, 6]) == 0

    def test_chance_sums_dice(self):
        assert calculate_score(Category.CHANCE, [1, 2, 3, 4, 6]) == 16

    def test_yatzy(self):
        assert has_yatzy([4, 4, 4, 4, 4]) is True
        assert calculate_score(Category.YATZY, [4, 4, 4, 4, 4]) == 50
        assert calculate_score(Category.YATZY, [4, 4, 4, 4, 3]) == 0

    def test_all_sixes_scenario(self):
        scores = score_all(make_dice(6, 6, 6, 6, 6))
        assert scores[Category.SIXES] == 30
        assert scores[Category.YATZY] == 50
        assert scores[Category.CHANCE] == 30
        assert scores[Category.FULL_HOUSE] == 0

    def test_unset_dice_are_excluded(self):
        dice = make_dice(0, 0, 0, 2, 2)
        assert dice_values(dice) == [2, 2]
        assert calculate_score(Category.CHANCE, dice) == 4
        assert calculate_score(Category.FULL_HOUSE, dice) == 0
        assert calculate_score(Category.YATZY, make_dice(0, 0, 0, 0, 0)) == 0

    def test_malformed_hands_score_zero(self):
        assert calculate_score(Category.CHANCE, None) == 0
        assert calculate_score(Category.SIXES, ["6", 7, -1, None, True]) == 0
        assert calculate_score(Category.YATZY, [3, 3, 3]) == 0

    def test_scoring_is_pure(self):
        dice = make_dice(3, 3, 4, 5, 6)
        assert score_all(dice) == score_all(dice)
        assert [d.value for d in dice] == [3, 3, 4, 5, 6]

    def test_every_category_stays_within_its_maximum(self):
        rng = random.Random(7)
        for _ in range(1000):
            dice = [rng.randint(1, 6) for _ in range(5)]
            for category, points in score_all(dice).items():
                assert 0 <= points <= category.max_points

    def test_category_lookup_by_label(self):
        assert Category.from_label("Full House") is Category.FULL_HOUSE
        assert Category.from_label("YATZY") is Category.YATZY
        assert Category.from_label("Nope") is None


# ═══════════════════════════════════════════════════════════════════════════════
# 3. RUNNING TOTALS
# ═══════════════════════════════════════════════════════════════════════════════

class TestTotals:

    def test_major_points_do_not_touch_minor_subtotal(self):
        totals = ScoreTotals().apply(25, is_minor=False)
        assert totals == ScoreTotals(total=25, minor_subtotal=0, bonus_applied=False)

    def test_bonus_added_in_the_crossing_step(self):
        totals = ScoreTotals(total=100, minor_subtotal=60).apply(6, is_minor=True)
        assert totals.minor_subtotal == 66
        assert totals.total == 141
        assert totals.bonus_applied is True

    def test_bonus_applied_only_once(self):
        totals = ScoreTotals(total=100, minor_subtotal=70, bonus_applied=True)
        assert totals.apply(10, is_minor=True).total == 110

    def test_bonus_not_applied_below_threshold(self):
        totals = ScoreTotals(minor_subtotal=50).apply(12, is_minor=True)
        assert totals.bonus_applied is False

    @pytest.mark.parametrize("duration,bonus", [
        (0, 10), (150, 10), (151, 0), (300, 0), (301, -10), (1000, -10),
    ])
    def test_time_bonus(self, duration, bonus):
        assert time_bonus(duration) == bonus


# ═══════════════════════════════════════════════════════════════════════════════
# 4. COMMITTING
# ═══════════════════════════════════════════════════════════════════════════════

class TestCommit:

    def test_commit_locks_slot_with_points(self):
        state = commit(GameState.create_initial(), Category.CHANCE, 1, 2, 3, 4, 6)
        slot = state.scorecard.slots[Category.CHANCE]
        assert slot.locked is True
        assert slot.points == 16
        assert state.scorecard.total == 16

    def test_commit_advances_turn(self):
        state = toggle_die_hold(state_with_dice(1, 2, 3, 4, 6, rolls_used=2), 0)
        state = select_category(state, Category.CHANCE)
        assert state.rolls_used == 0
        assert state.rounds_remaining == 13
        assert all(not d.held for d in state.dice)

    def test_commit_before_rolling_is_noop(self):
        state = GameState.create_initial()
        assert can_select_category(state, Category.CHANCE) is False
        assert select_category(state, Category.CHANCE) is state

    def test_commit_on_locked_slot_is_noop(self):
        state = commit(GameState.create_initial(), Category.CHANCE, 6, 6, 6, 6, 5)
        again = state_with_dice(1, 1, 1, 1, 2, state=state)
        assert select_category(again, Category.CHANCE) is again
        assert again.scorecard.total == 29

    def test_zero_commit_still_locks_and_consumes_round(self):
        state = commit(GameState.create_initial(), Category.LARGE_STRAIGHT, 1, 1, 2, 2, 3)
        assert state.scorecard.slots[Category.LARGE_STRAIGHT].locked is True
        assert state.scorecard.points(Category.LARGE_STRAIGHT) == 0
        assert state.rounds_remaining == 13

    def test_preview_is_live_until_locked(self):
        state = state_with_dice(5, 5, 5, 2, 2)
        card = state.scorecard
        assert card.preview(Category.FIVES, state.dice) == 15
        state = select_category(state, Category.FIVES)
        assert state.scorecard.preview(Category.FIVES, make_dice(1, 1, 1, 1, 1)) == 15

    def test_minor_bonus_crossing_scenario(self):
        state = GameState.create_initial()
        state = commit(state, Category.ONES, 1, 1, 1, 1, 2)
        state = commit(state, Category.TWOS, 2, 2, 2, 2, 3)
        state = commit(state, Category.THREES, 3, 3, 3, 3, 4)
        state = commit(state, Category.FOURS, 4, 4, 4, 4, 5)
        state = commit(state, Category.FIVES, 5, 5, 5, 5, 6)
        assert state.scorecard.minor_subtotal == 60
        before = state.scorecard.total

        state = commit(state, Category.SIXES, 6, 1, 2, 3, 4)
        assert state.scorecard.minor_subtotal == 66
        assert state.scorecard.bonus_applied is True
        assert state.scorecard.total - before == 6 + 35

    def test_slot_schema(self):
        state = commit(GameState.create_initial(), Category.YATZY, 2, 2, 2, 2, 2)
        assert state.scorecard.slots[Category.YATZY].to_dict() == {
            "kind": "YATZY", "locked": True, "points": 50, "achievedOnce": True,
        }
        assert CategorySlot(Category.ONES).to_dict() == {
            "kind": "ONES", "locked": False, "points": 0,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# 5. YATZY STACKING
# ═══════════════════════════════════════════════════════════════════════════════

class TestYatzyStacking:

    def achieved(self):
        return commit(GameState.create_initial(), Category.YATZY, 6, 6, 6, 6, 6)

    def test_first_yatzy_locks_and_marks_achieved(self):
        state = self.achieved()
        slot = state.scorecard.slots[Category.YATZY]
        assert (slot.locked, slot.points, slot.achieved_once) == (True, 50, True)
        assert state.rounds_remaining == 13

    def test_second_yatzy_roll_reopens_slot(self):
        state = roll_dice(self.achieved(), FixedRng(3, 3, 3, 3, 3))
        assert state.scorecard.is_locked(Category.YATZY) is False
        assert state.scorecard.preview(Category.YATZY, state.dice) == 100

    def test_stacking_commit_adds_fifty_and_consumes_round(self):
        state = roll_dice(self.achieved(), FixedRng(3, 3, 3, 3, 3))
        state = select_category(state, Category.YATZY)
        slot = state.scorecard.slots[Category.YATZY]
        assert slot.points == 100
        assert slot.locked is True
        assert state.scorecard.total == 100
        assert state.rounds_remaining == 12

    def test_non_yatzy_roll_relocks_without_change(self):
        state = roll_dice(self.achieved(), FixedRng(3, 3, 3, 3, 3))
        state = toggle_die_hold(state, 0)
        state = roll_dice(state, FixedRng(1, 2, 4, 5))
        slot = state.scorecard.slots[Category.YATZY]
        assert slot.locked is True
        assert slot.points == 50
        assert state.rounds_remaining == 13

    def test_failed_stacking_commit_is_free(self):
        state = self.achieved()
        reopened = CategorySlot(Category.YATZY, locked=False, points=50, achieved_once=True)
        state = replace(state, scorecard=state.scorecard.with_slot(reopened))
        state = commit(state, Category.YATZY, 1, 2, 3, 4, 4)
        slot = state.scorecard.slots[Category.YATZY]
        assert (slot.locked, slot.points) == (True, 50)
        assert state.rounds_remaining == 13

    def test_scratched_yatzy_consumes_round_and_never_reopens(self):
        state = commit(GameState.create_initial(), Category.YATZY, 1, 2, 3, 4, 4)
        assert state.rounds_remaining == 13
        assert state.scorecard.slots[Category.YATZY].achieved_once is False
        state = roll_dice(state, FixedRng(5, 5, 5, 5, 5))
        assert state.scorecard.is_locked(Category.YATZY) is True

    def test_transition_function_leaves_unachieved_slot_alone(self):
        slot = CategorySlot(Category.YATZY)
        assert refresh_yatzy_slot(slot, make_dice(2, 2, 2, 2, 2)) is slot


# ═══════════════════════════════════════════════════════════════════════════════
# 6. GAME FLOW
# ═══════════════════════════════════════════════════════════════════════════════

def play_logged_game(seed):
    """Play a random match on the engine, returning (final state, commit log)."""
    rng = random.Random(seed)
    state = GameState.create_initial()
    log = []
    while not state.game_over:
        state = roll_dice(state, rng)
        while can_roll(state) and rng.random() < 0.5:
            state = roll_dice(state, rng)
        open_cats = [c for c in Category if can_select_category(state, c)]
        category = rng.choice(open_cats)
        before = state
        state = select_category(state, category)
        log.append((category, before, state))
    return state, log


class TestGameFlow:

    def test_fourteen_commits_end_the_game(self):
        state = GameState.create_initial()
        for category in Category:
            state = commit(state, category, 1, 2, 3, 4, 6)
        assert state.game_over is True
        assert state.rounds_remaining == 0
        assert state.scorecard.is_complete()
        assert can_roll(state) is False

    def test_reset_game_returns_fresh_state(self):
        state = reset_game()
        assert state.scorecard.total == 0
        assert state.rounds_remaining == 14

    def test_random_matches_respect_category_bounds(self):
        for seed in range(300):
            state, _ = play_logged_game(seed)
            card = state.scorecard
            assert card.minor_subtotal <= MAX_MINOR_POINTS == 105
            assert card.minor_subtotal == sum(card.points(c) for c in MINOR_CATEGORIES)
            for category, slot in card.slots.items():
                if category is Category.YATZY:
                    assert slot.points % 50 == 0
                else:
                    assert slot.points <= category.max_points
            assert card.total == card.committed_total()

    def test_only_yatzy_locks_twice_and_only_on_fifty(self):
        for seed in range(300):
            _, log = play_logged_game(seed)
            committed = [c for c, _, _ in log if c is not Category.YATZY]
            assert len(committed) == len(set(committed))
            for category, before, after in log:
                if category is Category.YATZY and before.scorecard.slots[category].achieved_once:
                    assert has_yatzy(before.dice)
                    assert after.scorecard.total - before.scorecard.total >= 50

    def test_bonus_flips_once_at_the_crossing(self):
        for seed in range(300):
            _, log = play_logged_game(seed)
            flips = [(c, b, a) for c, b, a in log
                     if a.scorecard.bonus_applied and not b.scorecard.bonus_applied]
            assert len(flips) <= 1
            for category, before, after in flips:
                assert before.scorecard.minor_subtotal < 63 <= after.scorecard.minor_subtotal
                points = after.scorecard.points(category) - before.scorecard.points(category)
                assert after.scorecard.total - before.scorecard.total == points + 35
