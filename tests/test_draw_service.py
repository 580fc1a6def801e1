import random
import unittest
from collections import Counter

from core.exceptions import InvalidOdds, ValidationError
from services.draw_service import (
    ALL_DOORS,
    MEAT_DOORS,
    PIZZA,
    SALAD,
    VEGETABLE_DOORS,
    Odds,
    draw_outcome,
    is_valid_outcome,
    make_odds,
)
from support import ScriptedRandom


class DoorLayoutTests(unittest.TestCase):
    def test_eight_doors_split_into_two_groups_of_four(self):
        self.assertEqual(len(VEGETABLE_DOORS), 4)
        self.assertEqual(len(MEAT_DOORS), 4)
        self.assertEqual(set(ALL_DOORS), set(VEGETABLE_DOORS) | set(MEAT_DOORS))
        self.assertFalse(set(VEGETABLE_DOORS) & set(MEAT_DOORS))


class OddsTests(unittest.TestCase):
    def test_defaults(self):
        odds = make_odds()
        self.assertEqual(odds.salad_probability, 0.05)
        self.assertEqual(odds.pizza_probability, 0.05)

    def test_unset_field_falls_back_to_default(self):
        odds = make_odds(salad_probability=0.2, default_pizza=0.1)
        self.assertEqual(odds.salad_probability, 0.2)
        self.assertEqual(odds.pizza_probability, 0.1)

    def test_zero_is_not_treated_as_unset(self):
        odds = make_odds(0, 0)
        self.assertEqual(odds.salad_probability, 0)
        self.assertEqual(odds.pizza_probability, 0)

    def test_out_of_range_rejected(self):
        with self.assertRaises(InvalidOdds):
            Odds(salad_probability=-0.1)
        with self.assertRaises(InvalidOdds):
            Odds(pizza_probability=1.5)

    def test_sum_above_one_rejected(self):
        with self.assertRaises(ValidationError):
            Odds(salad_probability=0.6, pizza_probability=0.5)


class DrawOutcomeTests(unittest.TestCase):
    def test_low_draw_is_salad(self):
        self.assertEqual(draw_outcome(ScriptedRandom(0.01), Odds(0.05, 0.05)), SALAD)

    def test_middle_draw_is_pizza(self):
        self.assertEqual(draw_outcome(ScriptedRandom(0.07), Odds(0.05, 0.05)), PIZZA)

    def test_high_draw_picks_a_single_door(self):
        for index, door in enumerate(ALL_DOORS):
            rng = ScriptedRandom(0.5, index=index)
            self.assertEqual(draw_outcome(rng, Odds(0.05, 0.05)), door)

    def test_zero_group_odds_never_yield_group_win(self):
        rng = ScriptedRandom(0.0, index=7)
        self.assertEqual(draw_outcome(rng, Odds(0, 0)), ALL_DOORS[7])

    def test_seeded_draws_are_replayable(self):
        odds = Odds()
        first = [draw_outcome(random.Random(42), odds) for _ in range(5)]
        second = [draw_outcome(random.Random(42), odds) for _ in range(5)]
        self.assertEqual(first, second)

    def test_remaining_mass_spread_over_all_doors(self):
        rng = random.Random(7)
        counts = Counter(draw_outcome(rng, Odds(0.25, 0.25)) for _ in range(4000))
        self.assertTrue(all(is_valid_outcome(result) for result in counts))
        # ~1000 each for the groups, ~250 per door
        self.assertGreater(counts[SALAD], 800)
        self.assertGreater(counts[PIZZA], 800)
        for door in ALL_DOORS:
            self.assertGreater(counts[door], 150)


if __name__ == "__main__":
    unittest.main()
