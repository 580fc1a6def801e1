import unittest

from core.exceptions import RoundNotFound, ValidationError
from models import RoundStatus
from support import CountingDraw, StoreTestCase


class RoundManagerTests(StoreTestCase):
    def test_open_creates_betting_round(self):
        round_obj = self.rounds.open("R1")

        self.assertEqual(round_obj.id, "R1")
        self.assertEqual(round_obj.status, RoundStatus.BETTING)
        self.assertIsNone(round_obj.result)
        self.assertEqual(round_obj.jackpot_seed, 0)
        self.assertIsNotNone(round_obj.started_at)

    def test_open_without_id_generates_one(self):
        round_obj = self.rounds.open()
        self.assertTrue(round_obj.id.isdigit())
        self.assertEqual(self.rounds.get_round(round_obj.id).status, RoundStatus.BETTING)

    def test_open_rejects_negative_seed(self):
        with self.assertRaises(ValidationError):
            self.rounds.open("R1", jackpot_seed=-1)
        self.assertIsNone(self.rounds.find_round("R1"))

    def test_reopen_resets_settled_round(self):
        self.rounds.open("R1", jackpot_seed=50)
        self.make_engine(draw=CountingDraw("Chua")).settle("R1")

        reopened = self.rounds.open("R1", jackpot_seed=7)

        self.assertEqual(reopened.status, RoundStatus.BETTING)
        self.assertIsNone(reopened.result)
        self.assertIsNone(reopened.ended_at)
        self.assertIsNone(reopened.lock_token)
        self.assertEqual(reopened.jackpot_seed, 7)

    def test_lock_moves_forward_only(self):
        self.rounds.open("R1")
        self.rounds.lock("R1")
        self.assertEqual(self.rounds.get_round("R1").status, RoundStatus.LOCKED)

        self.make_engine(draw=CountingDraw("Bò")).settle("R1")
        self.rounds.lock("R1")
        round_obj = self.rounds.get_round("R1")
        self.assertEqual(round_obj.status, RoundStatus.SETTLED)
        self.assertEqual(round_obj.result, "Bò")

    def test_lock_unknown_round(self):
        with self.assertRaises(RoundNotFound):
            self.rounds.lock("missing")

    def test_acquire_lock_succeeds_once(self):
        self.rounds.open("R1")
        first = self.rounds.acquire_lock("R1")
        second = self.rounds.acquire_lock("R1")

        self.assertIsNotNone(first)
        self.assertIsNone(second)
        self.assertEqual(self.rounds.get_round("R1").lock_token, first)

    def test_reopen_starts_new_epoch(self):
        first = self.rounds.open("R1")
        second = self.rounds.open("R1")

        self.assertEqual(first.epoch, 0)
        self.assertEqual(second.epoch, 1)

    def test_acquire_lock_ignores_stale_epoch(self):
        self.rounds.open("R1")
        self.rounds.open("R1")

        self.assertIsNone(self.rounds.acquire_lock("R1", epoch=0))
        self.assertEqual(self.rounds.get_round("R1").status, RoundStatus.BETTING)
        self.assertIsNotNone(self.rounds.acquire_lock("R1", epoch=1))

    def test_take_over_requires_current_token(self):
        self.rounds.open("R1")
        token = self.rounds.acquire_lock("R1")

        self.assertIsNone(self.rounds.take_over_lock("R1", "not-the-token"))
        new_token = self.rounds.take_over_lock("R1", token)

        self.assertIsNotNone(new_token)
        self.assertNotEqual(new_token, token)
        self.assertIsNone(self.rounds.take_over_lock("R1", token))

    def test_take_over_ignores_betting_round(self):
        self.rounds.open("R1")
        self.assertIsNone(self.rounds.take_over_lock("R1", None))
        self.assertEqual(self.rounds.get_round("R1").status, RoundStatus.BETTING)

    def test_get_unknown_round(self):
        with self.assertRaises(RoundNotFound):
            self.rounds.get_round("missing")


if __name__ == "__main__":
    unittest.main()
