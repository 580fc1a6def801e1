import threading
import unittest

from core.exceptions import (
    AccountNotFound,
    ConflictError,
    EmptyBet,
    InsufficientBalance,
    InvalidDoor,
    RoundLocked,
    RoundNotFound,
    ValidationError,
)
from models import Bet, Round
from support import StoreTestCase


class BettingLedgerTests(StoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.fund("A", 10000)
        self.rounds.open("R1")

    def get_bet(self, round_id: str, account_id: str):
        with self.store.session() as db:
            return db.get(Bet, (round_id, account_id))

    def bet_version(self, round_id: str) -> int:
        with self.store.session() as db:
            return db.get(Round, round_id).bet_version

    def test_bet_debits_balance_and_records_bet(self):
        bet = self.ledger.place_bet("R1", "A", {"Chua": 1000, "Bò": 2000})

        self.assertEqual(bet.total_stake, 3000)
        self.assertEqual(bet.stakes, {"Chua": 1000, "Bò": 2000})
        self.assertIsNotNone(bet.placed_at)
        self.assertEqual(self.balance("A"), 7000)
        self.assertEqual(self.get_bet("R1", "A").total_stake, 3000)
        self.assertEqual(self.bet_version("R1"), 1)

    def test_second_bet_replaces_first(self):
        self.ledger.place_bet("R1", "A", {"Chua": 1000, "Bò": 2000})
        self.ledger.place_bet("R1", "A", {"Ngô": 500})

        bet = self.get_bet("R1", "A")
        self.assertEqual(bet.stakes, {"Ngô": 500})
        self.assertEqual(bet.total_stake, 500)
        self.assertEqual(self.balance("A"), 10000 - 3000 - 500)

    def test_unknown_round(self):
        with self.assertRaises(RoundNotFound):
            self.ledger.place_bet("nope", "A", {"Chua": 100})
        self.assertEqual(self.balance("A"), 10000)

    def test_locked_round_rejected_without_side_effects(self):
        self.rounds.lock("R1")

        with self.assertRaises(ConflictError) as ctx:
            self.ledger.place_bet("R1", "A", {"Chua": 100})

        self.assertIsInstance(ctx.exception, RoundLocked)
        self.assertEqual(self.balance("A"), 10000)
        self.assertIsNone(self.get_bet("R1", "A"))

    def test_empty_bet_rejected_without_writes(self):
        with self.assertRaises(ValidationError) as ctx:
            self.ledger.place_bet("R1", "A", {"Chua": 0, "Bò": -5, "Ngô": "x"})

        self.assertIsInstance(ctx.exception, EmptyBet)
        self.assertEqual(self.balance("A"), 10000)
        self.assertIsNone(self.get_bet("R1", "A"))
        self.assertEqual(self.bet_version("R1"), 0)

    def test_unknown_door_rejected(self):
        with self.assertRaises(InvalidDoor):
            self.ledger.place_bet("R1", "A", {"Phở": 100})
        self.assertEqual(self.balance("A"), 10000)

    def test_round_checks_come_before_door_checks(self):
        with self.assertRaises(RoundNotFound):
            self.ledger.place_bet("nope", "A", {"Phở": 100})

        self.rounds.lock("R1")
        with self.assertRaises(RoundLocked):
            self.ledger.place_bet("R1", "A", {"Phở": 100})
        self.assertEqual(self.balance("A"), 10000)

    def test_unknown_account(self):
        with self.assertRaises(AccountNotFound):
            self.ledger.place_bet("R1", "ghost", {"Chua": 100})
        self.assertIsNone(self.get_bet("R1", "ghost"))

    def test_insufficient_balance(self):
        with self.assertRaises(InsufficientBalance) as ctx:
            self.ledger.place_bet("R1", "A", {"Chua": 10001})

        self.assertEqual(ctx.exception.required, 10001)
        self.assertEqual(self.balance("A"), 10000)
        self.assertIsNone(self.get_bet("R1", "A"))

    def test_exact_balance_allowed(self):
        self.ledger.place_bet("R1", "A", {"Chua": 4000, "Mỳ": 6000})
        self.assertEqual(self.balance("A"), 0)

    def test_concurrent_bets_never_overdraw(self):
        self.fund("B", 1000)
        barrier = threading.Barrier(8)
        outcomes = []

        def worker():
            barrier.wait()
            try:
                self.ledger.place_bet("R1", "B", {"Chua": 300})
                outcomes.append("ok")
            except InsufficientBalance:
                outcomes.append("insufficient")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(outcomes.count("ok"), 3)
        self.assertEqual(outcomes.count("insufficient"), 5)
        self.assertEqual(self.balance("B"), 100)
        self.assertEqual(self.bet_version("R1"), 3)
        self.assertEqual(self.get_bet("R1", "B").total_stake, 300)


if __name__ == "__main__":
    unittest.main()
