import os
import random
import shutil
import tempfile
import threading
import time
import unittest

from database import Settings, Store
from models import HistoryEntry
from core.account_store import AccountStore
from core.betting_ledger import BettingLedger
from core.round_manager import RoundManager
from core.settlement_engine import SettlementEngine
from services.draw_service import draw_outcome
from services.history_service import HistoryLog

ADMIN_KEY = "test-admin-key"


def make_settings(tmpdir: str, **overrides) -> Settings:
    values = dict(
        database_url=f"sqlite:///{os.path.join(tmpdir, 'test.db')}",
        operator_api_key=ADMIN_KEY,
        transaction_max_attempts=10,
        transaction_retry_backoff=0.01,
        settle_poll_interval=0.01,
        settle_poll_timeout=2.0,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


class ScriptedRandom(random.Random):
    """random.Random whose draws are fixed in advance."""

    def __init__(self, value: float = 0.5, index: int = 0):
        super().__init__(0)
        self.value = value
        self.index = index

    def random(self):
        return self.value

    def randrange(self, *args, **kwargs):
        return self.index


class CountingDraw:
    """Draw function that always returns ``result`` and counts its calls."""

    def __init__(self, result: str, delay: float = 0.0):
        self.result = result
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self, rng, odds) -> str:
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        return self.result


class StoreTestCase(unittest.TestCase):
    """Fresh SQLite file store and components for every test."""

    settings_overrides = {}

    def setUp(self) -> None:
        self.tmpdir = tempfile.mkdtemp()
        self.settings = make_settings(self.tmpdir, **self.settings_overrides)
        self.store = Store(self.settings)
        self.store.create_all()

        self.accounts = AccountStore(self.store)
        self.rounds = RoundManager(self.store)
        self.ledger = BettingLedger(self.store)
        self.history = HistoryLog(self.store)

    def tearDown(self) -> None:
        self.store.dispose()
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def make_engine(self, draw=draw_outcome, rng=None) -> SettlementEngine:
        return SettlementEngine(self.store, self.rounds, rng=rng or ScriptedRandom(), draw=draw)

    def fund(self, account_id: str, balance: int):
        return self.accounts.provision(account_id, initial_balance=balance)

    def balance(self, account_id: str) -> int:
        return self.accounts.get(account_id).balance

    def history_count(self, round_id: str) -> int:
        with self.store.session() as db:
            return db.query(HistoryEntry).filter(HistoryEntry.round_id == round_id).count()
