"""
Settlement Engine：開獎、派彩並結束回合

settle() 流程：
1. 已經 settled -> 直接返回記錄的結果（不會再開一次獎）
2. CAS betting -> locked；沒搶到的呼叫者等待贏家的結果
3. 用注入的亂數來源開獎
4. 讀取這一局的所有下注
5. 計算派彩與 jackpot 增加量
6. 一個原子批次：派彩、jackpot、回合 -> settled、歷史記錄

注意：
    批次失敗時回合會以這次嘗試的 token 停在 locked。之後的 settle()
    等待 settle_poll_timeout 沒看到進展，就接手鎖並重新開獎。
    最後的回合寫入受 token 保護，被接手的慢嘗試永遠無法再提交。

    每個呼叫只結算它進入時看到的那一局（epoch）。等待期間回合被
    open() 重新開啟，等待者會放棄並拋出 RoundReopened，不會去鎖新的一局。
"""
from sqlalchemy import func
from typing import Callable, List, Optional, Tuple
import logging
import random
import time

from database import Store
from models import Bet, HistoryEntry, JackpotState, JACKPOT_KEY, Round, RoundStatus
from core.account_store import AccountStore
from core.round_manager import RoundManager
from core.exceptions import InvalidOutcome, RoundReopened, SettlementSuperseded
from services.draw_service import Odds, draw_outcome, is_valid_outcome, make_odds
from services.payoff_service import BetSnapshot, calculate_round_payouts

logger = logging.getLogger(__name__)


class SettlementEngine:
    """回合結算"""

    def __init__(
        self,
        store: Store,
        rounds: RoundManager,
        rng: Optional[random.Random] = None,
        draw: Callable[[random.Random, Odds], str] = draw_outcome
    ):
        self.store = store
        self.rounds = rounds
        self.rng = rng or random.SystemRandom()
        self.draw = draw

    def default_odds(self) -> Odds:
        settings = self.store.settings
        return make_odds(
            default_salad=settings.default_salad_probability,
            default_pizza=settings.default_pizza_probability
        )

    def settle(self, round_id: str, odds: Optional[Odds] = None) -> str:
        """
        結算回合並返回結果

        可以重複呼叫、同時呼叫或在逾時後再呼叫：每一局只會提交一次開獎，
        所有呼叫者都拿到同一個結果。

        參數：
            round_id: 要結算的回合
            odds: 群組中獎機率，預設取自 settings

        返回：
            "SALAD"、"PIZZA" 或中獎的門

        異常：
            RoundNotFound: Round 不存在
            RoundReopened: 等待期間回合被重新開啟
            InvalidOutcome: 開獎函式返回未知結果；回合保持 locked
            UnavailableError: 資料庫失敗；回合保持 locked
        """
        odds = odds or self.default_odds()

        # 1. 冪等短路
        round_obj = self.rounds.get_round(round_id)
        if round_obj.status == RoundStatus.SETTLED:
            logger.info(f"Round {round_id} already settled with {round_obj.result}")
            return round_obj.result
        epoch = round_obj.epoch

        # 2. 序列化點
        token = self.rounds.acquire_lock(round_id, epoch=epoch)

        while True:
            if token is None:
                result, token = self._wait_for_settlement(round_id, epoch)
                if token is None:
                    return result
            try:
                return self._finalize(round_id, token, odds)
            except SettlementSuperseded:
                logger.warning(f"Settlement of round {round_id} superseded, waiting for result")
                token = None

    def _wait_for_settlement(self, round_id: str, epoch: int) -> Tuple[Optional[str], Optional[str]]:
        """
        等待另一個嘗試完成結算

        返回：
            (result, None)：回合已 settled
            (None, token)：持有者超過 settle_poll_timeout 沒有進展，鎖被這個呼叫者接手

        異常：
            RoundReopened: 回合回到 betting，或 epoch 已經不是進入時看到的那一局
        """
        settings = self.store.settings
        observed_token = None
        deadline = time.monotonic() + settings.settle_poll_timeout

        while True:
            round_obj = self.rounds.get_round(round_id)

            if round_obj.epoch != epoch or round_obj.status == RoundStatus.BETTING:
                logger.warning(
                    f"Round {round_id} was re-opened (epoch {epoch} -> {round_obj.epoch}), "
                    f"abandoning settlement"
                )
                raise RoundReopened(round_id)

            if round_obj.status == RoundStatus.SETTLED:
                return round_obj.result, None

            if round_obj.lock_token != observed_token:
                # 換了持有者：重新計時
                observed_token = round_obj.lock_token
                deadline = time.monotonic() + settings.settle_poll_timeout
            elif time.monotonic() >= deadline:
                token = self.rounds.take_over_lock(round_id, observed_token)
                if token:
                    return None, token

            time.sleep(settings.settle_poll_interval)

    def _load_bets(self, round_id: str) -> List[BetSnapshot]:
        with self.store.session() as db:
            bets = db.query(Bet).filter(Bet.round_id == round_id).all()
            return [
                BetSnapshot(
                    account_id=bet.account_id,
                    stakes=dict(bet.stakes or {}),
                    total_stake=bet.total_stake or 0
                )
                for bet in bets
            ]

    def _finalize(self, round_id: str, token: str, odds: Odds) -> str:
        # 3. 開獎
        result = self.draw(self.rng, odds)
        if not is_valid_outcome(result):
            logger.error(f"Draw returned unknown outcome {result!r} for round {round_id}")
            raise InvalidOutcome(result)
        logger.info(
            f"Drew {result} for round {round_id} "
            f"(salad={odds.salad_probability}, pizza={odds.pizza_probability})"
        )

        # 4. 下注；持有鎖之後不會再有新下注提交
        bets = self._load_bets(round_id)

        # 5. 派彩
        payout = calculate_round_payouts(bets, result)

        # 6. 提交
        with self.store.batch(label=f"settle:{round_id}") as batch:
            batch.guarded_update(
                Round, round_id,
                values={
                    "status": RoundStatus.SETTLED,
                    "result": result,
                    "ended_at": func.now()
                },
                expect={"status": RoundStatus.LOCKED, "lock_token": token},
                error=SettlementSuperseded(round_id)
            )
            for account_id, win in payout.credits.items():
                AccountStore.credit(batch, account_id, win)
            batch.upsert_increment(JackpotState, JACKPOT_KEY, "value", payout.jackpot_increase)
            batch.add(HistoryEntry, round_id=round_id, result=result, settled_at=func.now())

        logger.info(
            f"Settled round {round_id} with {result}: {len(bets)} bets, "
            f"staked={payout.total_staked} credited={payout.total_credited} "
            f"jackpot+={payout.jackpot_increase}"
        )
        return result
