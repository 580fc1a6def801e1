"""
Betting Ledger：記錄一個帳號在一局中的下注

扣款和下注寫入永遠一起提交，或一起不提交。
"""
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Any, Mapping
import logging

from database import Abort, Store
from models import Bet, Round, RoundStatus
from core.account_store import AccountStore
from core.locks import with_round_lock, with_account_lock, compare_and_set_round
from core.exceptions import (
    AccountNotFound,
    EmptyBet,
    InsufficientBalance,
    RoundLocked,
    RoundNotFound,
    ValidationError
)
from services.payoff_service import normalize_stakes

logger = logging.getLogger(__name__)


class BettingLedger:
    """下注處理"""

    def __init__(self, store: Store):
        self.store = store

    def place_bet(self, round_id: str, account_id: str, stakes: Mapping[str, Any]) -> Bet:
        """
        下注（或取代）某帳號在某回合的下注

        流程（單一 transaction）：
        1. 讀取回合與帳號
        2. 回合必須存在且在 betting
        3. 整理下注：門必須存在，總額必須大於 0
        4. 帳號必須存在且餘額足夠
        5. 回合仍在 betting 時把 bet_version 加一
        6. 餘額仍然足夠時扣款
        7. 寫入下注

        參數：
            round_id: 目標回合
            account_id: 下注帳號
            stakes: 門 -> 金額；非數字或負數金額視為 0

        返回：
            寫入後的 Bet

        異常：
            RoundNotFound, RoundLocked, EmptyBet, InvalidDoor,
            AccountNotFound, InsufficientBalance

        注意：
            步驟 5、6 是條件寫入：步驟 1 之後如果有並發的鎖定或扣款插進來，
            條件失敗，整個 transaction 中止，不會依據過時的讀取動作。
            步驟 5 讓每筆成功的下注都和 RoundManager.acquire_lock 寫同一列，
            所以下注不是在鎖定前提交，就是看到回合已鎖定。

            同一局第二次下注會取代第一次的內容並扣掉自己的總額，
            第一次的扣款不退還。
        """
        def _place(db: Session):
            # 1. 讀取
            round_obj = with_round_lock(round_id, db).first()
            account = with_account_lock(account_id, db).first()

            # 2. 回合檢查
            if round_obj is None:
                return Abort(RoundNotFound(round_id))
            if round_obj.status != RoundStatus.BETTING:
                return Abort(RoundLocked(round_id, round_obj.status))

            # 3. 下注檢查
            try:
                normalized, total = normalize_stakes(stakes)
            except ValidationError as e:
                return Abort(e)
            if total <= 0:
                return Abort(EmptyBet())

            # 4. 帳號檢查
            if account is None:
                return Abort(AccountNotFound(account_id))
            if account.balance < total:
                return Abort(InsufficientBalance(total, account.balance))

            # 5. 回合條件寫入
            if not compare_and_set_round(
                db, round_id,
                {"bet_version": Round.bet_version + 1},
                status=RoundStatus.BETTING
            ):
                return Abort(RoundLocked(round_id))

            # 6. 條件扣款
            if not AccountStore.debit(db, account_id, total):
                return Abort(InsufficientBalance(total, account.balance))

            # 7. 寫入
            bet = db.get(Bet, (round_id, account_id))
            if bet is None:
                bet = Bet(round_id=round_id, account_id=account_id)
                db.add(bet)
            bet.stakes = normalized
            bet.total_stake = total
            bet.placed_at = func.now()

            db.flush()
            db.refresh(bet)
            return bet

        bet = self.store.transaction(_place)
        logger.info(
            f"Bet placed by account {account_id} on round {round_id}: "
            f"total={bet.total_stake} stakes={bet.stakes}"
        )
        return bet
