"""
Round Manager：管理 Round 的完整生命週期

職責：
1. 開啟（或重置）回合開始下注
2. 鎖定回合（betting -> locked），這是結算的序列化點
3. 把卡住的回合鎖交給恢復中的結算嘗試
4. 查詢回合

狀態只能往前走：betting -> locked -> settled。
唯一回到 betting 的方式是明確呼叫 open()，這會開始新的一局（epoch 加一）。
"""
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Optional
from uuid import uuid4
import logging

from database import Abort, Store
from models import Round, RoundStatus
from core.locks import with_round_lock, compare_and_set_round
from core.exceptions import RoundNotFound, ValidationError
from services.naming_service import generate_round_id

logger = logging.getLogger(__name__)


def _new_lock_token() -> str:
    return uuid4().hex


class RoundManager:
    """Round 生命週期管理器"""

    def __init__(self, store: Store):
        self.store = store

    def open(self, round_id: Optional[str] = None, jackpot_seed: int = 0) -> Round:
        """
        開啟回合開始下注

        流程：
        1. 沒給 id 就用目前時間（毫秒）生成
        2. 回合不存在就建立，已存在就重置

        參數：
            round_id: 回合 id（可省略）
            jackpot_seed: 這一局的起始 jackpot（不可為負）

        返回：
            status=betting 的 Round

        異常：
            ValidationError: jackpot_seed 為負數

        注意：
            open() 是「重置」而不是「不存在才建立」：重新開啟會清掉
            result、lock 和 jackpot_seed，並把 epoch 加一。
            已經記錄的下注會保留。
        """
        if isinstance(jackpot_seed, bool) or not isinstance(jackpot_seed, int) or jackpot_seed < 0:
            raise ValidationError("jackpot_seed must be a non-negative integer")

        round_id = round_id or generate_round_id()

        def _open(db: Session) -> Round:
            # 1. 鎖定既有的 Round（如果有）
            round_obj = with_round_lock(round_id, db).first()

            # 2. 建立或重置
            if round_obj is None:
                round_obj = Round(id=round_id, bet_version=0, epoch=0)
                db.add(round_obj)
            else:
                if round_obj.status != RoundStatus.BETTING:
                    logger.warning(
                        f"Re-opening round {round_id} from status {round_obj.status.value}"
                    )
                round_obj.epoch = round_obj.epoch + 1

            round_obj.status = RoundStatus.BETTING
            round_obj.result = None
            round_obj.jackpot_seed = jackpot_seed
            round_obj.lock_token = None
            round_obj.started_at = func.now()
            round_obj.ended_at = None

            db.flush()
            db.refresh(round_obj)
            return round_obj

        round_obj = self.store.transaction(_open)
        logger.info(f"Opened round {round_id} (epoch {round_obj.epoch}) with jackpot seed {jackpot_seed}")
        return round_obj

    def acquire_lock(self, round_id: str, epoch: Optional[int] = None) -> Optional[str]:
        """
        Compare-and-swap：betting -> locked

        參數：
            round_id: 回合 id
            epoch: 只鎖定這一局；回合已被重新開啟（epoch 不同）就不鎖

        返回：
            這次呼叫把回合移出 betting 時，返回新的 lock token；
            回合已經 locked、settled 或 epoch 不符則返回 None

        異常：
            RoundNotFound: Round 不存在
        """
        token = _new_lock_token()
        expected = {"status": RoundStatus.BETTING}
        if epoch is not None:
            expected["epoch"] = epoch

        def _acquire(db: Session):
            if compare_and_set_round(
                db, round_id,
                {"status": RoundStatus.LOCKED, "lock_token": token},
                **expected
            ):
                return token
            if db.get(Round, round_id) is None:
                return Abort(RoundNotFound(round_id))
            return None

        acquired = self.store.transaction(_acquire)
        if acquired:
            logger.info(f"Locked round {round_id}")
        return acquired

    def lock(self, round_id: str) -> None:
        """
        停止接受下注

        只往前走：已經 locked 或 settled 的回合保持不變。

        異常：
            RoundNotFound: Round 不存在
        """
        self.acquire_lock(round_id)

    def take_over_lock(self, round_id: str, stale_token: Optional[str]) -> Optional[str]:
        """
        替卡在 locked 的回合換一把新鎖

        用途：
            結算嘗試在鎖定後掛掉時的恢復路徑。只有回合仍以 stale_token
            鎖定時才會成功，所以同時恢復的多個呼叫者只有一個會贏。

        返回：
            新的 token；回合已經前進則返回 None
        """
        token = _new_lock_token()

        def _take_over(db: Session):
            if compare_and_set_round(
                db, round_id,
                {"lock_token": token},
                status=RoundStatus.LOCKED,
                lock_token=stale_token
            ):
                return token
            return None

        taken = self.store.transaction(_take_over)
        if taken:
            logger.warning(f"Took over settlement lock of round {round_id}")
        return taken

    def find_round(self, round_id: str) -> Optional[Round]:
        with self.store.session() as db:
            return db.get(Round, round_id)

    def get_round(self, round_id: str) -> Round:
        """
        異常：
            RoundNotFound: Round 不存在
        """
        round_obj = self.find_round(round_id)
        if round_obj is None:
            raise RoundNotFound(round_id)
        return round_obj
