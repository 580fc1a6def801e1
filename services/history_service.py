"""
已結算回合的歷史記錄與 jackpot 讀取

歷史記錄只由 SettlementEngine 在結算批次中寫入，這裡全部唯讀。
"""
from typing import List, Optional

from database import Store
from models import HistoryEntry, JackpotState, JACKPOT_KEY


class HistoryLog:
    """只可附加的開獎結果記錄（讀取端）"""

    def __init__(self, store: Store):
        self.store = store

    def list_recent(self, limit: int = 20) -> List[HistoryEntry]:
        """最新的在前"""
        with self.store.session() as db:
            return (
                db.query(HistoryEntry)
                .order_by(HistoryEntry.id.desc())
                .limit(limit)
                .all()
            )

    def get_for_round(self, round_id: str) -> Optional[HistoryEntry]:
        with self.store.session() as db:
            return (
                db.query(HistoryEntry)
                .filter(HistoryEntry.round_id == round_id)
                .order_by(HistoryEntry.id.desc())
                .first()
            )


def get_jackpot(store: Store) -> int:
    """目前的 jackpot；第一次結算前為 0"""
    with store.session() as db:
        state = db.get(JackpotState, JACKPOT_KEY)
        return state.value if state else 0
