"""
Account Store：餘額記錄

餘額只透過帶正負號的增量改變：
- debit()：在 BettingLedger 的 transaction 中，條件是 balance >= amount
- credit()：在 SettlementEngine 的結算批次中
"""
from sqlalchemy import func, update
from sqlalchemy.orm import Session
from typing import Optional
import logging

from database import Store, WriteBatch
from models import Account
from services.naming_service import default_account_name

logger = logging.getLogger(__name__)


class AccountStore:
    """帳號存取"""

    def __init__(self, store: Store):
        self.store = store

    def get(self, account_id: str) -> Optional[Account]:
        with self.store.session() as db:
            return db.get(Account, account_id)

    def provision(
        self,
        account_id: str,
        name: Optional[str] = None,
        initial_balance: Optional[int] = None
    ) -> Account:
        """
        第一次見到時建立帳號，否則原樣返回

        參數：
            account_id: 呼叫者身分（已在上游驗證）
            name: 顯示名稱，預設 "User_<id 前 6 碼>"
            initial_balance: 預設 settings.init_balance

        返回：
            寫入後的 Account
        """
        if initial_balance is None:
            initial_balance = self.store.settings.init_balance

        def _provision(db: Session) -> Account:
            account = db.get(Account, account_id)
            if account is None:
                account = Account(
                    id=account_id,
                    name=name or default_account_name(account_id),
                    balance=max(0, initial_balance),
                    created_at=func.now()
                )
                db.add(account)
                db.flush()
                db.refresh(account)
                logger.info(f"Provisioned account {account_id} with balance {account.balance}")
            return account

        return self.store.transaction(_provision)

    @staticmethod
    def debit(db: Session, account_id: str, amount: int) -> bool:
        """
        在呼叫者的 transaction 中扣款

        返回：
            帳號不存在或餘額低於 amount 時為 False，此時不寫入任何東西
        """
        result = db.execute(
            update(Account)
            .where(Account.id == account_id, Account.balance >= amount)
            .values(balance=Account.balance - amount)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def credit(batch: WriteBatch, account_id: str, amount: int) -> None:
        """在結算批次中排入一筆加款"""
        batch.increment(Account, account_id, "balance", amount)
