"""
並發控制工具

兩種工具一起使用：

1. 行鎖（SELECT ... FOR UPDATE）：transaction 之後要依據的讀取。
   PostgreSQL 會遵守；SQLite 忽略它，改在資料庫層級序列化寫入。
2. 條件寫入（UPDATE ... WHERE <預期狀態>）：用影響列數判斷該列是否
   仍是讀到時的樣子。這才是真正的序列化點，在所有資料庫上都成立。
"""
from typing import Any, Dict

from sqlalchemy import update
from sqlalchemy.orm import Query, Session

from models import Account, Round


def with_round_lock(round_id: str, db: Session) -> Query:
    """
    在 transaction 結束前鎖定一列 Round

    範例：
        round_obj = with_round_lock(round_id, db).first()
        if round_obj is None:
            return Abort(RoundNotFound(round_id))

    注意：
        nowait=False 表示等待目前持有者，而不是直接失敗
    """
    return db.query(Round).filter(
        Round.id == round_id
    ).with_for_update(nowait=False)


def with_account_lock(account_id: str, db: Session) -> Query:
    """在 transaction 結束前鎖定一列 Account"""
    return db.query(Account).filter(
        Account.id == account_id
    ).with_for_update(nowait=False)


def compare_and_set_round(
    db: Session,
    round_id: str,
    values: Dict[str, Any],
    **expected: Any
) -> bool:
    """
    只有每個 expected 欄位都仍然相符時才更新 Round

    範例：
        locked = compare_and_set_round(
            db, round_id,
            {"status": RoundStatus.LOCKED, "lock_token": token},
            status=RoundStatus.BETTING,
        )

    返回：
        剛好更新一列時為 True
    """
    conditions = [Round.id == round_id]
    conditions += [getattr(Round, name) == value for name, value in expected.items()]
    result = db.execute(
        update(Round)
        .where(*conditions)
        .values(values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
