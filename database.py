from sqlalchemy import create_engine, update, func
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from pydantic_settings import BaseSettings
from contextlib import contextmanager
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, Iterator, List, Optional
import logging
import time

from core.exceptions import GreedyException, UnavailableError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./greedy.db"
    sqlite_busy_timeout: float = 30.0
    log_level: str = "INFO"

    init_balance: int = 10000
    operator_api_key: str = ""
    cors_origins: str = ""

    transaction_max_attempts: int = 5
    transaction_retry_backoff: float = 0.05

    settle_poll_interval: float = 0.05
    settle_poll_timeout: float = 5.0

    default_salad_probability: float = 0.05
    default_pizza_probability: float = 0.05

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


Base = declarative_base()


@dataclass(frozen=True)
class Abort:
    """
    transaction 內部返回的業務拒絕

    內部返回 ``Abort(error)`` 而不是直接拋出；``Store.transaction``
    先回滾所有未提交的寫入，再把 ``error`` 拋給呼叫者。
    """
    error: GreedyException


def _is_transient(exc: Exception) -> bool:
    # 寫入衝突（database is locked、serialization failure）、斷線、
    # upsert 的重複鍵競爭：重新嘗試即可成功
    if isinstance(exc, (OperationalError, IntegrityError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


class Store:
    """
    持久化儲存的 handle

    程序啟動時建立一次，注入到每個元件。持有 engine 與 session factory，
    提供遊戲核心依賴的兩個寫入原語：

    - transaction(fn)：讀寫工作單元，暫時性錯誤自動重試
    - batch()：不讀取的多列寫入，原子提交
    """

    def __init__(self, settings: Settings):
        self.settings = settings

        # SQLite 連線會在 worker thread 之間共用
        connect_args = {}
        if settings.database_url.startswith("sqlite"):
            connect_args = {
                "check_same_thread": False,
                "timeout": settings.sqlite_busy_timeout,
            }

        self.engine = create_engine(
            settings.database_url,
            connect_args=connect_args,
            pool_pre_ping=True
        )
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine
        )

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """
        唯讀 session

        注意：
            close() 歸還連線但不提交；讀到的物件不會 expire，離開區塊後仍可使用。
        """
        db = self.SessionLocal()
        try:
            yield db
        except SQLAlchemyError as e:
            logger.error(f"Read failed: {e}", exc_info=True)
            raise UnavailableError("Store is unavailable") from e
        finally:
            db.close()

    def transaction(self, fn: Callable[[Session], Any], label: Optional[str] = None) -> Any:
        """
        把 ``fn(db)`` 當成一個原子工作單元執行

        流程：
            1. 開新的 session 並呼叫 fn
            2. fn 返回 Abort -> 回滾，拋出包裝的錯誤
            3. fn 返回其他值 -> 提交並返回
            4. 暫時性錯誤 -> 回滾、等待、從步驟 1 重試

        注意：
            fn 必須可以重跑：每次嘗試都從乾淨的 session 開始。

        異常：
            Abort 包裝的錯誤（或 fn 拋出的任何 GreedyException）
            UnavailableError: 重試用盡，或資料庫直接失敗
        """
        label = label or getattr(fn, "__name__", "transaction")
        attempts = max(1, self.settings.transaction_max_attempts)
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            db = self.SessionLocal()
            try:
                outcome = fn(db)
                if isinstance(outcome, Abort):
                    db.rollback()
                else:
                    db.commit()
            except GreedyException:
                db.rollback()
                raise
            except SQLAlchemyError as e:
                db.rollback()
                if not _is_transient(e):
                    logger.error(f"Transaction failed in {label}: {e}", exc_info=True)
                    raise UnavailableError("Store is unavailable") from e
                last_error = e
                logger.warning(
                    f"Transient conflict in {label} (attempt {attempt}/{attempts}): {e}"
                )
                time.sleep(self.settings.transaction_retry_backoff * attempt)
                continue
            except Exception as e:
                logger.error(f"Transaction failed in {label}: {e}", exc_info=True)
                db.rollback()
                raise
            finally:
                db.close()

            if isinstance(outcome, Abort):
                raise outcome.error
            return outcome

        logger.error(f"Transaction {label} gave up after {attempts} attempts")
        raise UnavailableError("Store is busy, try again later") from last_error

    @contextmanager
    def batch(self, label: str = "batch") -> Iterator["WriteBatch"]:
        """
        收集寫入，離開區塊時原子提交

        區塊內拋出例外時整批丟棄，不碰資料庫。

        範例：
            with store.batch() as batch:
                batch.increment(Account, "alice", "balance", 500)
                batch.add(HistoryEntry, round_id="r1", result="Chua")
        """
        batch = WriteBatch()
        yield batch
        self.transaction(batch.apply, label=label)


class WriteBatch:
    """
    固定的寫入清單，中間沒有讀取

    每個操作記成一個 closure，外層 transaction 重試時 ``apply`` 可以原樣重播。
    """

    def __init__(self):
        self._ops: List[Callable[[Session], Optional[Abort]]] = []

    def __len__(self) -> int:
        return len(self._ops)

    def increment(self, model, key, field: str, delta: int) -> None:
        """對已存在的列的數值欄位加上 ``delta``"""
        def op(db: Session) -> Optional[Abort]:
            column = getattr(model, field)
            result = db.execute(
                update(model)
                .where(model.id == key)
                .values({field: column + delta})
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                logger.warning(f"Increment skipped, {model.__name__} {key} does not exist")
            return None
        self._ops.append(op)

    def upsert_increment(self, model, key, field: str, delta: int) -> None:
        """對數值欄位加上 ``delta``；列不存在時以 ``delta`` 建立"""
        def op(db: Session) -> Optional[Abort]:
            column = getattr(model, field)
            values: Dict[str, Any] = {field: column + delta}
            if hasattr(model, "updated_at"):
                values["updated_at"] = func.now()
            result = db.execute(
                update(model)
                .where(model.id == key)
                .values(values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                db.add(model(id=key, **{field: delta}))
                db.flush()
            return None
        self._ops.append(op)

    def guarded_update(self, model, key, values: Dict[str, Any],
                       expect: Dict[str, Any], error: GreedyException) -> None:
        """
        只有列仍符合 ``expect`` 時才更新

        不符合時整批以 ``error`` 中止。
        """
        def op(db: Session) -> Optional[Abort]:
            conditions = [model.id == key]
            conditions += [getattr(model, name) == value for name, value in expect.items()]
            result = db.execute(
                update(model)
                .where(*conditions)
                .values(values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                return Abort(error)
            return None
        self._ops.append(op)

    def add(self, model, **values) -> None:
        """新增一列；每次嘗試都重新建立物件"""
        def op(db: Session) -> Optional[Abort]:
            db.add(model(**values))
            return None
        self._ops.append(op)

    def apply(self, db: Session) -> Optional[Abort]:
        for op in self._ops:
            outcome = op(db)
            if isinstance(outcome, Abort):
                return outcome
        db.flush()
        return None
