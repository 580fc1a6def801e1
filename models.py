"""
資料表定義

金額欄位一律是整數（最小貨幣單位）。
"""
import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, JSON, String, func

from database import Base


class RoundStatus(str, enum.Enum):
    BETTING = "betting"
    LOCKED = "locked"
    SETTLED = "settled"


class Account(Base):
    __tablename__ = "accounts"

    id = Column(String(128), primary_key=True)
    name = Column(String(128), nullable=False)
    balance = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())


class Round(Base):
    __tablename__ = "rounds"

    id = Column(String(64), primary_key=True)
    status = Column(Enum(RoundStatus), nullable=False, default=RoundStatus.BETTING)
    result = Column(String(16), nullable=True)
    jackpot_seed = Column(Integer, nullable=False, default=0)
    started_at = Column(DateTime, server_default=func.now())
    ended_at = Column(DateTime, nullable=True)

    # 每次 open() 加一：區分同一個 id 的不同局
    epoch = Column(Integer, nullable=False, default=0)
    # 持有回合鎖的結算嘗試（下注中為 None）
    lock_token = Column(String(32), nullable=True)
    # 每筆成功下注在 status=betting 條件下加一
    bet_version = Column(Integer, nullable=False, default=0)


class Bet(Base):
    __tablename__ = "bets"

    round_id = Column(String(64), ForeignKey("rounds.id"), primary_key=True)
    account_id = Column(String(128), ForeignKey("accounts.id"), primary_key=True)
    stakes = Column(JSON, nullable=False)
    total_stake = Column(Integer, nullable=False)
    placed_at = Column(DateTime, server_default=func.now())


class JackpotState(Base):
    __tablename__ = "jackpot"

    id = Column(String(16), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, server_default=func.now())


JACKPOT_KEY = "state"


class HistoryEntry(Base):
    __tablename__ = "history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    round_id = Column(String(64), nullable=False, index=True)
    result = Column(String(16), nullable=False)
    settled_at = Column(DateTime, server_default=func.now())
