from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============ Accounts ============

class AccountInit(BaseModel):
    name: Optional[str] = None


class AccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    balance: int
    created_at: Optional[datetime] = None


# ============ Rounds ============

class RoundOpen(BaseModel):
    round_id: Optional[str] = None
    jackpot_seed: int = Field(0, ge=0)


class RoundResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    status: str
    result: Optional[str] = None
    jackpot_seed: int
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None


class OddsIn(BaseModel):
    salad_probability: Optional[float] = Field(None, ge=0, le=1)
    pizza_probability: Optional[float] = Field(None, ge=0, le=1)


class SpinRequest(BaseModel):
    round_id: str
    odds: Optional[OddsIn] = None


class SpinResponse(BaseModel):
    round_id: str
    result: str


# ============ Bets ============

class BetSubmit(BaseModel):
    round_id: str
    # Raw amounts; the ledger clamps non-numeric and negative entries to 0
    stakes: Dict[str, Any]


class BetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    round_id: str
    account_id: str
    stakes: Dict[str, int]
    total_stake: int
    placed_at: Optional[datetime] = None


# ============ History ============

class HistoryEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    round_id: str
    result: str
    settled_at: Optional[datetime] = None


class HistoryResponse(BaseModel):
    items: List[HistoryEntryResponse]


class JackpotResponse(BaseModel):
    value: int
