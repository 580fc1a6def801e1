"""
Payoff Service：下注整理與派彩計算

對已讀取的資料做純計算。回合狀態的改變屬於 RoundManager 與 SettlementEngine。
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Tuple

from core.exceptions import InvalidDoor, ValidationError
from services.draw_service import ALL_DOORS, MEAT_DOORS, PIZZA, SALAD, VEGETABLE_DOORS


@dataclass(frozen=True)
class BetSnapshot:
    """結算需要的下注欄位"""
    account_id: str
    stakes: Dict[str, int]
    total_stake: int


@dataclass
class RoundPayout:
    """
    一局的結算總計

    credits 只列出派彩大於 0 的帳號。
    """
    credits: Dict[str, int] = field(default_factory=dict)
    jackpot_increase: int = 0
    total_staked: int = 0

    @property
    def total_credited(self) -> int:
        return sum(self.credits.values())


def _coerce_amount(value: Any) -> int:
    # 非數字與負數視為 0
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    if isinstance(value, float):
        return max(0, int(value)) if value.is_integer() else 0
    if isinstance(value, str):
        try:
            return max(0, int(value.strip()))
        except ValueError:
            return 0
    return 0


def normalize_stakes(stakes: Mapping[str, Any]) -> Tuple[Dict[str, int], int]:
    """
    整理原始下注內容

    返回：
        (stakes, total)，stakes 只保留大於 0 的金額

    異常：
        ValidationError: stakes 不是 mapping
        InvalidDoor: 有 key 不是八道門之一
    """
    if not isinstance(stakes, Mapping):
        raise ValidationError("stakes must be a mapping of door to amount")

    normalized: Dict[str, int] = {}
    for door, raw in stakes.items():
        if door not in ALL_DOORS:
            raise InvalidDoor(door)
        amount = _coerce_amount(raw)
        if amount > 0:
            normalized[door] = amount

    return normalized, sum(normalized.values())


def calculate_win(stakes: Mapping[str, int], result: str) -> int:
    """
    一筆下注在某個開獎結果下的派彩

    規則：
    - SALAD：退還四道蔬菜門的下注
    - PIZZA：退還四道肉類門的下注
    - 門 D：D 上下注的兩倍，其他下注全部沒收

    範例：
        stakes = {"Chua": 1000, "Bò": 2000}
        calculate_win(stakes, "Chua")  -> 2000
        calculate_win(stakes, SALAD)   -> 1000
        calculate_win(stakes, PIZZA)   -> 2000
    """
    if result == SALAD:
        return sum(stakes.get(door, 0) for door in VEGETABLE_DOORS)
    if result == PIZZA:
        return sum(stakes.get(door, 0) for door in MEAT_DOORS)
    return stakes.get(result, 0) * 2


def jackpot_contribution(total_stake: int, win: int) -> int:
    """一筆下注淨沒收的金額，不會是負數"""
    return max(0, total_stake - win)


def calculate_round_payouts(bets: Iterable[BetSnapshot], result: str) -> RoundPayout:
    payout = RoundPayout()

    for bet in bets:
        win = calculate_win(bet.stakes, result)
        payout.jackpot_increase += jackpot_contribution(bet.total_stake, win)
        payout.total_staked += bet.total_stake
        if win > 0:
            payout.credits[bet.account_id] = payout.credits.get(bet.account_id, 0) + win

    return payout
