"""
Draw Service：門的配置、機率與開獎

純計算，亂數來源一律由外部傳入。
"""
import random
from dataclasses import dataclass
from typing import Optional

from core.exceptions import InvalidOdds

VEGETABLE_DOORS = ("Chua", "Cải", "Ngô", "Rốt")
MEAT_DOORS = ("Mỳ", "Xiên", "Đùi", "Bò")
ALL_DOORS = VEGETABLE_DOORS + MEAT_DOORS

SALAD = "SALAD"
PIZZA = "PIZZA"

DEFAULT_SALAD_PROBABILITY = 0.05
DEFAULT_PIZZA_PROBABILITY = 0.05


@dataclass(frozen=True)
class Odds:
    """兩個群組獎的機率；剩下的機率平均分給八道門"""
    salad_probability: float = DEFAULT_SALAD_PROBABILITY
    pizza_probability: float = DEFAULT_PIZZA_PROBABILITY

    def __post_init__(self):
        for name in ("salad_probability", "pizza_probability"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidOdds(f"{name} must be a number")
            if not 0 <= value <= 1:
                raise InvalidOdds(f"{name} must be between 0 and 1, got {value}")
        if self.salad_probability + self.pizza_probability > 1:
            raise InvalidOdds("salad_probability + pizza_probability must not exceed 1")


def make_odds(
    salad_probability: Optional[float] = None,
    pizza_probability: Optional[float] = None,
    default_salad: float = DEFAULT_SALAD_PROBABILITY,
    default_pizza: float = DEFAULT_PIZZA_PROBABILITY,
) -> Odds:
    """建立 Odds，沒給的欄位用預設值"""
    return Odds(
        salad_probability=default_salad if salad_probability is None else salad_probability,
        pizza_probability=default_pizza if pizza_probability is None else pizza_probability,
    )


def draw_outcome(rng: random.Random, odds: Odds) -> str:
    """
    開出一局的結果

    三種結果互斥，不是巢狀：

        r < salad                 -> SALAD
        r < salad + pizza         -> PIZZA
        其他                      -> 八道門之一（均勻）

    所以每道門的中獎機率都是 (1 - salad - pizza) / 8，與所屬群組無關。

    參數：
        rng: 亂數來源（注入，讓結算可以重現）
        odds: 群組中獎機率

    返回：
        "SALAD"、"PIZZA" 或門的名稱
    """
    r = rng.random()
    if r < odds.salad_probability:
        return SALAD
    if r < odds.salad_probability + odds.pizza_probability:
        return PIZZA
    return ALL_DOORS[rng.randrange(len(ALL_DOORS))]


def is_valid_outcome(result: str) -> bool:
    """SettlementEngine 提交結果前用來檢查注入的開獎函式"""
    return result in (SALAD, PIZZA) or result in ALL_DOORS
