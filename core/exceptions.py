"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理。
訊息是給使用者看的，不包含 SQL 或 driver 細節。
"""


class GreedyException(Exception):
    """所有遊戲異常的基類"""
    pass


# ============ 錯誤分類 ============

class ValidationError(GreedyException):
    """輸入格式錯誤（呼叫端可修正，沒有任何寫入）"""
    pass


class NotFoundError(GreedyException):
    """引用的回合或帳號不存在"""
    pass


class ConflictError(GreedyException):
    """請求格式正確，但和目前狀態衝突"""
    pass


class UnavailableError(GreedyException):
    """資料庫失敗，或重試用盡後仍然忙碌"""
    pass


# ============ Round 相關異常 ============

class RoundNotFound(NotFoundError):
    """回合不存在"""
    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Round {round_id} not found")


class RoundLocked(ConflictError):
    """回合已停止下注"""
    def __init__(self, round_id, status=None):
        self.round_id = round_id
        self.status = status
        super().__init__(f"Round {round_id} is locked")


class RoundReopened(ConflictError):
    """等待結算期間回合被重新開啟（新的一局，不能由舊的結算請求關閉）"""
    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Round {round_id} was re-opened while waiting for settlement")


class SettlementSuperseded(ConflictError):
    """另一個結算嘗試接手了回合鎖"""
    def __init__(self, round_id):
        self.round_id = round_id
        super().__init__(f"Settlement of round {round_id} was taken over")


class InvalidOdds(ValidationError):
    """群組機率必須介於 [0, 1]，且總和不超過 1"""
    pass


class InvalidOutcome(GreedyException):
    """開獎函式返回的結果不是 SALAD、PIZZA 或八道門之一（伺服器端錯誤）"""
    def __init__(self, result):
        self.result = result
        super().__init__(f"Unknown outcome {result!r}")


# ============ Bet 相關異常 ============

class EmptyBet(ValidationError):
    """總下注金額為 0"""
    def __init__(self):
        super().__init__("Empty bet")


class InvalidDoor(ValidationError):
    """下注在不存在的門上"""
    def __init__(self, door):
        self.door = door
        super().__init__(f"Unknown door {door!r}")


class InsufficientBalance(ConflictError):
    """餘額不足以支付總下注"""
    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient balance: need {required}, have {available}"
        )


# ============ Account 相關異常 ============

class AccountNotFound(NotFoundError):
    """帳號不存在"""
    def __init__(self, account_id):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")
