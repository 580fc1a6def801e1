"""
Naming Service：回合 id 與預設帳號名稱

純計算，唯一性由呼叫端負責。
"""
import time


def generate_round_id() -> str:
    """
    用目前時間（毫秒）產生回合 id

    範例："1760797860123"

    注意：
        同一毫秒內開兩局會拿到同一個 id，第二次等於重置第一局。
    """
    return str(int(time.time() * 1000))


def default_account_name(account_id: str) -> str:
    """
    新帳號的顯示名稱

    範例：default_account_name("f3a9c2d81e") -> "User_f3a9c2"
    """
    return f"User_{account_id[:6]}"
