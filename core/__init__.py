"""
遊戲核心

門遊戲的 transaction 狀態機：
- RoundManager: 回合生命週期（open -> lock -> settle）
- BettingLedger: 下注與原子扣款
- SettlementEngine: 開獎、派彩、結束回合（單一批次）
- AccountStore: 餘額記錄
- Locks: 行鎖與條件寫入
"""
