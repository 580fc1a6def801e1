"""
服務層

純計算與唯讀工具，不做狀態轉換：
- DrawService: 門的群組、機率、開獎
- PayoffService: 下注整理與派彩計算
- NamingService: 回合 id 與預設帳號名稱
- HistoryService: 已結算回合記錄與 jackpot 讀取
"""
