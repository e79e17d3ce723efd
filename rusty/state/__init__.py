"""会話ログの状態管理"""
