"""Rusty: プレフィックスコマンドで応答する Discord Bot"""

__version__ = "0.1.0"
