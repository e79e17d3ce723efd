"""Discord Bot コマンド処理モジュール

Modules:
    registry: コマンド名とハンドラーの対応表
    dispatcher: 受信メッセージの解析と振り分け
    command_handler: 各コマンドのビジネスロジック
"""

from rusty.handlers.command_handler import CommandHandler
from rusty.handlers.dispatcher import Dispatcher
from rusty.handlers.registry import Command, CommandRegistry

__all__ = ["Command", "CommandHandler", "CommandRegistry", "Dispatcher"]
