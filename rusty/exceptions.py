"""Rusty カスタム例外定義

Bot全体で使用する例外階層を定義します。
Dispatcher はこの階層に基づいて「返信する / ログのみ」を判断します。
"""

from typing import Any, Optional


class BotError(Exception):
    """Bot基底例外クラス

    全てのBot固有例外の親クラス。
    エラーメッセージと詳細情報を保持。
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """
        Args:
            message: エラーメッセージ
            details: エラーの詳細情報（デバッグ用）
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigError(BotError):
    """設定エラー

    設定ファイルが存在しない、構文が不正、必須キーが欠けている場合に発生。
    起動時のみ発生し、プロセスを終了させる唯一の例外。
    """
    pass


class ApiError(BotError):
    """外部API呼び出しのエラー

    タイムアウト、HTTPエラー、解析できないレスポンスなど。
    ユーザーには返信せず、ログのみ残す。
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: dict[str, Any] | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, details)


class PermissionDeniedError(BotError):
    """権限不足エラー

    呼び出し元が必要なロールを持っていない場合に発生。
    メッセージはそのままユーザーへの返信として使われる。
    """
    pass


class CommandUsageError(BotError):
    """コマンドの使い方が誤っている場合のエラー

    必須の引数がない場合など。メッセージはユーザーへ返信される。
    """
    pass


class TranscriptError(BotError):
    """会話ログファイルの読み書きエラー"""
    pass


class DuplicateCommandError(BotError):
    """同名のコマンドが二重に登録された場合のエラー（起動時に検出）"""
    pass


class RegistryFrozenError(BotError):
    """凍結済みのレジストリにコマンドを登録しようとした場合のエラー"""
    pass
