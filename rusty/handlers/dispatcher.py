"""メッセージディスパッチャー

受信メッセージからプレフィックスを取り除いてコマンド名と引数に分割し、
レジストリに登録されたハンドラーへ振り分けます。
ハンドラーの失敗はここでログに残して握りつぶし、Gateway 接続には伝播させません。
"""

import logging
from typing import Optional

import discord

from rusty.config import BotSettings
from rusty.exceptions import (
    ApiError,
    CommandUsageError,
    PermissionDeniedError,
    TranscriptError,
)
from rusty.handlers.registry import CommandRegistry
from rusty.models import CommandInvocation

logger = logging.getLogger(__name__)


def parse_command(content: str, prefix: str) -> Optional[tuple[str, str]]:
    """メッセージ本文を (コマンド名, 残りのテキスト) に分割

    プレフィックスは大文字小文字を区別して完全一致で判定し、
    直後の空白は省略可能とする（"Ru help" も "Ruhelp" も一致）。

    Args:
        content: メッセージ本文
        prefix: コマンドプレフィックス

    Returns:
        (コマンド名, 残りのテキスト)。プレフィックスで始まらない場合は None
    """
    if not content.startswith(prefix):
        return None

    remainder = content[len(prefix):].lstrip()
    if not remainder:
        return None

    parts = remainder.split(maxsplit=1)
    name = parts[0]
    rest = parts[1] if len(parts) > 1 else ""
    return name, rest


def caller_role_ids(message: discord.Message) -> frozenset[int]:
    """送信者のロールIDを取得（@everyone は除く、DMでは空）"""
    roles = getattr(message.author, "roles", None) or []
    guild_id = message.guild.id if message.guild else None
    return frozenset(role.id for role in roles if role.id != guild_id)


class Dispatcher:
    """メッセージディスパッチャー

    責務:
    - 挨拶ルール（プレフィックスとは無関係に常に評価）
    - コマンドの解析とハンドラー呼び出し
    - ハンドラーの失敗のログと、ユーザー向けエラーの返信
    """

    def __init__(
        self,
        registry: CommandRegistry,
        prefix: str,
        greeting_trigger: str = "hello ru",
    ):
        """初期化

        Args:
            registry: コマンドレジストリ
            prefix: コマンドプレフィックス
            greeting_trigger: 挨拶を返すトリガー（大文字小文字を区別しない）
        """
        if not prefix:
            raise ValueError("Command prefix must not be empty")

        self.registry = registry
        self.prefix = prefix
        self.greeting_trigger = greeting_trigger.lower()

        logger.info(
            "Dispatcher initialized",
            extra={"prefix": prefix, "commands": registry.names()},
        )

    @classmethod
    def from_settings(cls, registry: CommandRegistry, settings: BotSettings) -> "Dispatcher":
        return cls(
            registry=registry,
            prefix=settings.command_prefix,
            greeting_trigger=settings.greeting_trigger,
        )

    async def handle_message(self, message: discord.Message) -> None:
        """受信メッセージを処理（挨拶ルール → コマンド）"""
        await self.greet(message)
        await self.dispatch(message)

    async def greet(self, message: discord.Message) -> bool:
        """挨拶トリガーで始まるメッセージに挨拶を返す

        Returns:
            挨拶を返した場合 True
        """
        if not self.greeting_trigger:
            return False
        if not message.content.lower().startswith(self.greeting_trigger):
            return False

        await self._safe_reply(message, f"Hello {message.author.name}")
        return True

    async def dispatch(self, message: discord.Message) -> bool:
        """コマンドを解析してハンドラーを呼び出す

        Returns:
            ハンドラーを呼び出した場合 True（成否は問わない）
        """
        parsed = parse_command(message.content, self.prefix)
        if parsed is None:
            return False

        name, raw_args = parsed
        command = self.registry.get(name)
        if command is None:
            logger.debug("Unknown command ignored", extra={"command": name})
            return False

        invocation = CommandInvocation(
            name=name,
            raw_args=raw_args,
            caller=message.author,
            channel=message.channel,
            guild=message.guild,
            caller_roles=caller_role_ids(message),
            message=message,
        )

        log_extra = {
            "command": name,
            "message_id": message.id,
            "user_id": message.author.id,
            "guild_id": message.guild.id if message.guild else None,
        }
        logger.info("Dispatching command", extra=log_extra)

        try:
            await command.handler(invocation)

        except (PermissionDeniedError, CommandUsageError) as e:
            logger.info(
                "Command rejected",
                extra={**log_extra, "reason": e.message},
            )
            await self._safe_reply(message, e.message)

        except ApiError as e:
            logger.error(
                "Command failed (API error)",
                extra={**log_extra, "error": e.message, "status_code": e.status_code},
            )

        except TranscriptError as e:
            logger.error(
                "Command failed (transcript error)",
                extra={**log_extra, "error": e.message},
            )

        except Exception as e:
            logger.error(
                "Unexpected error in command",
                extra={**log_extra, "error": str(e) or type(e).__name__},
                exc_info=True,
            )

        return True

    async def _safe_reply(self, message: discord.Message, content: str) -> None:
        try:
            await message.reply(content)
        except discord.HTTPException as e:
            logger.error(
                "Failed to send reply",
                extra={"message_id": message.id, "error": str(e)},
            )
