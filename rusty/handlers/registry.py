"""コマンドレジストリ

コマンド名とハンドラーの対応を保持します。
起動時に登録を済ませて freeze() し、実行中は変更しません。
"""

import logging
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from typing import Optional

from rusty.exceptions import DuplicateCommandError, RegistryFrozenError
from rusty.models import CommandInvocation

logger = logging.getLogger(__name__)

HandlerFunc = Callable[[CommandInvocation], Awaitable[None]]


@dataclass(frozen=True)
class Command:
    """登録済みコマンド"""

    name: str
    handler: HandlerFunc
    summary: str = ""


class CommandRegistry:
    """コマンド名 → ハンドラー の対応表

    名前は大文字小文字を区別し、重複登録は起動時エラーとします。
    """

    def __init__(self) -> None:
        self._commands: dict[str, Command] = {}
        self._frozen = False

    def register(self, name: str, handler: HandlerFunc, summary: str = "") -> Command:
        """コマンドを登録

        Args:
            name: コマンド名（空白を含まないこと）
            handler: ハンドラー
            summary: help に表示する説明

        Returns:
            登録したコマンド

        Raises:
            DuplicateCommandError: 同名のコマンドが登録済みの場合
            RegistryFrozenError: freeze() 後に呼ばれた場合
        """
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register '{name}': registry is frozen",
                details={"name": name},
            )
        if not name or name != name.strip() or len(name.split()) != 1:
            raise ValueError(f"Invalid command name: {name!r}")
        if name in self._commands:
            raise DuplicateCommandError(
                f"Command '{name}' is already registered",
                details={"name": name},
            )

        command = Command(name=name, handler=handler, summary=summary)
        self._commands[name] = command
        logger.info("Registered command", extra={"command": name})
        return command

    def freeze(self) -> None:
        """以降の登録を禁止する"""
        self._frozen = True
        logger.info("Command registry frozen", extra={"commands": self.names()})

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> Optional[Command]:
        return self._commands.get(name)

    def names(self) -> list[str]:
        """登録順のコマンド名一覧"""
        return list(self._commands)

    def commands(self) -> list[Command]:
        """登録順のコマンド一覧"""
        return list(self._commands.values())

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def __iter__(self) -> Iterator[Command]:
        return iter(self.commands())

    def __len__(self) -> int:
        return len(self._commands)
