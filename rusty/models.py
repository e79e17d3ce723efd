"""Bot用型定義

コマンド呼び出しと外部APIのリクエスト/レスポンスの型を定義します。
外部APIのレスポンスは pydantic で検証し、形が違えば呼び出し失敗として扱います。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import discord
from pydantic import BaseModel, Field


@dataclass(frozen=True)
class CommandInvocation:
    """1件の受信メッセージから組み立てたコマンド呼び出し"""

    name: str
    raw_args: str
    caller: discord.abc.User
    channel: discord.abc.Messageable
    guild: Optional[discord.Guild]
    caller_roles: frozenset[int]
    message: discord.Message


@dataclass(frozen=True)
class CompletionParams:
    """補完APIに渡すサンプリングパラメータ"""

    engine: str = "davinci-002"
    max_tokens: int = 256
    temperature: float = 0.5
    top_p: float = 0.3
    n: int = 1
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.5
    stop: tuple[str, ...] = ("\nYou:", "\nRu:")

    def to_payload(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.engine,
            "prompt": prompt,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "n": self.n,
            "presence_penalty": self.presence_penalty,
            "frequency_penalty": self.frequency_penalty,
            "stop": list(self.stop),
        }


class CompletionChoice(BaseModel):
    """補完候補"""
    text: str


class CompletionResponse(BaseModel):
    """補完APIレスポンス（候補は最低1件）"""
    choices: list[CompletionChoice] = Field(min_length=1)


class MemeResult(BaseModel):
    """ミームAPIレスポンス

    preview は解像度違いのプレビュー画像URLの配列。4番目（index 3）を使うため最低4件必要。
    """
    title: str
    url: str
    preview: list[str] = Field(min_length=4)

    @property
    def preview_image(self) -> str:
        return self.preview[3]
