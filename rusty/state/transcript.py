"""会話ログ管理

chat コマンドの会話ログ（プロンプトの文脈）を1つのテキストファイルで管理します。
ログは追記のみで、編集・削除は行いません。
"""

import asyncio
import logging
from pathlib import Path
from typing import Union

from rusty.exceptions import TranscriptError

logger = logging.getLogger(__name__)

ENTRY_PREFIX = "You: "


def format_entry(message: str, completion: str) -> str:
    """1往復分のログエントリを組み立てる"""
    return f"{ENTRY_PREFIX}{message}\n{completion}\n"


def _first_entry_offset(text: str) -> int:
    """最初のエントリの開始位置（エントリがなければ末尾）"""
    if text.startswith(ENTRY_PREFIX):
        return 0
    index = text.find("\n" + ENTRY_PREFIX)
    return len(text) if index == -1 else index + 1


class Transcript:
    """会話ログマネージャー

    デプロイ全体で1つのログを共有します（ユーザー・チャンネルごとの分離はしない）。
    ファイルI/Oはワーカースレッドで行い、イベントループをブロックしません。
    """

    def __init__(self, path: Union[str, Path]) -> None:
        """初期化

        Args:
            path: ログファイルのパス（存在しない場合は空として扱う）
        """
        self.path = Path(path)
        # 読み込み→補完→追記 を直列化するためのロック
        self.lock = asyncio.Lock()

        logger.info("Transcript initialized", extra={"path": str(self.path)})

    def _read_sync(self) -> str:
        if not self.path.exists():
            return ""
        return self.path.read_text(encoding="utf-8")

    def _append_sync(self, entry: str) -> None:
        with self.path.open("a", encoding="utf-8") as f:
            f.write(entry)

    async def read_all(self) -> str:
        """ログ全文を読み込む（副作用なし）

        Raises:
            TranscriptError: ファイルを読めない場合
        """
        try:
            text = await asyncio.to_thread(self._read_sync)
        except (OSError, UnicodeDecodeError) as e:
            logger.error(
                "Failed to read transcript",
                extra={"path": str(self.path), "error": str(e)},
            )
            raise TranscriptError(
                f"Failed to read transcript: {e}",
                details={"path": str(self.path)},
            ) from e

        logger.debug(
            "Transcript read",
            extra={"path": str(self.path), "length": len(text)},
        )
        return text

    async def append(self, entry: str) -> None:
        """ログ末尾に追記する

        Args:
            entry: 追記する文字列

        Raises:
            TranscriptError: ファイルに書き込めない場合
        """
        try:
            await asyncio.to_thread(self._append_sync, entry)
        except OSError as e:
            logger.error(
                "Failed to append transcript",
                extra={"path": str(self.path), "error": str(e)},
            )
            raise TranscriptError(
                f"Failed to append transcript: {e}",
                details={"path": str(self.path)},
            ) from e

        logger.debug(
            "Transcript appended",
            extra={"path": str(self.path), "entry_length": len(entry)},
        )

    async def append_exchange(self, message: str, completion: str) -> None:
        """ユーザー発言と補完結果の1往復を追記"""
        await self.append(format_entry(message, completion))

    async def read_context(self, max_chars: int = 0) -> str:
        """プロンプト用の文脈を取得

        先頭のエントリ以前の部分（前置きのプロンプト）は常に残し、
        エントリ部分は新しい方から max_chars 文字以内をエントリ境界で切り出す。

        Args:
            max_chars: エントリ部分の最大文字数（0 なら全文）

        Returns:
            プロンプト用の文脈
        """
        text = await self.read_all()
        if max_chars <= 0:
            return text

        offset = _first_entry_offset(text)
        preamble, entries = text[:offset], text[offset:]
        if len(entries) <= max_chars:
            return text

        start = len(entries) - max_chars
        boundary = entries.find("\n" + ENTRY_PREFIX, start - 1)
        # 1エントリだけで上限を超える場合は何も残さない
        kept = "" if boundary == -1 else entries[boundary + 1:]

        logger.debug(
            "Transcript context truncated",
            extra={
                "path": str(self.path),
                "total_length": len(text),
                "kept_length": len(preamble) + len(kept),
            },
        )
        return preamble + kept
