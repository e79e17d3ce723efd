"""
Discord Bot メインファイル
"""

import asyncio
import logging
import os
import signal
import sys
from typing import Optional

import discord
from dotenv import load_dotenv

from rusty.api_client import MemeClient
from rusty.completion_client import CompletionClient
from rusty.config import DEFAULT_CONFIG_PATH, BotSettings, load_settings
from rusty.exceptions import ConfigError
from rusty.handlers import CommandHandler, CommandRegistry, Dispatcher
from rusty.state.transcript import Transcript

# ロガー設定
logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
SHUTDOWN_MESSAGE = "Received Ctrl + C, Shutting Down."


def resolve_log_level(value: Optional[str]) -> Optional[str]:
    """ログレベル名を正規化（未知の名前・未設定なら None）"""
    if not value:
        return None
    level = value.strip().upper()
    return level if level in logging.getLevelNamesMapping() else None


def build_intents() -> discord.Intents:
    """Intentsの設定"""
    intents = discord.Intents.default()
    intents.message_content = True  # メッセージ内容の取得
    intents.members = True  # details コマンドのメンバー一覧取得
    return intents


class RustyBot(discord.Client):
    """プレフィックスコマンドで応答するDiscord Bot

    責務:
    - Discord クライアントのライフサイクル管理
    - イベントルーティング（Dispatcher への委譲）
    - 処理中のメッセージの追跡（シャットダウン時に完了を待つ）
    """

    def __init__(self, settings: BotSettings) -> None:
        super().__init__(intents=build_intents())
        self.settings = settings

        # 依存関係の初期化
        self.registry = CommandRegistry()
        self.meme_client = MemeClient.from_settings(settings)
        self.completion_client = CompletionClient.from_settings(settings)
        self.transcript = Transcript(settings.transcript_path)

        # ハンドラーの初期化（依存性注入）
        self.command_handler = CommandHandler(
            settings=settings,
            registry=self.registry,
            meme_client=self.meme_client,
            completion_client=self.completion_client,
            transcript=self.transcript,
            avatar_url=self._avatar_url,
        )
        self.command_handler.register_commands()
        self.registry.freeze()

        self.dispatcher = Dispatcher.from_settings(self.registry, settings)
        self._inflight: set[asyncio.Task] = set()
        self._closing = False

        logger.info("RustyBot initialized")

    @property
    def closing(self) -> bool:
        return self._closing

    def _avatar_url(self) -> Optional[str]:
        return self.user.display_avatar.url if self.user else None

    async def on_ready(self) -> None:
        """Bot起動時の処理"""
        print(f"[ Ready ] {self.user.name} is connected.")
        for guild in self.guilds:
            print(f"    - {guild.name}")

        await self.change_presence(
            activity=discord.Activity(
                type=discord.ActivityType.listening,
                name=self.settings.help_trigger,
            ),
            status=discord.Status.idle,
        )

        logger.info(
            "Bot ready",
            extra={
                "user": str(self.user),
                "user_id": self.user.id,
                "guild_count": len(self.guilds),
            },
        )

    async def on_message(self, message: discord.Message) -> None:
        """メッセージ受信時の処理 - ルーティングのみ"""
        # 自分と他のBotのメッセージは無視
        if message.author == self.user or message.author.bot:
            return

        # シャットダウン開始後は新しいメッセージを受け付けない
        if self._closing:
            logger.debug("Message ignored during shutdown", extra={"message_id": message.id})
            return

        task = asyncio.current_task()
        if task is not None:
            self._inflight.add(task)
        try:
            await self.dispatcher.handle_message(message)
        except Exception as e:
            logger.error(
                "Error handling message",
                extra={"message_id": message.id, "error": str(e)},
                exc_info=True,
            )
        finally:
            if task is not None:
                self._inflight.discard(task)

    async def drain(self) -> None:
        """処理中のメッセージがすべて終わるまで待つ"""
        pending = [task for task in self._inflight if task is not asyncio.current_task()]
        if not pending:
            return
        logger.info("Waiting for in-flight commands", extra={"count": len(pending)})
        await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        """新しいメッセージの受付を止め、処理中のコマンドの完了を待ってから切断する

        close() は HTTP セッションも閉じるため、drain() より後に呼ぶ必要がある。
        """
        self._closing = True
        await self.drain()
        await self.close()


async def run_bot(bot: RustyBot, token: str, stop: Optional[asyncio.Event] = None) -> None:
    """Botを起動し、SIGINT/SIGTERM（または stop イベント）で停止する"""
    if stop is None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:
                # Windows では KeyboardInterrupt で main() に戻る
                pass

    async with bot:
        runner = asyncio.create_task(bot.start(token))
        waiter = asyncio.create_task(stop.wait())
        done, _ = await asyncio.wait({runner, waiter}, return_when=asyncio.FIRST_COMPLETED)

        if waiter in done:
            logger.info(SHUTDOWN_MESSAGE)
            await bot.shutdown()
        else:
            waiter.cancel()

        await runner


def main(argv: Optional[list[str]] = None) -> int:
    """
    メインエントリーポイント：Discord Botを起動する

    設定ファイルのパスは 第1引数 > 環境変数 RUSTY_CONFIG > config.toml の順で決まる。

    Returns:
        終了コード（設定エラー・ログイン失敗時は 1）
    """
    load_dotenv()
    args = sys.argv[1:] if argv is None else argv

    raw_level = os.getenv("LOG_LEVEL")
    env_level = resolve_log_level(raw_level)
    logging.basicConfig(level=env_level or "INFO", format=LOG_FORMAT)
    if raw_level and env_level is None:
        logger.warning(f"Ignoring unknown LOG_LEVEL {raw_level!r}")

    config_path = args[0] if args else os.getenv("RUSTY_CONFIG", DEFAULT_CONFIG_PATH)
    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        logger.error(f"Failed to load config: {e.message}", extra={"path": config_path})
        return 1

    if not env_level:
        logging.getLogger().setLevel(settings.log_level)

    logger.info("Starting Discord Bot", extra={"prefix": settings.command_prefix})
    try:
        asyncio.run(run_bot(RustyBot(settings), settings.discord_token))
    except discord.LoginFailure as e:
        logger.error(f"Discord login failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info(SHUTDOWN_MESSAGE)

    logger.info("Bot stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
