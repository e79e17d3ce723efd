"""コマンドハンドリングサービス

ping / meme / gif / details / chat / help の各コマンドの処理を実装します。
設定・APIクライアント・会話ログはコンストラクタで受け取り、
グローバルな状態は参照しません。
"""

import logging
from collections.abc import Callable
from typing import Optional

import discord

from rusty.api_client import MemeClient
from rusty.completion_client import CompletionClient
from rusty.config import BotSettings
from rusty.exceptions import CommandUsageError, PermissionDeniedError
from rusty.handlers.registry import CommandRegistry
from rusty.models import CommandInvocation, CompletionParams, MemeResult
from rusty.permissions import is_authorized
from rusty.state.transcript import ENTRY_PREFIX, Transcript

logger = logging.getLogger(__name__)

MISSING_ROLE_MESSAGE = "You don't have Required Role."
HELP_TITLE = "Rusty Help Information:"
FADED_PURPLE = discord.Color(0x8882C4)


def format_member_line(member: discord.Member) -> str:
    """details コマンドのメンバー1件分の行"""
    joined_at = member.joined_at.isoformat() if member.joined_at else "Unknown"
    return f"Member name: {member.name}\nID :{member.id}\nJoined at: {joined_at} "


class CommandHandler:
    """コマンドハンドリングサービス

    責務:
    - 各コマンドのハンドラー実装
    - レジストリへのコマンド登録
    - Discord Embedの生成
    """

    def __init__(
        self,
        settings: BotSettings,
        registry: CommandRegistry,
        meme_client: MemeClient,
        completion_client: CompletionClient,
        transcript: Transcript,
        avatar_url: Optional[Callable[[], Optional[str]]] = None,
    ):
        """初期化

        Args:
            settings: Bot設定（読み取り専用）
            registry: コマンドレジストリ（help の一覧にも使用）
            meme_client: ミームAPIクライアント
            completion_client: 補完APIクライアント
            transcript: 会話ログ
            avatar_url: Botのアバター画像URLを返す関数（help のサムネイル用）
        """
        self.settings = settings
        self.registry = registry
        self.meme_client = meme_client
        self.completion_client = completion_client
        self.transcript = transcript
        self.avatar_url = avatar_url or (lambda: None)
        self.completion_params = CompletionParams(
            engine=settings.completion_engine,
            stop=settings.completion_stop_sequences,
        )

        logger.info("CommandHandler initialized")

    def register_commands(self) -> None:
        """全コマンドをレジストリに登録"""
        self.registry.register("help", self.handle_help, "Show this message")
        self.registry.register("gif", self.handle_gif, "Respond with meme gif")
        self.registry.register("meme", self.handle_meme, "Respond with meme image")
        self.registry.register("ping", self.handle_ping, "Respond with Pong!")
        self.registry.register(
            "chat",
            self.handle_chat,
            "Respond with response obtained through OpenAI",
        )
        self.registry.register(
            "details",
            self.handle_details,
            "Respond with Server Details [Admin role Only]",
        )

    async def _signal_typing(self, channel: discord.abc.Messageable) -> None:
        """入力中表示（失敗してもコマンドは続行）"""
        try:
            await channel.typing()
        except discord.HTTPException as e:
            logger.warning("Failed to signal typing", extra={"error": str(e)})

    # === ローカルで応答するコマンド ===

    async def handle_ping(self, invocation: CommandInvocation) -> None:
        await self._signal_typing(invocation.channel)
        await invocation.message.reply("Pong!")

    async def handle_help(self, invocation: CommandInvocation) -> None:
        await invocation.channel.send(embed=self.create_help_embed())

    def create_help_embed(self) -> discord.Embed:
        """登録済みコマンドの一覧Embedを作成"""
        embed = discord.Embed(title=HELP_TITLE)
        for command in self.registry.commands():
            embed.add_field(
                name=f"{self.settings.command_prefix} {command.name}",
                value=command.summary or "-",
                inline=True,
            )

        thumbnail = self.avatar_url()
        if thumbnail:
            embed.set_thumbnail(url=thumbnail)
        return embed

    # === ミームAPI ===

    async def handle_meme(self, invocation: CommandInvocation) -> None:
        await self._signal_typing(invocation.channel)
        meme = await self.meme_client.fetch_meme()
        await invocation.message.reply(meme.url)

    async def handle_gif(self, invocation: CommandInvocation) -> None:
        await self._signal_typing(invocation.channel)
        meme = await self.meme_client.fetch_meme()
        await invocation.channel.send(embed=self.create_gif_embed(meme))

    def create_gif_embed(self, meme: MemeResult) -> discord.Embed:
        embed = discord.Embed(title=meme.title, color=discord.Color.dark_grey())
        embed.set_image(url=meme.preview_image)
        return embed

    # === 管理者コマンド ===

    async def handle_details(self, invocation: CommandInvocation) -> None:
        """サーバー情報とメンバー一覧を表示

        Raises:
            PermissionDeniedError: 管理者ロールを持っていない場合（ロールなし・DM含む）
        """
        if not is_authorized(invocation.caller_roles, self.settings.admin_role):
            logger.info(
                "Details command denied",
                extra={
                    "user_id": invocation.caller.id,
                    "role_count": len(invocation.caller_roles),
                },
            )
            raise PermissionDeniedError(
                MISSING_ROLE_MESSAGE,
                details={"user_id": invocation.caller.id},
            )

        guild = invocation.guild
        if guild is None:
            raise PermissionDeniedError(MISSING_ROLE_MESSAGE)

        owner = await guild.fetch_member(guild.owner_id)
        members = [
            member
            async for member in guild.fetch_members(limit=self.settings.member_fetch_limit)
        ]

        logger.info(
            "Reporting guild details",
            extra={"guild_id": guild.id, "member_count": len(members)},
        )

        await invocation.channel.send(embed=self.create_details_embed(guild, owner, members))
        for member in members:
            await invocation.channel.send(format_member_line(member))

    def create_details_embed(
        self,
        guild: discord.Guild,
        owner: discord.Member,
        members: list[discord.Member],
    ) -> discord.Embed:
        embed = discord.Embed(title=f"{guild.name} Server's Info:", color=FADED_PURPLE)
        embed.add_field(name="Owner", value=owner.mention, inline=True)
        embed.add_field(name="Server ID", value=str(guild.id), inline=True)
        embed.add_field(name="MemberCount", value=str(len(members)), inline=True)
        if guild.icon:
            embed.set_thumbnail(url=guild.icon.url)
        return embed

    # === 補完API ===

    async def handle_chat(self, invocation: CommandInvocation) -> None:
        """会話ログを文脈として補完APIに問い合わせ、結果を返信してログに追記

        Raises:
            CommandUsageError: メッセージが空の場合
        """
        message = invocation.raw_args.strip()
        if not message:
            raise CommandUsageError(f"Usage: {self.settings.command_prefix} chat <message>")

        # 読み込み→補完→追記 を1つのクリティカルセクションにする
        async with self.transcript.lock:
            context = await self.transcript.read_context(self.settings.transcript_context_chars)
            prompt = f"{context}{ENTRY_PREFIX}{message}\n"

            completion = await self.completion_client.complete(prompt, self.completion_params)

            if completion:
                try:
                    await invocation.message.reply(completion)
                except discord.HTTPException as e:
                    logger.error("Failed to send chat reply", extra={"error": str(e)})
            else:
                logger.warning(
                    "Empty completion, nothing to reply",
                    extra={"user_id": invocation.caller.id},
                )

            await self.transcript.append_exchange(message, completion)
