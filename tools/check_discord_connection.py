#!/usr/bin/env python3
"""
Discord Bot接続確認スクリプト

config.toml のトークンでログインし、参加サーバーと Intents の状態を表示して終了する。
"""

import sys

import discord
from dotenv import load_dotenv

from rusty.config import DEFAULT_CONFIG_PATH, load_settings
from rusty.exceptions import ConfigError
from rusty.main import build_intents


def check_discord_connection(config_path: str) -> bool:
    """Discordトークンの検証"""
    print("=" * 60)
    print("Discord Bot 接続確認")
    print("=" * 60)

    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        print(f"❌ 設定エラー: {e.message}")
        return False

    token = settings.discord_token
    masked_token = f"{token[:8]}...{token[-4:]}" if len(token) > 12 else "***"
    print(f"📋 discord_token: {masked_token}")
    print(f"📋 command_prefix: {settings.command_prefix!r}")
    print()

    class CheckClient(discord.Client):
        ready_event_fired = False

        async def on_ready(self):
            self.ready_event_fired = True
            print(f"✅ 接続成功: {self.user.name} (ID: {self.user.id})")
            for guild in self.guilds:
                print(f"  - {guild.name} (ID: {guild.id}, メンバー数: {guild.member_count})")
            if not self.guilds:
                print("⚠️  まだどのサーバーにも参加していません。")
            await self.close()

    client = CheckClient(intents=build_intents())

    try:
        client.run(token, log_handler=None)
    except discord.LoginFailure:
        print("❌ ログイン失敗: トークンが無効です。")
        return False
    except discord.PrivilegedIntentsRequired:
        print("❌ 特権インテントが有効になっていません。")
        print("   Developer Portal の Bot タブで MESSAGE CONTENT と SERVER MEMBERS を有効化してください。")
        return False

    return client.ready_event_fired


if __name__ == "__main__":
    load_dotenv()
    path = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_CONFIG_PATH
    sys.exit(0 if check_discord_connection(path) else 1)
