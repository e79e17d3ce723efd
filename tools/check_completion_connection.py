#!/usr/bin/env python3
"""
補完API・ミームAPI接続確認スクリプト
"""

import asyncio
import sys

from dotenv import load_dotenv

from rusty.api_client import MemeClient
from rusty.completion_client import CompletionClient
from rusty.config import DEFAULT_CONFIG_PATH, load_settings
from rusty.exceptions import ApiError, ConfigError
from rusty.models import CompletionParams


async def check_connections(config_path: str) -> bool:
    """補完APIとミームAPIに1回ずつリクエストを送る"""
    print("=" * 60)
    print("外部API 接続確認")
    print("=" * 60)

    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        print(f"❌ 設定エラー: {e.message}")
        return False

    print(f"  completion_api_url: {settings.completion_api_url}")
    print(f"  completion_engine: {settings.completion_engine}")
    print(f"  meme_api_url: {settings.meme_api_url}")
    print()

    ok = True

    try:
        meme = await MemeClient.from_settings(settings).fetch_meme()
        print(f"✅ ミームAPI: {meme.title} -> {meme.url}")
    except ApiError as e:
        print(f"❌ ミームAPI: {e.message}")
        ok = False

    try:
        params = CompletionParams(
            engine=settings.completion_engine,
            max_tokens=16,
            stop=settings.completion_stop_sequences,
        )
        text = await CompletionClient.from_settings(settings).complete("You: Say OK.\n", params)
        print(f"✅ 補完API: {text!r}")
    except ApiError as e:
        print(f"❌ 補完API: {e.message}")
        ok = False

    return ok


if __name__ == "__main__":
    load_dotenv()
    path = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_CONFIG_PATH
    sys.exit(0 if asyncio.run(check_connections(path)) else 1)
