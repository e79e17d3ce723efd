from __future__ import annotations

import pytest

from rusty.config import BotSettings
from rusty.handlers import CommandHandler, CommandRegistry, Dispatcher
from rusty.state.transcript import Transcript
from tests.fakes import ADMIN_ROLE, StubCompletionClient, StubMemeClient


@pytest.fixture
def settings(tmp_path) -> BotSettings:
    return BotSettings(
        discord_token="discord-token",
        command_prefix="Ru",
        openai_key="openai-key",
        admin_role=ADMIN_ROLE,
        transcript_path=str(tmp_path / "prompt.txt"),
    )


@pytest.fixture
def meme_payload() -> dict:
    return {"title": "T", "url": "U", "preview": ["a", "b", "c", "D"]}


@pytest.fixture
def meme_client(meme_payload) -> StubMemeClient:
    return StubMemeClient(meme_payload)


@pytest.fixture
def completion_client() -> StubCompletionClient:
    return StubCompletionClient()


@pytest.fixture
def transcript(settings) -> Transcript:
    return Transcript(settings.transcript_path)


@pytest.fixture
def registry() -> CommandRegistry:
    return CommandRegistry()


@pytest.fixture
def command_handler(settings, registry, meme_client, completion_client, transcript) -> CommandHandler:
    handler = CommandHandler(
        settings=settings,
        registry=registry,
        meme_client=meme_client,
        completion_client=completion_client,
        transcript=transcript,
        avatar_url=lambda: "https://cdn.example/avatar.png",
    )
    handler.register_commands()
    registry.freeze()
    return handler


@pytest.fixture
def dispatcher(settings, registry, command_handler) -> Dispatcher:
    return Dispatcher.from_settings(registry, settings)
