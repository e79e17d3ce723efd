"""
Tests for bot wiring and the entry point.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from rusty.main import RustyBot, build_intents, main, resolve_log_level, run_bot
from tests.fakes import make_message


@pytest.fixture
def bot(settings):
    return RustyBot(settings)


class TestRustyBot:

    def test_all_commands_registered_and_frozen(self, bot):
        assert bot.registry.names() == ["help", "gif", "meme", "ping", "chat", "details"]
        assert bot.registry.frozen

    def test_intents(self):
        intents = build_intents()

        assert intents.message_content
        assert intents.members

    def test_avatar_unknown_before_login(self, bot):
        assert bot._avatar_url() is None

    async def test_on_message_routes_to_dispatcher(self, bot):
        bot.dispatcher.handle_message = AsyncMock()
        message = make_message("Ru ping")

        await bot.on_message(message)

        bot.dispatcher.handle_message.assert_awaited_once_with(message)
        assert not bot._inflight

    async def test_on_message_swallows_errors(self, bot):
        bot.dispatcher.handle_message = AsyncMock(side_effect=RuntimeError("boom"))

        await bot.on_message(make_message("Ru ping"))

        assert not bot._inflight

    async def test_drain_waits_for_inflight_messages(self, bot):
        release = asyncio.Event()
        finished = []

        async def slow_handler(message):
            await release.wait()
            finished.append(message)

        bot.dispatcher.handle_message = slow_handler
        task = asyncio.create_task(bot.on_message(make_message("Ru chat hi")))
        await asyncio.sleep(0)
        assert len(bot._inflight) == 1

        drainer = asyncio.create_task(bot.drain())
        await asyncio.sleep(0)
        assert not drainer.done()

        release.set()
        await drainer
        await task
        assert len(finished) == 1


class TestMain:

    def test_missing_config_exits_with_error(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert main([str(tmp_path / "missing.toml")]) == 1

    def test_invalid_config_exits_with_error(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "config.toml"
        path.write_text('discord_token = "t"\n', encoding="utf-8")

        assert main([str(path)]) == 1


class TestShutdown:

    async def test_inflight_command_finishes_before_disconnect(self, bot, monkeypatch):
        events: list[str] = []
        disconnected = asyncio.Event()

        async def fake_start(self, token):
            await disconnected.wait()

        async def fake_close(self):
            events.append("close")
            disconnected.set()

        monkeypatch.setattr(RustyBot, "start", fake_start)
        monkeypatch.setattr(RustyBot, "close", fake_close)

        started = asyncio.Event()
        release = asyncio.Event()
        handled: list[str] = []

        async def slow_handler(message):
            handled.append(message.content)
            started.set()
            await release.wait()
            events.append("replied")

        bot.dispatcher.handle_message = slow_handler
        stop = asyncio.Event()
        runner = asyncio.create_task(run_bot(bot, "discord-token", stop=stop))
        inflight = asyncio.create_task(bot.on_message(make_message("Ru chat hi")))
        await started.wait()

        stop.set()
        while not bot.closing:
            await asyncio.sleep(0)

        # シャットダウン中に届いたメッセージは処理しない
        await asyncio.wait_for(bot.on_message(make_message("Ru ping")), timeout=1)
        assert handled == ["Ru chat hi"]
        assert events == []

        release.set()
        await asyncio.wait_for(runner, timeout=1)
        await inflight

        assert events[:2] == ["replied", "close"]


class TestBotAuthors:

    async def test_other_bots_are_ignored(self, bot):
        bot.dispatcher.handle_message = AsyncMock()
        message = make_message("Ru chat hi")
        message.author.bot = True

        await bot.on_message(message)

        bot.dispatcher.handle_message.assert_not_awaited()


class TestLogLevel:

    @pytest.mark.parametrize("value, expected", [("debug", "DEBUG"), (" Warning ", "WARNING"), ("INFO", "INFO")])
    def test_known_levels(self, value, expected):
        assert resolve_log_level(value) == expected

    @pytest.mark.parametrize("value", [None, "", "loud", "42"])
    def test_unknown_levels(self, value):
        assert resolve_log_level(value) is None

    def test_unknown_env_level_does_not_crash(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("LOG_LEVEL", "loud")

        assert main([str(tmp_path / "missing.toml")]) == 1
