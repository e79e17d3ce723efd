"""
Tests for loading the TOML config file.
"""

import pytest
from pydantic import ValidationError

from rusty.config import BotSettings, load_settings
from rusty.exceptions import ConfigError

VALID_CONFIG = """
discord_token = "discord-token"
command_prefix = "Ru"
openai_key = "openai-key"
admin_role = 987654321012345678
"""


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    for key in ("RUSTY_DISCORD_TOKEN", "RUSTY_COMMAND_PREFIX", "RUSTY_OPENAI_KEY", "RUSTY_ADMIN_ROLE"):
        monkeypatch.delenv(key, raising=False)


def write_config(tmp_path, text: str):
    path = tmp_path / "config.toml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadSettings:
    """Tests for load_settings."""

    def test_valid_config(self, tmp_path):
        settings = load_settings(write_config(tmp_path, VALID_CONFIG))

        assert settings.discord_token == "discord-token"
        assert settings.command_prefix == "Ru"
        assert settings.openai_key == "openai-key"
        assert settings.admin_role == 987654321012345678

    def test_defaults_for_optional_keys(self, tmp_path):
        settings = load_settings(write_config(tmp_path, VALID_CONFIG))

        assert settings.greeting_trigger == "hello ru"
        assert settings.transcript_path == "prompt.txt"
        assert settings.completion_stop_sequences == ("\nYou:", "\nRu:")
        assert settings.help_trigger == "Ru help"

    def test_optional_keys_override_defaults(self, tmp_path):
        text = VALID_CONFIG + 'transcript_path = "chat.txt"\nlog_level = "debug"\n'
        settings = load_settings(write_config(tmp_path, text))

        assert settings.transcript_path == "chat.txt"
        assert settings.log_level == "DEBUG"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_settings(tmp_path / "missing.toml")

    def test_malformed_toml(self, tmp_path):
        with pytest.raises(ConfigError):
            load_settings(write_config(tmp_path, "discord_token = \n[[["))

    def test_missing_required_key(self, tmp_path):
        text = VALID_CONFIG.replace('openai_key = "openai-key"\n', "")

        with pytest.raises(ConfigError, match="openai_key"):
            load_settings(write_config(tmp_path, text))

    def test_negative_admin_role_rejected(self, tmp_path):
        text = VALID_CONFIG.replace("987654321012345678", "-1")

        with pytest.raises(ConfigError, match="admin_role"):
            load_settings(write_config(tmp_path, text))

    def test_admin_role_must_be_integer(self, tmp_path):
        text = VALID_CONFIG.replace("987654321012345678", '"admins"')

        with pytest.raises(ConfigError):
            load_settings(write_config(tmp_path, text))

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("RUSTY_COMMAND_PREFIX", "!")

        settings = load_settings(write_config(tmp_path, VALID_CONFIG))

        assert settings.command_prefix == "!"


class TestSettingsImmutability:
    """Settings are read-only once loaded."""

    def test_assignment_rejected(self, tmp_path):
        settings = load_settings(write_config(tmp_path, VALID_CONFIG))

        with pytest.raises(ValidationError):
            settings.admin_role = 1

        assert settings.admin_role == 987654321012345678

    def test_direct_construction(self):
        settings = BotSettings(
            discord_token="t",
            command_prefix="Ru",
            openai_key="k",
            admin_role=1,
        )
        assert settings.admin_role == 1
