"""Bot設定管理モジュール

TOML 設定ファイルから起動時に一度だけ読み込む。
読み込んだ設定は変更不可（frozen）で、グローバル変数ではなく
各クライアント・ハンドラーへコンストラクタ経由で渡される。
"""

import logging
from pathlib import Path
from typing import Literal, Union

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from rusty.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.toml"

# Discord のスノーフレークIDは符号なし64bit
_MAX_SNOWFLAKE = 2**64 - 1


class BotSettings(BaseSettings):
    """Bot設定クラス

    設定ファイルの値を型チェックとバリデーションにかけて保持します。
    環境変数 ``RUSTY_<KEY>`` が設定されていればファイルの値より優先されます。
    """

    model_config = SettingsConfigDict(
        env_prefix="RUSTY_",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # === 必須キー ===
    discord_token: str = Field(min_length=1)
    command_prefix: str = Field(min_length=1)
    openai_key: str = Field(min_length=1)
    admin_role: int = Field(ge=0, le=_MAX_SNOWFLAKE)

    # === 任意キー ===
    greeting_trigger: str = "hello ru"
    assistant_name: str = "Ru"
    transcript_path: str = "prompt.txt"
    transcript_context_chars: int = Field(default=6000, ge=0)
    meme_api_url: str = "https://meme-api.com/gimme"
    completion_api_url: str = "https://api.openai.com/v1"
    completion_engine: str = "davinci-002"
    http_timeout: float = Field(default=30.0, gt=0)
    member_fetch_limit: int = Field(default=500, gt=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # ファイルの値は init 引数として渡される。環境変数 > ファイル の優先順位
        return (env_settings, init_settings)

    @property
    def help_trigger(self) -> str:
        """プレゼンスに表示するヘルプコマンド"""
        return f"{self.command_prefix} help"

    @property
    def completion_stop_sequences(self) -> tuple[str, ...]:
        """補完を打ち切る停止シーケンス"""
        return ("\nYou:", f"\n{self.assistant_name}:")


def load_settings(path: Union[str, Path] = DEFAULT_CONFIG_PATH) -> BotSettings:
    """設定ファイルを読み込む

    Args:
        path: TOML 設定ファイルのパス

    Returns:
        変更不可の設定オブジェクト

    Raises:
        ConfigError: ファイルがない、構文が不正、必須キーが欠けている場合
    """
    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigError(
            f"Config file not found: {config_path}",
            details={"path": str(config_path)},
        )

    try:
        values = TomlConfigSettingsSource(BotSettings, toml_file=config_path)()
        settings = BotSettings(**values)
    except ValidationError as e:
        errors = e.errors(include_input=False)
        fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in errors)
        raise ConfigError(
            f"Invalid config in {config_path}: {fields}",
            details={"path": str(config_path), "errors": errors},
        ) from e
    except (ValueError, OSError) as e:
        # TOML の構文エラーは ValueError のサブクラス
        raise ConfigError(
            f"Failed to read config {config_path}: {e}",
            details={"path": str(config_path)},
        ) from e

    logger.info(
        "Config loaded",
        extra={"path": str(config_path), "command_prefix": settings.command_prefix},
    )
    return settings
