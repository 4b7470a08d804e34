from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
    )

    app_name: str = 'SchoolDesk Documents'

    data_dir: Path = Field(default=Path('./data'))
    log_level: str = 'INFO'

    # Thai font assets. Local paths win over URLs when both are set.
    font_regular_url: str = 'https://script-app.github.io/font/THSarabunNew.ttf'
    font_bold_url: str = 'https://script-app.github.io/font/THSarabunNew%20Bold.ttf'
    font_regular_path: Path | None = None
    font_bold_path: Path | None = None

    # Used by the leave form when no custom emblem is supplied. Empty disables it.
    emblem_url: str | None = (
        'https://upload.wikimedia.org/wikipedia/commons/thumb/8/8f/'
        'Emblem_of_the_Ministry_of_Education_of_Thailand.svg/'
        '1200px-Emblem_of_the_Ministry_of_Education_of_Thailand.svg.png'
    )
    asset_timeout_seconds: int = 30

    # Telegram notifications
    telegram_bot_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices('TELEGRAM_BOT_TOKEN', 'BOT_TOKEN'),
    )
    telegram_api_base: str = 'https://api.telegram.org'
    telegram_timeout_seconds: int = 15
    app_base_url: str = 'http://localhost:3000'

    default_school_name: str = 'โรงเรียน...'


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    (settings.data_dir / 'collections').mkdir(parents=True, exist_ok=True)
    return settings
