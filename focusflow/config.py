"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """FocusFlow configuration. All values come from environment variables."""

    # Database
    database_path: Path = Field(default=Path("data/focusflow.db"))

    # Reminder scheduler
    reminder_poll_seconds: int = Field(default=60, ge=1)
    default_timezone: str = Field(default="UTC")

    # HTTP
    http_host: str = Field(default="0.0.0.0")
    http_port: int = Field(default=3000)

    # Identity: comma-separated "token:user_id" pairs
    api_tokens: str = Field(default="")

    # Firebase Cloud Messaging (HTTP v1)
    fcm_project_id: str = Field(default="")
    fcm_service_account_file: str = Field(default="")
    fcm_access_token: str = Field(default="")
    fcm_base_url: str = Field(default="https://fcm.googleapis.com")
    push_timeout_seconds: float = Field(default=10.0)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    @property
    def reminder_poll_ms(self) -> int:
        return self.reminder_poll_seconds * 1000

    def get_api_tokens(self) -> dict[str, str]:
        """Parse API_TOKENS into a ``{token: user_id}`` mapping."""
        tokens: dict[str, str] = {}
        for entry in self.api_tokens.split(","):
            token, sep, user_id = entry.strip().partition(":")
            if not sep or not token.strip() or not user_id.strip():
                continue
            tokens[token.strip()] = user_id.strip()
        return tokens


settings = Settings()
