# Client configuration: which backend to talk to and how
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    # "http" talks to the hosted service, "memory" keeps everything in-process (offline/demo)
    BACKEND: Literal["http", "memory"] = "http"

    # --- hosted service ---
    SERVER_URL: str = "http://127.0.0.1:8000"
    API_V1_STR: str = "/api/v1"
    REQUEST_TIMEOUT: float = 10.0

    # Seconds between revision checks while a live subscription is open
    POLL_INTERVAL: float = 2.0

    # --- sign-in ---
    OAUTH_PROVIDER: str = "google"
    OAUTH_TIMEOUT: float = 120.0
    # Where the verification link sends the user after confirming
    VERIFICATION_CONTINUE_URL: str | None = None

    # --- offline backend ---
    # No inbox offline: sending the verification email counts as clicking its link
    OFFLINE_AUTO_VERIFY: bool = True
    OFFLINE_OAUTH_EMAIL: str | None = "offline.user@example.com"

    # --- UI ---
    DEFAULT_PASSWORD_LENGTH: int = 16
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8",
                                      env_prefix="PASSVAULT_", extra="ignore")


@lru_cache
def get_settings() -> ClientSettings:
    return ClientSettings()
