# Development backend settings (identity provider + credential documents)
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # --- basics ---
    PROJECT_NAME: str = "PassVault Dev Backend"
    API_V1_STR: str = "/api/v1"
    # Used to build the links in verification / reset emails
    PUBLIC_URL: str = "http://127.0.0.1:8000"
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    # --- JWT ---
    # Signing key for access tokens. The default is for local development only.
    SECRET_KEY: str = "INSECURE_DEFAULT_KEY_PLEASE_CHANGE_ME"
    ALGORITHM: str = "HS256"
    # 30 days
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 43200

    # --- database ---
    DATABASE_URL: str = "sqlite:///./passvault_dev.db"
    DATABASE_ECHO: bool = False

    # --- accounts ---
    PASSWORD_HASH_ITERATIONS: int = 600000
    MIN_PASSWORD_LENGTH: int = 6
    # Failed sign-ins before the account is locked for LOCKOUT_SECONDS
    MAX_FAILED_LOGINS: int = 5
    LOCKOUT_SECONDS: int = 300
    VERIFICATION_TOKEN_TTL: int = 86400
    RESET_TOKEN_TTL: int = 3600
    OAUTH_CODE_TTL: int = 120

    # --- development OAuth ---
    # The authorize endpoint signs in as this account without asking anyone
    OAUTH_DEV_EMAIL: str = "oauth.user@example.com"
    OAUTH_DEV_NAME: str = "OAuth User"
    OAUTH_DEV_EMAIL_VERIFIED: bool = True

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8",
                                      env_prefix="PASSVAULT_SERVER_", extra="ignore")

@lru_cache
def get_settings():
    return Settings()

settings = get_settings()
