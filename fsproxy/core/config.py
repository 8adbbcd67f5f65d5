from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "fsproxy"
    app_env: str = "development"
    port: int = 5243

    # Storage backend (link endpoint lives at {backend_address}/api/fs/link)
    backend_address: str = ""
    backend_token: str = ""
    backend_timeout_seconds: float = 10.0

    # Full public address of this proxy, used to detect redirects back to us
    public_address: str = ""

    # Privacy warning: with signing disabled anyone who knows a path can fetch it.
    disable_sign: bool = False

    upstream_timeout_seconds: float = 60.0
    upstream_keepalive_connections: int = 20
    max_redirects: int = 10

    https: bool = False
    cert_file: str = "server.crt"
    key_file: str = "server.key"

    log_level: str = "INFO"
    log_json: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore", frozen=True)

    @field_validator("backend_address", "public_address")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
