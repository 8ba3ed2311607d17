"""Application settings loaded from environment variables.

Configuration file discovery (in priority order):
1. OS environment variables (always highest priority)
2. FINSYNC_ENV_FILE environment variable (absolute path to .env file)
3. config/.env.dev - local development
4. config/.env - production/Docker

Uses pydantic-settings for automatic type coercion and validation.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_project_root() -> Path:
    """Find the project root directory."""
    current = Path(__file__).resolve().parent

    for parent in [current, *current.parents]:
        if (parent / "config").is_dir():
            return parent
        if (parent / ".git").is_dir():
            return parent
        if parent == Path("/app"):
            return parent

    return Path(__file__).resolve().parents[2]


def get_config_dir() -> Path:
    """Get the config directory path."""
    return _find_project_root() / "config"


def _resolve_env_file_path() -> Path | None:
    """Resolve the .env file path.

    Priority:
    1. FINSYNC_ENV_FILE env var (full path)
    2. config/.env.dev (local development)
    3. config/.env (production)
    """
    env_file_path = os.environ.get("FINSYNC_ENV_FILE")
    if env_file_path:
        path = Path(env_file_path)
        if not path.is_absolute():
            path = _find_project_root() / path
        if path.exists():
            return path

    config_dir = get_config_dir()

    dev_env = config_dir / ".env.dev"
    if dev_env.exists():
        return dev_env

    prod_env = config_dir / ".env"
    if prod_env.exists():
        return prod_env

    return None


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Values are loaded from:
    1. OS environment variables (highest priority)
    2. .env file (config/.env.dev or config/.env)
    3. Default values
    """

    model_config = SettingsConfigDict(
        env_file=_resolve_env_file_path(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "finsync"
    debug: bool = False

    # Identity assertions are issued by the auth service; we only verify them
    identity_jwt_secret: SecretStr = SecretStr("")
    identity_jwt_algorithm: str = "HS256"
    identity_tenant_claim: str = "tenant_id"

    # Databases
    database_primary_url: str = "sqlite+aiosqlite:///./data/finsync.db"
    # JSON object: {"eu-west-1": "postgresql+asyncpg://...", ...}
    database_replica_urls: dict[str, str] = {}
    deployment_region: str = "local"
    replica_region_preference: list[str] = []
    read_after_write_window_seconds: float = 10.0
    mutation_marker_cache_size: int = 10_000

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_cors_origins: str = ""

    @field_validator("api_cors_origins", mode="before")
    @classmethod
    def _validate_cors_origins(cls, v: Any) -> str:
        """Ensure cors_origins is stored as comma-separated string."""
        if isinstance(v, list):
            return ",".join(v)
        return str(v) if v else ""

    # Sync orchestration
    sync_max_attempts: int = 3
    sync_backoff_base_seconds: float = 1.0
    sync_backoff_cap_seconds: float = 10.0
    sync_per_connection_concurrency: int = 5
    sync_global_concurrency: int = 20
    sync_full_history_days: int = 730
    sync_latest_days: int = 30
    provider_timeout_seconds: float = 30.0
    schedule_interval_hours: float = 12.0

    # Plaid
    plaid_enabled: bool = False
    plaid_env: Literal["sandbox", "development", "production"] = "sandbox"
    plaid_client_id: str = ""
    plaid_secret: SecretStr = SecretStr("")

    # Teller
    teller_enabled: bool = False
    teller_base_url: str = "https://api.teller.io"
    teller_certificate_path: str | None = None
    teller_private_key_path: str | None = None
    teller_signing_secret: SecretStr = SecretStr("")

    # GoCardless Bank Account Data
    gocardless_enabled: bool = False
    gocardless_base_url: str = "https://bankaccountdata.gocardless.com"
    gocardless_secret_id: str = ""
    gocardless_secret_key: SecretStr = SecretStr("")

    # Enable Banking
    enablebanking_enabled: bool = False
    enablebanking_base_url: str = "https://api.enablebanking.com"
    enablebanking_application_id: str = ""
    enablebanking_private_key_path: str | None = None

    # Downstream notification collaborator (empty = log only)
    notification_webhook_url: str = ""
    notification_timeout_seconds: float = 10.0

    # Logging (LOG_ prefix)
    log_level: str = "INFO"

    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [o.strip() for o in self.api_cors_origins.split(",") if o.strip()]

    @property
    def plaid_base_url(self) -> str:
        return f"https://{self.plaid_env}.plaid.com"


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings."""
    return Settings()


def clear_settings_cache() -> None:
    """Clear the cached settings (used by tests)."""
    get_settings.cache_clear()
