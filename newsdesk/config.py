"""Newsdesk — Configuration.

Configuration is loaded from:
    1. Built-in defaults (this file)
    2. Environment variables prefixed with NEWSDESK_ (``NEWSDESK_RATE_LIMIT__MAX_ATTEMPTS=3``)
    3. System config: /etc/newsdesk/config.yaml
    4. User config:   ~/.newsdesk/config.yaml
    5. An explicit config file passed to ``Settings.load()``

YAML blocks replace whole top-level sections and take precedence over the
environment for the sections they define.

Call ``Settings.load()`` once at startup and hand the instance to
``Newsdesk.from_settings()``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_MINUTE_MS = 60_000


# ---------------------------------------------------------------------------
# Sub-configuration blocks
# ---------------------------------------------------------------------------


class RateLimitConfig(BaseModel):
    """Login lockout policy."""

    max_attempts: Annotated[int, Field(ge=1, le=100)] = 5
    window_ms: Annotated[int, Field(ge=1_000)] = Field(
        default=15 * _MINUTE_MS,
        description="Sliding window in which failed attempts are counted.",
    )
    lockout_ms: Annotated[int, Field(ge=1_000)] = Field(
        default=30 * _MINUTE_MS,
        description="How long an identity stays locked once the threshold is hit.",
    )


class AuthConfig(BaseModel):
    timeout_seconds: Annotated[float, Field(gt=0, le=300)] = Field(
        default=10.0,
        description=(
            "Maximum seconds to wait for the identity provider. A timeout is "
            "not counted as a failed attempt."
        ),
    )
    session_file: Path = Field(
        default=Path("~/.newsdesk/session.json"),
        description="Where 'remember me' sessions are persisted across restarts.",
    )


class StorageConfig(BaseModel):
    backend: Literal["memory", "sqlite"] = "memory"
    articles_db_path: Path = Path("~/.newsdesk/articles.db")
    audit_db_path: Path = Path("~/.newsdesk/audit.db")


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    format: Literal["json", "console"] = "console"
    file: Path | None = None


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="NEWSDESK_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("storage", mode="before")
    @classmethod
    def expand_storage_paths(cls, v: object) -> object:
        if isinstance(v, dict):
            for key in ("articles_db_path", "audit_db_path"):
                if key in v and isinstance(v[key], str):
                    v[key] = Path(v[key]).expanduser()
        return v

    @classmethod
    def load(cls, config_file: Path | None = None) -> "Settings":
        """Load settings from YAML files + environment variables."""
        data: dict[str, object] = {}

        candidates = [
            Path("/etc/newsdesk/config.yaml"),
            Path.home() / ".newsdesk" / "config.yaml",
        ]
        if config_file:
            candidates.append(config_file)

        for path in candidates:
            if path.exists():
                import yaml

                with path.open() as f:
                    loaded = yaml.safe_load(f) or {}
                    data.update(loaded)

        return cls(**data)


# Module-level singleton, replaced by ``Settings.load()`` at startup.
_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def override_settings(settings: Settings) -> None:
    """Replace the module-level singleton. Used in tests."""
    global _settings
    _settings = settings
