"""
Configuration Module for the Jito Bundle Relay client.

Settings are loaded from environment variables (or a .env file) using
Pydantic v2 BaseSettings, with validation and type safety.

Usage:
    from config import get_settings
    settings = get_settings()
    print(settings.jito.block_engine_url)
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, List, Optional

from pydantic import (
    Field,
    SecretStr,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from fees import TipPercentile
from validators import validate_tip_accounts, validate_url


# =============================================================================
# ENUMS
# =============================================================================

class LogLevel(str, Enum):
    """Logging level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# =============================================================================
# BASE CONFIGURATION
# =============================================================================

class BaseConfig(BaseSettings):
    """Base configuration with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )


# =============================================================================
# BLOCK ENGINE CONFIGURATION
# =============================================================================

class JitoSettings(BaseConfig):
    """Block engine relay configuration."""

    model_config = SettingsConfigDict(
        env_prefix="JITO_",
        env_file=".env",
        extra="ignore",
    )

    block_engine_url: str = Field(
        default="https://mainnet.block-engine.jito.wtf/api/v1",
        description="Block engine JSON-RPC base URL",
    )

    uuid: Optional[SecretStr] = Field(
        default=None,
        description="Block engine auth UUID (opaque)",
    )

    tip_floor_url: str = Field(
        default="https://bundles.jito.wtf/api/v1/bundles/tip_floor",
        description="Public tip floor endpoint",
    )

    request_timeout: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="HTTP request timeout in seconds",
    )

    confirmation_timeout: float = Field(
        default=120.0,
        gt=0,
        le=3600,
        description="Bundle confirmation timeout in seconds",
    )

    poll_interval: float = Field(
        default=1.0,
        gt=0,
        le=60,
        description="Fixed interval between bundle status polls in seconds",
    )

    default_percentile: TipPercentile = Field(
        default=TipPercentile.P75,
        description="Tip floor percentile used for fee recommendations",
    )

    tip_accounts: Annotated[List[str], NoDecode] = Field(
        default_factory=list,
        description="Override for the tip account list (empty = built-in list)",
    )

    @field_validator("block_engine_url", "tip_floor_url")
    @classmethod
    def check_url(cls, v: str) -> str:
        return validate_url(v, field_name="url").rstrip("/")

    @field_validator("tip_accounts", mode="before")
    @classmethod
    def parse_tip_accounts(cls, v: Any) -> List[str]:
        """Parse comma-separated tip accounts from environment variable."""
        if isinstance(v, (list, tuple, set)):
            return list(v)
        if isinstance(v, str):
            if not v.strip():
                return []
            return [acct.strip() for acct in v.split(",") if acct.strip()]
        return []

    @model_validator(mode="after")
    def validate_accounts(self) -> "JitoSettings":
        if self.tip_accounts:
            self.tip_accounts = validate_tip_accounts(self.tip_accounts)
        return self


# =============================================================================
# SIMULATION CONFIGURATION
# =============================================================================

class SimulationSettings(BaseConfig):
    """Bundle simulation endpoint configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SIMULATION_",
        env_file=".env",
        extra="ignore",
    )

    rpc_url: Optional[SecretStr] = Field(
        default=None,
        description="RPC URL supporting simulateBundle (may embed an API key)",
    )

    skip_sig_verify: bool = Field(
        default=False,
        description="Skip signature verification during simulation",
    )

    replace_recent_blockhash: bool = Field(
        default=False,
        description="Let the simulator replace the recent blockhash",
    )

    def endpoint(self) -> Optional[str]:
        if self.rpc_url is None:
            return None
        return self.rpc_url.get_secret_value() or None


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

class LoggingSettings(BaseConfig):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level",
    )

    format: str = Field(
        default="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        description="Log message format",
    )

    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log date format",
    )

    file_enabled: bool = Field(
        default=False,
        description="Enable file logging",
    )

    file_path: Path = Field(
        default=Path("logs/relay.log"),
        description="Log file path",
    )

    file_max_bytes: int = Field(
        default=10 * 1024 * 1024,  # 10 MB
        ge=1024,
        description="Max log file size in bytes",
    )

    file_backup_count: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Number of backup log files",
    )


# =============================================================================
# APPLICATION SETTINGS (MAIN)
# =============================================================================

class Settings(BaseConfig):
    """
    Main settings aggregating all configuration sections.

    Usage:
        settings = Settings()
        # or
        settings = get_settings()
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(
        default="Jito Bundle Relay",
        description="Application name",
    )

    jito: JitoSettings = Field(default_factory=JitoSettings)
    simulation: SimulationSettings = Field(default_factory=SimulationSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def mask_secrets(self) -> dict[str, Any]:
        """
        Return settings dict with sensitive values masked.
        Safe for logging and debugging.
        """
        def mask_value(v: Any) -> Any:
            if isinstance(v, SecretStr):
                secret = v.get_secret_value()
                if len(secret) > 8:
                    return f"{secret[:4]}...{secret[-4:]}"
                return "***"
            elif isinstance(v, dict):
                return {k: mask_value(val) for k, val in v.items()}
            elif isinstance(v, (list, tuple)):
                return type(v)(mask_value(item) for item in v)
            return v

        return mask_value(self.model_dump())


# =============================================================================
# SINGLETON & CACHING
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reload_settings() -> Settings:
    """Clear settings cache and reload from environment."""
    get_settings.cache_clear()
    return get_settings()


def validate_settings() -> tuple[bool, list[str]]:
    """
    Validate settings and report problems without raising.

    Returns:
        (is_valid, errors)
    """
    errors: list[str] = []
    try:
        settings = reload_settings()
    except Exception as e:
        return False, [str(e)]

    if settings.jito.poll_interval >= settings.jito.confirmation_timeout:
        errors.append("JITO_POLL_INTERVAL must be smaller than JITO_CONFIRMATION_TIMEOUT")

    return not errors, errors


__all__ = [
    "Settings",
    "JitoSettings",
    "SimulationSettings",
    "LoggingSettings",
    "LogLevel",
    "get_settings",
    "reload_settings",
    "validate_settings",
]
