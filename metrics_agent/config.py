"""
Metrics Agent - Configuration

Settings come from environment variables, then command-line flags, then an
optional YAML file, then defaults.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type

import structlog
import yaml
from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

logger = structlog.get_logger(__name__)


class BatchFallbackPolicy(str, Enum):
    """How the reporter behaves after the batch endpoint has failed."""
    RETRY = "retry"    # Try the batch endpoint again every tick
    STICKY = "sticky"  # Stay in per-metric mode for the rest of the process


class ReportProtocol(str, Enum):
    JSON = "json"
    PLAIN = "plain"


class AgentSettings(BaseSettings):
    """Agent settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Collector
    address: str = Field(default="localhost:8080", alias="ADDRESS")
    protocol: ReportProtocol = Field(default=ReportProtocol.JSON, alias="PROTOCOL")
    request_timeout: float = Field(default=5.0, gt=0, alias="REQUEST_TIMEOUT")

    # Intervals (seconds)
    report_interval: int = Field(default=10, gt=0, alias="REPORT_INTERVAL")
    poll_interval: int = Field(default=2, gt=0, alias="POLL_INTERVAL")

    # Integrity
    key: str = Field(default="", alias="KEY")

    # Reporting
    batch_fallback: BatchFallbackPolicy = Field(default=BatchFallbackPolicy.RETRY, alias="BATCH_FALLBACK")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @property
    def base_url(self) -> str:
        if "://" in self.address:
            return self.address
        return f"http://{self.address}"

    @property
    def signing_key(self) -> Optional[str]:
        return self.key or None


def load_config_file(config_path: Optional[str]) -> Dict[str, Any]:
    """Load setting overrides from a YAML file; a missing file yields none."""
    if not config_path:
        return {}

    path = Path(config_path)
    if not path.exists():
        logger.warning("Config file not found, using defaults", path=config_path)
        return {}

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")

    logger.info("Loaded config", path=config_path)
    return {str(k).lower(): v for k, v in data.items()}


def load_settings(
    config_path: Optional[str] = None,
    flag_overrides: Optional[Dict[str, Any]] = None,
) -> AgentSettings:
    """Build settings with env > flags > YAML file > defaults."""
    values = load_config_file(config_path)
    values.update(flag_overrides or {})
    return AgentSettings(**values)
