"""
Metrics Collector - Configuration

Settings come from environment variables, then command-line flags, then
defaults. The environment wins so a deployment can override any flag.
"""

from enum import Enum
from typing import Optional, Tuple, Type

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from metrics_collector.storage.base import BackendKind


class BatchApplyPolicy(str, Enum):
    """What a batch does when one element fails to persist."""
    CONTINUE = "continue"  # Apply the rest, report the first failure
    ABORT = "abort"        # Stop at the first failure


class Settings(BaseSettings):
    """Collector settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Server
    address: str = Field(default="localhost:8080", alias="ADDRESS")

    # Persistence
    store_interval: int = Field(default=300, ge=0, alias="STORE_INTERVAL")
    file_storage_path: str = Field(default="/tmp/metrics-db.json", alias="FILE_STORAGE_PATH")
    restore: bool = Field(default=True, alias="RESTORE")
    database_dsn: str = Field(default="", alias="DATABASE_DSN")

    # Integrity
    key: str = Field(default="", alias="KEY")

    # Ingest
    batch_apply_policy: BatchApplyPolicy = Field(default=BatchApplyPolicy.CONTINUE, alias="BATCH_APPLY_POLICY")

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
        # Flags arrive as init kwargs; environment takes precedence over them.
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @property
    def backend(self) -> BackendKind:
        """Storage backend implied by the configuration."""
        if self.database_dsn:
            return BackendKind.RELATIONAL
        if self.file_storage_path:
            return BackendKind.FILE
        return BackendKind.MEMORY

    @property
    def sync_writes(self) -> bool:
        """Save on every mutation instead of on a timer."""
        return self.store_interval == 0

    @property
    def host(self) -> str:
        host, _, _ = self.address.rpartition(":")
        return host or "0.0.0.0"

    @property
    def port(self) -> int:
        _, _, port = self.address.rpartition(":")
        return int(port) if port.isdigit() else 8080

    @property
    def signing_key(self) -> Optional[str]:
        return self.key or None
