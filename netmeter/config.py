"""Agent configuration.

Two layers:

* ``NetmeterSettings`` is process configuration loaded from the environment
  (``NETMETER_*``) and an optional ``.env`` file.
* ``AgentConfig`` is the versioned JSON config file that carries the reset
  policy state and is rewritten by the agent whenever a reset fires.
"""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigIOError
from .utils.jsonfile import read_json, write_json_atomic
from .utils.logging import get_logger

logger = get_logger("config")

CONFIG_VERSION = 1
DATE_FORMAT = "%Y-%m-%d"


class NetmeterSettings(BaseSettings):
    """Process settings. Loads from .env file and environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="NETMETER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "netmeter"
    debug: bool = False
    host: str = "0.0.0.0"
    config_file: str = "config.json"

    # Accounting loop
    tick_interval: float = 3.0  # seconds between samples
    boot_time_source: str = "psutil"  # psutil / command
    command_timeout: float = 10.0  # seconds, for uptime / powershell

    # Logging
    log_dir: str = "logs"
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("boot_time_source")
    @classmethod
    def validate_boot_time_source(cls, v: str) -> str:
        allowed = {"psutil", "command"}
        if v not in allowed:
            raise ValueError(f"boot_time_source must be one of {allowed}")
        return v

    @field_validator("tick_interval")
    @classmethod
    def validate_tick_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("tick_interval must be positive")
        return v


class AgentConfig(BaseModel):
    """The JSON config file.

    Recognized keys and defaults:

    * ``config_version`` -- schema version, currently 1
    * ``reset_day`` -- day of month (1..31) traffic is reset, default 1
    * ``data_file`` -- ledger path, relative to the config file's directory
    * ``last_reset_date`` -- ``YYYY-MM-DD`` of the last reset, or ``""``
    * ``port`` -- HTTP query port, default 28080
    * ``ifName`` -- interface to count, ``""`` sums all interfaces
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    config_version: int = CONFIG_VERSION
    reset_day: int = Field(default=1, ge=1, le=31)
    data_file: str = "traffic_data.json"
    last_reset_date: str = ""
    port: int = Field(default=28080, ge=1, le=65535)
    interface_name: str = Field(default="", alias="ifName")

    @field_validator("last_reset_date")
    @classmethod
    def validate_last_reset_date(cls, v: str) -> str:
        v = v.strip()
        if v:
            datetime.strptime(v, DATE_FORMAT)
        return v

    @field_validator("config_version")
    @classmethod
    def validate_config_version(cls, v: int) -> int:
        if v > CONFIG_VERSION:
            raise ValueError(f"config_version {v} is newer than supported version {CONFIG_VERSION}")
        return v

    @property
    def last_reset(self) -> date | None:
        if not self.last_reset_date:
            return None
        return datetime.strptime(self.last_reset_date, DATE_FORMAT).date()

    def with_last_reset(self, day: date) -> AgentConfig:
        return self.model_copy(update={"last_reset_date": day.strftime(DATE_FORMAT)})

    def resolve_data_file(self, config_path: str | Path) -> Path:
        data_path = Path(self.data_file)
        if data_path.is_absolute():
            return data_path
        return Path(config_path).resolve().parent / data_path

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True)


def save_agent_config(path: str | Path, config: AgentConfig) -> None:
    """Persist the agent config atomically. Raises ConfigIOError."""
    try:
        write_json_atomic(path, config.to_json_dict())
    except (OSError, TypeError, ValueError) as e:
        raise ConfigIOError(f"error saving config file {path}: {e}") from e


def load_or_create_agent_config(path: str | Path) -> AgentConfig:
    """Load the agent config, creating it with defaults if it is absent.

    Raises ConfigIOError if the file exists but cannot be read or validated.
    """
    config_path = Path(path)
    if not config_path.exists():
        config = AgentConfig()
        save_agent_config(config_path, config)
        logger.info("default_config_created", path=str(config_path))
        return config

    try:
        raw = read_json(config_path)
    except (OSError, ValueError) as e:
        raise ConfigIOError(f"error reading config file {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigIOError(f"config file {config_path} must contain a JSON object")

    try:
        config = AgentConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigIOError(f"invalid config file {config_path}: {e}") from e

    logger.info(
        "config_loaded",
        path=str(config_path),
        reset_day=config.reset_day,
        last_reset_date=config.last_reset_date,
        interface=config.interface_name or "*",
    )
    return config


def get_settings() -> NetmeterSettings:
    """Factory function to create the settings instance."""
    return NetmeterSettings()
