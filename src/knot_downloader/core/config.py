"""Application configuration.

Process settings come from environment variables via Pydantic Settings.
The list of zone files to mirror and the polling interval come from a
YAML config file (``CONFIG_PATH``, default ``config.yml``) validated with
Pydantic and converted into the poller's ``PollConfig``.
"""

import math
import re
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Literal, get_args

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from knot_downloader.lib.poller.errors import ConfigurationError
from knot_downloader.lib.poller.types import PollConfig, SourceSpec

_DURATION_UNITS: dict[str, float] = {
    "ms": 0.001,
    "msec": 0.001,
    "s": 1,
    "sec": 1,
    "secs": 1,
    "second": 1,
    "seconds": 1,
    "m": 60,
    "min": 60,
    "mins": 60,
    "minute": 60,
    "minutes": 60,
    "h": 3600,
    "hr": 3600,
    "hrs": 3600,
    "hour": 3600,
    "hours": 3600,
    "d": 86400,
    "day": 86400,
    "days": 86400,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)\s*([a-z]+)")

LogLevel = Literal["off", "error", "warn", "warning", "info", "debug", "trace"]
LOG_LEVELS: tuple[str, ...] = get_args(LogLevel)


def parse_duration(value: str | int | float | timedelta) -> float:
    """Parse a human-friendly duration into seconds.

    Accepts bare numbers (seconds), ``timedelta`` objects, and strings such
    as ``"30s"``, ``"5m"``, ``"1h 30m"`` or ``"2 hours"``.

    Args:
        value: Duration to parse.

    Returns:
        Duration in seconds.

    Raises:
        ValueError: If the value cannot be parsed.
    """
    if isinstance(value, bool):
        msg = f"Invalid duration: {value!r}"
        raise ValueError(msg)
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, int | float):
        return float(value)

    text = value.strip().lower()
    if not text:
        msg = "Duration must not be empty"
        raise ValueError(msg)
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds):
            msg = f"Invalid duration: {value!r}"
            raise ValueError(msg)
        return seconds

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if text[position : match.start()].strip():
            break
        number, unit = match.groups()
        if unit not in _DURATION_UNITS:
            msg = f"Unknown duration unit {unit!r} in {value!r}"
            raise ValueError(msg)
        total += float(number) * _DURATION_UNITS[unit]
        position = match.end()

    if position == 0 or text[position:].strip():
        msg = f"Invalid duration: {value!r}"
        raise ValueError(msg)
    return total


class FileEntryModel(BaseModel):
    """A ``files`` entry in the config file."""

    model_config = ConfigDict(extra="forbid")

    url: str = Field(min_length=1)
    path: str = Field(min_length=1)


class ConfigFileModel(BaseModel):
    """Schema of the YAML config file."""

    model_config = ConfigDict(extra="forbid")

    interval: float
    create_directories: bool = False
    log_level: LogLevel = "info"
    timeout: float | None = None
    files: list[FileEntryModel] = Field(min_length=1)

    @field_validator("interval", "timeout", mode="before")
    @classmethod
    def parse_durations(cls, v: object) -> object:
        if isinstance(v, str | int | float | timedelta):
            return parse_duration(v)
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        # YAML 1.1 reads a bare `off` as False.
        if v is False:
            return "off"
        return v.strip().lower() if isinstance(v, str) else v

    def to_poll_config(self) -> PollConfig:
        """Convert into the poller's immutable configuration.

        Raises:
            ConfigurationError: If a source or the interval is invalid.
        """
        return PollConfig(
            interval=self.interval,
            create_directories=self.create_directories,
            sources=tuple(SourceSpec(url=f.url, path=f.path) for f in self.files),
            timeout=self.timeout,
        )


@dataclass(frozen=True)
class LoadedConfig:
    """A validated config file: the poll configuration plus its log level."""

    poll: PollConfig
    log_level: LogLevel


def load_config(path: str | Path) -> LoadedConfig:
    """Read and validate a YAML config file.

    Args:
        path: Path to the config file.

    Returns:
        LoadedConfig with the validated PollConfig and log level.

    Raises:
        ConfigurationError: If the file is missing, unreadable, not valid
            YAML, or does not describe a valid configuration.
    """
    config_path = Path(path)
    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Failed to read config file from {str(config_path)!r}: {exc}"
        raise ConfigurationError(msg) from exc

    try:
        raw = yaml.safe_load(raw_text)
    except yaml.YAMLError as exc:
        msg = f"Failed to parse config file from {str(config_path)!r}: {exc}"
        raise ConfigurationError(msg) from exc

    if not isinstance(raw, dict):
        msg = f"Failed to parse config file from {str(config_path)!r}: expected a mapping at the top level"
        raise ConfigurationError(msg)

    try:
        model = ConfigFileModel.model_validate(raw)
    except ValidationError as exc:
        msg = f"Invalid config file {str(config_path)!r}: {exc}"
        raise ConfigurationError(msg) from exc

    return LoadedConfig(poll=model.to_poll_config(), log_level=model.log_level)


class Settings(BaseSettings):
    """Process settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    config_path: str = Field(
        default="config.yml",
        description="Path to the YAML file listing zone files to mirror",
    )

    # Logging
    log_level: str | None = Field(
        default=None,
        description="Overrides the log_level from the config file when set",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str | None) -> str | None:
        if v is None:
            return None
        name = v.strip().lower()
        if name not in LOG_LEVELS:
            msg = f"log_level must be one of {', '.join(LOG_LEVELS)}"
            raise ValueError(msg)
        return name

    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (enables file logging with 24h rotation when set)",
    )
    log_colorize: bool = Field(
        default=True,
        description="Force colored log output, even when stderr is not a terminal",
    )

    # HTTP
    user_agent: str = Field(
        default="knot-downloader",
        description="User-Agent header sent with every request",
    )

    # Shutdown
    shutdown_grace_period: float = Field(
        default=10.0,
        description="Seconds to let in-flight fetches and writes finish on shutdown",
        gt=0,
    )


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
