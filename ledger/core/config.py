"""
Layered configuration.

Sources, lowest to highest precedence:

1. built-in defaults
2. system config file
3. user config file
4. executable directory config file
5. ./config/personal-ledger.conf (skipped when an explicit file is given)
6. explicit config file
7. PERSONAL_LEDGER_* environment variables (nested with ``__``)

Config files use INI format:

    [telemetry]
    telemetry_level = "debug"

    [database]
    url = "sqlite:./personal-ledger.sqlite"
    max_connections = 10
"""

import configparser
import os
import sys
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from ledger.core.errors import ConfigError, DatabaseValidationError, TelemetryError
from ledger.core.telemetry import DEFAULT_TELEMETRY_LEVEL, TelemetryLevel

APPLICATION_NAME = "personal-ledger"
ENV_PREFIX = "PERSONAL_LEDGER_"
CONFIG_FILE_NAME = f"{APPLICATION_NAME}.conf"

DEFAULT_DATABASE_URL = "sqlite:./personal-ledger.sqlite"


class TelemetrySettings(BaseModel):
    telemetry_level: TelemetryLevel = DEFAULT_TELEMETRY_LEVEL

    @field_validator("telemetry_level", mode="before")
    @classmethod
    def parse_level(cls, value: Any) -> TelemetryLevel:
        try:
            return TelemetryLevel.parse(value)
        except TelemetryError as error:
            raise ValueError(error.message) from error


class DatabaseSettings(BaseModel):
    """Connection pool settings for the SQLite database."""

    url: str = DEFAULT_DATABASE_URL
    max_connections: int = 10
    min_connections: int = 1
    acquire_timeout_seconds: int = 30
    idle_timeout_seconds: int = 600  # 0 disables
    max_lifetime_seconds: int = 1800  # 0 disables

    @property
    def idle_timeout(self) -> Optional[int]:
        return self.idle_timeout_seconds if self.idle_timeout_seconds > 0 else None

    @property
    def max_lifetime(self) -> Optional[int]:
        return self.max_lifetime_seconds if self.max_lifetime_seconds > 0 else None

    def validate_pool(self) -> None:
        """Raise DatabaseValidationError when the pool settings cannot work together."""
        if self.max_connections < self.min_connections:
            raise DatabaseValidationError(
                f"max_connections ({self.max_connections}) must be >= "
                f"min_connections ({self.min_connections})",
                field="max_connections",
            )
        if self.acquire_timeout_seconds <= 0:
            raise DatabaseValidationError(
                "acquire_timeout_seconds must be positive", field="acquire_timeout_seconds"
            )
        if self.idle_timeout_seconds < 0:
            raise DatabaseValidationError(
                "idle_timeout_seconds must be non-negative", field="idle_timeout_seconds"
            )
        if self.max_lifetime_seconds < 0:
            raise DatabaseValidationError(
                "max_lifetime_seconds must be non-negative", field="max_lifetime_seconds"
            )
        if not self.url.startswith("sqlite:") and not self.url.startswith("sqlite+aiosqlite:"):
            raise DatabaseValidationError("URL must start with 'sqlite:'", field="url")


class ServerSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(8000, ge=1, le=65535)


def system_config_path() -> Optional[Path]:
    if sys.platform.startswith("linux"):
        return Path("/etc") / APPLICATION_NAME / CONFIG_FILE_NAME
    if sys.platform == "darwin":
        return Path("/Library/Preferences") / APPLICATION_NAME / CONFIG_FILE_NAME
    if sys.platform == "win32":
        all_users = os.environ.get("ALLUSERSPROFILE")
        if all_users:
            return Path(all_users) / APPLICATION_NAME / CONFIG_FILE_NAME
    return None


def user_config_path() -> Optional[Path]:
    if sys.platform == "win32":
        base = os.environ.get("APPDATA")
        return Path(base) / APPLICATION_NAME / CONFIG_FILE_NAME if base else None
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APPLICATION_NAME / CONFIG_FILE_NAME
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / APPLICATION_NAME / CONFIG_FILE_NAME


def executable_config_path() -> Optional[Path]:
    if not sys.executable:
        return None
    return Path(sys.executable).resolve().parent / APPLICATION_NAME / CONFIG_FILE_NAME


def cwd_config_path() -> Path:
    return Path.cwd() / "config" / CONFIG_FILE_NAME


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def read_ini_file(path: Path) -> Dict[str, Dict[str, str]]:
    """Read an INI file into ``{section: {key: value}}`` with lower-cased section names."""
    parser = configparser.ConfigParser(interpolation=None)
    try:
        with open(path, "r", encoding="utf-8") as handle:
            parser.read_file(handle)
    except (OSError, UnicodeDecodeError) as error:
        raise ConfigError(f"Could not read config file {path}: {error}", path=str(path)) from error
    except configparser.Error as error:
        raise ConfigError(f"Malformed config file {path}: {error}", path=str(path)) from error

    values: Dict[str, Dict[str, str]] = {}
    for section in parser.sections():
        target = values.setdefault(section.lower(), {})
        for key, value in parser.items(section):
            target[key.lower()] = _unquote(value)
    return values


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def config_file_candidates(config_file: Optional[Path] = None) -> List[Path]:
    """Config files in ascending precedence order. Missing files are included."""
    candidates = [system_config_path(), user_config_path(), executable_config_path()]
    if config_file is None:
        candidates.append(cwd_config_path())
    else:
        candidates.append(Path(config_file))
    return [path for path in candidates if path is not None]


class LedgerSettings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    telemetry: TelemetrySettings = TelemetrySettings()
    database: DatabaseSettings = DatabaseSettings()
    server: ServerSettings = ServerSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # File values arrive as init kwargs; environment wins over them.
        return env_settings, init_settings

    @classmethod
    def parse(cls, config_file: Optional[Path] = None) -> "LedgerSettings":
        """Load settings from every layer."""
        values: Dict[str, Any] = {}
        for path in config_file_candidates(config_file):
            if path.is_file():
                values = _merge(values, read_ini_file(path))
        return cls(**values)


@lru_cache()
def get_settings() -> LedgerSettings:
    """
    Returns cached settings so config files are not re-read on every access
    """
    explicit = os.environ.get(f"{ENV_PREFIX}CONFIG_FILE")
    return LedgerSettings.parse(Path(explicit) if explicit else None)
