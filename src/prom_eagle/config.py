import logging
from pathlib import Path
from typing import Union

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from prom_eagle.adapters.eagle import DEFAULT_URL
from prom_eagle.domain.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yml"


class ServerSettings(BaseModel):
    port: int = Field(ge=1, le=65535)
    host: str = "0.0.0.0"


class EagleSettings(BaseModel):
    user: str
    password: SecretStr
    cloud_id: str
    update_interval_secs: int = Field(ge=1, le=2**32 - 1)
    url: str = DEFAULT_URL
    request_timeout_secs: float = Field(default=10.0, gt=0)


class Settings(BaseSettings):
    server: ServerSettings
    eagle: EagleSettings

    # General
    log_level: str = "INFO"
    mode: str = "production"

    model_config = SettingsConfigDict(
        env_prefix="PROM_EAGLE_",
        env_nested_delimiter="__",
        extra="ignore",
        frozen=True,
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"Invalid log level '{v}'. Must be one of {sorted(allowed)}")
        return v_upper

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in {"production", "mock"}:
            raise ValueError(f"Invalid mode '{v}'. Must be 'production' or 'mock'")
        return v_lower


def load_settings(config_path: Union[str, Path] = DEFAULT_CONFIG_PATH) -> Settings:
    """
    Load settings from a YAML file. Environment variables prefixed with
    PROM_EAGLE_ fill in anything the file leaves out.
    """
    path = Path(config_path)
    if not path.is_file():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read configuration file {path}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping")

    try:
        settings = Settings(**raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.debug(f"Loaded configuration from {path}")
    return settings
