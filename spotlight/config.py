"""
Settings for the dashboard, loaded from YAML with environment overrides.

Example config/app.yaml:

    finnhub_api_key: "xxxx"
    cache_ttl_seconds: 60
    polling_interval_seconds: 30
    ticker_limit: 5

Environment variables win over the file:
  FINNHUB_API_KEY, LOG_LEVEL, and SPOTLIGHT_<FIELD> for every other key
  (SPOTLIGHT_CACHE_TTL_SECONDS, SPOTLIGHT_LOG_PATH, ...).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from spotlight.errors import ConfigError
from spotlight.rotation import MAX_LOG_AGE, MAX_LOG_FILE_SIZE, MAX_LOG_FILES

DEFAULT_CONFIG_PATH = "config/app.yaml"


class Settings(BaseSettings):
    """Dashboard settings. Keyword values come from the YAML file; the
    environment ranks above them (see settings_customise_sources)."""

    model_config = SettingsConfigDict(
        env_prefix="SPOTLIGHT_",
        env_ignore_empty=True,
        extra="ignore",
    )

    # an alias skips the prefix: read from FINNHUB_API_KEY / LOG_LEVEL
    finnhub_api_key: str = Field(..., min_length=1, validation_alias="finnhub_api_key")
    finnhub_base_url: str = "https://finnhub.io/api/v1"
    cache_ttl_seconds: int = Field(60, ge=1)
    polling_interval_seconds: int = Field(30, ge=1)
    ticker_limit: int = Field(5, ge=1, le=100)
    rate_limit_seconds: float = Field(1.0, ge=0.0)
    http_timeout_seconds: float = Field(10.0, gt=0.0)

    log_path: Path = Path("logs/app.log")
    log_level: str = Field("INFO", validation_alias="log_level")
    log_console: bool = True
    log_json: bool = False
    log_max_size_bytes: int = Field(MAX_LOG_FILE_SIZE, ge=1)
    log_max_age_seconds: float = Field(MAX_LOG_AGE, gt=0)
    log_max_files: int = Field(MAX_LOG_FILES, ge=0)
    log_check_interval_seconds: float = Field(600.0, gt=0)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # environment beats the file
        return (env_settings, init_settings)


def load_settings(path: str | os.PathLike[str] | None = None) -> Settings:
    """Read the YAML config at ``path`` (or $SPOTLIGHT_CONFIG) and apply env overrides."""
    cfg_path = Path(path or os.getenv("SPOTLIGHT_CONFIG", DEFAULT_CONFIG_PATH))
    try:
        raw = cfg_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"failed to read config: {e}") from e

    try:
        data: Any = yaml.safe_load(raw) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse config: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"failed to parse config: expected a mapping in {cfg_path}")

    # older configs still carry the polygon key name
    if "polygon_api_key" in data and "finnhub_api_key" not in data:
        data["finnhub_api_key"] = data.pop("polygon_api_key")

    try:
        return Settings(**data)
    except ValidationError as e:
        # the api key is the only required field
        if any(err["type"] == "missing" for err in e.errors()):
            raise ConfigError("finnhub_api_key is required in config") from e
        raise
