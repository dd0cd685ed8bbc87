"""Configuration management for sibcs-classifier.

Contract thresholds are loaded from YAML files in the ``conf/`` directory
(overridable with ``SIBCS_CONFIG_DIR``) and validated with pydantic.
Engine rule weights are not configurable.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from sibcs_classifier.logging_config import get_logger

logger = get_logger(__name__)

CONFIG_DIR_ENV = "SIBCS_CONFIG_DIR"
CONTRACT_CONFIG_FILE = "contract.yaml"


class ContractSettings(BaseModel):
    """How the contract turns a ranked list into a primary result."""

    minimum_primary_confidence: int = Field(40, ge=0, le=100)
    alternatives_count: int = Field(3, ge=0, le=12)


class AlertThresholds(BaseModel):
    """Agronomic alert trigger levels."""

    acidity_ph_max: float = 5.0
    al_saturation_min_pct: float = 20.0
    low_p_max: float = 8.0
    low_cec_max: float = 10.0
    salinity_ec_min: float = 4.0
    sodicity_na_min: float = 1.0
    low_water_storage_sand_min: float = 70.0
    low_water_storage_om_max: float = 2.0


class ValidationSettings(BaseModel):
    """Input validation limits for contract requests."""

    texture_sum_min: float = 95.0
    texture_sum_max: float = 105.0
    ph_min: float = 3.0
    ph_max: float = 9.0
    cation_warning_cmolc: float = 40.0


class LoggingSettings(BaseModel):
    """CLI logging defaults. A null file disables file logging."""

    level: str = "WARNING"
    file: str | None = None


class AppSettings(BaseModel):
    """Main application settings."""

    contract: ContractSettings = ContractSettings()
    alerts: AlertThresholds = AlertThresholds()
    validation: ValidationSettings = ValidationSettings()
    logging: LoggingSettings = LoggingSettings()


@lru_cache(maxsize=1)
def get_config_dir() -> Path:
    """Get the configuration directory path."""
    override = os.getenv(CONFIG_DIR_ENV)
    if override:
        config_dir = Path(override).expanduser().resolve()
    else:
        config_dir = Path(__file__).resolve().parent / "conf"

    if not config_dir.exists():
        raise FileNotFoundError(f"Configuration directory not found: {config_dir}")

    return config_dir


def load_yaml_config(filename: str) -> dict[str, Any]:
    """Load a YAML configuration file."""
    config_dir = get_config_dir()
    config_file = config_dir / filename

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    try:
        with open(config_file, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_file}: {e}") from e

    logger.debug(f"Loaded configuration from {config_file}")
    return data or {}


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Get application settings.

    Reads ``.env`` (without overriding the real environment), then the
    contract YAML. ``LOG_LEVEL`` and ``LOG_FILE`` in the environment win
    over the file.
    """
    load_dotenv(override=False)

    data = load_yaml_config(CONTRACT_CONFIG_FILE)
    settings = AppSettings(**data)

    log_level = os.getenv("LOG_LEVEL")
    if log_level:
        settings.logging.level = log_level.upper()

    log_file = os.getenv("LOG_FILE")
    if log_file:
        settings.logging.file = log_file

    return settings


def clear_config_cache() -> None:
    """Clear all cached configuration to force reload from current environment.

    This is useful in tests when environment variables are modified.
    """
    get_config_dir.cache_clear()
    get_settings.cache_clear()
