"""Engine configuration management."""
import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "ASSETRISK"
CONFIG_DIR_NAME = '.assetrisk'


class EngineConfigError(ValueError):
    """Raised when engine configuration loading fails."""


class WeibullCurve(BaseModel):
    """Two-parameter Weibull curve for one equipment type."""

    beta: float = Field(gt=0)
    eta: float = Field(gt=0)


class EngineConfig(BaseModel):
    """Tunable settings of the scoring and lifecycle engine."""

    recalc_concurrency: int = Field(default=8, ge=1, le=64)
    weight_precision: int = Field(default=6, ge=0, le=10)
    weight_epsilon: float = Field(default=1e-4, gt=0, le=1)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    equipment_curves: Dict[str, WeibullCurve] = {}

    def curve_table(self) -> Dict[str, Tuple[float, float]]:
        """Curve overrides as (beta, eta) keyed by lower-cased equipment type."""
        return {
            name.lower(): (curve.beta, curve.eta)
            for name, curve in self.equipment_curves.items()
        }


def default_config_path() -> Path:
    """Return ~/.assetrisk/config.yaml for the current user."""
    return Path.home() / CONFIG_DIR_NAME / "config.yaml"


def load_engine_config(config_file: Optional[str] = None) -> EngineConfig:
    """Load engine configuration.

    Loads configuration with the following priority:
    1. Explicit --config path (highest priority)
    2. ~/.assetrisk/config.yaml
    3. ASSETRISK_* environment variables
    4. Defaults

    Args:
        config_file: Optional explicit configuration file path

    Returns:
        Validated EngineConfig

    Raises:
        EngineConfigError: If configuration is unreadable or invalid
    """
    if config_file:
        config = _validate(_load_yaml_config(config_file), config_file)
        logger.info("Loaded engine config from: %s", config_file)
        return config

    default_path = default_config_path()
    if default_path.exists():
        config = _validate(_load_yaml_config(str(default_path)), str(default_path))
        logger.info("Loaded engine config from: %s", default_path)
        return config

    env_config = _load_from_env()
    if env_config:
        logger.info("Loaded engine config from environment variables")
        return _validate(env_config, "environment")

    logger.debug("No engine config found. Using defaults.")
    return EngineConfig()


def _load_yaml_config(file_path: str) -> Dict[str, Any]:
    """Load a YAML configuration file.

    Raises:
        EngineConfigError: If the file is missing, unreadable or not a mapping
    """
    try:
        if not os.path.exists(file_path):
            raise EngineConfigError(f"Configuration file not found: {file_path}")

        with open(file_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise EngineConfigError(
                f"Configuration file must contain a YAML dictionary: {file_path}"
            )
        return config

    except yaml.YAMLError as e:
        raise EngineConfigError(
            f"Invalid YAML configuration: {file_path}\n{e}"
        ) from e
    except OSError as e:
        raise EngineConfigError(
            f"Error reading configuration file: {file_path}\n{e}"
        ) from e


def _load_from_env() -> Optional[Dict[str, Any]]:
    """Read scalar settings from ASSETRISK_* environment variables.

    Equipment curves can only be configured from a file.
    """
    config = {}
    for field in ('recalc_concurrency', 'weight_precision', 'weight_epsilon', 'log_level'):
        value = os.getenv(f"{ENV_PREFIX}_{field.upper()}")
        if value:
            config[field] = value
    return config if config else None


def _validate(raw: Dict[str, Any], source: str) -> EngineConfig:
    try:
        return EngineConfig(**raw)
    except ValidationError as e:
        raise EngineConfigError(f"Invalid engine configuration in {source}:\n{e}") from e
