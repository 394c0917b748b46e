"""Configuration management."""
from assetrisk.config.settings import (
    EngineConfig,
    EngineConfigError,
    WeibullCurve,
    load_engine_config,
)

__all__ = [
    'EngineConfig',
    'EngineConfigError',
    'WeibullCurve',
    'load_engine_config',
]
