"""Configuration management with Pydantic validation"""

from .schema import (
    AppConfig,
    ConsensusConfig,
    EnsembleConfig,
    EvaluateConfig,
    ImputeConfig,
)
from .loader import apply_overrides, load_config, load_yaml, save_config

__all__ = [
    "AppConfig",
    "ConsensusConfig",
    "EnsembleConfig",
    "EvaluateConfig",
    "ImputeConfig",
    "apply_overrides",
    "load_config",
    "load_yaml",
    "save_config",
]
