"""Configuration system for the exercise-quality pipeline."""

from .pipeline_config import PipelineConfig, DEFAULT_NA_TOKENS, IMPORTANCE_METHODS
from .loader import ConfigLoader, load_config, save_config

__all__ = [
    'PipelineConfig',
    'DEFAULT_NA_TOKENS',
    'IMPORTANCE_METHODS',
    'ConfigLoader',
    'load_config',
    'save_config'
]
