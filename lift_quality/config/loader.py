# lift_quality/config/loader.py
"""YAML configuration loading for the pipeline.

This module reads and writes ``PipelineConfig`` objects as YAML files.
A file may hold the settings at top level or under a ``pipeline:`` key,
and environment overrides (``LIFT_QUALITY_*``) are applied on request.
"""

from pathlib import Path
from typing import Any, Dict, Union

import yaml

from .pipeline_config import PipelineConfig
from ..utils.logger import get_logger
from ..utils.exceptions import ConfigurationError, handle_and_reraise

logger = get_logger(__name__)

ENV_PREFIX = "LIFT_QUALITY_"


class ConfigLoader:
    """Configuration loader for pipeline YAML files.

    Example:
        >>> loader = ConfigLoader()
        >>> config = loader.load_config('configs/reference.yaml')
        >>> loader.save_config(config, 'runs/seed_312.yaml')
    """

    def __init__(
        self,
        allow_environment_override: bool = True,
        encoding: str = 'utf-8'
    ) -> None:
        """Initialize configuration loader.

        Args:
            allow_environment_override: Whether to apply LIFT_QUALITY_* overrides
            encoding: File encoding for configuration files
        """
        self.allow_environment_override = allow_environment_override
        self.encoding = encoding

    def load_yaml(self, file_path: Union[str, Path]) -> Dict[str, Any]:
        """Load YAML file into a dictionary.

        Args:
            file_path: Path to YAML file

        Returns:
            Dictionary with loaded configuration

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        file_path = Path(file_path)

        try:
            with open(file_path, 'r', encoding=self.encoding) as f:
                config = yaml.safe_load(f)
        except FileNotFoundError:
            raise ConfigurationError(
                f"Configuration file not found: {file_path}",
                error_code="CONFIG_NOT_FOUND",
                context={"file_path": str(file_path)}
            )
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Error parsing YAML file {file_path}: {e}",
                error_code="CONFIG_PARSE_FAILED",
                context={"file_path": str(file_path)}
            ) from e
        except OSError as e:
            handle_and_reraise(
                e, ConfigurationError,
                f"Error loading configuration file {file_path}",
                error_code="CONFIG_LOAD_FAILED",
                context={"file_path": str(file_path)}
            )

        if config is None:
            config = {}

        if not isinstance(config, dict):
            raise ConfigurationError(
                f"Configuration file must contain a mapping, got {type(config).__name__}",
                error_code="CONFIG_NOT_A_MAPPING",
                context={"file_path": str(file_path)}
            )

        logger.debug(f"Loaded configuration from {file_path}")
        return config

    def load_config(self, file_path: Union[str, Path]) -> PipelineConfig:
        """Load a validated PipelineConfig from a YAML file."""
        raw = self.load_yaml(file_path)
        section = raw.get("pipeline", raw)
        if not isinstance(section, dict):
            raise ConfigurationError(
                "The 'pipeline' section must be a mapping",
                error_code="CONFIG_NOT_A_MAPPING",
                context={"file_path": str(file_path)}
            )

        config = PipelineConfig.from_dict(section)
        if self.allow_environment_override:
            config = config.update_from_env(prefix=ENV_PREFIX)

        logger.info(f"Loaded pipeline configuration from {file_path}")
        return config

    def save_config(self, config: PipelineConfig, file_path: Union[str, Path]) -> Path:
        """Save configuration to a YAML file under a ``pipeline:`` key."""
        file_path = Path(file_path)
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, 'w', encoding=self.encoding) as f:
                yaml.safe_dump(
                    {"pipeline": config.to_dict()}, f,
                    default_flow_style=False,
                    sort_keys=False,
                    indent=2,
                    allow_unicode=True
                )
        except OSError as e:
            handle_and_reraise(
                e, ConfigurationError,
                f"Error saving configuration to {file_path}",
                error_code="CONFIG_SAVE_FAILED",
                context={"file_path": str(file_path)}
            )

        logger.info(f"Configuration saved to {file_path}")
        return file_path


# Convenience functions for easy usage
def load_config(config_file: Union[str, Path], **kwargs: Any) -> PipelineConfig:
    """Load a PipelineConfig from YAML.

    Example:
        >>> config = load_config('configs/reference.yaml')
        >>> print(config.mtry_grid)
    """
    return ConfigLoader(**kwargs).load_config(config_file)


def save_config(config: PipelineConfig, config_file: Union[str, Path], **kwargs: Any) -> Path:
    """Write a PipelineConfig to YAML."""
    return ConfigLoader(**kwargs).save_config(config, config_file)
