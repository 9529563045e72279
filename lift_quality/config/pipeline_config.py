# lift_quality/config/pipeline_config.py
"""Type-safe pipeline configuration with validation and presets.

This module provides the configuration object that drives every stage of
the exercise-quality pipeline, with built-in validation, dictionary
round-tripping and environment variable override support.
"""

import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional, Tuple

from ..utils.exceptions import ConfigurationError, validate_parameter
from ..utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_NA_TOKENS: Tuple[str, ...] = ("NA", "", "#DIV/0!")
IMPORTANCE_METHODS = ["permutation", "impurity"]


def validate_filter_settings(drop_prefix_count: int, missingness_threshold: float) -> None:
    """Check the column-filter settings; a zero threshold would drop every column."""
    validate_parameter("drop_prefix_count", drop_prefix_count, min_value=0)
    validate_parameter("missingness_threshold", missingness_threshold, min_value=0.0, max_value=1.0)
    if missingness_threshold <= 0.0:
        raise ConfigurationError(
            "Parameter 'missingness_threshold' must be > 0 (no column could survive)",
            error_code="PARAM_TOO_SMALL",
            context={"parameter": "missingness_threshold", "value": missingness_threshold}
        )


@dataclass
class PipelineConfig:
    """Configuration for the load -> filter -> split -> train -> evaluate pipeline.

    Defaults reproduce the reference weight-lifting analysis: seven leading
    metadata columns dropped, columns with 10% or more missing values
    removed, a 75/25 stratified split, five-fold cross-validation of an
    80-tree ensemble sampling 9 predictors per split.
    """

    # Loading
    label_column: str = "classe"
    na_tokens: Tuple[str, ...] = DEFAULT_NA_TOKENS
    delimiter: str = ","

    # Feature filtering
    drop_prefix_count: int = 7
    missingness_threshold: float = 0.1

    # Partitioning
    train_fraction: float = 0.75

    # Cross-validated training
    cv_folds: int = 5
    tree_count: int = 80
    mtry_grid: Tuple[int, ...] = (9,)
    min_node_size: int = 1
    seed: int = 312
    n_jobs: Optional[int] = None

    # Reporting
    importance_method: str = "permutation"

    # Custom parameters (for extensibility)
    custom_params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.label_column:
            raise ConfigurationError(
                "Parameter 'label_column' must be a non-empty column name",
                error_code="PARAM_REQUIRED",
                context={"parameter": "label_column"}
            )

        self.na_tokens = tuple(str(token) for token in self.na_tokens)
        self.mtry_grid = tuple(sorted({int(m) for m in self.mtry_grid}))
        self.custom_params = dict(self.custom_params or {})

        validate_filter_settings(self.drop_prefix_count, self.missingness_threshold)

        if not 0.0 < self.train_fraction < 1.0:
            raise ConfigurationError(
                f"Parameter 'train_fraction' must lie strictly between 0 and 1, got {self.train_fraction}",
                error_code="PARAM_OUT_OF_RANGE",
                context={"parameter": "train_fraction", "value": self.train_fraction}
            )

        validate_parameter("cv_folds", self.cv_folds, min_value=2, max_value=20)
        validate_parameter("tree_count", self.tree_count, min_value=1)
        validate_parameter("min_node_size", self.min_node_size, min_value=1)
        validate_parameter("seed", self.seed, required=True, min_value=0)
        validate_parameter("importance_method", self.importance_method,
                           valid_values=IMPORTANCE_METHODS)

        if not self.mtry_grid:
            raise ConfigurationError(
                "Parameter 'mtry_grid' must contain at least one value",
                error_code="PARAM_REQUIRED",
                context={"parameter": "mtry_grid"}
            )
        validate_parameter("mtry_grid", self.mtry_grid[0], min_value=1)

        if self.n_jobs is not None and self.n_jobs != -1:
            validate_parameter("n_jobs", self.n_jobs, min_value=1)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a plain, YAML/JSON friendly dictionary."""
        config_dict = {}
        for config_field in fields(self):
            value = getattr(self, config_field.name)
            if isinstance(value, tuple):
                value = list(value)
            elif isinstance(value, dict):
                value = dict(value)
            config_dict[config_field.name] = value
        return config_dict

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "PipelineConfig":
        """Create configuration from a dictionary.

        Unknown keys are collected into ``custom_params`` with a warning.

        Args:
            config_dict: Mapping of field names to values

        Returns:
            Validated PipelineConfig
        """
        known = {config_field.name for config_field in fields(cls)}
        kwargs = {k: v for k, v in config_dict.items() if k in known}
        unknown = {k: v for k, v in config_dict.items() if k not in known}

        if unknown:
            logger.warning(f"Unknown configuration keys kept as custom_params: {sorted(unknown)}")
            kwargs["custom_params"] = {**(kwargs.get("custom_params") or {}), **unknown}

        for key in ("na_tokens", "mtry_grid"):
            if key in kwargs and kwargs[key] is not None:
                kwargs[key] = tuple(kwargs[key])

        return cls(**kwargs)

    def update_from_env(self, prefix: str = "LIFT_QUALITY_") -> "PipelineConfig":
        """Return a copy updated from environment variables.

        ``LIFT_QUALITY_TREE_COUNT=200`` overrides ``tree_count``; list-valued
        fields take comma-separated values (``LIFT_QUALITY_MTRY_GRID=5,9,13``).

        Args:
            prefix: Environment variable prefix

        Returns:
            New validated PipelineConfig
        """
        values = self.to_dict()

        for config_field in fields(self):
            env_name = f"{prefix}{config_field.name.upper()}"
            if env_name not in os.environ or config_field.name == "custom_params":
                continue

            env_value = os.environ[env_name]
            current = values[config_field.name]
            try:
                if config_field.name == "mtry_grid":
                    converted = [int(v) for v in env_value.split(",") if v.strip()]
                elif config_field.name == "na_tokens":
                    converted = env_value.split(",")
                elif config_field.name == "n_jobs":
                    converted = None if env_value.lower() in ("", "none") else int(env_value)
                elif isinstance(current, int):
                    converted = int(env_value)
                elif isinstance(current, float):
                    converted = float(env_value)
                else:
                    converted = env_value
            except ValueError as e:
                raise ConfigurationError(
                    f"Failed to parse environment variable {env_name}",
                    error_code="ENV_PARSE_FAILED",
                    context={"variable": env_name, "value": env_value, "error": str(e)}
                ) from e

            values[config_field.name] = converted
            logger.info(f"Updated {config_field.name} from environment: {converted}")

        return PipelineConfig.from_dict(values)

    @classmethod
    def for_quick_run(cls, **overrides: Any) -> "PipelineConfig":
        """Small ensemble and three folds, for smoke tests and notebooks."""
        params: Dict[str, Any] = {"tree_count": 20, "cv_folds": 3}
        params.update(overrides)
        return cls(**params)
