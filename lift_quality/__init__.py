# lift_quality/__init__.py
"""Lift Quality - Weightlifting exercise quality classification.

Predicts how a dumbbell curl was performed (class A = correct execution,
B-E = four common mistakes) from body-worn inertial sensor readings using
a random forest tuned by k-fold cross-validation.

Pipeline stages:
- Loading of delimited sensor exports with configurable missing tokens
- Removal of metadata columns and mostly-missing variables
- Stratified train/holdout partitioning
- Cross-validated selection of the per-split candidate count (mtry)
- Holdout confusion matrix with per-class sensitivity and specificity
- Ranked variable importance

Quick Start:
    >>> import lift_quality as lq
    >>> results = lq.run_pipeline("pml-training.csv")
    >>> print(results.summary())

Advanced Usage:
    >>> from lift_quality.config import PipelineConfig
    >>> from lift_quality.data import load_dataset, filter_features, stratified_split
    >>> from lift_quality.models import CrossValidatedTrainer, ModelEvaluator
    >>>
    >>> config = PipelineConfig(mtry_grid=(5, 9, 15), tree_count=120)
    >>> raw = load_dataset("pml-training.csv")
    >>> filtered = filter_features(raw, "classe")
    >>> split = stratified_split(filtered, "classe", seed=config.seed)
    >>> result = CrossValidatedTrainer(config).fit(split.train, "classe")
    >>> report = ModelEvaluator().evaluate(result.model, split.holdout)
"""

# Package metadata
__version__ = "0.1.0"
__license__ = "MIT"
__description__ = "Exercise quality classification from wearable sensor data"

# Configure package-level logging
from .utils.logger import configure_logging, get_logger

configure_logging(level="INFO", include_console=True)

logger = get_logger(__name__)
logger.debug(f"Lift Quality v{__version__} initialized")

# Configuration system
from .config.pipeline_config import PipelineConfig
from .config.loader import load_config, save_config

# Data stages
from .data.loader import DatasetLoader, load_dataset
from .data.feature_filter import FeatureFilter, FilterReport, filter_features
from .data.partitioner import DataSplit, StratifiedPartitioner, stratified_split

# Models
from .models.forest import TrainedModel
from .models.trainer import CrossValidatedTrainer, CrossValidationResult, train_model
from .models.evaluator import ConfusionMatrixReport, ModelEvaluator, evaluate_model
from .models.importance import ImportanceRanker, rank_importance

# Workflows
from .api.workflows import ExerciseQualityPipeline, PipelineResults, run_pipeline

# Utilities
from .utils.logger import set_log_level
from .utils.timer import timer, timed_operation
from .utils.exceptions import (
    LiftQualityError,
    ConfigurationError,
    SourceReadError,
    FormatError,
    SchemaError,
    SchemaMismatchError,
    InsufficientDataError,
    ModelTrainingError,
    ConvergenceError
)

# Public API definition
__all__ = [
    # Core workflow
    'run_pipeline',
    'ExerciseQualityPipeline',
    'PipelineResults',

    # Configuration
    'PipelineConfig',
    'load_config',
    'save_config',

    # Data stages
    'DatasetLoader',
    'load_dataset',
    'FeatureFilter',
    'FilterReport',
    'filter_features',
    'DataSplit',
    'StratifiedPartitioner',
    'stratified_split',

    # Models
    'TrainedModel',
    'CrossValidatedTrainer',
    'CrossValidationResult',
    'train_model',
    'ConfusionMatrixReport',
    'ModelEvaluator',
    'evaluate_model',
    'ImportanceRanker',
    'rank_importance',

    # Utilities
    'get_logger',
    'configure_logging',
    'set_log_level',
    'timer',
    'timed_operation',

    # Exceptions
    'LiftQualityError',
    'ConfigurationError',
    'SourceReadError',
    'FormatError',
    'SchemaError',
    'SchemaMismatchError',
    'InsufficientDataError',
    'ModelTrainingError',
    'ConvergenceError',

    # Metadata
    '__version__',
]
