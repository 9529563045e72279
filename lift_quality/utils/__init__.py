"""lift_quality - Utility Components.

This module provides shared utilities including logging, error handling,
timing and bounded parallel execution used throughout the pipeline.

Key Components:
- Logger: Package logger hierarchy with context and duration fields
- Timer: Stage timing with a per-run tracker
- Exceptions: Custom exception hierarchy with context
- Error Handling: Stage-scoped error tagging
- Parallel: Map over independent work units with bounded parallelism

Example:
    >>> from lift_quality.utils import get_logger, timed_operation
    >>> logger = get_logger(__name__)
    >>> with timed_operation('cross_validation'):
    ...     pass
"""

from .logger import (
    get_logger,
    configure_logging,
    set_log_level,
    temporary_log_level
)
from .timer import (
    timer,
    timed_operation,
    PerformanceTracker
)
from .exceptions import (
    LiftQualityError,
    ConfigurationError,
    SourceReadError,
    FormatError,
    SchemaError,
    SchemaMismatchError,
    InsufficientDataError,
    ModelTrainingError,
    ConvergenceError,
    ModelEvaluationError,
    FileOperationError,
    handle_and_reraise,
    validate_parameter
)
from .error_handling import (
    ErrorContext,
    StageErrorHandler,
    stage_context
)
from .parallel import parallel_map, default_n_jobs, resolve_n_jobs

__all__ = [
    # Logging utilities
    'get_logger',
    'configure_logging',
    'set_log_level',
    'temporary_log_level',

    # Timing utilities
    'timer',
    'timed_operation',
    'PerformanceTracker',

    # Exception handling
    'LiftQualityError',
    'ConfigurationError',
    'SourceReadError',
    'FormatError',
    'SchemaError',
    'SchemaMismatchError',
    'InsufficientDataError',
    'ModelTrainingError',
    'ConvergenceError',
    'ModelEvaluationError',
    'FileOperationError',
    'handle_and_reraise',
    'validate_parameter',

    # Stage error handling
    'ErrorContext',
    'StageErrorHandler',
    'stage_context',

    # Parallel execution
    'parallel_map',
    'default_n_jobs',
    'resolve_n_jobs'
]
