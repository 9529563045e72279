# lift_quality/utils/exceptions.py
"""Custom exception hierarchy for lift_quality package.

This module defines the exception hierarchy used by every pipeline stage.
Each error carries an optional error code and a context dictionary that
names the stage and the specific column, class or fold that triggered it.
"""

from typing import Any, Optional, Dict, List


class LiftQualityError(Exception):
    """Base exception for all lift_quality package errors.

    This is the root exception class that all other package-specific
    exceptions inherit from. It provides common functionality for
    error context and debugging information.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        """Initialize LiftQualityError.

        Args:
            message: Human-readable error message
            error_code: Optional error code for programmatic handling
            context: Optional dictionary with additional error context
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}

    def __reduce__(self):
        # Keep error_code and context when pickled
        return (self.__class__, (self.message, self.error_code, self.context))

    @property
    def stage(self) -> Optional[str]:
        """Pipeline stage that raised the error, if known."""
        return self.context.get("stage")

    def __str__(self) -> str:
        """Return string representation of error."""
        base_msg = self.message
        if self.error_code:
            base_msg = f"[{self.error_code}] {base_msg}"
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg = f"{base_msg} (Context: {context_str})"
        return base_msg


class ConfigurationError(LiftQualityError):
    """Raised when configuration is invalid or incomplete.

    This exception is raised for issues with:
    - Invalid parameter values
    - Missing required configuration
    - Unreadable or malformed configuration files
    """
    pass


class SourceReadError(LiftQualityError, OSError):
    """Raised when a data source cannot be opened or read.

    Subclasses ``OSError`` so callers catching ``IOError`` keep working.
    """
    pass


class FormatError(LiftQualityError):
    """Raised when a delimited source has malformed rows.

    This exception is raised for issues with:
    - Rows whose field count differs from the header
    - Sources with no header or no data rows
    """
    pass


class SchemaError(LiftQualityError):
    """Raised when the column set is unusable.

    This exception is raised for issues with:
    - No predictor column surviving the feature filter
    - The label column missing or dropped
    - Non-numeric predictor columns
    """
    pass


class SchemaMismatchError(SchemaError):
    """Raised when prediction input lacks the model's predictor columns."""
    pass


class InsufficientDataError(LiftQualityError):
    """Raised when a class has too few rows to stratify or cross-validate."""
    pass


class ModelTrainingError(LiftQualityError):
    """Raised when model training fails.

    This exception is raised for issues during:
    - Ensemble fitting
    - Cross-validation work units
    """
    pass


class ConvergenceError(ModelTrainingError):
    """Raised when no hyperparameter configuration beats chance on every fold."""
    pass


class ModelEvaluationError(LiftQualityError):
    """Raised when model evaluation fails.

    This exception is raised for issues during:
    - Prediction generation
    - Metric computation
    """
    pass


class FileOperationError(LiftQualityError):
    """Raised when writing logs, plots or configuration files fails."""
    pass


# Utility functions for error handling
def handle_and_reraise(
    exception: Exception,
    error_class: type,
    message: str,
    error_code: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> None:
    """Handle an exception and re-raise as a lift_quality exception.

    This utility function standardizes exception handling throughout
    the package by converting external exceptions into our custom
    exception hierarchy while preserving the original traceback.

    Args:
        exception: Original exception that was caught
        error_class: LiftQualityError subclass to raise
        message: Custom error message
        error_code: Optional error code
        context: Optional error context

    Raises:
        error_class: The specified lift_quality exception
    """
    if context is None:
        context = {}

    context["original_error"] = str(exception)
    context["original_error_type"] = type(exception).__name__

    raise error_class(message, error_code, context) from exception


def validate_parameter(
    param_name: str,
    param_value: Any,
    valid_values: Optional[List[Any]] = None,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
    required: bool = False
) -> None:
    """Validate a parameter value and raise ConfigurationError if invalid.

    Args:
        param_name: Name of the parameter being validated
        param_value: Value to validate
        valid_values: List of valid values (if applicable)
        min_value: Minimum allowed value (for numeric parameters)
        max_value: Maximum allowed value (for numeric parameters)
        required: Whether the parameter is required (cannot be None)

    Raises:
        ConfigurationError: If validation fails
    """
    if required and param_value is None:
        raise ConfigurationError(
            f"Parameter '{param_name}' is required but was not provided",
            error_code="PARAM_REQUIRED",
            context={"parameter": param_name}
        )

    if param_value is None:
        return  # Optional parameter not provided

    if valid_values is not None and param_value not in valid_values:
        raise ConfigurationError(
            f"Parameter '{param_name}' must be one of {valid_values}, got {param_value}",
            error_code="PARAM_INVALID_VALUE",
            context={"parameter": param_name, "value": param_value, "valid_values": valid_values}
        )

    if min_value is not None and param_value < min_value:
        raise ConfigurationError(
            f"Parameter '{param_name}' must be >= {min_value}, got {param_value}",
            error_code="PARAM_TOO_SMALL",
            context={"parameter": param_name, "value": param_value, "min_value": min_value}
        )

    if max_value is not None and param_value > max_value:
        raise ConfigurationError(
            f"Parameter '{param_name}' must be <= {max_value}, got {param_value}",
            error_code="PARAM_TOO_LARGE",
            context={"parameter": param_name, "value": param_value, "max_value": max_value}
        )
