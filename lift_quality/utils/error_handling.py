"""Stage-scoped error handling with structured context.

Every pipeline stage runs inside ``stage_context``. Package errors raised
inside the block are tagged with the stage name and re-raised unchanged;
any other exception is converted into the stage's package error type so
callers always learn which stage and which condition failed.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, Optional, Type

from .logger import get_logger
from .exceptions import LiftQualityError

logger = get_logger(__name__)


@dataclass
class ErrorContext:
    """Structured information about the stage an error occurred in."""

    stage: str
    timestamp: datetime = field(default_factory=datetime.now)
    user_data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'stage': self.stage,
            'timestamp': self.timestamp.isoformat(),
            **self.user_data,
        }


class StageErrorHandler:
    """Error handling for one named pipeline stage.

    Example:
        >>> handler = StageErrorHandler('feature_filter')
        >>> with handler.operation_context(default_error=SchemaError):
        ...     filtered = filter_features(df, 'classe', 7, 0.1)
    """

    def __init__(self, stage: str) -> None:
        self.stage = stage
        self.logger = get_logger(f"{__name__}.{stage}")

    @contextmanager
    def operation_context(
        self,
        default_error: Type[LiftQualityError] = LiftQualityError,
        user_data: Optional[Dict[str, Any]] = None,
    ) -> Iterator[ErrorContext]:
        """Run a block as this stage, tagging or converting its errors.

        Args:
            default_error: Package error type used for foreign exceptions
            user_data: Extra context attached to converted errors

        Yields:
            The ErrorContext of this stage
        """
        context = ErrorContext(stage=self.stage, user_data=dict(user_data or {}))
        self.logger.debug(f"Starting stage: {self.stage}")

        try:
            yield context
        except LiftQualityError as e:
            e.context.setdefault('stage', self.stage)
            self.logger.error(f"Stage '{self.stage}' failed: {e}")
            raise
        except Exception as e:
            self.logger.error(
                f"Stage '{self.stage}' failed with {type(e).__name__}: {e}",
                extra={'context': context.to_dict()}
            )
            error_context = context.to_dict()
            error_context['original_error_type'] = type(e).__name__
            raise default_error(
                f"{self.stage} failed: {e}",
                error_code="STAGE_FAILED",
                context=error_context
            ) from e

        self.logger.debug(f"Completed stage: {self.stage}")


def stage_context(
    stage: str,
    default_error: Type[LiftQualityError] = LiftQualityError,
    **user_data: Any
):
    """Context manager shortcut for ``StageErrorHandler(stage).operation_context``.

    Example:
        >>> with stage_context('partitioner', default_error=InsufficientDataError):
        ...     split = stratified_split(df, 'classe', 0.75, seed=312)
    """
    handler = StageErrorHandler(stage)
    return handler.operation_context(default_error=default_error, user_data=user_data)
