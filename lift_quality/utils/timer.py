# lift_quality/utils/timer.py
"""Wall-clock timing of pipeline stages.

``timed_operation`` logs how long a block took, attaching the duration to
the log record, and records it in a :class:`PerformanceTracker` when one is
passed. The pipeline keeps one tracker per run and reports its totals as
``PipelineResults.timings``.
"""

import functools
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar

from .logger import get_logger

logger = get_logger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


class PerformanceTracker:
    """Thread-safe store of durations by operation name."""

    def __init__(self) -> None:
        self._durations: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def record(self, name: str, duration: float) -> None:
        with self._lock:
            self._durations.setdefault(name, []).append(duration)

    def totals(self) -> Dict[str, float]:
        """Summed seconds per operation, in the order first recorded."""
        with self._lock:
            return {name: float(sum(values)) for name, values in self._durations.items()}


@contextmanager
def timed_operation(name: str, tracker: Optional[PerformanceTracker] = None) -> Iterator[Dict[str, float]]:
    """Time a block.

    Args:
        name: Operation name used in the log line and the tracker
        tracker: Optional tracker receiving the duration on success

    Yields:
        Dict whose ``duration`` is filled in when the block exits

    Example:
        >>> with timed_operation("final_refit") as timing:
        ...     model = TrainedModel.fit(train_df, 'classe', mtry=9)
        >>> timing['duration']
    """
    timing = {'duration': 0.0}
    start = time.perf_counter()
    try:
        yield timing
    except Exception as e:
        timing['duration'] = time.perf_counter() - start
        logger.error(f"{name} failed: {e}", extra={'duration': timing['duration']})
        raise

    timing['duration'] = time.perf_counter() - start
    logger.info(f"{name} finished", extra={'duration': timing['duration']})
    if tracker is not None:
        tracker.record(name, timing['duration'])


def timer(name: Optional[str] = None) -> Callable[[F], F]:
    """Decorator form of :func:`timed_operation`.

    Example:
        >>> @timer(name="holdout_evaluation")
        ... def evaluate(self, model, holdout_df):
        ...     ...
    """
    def decorator(func: F) -> F:
        operation = name or func.__qualname__

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with timed_operation(operation):
                return func(*args, **kwargs)

        return wrapper

    return decorator
