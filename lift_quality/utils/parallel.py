"""Bounded-parallelism map over independent work units.

The cross-validation grid and the ensemble refit only ever talk to
``parallel_map``; the joblib backend and its worker lifecycle stay here.
"""

import os
from typing import Any, Callable, Dict, Hashable, Iterable, Optional, Tuple, TypeVar

from joblib import Parallel, delayed

from .logger import get_logger

logger = get_logger(__name__)

K = TypeVar('K', bound=Hashable)
R = TypeVar('R')


def default_n_jobs() -> int:
    """Available CPU cores minus one, reserving a core for coordination."""
    return max(1, (os.cpu_count() or 1) - 1)


def resolve_n_jobs(n_jobs: Optional[int]) -> int:
    """Turn a configured worker count into a concrete positive number.

    ``None`` and ``-1`` mean "all cores but one".
    """
    if n_jobs is None or n_jobs == -1:
        return default_n_jobs()
    return max(1, int(n_jobs))


def parallel_map(
    func: Callable[..., R],
    units: Iterable[Tuple[K, Tuple[Any, ...]]],
    n_jobs: Optional[int] = None,
    backend: Optional[str] = None,
) -> Dict[K, R]:
    """Apply ``func`` to every work unit and collect results by key.

    Args:
        func: Function called as ``func(*args)`` for each unit
        units: Iterable of ``(key, args)`` pairs; keys must be unique
        n_jobs: Worker count (``None`` -> cores minus one)
        backend: Optional joblib backend name (default: loky processes)

    Returns:
        Dictionary mapping each unit key to its result. The mapping is
        built from keys, so completion order never matters.

    Raises:
        ValueError: If two units share a key
        Exception: The first exception raised by any unit; no partial
            results are returned.
    """
    units = list(units)
    keys = [key for key, _ in units]
    if len(set(keys)) != len(keys):
        raise ValueError("parallel_map requires unique work unit keys")

    workers = min(resolve_n_jobs(n_jobs), max(1, len(units)))
    logger.debug(f"Running {len(units)} work units on {workers} worker(s)")

    if workers == 1:
        results = [func(*args) for _, args in units]
    else:
        results = Parallel(n_jobs=workers, backend=backend)(
            delayed(func)(*args) for _, args in units
        )

    return dict(zip(keys, results))
