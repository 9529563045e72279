# lift_quality/utils/logger.py
"""Logging setup for the lift_quality package.

Every module logs through a child of the ``lift_quality`` logger. Handlers
live on that root only: a stdout stream and, on request, a rotating file.
Records may carry two extras which the formatter appends to the line:

- ``context``: a dict, e.g. the stage and column attached to a failure
- ``duration``: seconds, attached by :mod:`lift_quality.utils.timer`
"""

import json
import logging
import logging.handlers
import sys
import threading
from pathlib import Path
from typing import Optional, Union

from .exceptions import FileOperationError

PACKAGE_LOGGER_NAME = "lift_quality"

_LOG_FORMAT = "[%(asctime)s.%(msecs)03d] %(levelname)-8s | %(name)-28s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_MAX_LOG_BYTES = 5 * 1024 * 1024
_LOG_BACKUPS = 3


def _to_level(level: Union[str, int]) -> int:
    if isinstance(level, str):
        return logging.getLevelName(level.upper())
    return level


class LiftQualityFormatter(logging.Formatter):
    """One line per record, followed by the traceback if there is one.

    ``context`` is rendered as JSON and ``duration`` in seconds, each after
    a ``|`` separator.
    """

    def __init__(self) -> None:
        super().__init__(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT)

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = getattr(record, "context", None)
        if context:
            line += f" | Context: {json.dumps(context, default=str, sort_keys=True)}"
        duration = getattr(record, "duration", None)
        if duration is not None:
            line += f" | {duration:.3f}s"
        return line


class LiftQualityLogger:
    """Owns the handlers on the package root logger."""

    _configured = False
    _lock = threading.Lock()

    @classmethod
    def configure(
        cls,
        level: Union[str, int] = logging.INFO,
        log_file: Optional[Union[str, Path]] = None,
        include_console: bool = True
    ) -> None:
        """Attach handlers to the package root. Later calls are no-ops.

        Args:
            level: Level name or number for the root and its handlers
            log_file: Optional path of a rotating log file
            include_console: Whether to log to stdout

        Raises:
            FileOperationError: If the log file cannot be opened
        """
        with cls._lock:
            if cls._configured:
                return

            level = _to_level(level)
            root = logging.getLogger(PACKAGE_LOGGER_NAME)
            root.setLevel(level)
            root.handlers.clear()

            handlers = []
            if include_console:
                handlers.append(logging.StreamHandler(sys.stdout))
            if log_file:
                log_path = Path(log_file)
                try:
                    log_path.parent.mkdir(parents=True, exist_ok=True)
                    handlers.append(logging.handlers.RotatingFileHandler(
                        log_path, maxBytes=_MAX_LOG_BYTES, backupCount=_LOG_BACKUPS, encoding="utf-8"
                    ))
                except OSError as e:
                    raise FileOperationError(
                        f"Cannot open log file {log_path}",
                        error_code="LOG_FILE_SETUP_FAILED",
                        context={"log_file": str(log_path), "error": str(e)}
                    ) from e

            formatter = LiftQualityFormatter()
            for handler in handlers:
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root.addHandler(handler)

            cls._configured = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        if not cls._configured:
            cls.configure()

        if name == "__main__":
            name = f"{PACKAGE_LOGGER_NAME}.main"
        elif name != PACKAGE_LOGGER_NAME and not name.startswith(f"{PACKAGE_LOGGER_NAME}."):
            name = f"{PACKAGE_LOGGER_NAME}.{name}"
        return logging.getLogger(name)

    @classmethod
    def set_level(cls, level: Union[str, int]) -> None:
        level = _to_level(level)
        root = logging.getLogger(PACKAGE_LOGGER_NAME)
        root.setLevel(level)
        for handler in root.handlers:
            handler.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``lift_quality`` hierarchy.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Cross-validation started")
    """
    return LiftQualityLogger.get_logger(name)


def configure_logging(
    level: Union[str, int] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    include_console: bool = True
) -> None:
    """Configure package logging once per process.

    Example:
        >>> configure_logging(level="DEBUG", log_file="logs/lift_quality.log")
    """
    LiftQualityLogger.configure(level=level, log_file=log_file, include_console=include_console)


def set_log_level(level: Union[str, int]) -> None:
    LiftQualityLogger.set_level(level)


class temporary_log_level:
    """Switch the package level inside a ``with`` block.

    Example:
        >>> with temporary_log_level("DEBUG"):
        ...     train_model(split.train, 'classe')   # per-fold accuracies shown
    """

    def __init__(self, level: Union[str, int]) -> None:
        self.level = _to_level(level)
        self._saved: Optional[int] = None

    def __enter__(self) -> "temporary_log_level":
        self._saved = logging.getLogger(PACKAGE_LOGGER_NAME).level
        LiftQualityLogger.set_level(self.level)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        LiftQualityLogger.set_level(self._saved)
