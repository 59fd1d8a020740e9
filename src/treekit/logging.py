"""Opt-in loguru output for treekit.

treekit logs through loguru under the ``treekit`` logger name and is silent
until ``enable_logging()`` is called. Records by level, most verbose first:

TRACE
    ``Split accepted: feature=..., gain=..., depth=...`` for every split the
    builder keeps. A deep tree produces one record per internal node.
DEBUG
    ``Tree built`` (samples, depth and leaf count of the unpruned tree),
    ``Tree pruned`` (leaf count before and after cost-complexity pruning),
    ``Forest built`` (tree count and mean leaves per tree) and
    ``Dataset prepared`` (rows, features and target of a DataFrame or CSV).
TRAINING (25)
    ``Fitting <Estimator>: samples=..., features=...`` once per ``fit`` call.
    A forest logs one record with ``estimators=...``; its member trees add none.
WARNING
    A criterion that does not match the task (``"mse"`` on a classifier, for
    instance) is replaced by the task default, and the substitution is logged.

Note:
    Importing this module removes loguru's default stderr handler (ID 0) so
    records are not printed twice once ``enable_logging()`` installs its own.
    When the host application has already removed or replaced handler 0, the
    removal does nothing.
"""

from __future__ import annotations

import contextlib
import sys
import threading
import warnings
from typing import TYPE_CHECKING, ClassVar, Final, Literal

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME: Final[str] = __name__.split(".")[0]

with contextlib.suppress(ValueError):
    logger.remove(0)

# Sits between INFO (20) and WARNING (30)
TRAINING_LEVEL: Final[str] = "TRAINING"
TRAINING_LEVEL_NUMBER: Final[int] = 25

type LogLevel = Literal[
    "TRACE",
    "DEBUG",
    "INFO",
    "TRAINING",
    "WARNING",
    "ERROR",
    "CRITICAL",
]

type LogFormat = Literal["short", "full"]

_TIME_AND_LEVEL: Final[str] = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "

_FORMATS: Final[dict[LogFormat, str]] = {
    "short": _TIME_AND_LEVEL + "<cyan>{function}</cyan> - <level>{message}</level>",
    "full": (
        _TIME_AND_LEVEL + "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    ),
}


def _register_training_level() -> None:
    """Add the TRAINING level to loguru unless it already exists.

    loguru cannot renumber an existing level. If another library registered
    TRAINING with a different number, treekit keeps that level and emits a
    UserWarning instead of failing at import.
    """
    try:
        existing_level = logger.level(TRAINING_LEVEL)
    except ValueError:
        logger.level(TRAINING_LEVEL, no=TRAINING_LEVEL_NUMBER, icon="🌳")
        return
    if existing_level.no != TRAINING_LEVEL_NUMBER:
        warnings.warn(
            f"TRAINING level already registered with numeric value {existing_level.no},"
            f" expected {TRAINING_LEVEL_NUMBER}",
            stacklevel=2,
        )


_register_training_level()


class LoggingHandle:
    """One stderr handler installed by `enable_logging`.

    Handles are independent: each owns a single loguru handler and removes
    only that handler. treekit records stay enabled while at least one handle
    is live and are disabled again when the last one is released, so nested
    ``with enable_logging(...)`` blocks at different levels compose.

    Attributes:
        handler_id (int | None): loguru handler ID, or None once disabled.

    Examples:
        >>> with enable_logging(level="DEBUG"):  # doctest: +SKIP
        ...     DecisionTreeClassifier().fit(X, y)  # TRAINING fit line plus "Tree built"
    """

    _active_ids: ClassVar[set[int]] = set()
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, handler_id: int) -> None:
        """Track a handler returned by ``logger.add``.

        Args:
            handler_id (int): The loguru handler ID.
        """
        self.handler_id: int | None = handler_id
        with LoggingHandle._lock:
            LoggingHandle._active_ids.add(handler_id)

    def disable(self) -> None:
        """Remove this handle's handler; safe to call more than once.

        Releasing the last live handle calls ``logger.disable("treekit")``.
        """
        with LoggingHandle._lock:
            if self.handler_id is None:
                return
            LoggingHandle._active_ids.discard(self.handler_id)
            with contextlib.suppress(ValueError):
                logger.remove(self.handler_id)
            self.handler_id = None
            if not LoggingHandle._active_ids:
                logger.disable(PACKAGE_NAME)

    def __enter__(self) -> LoggingHandle:
        """Return the handle itself.

        Returns:
            LoggingHandle: This handle.
        """
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Disable the handle, also when the block raised."""
        self.disable()

    @classmethod
    def get_active_handle_count(cls) -> int:
        """Return how many handles are still live.

        Returns:
            int: Handles created by `enable_logging` and not yet disabled.
        """
        with cls._lock:
            return len(cls._active_ids)


def enable_logging(
    *,
    level: LogLevel = TRAINING_LEVEL,
    log_format: LogFormat = "short",
) -> LoggingHandle:
    """Print treekit records to stderr until the returned handle is disabled.

    Args:
        level (LogLevel): Lowest level printed. The default "TRAINING" gives
            one line per estimator fit. "DEBUG" adds the tree, pruning, forest
            and dataset summaries, and "TRACE" adds a line per accepted split.
            "WARNING" keeps only criterion substitutions.
        log_format (LogFormat): "short" prints time, level, function and
            message; "full" also prints the module and line number.

    Returns:
        LoggingHandle: Handle owning the new stderr handler.

    Examples:
        >>> with enable_logging(level="TRACE", log_format="full"):  # doctest: +SKIP
        ...     DecisionTreeRegressor(max_depth=2).fit(X, y)
    """
    logger.enable(PACKAGE_NAME)
    handler_id = logger.add(
        sys.stderr,
        level=level,
        filter=_is_treekit_record,
        format=_FORMATS[log_format],
    )
    return LoggingHandle(handler_id)


def _is_treekit_record(record: Record) -> bool:
    name = record["name"]
    return name is not None and name.startswith(PACKAGE_NAME)
