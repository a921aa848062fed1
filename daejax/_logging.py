"""Logging configuration for daejax.

The package logs through a single ``daejax`` logger:
- Default: WARNING level only, so library use stays quiet
- Step tracing: DEBUG level with immediate flush, optionally stamped with
  ``time.perf_counter()`` so log lines can be matched against profiles

Usage:
    from daejax._logging import logger, enable_performance_logging

    logger.warning("shown")
    logger.debug("hidden")

    enable_performance_logging(with_perf_counter=True)
    logger.debug("shown as: [1234.567890] message")
"""

import logging
import sys
import time
import tracemalloc

logger = logging.getLogger("daejax")

logger.setLevel(logging.WARNING)

if not logger.handlers:
    _default_handler = logging.StreamHandler(sys.stdout)
    _default_handler.setLevel(logging.NOTSET)
    _default_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(_default_handler)


def _get_memory_stats() -> str:
    """Return a short traced-memory prefix, or an empty string if not tracing."""
    if not tracemalloc.is_tracing():
        return ""
    current, peak = tracemalloc.get_traced_memory()
    return f"[CPU:{current / 1024 / 1024:.0f}MB peak:{peak / 1024 / 1024:.0f}MB]"


class FlushingHandler(logging.StreamHandler):
    """StreamHandler that flushes after every record."""

    def emit(self, record):
        super().emit(record)
        self.flush()


class PerfCounterHandler(logging.StreamHandler):
    """StreamHandler that prefixes perf_counter() (and optionally memory) and flushes."""

    def __init__(self, stream=None, with_memory: bool = False):
        super().__init__(stream)
        self.with_memory = with_memory

    def emit(self, record):
        prefix = f"[{time.perf_counter():.6f}]"
        if self.with_memory:
            mem_stats = _get_memory_stats()
            if mem_stats:
                prefix = f"{mem_stats} {prefix}"
        record.msg = f"{prefix} {record.msg}"
        super().emit(record)
        self.flush()


def enable_performance_logging(with_memory: bool = False, with_perf_counter: bool = False):
    """Switch the package logger to DEBUG with flushing output.

    Args:
        with_memory: Start tracemalloc and prefix traced memory to each line
            (only used together with ``with_perf_counter``).
        with_perf_counter: Prefix time.perf_counter() timestamps.
    """
    logger.setLevel(logging.DEBUG)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    if with_memory and not tracemalloc.is_tracing():
        tracemalloc.start()

    if with_perf_counter:
        handler = PerfCounterHandler(sys.stdout, with_memory=with_memory)
    else:
        handler = FlushingHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)


def set_log_level(level: int):
    """Set the package logger level.

    Args:
        level: logging.DEBUG, logging.INFO, logging.WARNING, etc.
    """
    logger.setLevel(level)


def level_for_verbosity(verbosity: int) -> int:
    """Map the solver ``verbosity`` option to a logging level."""
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity >= 1:
        return logging.INFO
    return logging.WARNING
