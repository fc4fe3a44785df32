"""Scheduling trace output for diyplan.

The engine narrates a run at three depths, selected with ``-v`` on the CLI:

1. placements: where each task landed, which tasks could not be placed and
   why, deadline violations, and workers with no usable time
2. candidates: every worker group tried for a task with the window it would
   get, and every sensitivity variant with its completion shift
3. debug: resolved durations and per-worker free-time totals

Messages go to stderr without a level prefix so they read as a trace of the
run rather than as warnings.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

PLACEMENTS_LEVEL = 25  # Between INFO and WARNING
CANDIDATES_LEVEL = 15  # Between DEBUG and INFO

logging.addLevelName(PLACEMENTS_LEVEL, "PLACEMENTS")
logging.addLevelName(CANDIDATES_LEVEL, "CANDIDATES")

VERBOSITY_SILENT = 0
VERBOSITY_PLACEMENTS = 1
VERBOSITY_CANDIDATES = 2
VERBOSITY_DEBUG = 3

_LEVELS_BY_VERBOSITY = {
    VERBOSITY_SILENT: logging.ERROR,
    VERBOSITY_PLACEMENTS: PLACEMENTS_LEVEL,
    VERBOSITY_CANDIDATES: CANDIDATES_LEVEL,
    VERBOSITY_DEBUG: logging.DEBUG,
}


class DiyPlanLogger(logging.Logger):
    """The ``diyplan`` logger, with a method for each trace depth above debug."""

    def placement(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Report an outcome, e.g. "Scheduled task demo on alex from ... to ..."."""
        if self.isEnabledFor(PLACEMENTS_LEVEL):
            self._log(PLACEMENTS_LEVEL, msg, args, **kwargs)

    def candidate(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Report an option weighed on the way to an outcome."""
        if self.isEnabledFor(CANDIDATES_LEVEL):
            self._log(CANDIDATES_LEVEL, msg, args, **kwargs)


def get_logger() -> DiyPlanLogger:
    logging.setLoggerClass(DiyPlanLogger)
    logger = logging.getLogger("diyplan")
    assert isinstance(logger, DiyPlanLogger)
    return logger


def setup_logger(verbosity: int, stream: TextIO | None = None) -> None:
    """Route the scheduling trace to ``stream`` at the given depth.

    Out-of-range verbosity is clamped to 0..3. Calling again replaces the
    previous handler, so the CLI callback and tests can reconfigure freely.

    Args:
        verbosity: 0 for errors only, 1 placements, 2 candidates, 3 debug
        stream: Output stream, stderr when omitted
    """
    logger = get_logger()
    logger.handlers.clear()
    verbosity = max(VERBOSITY_SILENT, min(verbosity, VERBOSITY_DEBUG))
    logger.setLevel(_LEVELS_BY_VERBOSITY[verbosity])

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


def reset_logger() -> None:
    """Silence the trace again (errors only, no handlers)."""
    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(logging.ERROR)


def placements_enabled() -> bool:
    return get_logger().isEnabledFor(PLACEMENTS_LEVEL)


def candidates_enabled() -> bool:
    """True at verbosity 2 and up; guards building per-candidate messages."""
    return get_logger().isEnabledFor(CANDIDATES_LEVEL)


def debug_enabled() -> bool:
    return get_logger().isEnabledFor(logging.DEBUG)
