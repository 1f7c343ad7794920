"""
Forwarding of unexpected exceptions to an error tracker.

The HTTP layer calls :func:`capture_exception` when it converts an
unexpected failure into a 500 response.  By default the exception is
logged with its traceback; deployments can install a different
reporter with :func:`set_reporter`.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Reporter = Callable[[BaseException], None]


def _log_exception(exc: BaseException) -> None:
    logger.error(f"Unhandled exception: {exc}", exc_info=(type(exc), exc, exc.__traceback__))


_reporter: Reporter = _log_exception


def set_reporter(reporter: Optional[Reporter]) -> None:
    """Install ``reporter``; passing ``None`` restores the logging reporter."""
    global _reporter
    _reporter = reporter or _log_exception


def capture_exception(exc: BaseException) -> None:
    """Send ``exc`` to the configured reporter.

    A failing reporter must not mask the original error, so its own
    exceptions are logged and dropped.
    """
    try:
        _reporter(exc)
    except Exception as report_error:  # pragma: no cover - just logs
        logger.error(f"Error reporter failed: {report_error}")
