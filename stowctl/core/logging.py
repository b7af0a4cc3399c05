"""Logging utilities for stowctl.

Provides logger setup, timed operation logging and the upload audit trail.
"""

from __future__ import annotations

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Generator, Optional

from stowctl.core.exceptions import UploadCanceledError

# =============================================================================
# Constants
# =============================================================================

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
PACKAGE_LOGGER_NAME = "stowctl"
AUDIT_LOGGER_NAME = "stowctl.audit"


# =============================================================================
# Logger Setup
# =============================================================================


def setup_logging(
    level: int = logging.WARNING,
    *,
    quiet: bool = False,
    verbose: bool = False,
) -> None:
    """Configure logging for stowctl.

    The package logger gets the chosen level even when the root logger was
    already configured by the host application.

    Args:
        level: Base logging level.
        quiet: If True, only show errors.
        verbose: If True, show debug messages, including every state
            transition of the upload engine.
    """
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        stream=sys.stderr,
    )
    logging.getLogger(PACKAGE_LOGGER_NAME).setLevel(level)

    # Suppress noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# =============================================================================
# Log Context
# =============================================================================


class LogContext:
    """Time an operation and log when it starts and how it ended.

    Context fields are rendered once as ``key=value`` pairs and appended to
    both lines. A cancellation is logged at INFO; any other exception at
    ERROR. Exceptions are never suppressed.
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[logging.Logger] = None,
        **context: Any,
    ):
        self.operation = operation
        self.logger = logger or logging.getLogger(__name__)
        self.fields = " ".join(f"{k}={v}" for k, v in context.items())
        self._started: Optional[float] = None

    @property
    def elapsed(self) -> float:
        """Seconds since the context was entered."""
        if self._started is None:
            return 0.0
        return time.monotonic() - self._started

    def __enter__(self) -> "LogContext":
        self._started = time.monotonic()
        self.logger.info("%s started %s", self.operation, self.fields)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if exc_type is None:
            self.logger.info("%s finished in %.2fs %s", self.operation, self.elapsed, self.fields)
        elif issubclass(exc_type, UploadCanceledError):
            self.logger.info("%s canceled after %.2fs %s", self.operation, self.elapsed, self.fields)
        else:
            self.logger.error(
                "%s failed after %.2fs: %s %s",
                self.operation,
                self.elapsed,
                exc_val,
                self.fields,
            )


@contextmanager
def log_context(
    operation: str,
    logger: Optional[logging.Logger] = None,
    **context: Any,
) -> Generator[LogContext, None, None]:
    """Shorthand for ``with LogContext(...)`` that yields the context."""
    with LogContext(operation, logger, **context) as ctx:
        yield ctx


# =============================================================================
# Audit Logger
# =============================================================================


class AuditLogger:
    """Logger for audit trail of uploads."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(AUDIT_LOGGER_NAME)

    def log_upload(
        self,
        destination: str,
        *,
        state: str,
        transferred_bytes: int,
        total_bytes: int,
        success: bool = True,
        details: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Log a finished upload.

        Args:
            destination: ``gs://`` URL of the uploaded object.
            state: Terminal state name.
            transferred_bytes: Bytes acknowledged by the server.
            total_bytes: Payload size.
            success: Whether the upload succeeded.
            details: Additional details.

        Returns:
            The audit record that was logged.
        """
        audit_record: dict[str, Any] = {
            "timestamp": datetime.now().isoformat(),
            "operation": "upload",
            "destination": destination,
            "state": state,
            "transferred_bytes": transferred_bytes,
            "total_bytes": total_bytes,
            "success": success,
        }
        if details:
            audit_record["details"] = details

        level = logging.INFO if success else logging.WARNING
        self.logger.log(level, "AUDIT: %s", audit_record)
        return audit_record


def get_audit_logger() -> AuditLogger:
    """Get the audit logger instance."""
    return AuditLogger()
