# SPDX-License-Identifier: MIT
"""Error reporting abstractions."""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from typing import TextIO

import logfire


class ErrorHandler(ABC):
    """Interface for reporting errors.

    Implementations should avoid raising further exceptions and should emit
    concise diagnostics suitable for production logs. Messages must never
    include secret material.
    """

    @abstractmethod
    def handle(self, message: str, exc: Exception | None = None) -> None:
        """Record ``message`` with optional ``exc`` context."""


class LoggingErrorHandler(ErrorHandler):
    """Error handler that logs via ``logfire``."""

    def handle(self, message: str, exc: Exception | None = None) -> None:
        """Log an error message with optional exception context.

        Args:
            message: Description of the error to record.
            exc: Exception instance providing additional context.
        """
        if exc:
            logfire.error(
                "{message}: {error}",
                message=message,
                error=str(exc),
                error_type=type(exc).__name__,
            )
        else:
            logfire.error("{message}", message=message)


class ConsoleErrorHandler(LoggingErrorHandler):
    """Log errors and echo a one-line summary to ``stream``.

    Used by the command-line interface so users see failures even when the
    console log level hides them.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def handle(self, message: str, exc: Exception | None = None) -> None:
        super().handle(message, exc)
        stream = self._stream or sys.stderr
        line = f"{message}: {exc}" if exc else message
        print(f"error: {line}", file=stream)
