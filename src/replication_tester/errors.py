"""Session error taxonomy and its translation into process exit statuses."""

from __future__ import annotations

import logging
import sys
from enum import IntEnum
from typing import Optional, TextIO

logger = logging.getLogger(__name__)


class ErrorCode(IntEnum):
    SUCCESS = 0
    ABORTED = 1

    # connection phase
    UNHANDLED_CONNECT = 1000
    MISSING_CREDENTIAL = 1001
    EMPTY_CREDENTIAL = 1002
    RETRY_FAILED = 1003

    # slot phase
    SLOT_CREATE_FAILED = 2000

    # streaming phase
    UNHANDLED_START_REPLICATION = 3000


ABORTED_MESSAGE = "The operation was aborted"
GENERIC_ERROR_MESSAGE = "An error occurred."


class SessionError(RuntimeError):
    """Terminal failure of a session phase."""

    def __init__(
        self,
        code: ErrorCode,
        message: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        if code in (ErrorCode.SUCCESS, ErrorCode.ABORTED):
            raise ValueError(f"{code.name} is not a session error code")
        if message is None:
            message = str(cause) if cause is not None and str(cause) else None
        super().__init__(message or GENERIC_ERROR_MESSAGE)
        self.code = code
        self.message = message
        self.cause = cause

    def __repr__(self) -> str:
        return f"SessionError(code={self.code.name}, message={self.message!r})"


def describe_failure(prefix: str, cause: Optional[BaseException]) -> str:
    detail = str(cause).strip() if cause is not None else ""
    if not detail:
        return f"{prefix}."
    return f"{prefix}: {detail}"


class ErrorReporter:
    """Writes failures to the error channel and returns the exit status."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stderr

    @staticmethod
    def status_for(error: Optional[SessionError]) -> int:
        if error is None:
            return int(ErrorCode.SUCCESS)
        return int(error.code)

    def report(self, error: SessionError) -> int:
        if error.cause is not None:
            logger.debug(
                "session failed with %s", error.code.name, exc_info=error.cause
            )
        print(error.message or GENERIC_ERROR_MESSAGE, file=self.stream)
        return self.status_for(error)

    def report_aborted(self) -> int:
        print(ABORTED_MESSAGE, file=self.stream)
        return int(ErrorCode.ABORTED)


__all__ = [
    "ABORTED_MESSAGE",
    "ErrorCode",
    "ErrorReporter",
    "GENERIC_ERROR_MESSAGE",
    "SessionError",
    "describe_failure",
]
