"""Tagged results for single connection, slot and streaming attempts."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar

from .transport import (
    AlternateCredentialSourceRequired,
    AuthenticationFailed,
    SlotNotFound,
)

T = TypeVar("T")


class SessionAborted(Exception):
    """Raised when cooperative cancellation is observed at a suspension point."""


class OutcomeStatus(Enum):
    OK = "ok"
    REQUIRES_ALTERNATE_SOURCE = "requires_alternate_source"
    REQUIRES_CREDENTIAL = "requires_credential"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass(frozen=True)
class AttemptOutcome(Generic[T]):
    status: OutcomeStatus
    value: Optional[T] = None
    cause: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.OK


def attempt(operation: Callable[[], T]) -> AttemptOutcome[T]:
    """Run `operation` once and classify how it ended.

    Cancellation is not an outcome and propagates unchanged.
    """
    try:
        value = operation()
    except SessionAborted:
        raise
    except AlternateCredentialSourceRequired as exc:
        return AttemptOutcome(OutcomeStatus.REQUIRES_ALTERNATE_SOURCE, cause=exc)
    except AuthenticationFailed as exc:
        return AttemptOutcome(OutcomeStatus.REQUIRES_CREDENTIAL, cause=exc)
    except SlotNotFound as exc:
        return AttemptOutcome(OutcomeStatus.NOT_FOUND, cause=exc)
    except Exception as exc:  # noqa: BLE001 - classified as a failed attempt
        return AttemptOutcome(OutcomeStatus.FAILED, cause=exc)
    return AttemptOutcome(OutcomeStatus.OK, value=value)


__all__ = ["AttemptOutcome", "OutcomeStatus", "SessionAborted", "attempt"]
