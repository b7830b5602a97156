"""Replication slot resolution with a single create-on-demand fallback."""

from __future__ import annotations

import logging
from typing import Callable, Iterator, Optional

from ..config import SlotIdentity
from ..errors import ErrorCode, SessionError, describe_failure
from .messages import ReplicationMessage
from .outcomes import AttemptOutcome, OutcomeStatus, attempt
from .transport import ProtocolSession, SlotHandle, SnapshotMode, StreamOptions

logger = logging.getLogger(__name__)


class SlotResolver:
    """Starts streaming against a slot, creating it when needed.

    Generated slots are always created first. User supplied slots are assumed
    to exist and are created only if the server reports them missing; the start
    is then retried exactly once.
    """

    def __init__(
        self, *, check_cancelled: Optional[Callable[[], None]] = None
    ) -> None:
        self._check_cancelled = check_cancelled or (lambda: None)
        self.created: Optional[SlotHandle] = None

    def resolve(
        self,
        session: ProtocolSession,
        slot: SlotIdentity,
        options: StreamOptions,
    ) -> Iterator[ReplicationMessage]:
        self.created = None
        if slot.generated:
            self._create(session, slot)
            started = self._start(session, slot, options)
            if started.ok:
                return self._stream(started)
            raise _start_failed(started)

        started = self._start(session, slot, options)
        if started.ok:
            return self._stream(started)
        if started.status is not OutcomeStatus.NOT_FOUND:
            raise _start_failed(started)

        logger.info("replication slot %s does not exist; creating it", slot.name)
        self._create(session, slot)
        retried = self._start(session, slot, options)
        if retried.ok:
            return self._stream(retried)
        raise _start_failed(retried)

    def _create(self, session: ProtocolSession, slot: SlotIdentity) -> SlotHandle:
        self._check_cancelled()
        created = attempt(
            lambda: session.create_slot(
                slot.name, temporary=True, snapshot_mode=SnapshotMode.NO_EXPORT
            )
        )
        if not created.ok:
            raise SessionError(
                ErrorCode.SLOT_CREATE_FAILED,
                describe_failure(
                    f"Error while creating replication slot {slot.name}",
                    created.cause,
                ),
                created.cause,
            )
        assert created.value is not None
        self.created = created.value
        logger.info("created temporary replication slot %s", slot.name)
        return created.value

    def _start(
        self,
        session: ProtocolSession,
        slot: SlotIdentity,
        options: StreamOptions,
    ) -> AttemptOutcome["_PrimedStream"]:
        self._check_cancelled()
        return attempt(lambda: _PrimedStream.start(session, slot.name, options))

    @staticmethod
    def _stream(
        outcome: AttemptOutcome["_PrimedStream"],
    ) -> Iterator[ReplicationMessage]:
        primed = outcome.value
        assert primed is not None
        return primed.iterate()


class _PrimedStream:
    """A started stream whose first fetch already happened.

    Start errors only surface once the first message is requested, so the
    first message is pulled inside the start attempt and replayed afterwards.
    """

    def __init__(
        self,
        source: Iterator[ReplicationMessage],
        first: Optional[ReplicationMessage],
    ) -> None:
        self._source = source
        self._first = first

    @classmethod
    def start(
        cls, session: ProtocolSession, slot_name: str, options: StreamOptions
    ) -> "_PrimedStream":
        source = iter(session.start_streaming(slot_name, options))
        first = next(source, None)
        return cls(source, first)

    def iterate(self) -> Iterator[ReplicationMessage]:
        try:
            if self._first is None:
                return
            yield self._first
            yield from self._source
        finally:
            close = getattr(self._source, "close", None)
            if close is not None:
                close()


def _start_failed(outcome: AttemptOutcome) -> SessionError:
    return SessionError(
        ErrorCode.UNHANDLED_START_REPLICATION,
        describe_failure("Error while starting replication", outcome.cause),
        outcome.cause,
    )


__all__ = ["SlotResolver"]
