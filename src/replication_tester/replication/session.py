"""Replication session orchestrating authentication, slot resolution and filtering."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Event
from typing import Iterator, Optional

from ..config import SessionConfig, SlotIdentity
from ..errors import SessionError
from ..prompt import CredentialPrompt
from .authenticator import SessionAuthenticator
from .filtering import filter_messages
from .messages import ReplicationMessage, int_to_lsn
from .outcomes import SessionAborted
from .slots import SlotResolver
from .transport import ProtocolClient, ProtocolSession, StreamOptions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Watermark:
    applied: int = 0
    flushed: int = 0


class ReplicationSession:
    """One authenticated replication connection and its filtered message stream.

    Use as a context manager; the connection and any open stream are released
    on every exit path. After each message from `start_streaming()` is handled
    the caller reports its position through `report_progress()`.
    """

    def __init__(
        self,
        config: SessionConfig,
        client: ProtocolClient,
        prompt: CredentialPrompt,
        *,
        cancel_event: Optional[Event] = None,
    ) -> None:
        self.config = config
        self.slot: SlotIdentity = config.slot_identity()
        self.error: Optional[SessionError] = None
        self._cancel_event = cancel_event or Event()
        self._authenticator = SessionAuthenticator(
            client, prompt, check_cancelled=self.check_cancelled
        )
        self._resolver = SlotResolver(check_cancelled=self.check_cancelled)
        self._connection: Optional[ProtocolSession] = None
        self._raw_stream: Optional[Iterator[ReplicationMessage]] = None
        self._stream: Optional[Iterator[ReplicationMessage]] = None
        self._protocol_version: Optional[int] = None
        self._delivered: Optional[int] = None
        self._watermark = Watermark()

    def __enter__(self) -> "ReplicationSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    @property
    def protocol_version(self) -> Optional[int]:
        return self._protocol_version

    @property
    def watermark(self) -> Watermark:
        return self._watermark

    @property
    def connection(self) -> Optional[ProtocolSession]:
        return self._connection

    def check_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise SessionAborted("replication session cancelled")

    def open(self) -> ProtocolSession:
        """Authenticate and connect; raises `SessionError` on terminal failure."""
        self.error = None
        if self._connection is not None:
            raise RuntimeError("session is already open")
        try:
            self._connection = self._authenticator.open(self.config)
        except SessionError as exc:
            self.error = exc
            raise
        if self._protocol_version is None:
            self._protocol_version = self._authenticator.protocol_version
        return self._connection

    def start_streaming(self) -> Iterator[ReplicationMessage]:
        """Resolve the slot and return the filtered message iterator."""
        self.error = None
        if self._connection is None:
            raise RuntimeError("session is not open")
        if self._protocol_version is None:
            raise RuntimeError("protocol version was not negotiated")
        options = StreamOptions(
            publication_names=self.config.publication_names,
            protocol_version=self._protocol_version,
            binary=self.config.binary,
            streaming=self.config.streaming,
        )
        try:
            self._raw_stream = self._resolver.resolve(
                self._connection, self.slot, options
            )
        except SessionError as exc:
            self.error = exc
            raise
        logger.info(
            "streaming from slot %s (publications: %s)",
            self.slot.name,
            ", ".join(sorted(options.publication_names)),
        )
        self._stream = self._track_delivery(
            filter_messages(
                self._raw_stream,
                keep_empty_transactions=self.config.keep_empty_transactions,
            )
        )
        return self._stream

    def _track_delivery(
        self, messages: Iterator[ReplicationMessage]
    ) -> Iterator[ReplicationMessage]:
        for message in messages:
            self.check_cancelled()
            if self._delivered is None or message.position > self._delivered:
                self._delivered = message.position
            yield message

    def report_progress(self, position: int) -> Watermark:
        """Set applied and flushed positions to that of a fully processed message."""
        if self._connection is None:
            raise RuntimeError("session is not open")
        if self._delivered is None or position > self._delivered:
            raise ValueError(
                f"position {int_to_lsn(position)} was never delivered by this session"
            )
        if position < self._watermark.flushed:
            logger.debug(
                "ignoring progress report %s behind watermark %s",
                int_to_lsn(position),
                int_to_lsn(self._watermark.flushed),
            )
            return self._watermark
        self._watermark = Watermark(applied=position, flushed=position)
        self._connection.report_progress(position, position)
        return self._watermark

    def close(self) -> None:
        stream, self._stream = self._stream, None
        raw_stream, self._raw_stream = self._raw_stream, None
        connection, self._connection = self._connection, None
        try:
            for iterator in (stream, raw_stream):
                close = getattr(iterator, "close", None)
                if close is not None:
                    close()
        finally:
            if connection is not None:
                connection.close()
                logger.debug("replication connection closed")


__all__ = ["ReplicationSession", "Watermark"]
