"""psycopg2 logical replication transport for the replication tester."""

from __future__ import annotations

import logging
import select
from threading import Event
from typing import Any, Dict, Iterator, Optional

import psycopg2
from psycopg2 import Error, OperationalError, sql
from psycopg2.extras import REPLICATION_LOGICAL
from psycopg2.extras import (
    LogicalReplicationConnection as _LogicalReplicationConnection,
)

from ..replication.messages import MessageKind, ReplicationMessage, int_to_lsn
from ..replication.outcomes import SessionAborted
from ..replication.transport import (
    AlternateCredentialSourceRequired,
    AuthenticationFailed,
    ConnectionParameters,
    SlotAlreadyExists,
    SlotHandle,
    SlotNotFound,
    SnapshotMode,
    StreamOptions,
    TransportError,
)

logger = logging.getLogger(__name__)

UNDEFINED_OBJECT = "42704"
DUPLICATE_OBJECT = "42710"
INVALID_PASSWORD = "28P01"

_ALTERNATE_SOURCE_MARKERS = ("gssapi", "sspi", "kerberos")
_CREDENTIAL_MARKERS = (
    "password authentication failed",
    "no password supplied",
    "password is required",
)


class LogicalReplicationConnection(_LogicalReplicationConnection):
    """Logical replication connection with helper constructor."""

    @classmethod
    def connect(cls, **kwargs: Any) -> "LogicalReplicationConnection":
        return psycopg2.connect(connection_factory=cls, **kwargs)


def connection_kwargs(parameters: ConnectionParameters) -> Dict[str, Any]:
    """Translate connection parameters into libpq keywords."""
    kwargs: Dict[str, Any] = {
        "host": parameters.host,
        "port": parameters.port,
        "dbname": parameters.database,
        "user": parameters.user,
    }
    if parameters.password is not None and not parameters.integrated_security:
        kwargs["password"] = parameters.password
    if parameters.sslmode:
        kwargs["sslmode"] = parameters.sslmode
    if parameters.connect_timeout is not None:
        kwargs["connect_timeout"] = int(parameters.connect_timeout)
    if parameters.integrated_security:
        # GSS-encrypted sessions only.
        kwargs["gssencmode"] = "require"
    return kwargs


def classify_connect_error(exc: Error) -> Optional[TransportError]:
    """Map a libpq connection failure onto the transport error taxonomy."""
    text = str(exc).lower()
    if any(marker in text for marker in _ALTERNATE_SOURCE_MARKERS):
        return AlternateCredentialSourceRequired(str(exc).strip())
    pgcode = getattr(exc, "pgcode", None)
    if pgcode == INVALID_PASSWORD or any(
        marker in text for marker in _CREDENTIAL_MARKERS
    ):
        return AuthenticationFailed(str(exc).strip())
    return None


def server_major_version(server_version: int) -> int:
    """Major version from libpq's integer form (e.g. 140005 -> 14, 90624 -> 9)."""
    return server_version // 10000


class PsycopgReplicationSession:
    """Replication connection implementing the protocol-session contract.

    The stream reuses one message object and overwrites it on every advance;
    consumers keeping a message across an advance must clone it.
    """

    def __init__(
        self,
        connection: LogicalReplicationConnection,
        *,
        cancel_event: Optional[Event] = None,
        poll_interval: float = 1.0,
        status_interval: float = 10.0,
    ) -> None:
        self._connection = connection
        self._cursor = None
        self._cancel_event = cancel_event or Event()
        self._poll_interval = poll_interval
        self._status_interval = status_interval

    @property
    def server_major_version(self) -> int:
        return server_major_version(self._connection.server_version)

    def _ensure_cursor(self):
        if self._cursor is None or self._cursor.closed:
            self._cursor = self._connection.cursor()
        return self._cursor

    def create_slot(
        self,
        name: str,
        *,
        temporary: bool,
        snapshot_mode: SnapshotMode,
    ) -> SlotHandle:
        cursor = self._ensure_cursor()
        command = sql.SQL("CREATE_REPLICATION_SLOT {}{} LOGICAL pgoutput {}").format(
            sql.Identifier(name),
            sql.SQL(" TEMPORARY" if temporary else ""),
            sql.SQL(snapshot_mode.value),
        )
        try:
            cursor.execute(command)
        except Error as exc:
            if getattr(exc, "pgcode", None) == DUPLICATE_OBJECT:
                raise SlotAlreadyExists(str(exc).strip()) from exc
            raise
        row = cursor.fetchone() if cursor.description else None
        consistent_point = row[1] if row and len(row) > 1 else None
        logger.debug(
            "CREATE_REPLICATION_SLOT %s returned consistent point %s",
            name,
            consistent_point,
        )
        return SlotHandle(
            name=name, consistent_point=consistent_point, temporary=temporary
        )

    def start_streaming(
        self, slot_name: str, options: StreamOptions
    ) -> Iterator[ReplicationMessage]:
        cursor = self._ensure_cursor()
        try:
            cursor.start_replication(
                slot_name=slot_name,
                slot_type=REPLICATION_LOGICAL,
                decode=False,
                options=options.as_plugin_options(),
                status_interval=self._status_interval,
            )
        except Error as exc:
            if getattr(exc, "pgcode", None) == UNDEFINED_OBJECT:
                raise SlotNotFound(str(exc).strip()) from exc
            raise
        return self._read_messages(cursor)

    def _read_messages(self, cursor) -> Iterator[ReplicationMessage]:
        current: Optional[ReplicationMessage] = None
        while True:
            if self._cancel_event.is_set():
                raise SessionAborted("replication stream cancelled")
            raw = cursor.read_message()
            if raw is None:
                select.select([cursor], [], [], self._poll_interval)
                continue
            if current is None:
                current = ReplicationMessage.from_pgoutput(
                    raw.payload, data_start=raw.data_start, wal_end=raw.wal_end
                )
            else:
                current.kind = MessageKind.from_payload(raw.payload)
                current.data_start = raw.data_start
                current.wal_end = raw.wal_end
                current.payload = raw.payload
            yield current

    def report_progress(self, applied: int, flushed: int) -> None:
        if self._cursor is None:
            raise RuntimeError("replication has not been started")
        logger.debug(
            "feedback applied=%s flushed=%s", int_to_lsn(applied), int_to_lsn(flushed)
        )
        self._cursor.send_feedback(apply_lsn=applied, flush_lsn=flushed)

    def close(self) -> None:
        try:
            if self._cursor is not None and not self._cursor.closed:
                self._cursor.close()
        finally:
            self._cursor = None
            if not self._connection.closed:
                self._connection.close()


class PsycopgReplicationClient:
    """Opens psycopg2 logical replication connections."""

    def __init__(
        self,
        *,
        cancel_event: Optional[Event] = None,
        poll_interval: float = 1.0,
        status_interval: float = 10.0,
    ) -> None:
        self._cancel_event = cancel_event
        self._poll_interval = poll_interval
        self._status_interval = status_interval

    def open(self, parameters: ConnectionParameters) -> PsycopgReplicationSession:
        try:
            connection = LogicalReplicationConnection.connect(
                **connection_kwargs(parameters)
            )
        except OperationalError as exc:
            classified = classify_connect_error(exc)
            if classified is None:
                raise
            raise classified from exc
        return PsycopgReplicationSession(
            connection,
            cancel_event=self._cancel_event,
            poll_interval=self._poll_interval,
            status_interval=self._status_interval,
        )


__all__ = [
    "Error",
    "LogicalReplicationConnection",
    "OperationalError",
    "PsycopgReplicationClient",
    "PsycopgReplicationSession",
    "classify_connect_error",
    "connection_kwargs",
    "server_major_version",
]
