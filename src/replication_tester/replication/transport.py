"""Contract for the protocol-session collaborator used by the replication session.

The session logic never talks to a driver directly. It depends on these
protocols so tests can script connection, slot and streaming behaviour, while
`replication_tester.db` provides the psycopg2-backed implementation.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, FrozenSet, Iterator, Optional, Protocol

from .messages import ReplicationMessage


class TransportError(RuntimeError):
    """Base class for classified failures raised by a protocol client."""


class AlternateCredentialSourceRequired(TransportError):
    """The server asked for integrated (GSSAPI/SSPI) authentication."""


class AuthenticationFailed(TransportError):
    """The server rejected or required a password."""


class SlotNotFound(TransportError):
    """Streaming was requested against a slot name with no backing slot."""


class SlotAlreadyExists(TransportError):
    """Slot creation collided with an existing slot of the same name."""


class SnapshotMode(str, Enum):
    EXPORT = "EXPORT_SNAPSHOT"
    NO_EXPORT = "NOEXPORT_SNAPSHOT"
    USE = "USE_SNAPSHOT"


@dataclass(frozen=True)
class ConnectionParameters:
    """Connection keywords handed to the protocol client for one open attempt."""

    host: str
    port: int
    database: str
    user: str
    password: Optional[str] = None
    integrated_security: bool = False
    sslmode: Optional[str] = None
    connect_timeout: Optional[int] = None

    def with_password(self, password: str) -> "ConnectionParameters":
        return replace(self, password=password)

    def with_integrated_security(self) -> "ConnectionParameters":
        return replace(self, integrated_security=True, password=None)


@dataclass(frozen=True)
class StreamOptions:
    """`pgoutput` plugin options for START_REPLICATION."""

    publication_names: FrozenSet[str]
    protocol_version: int
    binary: bool = False
    streaming: bool = False

    def as_plugin_options(self) -> Dict[str, str]:
        quoted = ",".join(
            '"{}"'.format(name.replace('"', '""'))
            for name in sorted(self.publication_names)
        )
        options = {
            "proto_version": str(self.protocol_version),
            "publication_names": quoted,
        }
        if self.binary:
            options["binary"] = "true"
        if self.streaming:
            options["streaming"] = "true"
        return options


@dataclass(frozen=True)
class SlotHandle:
    name: str
    consistent_point: Optional[str] = None
    temporary: bool = True


class ProtocolSession(Protocol):
    """An open replication connection."""

    @property
    def server_major_version(self) -> int: ...

    def create_slot(
        self,
        name: str,
        *,
        temporary: bool,
        snapshot_mode: SnapshotMode,
    ) -> SlotHandle: ...

    def start_streaming(
        self, slot_name: str, options: StreamOptions
    ) -> Iterator[ReplicationMessage]: ...

    def report_progress(self, applied: int, flushed: int) -> None: ...

    def close(self) -> None: ...


class ProtocolClient(Protocol):
    """Factory opening replication connections."""

    def open(self, parameters: ConnectionParameters) -> ProtocolSession: ...


__all__ = [
    "AlternateCredentialSourceRequired",
    "AuthenticationFailed",
    "ConnectionParameters",
    "ProtocolClient",
    "ProtocolSession",
    "SlotAlreadyExists",
    "SlotHandle",
    "SlotNotFound",
    "SnapshotMode",
    "StreamOptions",
    "TransportError",
]
