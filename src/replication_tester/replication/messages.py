"""Replication stream message model for `pgoutput` payloads.

Only the message type is decoded from the payload; tuple data is left as raw
bytes. Streams may reuse a message instance (and its payload buffer) when
advancing, so consumers that keep a message across an advance must `clone()` it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Union


class MessageKind(Enum):
    """Logical replication message variants keyed by their `pgoutput` type byte."""

    BEGIN = "B"
    COMMIT = "C"
    ORIGIN = "O"
    RELATION = "R"
    TYPE = "Y"
    INSERT = "I"
    UPDATE = "U"
    DELETE = "D"
    TRUNCATE = "T"
    LOGICAL_DECODING_MESSAGE = "M"
    STREAM_START = "S"
    STREAM_STOP = "E"
    STREAM_COMMIT = "c"
    STREAM_ABORT = "A"
    BEGIN_PREPARE = "b"
    PREPARE = "P"
    COMMIT_PREPARED = "K"
    ROLLBACK_PREPARED = "r"
    STREAM_PREPARE = "p"
    OTHER = ""

    @classmethod
    def from_payload(cls, payload: Union[bytes, memoryview]) -> "MessageKind":
        if not payload:
            return cls.OTHER
        tag = chr(payload[0])
        try:
            return cls(tag)
        except ValueError:
            return cls.OTHER


_TYPE_NAMES = {
    MessageKind.BEGIN: "BeginMessage",
    MessageKind.COMMIT: "CommitMessage",
    MessageKind.ORIGIN: "OriginMessage",
    MessageKind.RELATION: "RelationMessage",
    MessageKind.TYPE: "TypeMessage",
    MessageKind.INSERT: "InsertMessage",
    MessageKind.UPDATE: "UpdateMessage",
    MessageKind.DELETE: "DeleteMessage",
    MessageKind.TRUNCATE: "TruncateMessage",
    MessageKind.LOGICAL_DECODING_MESSAGE: "LogicalDecodingMessage",
    MessageKind.STREAM_START: "StreamStartMessage",
    MessageKind.STREAM_STOP: "StreamStopMessage",
    MessageKind.STREAM_COMMIT: "StreamCommitMessage",
    MessageKind.STREAM_ABORT: "StreamAbortMessage",
    MessageKind.BEGIN_PREPARE: "BeginPrepareMessage",
    MessageKind.PREPARE: "PrepareMessage",
    MessageKind.COMMIT_PREPARED: "CommitPreparedMessage",
    MessageKind.ROLLBACK_PREPARED: "RollbackPreparedMessage",
    MessageKind.STREAM_PREPARE: "StreamPrepareMessage",
    MessageKind.OTHER: "UnknownMessage",
}


@dataclass
class ReplicationMessage:
    """A single message received from a logical replication stream."""

    kind: MessageKind
    data_start: int
    wal_end: int
    payload: Union[bytes, memoryview] = b""

    @classmethod
    def from_pgoutput(
        cls,
        payload: Union[bytes, memoryview],
        *,
        data_start: int,
        wal_end: int,
    ) -> "ReplicationMessage":
        return cls(
            kind=MessageKind.from_payload(payload),
            data_start=data_start,
            wal_end=wal_end,
            payload=payload,
        )

    @property
    def position(self) -> int:
        """Stream position acknowledged back to the server for this message."""
        return self.wal_end

    @property
    def type_name(self) -> str:
        return _TYPE_NAMES[self.kind]

    @property
    def is_begin(self) -> bool:
        return self.kind is MessageKind.BEGIN

    @property
    def is_commit(self) -> bool:
        return self.kind is MessageKind.COMMIT

    def clone(self) -> "ReplicationMessage":
        """Return a copy that stays valid after the source stream advances."""
        return replace(self, payload=bytes(self.payload))


def int_to_lsn(value: int) -> str:
    upper = value >> 32
    lower = value & 0xFFFFFFFF
    return f"{upper:X}/{lower:X}"


__all__ = [
    "MessageKind",
    "ReplicationMessage",
    "int_to_lsn",
]
