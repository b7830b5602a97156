"""Logical replication session pieces: messages, transport contract and filtering."""

from .filtering import filter_messages
from .messages import MessageKind, ReplicationMessage, int_to_lsn
from .outcomes import AttemptOutcome, OutcomeStatus, SessionAborted, attempt
from .transport import (
    AlternateCredentialSourceRequired,
    AuthenticationFailed,
    ConnectionParameters,
    ProtocolClient,
    ProtocolSession,
    SlotAlreadyExists,
    SlotHandle,
    SlotNotFound,
    SnapshotMode,
    StreamOptions,
    TransportError,
)

__all__ = [
    "AlternateCredentialSourceRequired",
    "AttemptOutcome",
    "AuthenticationFailed",
    "ConnectionParameters",
    "MessageKind",
    "OutcomeStatus",
    "ProtocolClient",
    "ProtocolSession",
    "ReplicationMessage",
    "SessionAborted",
    "SlotAlreadyExists",
    "SlotHandle",
    "SlotNotFound",
    "SnapshotMode",
    "StreamOptions",
    "TransportError",
    "attempt",
    "filter_messages",
    "int_to_lsn",
]
