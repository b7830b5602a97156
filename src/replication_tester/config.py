"""Runtime configuration helpers for the replication tester."""

from __future__ import annotations

import getpass
import os
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, Optional

from dotenv import load_dotenv

from .replication.transport import ConnectionParameters


class CredentialMode(str, Enum):
    NEVER_PROMPT = "never-prompt"
    FORCE_PROMPT = "force-prompt"
    AUTO = "auto"


class SlotOrigin(str, Enum):
    GENERATED = "generated"
    USER_SUPPLIED = "user-supplied"


@dataclass(frozen=True)
class SlotIdentity:
    name: str
    origin: SlotOrigin

    @property
    def generated(self) -> bool:
        return self.origin is SlotOrigin.GENERATED


@dataclass(frozen=True)
class ConnectionDefaults:
    """Connection defaults taken from libpq-style environment variables."""

    host: str
    port: int
    database: str
    user: str
    sslmode: Optional[str] = None
    log_level: str = "WARNING"


@dataclass(frozen=True)
class SessionConfig:
    """Immutable container for one replication session's settings."""

    host: str
    port: int
    database: str
    user: str
    publication_names: FrozenSet[str]
    credential_mode: CredentialMode = CredentialMode.AUTO
    slot_name: Optional[str] = None
    protocol_version: Optional[int] = None
    binary: bool = False
    streaming: bool = False
    keep_empty_transactions: bool = False
    sslmode: Optional[str] = None
    connect_timeout: Optional[int] = None
    status_interval: float = 10.0

    def __post_init__(self) -> None:
        names = frozenset(
            name.strip() for name in self.publication_names if name and name.strip()
        )
        if not names:
            raise ValueError("at least one publication name is required")
        object.__setattr__(self, "publication_names", names)
        if self.protocol_version is not None and self.protocol_version < 1:
            raise ValueError("protocol_version must be positive")
        if self.status_interval <= 0:
            raise ValueError("status_interval must be positive")

    def connection_parameters(self) -> ConnectionParameters:
        return ConnectionParameters(
            host=self.host,
            port=self.port,
            database=self.database,
            user=self.user,
            sslmode=self.sslmode,
            connect_timeout=self.connect_timeout,
        )

    def slot_identity(self) -> SlotIdentity:
        if self.slot_name is None or not self.slot_name.strip():
            return SlotIdentity(
                name=f"slot_{uuid.uuid4().hex}", origin=SlotOrigin.GENERATED
            )
        return SlotIdentity(name=self.slot_name, origin=SlotOrigin.USER_SUPPLIED)


def credential_mode_from_flags(no_password: bool, password: bool) -> CredentialMode:
    """Translate the -w/-W flag pair; -w wins when both are given."""
    if no_password:
        return CredentialMode.NEVER_PROMPT
    if password:
        return CredentialMode.FORCE_PROMPT
    return CredentialMode.AUTO


def split_publication_names(values: Iterable[str]) -> FrozenSet[str]:
    names = set()
    for value in values:
        names.update(entry.strip() for entry in value.split(",") if entry.strip())
    return frozenset(names)


def _default_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "postgres"


def _coerce_port(value: Optional[str], default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _coerce_log_level(value: Optional[str]) -> str:
    if value is None:
        return "WARNING"
    normalized = value.strip().upper()
    if normalized in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        return normalized
    return "WARNING"


def load_connection_defaults() -> ConnectionDefaults:
    """Load connection defaults from the environment (and `.env`)."""
    load_dotenv()
    user = os.getenv("PGUSER") or _default_user()
    return ConnectionDefaults(
        host=os.getenv("PGHOST") or "::1",
        port=_coerce_port(os.getenv("PGPORT"), 5432),
        database=os.getenv("PGDATABASE") or user,
        user=user,
        sslmode=os.getenv("PGSSLMODE") or None,
        log_level=_coerce_log_level(os.getenv("LOG_LEVEL")),
    )


__all__ = [
    "ConnectionDefaults",
    "CredentialMode",
    "SessionConfig",
    "SlotIdentity",
    "SlotOrigin",
    "credential_mode_from_flags",
    "load_connection_defaults",
    "split_publication_names",
]
