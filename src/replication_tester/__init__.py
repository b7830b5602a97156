"""Diagnostic client for PostgreSQL logical streaming replication."""

from .config import CredentialMode, SessionConfig, SlotIdentity, SlotOrigin
from .errors import ErrorCode, ErrorReporter, SessionError


def main() -> int:
    """Entrypoint proxy that defers importing the CLI until needed."""

    from .__main__ import main as _cli_main

    return _cli_main()


__all__ = [
    "CredentialMode",
    "ErrorCode",
    "ErrorReporter",
    "SessionConfig",
    "SessionError",
    "SlotIdentity",
    "SlotOrigin",
    "main",
]
