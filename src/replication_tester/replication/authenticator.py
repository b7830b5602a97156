"""Bounded two-attempt authentication for replication connections."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from ..config import CredentialMode, SessionConfig
from ..errors import ErrorCode, SessionError, describe_failure
from ..prompt import CredentialPrompt
from .outcomes import AttemptOutcome, OutcomeStatus, attempt
from .transport import ConnectionParameters, ProtocolClient, ProtocolSession

logger = logging.getLogger(__name__)

MISSING_CREDENTIAL_MESSAGE = (
    "Error while connecting: The server expected a password but the "
    "--no-password commandline option was set."
)
EMPTY_CREDENTIAL_MESSAGE = (
    "Error while connecting: The server expected a password but an empty "
    "string was entered."
)


def default_protocol_version(server_major_version: int) -> int:
    """pgoutput protocol 2 (in-progress streaming) needs PostgreSQL 14+."""
    return 2 if server_major_version > 13 else 1


class SessionAuthenticator:
    """Opens an authenticated session, retrying at most once.

    The first attempt uses the configured parameters. It is retried only when
    the server asks for integrated authentication, or for a password that the
    credential prompt can supply.
    """

    def __init__(
        self,
        client: ProtocolClient,
        prompt: CredentialPrompt,
        *,
        check_cancelled: Optional[Callable[[], None]] = None,
    ) -> None:
        self._client = client
        self._prompt = prompt
        self._check_cancelled = check_cancelled or (lambda: None)
        self.attempts = 0
        self.protocol_version: Optional[int] = None

    def open(self, config: SessionConfig) -> ProtocolSession:
        self.attempts = 0
        self.protocol_version = config.protocol_version
        parameters = config.connection_parameters()

        if config.credential_mode is CredentialMode.FORCE_PROMPT:
            password = self._prompt()
            if password:
                parameters = parameters.with_password(password)

        first = self._attempt(parameters)
        if first.ok:
            return self._opened(first)

        if first.status is OutcomeStatus.REQUIRES_ALTERNATE_SOURCE:
            logger.info("server requested integrated authentication; retrying")
            parameters = parameters.with_integrated_security()
        elif first.status is OutcomeStatus.REQUIRES_CREDENTIAL:
            if config.credential_mode is CredentialMode.NEVER_PROMPT:
                raise SessionError(
                    ErrorCode.MISSING_CREDENTIAL,
                    MISSING_CREDENTIAL_MESSAGE,
                    first.cause,
                )
            password = self._prompt()
            if not password:
                raise SessionError(
                    ErrorCode.EMPTY_CREDENTIAL,
                    EMPTY_CREDENTIAL_MESSAGE,
                    first.cause,
                )
            parameters = parameters.with_password(password)
        else:
            raise SessionError(
                ErrorCode.UNHANDLED_CONNECT,
                describe_failure("Error while connecting", first.cause),
                first.cause,
            )

        second = self._attempt(parameters)
        if second.ok:
            return self._opened(second)
        raise SessionError(
            ErrorCode.RETRY_FAILED,
            describe_failure(
                "Error while connecting on the second attempt", second.cause
            ),
            second.cause,
        )

    def _attempt(
        self, parameters: ConnectionParameters
    ) -> AttemptOutcome[ProtocolSession]:
        self._check_cancelled()
        self.attempts += 1
        logger.debug(
            "opening replication connection to %s:%s as %s (attempt %d)",
            parameters.host,
            parameters.port,
            parameters.user,
            self.attempts,
        )
        return attempt(lambda: self._client.open(parameters))

    def _opened(self, outcome: AttemptOutcome[ProtocolSession]) -> ProtocolSession:
        session = outcome.value
        assert session is not None
        if self.protocol_version is None:
            self.protocol_version = default_protocol_version(
                session.server_major_version
            )
        logger.info(
            "connected to PostgreSQL %s using pgoutput protocol version %s",
            session.server_major_version,
            self.protocol_version,
        )
        return session


__all__ = [
    "EMPTY_CREDENTIAL_MESSAGE",
    "MISSING_CREDENTIAL_MESSAGE",
    "SessionAuthenticator",
    "default_protocol_version",
]
