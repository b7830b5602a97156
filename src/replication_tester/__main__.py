"""Command line interface for the logical replication tester."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from threading import Event
from typing import Optional, TextIO

from .config import (
    ConnectionDefaults,
    SessionConfig,
    credential_mode_from_flags,
    load_connection_defaults,
    split_publication_names,
)
from .errors import ErrorCode, ErrorReporter, SessionError
from .prompt import CredentialPrompt, GetpassPrompt
from .replication.outcomes import SessionAborted
from .replication.session import ReplicationSession
from .replication.transport import ProtocolClient

logger = logging.getLogger(__name__)


def _build_parser(defaults: ConnectionDefaults) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pg-replication-tester",
        description=(
            "Consume and display messages from the PostgreSQL logical streaming "
            "replication protocol (pgoutput)"
        ),
        add_help=False,
    )
    parser.add_argument(
        "--help", action="help", help="show this help message and exit"
    )
    parser.add_argument(
        "-d", "--dbname", default=defaults.database, help="database name to connect to"
    )
    parser.add_argument(
        "-h",
        "--host",
        default=defaults.host,
        help="database server host or socket directory",
    )
    parser.add_argument(
        "-p", "--port", type=int, default=defaults.port, help="database server port"
    )
    parser.add_argument(
        "-U", "--username", default=defaults.user, help="database user name"
    )
    parser.add_argument(
        "-w",
        "--no-password",
        action="store_true",
        help="never prompt for password",
    )
    parser.add_argument(
        "-W",
        "--password",
        action="store_true",
        help="force password prompt (should happen automatically)",
    )
    parser.add_argument(
        "-s", "--slotname", default=None, help="replication slot name to create or use"
    )
    parser.add_argument(
        "-P",
        "--publication-names",
        nargs="+",
        action="extend",
        required=True,
        help="the publication names to subscribe to",
    )
    parser.add_argument(
        "--protocol-version", type=int, default=None, help="the protocol version to use"
    )
    parser.add_argument(
        "-B", "--binary", action="store_true", help="use binary format for tuple data"
    )
    parser.add_argument(
        "-S",
        "--streaming",
        action="store_true",
        help="enable streaming of in-progress transactions",
    )
    parser.add_argument(
        "--keep-empty-transactions",
        action="store_true",
        help="display transactions that contain no changes",
    )
    parser.add_argument(
        "--log-level",
        default=defaults.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="diagnostic log level (logs go to stderr)",
    )
    return parser


def build_session_config(
    args: argparse.Namespace, defaults: ConnectionDefaults
) -> SessionConfig:
    return SessionConfig(
        host=args.host,
        port=args.port,
        database=args.dbname,
        user=args.username,
        publication_names=split_publication_names(args.publication_names),
        credential_mode=credential_mode_from_flags(args.no_password, args.password),
        slot_name=args.slotname,
        protocol_version=args.protocol_version,
        binary=args.binary,
        streaming=args.streaming,
        keep_empty_transactions=args.keep_empty_transactions,
        sslmode=defaults.sslmode,
    )


def _configure_logging(level: str) -> None:
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        )
    else:
        logging.getLogger().setLevel(level)


def _install_sigterm_handler(cancel_event: Event):
    def _handle(_signum, _frame) -> None:
        cancel_event.set()

    try:
        return signal.signal(signal.SIGTERM, _handle)
    except ValueError:  # not in the main thread
        return None


def main(
    argv: Optional[list[str]] = None,
    *,
    client: Optional[ProtocolClient] = None,
    prompt: Optional[CredentialPrompt] = None,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
    cancel_event: Optional[Event] = None,
) -> int:
    defaults = load_connection_defaults()
    parser = _build_parser(defaults)
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    try:
        config = build_session_config(args, defaults)
    except ValueError as exc:
        parser.error(str(exc))

    cancel_event = cancel_event or Event()
    out = stdout or sys.stdout
    reporter = ErrorReporter(stderr)
    if client is None:
        from .db import PsycopgReplicationClient

        client = PsycopgReplicationClient(
            cancel_event=cancel_event, status_interval=config.status_interval
        )

    previous_handler = _install_sigterm_handler(cancel_event)
    try:
        with ReplicationSession(
            config, client, prompt or GetpassPrompt(), cancel_event=cancel_event
        ) as session:
            session.open()
            for message in session.start_streaming():
                print(
                    f"Received message type: {message.type_name}",
                    file=out,
                    flush=True,
                )
                # The server retains WAL behind the flushed position.
                session.report_progress(message.position)
        return int(ErrorCode.SUCCESS)
    except SessionError as exc:
        return reporter.report(exc)
    except (SessionAborted, KeyboardInterrupt):
        return reporter.report_aborted()
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGTERM, previous_handler)


if __name__ == "__main__":
    sys.exit(main())
