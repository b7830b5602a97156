import io
from threading import Event

import pytest

from replication_tester.__main__ import main
from replication_tester.replication.messages import MessageKind, ReplicationMessage
from replication_tester.replication.transport import (
    AuthenticationFailed,
    SlotHandle,
)


@pytest.fixture(autouse=True)
def _patch_dotenv(monkeypatch):
    monkeypatch.setattr(
        "replication_tester.config.load_dotenv", lambda *_args, **_kwargs: True
    )
    for name in ("PGHOST", "PGPORT", "PGDATABASE", "PGUSER", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def msg(kind: MessageKind, lsn: int) -> ReplicationMessage:
    return ReplicationMessage(kind=kind, data_start=lsn, wal_end=lsn)


class FakeConnection:
    server_major_version = 12

    def __init__(self, messages) -> None:
        self._messages = messages
        self.created = []
        self.started = []
        self.progress = []
        self.closed = False

    def create_slot(self, name, *, temporary, snapshot_mode):
        self.created.append(name)
        return SlotHandle(name=name, temporary=temporary)

    def start_streaming(self, slot_name, options):
        self.started.append((slot_name, options))
        return iter(self._messages)

    def report_progress(self, applied, flushed):
        self.progress.append((applied, flushed))

    def close(self):
        self.closed = True


class FakeClient:
    def __init__(self, *results) -> None:
        self._results = list(results)
        self.parameters = []

    def open(self, parameters):
        self.parameters.append(parameters)
        result = self._results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


def run(argv, client, prompt=lambda: None, cancel_event=None):
    stdout, stderr = io.StringIO(), io.StringIO()
    status = main(
        argv,
        client=client,
        prompt=prompt,
        stdout=stdout,
        stderr=stderr,
        cancel_event=cancel_event,
    )
    return status, stdout.getvalue(), stderr.getvalue()


STREAM = [
    msg(MessageKind.BEGIN, 1),
    msg(MessageKind.COMMIT, 2),
    msg(MessageKind.BEGIN, 3),
    msg(MessageKind.INSERT, 4),
    msg(MessageKind.COMMIT, 5),
]


@pytest.mark.unit
def test_streams_and_prints_message_types():
    connection = FakeConnection(STREAM)
    client = FakeClient(connection)

    status, out, err = run(
        ["-h", "db", "-p", "6000", "-d", "app", "-U", "repl"]
        + ["-s", "mine", "-P", "pub"],
        client,
    )

    assert status == 0
    assert out.splitlines() == [
        "Received message type: BeginMessage",
        "Received message type: InsertMessage",
        "Received message type: CommitMessage",
    ]
    assert err == ""
    assert connection.progress == [(3, 3), (4, 4), (5, 5)]
    assert connection.created == []
    assert connection.closed
    params = client.parameters[0]
    assert (params.host, params.port, params.database, params.user) == (
        "db",
        6000,
        "app",
        "repl",
    )
    slot_name, options = connection.started[0]
    assert slot_name == "mine"
    assert options.protocol_version == 1


@pytest.mark.unit
def test_keep_empty_transactions_and_options():
    connection = FakeConnection(STREAM)

    status, out, _err = run(
        [
            "-P",
            "a,b",
            "c",
            "--protocol-version",
            "2",
            "-B",
            "-S",
            "--keep-empty-transactions",
        ],
        FakeClient(connection),
    )

    assert status == 0
    assert len(out.splitlines()) == 5
    slot_name, options = connection.started[0]
    assert slot_name.startswith("slot_")
    assert connection.created == [slot_name]
    assert options.publication_names == frozenset({"a", "b", "c"})
    assert options.protocol_version == 2
    assert options.binary and options.streaming


@pytest.mark.unit
def test_no_password_reports_missing_credential():
    client = FakeClient(AuthenticationFailed("no password supplied"))

    def prompt():
        raise AssertionError("prompt must not be called")

    status, out, err = run(["-w", "-P", "pub"], client, prompt=prompt)

    assert status == 1001
    assert out == ""
    assert "--no-password" in err


@pytest.mark.unit
def test_empty_password_reports_empty_credential():
    client = FakeClient(AuthenticationFailed("no password supplied"))

    status, _out, err = run(["-P", "pub"], client, prompt=lambda: None)

    assert status == 1002
    assert "empty string" in err


@pytest.mark.unit
def test_interrupted_prompt_is_reported_as_aborted():
    client = FakeClient(AuthenticationFailed("no password supplied"))

    def prompt():
        raise KeyboardInterrupt

    status, _out, err = run(["-P", "pub"], client, prompt=prompt)

    assert status == 1
    assert err.strip() == "The operation was aborted"


@pytest.mark.unit
def test_cancelled_session_is_reported_as_aborted():
    cancel = Event()
    cancel.set()

    status, _out, err = run(["-P", "pub"], FakeClient(), cancel_event=cancel)

    assert status == 1
    assert "aborted" in err


@pytest.mark.unit
def test_publication_names_are_required(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["-d", "app"], client=FakeClient())
    assert excinfo.value.code == 2
