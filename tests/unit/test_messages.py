import pytest

from replication_tester.replication.messages import (
    MessageKind,
    ReplicationMessage,
    int_to_lsn,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    "payload,kind,type_name",
    [
        (b"B\x00\x00", MessageKind.BEGIN, "BeginMessage"),
        (b"C\x00", MessageKind.COMMIT, "CommitMessage"),
        (b"R", MessageKind.RELATION, "RelationMessage"),
        (b"I", MessageKind.INSERT, "InsertMessage"),
        (b"c", MessageKind.STREAM_COMMIT, "StreamCommitMessage"),
        (b"Z", MessageKind.OTHER, "UnknownMessage"),
        (b"", MessageKind.OTHER, "UnknownMessage"),
    ],
)
def test_kind_is_taken_from_first_byte(payload, kind, type_name):
    message = ReplicationMessage.from_pgoutput(payload, data_start=1, wal_end=2)
    assert message.kind is kind
    assert message.type_name == type_name


@pytest.mark.unit
def test_every_kind_has_a_type_name():
    for kind in MessageKind:
        message = ReplicationMessage(kind=kind, data_start=0, wal_end=0)
        assert message.type_name.endswith("Message")


@pytest.mark.unit
def test_position_is_wal_end():
    message = ReplicationMessage.from_pgoutput(b"I", data_start=10, wal_end=42)
    assert message.position == 42


@pytest.mark.unit
def test_clone_owns_its_payload():
    buffer = bytearray(b"Babc")
    original = ReplicationMessage.from_pgoutput(
        memoryview(buffer), data_start=1, wal_end=2
    )

    copy = original.clone()
    buffer[1:4] = b"xyz"
    original.wal_end = 99

    assert copy is not original
    assert copy.payload == b"Babc"
    assert copy.wal_end == 2
    assert copy.is_begin


@pytest.mark.unit
def test_lsn_formatting():
    assert int_to_lsn(0x16B6C50) == "0/16B6C50"
    assert int_to_lsn((1 << 32) | 0xA) == "1/A"
