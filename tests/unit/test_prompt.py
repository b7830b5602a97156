import pytest

from replication_tester.prompt import GetpassPrompt


@pytest.mark.unit
def test_prompt_returns_entered_value(monkeypatch):
    labels = []

    def fake_getpass(label):
        labels.append(label)
        return "s3cret"

    monkeypatch.setattr("replication_tester.prompt.getpass.getpass", fake_getpass)

    assert GetpassPrompt()() == "s3cret"
    assert labels == ["Password: "]


@pytest.mark.unit
@pytest.mark.parametrize("entered", ["", EOFError()])
def test_prompt_returns_none_without_input(monkeypatch, entered):
    def fake_getpass(_label):
        if isinstance(entered, BaseException):
            raise entered
        return entered

    monkeypatch.setattr("replication_tester.prompt.getpass.getpass", fake_getpass)

    assert GetpassPrompt()() is None
