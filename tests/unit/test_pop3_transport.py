"""POP3 transport tests with stand-ins for :mod:`poplib` classes."""

import poplib

import pytest

from mailintake.mail.endpoint import CertPolicy, ProtocolKind, TlsMode, build_endpoint
from mailintake.mail.pop3 import Pop3Transport
from mailintake.mail.transport import TransportError

MESSAGE = [b"Subject: hi", b"From: a@example.com", b"", b"line one", b"", b"line three"]


class RecordingPop3:
    instances = []
    password_error = None

    def __init__(self, host, port, timeout=None, context=None):
        self.args = dict(host=host, port=port, timeout=timeout, context=context)
        self.calls = []
        RecordingPop3.instances.append(self)

    def stls(self, context=None):
        self.calls.append(("stls",))

    def user(self, login):
        self.calls.append(("user", login))

    def pass_(self, password):
        self.calls.append(("pass_",))
        if RecordingPop3.password_error is not None:
            raise RecordingPop3.password_error

    def stat(self):
        return 2, 512

    def top(self, which, howmuch):
        self.calls.append(("top", which, howmuch))
        return b"+OK", MESSAGE[:3], 40

    def retr(self, which):
        self.calls.append(("retr", which))
        return b"+OK", list(MESSAGE), 60

    def dele(self, which):
        self.calls.append(("dele", which))
        return b"+OK"

    def quit(self):
        self.calls.append(("quit",))

    def close(self):
        self.calls.append(("close",))


class RecordingPop3SSL(RecordingPop3):
    pass


@pytest.fixture(autouse=True)
def recording_pop3(monkeypatch):
    RecordingPop3.instances = []
    RecordingPop3.password_error = None
    monkeypatch.setattr(poplib, "POP3", RecordingPop3)
    monkeypatch.setattr(poplib, "POP3_SSL", RecordingPop3SSL)
    return RecordingPop3


def _open(**overrides):
    options = dict(
        protocol=ProtocolKind.POP3,
        ssl=True,
        tls_mode=TlsMode.NO_TLS_EXPLICIT,
        cert_policy=CertPolicy.ACCEPT_SELF_SIGNED,
    )
    options.update(overrides)
    transport = Pop3Transport()
    transport.open(build_endpoint("pop.example.com", 995, **options), "user", "pw")
    return transport, RecordingPop3.instances[-1]


def test_ssl_endpoint_uses_pop3_ssl() -> None:
    _, client = _open()
    assert isinstance(client, RecordingPop3SSL)
    assert client.args["context"] is not None
    assert client.calls[:2] == [("user", "user"), ("pass_",)]


def test_plain_endpoint_with_stls() -> None:
    _, client = _open(ssl=False, tls_mode=TlsMode.OPPORTUNISTIC_TLS)
    assert not isinstance(client, RecordingPop3SSL)
    assert client.calls[0] == ("stls",)


def test_bad_password(recording_pop3) -> None:
    recording_pop3.password_error = poplib.error_proto(b"-ERR authentication failed")
    transport = Pop3Transport()
    endpoint = build_endpoint(
        "pop.example.com",
        995,
        protocol=ProtocolKind.POP3,
        ssl=True,
        tls_mode=TlsMode.NO_TLS_EXPLICIT,
        cert_policy=CertPolicy.ACCEPT_SELF_SIGNED,
    )
    with pytest.raises(TransportError):
        transport.open(endpoint, "user", "bad")
    assert transport.last_error.startswith("login: ")
    assert ("close",) in recording_pop3.instances[-1].calls


def test_every_message_is_new() -> None:
    transport, _ = _open()
    flags = transport.header_flags(1)
    assert flags.unread
    status = transport.status()
    assert (status.messages, status.unseen) == (2, 2)
    assert transport.message_count() == 2


def test_header_and_body_rebuild_the_message() -> None:
    transport, client = _open()
    raw = transport.fetch_header(1) + transport.fetch_body(1)
    assert raw == b"Subject: hi\r\nFrom: a@example.com\r\n\r\nline one\r\n\r\nline three"
    assert ("top", 1, 0) in client.calls


def test_deletion_commits_on_quit() -> None:
    transport, client = _open()
    transport.mark_deleted(2)
    transport.expunge()
    assert ("dele", 2) in client.calls
    assert ("quit",) not in client.calls
    transport.close()
    assert client.calls[-1] == ("quit",)


def test_operations_after_close_fail() -> None:
    transport, _ = _open()
    transport.close()
    with pytest.raises(TransportError, match="not open"):
        transport.header_flags(1)
    with pytest.raises(TransportError, match="not open"):
        transport.expunge()
