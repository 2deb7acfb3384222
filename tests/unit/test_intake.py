"""Intake pass tests.

What:
  Validate :func:`mailintake.intake.collect_messages` and
  :func:`mailintake.intake.run_intake` against the fake transport.

Why:
  The pass decides what gets deleted from a real mailbox. Only messages that
  were actually fetched may be marked, expunge must run once, and the session
  must be disconnected even when collection fails.
"""

import pytest

from fakes import FakeTransport, make_message

from mailintake.config.loader import get_runtime_config
from mailintake.errors import IntakeError, UnsupportedProtocolError
from mailintake.intake import check_connection, collect_messages, open_session, run_intake


def _connected(session_for, transport, **kwargs):
    session = session_for(transport, **kwargs)
    assert session.connect("mail.example.com", 993, "user", "pw")
    return session


def test_collect_skips_read_mail(session_for, mailbox, captured_log) -> None:
    session = _connected(session_for, mailbox)
    report = collect_messages(session, logger=captured_log.logger)
    assert report.total == 3
    assert [message.index for message in report.fetched] == [1, 3]
    assert report.skipped == [2]
    assert report.deleted == []
    assert report.expunged is False
    assert mailbox.called("expunge") == []


def test_collect_deletes_only_fetched(session_for, mailbox, captured_log) -> None:
    session = _connected(session_for, mailbox)
    report = collect_messages(session, delete_after_fetch=True, logger=captured_log.logger)
    assert report.deleted == [1, 3]
    assert report.expunged is True
    assert len(mailbox.called("expunge")) == 1
    assert len(mailbox.messages) == 1
    assert mailbox.messages[0].seen is True


def test_collect_respects_message_cap(session_for, captured_log) -> None:
    transport = FakeTransport([make_message(f"m{i}") for i in range(5)])
    session = _connected(session_for, transport)
    report = collect_messages(session, max_messages=2, logger=captured_log.logger)
    assert [message.index for message in report.fetched] == [1, 2]
    assert "Per-run message cap reached" in captured_log.messages("INFO")


def test_collect_records_failures(session_for, captured_log) -> None:
    transport = FakeTransport([make_message("a")], fail_on={"fetch_header"})
    session = _connected(session_for, transport)
    report = collect_messages(session, delete_after_fetch=True, logger=captured_log.logger)
    assert report.fetched == []
    assert [failure.index for failure in report.failed] == [1]
    assert report.deleted == []
    assert transport.called("mark_deleted") == []


def test_collect_in_debug_mode_walks_unseen_count(session_for, captured_log) -> None:
    transport = FakeTransport(
        [make_message("read", seen=True), make_message("unread"), make_message("other")],
    )
    session = _connected(session_for, transport, debug=True)
    report = collect_messages(session, logger=captured_log.logger)
    assert report.total == 2
    assert [message.index for message in report.fetched] == [1, 2]


def test_run_intake_disconnects(captured_log) -> None:
    transport = FakeTransport([make_message("a"), make_message("b", seen=True)])
    report = run_intake(
        get_runtime_config(),
        logger=captured_log.logger,
        transport_factory=lambda kind: transport,
    )
    assert len(report.fetched) == 1
    assert report.deleted == [1]
    assert transport.is_open is False
    endpoint, login, password = transport.opened_with
    assert endpoint.descriptor == "{mail.example.com:993/service=imap/ssl/notls/novalidate-cert}"
    assert (login, password) == ("intake@example.com", "s3cret")


def test_run_intake_keep_overrides_config(captured_log) -> None:
    transport = FakeTransport([make_message("a")])
    report = run_intake(
        get_runtime_config(),
        delete_after_fetch=False,
        logger=captured_log.logger,
        transport_factory=lambda kind: transport,
    )
    assert report.deleted == []
    assert len(transport.messages) == 1


def test_run_intake_connect_failure(captured_log) -> None:
    transport = FakeTransport(fail_on={"open"})
    with pytest.raises(IntakeError, match="open: simulated failure"):
        run_intake(
            get_runtime_config(),
            logger=captured_log.logger,
            transport_factory=lambda kind: transport,
        )


def test_open_session_applies_tls_options(captured_log) -> None:
    config = get_runtime_config().model_copy(deep=True)
    config.mailserver.protocol = "imap"
    config.mailserver.port = 143
    config.mailserver.opportunistic_tls = True
    config.mailserver.require_valid_cert = True
    transport = FakeTransport()
    session = open_session(config, logger=captured_log.logger, transport_factory=lambda kind: transport)
    assert session.endpoint.descriptor == "{mail.example.com:143/service=imap/tls}"
    session.disconnect()


def test_open_session_missing_password_env(monkeypatch, captured_log) -> None:
    config = get_runtime_config().model_copy(deep=True)
    config.mailserver.password = None
    config.mailserver.password_env = "MAILINTAKE_TEST_PASSWORD"
    monkeypatch.delenv("MAILINTAKE_TEST_PASSWORD", raising=False)
    with pytest.raises(IntakeError, match="MAILINTAKE_TEST_PASSWORD"):
        open_session(config, logger=captured_log.logger, transport_factory=lambda kind: FakeTransport())


def test_open_session_unsupported_protocol(captured_log) -> None:
    config = get_runtime_config().model_copy(deep=True)
    config.mailserver.protocol = "smtp"
    with pytest.raises(UnsupportedProtocolError):
        open_session(config, logger=captured_log.logger, transport_factory=lambda kind: FakeTransport())


def test_check_connection_reports_count(captured_log) -> None:
    transport = FakeTransport([make_message("a"), make_message("b")])
    count = check_connection(
        get_runtime_config(), logger=captured_log.logger, transport_factory=lambda kind: transport
    )
    assert count == 2
    assert transport.called("fetch_body") == []
    assert transport.is_open is False


def test_collect_sinks_before_deleting(session_for, mailbox, captured_log) -> None:
    order = []
    mailbox_mark = mailbox.mark_deleted

    def mark(index):
        order.append(("delete", index))
        mailbox_mark(index)

    mailbox.mark_deleted = mark
    session = _connected(session_for, mailbox)
    report = collect_messages(
        session,
        delete_after_fetch=True,
        sink=lambda message: order.append(("sink", message.index)),
        logger=captured_log.logger,
    )
    assert order == [("sink", 1), ("delete", 1), ("sink", 3), ("delete", 3)]
    assert report.sink_error is None


def test_collect_stops_when_sink_fails(session_for, captured_log) -> None:
    transport = FakeTransport([make_message("a"), make_message("b"), make_message("c")])
    session = _connected(session_for, transport)

    def sink(message):
        if message.index == 2:
            raise OSError("No space left on device")

    report = collect_messages(
        session, delete_after_fetch=True, sink=sink, logger=captured_log.logger
    )
    assert [message.index for message in report.fetched] == [1]
    assert report.deleted == [1]
    assert report.expunged is True
    assert report.sink_error == "No space left on device"
    assert [call[1] for call in transport.called("fetch_header")] == [1, 2]
    assert len(transport.messages) == 2
    assert "Message sink failed" in captured_log.messages("ERROR")
