"""One intake pass over a mailbox.

What:
  Drive a :class:`~mailintake.mail.MailSession` through the documented control
  flow: connect, walk message indices ``1..message_count()``, collect the
  messages that were still unread, optionally mark them for deletion, expunge
  once, and disconnect.

Why:
  The session deliberately exposes small blocking primitives. Packaging the
  loop separately gives the CLI and library callers one place that guarantees
  the session is always disconnected and that expunge runs at most once per
  pass.

How:
  :func:`collect_messages` works on an already connected session and returns an
  :class:`IntakeReport`. :func:`run_intake` builds the session from
  :class:`~mailintake.config.schema.RuntimeConfig`, connects, delegates to
  :func:`collect_messages` inside ``try``/``finally``, and raises
  :class:`~mailintake.errors.IntakeError` when the connection cannot be opened.

Interfaces:
  :class:`IntakeReport`, :func:`collect_messages`, :func:`open_session`,
  :func:`run_intake`, :func:`check_connection`.

Invariants & Safety:
  - Only messages returned as :class:`~mailintake.mail.Fetched` and accepted
    by the sink (when one is given) are ever marked for deletion; skipped,
    failed and unsunk messages stay on the server.
  - Deletion only takes effect through the single expunge at the end.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from typing import Callable, List, Optional

from .config.schema import RuntimeConfig
from .errors import IntakeError
from .mail import AlreadyRead, Fetched, FetchFailed, MailSession, SessionFactory
from .mail.transport import TransportFactory, default_transport_factory
from .utils.logging import JsonLogger, get_logger

MessageSink = Callable[[Fetched], None]


@dataclass
class IntakeReport:
    """Outcome of one intake pass."""

    total: int = 0
    fetched: List[Fetched] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    failed: List[FetchFailed] = field(default_factory=list)
    deleted: List[int] = field(default_factory=list)
    expunged: bool = False
    sink_error: Optional[str] = None

    def metrics(self) -> dict:
        return {
            "total": self.total,
            "fetched": len(self.fetched),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
            "deleted": len(self.deleted),
            "expunged": self.expunged,
            "sink_error": self.sink_error is not None,
        }


def collect_messages(
    session: MailSession,
    *,
    delete_after_fetch: bool = False,
    max_messages: int = 0,
    sink: Optional[MessageSink] = None,
    logger: Optional[JsonLogger] = None,
) -> IntakeReport:
    """Walk every message index of a connected session.

    Args:
      session: A session whose :meth:`~MailSession.connect` returned ``True``.
      delete_after_fetch: Mark each fetched message for deletion and expunge
        at the end of the pass.
      max_messages: Stop after this many fetched messages; ``0`` means no cap.
      sink: Called with each fetched message before it is marked for
        deletion. An ``OSError`` from the sink ends the pass: that message is
        left on the server and recorded in ``sink_error``.
      logger: Diagnostic sink.

    Returns:
      The :class:`IntakeReport` for the pass.
    """

    logger = logger or get_logger("mailintake.intake")
    report = IntakeReport(total=session.message_count())
    for index in range(1, report.total + 1):
        if max_messages and len(report.fetched) >= max_messages:
            logger.info("Per-run message cap reached", max_messages=max_messages)
            break
        result = session.fetch_email(index)
        if isinstance(result, AlreadyRead):
            report.skipped.append(index)
            continue
        if isinstance(result, FetchFailed):
            report.failed.append(result)
            continue
        if sink is not None:
            try:
                sink(result)
            except OSError as exc:
                report.sink_error = str(exc)
                logger.error("Message sink failed", index=index, error=report.sink_error)
                break
        report.fetched.append(result)
        if delete_after_fetch and session.delete_message(index):
            report.deleted.append(index)
    if report.deleted:
        report.expunged = session.expunge_messages()
    logger.info("Intake pass finished", **report.metrics())
    return report


def _session_factory(
    config: RuntimeConfig,
    *,
    debug: Optional[bool],
    logger: JsonLogger,
    transport_factory: Optional[TransportFactory],
) -> SessionFactory:
    if transport_factory is None:
        transport_factory = partial(default_transport_factory, timeout=config.mailserver.timeout)
    return SessionFactory(
        debug=config.debug if debug is None else debug,
        logger=logger,
        transport_factory=transport_factory,
    )


def open_session(
    config: RuntimeConfig,
    *,
    debug: Optional[bool] = None,
    logger: Optional[JsonLogger] = None,
    transport_factory: Optional[TransportFactory] = None,
) -> MailSession:
    """Create a session from ``config`` and connect it.

    Raises:
      UnsupportedProtocolError: If the configured protocol is unknown.
      IntakeError: If no password can be resolved or the connection fails.
    """

    logger = logger or get_logger("mailintake.intake")
    server = config.mailserver
    session = _session_factory(
        config, debug=debug, logger=logger, transport_factory=transport_factory
    ).create(server.protocol)
    if server.opportunistic_tls:
        session.enable_opportunistic_tls()
    if server.require_valid_cert:
        session.require_valid_certificate()
    password = server.resolve_password()
    if password is None:
        raise IntakeError(f"environment variable {server.password_env} is not set")
    if not session.connect(server.host, server.port, server.login, password):
        raise IntakeError(f"unable to open mailbox: {session.last_error or session.error()}")
    return session


def run_intake(
    config: RuntimeConfig,
    *,
    debug: Optional[bool] = None,
    delete_after_fetch: Optional[bool] = None,
    sink: Optional[MessageSink] = None,
    logger: Optional[JsonLogger] = None,
    transport_factory: Optional[TransportFactory] = None,
) -> IntakeReport:
    """Run one complete pass: connect, collect, disconnect."""

    logger = logger or get_logger("mailintake.intake")
    session = open_session(
        config, debug=debug, logger=logger, transport_factory=transport_factory
    )
    try:
        return collect_messages(
            session,
            delete_after_fetch=(
                config.intake.delete_after_fetch
                if delete_after_fetch is None
                else delete_after_fetch
            ),
            max_messages=config.intake.max_messages,
            sink=sink,
            logger=logger,
        )
    finally:
        session.disconnect()


def check_connection(
    config: RuntimeConfig,
    *,
    logger: Optional[JsonLogger] = None,
    transport_factory: Optional[TransportFactory] = None,
) -> int:
    """Connect, report the message count, and disconnect without fetching."""

    session = open_session(config, logger=logger, transport_factory=transport_factory)
    try:
        return session.message_count()
    finally:
        session.disconnect()
