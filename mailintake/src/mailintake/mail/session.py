"""Mailbox session lifecycle and read-state gated retrieval.

What:
  :class:`MailSession` owns one connection to a remote mailbox (IMAP or POP3,
  optionally over SSL) for exactly one connect/disconnect cycle. It reports
  message counts, fetches raw messages by index unless they were already read,
  and performs deferred deletion (mark, then expunge).

Why:
  Intake must process each message once without keeping any tracking state
  outside the mailbox itself. The server's seen/recent flags provide that
  state: a message is downloaded only while it is unread, and downloading its
  body marks it read. Debug mode bypasses the gate so unprocessed
  mail can be replayed during diagnostics.

How:
  Protocol details live behind :class:`~mailintake.mail.transport.MailTransport`.
  The session composes the :class:`~mailintake.mail.endpoint.Endpoint` at
  connect time, delegates each operation to the transport, and converts every
  :class:`~mailintake.mail.transport.TransportError` into a boolean, a zero
  count, or a :class:`FetchFailed` result. Nothing raised by the transport
  crosses into the caller.

Interfaces:
  :class:`MailSession`, :class:`SessionState`, :class:`Fetched`,
  :class:`AlreadyRead`, :class:`FetchFailed`, :data:`FetchResult`.

Invariants & Safety:
  - The transport handle is set iff the state is ``CONNECTED``.
  - The endpoint is computed once per session and never recomputed.
  - A session refuses a second ``connect``; callers build a new instance.
  - Not thread-safe; one owner per session.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from ..utils.logging import JsonLogger, get_logger
from .endpoint import CertPolicy, Endpoint, ProtocolKind, TlsMode, build_endpoint
from .transport import (
    MailTransport,
    TransportError,
    TransportFactory,
    default_transport_factory,
)


class SessionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


@dataclass(frozen=True)
class Fetched:
    """A message that was unread (or debug mode was on): header plus body."""

    index: int
    raw: bytes

    @property
    def content(self) -> str:
        # surrogateescape keeps 8-bit payloads recoverable via content.encode(...)
        return self.raw.decode("utf-8", errors="surrogateescape")


@dataclass(frozen=True)
class AlreadyRead:
    """The message was seen before; its body was not downloaded."""

    index: int

    def __str__(self) -> str:
        return "already read"


@dataclass(frozen=True)
class FetchFailed:
    """The transport could not retrieve the message."""

    index: int
    error: str


FetchResult = Union[Fetched, AlreadyRead, FetchFailed]


class MailSession:
    """Single-use connection to a remote mailbox.

    What:
      Configurable over protocol, SSL, STARTTLS, certificate policy, and debug
      mode. The three supported variants differ only in these settings, so one
      class covers them all; :class:`~mailintake.mail.factory.SessionFactory`
      picks the settings from a protocol identifier.

    How:
      Construction performs no I/O. The transport object is created up front so
      :meth:`error` is always safe to call; it only becomes the live handle once
      :meth:`connect` succeeds.

    Args:
      protocol: IMAP or POP3.
      ssl: Connect over SSL from the first byte.
      cert_policy: Defaults to accepting self-signed certificates.
      debug: Report unseen counts and fetch regardless of read state.
      logger: Sink for diagnostics on failure paths.
      transport_factory: Builds the transport for ``protocol``.
    """

    def __init__(
        self,
        protocol: ProtocolKind,
        ssl: bool = False,
        cert_policy: CertPolicy = CertPolicy.ACCEPT_SELF_SIGNED,
        *,
        debug: bool = False,
        logger: Optional[JsonLogger] = None,
        transport_factory: Optional[TransportFactory] = None,
    ) -> None:
        self._protocol = ProtocolKind(protocol)
        self.ssl = bool(ssl)
        self.cert_policy = CertPolicy(cert_policy)
        self.tls_mode = TlsMode.NO_TLS_EXPLICIT
        self.debug = bool(debug)
        self.state = SessionState.DISCONNECTED
        self.last_error: Optional[str] = None
        self._logger = logger or get_logger("mailintake.session")
        factory = transport_factory or default_transport_factory
        self._transport: MailTransport = factory(self._protocol)
        self._handle: Optional[MailTransport] = None
        self._endpoint: Optional[Endpoint] = None
        self._used = False

    @property
    def protocol(self) -> ProtocolKind:
        return self._protocol

    @property
    def endpoint(self) -> Optional[Endpoint]:
        """Endpoint computed by :meth:`connect`, or ``None`` before it ran."""

        return self._endpoint

    def enable_opportunistic_tls(self) -> None:
        """Negotiate STARTTLS after the plaintext greeting on the next connect."""

        if self._locked("enable_opportunistic_tls"):
            return
        self.tls_mode = TlsMode.OPPORTUNISTIC_TLS

    def require_valid_certificate(self) -> None:
        """Reject certificates that do not chain to a trusted authority."""

        if self._locked("require_valid_certificate"):
            return
        self.cert_policy = CertPolicy.REQUIRE_VALID

    def _locked(self, option: str) -> bool:
        if self._endpoint is None:
            return False
        self._logger.warning(
            "Session option ignored after connect",
            option=option,
            endpoint=self._endpoint.descriptor,
        )
        return True

    def is_connected(self) -> bool:
        return self.state is SessionState.CONNECTED

    def connect(self, host: str, port: int, login: str, password: str) -> bool:
        """Open the mailbox session.

        What:
          Builds the endpoint descriptor, then logs in through the transport.

        Why:
          Connection problems (bad credentials, unreachable host, certificate
          mismatch) are ordinary operating conditions for an unattended intake
          job; the caller decides whether to retry with a fresh session.

        How:
          On success the transport becomes the live handle and the state moves
          to ``CONNECTED``. On failure the transport's error is recorded in
          :attr:`last_error`, logged, and the state stays ``DISCONNECTED``.

        Returns:
          ``True`` when connected, ``False`` otherwise. Never raises.
        """

        if self._used:
            self.last_error = "session already used; create a new session to reconnect"
            self._logger.warning(self.last_error, endpoint=str(self._endpoint))
            return False
        self._used = True
        self._endpoint = build_endpoint(
            host,
            port,
            protocol=self._protocol,
            ssl=self.ssl,
            tls_mode=self.tls_mode,
            cert_policy=self.cert_policy,
        )
        try:
            self._transport.open(self._endpoint, login, password)
        except TransportError as exc:
            self.last_error = self._transport.last_error or str(exc)
            self._logger.error(
                "Mailbox open failed",
                endpoint=self._endpoint.descriptor,
                login=login,
                error=self.last_error,
            )
            return False
        self._handle = self._transport
        self.state = SessionState.CONNECTED
        self._logger.info("Mailbox session opened", endpoint=self._endpoint.descriptor)
        return True

    def message_count(self) -> int:
        """Return how many messages the loop should walk.

        Normal mode reports the mailbox total. Debug mode reports the unseen
        count from a status query so only unprocessed mail is replayed; when
        that query fails the condition is logged and 0 is returned so a batch
        loop keeps running.
        """

        if self._handle is None:
            return 0
        if self.debug:
            try:
                return self._handle.status().unseen
            except TransportError as exc:
                self.last_error = str(exc)
                self._logger.error(
                    "Mailbox status query returned no value",
                    endpoint=str(self._endpoint),
                    error=self.last_error,
                )
                return 0
        try:
            return self._handle.message_count()
        except TransportError as exc:
            self.last_error = str(exc)
            self._logger.error("Message count unavailable", error=self.last_error)
            return 0

    def fetch_email(self, index: int) -> FetchResult:
        """Retrieve message ``index`` unless it was already read.

        What:
          Reads the message's header flags first. The raw message (header and
          body concatenated) is downloaded when debug mode is on or the message
          is unseen; otherwise :class:`AlreadyRead` is returned and the body is
          never requested.

        Why:
          Skipping seen mail is what gives intake its "process each message
          once" behaviour with no bookkeeping outside the mailbox.

        How:
          ``index`` must lie within ``1..message_count()``; the session does not
          check it and out-of-range indices yield whatever the transport does
          (normally :class:`FetchFailed`).
        """

        if self._handle is None:
            return FetchFailed(index=index, error="session is not connected")
        try:
            flags = self._handle.header_flags(index)
            if not (self.debug or flags.unread):
                return AlreadyRead(index=index)
            raw = self._handle.fetch_header(index) + self._handle.fetch_body(index)
        except TransportError as exc:
            self.last_error = str(exc)
            self._logger.warning("Message fetch failed", index=index, error=self.last_error)
            return FetchFailed(index=index, error=self.last_error)
        return Fetched(index=index, raw=raw)

    def delete_message(self, index: int) -> bool:
        """Mark message ``index`` for deletion; it disappears on expunge.

        Returns:
          ``False`` (with :attr:`last_error` set) when the mark failed.
        """

        if self._handle is None:
            return False
        try:
            self._handle.mark_deleted(index)
        except TransportError as exc:
            self.last_error = str(exc)
            self._logger.warning("Delete mark failed", index=index, error=self.last_error)
            return False
        return True

    def expunge_messages(self) -> bool:
        """Permanently remove every message marked for deletion. Irreversible."""

        if self._handle is None:
            return False
        try:
            self._handle.expunge()
        except TransportError as exc:
            self.last_error = str(exc)
            self._logger.warning("Expunge failed", error=self.last_error)
            return False
        return True

    def disconnect(self) -> None:
        """Close the connection; a second call is a no-op."""

        if self._handle is None:
            return
        handle, self._handle = self._handle, None
        self.state = SessionState.DISCONNECTED
        try:
            handle.close()
        except TransportError as exc:
            self.last_error = str(exc)
            self._logger.warning("Mailbox close failed", error=self.last_error)
            return
        self._logger.info("Mailbox session closed", endpoint=str(self._endpoint))

    def error(self) -> Optional[str]:
        """Return the transport's most recent error description, if any."""

        return self._transport.last_error

    def __repr__(self) -> str:
        return (
            f"MailSession(protocol={self._protocol.value!r}, ssl={self.ssl}, "
            f"state={self.state.value!r})"
        )
