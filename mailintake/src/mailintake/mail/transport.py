"""Transport contract between a mail session and a protocol library.

What:
  Describe the narrow set of mailbox operations a :class:`MailSession` needs
  (open, count, status, header flags, header/body retrieval, delete, expunge,
  close) as a :class:`typing.Protocol`, together with the small value types
  those operations return.

Why:
  The session owns lifecycle and read-state policy; the protocol libraries own
  the wire. Drawing the seam here lets IMAP and POP3 share one session
  implementation and lets tests swap in an in-memory mailbox.

How:
  Concrete transports convert every library exception into
  :class:`TransportError` and remember its text in ``last_error`` so the
  session can absorb failures into booleans and result variants.

Interfaces:
  :class:`MailTransport`, :class:`TransportError`, :class:`HeaderFlags`,
  :class:`MailboxStatus`, :func:`build_ssl_context`, :func:`default_transport_factory`.
"""
from __future__ import annotations

import ssl
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from .endpoint import Endpoint, ProtocolKind


class TransportError(Exception):
    """A protocol library call failed; the message is the library's own text."""


@dataclass(frozen=True)
class HeaderFlags:
    """Server-maintained read state of one message.

    The ``recent_code``/``unseen_code`` properties follow the classic c-client
    header info convention: ``N`` new (recent and unseen), ``R`` recent and
    seen, ``U`` unseen and not recent, blank otherwise.
    """

    recent: bool
    seen: bool

    @property
    def recent_code(self) -> str:
        if not self.recent:
            return " "
        return "R" if self.seen else "N"

    @property
    def unseen_code(self) -> str:
        return "U" if not self.seen and not self.recent else " "

    @property
    def unread(self) -> bool:
        return self.recent_code == "N" or self.unseen_code == "U"


@dataclass(frozen=True)
class MailboxStatus:
    """Counts reported by a mailbox status query."""

    messages: int
    unseen: int


class MailTransport(Protocol):
    """Operations a session performs against a live mailbox.

    Indices are 1-based message sequence numbers. Every method except
    :meth:`close` may raise :class:`TransportError`.
    """

    last_error: Optional[str]

    def open(self, endpoint: Endpoint, login: str, password: str) -> None:
        ...

    def message_count(self) -> int:
        ...

    def status(self) -> MailboxStatus:
        ...

    def header_flags(self, index: int) -> HeaderFlags:
        ...

    def fetch_header(self, index: int) -> bytes:
        ...

    def fetch_body(self, index: int) -> bytes:
        ...

    def mark_deleted(self, index: int) -> None:
        ...

    def expunge(self) -> None:
        ...

    def close(self) -> None:
        ...


TransportFactory = Callable[[ProtocolKind], MailTransport]


def build_ssl_context(endpoint: Endpoint) -> ssl.SSLContext:
    """Return an SSL context honouring the endpoint's certificate policy.

    Accepting self-signed certificates disables both hostname checking and
    chain verification; the order matters because ``check_hostname`` must be
    cleared before ``verify_mode`` can drop to ``CERT_NONE``.
    """

    context = ssl.create_default_context()
    if not endpoint.verify_certificate:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def default_transport_factory(
    protocol: ProtocolKind, *, timeout: Optional[float] = None
) -> MailTransport:
    """Build the library-backed transport for ``protocol``."""

    if protocol is ProtocolKind.POP3:
        from .pop3 import Pop3Transport

        return Pop3Transport(timeout=timeout)
    from .imap import ImapTransport

    return ImapTransport(timeout=timeout)
