"""Facade for the mailbox session layer.

What:
  Surface :class:`MailSession`, :class:`SessionFactory`, the fetch result
  variants, and the option enumerations used to configure a session.

Why:
  Callers (the intake loop, the CLI, downstream content processing) depend on
  the session contract only; the concrete IMAP and POP3 transports stay behind
  :func:`~mailintake.mail.transport.default_transport_factory`.

Interfaces:
  ``MailSession``, ``SessionFactory``, ``create_session``, ``Fetched``,
  ``AlreadyRead``, ``FetchFailed``, ``FetchResult``, ``SessionState``,
  ``ProtocolKind``, ``TlsMode``, ``CertPolicy``, ``Endpoint``.
"""

from .endpoint import CertPolicy, Endpoint, ProtocolKind, TlsMode, build_endpoint
from .factory import SessionFactory, create_session, resolve_protocol
from .session import (
    AlreadyRead,
    Fetched,
    FetchFailed,
    FetchResult,
    MailSession,
    SessionState,
)
from .transport import HeaderFlags, MailboxStatus, MailTransport, TransportError

__all__ = [
    "AlreadyRead",
    "CertPolicy",
    "Endpoint",
    "Fetched",
    "FetchFailed",
    "FetchResult",
    "HeaderFlags",
    "MailSession",
    "MailTransport",
    "MailboxStatus",
    "ProtocolKind",
    "SessionFactory",
    "SessionState",
    "TlsMode",
    "TransportError",
    "build_endpoint",
    "create_session",
    "resolve_protocol",
]
