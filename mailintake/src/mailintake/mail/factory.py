"""Select the mail session variant for a protocol identifier.

Three identifiers are supported, matched case-insensitively: ``imap`` (plain
IMAP), ``imap-ssl`` (IMAP over SSL), and ``pop3-ssl`` (POP3 over SSL). The set
is closed; anything else raises :class:`UnsupportedProtocolError`, which is a
configuration error the process must not continue past.
"""
from __future__ import annotations

from typing import Optional, Tuple

from ..errors import UnsupportedProtocolError
from ..utils.logging import JsonLogger
from .endpoint import PROTOCOL_VARIANTS, CertPolicy, ProtocolKind
from .session import MailSession
from .transport import TransportFactory


def resolve_protocol(identifier: str) -> Tuple[ProtocolKind, bool]:
    """Return ``(ProtocolKind, ssl)`` for ``identifier`` or raise."""

    try:
        return PROTOCOL_VARIANTS[identifier.strip().lower()]
    except (KeyError, AttributeError):
        raise UnsupportedProtocolError(str(identifier)) from None


class SessionFactory:
    """Build :class:`MailSession` instances sharing the same collaborators.

    Args:
      debug: Passed to every session; see :meth:`MailSession.message_count`.
      logger: Diagnostic sink handed to every session.
      transport_factory: Override for the library-backed transports.
    """

    def __init__(
        self,
        *,
        debug: bool = False,
        logger: Optional[JsonLogger] = None,
        transport_factory: Optional[TransportFactory] = None,
    ) -> None:
        self.debug = debug
        self.logger = logger
        self.transport_factory = transport_factory

    def create(self, identifier: str) -> MailSession:
        protocol, ssl = resolve_protocol(identifier)
        return MailSession(
            protocol,
            ssl=ssl,
            cert_policy=CertPolicy.ACCEPT_SELF_SIGNED,
            debug=self.debug,
            logger=self.logger,
            transport_factory=self.transport_factory,
        )


def create_session(identifier: str, **kwargs) -> MailSession:
    """Shortcut for ``SessionFactory(**kwargs).create(identifier)``."""

    return SessionFactory(**kwargs).create(identifier)
