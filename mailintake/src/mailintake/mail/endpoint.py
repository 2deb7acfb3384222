"""Session options and the mailbox endpoint descriptor.

What:
  Define the enumerations that configure a mailbox session and the immutable
  :class:`Endpoint` that captures everything needed to open one, including its
  canonical descriptor string.

Why:
  The descriptor is the single place where protocol, SSL, TLS, certificate
  policy, and mailbox path are combined. Keeping it a pure value makes it
  deterministic (same inputs, byte-identical string) and trivially testable
  without a server.

How:
  :func:`build_endpoint` composes the option flags in a fixed order and applies
  the webmail mailbox-path workaround; :class:`Endpoint` renders the
  ``{host:port/flags}mailbox`` form on demand.

Interfaces:
  :class:`ProtocolKind`, :class:`TlsMode`, :class:`CertPolicy`,
  :class:`Endpoint`, :func:`build_endpoint`, :data:`PROTOCOL_VARIANTS`.

Invariants & Safety:
  - Exactly one of ``/tls`` or ``/notls`` appears in every descriptor.
  - ``/novalidate-cert`` appears iff self-signed certificates are accepted.
  - An explicit ``INBOX`` path is appended only for Google/Gmail hosts.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple


class ProtocolKind(str, Enum):
    """Mailbox access protocol."""

    IMAP = "imap"
    POP3 = "pop3"


class TlsMode(str, Enum):
    """Whether STARTTLS is negotiated after a plaintext greeting."""

    NONE = "none"
    OPPORTUNISTIC_TLS = "tls"
    NO_TLS_EXPLICIT = "notls"


class CertPolicy(str, Enum):
    """How strictly the server certificate is checked."""

    ACCEPT_SELF_SIGNED = "accept-self-signed"
    REQUIRE_VALID = "require-valid"


DEFAULT_MAILBOX = "INBOX"

# Providers whose default mailbox selection differs from standard IMAP servers.
_WEBMAIL_HOST = re.compile(r"google|gmail", re.IGNORECASE)

# identifier -> (protocol, ssl)
PROTOCOL_VARIANTS: Dict[str, Tuple[ProtocolKind, bool]] = {
    "imap": (ProtocolKind.IMAP, False),
    "imap-ssl": (ProtocolKind.IMAP, True),
    "pop3-ssl": (ProtocolKind.POP3, True),
}


@dataclass(frozen=True)
class Endpoint:
    """Everything a transport needs to reach one mailbox.

    Attributes:
      host: Server hostname.
      port: Server port.
      protocol: IMAP or POP3.
      ssl: Connect over an encrypted channel from the first byte.
      tls_mode: Whether to upgrade a plaintext connection with STARTTLS.
      cert_policy: Certificate verification policy.
      mailbox: Explicit mailbox path, or ``None`` for the library default.
    """

    host: str
    port: int
    protocol: ProtocolKind
    ssl: bool
    tls_mode: TlsMode
    cert_policy: CertPolicy
    mailbox: Optional[str] = None

    @property
    def options(self) -> str:
        flags = [f"/service={self.protocol.value}"]
        if self.ssl:
            flags.append("/ssl")
        if self.tls_mode is TlsMode.OPPORTUNISTIC_TLS:
            flags.append("/tls")
        else:
            flags.append("/notls")
        if self.cert_policy is CertPolicy.ACCEPT_SELF_SIGNED:
            flags.append("/novalidate-cert")
        return "".join(flags)

    @property
    def descriptor(self) -> str:
        return "{%s:%d%s}%s" % (self.host, self.port, self.options, self.mailbox or "")

    @property
    def starttls(self) -> bool:
        return self.tls_mode is TlsMode.OPPORTUNISTIC_TLS

    @property
    def verify_certificate(self) -> bool:
        return self.cert_policy is CertPolicy.REQUIRE_VALID

    def __str__(self) -> str:
        return self.descriptor


def is_webmail_host(host: str) -> bool:
    """Return ``True`` when ``host`` belongs to Google's mail service."""

    return bool(_WEBMAIL_HOST.search(host))


def build_endpoint(
    host: str,
    port: int,
    *,
    protocol: ProtocolKind,
    ssl: bool,
    tls_mode: TlsMode,
    cert_policy: CertPolicy,
) -> Endpoint:
    """Compose the endpoint for ``host``/``port`` under the given options.

    Gmail does not select ``INBOX`` by default the way standard IMAP servers
    do, so Google hosts get the mailbox path spelled out.
    """

    mailbox = DEFAULT_MAILBOX if is_webmail_host(host) else None
    return Endpoint(
        host=host,
        port=int(port),
        protocol=protocol,
        ssl=ssl,
        tls_mode=tls_mode,
        cert_policy=cert_policy,
        mailbox=mailbox,
    )
