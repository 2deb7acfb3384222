"""IMAP transport backed by the third-party ``imapclient`` library.

What:
  Implement :class:`~mailintake.mail.transport.MailTransport` on top of
  ``imapclient.IMAPClient`` in sequence-number mode.

Why:
  Sessions address messages by 1-based index, exactly like IMAP sequence
  numbers, so UID mode would only add translation. ``imapclient`` already
  parses FETCH and STATUS responses into dictionaries, which keeps this module
  to connection setup and error conversion.

How:
  :meth:`ImapTransport.open` connects with ``ssl``/``ssl_context`` from the
  endpoint, upgrades with STARTTLS when requested, logs in, and selects the
  endpoint mailbox. Every call runs inside :meth:`_guard`, which turns library
  and socket errors into :class:`TransportError`.

Invariants & Safety:
  - Header retrieval uses ``BODY.PEEK`` and leaves ``\\Seen`` untouched.
  - Body retrieval uses ``BODY[TEXT]`` so the server marks the message seen;
    this is what keeps a later pass from fetching the same message again.
"""
from __future__ import annotations

import contextlib
from typing import Iterator, Optional

from imapclient import RECENT, SEEN, IMAPClient
from imapclient.exceptions import IMAPClientError

from .endpoint import DEFAULT_MAILBOX, Endpoint
from .transport import HeaderFlags, MailboxStatus, TransportError, build_ssl_context


class ImapTransport:
    """Single IMAP connection with one selected mailbox."""

    def __init__(self, *, timeout: Optional[float] = None) -> None:
        self.last_error: Optional[str] = None
        self._timeout = timeout
        self._client: Optional[IMAPClient] = None
        self._mailbox = DEFAULT_MAILBOX
        self._exists = 0

    @contextlib.contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except (IMAPClientError, OSError) as exc:
            self.last_error = f"{operation}: {exc}"
            raise TransportError(self.last_error) from exc

    @property
    def client(self) -> IMAPClient:
        if self._client is None:
            self.last_error = "IMAP connection is not open"
            raise TransportError(self.last_error)
        return self._client

    def open(self, endpoint: Endpoint, login: str, password: str) -> None:
        """Connect, optionally upgrade with STARTTLS, log in and select the mailbox."""

        context = build_ssl_context(endpoint)
        self._mailbox = endpoint.mailbox or DEFAULT_MAILBOX
        with self._guard("connect"):
            client = IMAPClient(
                endpoint.host,
                port=endpoint.port,
                use_uid=False,
                ssl=endpoint.ssl,
                ssl_context=context,
                timeout=self._timeout,
            )
        try:
            with self._guard("starttls"):
                if endpoint.starttls and not endpoint.ssl:
                    client.starttls(ssl_context=context)
            with self._guard("login"):
                client.login(login, password)
            with self._guard("select"):
                response = client.select_folder(self._mailbox)
        except TransportError:
            with contextlib.suppress(IMAPClientError, OSError):
                client.shutdown()
            raise
        self._client = client
        self._exists = int(response.get(b"EXISTS", 0))

    def message_count(self) -> int:
        """``EXISTS`` from SELECT, less the messages our expunges removed."""

        if self._client is None:
            self.last_error = "IMAP connection is not open"
            raise TransportError(self.last_error)
        return self._exists

    def status(self) -> MailboxStatus:
        """STATUS query for the selected mailbox's total and unseen counts."""

        with self._guard("status"):
            response = self.client.folder_status(self._mailbox, ["MESSAGES", "UNSEEN"])
        return MailboxStatus(
            messages=int(response.get(b"MESSAGES", 0)),
            unseen=int(response.get(b"UNSEEN", 0)),
        )

    def header_flags(self, index: int) -> HeaderFlags:
        """Read the ``\\Recent`` and ``\\Seen`` flags of message ``index``."""

        with self._guard("fetch flags"):
            response = self.client.fetch([index], ["FLAGS"])
        if index not in response:
            self.last_error = f"fetch flags: no message at index {index}"
            raise TransportError(self.last_error)
        flags = {flag.lower() for flag in response[index].get(b"FLAGS", ())}
        return HeaderFlags(recent=RECENT.lower() in flags, seen=SEEN.lower() in flags)

    def fetch_header(self, index: int) -> bytes:
        """Header block of message ``index``, fetched without setting ``\\Seen``."""

        return self._fetch_part(index, "BODY.PEEK[HEADER]", b"BODY[HEADER]")

    def fetch_body(self, index: int) -> bytes:
        """Body of message ``index``; the server marks the message seen."""

        return self._fetch_part(index, "BODY[TEXT]", b"BODY[TEXT]")

    def _fetch_part(self, index: int, request: str, key: bytes) -> bytes:
        with self._guard("fetch"):
            response = self.client.fetch([index], [request])
        data = response.get(index, {}).get(key)
        if data is None:
            self.last_error = f"fetch: server returned no {key.decode()} for index {index}"
            raise TransportError(self.last_error)
        return bytes(data)

    def mark_deleted(self, index: int) -> None:
        """Set ``\\Deleted`` on message ``index``."""

        with self._guard("delete"):
            self.client.delete_messages([index])

    def expunge(self) -> None:
        """Remove every ``\\Deleted`` message from the mailbox."""

        with self._guard("expunge"):
            _, responses = self.client.expunge()
        removed = sum(1 for item in responses or () if len(item) > 1 and item[1] == b"EXPUNGE")
        self._exists = max(self._exists - removed, 0)

    def close(self) -> None:
        """Log out; safe to call when already closed."""

        if self._client is None:
            return
        try:
            with self._guard("logout"):
                self._client.logout()
        finally:
            self._client = None
            self._exists = 0
