"""POP3 transport backed by :mod:`poplib`.

POP3 keeps no per-message read state on the server, so every message reports
itself as new (recent and unseen) and the status query's unseen count equals
the message count. Deletions marked with ``DELE`` are committed by the server
only when the session ends with ``QUIT``; :meth:`Pop3Transport.expunge`
therefore has nothing to send and the commit happens in :meth:`close`.
"""
from __future__ import annotations

import contextlib
import poplib
from typing import Iterator, List, Optional, Tuple

from .endpoint import Endpoint
from .transport import HeaderFlags, MailboxStatus, TransportError, build_ssl_context

CRLF = b"\r\n"


class Pop3Transport:
    """Single POP3 maildrop connection."""

    def __init__(self, *, timeout: Optional[float] = None) -> None:
        self.last_error: Optional[str] = None
        self._timeout = timeout
        self._client: Optional[poplib.POP3] = None

    @contextlib.contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except (poplib.error_proto, OSError) as exc:
            self.last_error = f"{operation}: {exc}"
            raise TransportError(self.last_error) from exc

    def _ensure_open(self) -> None:
        if self._client is None:
            self.last_error = "POP3 connection is not open"
            raise TransportError(self.last_error)

    @property
    def client(self) -> poplib.POP3:
        self._ensure_open()
        return self._client

    def open(self, endpoint: Endpoint, login: str, password: str) -> None:
        """Connect, optionally upgrade with STLS, and authenticate with USER/PASS."""

        context = build_ssl_context(endpoint)
        with self._guard("connect"):
            if endpoint.ssl:
                client = poplib.POP3_SSL(
                    endpoint.host, endpoint.port, timeout=self._timeout, context=context
                )
            else:
                client = poplib.POP3(endpoint.host, endpoint.port, timeout=self._timeout)
        try:
            with self._guard("stls"):
                if endpoint.starttls and not endpoint.ssl:
                    client.stls(context=context)
            with self._guard("login"):
                client.user(login)
                client.pass_(password)
        except TransportError:
            with contextlib.suppress(poplib.error_proto, OSError):
                client.close()
            raise
        self._client = client

    def message_count(self) -> int:
        """Message count from STAT."""

        with self._guard("stat"):
            count, _size = self.client.stat()
        return int(count)

    def status(self) -> MailboxStatus:
        """Every POP3 message counts as unseen."""

        count = self.message_count()
        return MailboxStatus(messages=count, unseen=count)

    def header_flags(self, index: int) -> HeaderFlags:
        """POP3 has no flags; report every message as new."""

        self._ensure_open()
        return HeaderFlags(recent=True, seen=False)

    def fetch_header(self, index: int) -> bytes:
        """Header block of message ``index`` via ``TOP index 0``."""

        with self._guard("top"):
            _, lines, _ = self.client.top(index, 0)
        header, _ = _split_message(lines)
        return CRLF.join(header) + CRLF + CRLF

    def fetch_body(self, index: int) -> bytes:
        """Body of message ``index`` via RETR, without the header block."""

        with self._guard("retr"):
            _, lines, _ = self.client.retr(index)
        _, body = _split_message(lines)
        return CRLF.join(body)

    def mark_deleted(self, index: int) -> None:
        """DELE message ``index``; the server removes it at QUIT."""

        with self._guard("dele"):
            self.client.dele(index)

    def expunge(self) -> None:
        """Nothing to send: DELE marks are committed by QUIT in :meth:`close`."""

        self._ensure_open()

    def close(self) -> None:
        """QUIT, committing deletions; safe to call when already closed."""

        if self._client is None:
            return
        try:
            with self._guard("quit"):
                self._client.quit()
        finally:
            self._client = None


def _split_message(lines: List[bytes]) -> Tuple[List[bytes], List[bytes]]:
    """Split raw POP3 lines at the first empty line into (header, body)."""

    for position, line in enumerate(lines):
        if not line:
            return lines[:position], lines[position + 1 :]
    return list(lines), []
