"""Pytest fixtures for unit tests requiring a fake mailbox transport.

What:
  Make ``tests/unit`` importable and expose helpers that build sessions wired
  to :class:`FakeTransport`, plus a logger that captures JSON lines.

Why:
  Sessions create their transport through an injected factory; handing them a
  prepared fake keeps every test deterministic and free of network access.
"""

import io
import json
import sys
from pathlib import Path

import pytest

UNIT_DIR = Path(__file__).resolve().parent
if str(UNIT_DIR) not in sys.path:
    sys.path.insert(0, str(UNIT_DIR))

from fakes import FakeTransport, make_message

from mailintake.mail import MailSession, ProtocolKind
from mailintake.utils.logging import JsonLogger


class CapturedLog:
    """A :class:`JsonLogger` writing to memory with parsed access to entries."""

    def __init__(self) -> None:
        self.stream = io.StringIO()
        self.logger = JsonLogger(stream=self.stream, component="test")

    @property
    def entries(self):
        return [json.loads(line) for line in self.stream.getvalue().splitlines() if line]

    def messages(self, level=None):
        return [
            entry["msg"]
            for entry in self.entries
            if level is None or entry["lvl"] == level
        ]


@pytest.fixture
def captured_log() -> CapturedLog:
    return CapturedLog()


@pytest.fixture
def mailbox() -> FakeTransport:
    """Three messages: unread, read, and new (recent and unseen)."""

    return FakeTransport(
        [
            make_message("first", seen=False, recent=False),
            make_message("second", seen=True, recent=False),
            make_message("third", seen=False, recent=True),
        ]
    )


@pytest.fixture
def session_for(captured_log):
    """Return a builder creating sessions bound to a given fake transport."""

    def build(transport, *, protocol=ProtocolKind.IMAP, ssl=True, debug=False):
        return MailSession(
            protocol,
            ssl=ssl,
            debug=debug,
            logger=captured_log.logger,
            transport_factory=lambda kind: transport,
        )

    return build
