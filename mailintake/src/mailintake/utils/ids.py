"""Run identifiers and spool file naming for intake passes.

What:
  Provide helpers for creating unique run IDs and stable file names for raw
  messages written to the spool directory.

Why:
  Log lines from one intake pass are correlated by run ID, and spooled
  messages need names that sort by arrival and never collide across runs.

How:
  Combines ISO8601 timestamps with random suffixes for IDs and derives spool
  names from the run ID, the message index, and a SHA-256 prefix of the bytes.

Interfaces:
  :func:`new_run_id`, :func:`checksum`, :func:`spool_name`.
"""
from __future__ import annotations

import hashlib
import re
import secrets
from datetime import datetime, timezone


def new_run_id() -> str:
    """Return a unique identifier for an intake pass.

    Returns:
      Identifier string (e.g., ``2024-01-01T00:00:00+00:00#1a2b3c``).
    """

    timestamp = datetime.now(timezone.utc).isoformat()
    suffix = secrets.token_hex(3)
    return f"{timestamp}#{suffix}"


def checksum(data: bytes) -> str:
    """Compute a namespaced SHA-256 digest for ``data``."""

    return f"sha256:{hashlib.sha256(data).hexdigest()}"


def spool_name(run_id: str, index: int, data: bytes) -> str:
    """Return a filesystem-safe ``.eml`` name for a fetched message.

    What:
      Joins a sanitised run ID, the zero-padded mailbox index, and the first
      twelve hex digits of the message checksum.

    Why:
      Run IDs contain ``:`` and ``#`` which are awkward on some filesystems;
      the checksum suffix keeps names unique when two runs share a timestamp.

    Args:
      run_id: Identifier produced by :func:`new_run_id`.
      index: 1-based mailbox index of the message.
      data: Raw message bytes.
    """

    safe_run = re.sub(r"[^0-9A-Za-z]+", "-", run_id).strip("-")
    digest = checksum(data).split(":", 1)[1][:12]
    return f"{safe_run}_{index:05d}_{digest}.eml"
