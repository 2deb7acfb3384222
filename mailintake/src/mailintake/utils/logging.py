"""One-line JSON log records that never carry secrets or message text.

What:
  :class:`JsonLogger` writes a JSON object per record with a UTC timestamp,
  severity, message, component tag, any bound context, and caller-supplied
  fields.

Why:
  Intake runs unattended from cron. Operators grep the log to learn why a
  mailbox stopped draining, and that log must never hold a mailbox password or
  the text of somebody's email.

How:
  Keyword fields are merged over the bound context and scrubbed recursively
  before ``json.dump``. :meth:`JsonLogger.bind` returns a child logger with
  extra context, which is how a CLI run tags every record with its run ID.

Invariants & Safety:
  - Values under ``password``, ``body``, ``subject`` and ``content`` are
    replaced by ``[redacted]`` at any nesting depth.
  - Each record is flushed as soon as it is written.
"""
from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional


REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"password", "body", "subject", "content"})


def scrub(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy ``fields``, masking sensitive keys in nested mappings too."""

    clean: Dict[str, Any] = {}
    for name, value in fields.items():
        if name in SENSITIVE_KEYS:
            clean[name] = REDACTED
        elif isinstance(value, Mapping):
            clean[name] = scrub(value)
        else:
            clean[name] = value
    return clean


@dataclass(frozen=True)
class JsonLogger:
    """Structured logger bound to a component and optional context.

    ``stream`` defaults to whatever ``sys.stdout`` is at write time so output
    captured by test runners and CLI harnesses is honoured.
    """

    stream: Any = None
    component: str = "mailintake"
    context: Mapping[str, Any] = field(default_factory=dict)

    def bind(self, **context: Any) -> "JsonLogger":
        return replace(self, context={**self.context, **context})

    def log(self, level: str, message: str, **fields: Any) -> None:
        record: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "lvl": level.upper(),
            "msg": message,
            "component": self.component,
        }
        record.update(scrub({**self.context, **fields}))
        out = sys.stdout if self.stream is None else self.stream
        out.write(json.dumps(record, separators=(",", ":"), default=str) + "\n")
        out.flush()

    def debug(self, message: str, **fields: Any) -> None:
        self.log("DEBUG", message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self.log("INFO", message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.log("WARN", message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self.log("ERROR", message, **fields)


def get_logger(component: str, *, stream: Optional[Any] = None) -> JsonLogger:
    """Return a :class:`JsonLogger` tagged with ``component``."""

    return JsonLogger(stream=stream, component=component)
