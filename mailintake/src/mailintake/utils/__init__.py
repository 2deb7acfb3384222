"""Expose the public utility surface for mailintake.

What:
  Re-export logging and identifier helpers that other packages import without
  knowing the underlying module layout.

Interfaces:
  ``JsonLogger``, ``get_logger``, ``new_run_id``, ``checksum``, ``spool_name``.
"""

from .logging import JsonLogger, get_logger
from .ids import checksum, new_run_id, spool_name

__all__ = [
    "JsonLogger",
    "get_logger",
    "new_run_id",
    "checksum",
    "spool_name",
]
