"""
Module: mailintake.__init__

What:
  Package root for the mailbox intake client: configurable IMAP/POP3 sessions
  that fetch each unread message once and hand the raw text to downstream
  content processing.

Interfaces:
  - config: Runtime configuration schema and loader.
  - mail: Session lifecycle, protocol selection, and transports.
  - intake: The connect/fetch/delete/expunge/disconnect pass.
  - utils: Logging and identifier helpers.
"""

__all__ = [
    "config",
    "intake",
    "mail",
    "utils",
]

__version__ = "0.3.0"
