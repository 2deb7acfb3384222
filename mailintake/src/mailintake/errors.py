"""Exception hierarchy shared by configuration, session selection, and intake."""
from __future__ import annotations


class ConfigLoadError(Exception):
    """Base error for configuration parsing or validation failures.

    What:
      Represent fatal issues encountered while reading or validating the
      runtime configuration or the protocol selection derived from it.

    Why:
      Grouping failures under a single type lets the CLI handle operator
      mistakes separately from mailbox connectivity problems.
    """


class RuntimeConfigError(ConfigLoadError):
    """Error raised when ``config.yaml`` cannot be located, read, or validated."""


class UnsupportedProtocolError(ConfigLoadError):
    """Raised when a protocol identifier names no supported session variant.

    The process must not continue with an unsupported protocol, so this is a
    configuration error rather than a runtime condition.
    """

    def __init__(self, identifier: str) -> None:
        super().__init__(f"{identifier} not supported")
        self.identifier = identifier


class IntakeError(Exception):
    """Raised by the intake loop when the mailbox session cannot be opened."""
