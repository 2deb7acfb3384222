"""Pydantic models describing the mailintake runtime configuration."""
from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..mail.endpoint import PROTOCOL_VARIANTS


class MailServerConfig(BaseModel):
    """Where and how to reach the mailbox."""

    model_config = ConfigDict(extra="forbid")

    protocol: str = "imap-ssl"
    host: str
    port: int = Field(gt=0, lt=65536)
    login: str
    password: Optional[str] = None
    password_env: Optional[str] = None
    opportunistic_tls: bool = False
    require_valid_cert: bool = False
    timeout: Optional[float] = Field(default=None, gt=0)

    @field_validator("protocol")
    @classmethod
    def _known_protocol(cls, value: str) -> str:
        normalised = value.strip().lower()
        if normalised not in PROTOCOL_VARIANTS:
            supported = ", ".join(sorted(PROTOCOL_VARIANTS))
            raise ValueError(f"{value} not supported (expected one of: {supported})")
        return normalised

    @model_validator(mode="after")
    def _password_source(self) -> "MailServerConfig":
        if self.password is None and not self.password_env:
            raise ValueError("either password or password_env must be set")
        return self

    def resolve_password(self) -> Optional[str]:
        """Return the literal password, else the named environment variable."""

        if self.password is not None:
            return self.password
        return os.environ.get(self.password_env or "")


class IntakeConfig(BaseModel):
    """Per-run intake behaviour."""

    model_config = ConfigDict(extra="forbid")

    delete_after_fetch: bool = True
    max_messages: int = Field(default=0, ge=0)
    spool_dir: Optional[str] = None


class RuntimeConfig(BaseModel):
    """Root configuration loaded from ``config.yaml``."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    debug: bool = False
    mailserver: MailServerConfig
    intake: IntakeConfig = Field(default_factory=IntakeConfig)
