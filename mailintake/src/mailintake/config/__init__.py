"""Configuration loading for mailintake.

What:
  Re-export the loader helpers and pydantic schema classes that form the
  supported configuration API.

Interfaces:
  - get_runtime_config / load_runtime_config / reset_runtime_config /
    parse_runtime_config: Resolve ``config.yaml`` and expose a cached model.
  - RuntimeConfig / MailServerConfig / IntakeConfig: Pydantic models.
  - ConfigLoadError / RuntimeConfigError: Failure types.
"""

from .loader import (
    ConfigLoadError,
    RuntimeConfigError,
    get_runtime_config,
    load_runtime_config,
    parse_runtime_config,
    reset_runtime_config,
)
from .schema import IntakeConfig, MailServerConfig, RuntimeConfig

__all__ = [
    "ConfigLoadError",
    "RuntimeConfigError",
    "get_runtime_config",
    "load_runtime_config",
    "parse_runtime_config",
    "reset_runtime_config",
    "IntakeConfig",
    "MailServerConfig",
    "RuntimeConfig",
]
