"""Find, validate, and memoise ``config.yaml``.

What:
  Turn the mailbox settings file into a validated
  :class:`~mailintake.config.schema.RuntimeConfig` and keep it for the rest of
  the process.

Why:
  The file is hand-edited on the intake host and names a server that intake
  will delete mail from. Every caller must see the same validation, and every
  failure (missing file, bad YAML, schema error) must surface as one exception
  type carrying the offending path.

How:
  An explicit path is used as-is and must exist. Without one, the
  ``MAILINTAKE_CONFIG_PATH`` variable is consulted, then ``./config.yaml`` and
  ``/etc/mailintake/config.yaml``; the first file present wins. Its text goes
  through ``yaml.safe_load`` and ``RuntimeConfig.model_validate``.

Interfaces:
  :func:`parse_runtime_config`, :func:`load_runtime_config`,
  :func:`get_runtime_config`, :func:`reset_runtime_config`.

Invariants:
  - Only validated models are returned or cached.
  - ``reload=True`` always reads the file again.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

import yaml
from pydantic import ValidationError

from ..errors import ConfigLoadError, RuntimeConfigError
from .schema import RuntimeConfig

__all__ = [
    "ConfigLoadError",
    "RuntimeConfigError",
    "get_runtime_config",
    "load_runtime_config",
    "parse_runtime_config",
    "reset_runtime_config",
]

CONFIG_PATH_ENV = "MAILINTAKE_CONFIG_PATH"
FALLBACK_PATHS = (Path("config.yaml"), Path("/etc/mailintake/config.yaml"))

_cached: Optional[Tuple[Path, RuntimeConfig]] = None


def _discover() -> Iterator[Path]:
    override = os.environ.get(CONFIG_PATH_ENV)
    if override:
        yield Path(override).expanduser()
    yield from FALLBACK_PATHS


def parse_runtime_config(text: str, source: str = "<string>") -> RuntimeConfig:
    """Validate YAML text as a runtime configuration.

    Args:
      text: Raw YAML document.
      source: Label used in error messages, usually the file path.

    Raises:
      RuntimeConfigError: On malformed YAML, a non-mapping document, or a
        schema violation.
    """

    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise RuntimeConfigError(f"Invalid YAML in {source}: {exc}") from exc
    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise RuntimeConfigError(f"{source} must contain a mapping at the top-level")
    try:
        return RuntimeConfig.model_validate(document)
    except ValidationError as exc:
        raise RuntimeConfigError(f"Invalid configuration in {source}: {exc}") from exc


def _read(path: Path) -> RuntimeConfig:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise RuntimeConfigError(f"Configuration file missing: {path}") from exc
    except OSError as exc:
        raise RuntimeConfigError(f"Cannot read {path}: {exc}") from exc
    return parse_runtime_config(text, str(path))


def load_runtime_config(
    path: Optional[Union[str, Path]] = None,
    *,
    reload: bool = False,
) -> RuntimeConfig:
    """Return the runtime configuration, reading it on first use.

    Args:
      path: Explicit location of ``config.yaml``; skips discovery.
      reload: Ignore the cached model and read the file again.

    Raises:
      RuntimeConfigError: The explicit path is missing, no discovered
        candidate exists, or the chosen file is invalid.
    """

    global _cached

    explicit = Path(path).expanduser() if path is not None else None
    if _cached is not None and not reload and explicit in (None, _cached[0]):
        return _cached[1]

    if explicit is not None:
        chosen = explicit
    else:
        searched: List[str] = []
        for candidate in _discover():
            if candidate.exists():
                chosen = candidate
                break
            searched.append(str(candidate))
        else:
            raise RuntimeConfigError(
                f"Unable to locate config.yaml (searched: {', '.join(searched)})"
            )

    config = _read(chosen)
    _cached = (chosen, config)
    return config


def get_runtime_config() -> RuntimeConfig:
    """Cached configuration, discovered on demand."""

    return load_runtime_config()


def reset_runtime_config() -> None:
    global _cached
    _cached = None
