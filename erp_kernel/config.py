"""
Runtime Settings Loader (``erp_kernel.config``).

Responsibility
--------------
Loads the kernel's runtime settings from an optional YAML file and applies
environment-variable overrides on top.  The result is a frozen
``ErpSettings`` instance that the engine, logging and the Flask app factory
all read from.

Resolution order (later wins)
-----------------------------
1. Dataclass defaults.
2. YAML file at ``path`` (or ``$ERP_CONFIG`` when no path is given).
3. ``DATABASE_URL`` and ``ERP_LOG_LEVEL`` environment variables.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or wrongly-typed values  -> ``ValueError``; there are no
  silent defaults for misspelled settings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from erp_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULT_DATABASE_URL = "sqlite:///erp_core.db"

_ENV_CONFIG_PATH = "ERP_CONFIG"
_ENV_DATABASE_URL = "DATABASE_URL"
_ENV_LOG_LEVEL = "ERP_LOG_LEVEL"


@dataclass(frozen=True)
class ErpSettings:
    """Kernel runtime settings.

    Contract: frozen; every field has a usable default so that an empty
    configuration produces a working local SQLite setup.
    """
    database_url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    sqlite_busy_timeout: int = 30
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.database_url:
            raise ValueError("database_url must not be empty")
        for name in ("pool_size", "max_overflow", "pool_timeout", "sqlite_busy_timeout"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"log_level must be a standard level name, got {self.log_level!r}")

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")
    return data


def parse_settings(data: dict[str, Any]) -> ErpSettings:
    """Build ``ErpSettings`` from a parsed mapping, rejecting unknown keys."""
    known = {f.name for f in fields(ErpSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown settings keys: {', '.join(unknown)}")
    return ErpSettings(**data)


def load_settings(path: str | Path | None = None) -> ErpSettings:
    """Resolve settings from defaults, YAML and environment overrides."""
    source = path or os.environ.get(_ENV_CONFIG_PATH)
    data: dict[str, Any] = {}
    if source:
        data = load_yaml_file(Path(source))

    settings = parse_settings(data)

    overrides: dict[str, Any] = {}
    if os.environ.get(_ENV_DATABASE_URL):
        overrides["database_url"] = os.environ[_ENV_DATABASE_URL]
    if os.environ.get(_ENV_LOG_LEVEL):
        overrides["log_level"] = os.environ[_ENV_LOG_LEVEL]
    if overrides:
        settings = replace(settings, **overrides)

    logger.debug(
        "settings_loaded",
        extra={
            "source": str(source) if source else None,
            "overrides": sorted(overrides),
            "dialect": "sqlite" if settings.is_sqlite else "postgresql",
        },
    )
    return settings
