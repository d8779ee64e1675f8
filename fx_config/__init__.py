"""
fx_config -- single public entrypoint for back-office configuration.

Responsibility:
    ``get_active_config()`` is the only way components obtain configuration
    at runtime.  The file is taken from ``FX_BACKOFFICE_CONFIG`` when set,
    otherwise the packaged ``defaults.yaml`` is used.

Failure modes:
    - ``ConfigurationError`` for a missing file, malformed YAML or an
      invalid value.

Audit relevance:
    Every successful load emits ``FX_CONFIG_TRACE`` with the source path and
    the SHA-256 checksum of the document.
"""

from __future__ import annotations

import os
from pathlib import Path

from fx_config.loader import load_config_file
from fx_config.schema import BackOfficeConfig
from fx_kernel.logging_config import configure_logging, get_logger

_logger = get_logger("config")

CONFIG_ENV_VAR = "FX_BACKOFFICE_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def load_config(path: Path | str) -> BackOfficeConfig:
    """Load and validate the configuration at ``path``."""
    config = load_config_file(Path(path))
    _logger.info(
        "FX_CONFIG_TRACE",
        extra={
            "trace_type": "FX_CONFIG_TRACE",
            "config_source": config.source,
            "checksum": config.checksum,
            "reference_code": config.currency.reference_code,
            "tolerance": str(config.settlement.tolerance),
        },
    )
    return config


def get_active_config() -> BackOfficeConfig:
    """The public configuration entrypoint."""
    override = os.environ.get(CONFIG_ENV_VAR)
    return load_config(Path(override) if override else DEFAULT_CONFIG_PATH)


def configure_logging_from(config: BackOfficeConfig, **handler_options) -> None:
    """Configure the ``fx_kernel`` loggers at the configured level."""
    configure_logging(level=config.logging.level, **handler_options)


__all__ = [
    "BackOfficeConfig",
    "CONFIG_ENV_VAR",
    "configure_logging_from",
    "DEFAULT_CONFIG_PATH",
    "get_active_config",
    "load_config",
]
