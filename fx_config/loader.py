"""
Configuration Loader (``fx_config.loader``).

Responsibility
--------------
Reads a YAML file with ``yaml.safe_load`` and parses it into the frozen
``fx_config.schema`` dataclasses, validating every value on the way.

Invariants enforced
-------------------
* Unknown top-level sections are rejected, so typos do not silently fall
  back to defaults.
* Decimal settings are parsed from their string form.
* ``compute_checksum`` is a deterministic SHA-256 over the canonical JSON
  of the raw document.

Failure modes
-------------
* Every problem (missing file, malformed YAML, bad value) surfaces as
  ``ConfigurationError`` naming the source file.
"""

from __future__ import annotations

import hashlib
import json
import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from fx_config.schema import (
    AuthoritySettings,
    BackOfficeConfig,
    CurrencySettings,
    DatabaseSettings,
    LoggingSettings,
    SettlementSettings,
)
from fx_kernel.db.types import normalize_currency_code
from fx_kernel.exceptions import ConfigurationError, CurrencyNotFoundError

_KNOWN_SECTIONS = frozenset(
    {"settlement", "currency", "database", "logging", "authority"}
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML document; an empty file yields an empty dict."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigurationError(str(path), "file not found") from None
    except yaml.YAMLError as exc:
        raise ConfigurationError(str(path), f"malformed YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _section(data: dict[str, Any], name: str, source: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(source, f"section '{name}' must be a mapping")
    return value


def _decimal(value: Any, key: str, source: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ConfigurationError(source, f"{key} is not a number: {value!r}") from None


def parse_settlement(data: dict[str, Any], source: str) -> SettlementSettings:
    defaults = SettlementSettings()
    tolerance = _decimal(data.get("tolerance", defaults.tolerance), "settlement.tolerance", source)
    places = data.get("derived_amount_places", defaults.derived_amount_places)
    default_rate = _decimal(
        data.get("default_rate", defaults.default_rate), "settlement.default_rate", source,
    )
    if tolerance < 0:
        raise ConfigurationError(source, "settlement.tolerance cannot be negative")
    if not isinstance(places, int) or isinstance(places, bool) or places < 0:
        raise ConfigurationError(
            source, "settlement.derived_amount_places must be a non-negative integer",
        )
    if default_rate <= 0:
        raise ConfigurationError(source, "settlement.default_rate must be positive")
    return SettlementSettings(
        tolerance=tolerance,
        derived_amount_places=places,
        default_rate=default_rate,
    )


def parse_currency(data: dict[str, Any], source: str) -> CurrencySettings:
    code = data.get("reference_code", CurrencySettings().reference_code)
    try:
        return CurrencySettings(reference_code=normalize_currency_code(code))
    except CurrencyNotFoundError as exc:
        raise ConfigurationError(source, f"currency.reference_code: {exc}") from exc


def parse_database(data: dict[str, Any], source: str) -> DatabaseSettings:
    url = data.get("url", DatabaseSettings().url)
    if not isinstance(url, str) or not url.strip():
        raise ConfigurationError(source, "database.url must be a non-empty string")
    return DatabaseSettings(url=url, echo=bool(data.get("echo", False)))


def parse_logging(data: dict[str, Any], source: str) -> LoggingSettings:
    level = str(data.get("level", LoggingSettings().level)).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigurationError(source, f"logging.level is not a level name: {level!r}")
    return LoggingSettings(level=level)


def parse_authority(data: dict[str, Any], source: str) -> AuthoritySettings:
    raw = data.get("role_permissions") or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(source, "authority.role_permissions must be a mapping")
    pairs = []
    for role, actions in sorted(raw.items()):
        if not isinstance(actions, list):
            raise ConfigurationError(
                source, f"authority.role_permissions.{role} must be a list",
            )
        pairs.append((str(role), frozenset(str(a) for a in actions)))
    return AuthoritySettings(
        role_permissions=tuple(pairs),
        admin_role=data.get("admin_role", AuthoritySettings().admin_role),
    )


def parse_config(data: dict[str, Any], source: str) -> BackOfficeConfig:
    """Parse a raw YAML document into a ``BackOfficeConfig``."""
    unknown = set(data) - _KNOWN_SECTIONS
    if unknown:
        raise ConfigurationError(source, f"unknown sections: {sorted(unknown)}")
    return BackOfficeConfig(
        settlement=parse_settlement(_section(data, "settlement", source), source),
        currency=parse_currency(_section(data, "currency", source), source),
        database=parse_database(_section(data, "database", source), source),
        logging=parse_logging(_section(data, "logging", source), source),
        authority=parse_authority(_section(data, "authority", source), source),
        source=source,
        checksum=compute_checksum(data),
    )


def load_config_file(path: Path) -> BackOfficeConfig:
    return parse_config(load_yaml_file(path), str(path))
