"""
Configuration Loader (``receipt_config.loader``).

Responsibility
--------------
Loads an engine configuration YAML file and parses it into the frozen
``receipt_config.schema.EngineConfig``.  Runtime callers go through
``receipt_config.get_active_config()`` rather than calling this directly.

Invariants enforced
-------------------
* Every value is type-checked; a malformed value raises
  ``ConfigurationError`` naming the offending key.  Missing keys take the
  ``EngineConfig`` defaults.
* Unknown sections or keys are rejected so that typos do not silently
  fall back to defaults.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed document for change detection.

Failure modes
-------------
* Missing YAML file  -> ``ConfigurationError``.
* Malformed YAML  -> ``ConfigurationError`` wrapping ``yaml.YAMLError``.
* Wrong value type or range  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from receipt_config.schema import EngineConfig
from receipt_kernel.exceptions import ConfigurationError

# section -> allowed keys
_SECTIONS: dict[str, tuple[str, ...]] = {
    "rounding": ("money_places", "quantity_places"),
    "validation": (
        "free_quantity_warning_ratio",
        "warn_future_receipt_date",
        "warn_discount_exceeds_total",
    ),
    "reconciliation": ("manual_lines_first", "skip_inactive_po_lines"),
}
_TOP_LEVEL_KEYS = frozenset({"config_id", "version"}) | frozenset(_SECTIONS)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML file and return its contents as a dict.

    Raises:
        ConfigurationError: if the file is missing, unreadable, not valid
            YAML, or does not contain a mapping.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Configuration file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration root must be a mapping, got {type(data).__name__}"
        )
    return data


def _parse_places(key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{key} must be an integer, got {value!r}", key=key)
    if not 0 <= value <= 8:
        raise ConfigurationError(f"{key} must be between 0 and 8, got {value}", key=key)
    return value


def _parse_bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{key} must be true or false, got {value!r}", key=key)
    return value


def _parse_ratio(key: str, value: Any) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ConfigurationError(f"{key} must be a number, got {value!r}", key=key)
    try:
        ratio = Decimal(str(value))
    except InvalidOperation as exc:
        raise ConfigurationError(f"{key} must be a number, got {value!r}", key=key) from exc
    if not ratio.is_finite() or ratio < 0:
        raise ConfigurationError(f"{key} must be a non-negative number, got {value!r}", key=key)
    return ratio


_PARSERS = {
    "money_places": _parse_places,
    "quantity_places": _parse_places,
    "free_quantity_warning_ratio": _parse_ratio,
    "warn_future_receipt_date": _parse_bool,
    "warn_discount_exceeds_total": _parse_bool,
    "manual_lines_first": _parse_bool,
    "skip_inactive_po_lines": _parse_bool,
}


def parse_engine_config(data: dict[str, Any]) -> EngineConfig:
    """
    Parse a configuration mapping into an ``EngineConfig``.

    Postconditions:
        - Returns a frozen ``EngineConfig`` whose ``checksum`` is the
          checksum of ``data``.
    Raises:
        ConfigurationError: on unknown keys or malformed values.
    """
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise ConfigurationError(
            f"Unknown configuration key(s): {', '.join(sorted(unknown))}",
            key=sorted(unknown)[0],
        )

    values: dict[str, Any] = {}
    for section, keys in _SECTIONS.items():
        body = data.get(section) or {}
        if not isinstance(body, dict):
            raise ConfigurationError(f"Section '{section}' must be a mapping", key=section)
        extra = set(body) - set(keys)
        if extra:
            raise ConfigurationError(
                f"Unknown key(s) in '{section}': {', '.join(sorted(extra))}",
                key=f"{section}.{sorted(extra)[0]}",
            )
        for key, value in body.items():
            values[key] = _PARSERS[key](f"{section}.{key}", value)

    if "config_id" in data:
        values["config_id"] = str(data["config_id"])
    if "version" in data:
        version = data["version"]
        if isinstance(version, bool) or not isinstance(version, int):
            raise ConfigurationError(f"version must be an integer, got {version!r}", key="version")
        values["version"] = version

    return EngineConfig(checksum=compute_checksum(data), **values)


def load_engine_config(path: Path) -> EngineConfig:
    """Load and parse a configuration file."""
    return parse_engine_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Postconditions:
        - Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
