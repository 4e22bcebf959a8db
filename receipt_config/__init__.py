"""
receipt_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Engines and services receive the resulting
    ``EngineConfig`` as an explicit argument and never read files or
    environment variables themselves.

Architecture position:
    Configuration -- YAML-driven settings.  Sits above ``receipt_kernel``
    and below ``receipt_modules``.  Engines take plain parameters
    (places, flags) so they never import this package.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Deterministic: the same YAML always yields the same ``EngineConfig``
      and checksum.

Failure modes:
    - ``ConfigurationError`` -- missing file, invalid YAML, unknown keys or
      malformed values.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``RECEIPT_CONFIG_TRACE`` log entry containing the config_id, version
    and checksum.
"""

from __future__ import annotations

from pathlib import Path

from receipt_config.loader import load_engine_config
from receipt_config.schema import EngineConfig
from receipt_kernel.logging_config import get_logger

__all__ = ["EngineConfig", "get_active_config", "DEFAULT_CONFIG_PATH"]

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> EngineConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: YAML file to load.  Defaults to the packaged ``defaults.yaml``.

    Returns:
        EngineConfig -- frozen, validated configuration.

    Raises:
        ConfigurationError: If the file cannot be loaded or validated.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = load_engine_config(config_path)

    _logger.info(
        "RECEIPT_CONFIG_TRACE",
        extra={
            "trace_type": "RECEIPT_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(config_path),
        },
    )
    return config
