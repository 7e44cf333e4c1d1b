"""
mandi_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No kernel component reads configuration
    files or environment variables directly; services receive the
    ``Catalog`` and default charges built by ``mandi_config.bridges``.

Architecture position:
    Configuration -- sits above ``mandi_kernel``.  The kernel MUST NEVER
    import from ``mandi_config``.

Failure modes:
    - ``FileNotFoundError`` -- the configured YAML file does not exist.
    - ``KeyError`` / ``ValueError`` -- missing or malformed sections.
    - ``ValidationError`` -- unknown or negative default charge rates.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``MANDI_CONFIG_TRACE`` log entry carrying the config id, version and
    checksum, tying settlements back to the configuration in force.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from mandi_config.bridges import build_catalog, build_default_charges, init_database
from mandi_config.loader import load_yaml_file, parse_config
from mandi_config.schema import MandiConfig

_logger = logging.getLogger("mandi_kernel.config")

CONFIG_PATH_ENV = "MANDI_CONFIG_PATH"

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: Path | str | None = None) -> MandiConfig:
    """The ONLY public configuration entrypoint.

    Resolution order for the file: the ``config_path`` argument, then the
    ``MANDI_CONFIG_PATH`` environment variable, then the packaged
    ``defaults.yaml``.  ``DATABASE_URL`` overrides ``database.url``.

    Non-goals:
        - Does NOT cache; callers hold the returned config.
    """
    path = Path(
        config_path or os.environ.get(CONFIG_PATH_ENV) or _DEFAULT_CONFIG_PATH
    )
    config = parse_config(load_yaml_file(path))

    # Fail fast on bad rates rather than at the first settlement
    build_default_charges(config)

    _logger.info(
        "MANDI_CONFIG_TRACE",
        extra={
            "trace_type": "MANDI_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
            "crop_count": len(config.catalog.crops),
        },
    )
    return config


__all__ = [
    "MandiConfig",
    "build_catalog",
    "build_default_charges",
    "get_active_config",
    "init_database",
]
