"""
Configuration Loader (``mandi_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``mandi_config.schema`` dataclasses.  The single public entry point for
runtime config is ``mandi_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Missing required sections raise ``KeyError``; malformed values raise
  ``ValueError``.  There are no silent defaults for required fields.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from typing import Any

import yaml

from mandi_config.schema import (
    CatalogDef,
    CropDef,
    DatabaseDef,
    LoggingDef,
    MandiConfig,
)

DATABASE_URL_ENV = "DATABASE_URL"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_database(data: dict[str, Any]) -> DatabaseDef:
    url = os.environ.get(DATABASE_URL_ENV) or data["url"]
    return DatabaseDef(url=url, echo=bool(data.get("echo", False)))


def parse_catalog(data: dict[str, Any]) -> CatalogDef:
    crops = tuple(
        CropDef(name=str(c["name"]), prefix=str(c["prefix"]))
        for c in data["crops"]
    )
    if not crops:
        raise ValueError("catalog.crops must list at least one crop")
    names = [c.name for c in crops]
    if len(set(names)) != len(names):
        raise ValueError(f"catalog.crops has duplicate names: {names}")
    sizes = tuple(str(s) for s in data["sizes"])
    default_grade = str(data.get("default_grade", "Large"))
    if default_grade not in sizes:
        raise ValueError(
            f"catalog.default_grade {default_grade!r} is not one of {sizes}"
        )
    return CatalogDef(crops=crops, sizes=sizes, default_grade=default_grade)


def parse_config(data: dict[str, Any]) -> MandiConfig:
    """Parse a loaded YAML document into a MandiConfig."""
    charges = data.get("default_charges") or {}
    if not isinstance(charges, dict):
        raise ValueError("default_charges must be a mapping")
    return MandiConfig(
        config_id=str(data["config_id"]),
        version=int(data.get("version", 1)),
        database=parse_database(data["database"]),
        catalog=parse_catalog(data["catalog"]),
        payment_modes=tuple(str(m) for m in data["payment_modes"]),
        default_charges=tuple(
            sorted((str(k), str(v)) for k, v in charges.items())
        ),
        logging=LoggingDef(level=str((data.get("logging") or {}).get("level", "INFO"))),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
