"""
Configuration Loader (``fulfillment_config.loader``).

Responsibility
--------------
Loads a YAML document and parses it into the typed
``fulfillment_config.schema`` dataclasses.  Callers use
``fulfillment_config.get_active_config()``; this module is the tooling
underneath it.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages.  Unknown keys are rejected, so a typo cannot silently fall
  back to a default.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from fulfillment_config.schema import (
    CapacitySettings,
    DatabaseSettings,
    FulfillmentConfig,
    IdentifierSettings,
    LabelSettings,
    LoggingSettings,
    RepositorySettings,
    SkuSettings,
)

_SECTIONS: dict[str, type] = {
    "sku": SkuSettings,
    "identifiers": IdentifierSettings,
    "capacity": CapacitySettings,
    "labels": LabelSettings,
    "repository": RepositorySettings,
    "database": DatabaseSettings,
    "logging": LoggingSettings,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _parse_section(name: str, data: dict[str, Any] | None) -> Any:
    cls = _SECTIONS[name]
    data = dict(data or {})
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown keys in '{name}' section: {sorted(unknown)}")
    return cls(**data)


def parse_sku_settings(data: dict[str, Any] | None) -> SkuSettings:
    data = dict(data or {})
    if "production_finishes" in data:
        data["production_finishes"] = tuple(str(f).upper() for f in data["production_finishes"])
    if "finish_compatibility" in data:
        data["finish_compatibility"] = {
            str(src).upper(): tuple(str(t).upper() for t in targets)
            for src, targets in data["finish_compatibility"].items()
        }
    if "universal_finishes" in data:
        data["universal_finishes"] = {
            str(k).upper(): str(v).upper() for k, v in data["universal_finishes"].items()
        }
    return _parse_section("sku", data)


def parse_config(data: dict[str, Any]) -> FulfillmentConfig:
    """
    Parse a full configuration document.

    Missing sections take their schema defaults.
    """
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")
    sections = {
        name: _parse_section(name, data.get(name))
        for name in _SECTIONS
        if name != "sku"
    }
    return FulfillmentConfig(
        sku=parse_sku_settings(data.get("sku")),
        checksum=compute_checksum(data),
        **sections,
    )


def load_config(path: Path) -> FulfillmentConfig:
    return parse_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
