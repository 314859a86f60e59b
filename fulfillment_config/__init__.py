"""
fulfillment_config -- single public entrypoint for kernel configuration.

Responsibility:
    Provides the only way to obtain configuration at runtime through
    ``get_active_config()``.  Other components receive settings or kernel
    objects built from them; they never read YAML files or environment
    variables themselves.

Architecture position:
    Configuration.  This package sits above ``fulfillment_kernel`` and
    ``fulfillment_labels``.  The kernel must never import from
    ``fulfillment_config``; ``bridges`` translates settings into kernel
    inputs.

Invariants enforced:
    - Single entrypoint: all runtime config flows through
      ``get_active_config()``.
    - Deterministic: the same YAML document always produces the same
      ``FulfillmentConfig`` checksum.

Failure modes:
    - ``FileNotFoundError`` -- the configured YAML file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``FULFILLMENT_CONFIG_TRACE`` log entry containing the source path and
    checksum, tying kernel behaviour to the exact configuration in force.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path

from fulfillment_config.loader import load_yaml_file, parse_config
from fulfillment_config.schema import FulfillmentConfig

_logger = logging.getLogger("fulfillment_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_PATH_ENV = "FULFILLMENT_CONFIG"
DATABASE_URL_ENV = "DATABASE_URL"


def get_active_config(path: Path | str | None = None) -> FulfillmentConfig:
    """The only public configuration entrypoint.

    Resolution order for the source file: ``path``, then the
    ``FULFILLMENT_CONFIG`` environment variable, then the packaged
    ``defaults.yaml``.  ``DATABASE_URL``, when set, replaces
    ``database.url``.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        ValueError: If the document fails schema validation.
    """
    source = Path(path or os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)
    config = parse_config(load_yaml_file(source))

    database_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        config = dataclasses.replace(
            config,
            database=dataclasses.replace(config.database, url=database_url),
        )

    _logger.info(
        "FULFILLMENT_CONFIG_TRACE",
        extra={
            "trace_type": "FULFILLMENT_CONFIG_TRACE",
            "config_path": str(source),
            "checksum": config.checksum,
            "database_url_overridden": bool(database_url),
            "production_finishes": list(config.sku.production_finishes),
        },
    )
    return config


__all__ = ["DEFAULT_CONFIG_PATH", "FulfillmentConfig", "get_active_config"]
