"""
Configuration Schema (``fulfillment_config.schema``).

Frozen dataclasses describing every tunable of the fulfillment kernel.
Field defaults mirror ``defaults.yaml``; validation happens in
``__post_init__`` and raises ``ValueError`` with a descriptive message.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class SkuSettings:
    """Finish rules for matching and production."""

    production_finishes: tuple[str, ...] = ("RAW", "BRW")
    finish_compatibility: dict[str, tuple[str, ...]] = field(
        default_factory=lambda: {
            "RAW": ("RAW", "STA", "IND", "BLK"),
            "BRW": ("BRW", "ONX", "JAG"),
        }
    )
    universal_finishes: dict[str, str] = field(
        default_factory=lambda: {
            "RAW": "RAW",
            "STA": "RAW",
            "IND": "RAW",
            "BLK": "RAW",
            "BRW": "BRW",
            "ONX": "BRW",
            "JAG": "BRW",
        }
    )
    universal_length: int = 36
    default_universal_finish: str = "RAW"

    def __post_init__(self):
        if not self.production_finishes:
            raise ValueError("production_finishes must not be empty")
        for finish in self.production_finishes:
            if len(finish) != 3 or not finish.isalpha():
                raise ValueError(f"finish codes are three letters, got '{finish}'")


@dataclass(frozen=True)
class IdentifierSettings:
    alphabet: str = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    item_prefix: str = "I"
    item_length: int = 4
    batch_prefix: str = "batch_"
    batch_length: int = 8
    retry_multiplier: int = 10
    min_attempts: int = 10
    max_attempts: int = 10_000
    bin_id_attempts: int = 5
    batch_id_attempts: int = 5

    def __post_init__(self):
        if self.bin_id_attempts <= 0:
            raise ValueError("bin_id_attempts must be positive")
        if self.batch_id_attempts <= 0:
            raise ValueError("batch_id_attempts must be positive")
        if self.retry_multiplier <= 0:
            raise ValueError("retry_multiplier must be positive")


@dataclass(frozen=True)
class CapacitySettings:
    near_capacity_threshold: float = 0.70
    critical_threshold: float = 0.90

    def __post_init__(self):
        if not 0 < self.near_capacity_threshold <= self.critical_threshold <= 1:
            raise ValueError(
                "capacity thresholds must satisfy 0 < near_capacity <= critical <= 1"
            )


@dataclass(frozen=True)
class LabelSettings:
    """Label sheet geometry in inches; font size in points."""

    page_width_in: float = 2.0
    page_height_in: float = 11.0
    label_width_in: float = 2.0
    label_height_in: float = 2.5
    margin_in: float = 0.125
    qr_size_in: float = 1.75
    font_name: str = "Helvetica"
    font_size: float = 8.0

    def __post_init__(self):
        if self.label_width_in > self.page_width_in:
            raise ValueError("label_width_in cannot exceed page_width_in")
        if self.label_height_in + self.margin_in > self.page_height_in:
            raise ValueError("a label plus margin must fit on the page")
        if self.qr_size_in > min(self.label_width_in, self.label_height_in):
            raise ValueError("qr_size_in must fit inside a label")


@dataclass(frozen=True)
class RepositorySettings:
    """Transient-fault retry for ``run_in_transaction``."""

    max_attempts: int = 3
    backoff_seconds: float = 0.05

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must not be negative")


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///fulfillment.db"
    echo: bool = False


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"

    def __post_init__(self):
        if self.level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level '{self.level}'")


@dataclass(frozen=True)
class FulfillmentConfig:
    """Complete configuration.  ``checksum`` identifies the source document."""

    sku: SkuSettings = field(default_factory=SkuSettings)
    identifiers: IdentifierSettings = field(default_factory=IdentifierSettings)
    capacity: CapacitySettings = field(default_factory=CapacitySettings)
    labels: LabelSettings = field(default_factory=LabelSettings)
    repository: RepositorySettings = field(default_factory=RepositorySettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str | None = None
