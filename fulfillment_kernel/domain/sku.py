"""
SKU codec and SKU rules (``fulfillment_kernel.domain.sku``).

Responsibility
--------------
Parse, validate, serialize and compare garment SKUs of the form
``STYLE-WAIST-SHAPE-LENGTH-FINISH`` (e.g. ``ST-32-X-34-STA``), and answer the
rule questions the matcher and production issuer ask: is a finish
production-eligible, can a raw finish be washed into another, can an item be
altered into a demanded SKU, and what universal SKU should production make.

Architecture position
---------------------
**Kernel domain layer** -- pure functions and frozen values.  ZERO I/O.

Invariants enforced
-------------------
* A parsed SKU always has five non-empty fields of the right shape.
* ``parse(str(sku)) == sku`` for every valid SKU.
* Exact-equal implies substitutable.

Failure modes
-------------
* ``InvalidFormatError`` from ``parse`` for any malformed token.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping

from fulfillment_kernel.exceptions import InvalidFormatError

SEPARATOR = "-"

_FIELD_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("style", re.compile(r"[A-Z]{2}")),
    ("waist", re.compile(r"[0-9]{2}")),
    ("shape", re.compile(r"[A-Z]")),
    ("length", re.compile(r"[0-9]{2}")),
    ("finish", re.compile(r"[A-Z]{3}")),
)


@dataclass(frozen=True, order=True)
class SKU:
    """A garment SKU.

    Contract: frozen; fields are already canonical (upper-case letters,
    two-digit numbers).  Build instances with ``parse`` or ``replace``.
    """

    style: str
    waist: str
    shape: str
    length: str
    finish: str

    def __str__(self) -> str:
        return SEPARATOR.join(
            (self.style, self.waist, self.shape, self.length, self.finish)
        )

    @property
    def length_value(self) -> int:
        return int(self.length)

    @property
    def base(self) -> tuple[str, str, str]:
        """The alteration-invariant part: style, waist and shape."""
        return (self.style, self.waist, self.shape)


def parse(token: str) -> SKU:
    """Parse a SKU token.

    Letters are upper-cased; surrounding whitespace is not accepted.

    Raises:
        InvalidFormatError: wrong field count, empty field, or a field that
            does not match its shape.
    """
    if not isinstance(token, str):
        raise InvalidFormatError(repr(token), "SKU must be a string")
    parts = token.split(SEPARATOR)
    if len(parts) != len(_FIELD_PATTERNS):
        raise InvalidFormatError(
            token, f"expected {len(_FIELD_PATTERNS)} fields, got {len(parts)}"
        )
    values: dict[str, str] = {}
    for raw, (name, pattern) in zip(parts, _FIELD_PATTERNS):
        if not raw:
            raise InvalidFormatError(token, f"{name} is empty")
        value = raw.upper()
        if not pattern.fullmatch(value):
            raise InvalidFormatError(token, f"{name} {raw!r} is malformed")
        values[name] = value
    return SKU(**values)


def serialize(sku: SKU) -> str:
    """Canonical text form of a SKU."""
    return str(sku)


def is_valid(token: str) -> bool:
    try:
        parse(token)
    except InvalidFormatError:
        return False
    return True


def is_exact_match(a: SKU, b: SKU) -> bool:
    return a == b


def is_substitutable(a: SKU, b: SKU) -> bool:
    """Same style, waist and shape; length and finish may differ."""
    return a.base == b.base


def with_finish(sku: SKU, finish: str) -> SKU:
    return replace(sku, finish=finish.upper())


def with_length(sku: SKU, length: int | str) -> SKU:
    return replace(sku, length=f"{int(length):02d}")


# =============================================================================
# Rules
# =============================================================================


def _freeze(mapping: Mapping[str, object]) -> Mapping[str, frozenset[str]]:
    return MappingProxyType(
        {k.upper(): frozenset(v.upper() for v in vals) for k, vals in mapping.items()}
    )


@dataclass(frozen=True)
class SkuRules:
    """Business rules over SKUs.

    ``finish_compatibility`` maps a source finish to the finishes it can be
    washed into.  Every finish is implicitly compatible with itself.
    ``universal_finishes`` maps a demanded finish to the production finish
    that can be washed into it.
    """

    production_finishes: frozenset[str] = frozenset({"RAW", "BRW"})
    finish_compatibility: Mapping[str, frozenset[str]] = field(
        default_factory=lambda: _freeze(
            {
                "RAW": ("RAW", "STA", "IND", "BLK"),
                "BRW": ("BRW", "ONX", "JAG"),
            }
        )
    )
    universal_finishes: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(
            {
                "RAW": "RAW",
                "STA": "RAW",
                "IND": "RAW",
                "BLK": "RAW",
                "BRW": "BRW",
                "ONX": "BRW",
                "JAG": "BRW",
            }
        )
    )
    universal_length: int = 36
    default_universal_finish: str = "RAW"

    def __post_init__(self) -> None:
        if self.default_universal_finish not in self.production_finishes:
            raise ValueError(
                f"default_universal_finish {self.default_universal_finish} "
                "must be a production finish"
            )
        for target in self.universal_finishes.values():
            if target not in self.production_finishes:
                raise ValueError(f"universal finish {target} is not a production finish")
        if not 0 < self.universal_length < 100:
            raise ValueError("universal_length must be a two-digit length")

    @classmethod
    def from_mappings(
        cls,
        *,
        production_finishes: tuple[str, ...] | list[str],
        finish_compatibility: Mapping[str, list[str] | tuple[str, ...]],
        universal_finishes: Mapping[str, str],
        universal_length: int,
        default_universal_finish: str,
    ) -> SkuRules:
        return cls(
            production_finishes=frozenset(f.upper() for f in production_finishes),
            finish_compatibility=_freeze(finish_compatibility),
            universal_finishes=MappingProxyType(
                {k.upper(): v.upper() for k, v in universal_finishes.items()}
            ),
            universal_length=universal_length,
            default_universal_finish=default_universal_finish.upper(),
        )

    def is_production_eligible(self, sku: SKU) -> bool:
        return sku.finish in self.production_finishes

    def is_finish_compatible(self, source: str, target: str) -> bool:
        """Can an item in ``source`` finish be processed into ``target``?"""
        if source == target:
            return True
        return target in self.finish_compatibility.get(source, frozenset())

    def can_alter_to(self, candidate: SKU, demand: SKU) -> bool:
        """Can ``candidate`` be hemmed and washed into ``demand``?

        Requires the same style/waist/shape, a length at least as long as
        the demand (garments are shortened, never lengthened) and a finish
        that can be washed into the demanded finish.
        """
        return (
            is_substitutable(candidate, demand)
            and candidate.length_value >= demand.length_value
            and self.is_finish_compatible(candidate.finish, demand.finish)
        )

    def universal_sku(self, sku: SKU) -> SKU:
        """The production-eligible SKU that can be altered into ``sku``."""
        finish = self.universal_finishes.get(sku.finish, self.default_universal_finish)
        return replace(sku, length=f"{self.universal_length:02d}", finish=finish)


DEFAULT_SKU_RULES = SkuRules()


def is_production_eligible(sku: SKU, rules: SkuRules = DEFAULT_SKU_RULES) -> bool:
    """Only raw-family finishes (RAW, BRW by default) can be produced."""
    return rules.is_production_eligible(sku)
