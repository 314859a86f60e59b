"""
Config -> Kernel Bridges.

Functions that convert a FulfillmentConfig into kernel-compatible inputs.
These live in fulfillment_config (the producer) because the kernel must
never import fulfillment_config.

Usage:
    from fulfillment_config import get_active_config
    from fulfillment_config.bridges import build_kernel_services

    config = get_active_config()
    services = build_kernel_services(session, config)
    services.fulfillment.fulfill("ST-32-X-32-IND", "order-1")
"""

from __future__ import annotations

import functools
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from fulfillment_config.schema import FulfillmentConfig
from fulfillment_kernel.db.engine import build_engine, run_in_transaction
from fulfillment_kernel.domain.capacity import CapacityThresholds
from fulfillment_kernel.domain.clock import Clock, SystemClock
from fulfillment_kernel.domain.identifiers import IdentifierIssuer, IdentifierPolicy
from fulfillment_kernel.domain.sku import SkuRules
from fulfillment_kernel.logging_config import configure_logging
from fulfillment_kernel.services import (
    CapacityLedger,
    DatabaseEventSink,
    EventSink,
    FulfillmentService,
    InventoryItemService,
    ProductionService,
    RequestService,
    WaitlistService,
)
from fulfillment_labels.layout import LabelGeometry
from fulfillment_labels.renderer import LabelSheetRenderer

T = TypeVar("T")


def build_sku_rules(config: FulfillmentConfig) -> SkuRules:
    sku = config.sku
    return SkuRules.from_mappings(
        production_finishes=sku.production_finishes,
        finish_compatibility=sku.finish_compatibility,
        universal_finishes=sku.universal_finishes,
        universal_length=sku.universal_length,
        default_universal_finish=sku.default_universal_finish,
    )


def build_identifier_policy(config: FulfillmentConfig) -> IdentifierPolicy:
    ids = config.identifiers
    return IdentifierPolicy(
        alphabet=ids.alphabet,
        item_prefix=ids.item_prefix,
        item_length=ids.item_length,
        batch_prefix=ids.batch_prefix,
        batch_length=ids.batch_length,
        retry_multiplier=ids.retry_multiplier,
        min_attempts=ids.min_attempts,
        max_attempts=ids.max_attempts,
    )


def build_capacity_thresholds(config: FulfillmentConfig) -> CapacityThresholds:
    return CapacityThresholds(
        near_capacity=config.capacity.near_capacity_threshold,
        critical=config.capacity.critical_threshold,
    )


def build_label_renderer(config: FulfillmentConfig) -> LabelSheetRenderer:
    labels = config.labels
    geometry = LabelGeometry.from_inches(
        page_width=labels.page_width_in,
        page_height=labels.page_height_in,
        label_width=labels.label_width_in,
        label_height=labels.label_height_in,
        margin=labels.margin_in,
        qr_size=labels.qr_size_in,
        font_name=labels.font_name,
        font_size=labels.font_size,
    )
    return LabelSheetRenderer(geometry)


def build_engine_from_config(config: FulfillmentConfig) -> Engine:
    return build_engine(config.database.url, echo=config.database.echo)


def configure_logging_from_config(config: FulfillmentConfig) -> None:
    configure_logging(level=config.logging.level)


def build_transaction_runner(
    config: FulfillmentConfig,
    session_factory: sessionmaker[Session],
) -> Callable[[Callable[[Session], T]], T]:
    """
    ``run_in_transaction`` bound to a session factory and the configured
    retry budget.

    Usage:
        run = build_transaction_runner(config, sessionmaker(bind=engine))
        result = run(lambda s: build_kernel_services(s, config).fulfillment.fulfill(...))
    """
    return functools.partial(
        run_in_transaction,
        session_factory=session_factory,
        max_attempts=config.repository.max_attempts,
        backoff_seconds=config.repository.backoff_seconds,
    )


@dataclass(frozen=True)
class KernelServices:
    """One session's worth of services sharing a clock, sink and issuer."""

    requests: RequestService
    items: InventoryItemService
    bins: CapacityLedger
    production: ProductionService
    waitlist: WaitlistService
    fulfillment: FulfillmentService


def build_kernel_services(
    session: Session,
    config: FulfillmentConfig,
    clock: Clock | None = None,
    event_sink: EventSink | None = None,
    rng: random.Random | None = None,
) -> KernelServices:
    """Wire every kernel service for ``session`` from ``config``."""
    clock = clock or SystemClock()
    sink = event_sink or DatabaseEventSink(session, clock)
    rules = build_sku_rules(config)
    issuer = IdentifierIssuer(build_identifier_policy(config), rng=rng)

    requests = RequestService(session, clock, sink)
    items = InventoryItemService(session, clock, sink, issuer=issuer, requests=requests)
    bins = CapacityLedger(
        session,
        clock,
        sink,
        issuer=issuer,
        thresholds=build_capacity_thresholds(config),
        bin_id_attempts=config.identifiers.bin_id_attempts,
    )
    production = ProductionService(
        session,
        clock,
        sink,
        issuer=issuer,
        rules=rules,
        label_renderer=build_label_renderer(config),
        batch_id_attempts=config.identifiers.batch_id_attempts,
    )
    waitlist = WaitlistService(session, clock, sink, items=items, rules=rules)
    fulfillment = FulfillmentService(
        session,
        clock,
        sink,
        items=items,
        production=production,
        waitlist=waitlist,
        rules=rules,
    )
    return KernelServices(
        requests=requests,
        items=items,
        bins=bins,
        production=production,
        waitlist=waitlist,
        fulfillment=fulfillment,
    )
