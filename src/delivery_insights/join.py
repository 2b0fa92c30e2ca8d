"""
Join engine: resolves each order's restaurant, traffic location and driver.

Restaurant and traffic location are inner joins; an order missing either
becomes a JoinFailure instead of raising, so one bad order never blocks the
rest of the batch. The driver is a left join: unassigned or unknown drivers
simply leave `EnrichedOrder.driver` empty.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple, Union

from .models import EnrichedOrder, EntityKind, JoinFailure, Order
from .store import EntityStore
from .utils import parallel_map, partition_by_key

logger = logging.getLogger(__name__)

JoinOutcome = Union[EnrichedOrder, JoinFailure]


@dataclass
class JoinResult:
    """Outcome of enriching one batch of orders."""
    records: List[JoinOutcome] = field(default_factory=list)
    unmatched_driver_count: int = 0

    @property
    def enriched(self) -> List[EnrichedOrder]:
        return [r for r in self.records if isinstance(r, EnrichedOrder)]

    @property
    def failures(self) -> List[JoinFailure]:
        return [r for r in self.records if isinstance(r, JoinFailure)]

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def failed_order_ids(self) -> List[int]:
        return [f.order_id for f in self.failures]


class JoinEngine:
    """Enriches orders against the tables of an EntityStore."""

    def __init__(self, store: EntityStore):
        self.store = store
        self._restaurants = store.table(EntityKind.RESTAURANT)
        self._traffic = store.table(EntityKind.TRAFFIC)
        self._drivers = store.table(EntityKind.DRIVER)

    def enrich_one(self, order: Order) -> Tuple[JoinOutcome, bool]:
        """Join a single order. The flag is True when an assigned driver id matched nothing."""
        restaurant = self._restaurants.get(order.restaurant_id)
        traffic = self._traffic.get(order.location_id)

        missing = []
        if restaurant is None:
            missing.append(EntityKind.RESTAURANT)
        if traffic is None:
            missing.append(EntityKind.TRAFFIC)
        if missing:
            return JoinFailure(order.order_id, tuple(missing)), False

        driver = self._drivers.get(order.driver_id)
        dangling_driver = order.driver_id is not None and driver is None
        return EnrichedOrder(order, restaurant, traffic, driver), dangling_driver

    def _enrich_partition(self, orders: List[Order]) -> JoinResult:
        result = JoinResult()
        for order in orders:
            outcome, dangling_driver = self.enrich_one(order)
            result.records.append(outcome)
            result.unmatched_driver_count += int(dangling_driver)
        return result

    def enrich(
        self,
        orders: Optional[Iterable[Order]] = None,
        partitions: int = 1,
        max_workers: Optional[int] = None,
    ) -> JoinResult:
        """
        Enrich `orders` (default: every stored order).

        Orders are partitioned by id and joined independently; the merged
        records are returned in ascending order-id order.
        """
        if orders is None:
            orders = self.store.scan(EntityKind.ORDER)

        chunks = partition_by_key(orders, lambda o: o.order_id, partitions)
        partials = parallel_map(self._enrich_partition, chunks, max_workers)

        merged = JoinResult()
        for partial in partials:
            merged.records.extend(partial.records)
            merged.unmatched_driver_count += partial.unmatched_driver_count
        merged.records.sort(key=lambda r: r.order_id)

        logger.info(
            "Joined %d orders: %d enriched, %d join failures, %d unknown drivers",
            len(merged.records), len(merged.records) - merged.failure_count,
            merged.failure_count, merged.unmatched_driver_count,
        )
        for failure in merged.failures:
            logger.debug("Join failure for order %s: missing %s", failure.order_id,
                         [k.value for k in failure.missing_kinds])
        return merged
