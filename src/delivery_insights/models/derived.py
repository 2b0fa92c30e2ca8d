"""
Records derived during a pipeline run.
File: src/delivery_insights/models/derived.py

None of these are persisted; every run rebuilds them from the snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np

from .. import schema as S
from ..errors import ErrorKind
from ..temporal import day_of_week, hour_of_day
from .entities import Driver, EntityKind, Order, Restaurant, TrafficSample


@dataclass(frozen=True)
class SkippedRecord:
    """One manifest entry: a record excluded from the run and why."""
    kind: EntityKind
    key: Optional[int]
    stage: str          # 'load', 'join' or 'derive'
    reason: ErrorKind
    detail: str = ""

    def to_row(self) -> Dict[str, Any]:
        return {
            "entity": self.kind.value,
            "key": self.key,
            "stage": self.stage,
            "reason": self.reason.value,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class EnrichedOrder:
    """An order joined with its restaurant, traffic sample and (maybe) driver."""
    order: Order
    restaurant: Restaurant
    traffic: TrafficSample
    driver: Optional[Driver] = None

    @property
    def order_id(self) -> int:
        return self.order.order_id


@dataclass(frozen=True)
class JoinFailure:
    """An order dropped from enrichment because a mandatory match is missing."""
    order_id: int
    missing_kinds: Tuple[EntityKind, ...]

    @property
    def missing_kind(self) -> EntityKind:
        return self.missing_kinds[0]

    def to_skipped(self) -> SkippedRecord:
        missing = ", ".join(k.value for k in self.missing_kinds)
        return SkippedRecord(
            kind=EntityKind.ORDER,
            key=self.order_id,
            stage="join",
            reason=ErrorKind.JOIN_FAILURE,
            detail=f"no matching {missing}",
        )

    def __repr__(self) -> str:
        return f"JoinFailure({self.order_id}, missing={[k.value for k in self.missing_kinds]})"


@dataclass(frozen=True)
class DerivedMetrics:
    """
    Per-order derived values.

    `delivery_duration_hr` is None unless the order was delivered, and
    `shift_length_hr` is None unless a driver was joined; aggregates skip
    absent values instead of treating them as zero.
    """
    order_id: int
    estimated_travel_time_min: int
    delivery_duration_hr: Optional[float] = None
    shift_length_hr: Optional[float] = None

    @property
    def has_delivery_duration(self) -> bool:
        return self.delivery_duration_hr is not None


@dataclass(frozen=True)
class OrderFacts:
    """An enriched order paired with its derived metrics."""
    enriched: EnrichedOrder
    metrics: DerivedMetrics

    @property
    def order_id(self) -> int:
        return self.enriched.order_id

    def to_row(self) -> Dict[str, Any]:
        """Flatten into one fact-frame row; absent values become NaN."""
        order = self.enriched.order
        ts = order.order_timestamp
        return {
            S.ORDER_ID: order.order_id,
            S.RESTAURANT_ID: order.restaurant_id,
            S.DRIVER_ID: self.enriched.driver.driver_id if self.enriched.driver else None,
            S.LOCATION_ID: order.location_id,
            S.STATUS: order.status.value,
            S.ORDER_TS: ts,
            S.HOUR_OF_DAY: hour_of_day(ts),
            S.DAY_OF_WEEK: day_of_week(ts),
            S.DISTANCE_KM: order.distance_km,
            S.TRAFFIC_DENSITY: self.enriched.traffic.traffic_density,
            S.TRAVEL_TIME: self.metrics.estimated_travel_time_min,
            S.DELIVERY_HOURS: _or_nan(self.metrics.delivery_duration_hr),
            S.SHIFT_HOURS: _or_nan(self.metrics.shift_length_hr),
        }


def _or_nan(value: Optional[float]) -> float:
    return np.nan if value is None else value


@dataclass(frozen=True)
class AggregateResult:
    """One output row of an aggregation: grouping key plus summaries."""
    metric: str
    key: Dict[str, Any] = field(default_factory=dict)
    summaries: Dict[str, float] = field(default_factory=dict)

    def to_row(self) -> Dict[str, Any]:
        return {**self.key, **self.summaries}

    def __getitem__(self, name: str) -> Any:
        row = self.to_row()
        return row[name]
