"""
Entity models loaded from the operational snapshot.
File: src/delivery_insights/models/entities.py

Entities are frozen: a pipeline run reads them, never edits them. Status
changes produce a new Order via `Order.with_status`.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, FrozenSet, Optional

import pandas as pd

from ..errors import InvalidOrderRecord, InvalidStatusTransition
from ..temporal import normalize_span


class EntityKind(Enum):
    """The four entity streams of a snapshot."""
    ORDER = "order"
    TRAFFIC = "traffic"
    DRIVER = "driver"
    RESTAURANT = "restaurant"


class OrderStatus(Enum):
    """Lifecycle states for an order."""
    PENDING = "pending"        # Received, not yet confirmed
    PLACED = "placed"          # Confirmed with the restaurant
    IN_TRANSIT = "in_transit"  # Picked up by a driver
    DELIVERED = "delivered"    # Handed to the customer
    CANCELLED = "cancelled"    # Terminal, never delivered

    @classmethod
    def parse(cls, raw) -> "OrderStatus":
        """Accept enum members or loose strings such as 'In Transit'."""
        if isinstance(raw, cls):
            return raw
        text = str(raw).strip().lower().replace("-", "_").replace(" ", "_")
        if text == "canceled":
            text = "cancelled"
        try:
            return cls(text)
        except ValueError:
            raise InvalidOrderRecord(f"Unknown order status: {raw!r}") from None

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)

    def can_transition_to(self, target: "OrderStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PLACED, OrderStatus.CANCELLED}),
    OrderStatus.PLACED: frozenset({OrderStatus.IN_TRANSIT, OrderStatus.CANCELLED}),
    OrderStatus.IN_TRANSIT: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class Order:
    """
    A customer order.

    Attributes:
        order_id: Primary key
        restaurant_id / location_id: Mandatory foreign keys
        driver_id: Assigned driver, None until dispatched
        distance_km: Restaurant-to-customer distance
        delivery_duration: Duration as recorded upstream (unit as exported)
        delivery_timestamp: Set once delivered
    """
    order_id: int
    customer_id: int
    delivery_address: str
    latitude: float
    longitude: float
    order_timestamp: pd.Timestamp
    status: OrderStatus
    restaurant_id: int
    location_id: int
    distance_km: float
    driver_id: Optional[int] = None
    delivery_duration: Optional[float] = None
    delivery_timestamp: Optional[pd.Timestamp] = None

    def __post_init__(self):
        if self.status is OrderStatus.DELIVERED:
            if self.delivery_timestamp is None:
                raise InvalidOrderRecord(
                    f"Order {self.order_id} is delivered but has no delivery timestamp"
                )
            if self.delivery_timestamp < self.order_timestamp:
                raise InvalidOrderRecord(
                    f"Order {self.order_id} delivered at {self.delivery_timestamp} "
                    f"before it was placed at {self.order_timestamp}"
                )

    @property
    def is_delivered(self) -> bool:
        return self.status is OrderStatus.DELIVERED

    @property
    def is_dispatched(self) -> bool:
        return self.driver_id is not None

    def with_status(
        self,
        status: OrderStatus,
        delivered_at: Optional[pd.Timestamp] = None,
    ) -> "Order":
        """Return a copy moved forward to `status`."""
        if not self.status.can_transition_to(status):
            raise InvalidStatusTransition(
                f"Order {self.order_id}: {self.status.value} -> {status.value} is not allowed"
            )
        if status is OrderStatus.DELIVERED:
            return replace(self, status=status, delivery_timestamp=delivered_at)
        return replace(self, status=status)

    def __repr__(self) -> str:
        return f"Order({self.order_id}, {self.status.value})"


@dataclass(frozen=True)
class TrafficSample:
    """Traffic density observed at a named location."""
    location_id: int
    location_name: str
    traffic_density: float


@dataclass(frozen=True)
class Driver:
    """A driver and the shift they are rostered on."""
    driver_id: int
    name: str
    shift_id: int
    shift_start: pd.Timestamp
    shift_end: pd.Timestamp

    def __post_init__(self):
        # raises InvalidShiftWindow when end precedes start by more than a day
        normalize_span(self.shift_start, self.shift_end)

    @property
    def shift_span(self) -> pd.Timedelta:
        """Shift duration, midnight crossings included."""
        return normalize_span(self.shift_start, self.shift_end)

    def __repr__(self) -> str:
        return f"Driver({self.driver_id}, shift={self.shift_id})"


@dataclass(frozen=True)
class Restaurant:
    restaurant_id: int
    name: str
    address: str
