"""
Models package initialization.
File: src/delivery_insights/models/__init__.py

Imports all model classes for easy access:
from delivery_insights.models import Order, Driver, EnrichedOrder
"""

from .entities import (
    EntityKind,
    OrderStatus,
    Order,
    TrafficSample,
    Driver,
    Restaurant,
)

from .derived import (
    SkippedRecord,
    EnrichedOrder,
    JoinFailure,
    DerivedMetrics,
    OrderFacts,
    AggregateResult,
)

__all__ = [
    # Entities
    'EntityKind',
    'OrderStatus',
    'Order',
    'TrafficSample',
    'Driver',
    'Restaurant',

    # Derived records
    'SkippedRecord',
    'EnrichedOrder',
    'JoinFailure',
    'DerivedMetrics',
    'OrderFacts',
    'AggregateResult',
]
