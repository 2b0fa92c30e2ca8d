# delivery_insights/__init__.py

from .models import (
    EntityKind,
    OrderStatus,
    Order,
    TrafficSample,
    Driver,
    Restaurant,
    EnrichedOrder,
    JoinFailure,
    DerivedMetrics,
    OrderFacts,
    AggregateResult,
    SkippedRecord,
)
from .config import InsightConfig
from .temporal import normalize_timestamp, to_canonical
from .store import EntityStore, EntityTable
from .join import JoinEngine, JoinResult
from .metrics import compute, derive_all, estimated_travel_time
from .aggregation import AggregateOp, GroupDimension, aggregate, build_fact_frame
from .report import DEFAULT_INSIGHTS, InsightReport, InsightSpec, build_report
from .pipeline import run_pipeline

__version__ = "0.1.0"

__all__ = [
    # Models
    "EntityKind",
    "OrderStatus",
    "Order",
    "TrafficSample",
    "Driver",
    "Restaurant",
    "EnrichedOrder",
    "JoinFailure",
    "DerivedMetrics",
    "OrderFacts",
    "AggregateResult",
    "SkippedRecord",
    # Core
    "EntityStore",
    "EntityTable",
    "JoinEngine",
    "JoinResult",
    "GroupDimension",
    "AggregateOp",
    "InsightReport",
    "InsightSpec",
    # Functions
    "normalize_timestamp",
    "to_canonical",
    "compute",
    "derive_all",
    "estimated_travel_time",
    "aggregate",
    "build_fact_frame",
    "build_report",
    "run_pipeline",
    # Config
    "InsightConfig",
    "DEFAULT_INSIGHTS",
]
