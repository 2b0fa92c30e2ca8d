"""
Insight Report
==============

The pipeline's output contract: a mapping from insight name to an ordered
list of AggregateResult rows, plus the manifest of every record that was
excluded along the way and the reason.

The default insight set answers the questions the delivery dashboard asks:
1. When are orders placed (peak hours and days)?
2. How long do deliveries take, per restaurant, per driver, per traffic level?
3. Which restaurants and drivers carry the most volume?
4. Which drivers work the longest shifts (attrition signal)?
5. How strongly does traffic density track delivery duration?
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

from . import schema as S
from .aggregation import aggregate, build_fact_frame
from .config import InsightConfig
from .errors import AggregationError
from .models import AggregateResult, OrderFacts, SkippedRecord

logger = logging.getLogger(__name__)

MANIFEST_COLUMNS = ["entity", "key", "stage", "reason", "detail"]


@dataclass(frozen=True)
class InsightSpec:
    """One named aggregation request."""
    name: str
    metric: Union[str, Tuple[str, str]]
    op: str
    group_by: Optional[str] = None
    rank_by: Optional[str] = None


DEFAULT_INSIGHTS: Tuple[InsightSpec, ...] = (
    # demand
    InsightSpec("orders_by_hour", S.ORDER_ID, "count", "hour_of_day"),
    InsightSpec("orders_by_day_of_week", S.ORDER_ID, "count", "day_of_week"),
    InsightSpec("peak_hours", S.ORDER_ID, "top_n", "hour_of_day"),
    InsightSpec("peak_days", S.ORDER_ID, "top_n", "day_of_week"),
    # delivery time
    InsightSpec("delivery_duration_summary", S.DELIVERY_HOURS, "summary"),
    InsightSpec("avg_delivery_by_restaurant", S.DELIVERY_HOURS, "mean", "restaurant"),
    InsightSpec("avg_delivery_by_driver", S.DELIVERY_HOURS, "mean", "driver"),
    InsightSpec("delivery_by_traffic_bucket", S.DELIVERY_HOURS, "summary", "traffic_bucket"),
    InsightSpec("travel_time_by_traffic_bucket", S.TRAVEL_TIME, "mean", "traffic_bucket"),
    # volume rankings
    InsightSpec("top_restaurants_by_orders", S.ORDER_ID, "top_n", "restaurant"),
    InsightSpec("top_drivers_by_deliveries", S.DELIVERY_HOURS, "top_n", "driver", rank_by=S.COUNT),
    # driver attrition
    InsightSpec("avg_shift_length_by_driver", S.SHIFT_HOURS, "mean", "driver"),
    InsightSpec("longest_shift_drivers", S.SHIFT_HOURS, "top_n", "driver", rank_by=S.MAX),
    # traffic
    InsightSpec("traffic_delivery_correlation", (S.TRAFFIC_DENSITY, S.DELIVERY_HOURS), "correlation"),
)


@dataclass
class InsightReport:
    """Named tabular results of one run, with the data-quality manifest."""
    insights: Dict[str, List[AggregateResult]] = field(default_factory=dict)
    manifest: List[SkippedRecord] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)
    order_count: int = 0

    def __contains__(self, name: str) -> bool:
        return name in self.insights

    def rows(self, name: str) -> List[Dict[str, Any]]:
        return [result.to_row() for result in self.insights[name]]

    def to_frames(self) -> Dict[str, pd.DataFrame]:
        return {name: pd.DataFrame(self.rows(name)) for name in self.insights}

    def manifest_frame(self) -> pd.DataFrame:
        return pd.DataFrame([m.to_row() for m in self.manifest], columns=MANIFEST_COLUMNS)

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data form for export."""
        return {
            'order_count': self.order_count,
            'insights': {name: self.rows(name) for name in self.insights},
            'errors': dict(self.errors),
            'manifest': [m.to_row() for m in self.manifest],
        }

    def print_summary(self) -> None:
        """Print a formatted summary of the report."""
        print("\n" + "=" * 60)
        print("DELIVERY INSIGHT REPORT")
        print("=" * 60)
        print(f"\n📦 Orders analysed: {self.order_count}")
        print(f"🧾 Records excluded: {len(self.manifest)}")

        for name, results in self.insights.items():
            print(f"\n📊 {name}")
            for result in results:
                cells = ", ".join(
                    f"{k}={v:.3f}" if isinstance(v, float) else f"{k}={v}"
                    for k, v in result.to_row().items()
                )
                print(f"  • {cells}")

        if self.errors:
            print("\n⚠️  SKIPPED INSIGHTS")
            for name, reason in self.errors.items():
                print(f"  • {name}: {reason}")


def build_report(
    records: Union[pd.DataFrame, Iterable[OrderFacts]],
    config: Optional[InsightConfig] = None,
    insights: Sequence[InsightSpec] = DEFAULT_INSIGHTS,
    manifest: Iterable[SkippedRecord] = (),
) -> InsightReport:
    """
    Run every insight request over the same fact frame.

    A request that fails with an AggregationError (empty domain, unknown
    dimension, too few points to correlate) is listed in `errors`; the other
    insights are still computed.
    """
    config = config or InsightConfig()
    frame = records if isinstance(records, pd.DataFrame) else build_fact_frame(records)
    report = InsightReport(manifest=list(manifest), order_count=len(frame))

    for spec in insights:
        try:
            report.insights[spec.name] = aggregate(
                frame,
                spec.group_by,
                spec.metric,
                spec.op,
                buckets=config.traffic_bucket_boundaries,
                top_n=config.top_n,
                rank_by=spec.rank_by,
                partitions=config.partitions,
                max_workers=config.max_workers,
                name=spec.name,
            )
        except AggregationError as exc:
            report.errors[spec.name] = f"{exc.kind.value}: {exc}"
            logger.warning("Insight %s skipped: %s", spec.name, exc)

    logger.info("Built %d insights (%d skipped)", len(report.insights), len(report.errors))
    return report
