"""
Aggregation engine.

Groups order facts by a dimension and reduces one metric per group, with
relational GROUP BY semantics:

* one result row per key present in the input; a key with no records (say,
  no orders on a Wednesday) produces no row at all, never a zero row;
* absent metric values (undelivered orders have no delivery duration) are
  excluded before grouping, and a request left with no values at all raises
  EmptyAggregateDomain;
* rows come back in ascending key order (Monday..Sunday, 0..23, ascending
  ids, ascending traffic bucket).

Work is split into order-id partitions; each partition reduces into its own
accumulators and the partials are merged once every partition is done.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from . import schema as S
from .config import DEFAULT_TOP_N, DEFAULT_TRAFFIC_BUCKETS
from .errors import (
    EmptyAggregateDomain,
    InvalidConfiguration,
    InsufficientSample,
    UndefinedCorrelation,
    UnknownGroupDimension,
    UnknownMetric,
    UnknownOperation,
)
from .models import AggregateResult, OrderFacts
from .temporal import day_name
from .utils import CorrelationAccumulator, Summary, parallel_map, top_n as select_top_n

logger = logging.getLogger(__name__)

GROUP_KEY = "_group_key"

FACT_COLUMNS = [
    S.ORDER_ID,
    S.RESTAURANT_ID,
    S.DRIVER_ID,
    S.LOCATION_ID,
    S.STATUS,
    S.ORDER_TS,
    S.HOUR_OF_DAY,
    S.DAY_OF_WEEK,
    S.DISTANCE_KM,
    S.TRAFFIC_DENSITY,
    S.TRAVEL_TIME,
    S.DELIVERY_HOURS,
    S.SHIFT_HOURS,
]


class GroupDimension(Enum):
    """Dimensions an aggregation can be grouped by."""
    HOUR_OF_DAY = "hour_of_day"
    DAY_OF_WEEK = "day_of_week"
    RESTAURANT = "restaurant"
    DRIVER = "driver"
    TRAFFIC_BUCKET = "traffic_bucket"

    @classmethod
    def parse(cls, raw) -> "GroupDimension":
        if isinstance(raw, cls):
            return raw
        text = str(raw).strip().lower()
        text = _DIMENSION_ALIASES.get(text, text)
        try:
            return cls(text)
        except ValueError:
            raise UnknownGroupDimension(
                f"Unknown group-by dimension {raw!r}; expected one of {[d.value for d in cls]}"
            ) from None

    @property
    def column(self) -> str:
        """Fact-frame column the key is read from."""
        return _DIMENSION_COLUMNS[self]


_DIMENSION_ALIASES = {
    "hour": "hour_of_day",
    "day": "day_of_week",
    "weekday": "day_of_week",
    S.RESTAURANT_ID: "restaurant",
    S.DRIVER_ID: "driver",
    "traffic": "traffic_bucket",
}

_DIMENSION_COLUMNS = {
    GroupDimension.HOUR_OF_DAY: S.HOUR_OF_DAY,
    GroupDimension.DAY_OF_WEEK: S.DAY_OF_WEEK,
    GroupDimension.RESTAURANT: S.RESTAURANT_ID,
    GroupDimension.DRIVER: S.DRIVER_ID,
    GroupDimension.TRAFFIC_BUCKET: S.TRAFFIC_DENSITY,
}


class AggregateOp(Enum):
    COUNT = "count"
    MEAN = "mean"
    MIN = "min"
    MAX = "max"
    SUMMARY = "summary"          # count, mean, min and max in one row
    TOP_N = "top_n"
    CORRELATION = "correlation"

    @classmethod
    def parse(cls, raw) -> "AggregateOp":
        if isinstance(raw, cls):
            return raw
        text = str(raw).strip().lower().replace("-", "_")
        if text in ("avg", "average"):
            text = "mean"
        try:
            return cls(text)
        except ValueError:
            raise UnknownOperation(
                f"Unknown aggregate operation {raw!r}; expected one of {[o.value for o in cls]}"
            ) from None


RANKABLE_STATS = (S.COUNT, S.MEAN, S.MIN, S.MAX)

FactsInput = Union[pd.DataFrame, Iterable[OrderFacts]]


# ------------------------------------------------------------------ fact frame

def build_fact_frame(records: Iterable[OrderFacts]) -> pd.DataFrame:
    """One row per OrderFacts; absent values are NaN / <NA>."""
    frame = pd.DataFrame([r.to_row() for r in records], columns=FACT_COLUMNS)
    frame[S.DRIVER_ID] = frame[S.DRIVER_ID].astype("Int64")
    for column in (S.DISTANCE_KM, S.TRAFFIC_DENSITY, S.DELIVERY_HOURS, S.SHIFT_HOURS):
        frame[column] = frame[column].astype(float)
    return frame


def _as_frame(records: FactsInput) -> pd.DataFrame:
    if isinstance(records, pd.DataFrame):
        return records
    return build_fact_frame(records)


# ------------------------------------------------------------------ traffic buckets

def assign_traffic_buckets(densities: pd.Series, boundaries: Sequence[float]) -> pd.Series:
    """
    Bucket index per density. Buckets are [b_i, b_i+1) with the last one
    open-ended; densities below the first boundary get NaN.
    """
    edges = [float(b) for b in boundaries] + [np.inf]
    return pd.cut(densities, bins=edges, right=False, labels=False)


def bucket_label(index: int, boundaries: Sequence[float]) -> str:
    lower = boundaries[index]
    if index + 1 < len(boundaries):
        return f"[{lower:g}, {boundaries[index + 1]:g})"
    return f"[{lower:g}, inf)"


# ------------------------------------------------------------------ grouping helpers

def _keyed_frame(
    frame: pd.DataFrame,
    dimension: Optional[GroupDimension],
    buckets: Sequence[float],
) -> pd.DataFrame:
    """Attach the integer group key; rows without a key are dropped."""
    if dimension is None:
        return frame.assign(**{GROUP_KEY: 0})
    if dimension is GroupDimension.TRAFFIC_BUCKET:
        keys = assign_traffic_buckets(frame[S.TRAFFIC_DENSITY], buckets)
    else:
        keys = frame[dimension.column]
    keyed = frame.assign(**{GROUP_KEY: keys}).dropna(subset=[GROUP_KEY])
    return keyed.assign(**{GROUP_KEY: keyed[GROUP_KEY].astype("int64")})


def _key_fields(dimension: Optional[GroupDimension], key: int, buckets: Sequence[float]) -> Dict[str, Any]:
    if dimension is None:
        return {}
    if dimension is GroupDimension.DAY_OF_WEEK:
        return {S.DAY_OF_WEEK: day_name(key)}
    if dimension is GroupDimension.TRAFFIC_BUCKET:
        return {S.TRAFFIC_BUCKET: bucket_label(key, buckets)}
    return {dimension.column: int(key)}


def _check_metric(metric) -> str:
    if metric not in S.METRIC_COLUMNS:
        raise UnknownMetric(f"Unknown metric {metric!r}; expected one of {list(S.METRIC_COLUMNS)}")
    return metric


def _metric_pair(metric) -> Tuple[str, str]:
    if not isinstance(metric, (tuple, list)) or len(metric) != 2:
        raise UnknownMetric(f"correlation needs a pair of metrics, got {metric!r}")
    return _check_metric(metric[0]), _check_metric(metric[1])


def _split(frame: pd.DataFrame, partitions: int) -> List[pd.DataFrame]:
    if partitions <= 1:
        return [frame]
    codes = frame[S.ORDER_ID] % partitions
    return [frame[codes == p] for p in range(partitions)]


def _stat(summary: Summary, name: str) -> float:
    if name == S.COUNT:
        return summary.count
    return getattr(summary, name)


# ------------------------------------------------------------------ partials

def summarize_groups(
    records: FactsInput,
    group_by,
    metric: str,
    buckets: Optional[Sequence[float]] = None,
) -> Dict[int, Summary]:
    """
    Partial per-group summaries for one partition of the input.

    Unlike `aggregate`, an empty partition is fine and yields `{}`; combine
    partials with `merge_group_summaries`.
    """
    dimension = None if group_by is None else GroupDimension.parse(group_by)
    metric = _check_metric(metric)
    buckets = tuple(buckets) if buckets is not None else DEFAULT_TRAFFIC_BUCKETS

    keyed = _keyed_frame(_as_frame(records), dimension, buckets)
    domain = keyed.dropna(subset=[metric]).sort_values(S.ORDER_ID, kind="mergesort")
    return _summaries_of(domain, metric)


def _summaries_of(domain: pd.DataFrame, metric: str) -> Dict[int, Summary]:
    return {
        int(key): Summary.of(values.to_numpy())
        for key, values in domain.groupby(GROUP_KEY)[metric]
    }


def merge_group_summaries(partials: Iterable[Dict[int, Summary]]) -> Dict[int, Summary]:
    """Combine per-partition summaries into one summary per group key."""
    merged: Dict[int, Summary] = {}
    for partial in partials:
        for key, summary in partial.items():
            merged[key] = merged[key].merge(summary) if key in merged else summary
    return dict(sorted(merged.items()))


def _correlations_of(domain: pd.DataFrame, x: str, y: str) -> Dict[int, CorrelationAccumulator]:
    return {
        int(key): CorrelationAccumulator.of(group[x].to_numpy(), group[y].to_numpy())
        for key, group in domain.groupby(GROUP_KEY)
    }


def _merge_correlations(partials: Iterable[Dict[int, CorrelationAccumulator]]) -> Dict[int, CorrelationAccumulator]:
    merged: Dict[int, CorrelationAccumulator] = {}
    for partial in partials:
        for key, acc in partial.items():
            merged[key] = merged[key].merge(acc) if key in merged else acc
    return dict(sorted(merged.items()))


def _correlation_rows(
    label: str,
    accumulators: Dict[int, CorrelationAccumulator],
    dimension: Optional[GroupDimension],
    buckets: Sequence[float],
) -> List[AggregateResult]:
    """
    One row per group with a defined coefficient. Groups with fewer than two
    points or a constant series are left out; if no group is left, the first
    group's error is raised.
    """
    rows = []
    failures = []
    for key, acc in accumulators.items():
        try:
            coefficient = acc.coefficient()
        except (InsufficientSample, UndefinedCorrelation) as exc:
            failures.append(exc)
            logger.debug("%s: group %s left out: %s", label, key, exc)
            continue
        rows.append(AggregateResult(label, _key_fields(dimension, key, buckets),
                                    {S.COUNT: acc.n, S.CORRELATION: coefficient}))
    if not rows:
        raise failures[0]
    return rows


# ------------------------------------------------------------------ api

def aggregate(
    records: FactsInput,
    group_by,
    metric,
    op,
    *,
    buckets: Optional[Sequence[float]] = None,
    top_n: int = DEFAULT_TOP_N,
    rank_by: Optional[str] = None,
    partitions: int = 1,
    max_workers: Optional[int] = None,
    name: Optional[str] = None,
) -> List[AggregateResult]:
    """
    Group `records` by `group_by` and reduce `metric` with `op`.

    Parameters
    ----------
    records : DataFrame or iterable of OrderFacts
        Either a fact frame from `build_fact_frame` or the facts themselves.
    group_by : GroupDimension, str or None
        None aggregates the whole input as a single group.
    metric : str, or a pair of str for correlation
        One of `schema.METRIC_COLUMNS`.
    op : AggregateOp or str
        count, mean, min, max, summary, top_n or correlation.
    buckets : sequence of float
        Traffic bucket boundaries for the traffic_bucket dimension.
    top_n, rank_by :
        Cut-off and statistic for top_n. Groups are ranked descending by
        `rank_by` (count for order_id, mean otherwise); ties go to the
        smaller key.
    partitions : int
        Number of order-id partitions reduced separately, then merged.
    name : str
        Name stamped on each AggregateResult; defaults to "<op>_<metric>".

    Raises
    ------
    UnknownGroupDimension, UnknownMetric, UnknownOperation
        For requests that name something unsupported.
    EmptyAggregateDomain
        When no values are left to aggregate.
    InsufficientSample, UndefinedCorrelation
        When no group has two or more points with a non-constant series.
        Groups that fail alone are left out of the result.
    """
    operation = AggregateOp.parse(op)
    dimension = None if group_by is None else GroupDimension.parse(group_by)
    buckets = tuple(buckets) if buckets is not None else DEFAULT_TRAFFIC_BUCKETS
    if top_n < 1:
        raise InvalidConfiguration(f"top_n must be >= 1, got {top_n}")

    frame = _as_frame(records).sort_values(S.ORDER_ID, kind="mergesort")
    keyed = _keyed_frame(frame, dimension, buckets)
    scope = f" by {dimension.value}" if dimension else ""

    if operation is AggregateOp.CORRELATION:
        x, y = _metric_pair(metric)
        domain = keyed.dropna(subset=[x, y])
        if domain.empty:
            raise EmptyAggregateDomain(f"no aligned {x}/{y} values to correlate{scope}")
        partials = parallel_map(lambda chunk: _correlations_of(chunk, x, y), _split(domain, partitions), max_workers)
        label = name or f"correlation_{x}_{y}"
        return _correlation_rows(label, _merge_correlations(partials), dimension, buckets)

    metric = _check_metric(metric)
    domain = keyed.dropna(subset=[metric])
    if domain.empty:
        raise EmptyAggregateDomain(f"no {metric} values to aggregate{scope}")

    partials = parallel_map(lambda chunk: _summaries_of(chunk, metric), _split(domain, partitions), max_workers)
    summaries = merge_group_summaries(partials)
    label = name or f"{operation.value}_{metric}"
    logger.debug("%s: %d groups from %d values", label, len(summaries), len(domain))

    if operation is AggregateOp.TOP_N:
        stat = rank_by or (S.COUNT if metric == S.ORDER_ID else S.MEAN)
        if stat not in RANKABLE_STATS:
            raise UnknownOperation(f"Cannot rank by {stat!r}; expected one of {list(RANKABLE_STATS)}")
        ranked = select_top_n(((key, _stat(s, stat)) for key, s in summaries.items()), top_n)
        return [
            AggregateResult(label, _key_fields(dimension, key, buckets), {stat: value, S.RANK: rank})
            for rank, (key, value) in enumerate(ranked, start=1)
        ]

    if operation is AggregateOp.SUMMARY:
        names = RANKABLE_STATS
    else:
        names = (operation.value,)
    return [
        AggregateResult(label, _key_fields(dimension, key, buckets), {n: _stat(s, n) for n in names})
        for key, s in summaries.items()
    ]
