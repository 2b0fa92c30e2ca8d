"""
Entity store: typed, key-indexed, read-only tables for one snapshot.

Raw rows (mappings keyed by the column names in `schema.py`) are coerced
into frozen entity dataclasses. Rows that cannot be coerced are excluded and
recorded in the store manifest; duplicate primary keys abort the load of that
kind. Foreign keys are not checked here; the join engine resolves them.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

import pandas as pd

from . import schema as S
from .config import COORDINATE_PRECISION, QUANTITY_PRECISION, InsightConfig
from .errors import DuplicateKey, MalformedRecord, MalformedTimestamp, RecordError, StoreAlreadyLoaded
from .models import Driver, EntityKind, Order, OrderStatus, Restaurant, SkippedRecord, TrafficSample
from .temporal import normalize_clock_time, normalize_timestamp

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------ coercion

def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _as_int(value: Any, column: str) -> int:
    if _is_missing(value) or isinstance(value, bool):
        raise MalformedRecord(f"{column}: missing or invalid id {value!r}")
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise MalformedRecord(f"{column}: {value!r} is not an integer id") from None
    if not number.is_integer():
        raise MalformedRecord(f"{column}: {value!r} is not an integer id")
    return int(number)


def _as_optional_int(value: Any, column: str) -> Optional[int]:
    return None if _is_missing(value) else _as_int(value, column)


def _as_float(value: Any, column: str, precision: int = QUANTITY_PRECISION) -> float:
    if _is_missing(value) or isinstance(value, bool):
        raise MalformedRecord(f"{column}: missing numeric value")
    try:
        return round(float(value), precision)
    except (TypeError, ValueError):
        raise MalformedRecord(f"{column}: {value!r} is not a number") from None


def _as_optional_float(value: Any, column: str) -> Optional[float]:
    return None if _is_missing(value) else _as_float(value, column)


def _as_text(value: Any) -> str:
    return "" if _is_missing(value) else str(value).strip()


def _order_from_row(row: Mapping, config: InsightConfig, notes: List[SkippedRecord]) -> Order:
    order_id = _as_int(row.get(S.ORDER_ID), S.ORDER_ID)

    delivery_ts = None
    raw_delivery = row.get(S.DELIVERY_TS)
    if not _is_missing(raw_delivery):
        try:
            delivery_ts = normalize_timestamp(raw_delivery, config.timestamp_formats)
        except MalformedTimestamp as exc:
            if config.malformed_timestamp_policy != "null":
                raise
            notes.append(SkippedRecord(
                kind=EntityKind.ORDER,
                key=order_id,
                stage="load",
                reason=exc.kind,
                detail=f"{S.DELIVERY_TS} {raw_delivery!r} replaced with None",
            ))

    return Order(
        order_id=order_id,
        customer_id=_as_int(row.get(S.CUSTOMER_ID), S.CUSTOMER_ID),
        delivery_address=_as_text(row.get(S.DELIVERY_ADDRESS)),
        latitude=_as_float(row.get(S.LATITUDE), S.LATITUDE, COORDINATE_PRECISION),
        longitude=_as_float(row.get(S.LONGITUDE), S.LONGITUDE, COORDINATE_PRECISION),
        order_timestamp=normalize_timestamp(row.get(S.ORDER_TS), config.timestamp_formats),
        status=OrderStatus.parse(row.get(S.STATUS)),
        restaurant_id=_as_int(row.get(S.RESTAURANT_ID), S.RESTAURANT_ID),
        location_id=_as_int(row.get(S.LOCATION_ID), S.LOCATION_ID),
        distance_km=_as_float(row.get(S.DISTANCE_KM), S.DISTANCE_KM),
        driver_id=_as_optional_int(row.get(S.DRIVER_ID), S.DRIVER_ID),
        delivery_duration=_as_optional_float(row.get(S.RECORDED_DURATION), S.RECORDED_DURATION),
        delivery_timestamp=delivery_ts,
    )


def _traffic_from_row(row: Mapping, config: InsightConfig, notes: List[SkippedRecord]) -> TrafficSample:
    return TrafficSample(
        location_id=_as_int(row.get(S.LOCATION_ID), S.LOCATION_ID),
        location_name=_as_text(row.get(S.LOCATION_NAME)),
        traffic_density=_as_float(row.get(S.TRAFFIC_DENSITY), S.TRAFFIC_DENSITY),
    )


def _driver_from_row(row: Mapping, config: InsightConfig, notes: List[SkippedRecord]) -> Driver:
    return Driver(
        driver_id=_as_int(row.get(S.DRIVER_ID), S.DRIVER_ID),
        name=_as_text(row.get(S.DRIVER_NAME)),
        shift_id=_as_int(row.get(S.SHIFT_ID), S.SHIFT_ID),
        shift_start=normalize_clock_time(row.get(S.SHIFT_START), config.timestamp_formats, config.clock_formats),
        shift_end=normalize_clock_time(row.get(S.SHIFT_END), config.timestamp_formats, config.clock_formats),
    )


def _restaurant_from_row(row: Mapping, config: InsightConfig, notes: List[SkippedRecord]) -> Restaurant:
    return Restaurant(
        restaurant_id=_as_int(row.get(S.RESTAURANT_ID), S.RESTAURANT_ID),
        name=_as_text(row.get(S.RESTAURANT_NAME)),
        address=_as_text(row.get(S.RESTAURANT_ADDRESS)),
    )


Coercer = Callable[[Mapping, InsightConfig, List[SkippedRecord]], Any]

# kind -> (model class, primary-key attribute, raw key column, row coercer)
_KIND_SPECS: Dict[EntityKind, Tuple[type, str, str, Coercer]] = {
    EntityKind.ORDER: (Order, "order_id", S.ORDER_ID, _order_from_row),
    EntityKind.TRAFFIC: (TrafficSample, "location_id", S.LOCATION_ID, _traffic_from_row),
    EntityKind.DRIVER: (Driver, "driver_id", S.DRIVER_ID, _driver_from_row),
    EntityKind.RESTAURANT: (Restaurant, "restaurant_id", S.RESTAURANT_ID, _restaurant_from_row),
}


def _peek_key(row: Any, column: str) -> Optional[int]:
    if not isinstance(row, Mapping):
        return None
    try:
        return _as_int(row.get(column), column)
    except RecordError:
        return None


# ------------------------------------------------------------------ tables

class EntityTable:
    """Read-only, key-ordered view over one entity kind."""

    def __init__(self, kind: EntityKind, rows: Mapping[int, Any]):
        self.kind = kind
        self._rows = MappingProxyType(dict(sorted(rows.items())))

    def get(self, key: Optional[int], default=None):
        if key is None:
            return default
        return self._rows.get(key, default)

    def __getitem__(self, key: int):
        return self._rows[key]

    def __contains__(self, key) -> bool:
        return key in self._rows

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Any]:
        # a fresh iterator per call, so scans can be restarted
        return iter(self._rows.values())

    def keys(self):
        return self._rows.keys()

    def __repr__(self) -> str:
        return f"EntityTable({self.kind.value}, rows={len(self)})"


class EntityStore:
    """
    Holds the four entity tables of one snapshot.

    Each kind is loaded exactly once; afterwards the store only answers
    reads. Rows excluded while loading are listed in `manifest`.
    """

    def __init__(self, config: Optional[InsightConfig] = None):
        self.config = config or InsightConfig()
        self._tables: Dict[EntityKind, EntityTable] = {}
        self._manifest: List[SkippedRecord] = []

    @classmethod
    def from_records(
        cls,
        orders: Iterable = (),
        traffic: Iterable = (),
        drivers: Iterable = (),
        restaurants: Iterable = (),
        config: Optional[InsightConfig] = None,
    ) -> "EntityStore":
        store = cls(config)
        store.load(EntityKind.TRAFFIC, traffic)
        store.load(EntityKind.RESTAURANT, restaurants)
        store.load(EntityKind.DRIVER, drivers)
        store.load(EntityKind.ORDER, orders)
        return store

    def load(self, kind: Union[EntityKind, str], records: Iterable) -> EntityTable:
        """
        Coerce and index `records` as entities of `kind`.

        Raises DuplicateKey if two rows share a primary key (nothing of that
        kind is stored) and StoreAlreadyLoaded if `kind` was loaded before.
        """
        kind = EntityKind(kind)
        if kind in self._tables:
            raise StoreAlreadyLoaded(f"{kind.value} entities are already loaded")

        model, key_attr, key_column, coerce = _KIND_SPECS[kind]
        index: Dict[int, Any] = {}
        manifest: List[SkippedRecord] = []

        for row in records:
            notes: List[SkippedRecord] = []
            try:
                entity = row if isinstance(row, model) else coerce(row, self.config, notes)
            except RecordError as exc:
                key = _peek_key(row, key_column)
                manifest.append(SkippedRecord(kind, key, "load", exc.kind, str(exc)))
                logger.debug("Skipping %s row %s: %s", kind.value, key, exc)
                continue

            key = getattr(entity, key_attr)
            if key in index:
                raise DuplicateKey(kind.value, key)
            index[key] = entity
            manifest.extend(notes)

        table = EntityTable(kind, index)
        self._tables[kind] = table
        self._manifest.extend(manifest)
        logger.info("Loaded %d %s entities (%d manifest entries)", len(table), kind.value, len(manifest))
        return table

    def is_loaded(self, kind: Union[EntityKind, str]) -> bool:
        return EntityKind(kind) in self._tables

    def table(self, kind: Union[EntityKind, str]) -> EntityTable:
        """The table for `kind`; an empty table if it was never loaded."""
        kind = EntityKind(kind)
        if kind not in self._tables:
            return EntityTable(kind, {})
        return self._tables[kind]

    def get(self, kind: Union[EntityKind, str], key: Optional[int]):
        return self.table(kind).get(key)

    def scan(self, kind: Union[EntityKind, str]) -> EntityTable:
        return self.table(kind)

    @property
    def manifest(self) -> Tuple[SkippedRecord, ...]:
        return tuple(self._manifest)
