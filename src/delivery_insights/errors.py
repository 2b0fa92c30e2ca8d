"""
Error kinds raised or collected by the insight pipeline.

Per-record errors (timestamps, join misses, invalid metric inputs) are
collected into the run manifest and never abort a batch. Structural errors
(duplicate keys, unknown dimensions, empty aggregate domains) abort the
request that hit them.
"""

from enum import Enum


class ErrorKind(Enum):
    """Reason codes used in exceptions and in the skipped-record manifest."""
    MALFORMED_TIMESTAMP = "malformed_timestamp"
    DUPLICATE_KEY = "duplicate_key"
    JOIN_FAILURE = "join_failure"
    INVALID_TRAFFIC_DENSITY = "invalid_traffic_density"
    INVALID_DISTANCE = "invalid_distance"
    MALFORMED_RECORD = "malformed_record"
    INVALID_ORDER_RECORD = "invalid_order_record"
    INVALID_SHIFT_WINDOW = "invalid_shift_window"
    INVALID_STATUS_TRANSITION = "invalid_status_transition"
    EMPTY_AGGREGATE_DOMAIN = "empty_aggregate_domain"
    INSUFFICIENT_SAMPLE = "insufficient_sample"
    UNDEFINED_CORRELATION = "undefined_correlation"
    UNKNOWN_GROUP_DIMENSION = "unknown_group_dimension"
    UNKNOWN_METRIC = "unknown_metric"
    UNKNOWN_OPERATION = "unknown_operation"
    STORE_ALREADY_LOADED = "store_already_loaded"
    INVALID_CONFIGURATION = "invalid_configuration"


class AnalyticsError(Exception):
    """Base class for every error the pipeline raises."""
    kind: ErrorKind = None


# ---------------------------------------------------------------- per record

class RecordError(AnalyticsError):
    """An error confined to a single input record."""


class MalformedTimestamp(RecordError, ValueError):
    kind = ErrorKind.MALFORMED_TIMESTAMP

    def __init__(self, value, formats=()):
        self.value = value
        self.formats = tuple(formats)
        super().__init__(
            f"Timestamp {value!r} matches none of the accepted formats {list(self.formats)}"
        )


class InvalidTrafficDensity(RecordError, ValueError):
    kind = ErrorKind.INVALID_TRAFFIC_DENSITY


class InvalidDistance(RecordError, ValueError):
    kind = ErrorKind.INVALID_DISTANCE


class MalformedRecord(RecordError, ValueError):
    """A required field is missing or cannot be coerced to its type."""
    kind = ErrorKind.MALFORMED_RECORD


class InvalidOrderRecord(MalformedRecord):
    """An order row that breaks the order lifecycle invariants."""
    kind = ErrorKind.INVALID_ORDER_RECORD


class InvalidShiftWindow(RecordError, ValueError):
    kind = ErrorKind.INVALID_SHIFT_WINDOW


class InvalidStatusTransition(RecordError):
    kind = ErrorKind.INVALID_STATUS_TRANSITION


# ---------------------------------------------------------------- structural

class DuplicateKey(AnalyticsError):
    kind = ErrorKind.DUPLICATE_KEY

    def __init__(self, entity_kind, key):
        self.entity_kind = entity_kind
        self.key = key
        super().__init__(f"Duplicate {entity_kind} primary key: {key}")


class StoreAlreadyLoaded(AnalyticsError):
    kind = ErrorKind.STORE_ALREADY_LOADED


class InvalidConfiguration(AnalyticsError, ValueError):
    kind = ErrorKind.INVALID_CONFIGURATION


class AggregationError(AnalyticsError):
    """Aborts a single aggregation request but not the pipeline."""


class EmptyAggregateDomain(AggregationError):
    kind = ErrorKind.EMPTY_AGGREGATE_DOMAIN


class InsufficientSample(AggregationError):
    kind = ErrorKind.INSUFFICIENT_SAMPLE


class UndefinedCorrelation(AggregationError):
    kind = ErrorKind.UNDEFINED_CORRELATION


class UnknownGroupDimension(AggregationError, ValueError):
    kind = ErrorKind.UNKNOWN_GROUP_DIMENSION


class UnknownMetric(AggregationError, ValueError):
    kind = ErrorKind.UNKNOWN_METRIC


class UnknownOperation(AggregationError, ValueError):
    kind = ErrorKind.UNKNOWN_OPERATION
