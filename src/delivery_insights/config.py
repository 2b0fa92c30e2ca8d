"""
Configuration for the delivery insight pipeline.

Module-level constants hold the defaults; `InsightConfig` bundles the options
a caller may override for one run and validates them on construction.
"""

from dataclasses import dataclass, fields
from typing import Any, Final, Mapping, Optional, Tuple

import pandas as pd

from .errors import InvalidConfiguration

# =============================================================================
# TIMESTAMP PARSING
# =============================================================================

DEFAULT_TIMESTAMP_FORMATS: Final[Tuple[str, ...]] = (
    "%Y-%m-%dT%H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y %H:%M:%S",
    "%d-%m-%Y %H:%M",
    "ISO8601",
)
"""
Accepted timestamp patterns, tried in order. Day always precedes month in the
slash and dash forms; month-first input is rejected rather than guessed.
"ISO8601" is pandas' own ISO parser: date-only values, fractional seconds,
"Z" and UTC offsets. Offset-carrying values are converted to naive UTC.
"""

CANONICAL_TIMESTAMP_FORMAT: Final[str] = "%Y-%m-%dT%H:%M:%S"
"""Canonical ISO-8601 rendering. Must appear in DEFAULT_TIMESTAMP_FORMATS."""

DEFAULT_CLOCK_FORMATS: Final[Tuple[str, ...]] = ("%H:%M:%S", "%H:%M")
"""Clock-only patterns accepted for shift start/end."""

REFERENCE_DAY: Final[pd.Timestamp] = pd.Timestamp("1970-01-01")
"""Day that clock-only shift times are anchored on."""

DAY_NAMES: Final[Tuple[str, ...]] = (
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
)

# =============================================================================
# NUMERIC PRECISION
# =============================================================================

QUANTITY_PRECISION: Final[int] = 2
"""Decimal places kept for distances, densities and recorded durations."""

COORDINATE_PRECISION: Final[int] = 6
"""Decimal places kept for latitude / longitude."""

# =============================================================================
# AGGREGATION DEFAULTS
# =============================================================================

DEFAULT_TOP_N: Final[int] = 3
"""Cut-off for top-N rankings (top restaurants, peak hours, ...)."""

DEFAULT_TRAFFIC_BUCKETS: Final[Tuple[float, ...]] = (0.0, 0.25, 0.5, 0.75)
"""
Lower bounds of the traffic-density buckets. Buckets are half-open
[b_i, b_i+1) and the last one is open-ended.
"""

DEFAULT_PARTITIONS: Final[int] = 1
"""Number of order-id partitions used for join, derivation and aggregation."""

MALFORMED_TIMESTAMP_POLICIES: Final[Tuple[str, ...]] = ("drop", "null")
"""
What the entity store does with a malformed *nullable* timestamp:
'drop' excludes the row, 'null' substitutes None. Mandatory timestamps
always drop the row.
"""


@dataclass(frozen=True)
class InsightConfig:
    """Options recognized by one pipeline run."""
    traffic_bucket_boundaries: Tuple[float, ...] = DEFAULT_TRAFFIC_BUCKETS
    top_n: int = DEFAULT_TOP_N
    timestamp_formats: Tuple[str, ...] = DEFAULT_TIMESTAMP_FORMATS
    clock_formats: Tuple[str, ...] = DEFAULT_CLOCK_FORMATS
    partitions: int = DEFAULT_PARTITIONS
    max_workers: Optional[int] = None
    malformed_timestamp_policy: str = "drop"

    def __post_init__(self):
        # list inputs are frozen into tuples
        object.__setattr__(self, "traffic_bucket_boundaries",
                           tuple(float(b) for b in self.traffic_bucket_boundaries))
        object.__setattr__(self, "timestamp_formats", tuple(self.timestamp_formats))
        object.__setattr__(self, "clock_formats", tuple(self.clock_formats))

        bounds = self.traffic_bucket_boundaries
        if not bounds:
            raise InvalidConfiguration("traffic_bucket_boundaries must not be empty")
        if any(lo >= hi for lo, hi in zip(bounds, bounds[1:])):
            raise InvalidConfiguration(
                f"traffic_bucket_boundaries must be strictly increasing, got {list(bounds)}"
            )
        if isinstance(self.top_n, bool) or not isinstance(self.top_n, int) or self.top_n < 1:
            raise InvalidConfiguration(f"top_n must be a positive integer, got {self.top_n!r}")
        if not self.timestamp_formats:
            raise InvalidConfiguration("timestamp_formats must list at least one pattern")
        if not isinstance(self.partitions, int) or self.partitions < 1:
            raise InvalidConfiguration(f"partitions must be >= 1, got {self.partitions!r}")
        if self.max_workers is not None and self.max_workers < 1:
            raise InvalidConfiguration(f"max_workers must be >= 1, got {self.max_workers!r}")
        if self.malformed_timestamp_policy not in MALFORMED_TIMESTAMP_POLICIES:
            raise InvalidConfiguration(
                f"malformed_timestamp_policy must be one of {MALFORMED_TIMESTAMP_POLICIES}, "
                f"got {self.malformed_timestamp_policy!r}"
            )

    @classmethod
    def from_dict(cls, options: Mapping[str, Any]) -> "InsightConfig":
        """Build a config from a plain mapping, rejecting unrecognized keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise InvalidConfiguration(f"Unrecognized configuration options: {unknown}")
        return cls(**dict(options))
