"""Central place for column‑name constants so ingestion, the fact frame
   and the report layer all stay in sync.

‼️  **Edit here once** if the raw export schema changes.  All downstream code
    (including tests) should import from this module instead of hard‑coding
    strings.  """

# ────────────────────────────────────────────────────────────────────────────
# Raw order rows
# ────────────────────────────────────────────────────────────────────────────

ORDER_ID         = "order_id"
CUSTOMER_ID      = "customer_id"
DELIVERY_ADDRESS = "delivery_address"
LATITUDE         = "latitude"
LONGITUDE        = "longitude"
ORDER_TS         = "order_timestamp"
STATUS           = "status"
DRIVER_ID        = "driver_id"            # nullable until dispatched
RESTAURANT_ID    = "restaurant_id"
LOCATION_ID      = "location_id"          # traffic location key
DISTANCE_KM      = "distance_km"
RECORDED_DURATION = "delivery_duration"   # as recorded upstream, nullable
DELIVERY_TS      = "delivery_timestamp"   # nullable

# ────────────────────────────────────────────────────────────────────────────
# Raw traffic / driver / restaurant rows
# ────────────────────────────────────────────────────────────────────────────

LOCATION_NAME   = "location_name"
TRAFFIC_DENSITY = "traffic_density"

DRIVER_NAME = "driver_name"
SHIFT_ID    = "shift_id"
SHIFT_START = "shift_start"
SHIFT_END   = "shift_end"

RESTAURANT_NAME    = "restaurant_name"
RESTAURANT_ADDRESS = "address"

# ────────────────────────────────────────────────────────────────────────────
# Fact frame (one row per enriched + derived order)
# ────────────────────────────────────────────────────────────────────────────

HOUR_OF_DAY     = "hour_of_day"
DAY_OF_WEEK     = "day_of_week"
TRAVEL_TIME     = "estimated_travel_time_min"
DELIVERY_HOURS  = "delivery_duration_hr"  # NaN when not delivered
SHIFT_HOURS     = "shift_length_hr"       # NaN when no driver joined
TRAFFIC_BUCKET  = "traffic_bucket"

# Numeric columns the aggregation engine accepts as a metric
METRIC_COLUMNS = (
    ORDER_ID,
    DISTANCE_KM,
    TRAFFIC_DENSITY,
    TRAVEL_TIME,
    DELIVERY_HOURS,
    SHIFT_HOURS,
)

# ────────────────────────────────────────────────────────────────────────────
# Summary names emitted in AggregateResult rows
# ────────────────────────────────────────────────────────────────────────────

COUNT       = "count"
MEAN        = "mean"
MIN         = "min"
MAX         = "max"
RANK        = "rank"
CORRELATION = "correlation"
