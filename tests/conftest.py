"""Shared fixtures for the delivery insight test suite."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from factories import driver_row, order_row, restaurant_row, traffic_row  # noqa: E402


@pytest.fixture
def snapshot():
    """
    A small consistent snapshot: three restaurants, two traffic locations,
    two drivers (one on a night shift) and five delivered or open orders.
    """
    return {
        "orders": [
            order_row(1),
            order_row(2, order_timestamp="04/03/2024 12:40", delivery_timestamp="04/03/2024 13:10",
                      restaurant_id="11", location_id="101", driver_id="2"),
            order_row(3, order_timestamp="05/03/2024 19:05", delivery_timestamp="05/03/2024 20:05",
                      restaurant_id="11"),
            order_row(4, order_timestamp="05/03/2024 19:30", status="in_transit",
                      delivery_timestamp="", driver_id="2"),
            order_row(5, order_timestamp="2024-03-06T08:00:00", status="placed",
                      delivery_timestamp="", driver_id="", restaurant_id="12"),
        ],
        "traffic": [traffic_row(100, 0.2, "Downtown"), traffic_row(101, 0.8, "Harbour")],
        "drivers": [driver_row(1, "08:00", "16:00"), driver_row(2, "22:00", "06:00")],
        "restaurants": [restaurant_row(10), restaurant_row(11), restaurant_row(12)],
    }
