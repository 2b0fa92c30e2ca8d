"""
Test suite for the end-to-end pipeline
File: tests/test_pipeline.py
"""

import pytest

from delivery_insights import InsightConfig, run_pipeline
from delivery_insights.errors import ErrorKind
from delivery_insights.models import EntityKind

from factories import driver_row, order_row, restaurant_row


class TestRunPipeline:
    """Test a full run over the snapshot fixture plus a few bad rows."""

    @pytest.fixture(autouse=True)
    def _snapshot(self, snapshot):
        snapshot["orders"] = snapshot["orders"] + [
            order_row(6, restaurant_id="99"),
            order_row(7, order_timestamp="garbage"),
            order_row(8, distance_km="0"),
        ]
        self.snapshot = snapshot

    def test_bad_records_go_to_the_manifest(self):
        """Test each excluded order is listed once with its stage and reason."""
        report = run_pipeline(**self.snapshot)

        assert report.order_count == 5
        assert [(m.key, m.stage, m.reason) for m in report.manifest] == [
            (7, "load", ErrorKind.MALFORMED_TIMESTAMP),
            (6, "join", ErrorKind.JOIN_FAILURE),
            (8, "derive", ErrorKind.INVALID_DISTANCE),
        ]

    def test_demand_insights(self):
        """Test hour and weekday counts over the surviving orders."""
        report = run_pipeline(**self.snapshot)

        assert report.rows("orders_by_hour") == [
            {"hour_of_day": 8, "count": 1},
            {"hour_of_day": 12, "count": 2},
            {"hour_of_day": 19, "count": 2},
        ]
        assert report.rows("orders_by_day_of_week") == [
            {"day_of_week": "Monday", "count": 2},
            {"day_of_week": "Tuesday", "count": 2},
            {"day_of_week": "Wednesday", "count": 1},
        ]

    def test_delivery_insights(self):
        """Test delivery durations only cover delivered orders."""
        report = run_pipeline(**self.snapshot)

        summary = report.rows("delivery_duration_summary")[0]
        assert summary["count"] == 3
        assert summary["mean"] == pytest.approx(0.75)
        assert report.rows("delivery_by_traffic_bucket") == [
            {"traffic_bucket": "[0, 0.25)", "count": 2, "mean": 0.875, "min": 0.75, "max": 1.0},
            {"traffic_bucket": "[0.75, inf)", "count": 1, "mean": 0.5, "min": 0.5, "max": 0.5},
        ]
        assert [r["mean"] for r in report.rows("avg_shift_length_by_driver")] == [8.0, 8.0]

    def test_partitioned_run_matches_single_pass(self):
        """Test partitioning the run leaves the report unchanged."""
        whole = run_pipeline(**self.snapshot)
        split = run_pipeline(**self.snapshot, config=InsightConfig(partitions=3, max_workers=2))

        correlation = "traffic_delivery_correlation"
        for name in whole.insights:
            if name != correlation:
                assert split.rows(name) == whole.rows(name)
        assert split.rows(correlation)[0]["correlation"] == pytest.approx(whole.rows(correlation)[0]["correlation"])
        assert split.manifest == whole.manifest

    def test_duplicate_driver_key_empties_only_the_driver_table(self):
        """Test a duplicated driver still yields a report with the demand insights."""
        self.snapshot["drivers"] = self.snapshot["drivers"] + [driver_row(1, "09:00", "17:00")]
        report = run_pipeline(**self.snapshot)

        assert report.order_count == 5
        assert report.rows("orders_by_hour")[0] == {"hour_of_day": 8, "count": 1}
        assert "avg_shift_length_by_driver" not in report
        assert report.errors["load_driver"].startswith("duplicate_key")
        assert (1, "load", ErrorKind.DUPLICATE_KEY) in [(m.key, m.stage, m.reason) for m in report.manifest]
        assert report.manifest[0].kind is EntityKind.DRIVER

    def test_duplicate_order_key_still_returns_a_report(self):
        """Test a duplicated order id leaves nothing to aggregate but keeps the manifest."""
        self.snapshot["orders"] = self.snapshot["orders"] + [order_row(1)]
        report = run_pipeline(**self.snapshot)

        assert report.order_count == 0
        assert report.insights == {}
        assert report.errors["load_order"].startswith("duplicate_key")
        assert report.errors["orders_by_hour"].startswith("empty_aggregate_domain")
        assert [(m.key, m.reason) for m in report.manifest] == [(1, ErrorKind.DUPLICATE_KEY)]

    def test_duplicate_restaurant_key_fails_every_join(self):
        """Test an emptied restaurant table turns each order into a join failure."""
        self.snapshot["restaurants"] = self.snapshot["restaurants"] + [restaurant_row(10)]
        report = run_pipeline(**self.snapshot)

        reasons = [m.reason for m in report.manifest]
        assert reasons[0] is ErrorKind.DUPLICATE_KEY
        assert reasons.count(ErrorKind.JOIN_FAILURE) == 7
        assert "load_restaurant" in report.errors
