"""
Test suite for the join engine
File: tests/test_join.py
"""

from delivery_insights.join import JoinEngine
from delivery_insights.models import EnrichedOrder, EntityKind, JoinFailure
from delivery_insights.store import EntityStore

from factories import driver_row, order_row, restaurant_row, traffic_row


class TestJoinEngine:
    """Test enrichment of orders against the store."""

    def setup_method(self):
        """Setup test fixtures."""
        self.store = EntityStore.from_records(
            orders=[
                order_row(1),
                order_row(2, restaurant_id="99"),
                order_row(3, restaurant_id="99", location_id="999"),
                order_row(4, driver_id="77"),
                order_row(5, status="placed", driver_id="", delivery_timestamp=""),
                order_row(6, location_id="101", driver_id="2"),
            ],
            traffic=[traffic_row(100, 0.2), traffic_row(101, 0.9)],
            drivers=[driver_row(1), driver_row(2, "22:00", "06:00")],
            restaurants=[restaurant_row(10)],
        )
        self.engine = JoinEngine(self.store)

    def test_matched_order_is_enriched(self):
        """Test an order with every match resolves all three references."""
        result = self.engine.enrich()
        first = result.records[0]

        assert isinstance(first, EnrichedOrder)
        assert first.restaurant.restaurant_id == 10
        assert first.traffic.traffic_density == 0.2
        assert first.driver.driver_id == 1

    def test_missing_restaurant_is_a_join_failure(self):
        """Test a dangling restaurant id yields a JoinFailure, not an exception."""
        outcome, _ = self.engine.enrich_one(self.store.get(EntityKind.ORDER, 2))
        assert isinstance(outcome, JoinFailure)
        assert outcome.missing_kind is EntityKind.RESTAURANT

    def test_every_missing_kind_is_reported(self):
        """Test an order missing both mandatory matches names both."""
        outcome, _ = self.engine.enrich_one(self.store.get(EntityKind.ORDER, 3))
        assert outcome.missing_kinds == (EntityKind.RESTAURANT, EntityKind.TRAFFIC)

    def test_unknown_driver_is_a_left_join(self):
        """Test an unknown driver id leaves the driver empty and is counted."""
        outcome, dangling = self.engine.enrich_one(self.store.get(EntityKind.ORDER, 4))
        assert isinstance(outcome, EnrichedOrder)
        assert outcome.driver is None
        assert dangling

    def test_unassigned_driver_is_not_counted(self):
        """Test an order with no driver yet is not a dangling reference."""
        outcome, dangling = self.engine.enrich_one(self.store.get(EntityKind.ORDER, 5))
        assert outcome.driver is None
        assert not dangling

    def test_batch_result(self):
        """Test counts and ordering of a whole batch."""
        result = self.engine.enrich()

        assert [r.order_id for r in result.records] == [1, 2, 3, 4, 5, 6]
        assert [e.order_id for e in result.enriched] == [1, 4, 5, 6]
        assert result.failed_order_ids == [2, 3]
        assert result.failure_count == 2
        assert result.unmatched_driver_count == 1

    def test_partitioned_join_matches_single_pass(self):
        """Test splitting by order id does not change the outcome."""
        whole = self.engine.enrich(partitions=1)
        for partitions in (2, 3, 7):
            split = self.engine.enrich(partitions=partitions, max_workers=2)
            assert split.records == whole.records
            assert split.unmatched_driver_count == whole.unmatched_driver_count

    def test_explicit_order_subset(self):
        """Test enriching a caller-supplied subset only."""
        orders = [self.store.get(EntityKind.ORDER, k) for k in (6, 1)]
        result = self.engine.enrich(orders)
        assert [r.order_id for r in result.records] == [1, 6]
        assert result.failure_count == 0
