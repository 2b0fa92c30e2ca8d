"""
Test suite for mergeable accumulators and partition helpers
File: tests/test_accumulators.py
"""

import numpy as np
import pytest

from delivery_insights.errors import EmptyAggregateDomain, InsufficientSample, UndefinedCorrelation
from delivery_insights.utils import CorrelationAccumulator, Summary, parallel_map, partition_by_key, top_n


class TestSummary:
    """Test count / sum / extrema summaries."""

    def setup_method(self):
        """Setup test fixtures."""
        self.values = [0.5, 1.25, 0.75, 2.0, 1.0, 0.25]

    def test_of(self):
        """Test a summary of plain values."""
        summary = Summary.of(self.values)
        assert summary.count == 6
        assert summary.mean == pytest.approx(np.mean(self.values))
        assert summary.min == 0.25
        assert summary.max == 2.0

    def test_merge_matches_whole(self):
        """Test merging any split equals summarizing everything."""
        whole = Summary.of(self.values)
        for cut in range(len(self.values) + 1):
            left, right = Summary.of(self.values[:cut]), Summary.of(self.values[cut:])
            for merged in (left.merge(right), right.merge(left)):
                assert merged.count == whole.count
                assert merged.mean == pytest.approx(whole.mean)
                assert (merged.min, merged.max) == (whole.min, whole.max)

    def test_empty_summary_has_no_mean(self):
        """Test mean/min/max of nothing raise EmptyAggregateDomain."""
        empty = Summary.of([])
        assert empty.count == 0
        for stat in ("mean", "min", "max"):
            with pytest.raises(EmptyAggregateDomain):
                getattr(empty, stat)


class TestCorrelationAccumulator:
    """Test the running Pearson coefficient."""

    def setup_method(self):
        """Setup test fixtures."""
        rng = np.random.default_rng(7)
        self.xs = rng.uniform(0, 1, 40)
        self.ys = 2.0 * self.xs + rng.normal(0, 0.3, 40)

    def test_matches_numpy(self):
        """Test agreement with np.corrcoef."""
        r = CorrelationAccumulator.of(self.xs, self.ys).coefficient()
        assert r == pytest.approx(np.corrcoef(self.xs, self.ys)[0, 1])

    def test_merge_matches_whole(self):
        """Test merged partials equal a single pass."""
        expected = np.corrcoef(self.xs, self.ys)[0, 1]
        parts = [CorrelationAccumulator.of(self.xs[i::3], self.ys[i::3]) for i in range(3)]
        merged = parts[2].merge(parts[0]).merge(parts[1])
        assert merged.n == 40
        assert merged.coefficient() == pytest.approx(expected)

    def test_merge_with_empty(self):
        """Test an empty partial is an identity."""
        acc = CorrelationAccumulator.of(self.xs, self.ys)
        assert acc.merge(CorrelationAccumulator()) == acc
        assert CorrelationAccumulator().merge(acc) == acc

    def test_perfect_correlation(self):
        """Test a linear relation gives +/-1."""
        assert CorrelationAccumulator.of([1, 2, 3], [2, 4, 6]).coefficient() == pytest.approx(1.0)
        assert CorrelationAccumulator.of([1, 2, 3], [6, 4, 2]).coefficient() == pytest.approx(-1.0)

    def test_single_point(self):
        """Test one point is an insufficient sample."""
        with pytest.raises(InsufficientSample):
            CorrelationAccumulator.of([0.4], [1.2]).coefficient()

    def test_no_points(self):
        """Test zero points is also insufficient."""
        with pytest.raises(InsufficientSample):
            CorrelationAccumulator().coefficient()

    def test_constant_series(self):
        """Test a constant series has no defined coefficient."""
        with pytest.raises(UndefinedCorrelation):
            CorrelationAccumulator.of([0.5, 0.5, 0.5], [1.0, 2.0, 3.0]).coefficient()


class TestHelpers:
    """Test top-N selection and partitioning."""

    def test_top_n_ties_go_to_smaller_key(self):
        """Test equal values are ordered by ascending key."""
        items = [(12, 5.0), (3, 7.0), (8, 5.0), (1, 5.0), (20, 1.0)]
        assert top_n(items, 3) == [(3, 7.0), (1, 5.0), (8, 5.0)]

    def test_top_n_shorter_than_n(self):
        """Test fewer groups than n returns them all."""
        assert top_n([(2, 1.0), (1, 1.0)], 5) == [(1, 1.0), (2, 1.0)]

    def test_partition_by_key(self):
        """Test items land in key % partitions."""
        parts = partition_by_key(range(10), lambda k: k, 3)
        assert parts == [[0, 3, 6, 9], [1, 4, 7], [2, 5, 8]]

    def test_partition_count_must_be_positive(self):
        """Test zero partitions is refused."""
        with pytest.raises(ValueError):
            partition_by_key([1, 2], lambda k: k, 0)

    def test_parallel_map_keeps_partition_order(self):
        """Test results come back in partition order."""
        parts = partition_by_key(range(20), lambda k: k, 4)
        assert parallel_map(sum, parts, max_workers=4) == [sum(p) for p in parts]
        assert parallel_map(len, [[1, 2, 3]]) == [3]
