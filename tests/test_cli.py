"""
Test suite for the command-line entry point
File: tests/test_cli.py
"""

import pandas as pd
import pytest

from delivery_insights.cli import build_parser, load_rows, main


@pytest.fixture
def csv_inputs(tmp_path, snapshot):
    """Write the snapshot fixture out as four CSV exports."""
    paths = {}
    for kind, rows in snapshot.items():
        path = tmp_path / f"{kind}.csv"
        pd.DataFrame(rows).to_csv(path, index=False)
        paths[kind] = path
    return paths


def _argv(paths, *extra):
    return [
        "--orders", str(paths["orders"]),
        "--traffic", str(paths["traffic"]),
        "--drivers", str(paths["drivers"]),
        "--restaurants", str(paths["restaurants"]),
        *extra,
    ]


class TestCli:
    """Test argument handling, CSV loading and report export."""

    def test_load_rows_keeps_strings(self, csv_inputs):
        """Test cells come back as strings with blanks preserved."""
        rows = load_rows(csv_inputs["orders"])
        assert len(rows) == 5
        assert rows[0]["order_id"] == "1"
        assert rows[4]["driver_id"] == ""

    def test_parser_defaults(self):
        """Test optional arguments default sensibly."""
        args = build_parser().parse_args(["--orders", "o", "--traffic", "t", "--drivers", "d", "--restaurants", "r"])
        assert args.top_n == 3
        assert args.buckets is None
        assert args.output_dir is None
        assert not args.null_bad_delivery_times

    def test_report_is_printed(self, csv_inputs, capsys):
        """Test a successful run prints the summary and exits 0."""
        assert main(_argv(csv_inputs)) == 0
        out = capsys.readouterr().out
        assert "DELIVERY INSIGHT REPORT" in out
        assert "Orders analysed: 5" in out

    def test_report_is_written(self, csv_inputs, tmp_path):
        """Test --output-dir writes one CSV per insight plus the manifest."""
        out_dir = tmp_path / "reports"
        assert main(_argv(csv_inputs, "--output-dir", str(out_dir), "--bucket", "0", "--bucket", "0.5")) == 0

        by_hour = pd.read_csv(out_dir / "orders_by_hour.csv")
        assert list(by_hour["hour_of_day"]) == [8, 12, 19]
        buckets = pd.read_csv(out_dir / "delivery_by_traffic_bucket.csv")
        assert list(buckets["traffic_bucket"]) == ["[0, 0.5)", "[0.5, inf)"]
        assert (out_dir / "manifest.csv").exists()

    def test_missing_file(self, csv_inputs, tmp_path, capsys):
        """Test a missing input exits 1 with an error message."""
        csv_inputs["orders"] = tmp_path / "nope.csv"
        assert main(_argv(csv_inputs)) == 1
        assert "Error" in capsys.readouterr().out

    def test_invalid_option(self, csv_inputs, capsys):
        """Test a bad configuration value exits 1."""
        assert main(_argv(csv_inputs, "--top-n", "0")) == 1
        assert "top_n" in capsys.readouterr().out
