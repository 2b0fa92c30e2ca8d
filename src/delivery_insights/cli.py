"""
Delivery insight report from CSV exports.

Usage (after `pip install -e .`):
    delivery-insights --orders orders.csv --traffic traffic.csv \
        --drivers drivers.csv --restaurants restaurants.csv \
        --top-n 5 --bucket 0 --bucket 0.5 --bucket 1.0 --output-dir reports/
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from .config import DEFAULT_PARTITIONS, DEFAULT_TOP_N, DEFAULT_TRAFFIC_BUCKETS, InsightConfig
from .errors import AnalyticsError
from .pipeline import run_pipeline
from .report import InsightReport

logger = logging.getLogger(__name__)


def load_rows(path: Path) -> List[Dict]:
    """Read a CSV export into row mappings; every cell stays a string."""
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    logger.info("Loaded %s with shape %s", path, df.shape)
    return df.to_dict("records")


def write_report(report: InsightReport, output_dir: Path) -> List[Path]:
    """One CSV per insight plus manifest.csv."""
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for name, frame in report.to_frames().items():
        path = output_dir / f"{name}.csv"
        frame.to_csv(path, index=False)
        written.append(path)
    manifest_path = output_dir / "manifest.csv"
    report.manifest_frame().to_csv(manifest_path, index=False)
    written.append(manifest_path)
    return written


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Build delivery insights from CSV exports')
    parser.add_argument('--orders', type=Path, required=True, help='Orders CSV')
    parser.add_argument('--traffic', type=Path, required=True, help='Traffic samples CSV')
    parser.add_argument('--drivers', type=Path, required=True, help='Drivers CSV')
    parser.add_argument('--restaurants', type=Path, required=True, help='Restaurants CSV')
    parser.add_argument('--top-n', type=int, default=DEFAULT_TOP_N,
                        help=f'Ranking cut-off (default: {DEFAULT_TOP_N})')
    parser.add_argument('--bucket', type=float, action='append', dest='buckets',
                        help='Traffic bucket lower bound; repeat for each bucket '
                             f'(default: {list(DEFAULT_TRAFFIC_BUCKETS)})')
    parser.add_argument('--partitions', type=int, default=DEFAULT_PARTITIONS,
                        help='Order-id partitions processed in parallel')
    parser.add_argument('--null-bad-delivery-times', action='store_true',
                        help='Replace malformed delivery timestamps with None instead of dropping the order')
    parser.add_argument('--output-dir', type=Path, default=None,
                        help='Write one CSV per insight into this directory')
    parser.add_argument('--verbose', '-v', action='store_true', help='Log progress')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Build the report; returns the process exit code."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = InsightConfig(
            traffic_bucket_boundaries=args.buckets or DEFAULT_TRAFFIC_BUCKETS,
            top_n=args.top_n,
            partitions=args.partitions,
            malformed_timestamp_policy="null" if args.null_bad_delivery_times else "drop",
        )
        report = run_pipeline(
            orders=load_rows(args.orders),
            traffic=load_rows(args.traffic),
            drivers=load_rows(args.drivers),
            restaurants=load_rows(args.restaurants),
            config=config,
        )
    except (AnalyticsError, FileNotFoundError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        print(f"❌ Error: {e}")
        return 1

    report.print_summary()

    if args.output_dir is not None:
        written = write_report(report, args.output_dir)
        print(f"\n✅ Wrote {len(written)} files to {args.output_dir}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
