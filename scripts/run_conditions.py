#!/usr/bin/env python3
"""Aquatic Park swim conditions runner.

Fetches every source, scores current conditions and prints the result.

Usage:
    # Print conditions to console (default)
    python scripts/run_conditions.py

    # Output as JSON
    python scripts/run_conditions.py --format json

    # Favour flood tide when scoring
    python scripts/run_conditions.py --tide-preference flood

    # Write the static snapshot (static-data.json)
    python scripts/run_conditions.py --output public/
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.core.fusion import DEFAULT_GATHER_TIMEOUT, SourceFusion
from src.core.readings import CriticalFailure
from src.reports.formatter import ConditionsFormatter, format_failure
from src.reports.snapshot import conditions_to_dict, critical_failure_to_dict, write_snapshot


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # Quiet down noisy loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Score current swim conditions at Aquatic Park",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )

    parser.add_argument(
        "--output", "-o",
        type=str,
        help="Write the JSON snapshot to this file or directory",
    )

    parser.add_argument(
        "--tide-preference",
        choices=["slack", "flood", "ebb"],
        help="Favour one tide phase when scoring (default: slack 100, flood/ebb 85)",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_GATHER_TIMEOUT,
        help=f"Seconds to wait for all sources (default: {DEFAULT_GATHER_TIMEOUT})",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    print("Fetching swim conditions...", file=sys.stderr)
    print(f"Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}", file=sys.stderr)
    print(file=sys.stderr)

    fusion = SourceFusion(timeout=args.timeout)
    result = fusion.assess(args.tide_preference)

    if isinstance(result, CriticalFailure):
        if args.format == "json":
            print(json.dumps(critical_failure_to_dict(result), indent=2))
        else:
            print(format_failure(result))
        return 1

    if args.format == "json":
        print(json.dumps(conditions_to_dict(result), indent=2))
    else:
        print(ConditionsFormatter(result, location_name=fusion.location.name).format_text())

    if args.output:
        path = write_snapshot(result, Path(args.output))
        print(f"Snapshot written to: {path}", file=sys.stderr)

    return 0


if __name__ == "__main__":
    sys.exit(main())
