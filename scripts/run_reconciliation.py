#!/usr/bin/env python3
"""
Reconciliation Sweep Script

Runs the data reconciliation sweep outside the HTTP API (cron, one-off
repairs):
- Ensures the system agencies exist
- Reassigns users pointing at unknown agencies to the fallback agency
- Backfills sale agencies from their agents
- Creates missing commission records

Usage:
    python scripts/run_reconciliation.py
    python scripts/run_reconciliation.py --triggered-by nightly-cron --json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from api.logging_config import configure_logging
from domain.reconciliation import ReconciliationReport
from services.reconciliation_service import run_reconciliation_sweep

logger = logging.getLogger(__name__)


def print_summary(report: ReconciliationReport) -> None:
    """Print sweep summary."""
    print()
    print("=" * 60)
    print("RECONCILIATION SUMMARY")
    print("=" * 60)
    print(f"Timestamp:        {report.timestamp.isoformat()}")
    print(f"Triggered by:     {report.triggered_by}")
    print(f"Fixes applied:    {len(report.fixes_applied)}")
    print(f"Errors:           {len(report.errors)}")
    print()

    for fix in report.fixes_applied:
        print(f"  + {fix}")

    if report.errors:
        print()
        for error in report.errors:
            print(f"  ! {error}")
    else:
        print()
        print("No errors!")

    print("=" * 60)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Run the data reconciliation sweep against Supabase",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run once, human-readable summary
  python run_reconciliation.py

  # Machine-readable output for cron logs
  python run_reconciliation.py --triggered-by nightly-cron --json
        """
    )

    parser.add_argument(
        "--triggered-by",
        default="cli",
        help="Recorded in the audit log (default: cli)"
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON instead of a summary"
    )

    args = parser.parse_args(argv)
    configure_logging()

    try:
        report = run_reconciliation_sweep(triggered_by=args.triggered_by)

        if args.json:
            print(json.dumps(report.to_dict(), indent=2))
        else:
            print_summary(report)

        # Exit code based on results
        return 0 if report.success else 1

    except KeyboardInterrupt:
        print("\n\nReconciliation interrupted by user")
        return 130

    except Exception as e:
        logger.exception("Reconciliation sweep failed")
        print(f"\nFATAL ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
