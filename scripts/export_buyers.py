#!/usr/bin/env python3
"""
Buyer Export Script

Exports buyer leads to CSV using the same columns accepted by the import,
most recently updated first. Filters match the list endpoint.

Usage:
    python export_buyers.py --output buyers.csv
    python export_buyers.py --status New --city Mohali --output new_mohali.csv
    python export_buyers.py --search doe --output doe.csv
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.buyer import City, PropertyType, Status, Timeline
from repositories.buyer_store import BuyerFilters, BuyerSort
from repositories.store_factory import create_store
from services.buyer_service import BuyerService
from services.csv_service import export_buyers_csv


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Export buyer leads to CSV",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export all buyers
  python export_buyers.py --output all_buyers.csv

  # Export new leads in Mohali
  python export_buyers.py --status New --city Mohali --output new_mohali.csv

  # Export short-timeline apartment buyers
  python export_buyers.py --property-type Apartment --timeline M0_3m --output hot.csv
        """
    )

    parser.add_argument("--output", "-o", required=True, help="Path to output CSV file")
    parser.add_argument("--status", choices=[s.value for s in Status], help="Filter by status")
    parser.add_argument("--city", choices=[c.value for c in City], help="Filter by city")
    parser.add_argument(
        "--property-type",
        choices=[p.value for p in PropertyType],
        help="Filter by property type"
    )
    parser.add_argument("--timeline", choices=[t.value for t in Timeline], help="Filter by timeline")
    parser.add_argument("--search", help="Case-insensitive match on name, email or phone")

    args = parser.parse_args()
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING").upper())

    filters = BuyerFilters(
        status=Status(args.status) if args.status else None,
        city=City(args.city) if args.city else None,
        property_type=PropertyType(args.property_type) if args.property_type else None,
        timeline=Timeline(args.timeline) if args.timeline else None,
        search=args.search,
    )

    try:
        print("Fetching buyers...")
        buyers = list(BuyerService(create_store()).iter_buyers(filters, BuyerSort()))

        if not buyers:
            print("No buyers found matching the specified filters")
            return 1

        with open(args.output, "w", newline="", encoding="utf-8") as f:
            f.write(export_buyers_csv(buyers))

        print()
        print("=" * 60)
        print("EXPORT SUMMARY")
        print("=" * 60)
        print(f"Total buyers exported: {len(buyers)}")
        print(f"Output file: {args.output}")
        print("=" * 60)

        return 0

    except KeyboardInterrupt:
        print("\n\nExport interrupted by user")
        return 130

    except Exception as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
