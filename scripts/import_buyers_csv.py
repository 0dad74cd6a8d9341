#!/usr/bin/env python3
"""
CSV Buyer Import Script

Imports buyer leads from a CSV file with:
- Header validation (camelCase or snake_case column names)
- Per-row validation with every error reported (row numbers start at 1)
- All-or-nothing insert: any invalid row means nothing is written
- A 200-row cap per file

Usage:
    python import_buyers_csv.py path/to/buyers.csv --actor-id USER_ID
    python import_buyers_csv.py path/to/buyers.csv --actor-id USER_ID --dry-run
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.errors import BatchLimitExceeded, StorageError
from repositories.store_factory import create_store
from services.csv_service import parse_buyers_csv
from services.import_service import ImportResult, ImportService


def import_csv(csv_path: str, actor_id: str, dry_run: bool = False) -> ImportResult:
    """
    Import buyers from a CSV file.

    Raises:
        FileNotFoundError: If CSV file doesn't exist
        ValueError: If CSV headers are malformed
        BatchLimitExceeded: If the file has more than 200 data rows
        StorageError: If the insert failed (nothing was written)
    """
    csv_file = Path(csv_path)
    if not csv_file.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    print(f"Reading CSV: {csv_path}")
    print(f"Actor: {actor_id}")
    print(f"Dry run: {dry_run}")
    print()

    rows = parse_buyers_csv(csv_file.read_text(encoding="utf-8-sig"))
    service = ImportService(create_store())
    return service.import_batch(rows, actor_id, dry_run=dry_run)


def print_summary(result: ImportResult, dry_run: bool) -> None:
    """Print import summary statistics."""
    print()
    print("=" * 60)
    print("IMPORT SUMMARY")
    print("=" * 60)
    print(f"Valid Rows:       {result.validated_count}")
    print(f"Inserted:         {result.inserted_count}{' (dry run)' if dry_run else ''}")
    print()

    if result.errors:
        failed_rows = sorted({e.row for e in result.errors})
        print(f"Rejected: {len(failed_rows)} row(s) failed validation, nothing was inserted")
        print()
        print("First 10 errors:")
        for error in result.errors[:10]:
            print(f"  - Row {error.row} [{error.field}]: {error.message}")
        if len(result.errors) > 10:
            print(f"  ... and {len(result.errors) - 10} more")
    else:
        print("No errors!")

    print("=" * 60)


def save_error_log(result: ImportResult, output_path: str) -> None:
    """Save row errors to a JSON file."""
    if not result.errors:
        return

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump([e.to_dict() for e in result.errors], f, indent=2)

    print(f"\nError log saved to: {output_path}")


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Import buyer leads from CSV (all-or-nothing, max 200 rows)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Basic import
  python import_buyers_csv.py buyers.csv --actor-id 3f2c...

  # Validate only, don't insert
  python import_buyers_csv.py buyers.csv --actor-id 3f2c... --dry-run

  # Save row errors to a custom path
  python import_buyers_csv.py buyers.csv --actor-id 3f2c... --error-log errors.json
        """
    )

    parser.add_argument(
        "csv_path",
        help="Path to the CSV file to import"
    )

    parser.add_argument(
        "--actor-id",
        required=True,
        help="User id recorded as owner and in history"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the CSV without inserting"
    )

    parser.add_argument(
        "--error-log",
        default="import_errors.json",
        help="Where to write row errors as JSON (default: import_errors.json)"
    )

    args = parser.parse_args()
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING").upper())

    try:
        result = import_csv(args.csv_path, args.actor_id, dry_run=args.dry_run)
        print_summary(result, args.dry_run)
        save_error_log(result, args.error_log)
        return 0 if result.success else 1

    except (FileNotFoundError, ValueError, BatchLimitExceeded) as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        return 1

    except StorageError as e:
        print(f"\nERROR: import failed, nothing was inserted: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\n\nImport interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
