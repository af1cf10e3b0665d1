import argparse
import asyncio
import logging
import sys
from pathlib import Path

from gtfs_audit.data.config import get_config
from gtfs_audit.data.database import get_db
from gtfs_audit.errors.storage import ErrorStorage
from gtfs_audit.validators.base import ValidationResult


async def run_ingest(gtfs_path: Path, db_path: Path) -> None:
    """Run feed ingestion."""
    from gtfs_audit.data.feed_loader import FeedLoader

    loader = FeedLoader(db_path)
    row_counts = await loader.ingest(gtfs_path)

    print("\nIngestion complete. Row counts:")
    for table, count in row_counts.items():
        print(f"  {table}: {count:,}")


async def run_validate(db_path: Path, namespace: str) -> ValidationResult:
    """Validate an ingested feed and print a summary of the stored errors."""
    from gtfs_audit.validators.runner import validate_feed

    config = get_config()
    async with get_db(db_path, namespace) as db:
        result = await validate_feed(
            db,
            namespace,
            batch_size=config.error_batch_size,
            progress_interval=config.progress_interval,
        )
        summaries = [] if result.fatal_exception else await ErrorStorage.summarize(db, namespace)

    print(f"\nValidation {'passed' if result.passed else 'failed'} "
          f"in {result.validation_time_millis:,} ms")
    print(f"  Trips validated: {result.trips_validated:,}")
    print(f"  Errors stored: {result.error_count:,}")
    for priority, count in sorted(result.priority_counts.items(), key=lambda item: item[0].value):
        print(f"    {priority.value}: {count:,}")
    if result.failed_validators:
        print(f"  Failed validators: {', '.join(result.failed_validators)}")
    if result.fatal_exception:
        print(f"  Aborted: {result.fatal_exception}")
    if summaries:
        print("\nErrors by type:")
        for summary in summaries:
            priority = summary.priority.value if summary.priority else "?"
            print(f"  {summary.error_type} ({priority}): {summary.count:,}")
    return result


def main() -> None:
    config = get_config()
    parser = argparse.ArgumentParser(
        prog="gtfs-audit",
        description="Validate GTFS and GTFS-Flex feeds and infer trip patterns",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # ingest command
    ingest_parser = subparsers.add_parser(
        "ingest",
        help="Ingest a GTFS feed into a SQLite database",
    )
    ingest_parser.add_argument(
        "gtfs_path",
        type=Path,
        help="Path to GTFS directory or ZIP file",
    )
    ingest_parser.add_argument(
        "--db",
        type=Path,
        default=Path(config.db_path),
        help="SQLite database path (default: data/gtfs.db or GTFS_AUDIT_DB_PATH env var)",
    )

    # validate command
    validate_parser = subparsers.add_parser(
        "validate",
        help="Validate an ingested feed and build its patterns",
    )
    validate_parser.add_argument(
        "--db",
        type=Path,
        default=Path(config.db_path),
        help="SQLite database path (default: data/gtfs.db or GTFS_AUDIT_DB_PATH env var)",
    )
    validate_parser.add_argument(
        "--namespace",
        default=config.namespace,
        help="Attach the database under this alias instead of opening it as main",
    )

    args = parser.parse_args()

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "ingest":
        asyncio.run(run_ingest(args.gtfs_path, args.db))
    else:
        result = asyncio.run(run_validate(args.db, args.namespace))
        if result.fatal_exception:
            sys.exit(1)


if __name__ == "__main__":
    main()
