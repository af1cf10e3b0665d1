"""GTFS feed loader for ingesting GTFS and GTFS-Flex data into SQLite.

Every row keeps the line it came from in ``csv_line`` so that validation
errors can point back at the source file.
"""

import csv
import io
import json
import logging
import zipfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TextIO

import aiosqlite

from gtfs_audit.errors.storage import ErrorStorage

logger = logging.getLogger(__name__)

# Column kinds. "time" columns hold HH:MM:SS in the file and seconds in the database.
TEXT = "TEXT"
INTEGER = "INTEGER"
REAL = "REAL"
TIME = "TIME"

# Table definitions: table_name -> (filename, [(column, kind), ...])
TABLE_DEFINITIONS: dict[str, tuple[str, list[tuple[str, str]]]] = {
    "routes": (
        "routes.txt",
        [
            ("route_id", TEXT),
            ("agency_id", TEXT),
            ("route_short_name", TEXT),
            ("route_long_name", TEXT),
            ("route_type", INTEGER),
            ("route_color", TEXT),
            ("route_text_color", TEXT),
            ("continuous_pickup", INTEGER),
            ("continuous_drop_off", INTEGER),
        ],
    ),
    "stops": (
        "stops.txt",
        [
            ("stop_id", TEXT),
            ("stop_code", TEXT),
            ("stop_name", TEXT),
            ("stop_lat", REAL),
            ("stop_lon", REAL),
            ("zone_id", TEXT),
            ("location_type", INTEGER),
            ("parent_station", TEXT),
            ("wheelchair_boarding", INTEGER),
        ],
    ),
    "trips": (
        "trips.txt",
        [
            ("trip_id", TEXT),
            ("route_id", TEXT),
            ("service_id", TEXT),
            ("trip_headsign", TEXT),
            ("direction_id", INTEGER),
            ("block_id", TEXT),
            ("shape_id", TEXT),
            ("wheelchair_accessible", INTEGER),
            ("pattern_id", TEXT),
        ],
    ),
    "stop_times": (
        "stop_times.txt",
        [
            ("trip_id", TEXT),
            ("stop_sequence", INTEGER),
            ("arrival_time", TIME),
            ("departure_time", TIME),
            ("stop_id", TEXT),
            ("location_group_id", TEXT),
            ("location_id", TEXT),
            ("stop_headsign", TEXT),
            ("pickup_type", INTEGER),
            ("drop_off_type", INTEGER),
            ("continuous_pickup", INTEGER),
            ("continuous_drop_off", INTEGER),
            ("shape_dist_traveled", REAL),
            ("timepoint", INTEGER),
            ("pickup_booking_rule_id", TEXT),
            ("drop_off_booking_rule_id", TEXT),
            ("start_pickup_drop_off_window", TIME),
            ("end_pickup_drop_off_window", TIME),
        ],
    ),
    "locations": (
        "locations.geojson",
        [
            ("location_id", TEXT),
            ("stop_name", TEXT),
            ("stop_desc", TEXT),
            ("zone_id", TEXT),
            ("stop_url", TEXT),
        ],
    ),
    "location_groups": (
        "location_groups.txt",
        [
            ("location_group_id", TEXT),
            ("location_group_name", TEXT),
        ],
    ),
    "location_group_stops": (
        "location_group_stops.txt",
        [
            ("location_group_id", TEXT),
            ("stop_id", TEXT),
        ],
    ),
    "booking_rules": (
        "booking_rules.txt",
        [
            ("booking_rule_id", TEXT),
            ("booking_type", INTEGER),
            ("prior_notice_duration_min", INTEGER),
            ("prior_notice_duration_max", INTEGER),
            ("prior_notice_last_day", INTEGER),
            ("prior_notice_last_time", TEXT),
            ("prior_notice_start_day", INTEGER),
            ("prior_notice_start_time", TEXT),
            ("prior_notice_service_id", TEXT),
            ("message", TEXT),
            ("pickup_message", TEXT),
            ("drop_off_message", TEXT),
            ("phone_number", TEXT),
            ("info_url", TEXT),
            ("booking_url", TEXT),
        ],
    ),
    "fare_rules": (
        "fare_rules.txt",
        [
            ("fare_id", TEXT),
            ("route_id", TEXT),
            ("origin_id", TEXT),
            ("destination_id", TEXT),
            ("contains_id", TEXT),
        ],
    ),
    "patterns": (
        "patterns.txt",
        [
            ("pattern_id", TEXT),
            ("route_id", TEXT),
            ("name", TEXT),
            ("direction_id", INTEGER),
            ("shape_id", TEXT),
        ],
    ),
}

# Columns that must be present for a row to be inserted.
REQUIRED_COLUMNS: dict[str, list[str]] = {
    "routes": ["route_id"],
    "stops": ["stop_id"],
    "trips": ["trip_id", "route_id"],
    "stop_times": ["trip_id", "stop_sequence"],
    "locations": ["location_id"],
    "location_groups": ["location_group_id"],
    "location_group_stops": ["location_group_id"],
    "booking_rules": ["booking_rule_id"],
    "fare_rules": ["fare_id"],
    "patterns": ["pattern_id"],
}

INDEX_SQL = """
CREATE INDEX idx_stops_parent ON stops(parent_station);
CREATE INDEX idx_trips_route ON trips(route_id);
CREATE INDEX idx_stop_times_trip ON stop_times(trip_id, stop_sequence);
CREATE INDEX idx_stop_times_stop ON stop_times(stop_id);
CREATE INDEX idx_stop_times_location ON stop_times(location_id);
CREATE INDEX idx_stop_times_location_group ON stop_times(location_group_id);
"""

# Chunk size for bulk inserts
CHUNK_SIZE = 10000


def build_schema_sql() -> str:
    """Build CREATE TABLE statements for every feed table."""
    statements = []
    for table_name, (_, columns) in TABLE_DEFINITIONS.items():
        column_sql = ",\n    ".join(
            f"{name} {INTEGER if kind == TIME else kind}" for name, kind in columns
        )
        statements.append(
            f"CREATE TABLE {table_name} (\n    csv_line INTEGER,\n    {column_sql}\n);"
        )
    return "\n".join(statements)


def parse_time(value: str) -> int:
    """Convert a GTFS HH:MM:SS time (hours may exceed 24) to seconds after midnight.

    Raises:
        ValueError: If the value is not a valid time.
    """
    parts = value.strip().split(":")
    if len(parts) != 3:
        raise ValueError(f"Invalid GTFS time format: {value}")
    hours, minutes, seconds = (int(part) for part in parts)
    if minutes > 59 or seconds > 59 or min(hours, minutes, seconds) < 0:
        raise ValueError(f"Invalid GTFS time format: {value}")
    return hours * 3600 + minutes * 60 + seconds


class FeedLoader:
    """Loader for ingesting GTFS and GTFS-Flex feeds into SQLite."""

    def __init__(self, db_path: Path):
        """Initialize the loader.

        Args:
            db_path: Path where the SQLite database will be created.
        """
        self.db_path = Path(db_path)
        self._unparseable_values = 0

    async def ingest(self, gtfs_path: Path) -> dict[str, int]:
        """Ingest a feed from a directory or ZIP file into SQLite.

        Uses atomic swap: loads into temp DB, then replaces the target DB.
        Empty error tables are created so that validation can reconnect to them.

        Args:
            gtfs_path: Path to GTFS directory or ZIP file.

        Returns:
            Dictionary with row counts per table.

        Raises:
            FileNotFoundError: If GTFS path doesn't exist.
            ValueError: If required columns or tables are missing.
        """
        gtfs_path = Path(gtfs_path)
        if not gtfs_path.exists():
            raise FileNotFoundError(f"GTFS path not found: {gtfs_path}")

        # Ensure parent directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        temp_db = self.db_path.with_suffix(".tmp.db")

        try:
            # Remove temp db if it exists from a previous failed run
            temp_db.unlink(missing_ok=True)

            async with aiosqlite.connect(temp_db) as db:
                await db.execute("PRAGMA synchronous=OFF")
                await db.execute("PRAGMA cache_size=10000")

                await self._create_schema(db)
                row_counts = await self._load_all_tables(db, gtfs_path)
                await self._create_indexes(db)
                await self._verify_integrity(db)
                storage = await ErrorStorage.open(db, create_tables=True)
                await storage.finish()

            # atomic swap
            if self.db_path.exists():
                self.db_path.unlink()
            temp_db.rename(self.db_path)

            if self._unparseable_values:
                logger.warning(f"Loaded {self._unparseable_values:,} unparseable values as NULL")
            logger.info(f"Feed ingestion complete: {self.db_path}")
            return row_counts

        except Exception:
            temp_db.unlink(missing_ok=True)
            raise

    async def _create_schema(self, db: aiosqlite.Connection) -> None:
        """Create database schema (tables without indexes)."""
        await db.executescript(build_schema_sql())
        await db.commit()

    async def _create_indexes(self, db: aiosqlite.Connection) -> None:
        """Create indexes after bulk loading."""
        logger.info("Creating indexes...")
        await db.executescript(INDEX_SQL)
        await db.commit()

    async def _load_all_tables(self, db: aiosqlite.Connection, gtfs_path: Path) -> dict[str, int]:
        """Load all feed tables from directory or ZIP."""
        row_counts: dict[str, int] = {}
        zf = zipfile.ZipFile(gtfs_path, "r") if gtfs_path.suffix == ".zip" else None
        try:
            for table_name, (filename, columns) in TABLE_DEFINITIONS.items():
                with self._open_member(gtfs_path, zf, filename) as f:
                    if f is None:
                        logger.warning(f"Optional file {filename} not found")
                        row_counts[table_name] = 0
                        continue
                    if filename.endswith(".geojson"):
                        rows = self._read_geojson(f, columns)
                    else:
                        rows = self._read_csv(f, table_name, columns, filename)
                    row_counts[table_name] = await self._insert_rows(
                        db, table_name, columns, rows, filename
                    )
        finally:
            if zf is not None:
                zf.close()
        return row_counts

    @contextmanager
    def _open_member(
        self, gtfs_path: Path, zf: zipfile.ZipFile | None, filename: str
    ) -> Iterator[TextIO | None]:
        """Open one feed file as text, or yield None if the feed does not have it."""
        if zf is not None:
            if filename not in zf.namelist():
                yield None
                return
            with zf.open(filename) as raw:
                with io.TextIOWrapper(raw, encoding="utf-8-sig", newline="") as f:
                    yield f
            return
        path = gtfs_path / filename
        if not path.exists():
            yield None
            return
        with open(path, encoding="utf-8-sig", newline="") as f:
            yield f

    async def _insert_rows(
        self,
        db: aiosqlite.Connection,
        table_name: str,
        columns: list[tuple[str, str]],
        rows: Iterator[tuple[Any, ...]],
        filename: str,
    ) -> int:
        """Insert rows (csv_line first, then columns) in chunks."""
        logger.info(f"Loading {table_name} from {filename}...")

        names = ["csv_line"] + [name for name, _ in columns]
        placeholders = ",".join(["?"] * len(names))
        insert_sql = f"INSERT INTO {table_name} ({','.join(names)}) VALUES ({placeholders})"

        total_rows = 0
        chunk: list[tuple[Any, ...]] = []
        for values in rows:
            chunk.append(values)
            if len(chunk) >= CHUNK_SIZE:
                await db.executemany(insert_sql, chunk)
                total_rows += len(chunk)
                chunk = []

        if chunk:
            await db.executemany(insert_sql, chunk)
            total_rows += len(chunk)

        await db.commit()
        logger.info(f"  Loaded {total_rows:,} rows into {table_name}")
        return total_rows

    def _read_csv(
        self,
        f: TextIO,
        table_name: str,
        columns: list[tuple[str, str]],
        filename: str,
    ) -> Iterator[tuple[Any, ...]]:
        """Yield typed rows from a CSV feed file, skipping rows without required values."""
        reader = csv.reader(f)
        required = REQUIRED_COLUMNS.get(table_name, [])
        header_index = self._build_header_index(reader, columns, required, filename)
        skipped_rows = 0
        for row in reader:
            row_dict = self._row_from_index(row, header_index)
            if not self._has_required_values(row_dict, required):
                skipped_rows += 1
                continue
            values = tuple(self._convert_value(row_dict.get(name), kind) for name, kind in columns)
            yield (reader.line_num, *values)
        if skipped_rows:
            logger.info(f"  Skipped {skipped_rows:,} invalid rows in {filename}")

    def _read_geojson(self, f: TextIO, columns: list[tuple[str, str]]) -> Iterator[tuple[Any, ...]]:
        """Yield location rows from a locations.geojson FeatureCollection.

        The feature's position in the collection (1-based) stands in for a line number.
        """
        try:
            collection = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"locations.geojson is not valid JSON: {e}") from e
        for index, feature in enumerate(collection.get("features", []), start=1):
            location_id = feature.get("id")
            if location_id is None:
                continue
            properties = feature.get("properties") or {}
            values = [str(location_id)]
            for name, kind in columns[1:]:
                raw = properties.get(name)
                values.append(self._convert_value(None if raw is None else str(raw), kind))
            yield (index, *values)

    def _convert_value(self, value: str | None, kind: str = TEXT) -> Any:
        """Convert CSV value to appropriate Python type."""
        if value is None or value.strip() == "":
            return None
        value = value.strip()
        try:
            if kind == INTEGER:
                return int(value)
            if kind == REAL:
                return float(value)
            if kind == TIME:
                return parse_time(value)
        except ValueError:
            self._unparseable_values += 1
            return None
        return value

    def _has_required_values(self, row: dict[str, str | None], required: list[str]) -> bool:
        """Return True if all required columns have non-empty values."""
        for col in required:
            value = row.get(col)
            if value is None or value.strip() == "":
                return False
        return True

    def _build_header_index(
        self,
        reader: Any,
        columns: list[tuple[str, str]],
        required: list[str],
        filename: str,
    ) -> dict[str, int]:
        """Build header index mapping for a CSV reader."""
        header = next(reader, None)
        if header is None:
            raise ValueError(f"{filename} is empty")
        expected = {name for name, _ in columns}
        header_index: dict[str, int] = {}
        for idx, name in enumerate(header):
            cleaned = name.strip()
            if cleaned in expected and cleaned not in header_index:
                header_index[cleaned] = idx
        missing = [col for col in required if col not in header_index]
        if missing:
            raise ValueError(f"{filename} missing columns: {', '.join(missing)}")
        return header_index

    def _row_from_index(self, row: list[str], header_index: dict[str, int]) -> dict[str, str]:
        """Map a CSV row list to a dict by header index."""
        row_dict: dict[str, str] = {}
        for col, idx in header_index.items():
            row_dict[col] = row[idx] if idx < len(row) else ""
        return row_dict

    async def _verify_integrity(self, db: aiosqlite.Connection) -> None:
        """Verify database integrity after loading."""
        logger.info("Verifying database integrity...")

        for table_name in ("routes", "trips"):
            async with db.execute(f"SELECT COUNT(*) FROM {table_name}") as cursor:
                row = await cursor.fetchone()
                if row is None or row[0] == 0:
                    raise ValueError(f"No {table_name} loaded - check GTFS data")

        logger.info("Database integrity verified")


async def get_table_counts(db_path: Path) -> dict[str, int]:
    """Get row counts for all feed tables in the database.

    Args:
        db_path: Path to the SQLite database.

    Returns:
        Dictionary mapping table names to row counts.
    """
    counts: dict[str, int] = {}
    async with aiosqlite.connect(db_path) as db:
        for table_name in TABLE_DEFINITIONS:
            async with db.execute(f"SELECT COUNT(*) FROM {table_name}") as cursor:
                row = await cursor.fetchone()
                counts[table_name] = row[0] if row else 0
    return counts
