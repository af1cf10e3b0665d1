"""Tests for the gtfs-audit command line."""

import sys
from pathlib import Path

import aiosqlite
import pytest

from gtfs_audit import __version__
from gtfs_audit.cli import main, run_ingest, run_validate


@pytest.fixture
def small_feed(tmp_path: Path) -> Path:
    """A two-trip feed with one unused stop."""
    gtfs_dir = tmp_path / "gtfs"
    gtfs_dir.mkdir()
    (gtfs_dir / "routes.txt").write_text("route_id,route_short_name\nR1,1\n")
    (gtfs_dir / "stops.txt").write_text(
        "stop_id,stop_name\nA,Alpha\nB,Bravo\nUNUSED,Nowhere\n"
    )
    (gtfs_dir / "trips.txt").write_text(
        "trip_id,route_id,service_id\nT1,R1,WEEKDAY\nT2,R1,WEEKDAY\n"
    )
    (gtfs_dir / "stop_times.txt").write_text(
        "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
        "T1,08:00:00,08:00:00,A,1\n"
        "T1,08:05:00,08:05:00,B,2\n"
        "T2,09:00:00,09:00:00,A,1\n"
        "T2,09:05:00,09:05:00,B,2\n"
    )
    return gtfs_dir


def test_version():
    assert __version__ == "0.1.0"


class TestRunCommands:
    """Tests for the ingest and validate commands."""

    async def test_ingest_then_validate(self, small_feed: Path, tmp_path: Path, capsys) -> None:
        """Test that validating an ingested feed prints a summary and stores patterns."""
        db_path = tmp_path / "gtfs.db"
        await run_ingest(small_feed, db_path)

        result = await run_validate(db_path, "")

        assert result.passed is True
        assert result.trips_validated == 2
        output = capsys.readouterr().out
        assert "Ingestion complete" in output
        assert "Validation passed" in output
        assert "STOP_UNUSED" in output
        async with aiosqlite.connect(db_path) as db:
            async with db.execute("SELECT name FROM patterns") as cursor:
                assert [row[0] for row in await cursor.fetchall()] == [
                    "2 stops from Alpha to Bravo (2 trips)"
                ]

    async def test_validate_in_namespace(self, small_feed: Path, tmp_path: Path) -> None:
        """Test that a feed attached under an alias is validated in place."""
        db_path = tmp_path / "gtfs.db"
        await run_ingest(small_feed, db_path)

        result = await run_validate(db_path, "feed")

        assert result.error_count == 1
        async with aiosqlite.connect(db_path) as db:
            async with db.execute("SELECT type, problems FROM errors") as cursor:
                assert [tuple(row) for row in await cursor.fetchall()] == [
                    ("STOP_UNUSED", "UNUSED")
                ]

    async def test_validate_missing_database(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            await run_validate(tmp_path / "missing.db", "")


class TestMain:
    """Tests for argument parsing."""

    def test_ingest_and_validate(self, small_feed: Path, tmp_path: Path, monkeypatch, capsys):
        db_path = tmp_path / "gtfs.db"

        monkeypatch.setattr(sys, "argv", ["gtfs-audit", "ingest", str(small_feed), "--db", str(db_path)])
        main()
        monkeypatch.setattr(sys, "argv", ["gtfs-audit", "validate", "--db", str(db_path)])
        main()

        assert db_path.exists()
        assert "Validation passed" in capsys.readouterr().out

    def test_command_required(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["gtfs-audit"])

        with pytest.raises(SystemExit):
            main()
