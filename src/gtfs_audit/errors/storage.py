"""SQL storage for validation errors.

Errors are written one by one by validators but reach the database in
batches. Error IDs are unique for the lifetime of a namespace, so a storage
reconnecting to existing tables resumes numbering after the highest stored ID.
"""

import logging
from collections import Counter
from typing import Any

import aiosqlite
from pydantic import BaseModel

from gtfs_audit.data.database import qualify
from gtfs_audit.errors.types import ErrorType, Priority
from gtfs_audit.errors.validation_error import ValidationError

logger = logging.getLogger(__name__)

INSERT_BATCH_SIZE = 500


class StorageError(RuntimeError):
    """A failure writing to or reading from error storage. Aborts a run."""


class ErrorSummary(BaseModel):
    """Number of stored errors of one type."""

    error_type: str
    priority: Priority | None
    count: int


class ErrorStorage:
    """Stores validation errors in the ``errors``, ``error_refs`` and ``error_info`` tables.

    Usage:
        storage = await ErrorStorage.open(db, namespace, create_tables=False)
        await storage.store(error)
        await storage.finish()

    Not safe for concurrent use: one storage owns one connection for a run.
    """

    def __init__(
        self,
        connection: aiosqlite.Connection,
        namespace: str = "",
        batch_size: int = INSERT_BATCH_SIZE,
    ):
        """Initialize the storage. Use ``open`` to also prepare the tables.

        Args:
            connection: Connection to the feed database.
            namespace: Namespace (attached database alias) holding the error tables.
            batch_size: Number of errors buffered before a batched write.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._db = connection
        self._errors_table = qualify(namespace, "errors")
        self._refs_table = qualify(namespace, "error_refs")
        self._info_table = qualify(namespace, "error_info")
        self._batch_size = batch_size
        # Next error ID. Must persist across validator runs on the same namespace.
        self._error_count = 0
        self._pending_errors: list[tuple[Any, ...]] = []
        self._pending_refs: list[tuple[Any, ...]] = []
        self._pending_info: list[tuple[Any, ...]] = []
        self._priority_counts: Counter[Priority] = Counter()

    @classmethod
    async def open(
        cls,
        connection: aiosqlite.Connection,
        namespace: str = "",
        create_tables: bool = True,
        batch_size: int = INSERT_BATCH_SIZE,
    ) -> "ErrorStorage":
        """Create a storage, either recreating the error tables or reconnecting to them.

        Args:
            connection: Connection to the feed database.
            namespace: Namespace holding the error tables.
            create_tables: Drop and recreate the tables if True, otherwise resume
                numbering from the existing ``errors`` table.
            batch_size: Number of errors buffered before a batched write.

        Raises:
            StorageError: If the tables cannot be created or read.
        """
        storage = cls(connection, namespace, batch_size)
        if create_tables:
            await storage._create_error_tables()
        else:
            await storage._reconnect_error_tables()
        return storage

    @property
    def count(self) -> int:
        """Number of error IDs issued so far, which is also the next error ID."""
        return self._error_count

    @property
    def priority_counts(self) -> dict[Priority, int]:
        """Errors stored through this instance, by priority."""
        return dict(self._priority_counts)

    async def store(self, error: ValidationError, info: dict[str, str] | None = None) -> int:
        """Buffer an error for insertion and return the ID assigned to it.

        Args:
            error: The error to store.
            info: Optional key/value annotations stored in ``error_info``.

        Raises:
            StorageError: If a batched write fails.
        """
        error_id = self._error_count
        self._pending_errors.append((error_id, error.error_type.code, error.bad_value))
        for ref in error.referenced_entities:
            self._pending_refs.append(
                (error_id, ref.entity_type, ref.line_number, ref.entity_id, ref.sequence_number)
            )
        for key, value in (info or {}).items():
            self._pending_info.append((error_id, key, value))
        self._error_count += 1
        self._priority_counts[error.error_type.priority] += 1

        if len(self._pending_errors) >= self._batch_size:
            await self._flush()
        return error_id

    async def finish(self) -> None:
        """Write any remaining buffered errors and commit the transaction.

        Raises:
            StorageError: If the write or commit fails.
        """
        await self._flush()
        try:
            await self._db.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"Could not commit errors: {e}") from e
        logger.info(f"Error storage finished with {self._error_count:,} error IDs issued")

    async def _flush(self) -> None:
        """Execute the buffered inserts as one batch."""
        if not (self._pending_errors or self._pending_refs or self._pending_info):
            return
        try:
            await self._db.executemany(
                f"INSERT INTO {self._errors_table} VALUES (?, ?, ?)", self._pending_errors
            )
            await self._db.executemany(
                f"INSERT INTO {self._refs_table} VALUES (?, ?, ?, ?, ?)", self._pending_refs
            )
            await self._db.executemany(
                f"INSERT INTO {self._info_table} VALUES (?, ?, ?)", self._pending_info
            )
        except aiosqlite.Error as e:
            raise StorageError(f"Could not write errors: {e}") from e
        logger.debug(f"Flushed {len(self._pending_errors)} errors")
        self._pending_errors = []
        self._pending_refs = []
        self._pending_info = []

    async def _create_error_tables(self) -> None:
        try:
            # Order matters: refs and info point at errors.
            await self._db.execute(f"DROP TABLE IF EXISTS {self._info_table}")
            await self._db.execute(f"DROP TABLE IF EXISTS {self._refs_table}")
            await self._db.execute(f"DROP TABLE IF EXISTS {self._errors_table}")
            await self._db.execute(
                f"CREATE TABLE {self._errors_table} "
                "(error_id INTEGER PRIMARY KEY, type VARCHAR, problems VARCHAR)"
            )
            await self._db.execute(
                f"CREATE TABLE {self._refs_table} "
                "(error_id INTEGER, entity_type VARCHAR, line_number INTEGER, "
                "entity_id VARCHAR, sequence_number INTEGER)"
            )
            await self._db.execute(
                f"CREATE TABLE {self._info_table} (error_id INTEGER, key VARCHAR, value VARCHAR)"
            )
            await self._db.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"Could not create error tables: {e}") from e

    async def _reconnect_error_tables(self) -> None:
        try:
            async with self._db.execute(f"SELECT MAX(error_id) FROM {self._errors_table}") as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(f"Could not connect to errors table: {e}") from e
        max_error_id = row[0] if row else None
        self._error_count = 0 if max_error_id is None else max_error_id + 1
        logger.info(f"Reconnected to errors table, max error ID is {max_error_id}")

    @staticmethod
    async def summarize(connection: aiosqlite.Connection, namespace: str = "") -> list[ErrorSummary]:
        """Count stored errors per type, most frequent first.

        Raises:
            StorageError: If the errors table cannot be read.
        """
        sql = (
            f"SELECT type, COUNT(*) FROM {qualify(namespace, 'errors')} "
            "GROUP BY type ORDER BY COUNT(*) DESC, type"
        )
        try:
            async with connection.execute(sql) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageError(f"Could not read errors table: {e}") from e
        summaries = []
        for code, count in rows:
            priority = ErrorType[code].priority if code in ErrorType.__members__ else None
            summaries.append(ErrorSummary(error_type=code, priority=priority, count=count))
        return summaries
