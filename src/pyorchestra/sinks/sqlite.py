"""SQLite-backed status sink.

Design Pattern: Adapter Pattern
SqliteStatusSink adapts a SQLite database to the StatusSink interface.

Implementation details:
- aiosqlite for async operations
- WAL mode for concurrent reads
- Append-only status_history table, one row per publication
- Index on (instance_id, id) for per-run history queries
"""

from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from pyorchestra.models.tracking import WorkflowStatus
from pyorchestra.sinks.base import SinkError, StatusSink


class SqliteStatusSink(StatusSink):
    """SQLite status history.

    After __init__, the instance is not yet usable. Call connect() first.

    Usage:
        sink = SqliteStatusSink("status.db")
        await sink.connect()
        try:
            engine = WorkflowEngine(executor).with_status_sink(sink)
            ...
            rows = await sink.history(instance_id)
        finally:
            await sink.close()
    """

    def __init__(self, db_path: str):
        """Initialize the sink (connection not opened yet).

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._connection: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()  # Serialize access to shared connection

    @classmethod
    async def in_memory(cls) -> SqliteStatusSink:
        """
        Create an in-memory SQLite sink for testing.

        Returns:
            Connected in-memory sink instance
        """
        instance = cls(":memory:")
        await instance.connect()
        return instance

    def __repr__(self) -> str:
        if self.db_path == ":memory:":
            return "SqliteStatusSink(in-memory)"
        return f"SqliteStatusSink({self.db_path})"

    async def connect(self) -> None:
        """Open database connection and initialize schema.

        Fixed initialization sequence:
        1. Open connection
        2. Enable WAL mode
        3. Create table and index
        """
        if self._connection is not None:
            return

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(
            self.db_path,
            timeout=5.0,
            isolation_level=None,
        )

        # In-memory databases report "memory" and don't support WAL
        cursor = await self._connection.execute("PRAGMA journal_mode=WAL")
        result = await cursor.fetchone()
        await cursor.close()
        if result:
            mode = result[0].upper()
            if mode not in ("WAL", "MEMORY"):
                raise SinkError(f"Failed to enable WAL mode, got: {result[0]}")

        await self._connection.execute("PRAGMA synchronous=NORMAL")
        await self._connection.execute("PRAGMA busy_timeout=5000")

        await self._connection.execute(
            """
            CREATE TABLE IF NOT EXISTS status_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                topic TEXT NOT NULL,
                workflow_id TEXT NOT NULL,
                instance_id TEXT NOT NULL,
                state TEXT NOT NULL,
                progress INTEGER NOT NULL,
                payload TEXT NOT NULL,
                published_at TEXT NOT NULL
            )
            """
        )
        await self._connection.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_status_history_instance
            ON status_history(instance_id, id)
            """
        )
        await self._connection.commit()

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    def _check_connected(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise SinkError("Not connected. Call connect() first.")
        return self._connection

    async def publish(self, topic: str, payload: WorkflowStatus) -> None:
        connection = self._check_connected()

        async with self._lock:
            try:
                await connection.execute(
                    """
                    INSERT INTO status_history
                        (topic, workflow_id, instance_id, state, progress, payload, published_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        topic,
                        payload.workflow_id,
                        payload.instance_id,
                        payload.state.value,
                        payload.progress_percentage,
                        json.dumps(payload.to_dict()),
                        datetime.now(UTC).isoformat(),
                    ),
                )
                await connection.commit()
            except aiosqlite.Error as e:
                raise SinkError(f"Failed to record status for {payload.instance_id}: {e}") from e

    async def history(self, instance_id: str) -> list[dict[str, Any]]:
        """Every recorded update for a run, oldest first."""
        connection = self._check_connected()

        async with self._lock:
            cursor = await connection.execute(
                "SELECT payload FROM status_history WHERE instance_id = ? ORDER BY id",
                (instance_id,),
            )
            rows = await cursor.fetchall()
            await cursor.close()

        return [json.loads(row[0]) for row in rows]

    async def latest(self, instance_id: str) -> dict[str, Any] | None:
        connection = self._check_connected()

        async with self._lock:
            cursor = await connection.execute(
                "SELECT payload FROM status_history WHERE instance_id = ? "
                "ORDER BY id DESC LIMIT 1",
                (instance_id,),
            )
            row = await cursor.fetchone()
            await cursor.close()

        return json.loads(row[0]) if row else None

    async def count(self) -> int:
        connection = self._check_connected()

        async with self._lock:
            cursor = await connection.execute("SELECT COUNT(*) FROM status_history")
            row = await cursor.fetchone()
            await cursor.close()

        return row[0] if row else 0
