"""Redis-based status sink.

Broadcasts status updates over Redis pub/sub so observers in other
processes can follow a run, and keeps the latest status of every run in
a hash for polling clients.

Data Structures:
- workflow.status.updated (CHANNEL): JSON status on every transition
- pyorchestra:status:{instance_id} (HASH): latest JSON status plus state

Design: Adapter Pattern
Implements StatusSink for Redis, adapting pub/sub and hashes to the
StatusSink interface.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

try:
    import redis.asyncio as redis
    from redis.exceptions import RedisError
except ImportError:
    raise ImportError("redis-py is required for RedisStatusSink. Install with: pip install redis")

from pyorchestra.models.tracking import WorkflowStatus
from pyorchestra.sinks.base import SinkError, StatusSink


class RedisStatusSink(StatusSink):
    """Redis status sink using connection pooling.

    All dependencies (Redis connection) passed explicitly.

    Usage:
        sink = RedisStatusSink("redis://localhost:6379")
        await sink.connect()

        engine = WorkflowEngine(executor).with_status_sink(sink)
        ...
        latest = await sink.get_latest(instance_id)
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        max_connections: int = 16,
        status_ttl_seconds: int | None = None,
        client: redis.Redis | None = None,
    ):
        """Initialize the sink (connection not opened yet).

        Args:
            redis_url: Redis connection URL
            max_connections: Maximum pool size
            status_ttl_seconds: Expire the latest-status hash after this long; None keeps it
            client: Pre-built client; connect() then does nothing
        """
        self._redis_url = redis_url
        self._max_connections = max_connections
        self._status_ttl = status_ttl_seconds
        self._redis: redis.Redis | None = client

    def __repr__(self) -> str:
        return f"RedisStatusSink({self._redis_url})"

    async def connect(self) -> None:
        """Establish Redis connection pool."""
        if self._redis is not None:
            return
        self._redis = redis.from_url(
            self._redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=self._max_connections,
        )

    async def close(self) -> None:
        """Close Redis connection pool."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    def _check_connected(self) -> None:
        """Ensure connection established.

        Raises immediately if not connected.
        """
        if self._redis is None:
            raise SinkError("Not connected. Call connect() first.")

    @staticmethod
    def _status_key(instance_id: str) -> str:
        """Build Redis key for the latest status of a run."""
        return f"pyorchestra:status:{instance_id}"

    async def publish(self, topic: str, payload: WorkflowStatus) -> None:
        """Store the latest status, then broadcast it on ``topic``."""
        self._check_connected()

        body = json.dumps(payload.to_dict())
        key = self._status_key(payload.instance_id)
        try:
            await self._redis.hset(
                key,
                mapping={
                    "workflow_id": payload.workflow_id,
                    "state": payload.state.value,
                    "payload": body,
                    "updated_at": datetime.now(UTC).isoformat(),
                },
            )
            if self._status_ttl is not None:
                await self._redis.expire(key, self._status_ttl)
            await self._redis.publish(topic, body)
        except RedisError as e:
            raise SinkError(f"Failed to publish status for {payload.instance_id}: {e}") from e

    async def get_latest(self, instance_id: str) -> dict[str, Any] | None:
        """Latest status published for a run, as the dict produced by to_dict()."""
        self._check_connected()

        try:
            raw = await self._redis.hget(self._status_key(instance_id), "payload")
        except RedisError as e:
            raise SinkError(f"Failed to read status for {instance_id}: {e}") from e

        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)
