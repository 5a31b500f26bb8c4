"""In-memory status sink.

Design Pattern: Adapter Pattern
InMemoryStatusSink adapts in-memory lists and queues to the StatusSink
interface.

Instance is immediately usable after __init__.
"""

from __future__ import annotations

import asyncio

from pyorchestra.models.tracking import WorkflowStatus
from pyorchestra.sinks.base import SinkError, StatusSink


class InMemoryStatusSink(StatusSink):
    """In-memory sink for tests and single-process observers.

    Keeps every publication and fans updates out to subscriber queues.

    Usage:
        sink = InMemoryStatusSink()
        updates = sink.subscribe(STATUS_TOPIC)
        engine = WorkflowEngine(executor).with_status_sink(sink)

        await engine.execute_workflow(workflow)
        status = await updates.get()
    """

    def __init__(self, max_queue_size: int = 0):
        # Storage: [(topic, payload)] in publication order
        self._published: list[tuple[str, WorkflowStatus]] = []

        # Subscribers: {topic: [queue]}
        self._subscribers: dict[str, list[asyncio.Queue[WorkflowStatus]]] = {}
        self._max_queue_size = max_queue_size
        self._closed = False

    def __repr__(self) -> str:
        return f"InMemoryStatusSink(published={len(self._published)})"

    async def publish(self, topic: str, payload: WorkflowStatus) -> None:
        if self._closed:
            raise SinkError("InMemoryStatusSink is closed")

        self._published.append((topic, payload))
        for queue in self._subscribers.get(topic, []):
            try:
                queue.put_nowait(payload)
            except asyncio.QueueFull as e:
                raise SinkError(f"Subscriber queue for '{topic}' is full") from e

    def subscribe(self, topic: str) -> asyncio.Queue[WorkflowStatus]:
        """Return a queue that receives every later publication on ``topic``."""
        queue: asyncio.Queue[WorkflowStatus] = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers.setdefault(topic, []).append(queue)
        return queue

    def unsubscribe(self, topic: str, queue: asyncio.Queue[WorkflowStatus]) -> None:
        queues = self._subscribers.get(topic, [])
        if queue in queues:
            queues.remove(queue)

    @property
    def published(self) -> list[tuple[str, WorkflowStatus]]:
        return list(self._published)

    def history(self, instance_id: str) -> list[WorkflowStatus]:
        """Every update published for one run, oldest first."""
        return [payload for _, payload in self._published if payload.instance_id == instance_id]

    def latest(self, instance_id: str) -> WorkflowStatus | None:
        for _, payload in reversed(self._published):
            if payload.instance_id == instance_id:
                return payload
        return None

    def clear(self) -> None:
        self._published.clear()

    async def close(self) -> None:
        self._closed = True
