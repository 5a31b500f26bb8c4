"""Fire-and-forget delivery of status updates to a StatusSink."""

from __future__ import annotations

import asyncio
import logging

from pyorchestra.models.tracking import WorkflowStatus
from pyorchestra.sinks.base import STATUS_TOPIC, StatusSink

logger = logging.getLogger(__name__)


class StatusPublisher:
    """Schedules sink publications without making the caller wait.

    Every publish() takes a snapshot of the status immediately and hands
    it to the sink on a background task, so later mutations never leak
    into an update that is still in flight. Sink failures are logged and
    dropped.
    """

    def __init__(self, sink: StatusSink | None = None, topic: str = STATUS_TOPIC):
        self._sink = sink
        self._topic = topic
        # Hold references so pending publications are not garbage collected
        self._background_tasks: set[asyncio.Task] = set()

    @property
    def sink(self) -> StatusSink | None:
        return self._sink

    @property
    def pending(self) -> int:
        return len(self._background_tasks)

    def publish(self, status: WorkflowStatus) -> None:
        if self._sink is None:
            return

        snapshot = status.snapshot()
        task = asyncio.create_task(self._deliver(snapshot))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _deliver(self, snapshot: WorkflowStatus) -> None:
        try:
            await self._sink.publish(self._topic, snapshot)
        except Exception as e:
            logger.error(
                f"Status sink {type(self._sink).__name__} failed for "
                f"run {snapshot.instance_id} ({snapshot.state}): {e}"
            )

    async def drain(self) -> None:
        """Wait for every publication scheduled so far."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)
