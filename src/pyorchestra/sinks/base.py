"""
StatusSink - Abstract interface for status broadcast/persistence backends.

Design Pattern: Adapter Pattern
StatusSink defines the target interface that every sink adapter
implements. Redis, SQLite and in-memory backends adapt to it, and the
engine only ever sees this abstraction.

The engine calls publish() in a fire-and-forget manner: a slow or
failing sink never holds up a step, and failures surface only in the
log. Adapters should still raise SinkError rather than a backend
exception so the log line stays meaningful.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pyorchestra.errors import OrchestraError
from pyorchestra.models.tracking import WorkflowStatus

STATUS_TOPIC = "workflow.status.updated"
"""Topic every status update is published on."""


class SinkError(OrchestraError):
    """
    Status sink operation failed.

    Custom exception with context, not generic Exception.
    """

    pass


class StatusSink(ABC):
    """
    Abstract destination for workflow status updates.

    Payloads are snapshots. A sink may keep them as-is without copying;
    the engine never mutates a payload after handing it over.
    """

    @abstractmethod
    async def publish(self, topic: str, payload: WorkflowStatus) -> None:
        """
        Deliver one status update.

        Args:
            topic: Channel name, normally STATUS_TOPIC
            payload: Snapshot of the run's status at the time of the change

        Raises:
            SinkError: If the update could not be delivered
        """
        pass

    async def close(self) -> None:
        """Release backend resources. Default: nothing to release."""
        return None
