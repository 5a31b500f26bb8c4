"""Cooperative cancellation for workflow runs.

One CancellationToken exists per run. Strategies check it between steps,
the step runner races executors against it, and the engine's timeout
timer trips it with CancelReason.TIMEOUT.
"""

from __future__ import annotations

import asyncio
from enum import Enum

from pyorchestra.errors import OrchestraError


class CancelReason(Enum):
    CANCELLED = "CANCELLED"
    """Explicit WorkflowEngine.cancel_workflow() call."""

    TIMEOUT = "TIMEOUT"
    """The run's wall-clock budget elapsed."""

    def __str__(self) -> str:
        return self.value


class WorkflowCancelledError(OrchestraError):
    """Raised inside a run once its token has been cancelled."""

    def __init__(self, reason: CancelReason | None):
        self.reason = reason or CancelReason.CANCELLED
        super().__init__(f"Workflow cancelled ({self.reason})")


class CancellationToken:
    """Cancellation flag with an awaitable side.

    The first call to cancel() wins; its reason is kept and later calls are
    ignored, so a cancel that races the timeout never flips TIMED_OUT into
    CANCELLED or the other way round.

    Usage:
        token = CancellationToken()
        ...
        token.cancel(CancelReason.TIMEOUT)
        token.raise_if_cancelled()  # raises WorkflowCancelledError
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: CancelReason | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> CancelReason | None:
        return self._reason

    def cancel(self, reason: CancelReason = CancelReason.CANCELLED) -> bool:
        """Trip the token. Returns False if it was already cancelled."""
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        return True

    async def wait(self) -> CancelReason | None:
        """Block until the token is cancelled."""
        await self._event.wait()
        return self._reason

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise WorkflowCancelledError(self._reason)

    def __repr__(self) -> str:
        if self.is_cancelled:
            return f"CancellationToken(cancelled, reason={self._reason})"
        return "CancellationToken(active)"
