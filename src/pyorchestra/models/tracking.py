"""
Run-time status records.

WorkflowStatus and StepStatus are the mutable side of a run. Only the
engine (through StatusTracker) writes to them. Everything that leaves the
engine, whether returned to callers or published to sinks, is a deep copy
made with ``snapshot()``.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pyorchestra.models.status import StepState, WorkflowState


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class StepStatus:
    """Progress of a single step within one run."""

    step_id: str
    name: str
    state: StepState = StepState.NOT_STARTED
    start_time: datetime | None = None
    end_time: datetime | None = None
    error_message: str | None = None
    attempt_number: int = 0
    """Attempts made so far. 0 until the step is first dispatched."""

    @property
    def duration_ms(self) -> int | None:
        """Elapsed time in milliseconds, or None until both ends are known."""
        if self.start_time is None or self.end_time is None:
            return None
        return int((self.end_time - self.start_time).total_seconds() * 1000)

    def to_dict(self) -> dict[str, Any]:
        return {
            "step_id": self.step_id,
            "name": self.name,
            "state": self.state.value,
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "duration_ms": self.duration_ms,
            "error_message": self.error_message,
            "attempt_number": self.attempt_number,
        }


@dataclass
class WorkflowStatus:
    """Progress of one workflow run."""

    workflow_id: str
    instance_id: str
    name: str
    state: WorkflowState = WorkflowState.NOT_STARTED
    start_time: datetime | None = None
    end_time: datetime | None = None
    total_steps: int = 0
    completed_steps: int = 0
    failed_steps: int = 0
    progress_percentage: int = 0
    current_step_id: str | None = None
    current_step_name: str | None = None
    error_message: str | None = None
    step_statuses: dict[str, StepStatus] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def duration_ms(self) -> int | None:
        if self.start_time is None or self.end_time is None:
            return None
        return int((self.end_time - self.start_time).total_seconds() * 1000)

    def steps_in(self, state: StepState) -> list[str]:
        """Ids of steps currently in ``state``, in insertion order."""
        return [step_id for step_id, status in self.step_statuses.items() if status.state == state]

    def snapshot(self) -> WorkflowStatus:
        """Deep copy safe to hand outside the engine."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflow_id": self.workflow_id,
            "instance_id": self.instance_id,
            "name": self.name,
            "state": self.state.value,
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "duration_ms": self.duration_ms,
            "total_steps": self.total_steps,
            "completed_steps": self.completed_steps,
            "failed_steps": self.failed_steps,
            "progress_percentage": self.progress_percentage,
            "current_step_id": self.current_step_id,
            "current_step_name": self.current_step_name,
            "error_message": self.error_message,
            "step_statuses": {k: v.to_dict() for k, v in self.step_statuses.items()},
        }

    def __repr__(self) -> str:
        return (
            f"WorkflowStatus(instance_id={self.instance_id!r}, state={self.state}, "
            f"progress={self.progress_percentage}%, "
            f"completed={self.completed_steps}/{self.total_steps}, failed={self.failed_steps})"
        )
