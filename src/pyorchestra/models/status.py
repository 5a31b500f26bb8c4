"""Status enumerations for workflow execution tracking.

Defines lifecycle states for whole workflow runs and for the
individual steps inside a run.
"""

from enum import Enum


class WorkflowState(Enum):
    """State of a single workflow run.

    Lifecycle:
        NOT_STARTED → RUNNING → COMPLETED/FAILED/CANCELLED/TIMED_OUT

    Exactly one terminal state is recorded per run. Once a run is
    terminal its status is no longer mutated by the engine.
    """

    NOT_STARTED = "NOT_STARTED"
    """Run has been created but not yet dispatched to a strategy."""

    RUNNING = "RUNNING"
    """Run is being driven by its execution strategy."""

    COMPLETED = "COMPLETED"
    """Run finished and every recorded step outcome was acceptable."""

    FAILED = "FAILED"
    """Run finished with step failures or an engine-level fault."""

    CANCELLED = "CANCELLED"
    """Run was cancelled through WorkflowEngine.cancel_workflow()."""

    TIMED_OUT = "TIMED_OUT"
    """Run exceeded its wall-clock budget."""

    @property
    def is_terminal(self) -> bool:
        """Check if this state is terminal (no further transitions)."""
        return self in (
            WorkflowState.COMPLETED,
            WorkflowState.FAILED,
            WorkflowState.CANCELLED,
            WorkflowState.TIMED_OUT,
        )

    def __str__(self) -> str:
        return self.value


class StepState(Enum):
    """State of one step within a run.

    Lifecycle:
        NOT_STARTED/WAITING → RUNNING → COMPLETED/FAILED
        NOT_STARTED/WAITING → SKIPPED

    WAITING is used by the parallel strategy for steps that are known to
    the scheduler but have not been admitted to the concurrency window.
    """

    NOT_STARTED = "NOT_STARTED"
    WAITING = "WAITING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"

    @property
    def is_terminal(self) -> bool:
        """Check if the step has finished one way or another."""
        return self in (StepState.COMPLETED, StepState.FAILED, StepState.SKIPPED)

    def __str__(self) -> str:
        return self.value
