"""
StatusTracker - the single writer of a run's WorkflowStatus.

Strategies never touch WorkflowStatus directly. They report transitions
here, and the tracker keeps the counters consistent, clamps progress so
it never goes backwards, and publishes a snapshot after every change.

Once the run reaches a terminal state the status is frozen: further
step transitions and terminal writes are ignored. That is what keeps an
advisory CANCELLED (set by cancel_workflow) from being overwritten by
steps that finish while the run is winding down.

Steps still RUNNING when the terminal state is recorded are marked
FAILED with the run's error message, since they will never report back.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from pyorchestra.engine.publisher import StatusPublisher
from pyorchestra.models.result import ActionResult
from pyorchestra.models.status import StepState, WorkflowState
from pyorchestra.models.tracking import StepStatus, WorkflowStatus
from pyorchestra.models.workflow import StepDefinition, WorkflowDefinition

logger = logging.getLogger(__name__)


class StatusTracker:
    def __init__(
        self,
        workflow: WorkflowDefinition,
        instance_id: str,
        publisher: StatusPublisher | None = None,
    ):
        self._publisher = publisher or StatusPublisher()
        self.status = WorkflowStatus(
            workflow_id=workflow.id,
            instance_id=instance_id,
            name=workflow.name,
            total_steps=len(workflow.steps),
        )
        for step in workflow.steps:
            self.status.step_statuses.setdefault(step.id, StepStatus(step_id=step.id, name=step.name))

    @property
    def is_terminal(self) -> bool:
        return self.status.state.is_terminal

    def snapshot(self) -> WorkflowStatus:
        return self.status.snapshot()

    def _publish(self) -> None:
        self._publisher.publish(self.status)

    def _now(self) -> datetime:
        return datetime.now(UTC)

    def _update_progress(self) -> None:
        total = self.status.total_steps
        if total <= 0:
            return
        computed = int(self.status.completed_steps / total * 100)
        self.status.progress_percentage = max(self.status.progress_percentage, min(computed, 100))

    # ------------------------------------------------------------------
    # Run-level transitions
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self.is_terminal:
            return
        self.status.state = WorkflowState.RUNNING
        self.status.start_time = self._now()
        self._publish()

    def finish(self, state: WorkflowState, error_message: str | None = None) -> bool:
        """Record the terminal state. Returns False if one was already recorded."""
        if not state.is_terminal:
            raise ValueError(f"finish() requires a terminal state, got {state}")
        if self.is_terminal:
            logger.debug(
                f"Run {self.status.instance_id} already {self.status.state}; ignoring {state}"
            )
            return False

        self.status.state = state
        self.status.end_time = self._now()
        if self.status.start_time is None:
            self.status.start_time = self.status.end_time
        self._interrupt_running_steps(error_message or f"Workflow ended {state}")
        if state != WorkflowState.COMPLETED:
            self.status.error_message = error_message
        self._publish()
        return True

    def _interrupt_running_steps(self, reason: str) -> None:
        # Steps still in flight when the run ends never report back.
        for step_status in self.status.step_statuses.values():
            if step_status.state == StepState.RUNNING:
                step_status.state = StepState.FAILED
                step_status.end_time = self.status.end_time
                step_status.error_message = reason

    # ------------------------------------------------------------------
    # Step-level transitions
    # ------------------------------------------------------------------

    def mark_waiting(self, step_ids: list[str]) -> None:
        if self.is_terminal:
            return
        for step_id in step_ids:
            self.status.step_statuses[step_id].state = StepState.WAITING
        self._publish()

    def step_running(self, step: StepDefinition) -> None:
        if self.is_terminal:
            return
        step_status = self.status.step_statuses[step.id]
        step_status.state = StepState.RUNNING
        step_status.start_time = self._now()
        step_status.attempt_number = max(step_status.attempt_number, 1)
        self.status.current_step_id = step.id
        self.status.current_step_name = step.name
        logger.debug(f"Run {self.status.instance_id}: dispatching step '{step.id}'")
        self._publish()

    def step_retrying(self, step: StepDefinition, attempt: int) -> None:
        if self.is_terminal:
            return
        self.status.step_statuses[step.id].attempt_number = attempt
        self._publish()

    def step_finished(self, step: StepDefinition, result: ActionResult) -> None:
        if self.is_terminal:
            return
        step_status = self.status.step_statuses[step.id]
        step_status.end_time = self._now()
        if step_status.start_time is None:
            step_status.start_time = step_status.end_time

        if result.success:
            step_status.state = StepState.COMPLETED
        else:
            step_status.state = StepState.FAILED
            step_status.error_message = result.message
            self.status.failed_steps += 1

        self.status.completed_steps += 1
        self._update_progress()
        self._publish()

    def step_skipped(self, step: StepDefinition, reason: str, *, counts_as_completed: bool) -> None:
        """Mark a step SKIPPED.

        ``counts_as_completed`` is True only for the conditional strategy,
        where a skipped branch still advances completed_steps and progress.
        """
        if self.is_terminal:
            return
        step_status = self.status.step_statuses[step.id]
        if step_status.state.is_terminal:
            return
        step_status.state = StepState.SKIPPED
        step_status.error_message = reason
        if counts_as_completed:
            self.status.completed_steps += 1
            self._update_progress()
        logger.debug(f"Run {self.status.instance_id}: skipped step '{step.id}' ({reason})")
        self._publish()
