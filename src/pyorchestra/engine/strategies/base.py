"""
Execution strategy base and the per-run state strategies share.

Design Pattern: Strategy Pattern
Each WorkflowType maps to one ExecutionStrategy. The engine owns the run
lifecycle (tracker, token, timeout, final result) and hands the strategy
a RunState; the strategy decides only which step runs when.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from pyorchestra.conditions.evaluator import ConditionEvaluator
from pyorchestra.engine.cancellation import CancellationToken
from pyorchestra.engine.runner import StepOutcome, StepRunner
from pyorchestra.engine.tracker import StatusTracker
from pyorchestra.models.context import ExecutionContext
from pyorchestra.models.result import ActionResult, WorkflowError
from pyorchestra.models.workflow import ErrorHandlingMode, StepDefinition, WorkflowDefinition


@dataclass
class RunState:
    """Everything a strategy needs for one run.

    ``step_results`` and ``errors`` survive an aborted strategy, so a
    cancelled or timed-out run still reports what finished before the
    abort.
    """

    workflow: WorkflowDefinition
    context: ExecutionContext
    tracker: StatusTracker
    runner: StepRunner
    cancellation: CancellationToken
    evaluator: ConditionEvaluator
    step_results: dict[str, ActionResult] = field(default_factory=dict)
    errors: list[WorkflowError] = field(default_factory=list)

    @property
    def mode(self) -> ErrorHandlingMode:
        return self.workflow.error_handling_mode

    def record(self, outcome: StepOutcome) -> None:
        """Store an outcome and report it to the tracker."""
        self.step_results[outcome.step.id] = outcome.result
        if outcome.error is not None:
            self.errors.append(outcome.error)
        self.tracker.step_finished(outcome.step, outcome.result)

    def stops_on_critical(self, step: StepDefinition) -> bool:
        return step.is_critical and self.mode == ErrorHandlingMode.STOP_WORKFLOW

    def tolerates_failure_of(self, step: StepDefinition) -> bool:
        """True if the run may carry on past a failure of ``step``."""
        return step.continue_on_failure or self.mode == ErrorHandlingMode.IGNORE_ERRORS


@dataclass(frozen=True)
class StrategyOutcome:
    """How a strategy that ran to the end judged the run."""

    success: bool
    message: str


class ExecutionStrategy(ABC):
    """Drives the steps of one workflow run."""

    @abstractmethod
    async def execute(self, run: RunState) -> StrategyOutcome:
        """
        Run the workflow's steps.

        Raises:
            WorkflowCancelledError: If the run's token fires
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
