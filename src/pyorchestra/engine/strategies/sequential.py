"""Sequential strategy: one step at a time, in declaration order."""

from __future__ import annotations

import logging

from pyorchestra.engine.strategies.base import ExecutionStrategy, RunState, StrategyOutcome
from pyorchestra.models.workflow import StepDefinition

logger = logging.getLogger(__name__)


class SequentialStrategy(ExecutionStrategy):
    """
    Runs every step in declaration order.

    After a failure the run continues only if the step allows it
    (continue_on_failure) or the workflow ignores errors. A critical
    failure under STOP_WORKFLOW always stops. Steps after a stop are
    left NOT_STARTED.
    """

    def skip_reason(self, step: StepDefinition, run: RunState) -> str | None:
        """Reason to skip ``step`` instead of running it; None runs it."""
        return None

    async def execute(self, run: RunState) -> StrategyOutcome:
        for step in run.workflow.steps:
            run.cancellation.raise_if_cancelled()

            reason = self.skip_reason(step, run)
            if reason is not None:
                run.tracker.step_skipped(step, reason, counts_as_completed=True)
                continue

            outcome = await run.runner.run(step, run.context)
            run.record(outcome)

            if outcome.succeeded:
                continue

            if run.stops_on_critical(step):
                return StrategyOutcome(False, outcome.failure_message(critical=True))
            if not run.tolerates_failure_of(step):
                return StrategyOutcome(False, outcome.failure_message())
            logger.debug(f"Continuing past failed step '{step.id}'")

        if run.errors:
            return StrategyOutcome(False, f"Workflow completed with {len(run.errors)} errors")
        return StrategyOutcome(True, "Workflow executed successfully")
