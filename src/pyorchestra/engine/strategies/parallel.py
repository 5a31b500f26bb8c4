"""
Parallel strategy: dependency-ordered fan-out under a concurrency cap.

**How It Works**:
1. Every step starts WAITING
2. A step is ready once all of its dependencies have a recorded result
3. Ready steps are admitted in declaration order while fewer than
   ``max_concurrent`` steps are in flight; each runs as its own task
4. The scheduler waits for the first task to finish (or for the run to be
   cancelled), records the outcome, and recomputes the ready set
5. Whatever is still in flight when the loop ends is drained before the
   strategy returns

Only the scheduler coroutine writes ``run.step_results`` and
``run.errors``. Tasks hand their StepOutcome back instead.
"""

from __future__ import annotations

import asyncio
import logging

from pyorchestra.engine.cancellation import WorkflowCancelledError
from pyorchestra.engine.runner import StepOutcome
from pyorchestra.engine.strategies.base import ExecutionStrategy, RunState, StrategyOutcome
from pyorchestra.models.result import ActionResult, ErrorCode, ErrorSeverity, WorkflowError
from pyorchestra.models.workflow import StepDefinition

logger = logging.getLogger(__name__)


class ParallelStrategy(ExecutionStrategy):
    def __init__(self, max_concurrent: int = 5):
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {max_concurrent}")
        self.max_concurrent = max_concurrent

    def __repr__(self) -> str:
        return f"ParallelStrategy(max_concurrent={self.max_concurrent})"

    async def _run_step(self, step: StepDefinition, run: RunState) -> StepOutcome:
        try:
            return await run.runner.run(step, run.context)
        except WorkflowCancelledError:
            raise
        except Exception as e:
            logger.error(f"Error executing parallel step '{step.name}': {e}")
            error = WorkflowError.from_exception(
                ErrorCode.STEP_ERROR,
                e,
                step_id=step.id,
                step_name=step.name,
                severity=ErrorSeverity.CRITICAL if step.is_critical else ErrorSeverity.ERROR,
            )
            return StepOutcome(step=step, result=ActionResult.failed(error.message), error=error)

    @staticmethod
    def _ready(run: RunState, admitted: set[str]) -> list[StepDefinition]:
        return [
            step
            for step in run.workflow.steps
            if step.id not in admitted and all(dep in run.step_results for dep in step.dependencies)
        ]

    async def execute(self, run: RunState) -> StrategyOutcome:
        order = {step.id: index for index, step in enumerate(run.workflow.steps)}
        run.tracker.mark_waiting([step.id for step in run.workflow.steps])

        admitted: set[str] = set()
        in_flight: dict[asyncio.Task, StepDefinition] = {}
        stop_message: str | None = None
        cancel_waiter = asyncio.create_task(run.cancellation.wait())

        try:
            while not run.cancellation.is_cancelled:
                if stop_message is None:
                    capacity = self.max_concurrent - len(in_flight)
                    for step in self._ready(run, admitted)[: max(capacity, 0)]:
                        admitted.add(step.id)
                        logger.debug(f"Admitting step '{step.id}' ({len(in_flight) + 1} in flight)")
                        in_flight[asyncio.create_task(self._run_step(step, run))] = step

                if not in_flight or stop_message is not None:
                    break

                done, _ = await asyncio.wait(
                    {*in_flight, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED
                )
                finished = sorted(
                    (task for task in done if task is not cancel_waiter),
                    key=lambda task: order[in_flight[task].id],
                )
                for task in finished:
                    step = in_flight.pop(task)
                    if task.cancelled() or task.exception() is not None:
                        # WorkflowCancelledError; the loop condition handles it
                        continue
                    outcome = task.result()
                    run.record(outcome)
                    if not outcome.succeeded and run.stops_on_critical(step) and stop_message is None:
                        stop_message = outcome.failure_message(critical=True)
                        logger.info(
                            f"Critical step '{step.id}' failed; no further steps will be admitted"
                        )

            if in_flight:
                outcomes = await asyncio.gather(*in_flight, return_exceptions=True)
                for outcome in sorted(
                    (o for o in outcomes if isinstance(o, StepOutcome)),
                    key=lambda o: order[o.step.id],
                ):
                    run.record(outcome)
                in_flight.clear()
        except asyncio.CancelledError:
            for task in in_flight:
                task.cancel()
            raise
        finally:
            cancel_waiter.cancel()

        run.cancellation.raise_if_cancelled()

        if stop_message is not None:
            return StrategyOutcome(False, stop_message)
        if run.errors:
            return StrategyOutcome(False, f"Workflow completed with {len(run.errors)} errors")
        return StrategyOutcome(True, "Workflow executed successfully")
