"""
Step runner - executes one step to completion.

Wraps a single StepExecutor call with everything the strategies should
not have to think about:

1. Racing the executor against the run's cancellation token
2. The per-step time budget
3. Retries with backoff for executor faults
4. Converting faults and failed results into StepOutcome values

Strategies get a StepOutcome back for every step and never see executor
exceptions. The only exception that escapes run() is
WorkflowCancelledError.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from pyorchestra.engine.cancellation import CancellationToken, WorkflowCancelledError
from pyorchestra.engine.config import EngineConfig
from pyorchestra.engine.executor import StepExecutor
from pyorchestra.engine.tracker import StatusTracker
from pyorchestra.errors import ExecutorError, StepTimeoutError
from pyorchestra.models.context import ExecutionContext
from pyorchestra.models.result import ActionResult, ErrorCode, ErrorSeverity, WorkflowError
from pyorchestra.models.retry import RetryPolicy
from pyorchestra.models.workflow import StepDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepOutcome:
    """Result of running one step, including how it ended."""

    step: StepDefinition
    result: ActionResult
    error: WorkflowError | None = None
    attempts: int = 1

    @property
    def succeeded(self) -> bool:
        return self.result.success

    @property
    def is_fault(self) -> bool:
        """True when the executor raised rather than reporting failure."""
        return self.error is not None and self.error.code == ErrorCode.STEP_ERROR

    def failure_message(self, critical: bool = False) -> str:
        """Run-level message used when this failure stops a workflow."""
        prefix = "Critical step" if critical else "Step"
        verb = "failed with error" if self.is_fault else "failed"
        return f"{prefix} '{self.step.name}' {verb}: {self.result.message}"


def _severity(step: StepDefinition) -> ErrorSeverity:
    return ErrorSeverity.CRITICAL if step.is_critical else ErrorSeverity.ERROR


class StepRunner:
    def __init__(
        self,
        executor: StepExecutor,
        tracker: StatusTracker,
        cancellation: CancellationToken,
        config: EngineConfig,
    ):
        self._executor = executor
        self._tracker = tracker
        self._cancellation = cancellation
        self._config = config

    def _policy_for(self, step: StepDefinition) -> RetryPolicy:
        if self._config.enable_step_retry and step.retry_policy is not None:
            return step.retry_policy
        return RetryPolicy.NONE

    def _timeout_for(self, step: StepDefinition) -> float | None:
        if step.timeout_seconds is not None:
            return step.timeout_seconds
        return self._config.default_step_timeout_seconds

    async def run(self, step: StepDefinition, context: ExecutionContext) -> StepOutcome:
        """
        Run ``step`` until it succeeds, fails, or exhausts its retries.

        Marks the step RUNNING in the tracker but leaves recording the
        outcome to the caller.

        Raises:
            WorkflowCancelledError: If the run is cancelled or times out
        """
        self._cancellation.raise_if_cancelled()

        policy = self._policy_for(step)
        timeout = self._timeout_for(step)
        self._tracker.step_running(step)

        attempt = 0
        while True:
            attempt += 1
            if attempt > 1:
                self._tracker.step_retrying(step, attempt)

            try:
                result = await self._attempt(step, context, timeout)
            except WorkflowCancelledError:
                raise
            except Exception as e:
                if policy.should_retry(e, attempt):
                    delay_ms = policy.delay_for_attempt(attempt) or 0
                    logger.warning(
                        f"Step '{step.id}' attempt {attempt}/{policy.max_attempts} failed: {e}; "
                        f"retrying in {delay_ms}ms"
                    )
                    await self._backoff(delay_ms / 1000)
                    continue

                logger.error(f"Error executing step '{step.name}': {e}")
                error = WorkflowError.from_exception(
                    ErrorCode.STEP_ERROR,
                    e,
                    step_id=step.id,
                    step_name=step.name,
                    severity=_severity(step),
                    attempts=attempt,
                )
                return StepOutcome(
                    step=step,
                    result=ActionResult.failed(error.message),
                    error=error,
                    attempts=attempt,
                )

            if result.success:
                return StepOutcome(step=step, result=result, attempts=attempt)

            error = WorkflowError(
                code=ErrorCode.STEP_FAILED,
                message=result.message,
                step_id=step.id,
                step_name=step.name,
                severity=_severity(step),
                details={"attempts": attempt},
            )
            return StepOutcome(step=step, result=result, error=error, attempts=attempt)

    async def _attempt(
        self,
        step: StepDefinition,
        context: ExecutionContext,
        timeout: float | None,
    ) -> ActionResult:
        """One executor call raced against the token and the step budget."""
        self._cancellation.raise_if_cancelled()

        task = asyncio.create_task(self._executor.execute(step, context, self._cancellation))
        waiter = asyncio.create_task(self._cancellation.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            if task.cancelled():
                raise ExecutorError(f"Executor for step '{step.id}' was cancelled")
            result = task.result()
            if not isinstance(result, ActionResult):
                raise TypeError(
                    f"Executor for step '{step.id}' returned {type(result).__name__}, "
                    "expected ActionResult"
                )
            return result

        await self._abandon(task)
        if waiter in done:
            raise WorkflowCancelledError(self._cancellation.reason)
        raise StepTimeoutError(step.id, timeout)

    @staticmethod
    async def _abandon(task: asyncio.Task) -> None:
        # Executors see CancelledError at their next await
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def _backoff(self, seconds: float) -> None:
        """Sleep between attempts, waking early if the run is cancelled."""
        if seconds <= 0:
            self._cancellation.raise_if_cancelled()
            return
        try:
            await asyncio.wait_for(self._cancellation.wait(), timeout=seconds)
        except TimeoutError:
            return
        raise WorkflowCancelledError(self._cancellation.reason)
