"""
WorkflowEngine - runs workflow definitions and tracks their progress.

Design Patterns:
- Façade: execute_workflow() hides tracker, token, timer, runner and
  strategy wiring behind a single call
- Strategy: one ExecutionStrategy per WorkflowType
- Builder: with_status_sink(), with_executor(), ... for configuration

Every run gets its own instance id, StatusTracker and CancellationToken.
Registries are keyed by instance id, with a secondary index from workflow
id to the most recent run, so running the same definition twice at once
yields two independently tracked runs.

Usage:
    engine = (
        WorkflowEngine(my_executor)
        .with_status_sink(InMemoryStatusSink())
        .with_config(EngineConfig(max_concurrent_steps_per_workflow=10))
    )

    result = await engine.execute_workflow(workflow, ExecutionContext())
    if not result.success:
        for error in result.errors:
            print(error.code, error.message)
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta

from pyorchestra.conditions.evaluator import ConditionEvaluator, ExpressionConditionEvaluator
from pyorchestra.engine.cancellation import CancellationToken, CancelReason, WorkflowCancelledError
from pyorchestra.engine.config import EngineConfig
from pyorchestra.engine.executor import (
    EchoStepExecutor,
    StepExecutor,
    StepFunction,
    as_step_executor,
)
from pyorchestra.engine.graph import WorkflowGraph
from pyorchestra.engine.publisher import StatusPublisher
from pyorchestra.engine.runner import StepRunner
from pyorchestra.engine.strategies import RunState, strategy_for
from pyorchestra.engine.tracker import StatusTracker
from pyorchestra.models.context import ExecutionContext
from pyorchestra.models.result import ErrorCode, ErrorSeverity, WorkflowError, WorkflowResult
from pyorchestra.models.status import WorkflowState
from pyorchestra.models.tracking import WorkflowStatus
from pyorchestra.models.workflow import WorkflowDefinition
from pyorchestra.sinks.base import StatusSink

logger = logging.getLogger(__name__)


def _format_seconds(seconds: float) -> str:
    return f"{seconds:g}"


class WorkflowEngine:
    def __init__(
        self,
        executor: StepExecutor | StepFunction | None = None,
        config: EngineConfig | None = None,
        status_sink: StatusSink | None = None,
        condition_evaluator: ConditionEvaluator | None = None,
    ):
        """Create an engine.

        Args:
            executor: Performs step work; defaults to EchoStepExecutor
            config: Engine settings; defaults to EngineConfig()
            status_sink: Where status updates are published; None publishes nowhere
            condition_evaluator: Evaluates step conditions; defaults to
                ExpressionConditionEvaluator
        """
        self._executor: StepExecutor = (
            as_step_executor(executor) if executor is not None else EchoStepExecutor()
        )
        self._config = config if config is not None else EngineConfig()
        self._publisher = StatusPublisher(status_sink)
        self._evaluator: ConditionEvaluator = (
            condition_evaluator if condition_evaluator is not None else ExpressionConditionEvaluator()
        )

        # {instance_id: tracker} for every run not yet forgotten
        self._trackers: dict[str, StatusTracker] = {}
        # {instance_id: token} for runs still executing
        self._tokens: dict[str, CancellationToken] = {}
        # {workflow_id: instance_id} of the most recent run
        self._latest_run: dict[str, str] = {}

    def __repr__(self) -> str:
        return (
            f"WorkflowEngine(executor={self._executor!r}, "
            f"running={len(self._tokens)}, tracked={len(self._trackers)})"
        )

    # ------------------------------------------------------------------
    # Configuration (builder pattern)
    # ------------------------------------------------------------------

    @property
    def config(self) -> EngineConfig:
        return self._config

    def with_executor(self, executor: StepExecutor | StepFunction) -> WorkflowEngine:
        """Replace the step executor (builder pattern).

        Returns:
            self for method chaining
        """
        self._executor = as_step_executor(executor)
        return self

    def with_status_sink(self, sink: StatusSink) -> WorkflowEngine:
        """Publish status updates to ``sink`` (builder pattern).

        Returns:
            self for method chaining
        """
        self._publisher = StatusPublisher(sink)
        return self

    def with_condition_evaluator(self, evaluator: ConditionEvaluator) -> WorkflowEngine:
        """Use a custom condition evaluator (builder pattern).

        Returns:
            self for method chaining
        """
        self._evaluator = evaluator
        return self

    def with_config(self, config: EngineConfig) -> WorkflowEngine:
        """Replace the engine configuration (builder pattern).

        Returns:
            self for method chaining
        """
        self.configure(config)
        return self

    def configure(self, config: EngineConfig) -> None:
        """Replace the configuration used by runs started from now on."""
        if config is None:
            raise ValueError("config cannot be None")
        self._config = config
        logger.info(
            f"Workflow engine configured: max_concurrent_steps="
            f"{config.max_concurrent_steps_per_workflow}, "
            f"default_timeout={_format_seconds(config.default_workflow_timeout_seconds)}s"
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute_workflow(
        self,
        workflow: WorkflowDefinition,
        context: ExecutionContext | None = None,
    ) -> WorkflowResult:
        """
        Run ``workflow`` to a terminal state.

        Never raises for problems inside the run: invalid definitions,
        step failures, timeouts, cancellation and strategy faults all come
        back as a WorkflowResult with success=False.

        Args:
            workflow: The definition to run
            context: Per-run context; a fresh one is created if omitted

        Returns:
            WorkflowResult describing the run
        """
        if context is None:
            context = ExecutionContext()
        if context.instance_id in self._trackers:
            fresh = ExecutionContext().instance_id
            running = context.instance_id in self._tokens
            logger.warning(
                f"Run {context.instance_id} is "
                f"{'already executing' if running else 'already recorded'}; "
                f"using instance id {fresh}"
            )
            context.instance_id = fresh

        instance_id = context.instance_id
        config = self._config
        start_time = datetime.now(UTC)

        tracker = StatusTracker(workflow, instance_id, self._publisher)
        self._trackers[instance_id] = tracker
        self._latest_run[workflow.id] = instance_id

        if config.validate_workflows:
            try:
                problems = WorkflowGraph(workflow).problems()
            except Exception as e:
                logger.error(f"Error validating workflow '{workflow.name}' run {instance_id}: {e}")
                return self._fault_result(workflow, tracker, e, start_time)
            if problems:
                return self._invalid_result(workflow, tracker, problems, start_time)

        token = CancellationToken()
        self._tokens[instance_id] = token

        timeout = config.effective_workflow_timeout(workflow.timeout_seconds)
        timer: asyncio.TimerHandle | None = None
        if config.enable_workflow_timeouts:
            timer = asyncio.get_running_loop().call_later(timeout, token.cancel, CancelReason.TIMEOUT)

        run = RunState(
            workflow=workflow,
            context=context,
            tracker=tracker,
            runner=StepRunner(self._executor, tracker, token, config),
            cancellation=token,
            evaluator=self._evaluator,
        )
        logger.info(
            f"Starting workflow '{workflow.name}' ({workflow.id}) run {instance_id} "
            f"with {len(workflow.steps)} steps [{workflow.type}]"
        )
        tracker.start()

        try:
            try:
                strategy = strategy_for(workflow.type, config.max_concurrent_steps_per_workflow)
                outcome = await strategy.execute(run)
            except WorkflowCancelledError as e:
                return self._cancelled_result(run, token.reason or e.reason, timeout, start_time)
            except asyncio.CancelledError:
                tracker.finish(WorkflowState.CANCELLED, "Workflow task was cancelled")
                raise
            except Exception as e:
                logger.error(f"Error executing workflow '{workflow.name}' run {instance_id}: {e}")
                error = WorkflowError.from_exception(
                    ErrorCode.EXECUTION_ERROR, e, severity=ErrorSeverity.CRITICAL
                )
                message = f"Error executing workflow: {error.message}"
                tracker.finish(WorkflowState.FAILED, message)
                return self._build_result(
                    run, False, message, WorkflowState.FAILED, start_time, extra_errors=[error]
                )

            if token.is_cancelled:
                # Cancelled after the last step finished
                return self._cancelled_result(run, token.reason, timeout, start_time)

            state = WorkflowState.COMPLETED if outcome.success else WorkflowState.FAILED
            tracker.finish(state, None if outcome.success else outcome.message)
            logger.info(
                f"Workflow '{workflow.name}' run {instance_id} finished {state}: {outcome.message}"
            )
            return self._build_result(run, outcome.success, outcome.message, state, start_time)
        finally:
            if timer is not None:
                timer.cancel()
            self._tokens.pop(instance_id, None)

    def _build_result(
        self,
        run: RunState,
        success: bool,
        message: str,
        state: WorkflowState,
        start_time: datetime,
        extra_errors: list[WorkflowError] | None = None,
    ) -> WorkflowResult:
        return WorkflowResult(
            success=success,
            message=message,
            start_time=start_time,
            end_time=datetime.now(UTC),
            workflow_id=run.workflow.id,
            workflow_name=run.workflow.name,
            instance_id=run.context.instance_id,
            state=state,
            step_results=dict(run.step_results),
            errors=tuple(run.errors + (extra_errors or [])),
        )

    def _cancelled_result(
        self,
        run: RunState,
        reason: CancelReason | None,
        timeout: float,
        start_time: datetime,
    ) -> WorkflowResult:
        if reason == CancelReason.TIMEOUT:
            state = WorkflowState.TIMED_OUT
            code = ErrorCode.WORKFLOW_TIMEOUT
            message = f"Workflow timed out after {_format_seconds(timeout)} seconds"
        else:
            state = WorkflowState.CANCELLED
            code = ErrorCode.WORKFLOW_CANCELLED
            message = "Workflow was cancelled"

        logger.warning(f"Workflow '{run.workflow.name}' run {run.context.instance_id}: {message}")
        run.tracker.finish(state, message)
        error = WorkflowError(code=code, message=message, severity=ErrorSeverity.CRITICAL)
        return self._build_result(run, False, message, state, start_time, extra_errors=[error])

    def _invalid_result(
        self,
        workflow: WorkflowDefinition,
        tracker: StatusTracker,
        problems: list[str],
        start_time: datetime,
    ) -> WorkflowResult:
        message = f"Workflow '{workflow.name}' is invalid: {'; '.join(problems)}"
        logger.error(message)
        error = WorkflowError(
            code=ErrorCode.INVALID_WORKFLOW,
            message=message,
            severity=ErrorSeverity.CRITICAL,
            details={"problems": list(problems)},
        )
        return self._unstarted_result(workflow, tracker, message, error, start_time)

    def _fault_result(
        self,
        workflow: WorkflowDefinition,
        tracker: StatusTracker,
        exc: Exception,
        start_time: datetime,
    ) -> WorkflowResult:
        error = WorkflowError.from_exception(
            ErrorCode.EXECUTION_ERROR, exc, severity=ErrorSeverity.CRITICAL
        )
        message = f"Error executing workflow: {error.message}"
        return self._unstarted_result(workflow, tracker, message, error, start_time)

    def _unstarted_result(
        self,
        workflow: WorkflowDefinition,
        tracker: StatusTracker,
        message: str,
        error: WorkflowError,
        start_time: datetime,
    ) -> WorkflowResult:
        tracker.finish(WorkflowState.FAILED, message)
        return WorkflowResult(
            success=False,
            message=message,
            start_time=start_time,
            end_time=datetime.now(UTC),
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            instance_id=tracker.status.instance_id,
            state=WorkflowState.FAILED,
            step_results={},
            errors=(error,),
        )

    # ------------------------------------------------------------------
    # Status queries and control
    # ------------------------------------------------------------------

    def _resolve(self, run_id: str) -> str | None:
        if run_id in self._trackers:
            return run_id
        return self._latest_run.get(run_id)

    def get_workflow_status(self, run_id: str) -> WorkflowStatus | None:
        """
        Snapshot of a run's status.

        Args:
            run_id: Instance id of a run, or a workflow id (resolves to
                that workflow's most recent run)

        Returns:
            A copy of the status, or None if the id is unknown

        Raises:
            ValueError: If ``run_id`` is empty
        """
        if not run_id:
            raise ValueError("Workflow id cannot be null or empty")

        instance_id = self._resolve(run_id)
        if instance_id is None or instance_id not in self._trackers:
            return None
        return self._trackers[instance_id].snapshot()

    def cancel_workflow(self, run_id: str) -> bool:
        """
        Request cancellation of a running workflow.

        The run's status turns CANCELLED at once; executors in flight are
        cancelled cooperatively and the run's result follows shortly.

        Returns:
            True if a running workflow was found, False otherwise
        """
        instance_id = self._resolve(run_id) if run_id else None
        token = self._tokens.get(instance_id) if instance_id else None
        if token is None:
            logger.warning(f"Cannot cancel workflow {run_id!r}: no such running workflow")
            return False

        if token.cancel(CancelReason.CANCELLED):
            self._trackers[instance_id].finish(WorkflowState.CANCELLED, "Workflow was cancelled")
            logger.info(f"Workflow run {instance_id} cancelled")
        return True

    def get_running_workflows(self) -> list[WorkflowStatus]:
        """Snapshots of every run currently in RUNNING."""
        return [
            tracker.snapshot()
            for tracker in self._trackers.values()
            if tracker.status.state == WorkflowState.RUNNING
        ]

    def forget_workflow(self, run_id: str) -> bool:
        """Drop a finished run's status. Running runs are kept."""
        instance_id = self._resolve(run_id) if run_id else None
        tracker = self._trackers.get(instance_id) if instance_id else None
        if tracker is None or instance_id in self._tokens or not tracker.is_terminal:
            return False

        del self._trackers[instance_id]
        workflow_id = tracker.status.workflow_id
        if self._latest_run.get(workflow_id) == instance_id:
            del self._latest_run[workflow_id]
        return True

    def purge_finished(self, older_than: timedelta | None = None) -> int:
        """
        Drop statuses of finished runs.

        Args:
            older_than: Only drop runs that ended at least this long ago;
                None drops every finished run

        Returns:
            Number of runs dropped
        """
        cutoff = datetime.now(UTC) - older_than if older_than is not None else None
        doomed = [
            instance_id
            for instance_id, tracker in self._trackers.items()
            if tracker.is_terminal
            and instance_id not in self._tokens
            and (
                cutoff is None
                or (tracker.status.end_time is not None and tracker.status.end_time <= cutoff)
            )
        ]
        for instance_id in doomed:
            self.forget_workflow(instance_id)
        if doomed:
            logger.info(f"Purged {len(doomed)} finished workflow runs")
        return len(doomed)

    async def shutdown(self) -> None:
        """Wait for status publications still in flight."""
        await self._publisher.drain()
