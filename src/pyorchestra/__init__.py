"""
pyorchestra: asyncio workflow orchestration

Runs multi-step workflows across pluggable step executors, honoring
declared dependencies, a per-workflow execution strategy (sequential,
parallel, conditional, hierarchical), timeouts, cancellation and a
partial-failure policy.

Design Pattern: Façade Pattern
This module re-exports the handful of types most callers need so that
``from pyorchestra import ...`` is usually enough.

Example:
    ```python
    import asyncio
    from pyorchestra import (
        ActionResult,
        StepDefinition,
        WorkflowDefinition,
        WorkflowEngine,
        WorkflowType,
    )

    async def work(step, context, cancellation):
        await asyncio.sleep(0.1)
        return ActionResult.successful(f"{step.id} done")

    workflow = WorkflowDefinition(
        name="ingest",
        type=WorkflowType.PARALLEL,
        steps=[
            StepDefinition("fetch"),
            StepDefinition("parse", dependencies=["fetch"]),
            StepDefinition("enrich", dependencies=["fetch"]),
            StepDefinition("index", dependencies=["parse", "enrich"]),
        ],
    )

    async def main():
        engine = WorkflowEngine(work)
        result = await engine.execute_workflow(workflow)
        print(result.message)

    asyncio.run(main())
    ```
"""

from pyorchestra.conditions import (
    ConditionEvaluator,
    ConditionSyntaxError,
    ExpressionConditionEvaluator,
)
from pyorchestra.engine import (
    CancellationToken,
    CancelReason,
    EchoStepExecutor,
    EngineConfig,
    ExecutorRegistry,
    FunctionStepExecutor,
    StepExecutor,
    WorkflowCancelledError,
    WorkflowEngine,
    WorkflowGraph,
)
from pyorchestra.errors import (
    ExecutorError,
    OrchestraError,
    StepTimeoutError,
    WorkflowValidationError,
)
from pyorchestra.models import (
    ActionResult,
    ErrorCode,
    ErrorHandlingMode,
    ErrorSeverity,
    ExecutionContext,
    RetryableError,
    RetryPolicy,
    StepDefinition,
    StepState,
    StepStatus,
    WorkflowDefinition,
    WorkflowError,
    WorkflowResult,
    WorkflowState,
    WorkflowStatus,
    WorkflowType,
)
from pyorchestra.sinks import STATUS_TOPIC, SinkError, StatusSink

__version__ = "0.1.0"

__all__ = [
    # Models
    "ActionResult",
    "ErrorCode",
    "ErrorHandlingMode",
    "ErrorSeverity",
    "ExecutionContext",
    "RetryPolicy",
    "RetryableError",
    "StepDefinition",
    "StepState",
    "StepStatus",
    "WorkflowDefinition",
    "WorkflowError",
    "WorkflowResult",
    "WorkflowState",
    "WorkflowStatus",
    "WorkflowType",
    # Engine
    "CancelReason",
    "CancellationToken",
    "EchoStepExecutor",
    "EngineConfig",
    "ExecutorRegistry",
    "FunctionStepExecutor",
    "StepExecutor",
    "WorkflowCancelledError",
    "WorkflowEngine",
    "WorkflowGraph",
    # Conditions
    "ConditionEvaluator",
    "ConditionSyntaxError",
    "ExpressionConditionEvaluator",
    # Sinks
    "STATUS_TOPIC",
    "SinkError",
    "StatusSink",
    # Errors
    "ExecutorError",
    "OrchestraError",
    "StepTimeoutError",
    "WorkflowValidationError",
]
