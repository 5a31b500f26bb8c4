"""
Step executors - the boundary where a step's actual work happens.

The engine only knows the StepExecutor contract. Concrete executors call
agents, services or plain functions; ExecutorRegistry routes each step to
one of several named executors.

Contract:
    - Return ActionResult(success=False, ...) for ordinary failures.
    - Raise only for faults. The step runner records those as STEP_ERROR
      and may retry them according to the step's RetryPolicy.
    - Honor cancellation: the runner cancels the executor's task when the
      run is cancelled or times out, so executors see CancelledError at
      their next await. Long CPU-bound work should poll
      ``cancellation.is_cancelled``.
"""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from pyorchestra.engine.cancellation import CancellationToken
from pyorchestra.models.context import ExecutionContext
from pyorchestra.models.result import ActionResult
from pyorchestra.models.workflow import StepDefinition

logger = logging.getLogger(__name__)

StepFunction = Callable[
    [StepDefinition, ExecutionContext, CancellationToken],
    ActionResult | Awaitable[ActionResult],
]


class StepExecutor(ABC):
    """Performs the work of a single step."""

    @abstractmethod
    async def execute(
        self,
        step: StepDefinition,
        context: ExecutionContext,
        cancellation: CancellationToken,
    ) -> ActionResult:
        """
        Run ``step`` once.

        Args:
            step: The step being executed
            context: The run's shared execution context
            cancellation: The run's cancellation token

        Returns:
            ActionResult describing the outcome
        """
        pass


class FunctionStepExecutor(StepExecutor):
    """Adapts a plain function (sync or async) to StepExecutor.

    Example:
        async def fetch(step, context, cancellation):
            data = await http_get(step.parameters["url"])
            return ActionResult.successful("fetched", {"size": len(data)})

        executor = FunctionStepExecutor(fetch)
    """

    def __init__(self, func: StepFunction):
        self._func = func

    def __repr__(self) -> str:
        return f"FunctionStepExecutor({getattr(self._func, '__name__', self._func)!r})"

    async def execute(
        self,
        step: StepDefinition,
        context: ExecutionContext,
        cancellation: CancellationToken,
    ) -> ActionResult:
        result = self._func(step, context, cancellation)
        if inspect.isawaitable(result):
            result = await result
        return result


class EchoStepExecutor(StepExecutor):
    """Succeeds immediately, echoing the step back in the result data.

    Handy as a default executor while wiring up a workflow.
    """

    async def execute(
        self,
        step: StepDefinition,
        context: ExecutionContext,
        cancellation: CancellationToken,
    ) -> ActionResult:
        return ActionResult.successful(
            f"Executed step {step.name} successfully",
            {
                "step_id": step.id,
                "step_name": step.name,
                "timestamp": datetime.now(UTC).isoformat(),
                "parameters": dict(step.parameters),
            },
        )


def as_step_executor(executor: StepExecutor | StepFunction) -> StepExecutor:
    """Accept either a StepExecutor or a plain step function."""
    if isinstance(executor, StepExecutor):
        return executor
    if callable(executor):
        return FunctionStepExecutor(executor)
    raise TypeError(f"Expected a StepExecutor or callable, got {type(executor).__name__}")


class ExecutorRegistry(StepExecutor):
    """Routes steps to named executors.

    Lookup order for a step's executor name:
        1. ``step.executor``
        2. ``step.parameters["executor"]``
    Steps naming no executor go to the default executor, if one was given.

    Example:
        ```python
        registry = ExecutorRegistry()
        registry.register("http", HttpStepExecutor())
        registry.register("noop", lambda step, ctx, token: ActionResult.successful())

        engine = WorkflowEngine(registry)
        ```
    """

    def __init__(self, default: StepExecutor | StepFunction | None = None):
        """Create a new empty registry."""
        self._executors: dict[str, StepExecutor] = {}
        self._default = as_step_executor(default) if default is not None else None

    def register(self, name: str, executor: StepExecutor | StepFunction) -> ExecutorRegistry:
        """Register an executor (or plain function) under ``name``.

        Returns:
            self for method chaining
        """
        if not name:
            raise ValueError("Executor name must be a non-empty string")
        self._executors[name] = as_step_executor(executor)
        logger.debug(f"Registered step executor: {name}")
        return self

    def get_executor(self, name: str) -> StepExecutor | None:
        return self._executors.get(name)

    @staticmethod
    def executor_name(step: StepDefinition) -> str | None:
        if step.executor:
            return step.executor
        name: Any = step.parameters.get("executor")
        return str(name) if name else None

    def resolve(self, step: StepDefinition) -> StepExecutor | None:
        name = self.executor_name(step)
        if name is None:
            return self._default
        return self._executors.get(name)

    async def execute(
        self,
        step: StepDefinition,
        context: ExecutionContext,
        cancellation: CancellationToken,
    ) -> ActionResult:
        executor = self.resolve(step)
        if executor is None:
            name = self.executor_name(step)
            if name is None:
                return ActionResult.failed(f"No executor configured for step '{step.id}'")
            return ActionResult.failed(f"No executor registered for '{name}'")
        return await executor.execute(step, context, cancellation)

    def __len__(self) -> int:
        return len(self._executors)

    def is_empty(self) -> bool:
        return len(self._executors) == 0

    def names(self) -> list[str]:
        return list(self._executors)
