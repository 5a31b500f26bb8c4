"""Workflow execution engine.

Components:
    - WorkflowEngine: Façade that runs workflows and answers status queries
    - StepExecutor / ExecutorRegistry: Boundary to the code doing step work
    - StepRunner: Retries, step timeouts and cancellation around one step
    - StatusTracker / StatusPublisher: Run status bookkeeping and broadcast
    - WorkflowGraph: Structural validation of workflow definitions
    - CancellationToken: Cooperative cancellation for a run
"""

from pyorchestra.engine.cancellation import CancellationToken, CancelReason, WorkflowCancelledError
from pyorchestra.engine.config import EngineConfig
from pyorchestra.engine.engine import WorkflowEngine
from pyorchestra.engine.executor import (
    EchoStepExecutor,
    ExecutorRegistry,
    FunctionStepExecutor,
    StepExecutor,
)
from pyorchestra.engine.graph import WorkflowGraph
from pyorchestra.engine.publisher import StatusPublisher
from pyorchestra.engine.runner import StepOutcome, StepRunner
from pyorchestra.engine.tracker import StatusTracker

__all__ = [
    "CancelReason",
    "CancellationToken",
    "EchoStepExecutor",
    "EngineConfig",
    "ExecutorRegistry",
    "FunctionStepExecutor",
    "StatusPublisher",
    "StatusTracker",
    "StepExecutor",
    "StepOutcome",
    "StepRunner",
    "WorkflowCancelledError",
    "WorkflowEngine",
    "WorkflowGraph",
]
