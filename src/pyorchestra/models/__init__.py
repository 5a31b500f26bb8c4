"""Core data models for workflow orchestration.

Defines the workflow/step definitions authors write, the per-run context
and status records, and the result types returned when a run ends.

Design: Dependency-Free Models
These types have no dependencies on the engine, conditions or sinks
packages to prevent circular imports and enable clean layering.
"""

from pyorchestra.models.context import ExecutionContext
from pyorchestra.models.result import (
    ActionResult,
    ErrorCode,
    ErrorSeverity,
    WorkflowError,
    WorkflowResult,
)
from pyorchestra.models.retry import RetryableError, RetryPolicy
from pyorchestra.models.status import StepState, WorkflowState
from pyorchestra.models.tracking import StepStatus, WorkflowStatus
from pyorchestra.models.workflow import (
    ErrorHandlingMode,
    StepDefinition,
    WorkflowDefinition,
    WorkflowType,
)

__all__ = [
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
]
