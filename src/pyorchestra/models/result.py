"""Step and workflow results.

Errors are values here: whatever goes wrong inside a run ends up as a
WorkflowError inside a WorkflowResult rather than as an exception raised
at the caller.
"""

from __future__ import annotations

import traceback
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pyorchestra.models.status import WorkflowState


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ActionResult:
    """What a step executor returns.

    Executors report ordinary failure with ``success=False``. Raising is
    reserved for faults in the executor itself.
    """

    success: bool
    message: str = ""
    data: Mapping[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utcnow)

    @classmethod
    def successful(cls, message: str = "", data: Mapping[str, Any] | None = None) -> ActionResult:
        return cls(success=True, message=message, data=dict(data or {}))

    @classmethod
    def failed(cls, message: str, data: Mapping[str, Any] | None = None) -> ActionResult:
        return cls(success=False, message=message, data=dict(data or {}))

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "data": dict(self.data),
            "timestamp": self.timestamp.isoformat(),
        }


class ErrorCode(str, Enum):
    """Codes attached to WorkflowError entries."""

    STEP_FAILED = "STEP_FAILED"
    """Executor returned success=False."""

    STEP_ERROR = "STEP_ERROR"
    """Executor raised, timed out, or returned something other than an ActionResult."""

    WORKFLOW_CANCELLED = "WORKFLOW_CANCELLED"
    WORKFLOW_TIMEOUT = "WORKFLOW_TIMEOUT"

    EXECUTION_ERROR = "EXECUTION_ERROR"
    """An exception escaped the execution strategy itself."""

    INVALID_WORKFLOW = "INVALID_WORKFLOW"
    """The definition failed validation; no step ran."""

    def __str__(self) -> str:
        return self.value


class ErrorSeverity(Enum):
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class WorkflowError:
    """One entry in WorkflowResult.errors."""

    code: ErrorCode
    message: str
    step_id: str | None = None
    step_name: str | None = None
    severity: ErrorSeverity = ErrorSeverity.ERROR
    timestamp: datetime = field(default_factory=_utcnow)
    details: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_exception(
        cls,
        code: ErrorCode,
        error: BaseException,
        *,
        step_id: str | None = None,
        step_name: str | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        **extra: Any,
    ) -> WorkflowError:
        """Build an error entry carrying the exception type and stack trace."""
        details = {
            "exception_type": type(error).__name__,
            "stack_trace": "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ),
        }
        details.update(extra)
        return cls(
            code=code,
            message=str(error) or type(error).__name__,
            step_id=step_id,
            step_name=step_name,
            severity=severity,
            details=details,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "step_id": self.step_id,
            "step_name": self.step_name,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class WorkflowResult:
    """Immutable summary handed back when a run ends."""

    success: bool
    message: str
    start_time: datetime
    end_time: datetime
    workflow_id: str = ""
    workflow_name: str = ""
    instance_id: str = ""
    state: WorkflowState = WorkflowState.COMPLETED
    step_results: Mapping[str, ActionResult] = field(default_factory=dict)
    errors: tuple[WorkflowError, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "step_results", dict(self.step_results))
        object.__setattr__(self, "errors", tuple(self.errors))

    @property
    def duration_ms(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() * 1000)

    def errors_with_code(self, code: ErrorCode) -> list[WorkflowError]:
        return [error for error in self.errors if error.code == code]

    def to_dict(self) -> dict[str, Any]:
        return {
            "workflow_id": self.workflow_id,
            "workflow_name": self.workflow_name,
            "instance_id": self.instance_id,
            "state": self.state.value,
            "success": self.success,
            "message": self.message,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_ms": self.duration_ms,
            "step_results": {k: v.to_dict() for k, v in self.step_results.items()},
            "errors": [error.to_dict() for error in self.errors],
        }

    def __repr__(self) -> str:
        return (
            f"WorkflowResult(workflow_id={self.workflow_id!r}, state={self.state}, "
            f"success={self.success}, errors={len(self.errors)})"
        )
