"""Workflow and step definitions.

These are the read-only inputs to a run. Authors build them once and hand
them to WorkflowEngine.execute_workflow(); the engine never mutates them.

Design: Value Objects
    Frozen dataclasses. Sequences are normalised to tuples in
    ``__post_init__`` so a definition cannot change under a running
    strategy even if the caller keeps a reference to the list it passed.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from uuid_extensions import uuid7

from pyorchestra.models.retry import RetryPolicy


class WorkflowType(Enum):
    """Selects the execution strategy for a workflow."""

    SEQUENTIAL = "SEQUENTIAL"
    """Steps run one at a time in declaration order."""

    PARALLEL = "PARALLEL"
    """Ready steps run concurrently up to the engine's concurrency cap."""

    CONDITIONAL = "CONDITIONAL"
    """Declaration order, but each step is gated by its condition."""

    HIERARCHICAL = "HIERARCHICAL"
    """Depth-first walk from root steps down through their dependents."""

    def __str__(self) -> str:
        return self.value


class ErrorHandlingMode(Enum):
    """How a workflow reacts to step failures."""

    STOP_WORKFLOW = "STOP_WORKFLOW"
    """A failing critical step aborts the run."""

    IGNORE_ERRORS = "IGNORE_ERRORS"
    """Failures are recorded but never stop the run early."""

    CONTINUE_IF_ALLOWED = "CONTINUE_IF_ALLOWED"
    """Continue past a failure only if the step sets continue_on_failure."""

    def __str__(self) -> str:
        return self.value


def _new_id() -> str:
    return str(uuid7())


@dataclass(frozen=True)
class StepDefinition:
    """A unit of work inside a workflow."""

    id: str
    """Step identifier, unique within its workflow."""

    name: str = ""
    """Display name. Defaults to the id."""

    parameters: Mapping[str, Any] = field(default_factory=dict)
    """Opaque key/value parameters handed to the step executor."""

    dependencies: tuple[str, ...] = ()
    """Ids of steps that must finish before this one may run."""

    condition: str | None = None
    """Optional gating expression, e.g. ``"fetch.success == true"``."""

    is_critical: bool = True
    """A failure here aborts the run under STOP_WORKFLOW."""

    continue_on_failure: bool = False
    """Proceed past this step's failure even outside IGNORE_ERRORS."""

    executor: str | None = None
    """Name of the executor to route to when using an ExecutorRegistry."""

    timeout_seconds: float | None = None
    """Budget for a single attempt. None falls back to the engine default."""

    retry_policy: RetryPolicy | None = None
    """Retry behavior for executor faults. None means a single attempt."""

    description: str = ""
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("StepDefinition.id must be a non-empty string")
        if not self.name:
            object.__setattr__(self, "name", self.id)
        object.__setattr__(self, "dependencies", tuple(self.dependencies))
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError(
                f"Step '{self.id}' timeout_seconds must be positive, got {self.timeout_seconds}"
            )

    @property
    def has_condition(self) -> bool:
        return bool(self.condition and self.condition.strip())

    def __repr__(self) -> str:
        return (
            f"StepDefinition(id={self.id!r}, dependencies={list(self.dependencies)!r}, "
            f"is_critical={self.is_critical}, continue_on_failure={self.continue_on_failure})"
        )


@dataclass(frozen=True)
class WorkflowDefinition:
    """Immutable description of a workflow.

    Usage:
        workflow = WorkflowDefinition(
            name="ingest",
            type=WorkflowType.PARALLEL,
            steps=[
                StepDefinition("fetch"),
                StepDefinition("parse", dependencies=["fetch"]),
                StepDefinition("index", dependencies=["parse"]),
            ],
            timeout_seconds=120,
        )
    """

    name: str
    steps: tuple[StepDefinition, ...] = ()
    type: WorkflowType = WorkflowType.SEQUENTIAL
    id: str = field(default_factory=_new_id)
    timeout_seconds: float = 600
    """Wall-clock budget for the whole run. <= 0 uses the engine default."""

    error_handling_mode: ErrorHandlingMode = ErrorHandlingMode.CONTINUE_IF_ALLOWED
    description: str = ""
    version: str = "1.0"
    tags: tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "tags", tuple(self.tags))

    @property
    def step_ids(self) -> list[str]:
        """Step ids in declaration order."""
        return [step.id for step in self.steps]

    def get_step(self, step_id: str) -> StepDefinition | None:
        """Look up a step by id."""
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def dependents_of(self, step_id: str) -> list[StepDefinition]:
        """Steps that list ``step_id`` as a dependency, in declaration order."""
        return [step for step in self.steps if step_id in step.dependencies]

    def roots(self) -> list[StepDefinition]:
        """Steps with no dependencies, in declaration order."""
        return [step for step in self.steps if not step.dependencies]

    def with_steps(self, steps: Iterable[StepDefinition]) -> WorkflowDefinition:
        """Return a copy of this definition with a different step list."""
        return replace(self, steps=tuple(steps))

    def __repr__(self) -> str:
        return (
            f"WorkflowDefinition(id={self.id!r}, name={self.name!r}, type={self.type}, "
            f"steps={len(self.steps)}, error_handling_mode={self.error_handling_mode})"
        )
