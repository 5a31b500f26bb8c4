"""Per-run execution context shared by conditions and step executors."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from uuid_extensions import uuid7


@dataclass
class ExecutionContext:
    """Mutable bag of run-scoped state.

    One context is created per run. ``variables`` is readable by condition
    expressions (``context.<name>``) and readable/writable by step
    executors. The engine does not lock it: under the parallel strategy
    several executors may touch it at once, and executors that need
    consistency must coordinate among themselves.
    """

    instance_id: str = field(default_factory=lambda: str(uuid7()))
    """Unique identifier of this run."""

    variables: dict[str, Any] = field(default_factory=dict)
    input_data: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    correlation_id: str | None = None
    parent_instance_id: str | None = None
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def with_input_data(cls, input_data: dict[str, Any] | None) -> ExecutionContext:
        """Create a context seeded with workflow input data."""
        return cls(input_data=dict(input_data or {}))

    def get(self, name: str, default: Any = None) -> Any:
        """Read a variable."""
        return self.variables.get(name, default)

    def set(self, name: str, value: Any) -> None:
        """Write a variable."""
        self.variables[name] = value

    def __repr__(self) -> str:
        return (
            f"ExecutionContext(instance_id={self.instance_id!r}, "
            f"variables={sorted(self.variables)!r})"
        )
