"""
Pytest configuration and fixtures for pyorchestra tests.

Provides a scriptable step executor, engine and sink fixtures, and
hypothesis strategies for random workflow graphs.
"""

import asyncio
import shutil
import tempfile
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

import pytest
from hypothesis import strategies as st

from pyorchestra import (
    ActionResult,
    EngineConfig,
    ErrorHandlingMode,
    ExecutionContext,
    StepDefinition,
    StepExecutor,
    WorkflowDefinition,
    WorkflowEngine,
    WorkflowType,
)
from pyorchestra.sinks import InMemoryStatusSink, SqliteStatusSink


class RecordingExecutor(StepExecutor):
    """Step executor driven by a per-step script.

    ``script`` maps a step id to one of:
        - ActionResult: returned as-is
        - Exception instance: raised
        - list of the above: consumed one per attempt
        - async callable (step, context, token) -> ActionResult
    Unscripted steps succeed with message "<id> ok".

    Records call order, start/finish events and the peak number of
    concurrently executing steps.
    """

    def __init__(self, script: dict[str, Any] | None = None, delay: float = 0.0):
        self.script: dict[str, Any] = dict(script or {})
        self.delay = delay
        self.delays: dict[str, float] = {}
        self.calls: list[str] = []
        self.events: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def started(self, step_id: str) -> bool:
        return step_id in self.calls

    def attempts(self, step_id: str) -> int:
        return self.calls.count(step_id)

    async def execute(self, step, context, cancellation) -> ActionResult:
        self.calls.append(step.id)
        self.events.append(("start", step.id))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delays.get(step.id, self.delay)
            if delay:
                await asyncio.sleep(delay)

            entry = self.script.get(step.id)
            if isinstance(entry, list):
                entry = entry.pop(0) if len(entry) > 1 else entry[0]
            if entry is None:
                return ActionResult.successful(f"{step.id} ok", {"step": step.id})
            if isinstance(entry, BaseException):
                raise entry
            if isinstance(entry, ActionResult):
                return entry
            return await entry(step, context, cancellation)
        finally:
            self.in_flight -= 1
            self.events.append(("end", step.id))


def make_workflow(
    steps: list[StepDefinition],
    type: WorkflowType = WorkflowType.SEQUENTIAL,
    mode: ErrorHandlingMode = ErrorHandlingMode.CONTINUE_IF_ALLOWED,
    **kwargs: Any,
) -> WorkflowDefinition:
    return WorkflowDefinition(
        name=kwargs.pop("name", "test-workflow"),
        steps=steps,
        type=type,
        error_handling_mode=mode,
        **kwargs,
    )


@pytest.fixture
def recording_executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def status_sink() -> InMemoryStatusSink:
    return InMemoryStatusSink()


@pytest.fixture
async def engine(
    recording_executor: RecordingExecutor, status_sink: InMemoryStatusSink
) -> AsyncGenerator[WorkflowEngine, None]:
    """Engine wired to the recording executor and an in-memory sink."""
    engine = WorkflowEngine(recording_executor).with_status_sink(status_sink)
    yield engine
    await engine.shutdown()


@pytest.fixture
def context() -> ExecutionContext:
    return ExecutionContext()


@pytest.fixture
def fast_config() -> EngineConfig:
    return EngineConfig(default_workflow_timeout_seconds=5)


@pytest.fixture
async def sqlite_memory_sink() -> AsyncGenerator[SqliteStatusSink, None]:
    """SQLite in-memory sink with automatic cleanup."""
    sink = SqliteStatusSink(":memory:")
    await sink.connect()
    yield sink
    await sink.close()


@pytest.fixture
def temp_db_path():
    """Temporary database file path with automatic cleanup."""
    tmpdir = Path(tempfile.mkdtemp())
    db_path = tmpdir / "status.db"
    yield db_path
    shutil.rmtree(tmpdir, ignore_errors=True)


# Hypothesis strategies for property-based testing


@st.composite
def dag_steps(draw, min_steps: int = 1, max_steps: int = 12):
    """Random acyclic step lists; dependencies only point at earlier steps."""
    count = draw(st.integers(min_value=min_steps, max_value=max_steps))
    steps = []
    for index in range(count):
        earlier = [f"s{i}" for i in range(index)]
        deps = draw(st.lists(st.sampled_from(earlier), unique=True, max_size=3)) if earlier else []
        steps.append(StepDefinition(f"s{index}", dependencies=deps))
    return steps
