"""
Property-based tests using hypothesis.

These verify scheduling invariants over randomly generated acyclic
workflows rather than hand-picked examples.
"""

import pytest
from conftest import RecordingExecutor, dag_steps, make_workflow
from hypothesis import given, settings
from hypothesis import strategies as st

from pyorchestra import (
    ActionResult,
    EngineConfig,
    ExecutionContext,
    ExpressionConditionEvaluator,
    StepState,
    WorkflowEngine,
    WorkflowGraph,
    WorkflowType,
)
from pyorchestra.sinks import InMemoryStatusSink


def _assert_dependencies_finished_first(executor, steps):
    events = executor.events
    for step in steps:
        if step.id not in executor.calls:
            continue
        started = events.index(("start", step.id))
        for dep in step.dependencies:
            assert ("end", dep) in events[:started], f"{step.id} started before {dep} finished"


# ============================================================================
# PROPERTY 1: Generated workflows are valid
# ============================================================================


@pytest.mark.property
@given(steps=dag_steps())
def test_generated_dags_validate(steps):
    """
    Property: Steps that only depend on earlier steps never form a cycle.
    """
    assert WorkflowGraph(make_workflow(steps)).problems() == []


# ============================================================================
# PROPERTY 2: Parallel cap and dependency order
# ============================================================================


@pytest.mark.property
@pytest.mark.concurrency
@pytest.mark.asyncio
@given(steps=dag_steps(), cap=st.integers(min_value=1, max_value=4))
@settings(max_examples=40, deadline=None)
async def test_parallel_respects_cap_and_dependencies(steps, cap):
    """
    Property: The parallel strategy never runs more than ``cap`` steps at
    once, runs every step exactly once, and starts a step only after all
    of its dependencies finished.
    """
    executor = RecordingExecutor(delay=0.001)
    engine = WorkflowEngine(executor, config=EngineConfig(max_concurrent_steps_per_workflow=cap))

    result = await engine.execute_workflow(make_workflow(steps, type=WorkflowType.PARALLEL))

    assert result.success is True
    assert executor.max_in_flight <= cap
    assert sorted(executor.calls) == sorted(s.id for s in steps)
    _assert_dependencies_finished_first(executor, steps)


# ============================================================================
# PROPERTY 3: Hierarchical ordering and accounting
# ============================================================================


@pytest.mark.property
@pytest.mark.asyncio
@given(steps=dag_steps(), data=st.data())
@settings(max_examples=40, deadline=None)
async def test_hierarchical_accounts_for_every_step(steps, data):
    """
    Property: In the hierarchical strategy no step runs twice, no step
    starts before its dependencies finish, and every step ends up either
    completed or skipped.
    """
    failing = data.draw(st.sets(st.sampled_from([s.id for s in steps])))
    executor = RecordingExecutor({step_id: ActionResult.failed("x") for step_id in failing})
    engine = WorkflowEngine(executor)

    result = await engine.execute_workflow(make_workflow(steps, type=WorkflowType.HIERARCHICAL))
    status = engine.get_workflow_status(result.instance_id)

    assert len(executor.calls) == len(set(executor.calls))
    _assert_dependencies_finished_first(executor, steps)
    assert status.completed_steps + len(status.steps_in(StepState.SKIPPED)) == len(steps)
    assert status.failed_steps == len(failing & set(executor.calls))
    assert result.success == (not (failing & set(executor.calls)))


# ============================================================================
# PROPERTY 4: Progress never goes backwards
# ============================================================================


@pytest.mark.property
@pytest.mark.asyncio
@given(
    steps=dag_steps(max_steps=8),
    workflow_type=st.sampled_from(list(WorkflowType)),
    data=st.data(),
)
@settings(max_examples=40, deadline=None)
async def test_progress_is_monotonic(steps, workflow_type, data):
    """
    Property: Every published status has progress >= the one before it,
    and completed + failed counters never exceed the step count.
    """
    failing = data.draw(st.sets(st.sampled_from([s.id for s in steps])))
    executor = RecordingExecutor({step_id: ActionResult.failed("x") for step_id in failing})
    sink = InMemoryStatusSink()
    engine = WorkflowEngine(executor, status_sink=sink)

    result = await engine.execute_workflow(make_workflow(steps, type=workflow_type))
    await engine.shutdown()

    history = sink.history(result.instance_id)
    progress = [s.progress_percentage for s in history]
    assert progress == sorted(progress)
    assert all(0 <= p <= 100 for p in progress)
    assert all(s.completed_steps <= len(steps) for s in history)
    assert history[-1].state.is_terminal


# ============================================================================
# PROPERTY 5: Condition comparisons ignore case
# ============================================================================


@pytest.mark.property
@given(value=st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=1, max_size=12))
def test_context_comparison_ignores_case(value):
    """
    Property: ``context.x == v`` holds for any casing of the stored value.
    """
    context = ExecutionContext()
    context.set("x", value.upper())
    evaluator = ExpressionConditionEvaluator()

    assert evaluator.evaluate(f"context.x == {value}", {}, context) is True
    assert evaluator.evaluate(f"context.x != '{value.title()}'", {}, context) is False
