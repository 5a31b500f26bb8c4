"""Tests for the hierarchical strategy's depth-first walk and branch skipping."""

import pytest
from conftest import RecordingExecutor, make_workflow

from pyorchestra import (
    ActionResult,
    ErrorHandlingMode,
    StepDefinition,
    StepState,
    WorkflowEngine,
    WorkflowState,
    WorkflowType,
)


def hierarchical(steps, **kwargs):
    return make_workflow(steps, type=WorkflowType.HIERARCHICAL, **kwargs)


@pytest.mark.asyncio
async def test_depth_first_order(engine, recording_executor):
    """Test each root's branch runs to the bottom before the next root."""
    workflow = hierarchical(
        [
            StepDefinition("r1"),
            StepDefinition("r2"),
            StepDefinition("r1.child", dependencies=["r1"]),
            StepDefinition("r1.grandchild", dependencies=["r1.child"]),
            StepDefinition("r2.child", dependencies=["r2"]),
        ]
    )

    result = await engine.execute_workflow(workflow)

    assert result.success is True
    assert recording_executor.calls == ["r1", "r1.child", "r1.grandchild", "r2", "r2.child"]


@pytest.mark.asyncio
async def test_join_waits_for_all_parents_and_runs_once(engine, recording_executor):
    """Test a step with two parents runs once, after both of them."""
    workflow = hierarchical(
        [
            StepDefinition("fetch"),
            StepDefinition("parse", dependencies=["fetch"]),
            StepDefinition("enrich", dependencies=["fetch"]),
            StepDefinition("index", dependencies=["parse", "enrich"]),
        ]
    )

    result = await engine.execute_workflow(workflow)

    assert result.success is True
    assert recording_executor.calls == ["fetch", "parse", "enrich", "index"]
    assert engine.get_workflow_status(workflow.id).completed_steps == 4


@pytest.mark.asyncio
async def test_join_across_roots(engine, recording_executor):
    """Test a step depending on two roots runs after the second root."""
    workflow = hierarchical(
        [
            StepDefinition("a"),
            StepDefinition("b"),
            StepDefinition("ab", dependencies=["a", "b"]),
        ]
    )

    await engine.execute_workflow(workflow)

    assert recording_executor.calls == ["a", "b", "ab"]


@pytest.mark.asyncio
async def test_failed_step_skips_its_subtree(engine, recording_executor):
    """Test an intolerable failure skips every descendant, not other roots."""
    recording_executor.script["a"] = ActionResult.failed("x")
    workflow = hierarchical(
        [
            StepDefinition("a"),
            StepDefinition("b", dependencies=["a"]),
            StepDefinition("c", dependencies=["b"]),
            StepDefinition("other"),
        ]
    )

    result = await engine.execute_workflow(workflow)

    assert recording_executor.calls == ["a", "other"]
    assert result.success is False
    assert result.state == WorkflowState.FAILED
    assert result.message == "Workflow completed with 1 failed steps"

    status = engine.get_workflow_status(workflow.id)
    assert status.steps_in(StepState.SKIPPED) == ["b", "c"]
    assert status.completed_steps == 2
    assert status.completed_steps + len(status.steps_in(StepState.SKIPPED)) == 4


@pytest.mark.asyncio
async def test_tolerated_failure_lets_children_run(engine, recording_executor):
    """Test continue_on_failure keeps the branch going."""
    recording_executor.script["a"] = ActionResult.failed("x")
    workflow = hierarchical(
        [
            StepDefinition("a", continue_on_failure=True),
            StepDefinition("b", dependencies=["a"]),
        ]
    )

    result = await engine.execute_workflow(workflow)

    assert recording_executor.calls == ["a", "b"]
    assert result.success is False


@pytest.mark.asyncio
async def test_ignore_errors_lets_children_run(engine, recording_executor):
    """Test IGNORE_ERRORS attempts children of failed steps."""
    recording_executor.script["a"] = RuntimeError("boom")
    workflow = hierarchical(
        [StepDefinition("a"), StepDefinition("b", dependencies=["a"])],
        mode=ErrorHandlingMode.IGNORE_ERRORS,
    )

    await engine.execute_workflow(workflow)

    assert recording_executor.calls == ["a", "b"]


@pytest.mark.asyncio
async def test_skip_propagates_through_shared_child(engine, recording_executor):
    """Test a join with one failed parent is skipped even if the other succeeded."""
    recording_executor.script["left"] = ActionResult.failed("x")
    workflow = hierarchical(
        [
            StepDefinition("root"),
            StepDefinition("left", dependencies=["root"]),
            StepDefinition("right", dependencies=["root"]),
            StepDefinition("join", dependencies=["left", "right"]),
        ]
    )

    await engine.execute_workflow(workflow)

    assert recording_executor.calls == ["root", "left", "right"]
    status = engine.get_workflow_status(workflow.id)
    assert status.step_statuses["join"].state == StepState.SKIPPED
    assert status.step_statuses["right"].state == StepState.COMPLETED


@pytest.mark.asyncio
async def test_stop_mode_abandons_remaining_roots(engine, recording_executor):
    """Test STOP_WORKFLOW stops after the first branch with a failure."""
    recording_executor.script["r1"] = ActionResult.failed("x")
    workflow = hierarchical(
        [StepDefinition("r1"), StepDefinition("r2"), StepDefinition("r3")],
        mode=ErrorHandlingMode.STOP_WORKFLOW,
    )

    result = await engine.execute_workflow(workflow)

    assert recording_executor.calls == ["r1"]
    assert result.success is False
    assert result.message == "Workflow stopped due to failed steps"
    status = engine.get_workflow_status(workflow.id)
    assert status.steps_in(StepState.NOT_STARTED) == ["r2", "r3"]


@pytest.mark.asyncio
async def test_tolerated_failure_with_condition_free_children(engine, recording_executor):
    """Test S1 tolerated failure runs S2 and the run reports the failure."""
    recording_executor.script["s1"] = ActionResult.failed("soft")
    workflow = hierarchical(
        [
            StepDefinition("s1", is_critical=False, continue_on_failure=True),
            StepDefinition("s2", dependencies=["s1"]),
        ]
    )

    result = await engine.execute_workflow(workflow)

    status = engine.get_workflow_status(workflow.id)
    assert status.failed_steps == 1
    assert status.step_statuses["s2"].state == StepState.COMPLETED
    assert result.message == "Workflow completed with 1 failed steps"


@pytest.mark.asyncio
async def test_long_chain_runs_without_recursion_limit():
    """Test a chain far deeper than the interpreter's recursion limit completes."""
    recording_executor = RecordingExecutor()
    engine = WorkflowEngine(recording_executor)
    steps = [StepDefinition("s0")]
    steps += [StepDefinition(f"s{i}", dependencies=[f"s{i - 1}"]) for i in range(1, 2000)]

    result = await engine.execute_workflow(hierarchical(steps, timeout_seconds=60))

    assert result.success is True
    assert result.state == WorkflowState.COMPLETED
    assert recording_executor.calls == [step.id for step in steps]


@pytest.mark.asyncio
async def test_failure_deep_in_long_chain_skips_the_rest():
    """Test a failure midway down a long chain skips everything below it."""
    recording_executor = RecordingExecutor()
    engine = WorkflowEngine(recording_executor)
    steps = [StepDefinition("s0")]
    steps += [StepDefinition(f"s{i}", dependencies=[f"s{i - 1}"]) for i in range(1, 2000)]
    recording_executor.script["s1200"] = ActionResult.failed("broken link")

    result = await engine.execute_workflow(hierarchical(steps, timeout_seconds=60))
    status = engine.get_workflow_status(result.instance_id)

    assert result.success is False
    assert len(recording_executor.calls) == 1201
    assert len(status.steps_in(StepState.SKIPPED)) == 799
    assert status.failed_steps == 1
