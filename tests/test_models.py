"""Tests for workflow definitions, results and status records."""

from datetime import UTC, datetime, timedelta

import pytest

from pyorchestra import (
    ActionResult,
    ErrorCode,
    ErrorHandlingMode,
    ErrorSeverity,
    ExecutionContext,
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


def test_step_definition_defaults():
    """Test StepDefinition fills in name and normalises dependencies."""
    step = StepDefinition("fetch", dependencies=["a", "b"])

    assert step.name == "fetch"
    assert step.dependencies == ("a", "b")
    assert step.is_critical is True
    assert step.continue_on_failure is False
    assert not step.has_condition


def test_step_definition_rejects_empty_id():
    """Test StepDefinition requires an id."""
    with pytest.raises(ValueError):
        StepDefinition("")


def test_step_definition_rejects_non_positive_timeout():
    """Test per-step timeouts must be positive."""
    with pytest.raises(ValueError):
        StepDefinition("a", timeout_seconds=0)


def test_blank_condition_is_no_condition():
    """Test a whitespace-only condition counts as absent."""
    assert not StepDefinition("a", condition="   ").has_condition
    assert StepDefinition("a", condition="b.success == true").has_condition


def test_workflow_definition_defaults():
    """Test WorkflowDefinition defaults and generated id."""
    workflow = WorkflowDefinition(name="wf", steps=[StepDefinition("a")])

    assert workflow.type == WorkflowType.SEQUENTIAL
    assert workflow.error_handling_mode == ErrorHandlingMode.CONTINUE_IF_ALLOWED
    assert workflow.timeout_seconds == 600
    assert isinstance(workflow.steps, tuple)
    assert workflow.id
    assert workflow.id != WorkflowDefinition(name="wf").id


def test_workflow_definition_is_immutable():
    """Test definitions cannot be mutated after construction."""
    workflow = WorkflowDefinition(name="wf", steps=[StepDefinition("a")])
    with pytest.raises(AttributeError):
        workflow.name = "other"


def test_workflow_definition_navigation():
    """Test roots, dependents and lookup helpers."""
    workflow = WorkflowDefinition(
        name="wf",
        steps=[
            StepDefinition("a"),
            StepDefinition("b", dependencies=["a"]),
            StepDefinition("c", dependencies=["a"]),
            StepDefinition("d"),
        ],
    )

    assert workflow.step_ids == ["a", "b", "c", "d"]
    assert [s.id for s in workflow.roots()] == ["a", "d"]
    assert [s.id for s in workflow.dependents_of("a")] == ["b", "c"]
    assert workflow.get_step("c").dependencies == ("a",)
    assert workflow.get_step("missing") is None


def test_with_steps_returns_copy():
    """Test with_steps keeps identity fields and swaps the steps."""
    workflow = WorkflowDefinition(name="wf", steps=[StepDefinition("a")])
    changed = workflow.with_steps([StepDefinition("x"), StepDefinition("y")])

    assert changed.id == workflow.id
    assert changed.step_ids == ["x", "y"]
    assert workflow.step_ids == ["a"]


def test_execution_context_variables():
    """Test context variable helpers and factory."""
    context = ExecutionContext.with_input_data({"order": 42})
    context.set("mode", "batch")

    assert context.get("mode") == "batch"
    assert context.get("missing", "default") == "default"
    assert context.input_data == {"order": 42}
    assert context.instance_id != ExecutionContext().instance_id


def test_action_result_factories():
    """Test successful/failed constructors copy their data."""
    data = {"k": 1}
    ok = ActionResult.successful("done", data)
    data["k"] = 2

    assert ok.success and ok.message == "done"
    assert ok.data == {"k": 1}
    assert not ActionResult.failed("boom").success


def test_workflow_error_from_exception_carries_trace():
    """Test from_exception records exception type and stack trace."""
    try:
        raise KeyError("missing")
    except KeyError as e:
        error = WorkflowError.from_exception(ErrorCode.STEP_ERROR, e, step_id="a", attempts=2)

    assert error.code == ErrorCode.STEP_ERROR
    assert error.details["exception_type"] == "KeyError"
    assert "raise KeyError" in error.details["stack_trace"]
    assert error.details["attempts"] == 2
    assert error.severity == ErrorSeverity.ERROR


def test_workflow_result_duration_and_dict():
    """Test WorkflowResult derives duration and serialises cleanly."""
    start = datetime(2024, 1, 1, tzinfo=UTC)
    result = WorkflowResult(
        success=False,
        message="nope",
        start_time=start,
        end_time=start + timedelta(milliseconds=1500),
        state=WorkflowState.FAILED,
        step_results={"a": ActionResult.failed("bad")},
        errors=[WorkflowError(ErrorCode.STEP_FAILED, "bad", step_id="a")],
    )

    assert result.duration_ms == 1500
    assert isinstance(result.errors, tuple)
    assert len(result.errors_with_code(ErrorCode.STEP_FAILED)) == 1

    as_dict = result.to_dict()
    assert as_dict["state"] == "FAILED"
    assert as_dict["errors"][0]["code"] == "STEP_FAILED"
    assert as_dict["step_results"]["a"]["success"] is False


def test_step_status_duration_needs_both_ends():
    """Test StepStatus.duration_ms stays None until both times are set."""
    status = StepStatus(step_id="a", name="a")
    assert status.duration_ms is None

    status.start_time = datetime(2024, 1, 1, tzinfo=UTC)
    assert status.duration_ms is None

    status.end_time = status.start_time + timedelta(milliseconds=250)
    assert status.duration_ms == 250


def test_workflow_status_snapshot_is_deep_copy():
    """Test snapshot() decouples callers from the live record."""
    status = WorkflowStatus(workflow_id="w", instance_id="i", name="n")
    status.step_statuses["a"] = StepStatus(step_id="a", name="a")

    snapshot = status.snapshot()
    status.step_statuses["a"].state = StepState.RUNNING
    status.state = WorkflowState.RUNNING

    assert snapshot.state == WorkflowState.NOT_STARTED
    assert snapshot.step_statuses["a"].state == StepState.NOT_STARTED


def test_workflow_status_to_dict():
    """Test WorkflowStatus.to_dict uses plain values."""
    status = WorkflowStatus(workflow_id="w", instance_id="i", name="n", total_steps=2)
    status.step_statuses["a"] = StepStatus(step_id="a", name="a", state=StepState.SKIPPED)

    data = status.to_dict()
    assert data["state"] == "NOT_STARTED"
    assert data["step_statuses"]["a"]["state"] == "SKIPPED"
    assert data["start_time"] is None


def test_terminal_states():
    """Test which states count as terminal."""
    assert {s for s in WorkflowState if s.is_terminal} == {
        WorkflowState.COMPLETED,
        WorkflowState.FAILED,
        WorkflowState.CANCELLED,
        WorkflowState.TIMED_OUT,
    }
    assert {s for s in StepState if s.is_terminal} == {
        StepState.COMPLETED,
        StepState.FAILED,
        StepState.SKIPPED,
    }
    assert str(WorkflowState.TIMED_OUT) == "TIMED_OUT"
