"""Tests for condition expression parsing and evaluation."""

import pytest

from pyorchestra import (
    ActionResult,
    ConditionEvaluator,
    ConditionSyntaxError,
    ExecutionContext,
    ExpressionConditionEvaluator,
)
from pyorchestra.conditions import parse_condition
from pyorchestra.conditions.nodes import (
    And,
    Comparison,
    ContextReference,
    Literal,
    Not,
    Or,
    StepReference,
    Truthy,
)


@pytest.fixture
def evaluator():
    return ExpressionConditionEvaluator()


@pytest.fixture
def results():
    return {
        "fetch": ActionResult.successful("Fetched OK", {"count": 3, "Grade": "High"}),
        "audit": ActionResult.failed("denied"),
    }


@pytest.fixture
def context():
    ctx = ExecutionContext()
    ctx.set("mode", "Batch")
    ctx.set("dry_run", False)
    return ctx


# ============================================================================
# Parsing
# ============================================================================


def test_parse_comparison():
    """Test a plain comparison parses into references and literals."""
    tree = parse_condition("fetch.success == true")

    assert tree == Comparison(StepReference("fetch", "success"), "==", Literal("true"))


def test_parse_references():
    """Test every reference form."""
    assert parse_condition("a.message != 'x'") == Comparison(
        StepReference("a", "message"), "!=", Literal("x")
    )
    assert parse_condition("a.data.key == 1").left == StepReference("a", "data", "key")
    assert parse_condition("context.mode == x").left == ContextReference("mode")


def test_parse_precedence():
    """Test not binds tighter than and, which binds tighter than or."""
    tree = parse_condition("a.success or not b.success and c.success")

    assert isinstance(tree, Or)
    assert tree.left == Truthy(StepReference("a", "success"))
    assert isinstance(tree.right, And)
    assert isinstance(tree.right.left, Not)


def test_parse_parentheses_and_keyword_case():
    """Test grouping and case-insensitive keywords."""
    tree = parse_condition("(a.success OR b.success) AND c.success")

    assert isinstance(tree, And)
    assert isinstance(tree.left, Or)


@pytest.mark.parametrize(
    "expression",
    ["", "   ", "a.success ==", "(a.success", "a.success == b c", "and", "a.success = b"],
)
def test_parse_rejects_malformed(expression):
    """Test malformed expressions raise ConditionSyntaxError."""
    with pytest.raises(ConditionSyntaxError):
        parse_condition(expression)


def test_syntax_error_reports_position():
    """Test the error message points at the offending token."""
    with pytest.raises(ConditionSyntaxError) as exc_info:
        parse_condition("a.success == b )")

    assert exc_info.value.position == 15
    assert "position 15" in str(exc_info.value)


# ============================================================================
# Evaluation
# ============================================================================


def test_default_evaluator_satisfies_protocol(evaluator):
    """Test the default evaluator is a ConditionEvaluator."""
    assert isinstance(evaluator, ConditionEvaluator)


@pytest.mark.parametrize(
    "condition, expected",
    [
        ("fetch.success == true", True),
        ("fetch.success == TRUE", True),
        ("FETCH.Success == true", True),
        ("audit.success == false", True),
        ("audit.success != false", False),
        ("fetch.message == 'fetched ok'", True),
        ("fetch.data.count == 3", True),
        ("fetch.data.grade == high", True),
        ("context.mode == batch", True),
        ("context.dry_run == false", True),
        ("fetch.success and not audit.success", True),
        ("audit.success or context.mode == stream", False),
        ("(audit.success or fetch.success) and context.mode != stream", True),
    ],
)
def test_evaluate(evaluator, results, context, condition, expected):
    """Test evaluation over step results and context variables."""
    assert evaluator.evaluate(condition, results, context) is expected


@pytest.mark.parametrize(
    "condition",
    [
        "ghost.success == false",
        "ghost.success != true",
        "fetch.data.missing == anything",
        "fetch.data.missing != anything",
        "context.unset != x",
    ],
)
def test_missing_references_are_false(evaluator, results, context, condition):
    """Test any comparison touching an unresolvable reference is false."""
    assert evaluator.evaluate(condition, results, context) is False


def test_not_of_missing_is_true(evaluator, results, context):
    """Test negation applies after the missing comparison is false."""
    assert evaluator.evaluate("not ghost.success == true", results, context) is True


def test_syntax_error_evaluates_false(evaluator, results, context, caplog):
    """Test a malformed condition is reported as not satisfied."""
    assert evaluator.evaluate("fetch.success ==", results, context) is False
    assert "Could not evaluate condition" in caplog.text
