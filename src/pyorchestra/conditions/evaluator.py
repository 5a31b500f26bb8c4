"""Condition evaluation for the conditional strategy."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from pyorchestra.conditions.nodes import ConditionScope
from pyorchestra.conditions.parser import ConditionSyntaxError, parse_condition
from pyorchestra.models.context import ExecutionContext
from pyorchestra.models.result import ActionResult

logger = logging.getLogger(__name__)


@runtime_checkable
class ConditionEvaluator(Protocol):
    """Decides whether a step condition holds.

    Implementations must not raise: a condition that cannot be evaluated
    is reported as False, which leaves the step not ready.
    """

    def evaluate(
        self,
        condition: str,
        step_results: Mapping[str, ActionResult],
        context: ExecutionContext,
    ) -> bool: ...


class ExpressionConditionEvaluator:
    """Default evaluator backed by the condition expression parser.

    Usage:
        evaluator = ExpressionConditionEvaluator()
        evaluator.evaluate("fetch.success == true", results, context)
    """

    def evaluate(
        self,
        condition: str,
        step_results: Mapping[str, ActionResult],
        context: ExecutionContext,
    ) -> bool:
        try:
            tree = parse_condition(condition.strip())
        except ConditionSyntaxError as e:
            logger.warning(f"Could not evaluate condition: {e}")
            return False

        return tree.evaluate(ConditionScope(step_results=step_results, variables=context.variables))
