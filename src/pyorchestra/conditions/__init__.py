"""Step condition expressions: parser, syntax tree and evaluators."""

from pyorchestra.conditions.evaluator import ConditionEvaluator, ExpressionConditionEvaluator
from pyorchestra.conditions.nodes import ConditionScope
from pyorchestra.conditions.parser import ConditionSyntaxError, parse_condition

__all__ = [
    "ConditionEvaluator",
    "ConditionScope",
    "ConditionSyntaxError",
    "ExpressionConditionEvaluator",
    "parse_condition",
]
