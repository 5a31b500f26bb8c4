"""
Typed syntax tree for step condition expressions.

Every node evaluates against a ConditionScope holding the step results
recorded so far and the run's context variables. Values are compared as
case-insensitive strings; booleans are rendered as ``"true"``/``"false"``
so ``fetch.success == True`` and ``fetch.success == true`` agree.

A reference that cannot be resolved (unknown step, missing data key,
unset variable) yields MISSING, and any comparison touching MISSING is
false regardless of the operator.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pyorchestra.models.result import ActionResult

MISSING = None
"""Resolved value of a reference that points at nothing."""


def _render(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _lookup(mapping: Mapping[str, Any], key: str) -> tuple[bool, Any]:
    # Exact match wins over a case-insensitive one.
    if key in mapping:
        return True, mapping[key]
    folded = key.casefold()
    for candidate, value in mapping.items():
        if candidate.casefold() == folded:
            return True, value
    return False, None


@dataclass(frozen=True)
class ConditionScope:
    """What a condition can see while it is evaluated."""

    step_results: Mapping[str, ActionResult]
    variables: Mapping[str, Any]


class Node:
    """Base for boolean-valued nodes."""

    def evaluate(self, scope: ConditionScope) -> bool:
        raise NotImplementedError


class Operand:
    """Base for value-producing nodes."""

    def resolve(self, scope: ConditionScope) -> str | None:
        raise NotImplementedError


@dataclass(frozen=True)
class Literal(Operand):
    value: str

    def resolve(self, scope: ConditionScope) -> str | None:
        return self.value


@dataclass(frozen=True)
class StepReference(Operand):
    """``<step>.success``, ``<step>.message`` or ``<step>.data.<key>``."""

    step_id: str
    attribute: str
    key: str | None = None

    def resolve(self, scope: ConditionScope) -> str | None:
        found, result = _lookup(scope.step_results, self.step_id)
        if not found:
            return MISSING
        if self.attribute == "success":
            return _render(result.success)
        if self.attribute == "message":
            return result.message
        found, value = _lookup(result.data, self.key or "")
        return _render(value) if found else MISSING


@dataclass(frozen=True)
class ContextReference(Operand):
    """``context.<name>``."""

    name: str

    def resolve(self, scope: ConditionScope) -> str | None:
        found, value = _lookup(scope.variables, self.name)
        return _render(value) if found else MISSING


@dataclass(frozen=True)
class Comparison(Node):
    left: Operand
    operator: str
    right: Operand

    def evaluate(self, scope: ConditionScope) -> bool:
        left = self.left.resolve(scope)
        right = self.right.resolve(scope)
        if left is MISSING or right is MISSING:
            return False
        equal = left.casefold() == right.casefold()
        return equal if self.operator == "==" else not equal


@dataclass(frozen=True)
class Truthy(Node):
    """A lone operand, true when it resolves to ``"true"``."""

    operand: Operand

    def evaluate(self, scope: ConditionScope) -> bool:
        value = self.operand.resolve(scope)
        return value is not MISSING and value.casefold() == "true"


@dataclass(frozen=True)
class Not(Node):
    operand: Node

    def evaluate(self, scope: ConditionScope) -> bool:
        return not self.operand.evaluate(scope)


@dataclass(frozen=True)
class And(Node):
    left: Node
    right: Node

    def evaluate(self, scope: ConditionScope) -> bool:
        return self.left.evaluate(scope) and self.right.evaluate(scope)


@dataclass(frozen=True)
class Or(Node):
    left: Node
    right: Node

    def evaluate(self, scope: ConditionScope) -> bool:
        return self.left.evaluate(scope) or self.right.evaluate(scope)
