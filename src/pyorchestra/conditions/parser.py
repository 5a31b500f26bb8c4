"""
Parser for step condition expressions.

Grammar (keywords are case-insensitive):

    expression  := or_expr
    or_expr     := and_expr ("or" and_expr)*
    and_expr    := not_expr ("and" not_expr)*
    not_expr    := "not" not_expr | primary
    primary     := "(" expression ")" | operand [("==" | "!=") operand]
    operand     := reference | literal
    reference   := STEP ".success" | STEP ".message" | STEP ".data." KEY
                 | "context." NAME
    literal     := quoted string | bare word

Examples:
    fetch.success == true
    context.mode == 'batch' and not audit.success
    (score.data.grade != low) or context.force == yes
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache

from pyorchestra.conditions.nodes import (
    And,
    Comparison,
    ContextReference,
    Literal,
    Node,
    Not,
    Operand,
    Or,
    StepReference,
    Truthy,
)
from pyorchestra.errors import OrchestraError


class ConditionSyntaxError(OrchestraError):
    """A condition expression could not be parsed."""

    def __init__(self, expression: str, message: str, position: int | None = None):
        self.expression = expression
        self.position = position
        where = f" at position {position}" if position is not None else ""
        super().__init__(f"Invalid condition {expression!r}{where}: {message}")


_TOKEN_PATTERN = re.compile(
    r"""
    (?P<space>\s+)
  | (?P<lparen>\()
  | (?P<rparen>\))
  | (?P<op>==|!=)
  | (?P<string>"[^"]*"|'[^']*')
  | (?P<word>[^\s()=!'"]+)
    """,
    re.VERBOSE,
)

_KEYWORDS = {"and", "or", "not"}


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int


def tokenize(expression: str) -> list[Token]:
    tokens: list[Token] = []
    position = 0
    while position < len(expression):
        match = _TOKEN_PATTERN.match(expression, position)
        if match is None:
            raise ConditionSyntaxError(
                expression, f"unexpected character {expression[position]!r}", position
            )
        kind = match.lastgroup
        text = match.group()
        if kind == "word" and text.lower() in _KEYWORDS:
            kind = text.lower()
        if kind != "space":
            tokens.append(Token(kind, text, position))
        position = match.end()
    return tokens


def _reference_or_literal(text: str) -> Operand:
    parts = text.split(".")
    if len(parts) >= 2 and parts[0].lower() == "context" and all(parts[1:]):
        return ContextReference(".".join(parts[1:]))
    if len(parts) == 2 and parts[0] and parts[1].lower() in ("success", "message"):
        return StepReference(parts[0], parts[1].lower())
    if len(parts) >= 3 and parts[0] and parts[1].lower() == "data" and all(parts[2:]):
        return StepReference(parts[0], "data", ".".join(parts[2:]))
    return Literal(text)


class _Parser:
    def __init__(self, expression: str):
        self.expression = expression
        self.tokens = tokenize(expression)
        self.index = 0

    def _peek(self) -> Token | None:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _error(self, message: str) -> ConditionSyntaxError:
        token = self._peek()
        position = token.position if token else len(self.expression)
        return ConditionSyntaxError(self.expression, message, position)

    def parse(self) -> Node:
        if not self.tokens:
            raise ConditionSyntaxError(self.expression, "empty expression")
        node = self._or()
        if self._peek() is not None:
            raise self._error(f"unexpected {self._peek().text!r}")
        return node

    def _or(self) -> Node:
        node = self._and()
        while self._peek() is not None and self._peek().kind == "or":
            self._advance()
            node = Or(node, self._and())
        return node

    def _and(self) -> Node:
        node = self._not()
        while self._peek() is not None and self._peek().kind == "and":
            self._advance()
            node = And(node, self._not())
        return node

    def _not(self) -> Node:
        token = self._peek()
        if token is not None and token.kind == "not":
            self._advance()
            return Not(self._not())
        return self._primary()

    def _primary(self) -> Node:
        token = self._peek()
        if token is None:
            raise self._error("expression ends unexpectedly")

        if token.kind == "lparen":
            self._advance()
            node = self._or()
            closing = self._peek()
            if closing is None or closing.kind != "rparen":
                raise self._error("expected ')'")
            self._advance()
            return node

        left = self._operand()
        operator = self._peek()
        if operator is None or operator.kind != "op":
            return Truthy(left)
        self._advance()
        return Comparison(left, operator.text, self._operand())

    def _operand(self) -> Operand:
        token = self._peek()
        if token is None:
            raise self._error("expected a value")
        if token.kind == "string":
            self._advance()
            return Literal(token.text[1:-1])
        if token.kind == "word":
            self._advance()
            return _reference_or_literal(token.text)
        raise self._error(f"expected a value, got {token.text!r}")


@lru_cache(maxsize=256)
def parse_condition(expression: str) -> Node:
    """
    Parse ``expression`` into a syntax tree.

    Results are cached; nodes are immutable so sharing them is safe.

    Raises:
        ConditionSyntaxError: If the expression is malformed
    """
    return _Parser(expression).parse()
