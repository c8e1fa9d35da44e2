"""Restricted arithmetic formulas for jurisdiction-supplied policies.

Formulas are configuration data, not code. The grammar is::

    expression := term (("+" | "-") term)*
    term       := unary (("*" | "/") unary)*
    unary      := "-" unary | "+" unary | primary
    primary    := NUMBER | "{" NAME "}" | FUNC "(" expression ("," expression)* ")"
                | "(" expression ")"

with ``FUNC`` one of ``MAX`` / ``MIN`` (two arguments, case-insensitive).
Parsing produces an immutable expression tree which is then evaluated
against a variable mapping with Decimal arithmetic.

    >>> evaluate_formula("MAX(1560000, {annualGross} * 0.333)", {"annualGross": 3600000})
    Decimal('1560000')
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from typing import Callable, Mapping, Union

from payroll_tax.calculators.errors import (
    DivisionByZero,
    FormulaSyntaxError,
    UnknownVariable,
)
from payroll_tax.calculators.types import to_decimal

Number = Union[int, float, Decimal]

# Nesting levels (parentheses, function calls, unary signs) a formula may use
MAX_NESTING_DEPTH = 64

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
    | (?P<number>\d+(?:\.\d*)?|\.\d+)
    | (?P<variable>\{\s*[A-Za-z_][A-Za-z0-9_]*\s*\})
    | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
    | (?P<op>[-+*/])
    | (?P<lparen>\()
    | (?P<rparen>\))
    | (?P<comma>,)
    """,
    re.VERBOSE,
)

FUNCTIONS: dict[str, tuple[int, Callable[[Decimal, Decimal], Decimal]]] = {
    "MAX": (2, max),
    "MIN": (2, min),
}


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int


def tokenize(formula: str) -> list[Token]:
    """Split a formula into tokens, rejecting anything outside the grammar."""
    tokens: list[Token] = []
    pos = 0
    while pos < len(formula):
        match = _TOKEN_RE.match(formula, pos)
        if match is None:
            raise FormulaSyntaxError(
                formula, f"unexpected character {formula[pos]!r}", pos
            )
        kind = match.lastgroup
        if kind != "ws":
            tokens.append(Token(kind, match.group(), pos))
        pos = match.end()
    return tokens


# === Expression tree ===


@dataclass(frozen=True)
class Literal:
    value: Decimal

    def evaluate(self, variables: Mapping[str, Decimal]) -> Decimal:
        return self.value

    def variable_names(self) -> frozenset[str]:
        return frozenset()


@dataclass(frozen=True)
class VariableRef:
    name: str

    def evaluate(self, variables: Mapping[str, Decimal]) -> Decimal:
        if self.name not in variables:
            raise UnknownVariable(self.name, list(variables))
        return variables[self.name]

    def variable_names(self) -> frozenset[str]:
        return frozenset({self.name})


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: Expression

    def evaluate(self, variables: Mapping[str, Decimal]) -> Decimal:
        value = self.operand.evaluate(variables)
        return -value if self.op == "-" else value

    def variable_names(self) -> frozenset[str]:
        return self.operand.variable_names()


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Expression
    right: Expression

    def evaluate(self, variables: Mapping[str, Decimal]) -> Decimal:
        left = self.left.evaluate(variables)
        right = self.right.evaluate(variables)
        if self.op == "+":
            return left + right
        if self.op == "-":
            return left - right
        if self.op == "*":
            return left * right
        if right == 0:
            raise DivisionByZero()
        return left / right

    def variable_names(self) -> frozenset[str]:
        return self.left.variable_names() | self.right.variable_names()


@dataclass(frozen=True)
class FunctionCall:
    name: str
    args: tuple[Expression, ...]

    def evaluate(self, variables: Mapping[str, Decimal]) -> Decimal:
        _, func = FUNCTIONS[self.name]
        return func(*(arg.evaluate(variables) for arg in self.args))

    def variable_names(self) -> frozenset[str]:
        names: frozenset[str] = frozenset()
        for arg in self.args:
            names |= arg.variable_names()
        return names


Expression = Union[Literal, VariableRef, UnaryOp, BinaryOp, FunctionCall]


class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, formula: str):
        self.formula = formula
        self.tokens = tokenize(formula)
        self.index = 0
        self.depth = 0

    def parse(self) -> Expression:
        if not self.tokens:
            raise FormulaSyntaxError(self.formula, "empty formula")
        expr = self._expression()
        if self.index < len(self.tokens):
            token = self.tokens[self.index]
            raise FormulaSyntaxError(
                self.formula, f"unexpected {token.text!r}", token.position
            )
        return expr

    def _peek(self) -> Token | None:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def _advance(self) -> Token:
        token = self._peek()
        if token is None:
            raise FormulaSyntaxError(
                self.formula, "unexpected end of formula", len(self.formula)
            )
        self.index += 1
        return token

    def _expect(self, kind: str, description: str) -> Token:
        token = self._advance()
        if token.kind != kind:
            raise FormulaSyntaxError(
                self.formula,
                f"expected {description}, found {token.text!r}",
                token.position,
            )
        return token

    def _expression(self) -> Expression:
        node = self._term()
        while (token := self._peek()) is not None and token.kind == "op" and token.text in "+-":
            self.index += 1
            node = BinaryOp(token.text, node, self._term())
        return node

    def _term(self) -> Expression:
        node = self._unary()
        while (token := self._peek()) is not None and token.kind == "op" and token.text in "*/":
            self.index += 1
            node = BinaryOp(token.text, node, self._unary())
        return node

    def _unary(self) -> Expression:
        token = self._peek()
        if self.depth >= MAX_NESTING_DEPTH:
            position = token.position if token is not None else len(self.formula)
            raise FormulaSyntaxError(self.formula, "nesting too deep", position)

        self.depth += 1
        try:
            if token is not None and token.kind == "op" and token.text in "+-":
                self.index += 1
                return UnaryOp(token.text, self._unary())
            return self._primary()
        finally:
            self.depth -= 1

    def _primary(self) -> Expression:
        token = self._advance()

        if token.kind == "number":
            return Literal(Decimal(token.text))

        if token.kind == "variable":
            return VariableRef(token.text[1:-1].strip())

        if token.kind == "name":
            return self._call(token)

        if token.kind == "lparen":
            expr = self._expression()
            self._expect("rparen", "')'")
            return expr

        raise FormulaSyntaxError(
            self.formula, f"unexpected {token.text!r}", token.position
        )

    def _call(self, name_token: Token) -> FunctionCall:
        name = name_token.text.upper()
        if name not in FUNCTIONS:
            raise FormulaSyntaxError(
                self.formula, f"unknown function {name_token.text!r}", name_token.position
            )
        self._expect("lparen", f"'(' after {name}")

        args = [self._expression()]
        while (token := self._peek()) is not None and token.kind == "comma":
            self.index += 1
            args.append(self._expression())
        self._expect("rparen", "')'")

        arity, _ = FUNCTIONS[name]
        if len(args) != arity:
            raise FormulaSyntaxError(
                self.formula,
                f"{name} takes {arity} arguments, got {len(args)}",
                name_token.position,
            )
        return FunctionCall(name, tuple(args))


@lru_cache(maxsize=256)
def parse_formula(formula: str) -> Expression:
    """Parse a formula into an expression tree.

    Raises:
        FormulaSyntaxError: If the formula does not match the grammar
    """
    return _Parser(formula).parse()


def evaluate_formula(formula: str, variables: Mapping[str, Number]) -> Decimal:
    """Evaluate a formula with ``{name}`` placeholders bound to ``variables``.

    Raises:
        FormulaSyntaxError: Malformed formula
        UnknownVariable: Placeholder not present in ``variables``
        DivisionByZero: Right operand of ``/`` evaluated to zero
    """
    expression = parse_formula(formula)
    bound = {name: to_decimal(value) for name, value in variables.items()}
    try:
        return expression.evaluate(bound)
    except DivisionByZero:
        raise DivisionByZero(formula) from None
