"""
Tiny parser turning text such as

    age >= 18 and (name contains 'Jo' or city in ['Oslo', 'Bergen'])

into a filter tree. `and` binds tighter than `or`; parentheses group.
Operators are either built-in names (case-insensitive, e.g. `startsWith`,
`isnull`) or the symbols `= == != < <= > >=`.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List, Optional

from carrel_table.core.exceptions import FilterExpressionError

from .model import FilterCondition, FilterGroup, FilterNode
from .operators import BUILTIN_FILTERS, NO_VALUE_OPERATORS

SYMBOL_OPERATORS = {
    "=": "eq",
    "==": "eq",
    "!=": "neq",
    "<": "lt",
    "<=": "lte",
    ">": "gt",
    ">=": "gte",
}

_NAMED_OPERATORS = {name.lower(): name for name in BUILTIN_FILTERS}

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
  | (?P<number>-?\d+(?:\.\d+)?(?![\w.]))
  | (?P<symbol><=|>=|!=|==|=|<|>)
  | (?P<punct>[()\[\],])
  | (?P<word>[A-Za-z_][\w.]*)
    """,
    re.VERBOSE,
)


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str
    position: int


def _tokenize(text: str) -> List[_Token]:
    tokens: List[_Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise FilterExpressionError(f"Unexpected character {text[pos]!r}", pos)
        kind = match.lastgroup or ""
        if kind != "ws":
            tokens.append(_Token(kind, match.group(), pos))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, tokens: List[_Token]) -> None:
        self._tokens = tokens
        self._index = 0

    def _peek(self) -> Optional[_Token]:
        return self._tokens[self._index] if self._index < len(self._tokens) else None

    def _next(self) -> _Token:
        token = self._peek()
        if token is None:
            raise FilterExpressionError("Unexpected end of expression")
        self._index += 1
        return token

    def _expect(self, text: str) -> None:
        token = self._next()
        if token.text != text:
            raise FilterExpressionError(f"Expected {text!r}, got {token.text!r}", token.position)

    def _at_keyword(self, keyword: str) -> bool:
        token = self._peek()
        return token is not None and token.kind == "word" and token.text.lower() == keyword

    def parse(self) -> FilterNode:
        node = self._parse_or()
        token = self._peek()
        if token is not None:
            raise FilterExpressionError(f"Unexpected token {token.text!r}", token.position)
        return node

    def _parse_or(self) -> FilterNode:
        children = [self._parse_and()]
        while self._at_keyword("or"):
            self._next()
            children.append(self._parse_and())
        return children[0] if len(children) == 1 else FilterGroup(combinator="or", children=children)

    def _parse_and(self) -> FilterNode:
        children = [self._parse_atom()]
        while self._at_keyword("and"):
            self._next()
            children.append(self._parse_atom())
        return children[0] if len(children) == 1 else FilterGroup(combinator="and", children=children)

    def _parse_atom(self) -> FilterNode:
        token = self._peek()
        if token is not None and token.text == "(":
            self._next()
            node = self._parse_or()
            self._expect(")")
            return node
        return self._parse_condition()

    def _parse_condition(self) -> FilterCondition:
        field_token = self._next()
        if field_token.kind != "word":
            raise FilterExpressionError(f"Expected a field name, got {field_token.text!r}", field_token.position)

        op_token = self._next()
        if op_token.kind == "symbol":
            operator = SYMBOL_OPERATORS[op_token.text]
        elif op_token.kind == "word" and op_token.text.lower() in _NAMED_OPERATORS:
            operator = _NAMED_OPERATORS[op_token.text.lower()]
        else:
            raise FilterExpressionError(f"Unknown operator {op_token.text!r}", op_token.position)

        value = None if operator in NO_VALUE_OPERATORS else self._parse_value()
        return FilterCondition(field=field_token.text, operator=operator, value=value)

    def _parse_value(self) -> Any:
        token = self._next()
        if token.text == "[":
            items: List[Any] = []
            if self._peek() is not None and self._peek().text == "]":
                self._next()
                return items
            while True:
                items.append(self._parse_value())
                closing = self._next()
                if closing.text == "]":
                    return items
                if closing.text != ",":
                    raise FilterExpressionError(f"Expected ',' or ']', got {closing.text!r}", closing.position)

        if token.kind == "string":
            body = token.text[1:-1]
            return re.sub(r"\\(.)", r"\1", body)
        if token.kind == "number":
            return float(token.text) if "." in token.text else int(token.text)
        if token.kind == "word":
            lowered = token.text.lower()
            if lowered == "true":
                return True
            if lowered == "false":
                return False
            if lowered == "null":
                return None
            # bare words are taken as strings
            return token.text

        raise FilterExpressionError(f"Expected a value, got {token.text!r}", token.position)


def parse_filter_expression(expression: str) -> FilterNode:
    """
    Parse a textual filter expression into a filter tree.

    :raises FilterExpressionError: when the text is empty or malformed
    """
    tokens = _tokenize(expression or "")
    if not tokens:
        raise FilterExpressionError("Empty filter expression")
    return _Parser(tokens).parse()
