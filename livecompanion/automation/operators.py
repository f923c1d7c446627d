# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Built-in condition operators.

Each operator is a pure function of ``(actual, expected)``. Operand coercion
failures raise ConditionEvaluationError, which the evaluator treats as a
non-match.
"""

import re
from collections.abc import Callable
from enum import Enum
from typing import Any

from livecompanion.errors import ConditionEvaluationError

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off", ""}


def _to_number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConditionEvaluationError(f"Not a number: {value!r}") from e


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return bool(value)


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).lower()


def _to_list(value: Any) -> list[str]:
    if isinstance(value, (list, tuple, set)):
        return [str(v).strip() for v in value]
    return [v.strip() for v in str(value).split(",")]


def _loose_equals(actual: Any, expected: Any) -> bool:
    if actual == expected:
        return True
    if isinstance(actual, bool) or isinstance(expected, bool):
        return _to_bool(actual) == _to_bool(expected)
    try:
        return float(actual) == float(expected)
    except (TypeError, ValueError):
        return str(actual) == str(expected)


def _exists(actual: Any) -> bool:
    return actual is not None and actual != ""


def _matches_regex(actual: Any, expected: Any) -> bool:
    try:
        return re.search(str(expected), str(actual), re.IGNORECASE) is not None
    except re.error as e:
        raise ConditionEvaluationError(f"Invalid pattern {expected!r}: {e}") from e


_EVALUATORS: dict[str, Callable[[Any, Any], bool]] = {
    "equals": _loose_equals,
    "not_equals": lambda a, b: not _loose_equals(a, b),
    "greater_than": lambda a, b: _to_number(a) > _to_number(b),
    "less_than": lambda a, b: _to_number(a) < _to_number(b),
    "greater_or_equal": lambda a, b: _to_number(a) >= _to_number(b),
    "less_or_equal": lambda a, b: _to_number(a) <= _to_number(b),
    "contains": lambda a, b: _to_text(b) in _to_text(a),
    "not_contains": lambda a, b: _to_text(b) not in _to_text(a),
    "starts_with": lambda a, b: _to_text(a).startswith(_to_text(b)),
    "ends_with": lambda a, b: _to_text(a).endswith(_to_text(b)),
    "matches_regex": _matches_regex,
    "in_list": lambda a, b: str(a) in _to_list(b),
    "not_in_list": lambda a, b: str(a) not in _to_list(b),
    "exists": lambda a, _b: _exists(a),
    "not_exists": lambda a, _b: not _exists(a),
    "is_true": lambda a, _b: _to_bool(a) is True,
    "is_false": lambda a, _b: _to_bool(a) is False,
}


class Operator(str, Enum):
    """Closed set of built-in comparison operators."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_OR_EQUAL = "greater_or_equal"
    LESS_OR_EQUAL = "less_or_equal"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    MATCHES_REGEX = "matches_regex"
    IN_LIST = "in_list"
    NOT_IN_LIST = "not_in_list"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"
    IS_TRUE = "is_true"
    IS_FALSE = "is_false"

    @classmethod
    def parse(cls, raw: str) -> "Operator | None":
        """Resolve an operator name or symbol alias; None if unknown."""
        key = raw.strip()
        if key in OPERATOR_ALIASES:
            return OPERATOR_ALIASES[key]
        try:
            return cls(key.lower())
        except ValueError:
            return None

    @property
    def symbol(self) -> str:
        return OPERATOR_SYMBOLS.get(self, self.value.replace("_", " "))

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()

    @property
    def accepts_missing(self) -> bool:
        """Whether the operator can be applied to a field that does not exist."""
        return self in (Operator.EXISTS, Operator.NOT_EXISTS)

    def evaluate(self, actual: Any, expected: Any = None) -> bool:
        return _EVALUATORS[self.value](actual, expected)


OPERATOR_SYMBOLS: dict[Operator, str] = {
    Operator.EQUALS: "==",
    Operator.NOT_EQUALS: "!=",
    Operator.GREATER_THAN: ">",
    Operator.LESS_THAN: "<",
    Operator.GREATER_OR_EQUAL: ">=",
    Operator.LESS_OR_EQUAL: "<=",
}

OPERATOR_ALIASES: dict[str, Operator] = {
    symbol: operator for operator, symbol in OPERATOR_SYMBOLS.items()
}
OPERATOR_ALIASES["="] = Operator.EQUALS
