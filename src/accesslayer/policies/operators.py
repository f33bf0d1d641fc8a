"""
Typed comparison operators for condition leaves.

Every operator takes the resolved attribute value and the (template-resolved)
condition value and returns a boolean. Comparisons involving UNDEFINED are
fail-closed: they return False, except for the negative operators (!=,
NOT_IN, NOT_CONTAINS) where absence differs from any concrete value.

Coercion rules:
    - numbers compare numerically; numeric strings coerce against numbers
    - booleans accept "true"/"false" strings
    - dates and datetimes accept ISO-8601 strings
    - ordering (>, <, >=, <=, BETWEEN) is numeric or date only
"""

from __future__ import annotations

import operator as op
import re
from collections.abc import Callable
from datetime import date, datetime, timezone
from enum import StrEnum
from functools import lru_cache
from typing import Any

from accesslayer.core.errors import EvaluationError
from accesslayer.policies.attributes import UNDEFINED, stringify

DEFAULT_MAX_REGEX_LENGTH = 512


class Operator(StrEnum):
    """Condition leaf operators."""

    EQ = "="
    NE = "!="
    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="
    IN = "IN"
    NOT_IN = "NOT_IN"
    CONTAINS = "CONTAINS"
    NOT_CONTAINS = "NOT_CONTAINS"
    STARTS_WITH = "STARTS_WITH"
    ENDS_WITH = "ENDS_WITH"
    MATCHES = "MATCHES"
    BETWEEN = "BETWEEN"


# Operator names used by older policy documents
LEGACY_ALIASES: dict[str, Operator] = {
    "==": Operator.EQ,
    "equals": Operator.EQ,
    "not_equals": Operator.NE,
    "greater_than": Operator.GT,
    "less_than": Operator.LT,
    "greater_than_or_equal": Operator.GTE,
    "less_than_or_equal": Operator.LTE,
    "in": Operator.IN,
    "not_in": Operator.NOT_IN,
    "contains": Operator.CONTAINS,
    "not_contains": Operator.NOT_CONTAINS,
    "starts_with": Operator.STARTS_WITH,
    "ends_with": Operator.ENDS_WITH,
    "matches": Operator.MATCHES,
    "matches_regex": Operator.MATCHES,
    "between": Operator.BETWEEN,
}

# Operators whose value must be an array
ARRAY_OPERATORS: frozenset[Operator] = frozenset({Operator.IN, Operator.NOT_IN, Operator.BETWEEN})


def normalize_operator(raw: Any) -> Operator | None:
    """Map an operator name (canonical or legacy) to an Operator."""
    if isinstance(raw, Operator):
        return raw
    if not isinstance(raw, str):
        return None

    name = raw.strip()
    try:
        return Operator(name)
    except ValueError:
        pass
    if name.lower() in LEGACY_ALIASES:
        return LEGACY_ALIASES[name.lower()]
    try:
        return Operator(name.upper())
    except ValueError:
        return None


# -- Coercion --


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def _as_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _ordered(a: Any, b: Any) -> tuple[Any, Any] | None:
    """Coerce both operands to a common orderable type, or None."""
    na, nb = _as_number(a), _as_number(b)
    if na is not None and nb is not None:
        return na, nb
    da, db = _as_datetime(a), _as_datetime(b)
    if da is not None and db is not None:
        return da, db
    return None


def values_equal(a: Any, b: Any) -> bool:
    """Equality after type coercion. UNDEFINED equals nothing."""
    if a is UNDEFINED or b is UNDEFINED:
        return False
    if isinstance(a, bool) or isinstance(b, bool):
        ba = _as_bool(a)
        return ba is not None and ba == _as_bool(b)
    if isinstance(a, (int, float)) or isinstance(b, (int, float)):
        na = _as_number(a)
        return na is not None and na == _as_number(b)
    if isinstance(a, (date, datetime)) or isinstance(b, (date, datetime)):
        da = _as_datetime(a)
        return da is not None and da == _as_datetime(b)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))
    return a == b


def _is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _member(value: Any, items: Any) -> bool:
    return any(values_equal(value, item) for item in items)


# -- Operators --


def _eq(a: Any, v: Any) -> bool:
    return values_equal(a, v)


def _ne(a: Any, v: Any) -> bool:
    if a is UNDEFINED or v is UNDEFINED:
        return True
    return not values_equal(a, v)


def _ordering(compare: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def check(a: Any, v: Any) -> bool:
        if a is UNDEFINED or v is UNDEFINED:
            return False
        pair = _ordered(a, v)
        if pair is None:
            return False
        return compare(*pair)

    return check


def _in(a: Any, v: Any) -> bool:
    if a is UNDEFINED or not _is_array(v):
        return False
    return _member(a, v)


def _not_in(a: Any, v: Any) -> bool:
    if not _is_array(v):
        return False
    if a is UNDEFINED:
        return True
    return not _member(a, v)


def _contains(a: Any, v: Any) -> bool:
    if a is UNDEFINED or v is UNDEFINED:
        return False
    if _is_array(a):
        return _member(v, a)
    return stringify(v) in stringify(a)


def _not_contains(a: Any, v: Any) -> bool:
    if v is UNDEFINED:
        return False
    if a is UNDEFINED:
        return True
    return not _contains(a, v)


def _starts_with(a: Any, v: Any) -> bool:
    if a is UNDEFINED or v is UNDEFINED:
        return False
    return stringify(a).startswith(stringify(v))


def _ends_with(a: Any, v: Any) -> bool:
    if a is UNDEFINED or v is UNDEFINED:
        return False
    return stringify(a).endswith(stringify(v))


def _between(a: Any, v: Any) -> bool:
    if a is UNDEFINED or not _is_array(v) or len(v) != 2:
        return False
    low = _ordered(a, v[0])
    high = _ordered(a, v[1])
    if low is None or high is None:
        return False
    return low[1] <= low[0] and high[0] <= high[1]


@lru_cache(maxsize=256)
def _compile_pattern(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise EvaluationError(
            f"invalid regular expression: {e}",
            details={"pattern": pattern},
        ) from e


def _matches(a: Any, v: Any, max_regex_length: int) -> bool:
    if a is UNDEFINED or not isinstance(v, str):
        return False
    if len(v) > max_regex_length:
        raise EvaluationError(
            "regular expression too long",
            details={"length": len(v), "max_length": max_regex_length},
        )
    return _compile_pattern(v).search(stringify(a)) is not None


COMPARATORS: dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.EQ: _eq,
    Operator.NE: _ne,
    Operator.GT: _ordering(op.gt),
    Operator.LT: _ordering(op.lt),
    Operator.GTE: _ordering(op.ge),
    Operator.LTE: _ordering(op.le),
    Operator.IN: _in,
    Operator.NOT_IN: _not_in,
    Operator.CONTAINS: _contains,
    Operator.NOT_CONTAINS: _not_contains,
    Operator.STARTS_WITH: _starts_with,
    Operator.ENDS_WITH: _ends_with,
    Operator.BETWEEN: _between,
}


def apply_operator(
    operator: Operator,
    actual: Any,
    expected: Any,
    *,
    max_regex_length: int = DEFAULT_MAX_REGEX_LENGTH,
) -> bool:
    """
    Apply a condition operator.

    Args:
        operator: The operator to apply
        actual: Resolved attribute value (may be UNDEFINED)
        expected: Resolved condition value (may be UNDEFINED)
        max_regex_length: Upper bound on MATCHES pattern length

    Returns:
        True if the comparison holds

    Raises:
        EvaluationError: For an invalid or over-long MATCHES pattern
    """
    if operator is Operator.MATCHES:
        return _matches(actual, expected, max_regex_length)
    return COMPARATORS[operator](actual, expected)
