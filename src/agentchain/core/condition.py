"""Text predicates used to gate conditional agents.

Supported shapes, checked in this order::

    contains('text')
    starts_with('text')
    ends_with('text')
    length > 100        # >, <, >=, <=, ==, =

Text predicates are case-insensitive. Length compares the raw content length.
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass

_CONTAINS = re.compile(r"contains\(['\"](.+?)['\"]\)")
_STARTS_WITH = re.compile(r"starts_with\(['\"](.+?)['\"]\)")
_ENDS_WITH = re.compile(r"ends_with\(['\"](.+?)['\"]\)")
_LENGTH = re.compile(r"length\s*(>=|<=|==|>|<|=)\s*(\d+)")

_LENGTH_OPS = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
    "==": operator.eq,
    "=": operator.eq,
}

SUPPORTED_FORMATS = "contains('text'), starts_with('text'), ends_with('text'), or length > 100"


@dataclass
class ConditionValidation:
    is_valid: bool
    error: str | None = None


def evaluate_condition(condition: str, content: str) -> bool:
    """Evaluate *condition* against *content*. Unknown syntax is False, never an error."""
    if not isinstance(condition, str) or not isinstance(content, str):
        return False
    if not condition or not content:
        return False

    normalized = condition.strip().lower()
    text = content.lower()

    match = _CONTAINS.search(normalized)
    if match:
        return match.group(1) in text

    match = _STARTS_WITH.search(normalized)
    if match:
        return text.startswith(match.group(1))

    match = _ENDS_WITH.search(normalized)
    if match:
        return text.endswith(match.group(1))

    match = _LENGTH.search(normalized)
    if match:
        op = _LENGTH_OPS[match.group(1)]
        return op(len(content), int(match.group(2)))

    return False


def validate_condition(condition: str) -> ConditionValidation:
    """Check that *condition* has a supported shape without evaluating it."""
    if not condition or not condition.strip():
        return ConditionValidation(is_valid=False, error="Condition cannot be empty")

    normalized = condition.strip().lower()
    for pattern in (_CONTAINS, _STARTS_WITH, _ENDS_WITH, _LENGTH):
        if pattern.search(normalized):
            return ConditionValidation(is_valid=True)

    return ConditionValidation(
        is_valid=False,
        error=f"Unsupported condition format. Use: {SUPPORTED_FORMATS}",
    )
