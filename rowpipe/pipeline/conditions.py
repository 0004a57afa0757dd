"""
Condition evaluation for request steps.
Supports comparison expressions and exists/not_exists checks.
"""

import logging
import operator
import re
from typing import Any, Callable, Dict, Optional

from ..types import Condition
from ..variables.coercion import coerce_value, is_numeric_text, parse_number
from ..variables.substitution import LayeredLookup, PlaceholderResolver

logger = logging.getLogger(__name__)

ORDERING_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    '>': operator.gt,
    '>=': operator.ge,
    '<': operator.lt,
    '<=': operator.le,
}
EQUALITY_OPERATORS = {'==', '!=', '===', '!=='}
EXISTENCE_OPERATORS = {'exists', 'not_exists'}
KNOWN_OPERATORS = set(ORDERING_OPERATORS) | EQUALITY_OPERATORS | EXISTENCE_OPERATORS

# Longest operators first so '>=' is not read as '>'
EXPRESSION_PATTERN = re.compile(r'^\s*(.+?)\s*(===|!==|==|!=|>=|<=|>|<)\s*(.+?)\s*$', re.DOTALL)
EXISTS_PATTERN = re.compile(r'^\s*(\S+)\s+(exists|not_exists)\s*$')
GENERIC_PATTERN = re.compile(r'^\s*(\S+)\s+(\S+)\s+(.+?)\s*$', re.DOTALL)


def parse_condition(value: Any) -> Condition:
    """
    Parse a condition from its configuration form.

    Accepted forms:
    - "$price > 20", "$id exists", "$status === 'active'"
    - {"left": "$price", "operator": ">", "right": 20}
    - {"exists": "$id"} / {"not_exists": "$id"}

    Args:
        value: Condition as written in the configuration

    Returns:
        Condition

    Raises:
        ValueError: If the condition cannot be parsed
    """
    if isinstance(value, str):
        return _parse_expression(value)

    if not isinstance(value, dict):
        raise ValueError(f"Invalid condition format: expected string or dict, got {type(value).__name__}")

    present = [k for k in ('exists', 'not_exists') if k in value]
    if present:
        if len(present) > 1 or len(value) > 1:
            raise ValueError(f"exists/not_exists condition must have a single key, found {sorted(value)}")
        key = present[0]
        return Condition(left=value[key], operator=key, source=f"{value[key]} {key}")

    left = value.get('left', value.get('field'))
    op = value.get('operator')
    if left is None or not isinstance(op, str) or not op:
        raise ValueError("condition must have 'left' and 'operator' keys")

    right = value.get('right', value.get('value'))
    return Condition(left=left, operator=op.strip(), right=right, source=f"{left} {op} {right}")


def _parse_expression(text: str) -> Condition:
    match = EXISTS_PATTERN.match(text)
    if match:
        return Condition(left=match.group(1), operator=match.group(2), source=text)

    match = EXPRESSION_PATTERN.match(text) or GENERIC_PATTERN.match(text)
    if match:
        return Condition(
            left=_parse_literal(match.group(1)),
            operator=match.group(2),
            right=_parse_literal(match.group(3)),
            source=text
        )

    raise ValueError(f"Could not parse condition expression: '{text}'")


def _parse_literal(text: str) -> Any:
    """Read an expression operand: quoted text stays a string, the rest is coerced like a cell."""
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ('"', "'"):
        return text[1:-1]
    if text.startswith('$'):
        return text
    return coerce_value(text)


def _to_number(value: Any, allow_bool: bool = False) -> Optional[float]:
    if isinstance(value, bool):
        return int(value) if allow_bool else None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str) and is_numeric_text(value):
        return parse_number(value)
    return None


def _kind(value: Any) -> str:
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'boolean'
    if isinstance(value, (int, float)):
        return 'number'
    return type(value).__name__


def loose_equals(left: Any, right: Any) -> bool:
    """Type-coercing equality: numeric text equals its number, bools compare as 1/0."""
    if left is None or right is None:
        return left is None and right is None

    left_num = _to_number(left, allow_bool=True)
    right_num = _to_number(right, allow_bool=True)
    if left_num is not None and right_num is not None:
        return left_num == right_num

    return left == right


def strict_equals(left: Any, right: Any) -> bool:
    """Type-and-value equality; int and float are one kind."""
    return _kind(left) == _kind(right) and left == right


class ConditionEvaluator:
    """
    Evaluates step conditions to determine if a step should be executed.

    Unknown operators evaluate to True (fail-open) so configurations written
    for newer operators still run.
    """

    def __init__(self, resolver: Optional[PlaceholderResolver] = None):
        """
        Initialize the condition evaluator.

        Args:
            resolver: Resolver used for $name operands
        """
        self.resolver = resolver or PlaceholderResolver()

    def evaluate(self, condition: Optional[Condition], lookup: LayeredLookup) -> bool:
        """
        Evaluate a step condition.

        Args:
            condition: The step condition (None means always true)
            lookup: Current resolution context

        Returns:
            True if the step should execute, False if it should be skipped
        """
        if condition is None:
            return True

        op = condition.operator
        left = self.resolver.resolve_operand(condition.left, lookup)

        if op == 'exists':
            return left is not None
        if op == 'not_exists':
            return left is None

        right = self.resolver.resolve_operand(condition.right, lookup)

        if op in ORDERING_OPERATORS:
            result = self._compare(left, right, ORDERING_OPERATORS[op])
        elif op == '==':
            result = loose_equals(left, right)
        elif op == '!=':
            result = not loose_equals(left, right)
        elif op == '===':
            result = strict_equals(left, right)
        elif op == '!==':
            result = not strict_equals(left, right)
        else:
            logger.warning(f"Unknown condition operator '{op}' in '{condition.source}'. Treating condition as satisfied")
            return True

        logger.debug(f"Condition '{condition.source}': {left!r} {op} {right!r} -> {result}")
        return result

    def _compare(self, left: Any, right: Any, compare: Callable[[Any, Any], bool]) -> bool:
        left_num = _to_number(left)
        right_num = _to_number(right)
        if left_num is not None and right_num is not None:
            return compare(left_num, right_num)

        try:
            return bool(compare(left, right))
        except TypeError:
            # Incomparable types (including missing operands) never satisfy an ordering
            return False
