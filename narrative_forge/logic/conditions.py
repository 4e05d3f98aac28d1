"""
Condition evaluator for ``key op value`` expressions and if/ifOr clause pairs
"""

import logging
import math
import re
from typing import Any, List, Mapping, Optional, Protocol

from .errors import AuthoringError
from .registry import ConditionRegistry

logger = logging.getLogger(__name__)

# Clause keys read from a parameter payload: (primary, or) per clause family
VISIBILITY_CLAUSES = ("if", "ifOr")
AVAILABILITY_CLAUSES = ("active", "activeOr")
CLAUSE_KEYS = frozenset(VISIBILITY_CLAUSES + AVAILABILITY_CLAUSES)

ORDERING_OPERATORS = {">", "<", ">=", "<="}


class FlagSource(Protocol):
    def get(self, flag_id: str) -> Any: ...


def split_conditions(text: str) -> List[str]:
    """
    Split a clause on commas that are not inside parentheses.

    "_item_on(alice, sword) = true, flag = 1" -> ["_item_on(alice, sword) = true", "flag = 1"]
    """
    parts = []
    current = []
    depth = 0

    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1

        if char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return parts


_NUMBER_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def parse_literal(text: str) -> Any:
    """Parse a comparison value: boolean, else number, else the raw string"""
    if text == "true":
        return True
    if text == "false":
        return False
    if text == "":
        return 0
    if _NUMBER_PATTERN.match(text):
        number = float(text)
        return int(number) if number.is_integer() and "." not in text and "e" not in text.lower() else number
    return text


def to_number(value: Any) -> float:
    """Numeric coercion used by the ordering operators and loose equality"""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if value is None:
        return 0.0
    if isinstance(value, str):
        stripped = value.strip()
        if stripped == "":
            return 0.0
        if _NUMBER_PATTERN.match(stripped):
            return float(stripped)
    return math.nan


def loose_equals(left: Any, right: Any) -> bool:
    """Coercing equality: numbers, booleans and numeric strings compare by value"""
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    scalar = (str, int, float, bool)
    if isinstance(left, scalar) and isinstance(right, scalar):
        return to_number(left) == to_number(right)
    return left == right


class ConditionEvaluator:
    """Evaluates single conditions and AND/OR clause pairs against registries and flags"""

    def __init__(self, conditions: ConditionRegistry, flags: FlagSource):
        self.conditions = conditions
        self.flags = flags
        sigil = re.escape(conditions.sigil)
        self.sigil = conditions.sigil
        self.condition_pattern = re.compile(
            r"^((?:%s)?[a-zA-Z0-9_.]+(?:\([^)]*\))?)\s*(==|!=|>=|<=|>|<|=)\s*(.+)$" % sigil, re.DOTALL
        )
        self.call_pattern = re.compile(r"^(%s[a-zA-Z0-9_]+)(?:\(([^)]*)\))?$" % sigil)

    def get_condition_value(self, key: str) -> Any:
        """
        Look up the current value behind a condition key.

        Sigil-prefixed keys call the registered condition (``_name`` or
        ``_name(a, b)``), anything else is read from flag storage. There is no
        safe default here: unknown conditions raise WiringError and malformed
        keys raise AuthoringError.
        """
        if key.startswith(self.sigil):
            match = self.call_pattern.match(key)
            if not match:
                raise AuthoringError(f"Invalid condition format: {key}")
            name, args_string = match.group(1), match.group(2) or ""
            args = [arg.strip() for arg in args_string.split(",")] if args_string else []
            entry = self.conditions.get(name)
            return entry.evaluator(*args)

        return self.flags.get(key)

    def evaluate_single(self, condition: str) -> bool:
        """Evaluate one ``key op value`` expression"""
        match = self.condition_pattern.match(condition.strip())
        if not match:
            logger.error(
                'Invalid condition format: "%s". Use format like key==value or key=value without quotes',
                condition,
            )
            return False

        key, operator, raw_value = match.groups()
        actual = self.get_condition_value(key.strip())
        expected = parse_literal(raw_value.strip())

        if operator in ("=", "=="):
            return loose_equals(actual, expected)
        if operator == "!=":
            return not loose_equals(actual, expected)

        if isinstance(expected, str):
            logger.error('Operator "%s" not supported for string comparison in condition "%s"', operator, condition)
            return False

        left, right = to_number(actual), to_number(expected)
        if operator == ">":
            return left > right
        if operator == "<":
            return left < right
        if operator == ">=":
            return left >= right
        return left <= right

    def evaluate_all(self, clause: str) -> bool:
        """AND across every comma-separated condition"""
        return all(self.evaluate_single(part) for part in split_conditions(clause))

    def evaluate_any(self, clause: str) -> bool:
        """OR across every comma-separated condition"""
        return any(self.evaluate_single(part) for part in split_conditions(clause))

    def evaluate(self, params: Optional[Mapping[str, Any]] = None, is_active_clause: bool = False) -> bool:
        """
        Evaluate the clause pair selected by ``is_active_clause``.

        ``if``/``ifOr`` drive visibility, ``active``/``activeOr`` availability.
        The primary clause ANDs its conditions, the OR clause ORs them; when both
        are present both must pass. No clause at all means no gate.
        """
        if params is None:
            return True

        primary_key, or_key = AVAILABILITY_CLAUSES if is_active_clause else VISIBILITY_CLAUSES
        primary = params.get(primary_key)
        alternative = params.get(or_key)

        has_primary = isinstance(primary, (str, bool))
        has_or = isinstance(alternative, (str, bool))
        if not has_primary and not has_or:
            return True

        if has_primary:
            passes = primary if isinstance(primary, bool) else self.evaluate_all(primary)
            if not passes:
                return False

        if has_or:
            return alternative if isinstance(alternative, bool) else self.evaluate_any(alternative)

        return True
