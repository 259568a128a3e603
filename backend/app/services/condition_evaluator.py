"""
Condition evaluation for workflow condition actions and node tests.
"""

import logging
import math
from typing import Any, Dict, Optional

from backend.app.core.exceptions import ValidationError
from backend.app.services.expression_sandbox import evaluate
from backend.app.services.variable_resolver import UNRESOLVED, VariableResolver, stringify

logger = logging.getLogger(__name__)


def _to_number(value: Any) -> Optional[float]:
    if value is None or value is UNRESOLVED or isinstance(value, (dict, list)):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def _as_text(value: Any) -> str:
    if value is UNRESOLVED:
        return ""
    return stringify(value)


def compare(left: Any, operator: str, right: Any) -> bool:
    """
    Apply one operator to already-resolved operands.

    Equality compares string forms so ``"5"`` equals ``5``. Numeric operators
    return False when either side is not a number.
    """
    if operator == "equals":
        return _as_text(left) == _as_text(right)
    if operator == "not_equals":
        return _as_text(left) != _as_text(right)
    if operator in ("greater_than", "less_than"):
        lnum, rnum = _to_number(left), _to_number(right)
        if lnum is None or rnum is None:
            return False
        return lnum > rnum if operator == "greater_than" else lnum < rnum
    if operator == "contains":
        return _as_text(right) in _as_text(left)
    if operator == "not_contains":
        return _as_text(right) not in _as_text(left)
    raise ValidationError(f"Unknown condition operator: {operator}")


def evaluate_condition(
    resolver: VariableResolver,
    condition_type: Optional[str] = None,
    left_operand: Any = None,
    right_operand: Any = None,
    expression: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Evaluate a structured condition, or an expression when no operator is given.

    Returns the outcome with the resolved operands for the step audit.
    """
    if condition_type:
        left = resolver.resolve_value(left_operand)
        right = resolver.resolve_value(right_operand)
        result = compare(left, condition_type, right)
        return {
            "passed": result,
            "left": None if left is UNRESOLVED else left,
            "operator": condition_type,
            "right": None if right is UNRESOLVED else right,
            "condition": f"{_as_text(left)} {condition_type} {_as_text(right)}",
        }

    names = {
        "event": resolver.scopes["event"],
        "workflow": resolver.scopes["workflow"],
    }
    result = bool(evaluate(expression, names, action_type="condition"))
    return {"passed": result, "condition": expression}
