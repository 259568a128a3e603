"""
Sandboxed expressions for script, transform and expression-form condition actions.

Expressions are Python expression syntax (``item.price * 2``,
``event.value > 100 and workflow.tier == 'gold'``) evaluated by simpleeval:
no statements, no imports, no dunder access. Only the names passed in and the
functions in SAFE_FUNCTIONS are visible. Dict keys read as attributes, so
``event.value`` and ``event["value"]`` are the same lookup.
"""

import logging
from collections.abc import Mapping
from functools import cmp_to_key
from typing import Any, Dict, Optional

from simpleeval import EvalWithCompoundTypes, InvalidExpression

from backend.app.core.exceptions import WorkflowActionError

logger = logging.getLogger(__name__)

SAFE_FUNCTIONS = {
    "len": len,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "round": round,
    "abs": abs,
    "min": min,
    "max": max,
    "sum": sum,
    "sorted": sorted,
}


class _Evaluator(EvalWithCompoundTypes):
    def _eval_attribute(self, node):
        # Keys win over dict methods: workflow.items is the "items" variable
        if not node.attr.startswith("_"):
            base = self._eval(node.value)
            if isinstance(base, Mapping) and node.attr in base:
                return base[node.attr]
        return super()._eval_attribute(node)


def evaluate(expression: str, names: Optional[Dict[str, Any]] = None, action_type: str = "script") -> Any:
    """Evaluate one expression. Failures surface as WorkflowActionError."""
    evaluator = _Evaluator(functions=dict(SAFE_FUNCTIONS), names=dict(names or {}))
    try:
        return evaluator.eval(expression)
    except (
        InvalidExpression,
        SyntaxError,
        TypeError,
        ValueError,
        KeyError,
        IndexError,
        ArithmeticError,
    ) as e:
        raise WorkflowActionError(f"Expression failed: {e}", action_type=action_type) from e


def run_script(script: str, event: Dict[str, Any], workflow: Dict[str, Any], previous: Any = None) -> Any:
    return evaluate(script, {"event": event, "workflow": workflow, "previous": previous})


def apply_transform(
    transform_type: str,
    items: Any,
    expression: str,
    initial_value: Any = None,
    descending: bool = False,
    extra_names: Optional[Dict[str, Any]] = None,
) -> Any:
    """
    map:    expression over ``item`` / ``index``
    filter: keep items where expression is truthy
    reduce: fold with ``acc`` and ``item``, starting at initial_value
    sort:   order by the expression value (key), optionally descending
    """
    if not isinstance(items, list):
        raise WorkflowActionError(
            f"Transform input must be a list, got {type(items).__name__}", action_type="transform"
        )
    base = dict(extra_names or {})

    def _eval(names):
        return evaluate(expression, {**base, **names}, action_type="transform")

    if transform_type == "map":
        return [_eval({"item": item, "index": i}) for i, item in enumerate(items)]

    if transform_type == "filter":
        return [item for i, item in enumerate(items) if _eval({"item": item, "index": i})]

    if transform_type == "reduce":
        acc = initial_value
        for i, item in enumerate(items):
            acc = _eval({"acc": acc, "item": item, "index": i})
        return acc

    if transform_type == "sort":
        keyed = [(_eval({"item": item, "index": i}), item) for i, item in enumerate(items)]

        def _cmp(a, b):
            try:
                return (a[0] > b[0]) - (a[0] < b[0])
            except TypeError:
                return (str(a[0]) > str(b[0])) - (str(a[0]) < str(b[0]))

        keyed.sort(key=cmp_to_key(_cmp), reverse=descending)
        return [item for _, item in keyed]

    raise WorkflowActionError(f"Unknown transform type: {transform_type}", action_type="transform")
