"""
Condition evaluation against entity snapshots.

Conditions are chained left to right: each condition's ``logic`` says how it
combines with the *next* one, so ``[C1(AND), C2(OR), C3]`` reads as
``(C1 and C2) or C3``. Evaluation never raises; a condition that cannot be
evaluated counts as failed.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from exceptions import ConditionEvaluationError
from models import Condition, ConditionOutcome

logger = logging.getLogger(__name__)

Context = Dict[str, Any]


def build_context(entity_type: str, entity: Dict[str, Any]) -> Context:
    """Expose the entity's fields at the top level and under its type name.

    Both ``value`` and ``deal.value`` then resolve against a deal snapshot.
    """
    context = dict(entity)
    context.setdefault(entity_type, entity)
    return context


def resolve_field(path: str, data: Any) -> Any:
    """Resolve a dotted path; any missing segment yields None."""
    value = data
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _to_number(value: Any, *, field: str, operator: str) -> float:
    if isinstance(value, bool):
        raise ConditionEvaluationError(f"Boolean is not numeric: {value!r}", field=field, operator=operator)
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConditionEvaluationError(
            f"Cannot compare {value!r} numerically", field=field, operator=operator
        ) from exc


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def _loose_equals(actual: Any, expected: Any) -> bool:
    if actual is None or expected is None:
        return actual is None and expected is None
    if actual == expected:
        return True
    return str(actual) == str(expected)


def _contains(actual: Any, expected: Any) -> bool:
    if actual is None:
        return False
    return str(expected) in str(actual)


def _tags(context: Context) -> List[Any]:
    tags = context.get("tags")
    return list(tags) if isinstance(tags, (list, tuple, set)) else []


def _numeric(compare: Callable[[float, float], bool]):
    def apply(actual: Any, expected: Any, context: Context, field: str, operator: str) -> bool:
        return compare(
            _to_number(actual, field=field, operator=operator),
            _to_number(expected, field=field, operator=operator),
        )

    return apply


OperatorFn = Callable[[Any, Any, Context, str, str], bool]

OPERATORS: Dict[str, OperatorFn] = {
    "equals": lambda actual, expected, *_: _loose_equals(actual, expected),
    "not_equals": lambda actual, expected, *_: not _loose_equals(actual, expected),
    "contains": lambda actual, expected, *_: _contains(actual, expected),
    "not_contains": lambda actual, expected, *_: not _contains(actual, expected),
    "is_empty": lambda actual, *_: _is_empty(actual),
    "is_not_empty": lambda actual, *_: not _is_empty(actual),
    "greater_than": _numeric(lambda a, b: a > b),
    "less_than": _numeric(lambda a, b: a < b),
    "greater_or_equal": _numeric(lambda a, b: a >= b),
    "less_or_equal": _numeric(lambda a, b: a <= b),
    "has_tag": lambda actual, expected, context, *_: expected in _tags(context),
    "not_has_tag": lambda actual, expected, context, *_: expected not in _tags(context),
}


def compare_values(actual: Any, operator: str, expected: Any, context: Optional[Context] = None) -> bool:
    """Apply one operator. Unknown operators and evaluation errors yield False."""
    apply = OPERATORS.get(operator)
    if apply is None:
        logger.debug("Unknown condition operator %r evaluates to False", operator)
        return False
    try:
        return bool(apply(actual, expected, context or {}, "", operator))
    except ConditionEvaluationError as exc:
        logger.debug("Condition evaluation failed, treating as False: %s", exc)
        return False


def evaluate_condition(condition: Condition, context: Context) -> bool:
    apply = OPERATORS.get(condition.operator)
    if apply is None:
        logger.warning("Unknown condition operator %r on field %s", condition.operator, condition.field)
        return False
    try:
        actual = resolve_field(condition.field, context)
        return bool(apply(actual, condition.value, context, condition.field, condition.operator))
    except ConditionEvaluationError as exc:
        logger.warning(
            "Condition %s %s %r could not be evaluated: %s",
            condition.field,
            condition.operator,
            condition.value,
            exc,
        )
        return False
    except (TypeError, ValueError, AttributeError) as exc:
        logger.warning("Condition %s %s raised %r, treating as False", condition.field, condition.operator, exc)
        return False


def evaluate_conditions(
    conditions: Iterable[Condition],
    context: Context,
    trace: Optional[List[ConditionOutcome]] = None,
) -> bool:
    """
    Fold the conditions left to right.

    The first condition seeds the result. Each following condition is combined
    using the previous condition's logic (AND when unset). When the accumulated
    result already decides the pair (False AND x, True OR x) the condition is
    not evaluated. An empty list passes.
    """
    result: Optional[bool] = None
    previous_logic = "AND"

    for condition in conditions:
        if result is not None:
            if previous_logic == "AND" and not result:
                previous_logic = condition.logic or "AND"
                continue
            if previous_logic == "OR" and result:
                previous_logic = condition.logic or "AND"
                continue

        met = evaluate_condition(condition, context)
        if trace is not None:
            trace.append(
                ConditionOutcome(
                    field=condition.field,
                    operator=condition.operator,
                    value=condition.value,
                    logic=condition.logic,
                    result=met,
                )
            )
        # Undecided pairs are settled by the right-hand side
        result = met
        previous_logic = condition.logic or "AND"

    return True if result is None else result
