"""
Declarative AND/OR filters over search results.

A filter is a JSON-style tree::

    {"AND": [
        {"key": "kind", "value": "preference"},
        {"OR": [
            {"key": "priority", "value": 5, "filterType": "numeric", "numericOperator": ">="},
            {"key": "tags", "value": "urgent", "filterType": "array_contains"},
        ]},
    ]}

Conditions fail open: a malformed condition (bad key, unknown filter type
or operator, oversized value) matches every result and logs a warning, so
a bad filter never empties a query.
"""

import logging
import math
import operator
from datetime import datetime
from typing import Any

logger = logging.getLogger(__name__)

FILTER_TYPES = {"string_equal", "string_contains", "numeric", "array_contains"}

NUMERIC_OPERATORS = {
    "=": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}

MAX_KEY_LENGTH = 100
MAX_VALUE_LENGTH = 1000

# camelCase keys accepted for result fields
FIELD_ALIASES = {
    "content": "memory",
    "isCore": "is_static",
    "is_core": "is_static",
    "isStatic": "is_static",
    "isLatest": "is_latest",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}


def is_condition(node: Any) -> bool:
    return isinstance(node, dict) and "key" in node and "value" in node


def is_compound(node: Any) -> bool:
    return isinstance(node, dict) and ("AND" in node or "OR" in node)


def validate_condition(condition: dict[str, Any]) -> bool:
    """Check a condition is well formed; logs why when it is not."""
    key = condition.get("key")
    if not key or not isinstance(key, str):
        logger.warning("Invalid filter key")
        return False
    if len(key) > MAX_KEY_LENGTH:
        logger.warning("Filter key too long")
        return False

    filter_type = condition.get("filterType")
    if filter_type and filter_type not in FILTER_TYPES:
        logger.warning(f"Invalid filter type: {filter_type}")
        return False

    numeric_operator = condition.get("numericOperator")
    if numeric_operator and numeric_operator not in NUMERIC_OPERATORS:
        logger.warning(f"Invalid numeric operator: {numeric_operator}")
        return False

    value = condition.get("value")
    if isinstance(value, str) and len(value) > MAX_VALUE_LENGTH:
        logger.warning("Filter value too long")
        return False

    return True


def get_field_value(result: dict[str, Any], key: str) -> Any:
    """Resolve ``key`` on the result, then in its metadata, then by dot path."""
    field = FIELD_ALIASES.get(key, key)
    if result.get(field) is not None:
        return result[field]

    metadata = result.get("metadata") or {}
    if isinstance(metadata, dict) and metadata.get(key) is not None:
        return metadata[key]

    if "." in key:
        current: Any = result
        for part in key.split("."):
            if not isinstance(current, dict):
                return None
            current = current.get(part)
        return current

    return None


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None).timestamp()
        except ValueError:
            return None
    return None


def _string_equal(actual: Any, expected: Any, ignore_case: bool) -> bool:
    if ignore_case and isinstance(actual, str) and isinstance(expected, str):
        return actual.lower() == expected.lower()
    return actual == expected


def _string_contains(actual: Any, expected: Any, ignore_case: bool) -> bool:
    if not isinstance(actual, str) or not isinstance(expected, str):
        return False
    if ignore_case:
        return expected.lower() in actual.lower()
    return expected in actual


def _numeric(actual: Any, expected: Any, op: str) -> bool:
    left, right = _to_number(actual), _to_number(expected)
    if left is None or right is None or math.isnan(left) or math.isnan(right):
        return False
    return NUMERIC_OPERATORS[op](left, right)


def _array_contains(actual: Any, expected: Any, ignore_case: bool) -> bool:
    if not isinstance(actual, (list, tuple, set)):
        return False
    if ignore_case and isinstance(expected, str):
        lowered = expected.lower()
        return any(
            item.lower() == lowered if isinstance(item, str) else item == expected
            for item in actual
        )
    return expected in actual


def evaluate_condition(result: dict[str, Any], condition: dict[str, Any]) -> bool:
    """Evaluate one condition against a result dict."""
    if not validate_condition(condition):
        return True

    negate = condition.get("negate") is True
    actual = get_field_value(result, condition["key"])
    if actual is None:
        # Missing field: only a negated condition passes
        return negate

    expected = condition["value"]
    ignore_case = bool(condition.get("ignoreCase"))
    filter_type = condition.get("filterType") or "string_equal"

    if filter_type == "string_equal":
        matches = _string_equal(actual, expected, ignore_case)
    elif filter_type == "string_contains":
        matches = _string_contains(actual, expected, ignore_case)
    elif filter_type == "numeric":
        matches = _numeric(actual, expected, condition.get("numericOperator") or "=")
    else:
        matches = _array_contains(actual, expected, ignore_case)

    return not matches if negate else matches


def evaluate_filter(result: dict[str, Any], node: Any) -> bool:
    """Evaluate a condition or a nested AND/OR node. Unknown nodes pass."""
    if is_condition(node):
        return evaluate_condition(result, node)
    if is_compound(node):
        return evaluate_compound(result, node)
    return True


def evaluate_compound(result: dict[str, Any], node: dict[str, Any]) -> bool:
    and_nodes = node.get("AND") or []
    if and_nodes and not all(evaluate_filter(result, child) for child in and_nodes):
        return False

    or_nodes = node.get("OR") or []
    if or_nodes and not any(evaluate_filter(result, child) for child in or_nodes):
        return False

    return True


def convert_legacy_filters(filters: dict[str, Any] | None) -> dict[str, Any] | None:
    """
    Convert ``{categories, dateFrom, dateTo, isCore}`` to the tree form.

    Trees (anything with AND or OR) are returned unchanged. Several
    categories become an OR next to the other conditions.
    """
    if not filters:
        return None
    if is_compound(filters):
        return filters

    conditions: list[dict[str, Any]] = []
    category_conditions = [
        {"key": "category", "value": category, "filterType": "string_equal"}
        for category in filters.get("categories") or []
    ]
    if len(category_conditions) == 1:
        conditions.append(category_conditions[0])

    if filters.get("dateFrom"):
        conditions.append(
            {"key": "createdAt", "value": filters["dateFrom"], "filterType": "numeric", "numericOperator": ">="}
        )
    if filters.get("dateTo"):
        conditions.append(
            {"key": "createdAt", "value": filters["dateTo"], "filterType": "numeric", "numericOperator": "<="}
        )
    if filters.get("isCore") is not None:
        conditions.append({"key": "isCore", "value": filters["isCore"], "filterType": "string_equal"})

    tree: dict[str, Any] = {}
    if conditions:
        tree["AND"] = conditions
    if len(category_conditions) > 1:
        tree["OR"] = category_conditions
    return tree or None


def apply_filters(results: list[Any], filters: dict[str, Any] | None) -> list[Any]:
    """
    Keep results matching ``filters`` (tree or legacy form).

    Results may be pydantic models or dicts.
    """
    tree = convert_legacy_filters(filters)
    if not tree:
        return results
    return [
        result
        for result in results
        if evaluate_compound(result.model_dump() if hasattr(result, "model_dump") else result, tree)
    ]


def extract_equality_filter(filters: dict[str, Any] | None) -> dict[str, Any] | None:
    """
    Pull plain equality conditions the store can apply before scoring.

    Only non-negated, case-sensitive ``string_equal`` conditions on top-level
    AND (or a single-item OR) are used, so the pre-filter never removes a
    result the full evaluator would keep.
    """
    tree = convert_legacy_filters(filters)
    if not tree:
        return None

    candidates = [node for node in tree.get("AND") or [] if is_condition(node)]
    or_nodes = tree.get("OR") or []
    if len(or_nodes) == 1 and is_condition(or_nodes[0]):
        candidates.append(or_nodes[0])

    equality: dict[str, Any] = {}
    for condition in candidates:
        if not validate_condition(condition):
            continue
        if condition.get("negate") or condition.get("ignoreCase"):
            continue
        if (condition.get("filterType") or "string_equal") != "string_equal":
            continue

        key, value = condition["key"], condition["value"]
        if FIELD_ALIASES.get(key) == "is_static" and isinstance(value, bool):
            equality["is_core"] = value
        elif key == "kind" and isinstance(value, str):
            equality["kind"] = value
    return equality or None
