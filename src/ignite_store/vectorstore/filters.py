"""Metadata filter expressions for similarity search.

Filters use a small Mongo-style dialect over document metadata::

    {"category": "news"}                          # equality
    {"year": {"$gte": 2020, "$lt": 2024}}         # comparison
    {"lang": {"$in": ["en", "de"]}}               # membership
    {"$or": [{"a": 1}, {"b": {"$ne": 2}}]}        # boolean composition

The same expression is evaluated in memory by ``matches`` and translated to
a ``$vectorSearch`` pre-filter by ``to_mongo_filter``.
"""

from typing import Any, Callable, Optional

from ignite_store.errors import InvalidRequestError

_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    "$eq": lambda actual, expected: actual == expected,
    "$ne": lambda actual, expected: actual != expected,
    "$gt": lambda actual, expected: actual is not None and actual > expected,
    "$gte": lambda actual, expected: actual is not None and actual >= expected,
    "$lt": lambda actual, expected: actual is not None and actual < expected,
    "$lte": lambda actual, expected: actual is not None and actual <= expected,
    "$in": lambda actual, expected: actual in expected,
    "$nin": lambda actual, expected: actual not in expected,
}

_LOGICAL = ("$and", "$or", "$nor")

_MISSING = object()


def validate_filter(expression: Optional[dict[str, Any]]) -> None:
    """Raise ``InvalidRequestError`` when ``expression`` is not a valid filter."""
    if expression is None:
        return
    if not isinstance(expression, dict):
        raise InvalidRequestError(
            f"Filter expression must be a dict, got {type(expression).__name__}",
            stage="storage",
        )
    for key, value in expression.items():
        if key in _LOGICAL:
            if not isinstance(value, list) or not value:
                raise InvalidRequestError(f"{key} expects a non-empty list", stage="storage")
            for clause in value:
                validate_filter(clause)
        elif key.startswith("$"):
            raise InvalidRequestError(f"Unsupported filter operator: {key}", stage="storage")
        elif isinstance(value, dict):
            for operator, operand in value.items():
                if operator not in _COMPARATORS:
                    raise InvalidRequestError(
                        f"Unsupported filter operator: {operator}", stage="storage"
                    )
                if operator in ("$in", "$nin") and not isinstance(operand, (list, tuple)):
                    raise InvalidRequestError(f"{operator} expects a list", stage="storage")


def _compare(actual: Any, operator: str, expected: Any) -> bool:
    if actual is _MISSING:
        return operator in ("$ne", "$nin")
    try:
        return _COMPARATORS[operator](actual, expected)
    except TypeError:
        return False


def matches(metadata: dict[str, Any], expression: Optional[dict[str, Any]]) -> bool:
    """Evaluate ``expression`` against a document's metadata."""
    if not expression:
        return True

    for key, value in expression.items():
        if key == "$and":
            if not all(matches(metadata, clause) for clause in value):
                return False
        elif key == "$or":
            if not any(matches(metadata, clause) for clause in value):
                return False
        elif key == "$nor":
            if any(matches(metadata, clause) for clause in value):
                return False
        else:
            actual = metadata.get(key, _MISSING)
            if isinstance(value, dict):
                if not all(_compare(actual, op, operand) for op, operand in value.items()):
                    return False
            elif not _compare(actual, "$eq", value):
                return False
    return True


def filter_fields(expression: Optional[dict[str, Any]]) -> set[str]:
    """Return the metadata keys referenced by ``expression``."""
    if not expression:
        return set()
    fields: set[str] = set()
    for key, value in expression.items():
        if key in _LOGICAL:
            for clause in value:
                fields |= filter_fields(clause)
        else:
            fields.add(key)
    return fields


def to_mongo_filter(
    expression: Optional[dict[str, Any]], prefix: str = "metadata"
) -> Optional[dict[str, Any]]:
    """Translate ``expression`` to a Mongo filter over ``<prefix>.<key>`` paths."""
    if not expression:
        return None

    translated: dict[str, Any] = {}
    for key, value in expression.items():
        if key in _LOGICAL:
            translated[key] = [to_mongo_filter(clause, prefix) for clause in value]
        elif isinstance(value, dict):
            translated[f"{prefix}.{key}"] = dict(value)
        else:
            translated[f"{prefix}.{key}"] = {"$eq": value}
    return translated
