"""Bind submitted request data onto fields.

Shape problems and readonly violations are reported as field errors rather
than raised, so a failed submission can always be rendered back.
"""

from __future__ import annotations

from typing import Any, Mapping

from markform.errors import FieldError
from markform.fields import Field

_MISSING = object()

_COLLECTIONS = (list, tuple, set, frozenset)


def lookup(data: Mapping[str, Any], name: str) -> Any:
    """Find the submitted value for ``name``, also under its ``name[]`` key."""
    for key in (name, f"{name}[]"):
        if key in data:
            return data[key]
    return _MISSING


def normalize(field: Field, raw: Any) -> tuple[Any, FieldError | None]:
    """Convert a submitted value to the field's shape.

    Returns the value and, when the shape is wrong, a ``type_mismatch`` error.
    """
    if field.collection:
        if isinstance(raw, Mapping):
            raw = list(raw.values())
        if not isinstance(raw, _COLLECTIONS):
            # Scalars and missing keys count as an empty collection
            return [], None
        items = []
        for item in raw:
            if isinstance(item, (*_COLLECTIONS, Mapping)):
                return field.empty_value(), FieldError(
                    "Nested values are not allowed.", "type_mismatch"
                )
            items.append(field.coerce_item(item))
        return items, None

    if raw is _MISSING:
        return "", None
    if isinstance(raw, (*_COLLECTIONS, Mapping)):
        return "", FieldError("Expected a single value.", "type_mismatch")
    return field.coerce_item(raw), None


def bind_field(field: Field, data: Mapping[str, Any]) -> list[FieldError]:
    """Bind one field and evaluate its constraints against the bound value."""
    value, error = normalize(field, lookup(data, field.name))
    if error is not None:
        return [error]

    if field.readonly:
        if value != field.value:
            return [FieldError("This field is read-only.", "readonly")]
    else:
        field.value = value

    return field.evaluate(value)


def bind(fields: Mapping[str, Field], data: Mapping[str, Any]) -> dict[str, list[FieldError]]:
    """Bind every field, returning the errors of the failing ones."""
    errors = {}
    for name, field in fields.items():
        field_errors = bind_field(field, data)
        if field_errors:
            errors[name] = field_errors
    return errors
