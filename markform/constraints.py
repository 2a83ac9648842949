"""Constraints a field value must satisfy.

Built-in constraints are derived from field attributes at parse time (and
again whenever an attribute changes); custom constraints wrap a predicate
registered with ``Form.add_constraint``. Every constraint exposes
``check(value) -> str | None`` where ``None`` means the value is accepted.
"""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, ClassVar

from markform.errors import ParseError

if TYPE_CHECKING:
    from markform.fields import Field

EMAIL_PATTERN = r"[^@\s]+@[^@\s]+\.[^@\s]+"

PATTERN_ATTRIBUTES = ("pattern", "regex", "data-pattern")
RANGE_ATTRIBUTES = ("min", "max", "data-range")
# Rendered name of minlength; the native attribute is not written
MIN_LENGTH_ATTRIBUTE = "data-min-length"


def _is_empty(value: Any) -> bool:
    if isinstance(value, list):
        return not any(not _is_empty(item) for item in value)
    return value is None or value == ""


class Constraint:
    """Base class; subclasses are frozen dataclasses."""

    code: ClassVar[str] = "invalid"
    # Applied to each element of a collection value rather than the whole list
    per_element: ClassVar[bool] = True

    def check(self, value: Any) -> str | None:
        raise NotImplementedError


@dataclass(frozen=True)
class Required(Constraint):
    code: ClassVar[str] = "required"
    per_element: ClassVar[bool] = False

    def check(self, value: Any) -> str | None:
        if _is_empty(value):
            return "This field is required."
        return None


@dataclass(frozen=True)
class MaxLength(Constraint):
    limit: int
    code: ClassVar[str] = "maxlength"

    def check(self, value: Any) -> str | None:
        if isinstance(value, str) and len(value) > self.limit:
            return f"Must be at most {self.limit} characters long."
        return None


@dataclass(frozen=True)
class MinLength(Constraint):
    limit: int
    code: ClassVar[str] = "minlength"

    def check(self, value: Any) -> str | None:
        if isinstance(value, str) and value and len(value) < self.limit:
            return f"Must be at least {self.limit} characters long."
        return None


@dataclass(frozen=True)
class Pattern(Constraint):
    """Whole-value regular expression match, as HTML5 ``pattern`` does."""

    regex: str
    message: str = "Does not match the expected format."
    code: ClassVar[str] = "pattern"

    def __post_init__(self):
        try:
            re.compile(self.regex)
        except re.error as e:
            raise ParseError(f"Invalid pattern {self.regex!r}: {e}") from e

    def check(self, value: Any) -> str | None:
        if not isinstance(value, str) or not value:
            return None
        if re.fullmatch(self.regex, value) is None:
            return self.message
        return None


@dataclass(frozen=True)
class Range(Constraint):
    """Numeric value check with optional inclusive bounds."""

    minimum: float | None = None
    maximum: float | None = None
    integer: bool = False
    code: ClassVar[str] = "range"

    def check(self, value: Any) -> str | None:
        if not isinstance(value, str) or not value:
            return None

        try:
            number = int(value) if self.integer else float(value)
        except ValueError:
            return "Must be a whole number." if self.integer else "Must be a number."

        if self.minimum is not None and number < self.minimum:
            return f"Must be greater than or equal to {_format_number(self.minimum)}."
        if self.maximum is not None and number > self.maximum:
            return f"Must be less than or equal to {_format_number(self.maximum)}."
        return None


@dataclass(frozen=True)
class ChoiceMembership(Constraint):
    allowed: tuple[str, ...]
    code: ClassVar[str] = "choice"

    def check(self, value: Any) -> str | None:
        if not isinstance(value, str) or not value:
            return None
        if value not in self.allowed:
            return "Select a valid choice."
        return None


@dataclass(frozen=True)
class Captcha(Constraint):
    expected: str = dataclasses.field(repr=False)
    code: ClassVar[str] = "captcha"
    per_element: ClassVar[bool] = False

    def check(self, value: Any) -> str | None:
        if value != self.expected:
            return "The security code is incorrect."
        return None


@dataclass(frozen=True)
class Custom(Constraint):
    """Wraps a predicate returning ``None``/``""`` on success or a message."""

    predicate: Callable[[Any], str | None]
    code: ClassVar[str] = "custom"
    per_element: ClassVar[bool] = False

    def check(self, value: Any) -> str | None:
        return self.predicate(value) or None


# -- Derivation from attributes --


def derive_constraints(field: Field) -> list[Constraint]:
    """Build the built-in constraints of a field.

    Attribute-derived constraints come first, in attribute declaration order,
    followed by the constraints implied by the control type.
    """
    attrs = field.attributes
    constraints: list[Constraint] = []
    has_pattern = False
    has_range = False

    for name, value in attrs.items():
        if name == "required":
            constraints.append(Required())
        elif name == "maxlength":
            constraints.append(MaxLength(_parse_length(name, value)))
        elif name == "minlength" or (name == MIN_LENGTH_ATTRIBUTE and "minlength" not in attrs):
            constraints.append(MinLength(_parse_length(name, value)))
        elif name in PATTERN_ATTRIBUTES and field.accepts_pattern and not has_pattern:
            constraints.append(Pattern(_pattern_source(attrs)))
            has_pattern = True
        elif name in RANGE_ATTRIBUTES and field.accepts_range and not has_range:
            constraints.append(_range_from(attrs, field.integer))
            has_range = True

    if field.numeric and not has_range:
        constraints.append(Range(integer=field.integer))

    constraints.extend(field.type_constraints())
    return constraints


def parse_range(value: str) -> tuple[str, str]:
    """Split a ``data-range="lo:hi"`` value into its bounds."""
    low, sep, high = value.partition(":")
    if not sep:
        raise ParseError(f"Invalid data-range {value!r}, expected 'min:max'")
    return low.strip(), high.strip()


def _pattern_source(attrs: dict[str, str]) -> str:
    for name in PATTERN_ATTRIBUTES:
        if name in attrs:
            return attrs[name]
    raise KeyError("pattern")


def _range_from(attrs: dict[str, str], integer: bool) -> Range:
    if "data-range" in attrs:
        low, high = parse_range(attrs["data-range"])
    else:
        low, high = attrs.get("min", ""), attrs.get("max", "")
    return Range(
        minimum=_parse_bound("min", low),
        maximum=_parse_bound("max", high),
        integer=integer,
    )


def _parse_length(name: str, value: str) -> int:
    try:
        limit = int(value)
    except ValueError:
        raise ParseError(f"Invalid {name} {value!r}, expected an integer")
    if limit < 0:
        raise ParseError(f"Invalid {name} {value!r}, expected a positive integer")
    return limit


def _parse_bound(name: str, value: str) -> float | None:
    if value == "":
        return None
    try:
        return float(value)
    except ValueError:
        raise ParseError(f"Invalid {name} {value!r}, expected a number")


def _format_number(number: float) -> str:
    return str(int(number)) if float(number).is_integer() else str(number)
