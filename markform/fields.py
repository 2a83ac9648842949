"""Field model: one object per form control, with its attributes and value."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from markupsafe import Markup, escape

from markform.captcha import CaptchaChallenge
from markform.constraints import (
    EMAIL_PATTERN,
    MIN_LENGTH_ATTRIBUTE,
    Captcha,
    ChoiceMembership,
    Constraint,
    Pattern,
    Required,
    derive_constraints,
)
from markform.errors import FieldError, ShapeMismatch
from markform.render import (
    ADD_CLASS,
    CAPTCHA_CLASS,
    ENTRY_CLASS,
    MULTIPLE_CLASS,
    MULTIPLE_WIDGET_SCRIPT,
    REMOVE_CLASS,
    open_tag,
    render_attrs,
    script,
)

NUMERIC_TYPES = frozenset({"number", "range", "int", "integer", "float"})
INTEGER_TYPES = frozenset({"int", "integer"})
# min/max stay native on these and are not checked as numbers
DATE_TYPES = frozenset({"date", "time", "datetime-local", "month", "week"})

COLLECTION_TYPES = (list, tuple)


class FieldKind(str, Enum):
    TEXT = "text"
    CHOICE_SINGLE = "choice-single"
    CHOICE_MULTI = "choice-multi"
    FILE = "file"
    HIDDEN = "hidden"
    CAPTCHA = "captcha"


def split_name(name: str) -> tuple[str, bool]:
    """Split an array-shaped name: ``names[]`` -> ``("names", True)``."""
    if name.endswith("[]"):
        return name[:-2], True
    return name, False


def _declares_multiple(attributes: dict[str, str]) -> bool:
    return "multiple" in attributes or split_name(attributes.get("name", ""))[1]


class Field:
    """A form control with ordered attributes, a current value and constraints.

    The value is a ``str`` for scalar fields and a ``list[str]`` for
    collection fields; the shape is fixed when the field is created.
    """

    kind: ClassVar[FieldKind] = FieldKind.TEXT
    tag: ClassVar[str] = "input"
    accepts_pattern: ClassVar[bool] = False
    accepts_range: ClassVar[bool] = False
    native_pattern: ClassVar[bool] = False
    numeric: ClassVar[bool] = False
    integer: ClassVar[bool] = False

    def __init__(self, name: str, attributes: dict[str, str], *, collection: bool = False):
        self.name = name
        self.attributes = dict(attributes)
        self.collection = collection
        self.value: Any = self.empty_value()
        self.custom_constraints: list[Constraint] = []
        self._builtin: list[Constraint] = []
        self.refresh_constraints()

    # -- Properties --

    @property
    def readonly(self) -> bool:
        return "readonly" in self.attributes

    @property
    def required(self) -> bool:
        return any(isinstance(c, Required) for c in self._builtin)

    @property
    def constraints(self) -> list[Constraint]:
        return [*self._builtin, *self.custom_constraints]

    def empty_value(self) -> str | list:
        return [] if self.collection else ""

    # -- Constraints --

    def refresh_constraints(self) -> None:
        self._builtin = derive_constraints(self)

    def type_constraints(self) -> list[Constraint]:
        """Constraints implied by the control type rather than its attributes."""
        return []

    def add_constraint(self, constraint: Constraint) -> None:
        self.custom_constraints.append(constraint)

    def evaluate(self, value: Any) -> list[FieldError]:
        """Run every constraint against ``value`` and collect the failures."""
        errors = []
        for constraint in self.constraints:
            if constraint.per_element and self.collection:
                message = next((m for m in map(constraint.check, value) if m), None)
            else:
                message = constraint.check(value)
            if message:
                errors.append(FieldError(message, constraint.code))
        return errors

    # -- Values & attributes --

    def coerce(self, value: Any) -> str | list:
        """Convert a programmatic value to the field's shape.

        Raises ShapeMismatch when a list is given to a scalar field or the
        other way round.
        """
        if self.collection:
            if not isinstance(value, COLLECTION_TYPES):
                raise ShapeMismatch(
                    f"Field '{self.name}' holds a list of values, got {type(value).__name__}"
                )
            items = []
            for item in value:
                if isinstance(item, (*COLLECTION_TYPES, dict, set)):
                    raise ShapeMismatch(f"Field '{self.name}' does not accept nested values")
                items.append(self.coerce_item(item))
            return items

        if isinstance(value, (*COLLECTION_TYPES, dict, set)):
            raise ShapeMismatch(
                f"Field '{self.name}' holds a single value, got {type(value).__name__}"
            )
        return self.coerce_item(value)

    def coerce_item(self, value: Any) -> Any:
        return "" if value is None else str(value)

    def implied_collection(self, attributes: dict[str, str]) -> bool | None:
        """Shape the parser gives a control with ``attributes``; None if they do not decide it."""
        return None

    def check_shape(self, attributes: dict[str, str]) -> None:
        """Refuse attributes that would parse back as a field of the other shape.

        Raises:
            ShapeMismatch: e.g. ``multiple`` added to a single-value input.
        """
        implied = self.implied_collection(attributes)
        if implied is not None and implied != self.collection:
            shape = "a list" if implied else "a single value"
            raise ShapeMismatch(f"These attributes would make field '{self.name}' hold {shape}")

    def set_attribute(self, name: str, value: str) -> None:
        self.check_shape({**self.attributes, name: value})
        self.attributes[name] = value
        self.refresh_constraints()

    def remove_attribute(self, name: str) -> None:
        self.check_shape({k: v for k, v in self.attributes.items() if k != name})
        self.attributes.pop(name, None)
        self.refresh_constraints()

    # -- Rendering --

    def output_attributes(self) -> dict[str, str]:
        """Attributes as written to markup.

        Server-side rules the control cannot express natively are rewritten:
        ``min``/``max`` become one ``data-range`` attribute, ``minlength``
        becomes ``data-min-length`` and ``regex`` becomes ``pattern`` (or
        ``data-pattern``), so the rendered markup still carries them for the
        next parse.
        """
        pattern_target = "pattern" if self.native_pattern else "data-pattern"
        attrs: dict[str, str] = {}
        for name, value in self.attributes.items():
            if name in ("min", "max") and self.accepts_range:
                low = self.attributes.get("min", "")
                high = self.attributes.get("max", "")
                attrs.setdefault("data-range", f"{low}:{high}")
            elif name == "regex":
                if pattern_target not in self.attributes:
                    attrs[pattern_target] = value
            elif name == "pattern" and not self.native_pattern:
                attrs["data-pattern"] = value
            elif name == "minlength":
                if MIN_LENGTH_ATTRIBUTE not in self.attributes:
                    attrs[MIN_LENGTH_ATTRIBUTE] = value
            else:
                attrs[name] = value
        return attrs

    def render(self) -> Markup:
        raise NotImplementedError

    def __html__(self) -> str:
        return str(self.render())

    def __str__(self) -> str:
        return str(self.render())

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, value={self.value!r})"


class InputField(Field):
    """Text-like ``<input>``: text, email, password, number and friends."""

    accepts_pattern = True
    native_pattern = True

    @property
    def input_type(self) -> str:
        return self.attributes.get("type", "text").lower()

    @property
    def accepts_range(self) -> bool:
        return self.input_type not in DATE_TYPES

    @property
    def numeric(self) -> bool:
        return self.input_type in NUMERIC_TYPES

    @property
    def integer(self) -> bool:
        return self.input_type in INTEGER_TYPES

    def implied_collection(self, attributes: dict[str, str]) -> bool | None:
        return _declares_multiple(attributes)

    def type_constraints(self) -> list[Constraint]:
        if self.input_type == "email":
            return [Pattern(EMAIL_PATTERN, "Enter a valid email address.")]
        return []

    def render(self) -> Markup:
        attrs = self.output_attributes()
        if self.value and self.input_type != "password":
            attrs["value"] = self.value
        return Markup(open_tag("input", attrs))


class HiddenField(InputField):
    kind = FieldKind.HIDDEN

    def implied_collection(self, attributes: dict[str, str]) -> bool | None:
        return None


class FileField(Field):
    """File upload; the value is whatever upload object the host submitted."""

    kind = FieldKind.FILE

    def implied_collection(self, attributes: dict[str, str]) -> bool | None:
        return _declares_multiple(attributes)

    def coerce_item(self, value: Any) -> Any:
        return "" if value is None else value

    def render(self) -> Markup:
        return Markup(open_tag("input", self.output_attributes()))


class MultipleField(InputField):
    """Collection text field rendered as a widget of repeated inputs."""

    def __init__(self, name: str, attributes: dict[str, str]):
        attrs = dict(attributes)
        attrs["name"] = f"{name}[]"
        super().__init__(name, attrs, collection=True)

    def render(self) -> Markup:
        attrs = self.output_attributes()
        html = f'<div class="{MULTIPLE_CLASS}" data-multiple="{escape(self.name)}">'
        for entry in self.value or [""]:
            entry_attrs = dict(attrs)
            if entry:
                entry_attrs["value"] = entry
            html += (
                f'<span class="{ENTRY_CLASS}">{open_tag("input", entry_attrs)}'
                f'<a href="#" class="{REMOVE_CLASS}">Remove</a></span>'
            )
        html += f'<a href="#" class="{ADD_CLASS}">Add</a>'
        # str() first: Markup.__radd__ would escape everything built so far
        html += str(script(MULTIPLE_WIDGET_SCRIPT))
        html += "</div>"
        return Markup(html)


class TextareaField(Field):
    tag = "textarea"
    accepts_pattern = True

    def render(self) -> Markup:
        return Markup(
            f"<textarea{render_attrs(self.output_attributes())}>"
            f"{escape(self.value)}</textarea>"
        )


# -- Choice controls --


@dataclass
class Choice:
    """One checkbox or radio input of a choice group."""

    attributes: dict[str, str]

    @property
    def value(self) -> str:
        # Browsers submit "on" for a checkbox without a value
        return self.attributes.get("value", "on")


class ChoiceInputField(Field):
    """A group of checkbox or radio inputs sharing one name.

    Each input stays at its own place in the markup and is rendered through
    ``render_choice``. Field-level attributes are those of the first input;
    setting an attribute applies it to every input of the group.
    """

    def __init__(self, name: str, input_type: str, *, collection: bool = False):
        self.input_type = input_type
        self.choices: list[Choice] = []
        super().__init__(name, {}, collection=collection)

    @property
    def kind(self) -> FieldKind:
        return FieldKind.CHOICE_MULTI if self.collection else FieldKind.CHOICE_SINGLE

    def add_choice(self, attributes: dict[str, str], checked: bool = False) -> int:
        choice = Choice(dict(attributes))
        if not self.choices:
            self.attributes = choice.attributes
        self.choices.append(choice)

        if checked:
            if self.collection:
                self.value = [*self.value, choice.value]
            else:
                self.value = choice.value

        self.refresh_constraints()
        return len(self.choices) - 1

    def type_constraints(self) -> list[Constraint]:
        constraints: list[Constraint] = []
        if "required" not in self.attributes and any(
            "required" in c.attributes for c in self.choices
        ):
            constraints.append(Required())
        constraints.append(ChoiceMembership(tuple(c.value for c in self.choices)))
        return constraints

    def implied_collection(self, attributes: dict[str, str]) -> bool | None:
        # Checkbox groups are lists only through an array name
        return split_name(attributes.get("name", ""))[1]

    def set_attribute(self, name: str, value: str) -> None:
        self.check_shape({**self.attributes, name: value})
        for choice in self.choices:
            choice.attributes[name] = value
        self.refresh_constraints()

    def remove_attribute(self, name: str) -> None:
        self.check_shape({k: v for k, v in self.attributes.items() if k != name})
        for choice in self.choices:
            choice.attributes.pop(name, None)
        self.refresh_constraints()

    def is_selected(self, value: str) -> bool:
        if self.collection:
            return value in self.value
        return value == self.value

    def render_choice(self, index: int) -> Markup:
        choice = self.choices[index]
        attrs = dict(choice.attributes)
        if self.is_selected(choice.value):
            attrs["checked"] = "checked"
        return Markup(open_tag("input", attrs))

    def render(self) -> Markup:
        return Markup("".join(self.render_choice(i) for i in range(len(self.choices))))


@dataclass(eq=False)
class OptionGroup:
    attributes: dict[str, str] = field(default_factory=dict)


@dataclass
class Option:
    label: str
    attributes: dict[str, str] = field(default_factory=dict)
    group: OptionGroup | None = None

    @property
    def value(self) -> str:
        if "value" in self.attributes:
            return self.attributes["value"]
        return " ".join(self.label.split())


class SelectField(Field):
    tag = "select"

    def __init__(
        self,
        name: str,
        attributes: dict[str, str],
        options: list[Option],
        *,
        collection: bool = False,
    ):
        self.options = list(options)
        super().__init__(name, attributes, collection=collection)

    @property
    def kind(self) -> FieldKind:
        return FieldKind.CHOICE_MULTI if self.collection else FieldKind.CHOICE_SINGLE

    def implied_collection(self, attributes: dict[str, str]) -> bool | None:
        return _declares_multiple(attributes)

    def type_constraints(self) -> list[Constraint]:
        return [ChoiceMembership(tuple(o.value for o in self.options))]

    def is_selected(self, value: str) -> bool:
        if self.collection:
            return value in self.value
        return value == self.value

    def render(self) -> Markup:
        html = f"<select{render_attrs(self.output_attributes())}>"
        group = None
        for option in self.options:
            if option.group is not group:
                if group is not None:
                    html += "</optgroup>"
                if option.group is not None:
                    html += f"<optgroup{render_attrs(option.group.attributes)}>"
                group = option.group

            attrs = dict(option.attributes)
            if self.is_selected(option.value):
                attrs["selected"] = "selected"
            html += f"<option{render_attrs(attrs)}>{escape(option.label)}</option>"

        if group is not None:
            html += "</optgroup>"
        html += "</select>"
        return Markup(html)


class CaptchaField(Field):
    """Text input checked against a generated challenge shown as an image."""

    kind = FieldKind.CAPTCHA

    def __init__(self, name: str, attributes: dict[str, str], challenge: CaptchaChallenge):
        self.challenge = challenge
        super().__init__(name, attributes)

    def type_constraints(self) -> list[Constraint]:
        return [Captcha(self.challenge.value)]

    def get_captcha_value(self) -> str:
        return self.challenge.value

    def render(self) -> Markup:
        attrs = {"type": "text"}
        attrs.update(self.output_attributes())
        attrs.setdefault("autocomplete", "off")
        image = open_tag(
            "img",
            {"src": self.challenge.data_uri, "alt": "", "class": f"{CAPTCHA_CLASS}-image"},
        )
        return Markup(
            f'<span class="{CAPTCHA_CLASS}" data-captcha="{escape(self.name)}">'
            f'{image}{open_tag("input", attrs)}</span>'
        )
