"""Core Form class with CSRF, validation, and markup rendering."""

from __future__ import annotations

import copy
import logging
import os
from collections.abc import Mapping
from typing import Any, Callable, Iterator

from markupsafe import Markup

from markform.binding import bind
from markform.config import Settings, get_settings
from markform.constraints import Custom
from markform.csrf import csrf_field, derive_token, form_key, verify_token
from markform.errors import FieldError
from markform.fields import CaptchaField, Field, FileField
from markform.parser import TemplateParser
from markform.source import resolve_source

logger = logging.getLogger(__name__)


class Form:
    """A form parsed from HTML, with values, constraints and CSRF protection.

    Usage:
        form = Form("templates/contact.html")
        form.set_value("name", "Jack")

        # In the POST handler:
        if form.posted(request_data):
            errors = form.check()
            if not errors:
                ...  # form.get_values() holds the accepted data

        html = form.render()  # or str(form), or {{ form }} in Jinja
    """

    def __init__(
        self,
        source: str | os.PathLike,
        *,
        settings: Settings | None = None,
        data: Mapping[str, Any] | None = None,
    ):
        self.settings = settings or get_settings()

        resolved = resolve_source(source, self.settings.template_dirs)
        self.identity = resolved.identity
        self.path = resolved.path

        template = TemplateParser(self.settings.captcha).parse(resolved.markup)
        self._fields = template.fields
        self.skeleton = template.skeleton

        self.data: Mapping[str, Any] | None = data
        self.errors: dict[str, list[FieldError]] = {}
        self._checked = False
        # Re-parsed output of a rendered form keeps the key it was issued with
        if self.path is None and template.form_key is not None:
            self.form_key = template.form_key
        else:
            self.form_key = form_key(self.identity)
        self._token: str | None = None
        self._initial = {name: copy.copy(f.value) for name, f in self._fields.items()}

    # -- Field access & iteration --

    @property
    def fields(self) -> dict[str, Field]:
        return self._fields

    def __iter__(self) -> Iterator[Field]:
        return iter(self._fields.values())

    def __getitem__(self, name: str) -> Field:
        """Enables form['email'].render()."""
        return self._fields[name]

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, name: str) -> bool:
        return name in self._fields

    @property
    def multipart(self) -> bool:
        """True when a file field requires multipart encoding."""
        return any(isinstance(f, FileField) for f in self)

    # -- Values --

    def get_value(self, name: str) -> Any:
        return self[name].value

    def set_value(self, name: str, value: Any) -> None:
        """Set a value directly, bypassing constraints and readonly protection.

        Raises:
            KeyError: unknown field.
            ShapeMismatch: a list for a scalar field or the other way round.
        """
        field = self[name]
        field.value = field.coerce(value)

    def set_values(self, values: Mapping[str, Any]) -> None:
        """Set several values; names without a field are ignored."""
        for name, value in values.items():
            if name in self:
                self.set_value(name, value)
            else:
                logger.debug("Ignoring value for unknown field %r", name)

    def get_values(self) -> dict[str, Any]:
        return {name: copy.copy(f.value) for name, f in self._fields.items()}

    @property
    def values(self) -> FormValues:
        """Mapping view of the field values: form.values["name"] = "Jack"."""
        return FormValues(self)

    def reset(self) -> None:
        """Restore the values captured at parse time.

        Attributes and constraints changed since parsing are kept.
        """
        for name, value in self._initial.items():
            self._fields[name].value = copy.copy(value)
        self.errors = {}
        self._checked = False

    # -- Attributes & constraints --

    def get_attribute(self, name: str, attribute: str) -> str | None:
        if attribute == "value":
            return self.get_value(name)
        return self[name].attributes.get(attribute)

    def set_attribute(self, name: str, attribute: str, value: str | bool = "") -> None:
        """Set an attribute of a field; ``True``/``False`` add or drop a boolean attribute."""
        if attribute == "value":
            self.set_value(name, value)
        elif value is False:
            self[name].remove_attribute(attribute)
        else:
            self[name].set_attribute(attribute, "" if value is True else str(value))

    def remove_attribute(self, name: str, attribute: str) -> None:
        self[name].remove_attribute(attribute)

    def add_constraint(self, name: str, predicate: Callable[[Any], str | None]) -> None:
        """Attach a custom check.

        ``predicate`` receives the bound value and returns ``None`` (or an
        empty string) to accept it, or an error message to reject it.
        """
        self[name].add_constraint(Custom(predicate))

    # -- Submission --

    def submit(self, data: Mapping[str, Any] | None) -> None:
        """Store the submitted data used by posted() and check()."""
        self.data = data

    def posted(self, data: Mapping[str, Any] | None = None) -> bool:
        """True if the submitted data carries this form's CSRF token."""
        if data is not None:
            self.submit(data)
        return verify_token(self.data, self.get_token())

    def check(self, data: Mapping[str, Any] | None = None) -> dict[str, list[FieldError]]:
        """Bind the submitted data and validate every field.

        Returns a mapping of field name to error messages, empty when the
        whole form is valid. Does not verify the CSRF token; call posted()
        for that.
        """
        if data is not None:
            self.submit(data)

        self.errors = bind(self._fields, self.data or {})
        self._checked = True

        if self.errors:
            logger.debug("Form check failed for: %s", ", ".join(self.errors))
        return dict(self.errors)

    def error(self, name: str) -> str | None:
        """First validation error of a field (None if no error)."""
        errors = self.errors.get(name)
        return errors[0] if errors else None

    @property
    def is_valid(self) -> bool:
        """True if check() was called and succeeded."""
        return self._checked and not self.errors

    # -- CSRF & captcha --

    def get_token(self) -> str:
        if self._token is None:
            self._token = derive_token(self.form_key, self.settings.secret_key)
        return self._token

    def csrf_field(self) -> Markup:
        """Render the hidden CSRF input."""
        return csrf_field(self.get_token(), self.form_key)

    def get_captcha_value(self, name: str | None = None) -> str:
        """Expected answer of a captcha field (the first one when no name is given)."""
        if name is not None:
            field = self[name]
        else:
            field = next((f for f in self if isinstance(f, CaptchaField)), None)
        if not isinstance(field, CaptchaField):
            raise KeyError(name or "captcha")
        return field.get_captcha_value()

    # -- Rendering --

    def render(self) -> Markup:
        """Regenerate the form markup from the current field state."""
        return self.skeleton.render(self)

    def __html__(self) -> str:
        return str(self.render())

    def __str__(self) -> str:
        return str(self.render())

    def __repr__(self) -> str:
        return f"Form({self.identity!r}, fields={list(self._fields)!r})"


class FormValues(Mapping):
    """Live mapping of field name to value, writable through set_value()."""

    def __init__(self, form: Form):
        self._form = form

    def __getitem__(self, name: str) -> Any:
        return self._form.get_value(name)

    def __setitem__(self, name: str, value: Any) -> None:
        self._form.set_value(name, value)

    def __iter__(self) -> Iterator[str]:
        return iter(self._form.fields)

    def __len__(self) -> int:
        return len(self._form)


def parse(
    source: str | os.PathLike,
    *,
    settings: Settings | None = None,
) -> Form:
    """Parse a template path or literal markup into a Form."""
    return Form(source, settings=settings)
