"""Exceptions and validation messages raised or collected by markform."""

from __future__ import annotations


class FormError(Exception):
    """Base class for structural form failures."""


class SourceNotFound(FormError, FileNotFoundError):
    """A template path could not be resolved to an existing file."""


class ParseError(FormError, ValueError):
    """The markup cannot be turned into a field model."""


class ConfigurationError(FormError, RuntimeError):
    """Required configuration (the CSRF secret) is missing."""


class ShapeMismatch(FormError, TypeError):
    """A programmatic value does not match the field's scalar/collection shape."""


class FieldError(str):
    """A validation message attached to a field.

    Behaves as the plain message string, with the kind of failure kept in
    ``code`` so callers can tell a readonly violation from a length error:

        errors = form.check()
        [e.code for e in errors["name"]]  # ["required"]
    """

    code: str

    def __new__(cls, message: str, code: str = "invalid") -> FieldError:
        error = super().__new__(cls, message)
        error.code = code
        return error

    def __repr__(self) -> str:
        return f"FieldError({str(self)!r}, code={self.code!r})"
