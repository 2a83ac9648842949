"""markform - HTML forms as stateful, validated, re-renderable objects."""

from markform.config import Settings, get_settings
from markform.core import Form, FormValues, parse
from markform.csrf import CSRF_FIELD_NAME
from markform.errors import (
    ConfigurationError,
    FieldError,
    FormError,
    ParseError,
    ShapeMismatch,
    SourceNotFound,
)
from markform.fields import CaptchaField, Field, FieldKind

__all__ = [
    "CSRF_FIELD_NAME",
    "CaptchaField",
    "ConfigurationError",
    "Field",
    "FieldError",
    "FieldKind",
    "Form",
    "FormError",
    "FormValues",
    "ParseError",
    "Settings",
    "ShapeMismatch",
    "SourceNotFound",
    "get_settings",
    "parse",
]
