"""CSRF tokens derived from a form's identity and the process secret.

Uses HMAC-SHA256 from the standard library. The token only depends on the
form key and the secret, so any form instance built from the same template
accepts a submission issued by another one.

The form key is a public SHA-256 digest of the identity. It is rendered next
to the token so that markup produced by ``render()`` and parsed again keeps
the key, and therefore the token, of the form it came from. The token itself
is never read back from markup.
"""

import hashlib
import hmac
import re
from typing import Any, Mapping

from markupsafe import Markup

from markform.errors import ConfigurationError
from markform.render import open_tag

CSRF_FIELD_NAME = "csrf_token"
FORM_KEY_ATTRIBUTE = "data-form-key"

_FORM_KEY_PATTERN = re.compile(r"[0-9a-f]{64}")


def form_key(identity: str) -> str:
    """Public key of a form identity; does not reveal template paths."""
    return hashlib.sha256(identity.encode("utf-8")).hexdigest()


def is_form_key(value: Any) -> bool:
    return isinstance(value, str) and _FORM_KEY_PATTERN.fullmatch(value) is not None


def derive_token(key: str, secret: str | None) -> str:
    """Derive the token for a form key.

    Raises:
        ConfigurationError: if no secret is configured.
    """
    if not secret:
        raise ConfigurationError(
            "No CSRF secret configured. Set MARKFORM_SECRET_KEY or pass "
            "Settings(secret_key=...) to the form."
        )
    return hmac.new(secret.encode(), key.encode(), hashlib.sha256).hexdigest()


def verify_token(data: Mapping[str, Any] | None, token: str) -> bool:
    """True if ``data`` carries a ``csrf_token`` equal to ``token``."""
    if not data:
        return False

    submitted = data.get(CSRF_FIELD_NAME)
    if not isinstance(submitted, str) or not submitted:
        return False

    return hmac.compare_digest(submitted.encode(), token.encode())


def csrf_field(token: str, key: str | None = None) -> Markup:
    """Render the hidden CSRF input, with the form key when given."""
    attrs = {"type": "hidden", "name": CSRF_FIELD_NAME, "value": token}
    if key is not None:
        attrs[FORM_KEY_ATTRIBUTE] = key
    return Markup(open_tag("input", attrs))
