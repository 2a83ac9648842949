"""Litestar integration: feed submitted request data to a Form."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from litestar import Request

from markform.fields import split_name

if TYPE_CHECKING:
    from markform.core import Form


async def submitted_data(request: Request) -> dict[str, Any]:
    """Read the request body as a form mapping.

    ``name[]`` keys and repeated keys are folded into lists; other keys map to
    their single value (an UploadFile for file inputs).
    """
    form_data = await request.form()
    if hasattr(form_data, "multi_items"):
        items = form_data.multi_items()
    else:
        items = form_data.items()

    data: dict[str, Any] = {}
    for key, value in items:
        name, is_array = split_name(key)
        if is_array:
            data.setdefault(name, []).append(value)
        elif name in data:
            previous = data[name]
            data[name] = [*previous, value] if isinstance(previous, list) else [previous, value]
        else:
            data[name] = value
    return data


async def bind_request(form: Form, request: Request) -> bool:
    """Store the request's form data on ``form`` and verify its CSRF token.

    Returns the result of ``form.posted()``; call ``form.check()`` afterwards
    to validate the values.
    """
    form.submit(await submitted_data(request))
    return form.posted()
