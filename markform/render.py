"""Markup helpers shared by the skeleton and the field widgets."""

from __future__ import annotations

from markupsafe import Markup, escape

MULTIPLE_CLASS = "markform-multiple"
ENTRY_CLASS = "markform-entry"
ADD_CLASS = "markform-add"
REMOVE_CLASS = "markform-remove"
CAPTCHA_CLASS = "markform-captcha"

# Elements written as <tag ... /> with no closing tag
VOID_ELEMENTS = frozenset(
    {
        "area", "base", "br", "col", "embed", "hr", "img", "input",
        "link", "meta", "param", "source", "track", "wbr",
    }
)

# Raw text elements whose content must not be escaped
RAW_TEXT_ELEMENTS = frozenset({"script", "style"})

# Add/remove behaviour of a multiple widget. Runs once per widget and only
# touches the widget it is embedded in.
MULTIPLE_WIDGET_SCRIPT = (
    "(function () {"
    " var widget = document.currentScript.parentNode;"
    " widget.addEventListener(\"click\", function (event) {"
    " var link = event.target;"
    f" if (link.classList.contains(\"{ADD_CLASS}\")) {{"
    " event.preventDefault();"
    f" var entries = widget.querySelectorAll(\".{ENTRY_CLASS}\");"
    " var entry = entries[entries.length - 1].cloneNode(true);"
    " entry.querySelector(\"input\").value = \"\";"
    " widget.insertBefore(entry, link);"
    f" }} else if (link.classList.contains(\"{REMOVE_CLASS}\")) {{"
    " event.preventDefault();"
    f" if (widget.querySelectorAll(\".{ENTRY_CLASS}\").length > 1) {{"
    " link.parentNode.parentNode.removeChild(link.parentNode);"
    " }"
    " }"
    " });"
    " })();"
)


def render_attrs(attrs: dict[str, str]) -> str:
    """Render a dict as HTML attributes string. Returns '' or ' key="val" key2="val2"'."""
    if not attrs:
        return ""
    return " " + " ".join(f'{name}="{escape(value)}"' for name, value in attrs.items())


def open_tag(name: str, attrs: dict[str, str]) -> str:
    if name in VOID_ELEMENTS:
        return f"<{name}{render_attrs(attrs)} />"
    return f"<{name}{render_attrs(attrs)}>"


def close_tag(name: str) -> str:
    if name in VOID_ELEMENTS:
        return ""
    return f"</{name}>"


def text(value: str, parent: str | None = None) -> str:
    """Escape a text node unless it lives inside a raw text element."""
    if parent in RAW_TEXT_ELEMENTS:
        return value
    return str(escape(value))


def script(source: str) -> Markup:
    return Markup(f"<script>{source}</script>")
