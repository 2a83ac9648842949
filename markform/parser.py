"""Turn form markup into a field model plus a skeleton for re-rendering."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from markform.captcha import generate_challenge
from markform.config import CaptchaConfig
from markform.csrf import CSRF_FIELD_NAME, FORM_KEY_ATTRIBUTE, is_form_key
from markform.errors import ParseError
from markform.fields import (
    CaptchaField,
    ChoiceInputField,
    Field,
    FileField,
    HiddenField,
    InputField,
    MultipleField,
    Option,
    OptionGroup,
    SelectField,
    TextareaField,
    split_name,
)
from markform.render import close_tag, open_tag, text
from markform.skeleton import ChoiceSlot, CsrfSlot, FieldSlot, FormClose, FormOpen, Skeleton

logger = logging.getLogger(__name__)

# Inputs that never carry form data
LITERAL_INPUT_TYPES = frozenset({"submit", "button", "reset", "image"})


@dataclass
class ParsedTemplate:
    fields: dict[str, Field]
    skeleton: Skeleton
    # Form key carried by a previously rendered form, if any
    form_key: str | None = None


class TemplateParser:
    """Walks a BeautifulSoup tree, collecting fields and literal markup.

    Controls become fields and leave a slot in the skeleton; everything else
    is serialized back to markup as it is met. Widgets written by the
    renderer (``data-multiple`` and ``data-captcha`` containers) are read
    back as the fields they came from.
    """

    def __init__(self, captcha_config: CaptchaConfig | None = None):
        self.captcha_config = captcha_config or CaptchaConfig()
        self.fields: dict[str, Field] = {}
        self.skeleton = Skeleton()
        self.form_key: str | None = None
        self._in_form = False

    def parse(self, markup: str) -> ParsedTemplate:
        self.fields = {}
        self.skeleton = Skeleton()
        self.form_key = None
        self._in_form = False

        soup = BeautifulSoup(markup, "html.parser", multi_valued_attributes=None)
        self._walk(soup)

        if not self.skeleton.has_form:
            self.skeleton.add(CsrfSlot())

        logger.debug("Parsed form with fields: %s", ", ".join(self.fields) or "(none)")
        return ParsedTemplate(fields=self.fields, skeleton=self.skeleton, form_key=self.form_key)

    # -- Tree walking --

    def _walk(self, node: Tag) -> None:
        for child in node.children:
            self._visit(child)

    def _visit(self, node) -> None:
        if isinstance(node, PreformattedString):
            # Comments, doctype, CDATA, processing instructions
            self.skeleton.add_markup(node.output_ready())
            return

        if isinstance(node, NavigableString):
            parent = node.parent.name if node.parent is not None else None
            self.skeleton.add_markup(text(str(node), parent))
            return

        if not isinstance(node, Tag):
            return

        attrs = dict(node.attrs)

        if node.name == "form":
            self._form(node, attrs)
        elif node.name == "input":
            self._input(node, attrs)
        elif node.name == "select":
            self._select(node, attrs)
        elif node.name == "textarea":
            self._textarea(node, attrs)
        elif node.name == "captcha":
            self._captcha(node, attrs)
        elif "data-multiple" in attrs:
            self._multiple_widget(node, attrs)
        elif "data-captcha" in attrs:
            self._captcha_widget(node, attrs)
        else:
            self._literal(node, attrs)

    def _literal(self, node: Tag, attrs: dict[str, str]) -> None:
        self.skeleton.add_markup(open_tag(node.name, attrs))
        self._walk(node)
        self.skeleton.add_markup(close_tag(node.name))

    def _form(self, node: Tag, attrs: dict[str, str]) -> None:
        if self._in_form:
            raise ParseError("Nested <form> elements are not supported")

        self._in_form = True
        self.skeleton.add(FormOpen(attrs))
        self._walk(node)
        self.skeleton.add(FormClose())
        self._in_form = False

    # -- Controls --

    def _input(self, node: Tag, attrs: dict[str, str]) -> None:
        input_type = attrs.get("type", "text").lower()
        raw_name = attrs.get("name")

        if input_type in LITERAL_INPUT_TYPES or not raw_name:
            self._literal(node, attrs)
            return

        name, is_array = split_name(raw_name)

        if input_type == "hidden" and name == CSRF_FIELD_NAME:
            # Injected again on render; only the public form key is kept
            if is_form_key(attrs.get(FORM_KEY_ATTRIBUTE)):
                self.form_key = attrs[FORM_KEY_ATTRIBUTE]
            return

        if input_type in ("checkbox", "radio"):
            self._choice_input(name, is_array, input_type, attrs)
            return

        value = attrs.pop("value", "")

        if input_type == "hidden":
            field = HiddenField(name, attrs)
            field.value = value
        elif input_type == "file":
            field = FileField(name, attrs, collection=is_array or "multiple" in attrs)
        elif input_type == "captcha":
            del attrs["type"]
            field = self._captcha_field(name, attrs)
        elif is_array or "multiple" in attrs:
            field = MultipleField(name, attrs)
            field.value = [value] if value else []
        else:
            field = InputField(name, attrs)
            field.value = value

        self._register(field)

    def _choice_input(
        self,
        name: str,
        is_array: bool,
        input_type: str,
        attrs: dict[str, str],
    ) -> None:
        field = self.fields.get(name)
        if field is None:
            field = ChoiceInputField(name, input_type, collection=is_array)
            self.fields[name] = field
        elif not isinstance(field, ChoiceInputField) or field.input_type != input_type:
            raise ParseError(f"Duplicate field name '{name}'")

        checked = attrs.pop("checked", None) is not None
        index = field.add_choice(attrs, checked)
        self.skeleton.add(ChoiceSlot(name, index))

    def _select(self, node: Tag, attrs: dict[str, str]) -> None:
        raw_name = attrs.get("name")
        if not raw_name:
            self._literal(node, attrs)
            return

        name, is_array = split_name(raw_name)
        groups: dict[int, OptionGroup] = {}
        options = []
        selected = []

        for element in node.find_all("option"):
            group = None
            parent = element.parent
            if isinstance(parent, Tag) and parent.name == "optgroup":
                group = groups.setdefault(id(parent), OptionGroup(dict(parent.attrs)))

            option_attrs = dict(element.attrs)
            is_selected = option_attrs.pop("selected", None) is not None
            option = Option(element.get_text(), option_attrs, group)
            options.append(option)
            if is_selected:
                selected.append(option.value)

        collection = is_array or "multiple" in attrs
        field = SelectField(name, attrs, options, collection=collection)
        if collection:
            field.value = selected
        elif selected:
            field.value = selected[-1]

        self._register(field)

    def _textarea(self, node: Tag, attrs: dict[str, str]) -> None:
        raw_name = attrs.get("name")
        if not raw_name:
            self._literal(node, attrs)
            return

        field = TextareaField(split_name(raw_name)[0], attrs)
        field.value = node.get_text()
        self._register(field)

    def _captcha(self, node: Tag, attrs: dict[str, str]) -> None:
        raw_name = attrs.get("name")
        if not raw_name:
            raise ParseError("<captcha> requires a name attribute")

        attrs.pop("type", None)
        attrs.pop("value", None)
        self._register(self._captcha_field(split_name(raw_name)[0], attrs))

        # Without a closing tag the element swallows the rest of the form
        self._walk(node)

    def _captcha_field(self, name: str, attrs: dict[str, str]) -> CaptchaField:
        return CaptchaField(name, attrs, generate_challenge(self.captcha_config))

    # -- Rendered widgets --

    def _multiple_widget(self, node: Tag, attrs: dict[str, str]) -> None:
        inputs = node.find_all("input")
        if not inputs:
            raise ParseError(f"Multiple widget '{attrs['data-multiple']}' has no input")

        input_attrs = dict(inputs[0].attrs)
        input_attrs.pop("value", None)
        name = split_name(input_attrs.get("name") or attrs["data-multiple"])[0]

        field = MultipleField(name, input_attrs)
        field.value = [i.get("value") for i in inputs if i.get("value")]
        self._register(field)

    def _captcha_widget(self, node: Tag, attrs: dict[str, str]) -> None:
        element = node.find("input")
        if element is None:
            raise ParseError(f"Captcha widget '{attrs['data-captcha']}' has no input")

        input_attrs = dict(element.attrs)
        input_attrs.pop("type", None)
        input_attrs.pop("value", None)
        name = split_name(input_attrs.get("name") or attrs["data-captcha"])[0]
        self._register(self._captcha_field(name, input_attrs))

    def _register(self, field: Field) -> None:
        if field.name in self.fields:
            raise ParseError(f"Duplicate field name '{field.name}'")
        self.fields[field.name] = field
        self.skeleton.add(FieldSlot(field.name))


def parse_template(markup: str, captcha_config: CaptchaConfig | None = None) -> ParsedTemplate:
    return TemplateParser(captcha_config).parse(markup)
