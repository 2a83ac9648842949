"""The retained markup structure with placeholders for form controls.

A skeleton is a flat list of nodes. Literal nodes hold already serialized
markup; the other nodes are filled from the form's current state each time
the form is rendered.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from markupsafe import Markup

from markform.render import render_attrs

if TYPE_CHECKING:
    from markform.core import Form

MULTIPART = "multipart/form-data"


class Node:
    def render(self, form: Form) -> str:
        raise NotImplementedError


@dataclass
class Literal(Node):
    markup: str

    def render(self, form: Form) -> str:
        return self.markup


@dataclass
class FieldSlot(Node):
    name: str

    def render(self, form: Form) -> str:
        return str(form[self.name].render())


@dataclass
class ChoiceSlot(Node):
    """One input of a checkbox/radio group."""

    name: str
    index: int

    def render(self, form: Form) -> str:
        return str(form[self.name].render_choice(self.index))


@dataclass
class FormOpen(Node):
    attributes: dict[str, str] = field(default_factory=dict)

    def render(self, form: Form) -> str:
        attrs = dict(self.attributes)
        if form.multipart and "enctype" not in attrs:
            attrs["enctype"] = MULTIPART
        return f"<form{render_attrs(attrs)}>"


class CsrfSlot(Node):
    def render(self, form: Form) -> str:
        return str(form.csrf_field())


class FormClose(CsrfSlot):
    def render(self, form: Form) -> str:
        return super().render(form) + "</form>"


class Skeleton:
    def __init__(self):
        self.nodes: list[Node] = []

    def add(self, node: Node) -> None:
        self.nodes.append(node)

    def add_markup(self, markup: str) -> None:
        """Append literal markup, merging it with a preceding literal node."""
        if not markup:
            return
        if self.nodes and isinstance(self.nodes[-1], Literal):
            self.nodes[-1].markup += markup
        else:
            self.nodes.append(Literal(markup))

    @property
    def has_form(self) -> bool:
        return any(isinstance(node, FormOpen) for node in self.nodes)

    def render(self, form: Form) -> Markup:
        return Markup("".join(node.render(form) for node in self.nodes))

    def __len__(self) -> int:
        return len(self.nodes)
