"""Tests for markup helpers and field widgets."""

from markform.fields import MultipleField
from markform.render import (
    ADD_CLASS,
    ENTRY_CLASS,
    MULTIPLE_CLASS,
    REMOVE_CLASS,
    close_tag,
    open_tag,
    render_attrs,
    text,
)


class TestHelpers:
    def test_render_attrs_empty(self):
        assert render_attrs({}) == ""

    def test_render_attrs_escapes(self):
        assert render_attrs({"title": 'a "b" <c>'}) == ' title="a &#34;b&#34; &lt;c&gt;"'

    def test_void_element(self):
        assert open_tag("br", {}) == "<br />"
        assert close_tag("br") == ""

    def test_regular_element(self):
        assert open_tag("p", {"class": "x"}) == '<p class="x">'
        assert close_tag("p") == "</p>"

    def test_text_is_escaped(self):
        assert text("a < b", "p") == "a &lt; b"

    def test_raw_text_is_kept(self):
        assert text("a < b", "script") == "a < b"
        assert text("a < b", "style") == "a < b"


class TestMultipleWidget:
    def test_one_entry_per_value(self):
        field = MultipleField("names", {"type": "text"})
        field.value = ["a", "b"]
        html = str(field)
        assert html.startswith(f'<div class="{MULTIPLE_CLASS}" data-multiple="names">')
        assert html.count(f'class="{ENTRY_CLASS}"') == 2
        assert html.count(f'class="{REMOVE_CLASS}"') == 2
        assert html.count(f'class="{ADD_CLASS}"') == 1
        assert 'name="names[]" value="a"' in html
        assert 'name="names[]" value="b"' in html
        assert "<script>" in html

    def test_empty_value_renders_one_blank_entry(self):
        field = MultipleField("names", {"type": "text"})
        html = str(field)
        assert html.count(f'class="{ENTRY_CLASS}"') == 1
        assert "value=" not in html

    def test_array_name_attribute(self):
        field = MultipleField("names", {"type": "text", "name": "names"})
        assert field.attributes["name"] == "names[]"


class TestFieldOutput:
    def test_password_value_is_not_rendered(self, make_form):
        form = make_form('<input type="password" name="pw" />')
        form.set_value("pw", "hunter2")
        assert "hunter2" not in str(form)

    def test_regex_rendered_as_pattern_on_input(self, make_form):
        html = str(make_form('<input type="text" name="a" regex="\\d+" />'))
        assert 'pattern="\\d+"' in html
        assert "regex" not in html

    def test_regex_rendered_as_data_pattern_on_textarea(self, make_form):
        html = str(make_form('<textarea name="a" regex="x+"></textarea>'))
        assert 'data-pattern="x+"' in html
        assert "regex" not in html

    def test_min_max_rendered_as_data_range(self, make_form):
        html = str(make_form('<input type="number" name="n" min="1" max="9" step="1" />'))
        assert '<input type="number" name="n" data-range="1:9" step="1" />' in html

    def test_single_bound_range(self, make_form):
        html = str(make_form('<input type="number" name="n" max="9" />'))
        assert 'data-range=":9"' in html

    def test_checked_and_selected(self, load_form):
        form = load_form("values.html")
        html = str(form)
        assert '<input type="radio" name="gender" value="1" checked="checked" />' in html
        assert '<input type="radio" name="gender" value="0" />' in html
        assert '<option value="blue" selected="selected">Blue</option>' in html

    def test_textarea_value_is_escaped(self, make_form):
        form = make_form('<textarea name="t"></textarea>')
        form.set_value("t", "</textarea><b>")
        assert "<textarea name=\"t\">&lt;/textarea&gt;&lt;b&gt;</textarea>" in str(form)
