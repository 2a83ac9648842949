"""Tests for attribute-derived, custom and captcha constraints on submitted data."""

from __future__ import annotations

import pytest

from markform.constraints import (
    Captcha,
    ChoiceMembership,
    Custom,
    MaxLength,
    MinLength,
    Pattern,
    Range,
    Required,
)
from markform.csrf import CSRF_FIELD_NAME
from markform.errors import ParseError


# -- Helpers --


def assert_accept(form, data):
    """The form accepts ``data`` submitted with a valid CSRF token."""
    submitted = {**data, CSRF_FIELD_NAME: form.get_token()}
    assert form.posted(submitted) is True
    assert form.check() == {}


def assert_refuse(form, data):
    """The form rejects ``data`` submitted with a valid CSRF token."""
    submitted = {**data, CSRF_FIELD_NAME: form.get_token()}
    assert form.posted(submitted) is True
    assert form.check() != {}


# ---------------------------------------------------------------------------
# Attribute-derived constraints
# ---------------------------------------------------------------------------


class TestRequired:
    def test_required_attribute_is_rendered(self, load_form):
        form = load_form("required.html")
        assert "required=" in str(form)

    def test_non_empty_value_is_accepted(self, load_form):
        assert_accept(load_form("required.html"), {"name": "jack"})

    def test_empty_value_is_refused(self, load_form):
        assert_refuse(load_form("required.html"), {"name": ""})

    def test_zero_is_accepted(self, load_form):
        assert_accept(load_form("required.html"), {"name": "0"})

    def test_missing_key_is_refused(self, load_form):
        form = load_form("required.html")
        errors = form.check({})
        assert [e.code for e in errors["name"]] == ["required"]

    def test_list_sent_to_single_field_is_refused(self, load_form):
        form = load_form("required.html")
        assert_refuse(form, {"name": ["xyz"]})
        assert form.errors["name"][0].code == "type_mismatch"


class TestOptional:
    def test_no_required_attribute_rendered(self, load_form):
        form = load_form("optional.html")
        assert "required=" not in str(form)

    def test_empty_value_is_accepted(self, load_form):
        assert_accept(load_form("optional.html"), {"name": ""})

    def test_value_is_accepted(self, load_form):
        assert_accept(load_form("optional.html"), {"name": "Jack"})

    def test_list_sent_to_optional_single_field_is_refused(self, load_form):
        assert_refuse(load_form("optional.html"), {"name": ["a", "b"]})


class TestLengthBounds:
    def test_maxlength_is_rendered(self, load_form):
        assert "maxlength" in str(load_form("maxlength.html"))

    def test_maxlength_accepts_limit(self, load_form):
        assert_accept(load_form("maxlength.html"), {"nick": "x" * 100})

    def test_maxlength_refuses_limit_plus_one(self, load_form):
        assert_refuse(load_form("maxlength.html"), {"nick": "x" * 101})

    def test_minlength_accepts_limit(self, load_form):
        assert_accept(load_form("minlength.html"), {"nick": "x" * 10})

    def test_minlength_refuses_limit_minus_one(self, load_form):
        assert_refuse(load_form("minlength.html"), {"nick": "x" * 9})

    def test_minlength_accepts_empty_optional_value(self, load_form):
        assert_accept(load_form("minlength.html"), {"nick": ""})

    def test_minlength_is_rendered_as_data_attribute(self, load_form):
        html = str(load_form("minlength.html"))
        assert 'data-min-length="10"' in html
        assert "minlength" not in html

    def test_minlength_survives_round_trip(self, load_form, make_form):
        other = make_form(str(load_form("minlength.html")))
        assert other["nick"].constraints == [MinLength(10)]
        assert_refuse(other, {"nick": "x" * 9})


class TestPattern:
    def test_regex_attribute_does_not_leak(self, load_form):
        html = str(load_form("regex.html"))
        assert "regex" not in html
        assert 'pattern="[a-z]+"' in html

    def test_matching_value_is_accepted(self, load_form):
        assert_accept(load_form("regex.html"), {"nick": "hello"})

    def test_non_matching_value_is_refused(self, load_form):
        assert_refuse(load_form("regex.html"), {"nick": "hm hm"})

    def test_pattern_must_match_whole_value(self, make_form):
        form = make_form('<input type="text" name="code" pattern="[0-9]{3}" />')
        assert_refuse(form, {"code": "1234"})
        assert_accept(form, {"code": "123"})

    def test_email_type_checks_format(self, make_form):
        form = make_form('<input type="email" name="email" />')
        assert_accept(form, {"email": "jack@example.com"})
        assert_refuse(form, {"email": "not an email"})


class TestRange:
    def test_min_and_max_are_not_rendered(self, load_form):
        html = str(load_form("minmax.html"))
        assert "min" not in html
        assert "max" not in html

    def test_value_in_range_is_accepted(self, load_form):
        assert_accept(load_form("minmax.html"), {"num": 7})

    def test_value_below_range_is_refused(self, load_form):
        assert_refuse(load_form("minmax.html"), {"num": 3})

    def test_value_above_range_is_refused(self, load_form):
        assert_refuse(load_form("minmax.html"), {"num": 13})

    def test_bounds_are_inclusive(self, load_form):
        assert_accept(load_form("minmax.html"), {"num": "5"})
        assert_accept(load_form("minmax.html"), {"num": "10"})

    def test_non_integer_is_refused_for_int_type(self, load_form):
        assert_refuse(load_form("minmax.html"), {"num": "7.5"})
        assert_refuse(load_form("minmax.html"), {"num": "seven"})

    def test_number_type_accepts_decimals(self, make_form):
        form = make_form('<input type="number" name="price" min="0" max="9.5" />')
        assert_accept(form, {"price": "9.25"})
        assert_refuse(form, {"price": "9.75"})
        assert_refuse(form, {"price": "abc"})

    def test_date_type_keeps_native_bounds(self, make_form):
        form = make_form('<input type="date" name="day" min="2024-01-01" />')
        assert 'min="2024-01-01"' in str(form)
        assert_accept(form, {"day": "2020-05-05"})


# ---------------------------------------------------------------------------
# Custom constraints
# ---------------------------------------------------------------------------


class TestCustomConstraint:
    def test_custom_constraint(self, load_form):
        form = load_form("custom.html")

        form.add_constraint(
            "name",
            lambda value: "The name must not start with J" if value.startswith("J") else None,
        )

        assert_accept(form, {"name": "Paul"})
        assert_refuse(form, {"name": "Jack"})
        assert form.errors["name"] == ["The name must not start with J"]
        assert form.errors["name"][0].code == "custom"

    def test_empty_string_result_means_success(self, load_form):
        form = load_form("custom.html")
        form.add_constraint("name", lambda value: "")
        assert_accept(form, {"name": "Jack"})

    def test_custom_constraints_run_in_registration_order(self, load_form):
        form = load_form("custom.html")
        form.add_constraint("name", lambda value: "first")
        form.add_constraint("name", lambda value: "second")
        errors = form.check({"name": "x"})
        assert errors["name"] == ["first", "second"]

    def test_builtin_errors_come_before_custom_ones(self, make_form):
        form = make_form('<input type="text" name="nick" maxlength="3" />')
        form.add_constraint("nick", lambda value: "custom failure")
        errors = form.check({"nick": "toolong"})
        assert [e.code for e in errors["nick"]] == ["maxlength", "custom"]

    def test_custom_constraint_receives_list_for_collection(self, load_form):
        form = load_form("multiple.html")
        seen = []
        form.add_constraint("names", lambda value: seen.append(value))
        form.check({"names": ["a", "b"]})
        assert seen == [["a", "b"]]


# ---------------------------------------------------------------------------
# Captcha
# ---------------------------------------------------------------------------


class TestCaptcha:
    def test_captcha_renders_image_and_input(self, load_form):
        html = str(load_form("captcha.html"))
        assert "<img" in html
        assert 'name="code"' in html

    def test_expected_value_is_accepted(self, load_form):
        form = load_form("captcha.html")
        str(form)
        assert_accept(form, {"code": form["code"].get_captcha_value()})

    def test_wrong_value_is_refused(self, load_form):
        form = load_form("captcha.html")
        str(form)
        assert_refuse(form, {"code": "xxx"})
        assert form.errors["code"][0].code == "captcha"

    def test_match_is_case_sensitive(self):
        assert Captcha("abc").check("ABC") is not None
        assert Captcha("abc").check("abc") is None

    def test_empty_answer_is_refused(self, load_form):
        assert_refuse(load_form("captcha.html"), {"code": ""})

    def test_challenge_survives_revalidation(self, load_form):
        form = load_form("captcha.html")
        value = form.get_captcha_value("code")
        assert_refuse(form, {"code": "xxx"})
        assert form.get_captcha_value("code") == value
        assert_accept(form, {"code": value})


# ---------------------------------------------------------------------------
# Choices, collections and readonly
# ---------------------------------------------------------------------------


class TestSelect:
    def test_declared_option_is_accepted(self, load_form):
        assert_accept(load_form("select.html"), {"city": "la"})

    def test_value_outside_options_is_refused(self, load_form):
        form = load_form("select.html")
        assert_refuse(form, {"city": "xy"})
        assert form.errors["city"][0].code == "choice"

    def test_radio_value_outside_choices_is_refused(self, make_form):
        form = make_form(
            '<input type="radio" name="size" value="s" />'
            '<input type="radio" name="size" value="l" />'
        )
        assert_accept(form, {"size": "l"})
        assert_refuse(form, {"size": "xl"})


class TestMultiple:
    def test_multiple_renders_script_and_links(self, load_form):
        html = str(load_form("multiple.html"))
        assert "<script" in html
        assert "<a" in html

    def test_widget_markup_is_not_escaped(self, load_form):
        html = str(load_form("multiple.html"))
        assert '<div class="markform-multiple"' in html
        assert '<a href="#" class="markform-add">Add</a>' in html
        assert "&lt;" not in html

    def test_empty_string_is_refused(self, load_form):
        assert_refuse(load_form("multiple.html"), {"names": ""})

    def test_empty_list_is_refused(self, load_form):
        assert_refuse(load_form("multiple.html"), {"names": []})

    def test_list_is_accepted(self, load_form):
        assert_accept(load_form("multiple.html"), {"names": ["a", "b"]})

    def test_each_element_is_length_checked(self, load_form):
        assert_refuse(load_form("multiple.html"), {"names": ["x" * 25]})
        assert_refuse(load_form("multiple.html"), {"names": ["ok", "x" * 21]})

    def test_nested_list_is_refused(self, load_form):
        form = load_form("multiple.html")
        assert_refuse(form, {"names": [["a", "b"]]})
        assert form.errors["names"][0].code == "type_mismatch"

    def test_array_key_is_accepted(self, load_form):
        assert_accept(load_form("multiple.html"), {"names[]": ["a"]})

    def test_element_errors_are_reported_once(self, load_form):
        form = load_form("multiple.html")
        errors = form.check({"names": ["x" * 30, "y" * 30]})
        assert [e.code for e in errors["names"]] == ["maxlength"]

    def test_checkbox_group_refuses_unknown_value(self, make_form):
        form = make_form(
            '<input type="checkbox" name="colors[]" value="red" />'
            '<input type="checkbox" name="colors[]" value="blue" />'
        )
        assert_accept(form, {"colors": ["red", "blue"]})
        assert_refuse(form, {"colors": ["red", "green"]})


class TestReadOnly:
    def test_readonly_values_are_rendered(self, load_form):
        html = str(load_form("readonly.html"))
        assert "Jack" in html
        assert "selected=" in html

    def test_unchanged_values_are_accepted(self, load_form):
        assert_accept(load_form("readonly.html"), {"nom": "Jack", "color": "g"})

    def test_changed_value_is_refused(self, load_form):
        form = load_form("readonly.html")
        assert_refuse(form, {"nom": "Jack", "color": "y"})
        assert form.errors["color"][0].code == "readonly"
        assert "nom" not in form.errors

    def test_refused_value_is_not_stored(self, load_form):
        form = load_form("readonly.html")
        form.check({"nom": "Paul", "color": "g"})
        assert form.get_value("nom") == "Jack"

    def test_programmatic_set_bypasses_readonly(self, load_form):
        form = load_form("readonly.html")
        form.set_value("nom", "Paul")
        assert form.get_value("nom") == "Paul"
        assert_accept(form, {"nom": "Paul", "color": "g"})


class TestReset:
    def test_reset_restores_parsed_values(self, load_form):
        form = load_form("reset.html")
        assert form.get_value("name") == "Jack"

        assert_accept(form, {"name": "Paul"})
        assert form.get_value("name") == "Paul"

        form.reset()
        assert form.get_value("name") == "Jack"

    def test_reset_keeps_attribute_changes(self, load_form):
        form = load_form("reset.html")
        form.set_attribute("name", "maxlength", "3")
        form.reset()
        assert form.get_attribute("name", "maxlength") == "3"
        assert_refuse(form, {"name": "Jack"})


# ---------------------------------------------------------------------------
# Constraint objects
# ---------------------------------------------------------------------------


class TestConstraintObjects:
    def test_required_collection_needs_a_non_empty_element(self):
        assert Required().check(["", ""]) is not None
        assert Required().check(["", "a"]) is None

    def test_length_constraints_ignore_empty_values(self):
        assert MinLength(3).check("") is None
        assert MaxLength(0).check("") is None

    def test_pattern_rejects_invalid_regex(self):
        with pytest.raises(ParseError):
            Pattern("[unclosed")

    def test_range_messages_mention_bounds(self):
        assert Range(minimum=5).check("3") == "Must be greater than or equal to 5."
        assert Range(maximum=10).check("13") == "Must be less than or equal to 10."

    def test_choice_membership_ignores_empty_value(self):
        assert ChoiceMembership(("a",)).check("") is None

    def test_captcha_repr_hides_expected_value(self):
        assert "secret" not in repr(Captcha("secret"))

    def test_custom_passes_value_through(self):
        constraint = Custom(lambda value: f"bad {value}")
        assert constraint.check("x") == "bad x"
