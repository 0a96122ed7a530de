"""Tests for ``{{name}}`` template rendering."""

import pytest

from pocctl.domain.template import render, stringify


class TestStringify:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("abc", "abc"),
            (42, "42"),
            (1.5, "1.5"),
            (True, "true"),
            (False, "false"),
            (b"raw", "raw"),
            (None, "null"),
        ],
    )
    def test_scalars(self, value: object, expected: str) -> None:
        assert stringify(value) == expected


class TestRender:
    def test_substitutes_placeholder(self) -> None:
        assert render("/check?x={{x}}", {"x": "42"}) == "/check?x=42"

    def test_repeated_placeholder(self) -> None:
        assert render("{{a}}-{{a}}", {"a": "z"}) == "z-z"

    def test_multiple_keys(self) -> None:
        assert render("{{a}}/{{b}}", {"a": "1", "b": 2}) == "1/2"

    def test_absent_key_left_verbatim(self) -> None:
        assert render("/x?q={{missing}}", {"x": "1"}) == "/x?q={{missing}}"

    def test_empty_variables(self) -> None:
        assert render("/x?q={{a}}", {}) == "/x?q={{a}}"

    def test_mapping_value_skipped(self) -> None:
        assert render("{{m}}", {"m": {"k": "v"}}) == "{{m}}"

    def test_placeholder_free_template_unchanged(self) -> None:
        template = "/plain/path?a=1"
        assert render(template, {"a": "x"}) == template
        assert render(render(template, {"a": "x"}), {"a": "x"}) == template

    def test_placeholder_must_match_exactly(self) -> None:
        assert render("{{ x }} {x}", {"x": "1"}) == "{{ x }} {x}"

    def test_single_pass(self) -> None:
        """A substituted value is never scanned again."""
        assert render("{{a}}", {"a": "{{b}}", "b": "nope"}) == "{{b}}"

    def test_overlapping_keys(self) -> None:
        assert render("{{ab}}{{a}}", {"a": "1", "ab": "2"}) == "21"

    def test_bool_value(self) -> None:
        assert render("flag={{f}}", {"f": True}) == "flag=true"
