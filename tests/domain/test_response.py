"""Tests for the response view and the ``bcontains`` builtin."""

import pytest

from pocctl.domain.expression import BOOL, ExpressionEvaluationError, ExpressionTypeError
from pocctl.domain.response import ResponseView, bcontains, response_environment


class TestBcontains:
    def test_contains(self) -> None:
        assert bcontains(b"hello world", b"world") is True

    def test_missing(self) -> None:
        assert bcontains(b"hello", b"xyz") is False

    def test_empty_needle(self) -> None:
        assert bcontains(b"hello", b"") is True

    @pytest.mark.parametrize(("haystack", "needle"), [("hello", b"h"), (b"hello", "h")])
    def test_type_mismatch(self, haystack: object, needle: object) -> None:
        with pytest.raises(ExpressionEvaluationError, match="unexpected type 'str'"):
            bcontains(haystack, needle)


class TestResponseEnvironment:
    def _check(self, source: str, view: ResponseView) -> bool:
        return response_environment().compile(source, result=BOOL).evaluate({"response": view})

    def test_function_style(self) -> None:
        view = ResponseView(body=b"status: ok")
        assert self._check('bcontains(response.body, b"ok")', view) is True

    def test_member_style(self) -> None:
        view = ResponseView(body=b"status: fail")
        assert self._check('response.body.bcontains(b"ok")', view) is False

    def test_status_and_content_type(self) -> None:
        view = ResponseView(body=b"{}", status=200, content_type="application/json")
        source = 'response.status == 200 && response.content_type == "application/json"'
        assert self._check(source, view) is True

    def test_string_argument_rejected_at_compile_time(self) -> None:
        with pytest.raises(ExpressionTypeError, match="must be bytes"):
            response_environment().compile('bcontains(response.body, "ok")')

    def test_unknown_field(self) -> None:
        with pytest.raises(ExpressionTypeError, match="no field 'headers'"):
            response_environment().compile("response.headers")
