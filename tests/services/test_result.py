"""Tests for ServiceResult and ServiceError."""

import json

import pytest

from pocctl.services.result import (
    EXPRESSION_ERROR,
    INVALID_POC,
    ServiceError,
    ServiceResult,
)


class TestServiceResult:
    def test_success_construction(self) -> None:
        result = ServiceResult(ok=True, op="run_poc", data={"vulnerable": True})
        assert result.ok is True
        assert result.op == "run_poc"
        assert result.data == {"vulnerable": True}
        assert result.warnings == []
        assert result.error is None
        assert result.meta is None

    def test_error_construction(self) -> None:
        error = ServiceError(code=INVALID_POC, message="poc.yml: invalid YAML")
        result = ServiceResult(ok=False, op="run_poc", error=error)
        assert result.ok is False
        assert result.error is not None
        assert result.error.code == "INVALID_POC"

    def test_with_warnings(self) -> None:
        result = ServiceResult(ok=True, op="run_poc", warnings=["set.x: boom"])
        assert result.warnings == ["set.x: boom"]

    def test_json_serialization(self) -> None:
        result = ServiceResult(
            ok=True,
            op="run_poc",
            data={"vulnerable": False},
            meta={"duration_ms": 42},
        )
        parsed = json.loads(result.model_dump_json())
        assert parsed["ok"] is True
        assert parsed["data"]["vulnerable"] is False
        assert parsed["meta"]["duration_ms"] == 42

    def test_frozen(self) -> None:
        result = ServiceResult(ok=True, op="test")
        with pytest.raises(Exception):
            result.ok = False  # type: ignore[misc]


class TestServiceError:
    def test_with_detail(self) -> None:
        error = ServiceError(
            code=EXPRESSION_ERROR,
            message="undeclared reference to 'r9'",
            detail={"origin": "expression", "expression": "r9()"},
        )
        assert error.detail["origin"] == "expression"

    def test_default_detail(self) -> None:
        error = ServiceError(code="E001", message="bad")
        assert error.detail == {}
