"""PoC document models and YAML loading.

A PoC document maps 1:1 onto these frozen models::

    name: example-echo
    transport: http
    set:
      token: randomLowercase(8)
    rules:
      r0:
        request:
          method: GET
          path: /echo?q={{token}}
        expression: response.status == 200 && response.body.bcontains(b"pong")
    expression: r0()
    detail:
      links:
        - https://example.com/advisory

Documents are read once and never mutated afterwards.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from pocctl.domain.expression import is_identifier


class PocLoadError(Exception):
    """A PoC document could not be read, parsed, or validated."""

    def __init__(self, source: Path | str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = str(source)
        self.message = message


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class RuleRequest(BaseModel):
    """HTTP request template for one rule.

    ``cache`` opts the rule into per-run verdict memoization.  ``expression``
    is accepted and kept but never evaluated.
    """

    model_config = {"frozen": True}

    cache: bool = False
    method: str = "GET"
    path: str = ""
    body: str = ""
    expression: str = ""


class Rule(BaseModel):
    """A request template plus the boolean expression classifying its response."""

    model_config = {"frozen": True}

    request: RuleRequest = Field(default_factory=RuleRequest)
    expression: str


class Detail(BaseModel):
    """Inert metadata. Unknown keys (author, description, ...) are kept."""

    model_config = {"frozen": True, "extra": "allow"}

    links: list[str] = Field(default_factory=list)


def _scalar_source(value: Any) -> Any:
    """Render a non-string YAML scalar as expression source text."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if value is None:
        return "null"
    return value


class PocDocument(BaseModel):
    """Root PoC document.

    Attributes:
        name: Identifier of the check.
        transport: Protocol tag (informational).
        set_expressions: Variable name -> generator expression (YAML key ``set``).
        rules: Rule name -> Rule.  Names are callable from ``expression``.
        expression: Top-level boolean expression over rule names.
        detail: Reference links and other inert metadata.
    """

    model_config = {"frozen": True, "populate_by_name": True}

    name: str
    transport: str = "http"
    set_expressions: dict[str, str] = Field(default_factory=dict, alias="set")
    rules: dict[str, Rule] = Field(default_factory=dict)
    expression: str
    detail: Detail = Field(default_factory=Detail)

    @field_validator("set_expressions", mode="before")
    @classmethod
    def _coerce_set(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, Mapping):
            return {str(k): _scalar_source(v) for k, v in value.items()}
        return value

    @field_validator("rules", mode="before")
    @classmethod
    def _default_rules(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("rules")
    @classmethod
    def _check_rule_names(cls, value: dict[str, Rule]) -> dict[str, Rule]:
        for name in value:
            if not is_identifier(name):
                msg = f"rule name {name!r} is not a valid function identifier"
                raise ValueError(msg)
        return value

    @property
    def links(self) -> list[str]:
        return list(self.detail.links)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _new_yaml() -> YAML:
    """Create a fresh safe YAML loader (plain dicts and lists)."""
    return YAML(typ="safe", pure=True)


def _summarize(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def parse_poc(text: str, *, source: Path | str = "<string>") -> PocDocument:
    """Parse and validate a PoC document from YAML text.

    Raises:
        PocLoadError: Malformed YAML or schema violation.
    """
    try:
        data = _new_yaml().load(text)
    except YAMLError as exc:
        raise PocLoadError(source, f"invalid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise PocLoadError(source, "document must be a mapping")
    try:
        return PocDocument.model_validate(data)
    except ValidationError as exc:
        raise PocLoadError(source, _summarize(exc)) from exc


def load_poc(path: Path) -> PocDocument:
    """Read and validate the PoC document at *path*.

    Raises:
        PocLoadError: Unreadable file, malformed YAML, or schema violation.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise PocLoadError(path, f"cannot read file: {exc.strerror or exc}") from exc
    return parse_poc(text, source=path)
