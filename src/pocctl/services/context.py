"""RunContext — everything one PoC run shares, passed explicitly.

One context per run, never stored globally.  The variable mapping is
read-only once the run starts; the invocation log and the verdict cache are
append-only.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx


@dataclass(frozen=True)
class Invocation:
    """Record of one rule function call."""

    rule: str
    method: str
    path: str
    result: bool
    status: int | None = None
    error: str | None = None
    cached: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "rule": self.rule,
            "method": self.method,
            "path": self.path,
            "result": self.result,
            "status": self.status,
        }
        if self.error is not None:
            data["error"] = self.error
        if self.cached:
            data["cached"] = True
        return data


@dataclass
class RunContext:
    """Run-scoped state for one PoC evaluation.

    Attributes:
        target: Base URL; request URLs are ``target + rendered_path``.
        variables: Resolved ``set`` values (read-only view).
        client: HTTP client owned by the run.
        invocations: Every rule call in evaluation order.
        verdicts: Memoized verdicts of rules declared with ``cache: true``.
    """

    target: str
    variables: Mapping[str, Any]
    client: httpx.Client
    invocations: list[Invocation] = field(default_factory=list)
    verdicts: dict[str, bool] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.variables = MappingProxyType(dict(self.variables))

    def record(self, invocation: Invocation) -> None:
        self.invocations.append(invocation)
