"""ServiceResult and ServiceError — the universal service contract.

INVARIANT: All service-layer operations return ServiceResult.
Fatal conditions are converted into ``ok=False`` results at the service
boundary; the CLI turns those into stderr output and exit code 1.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

# Error codes
INVALID_POC = "INVALID_POC"
EXPRESSION_ERROR = "EXPRESSION_ERROR"


class ServiceError(BaseModel):
    """Structured error payload within a ServiceResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Universal return type for all service operations.

    Attributes:
        ok: Whether the operation succeeded.
        op: Name of the operation (e.g. ``"run_poc"``).
        data: Operation-specific payload on success.
        warnings: Non-fatal issues encountered during the operation.
        error: Structured error if ``ok`` is False.
        meta: Optional metadata (telemetry spans, etc.).
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None
