"""Response view and the rule-check environment.

Every rule expression is evaluated against one ``response`` value built from
the HTTP response to that rule's request.  The view lives only for the
duration of that evaluation.
"""

from __future__ import annotations

from dataclasses import dataclass

from pocctl.domain.expression import (
    BOOL,
    BYTES,
    INT,
    STRING,
    Environment,
    ExpressionEvaluationError,
    FunctionDecl,
    VariableDecl,
    object_type,
)

RESPONSE_TYPE = object_type("Response", body=BYTES, status=INT, content_type=STRING)


@dataclass(frozen=True)
class ResponseView:
    """Read-only view of one HTTP response.

    Attributes:
        body: Raw response body, read fully into memory.
        status: HTTP status code.
        content_type: ``Content-Type`` header value, or empty.
    """

    body: bytes
    status: int = 0
    content_type: str = ""


def bcontains(haystack: object, needle: object) -> bool:
    """Byte-sequence substring containment.

    Raises:
        ExpressionEvaluationError: If either argument is not ``bytes``.
    """
    for value in (haystack, needle):
        if not isinstance(value, bytes):
            raise ExpressionEvaluationError(
                f"unexpected type '{type(value).__name__}' passed to bcontains"
            )
    return needle in haystack  # type: ignore[operator]


BCONTAINS = FunctionDecl("bcontains", (BYTES, BYTES), BOOL, bcontains, receiver=True)


def response_environment() -> Environment:
    """Environment for rule expressions: ``response`` plus ``bcontains``."""
    return Environment(
        functions=[BCONTAINS],
        variables=[VariableDecl("response", RESPONSE_TYPE)],
    )
