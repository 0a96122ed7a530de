"""Rule invocation — render, send, and classify one rule's request.

Failure policy differs by stage:

* request construction or transport failure: the rule is ``false``, the run
  continues (logged as a warning);
* rule-expression compile or evaluation failure: :class:`ExpressionError`
  propagates and aborts the run.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import httpx
import structlog

from pocctl.domain.expression import BOOL, ExpressionError, Program
from pocctl.domain.response import ResponseView, response_environment
from pocctl.domain.template import render
from pocctl.services.context import Invocation
from pocctl.services.telemetry import trace_span

if TYPE_CHECKING:
    from pocctl.domain.poc import Rule
    from pocctl.services.context import RunContext

log = structlog.get_logger(__name__)

# RFC 9110 token: the only characters a request method may contain.
_METHOD_TOKEN = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")


def compile_rule(name: str, rule: Rule) -> Program:
    """Compile *rule*'s response expression to a bool program.

    Raises:
        ExpressionError: With ``origin`` naming the rule.
    """
    try:
        return response_environment().compile(rule.expression, result=BOOL)
    except ExpressionError as exc:
        exc.origin = exc.origin or f"rule {name}"
        raise


class RuleInvoker:
    """Performs rule requests against the target of one run."""

    def __init__(self, context: RunContext) -> None:
        self._ctx = context

    def invoke(self, name: str, rule: Rule, program: Program | None = None) -> bool:
        """Send *rule*'s request and evaluate its expression on the response.

        Args:
            name: Rule name (for logs and the invocation record).
            rule: The rule definition.
            program: Precompiled rule expression; compiled here if omitted.

        Raises:
            ExpressionError: The rule expression failed to compile or evaluate.
        """
        if program is None:
            program = compile_rule(name, rule)

        variables = self._ctx.variables
        method = rule.request.method or "GET"
        path = render(rule.request.path, variables)
        body = render(rule.request.body, variables)
        url = self._ctx.target + path

        with trace_span(f"rule:{name}") as span:
            if span:
                span.annotate("request", f"{method} {path}")
            try:
                if not _METHOD_TOKEN.fullmatch(method):
                    raise ValueError(f"invalid method {method!r}")
                request = self._ctx.client.build_request(
                    method, url, content=body.encode("utf-8") if body else None
                )
                log.debug("rule.request", rule=name, method=method, url=url)
                response = self._ctx.client.send(request)
            except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
                log.warning("rule.request_failed", rule=name, url=url, error=str(exc))
                self._ctx.record(
                    Invocation(rule=name, method=method, path=path, result=False, error=str(exc))
                )
                if span:
                    span.annotate("error", type(exc).__name__)
                return False

            view = ResponseView(
                body=response.content,
                status=response.status_code,
                content_type=response.headers.get("content-type", ""),
            )
            try:
                result = program.evaluate({"response": view})
            except ExpressionError as exc:
                exc.origin = exc.origin or f"rule {name}"
                raise

            log.debug("rule.evaluated", rule=name, status=view.status, result=result)
            self._ctx.record(
                Invocation(
                    rule=name, method=method, path=path, result=result, status=view.status
                )
            )
            if span:
                span.annotate("status", view.status)
                span.annotate("result", result)
            return result
