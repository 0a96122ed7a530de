"""PocService — load a PoC document, run it, and report the verdict.

The orchestration core exposes each rule as a zero-argument ``bool``
function of the top-level expression.  Rule functions send their request
only when the evaluator reaches them, so the expression's left-to-right,
short-circuit evaluation decides which requests are sent:

* ``a() || b()`` never sends ``b``'s request when ``a`` is true;
* ``false && a()`` never sends ``a``'s request.

Each call sends a fresh request unless the rule sets ``cache: true``, in
which case its first verdict is reused for the rest of the run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from pocctl.domain.expression import BOOL, Environment, ExpressionError, FunctionDecl, Program
from pocctl.domain.generators import generator_environment
from pocctl.domain.poc import PocDocument, PocLoadError, Rule, load_poc
from pocctl.domain.template import render, stringify
from pocctl.services.base import BaseService
from pocctl.services.context import Invocation, RunContext
from pocctl.services.invoker import RuleInvoker, compile_rule
from pocctl.services.resolver import resolve_set
from pocctl.services.result import EXPRESSION_ERROR, INVALID_POC, ServiceError, ServiceResult
from pocctl.services.telemetry import get_current_span, traced

logger = logging.getLogger(__name__)

TOP_LEVEL_ORIGIN = "expression"

RuleImpl = Callable[[], bool]


# ---------------------------------------------------------------------------
# Orchestration core
# ---------------------------------------------------------------------------


def rule_functions(
    rules: Mapping[str, Rule],
    impl_for: Callable[[str, Rule], RuleImpl],
) -> list[FunctionDecl]:
    """Declare one zero-argument ``bool`` function per rule, in document order."""
    return [FunctionDecl(name, (), BOOL, impl_for(name, rule)) for name, rule in rules.items()]


def compile_expression(source: str, functions: list[FunctionDecl]) -> Program:
    """Compile the top-level expression against the rule functions.

    Raises:
        ExpressionError: Unknown rule reference, type mismatch, or bad syntax.
    """
    try:
        return Environment(functions=functions).compile(source, result=BOOL)
    except ExpressionError as exc:
        exc.origin = exc.origin or TOP_LEVEL_ORIGIN
        raise


def _rule_impl(
    name: str, rule: Rule, program: Program, invoker: RuleInvoker, context: RunContext
) -> RuleImpl:
    """Bind one rule to the run; each call performs the rule's request."""

    def call() -> bool:
        if rule.request.cache and name in context.verdicts:
            verdict = context.verdicts[name]
            context.record(
                Invocation(
                    rule=name,
                    method=rule.request.method or "GET",
                    path=render(rule.request.path, context.variables),
                    result=verdict,
                    cached=True,
                )
            )
            return verdict
        verdict = invoker.invoke(name, rule, program)
        if rule.request.cache:
            context.verdicts[name] = verdict
        return verdict

    return call


def evaluate_poc(document: PocDocument, context: RunContext) -> bool:
    """Evaluate *document*'s top-level expression against the target in *context*.

    Every rule expression and the top-level expression are compiled before
    the first request is sent.

    Raises:
        ExpressionError: Any rule or top-level compile/evaluation failure.
    """
    programs = {name: compile_rule(name, rule) for name, rule in document.rules.items()}
    invoker = RuleInvoker(context)
    functions = rule_functions(
        document.rules,
        lambda name, rule: _rule_impl(name, rule, programs[name], invoker, context),
    )
    program = compile_expression(document.expression, functions)
    try:
        return program.evaluate()
    except ExpressionError as exc:
        exc.origin = exc.origin or TOP_LEVEL_ORIGIN
        raise


def _unreachable() -> bool:
    raise AssertionError("validation never evaluates rule functions")


# ---------------------------------------------------------------------------
# PocService
# ---------------------------------------------------------------------------


def _load_failure(op: str, exc: PocLoadError) -> ServiceResult:
    return ServiceResult(
        ok=False,
        op=op,
        error=ServiceError(code=INVALID_POC, message=str(exc), detail={"path": exc.source}),
    )


def _expression_failure(op: str, exc: ExpressionError, **detail: Any) -> ServiceResult:
    return ServiceResult(
        ok=False,
        op=op,
        error=ServiceError(
            code=EXPRESSION_ERROR,
            message=str(exc),
            detail={"origin": exc.origin, "expression": exc.expression, **detail},
        ),
    )


class PocService(BaseService):
    """Runs and validates PoC documents."""

    @traced
    def run(self, path: Path, *, target: str | None = None) -> ServiceResult:
        """Run the PoC at *path* against *target* and report the verdict.

        *target* defaults to ``[runner] target``.  The request URL of every
        rule is the plain concatenation ``target + rendered_path``.
        """
        op = "run_poc"
        try:
            document = load_poc(path)
        except PocLoadError as exc:
            return _load_failure(op, exc)

        target = target or self._settings.runner.target
        span = get_current_span()
        if span:
            span.annotate("target", target)

        warnings: list[str] = []
        variables = resolve_set(document.set_expressions, warnings=warnings)

        with self._run_context(target, variables) as ctx:
            try:
                vulnerable = evaluate_poc(document, ctx)
            except ExpressionError as exc:
                logger.error("PoC %s aborted: %s", document.name, exc)
                return _expression_failure(
                    op, exc, invocations=[inv.to_dict() for inv in ctx.invocations]
                )
            invocations = [inv.to_dict() for inv in ctx.invocations]

        logger.debug("PoC %s verdict: %s", document.name, vulnerable)
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "name": document.name,
                "target": target,
                "vulnerable": vulnerable,
                "invocations": invocations,
                "variables": {k: stringify(v) for k, v in variables.items()},
                "links": document.links,
            },
            warnings=warnings,
        )

    @traced
    def validate(self, path: Path) -> ServiceResult:
        """Compile every expression in the PoC at *path* without sending requests.

        Generator failures are warnings (they only skip a variable at run
        time); rule and top-level failures are errors.
        """
        op = "validate_poc"
        try:
            document = load_poc(path)
        except PocLoadError as exc:
            return _load_failure(op, exc)

        warnings: list[str] = []
        env = generator_environment()
        for name, source in document.set_expressions.items():
            try:
                env.compile(source)
            except ExpressionError as exc:
                warnings.append(f"set.{name}: {exc}")

        errors: list[dict[str, str]] = []
        for name, rule in document.rules.items():
            try:
                compile_rule(name, rule)
            except ExpressionError as exc:
                errors.append({"origin": exc.origin, "message": str(exc)})
        try:
            compile_expression(
                document.expression,
                rule_functions(document.rules, lambda _name, _rule: _unreachable),
            )
        except ExpressionError as exc:
            errors.append({"origin": exc.origin, "message": str(exc)})

        if errors:
            return ServiceResult(
                ok=False,
                op=op,
                error=ServiceError(
                    code=EXPRESSION_ERROR,
                    message=f"{len(errors)} expression error(s) in {document.name}",
                    detail={"errors": errors},
                ),
                warnings=warnings,
            )
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "name": document.name,
                "transport": document.transport,
                "variables": list(document.set_expressions),
                "rules": list(document.rules),
                "links": document.links,
            },
            warnings=warnings,
        )
