"""Set resolution — seed run variables from generator expressions.

INVARIANT: A failing generator never aborts the run.  The variable is
skipped and a warning is logged and returned; the remaining variables are
still resolved.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pocctl.domain.expression import ExpressionError
from pocctl.domain.generators import generator_environment

logger = logging.getLogger(__name__)


def resolve_set(
    expressions: Mapping[str, str],
    *,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    """Evaluate each ``set`` expression with no variable bindings.

    Args:
        expressions: Variable name -> generator expression source.
        warnings: Optional sink for one message per skipped variable.

    Returns:
        Variable name -> scalar value, for every expression that succeeded.
    """
    env = generator_environment()
    variables: dict[str, Any] = {}
    for name, source in expressions.items():
        try:
            value = env.compile(source).evaluate()
        except ExpressionError as exc:
            logger.warning("set expression for %s failed, skipping: %s", name, exc)
            if warnings is not None:
                warnings.append(f"set.{name}: {exc}")
            continue
        if isinstance(value, list):
            logger.warning("set expression for %s produced a list, skipping", name)
            if warnings is not None:
                warnings.append(f"set.{name}: value must be a scalar, got a list")
            continue
        variables[name] = value
    return variables
