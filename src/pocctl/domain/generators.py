"""Generator functions available to ``set`` expressions.

Both are side-effect free apart from consuming randomness.  Each call seeds a
fresh source from the current time, so values differ across runs.
"""

from __future__ import annotations

import random
import string
import time

from pocctl.domain.expression import INT, STRING, Environment, FunctionDecl


def _fresh_source() -> random.Random:
    return random.Random(time.time_ns())


def random_int(low: int, high: int) -> str:
    """Decimal string of an integer sampled uniformly from ``[low, high)``.

    An empty range (``high <= low``) always yields ``str(low)``.
    """
    if high <= low:
        return str(low)
    return str(low + _fresh_source().randrange(high - low))


def random_lowercase(n: int) -> str:
    """String of *n* lowercase ASCII letters."""
    if n < 0:
        raise ValueError(f"length must be non-negative, got {n}")
    source = _fresh_source()
    return "".join(source.choice(string.ascii_lowercase) for _ in range(n))


GENERATOR_FUNCTIONS: tuple[FunctionDecl, ...] = (
    FunctionDecl("randomInt", (INT, INT), STRING, random_int),
    FunctionDecl("randomLowercase", (INT,), STRING, random_lowercase),
)


def generator_environment() -> Environment:
    """Isolated environment for ``set`` expressions: generators, no variables."""
    return Environment(functions=GENERATOR_FUNCTIONS)
