"""``{{name}}`` placeholder rendering for rule request templates.

Rendering never fails: placeholders without a usable value are left as they
are.  Substitution is a single pass, so a substituted value is never scanned
again for placeholders.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any


def stringify(value: Any) -> str:
    """String form of a variable value as it appears in a rendered template."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if value is None:
        return "null"
    return str(value)


def render(template: str, variables: Mapping[str, Any]) -> str:
    """Replace each ``{{key}}`` in *template* with its variable's value.

    Mapping values are composite and are skipped, leaving their placeholder
    verbatim, as is any placeholder whose key is not in *variables*.
    """
    replacements = {
        "{{" + key + "}}": stringify(value)
        for key, value in variables.items()
        if not isinstance(value, Mapping)
    }
    if not replacements or "{{" not in template:
        return template
    # Longest token first so alternation never stops at a shorter overlapping token.
    tokens = sorted(replacements, key=len, reverse=True)
    pattern = re.compile("|".join(re.escape(token) for token in tokens))
    return pattern.sub(lambda match: replacements[match.group(0)], template)
