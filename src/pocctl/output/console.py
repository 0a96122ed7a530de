"""Rich Console factory and theme for pocctl output.

Consoles render into a StringIO buffer so renderers keep the
``format_result() -> str`` contract.  Outside a terminal (tests, pipes) Rich
drops the color codes on its own.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

POC_THEME = Theme(
    {
        "poc.ok": "bold green",
        "poc.error": "bold red",
        "poc.warning": "bold yellow",
        "poc.op": "bold cyan",
        "poc.key": "dim",
        "poc.name": "bold",
        "poc.target": "bold blue",
        "poc.path": "dim",
        "poc.rule": "cyan",
        "poc.vulnerable": "bold red",
        "poc.safe": "bold green",
        "poc.cached": "magenta",
    }
)


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer.

    Args:
        no_color: Disable ANSI escape codes (used in tests).
        width: Override terminal width (useful for consistent test output).
    """
    return Console(
        file=StringIO(),
        theme=POC_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_verdict(vulnerable: bool) -> str:
    """A positive verdict is the alarming one."""
    return "poc.vulnerable" if vulnerable else "poc.safe"


def style_for_result(result: bool | None) -> str:
    """Style of one rule outcome in the invocation table."""
    if result is None:
        return ""
    return "poc.ok" if result else "dim"
