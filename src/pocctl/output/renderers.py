"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console (backed by StringIO).  The caller
extracts the rendered text via ``get_output(console)``.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from pocctl.output.console import (
    create_console,
    get_output,
    style_for_result,
    style_for_verdict,
)

if TYPE_CHECKING:
    from rich.console import Console

    from pocctl.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich.

    Returns plain text (no ANSI) when Rich detects no terminal,
    which is the case inside Click's CliRunner and piped output.
    """
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode.

    A completed run prints only its verdict, ``true`` or ``false``.
    """
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op} — {msg}"

    if result.op == "run_poc":
        return _bool_text(result.data.get("vulnerable", False))

    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _bool_text(value: Any) -> str:
    return "true" if value else "false"


def _status_line(console: Console, result: ServiceResult) -> None:
    """Print the OK/ERROR status line."""
    label = Text("OK", style="poc.ok")
    op = Text(f"  {result.op}", style="poc.op")
    console.print(label, op, end="")
    console.print()


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="poc.key")
    if key == "name":
        v = Text(str(value), style="poc.name")
    elif key == "target":
        v = Text(str(value), style="poc.target")
    elif key == "path":
        v = Text(str(value), style="poc.path")
    elif key == "vulnerable":
        v = Text(_bool_text(value), style=style_for_verdict(bool(value)))
    else:
        v = Text(str(value))
    console.print(Text.assemble(k, v))


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print meta block including telemetry span tree (verbose only)."""
    if not result.meta:
        return

    console.print()
    console.print(Text("  meta:", style="dim"))

    for k, v in result.meta.items():
        if k == "telemetry":
            _render_telemetry_tree(console, v, indent=4)
        else:
            console.print(Text(f"    {k}: {v}"))


def _render_telemetry_tree(
    console: Console,
    span_data: dict[str, Any],
    indent: int = 4,
) -> None:
    """Render a hierarchical span tree with color-coded timing."""
    prefix = " " * indent
    name = span_data.get("name", "?")
    duration = span_data.get("duration_ms", 0.0)

    if duration > 1000:
        style = "bold red"
    elif duration > 100:
        style = "yellow"
    else:
        style = "dim"

    line = Text(prefix)
    line.append(f"{duration:>8.2f}ms", style=style)
    line.append(f"  {name}")

    extras = [f"{ak}={av}" for ak, av in (span_data.get("annotations") or {}).items()]
    if extras:
        line.append(f"  ({', '.join(extras)})")

    console.print(line)

    for child in span_data.get("children", []):
        _render_telemetry_tree(console, child, indent=indent + 4)


def _invocation_table(invocations: list[dict[str, Any]], *, verbose: bool = False) -> Table:
    """Build a Rich Table with one row per rule call, in evaluation order."""
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Rule", style="poc.rule", no_wrap=True)
    table.add_column("Request")
    table.add_column("Status", justify="right")
    table.add_column("Result")
    if verbose:
        table.add_column("Note", style="dim")

    for index, inv in enumerate(invocations, start=1):
        status = inv.get("status")
        result = inv.get("result")
        row: list[str | Text] = [
            str(index),
            str(inv.get("rule", "")),
            Text(f"{inv.get('method', '')} {inv.get('path', '')}"),
            "" if status is None else str(status),
            Text(_bool_text(result), style=style_for_result(result)),
        ]
        if verbose:
            if inv.get("error"):
                row.append(Text(str(inv["error"])))
            elif inv.get("cached"):
                row.append(Text("cached", style="poc.cached"))
            else:
                row.append("")
        table.add_row(*row)

    return table


def _links(console: Console, links: list[str]) -> None:
    if not links:
        return
    console.print(Text("  links:", style="poc.key"))
    for link in links:
        console.print(Text(f"    {link}", style="poc.path"))


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    label = Text("ERROR", style="poc.error")
    op = Text(f"  {result.op}", style="poc.op")
    sep = Text(" — ")
    console.print(label, op, sep, Text(msg))

    if err is None:
        return

    # Validation failures list every broken expression.
    for item in err.detail.get("errors", []):
        console.print(Text(f"  {item.get('message', '')}"))

    if verbose and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            if k in ("errors", "invocations"):
                continue
            console.print(Text(f"    {k}: {v}"))
        invocations = err.detail.get("invocations")
        if invocations:
            console.print(_invocation_table(invocations, verbose=True))
        _render_meta(console, result)


# ── PoC renderers ─────────────────────────────────────────────────────


def _render_run(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render run_poc: verdict first, then the rule calls that produced it."""
    _status_line(console, result)
    d = result.data
    for key in ("name", "target", "vulnerable"):
        if key in d:
            _field(console, key, d[key])

    invocations = d.get("invocations", [])
    _field(console, "requests", sum(1 for inv in invocations if not inv.get("cached")))
    if invocations:
        console.print(_invocation_table(invocations, verbose=verbose))

    if verbose and d.get("variables"):
        console.print(Text("  variables:", style="poc.key"))
        for name, value in d["variables"].items():
            console.print(Text(f"    {name} = {value}"))

    _links(console, d.get("links", []))
    if verbose:
        _render_meta(console, result)


def _render_validate(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render validate_poc: what the document declares."""
    _status_line(console, result)
    d = result.data
    for key in ("name", "transport"):
        if key in d:
            _field(console, key, d[key])
    for key in ("variables", "rules"):
        names = d.get(key, [])
        _field(console, key, ", ".join(names) if names else "(none)")
    if verbose:
        _links(console, d.get("links", []))
        _render_meta(console, result)


# ── Generic fallback ──────────────────────────────────────────────────


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        if isinstance(value, (dict, list)):
            _field(console, key, _json.dumps(value, separators=(",", ":")))
        else:
            _field(console, key, value)
    if verbose:
        _render_meta(console, result)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    "run_poc": _render_run,
    "validate_poc": _render_validate,
}
