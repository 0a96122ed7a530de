"""Command: run a PoC against a target."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from pocctl.commands._base import PocCommand

if TYPE_CHECKING:
    from pocctl.commands._context import AppContext


@click.command(
    cls=PocCommand,
    examples="""\
  pocctl run poc.yml
  pocctl run poc.yml --target http://10.0.0.5:8080
  pocctl -q run poc.yml
  pocctl --json run poc.yml
  pocctl -v run poc.yml""",
)
@click.argument("poc_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "-t",
    "--target",
    default=None,
    help="Base URL prepended to every rule path (default: [runner] target).",
)
@click.pass_obj
def run(app: AppContext, poc_file: Path, target: str | None) -> None:
    """Run a PoC and print whether the target is vulnerable."""
    app.emit(app.poc_service().run(poc_file, target=target))
