"""Command: compile a PoC without sending requests."""

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
  pocctl validate poc.yml
  pocctl --json validate poc.yml""",
)
@click.argument("poc_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def validate(app: AppContext, poc_file: Path) -> None:
    """Check a PoC's structure and expressions."""
    app.emit(app.poc_service().validate(poc_file))
