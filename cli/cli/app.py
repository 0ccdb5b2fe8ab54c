"""revkit CLI application -- Typer-based interface to the revision lifecycle.

Provides commands to package a project (``archive``), publish it as a
revision (``push``) and serve it locally with hot reload (``sched``).
Human-readable output goes to *stderr* via Rich; machine-readable output
(``--json``) goes to *stdout*.
"""

from __future__ import annotations

import logging

import typer

from cli.commands.archive import archive_command
from cli.commands.push import push_command
from cli.commands.sched import sched_command

app = typer.Typer(
    name="revkit",
    help="revkit - package, publish and hot-reload workflow project revisions",
    no_args_is_help=True,
)

app.command(name="push")(push_command)
app.command(name="archive")(archive_command)
app.command(name="sched")(sched_command)


@app.callback()
def _global_options(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging.",
    ),
) -> None:
    """Global options applied to every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
