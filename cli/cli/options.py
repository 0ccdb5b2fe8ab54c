"""Options and error handling shared by the revkit commands."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from revision_engine.config import Settings
from revision_engine.errors import InputError, RevisionConflictError, RevisionError, TransportError
from revision_engine.params import ParameterSet, merge_params, system_params_from_env
from rich.console import Console

logger = logging.getLogger(__name__)

# Exit codes: 2 for bad input (matching Click usage errors), 3 for
# packaging/load failures, 4 for server communication failures.
EXIT_INPUT = 2
EXIT_FAILURE = 3
EXIT_TRANSPORT = 4

PROJECT_OPTION = typer.Option(
    Path("."),
    "--project",
    help="Project directory.",
    file_okay=False,
)
PARAM_OPTION = typer.Option(
    [],
    "--param",
    "-p",
    help="Parameter override KEY=VALUE (repeatable; wins over --params-file).",
)
PARAMS_FILE_OPTION = typer.Option(
    None,
    "--params-file",
    "-P",
    help="YAML or JSON file of parameters.",
    dir_okay=False,
)


@contextmanager
def cli_errors(console: Console) -> Iterator[None]:
    """Translate revision errors into a message and a non-zero exit code."""
    try:
        yield
    except InputError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(code=EXIT_INPUT) from exc
    except RevisionConflictError as exc:
        console.print(f"[red]Revision conflict: {exc.detail}[/red]")
        raise typer.Exit(code=EXIT_TRANSPORT) from exc
    except TransportError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=EXIT_TRANSPORT) from exc
    except RevisionError as exc:
        console.print(f"[red]{type(exc).__name__}: {exc}[/red]")
        raise typer.Exit(code=EXIT_FAILURE) from exc


def collect_params(settings: Settings, overrides: list[str], params_file: Path | None) -> ParameterSet:
    """Merge environment defaults, the parameter file and ``-p`` overrides."""
    system = system_params_from_env(os.environ, settings.param_env_prefix)
    params = merge_params(system, params_file, overrides)
    logger.debug("Resolved %d parameter(s).", len(params))
    return params


def resolve_staging_dir(settings: Settings, project_dir: Path) -> Path:
    """Return the staging directory; relative settings are taken below *project_dir*."""
    staging = settings.staging_dir
    return staging if staging.is_absolute() else project_dir / staging
