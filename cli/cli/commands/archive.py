"""``revkit archive`` -- build a project archive without uploading it."""

from __future__ import annotations

from pathlib import Path

import typer
from revision_engine.archive.archiver import ProjectArchiver
from revision_engine.config import load_settings
from revision_engine.revision.naming import validate_revision_name
from rich.console import Console

from cli.display import display_archive
from cli.options import (
    PARAM_OPTION,
    PARAMS_FILE_OPTION,
    PROJECT_OPTION,
    cli_errors,
    collect_params,
    resolve_staging_dir,
)


def archive_command(
    output: Path = typer.Option(
        ...,
        "--output",
        "-o",
        help="Archive file to write (.tar.gz).",
        dir_okay=False,
    ),
    project_dir: Path = PROJECT_OPTION,
    revision: str | None = typer.Option(
        None,
        "--revision",
        "-r",
        help="Revision name to embed in the archive manifest.",
    ),
    param: list[str] = PARAM_OPTION,
    params_file: Path | None = PARAMS_FILE_OPTION,
) -> None:
    """Package PROJECT_DIR into a deterministic archive at OUTPUT."""
    console = Console(stderr=True)
    settings = load_settings()

    with cli_errors(console):
        if revision is not None:
            validate_revision_name(revision)
        params = collect_params(settings, param, params_file)
        archiver = ProjectArchiver(resolve_staging_dir(settings, project_dir))
        with archiver.staged(project_dir, params, revision) as staged:
            staged.persist(output)
            display_archive(console, output, staged.digest, staged.size, params)
