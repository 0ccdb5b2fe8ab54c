"""``revkit push`` -- package a project and publish it as a revision."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import typer
from revision_engine.archive.archiver import ProjectArchiver
from revision_engine.config import load_settings
from revision_engine.publish.client import RevisionClient
from revision_engine.publish.publisher import RevisionPublisher
from revision_engine.revision.naming import generate_default_revision, validate_project_name, validate_revision_name
from revision_engine.schedule.window import parse_schedule_from
from rich.console import Console

from cli.display import display_publish_result
from cli.options import (
    PARAM_OPTION,
    PARAMS_FILE_OPTION,
    PROJECT_OPTION,
    cli_errors,
    collect_params,
    resolve_staging_dir,
)

logger = logging.getLogger(__name__)


def push_command(
    project_name: str = typer.Argument(..., help="Project name on the server."),
    project_dir: Path = PROJECT_OPTION,
    revision: str | None = typer.Option(
        None,
        "--revision",
        "-r",
        help="Revision name (default: generated, time-ordered).",
    ),
    param: list[str] = PARAM_OPTION,
    params_file: Path | None = PARAMS_FILE_OPTION,
    schedule_from: str | None = typer.Option(
        None,
        "--schedule-from",
        help="Suppress scheduled firings before this time ('yyyy-MM-dd HH:mm:ss Z' or ISO-8601).",
    ),
    endpoint: str | None = typer.Option(
        None,
        "--endpoint",
        "-e",
        help="Revision server URL (default: REVKIT_ENDPOINT or http://127.0.0.1:65432).",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print the revision record as JSON on stdout.",
    ),
) -> None:
    """Archive PROJECT_DIR and upload it as a new revision of PROJECT_NAME."""
    console = Console(stderr=True)
    settings = load_settings(**({"endpoint": endpoint} if endpoint else {}))

    with cli_errors(console):
        # Validate everything the server would reject before building anything.
        validate_project_name(project_name)
        if revision is not None:
            validate_revision_name(revision)
        activation = parse_schedule_from(schedule_from) if schedule_from else None
        params = collect_params(settings, param, params_file)

        archiver = ProjectArchiver(resolve_staging_dir(settings, project_dir))
        with archiver.staged(project_dir, params) as staged:
            identity = revision or generate_default_revision()
            console.print(f"Uploading {staged.size:,} bytes to {settings.endpoint} as revision {identity} ...")
            with RevisionClient(settings.endpoint, timeout=settings.http_timeout) as client:
                result = RevisionPublisher(client).publish(project_name, identity, staged.path, activation)

    if json_output:
        payload = {"outcome": result.outcome.value, **result.record.model_dump(mode="json")}
        sys.stdout.write(json.dumps(payload, indent=2) + "\n")
    else:
        display_publish_result(console, result)
