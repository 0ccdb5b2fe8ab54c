"""``revkit sched`` -- run the revision server on a local project.

The server picks its configuration up from ``REVKIT_SERVER_*`` environment
variables, so the command resolves its options (including the merged
parameter set, encoded as a single string) into that flat form and then
starts uvicorn with the application factory.  The local project is loaded
before the server accepts requests and reloaded whenever it changes.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import typer
from revision_engine.config import load_settings
from revision_engine.errors import ProjectDirNotFoundError
from revision_engine.params import ParameterSet, encode_params
from revision_engine.revision.naming import validate_project_name
from rich.console import Console

from cli.display import display_sched_banner
from cli.options import PARAM_OPTION, PARAMS_FILE_OPTION, PROJECT_OPTION, cli_errors, collect_params

logger = logging.getLogger(__name__)

DEFAULT_PORT = 65432


def server_environment(
    *,
    project_dir: Path,
    project_name: str,
    params: ParameterSet,
    host: str,
    port: int,
    database: str,
) -> dict[str, str]:
    """Return the ``REVKIT_SERVER_*`` variables that configure the server."""
    return {
        "REVKIT_SERVER_HOST": host,
        "REVKIT_SERVER_PORT": str(port),
        "REVKIT_SERVER_DATABASE": database,
        "REVKIT_SERVER_LOCAL_PROJECT": str(project_dir.resolve()),
        "REVKIT_SERVER_LOCAL_PROJECT_NAME": project_name,
        "REVKIT_SERVER_LOCAL_OVERWRITE_PARAMS": encode_params(params),
    }


def sched_command(
    project_dir: Path = PROJECT_OPTION,
    param: list[str] = PARAM_OPTION,
    params_file: Path | None = PARAMS_FILE_OPTION,
    port: int = typer.Option(DEFAULT_PORT, "--port", "-n", help="Port to listen on."),
    bind: str = typer.Option("127.0.0.1", "--bind", "-b", help="Address to bind to."),
    database: str = typer.Option(
        "",
        "--database",
        "-o",
        help="Directory of the durable revision store (default: in-memory).",
    ),
    project_name: str = typer.Option("default", "--project-name", help="Name the local project is served as."),
) -> None:
    """Serve PROJECT_DIR with the scheduler, reloading it on every change."""
    console = Console(stderr=True)
    settings = load_settings()

    with cli_errors(console):
        validate_project_name(project_name)
        if not project_dir.is_dir():
            raise ProjectDirNotFoundError(f"Project directory does not exist or is not a directory: '{project_dir}'")
        params = collect_params(settings, param, params_file)

    os.environ.update(
        server_environment(
            project_dir=project_dir,
            project_name=project_name,
            params=params,
            host=bind,
            port=port,
            database=database,
        )
    )
    display_sched_banner(console, host=bind, port=port, project_dir=project_dir, database=database, params=params)

    import uvicorn

    config = uvicorn.Config(
        "api.main:create_app",
        factory=True,
        host=bind,
        port=port,
        log_level="debug" if settings.debug else "info",
        access_log=False,
    )
    try:
        uvicorn.Server(config).run()
    except KeyboardInterrupt:
        console.print("[yellow]Scheduler stopped.[/yellow]")
