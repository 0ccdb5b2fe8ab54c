"""Rich output formatting for the revkit CLI.

All functions write to a :class:`rich.console.Console` instance (typically
bound to *stderr*) so that machine-readable output on *stdout* is never
polluted with human-readable decoration.
"""

from __future__ import annotations

from pathlib import Path

from revision_engine.params import ParameterSet
from revision_engine.publish.models import PublishOutcome, PublishResult
from rich.console import Console
from rich.panel import Panel
from rich.table import Table


def _params_table(params: ParameterSet) -> Table:
    table = Table(show_header=True, header_style="bold", expand=False)
    table.add_column("Parameter", style="cyan")
    table.add_column("Value")
    for key, value in params.to_dict().items():
        table.add_row(key, repr(value))
    return table


def display_publish_result(console: Console, result: PublishResult) -> None:
    """Render the outcome of ``revkit push``.

    Parameters
    ----------
    console:
        Rich console to write to (typically stderr).
    result:
        The publisher's result.
    """
    record = result.record
    if result.outcome is PublishOutcome.EXISTING:
        console.print(
            f"[yellow]Revision {record.revision} of '{record.project_name}' already exists "
            f"with identical content; nothing to upload.[/yellow]"
        )
        return

    lines = [
        f"[bold]Project:[/bold]   {record.project_name}",
        f"[bold]Revision:[/bold]  {record.revision}",
        f"[bold]Digest:[/bold]    sha256:{record.digest}",
        f"[bold]Size:[/bold]      {record.size:,} bytes",
        f"[bold]Created:[/bold]   {record.created_at.isoformat()}",
    ]
    if record.schedule_from is not None:
        lines.append(f"[bold]Schedule from:[/bold] {record.schedule_from.isoformat()}")
    console.print(Panel("\n".join(lines), title="Uploaded revision", border_style="green"))


def display_archive(console: Console, path: Path, digest: str, size: int, params: ParameterSet) -> None:
    """Render the result of ``revkit archive``."""
    console.print(f"[green]✓[/green] Created {path} ({size:,} bytes)")
    console.print(f"  sha256:{digest}")
    if len(params):
        console.print(_params_table(params))


def display_sched_banner(
    console: Console,
    *,
    host: str,
    port: int,
    project_dir: Path,
    database: str,
    params: ParameterSet,
) -> None:
    """Render the services table shown when ``revkit sched`` starts."""
    table = Table(show_header=True, header_style="bold", expand=False)
    table.add_column("Component", style="bold")
    table.add_column("Setting")

    table.add_row("Server", f"http://{host}:{port}")
    table.add_row("Local project", str(project_dir))
    table.add_row("Revision store", database or "[yellow]in-memory (not durable)[/yellow]")
    table.add_row("Parameters", str(len(params)))
    console.print(Panel(table, title="revkit scheduler", border_style="blue"))
