"""``skybackup storage``: check the storage backend end to end.

Runs the connect, authenticate and select-namespace upload steps without
uploading anything.
"""

from __future__ import annotations

import typer
from rich.console import Console

from skybackup.cli.prompts import ConsoleDecisions
from skybackup.cli.wiring import build_uploader
from skybackup.config import BackupSettings
from skybackup.models.upload import UploadFailure

console = Console()


def storage_cmd() -> None:
    """Validate the storage integration."""
    settings = BackupSettings()
    uploader = build_uploader(settings, ConsoleDecisions(console))

    outcome = uploader.check_connection()
    if isinstance(outcome, UploadFailure):
        console.print(f"[bold red]Storage check failed:[/bold red] {outcome.message}")
        raise typer.Exit(code=1)

    principal, namespace = outcome
    console.print(f"[bold]Peer:[/bold]  {principal.principal_id}")
    console.print(f"[bold]Space:[/bold] {namespace.label}")
    console.print("\n[green]Storage connection is working![/green]")
