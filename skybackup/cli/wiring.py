"""Builds core components from settings, and renders their outcomes."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from skybackup.config import BackupSettings
from skybackup.core.backup_writer import BackupWriter
from skybackup.core.upload_orchestrator import UploadOrchestrator
from skybackup.decisions import BackupDecisions
from skybackup.models.upload import UploadFailure, UploadResult
from skybackup.storage.kubo import KuboStorageBackend


def setup_logging(level: str) -> None:
    """Route log records through Rich at *level*."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False, rich_tracebacks=True)],
        force=True,
    )


def build_writer(settings: BackupSettings) -> BackupWriter:
    return BackupWriter(settings.backup_dir, prefix=settings.file_prefix)


def build_uploader(settings: BackupSettings, decisions: BackupDecisions) -> UploadOrchestrator:
    backend = KuboStorageBackend(
        settings.storage_api_url,
        root=settings.storage_root,
        timeout=settings.request_timeout,
    )
    return UploadOrchestrator(
        backend,
        decisions,
        gateway_prefix=settings.gateway_prefix,
        identity=settings.storage_token or None,
    )


def print_upload_outcome(console: Console, outcome: UploadResult | UploadFailure) -> None:
    """Render an upload outcome, making clear the local copy is safe on failure."""
    if isinstance(outcome, UploadResult):
        console.print(
            Panel(
                "\n".join([
                    "[bold green]Backup uploaded successfully![/bold green]",
                    "",
                    f"[bold]CID:[/bold]         {outcome.content_id}",
                    f"[bold]Gateway URL:[/bold] {outcome.gateway_url}",
                    f"[bold]Space:[/bold]       {outcome.namespace.label}",
                    "",
                    "[dim]You can access your file using the Gateway URL.[/dim]",
                ]),
                title="[bold]Backup details[/bold]",
                border_style="green",
                padding=(1, 2),
            )
        )
        return

    if outcome.cancelled:
        console.print(f"[yellow]Upload cancelled during {outcome.step.value}.[/yellow]")
    else:
        console.print(f"[bold red]Upload failed:[/bold red] {outcome.message}")
    if outcome.artifact_path is not None:
        console.print(
            f"[yellow]Your backup is still saved locally at {outcome.artifact_path}.[/yellow]"
        )
