"""``skybackup backup posts`` and ``skybackup backup upload``."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console

from skybackup.cli.prompts import ConsoleDecisions
from skybackup.cli.wiring import build_uploader, build_writer, print_upload_outcome
from skybackup.config import BackupSettings
from skybackup.core.backup_selector import BackupSelector, format_file_size
from skybackup.core.car_reader import CarFormatError
from skybackup.core.pipeline import BackupPipeline
from skybackup.decisions import BackupDecisions, ScriptedDecisions
from skybackup.models.artifacts import BackupFormat, RecordSource
from skybackup.models.runs import RunStatus
from skybackup.models.upload import UploadFailure
from skybackup.sources import SnapshotFetchError
from skybackup.sources.xrpc import XrpcSnapshotSource

console = Console()

backup_app = typer.Typer(
    help="Back up your Bluesky posts and upload existing backups.",
    no_args_is_help=True,
)


@backup_app.command(name="posts", help="Back up your Bluesky posts.")
def posts_cmd(
    did: str = typer.Option("", "--did", help="Repository DID (defaults to SKYBACKUP_DID)."),
    fmt: Optional[BackupFormat] = typer.Option(
        None, "--format", "-f", help="Backup format: car or json. Asked if omitted."
    ),
    source: Optional[RecordSource] = typer.Option(
        None, "--source", help="Records for JSON backups: records (listing) or archive."
    ),
    limit: Optional[int] = typer.Option(None, "--limit", help="Maximum records to list."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not prompt; use defaults."),
    upload: bool = typer.Option(True, "--upload/--no-upload", help="Upload after saving."),
) -> None:
    """Fetch the repository, save it locally, then offer to upload it."""
    settings = BackupSettings()
    identity = did or settings.did
    if not identity:
        console.print("[bold red]No DID given.[/bold red] Use --did or set SKYBACKUP_DID.")
        raise typer.Exit(code=1)

    decisions: BackupDecisions
    if yes or not upload:
        decisions = ScriptedDecisions(fmt=fmt, upload=upload, identity=settings.storage_token)
    else:
        decisions = ConsoleDecisions(console)

    pipeline = BackupPipeline(
        XrpcSnapshotSource(
            settings.service_url,
            access_token=settings.access_token,
            timeout=settings.request_timeout,
        ),
        build_writer(settings),
        build_uploader(settings, decisions),
        decisions,
        default_format=settings.default_format,
        document_source=settings.document_source,
    )

    try:
        run = pipeline.run(
            identity, fmt, record_source=source, limit=limit or settings.list_limit
        )
    except (SnapshotFetchError, CarFormatError, OSError) as exc:
        console.print(f"[bold red]Backup failed:[/bold red] {exc}")
        raise typer.Exit(code=1)

    if run.artifact is not None:
        console.print(
            f"[green]Backup saved to[/green] [cyan]{run.artifact.path}[/cyan] "
            f"({format_file_size(run.artifact.size_bytes)})"
        )
    if run.upload is not None:
        print_upload_outcome(console, run.upload)

    if run.status is RunStatus.NO_RECORDS:
        console.print("[yellow]Skipping local backup. No posts found.[/yellow]")
        raise typer.Exit(code=1)
    if run.status is RunStatus.CANCELLED and run.upload is None:
        console.print(f"[yellow]{run.message}[/yellow]")
    if run.status in (RunStatus.UPLOAD_FAILED, RunStatus.CANCELLED):
        raise typer.Exit(code=1)


@backup_app.command(name="upload", help="Upload an existing backup to storage.")
def upload_cmd(
    fmt: Optional[BackupFormat] = typer.Option(
        None, "--format", "-f", help="Override the format inferred from the file name."
    ),
    latest: bool = typer.Option(
        False, "--latest", help="Upload the newest backup without prompting."
    ),
) -> None:
    """Pick a previously saved backup and upload it."""
    settings = BackupSettings()
    decisions: BackupDecisions
    if latest:
        decisions = ScriptedDecisions(identity=settings.storage_token)
    else:
        decisions = ConsoleDecisions(console)

    selector = BackupSelector(
        settings.backup_dir, build_uploader(settings, decisions), decisions
    )
    outcome = selector.select_and_upload(fmt)
    if outcome is None:
        console.print("[yellow]Nothing to upload.[/yellow]")
        return

    print_upload_outcome(console, outcome)
    if isinstance(outcome, UploadFailure):
        raise typer.Exit(code=1)
