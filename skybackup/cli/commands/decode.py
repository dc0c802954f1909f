"""``skybackup decode FILE``: turn a local CAR archive into a JSON backup.

Decodes every block and writes a structured-document backup into the
backup directory. Blocks that are not DAG-CBOR are kept as raw bytes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from skybackup.cli.wiring import build_writer
from skybackup.config import BackupSettings
from skybackup.core.backup_writer import BackupWriter, NoRecordsError
from skybackup.core.car_reader import CarFormatError
from skybackup.core.decoder import decode_archive

console = Console()


def decode_cmd(
    archive: Path = typer.Argument(..., help="Path to a .car repository archive."),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", "-o", help="Directory for the JSON backup."
    ),
) -> None:
    """Decode a CAR archive into a structured-document backup."""
    settings = BackupSettings()
    writer = (
        BackupWriter(output_dir, prefix=settings.file_prefix)
        if output_dir is not None
        else build_writer(settings)
    )

    try:
        records = list(decode_archive(archive.read_bytes()))
        artifact = writer.write_document(records)
    except FileNotFoundError:
        console.print(f"[bold red]Archive not found:[/bold red] {archive}")
        raise typer.Exit(code=1)
    except CarFormatError as exc:
        console.print(f"[bold red]Not a valid CAR archive:[/bold red] {exc}")
        raise typer.Exit(code=1)
    except NoRecordsError:
        console.print("[yellow]The archive contains no blocks. Nothing was written.[/yellow]")
        raise typer.Exit(code=1)

    raw = sum(1 for r in records if not r.is_structured)
    console.print(
        f"[green]Decoded {len(records)} blocks[/green] ({raw} kept as raw bytes)"
    )
    console.print(f"[bold]{artifact.path}[/bold]")
