"""Main Typer application: imports and registers all CLI commands.

Entry point: ``skybackup`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

from typing import Optional

import typer

from skybackup.cli.commands.backup import backup_app
from skybackup.cli.commands.decode import decode_cmd
from skybackup.cli.commands.storage import storage_cmd
from skybackup.cli.wiring import setup_logging
from skybackup.config import BackupSettings

app = typer.Typer(
    name="skybackup",
    help="Skybackup: back up your Bluesky posts locally and to content-addressed storage.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.add_typer(backup_app, name="backup")
app.command(name="decode", help="Decode a local CAR archive into a JSON backup.")(decode_cmd)
app.command(name="storage", help="Validate the storage connection.")(storage_cmd)


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level (defaults to SKYBACKUP_LOG_LEVEL)."
    ),
) -> None:
    """Configure logging before any command runs."""
    setup_logging(log_level or BackupSettings().log_level)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
