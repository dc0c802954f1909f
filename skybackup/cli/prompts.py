"""Interactive decisions for the CLI, rendered with Rich prompts.

Ctrl-C and end-of-input at any prompt raise :class:`OperationCancelled`.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TypeVar

from rich.console import Console
from rich.prompt import Confirm, IntPrompt, Prompt

from skybackup.core.backup_selector import format_file_size
from skybackup.decisions import OperationCancelled
from skybackup.models.artifacts import BackupArtifact, BackupFormat
from skybackup.models.upload import Namespace

T = TypeVar("T")


def _ask(fn: Callable[[], T]) -> T:
    try:
        return fn()
    except (KeyboardInterrupt, EOFError) as exc:
        raise OperationCancelled("Prompt aborted") from exc


class ConsoleDecisions:
    """:class:`~skybackup.decisions.BackupDecisions` backed by the terminal."""

    def __init__(self, console: Console) -> None:
        self.console = console

    def _pick(self, title: str, labels: Sequence[str], default: int = 1) -> int:
        """Numbered menu; returns the zero-based index chosen."""
        self.console.print(f"[bold]{title}[/bold]")
        for i, label in enumerate(labels, start=1):
            self.console.print(f"  [cyan]{i}[/cyan]) {label}")
        choices = [str(i) for i in range(1, len(labels) + 1)]
        answer = _ask(
            lambda: IntPrompt.ask(
                "Choice", choices=choices, default=default, console=self.console
            )
        )
        return answer - 1

    def choose_format(self, default: BackupFormat) -> BackupFormat:
        formats = [BackupFormat.ARCHIVE, BackupFormat.DOCUMENT]
        index = self._pick(
            "How do you want this data stored?",
            [f.label for f in formats],
            default=formats.index(default) + 1,
        )
        return formats[index]

    def confirm_upload(self, artifact: BackupArtifact) -> bool:
        return _ask(
            lambda: Confirm.ask(
                "Do you want to upload your backup to storage?",
                default=True,
                console=self.console,
            )
        )

    def choose_namespace(self, namespaces: Sequence[Namespace]) -> Namespace | None:
        labels = [ns.label for ns in namespaces] + ["Create a new space"]
        index = self._pick("Select a space or create a new one:", labels)
        return namespaces[index] if index < len(namespaces) else None

    def name_new_namespace(self) -> str:
        while True:
            name = _ask(
                lambda: Prompt.ask("Enter a name for your storage space", console=self.console)
            ).strip()
            if name:
                return name
            self.console.print("[yellow]Space name cannot be blank[/yellow]")

    def choose_backup(self, artifacts: Sequence[BackupArtifact]) -> BackupArtifact | None:
        labels = [f"{a.name} ({format_file_size(a.size_bytes)})" for a in artifacts]
        return artifacts[self._pick("Select a backup file to upload:", labels)]

    def provide_identity(self) -> str:
        return _ask(
            lambda: Prompt.ask(
                "Enter your storage API token", password=True, console=self.console
            )
        ).strip()
