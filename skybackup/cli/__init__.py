"""Skybackup CLI: Typer-based command-line interface.

Provides the ``skybackup`` command with subcommands for backing up posts,
re-uploading existing backups, decoding local archives and checking the
storage connection.

All output uses Rich for formatted terminal display.
"""
