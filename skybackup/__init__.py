"""Skybackup: back up Bluesky posts and publish them to content-addressed storage.

Pipeline: fetch a repository snapshot, decode its CAR archive into
records, write a local backup artifact, then upload it to a storage
backend and report the content identifier and gateway URL.
"""

__version__ = "0.1.0"
__description__ = "Bluesky post backups with content-addressed storage upload"

from skybackup.core.pipeline import BackupPipeline
from skybackup.core.decoder import decode_archive
from skybackup.cli.app import app as cli

__all__ = ["BackupPipeline", "decode_archive", "cli", "__version__"]
