"""Batch sync: correct each unsynced MyWhoosh file and upload it to Garmin Connect."""

import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple, Union

from analyzers.activity_corrector import ActivityCorrector, fix_fit_file
from clients.garmin_client import GarminClient
from config.settings import SYNC_WINDOW_DAYS
from utils.errors import (
    DuplicateError,
    FitFileError,
    InvalidCredentialsError,
    TokenError,
    TransportError,
    UploadError,
)
from utils.file_discovery import find_unsynced_fit_files, generate_output_filename, mark_synced

logger = logging.getLogger(__name__)

CredentialSource = Callable[[], Tuple[Optional[str], Optional[str]]]


@dataclass
class SyncSummary:
    """Per-batch outcome counts."""

    uploaded: List[Path] = field(default_factory=list)
    duplicates: List[Path] = field(default_factory=list)
    skipped: List[Path] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.uploaded) + len(self.duplicates) + len(self.skipped)


class SyncRunner:
    """Drives authentication and the per-file fix/upload loop."""

    def __init__(self, client: GarminClient, progress: Optional[Callable[[str], None]] = None,
                 work_dir: Optional[Union[str, Path]] = None,
                 corrector: Optional[ActivityCorrector] = None):
        self.client = client
        self.progress = progress or logger.info
        self.work_dir = Path(work_dir) if work_dir else Path(tempfile.gettempdir())
        self.corrector = corrector or ActivityCorrector()

    def authenticate(self, credentials: Optional[CredentialSource] = None):
        """Resume the cached session or log in.

        ``credentials`` is only called when no cached session can be resumed.

        Raises:
            InvalidCredentialsError: If no session is cached and no credentials are given
            AuthenticationError, TokenError, TransportError: If the login fails
        """
        if self.client.resume():
            self.progress("Garmin session resumed")
            return
        email, password = credentials() if credentials else (None, None)
        if not email or not password:
            raise InvalidCredentialsError("Enter Garmin email & password for first login")
        self.progress("Logging in to Garmin Connect...")
        self.client.login(email, password)
        self.progress("Logged in to Garmin Connect")

    def sync_files(self, files: Iterable[Union[str, Path]]) -> SyncSummary:
        """Fix and upload each file; one file failing never stops the batch."""
        files = [Path(f) for f in files]
        summary = SyncSummary()

        for index, fit_file in enumerate(files, start=1):
            self.progress(f"[{index}/{len(files)}] {fit_file.name}")
            out_path = self.work_dir / generate_output_filename(fit_file)
            try:
                self._sync_one(fit_file, out_path, summary)
            finally:
                if out_path.exists():
                    out_path.unlink()

        self.progress(
            f"Sync complete: {len(summary.uploaded)} uploaded, "
            f"{len(summary.duplicates)} already on Garmin, {len(summary.skipped)} skipped"
        )
        return summary

    def _sync_one(self, fit_file: Path, out_path: Path, summary: SyncSummary):
        try:
            fix_fit_file(fit_file, out_path, progress=self.progress, corrector=self.corrector)
        except FitFileError as e:
            logger.error(f"Processing failed for {fit_file}: {e}")
            self.progress(f"  Processing failed: {e}")
            summary.skipped.append(fit_file)
            return

        self.progress("  Uploading...")
        try:
            self.client.upload(out_path)
        except DuplicateError:
            self._mark_synced(fit_file)
            self.progress("  Already on Garmin (marked synced)")
            summary.duplicates.append(fit_file)
            return
        except (UploadError, TokenError, TransportError) as e:
            logger.error(f"Upload failed for {fit_file}: {e}")
            self.progress(f"  Upload failed: {e}")
            summary.skipped.append(fit_file)
            return

        self._mark_synced(fit_file)
        self.progress("  Uploaded")
        summary.uploaded.append(fit_file)

    def _mark_synced(self, fit_file: Path):
        try:
            mark_synced(fit_file)
        except OSError as e:
            logger.error(f"Could not write sync marker for {fit_file}: {e}")
            self.progress(f"  Could not mark as synced: {e}")

    def sync_directory(self, directory: Union[str, Path],
                       credentials: Optional[CredentialSource] = None,
                       days: int = SYNC_WINDOW_DAYS) -> SyncSummary:
        """Scan ``directory`` for unsynced files, authenticate, and sync them.

        Authentication errors propagate: no file can be uploaded without a session.
        """
        self.progress(f"Scanning for unsynced activities (last {days} days)...")
        files = find_unsynced_fit_files(directory, days=days)
        if not files:
            self.progress("Everything is already synced")
            return SyncSummary()
        self.progress(f"Found {len(files)} unsynced activity file(s)")

        self.authenticate(credentials)
        return self.sync_files(files)
