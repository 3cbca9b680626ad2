# This module builds a zip archive out of several objects of one partition
# Objects are checked and downloaded concurrently into a private temporary folder,
# then zipped and returned in memory. The folder and the zip file are always removed.
import logging
import os
import shutil
import tempfile
import threading
import uuid
import zipfile
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from contextlib import ExitStack
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from ..config import Settings
from ..errors import BlobNotFound, PartitionNotFound, RetrievalCancelled, StorageFault
from ..models import MANIFEST_NAME, MISSING_REPORT_NAME, RetrievalOutcome, RetrievalRequest
from .s3_client import S3Client

MISSING_AT_GENERATION = "File does not exist at generation time."
REMOVED_BEFORE_DOWNLOAD = "File was removed before it could be downloaded."
NAME_NOT_ALLOWED = "File name cannot be stored in the archive."

RESERVED_NAMES = {MANIFEST_NAME.lower(), MISSING_REPORT_NAME.lower()}
# Longest file name most filesystems accept, in bytes
MAX_ENTRY_NAME_BYTES = 255
CANCEL_POLL_SECONDS = 0.1


def archive_filename(prefix: str, now: Optional[datetime] = None) -> str:
    """Suggested download name: <prefix>-<YYYYMMDDHHMMSSfff>.zip"""
    now = now or datetime.now()
    return f"{prefix}-{now:%Y%m%d%H%M%S}{now.microsecond // 1000:03d}.zip"


def _unusable_name(blob_id: str) -> bool:
    # Empty ids are not rejected here: they are simply reported as missing
    if blob_id in (".", ".."):
        return True
    if "/" in blob_id or "\\" in blob_id or "\x00" in blob_id:
        return True
    if len(blob_id.encode("utf-8")) > MAX_ENTRY_NAME_BYTES:
        return True
    return blob_id.lower() in RESERVED_NAMES


class ArchiveBuilder:
    """
    Bulk download of a partition's objects as a single zip.

    Every requested id is accounted for exactly once per occurrence: either it
    is in the archive (``found``) or it is listed in MissingFiles.txt
    (``missing``). Duplicated ids are checked once per occurrence but only
    downloaded once.

    A StorageFault raised while checking or downloading aborts the whole
    archive; the only per-object failure tolerated is an object deleted
    between its existence check and its download, which is reported missing.
    """

    def __init__(self, s3_client: S3Client, settings: Settings,
                 logger: Optional[logging.Logger] = None, temp_dir: Optional[str] = None):
        self.s3_client = s3_client
        self.max_workers = max(1, settings.archive_max_workers)
        self.name_prefix = settings.archive_name_prefix
        self.logger = logger or logging.getLogger(__name__)
        self.temp_dir = temp_dir

    def suggested_filename(self, now: Optional[datetime] = None) -> str:
        return archive_filename(self.name_prefix, now)

    def build_archive(self, partition: str, requested_ids_raw: str,
                      cancel_event: Optional[threading.Event] = None) -> RetrievalOutcome:
        self.logger.debug("build_archive - %s requested in %s", requested_ids_raw, partition)
        request = RetrievalRequest.parse(partition, requested_ids_raw)

        try:
            exists = self.s3_client.partition_exists(partition)
        except StorageFault:
            self.logger.exception("build_archive - partition check failed for %s", partition)
            raise
        if not exists:
            raise PartitionNotFound(partition)

        # Resources are released in reverse order: zip file, worker threads, workspace
        with ExitStack() as stack:
            try:
                workspace = self._create_workspace(stack)
                executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="dochub-zip")
                stack.callback(executor.shutdown, wait=True, cancel_futures=True)

                found, missing, missing_lines, downloads = self._check_and_fetch(
                    executor, request, workspace, cancel_event)

                self._write_text(workspace, MANIFEST_NAME, self._manifest_text())
                if missing_lines:
                    self._write_text(workspace, MISSING_REPORT_NAME, "".join(missing_lines))

                self.logger.debug("build_archive - waiting for %d downloads", len(downloads))
                demoted = self._wait_downloads(partition, workspace, downloads, cancel_event)
                if demoted:
                    for blob_id in demoted:
                        occurrences = found.count(blob_id)
                        found = [f for f in found if f != blob_id]
                        missing.extend([blob_id] * occurrences)
                        missing_lines.extend([f"{blob_id} : {REMOVED_BEFORE_DOWNLOAD}\n"] * occurrences)
                    self._write_text(workspace, MISSING_REPORT_NAME, "".join(missing_lines))

                archive_path = self._make_archive(stack, workspace)
                with open(archive_path, 'rb') as fh:
                    archive_bytes = fh.read()
            except RetrievalCancelled:
                self.logger.info("build_archive - cancelled for partition %s", partition)
                raise
            except Exception:
                self.logger.exception("build_archive - unable to create zip file for partition %s", partition)
                raise

        self.logger.info("build_archive - %s: %d found, %d missing", partition, len(found), len(missing))
        return RetrievalOutcome(archive_bytes=archive_bytes, found=tuple(found), missing=tuple(missing))

    # Existence checks are consumed in completion order; each positive answer
    # immediately starts the download while the other checks are still running
    def _check_and_fetch(self, executor: ThreadPoolExecutor, request: RetrievalRequest, workspace: str,
                         cancel_event: Optional[threading.Event]):
        partition = request.partition
        checks: Dict[Future, str] = {}
        downloads: Dict[str, Future] = {}
        found: List[str] = []
        missing: List[str] = []
        missing_lines: List[str] = []

        for blob_id in request.requested_ids:
            if not blob_id:
                missing.append(blob_id)
                missing_lines.append(f"{blob_id} : {MISSING_AT_GENERATION}\n")
            elif _unusable_name(blob_id):
                self.logger.warning("build_archive - %r cannot be used as an archive entry", blob_id)
                missing.append(blob_id)
                missing_lines.append(f"{blob_id} : {NAME_NOT_ALLOWED}\n")
            else:
                checks[executor.submit(self.s3_client.blob_exists, partition, blob_id)] = blob_id

        pending: Set[Future] = set(checks)
        while pending:
            done, pending = self._wait_first(pending, cancel_event)
            for future in done:
                blob_id = checks[future]
                try:
                    exists = future.result()
                except StorageFault:
                    self.logger.error("build_archive - existence check failed for %s/%s", partition, blob_id)
                    raise

                if not exists:
                    missing.append(blob_id)
                    missing_lines.append(f"{blob_id} : {MISSING_AT_GENERATION}\n")
                    continue

                found.append(blob_id)
                if blob_id not in downloads:
                    downloads[blob_id] = executor.submit(
                        self.s3_client.download_blob, partition, blob_id, os.path.join(workspace, blob_id))

        return found, missing, missing_lines, downloads

    # Returns the ids whose object disappeared before it could be downloaded
    def _wait_downloads(self, partition: str, workspace: str, downloads: Dict[str, Future],
                        cancel_event: Optional[threading.Event]) -> List[str]:
        pending: Set[Future] = set(downloads.values())
        while pending:
            _, pending = self._wait_first(pending, cancel_event)

        demoted = []
        for blob_id, future in downloads.items():
            try:
                future.result()
            except BlobNotFound:
                self.logger.warning("build_archive - %s/%s removed before download", partition, blob_id)
                partial = os.path.join(workspace, blob_id)
                if os.path.exists(partial):
                    os.remove(partial)
                demoted.append(blob_id)
            except StorageFault:
                self.logger.error("build_archive - download failed for %s/%s", partition, blob_id)
                raise
        return demoted

    @staticmethod
    def _wait_first(pending: Set[Future], cancel_event: Optional[threading.Event]):
        if cancel_event is None:
            return wait(pending, return_when=FIRST_COMPLETED)

        while True:
            if cancel_event.is_set():
                for future in pending:
                    future.cancel()
                raise RetrievalCancelled("Archive generation was cancelled")
            done, still_pending = wait(pending, timeout=CANCEL_POLL_SECONDS, return_when=FIRST_COMPLETED)
            if done:
                return done, still_pending

    def _create_workspace(self, stack: ExitStack) -> str:
        workspace = tempfile.mkdtemp(prefix=f"{self.name_prefix}-", dir=self.temp_dir)
        stack.callback(self._remove_workspace, workspace)
        self.logger.debug("build_archive - workspace %s created", workspace)
        return workspace

    # The zip lives next to the workspace, never inside it
    def _make_archive(self, stack: ExitStack, workspace: str) -> str:
        archive_path = os.path.join(self.temp_dir or tempfile.gettempdir(), f"{self.name_prefix}-{uuid.uuid4().hex}.zip")
        stack.callback(self._remove_file, archive_path)
        # The workspace is flat, entries are stored under their bare file name
        with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for entry in os.scandir(workspace):
                if entry.is_file():
                    zf.write(entry.path, arcname=entry.name)
        self.logger.debug("build_archive - zip file %s created", archive_path)
        return archive_path

    def _remove_workspace(self, workspace: str) -> None:
        try:
            shutil.rmtree(workspace)
        except FileNotFoundError:
            pass
        except OSError:
            self.logger.exception("build_archive - could not delete workspace %s", workspace)

    def _remove_file(self, path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError:
            self.logger.exception("build_archive - could not delete temporary file %s", path)

    @staticmethod
    def _write_text(workspace: str, name: str, text: str) -> None:
        with open(os.path.join(workspace, name), 'w', encoding='utf-8') as fh:
            fh.write(text)

    @staticmethod
    def _manifest_text() -> str:
        generated_at = datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')
        return f"This is a zip file dynamically generated by DocHub at {generated_at}\n"
