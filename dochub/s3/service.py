# This module provides the file operations used by the routes on top of S3Client
# It issues time-limited read links and wraps upload, delete and listing
import logging
from datetime import datetime, timedelta, timezone
from typing import BinaryIO, List, Optional, Tuple

from ..config import Settings
from ..errors import BlobNotFound, PartitionNotFound
from ..models import BlobItem, CapabilityLink
from .s3_client import S3Client


class FileService:

    def __init__(self, s3_client: S3Client, settings: Settings, logger: Optional[logging.Logger] = None):
        self.s3_client = s3_client
        self.start_skew = timedelta(minutes=settings.link_start_skew_minutes)
        self.ttl = timedelta(minutes=settings.link_ttl_minutes)
        self.logger = logger or logging.getLogger(__name__)

    # This returns a read-only link to a single object, valid from a few minutes before now
    # so that clients with a slightly late clock can use it right away
    def issue_read_link(self, partition: str, blob_id: str, now: Optional[datetime] = None) -> CapabilityLink:
        self.logger.debug("Find - partition %s file %s", partition, blob_id)

        if not self.s3_client.blob_exists(partition, blob_id):
            self.logger.debug("Find - %s/%s doesn't exist", partition, blob_id)
            raise BlobNotFound(partition, blob_id)

        issued_at = now or datetime.now(timezone.utc)
        valid_from = issued_at - self.start_skew
        valid_until = issued_at + self.ttl

        # Presigned S3 URLs are valid from signing time until ExpiresIn seconds later
        url = self.s3_client.generate_read_url(partition, blob_id, int(self.ttl.total_seconds()))
        self.logger.info("Find - blob %s/%s exists, access granted until %s", partition, blob_id, valid_until.isoformat())
        return CapabilityLink(url=url, valid_from=valid_from, valid_until=valid_until)

    # This uploads every file into the partition, creating it when needed
    # Returns the last stored item, or None when no file had content
    def upload_files(self, partition: str, files: List[Tuple[str, BinaryIO, str]]) -> Optional[BlobItem]:
        self.s3_client.ensure_partition(partition)

        last_id = None
        for filename, content, content_type in files:
            if not filename:
                continue
            self.logger.debug("Add - will upload %s", filename)
            self.s3_client.upload_blob(partition, filename, content, content_type or 'application/octet-stream')
            self.logger.info("Add - %s/%s uploaded", partition, filename)
            last_id = filename

        if last_id is None:
            return None
        return BlobItem(partition=partition, id=last_id)

    def remove(self, partition: str, blob_id: str) -> BlobItem:
        self.logger.info("Remove - try to delete %s/%s", partition, blob_id)
        if not self.s3_client.delete_blob(partition, blob_id):
            raise BlobNotFound(partition, blob_id)
        return BlobItem(partition=partition, id=blob_id)

    def list_partitions(self) -> List[str]:
        return list(self.s3_client.list_partitions())

    def list_files(self, partition: str) -> List[str]:
        if not self.s3_client.partition_exists(partition):
            raise PartitionNotFound(partition)
        return list(self.s3_client.list_blobs(partition))
