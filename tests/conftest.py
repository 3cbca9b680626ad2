import threading
import time

import pytest

from dochub.config import Settings
from dochub.errors import BlobNotFound, PartitionNotFound, StorageFault


class FakeS3Client:
    """In-memory stand-in for S3Client, recording every call."""

    def __init__(self, partitions=None, delay=0.0):
        self.partitions = {name: dict(blobs) for name, blobs in (partitions or {}).items()}
        self.calls = []
        self.exists_faults = set()
        self.partition_faults = set()
        self.download_faults = set()
        self.vanish_before_download = set()
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def _record(self, *call):
        with self._lock:
            self.calls.append(call)

    def calls_to(self, name):
        return [c for c in self.calls if c[0] == name]

    def partition_exists(self, partition):
        self._record("partition_exists", partition)
        if partition in self.partition_faults:
            raise StorageFault("partition_exists", "boom", partition)
        return partition in self.partitions

    def ensure_partition(self, partition):
        self._record("ensure_partition", partition)
        self.partitions.setdefault(partition, {})

    def blob_exists(self, partition, blob_id):
        self._record("blob_exists", partition, blob_id)
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            if blob_id in self.exists_faults:
                raise StorageFault("blob_exists", "boom", partition, blob_id)
            return blob_id in self.partitions.get(partition, {})
        finally:
            with self._lock:
                self.active -= 1

    def download_blob(self, partition, blob_id, path):
        self._record("download_blob", partition, blob_id)
        if blob_id in self.download_faults:
            raise StorageFault("download_blob", "boom", partition, blob_id)
        if blob_id in self.vanish_before_download:
            raise BlobNotFound(partition, blob_id)
        with open(path, "wb") as fh:
            fh.write(self.partitions[partition][blob_id])

    def upload_blob(self, partition, blob_id, content, content_type="application/octet-stream"):
        self._record("upload_blob", partition, blob_id, content_type)
        self.partitions[partition][blob_id] = content.read()

    def delete_blob(self, partition, blob_id):
        self._record("delete_blob", partition, blob_id)
        return self.partitions.get(partition, {}).pop(blob_id, None) is not None

    def list_partitions(self):
        self._record("list_partitions")
        yield from sorted(self.partitions)

    def list_blobs(self, partition):
        self._record("list_blobs", partition)
        if partition not in self.partitions:
            raise PartitionNotFound(partition)
        yield from sorted(self.partitions[partition])

    def generate_read_url(self, partition, blob_id, expires_in):
        self._record("generate_read_url", partition, blob_id, expires_in)
        return f"https://{partition}.s3.test/{blob_id}?X-Amz-Expires={expires_in}"


@pytest.fixture
def settings():
    return Settings(admin_key="secret", archive_max_workers=4, archive_name_prefix="dochub")


@pytest.fixture
def fake_s3():
    return FakeS3Client({
        "docs": {"a.pdf": b"content of a", "b.pdf": b"content of b"},
        "team": {"x.pdf": b"x"},
    })


@pytest.fixture
def make_fake_s3():
    return FakeS3Client
