# This module defines the exceptions raised by the storage layer
# Routes translate them into 404 / 502 responses
from typing import Optional


class DocHubError(Exception):
    pass


# This is raised when a partition or a single object is absent
class NotFound(DocHubError):
    pass


class PartitionNotFound(NotFound):
    def __init__(self, partition: str):
        self.partition = partition
        super().__init__(f"Partition '{partition}' does not exist")


class BlobNotFound(NotFound):
    def __init__(self, partition: str, blob_id: str):
        self.partition = partition
        self.blob_id = blob_id
        super().__init__(f"Blob '{blob_id}' does not exist in partition '{partition}'")


# This wraps any backend failure (botocore ClientError, connection errors, ...)
# The core never looks at the underlying error code beyond not-found
class StorageFault(DocHubError):
    def __init__(self, operation: str, message: str, partition: Optional[str] = None, blob_id: Optional[str] = None):
        self.operation = operation
        self.partition = partition
        self.blob_id = blob_id
        super().__init__(f"{operation} failed: {message}")


class RetrievalCancelled(DocHubError):
    pass
