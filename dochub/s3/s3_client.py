# This module handles the low-level AWS S3 (Simple Storage Service) calls
# Each partition is stored as its own bucket, named <bucket_prefix><partition>
import logging
import shutil
from typing import BinaryIO, Iterator

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..config import Settings
from ..errors import BlobNotFound, PartitionNotFound, StorageFault

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}
COPY_CHUNK_SIZE = 1024 * 1024


def _is_not_found(error: ClientError) -> bool:
    return str(error.response.get("Error", {}).get("Code")) in NOT_FOUND_CODES


# This class is the only place that talks to S3
# Every botocore failure leaves it as a StorageFault (or a NotFound for 404s)
class S3Client:

    def __init__(self, settings: Settings, client=None):
        self.bucket_prefix = settings.bucket_prefix
        self.aws_region = settings.aws_region

        if client is None:
            client = boto3.client(
                's3',
                aws_access_key_id=settings.aws_access_key_id,
                aws_secret_access_key=settings.aws_secret_access_key,
                region_name=settings.aws_region,
                endpoint_url=settings.endpoint_url,
            )
        self.s3_client = client

    def bucket_name(self, partition: str) -> str:
        return f"{self.bucket_prefix}{partition}"

    def partition_exists(self, partition: str) -> bool:
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name(partition))
            return True
        except ClientError as e:
            if _is_not_found(e):
                return False
            raise StorageFault("partition_exists", str(e), partition) from e
        except BotoCoreError as e:
            raise StorageFault("partition_exists", str(e), partition) from e

    # This creates the bucket backing a partition the first time something is written to it
    def ensure_partition(self, partition: str) -> None:
        if self.partition_exists(partition):
            return

        params = {'Bucket': self.bucket_name(partition)}
        if self.aws_region != 'us-east-1':
            params['CreateBucketConfiguration'] = {'LocationConstraint': self.aws_region}

        try:
            self.s3_client.create_bucket(**params)
            logger.info("Created bucket %s for partition %s", params['Bucket'], partition)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "BucketAlreadyOwnedByYou":
                return
            raise StorageFault("ensure_partition", str(e), partition) from e
        except BotoCoreError as e:
            raise StorageFault("ensure_partition", str(e), partition) from e

    def blob_exists(self, partition: str, blob_id: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket_name(partition), Key=blob_id)
            return True
        except ClientError as e:
            if _is_not_found(e):
                return False
            raise StorageFault("blob_exists", str(e), partition, blob_id) from e
        except BotoCoreError as e:
            raise StorageFault("blob_exists", str(e), partition, blob_id) from e

    # This returns the streaming body of an object, the caller must close it
    def open_blob(self, partition: str, blob_id: str):
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name(partition), Key=blob_id)
            return response['Body']
        except ClientError as e:
            if _is_not_found(e):
                raise BlobNotFound(partition, blob_id) from e
            raise StorageFault("open_blob", str(e), partition, blob_id) from e
        except BotoCoreError as e:
            raise StorageFault("open_blob", str(e), partition, blob_id) from e

    # This copies an object into a local file without loading it fully in memory
    def download_blob(self, partition: str, blob_id: str, path: str) -> None:
        body = self.open_blob(partition, blob_id)
        try:
            with open(path, 'wb') as fh:
                shutil.copyfileobj(body, fh, COPY_CHUNK_SIZE)
        except (ClientError, BotoCoreError) as e:
            raise StorageFault("download_blob", str(e), partition, blob_id) from e
        finally:
            body.close()

    def upload_blob(self, partition: str, blob_id: str, content: BinaryIO,
                    content_type: str = 'application/octet-stream') -> None:
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name(partition),
                Key=blob_id,
                Body=content,
                ContentType=content_type
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageFault("upload_blob", str(e), partition, blob_id) from e

    # S3 deletes are idempotent, so existence is checked first to report whether anything was removed
    def delete_blob(self, partition: str, blob_id: str) -> bool:
        if not self.blob_exists(partition, blob_id):
            return False

        try:
            self.s3_client.delete_object(Bucket=self.bucket_name(partition), Key=blob_id)
            return True
        except (ClientError, BotoCoreError) as e:
            raise StorageFault("delete_blob", str(e), partition, blob_id) from e

    # This lists partitions, i.e. the buckets carrying our prefix, with the prefix removed
    def list_partitions(self) -> Iterator[str]:
        paginator = self.s3_client.get_paginator('list_buckets')
        try:
            for page in paginator.paginate():
                for bucket in page.get('Buckets', []):
                    name = bucket['Name']
                    if name.startswith(self.bucket_prefix):
                        yield name[len(self.bucket_prefix):]
        except (ClientError, BotoCoreError) as e:
            raise StorageFault("list_partitions", str(e)) from e

    # Pages are fetched lazily; calling again restarts from the first page
    def list_blobs(self, partition: str) -> Iterator[str]:
        paginator = self.s3_client.get_paginator('list_objects_v2')
        try:
            for page in paginator.paginate(Bucket=self.bucket_name(partition)):
                for obj in page.get('Contents', []):
                    yield obj['Key']
        except ClientError as e:
            if _is_not_found(e):
                raise PartitionNotFound(partition) from e
            raise StorageFault("list_blobs", str(e), partition) from e
        except BotoCoreError as e:
            raise StorageFault("list_blobs", str(e), partition) from e

    # This generates a temporary signed URL granting read access to a single object
    def generate_read_url(self, partition: str, blob_id: str, expires_in: int) -> str:
        try:
            return self.s3_client.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket_name(partition), 'Key': blob_id},
                ExpiresIn=expires_in
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageFault("generate_read_url", str(e), partition, blob_id) from e
