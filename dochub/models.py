# This module holds the value types passed between the routes, the services and the S3 layer
from datetime import datetime
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field

MANIFEST_NAME = "Readme.txt"
MISSING_REPORT_NAME = "MissingFiles.txt"
ID_SEPARATOR = ";"


# This represents one object stored in a partition (an S3 bucket)
class BlobItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    partition: str
    id: str

    @property
    def uid(self) -> str:
        return self.partition + self.id


class CapabilityLink(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    valid_from: datetime
    valid_until: datetime


# This is what the client asks for when downloading several files as one zip
class RetrievalRequest(BaseModel):
    partition: str
    requested_ids: List[str] = Field(default_factory=list)

    @classmethod
    def parse(cls, partition: str, requested_ids_raw: str) -> "RetrievalRequest":
        # Empty tokens are kept, they end up in the missing files report
        return cls(partition=partition, requested_ids=requested_ids_raw.split(ID_SEPARATOR))


# found and missing keep one entry per requested occurrence
class RetrievalOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    archive_bytes: bytes
    found: Tuple[str, ...] = ()
    missing: Tuple[str, ...] = ()

