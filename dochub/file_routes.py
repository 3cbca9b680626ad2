# This module exposes the partitioned file storage over HTTP
# Admin routes carry the admin key in the path; reads and zip downloads are public
import logging
from functools import lru_cache
from io import BytesIO
from typing import List

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import RedirectResponse, StreamingResponse

from .auth import require_admin_key
from .config import Settings, get_settings
from .s3 import ArchiveBuilder, FileService, S3Client
from .utils import ok, bad

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/file", tags=["Files"])


@lru_cache
def get_s3_client() -> S3Client:
    return S3Client(get_settings())


def get_file_service(s3_client: S3Client = Depends(get_s3_client),
                     settings: Settings = Depends(get_settings)) -> FileService:
    return FileService(s3_client, settings)


def get_archive_builder(s3_client: S3Client = Depends(get_s3_client),
                        settings: Settings = Depends(get_settings)) -> ArchiveBuilder:
    return ArchiveBuilder(s3_client, settings)


# This endpoint lists every partition (admin only)
@router.get("/list/{admin_key}", dependencies=[Depends(require_admin_key)])
def list_partitions(service: FileService = Depends(get_file_service)):
    logger.info("Get all partitions")
    partitions = service.list_partitions()
    return ok("Partitions retrieved successfully", {
        "partitions": partitions,
        "total_count": len(partitions)
    })


# This endpoint lists the files stored in one partition (admin only)
@router.get("/list/{admin_key}/{partition}", dependencies=[Depends(require_admin_key)])
def list_files(partition: str, service: FileService = Depends(get_file_service)):
    partition = partition.lower()
    logger.info("Get all files in %s", partition)
    files = service.list_files(partition)
    return ok("Files retrieved successfully", {
        "partition": partition,
        "files": files,
        "total_count": len(files)
    })


# This endpoint redirects to a short-lived read link for one file
@router.get("/get/{partition}/{blob_id:path}")
def get_file(partition: str, blob_id: str, service: FileService = Depends(get_file_service)):
    partition = partition.lower()
    link = service.issue_read_link(partition, blob_id)
    logger.info("File %s found in %s - redirect", blob_id, partition)
    return RedirectResponse(url=link.url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)


# Same as /get but returns the link and its validity window instead of redirecting
@router.get("/link/{partition}/{blob_id:path}")
def get_file_link(partition: str, blob_id: str, service: FileService = Depends(get_file_service)):
    link = service.issue_read_link(partition.lower(), blob_id)
    return ok("Link generated successfully", link.model_dump(mode="json"))


# This endpoint packs several files of a partition into one zip
# Files are given as a single ';' separated list; absent files are listed in MissingFiles.txt
@router.get("/zip/{partition}")
def get_zip(
    partition: str,
    files: str = Query("", description="File ids separated by ';'"),
    builder: ArchiveBuilder = Depends(get_archive_builder),
):
    partition = partition.lower()
    outcome = builder.build_archive(partition, files)
    filename = builder.suggested_filename()

    return StreamingResponse(
        BytesIO(outcome.archive_bytes),
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "X-Missing-Files": str(len(outcome.missing)),
        },
    )


# This endpoint deletes one file (admin only)
@router.delete("/delete/{admin_key}/{partition}/{blob_id:path}", dependencies=[Depends(require_admin_key)])
def delete_file(partition: str, blob_id: str, service: FileService = Depends(get_file_service)):
    item = service.remove(partition.lower(), blob_id)
    logger.info("File %s deleted from %s", item.id, item.partition)
    return ok("File deleted successfully", item.model_dump())


# This endpoint uploads one or more files into a partition (admin only)
# The partition is created on first upload
@router.post("/post/{admin_key}", dependencies=[Depends(require_admin_key)])
def upload_files(
    partition: str = Form(...),
    files: List[UploadFile] = File(...),
    service: FileService = Depends(get_file_service),
):
    partition = partition.lower()
    item = service.upload_files(
        partition,
        [(f.filename, f.file, f.content_type) for f in files if f.size != 0]
    )

    if item is None:
        return bad(400, "INVALID_FILE", "No file with a name was provided")

    return ok("File uploaded successfully", item.model_dump(), status_code=status.HTTP_201_CREATED)
