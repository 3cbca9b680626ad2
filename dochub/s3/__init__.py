"""
S3 module for partitioned file storage
Provides secure read links, bulk zip downloads and file management
"""

from .s3_client import S3Client
from .service import FileService
from .archive import ArchiveBuilder, archive_filename

__all__ = ['S3Client', 'FileService', 'ArchiveBuilder', 'archive_filename']
