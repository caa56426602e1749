"""Storage abstraction layer for object operations.

Supports multiple backends: local filesystem, S3, MinIO, Google Cloud Storage.
"""
from .base import (
    StorageInterface,
    StorageError,
    ObjectNotFoundError,
    UploadError,
    PreconditionFailedError,
    DownloadError,
    DeleteError,
    StorageConfig,
    Permissions,
)
from .local_storage import FilesystemStorage
from .s3_storage import S3Storage
from .gcs_storage import GcsStorage
from .factory import get_storage, get_storage_config, get_storage_from_config, reset_storage

__all__ = [
    "StorageInterface",
    "StorageError",
    "ObjectNotFoundError",
    "UploadError",
    "PreconditionFailedError",
    "DownloadError",
    "DeleteError",
    "StorageConfig",
    "Permissions",
    "FilesystemStorage",
    "S3Storage",
    "GcsStorage",
    "get_storage",
    "get_storage_config",
    "get_storage_from_config",
    "reset_storage",
]
