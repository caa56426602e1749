"""One storage contract over a local directory, S3 and Google Cloud Storage."""
from .infrastructure.storage import (
    StorageInterface,
    StorageError,
    ObjectNotFoundError,
    UploadError,
    PreconditionFailedError,
    DownloadError,
    DeleteError,
    StorageConfig,
    Permissions,
    FilesystemStorage,
    S3Storage,
    GcsStorage,
    get_storage,
    get_storage_config,
    get_storage_from_config,
    reset_storage,
)
from .infrastructure.services import zipper
from .infrastructure.services.zipper import ArchiveError

__version__ = "1.0.0"

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
    "zipper",
    "ArchiveError",
]
