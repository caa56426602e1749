"""Abstract storage interface."""
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePath, PurePosixPath
from typing import BinaryIO, Iterator, List, Optional, Union
import io
import os
import shutil
import tempfile

from ...config import COPY_CHUNK_SIZE


class StorageError(Exception):
    """Base exception for storage operations.

    Attributes:
        message: Human-readable error message.
        name: Object name involved in the failed operation (if any).
        location: Bucket or root directory of the backend (if any).
    """

    def __init__(
        self,
        message: str,
        *,
        name: Optional[str] = None,
        location: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.name = name
        self.location = location

    def __str__(self) -> str:
        parts = [self.message]
        if self.name:
            parts.append(f"name={self.name}")
        if self.location:
            parts.append(f"location={self.location}")
        return " ".join(parts)


class ObjectNotFoundError(StorageError):
    """Object not found in storage."""
    pass


class UploadError(StorageError):
    """Failed to store object."""
    pass


class PreconditionFailedError(UploadError):
    """Write rejected because the object changed since it was probed."""
    pass


class DownloadError(StorageError):
    """Failed to retrieve object."""
    pass


class DeleteError(StorageError):
    """Failed to delete object."""
    pass


class Permissions(str, Enum):
    """Object-level access applied at write or ACL-change time."""
    PUBLIC_READ = "public-read"
    PRIVATE = "private"


ObjectName = Union[str, PurePath]


def object_name(name: ObjectName) -> str:
    """Normalize a hierarchical name to its POSIX key form.

    >>> object_name("reports//2024/q1.csv")
    'reports/2024/q1.csv'
    """
    normalized = PurePosixPath(str(name).replace("\\", "/")).as_posix().lstrip("/")
    if normalized in ("", "."):
        raise ValueError(f"Invalid object name: {name!r}")
    return normalized


def join_url_parts(parts: tuple) -> str:
    """Join relative path components with '/'."""
    if not parts:
        raise ValueError("At least one relative path must be specified.")
    return "/".join(str(part).strip("/") for part in parts)


@dataclass
class StorageConfig:
    """Storage configuration."""
    backend: str  # 'local', 's3', 'minio', 'gcs'

    # Local storage settings
    base_path: Optional[Path] = None

    # S3/MinIO settings
    endpoint_url: Optional[str] = None
    bucket_name: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    region: str = "us-east-1"
    use_ssl: bool = True

    # GCS settings
    project_id: Optional[str] = None
    credentials_file: Optional[Path] = None
    uniform_bucket_level_access: bool = False

    # Remote write settings
    cache_max_age: Optional[int] = None

    def __post_init__(self):
        if self.backend == "local" and self.base_path is None:
            from ...config import STORAGE_BASE_PATH
            self.base_path = STORAGE_BASE_PATH
        if self.cache_max_age is None:
            from ...config import DEFAULT_CACHE_MAX_AGE
            self.cache_max_age = DEFAULT_CACHE_MAX_AGE


class StorageInterface(ABC):
    """Abstract interface for object storage operations.

    Implementations:
    - FilesystemStorage: Local directory tree
    - S3Storage: AWS S3 / MinIO / any S3-compatible API
    - GcsStorage: Google Cloud Storage bucket

    Object names are hierarchical ('a/b/c.txt'). They are POSIX paths under
    the root for the filesystem and '/'-separated keys for remote stores.
    """

    location: str = ""

    def store(
        self,
        name: ObjectName,
        source: Union[str, os.PathLike, bytes, BinaryIO],
        permissions: Permissions = Permissions.PUBLIC_READ,
        content_type: Optional[str] = None
    ) -> None:
        """Store an object, replacing any object with the same name.

        Args:
            name: Object name
            source: Path of a local file, raw bytes, or a readable binary stream
            permissions: Access applied to the object
            content_type: MIME type; detected from the content when omitted

        Raises:
            UploadError: If the substrate rejects the write
        """
        if isinstance(source, (bytes, bytearray)):
            self.store_bytes(name, bytes(source), content_type, permissions)
        elif isinstance(source, (str, os.PathLike)):
            self.store_file(name, Path(source), permissions, content_type)
        else:
            self.store_stream(name, source, permissions, content_type)

    @abstractmethod
    def store_file(
        self,
        name: ObjectName,
        source_file: Path,
        permissions: Permissions = Permissions.PUBLIC_READ,
        content_type: Optional[str] = None
    ) -> None:
        """Store the content of a local file under name."""
        pass

    @abstractmethod
    def store_stream(
        self,
        name: ObjectName,
        stream: BinaryIO,
        permissions: Permissions = Permissions.PUBLIC_READ,
        content_type: Optional[str] = None
    ) -> None:
        """Store everything readable from stream under name."""
        pass

    def store_bytes(
        self,
        name: ObjectName,
        data: bytes,
        content_type: Optional[str] = None,
        permissions: Permissions = Permissions.PUBLIC_READ
    ) -> None:
        """Store an in-memory payload.

        Holds the whole object in memory; prefer store_file or store_stream
        for anything large.
        """
        self.store_stream(name, io.BytesIO(data), permissions, content_type)

    @abstractmethod
    def retrieve(self, name: ObjectName) -> BinaryIO:
        """Open an object for reading.

        The caller owns the returned stream and must close it.

        Raises:
            ObjectNotFoundError: If the object doesn't exist
            DownloadError: If the substrate read fails
        """
        pass

    @abstractmethod
    def list(self, prefix: Optional[ObjectName] = None) -> List[str]:
        """List direct entries under the root or under prefix.

        Not recursive. All substrate pages are consumed; the entry equal to
        the prefix itself is never returned.

        Returns:
            Object names (and sub-prefixes) relative to the bucket/root
        """
        pass

    @abstractmethod
    def copy(self, source: ObjectName, target: ObjectName) -> None:
        """Duplicate an object without round-tripping its bytes.

        Raises:
            ObjectNotFoundError: If source doesn't exist
        """
        pass

    @abstractmethod
    def delete(self, name: ObjectName) -> None:
        """Delete an object and everything under name, recursively.

        Deleting a name that doesn't exist is a no-op.

        Raises:
            DeleteError: If deletion fails for other reasons
        """
        pass

    @abstractmethod
    def publish(self, name: ObjectName) -> None:
        """Make an object publicly readable."""
        pass

    @abstractmethod
    def unpublish(self, name: ObjectName) -> None:
        """Make an object private."""
        pass

    @abstractmethod
    def absolute_url(self, *parts: str) -> str:
        """Compose the external address of an object from path components.

        No network call is made.

        Raises:
            ValueError: If no component is given
        """
        pass

    @contextmanager
    def cache_locally(self, stream: BinaryIO, suffix: str = ".tmp") -> Iterator[Path]:
        """Copy stream into a temporary file that lives for the with-block.

        The file is removed on every exit path, including exceptions raised
        while copying or inside the block.
        """
        fd, temp_name = tempfile.mkstemp(prefix="polystore-", suffix=suffix)
        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "wb") as out:
                shutil.copyfileobj(stream, out, COPY_CHUNK_SIZE)
            yield temp_path
        finally:
            temp_path.unlink(missing_ok=True)
