"""Local filesystem storage implementation."""
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO, List, Optional

from ...config import COPY_CHUNK_SIZE
from .base import (
    StorageInterface,
    StorageConfig,
    StorageError,
    ObjectNotFoundError,
    ObjectName,
    Permissions,
    UploadError,
    DownloadError,
    DeleteError,
    object_name,
    join_url_parts,
)

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"


def _is_partial_write(path: Path) -> bool:
    """Temp files created by _install before they are renamed into place."""
    return path.name.startswith(".") and path.name.endswith(TEMP_SUFFIX)


class FilesystemStorage(StorageInterface):
    """Local filesystem storage backend.

    Object names are paths relative to the root directory:
        base_path/
            <name>
            <prefix>/<name>

    Permissions are accepted for interface compatibility and ignored;
    a plain directory tree has no per-object ACL.
    """

    def __init__(self, config: StorageConfig):
        """Initialize local storage.

        Args:
            config: Storage configuration with base_path
        """
        if config.backend != "local":
            raise ValueError(f"FilesystemStorage requires backend='local', got '{config.backend}'")

        self.config = config
        self.base_path = Path(config.base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.location = str(self.base_path)

    def _get_path(self, name: ObjectName) -> Path:
        """Get full filesystem path for an object."""
        path = self.base_path / object_name(name)
        # Reject names that escape the root ('../', symlinked parents)
        root = self.base_path.resolve()
        resolved = path.resolve()
        if resolved != root and root not in resolved.parents:
            raise ValueError(f"Object name escapes storage root: {name}")
        return path

    def _install(self, target: Path, write) -> None:
        """Write into a temp file beside target, then replace target with it."""
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=TEMP_SUFFIX)
        try:
            with os.fdopen(fd, "wb") as out:
                write(out)
            os.replace(temp_name, target)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise

    def store_file(
        self,
        name: ObjectName,
        source_file: Path,
        permissions: Permissions = Permissions.PUBLIC_READ,
        content_type: Optional[str] = None
    ) -> None:
        """Copy a local file into storage."""
        target = self._get_path(name)

        def write(out):
            with open(source_file, "rb") as src:
                shutil.copyfileobj(src, out, COPY_CHUNK_SIZE)

        try:
            self._install(target, write)
        except OSError as e:
            logger.error(f"Unable to store {name} under {self.location}: {e}")
            raise UploadError(f"Failed to store {source_file}: {e}", name=str(name), location=self.location) from e

    def store_stream(
        self,
        name: ObjectName,
        stream: BinaryIO,
        permissions: Permissions = Permissions.PUBLIC_READ,
        content_type: Optional[str] = None
    ) -> None:
        """Write a stream into storage."""
        target = self._get_path(name)

        def write(out):
            while True:
                chunk = stream.read(COPY_CHUNK_SIZE)  # 8KB chunks
                if not chunk:
                    break
                if isinstance(chunk, str):
                    chunk = chunk.encode('utf-8')
                out.write(chunk)

        try:
            self._install(target, write)
        except OSError as e:
            logger.error(f"Unable to store {name} under {self.location}: {e}")
            raise UploadError(f"Failed to store stream: {e}", name=str(name), location=self.location) from e

    def retrieve(self, name: ObjectName) -> BinaryIO:
        """Open a stored file for reading."""
        file_path = self._get_path(name)

        if not file_path.is_file():
            raise ObjectNotFoundError("File not found", name=str(name), location=self.location)

        try:
            return open(file_path, 'rb')
        except FileNotFoundError as e:
            raise ObjectNotFoundError("File not found", name=str(name), location=self.location) from e
        except OSError as e:
            logger.error(f"Unable to retrieve {name} from {self.location}: {e}")
            raise DownloadError(f"Failed to open file: {e}", name=str(name), location=self.location) from e

    def list(self, prefix: Optional[ObjectName] = None) -> List[str]:
        """List direct children of the root or of a sub-directory."""
        folder_path = self.base_path if prefix is None else self._get_path(prefix)

        if not folder_path.is_dir():
            return []

        try:
            # Directories end with "/" like remote prefixes; in-flight writes are hidden
            return sorted(
                item.relative_to(self.base_path).as_posix() + ("/" if item.is_dir() else "")
                for item in folder_path.iterdir()
                if not _is_partial_write(item)
            )
        except OSError as e:
            logger.error(f"Unable to list {folder_path}: {e}")
            raise StorageError(f"Unable to list storage repository: {e}", name=str(prefix or ""), location=self.location) from e

    def copy(self, source: ObjectName, target: ObjectName) -> None:
        """Copy file within local storage."""
        source_path = self._get_path(source)
        dest_path = self._get_path(target)

        if not source_path.is_file():
            raise ObjectNotFoundError("Source file not found", name=str(source), location=self.location)

        def write(out):
            with open(source_path, "rb") as src:
                shutil.copyfileobj(src, out, COPY_CHUNK_SIZE)

        try:
            self._install(dest_path, write)
        except OSError as e:
            logger.error(f"Unable to copy {source} to {target} under {self.location}: {e}")
            raise StorageError(f"Failed to copy {source} to {target}: {e}", name=str(target), location=self.location) from e

    def delete(self, name: ObjectName) -> None:
        """Delete a file, or a directory with everything below it."""
        path = self._get_path(name)

        if not os.path.lexists(path):
            logger.debug(f"Nothing to delete at {path}")
            return

        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
        except OSError as e:
            logger.error(f"Unable to delete {name} under {self.location}: {e}")
            raise DeleteError(f"Unable to delete '{name}': {e}", name=str(name), location=self.location) from e

    def publish(self, name: ObjectName) -> None:
        logger.debug(f"publish({name}) ignored: filesystem has no object ACLs")

    def unpublish(self, name: ObjectName) -> None:
        logger.debug(f"unpublish({name}) ignored: filesystem has no object ACLs")

    def absolute_url(self, *parts: str) -> str:
        """Get a file:// URI for an object under the root."""
        path = join_url_parts(parts)
        return (self.base_path / path).resolve().as_uri()
