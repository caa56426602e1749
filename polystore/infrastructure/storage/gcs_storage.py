"""Google Cloud Storage implementation."""
import logging
from pathlib import Path
from typing import BinaryIO, List, Optional

from google.api_core import exceptions as gcs_exceptions
from google.cloud import storage

from .base import (
    StorageInterface,
    StorageConfig,
    StorageError,
    ObjectNotFoundError,
    ObjectName,
    Permissions,
    PreconditionFailedError,
    UploadError,
    DownloadError,
    DeleteError,
    object_name,
    join_url_parts,
)
from .content_type import detect_content_type

logger = logging.getLogger(__name__)

# if_generation_match=0 means "only if no live object exists"
DOES_NOT_EXIST = 0


class UniformBucketAccess:
    """Bucket-level policy governs access; object ACLs are never sent."""

    def write_options(self, permissions: Permissions) -> dict:
        return {}

    def publish(self, name: str) -> None:
        logger.debug(f"publish({name}) ignored: uniform bucket-level access")

    def unpublish(self, name: str) -> None:
        logger.debug(f"unpublish({name}) ignored: uniform bucket-level access")


class ObjectAclAccess:
    """Every write carries a predefined object ACL."""

    PREDEFINED_ACLS = {
        Permissions.PUBLIC_READ: "publicRead",
        Permissions.PRIVATE: "private",
    }

    def write_options(self, permissions: Permissions) -> dict:
        return {"predefined_acl": self.PREDEFINED_ACLS[permissions]}

    def publish(self, name: str) -> None:
        raise NotImplementedError("Publishing objects on fine-grained ACL buckets is not implemented yet.")

    def unpublish(self, name: str) -> None:
        raise NotImplementedError("Unpublishing objects on fine-grained ACL buckets is not implemented yet.")


class GcsStorage(StorageInterface):
    """Google Cloud Storage backend.

    Writes and copies are conditioned on the generation observed just
    before the call: the current generation when the object exists,
    otherwise "does not exist". A concurrent writer that lands in between
    makes the call fail with PreconditionFailedError instead of being
    silently overwritten.

    The access model (uniform bucket-level access or per-object ACLs) is
    fixed at construction.
    """

    def __init__(self, config: StorageConfig, client=None):
        """Initialize GCS storage.

        Args:
            config: Storage configuration with GCS settings
            client: Pre-built google.cloud.storage.Client (built from config when omitted)
        """
        if config.backend != "gcs":
            raise ValueError(f"GcsStorage requires backend='gcs', got '{config.backend}'")
        if not config.bucket_name:
            raise ValueError("GcsStorage requires a bucket_name")

        self.config = config
        self.bucket_name = config.bucket_name
        self.cache_max_age = config.cache_max_age
        self.location = f"gs://{self.bucket_name}"
        self.client = client if client is not None else self._build_client(config)
        self.bucket = self.client.bucket(self.bucket_name)
        self.access = UniformBucketAccess() if config.uniform_bucket_level_access else ObjectAclAccess()

    @staticmethod
    def _build_client(config: StorageConfig):
        if config.credentials_file:
            return storage.Client.from_service_account_json(
                str(config.credentials_file), project=config.project_id
            )
        return storage.Client(project=config.project_id)

    def _generation_precondition(self, key: str) -> int:
        """Generation the next write to key must match."""
        blob = self.bucket.get_blob(key)
        return blob.generation if blob is not None else DOES_NOT_EXIST

    def store_file(
        self,
        name: ObjectName,
        source_file: Path,
        permissions: Permissions = Permissions.PUBLIC_READ,
        content_type: Optional[str] = None
    ) -> None:
        """Upload a local file, conditioned on the current generation."""
        key = object_name(name)
        permissions = Permissions(permissions)
        content_type = content_type or detect_content_type(source_file)

        try:
            generation = self._generation_precondition(key)
            blob = self.bucket.blob(key)
            blob.cache_control = f"max-age={self.cache_max_age}"
            logger.info(f"Uploading to GCS file {source_file} as {key} with content type {content_type}")
            blob.upload_from_filename(
                str(source_file),
                content_type=content_type,
                if_generation_match=generation,
                **self.access.write_options(permissions)
            )
        except gcs_exceptions.PreconditionFailed as e:
            logger.error(f"Concurrent modification of {key} on GCP bucket {self.bucket_name}: {e}")
            raise PreconditionFailedError(
                f"Object {key} changed during store", name=key, location=self.location
            ) from e
        except (gcs_exceptions.GoogleAPIError, OSError) as e:
            logger.error(f"Unable to store {key} on GCP bucket {self.bucket_name}: {e}")
            raise UploadError(f"Unable to store {key}", name=key, location=self.location) from e

    def store_stream(
        self,
        name: ObjectName,
        stream: BinaryIO,
        permissions: Permissions = Permissions.PUBLIC_READ,
        content_type: Optional[str] = None
    ) -> None:
        """Buffer a stream to a temporary file, then upload it."""
        try:
            with self.cache_locally(stream, suffix=f".{self.bucket_name}.tmp") as temp_path:
                self.store_file(name, temp_path, permissions, content_type)
        except OSError as e:
            raise UploadError(f"Unable to buffer stream: {e}", name=str(name), location=self.location) from e

    def retrieve(self, name: ObjectName) -> BinaryIO:
        """Open a streaming reader on the blob."""
        key = object_name(name)

        try:
            blob = self.bucket.get_blob(key)
            if blob is None:
                raise ObjectNotFoundError("Key not found", name=key, location=self.location)
            return blob.open("rb")
        except gcs_exceptions.NotFound as e:
            raise ObjectNotFoundError("Key not found", name=key, location=self.location) from e
        except gcs_exceptions.GoogleAPIError as e:
            logger.error(f"Unable to retrieve {key} from GCP bucket {self.bucket_name}: {e}")
            raise DownloadError(f"Unable to retrieve {key}", name=key, location=self.location) from e

    def list(self, prefix: Optional[ObjectName] = None) -> List[str]:
        """List blobs and sub-prefixes directly under prefix."""
        list_prefix = None if prefix is None else object_name(prefix) + "/"

        try:
            iterator = self.client.list_blobs(self.bucket_name, prefix=list_prefix, delimiter="/")
            # Consuming the iterator walks every page and fills iterator.prefixes
            entries = [blob.name for blob in iterator]
            entries.extend(iterator.prefixes)
        except gcs_exceptions.GoogleAPIError as e:
            logger.error(f"Unable to list {list_prefix!r} in GCP bucket {self.bucket_name}: {e}")
            raise StorageError("Failed to list objects", name=list_prefix, location=self.location) from e

        return sorted(entry for entry in entries if entry != list_prefix)

    def copy(self, source: ObjectName, target: ObjectName) -> None:
        """Server-side copy, conditioned on the destination's current generation."""
        source_key = object_name(source)
        dest_key = object_name(target)

        try:
            generation = self._generation_precondition(dest_key)
            self.bucket.copy_blob(
                self.bucket.blob(source_key),
                self.bucket,
                dest_key,
                if_generation_match=generation,
            )
        except gcs_exceptions.NotFound as e:
            raise ObjectNotFoundError("Source key not found", name=source_key, location=self.location) from e
        except gcs_exceptions.PreconditionFailed as e:
            logger.error(f"Concurrent modification of {dest_key} on GCP bucket {self.bucket_name}: {e}")
            raise PreconditionFailedError(
                f"Object {dest_key} changed during copy", name=dest_key, location=self.location
            ) from e
        except gcs_exceptions.GoogleAPIError as e:
            logger.error(f"Unable to copy {source_key} to {dest_key} in GCP bucket {self.bucket_name}: {e}")
            raise StorageError(f"Unable to copy {source_key} to {dest_key}", name=dest_key, location=self.location) from e

    def delete(self, name: ObjectName) -> None:
        """Delete a blob and every blob below it."""
        key = object_name(name)

        try:
            blobs = []
            blob = self.bucket.get_blob(key)
            if blob is not None:
                blobs.append(blob)
            blobs.extend(self.client.list_blobs(self.bucket_name, prefix=key + "/"))

            for blob in blobs:
                try:
                    blob.delete()
                except gcs_exceptions.NotFound:
                    logger.debug(f"{blob.name} already gone from GCP bucket {self.bucket_name}")
        except gcs_exceptions.GoogleAPIError as e:
            logger.error(f"Unable to delete {key} from GCP bucket {self.bucket_name}: {e}")
            raise DeleteError(f"Unable to delete {key}", name=key, location=self.location) from e

    def publish(self, name: ObjectName) -> None:
        self.access.publish(object_name(name))

    def unpublish(self, name: ObjectName) -> None:
        self.access.unpublish(object_name(name))

    def absolute_url(self, *parts: str) -> str:
        join_url_parts(parts)
        raise NotImplementedError("Absolute URLs for GCS objects are not implemented yet.")
