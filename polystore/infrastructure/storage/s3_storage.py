"""S3-compatible storage implementation (AWS S3, MinIO, DigitalOcean Spaces)."""
import logging
from pathlib import Path
from typing import BinaryIO, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

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
from .content_type import detect_content_type

logger = logging.getLogger(__name__)

URL_TEMPLATE = "https://{bucket}.s3.amazonaws.com/{key}"

# S3 rejects DeleteObjects requests with more keys than this
DELETE_BATCH_SIZE = 1000

NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")

CANNED_ACLS = {
    Permissions.PUBLIC_READ: "public-read",
    Permissions.PRIVATE: "private",
}


def _error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', 'Unknown')


class S3Storage(StorageInterface):
    """S3-compatible storage backend.

    Supports:
    - AWS S3
    - MinIO
    - DigitalOcean Spaces
    - Any S3-compatible API

    Writes are last-writer-wins; S3 offers no conditional put here.
    """

    def __init__(self, config: StorageConfig, client=None):
        """Initialize S3 storage.

        Args:
            config: Storage configuration with S3 settings
            client: Pre-built boto3 S3 client (built from config when omitted)
        """
        if config.backend not in ("s3", "minio"):
            raise ValueError(
                f"S3Storage requires backend='s3' or 'minio', got '{config.backend}'"
            )
        if not config.bucket_name:
            raise ValueError("S3Storage requires a bucket_name")

        self.config = config
        self.bucket = config.bucket_name
        self.cache_max_age = config.cache_max_age
        self.location = f"s3://{self.bucket}"
        self.client = client if client is not None else self._build_client(config)

    @staticmethod
    def _build_client(config: StorageConfig):
        """Build a boto3 client; absent keys fall back to boto3's credential chain."""
        client_kwargs = {
            "service_name": "s3",
            "region_name": config.region,
        }
        if config.access_key and config.secret_key:
            client_kwargs["aws_access_key_id"] = config.access_key
            client_kwargs["aws_secret_access_key"] = config.secret_key

        # Custom endpoint for MinIO/DigitalOcean
        if config.endpoint_url:
            client_kwargs["endpoint_url"] = config.endpoint_url
            client_kwargs["use_ssl"] = config.use_ssl

        return boto3.client(**client_kwargs)

    def _cache_control(self) -> str:
        return f"max-age={self.cache_max_age}"

    def store_file(
        self,
        name: ObjectName,
        source_file: Path,
        permissions: Permissions = Permissions.PUBLIC_READ,
        content_type: Optional[str] = None
    ) -> None:
        """Upload a local file to S3."""
        key = object_name(name)
        permissions = Permissions(permissions)
        content_type = content_type or detect_content_type(source_file)
        logger.info(f"Uploading to S3 file {source_file} as {key} with content type {content_type}")

        try:
            with open(source_file, "rb") as body:
                self.client.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=body,
                    ContentType=content_type,
                    CacheControl=self._cache_control(),
                    ACL=CANNED_ACLS[permissions],
                )
        except (ClientError, BotoCoreError, OSError) as e:
            logger.error(f"Unable to store {key} on S3 bucket {self.bucket}: {e}")
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
            with self.cache_locally(stream) as temp_path:
                self.store_file(name, temp_path, permissions, content_type)
        except OSError as e:
            raise UploadError(f"Unable to buffer stream: {e}", name=str(name), location=self.location) from e

    def retrieve(self, name: ObjectName) -> BinaryIO:
        """Get the object body as a stream."""
        key = object_name(name)

        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            # StreamingBody is file-like; caller closes it
            return response['Body']
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                raise ObjectNotFoundError("Key not found", name=key, location=self.location) from e
            logger.error(f"Unable to retrieve {key} from S3 bucket {self.bucket}: {e}")
            raise DownloadError(f"Unable to retrieve {key}", name=key, location=self.location) from e
        except BotoCoreError as e:
            logger.error(f"Unable to retrieve {key} from S3 bucket {self.bucket}: {e}")
            raise DownloadError(f"Unable to retrieve {key}", name=key, location=self.location) from e

    def _iter_pages(self, **params):
        paginator = self.client.get_paginator('list_objects_v2')
        return paginator.paginate(Bucket=self.bucket, **params)

    def list(self, prefix: Optional[ObjectName] = None) -> List[str]:
        """List keys and common prefixes directly under prefix."""
        list_prefix = "" if prefix is None else object_name(prefix) + "/"

        entries = []
        try:
            for page in self._iter_pages(Prefix=list_prefix, Delimiter="/"):
                for obj in page.get('Contents', []):
                    entries.append(obj['Key'])
                for common in page.get('CommonPrefixes', []):
                    entries.append(common['Prefix'])
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Unable to list {list_prefix!r} in S3 bucket {self.bucket}: {e}")
            raise StorageError("Failed to list objects", name=list_prefix, location=self.location) from e

        # Skip the directory marker object named after the prefix itself
        return sorted(entry for entry in entries if entry != list_prefix)

    def copy(self, source: ObjectName, target: ObjectName) -> None:
        """Server-side copy within the bucket."""
        source_key = object_name(source)
        dest_key = object_name(target)

        copy_source = {'Bucket': self.bucket, 'Key': source_key}

        try:
            self.client.copy_object(
                CopySource=copy_source,
                Bucket=self.bucket,
                Key=dest_key
            )
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                raise ObjectNotFoundError("Source key not found", name=source_key, location=self.location) from e
            logger.error(f"Unable to copy {source_key} to {dest_key} in S3 bucket {self.bucket}: {e}")
            raise StorageError(f"Unable to copy {source_key} to {dest_key}", name=dest_key, location=self.location) from e
        except BotoCoreError as e:
            logger.error(f"Unable to copy {source_key} to {dest_key} in S3 bucket {self.bucket}: {e}")
            raise StorageError(f"Unable to copy {source_key} to {dest_key}", name=dest_key, location=self.location) from e

    def delete(self, name: ObjectName) -> None:
        """Delete a key and every key below it.

        Keys are enumerated first and then deleted in batches. Keys written
        under the prefix after enumeration are not deleted.
        """
        key = object_name(name)
        subtree = key + "/"

        try:
            # List all objects with this prefix
            objects_to_delete = []
            for page in self._iter_pages(Prefix=key):
                for obj in page.get('Contents', []):
                    if obj['Key'] == key or obj['Key'].startswith(subtree):
                        objects_to_delete.append({'Key': obj['Key']})

            # Delete objects in batches (S3 allows max 1000 per request)
            for i in range(0, len(objects_to_delete), DELETE_BATCH_SIZE):
                batch = objects_to_delete[i:i + DELETE_BATCH_SIZE]
                response = self.client.delete_objects(
                    Bucket=self.bucket,
                    Delete={'Objects': batch, 'Quiet': True}
                )
                errors = response.get('Errors', [])
                if errors:
                    raise DeleteError(
                        f"Unable to delete {len(errors)} keys, first: {errors[0].get('Key')} ({errors[0].get('Code')})",
                        name=key,
                        location=self.location
                    )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Unable to delete {key} from S3 bucket {self.bucket}: {e}")
            raise DeleteError(f"Unable to delete {key}", name=key, location=self.location) from e

        logger.debug(f"Deleted {len(objects_to_delete)} objects under {key}")

    def _set_acl(self, name: ObjectName, permissions: Permissions) -> None:
        key = object_name(name)
        try:
            self.client.put_object_acl(Bucket=self.bucket, Key=key, ACL=CANNED_ACLS[permissions])
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                raise ObjectNotFoundError("Key not found", name=key, location=self.location) from e
            logger.error(f"Unable to set ACL {permissions.value} on {key} in S3 bucket {self.bucket}: {e}")
            raise StorageError(f"Unable to set ACL {permissions.value}", name=key, location=self.location) from e
        except BotoCoreError as e:
            logger.error(f"Unable to set ACL {permissions.value} on {key} in S3 bucket {self.bucket}: {e}")
            raise StorageError(f"Unable to set ACL {permissions.value}", name=key, location=self.location) from e

    def publish(self, name: ObjectName) -> None:
        """Grant public read on an object."""
        self._set_acl(name, Permissions.PUBLIC_READ)

    def unpublish(self, name: ObjectName) -> None:
        """Make an object private."""
        self._set_acl(name, Permissions.PRIVATE)

    def absolute_url(self, *parts: str) -> str:
        """Get the public URL of an object."""
        key = join_url_parts(parts)
        if self.config.endpoint_url:
            return f"{self.config.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return URL_TEMPLATE.format(bucket=self.bucket, key=key)
