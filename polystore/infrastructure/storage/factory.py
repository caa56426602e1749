"""Factory for creating storage backends."""
import os
from pathlib import Path
from typing import Optional

from ...config import DEFAULT_CACHE_MAX_AGE, STORAGE_BASE_PATH

from .base import StorageConfig, StorageInterface
from .local_storage import FilesystemStorage


# Singleton instance
_storage_instance: Optional[StorageInterface] = None


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() == "true"


def get_storage_config() -> StorageConfig:
    """Get storage configuration from environment variables.

    Environment variables:
    - STORAGE_BACKEND: 'local' (default), 's3', 'minio', 'gcs'
    - STORAGE_BASE_PATH: Root directory for local storage
    - STORAGE_CACHE_MAX_AGE: Cache-Control max-age for remote writes

    For S3:
    - S3_BUCKET: Bucket name
    - S3_ENDPOINT: Custom endpoint (for MinIO)
    - S3_ACCESS_KEY: Access key
    - S3_SECRET_KEY: Secret key
    - S3_REGION: Region (default: us-east-1)
    - S3_USE_SSL: Use SSL (default: true)

    For GCS:
    - GCS_BUCKET: Bucket name
    - GCS_PROJECT: Project id
    - GCS_CREDENTIALS_FILE: Service account JSON (default: ambient credentials)
    - GCS_UNIFORM_ACCESS: Bucket uses uniform bucket-level access (default: false)
    """
    backend = os.environ.get("STORAGE_BACKEND", "local").lower()
    cache_max_age = int(os.environ.get("STORAGE_CACHE_MAX_AGE", str(DEFAULT_CACHE_MAX_AGE)))

    if backend == "local":
        base_path = os.environ.get("STORAGE_BASE_PATH")

        return StorageConfig(
            backend="local",
            base_path=Path(base_path) if base_path else STORAGE_BASE_PATH
        )

    elif backend in ("s3", "minio"):
        bucket = os.environ.get("S3_BUCKET")
        if not bucket:
            raise ValueError("S3_BUCKET environment variable is required for S3 storage")

        return StorageConfig(
            backend=backend,
            bucket_name=bucket,
            endpoint_url=os.environ.get("S3_ENDPOINT"),
            access_key=os.environ.get("S3_ACCESS_KEY"),
            secret_key=os.environ.get("S3_SECRET_KEY"),
            region=os.environ.get("S3_REGION", "us-east-1"),
            use_ssl=_env_flag("S3_USE_SSL", "true"),
            cache_max_age=cache_max_age
        )

    elif backend == "gcs":
        bucket = os.environ.get("GCS_BUCKET")
        if not bucket:
            raise ValueError("GCS_BUCKET environment variable is required for GCS storage")

        credentials_file = os.environ.get("GCS_CREDENTIALS_FILE")

        return StorageConfig(
            backend="gcs",
            bucket_name=bucket,
            project_id=os.environ.get("GCS_PROJECT"),
            credentials_file=Path(credentials_file) if credentials_file else None,
            uniform_bucket_level_access=_env_flag("GCS_UNIFORM_ACCESS", "false"),
            cache_max_age=cache_max_age
        )

    else:
        raise ValueError(f"Unknown storage backend: {backend}")


def get_storage_from_config(config: StorageConfig) -> StorageInterface:
    """Create storage backend from configuration.

    Args:
        config: Storage configuration

    Returns:
        Storage backend instance
    """
    if config.backend == "local":
        return FilesystemStorage(config)

    elif config.backend in ("s3", "minio"):
        from .s3_storage import S3Storage
        return S3Storage(config)

    elif config.backend == "gcs":
        from .gcs_storage import GcsStorage
        return GcsStorage(config)

    else:
        raise ValueError(f"Unknown storage backend: {config.backend}")


def get_storage() -> StorageInterface:
    """Get or create singleton storage instance.

    The instance is built from the environment on first use and cached.

    Returns:
        Storage backend instance
    """
    global _storage_instance

    if _storage_instance is None:
        config = get_storage_config()
        _storage_instance = get_storage_from_config(config)

    return _storage_instance


def reset_storage():
    """Reset storage singleton (useful for testing)."""
    global _storage_instance
    _storage_instance = None
