"""Test configuration and fixtures for polystore.

This module provides isolated test environments:
- Temporary storage roots for the filesystem backend
- A fresh factory singleton for each test
"""
import sys
from pathlib import Path

import pytest

# Ensure polystore is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from polystore.infrastructure.storage import FilesystemStorage, StorageConfig, reset_storage


LOREM = "Lorem ipsum dolor sit amet, consectetur adipiscing elit. In ut ante euismod"

# 365 bytes of highly repetitive text
LONG_LOREM = (LOREM * 5)[:365]


@pytest.fixture
def temp_storage(tmp_path: Path) -> FilesystemStorage:
    """Create a FilesystemStorage rooted in a temporary directory."""
    config = StorageConfig(backend="local", base_path=tmp_path / "root")
    return FilesystemStorage(config)


@pytest.fixture(autouse=True)
def fresh_storage_singleton():
    """Make sure no test sees another test's cached backend."""
    reset_storage()
    yield
    reset_storage()


@pytest.fixture
def long_lorem() -> bytes:
    """Compressible text payload."""
    return LONG_LOREM.encode("utf-8")
