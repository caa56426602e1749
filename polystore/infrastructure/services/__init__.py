"""Services built on top of the storage layer."""
from .zipper import ArchiveError, compress, compress_objects, compress_streams, decompress

__all__ = [
    "ArchiveError",
    "compress",
    "compress_objects",
    "compress_streams",
    "decompress",
]
