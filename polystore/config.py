"""Library configuration and constants."""
import os
from pathlib import Path

# Default root for filesystem storage
# Set via environment variable STORAGE_BASE_PATH, e.g., "/var/lib/polystore"
STORAGE_BASE_PATH = Path(os.environ.get("STORAGE_BASE_PATH", str(Path.cwd() / "storage")))

# Cache-Control max-age applied to remote writes (seconds)
DEFAULT_CACHE_MAX_AGE = int(os.environ.get("STORAGE_CACHE_MAX_AGE", str(60 * 60 * 24)))

# Content type used when detection fails
DEFAULT_CONTENT_TYPE = "binary/octet-stream"

# Bytes read from the head of a file for magic-byte sniffing
CONTENT_SNIFF_BYTES = 2048

# Chunk size for stream copies
COPY_CHUNK_SIZE = 8192
