"""
Content Type Detection Utility
Detects MIME type from file content (magic bytes), never from the file name
"""

import logging
from pathlib import Path

from ...config import CONTENT_SNIFF_BYTES, DEFAULT_CONTENT_TYPE

logger = logging.getLogger(__name__)


def detect_content_type(file_path: Path) -> str:
    """
    Detect the MIME type of a local file by sniffing its first bytes.

    Detection never fails the caller: if python-magic (or the libmagic it
    wraps) is unavailable, or sniffing raises, the generic default type is
    returned.

    Args:
        file_path: File to inspect

    Returns:
        Detected MIME type string
    """
    try:
        with open(file_path, "rb") as f:
            head = f.read(CONTENT_SNIFF_BYTES)
    except OSError as e:
        logger.error(f"Unable to read {file_path} for content detection: {e}")
        return DEFAULT_CONTENT_TYPE

    if not head:
        return DEFAULT_CONTENT_TYPE

    try:
        import magic
        detected = magic.from_buffer(head, mime=True)
        if detected:
            logger.debug(f"Content type from magic: {file_path} -> {detected}")
            return detected
    except ImportError:
        logger.warning("python-magic/libmagic not available, skipping content detection")
    except Exception as e:
        logger.error(f"Unable to determine MIME type for file {file_path}: {e}")

    return DEFAULT_CONTENT_TYPE
