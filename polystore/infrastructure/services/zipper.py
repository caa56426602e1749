"""ZIP archive packing and idempotent unpacking of stored files."""
import io
import logging
import os
import shutil
import tempfile
import zipfile
import zlib
from pathlib import Path
from typing import BinaryIO, Iterable, Mapping, Union

from ...config import COPY_CHUNK_SIZE
from ..storage.base import ObjectName, StorageInterface

logger = logging.getLogger(__name__)


class ArchiveError(Exception):
    """Archive is malformed, unreadable, or could not be materialized."""
    pass


def compress(files: Iterable[Union[str, os.PathLike]], dst: Path) -> Path:
    """
    Pack files into a ZIP archive, one entry per file named by its base name.

    Paths that don't exist or aren't regular files are skipped.

    Args:
        files: Paths of the files to pack
        dst: Path of the archive to write

    Returns:
        dst
    """
    regular_files = [Path(f) for f in files if Path(f).is_file()]
    logger.debug(f"Compressing into file '{dst}'")

    with zipfile.ZipFile(dst, "w", zipfile.ZIP_DEFLATED) as zf:
        for file_path in regular_files:
            logger.debug(f"Adding file {file_path.name} to zip")
            zf.write(file_path, file_path.name)

    logger.debug(f"Compressed {len(regular_files)} files")
    return Path(dst)


def compress_streams(streams: Mapping[str, BinaryIO]) -> bytes:
    """
    Pack in-memory streams into a ZIP archive held in memory.

    Args:
        streams: Mapping of entry name to readable binary stream

    Returns:
        Archive bytes
    """
    logger.debug("Compress in memory")
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, stream in streams.items():
            logger.debug(f"Adding file {name} to zip")
            with zf.open(name, "w") as entry:
                shutil.copyfileobj(stream, entry, COPY_CHUNK_SIZE)
    return buffer.getvalue()


def compress_objects(storage: StorageInterface, names: Iterable[ObjectName]) -> bytes:
    """Pack stored objects into an in-memory archive, named by base name."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name in names:
            entry_name = Path(str(name)).name
            logger.debug(f"Adding object {name} to zip as {entry_name}")
            with storage.retrieve(name) as stream, zf.open(entry_name, "w") as entry:
                shutil.copyfileobj(stream, entry, COPY_CHUNK_SIZE)
    return buffer.getvalue()


def _output_path(dst: Path, entry_name: str) -> Path:
    output = dst / entry_name
    root = dst.resolve()
    if root not in output.resolve().parents:
        raise ArchiveError(f"Entry '{entry_name}' escapes destination {dst}")
    return output


def decompress(dst: Path, archive: Union[str, os.PathLike, BinaryIO]) -> list[Path]:
    """
    Extract file entries of an archive under dst.

    Re-running against a partially extracted destination converges: outputs
    that already exist are reported as extracted and left untouched. Each
    new entry is written to a temporary file and renamed into place, so an
    existing output is always a complete one.

    Args:
        dst: Destination directory
        archive: Path of the archive, or a readable binary file object

    Returns:
        Paths of every file entry, extracted now or earlier

    Raises:
        ArchiveError: If the archive is malformed or an entry can't be written
    """
    dst = Path(dst)
    decompressed_files = []
    logger.debug(f"Decompressing file '{archive}'")

    try:
        with zipfile.ZipFile(archive, "r") as zf:
            for info in zf.infolist():
                if info.is_dir():
                    continue

                output = _output_path(dst, info.filename)
                if output.exists():
                    logger.debug(f"File '{output}' already exists...")
                    decompressed_files.append(output)
                    continue

                logger.debug(f"Creating file '{output}'")
                output.parent.mkdir(parents=True, exist_ok=True)
                fd, temp_name = tempfile.mkstemp(dir=output.parent, prefix=f".{output.name}.", suffix=".tmp")
                try:
                    with os.fdopen(fd, "wb") as out, zf.open(info) as entry:
                        shutil.copyfileobj(entry, out, COPY_CHUNK_SIZE)
                    os.replace(temp_name, output)
                except BaseException:
                    Path(temp_name).unlink(missing_ok=True)
                    raise
                decompressed_files.append(output)
    # zlib.error: corrupt DEFLATE data; RuntimeError: encrypted entry;
    # NotImplementedError: unsupported compression method
    except (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, OSError, EOFError,
            RuntimeError, NotImplementedError) as e:
        raise ArchiveError(f"Error decompressing file: {e}") from e

    logger.debug(f"Decompressed {len(decompressed_files)} files")
    return decompressed_files
