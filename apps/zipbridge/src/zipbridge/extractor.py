"""ZIP archive extraction."""

import io
import logging
import zipfile
import zlib
from pathlib import Path

from .encoding import decode_utf8, has_null_byte, is_binary_path
from .errors import (
    CorruptArchiveError,
    EmptyArchiveError,
    EncryptedArchiveError,
    NotZipFileError,
    OversizeArchiveError,
)
from .models import LocalFile, UploadedArchive

logger = logging.getLogger(__name__)

MAX_ARCHIVE_SIZE = 100 * 1024 * 1024  # 100MB

NOT_A_ZIP_MESSAGE = "The file is not a valid ZIP archive. Please ensure you're uploading a .zip file."


def find_common_root(paths: list[str]) -> str:
    """
    Return the single top-level directory shared by all paths ('dir/'), or ''.

    Only the first path's top segment is a candidate, and only when that
    path is nested.
    """
    if not paths:
        return ""
    parts = paths[0].split("/")
    if len(parts) < 2:
        return ""
    candidate = parts[0] + "/"
    if all(path.startswith(candidate) for path in paths):
        return candidate
    return ""


def _decode_entry(path: str, data: bytes) -> str | bytes:
    if has_null_byte(data) or is_binary_path(path):
        return data
    text = decode_utf8(data)
    return data if text is None else text


def extract_archive(
    data: bytes, name: str = "upload.zip", max_size: int = MAX_ARCHIVE_SIZE
) -> UploadedArchive:
    """
    Extract a ZIP archive into a flat list of files.

    Directory entries are dropped and a single common root directory is
    stripped. Extraction is all-or-nothing: any failure raises an
    ArchiveError subclass and nothing is returned.

    Args:
        data: Raw archive bytes
        name: Archive file name, kept for display
        max_size: Maximum accepted archive size in bytes

    Returns:
        UploadedArchive with files in archive order
    """
    if not data:
        raise EmptyArchiveError()
    if len(data) > max_size:
        raise OversizeArchiveError(
            f"The ZIP file is too large. Please upload a file smaller than {max_size // (1024 * 1024)}MB."
        )

    buffer = io.BytesIO(data)
    if not zipfile.is_zipfile(buffer):
        raise CorruptArchiveError(NOT_A_ZIP_MESSAGE)

    try:
        with zipfile.ZipFile(buffer) as zf:
            infos = [info for info in zf.infolist() if not info.is_dir()]
            if any(info.flag_bits & 0x1 for info in infos):
                raise EncryptedArchiveError()

            names = [info.filename.lstrip("/") for info in infos]
            root = find_common_root(names)
            if root:
                logger.debug("Stripping common root: %s", root)

            files: list[LocalFile] = []
            for info, entry_name in zip(infos, names):
                path = entry_name[len(root):] if root else entry_name
                if not path:
                    continue
                content = _decode_entry(path, zf.read(info))
                files.append(LocalFile(path=path, content=content))
    except (zipfile.BadZipFile, zlib.error, EOFError) as e:
        logger.error("Corrupted archive %s: %s", name, e)
        raise CorruptArchiveError() from e
    except NotImplementedError as e:
        logger.error("Unsupported archive %s: %s", name, e)
        raise CorruptArchiveError(
            "Unable to read the ZIP file. The file may be corrupted or in an unsupported format."
        ) from e

    logger.info("Extracted %d files from %s", len(files), name)
    return UploadedArchive(name=name, size=len(data), files=files)


def load_archive(path: str | Path, max_size: int = MAX_ARCHIVE_SIZE) -> UploadedArchive:
    """Read and extract a .zip file from disk."""
    path = Path(path)
    if path.suffix.lower() != ".zip":
        raise NotZipFileError()
    size = path.stat().st_size
    if size == 0:
        raise EmptyArchiveError()
    if size > max_size:
        raise OversizeArchiveError(
            f"The ZIP file is too large. Please upload a file smaller than {max_size // (1024 * 1024)}MB."
        )
    logger.info("Loading archive: %s (%.2f MB)", path, size / 1024 / 1024)
    return extract_archive(path.read_bytes(), name=path.name, max_size=max_size)
