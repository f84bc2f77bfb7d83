"""Content encoding helpers: binary detection, base64, normalization."""

import base64
import re
from pathlib import PurePosixPath

BINARY_EXTENSIONS = frozenset({
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".svg",
    ".woff", ".woff2", ".ttf", ".eot", ".otf",
    ".pdf", ".zip", ".tar", ".gz", ".rar",
    ".mp3", ".mp4", ".avi", ".mov", ".wav",
    ".exe", ".dll", ".so", ".dylib",
})

# Images are never content-compared under the default policy
IMAGE_EXTENSIONS = frozenset({
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp", ".ico",
    ".tiff", ".tif", ".avif", ".heic", ".heif",
})

NULL_SCAN_LENGTH = 1024

_TRAILING_BLANK_LINES = re.compile(r"\n+$")


def _suffix(path: str) -> str:
    return PurePosixPath(path).suffix.lower()


def is_binary_path(path: str) -> bool:
    return _suffix(path) in BINARY_EXTENSIONS


def is_image_path(path: str) -> bool:
    return _suffix(path) in IMAGE_EXTENSIONS


def has_null_byte(data: bytes) -> bool:
    """Check the first 1024 bytes for a null byte."""
    return b"\x00" in data[:NULL_SCAN_LENGTH]


def decode_utf8(data: bytes) -> str | None:
    """Strict UTF-8 decode, None if the bytes are not valid UTF-8."""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


def is_binary_content(content: str | bytes, path: str | None = None) -> bool:
    """
    Decide whether content must travel as binary.

    Text is never binary. Bytes are binary when they contain a null byte
    early on, carry a known binary extension, or are not valid UTF-8.
    """
    if isinstance(content, str):
        return False
    if has_null_byte(content):
        return True
    if path is not None and is_binary_path(path):
        return True
    return decode_utf8(content) is None


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_base64(text: str) -> bytes:
    """Decode base64, ignoring embedded whitespace such as GitHub's line breaks."""
    return base64.b64decode("".join(text.split()), validate=True)


def normalize_content(text: str) -> str:
    """
    Canonicalize text for comparison.

    Line endings become LF, trailing whitespace is stripped from every line,
    trailing blank lines are dropped and the whole content is trimmed.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = "\n".join(line.rstrip() for line in text.split("\n"))
    return _TRAILING_BLANK_LINES.sub("", text).strip()


def prepare_content(content: str | bytes, path: str | None = None) -> tuple[str, str | None]:
    """
    Prepare content for the GitHub API.

    Returns:
        (payload, encoding) where encoding is "base64" for binary content
        and None for text sent as-is
    """
    if isinstance(content, str):
        return content, None
    if is_binary_content(content, path):
        return encode_base64(content), "base64"
    return content.decode("utf-8"), None
