"""
Shared exceptions, input validation and file helpers for refgetstore.

This module provides the exception hierarchy used across the package along
with small helpers for normalizing sequence input, detecting gzip files,
expanding digest path templates and writing files atomically.
"""

from typing import Union, Optional, IO
import gzip
import os
import tempfile
from pathlib import Path


GZIP_MAGIC = b'\x1f\x8b'


class RefgetError(Exception):
    """Base exception for refgetstore-related errors."""
    pass


class NotFoundError(RefgetError, KeyError):
    """Raised when a digest, alias, name or collection is not registered."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep plain messages
        return str(self.args[0]) if self.args else ''


class RangeError(RefgetError, IndexError):
    """Raised when substring coordinates fall outside a sequence."""
    pass


class StoreIOError(RefgetError, OSError):
    """Raised when reading or writing a store artifact fails."""
    pass


class FormatError(RefgetError, ValueError):
    """Raised when FASTA, BED, TSV or JSON input is malformed."""
    pass


class DigestMismatchError(RefgetError):
    """Raised when loaded bytes do not reproduce their recorded digest."""
    pass


def validate_input(data: Union[str, bytes]) -> bytes:
    """
    Validate and normalize sequence input.

    Args:
        data: Sequence as str or bytes

    Returns:
        Sequence bytes (unchanged case)

    Raises:
        FormatError: If a string contains non-ASCII characters
        TypeError: If input type is not supported
    """
    if isinstance(data, str):
        try:
            data = data.encode('ascii')
        except UnicodeEncodeError as e:
            raise FormatError(f"Sequence must contain only ASCII characters: {e}")
    elif isinstance(data, (bytes, bytearray, memoryview)):
        data = bytes(data)
    else:
        raise TypeError(f"Input must be str or bytes, got {type(data)}")

    return data


def _is_gzipped_file(filepath: Union[str, Path]) -> bool:
    """Check the gzip magic bytes at the start of a file."""
    with open(filepath, 'rb') as f:
        return f.read(2) == GZIP_MAGIC


def open_text_maybe_gzip(filepath: Union[str, Path]) -> IO[str]:
    """
    Open a text file for reading, transparently decompressing gzip input.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")
    if _is_gzipped_file(filepath):
        return gzip.open(filepath, 'rt', encoding='utf-8')
    return open(filepath, 'r', encoding='utf-8')


def open_text_for_write(filepath: Union[str, Path]) -> IO[str]:
    """Open a text file for writing, gzip-compressed when the name ends in .gz."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    if filepath.suffix == '.gz':
        return gzip.open(filepath, 'wt', encoding='utf-8')
    return open(filepath, 'w', encoding='utf-8')


def sanitize_relative_path(path: str) -> str:
    """
    Reject store-relative paths that could escape the store directory.

    Args:
        path: Relative path read from a manifest or index

    Returns:
        The path, unchanged

    Raises:
        FormatError: If the path is absolute, contains '..' or a NUL byte
    """
    if '\x00' in path:
        raise FormatError(f"Path contains a NUL byte: {path!r}")
    if path.startswith('/') or path.startswith('\\') or Path(path).is_absolute():
        raise FormatError(f"Absolute path not allowed in store layout: {path}")
    parts = path.replace('\\', '/').split('/')
    if '..' in parts:
        raise FormatError(f"Parent traversal not allowed in store layout: {path}")
    return path


def expand_digest_template(template: str, digest: str) -> str:
    """
    Expand a digest path template.

    ``%s2`` and ``%s4`` become the first 2 or 4 characters of the digest and
    ``%s`` the whole digest, so ``sequences/%s2/%s.seq`` shards byte files
    into at most 4096 directories.

    Args:
        template: Path template relative to the store root
        digest: sha512t24u or collection digest

    Returns:
        Relative path for this digest
    """
    path = template.replace('%s2', digest[:2]).replace('%s4', digest[:4])
    return sanitize_relative_path(path.replace('%s', digest))


def atomic_write_bytes(filepath: Union[str, Path], data: bytes) -> None:
    """
    Write bytes to a file via a temporary sibling and os.replace.

    Raises:
        StoreIOError: If the file cannot be written
    """
    filepath = Path(filepath)
    try:
        filepath.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=filepath.parent, prefix=f".{filepath.name}.")
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.replace(tmp_name, filepath)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    except OSError as e:
        raise StoreIOError(f"Error writing file {filepath}: {e}") from e


def atomic_write_text(filepath: Union[str, Path], text: str) -> None:
    """Write UTF-8 text atomically (see atomic_write_bytes)."""
    atomic_write_bytes(filepath, text.encode('utf-8'))


def directory_size(path: Optional[Union[str, Path]]) -> int:
    """Total size in bytes of all regular files under a directory."""
    if path is None:
        return 0
    path = Path(path)
    if not path.exists():
        return 0
    return sum(p.stat().st_size for p in path.rglob('*') if p.is_file())
