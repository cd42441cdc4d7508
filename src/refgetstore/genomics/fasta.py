"""
FASTA file parsing and digesting utilities.

This module reads plain or gzip-compressed FASTA files and turns each record
into a digested sequence record. Sequences are hashed incrementally, so a
metadata-only pass never holds a whole chromosome in memory. FASTA index
(FAI) fields are computed for uncompressed input.
"""

from typing import Union, List, Tuple, Optional, Iterator, Iterable
import gzip
import hashlib
import logging
from pathlib import Path

import numpy as np

from ..digest import truncated_sha512_to_str
from ..models import (
    FaiMetadata,
    SequenceCollection,
    SequenceFull,
    SequenceMetadata,
    SequenceRecord,
    SequenceStub,
)
from ..utils import FormatError, _is_gzipped_file
from .sequences import AlphabetType, _RANK_TABLE


logger = logging.getLogger(__name__)


class FASTAError(FormatError):
    """Raised when FASTA file parsing or validation fails."""
    pass


class _RecordDigester:
    """Accumulates one FASTA record line by line."""

    def __init__(self, header: str, keep_data: bool, fai_offset: Optional[int]):
        self.header = header
        self.keep_data = keep_data
        self.fai_offset = fai_offset
        self.line_bases: Optional[int] = None
        self.line_bytes: Optional[int] = None
        self.length = 0
        self.rank = int(AlphabetType.DNA_2BIT)
        self._sha512 = hashlib.sha512()
        self._md5 = hashlib.md5()
        self._chunks: List[bytes] = []

    def update(self, bases: bytes) -> None:
        upper = bases.upper()
        self._sha512.update(upper)
        self._md5.update(upper)
        self.length += len(upper)
        if upper:
            self.rank = max(self.rank, int(_RANK_TABLE[np.frombuffer(upper, dtype=np.uint8)].max()))
        if self.keep_data:
            self._chunks.append(upper)

    def finish(self) -> SequenceRecord:
        name, description = _split_header(self.header)
        fai = None
        if self.fai_offset is not None:
            fai = FaiMetadata(
                offset=self.fai_offset,
                line_bases=self.line_bases or 0,
                line_bytes=self.line_bytes or 0,
            )
        metadata = SequenceMetadata(
            name=name,
            length=self.length,
            sha512t24u=truncated_sha512_to_str(self._sha512.digest()),
            md5=self._md5.hexdigest(),
            alphabet=AlphabetType(self.rank),
            description=description,
            fai=fai,
        )
        if self.keep_data:
            return SequenceFull(metadata, b''.join(self._chunks), encoded=False)
        return SequenceStub(metadata)


def _split_header(header: str) -> Tuple[str, Optional[str]]:
    """Split a header into its name (first token) and description."""
    parts = header.split(None, 1)
    name = parts[0]
    description = parts[1].strip() if len(parts) > 1 else None
    return name, description or None


def iter_fasta_records(filepath: Union[str, Path],
                       keep_data: bool = True) -> Iterator[Tuple[str, SequenceRecord]]:
    """
    Iterate over the records of a FASTA file.

    Args:
        filepath: Path to a FASTA file, optionally gzip-compressed
        keep_data: Return full records with sequence bytes; otherwise stubs

    Yields:
        (header, record) pairs in file order, header without the leading '>'

    Raises:
        FileNotFoundError: If the file does not exist
        FASTAError: If the FASTA format is invalid
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"FASTA file not found: {filepath}")

    compressed = _is_gzipped_file(filepath)
    opener = gzip.open if compressed else open
    current: Optional[_RecordDigester] = None
    position = 0

    with opener(filepath, 'rb') as f:
        for line_num, line in enumerate(f, 1):
            line_len = len(line)
            if line.startswith(b'>'):
                if current is not None:
                    yield current.header, current.finish()
                try:
                    header = line[1:].decode('utf-8').strip()
                except UnicodeDecodeError as e:
                    raise FASTAError(f"Invalid header encoding at line {line_num}: {e}") from e
                if not header:
                    raise FASTAError(f"Empty sequence header at line {line_num}")
                current = _RecordDigester(
                    header, keep_data, None if compressed else position + line_len)
            else:
                stripped = line.rstrip(b'\r\n')
                if not stripped.strip():
                    position += line_len
                    continue
                if current is None:
                    raise FASTAError(f"Sequence data before header at line {line_num}")
                if current.line_bases is None:
                    current.line_bases = len(stripped)
                    current.line_bytes = line_len
                # Remove whitespace only
                current.update(b''.join(stripped.split()))
            position += line_len

    if current is not None:
        yield current.header, current.finish()


def _collect(filepath: Union[str, Path], keep_data: bool, ancillary: bool) -> SequenceCollection:
    filepath = Path(filepath)
    records = [record for _, record in iter_fasta_records(filepath, keep_data=keep_data)]
    if not records:
        raise FASTAError(f"No valid sequences found in FASTA file: {filepath}")
    logger.debug(f"Digested {len(records)} sequences from {filepath}")
    return SequenceCollection.from_records(records, file_path=filepath, ancillary=ancillary)


def digest_fasta(filepath: Union[str, Path], ancillary: bool = True) -> SequenceCollection:
    """
    Digest a FASTA file without keeping sequence data.

    Args:
        filepath: Path to a FASTA file, optionally gzip-compressed
        ancillary: Also compute ancillary collection digests

    Returns:
        SequenceCollection of stub records (with FAI data for uncompressed input)
    """
    return _collect(filepath, keep_data=False, ancillary=ancillary)


def load_fasta(filepath: Union[str, Path], ancillary: bool = True) -> SequenceCollection:
    """
    Digest a FASTA file and keep the uppercase sequence data.

    Returns:
        SequenceCollection of full, raw-mode records
    """
    return _collect(filepath, keep_data=True, ancillary=ancillary)


def compute_fai(filepath: Union[str, Path]) -> List[Tuple[str, int, FaiMetadata]]:
    """
    Compute FASTA index entries.

    Args:
        filepath: Path to an uncompressed FASTA file

    Returns:
        List of (name, length, FaiMetadata) in file order

    Raises:
        FASTAError: If the file is gzip-compressed
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"FASTA file not found: {filepath}")
    if _is_gzipped_file(filepath):
        raise FASTAError(f"Cannot compute FAI for compressed file: {filepath}")
    entries = []
    for _, record in iter_fasta_records(filepath, keep_data=False):
        meta = record.metadata
        entries.append((meta.name, meta.length, meta.fai))
    return entries


def extract_header_aliases(header: str, namespaces: Iterable[str]) -> List[Tuple[str, str]]:
    """
    Find 'namespace:token' words in a FASTA header.

    Args:
        header: Header line without the leading '>'
        namespaces: Namespaces to recognize

    Returns:
        List of (namespace, alias) pairs in header order
    """
    wanted = set(namespaces)
    aliases = []
    for word in header.split():
        namespace, sep, token = word.partition(':')
        if sep and token and namespace in wanted:
            aliases.append((namespace, token))
    return aliases


__all__ = [
    "FASTAError",
    "iter_fasta_records",
    "digest_fasta",
    "load_fasta",
    "compute_fai",
    "extract_header_aliases",
]
