"""
Sequence and collection records.

Records come in two states. A stub carries metadata only; a full record also
carries the sequence bytes, either raw or two-bit packed. Collections mirror
this split. Accessors that need bytes must handle both states explicitly.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from . import codec
from .digest import (
    ANCILLARY_ATTRIBUTES,
    digest_ancillary,
    digest_collection,
    digest_json,
    digest_level1,
    digest_sequence,
    name_length_pairs,
    prefixed_sequence_digests,
)
from .genomics.sequences import AlphabetType, detect_alphabet
from .utils import StoreIOError, open_text_for_write, validate_input


@dataclass(frozen=True)
class FaiMetadata:
    """FASTA index fields for random access into an uncompressed file."""
    offset: int
    line_bases: int
    line_bytes: int


@dataclass(frozen=True)
class SequenceMetadata:
    """Identity and shape of one sequence."""
    name: str
    length: int
    sha512t24u: str
    md5: str
    alphabet: AlphabetType
    description: Optional[str] = None
    fai: Optional[FaiMetadata] = None

    @property
    def prefixed_digest(self) -> str:
        return f"SQ.{self.sha512t24u}"

    def renamed(self, name: str, description: Optional[str] = None) -> "SequenceMetadata":
        return replace(self, name=name, description=description)


@dataclass
class SequenceStub:
    """A sequence whose bytes have not been loaded."""
    metadata: SequenceMetadata

    is_loaded = False


@dataclass
class SequenceFull:
    """
    A sequence with its bytes in memory.

    ``data`` is two-bit packed when ``encoded`` is true, otherwise it holds the
    uppercase sequence bytes.
    """
    metadata: SequenceMetadata
    data: bytes
    encoded: bool = False

    is_loaded = True

    def decode(self) -> str:
        """Return the full sequence as an uppercase string."""
        return self.decode_bytes().decode('ascii')

    def decode_bytes(self) -> bytes:
        if self.encoded:
            return codec.decode(self.data, self.metadata.length, self.metadata.alphabet)
        return self.data

    def substring(self, start: int, end: int) -> str:
        """Half-open [start, end) slice of the sequence."""
        return codec.decode_substring(
            self.data, self.metadata.length, self.metadata.alphabet,
            self.encoded, start, end).decode('ascii')

    def to_mode(self, mode: "codec.StorageMode") -> "SequenceFull":
        """Return this record with its buffer in the given storage mode."""
        want_encoded = mode == codec.StorageMode.ENCODED and codec.is_packable(self.metadata.alphabet)
        if want_encoded == self.encoded:
            return self
        if want_encoded:
            return SequenceFull(self.metadata, codec.encode(self.data, self.metadata.alphabet), True)
        return SequenceFull(self.metadata, self.decode_bytes(), False)

    def to_stub(self) -> SequenceStub:
        return SequenceStub(self.metadata)


SequenceRecord = Union[SequenceStub, SequenceFull]


def digest_sequence_record(name: str, data: Union[str, bytes],
                           description: Optional[str] = None) -> SequenceFull:
    """
    Build a full, raw-mode record from sequence content.

    Args:
        name: Sequence name
        data: Sequence bytes in any case
        description: Optional header text after the name

    Returns:
        SequenceFull with digests and detected alphabet
    """
    upper = validate_input(data).upper()
    sha512, md5 = digest_sequence(upper)
    metadata = SequenceMetadata(
        name=name,
        length=len(upper),
        sha512t24u=sha512,
        md5=md5,
        alphabet=detect_alphabet(upper),
        description=description,
    )
    return SequenceFull(metadata, upper, encoded=False)


@dataclass(frozen=True)
class SeqColDigestLvl1:
    """Level-1 digests of a collection, with optional ancillary digests."""
    names: str
    lengths: str
    sequences: str
    name_length_pairs: Optional[str] = None
    sorted_name_length_pairs: Optional[str] = None
    sorted_sequences: Optional[str] = None

    @classmethod
    def from_arrays(cls, names: Sequence[str], lengths: Sequence[int],
                    sequence_digests: Sequence[str], ancillary: bool = True) -> "SeqColDigestLvl1":
        digests = digest_level1(names, lengths, sequence_digests)
        if ancillary:
            digests.update(digest_ancillary(names, lengths, sequence_digests))
        return cls(**digests)

    def to_dict(self) -> Dict[str, str]:
        """Attribute name to digest, omitting absent ancillary digests."""
        result = {'names': self.names, 'lengths': self.lengths, 'sequences': self.sequences}
        for attr in ANCILLARY_ATTRIBUTES:
            value = getattr(self, attr)
            if value is not None:
                result[attr] = value
        return result

    @property
    def has_ancillary(self) -> bool:
        return self.sorted_sequences is not None

    def get(self, attribute: str) -> Optional[str]:
        return self.to_dict().get(attribute)


@dataclass(frozen=True)
class SequenceCollectionMetadata:
    """Identity of a collection: its digest, size and Level-1 digests."""
    digest: str
    n_sequences: int
    level1: SeqColDigestLvl1
    file_path: Optional[Path] = None

    @classmethod
    def from_level1(cls, level1: SeqColDigestLvl1, n_sequences: int,
                    file_path: Optional[Path] = None) -> "SequenceCollectionMetadata":
        return cls(digest_collection(level1.to_dict()), n_sequences, level1, file_path)

    @property
    def names_digest(self) -> str:
        return self.level1.names

    @property
    def sequences_digest(self) -> str:
        return self.level1.sequences

    @property
    def lengths_digest(self) -> str:
        return self.level1.lengths


@dataclass
class SequenceCollection:
    """An ordered list of sequence records plus the collection metadata."""
    metadata: SequenceCollectionMetadata
    sequences: List[SequenceRecord] = field(default_factory=list)

    @classmethod
    def from_records(cls, records: Sequence[SequenceRecord], file_path: Optional[Path] = None,
                     ancillary: bool = True) -> "SequenceCollection":
        """
        Assemble a collection and compute its digests.

        Args:
            records: Sequence records in collection order
            file_path: Source file the records came from, if any
            ancillary: Also compute the ancillary digests

        Returns:
            SequenceCollection
        """
        records = list(records)
        metas = [r.metadata for r in records]
        level1 = SeqColDigestLvl1.from_arrays(
            [m.name for m in metas], [m.length for m in metas],
            [m.sha512t24u for m in metas], ancillary=ancillary)
        metadata = SequenceCollectionMetadata.from_level1(level1, len(records), file_path)
        return cls(metadata, records)

    @property
    def digest(self) -> str:
        return self.metadata.digest

    @property
    def names(self) -> List[str]:
        return [r.metadata.name for r in self.sequences]

    @property
    def lengths(self) -> List[int]:
        return [r.metadata.length for r in self.sequences]

    @property
    def sequence_digests(self) -> List[str]:
        return [r.metadata.sha512t24u for r in self.sequences]

    def to_level1(self) -> Dict[str, str]:
        return self.metadata.level1.to_dict()

    def to_level2(self) -> Dict[str, List[Any]]:
        """The underlying arrays, keyed like the Level-1 digests."""
        level2 = {
            'names': self.names,
            'lengths': self.lengths,
            'sequences': prefixed_sequence_digests(self.sequence_digests),
        }
        if self.metadata.level1.has_ancillary:
            level2['name_length_pairs'] = name_length_pairs(self.names, self.lengths)
            level2['sorted_name_length_pairs'] = sorted(
                digest_json(pair) for pair in level2['name_length_pairs'])
            level2['sorted_sequences'] = sorted(level2['sequences'])
        return level2

    def write_fasta(self, filepath: Union[str, Path], line_width: int = 80) -> None:
        """
        Write all sequences as FASTA, gzip-compressed if the path ends in .gz.

        Raises:
            StoreIOError: If a sequence has no data loaded
        """
        with open_text_for_write(filepath) as out:
            for record in self.sequences:
                if not isinstance(record, SequenceFull):
                    raise StoreIOError(f"Sequence {record.metadata.name} has no data loaded")
                write_fasta_record(out, record.metadata, record.decode(), line_width)

    def __len__(self) -> int:
        return len(self.sequences)

    def __iter__(self) -> Iterator[SequenceRecord]:
        return iter(self.sequences)

    def __getitem__(self, index: int) -> SequenceRecord:
        return self.sequences[index]


@dataclass
class CollectionStub:
    """A collection known only by its index entry."""
    metadata: SequenceCollectionMetadata

    is_loaded = False


@dataclass
class CollectionFull:
    """A collection whose member list has been loaded."""
    collection: SequenceCollection

    is_loaded = True

    @property
    def metadata(self) -> SequenceCollectionMetadata:
        return self.collection.metadata


SequenceCollectionRecord = Union[CollectionStub, CollectionFull]


@dataclass(frozen=True)
class RetrievedSequence:
    """A substring extracted by a region query, 0-based half-open."""
    sequence: str
    chrom_name: str
    start: int
    end: int


def write_fasta_record(out, metadata: SequenceMetadata, sequence: str, line_width: int = 80) -> None:
    """Write one FASTA record, wrapping sequence lines at line_width (0 = no wrap)."""
    header = metadata.name
    if metadata.description:
        header = f"{header} {metadata.description}"
    out.write(f">{header}\n")
    if line_width <= 0:
        out.write(sequence + "\n")
        return
    for i in range(0, len(sequence), line_width):
        out.write(sequence[i:i + line_width] + "\n")
