"""
refgetstore: a content-addressable store for reference sequences.

Sequences and sequence collections are identified by GA4GH refget and seqcol
digests. Stores live in memory, in a local directory, or behind an HTTP(S)
server, and load sequence data lazily.
"""

__version__ = "0.1.0"

# Import utilities
from .utils import (
    RefgetError,
    NotFoundError,
    RangeError,
    StoreIOError,
    FormatError,
    DigestMismatchError,
)

# Import genomics helpers
from .genomics import (
    AlphabetType,
    FASTAError,
    detect_alphabet,
    digest_fasta,
    load_fasta,
    compute_fai,
)

# Import the store and its records
from .codec import StorageMode
from .digest import (
    sha512t24u_digest,
    md5_digest,
    canonical_json,
    digest_sequence,
)
from .models import (
    SequenceMetadata,
    SequenceStub,
    SequenceFull,
    SequenceCollection,
    SequenceCollectionMetadata,
    SeqColDigestLvl1,
    RetrievedSequence,
    digest_sequence_record,
)
from .fhr import FhrMetadata
from .seqcol import SeqColComparison, compare_collections
from .store import RefgetStore

__all__ = [
    # Store
    "RefgetStore",
    "StorageMode",

    # Records
    "SequenceMetadata",
    "SequenceStub",
    "SequenceFull",
    "SequenceCollection",
    "SequenceCollectionMetadata",
    "SeqColDigestLvl1",
    "RetrievedSequence",
    "FhrMetadata",
    "SeqColComparison",

    # Digests and parsing
    "sha512t24u_digest",
    "md5_digest",
    "canonical_json",
    "digest_sequence",
    "digest_sequence_record",
    "digest_fasta",
    "load_fasta",
    "compute_fai",
    "compare_collections",
    "AlphabetType",
    "detect_alphabet",

    # Errors
    "RefgetError",
    "NotFoundError",
    "RangeError",
    "StoreIOError",
    "FormatError",
    "DigestMismatchError",
    "FASTAError",

    # Version info
    "__version__",
]
