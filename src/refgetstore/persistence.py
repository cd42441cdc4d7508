"""
On-disk store layout, index files and remote fetching.

A store directory looks like::

    rgstore.json                      manifest (written last)
    sequences.rgsi                    one row per sequence
    collections.rgci                  one row per collection
    collections/{digest}.rgsi         member list of one collection
    collections/{digest}.fhr.json     optional FHR metadata
    sequences/{d[:2]}/{digest}.seq    sequence bytes (path template)
    aliases/sequences/{namespace}.tsv
    aliases/collections/{namespace}.tsv

A remote store is the same layout served over HTTP(S).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple, Union
import json
import logging
from pathlib import Path

import requests

from .codec import StorageMode
from .genomics.sequences import AlphabetType
from .models import (
    SeqColDigestLvl1,
    SequenceCollection,
    SequenceCollectionMetadata,
    SequenceMetadata,
)
from .utils import (
    DigestMismatchError,
    FormatError,
    NotFoundError,
    StoreIOError,
    atomic_write_bytes,
    atomic_write_text,
    sanitize_relative_path,
)


logger = logging.getLogger(__name__)

MANIFEST_FILE = 'rgstore.json'
MANIFEST_VERSION = 1
DEFAULT_SEQDATA_PATH_TEMPLATE = 'sequences/%s2/%s.seq'
DEFAULT_COLLECTIONS_PATH_TEMPLATE = 'collections/%s.rgsi'
SEQUENCE_INDEX_FILE = 'sequences.rgsi'
COLLECTION_INDEX_FILE = 'collections.rgci'
SEQUENCE_ALIAS_DIR = 'aliases/sequences'
COLLECTION_ALIAS_DIR = 'aliases/collections'
FHR_SUFFIX = '.fhr.json'
DEFAULT_FETCH_TIMEOUT = 60.0

SEQUENCE_INDEX_HEADER = '#name\tlength\talphabet\tsha512t24u\tmd5\tdescription'
COLLECTION_INDEX_HEADER = (
    '#digest\tn_sequences\tnames_digest\tsequences_digest\tlengths_digest'
    '\tname_length_pairs_digest\tsorted_name_length_pairs_digest\tsorted_sequences_digest'
)


@dataclass
class StoreManifest:
    """Contents of rgstore.json."""
    mode: StorageMode = StorageMode.ENCODED
    seqdata_path_template: str = DEFAULT_SEQDATA_PATH_TEMPLATE
    collections_path_template: str = DEFAULT_COLLECTIONS_PATH_TEMPLATE
    sequence_index: str = SEQUENCE_INDEX_FILE
    collection_index: str = COLLECTION_INDEX_FILE
    ancillary_digests: bool = True
    attribute_index: bool = False
    sequence_alias_namespaces: List[str] = field(default_factory=list)
    collection_alias_namespaces: List[str] = field(default_factory=list)
    fhr_collections: List[str] = field(default_factory=list)
    version: int = MANIFEST_VERSION
    created_at: Optional[str] = None

    def to_json(self) -> str:
        data = {
            'version': self.version,
            'mode': str(self.mode),
            'seqdata_path_template': self.seqdata_path_template,
            'collections_path_template': self.collections_path_template,
            'sequence_index': self.sequence_index,
            'collection_index': self.collection_index,
            'ancillary_digests': self.ancillary_digests,
            'attribute_index': self.attribute_index,
            'sequence_alias_namespaces': sorted(self.sequence_alias_namespaces),
            'collection_alias_namespaces': sorted(self.collection_alias_namespaces),
            'fhr_collections': sorted(self.fhr_collections),
            'created_at': self.created_at or datetime.now(timezone.utc).isoformat(),
        }
        return json.dumps(data, indent=2) + "\n"

    @classmethod
    def from_json(cls, text: str) -> "StoreManifest":
        """
        Parse and validate a manifest.

        Raises:
            FormatError: If the JSON is invalid or a path escapes the store
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise FormatError(f"Invalid store manifest: {e}") from e
        if not isinstance(data, dict):
            raise FormatError("Store manifest must be a JSON object")
        version = int(data.get('version', MANIFEST_VERSION))
        if version > MANIFEST_VERSION:
            raise FormatError(f"Unsupported store manifest version {version}")
        manifest = cls(
            mode=StorageMode.from_str(data.get('mode', 'encoded')),
            seqdata_path_template=data.get('seqdata_path_template', DEFAULT_SEQDATA_PATH_TEMPLATE),
            collections_path_template=data.get(
                'collections_path_template', DEFAULT_COLLECTIONS_PATH_TEMPLATE),
            sequence_index=data.get('sequence_index', SEQUENCE_INDEX_FILE),
            collection_index=data.get('collection_index', COLLECTION_INDEX_FILE),
            ancillary_digests=bool(data.get('ancillary_digests', True)),
            attribute_index=bool(data.get('attribute_index', False)),
            sequence_alias_namespaces=list(data.get('sequence_alias_namespaces', [])),
            collection_alias_namespaces=list(data.get('collection_alias_namespaces', [])),
            fhr_collections=list(data.get('fhr_collections', [])),
            version=version,
            created_at=data.get('created_at'),
        )
        for path in (manifest.seqdata_path_template, manifest.collections_path_template,
                     manifest.sequence_index, manifest.collection_index):
            sanitize_relative_path(path)
        for namespace in manifest.sequence_alias_namespaces + manifest.collection_alias_namespaces:
            sanitize_relative_path(namespace)
            if '/' in namespace:
                raise FormatError(f"Invalid alias namespace in manifest: {namespace}")
        return manifest


def _clean_field(value: Optional[str]) -> str:
    if not value:
        return ''
    return value.replace('\t', ' ').replace('\n', ' ').replace('\r', ' ')


def format_sequence_row(meta: SequenceMetadata) -> str:
    return '\t'.join([
        meta.name, str(meta.length), str(meta.alphabet), meta.sha512t24u, meta.md5,
        _clean_field(meta.description),
    ])


def parse_sequence_row(line: str, source: str, line_num: int) -> SequenceMetadata:
    """
    Parse one sequence index row.

    Raises:
        FormatError: If the row is malformed
    """
    fields = line.split('\t')
    if len(fields) < 5:
        raise FormatError(f"Expected at least 5 columns at {source}:{line_num}, got {len(fields)}")
    try:
        length = int(fields[1])
        alphabet = AlphabetType.from_str(fields[2])
    except ValueError as e:
        raise FormatError(f"Invalid sequence row at {source}:{line_num}: {e}") from e
    description = fields[5] if len(fields) > 5 and fields[5] else None
    return SequenceMetadata(
        name=fields[0],
        length=length,
        sha512t24u=fields[3],
        md5=fields[4],
        alphabet=alphabet,
        description=description,
    )


def format_sequence_index(metas: List[SequenceMetadata]) -> str:
    lines = [SEQUENCE_INDEX_HEADER] + [format_sequence_row(m) for m in metas]
    return '\n'.join(lines) + '\n'


def parse_sequence_index(text: str, source: str = SEQUENCE_INDEX_FILE) -> List[SequenceMetadata]:
    metas = []
    for line_num, line in enumerate(text.splitlines(), 1):
        if not line.strip() or line.startswith('#'):
            continue
        metas.append(parse_sequence_row(line, source, line_num))
    return metas


def format_collection_index(metas: List[SequenceCollectionMetadata]) -> str:
    lines = [COLLECTION_INDEX_HEADER]
    for m in metas:
        lvl1 = m.level1
        lines.append('\t'.join([
            m.digest, str(m.n_sequences), lvl1.names, lvl1.sequences, lvl1.lengths,
            lvl1.name_length_pairs or '', lvl1.sorted_name_length_pairs or '',
            lvl1.sorted_sequences or '',
        ]))
    return '\n'.join(lines) + '\n'


def parse_collection_index(text: str,
                           source: str = COLLECTION_INDEX_FILE) -> List[SequenceCollectionMetadata]:
    """
    Parse collections.rgci.

    Raises:
        FormatError: If a row is malformed
    """
    metas = []
    for line_num, line in enumerate(text.splitlines(), 1):
        if not line.strip() or line.startswith('#'):
            continue
        fields = line.split('\t')
        if len(fields) < 5:
            raise FormatError(f"Expected at least 5 columns at {source}:{line_num}, got {len(fields)}")
        fields += [''] * (8 - len(fields))
        try:
            n_sequences = int(fields[1])
        except ValueError as e:
            raise FormatError(f"Invalid sequence count at {source}:{line_num}: {e}") from e
        level1 = SeqColDigestLvl1(
            names=fields[2],
            sequences=fields[3],
            lengths=fields[4],
            name_length_pairs=fields[5] or None,
            sorted_name_length_pairs=fields[6] or None,
            sorted_sequences=fields[7] or None,
        )
        metas.append(SequenceCollectionMetadata(fields[0], n_sequences, level1))
    return metas


def format_collection_file(collection: SequenceCollection) -> str:
    """Per-collection index: digest header lines then one row per member."""
    meta = collection.metadata
    lines = [
        f"##seqcol_digest={meta.digest}",
        f"##names_digest={meta.names_digest}",
        f"##sequences_digest={meta.sequences_digest}",
        f"##lengths_digest={meta.lengths_digest}",
    ]
    for attr, value in meta.level1.to_dict().items():
        if attr not in ('names', 'sequences', 'lengths'):
            lines.append(f"##{attr}_digest={value}")
    lines.append(SEQUENCE_INDEX_HEADER)
    lines.extend(format_sequence_row(r.metadata) for r in collection.sequences)
    return '\n'.join(lines) + '\n'


def parse_collection_file(text: str, expected_digest: str) -> Tuple[Dict[str, str], List[SequenceMetadata]]:
    """
    Parse a per-collection index and check it against its digest.

    Args:
        text: File contents
        expected_digest: Collection digest the file was requested under

    Returns:
        (header values, member metadata in collection order)

    Raises:
        FormatError: If the file is malformed
        DigestMismatchError: If the members do not reproduce the digest
    """
    headers: Dict[str, str] = {}
    metas = []
    source = f"collection {expected_digest}"
    for line_num, line in enumerate(text.splitlines(), 1):
        if line.startswith('##'):
            key, sep, value = line[2:].partition('=')
            if not sep:
                raise FormatError(f"Invalid header line at {source}:{line_num}: {line!r}")
            headers[key.strip()] = value.strip()
        elif not line.strip() or line.startswith('#'):
            continue
        else:
            metas.append(parse_sequence_row(line, source, line_num))

    recorded = headers.get('seqcol_digest')
    if recorded is not None and recorded != expected_digest:
        raise DigestMismatchError(
            f"Collection file for {expected_digest} declares digest {recorded}")
    level1 = SeqColDigestLvl1.from_arrays(
        [m.name for m in metas], [m.length for m in metas], [m.sha512t24u for m in metas],
        ancillary=False)
    actual = SequenceCollectionMetadata.from_level1(level1, len(metas)).digest
    if actual != expected_digest:
        raise DigestMismatchError(
            f"Collection {expected_digest} members reproduce digest {actual}")
    return headers, metas


class RemoteFetcher:
    """
    Read store files locally, falling back to a remote copy of the layout.

    Remote bytes are written into the local root when caching is enabled.
    Each GET uses ``timeout`` seconds; failures are raised at once without
    retrying.
    """

    def __init__(self, local_root: Optional[Union[str, Path]], remote_url: Optional[str] = None,
                 cache: bool = True, timeout: Optional[float] = DEFAULT_FETCH_TIMEOUT,
                 quiet: bool = False):
        self.local_root = Path(local_root) if local_root is not None else None
        self.remote_url = remote_url.rstrip('/') if remote_url else None
        self.cache = cache
        self.timeout = timeout
        self.quiet = quiet

    def local_path(self, relative_path: str) -> Optional[Path]:
        if self.local_root is None:
            return None
        return self.local_root / sanitize_relative_path(relative_path)

    def exists_locally(self, relative_path: str) -> bool:
        path = self.local_path(relative_path)
        return path is not None and path.is_file()

    def fetch(self, relative_path: str, cache: Optional[bool] = None) -> bytes:
        """
        Return the bytes of a store file.

        Args:
            relative_path: Path relative to the store root
            cache: Override the fetcher's caching choice for this file

        Returns:
            File contents

        Raises:
            NotFoundError: If the file exists neither locally nor remotely
            StoreIOError: If reading, fetching or caching fails
        """
        path = self.local_path(relative_path)
        if path is not None and path.is_file():
            try:
                return path.read_bytes()
            except OSError as e:
                raise StoreIOError(f"Error reading file {path}: {e}") from e

        if self.remote_url is None:
            raise NotFoundError(f"Store file not found: {relative_path}")

        data = self._get(relative_path)
        should_cache = self.cache if cache is None else cache
        if should_cache and path is not None:
            atomic_write_bytes(path, data)
        return data

    def fetch_text(self, relative_path: str, cache: Optional[bool] = None) -> str:
        return self.fetch(relative_path, cache=cache).decode('utf-8')

    def _get(self, relative_path: str) -> bytes:
        url = f"{self.remote_url}/{sanitize_relative_path(relative_path)}"
        if not self.quiet:
            logger.info(f"Fetching {url}")
        try:
            response = requests.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise StoreIOError(f"Failed to fetch {url}: {e}") from e
        if response.status_code == 404:
            raise NotFoundError(f"Remote store file not found: {url}")
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise StoreIOError(f"Failed to fetch {url}: {e}") from e
        return response.content


def write_text_file(root: Path, relative_path: str, text: str) -> None:
    atomic_write_text(root / sanitize_relative_path(relative_path), text)


def write_bytes_file(root: Path, relative_path: str, data: bytes) -> None:
    atomic_write_bytes(root / sanitize_relative_path(relative_path), data)
