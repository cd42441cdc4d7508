"""
The refget sequence store.

RefgetStore keeps digest-keyed registries of sequences and collections.
Records start as stubs (metadata only) or full records (with bytes) and are
materialized on first access from a local directory or a remote mirror of
the same layout. Nothing is evicted automatically; ``flush`` demotes loaded
sequences back to stubs once their bytes are on disk.
"""

from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union
import logging
from pathlib import Path

from . import codec
from .aliases import AliasRegistry
from .codec import StorageMode
from .digest import (
    digest_sequence,
    looks_like_md5,
    strip_collection_prefix,
    strip_sequence_prefix,
)
from .fhr import FhrMetadata
from .genomics.fasta import extract_header_aliases, iter_fasta_records
from .genomics.regions import extract_regions, read_bed_regions
from .models import (
    CollectionFull,
    CollectionStub,
    SeqColDigestLvl1,
    SequenceCollection,
    SequenceCollectionMetadata,
    SequenceCollectionRecord,
    SequenceFull,
    SequenceMetadata,
    SequenceRecord,
    SequenceStub,
    RetrievedSequence,
    write_fasta_record,
)
from .persistence import (
    COLLECTION_ALIAS_DIR,
    COLLECTION_INDEX_FILE,
    DEFAULT_COLLECTIONS_PATH_TEMPLATE,
    DEFAULT_FETCH_TIMEOUT,
    DEFAULT_SEQDATA_PATH_TEMPLATE,
    FHR_SUFFIX,
    MANIFEST_FILE,
    SEQUENCE_ALIAS_DIR,
    SEQUENCE_INDEX_FILE,
    RemoteFetcher,
    StoreManifest,
    format_collection_file,
    format_collection_index,
    format_sequence_index,
    parse_collection_file,
    parse_collection_index,
    parse_sequence_index,
    write_bytes_file,
    write_text_file,
)
from .seqcol import AttributeIndex, SeqColComparison, compare_collections, scan_collections
from .utils import (
    DigestMismatchError,
    NotFoundError,
    RefgetError,
    StoreIOError,
    directory_size,
    expand_digest_template,
    open_text_for_write,
    sanitize_relative_path,
)


logger = logging.getLogger(__name__)

DEFAULT_ATTRIBUTE_SEARCH_LIMIT = 10000


class RefgetStore:
    """
    Content-addressed store of sequences and sequence collections.

    Use one of the constructors rather than calling the class directly:

    - ``RefgetStore.in_memory()`` keeps everything in memory
    - ``RefgetStore.on_disk(path)`` opens or creates a store directory
    - ``RefgetStore.open_local(path)`` opens an existing store directory
    - ``RefgetStore.open_remote(cache_path, url)`` reads a served store,
      caching fetched files under ``cache_path``

    A store is not thread-safe; serialize writers around one instance.
    """

    def __init__(self, mode: StorageMode = StorageMode.ENCODED,
                 local_path: Optional[Union[str, Path]] = None,
                 remote_url: Optional[str] = None,
                 persist_to_disk: bool = False,
                 seqdata_path_template: str = DEFAULT_SEQDATA_PATH_TEMPLATE,
                 quiet: bool = False,
                 ancillary_digests: bool = True,
                 attribute_index: bool = False,
                 attribute_search_limit: int = DEFAULT_ATTRIBUTE_SEARCH_LIMIT,
                 verify_on_load: bool = True,
                 fetch_timeout: Optional[float] = DEFAULT_FETCH_TIMEOUT):
        self._mode = mode
        # Byte format of sequence files under local_path
        self._disk_mode = mode
        self.local_path = Path(local_path) if local_path is not None else None
        self.remote_url = remote_url
        self.persist_to_disk = persist_to_disk
        self.seqdata_path_template = seqdata_path_template
        self.collections_path_template = DEFAULT_COLLECTIONS_PATH_TEMPLATE
        self.quiet = quiet
        self.ancillary_digests = ancillary_digests
        self.attribute_search_limit = attribute_search_limit
        self.verify_on_load = verify_on_load
        self.fetch_timeout = fetch_timeout

        self._sequences: Dict[str, SequenceRecord] = {}
        self._md5_lookup: Dict[str, str] = {}
        self._collections: Dict[str, SequenceCollectionRecord] = {}
        self._name_lookup: Dict[str, Dict[str, str]] = {}
        self.sequence_aliases = AliasRegistry()
        self.collection_aliases = AliasRegistry()
        self._fhr: Dict[str, FhrMetadata] = {}
        self._attribute_index: Optional[AttributeIndex] = AttributeIndex() if attribute_index else None
        self._created_at: Optional[str] = None

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def in_memory(cls, mode: StorageMode = StorageMode.ENCODED, **kwargs) -> "RefgetStore":
        """Create an empty store with no backing directory."""
        return cls(mode=mode, **kwargs)

    @classmethod
    def on_disk(cls, path: Union[str, Path], mode: StorageMode = StorageMode.ENCODED,
                seqdata_path_template: Optional[str] = None, **kwargs) -> "RefgetStore":
        """
        Open the store at path, creating an empty one if none exists.

        New stores persist every addition to disk immediately.
        """
        path = Path(path)
        if (path / MANIFEST_FILE).exists():
            return cls.open_local(path, **kwargs)
        template = sanitize_relative_path(seqdata_path_template or DEFAULT_SEQDATA_PATH_TEMPLATE)
        store = cls(mode=mode, local_path=path, persist_to_disk=True,
                    seqdata_path_template=template, **kwargs)
        path.mkdir(parents=True, exist_ok=True)
        store._write_metadata_files()
        store._info(f"Created store at {path}")
        return store

    @classmethod
    def open_local(cls, path: Union[str, Path], **kwargs) -> "RefgetStore":
        """
        Open an existing store directory.

        Indexes are read eagerly; sequences and collection member lists stay
        stubs until accessed.

        Raises:
            NotFoundError: If the directory has no manifest
            FormatError: If the manifest or an index is malformed
        """
        path = Path(path)
        if not (path / MANIFEST_FILE).exists():
            raise NotFoundError(f"No store manifest found at {path / MANIFEST_FILE}")
        store = cls(local_path=path, persist_to_disk=True, **kwargs)
        store._load_store_metadata()
        return store

    @classmethod
    def open_remote(cls, cache_path: Union[str, Path], remote_url: str,
                    persist: bool = True, **kwargs) -> "RefgetStore":
        """
        Open a store served over HTTP(S).

        Metadata files are always cached under cache_path. Sequence bytes are
        fetched on first access and cached too unless persist is False.

        Raises:
            NotFoundError: If the remote store has no manifest
            StoreIOError: If the remote cannot be reached
        """
        store = cls(local_path=cache_path, remote_url=remote_url, persist_to_disk=persist, **kwargs)
        store._load_store_metadata()
        return store

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _info(self, message: str) -> None:
        if not self.quiet:
            logger.info(message)

    def _fetcher(self, cache: Optional[bool] = None) -> RemoteFetcher:
        return RemoteFetcher(
            self.local_path, self.remote_url,
            cache=self.persist_to_disk if cache is None else cache,
            timeout=self.fetch_timeout, quiet=self.quiet)

    def _has_backing(self) -> bool:
        return self.local_path is not None or self.remote_url is not None

    def _persisting(self) -> bool:
        return self.persist_to_disk and self.local_path is not None

    def _load_store_metadata(self) -> None:
        fetcher = self._fetcher(cache=True)
        manifest = StoreManifest.from_json(fetcher.fetch_text(MANIFEST_FILE))
        self._mode = manifest.mode
        self._disk_mode = manifest.mode
        self.seqdata_path_template = manifest.seqdata_path_template
        self.collections_path_template = manifest.collections_path_template
        self.ancillary_digests = manifest.ancillary_digests
        self._created_at = manifest.created_at

        for meta in parse_sequence_index(fetcher.fetch_text(manifest.sequence_index)):
            self._register_sequence(SequenceStub(meta))
        for meta in parse_collection_index(fetcher.fetch_text(manifest.collection_index)):
            self._collections[meta.digest] = CollectionStub(meta)

        for namespace in manifest.sequence_alias_namespaces:
            relative = f"{SEQUENCE_ALIAS_DIR}/{namespace}.tsv"
            self.sequence_aliases.load_text(namespace, fetcher.fetch_text(relative), relative)
        for namespace in manifest.collection_alias_namespaces:
            relative = f"{COLLECTION_ALIAS_DIR}/{namespace}.tsv"
            self.collection_aliases.load_text(namespace, fetcher.fetch_text(relative), relative)
        for digest in manifest.fhr_collections:
            self._fhr[digest] = FhrMetadata.from_json(fetcher.fetch_text(self._fhr_path(digest)))

        if manifest.attribute_index or self._attribute_index is not None:
            self._attribute_index = AttributeIndex.build(m for m in self.list_collections())
        self._info(f"Opened store with {len(self._sequences)} sequences "
                   f"and {len(self._collections)} collections")

    def _register_sequence(self, record: SequenceRecord) -> None:
        meta = record.metadata
        self._sequences[meta.sha512t24u] = record
        self._md5_lookup[meta.md5] = meta.sha512t24u

    def _register_collection(self, record: SequenceCollectionRecord) -> None:
        digest = record.metadata.digest
        previous = self._collections.get(digest)
        if previous is not None and self._attribute_index is not None:
            self._attribute_index.remove(previous.metadata)
        self._collections[digest] = record
        if self._attribute_index is not None:
            self._attribute_index.add(record.metadata)

    def _sequence_path(self, digest: str, template: Optional[str] = None) -> str:
        return expand_digest_template(template or self.seqdata_path_template, digest)

    def _collection_path(self, digest: str) -> str:
        return expand_digest_template(self.collections_path_template, digest)

    def _fhr_path(self, digest: str) -> str:
        return sanitize_relative_path(f"collections/{digest}{FHR_SUFFIX}")

    def _read_sequence_bytes(self, meta: SequenceMetadata) -> Tuple[bytes, bool]:
        """Read a sequence file as stored; returns (bytes, packed)."""
        if not self._has_backing():
            raise NotFoundError(
                f"Sequence {meta.sha512t24u} has no data loaded and the store has no backing storage")
        data = self._fetcher().fetch(self._sequence_path(meta.sha512t24u), cache=False)
        packed = self._disk_mode == StorageMode.ENCODED and codec.is_packable(meta.alphabet)
        expected = codec.encoded_size(meta.length, meta.alphabet, self._disk_mode)
        if len(data) != expected:
            raise DigestMismatchError(
                f"Sequence file for {meta.sha512t24u} holds {len(data)} bytes, expected {expected}")
        return data, packed

    def _verify(self, record: SequenceFull) -> None:
        sha512, md5 = digest_sequence(record.decode_bytes())
        meta = record.metadata
        if sha512 != meta.sha512t24u or md5 != meta.md5:
            raise DigestMismatchError(
                f"Loaded bytes for {meta.name} digest to {sha512}, expected {meta.sha512t24u}")

    def _load_sequence(self, digest: str) -> SequenceFull:
        """Materialize a registered sequence, promoting its stub to a full record."""
        record = self._sequences.get(digest)
        if record is None:
            raise NotFoundError(f"Sequence not found: {digest}")
        if isinstance(record, SequenceFull):
            return record
        fetcher = self._fetcher()
        relative = self._sequence_path(digest)
        was_local = fetcher.exists_locally(relative)
        data, packed = self._read_sequence_bytes(record.metadata)
        full = SequenceFull(record.metadata, data, packed).to_mode(self._mode)
        if self.verify_on_load:
            self._verify(full)
        # Cache remote bytes only after they pass the checks
        if not was_local and fetcher.cache and self.local_path is not None:
            write_bytes_file(self.local_path, relative, data)
        self._sequences[digest] = full
        return full

    def _write_sequence_file(self, record: SequenceFull, root: Optional[Path] = None,
                             mode: Optional[StorageMode] = None,
                             template: Optional[str] = None) -> None:
        root = root or self.local_path
        data = record.to_mode(mode or self._disk_mode).data
        write_bytes_file(root, self._sequence_path(record.metadata.sha512t24u, template), data)

    def _add_sequence_record(self, record: SequenceRecord, force: bool = False) -> bool:
        digest = record.metadata.sha512t24u
        if digest in self._sequences and not force:
            return False
        if isinstance(record, SequenceFull):
            record = record.to_mode(self._mode)
            if self._persisting():
                self._write_sequence_file(record)
                record = record.to_stub()
        self._register_sequence(record)
        return True

    def _resolve_sequence_key(self, key: str) -> str:
        digest = strip_sequence_prefix(key.strip())
        if digest in self._sequences:
            return digest
        if looks_like_md5(digest):
            sha512 = self._md5_lookup.get(digest.lower())
            if sha512 is not None:
                return sha512
        raise NotFoundError(f"Sequence not found: {key}")

    def _resolve_collection_key(self, key: str) -> str:
        digest = strip_collection_prefix(key.strip())
        if digest not in self._collections:
            raise NotFoundError(f"Collection not found: {key}")
        return digest

    def _ensure_collection_loaded(self, digest: str) -> SequenceCollection:
        """Member list of a collection, reading its collection file if needed."""
        record = self._collections[digest]
        if isinstance(record, CollectionFull):
            return record.collection
        fetcher = self._fetcher(cache=False)
        relative = self._collection_path(digest)
        was_local = fetcher.exists_locally(relative)
        text = fetcher.fetch_text(relative)
        _, metas = parse_collection_file(text, digest)
        if not was_local and self.local_path is not None:
            write_text_file(self.local_path, relative, text)
        for meta in metas:
            if meta.sha512t24u not in self._sequences:
                self._register_sequence(SequenceStub(meta))
        collection = SequenceCollection(record.metadata, [SequenceStub(m) for m in metas])
        self._collections[digest] = CollectionFull(collection)
        self._name_lookup[digest] = {m.name: m.sha512t24u for m in metas}
        return collection

    def _member_record(self, member: SequenceMetadata, load: bool) -> SequenceRecord:
        """A collection member with registry bytes and collection-specific naming."""
        digest = member.sha512t24u
        record = self._load_sequence(digest) if load else self._sequences[digest]
        if isinstance(record, SequenceFull):
            return SequenceFull(member, record.data, record.encoded)
        return SequenceStub(member)

    def _write_metadata_files(self, root: Optional[Path] = None,
                              mode: Optional[StorageMode] = None,
                              template: Optional[str] = None) -> None:
        """Write index files, then the manifest."""
        root = root or self.local_path
        write_text_file(root, SEQUENCE_INDEX_FILE,
                        format_sequence_index(self.list_sequences()))
        write_text_file(root, COLLECTION_INDEX_FILE,
                        format_collection_index(self.list_collections()))
        manifest = StoreManifest(
            mode=mode or self._disk_mode,
            seqdata_path_template=template or self.seqdata_path_template,
            collections_path_template=self.collections_path_template,
            ancillary_digests=self.ancillary_digests,
            attribute_index=self._attribute_index is not None,
            sequence_alias_namespaces=self.sequence_aliases.namespaces(),
            collection_alias_namespaces=self.collection_aliases.namespaces(),
            fhr_collections=sorted(self._fhr),
            created_at=self._created_at,
        )
        write_text_file(root, MANIFEST_FILE, manifest.to_json())

    def _sync(self) -> None:
        if self._persisting():
            self._write_metadata_files()

    # ------------------------------------------------------------------
    # Storage mode
    # ------------------------------------------------------------------

    @property
    def storage_mode(self) -> StorageMode:
        return self._mode

    def set_encoding_mode(self, mode: StorageMode) -> None:
        """
        Switch the in-memory storage mode.

        Every loaded sequence is re-encoded or decoded. Stubs are left as they
        are and materialize in the new mode.
        """
        if mode == self._mode:
            return
        for digest, record in self._sequences.items():
            if isinstance(record, SequenceFull):
                self._sequences[digest] = record.to_mode(mode)
        self._mode = mode
        self._info(f"Storage mode set to {mode}")

    def enable_encoding(self) -> None:
        self.set_encoding_mode(StorageMode.ENCODED)

    def disable_encoding(self) -> None:
        self.set_encoding_mode(StorageMode.RAW)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def enable_persistence(self, path: Union[str, Path]) -> None:
        """
        Start persisting to a directory.

        The current contents are written there and loaded sequences are
        demoted to stubs.
        """
        path = Path(path)
        self.write_store_to_dir(path)
        self.local_path = path
        self.persist_to_disk = True
        self._disk_mode = self._mode
        for digest, record in list(self._sequences.items()):
            if isinstance(record, SequenceFull):
                self._sequences[digest] = record.to_stub()
        self._info(f"Persistence enabled at {path}")

    def disable_persistence(self) -> None:
        """Stop writing to disk; existing files remain readable."""
        self.persist_to_disk = False

    def flush(self) -> int:
        """
        Demote loaded sequences to stubs, writing any missing sequence files.

        Returns:
            Number of sequences demoted

        Raises:
            RefgetError: If the store is not persisting to disk
        """
        if not self._persisting():
            raise RefgetError("flush requires persistence; call enable_persistence first")
        fetcher = self._fetcher()
        demoted = 0
        for digest, record in list(self._sequences.items()):
            if not isinstance(record, SequenceFull):
                continue
            if not fetcher.exists_locally(self._sequence_path(digest)):
                self._write_sequence_file(record)
            self._sequences[digest] = record.to_stub()
            demoted += 1
        self._info(f"Flushed {demoted} sequences to stubs")
        return demoted

    def write(self) -> None:
        """
        Write the whole store to its local directory.

        Raises:
            RefgetError: If the store has no local path
        """
        if self.local_path is None:
            raise RefgetError("Store has no local path; use write_store_to_dir")
        self.write_store_to_dir(self.local_path)

    def write_store_to_dir(self, path: Union[str, Path],
                           seqdata_path_template: Optional[str] = None) -> None:
        """
        Serialize the store to a directory in the current storage mode.

        Stubs stay stubs: their bytes are copied from the current backing
        storage without being kept in memory. Stubs whose bytes exist
        nowhere are indexed without data. Safe to call repeatedly.

        Args:
            path: Target directory
            seqdata_path_template: Sequence file template for the target
        """
        root = Path(path)
        root.mkdir(parents=True, exist_ok=True)
        template = sanitize_relative_path(seqdata_path_template or self.seqdata_path_template)
        mode = self._mode
        same_dir = self.local_path is not None and root.resolve() == self.local_path.resolve()
        in_place = same_dir and template == self.seqdata_path_template and mode == self._disk_mode

        for digest, record in list(self._sequences.items()):
            if isinstance(record, SequenceStub):
                if in_place:
                    continue
                if not self._has_backing():
                    logger.debug(f"Sequence {digest} has no data; writing metadata only")
                    continue
                try:
                    data, packed = self._read_sequence_bytes(record.metadata)
                except NotFoundError:
                    logger.warning(f"Sequence file for {digest} not found; writing metadata only")
                    continue
                record = SequenceFull(record.metadata, data, packed)
            self._write_sequence_file(record, root=root, mode=mode, template=template)

        for digest, record in self._collections.items():
            if isinstance(record, CollectionFull):
                write_text_file(root, self._collection_path(digest),
                                format_collection_file(record.collection))
            elif not same_dir:
                text = self._fetcher(cache=True).fetch_text(self._collection_path(digest))
                write_text_file(root, self._collection_path(digest), text)

        self.sequence_aliases.write_dir(root / SEQUENCE_ALIAS_DIR)
        self.collection_aliases.write_dir(root / COLLECTION_ALIAS_DIR)
        for digest, fhr in self._fhr.items():
            fhr.to_file(root / self._fhr_path(digest))

        self._write_metadata_files(root, mode=mode, template=template)
        if same_dir:
            self._disk_mode = mode
            self.seqdata_path_template = template
        self._info(f"Wrote store with {len(self._sequences)} sequences to {root}")

    # ------------------------------------------------------------------
    # Adding content
    # ------------------------------------------------------------------

    def add_sequence(self, record: SequenceRecord, force: bool = False) -> bool:
        """
        Register a single sequence.

        Args:
            record: Full or stub record
            force: Replace an existing record with the same digest

        Returns:
            True if added, False if the digest was already registered
        """
        added = self._add_sequence_record(record, force=force)
        if added:
            self._sync()
        return added

    def add_sequence_collection(self, collection: SequenceCollection, force: bool = False) -> bool:
        """
        Register a collection and its sequences.

        Args:
            collection: Collection to add
            force: Replace an existing collection and its sequences

        Returns:
            True if added, False if the collection was already registered
        """
        digest = collection.digest
        if digest in self._collections and not force:
            return False

        metadata = collection.metadata
        if self.ancillary_digests and not metadata.level1.has_ancillary:
            level1 = SeqColDigestLvl1.from_arrays(
                collection.names, collection.lengths, collection.sequence_digests, ancillary=True)
            metadata = SequenceCollectionMetadata(digest, metadata.n_sequences, level1, metadata.file_path)

        for record in collection.sequences:
            self._add_sequence_record(record, force=force)
        members = SequenceCollection(metadata, [SequenceStub(r.metadata) for r in collection.sequences])
        if self._persisting():
            write_text_file(self.local_path, self._collection_path(digest),
                            format_collection_file(members))
        self._register_collection(CollectionFull(members))
        self._name_lookup[digest] = {m.name: m.sha512t24u for m in (r.metadata for r in members)}
        self._sync()
        return True

    def add_sequence_collection_from_fasta(self, filepath: Union[str, Path], force: bool = False,
                                           alias_namespaces: Optional[Iterable[str]] = None
                                           ) -> Tuple[SequenceCollectionMetadata, bool]:
        """
        Import a FASTA file as a collection.

        Args:
            filepath: FASTA file, optionally gzip-compressed
            force: Re-import even if the collection exists
            alias_namespaces: Register 'namespace:token' header words in these
                namespaces as sequence aliases

        Returns:
            (collection metadata, whether it was newly added)
        """
        filepath = Path(filepath)
        headers: List[str] = []
        records: List[SequenceRecord] = []
        for header, record in iter_fasta_records(filepath, keep_data=True):
            headers.append(header)
            records.append(record)
        collection = SequenceCollection.from_records(records, file_path=filepath,
                                                     ancillary=self.ancillary_digests)
        added = self.add_sequence_collection(collection, force=force)
        if not added:
            self._info(f"Skipped {filepath.name} (already exists)")
            return self._collections[collection.digest].metadata, False

        if alias_namespaces:
            namespaces = list(alias_namespaces)
            for header, record in zip(headers, records):
                for namespace, alias in extract_header_aliases(header, namespaces):
                    self.sequence_aliases.add(namespace, alias, record.metadata.sha512t24u)
            self._sync_aliases()
        self._info(f"Added {filepath.name}: {len(records)} sequences, collection {collection.digest}")
        return self._collections[collection.digest].metadata, True

    # ------------------------------------------------------------------
    # Sequences
    # ------------------------------------------------------------------

    def get_sequence(self, digest: str) -> SequenceFull:
        """
        Get a sequence with its data, loading it if necessary.

        Args:
            digest: sha512t24u (optionally 'SQ.'-prefixed) or MD5 digest

        Raises:
            NotFoundError: If the digest is unknown or its data is unavailable
            DigestMismatchError: If loaded bytes fail verification
        """
        return self._load_sequence(self._resolve_sequence_key(digest))

    def get_sequence_metadata(self, digest: str) -> SequenceMetadata:
        """Metadata for a sequence, without loading data."""
        return self._sequences[self._resolve_sequence_key(digest)].metadata

    def get_sequence_by_name(self, collection_digest: str, name: str) -> SequenceFull:
        """
        Get a sequence by its name within a collection.

        Raises:
            NotFoundError: If the collection or name is unknown
        """
        digest = self._resolve_collection_key(collection_digest)
        self._ensure_collection_loaded(digest)
        sha512 = self._name_lookup[digest].get(name)
        if sha512 is None:
            raise NotFoundError(f"Sequence {name!r} not found in collection {digest}")
        return self._load_sequence(sha512)

    def get_substring(self, digest: str, start: int, end: int) -> str:
        """
        Extract the 0-based half-open range [start, end) of a sequence.

        Raises:
            NotFoundError: If the sequence is unknown
            RangeError: If start < 0, end > length or start > end
        """
        return self.get_sequence(digest).substring(start, end)

    def list_sequences(self) -> List[SequenceMetadata]:
        """Metadata of every sequence, sorted by digest."""
        return [self._sequences[d].metadata for d in sorted(self._sequences)]

    def iter_sequences(self) -> Iterator[SequenceRecord]:
        """Iterate over registered records (stub or full) in digest order."""
        for digest in sorted(self._sequences):
            yield self._sequences[digest]

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def get_collection(self, digest: str, load_sequences: bool = False) -> SequenceCollection:
        """
        Get a collection, reading its member list if necessary.

        Args:
            digest: Collection digest (optionally 'SC.'-prefixed)
            load_sequences: Also load every member sequence's data

        Raises:
            NotFoundError: If the collection is unknown
        """
        digest = self._resolve_collection_key(digest)
        members = self._ensure_collection_loaded(digest)
        records = [self._member_record(r.metadata, load_sequences) for r in members.sequences]
        return SequenceCollection(members.metadata, records)

    def get_collection_metadata(self, digest: str) -> SequenceCollectionMetadata:
        return self._collections[self._resolve_collection_key(digest)].metadata

    def is_collection_loaded(self, digest: str) -> bool:
        return isinstance(self._collections[self._resolve_collection_key(digest)], CollectionFull)

    def get_collection_level1(self, digest: str) -> Dict[str, str]:
        """Level-1 representation: attribute name to digest."""
        return self.get_collection_metadata(digest).level1.to_dict()

    def get_collection_level2(self, digest: str) -> Dict[str, list]:
        """Level-2 representation: attribute name to array."""
        return self.get_collection(digest).to_level2()

    def list_collections(self) -> List[SequenceCollectionMetadata]:
        """Metadata of every collection, sorted by digest."""
        return [self._collections[d].metadata for d in sorted(self._collections)]

    def iter_collections(self) -> Iterator[SequenceCollection]:
        """Iterate over collections in digest order, reading member lists."""
        for digest in sorted(self._collections):
            yield self.get_collection(digest)

    # ------------------------------------------------------------------
    # Comparison and attribute lookup
    # ------------------------------------------------------------------

    def compare(self, digest_a: str, digest_b: str) -> SeqColComparison:
        """Compare two registered collections."""
        return compare_collections(self.get_collection(digest_a), self.get_collection(digest_b))

    def enable_attribute_index(self) -> None:
        """Build and maintain the attribute index."""
        self._attribute_index = AttributeIndex.build(r.metadata for r in self._collections.values())
        self._sync()

    def disable_attribute_index(self) -> None:
        self._attribute_index = None
        self._sync()

    @property
    def attribute_index_enabled(self) -> bool:
        return self._attribute_index is not None

    def find_collections_by_attribute(self, attribute: str, attribute_digest: str) -> List[str]:
        """
        Digests of all collections whose attribute has the given digest.

        Args:
            attribute: Level-1 or ancillary attribute name, e.g. 'lengths'
            attribute_digest: Digest of that attribute

        Returns:
            Sorted collection digests

        Raises:
            ValueError: If the attribute is not searchable
            RefgetError: If a linear scan would exceed attribute_search_limit
        """
        if self._attribute_index is not None:
            return self._attribute_index.find(attribute, attribute_digest)
        count = len(self._collections)
        if 0 < self.attribute_search_limit < count:
            raise RefgetError(
                f"Attribute search over {count} collections exceeds the limit of "
                f"{self.attribute_search_limit}; enable the attribute index or raise the limit")
        return scan_collections((r.metadata for r in self._collections.values()),
                                attribute, attribute_digest)

    def get_attribute(self, attribute: str, attribute_digest: str) -> list:
        """
        The Level-2 array behind an attribute digest.

        Raises:
            NotFoundError: If no collection carries this attribute digest
        """
        matches = self.find_collections_by_attribute(attribute, attribute_digest)
        if not matches:
            raise NotFoundError(f"No collection has {attribute} digest {attribute_digest}")
        return self.get_collection_level2(matches[0])[attribute]

    # ------------------------------------------------------------------
    # Aliases
    # ------------------------------------------------------------------

    def _sync_aliases(self) -> None:
        if self._persisting():
            self.sequence_aliases.write_dir(self.local_path / SEQUENCE_ALIAS_DIR)
            self.collection_aliases.write_dir(self.local_path / COLLECTION_ALIAS_DIR)
            self._write_metadata_files()

    def add_sequence_alias(self, namespace: str, alias: str, digest: str) -> None:
        """
        Point an alias at a sequence.

        Raises:
            NotFoundError: If the sequence is unknown
        """
        self.sequence_aliases.add(namespace, alias, self._resolve_sequence_key(digest))
        self._sync_aliases()

    def get_sequence_by_alias(self, namespace: str, alias: str) -> SequenceFull:
        """
        Raises:
            NotFoundError: If the alias is not registered
        """
        digest = self.sequence_aliases.resolve(namespace, alias)
        if digest is None:
            raise NotFoundError(f"Sequence alias not found: {namespace}:{alias}")
        return self.get_sequence(digest)

    def get_aliases_for_sequence(self, digest: str) -> List[Tuple[str, str]]:
        return self.sequence_aliases.reverse_lookup(self._resolve_sequence_key(digest))

    def remove_sequence_alias(self, namespace: str, alias: str) -> bool:
        removed = self.sequence_aliases.remove(namespace, alias)
        if removed:
            self._sync_aliases()
        return removed

    def list_sequence_alias_namespaces(self) -> List[str]:
        return self.sequence_aliases.namespaces()

    def list_sequence_aliases(self, namespace: str) -> List[str]:
        return self.sequence_aliases.list_aliases(namespace)

    def load_sequence_aliases(self, namespace: str, filepath: Union[str, Path]) -> int:
        """Load ``alias<TAB>digest`` rows; returns the number loaded."""
        count = self.sequence_aliases.load_tsv(namespace, filepath, self._resolve_sequence_key)
        self._sync_aliases()
        return count

    def add_collection_alias(self, namespace: str, alias: str, digest: str) -> None:
        """
        Point an alias at a collection.

        Raises:
            NotFoundError: If the collection is unknown
        """
        self.collection_aliases.add(namespace, alias, self._resolve_collection_key(digest))
        self._sync_aliases()

    def get_collection_by_alias(self, namespace: str, alias: str) -> SequenceCollection:
        digest = self.collection_aliases.resolve(namespace, alias)
        if digest is None:
            raise NotFoundError(f"Collection alias not found: {namespace}:{alias}")
        return self.get_collection(digest)

    def get_aliases_for_collection(self, digest: str) -> List[Tuple[str, str]]:
        return self.collection_aliases.reverse_lookup(self._resolve_collection_key(digest))

    def remove_collection_alias(self, namespace: str, alias: str) -> bool:
        removed = self.collection_aliases.remove(namespace, alias)
        if removed:
            self._sync_aliases()
        return removed

    def list_collection_alias_namespaces(self) -> List[str]:
        return self.collection_aliases.namespaces()

    def list_collection_aliases(self, namespace: str) -> List[str]:
        return self.collection_aliases.list_aliases(namespace)

    def load_collection_aliases(self, namespace: str, filepath: Union[str, Path]) -> int:
        count = self.collection_aliases.load_tsv(namespace, filepath, self._resolve_collection_key)
        self._sync_aliases()
        return count

    # ------------------------------------------------------------------
    # FHR metadata
    # ------------------------------------------------------------------

    def set_fhr_metadata(self, collection_digest: str, metadata: FhrMetadata) -> None:
        """
        Attach FHR metadata to a collection.

        Raises:
            NotFoundError: If the collection is unknown
        """
        digest = self._resolve_collection_key(collection_digest)
        self._fhr[digest] = metadata
        if self._persisting():
            metadata.to_file(self.local_path / self._fhr_path(digest))
            self._write_metadata_files()

    def load_fhr_metadata(self, collection_digest: str, filepath: Union[str, Path]) -> FhrMetadata:
        """Read FHR JSON from a file and attach it to a collection."""
        metadata = FhrMetadata.from_file(filepath)
        self.set_fhr_metadata(collection_digest, metadata)
        return metadata

    def get_fhr_metadata(self, collection_digest: str) -> Optional[FhrMetadata]:
        """FHR metadata for a collection, or None if none is attached."""
        return self._fhr.get(self._resolve_collection_key(collection_digest))

    def remove_fhr_metadata(self, collection_digest: str) -> bool:
        digest = self._resolve_collection_key(collection_digest)
        if self._fhr.pop(digest, None) is None:
            return False
        if self._persisting():
            sidecar = self.local_path / self._fhr_path(digest)
            if sidecar.exists():
                sidecar.unlink()
            self._write_metadata_files()
        return True

    def list_fhr_metadata(self) -> List[str]:
        return sorted(self._fhr)

    # ------------------------------------------------------------------
    # Regions and export
    # ------------------------------------------------------------------

    def _name_table(self, collection_digest: str) -> Tuple[str, Dict[str, str]]:
        digest = self._resolve_collection_key(collection_digest)
        self._ensure_collection_loaded(digest)
        return digest, self._name_lookup[digest]

    def substrings_from_regions(self, collection_digest: str,
                                bed_file: Union[str, Path]) -> List[RetrievedSequence]:
        """
        Extract each BED region of a collection.

        Rows naming an unknown chromosome or falling outside the sequence are
        skipped.

        Returns:
            RetrievedSequence per retained row, in file order
        """
        _, names = self._name_table(collection_digest)
        lengths = {name: self._sequences[sha].metadata.length for name, sha in names.items()}
        return extract_regions(
            read_bed_regions(bed_file), lengths,
            lambda chrom, start, end: self._load_sequence(names[chrom]).substring(start, end))

    def export_fasta_from_regions(self, collection_digest: str, bed_file: Union[str, Path],
                                  output_path: Union[str, Path]) -> None:
        """
        Write BED regions as FASTA.

        Consecutive regions on the same chromosome are concatenated under one
        header ``>{name} {length} {alphabet} {sha512t24u} {md5}``. The output
        is gzip-compressed when the path ends in .gz.
        """
        _, names = self._name_table(collection_digest)
        results = self.substrings_from_regions(collection_digest, bed_file)
        with open_text_for_write(output_path) as out:
            current = None
            for result in results:
                if result.chrom_name != current:
                    if current is not None:
                        out.write("\n")
                    meta = self._sequences[names[result.chrom_name]].metadata
                    out.write(f">{result.chrom_name} {meta.length} {meta.alphabet} "
                              f"{meta.sha512t24u} {meta.md5}\n")
                    current = result.chrom_name
                out.write(result.sequence)
            if current is not None:
                out.write("\n")

    def _load_for_export(self, digest: str) -> SequenceFull:
        try:
            return self._load_sequence(digest)
        except NotFoundError as e:
            raise StoreIOError(f"Sequence data unavailable for {digest}: {e}") from e

    def export_fasta(self, collection_digest: str, output_path: Union[str, Path],
                     sequence_names: Optional[List[str]] = None, line_width: int = 80) -> None:
        """
        Write a collection (or some of its sequences) as FASTA.

        Args:
            collection_digest: Collection to export
            output_path: Output file, gzip-compressed if it ends in .gz
            sequence_names: Names to export in this order; all if None
            line_width: Bases per line

        Raises:
            NotFoundError: If a requested name is not in the collection
            StoreIOError: If sequence data is unavailable
        """
        digest = self._resolve_collection_key(collection_digest)
        members = self._ensure_collection_loaded(digest).sequences
        if sequence_names is not None:
            by_name = {r.metadata.name: r for r in members}
            missing = [n for n in sequence_names if n not in by_name]
            if missing:
                raise NotFoundError(f"Sequences not in collection {digest}: {', '.join(missing)}")
            members = [by_name[n] for n in sequence_names]
        with open_text_for_write(output_path) as out:
            for member in members:
                full = self._load_for_export(member.metadata.sha512t24u)
                write_fasta_record(out, member.metadata, full.decode(), line_width)

    def export_fasta_by_digests(self, digests: List[str], output_path: Union[str, Path],
                                line_width: int = 80) -> None:
        """Write the given sequences as FASTA, in the order given."""
        resolved = [self._resolve_sequence_key(d) for d in digests]
        with open_text_for_write(output_path) as out:
            for digest in resolved:
                full = self._load_for_export(digest)
                write_fasta_record(out, full.metadata, full.decode(), line_width)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def stats(self) -> Dict[str, object]:
        """Counts, storage mode and on-disk footprint."""
        return {
            'n_sequences': len(self._sequences),
            'n_sequences_loaded': sum(isinstance(r, SequenceFull) for r in self._sequences.values()),
            'n_collections': len(self._collections),
            'n_collections_loaded': sum(isinstance(r, CollectionFull) for r in self._collections.values()),
            'storage_mode': str(self._mode),
            'total_disk_size': directory_size(self.local_path),
        }

    def __len__(self) -> int:
        return len(self._sequences)

    def __iter__(self) -> Iterator[SequenceMetadata]:
        return iter(self.list_sequences())

    def __contains__(self, digest: str) -> bool:
        try:
            self._resolve_sequence_key(digest)
        except NotFoundError:
            return False
        return True

    def __repr__(self) -> str:
        if self.remote_url:
            location = f"remote={self.remote_url}, cache={self.local_path}"
        elif self.local_path is not None:
            location = f"local_path={self.local_path}"
        else:
            location = "memory-only"
        return (f"RefgetStore(n_sequences={len(self._sequences)}, "
                f"n_collections={len(self._collections)}, mode={self._mode}, {location})")
