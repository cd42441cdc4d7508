"""
FAIR Headers Reference (FHR) genome metadata.

FHR metadata describes the provenance of an assembly and is attached to a
collection digest. It is not content-addressed. Field names follow the FHR
1.0 JSON schema (camelCase); unknown fields are kept and written back.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Union
import json
from pathlib import Path

from .utils import FormatError, atomic_write_text


# Python attribute name -> JSON key
_JSON_KEYS = {
    'schema': 'schema',
    'schema_version': 'schemaVersion',
    'genome': 'genome',
    'taxon': 'taxon',
    'version': 'version',
    'metadata_author': 'metadataAuthor',
    'assembly_author': 'assemblyAuthor',
    'date_created': 'dateCreated',
    'masking': 'masking',
    'checksum': 'checksum',
    'genome_synonym': 'genomeSynonym',
    'accession_id': 'accessionID',
    'instrument': 'instrument',
    'scholarly_article': 'scholarlyArticle',
    'related_link': 'relatedLink',
    'funding': 'funding',
    'license': 'license',
    'seqcol_digest': 'seqcolDigest',
}


@dataclass
class FhrMetadata:
    """
    Provenance metadata for one genome assembly.

    Structured fields (taxon, authors, accession) are kept as plain JSON
    values: dicts such as ``{"name": ..., "uri": ...}`` or lists of them.
    """
    schema: Optional[str] = None
    schema_version: Optional[Union[str, float]] = None
    genome: Optional[str] = None
    taxon: Optional[Dict[str, Any]] = None
    version: Optional[str] = None
    metadata_author: List[Dict[str, Any]] = field(default_factory=list)
    assembly_author: List[Dict[str, Any]] = field(default_factory=list)
    date_created: Optional[str] = None
    masking: Optional[str] = None
    checksum: Optional[str] = None
    genome_synonym: List[str] = field(default_factory=list)
    accession_id: List[Dict[str, Any]] = field(default_factory=list)
    instrument: List[str] = field(default_factory=list)
    scholarly_article: List[str] = field(default_factory=list)
    related_link: List[str] = field(default_factory=list)
    funding: List[str] = field(default_factory=list)
    license: Optional[str] = None
    seqcol_digest: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FhrMetadata":
        """
        Build from an FHR JSON object.

        Raises:
            FormatError: If data is not a JSON object
        """
        if not isinstance(data, dict):
            raise FormatError(f"FHR metadata must be a JSON object, got {type(data).__name__}")
        by_key = {json_key: attr for attr, json_key in _JSON_KEYS.items()}
        kwargs: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in data.items():
            if key in by_key:
                kwargs[by_key[key]] = value
            else:
                extra[key] = value
        return cls(extra=extra, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """FHR JSON object, omitting empty fields."""
        result: Dict[str, Any] = {}
        for f in fields(self):
            if f.name == 'extra':
                continue
            value = getattr(self, f.name)
            if value is None or value == [] or value == {}:
                continue
            result[_JSON_KEYS[f.name]] = value
        result.update(self.extra)
        return result

    @classmethod
    def from_json(cls, text: str) -> "FhrMetadata":
        try:
            return cls.from_dict(json.loads(text))
        except json.JSONDecodeError as e:
            raise FormatError(f"Invalid FHR JSON: {e}") from e

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_file(cls, filepath: Union[str, Path]) -> "FhrMetadata":
        """
        Read FHR metadata from a JSON file.

        Raises:
            FileNotFoundError: If the file does not exist
            FormatError: If the file is not valid FHR JSON
        """
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"FHR metadata file not found: {filepath}")
        return cls.from_json(filepath.read_text(encoding='utf-8'))

    def to_file(self, filepath: Union[str, Path]) -> None:
        atomic_write_text(filepath, self.to_json() + "\n")
