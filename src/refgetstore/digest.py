"""
GA4GH refget and seqcol digest computation.

Sequence digests are computed over the uppercased sequence bytes. Collection
digests are computed over canonical JSON (sorted keys, no insignificant
whitespace, UTF-8) so that they agree byte-for-byte with every other
refget/seqcol implementation.
"""

from typing import Any, Dict, List, Sequence, Tuple, Union
import base64
import hashlib
import json

from .utils import validate_input


SEQUENCE_PREFIX = 'SQ.'

# Level-1 attributes that define collection identity
INHERENT_ATTRIBUTES = ('names', 'sequences')
LEVEL1_ATTRIBUTES = ('lengths', 'names', 'sequences')
ANCILLARY_ATTRIBUTES = ('name_length_pairs', 'sorted_name_length_pairs', 'sorted_sequences')


def sha512t24u_digest(data: Union[str, bytes]) -> str:
    """
    Compute the GA4GH sha512t24u digest of raw bytes.

    The digest is the first 24 bytes of SHA-512, base64url encoded without
    padding (always 32 characters). No case folding is applied here.
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    return truncated_sha512_to_str(hashlib.sha512(data).digest())


def truncated_sha512_to_str(sha512: bytes) -> str:
    """Render a full SHA-512 digest in sha512t24u form."""
    return base64.urlsafe_b64encode(sha512[:24]).decode('ascii').rstrip('=')


def md5_digest(data: Union[str, bytes]) -> str:
    """Hex MD5 digest of raw bytes."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.md5(data).hexdigest()


def canonical_json(obj: Any) -> str:
    """
    Serialize an object as canonical JSON.

    Keys are sorted, separators carry no whitespace and non-ASCII characters
    are emitted as-is, matching the RFC-8785 form used by seqcol for the
    strings, integers, arrays and objects that appear in collections.
    """
    return json.dumps(obj, separators=(',', ':'), sort_keys=True, ensure_ascii=False)


def digest_json(obj: Any) -> str:
    """sha512t24u digest of the canonical JSON form of an object."""
    return sha512t24u_digest(canonical_json(obj).encode('utf-8'))


def digest_sequence(data: Union[str, bytes]) -> Tuple[str, str]:
    """
    Compute the (sha512t24u, md5) digests of a sequence.

    Args:
        data: Sequence as str or bytes, any case

    Returns:
        Tuple of (sha512t24u, md5 hex)
    """
    upper = validate_input(data).upper()
    return sha512t24u_digest(upper), md5_digest(upper)


def strip_sequence_prefix(digest: str) -> str:
    """Remove an optional 'SQ.' or 'ga4gh:SQ.' prefix (case-insensitive)."""
    lowered = digest.lower()
    for prefix in ('ga4gh:sq.', 'sq.'):
        if lowered.startswith(prefix):
            return digest[len(prefix):]
    return digest


def strip_collection_prefix(digest: str) -> str:
    """Remove an optional 'SC.' or 'ga4gh:SC.' prefix (case-insensitive)."""
    lowered = digest.lower()
    for prefix in ('ga4gh:sc.', 'sc.'):
        if lowered.startswith(prefix):
            return digest[len(prefix):]
    return digest


def looks_like_md5(key: str) -> bool:
    """True for 32-character hexadecimal strings."""
    if len(key) != 32:
        return False
    try:
        int(key, 16)
    except ValueError:
        return False
    return True


def digest_level1(names: Sequence[str], lengths: Sequence[int],
                  sequence_digests: Sequence[str]) -> Dict[str, str]:
    """
    Compute seqcol Level-1 digests for the three core arrays.

    Args:
        names: Sequence names in collection order
        lengths: Sequence lengths in collection order
        sequence_digests: sha512t24u digests, with or without the 'SQ.' prefix

    Returns:
        Dict with 'names', 'lengths' and 'sequences' digests
    """
    if not (len(names) == len(lengths) == len(sequence_digests)):
        raise ValueError("names, lengths and sequences must have the same length")
    return {
        'names': digest_json(list(names)),
        'lengths': digest_json([int(length) for length in lengths]),
        'sequences': digest_json(prefixed_sequence_digests(sequence_digests)),
    }


def digest_collection(level1: Dict[str, str]) -> str:
    """
    Compute the top-level collection digest from Level-1 digests.

    Only the inherent attributes (names and sequences) take part; the lengths
    digest is implied by the sequences.
    """
    return digest_json({attr: level1[attr] for attr in INHERENT_ATTRIBUTES})


def prefixed_sequence_digests(sequence_digests: Sequence[str]) -> List[str]:
    """Add the 'SQ.' prefix to each sequence digest that lacks it."""
    return [SEQUENCE_PREFIX + strip_sequence_prefix(d) for d in sequence_digests]


def name_length_pairs(names: Sequence[str], lengths: Sequence[int]) -> List[Dict[str, Any]]:
    """Build the seqcol name_length_pairs array."""
    return [{'length': int(length), 'name': name} for name, length in zip(names, lengths)]


def digest_ancillary(names: Sequence[str], lengths: Sequence[int],
                     sequence_digests: Sequence[str]) -> Dict[str, str]:
    """
    Compute the ancillary seqcol digests.

    - name_length_pairs: digest of the ordered array of {length, name} objects
    - sorted_name_length_pairs: digest of the sorted digests of each pair
      object, so collections that differ only in order share it
    - sorted_sequences: digest of the sorted 'SQ.' sequence digests

    Returns:
        Dict keyed by ancillary attribute name
    """
    pairs = name_length_pairs(names, lengths)
    return {
        'name_length_pairs': digest_json(pairs),
        'sorted_name_length_pairs': digest_json(sorted(digest_json(p) for p in pairs)),
        'sorted_sequences': digest_json(sorted(prefixed_sequence_digests(sequence_digests))),
    }
