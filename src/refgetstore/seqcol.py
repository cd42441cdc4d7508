"""
Sequence collection comparison and attribute lookup.

Comparison follows the seqcol comparison function: it reports which Level-1
attributes the two collections share and, for each shared attribute, how
many elements overlap and whether the shared elements appear in the same
order. The attribute index maps attribute digests back to the collections
that carry them.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .digest import ANCILLARY_ATTRIBUTES, LEVEL1_ATTRIBUTES, canonical_json, digest_json
from .models import SequenceCollection, SequenceCollectionMetadata


SEARCHABLE_ATTRIBUTES = LEVEL1_ATTRIBUTES + ANCILLARY_ATTRIBUTES


@dataclass
class SeqColComparison:
    """Result of comparing collection A with collection B."""
    digests: Dict[str, str]
    attributes: Dict[str, List[str]]
    array_elements: Dict[str, Dict[str, object]]
    level1_match: Dict[str, bool] = field(default_factory=dict)

    def relationship(self) -> str:
        """
        Classify how the two collections relate.

        Returns:
            One of 'identical', 'same_sequences', 'reordered', 'subset',
            'superset', 'overlapping' or 'disjoint', judged on the sequences
            attribute
        """
        if self.digests['a'] == self.digests['b']:
            return 'identical'
        counts = self.array_elements
        a_count = counts['a_count'].get('sequences', 0)
        b_count = counts['b_count'].get('sequences', 0)
        shared = counts['a_and_b_count'].get('sequences', 0)
        if shared == 0:
            return 'disjoint'
        if shared == a_count == b_count:
            return 'reordered' if counts['a_and_b_same_order'].get('sequences') is False else 'same_sequences'
        if shared == a_count:
            return 'subset'
        if shared == b_count:
            return 'superset'
        return 'overlapping'

    def to_dict(self) -> Dict[str, object]:
        return {
            'digests': dict(self.digests),
            'attributes': {k: list(v) for k, v in self.attributes.items()},
            'array_elements': {k: dict(v) for k, v in self.array_elements.items()},
        }


def comparison_arrays(collection: SequenceCollection) -> Dict[str, List[str]]:
    """
    String arrays compared element-wise, ancillary arrays included when the
    collection carries ancillary digests.
    """
    sequences = [f"SQ.{d}" for d in collection.sequence_digests]
    arrays = {
        'names': collection.names,
        'lengths': [str(length) for length in collection.lengths],
        'sequences': sequences,
    }
    level1 = collection.metadata.level1
    if level1.sorted_sequences is not None:
        arrays['sorted_sequences'] = sorted(sequences)
    if level1.name_length_pairs is not None:
        arrays['name_length_pairs'] = [
            canonical_json({'length': length, 'name': name})
            for name, length in zip(collection.names, collection.lengths)]
    if level1.sorted_name_length_pairs is not None:
        arrays['sorted_name_length_pairs'] = sorted(
            digest_json({'length': length, 'name': name})
            for name, length in zip(collection.names, collection.lengths))
    return arrays


def compare_elements(a: List[str], b: List[str]) -> Tuple[int, Optional[bool]]:
    """
    Compare two arrays element-wise.

    Each array is filtered to the elements present in the other. The overlap
    is the smaller filtered length. Order is undefined (None) with fewer than
    two shared elements or when duplicates leave the filtered arrays with
    different lengths.

    Returns:
        (overlap count, same order)
    """
    set_a, set_b = set(a), set(b)
    filtered_a = [x for x in a if x in set_b]
    filtered_b = [x for x in b if x in set_a]
    overlap = min(len(filtered_a), len(filtered_b))
    if overlap < 2 or len(filtered_a) != len(filtered_b):
        return overlap, None
    return overlap, filtered_a == filtered_b


def compare_collections(a: SequenceCollection, b: SequenceCollection) -> SeqColComparison:
    """Compare two loaded collections."""
    arrays_a = comparison_arrays(a)
    arrays_b = comparison_arrays(b)
    keys = sorted(set(arrays_a) | set(arrays_b))

    a_and_b = [k for k in keys if k in arrays_a and k in arrays_b]
    attributes = {
        'a_only': [k for k in keys if k in arrays_a and k not in arrays_b],
        'b_only': [k for k in keys if k in arrays_b and k not in arrays_a],
        'a_and_b': a_and_b,
    }

    overlap_counts: Dict[str, int] = {}
    same_order: Dict[str, Optional[bool]] = {}
    for attr in a_and_b:
        overlap_counts[attr], same_order[attr] = compare_elements(arrays_a[attr], arrays_b[attr])

    level1_a = a.metadata.level1.to_dict()
    level1_b = b.metadata.level1.to_dict()
    return SeqColComparison(
        digests={'a': a.digest, 'b': b.digest},
        attributes=attributes,
        array_elements={
            'a_count': {k: len(v) for k, v in sorted(arrays_a.items())},
            'b_count': {k: len(v) for k, v in sorted(arrays_b.items())},
            'a_and_b_count': overlap_counts,
            'a_and_b_same_order': same_order,
        },
        level1_match={attr: level1_a[attr] == level1_b[attr]
                      for attr in a_and_b if attr in level1_a and attr in level1_b},
    )


def validate_attribute(attribute: str) -> str:
    """
    Check that an attribute can be searched.

    Raises:
        ValueError: If the attribute is not a Level-1 or ancillary attribute
    """
    if attribute not in SEARCHABLE_ATTRIBUTES:
        raise ValueError(
            f"Unknown attribute {attribute!r}; expected one of {', '.join(SEARCHABLE_ATTRIBUTES)}")
    return attribute


class AttributeIndex:
    """
    Reverse index from (attribute, attribute digest) to collection digests.

    Updated on every collection add. Answers the same queries as
    scan_collections without visiting every collection.
    """

    def __init__(self):
        self._index: Dict[str, Dict[str, Set[str]]] = {attr: {} for attr in SEARCHABLE_ATTRIBUTES}

    def add(self, metadata: SequenceCollectionMetadata) -> None:
        for attr, digest in metadata.level1.to_dict().items():
            self._index[attr].setdefault(digest, set()).add(metadata.digest)

    def remove(self, metadata: SequenceCollectionMetadata) -> None:
        for attr, digest in metadata.level1.to_dict().items():
            members = self._index[attr].get(digest)
            if members is not None:
                members.discard(metadata.digest)
                if not members:
                    del self._index[attr][digest]

    def find(self, attribute: str, attribute_digest: str) -> List[str]:
        return sorted(self._index[validate_attribute(attribute)].get(attribute_digest, ()))

    @classmethod
    def build(cls, metadatas: Iterable[SequenceCollectionMetadata]) -> "AttributeIndex":
        index = cls()
        for metadata in metadatas:
            index.add(metadata)
        return index


def scan_collections(metadatas: Iterable[SequenceCollectionMetadata], attribute: str,
                     attribute_digest: str) -> List[str]:
    """Linear-scan counterpart of AttributeIndex.find."""
    validate_attribute(attribute)
    return sorted(m.digest for m in metadatas if m.level1.get(attribute) == attribute_digest)
