"""
Tests for collection comparison and attribute lookup.
"""

import pytest
import sys
import os

# Add the src directory to the path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from refgetstore.models import SequenceCollection, digest_sequence_record
from refgetstore.seqcol import (
    AttributeIndex, compare_collections, compare_elements, scan_collections,
    validate_attribute,
)


def make_collection(pairs, ancillary=True):
    records = [digest_sequence_record(name, seq) for name, seq in pairs]
    return SequenceCollection.from_records(records, ancillary=ancillary)


BASE = [("chrX", "TTGGGGAA"), ("chr1", "GGAA"), ("chr2", "GCGC")]


class TestCompareElements:
    """Test element-wise array comparison."""

    def test_same_order(self):
        assert compare_elements(["a", "b", "c"], ["a", "b"]) == (2, True)

    def test_different_order(self):
        assert compare_elements(["a", "b"], ["b", "a"]) == (2, False)

    def test_order_undefined_below_two_shared(self):
        assert compare_elements(["a"], ["a"]) == (1, None)
        assert compare_elements(["a", "b"], ["c"]) == (0, None)

    def test_order_undefined_with_duplicates(self):
        assert compare_elements(["a", "a", "b"], ["a", "b"]) == (2, None)


class TestCompareCollections:
    """Test collection comparison results."""

    def test_identical(self):
        result = compare_collections(make_collection(BASE), make_collection(BASE))
        assert result.relationship() == "identical"
        assert result.attributes["a_only"] == []
        assert all(result.level1_match.values())

    def test_reordered(self):
        result = compare_collections(make_collection(BASE), make_collection(BASE[::-1]))
        assert result.relationship() == "reordered"
        assert result.array_elements["a_and_b_same_order"]["sequences"] is False
        assert result.array_elements["a_and_b_count"]["names"] == 3

    def test_subset_and_superset(self):
        small = make_collection(BASE[:2])
        big = make_collection(BASE)
        assert compare_collections(small, big).relationship() == "subset"
        assert compare_collections(big, small).relationship() == "superset"

    def test_renamed_sequences_share_sequences_only(self):
        renamed = [("X", "TTGGGGAA"), ("1", "GGAA"), ("2", "GCGC")]
        result = compare_collections(make_collection(BASE), make_collection(renamed))
        assert result.relationship() == "same_sequences"
        assert result.array_elements["a_and_b_count"]["names"] == 0
        assert result.level1_match["sequences"]
        assert not result.level1_match["names"]

    def test_disjoint(self):
        result = compare_collections(make_collection(BASE), make_collection([("p", "MKV")]))
        assert result.relationship() == "disjoint"

    def test_ancillary_attributes_one_sided(self):
        result = compare_collections(make_collection(BASE), make_collection(BASE, ancillary=False))
        assert "sorted_sequences" in result.attributes["a_only"]
        assert result.attributes["b_only"] == []

    def test_to_dict(self):
        data = compare_collections(make_collection(BASE), make_collection(BASE[:1])).to_dict()
        assert set(data) == {"digests", "attributes", "array_elements"}
        assert data["array_elements"]["a_count"]["sequences"] == 3
        assert data["array_elements"]["b_count"]["sequences"] == 1


class TestAttributeLookup:
    """Test index and scan agree."""

    def _metadatas(self):
        return [make_collection(BASE).metadata,
                make_collection(BASE[::-1]).metadata,
                make_collection(BASE[:2]).metadata]

    def test_index_matches_scan(self):
        metadatas = self._metadatas()
        index = AttributeIndex.build(metadatas)
        for metadata in metadatas:
            for attr, digest in metadata.level1.to_dict().items():
                assert index.find(attr, digest) == scan_collections(metadatas, attr, digest)

    def test_sorted_sequences_shared_by_reordering(self):
        metadatas = self._metadatas()
        digest = metadatas[0].level1.sorted_sequences
        assert scan_collections(metadatas, "sorted_sequences", digest) == sorted(
            [metadatas[0].digest, metadatas[1].digest])

    def test_remove(self):
        metadatas = self._metadatas()
        index = AttributeIndex.build(metadatas)
        index.remove(metadatas[0])
        assert index.find("names", metadatas[0].level1.names) == []

    def test_unknown_attribute(self):
        with pytest.raises(ValueError):
            validate_attribute("colors")
        with pytest.raises(ValueError):
            AttributeIndex().find("colors", "x")
