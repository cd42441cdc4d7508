"""
Tests for refget and seqcol digest computation.
"""

import pytest
import sys
import os

# Add the src directory to the path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from refgetstore.digest import (
    sha512t24u_digest, md5_digest, canonical_json, digest_json, digest_sequence,
    digest_level1, digest_collection, digest_ancillary, strip_sequence_prefix,
    strip_collection_prefix, looks_like_md5, prefixed_sequence_digests,
)


BASE_NAMES = ["chrX", "chr1", "chr2"]
BASE_SEQUENCES = ["TTGGGGAA", "GGAA", "GCGC"]


class TestSequenceDigests:
    """Test sha512t24u and md5 sequence digests."""

    def test_known_acgt_digests(self):
        """Test the published digests of ACGT."""
        sha512, md5 = digest_sequence("ACGT")
        assert sha512 == "aKF498dAxcJAqme6QYQ7EZ07-fiw8Kw2"
        assert md5 == "f1f8f4bf413b16ad135722aa4591043e"

    def test_known_chrx_digests(self):
        sha512, md5 = digest_sequence(b"TTGGGGAA")
        assert sha512 == "iYtREV555dUFKg2_agSJW6suquUyPpMw"
        assert md5 == "5f63cfaa3ef61f88c9635fb9d18ec945"

    def test_digest_is_case_insensitive(self):
        """Sequences are uppercased before hashing."""
        assert digest_sequence("acgt") == digest_sequence("ACGT")
        assert digest_sequence("AcGt") == digest_sequence("ACGT")

    def test_raw_helpers_do_not_fold_case(self):
        assert sha512t24u_digest("acgt") != sha512t24u_digest("ACGT")
        assert md5_digest("ACGT") == "f1f8f4bf413b16ad135722aa4591043e"

    def test_sha512t24u_is_32_chars_without_padding(self):
        digest = sha512t24u_digest(b"")
        assert len(digest) == 32
        assert "=" not in digest


class TestCanonicalJson:
    """Test canonical JSON serialization."""

    def test_sorted_keys_and_compact_separators(self):
        assert canonical_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_non_ascii_emitted_verbatim(self):
        assert canonical_json(["ä"]) == '["ä"]'

    def test_digest_json_matches_manual_digest(self):
        assert digest_json(["chr1"]) == sha512t24u_digest('["chr1"]')


class TestCollectionDigests:
    """Test seqcol Level-1 and top-level digests."""

    def _level1(self):
        digests = [digest_sequence(s)[0] for s in BASE_SEQUENCES]
        lengths = [len(s) for s in BASE_SEQUENCES]
        return digest_level1(BASE_NAMES, lengths, digests)

    def test_base_fasta_level1(self):
        """Test Level-1 digests of the three-sequence reference collection."""
        level1 = self._level1()
        assert level1["sequences"] == "0uDQVLuHaOZi1u76LjV__yrVUIz9Bwhr"
        assert level1["names"] == "Fw1r9eRxfOZD98KKrhlYQNEdSRHoVxAG"
        assert level1["lengths"] == "cGRMZIb3AVgkcAfNv39RN7hnT5Chk7RX"

    def test_sequence_prefix_is_optional(self):
        digests = [digest_sequence(s)[0] for s in BASE_SEQUENCES]
        lengths = [len(s) for s in BASE_SEQUENCES]
        prefixed = prefixed_sequence_digests(digests)
        assert digest_level1(BASE_NAMES, lengths, prefixed) == digest_level1(BASE_NAMES, lengths, digests)

    def test_collection_digest_ignores_lengths(self):
        """Only names and sequences define collection identity."""
        level1 = self._level1()
        altered = dict(level1, lengths="something-else")
        assert digest_collection(altered) == digest_collection(level1)

    def test_collection_digest_depends_on_order(self):
        digests = [digest_sequence(s)[0] for s in BASE_SEQUENCES]
        lengths = [len(s) for s in BASE_SEQUENCES]
        forward = digest_collection(digest_level1(BASE_NAMES, lengths, digests))
        reverse = digest_collection(digest_level1(BASE_NAMES[::-1], lengths[::-1], digests[::-1]))
        assert forward != reverse

    def test_mismatched_array_lengths_raise(self):
        with pytest.raises(ValueError):
            digest_level1(["a", "b"], [1], ["x", "y"])

    def test_sorted_ancillary_digests_ignore_order(self):
        digests = [digest_sequence(s)[0] for s in BASE_SEQUENCES]
        lengths = [len(s) for s in BASE_SEQUENCES]
        forward = digest_ancillary(BASE_NAMES, lengths, digests)
        reverse = digest_ancillary(BASE_NAMES[::-1], lengths[::-1], digests[::-1])
        assert forward["sorted_sequences"] == reverse["sorted_sequences"]
        assert forward["sorted_name_length_pairs"] == reverse["sorted_name_length_pairs"]
        assert forward["name_length_pairs"] != reverse["name_length_pairs"]


class TestDigestKeys:
    """Test prefix handling and MD5 recognition."""

    def test_strip_sequence_prefix(self):
        assert strip_sequence_prefix("SQ.abc") == "abc"
        assert strip_sequence_prefix("ga4gh:SQ.abc") == "abc"
        assert strip_sequence_prefix("abc") == "abc"

    def test_strip_collection_prefix(self):
        assert strip_collection_prefix("SC.xyz") == "xyz"
        assert strip_collection_prefix("ga4gh:SC.xyz") == "xyz"

    def test_looks_like_md5(self):
        assert looks_like_md5("f1f8f4bf413b16ad135722aa4591043e")
        assert looks_like_md5("F1F8F4BF413B16AD135722AA4591043E")
        assert not looks_like_md5("aKF498dAxcJAqme6QYQ7EZ07-fiw8Kw2")
        assert not looks_like_md5("f1f8")
