"""
Tests for two-bit packing and storage mode conversion.
"""

import pytest
import sys
import os

# Add the src directory to the path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from refgetstore import codec
from refgetstore.codec import StorageMode
from refgetstore.genomics.sequences import AlphabetType
from refgetstore.models import digest_sequence_record
from refgetstore.utils import FormatError, RangeError


class TestPacking:
    """Test two-bit pack and unpack."""

    def test_pack_acgt(self):
        """A=10, C=01, G=11, T=00, most significant bits first."""
        assert codec.pack_2bit("ACGT") == bytes([0b10011100])

    def test_pack_pads_final_byte(self):
        assert codec.pack_2bit("ACGTA") == bytes([0b10011100, 0b10000000])

    def test_pack_lowercase(self):
        assert codec.pack_2bit("acgt") == codec.pack_2bit("ACGT")

    def test_pack_rejects_non_acgt(self):
        with pytest.raises(FormatError):
            codec.pack_2bit("ACGN")

    def test_unpack(self):
        packed = codec.pack_2bit("TTGGGGAA")
        assert len(packed) == 2
        assert codec.unpack_2bit(packed, 8) == b"TTGGGGAA"

    def test_unpack_with_offset(self):
        packed = codec.pack_2bit("ACGTACGT")
        assert codec.unpack_2bit(packed[0:2], 3, offset=2) == b"GTA"

    def test_unpack_too_short_buffer_raises(self):
        with pytest.raises(FormatError):
            codec.unpack_2bit(b"\x00", 5)


class TestEncodeDecode:
    """Test encode/decode by alphabet."""

    def test_encoded_size(self):
        assert codec.encoded_size(8, AlphabetType.DNA_2BIT) == 2
        assert codec.encoded_size(9, AlphabetType.DNA_2BIT) == 3
        assert codec.encoded_size(9, AlphabetType.DNA_3BIT) == 9
        assert codec.encoded_size(9, AlphabetType.DNA_2BIT, StorageMode.RAW) == 9

    def test_non_dna2bit_passes_through(self):
        assert codec.encode("acgtn", AlphabetType.DNA_3BIT) == b"ACGTN"
        assert codec.decode(b"MKV", 3, AlphabetType.PROTEIN) == b"MKV"

    def test_decode_inverts_encode(self):
        for sequence in ["A", "ACG", "ACGTACGTACG", "GGGGCCCCAAAATTTT"]:
            encoded = codec.encode(sequence, AlphabetType.DNA_2BIT)
            assert codec.decode(encoded, len(sequence), AlphabetType.DNA_2BIT) == sequence.encode()

    def test_storage_mode_from_str(self):
        assert StorageMode.from_str("Encoded") == StorageMode.ENCODED
        assert StorageMode.from_str("raw") == StorageMode.RAW
        with pytest.raises(FormatError):
            StorageMode.from_str("zstd")


class TestSubstring:
    """Test range decoding of stored buffers."""

    SEQUENCE = "ACGTTGCAAGC"

    def test_all_ranges_match_raw_slices(self):
        """Packed and raw buffers give the same substring for every range."""
        packed = codec.pack_2bit(self.SEQUENCE)
        raw = self.SEQUENCE.encode()
        n = len(self.SEQUENCE)
        for start in range(n + 1):
            for end in range(start, n + 1):
                expected = self.SEQUENCE[start:end].encode()
                assert codec.decode_substring(packed, n, AlphabetType.DNA_2BIT, True, start, end) == expected
                assert codec.decode_substring(raw, n, AlphabetType.DNA_2BIT, False, start, end) == expected

    @pytest.mark.parametrize("start,end", [(-1, 3), (0, 12), (5, 4)])
    def test_invalid_ranges_raise(self, start, end):
        with pytest.raises(RangeError):
            codec.decode_substring(self.SEQUENCE.encode(), 11, AlphabetType.DNA_2BIT, False, start, end)

    def test_range_error_is_index_error(self):
        with pytest.raises(IndexError):
            codec.decode_substring(b"AC", 2, AlphabetType.DNA_2BIT, False, 0, 3)


class TestRecordModes:
    """Test SequenceFull mode conversion."""

    def test_to_mode_packs_dna2bit(self):
        record = digest_sequence_record("chr1", "acgtacgt")
        encoded = record.to_mode(StorageMode.ENCODED)
        assert encoded.encoded
        assert len(encoded.data) == 2
        assert encoded.decode() == "ACGTACGT"
        assert encoded.to_mode(StorageMode.RAW).data == b"ACGTACGT"

    def test_to_mode_keeps_other_alphabets_raw(self):
        record = digest_sequence_record("p1", "MKVLAT")
        assert record.to_mode(StorageMode.ENCODED) is record

    def test_to_stub_keeps_metadata(self):
        record = digest_sequence_record("chr1", "ACGT")
        stub = record.to_stub()
        assert not stub.is_loaded
        assert stub.metadata == record.metadata
