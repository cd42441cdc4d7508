"""
Two-bit packing of nucleotide sequences.

Dna2bit sequences are packed four bases per byte using the UCSC 2bit codes
(T=00, C=01, A=10, G=11), most significant bits first, with the final byte
zero-padded. Every other alphabet is stored as raw uppercase bytes.
"""

from enum import Enum
from typing import Union

import numpy as np

from .genomics.sequences import AlphabetType
from .utils import FormatError, RangeError, validate_input


class StorageMode(Enum):
    """How sequence bytes are held in memory and written to disk."""
    RAW = 'raw'
    ENCODED = 'encoded'

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_str(cls, name: str) -> "StorageMode":
        try:
            return cls(name.strip().lower())
        except ValueError:
            raise FormatError(f"Unknown storage mode: {name}") from None


_ENCODE_TABLE = np.full(256, 255, dtype=np.uint8)
for _base, _code in ((b'T', 0), (b'C', 1), (b'A', 2), (b'G', 3)):
    _ENCODE_TABLE[_base[0]] = _code
    _ENCODE_TABLE[_base.lower()[0]] = _code

_DECODE_TABLE = np.frombuffer(b'TCAG', dtype=np.uint8)

_SHIFTS = np.array([6, 4, 2, 0], dtype=np.uint8)


def is_packable(alphabet: AlphabetType) -> bool:
    """Only Dna2bit content is bit-packed."""
    return alphabet == AlphabetType.DNA_2BIT


def encoded_size(length: int, alphabet: AlphabetType, mode: StorageMode = StorageMode.ENCODED) -> int:
    """Number of bytes a sequence occupies in the given storage mode."""
    if mode == StorageMode.ENCODED and is_packable(alphabet):
        return (length * 2 + 7) // 8
    return length


def pack_2bit(data: Union[str, bytes]) -> bytes:
    """
    Pack an ACGT sequence into two bits per base.

    Args:
        data: Sequence containing only A, C, G, T (any case)

    Returns:
        Packed bytes, ceil(len/4) long

    Raises:
        FormatError: If the sequence contains a non-ACGT symbol
    """
    arr = np.frombuffer(validate_input(data), dtype=np.uint8)
    codes = _ENCODE_TABLE[arr]
    if codes.size and codes.max() == 255:
        raise FormatError("Two-bit packing requires an A/C/G/T-only sequence")
    padding = (-codes.size) % 4
    if padding:
        codes = np.concatenate([codes, np.zeros(padding, dtype=np.uint8)])
    quads = codes.reshape(-1, 4)
    packed = (quads[:, 0] << 6) | (quads[:, 1] << 4) | (quads[:, 2] << 2) | quads[:, 3]
    return packed.astype(np.uint8).tobytes()


def unpack_2bit(packed: bytes, length: int, offset: int = 0) -> bytes:
    """
    Unpack two-bit data back into uppercase bases.

    Args:
        packed: Packed bytes whose first byte holds base number ``offset``
            rounded down to a multiple of four
        length: Number of bases to return
        offset: Base position of interest within the first byte (0-3 after
            rounding)

    Returns:
        Uppercase ACGT bytes
    """
    arr = np.frombuffer(packed, dtype=np.uint8)
    codes = ((arr[:, None] >> _SHIFTS) & 0b11).reshape(-1)
    start = offset % 4
    if start + length > codes.size:
        raise FormatError(
            f"Packed buffer holds {codes.size} bases, cannot unpack {length} from {start}")
    return _DECODE_TABLE[codes[start:start + length]].tobytes()


def encode(data: Union[str, bytes], alphabet: AlphabetType) -> bytes:
    """
    Encode a sequence for Encoded storage mode.

    Dna2bit content is packed; everything else passes through uppercased.
    """
    if is_packable(alphabet):
        return pack_2bit(data)
    return validate_input(data).upper()


def decode(buffer: bytes, length: int, alphabet: AlphabetType) -> bytes:
    """Exact inverse of encode."""
    if is_packable(alphabet):
        return unpack_2bit(buffer, length)
    return bytes(buffer)


def decode_substring(buffer: bytes, length: int, alphabet: AlphabetType,
                     encoded: bool, start: int, end: int) -> bytes:
    """
    Decode the half-open range [start, end) of a stored buffer.

    Only the packed bytes covering the range are unpacked.

    Raises:
        RangeError: If start < 0, end > length or start > end
    """
    if start < 0 or end > length or start > end:
        raise RangeError(f"Invalid range [{start}, {end}) for sequence of length {length}")
    if encoded and is_packable(alphabet):
        first_byte = start // 4
        last_byte = (end + 3) // 4
        return unpack_2bit(buffer[first_byte:last_byte], end - start, offset=start)
    return bytes(buffer[start:end])
