"""
Sequence alphabet utilities for biological data.

This module classifies nucleotide and amino acid sequences into the smallest
alphabet that contains every symbol, which decides whether a sequence can be
bit-packed in the store.
"""

from enum import IntEnum
from typing import Union

import numpy as np

from ..utils import validate_input


class AlphabetType(IntEnum):
    """
    Sequence alphabets ordered from most to least encodable.

    The integer value doubles as a rank, so the alphabet of a sequence is the
    maximum over the alphabets of its symbols.
    """
    DNA_2BIT = 0
    DNA_3BIT = 1
    DNA_IUPAC = 2
    PROTEIN = 3
    ASCII = 4
    UNKNOWN = 5

    def __str__(self) -> str:
        return _ALPHABET_NAMES[self]

    @property
    def bits_per_symbol(self) -> int:
        return _BITS_PER_SYMBOL[self]

    @classmethod
    def from_str(cls, name: str) -> "AlphabetType":
        """
        Parse an alphabet name (case-insensitive).

        Raises:
            ValueError: If the name is not a known alphabet
        """
        key = name.strip().lower()
        for alphabet, alphabet_name in _ALPHABET_NAMES.items():
            if alphabet_name.lower() == key:
                return alphabet
        raise ValueError(f"Unknown alphabet: {name}")


_ALPHABET_NAMES = {
    AlphabetType.DNA_2BIT: 'dna2bit',
    AlphabetType.DNA_3BIT: 'dna3bit',
    AlphabetType.DNA_IUPAC: 'dnaio',
    AlphabetType.PROTEIN: 'protein',
    AlphabetType.ASCII: 'ASCII',
    AlphabetType.UNKNOWN: 'Unknown',
}

_BITS_PER_SYMBOL = {
    AlphabetType.DNA_2BIT: 2,
    AlphabetType.DNA_3BIT: 3,
    AlphabetType.DNA_IUPAC: 4,
    AlphabetType.PROTEIN: 5,
    AlphabetType.ASCII: 8,
    AlphabetType.UNKNOWN: 8,
}

DNA_2BIT_SYMBOLS = b'ACGT'
DNA_3BIT_SYMBOLS = DNA_2BIT_SYMBOLS + b'NRY'
DNA_IUPAC_SYMBOLS = DNA_3BIT_SYMBOLS + b'USWKMBDHV'
PROTEIN_SYMBOLS = b'ACDEFGHIKLMNPQRSTVWY' + b'BJOUZ' + b'*X-.'


def _build_rank_table() -> np.ndarray:
    # Uppercase lookup: lowercase letters share the rank of their uppercase form
    table = np.full(256, AlphabetType.ASCII, dtype=np.uint8)
    table[128:] = AlphabetType.UNKNOWN
    for symbols, alphabet in (
        (PROTEIN_SYMBOLS, AlphabetType.PROTEIN),
        (DNA_IUPAC_SYMBOLS, AlphabetType.DNA_IUPAC),
        (DNA_3BIT_SYMBOLS, AlphabetType.DNA_3BIT),
        (DNA_2BIT_SYMBOLS, AlphabetType.DNA_2BIT),
    ):
        for symbol in symbols:
            table[symbol] = alphabet
            table[ord(chr(symbol).lower())] = alphabet
    return table


_RANK_TABLE = _build_rank_table()


def detect_alphabet(data: Union[str, bytes]) -> AlphabetType:
    """
    Detect the smallest alphabet containing every symbol of a sequence.

    Detection is case-insensitive. An empty sequence is Dna2bit.

    Args:
        data: Sequence as str or bytes

    Returns:
        AlphabetType of the sequence
    """
    data = validate_input(data)
    if not data:
        return AlphabetType.DNA_2BIT
    ranks = _RANK_TABLE[np.frombuffer(data, dtype=np.uint8)]
    return AlphabetType(int(ranks.max()))


def is_dna_sequence(data: Union[str, bytes]) -> bool:
    """
    Check if data is a plain DNA sequence (A, C, G, T, case insensitive).

    Args:
        data: Input data to check

    Returns:
        True if every symbol is one of the four nucleotides
    """
    try:
        return detect_alphabet(data) == AlphabetType.DNA_2BIT
    except ValueError:
        return False


def is_protein_sequence(data: Union[str, bytes]) -> bool:
    """
    Check if data fits the protein alphabet.

    Nucleotide sequences also fit, since every nucleotide letter is an amino
    acid code.
    """
    try:
        return detect_alphabet(data) <= AlphabetType.PROTEIN
    except ValueError:
        return False


__all__ = [
    "AlphabetType",
    "detect_alphabet",
    "is_dna_sequence",
    "is_protein_sequence",
]
