"""
Genomics-specific functionality for refgetstore.

This subpackage provides alphabet detection, FASTA parsing and digesting,
and BED region extraction.
"""

from .sequences import *
from .fasta import *
from .regions import *

__all__ = [
    # From sequences module
    "AlphabetType",
    "detect_alphabet",
    "is_dna_sequence",
    "is_protein_sequence",

    # From fasta module
    "FASTAError",
    "iter_fasta_records",
    "digest_fasta",
    "load_fasta",
    "compute_fai",
    "extract_header_aliases",

    # From regions module
    "Region",
    "read_bed_regions",
    "resolve_regions",
    "extract_regions",
]
