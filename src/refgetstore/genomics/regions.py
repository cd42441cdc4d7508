"""
BED region parsing and region-driven substring extraction.

Regions are 0-based, half-open intervals. Rows naming an unknown chromosome
or falling outside [0, length] are dropped without error, so that extraction
over large BED files tolerates unmappable rows.
"""

from typing import Callable, Dict, Iterable, List, Tuple, Union
import logging
from pathlib import Path

import pandas as pd

from ..models import RetrievedSequence
from ..utils import FormatError, open_text_maybe_gzip


logger = logging.getLogger(__name__)

Region = Tuple[str, int, int]

_SKIP_PREFIXES = ('#', 'track', 'browser')


def read_bed_regions(filepath: Union[str, Path]) -> List[Region]:
    """
    Read (chrom, start, end) rows from a BED file.

    Extra columns are ignored. Comment, track and browser lines are skipped.
    gzip-compressed input is detected from its magic bytes.

    Args:
        filepath: Path to the BED file

    Returns:
        List of (chrom, start, end) tuples in file order

    Raises:
        FileNotFoundError: If the file does not exist
        FormatError: If a row lacks three columns or has non-integer coordinates
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"BED file not found: {filepath}")

    with open_text_maybe_gzip(filepath) as handle:
        lines = [line.rstrip('\r\n') for line in handle]
    rows = pd.Series(lines, dtype=object)
    rows = rows[(rows.str.strip() != '') & ~rows.str.startswith(_SKIP_PREFIXES)]
    if rows.empty:
        return []
    table = rows.str.split('\t', n=3, expand=True)
    if table.shape[1] < 3 or table[[1, 2]].isna().any().any():
        raise FormatError(f"BED file {filepath} has rows with fewer than 3 columns")

    try:
        starts = pd.to_numeric(table[1].str.strip(), errors='raise')
        ends = pd.to_numeric(table[2].str.strip(), errors='raise')
    except (ValueError, TypeError) as e:
        raise FormatError(f"Non-integer coordinates in BED file {filepath}: {e}") from e
    if starts.dtype.kind != 'i' or ends.dtype.kind != 'i':
        raise FormatError(f"Non-integer coordinates in BED file {filepath}")

    return [(str(chrom), int(start), int(end))
            for chrom, start, end in zip(table[0], starts, ends)]


def resolve_regions(regions: Iterable[Region],
                    lengths: Dict[str, int]) -> List[Region]:
    """
    Keep only regions that resolve to a known chromosome and a valid range.

    Args:
        regions: (chrom, start, end) tuples
        lengths: Chromosome name to length

    Returns:
        Retained regions in input order
    """
    kept = []
    skipped = 0
    for chrom, start, end in regions:
        length = lengths.get(chrom)
        if length is None or start < 0 or end > length or start > end:
            skipped += 1
            continue
        kept.append((chrom, start, end))
    if skipped:
        logger.debug(f"Skipped {skipped} unresolvable BED regions")
    return kept


def extract_regions(regions: Iterable[Region], lengths: Dict[str, int],
                    fetch: Callable[[str, int, int], str]) -> List[RetrievedSequence]:
    """
    Extract substrings for each resolvable region.

    Args:
        regions: (chrom, start, end) tuples
        lengths: Chromosome name to length
        fetch: Callable returning the substring for (chrom, start, end)

    Returns:
        List of RetrievedSequence in input order
    """
    return [RetrievedSequence(fetch(chrom, start, end), chrom, start, end)
            for chrom, start, end in resolve_regions(regions, lengths)]


__all__ = [
    "Region",
    "read_bed_regions",
    "resolve_regions",
    "extract_regions",
]
