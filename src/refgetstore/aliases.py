"""
Namespaced aliases for sequence and collection digests.

An alias is a human-readable identifier (for example a RefSeq accession or a
UCSC chromosome name) that resolves to a digest within a namespace. Each
namespace is persisted as a two-column TSV file: ``alias<TAB>digest``.
"""

from typing import Callable, Dict, List, Optional, Tuple, Union
import logging
from pathlib import Path

from .utils import FormatError, atomic_write_text


logger = logging.getLogger(__name__)


class AliasRegistry:
    """
    Mapping of (namespace, alias) to digest.

    Reverse lookups (digest to aliases) scan all namespaces; alias tables are
    small next to sequence data.
    """

    def __init__(self):
        self._namespaces: Dict[str, Dict[str, str]] = {}

    def add(self, namespace: str, alias: str, digest: str) -> None:
        """Register an alias, replacing any earlier target."""
        if not namespace or not alias:
            raise ValueError("Alias namespace and alias must be non-empty")
        if '\t' in alias or '\n' in alias:
            raise ValueError(f"Alias may not contain tabs or newlines: {alias!r}")
        self._namespaces.setdefault(namespace, {})[alias] = digest

    def resolve(self, namespace: str, alias: str) -> Optional[str]:
        """Digest for an alias, or None if not registered."""
        return self._namespaces.get(namespace, {}).get(alias)

    def remove(self, namespace: str, alias: str) -> bool:
        """
        Remove an alias.

        Returns:
            True if the alias existed. An emptied namespace is dropped.
        """
        table = self._namespaces.get(namespace)
        if table is None or alias not in table:
            return False
        del table[alias]
        if not table:
            del self._namespaces[namespace]
        return True

    def reverse_lookup(self, digest: str) -> List[Tuple[str, str]]:
        """All (namespace, alias) pairs pointing at a digest, sorted."""
        return sorted(
            (namespace, alias)
            for namespace, table in self._namespaces.items()
            for alias, target in table.items()
            if target == digest
        )

    def namespaces(self) -> List[str]:
        return sorted(self._namespaces)

    def list_aliases(self, namespace: str) -> List[str]:
        """Aliases in a namespace, sorted. Unknown namespaces yield []."""
        return sorted(self._namespaces.get(namespace, {}))

    def items(self, namespace: str) -> List[Tuple[str, str]]:
        return sorted(self._namespaces.get(namespace, {}).items())

    def load_tsv(self, namespace: str, filepath: Union[str, Path],
                 normalize: Optional[Callable[[str], str]] = None) -> int:
        """
        Load ``alias<TAB>digest`` rows into a namespace.

        Blank lines and lines starting with '#' are skipped.

        Args:
            namespace: Target namespace
            filepath: Path to the TSV file
            normalize: Maps each digest as written to its registry key

        Returns:
            Number of aliases loaded

        Raises:
            FileNotFoundError: If the file does not exist
            FormatError: If a row does not have two tab-separated fields
            NotFoundError: If normalize rejects a digest
        """
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"Alias file not found: {filepath}")
        return self.load_text(namespace, filepath.read_text(encoding='utf-8'), str(filepath), normalize)

    def load_text(self, namespace: str, text: str, source: str = '<text>',
                  normalize: Optional[Callable[[str], str]] = None) -> int:
        """Load ``alias<TAB>digest`` rows from already-read TSV text; nothing is added on error."""
        rows = []
        for line_num, line in enumerate(text.splitlines(), 1):
            if not line.strip() or line.startswith('#'):
                continue
            alias, sep, digest = line.partition('\t')
            digest = digest.strip()
            if not sep or not alias or not digest:
                raise FormatError(f"Invalid alias row at {source}:{line_num}: {line!r}")
            rows.append((alias, normalize(digest) if normalize is not None else digest))
        for alias, digest in rows:
            self.add(namespace, alias, digest)
        count = len(rows)
        logger.debug(f"Loaded {count} aliases into namespace {namespace} from {source}")
        return count

    def write_tsv(self, namespace: str, filepath: Union[str, Path]) -> None:
        lines = [f"{alias}\t{digest}\n" for alias, digest in self.items(namespace)]
        atomic_write_text(filepath, ''.join(lines))

    def load_dir(self, directory: Union[str, Path]) -> int:
        """Load every ``{namespace}.tsv`` file in a directory."""
        directory = Path(directory)
        if not directory.is_dir():
            return 0
        return sum(self.load_tsv(path.stem, path) for path in sorted(directory.glob('*.tsv')))

    def write_dir(self, directory: Union[str, Path]) -> None:
        """Write one ``{namespace}.tsv`` per namespace, removing stale files."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        current = set(self._namespaces)
        for stale in directory.glob('*.tsv'):
            if stale.stem not in current:
                stale.unlink()
        for namespace in current:
            self.write_tsv(namespace, directory / f"{namespace}.tsv")

    def __len__(self) -> int:
        return sum(len(table) for table in self._namespaces.values())

    def __bool__(self) -> bool:
        return bool(self._namespaces)
