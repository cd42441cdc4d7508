"""
Tests for the namespaced alias registry.
"""

import pytest
import sys
import os
import tempfile
from pathlib import Path

# Add the src directory to the path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from refgetstore.aliases import AliasRegistry
from refgetstore.utils import FormatError


class TestAliasRegistry:
    """Test in-memory alias operations."""

    def test_add_and_resolve(self):
        registry = AliasRegistry()
        registry.add("refseq", "NC_000001.11", "digestA")
        assert registry.resolve("refseq", "NC_000001.11") == "digestA"
        assert registry.resolve("refseq", "missing") is None
        assert registry.resolve("ucsc", "NC_000001.11") is None

    def test_add_replaces_target(self):
        registry = AliasRegistry()
        registry.add("ucsc", "chr1", "digestA")
        registry.add("ucsc", "chr1", "digestB")
        assert registry.resolve("ucsc", "chr1") == "digestB"
        assert len(registry) == 1

    def test_reverse_lookup_across_namespaces(self):
        registry = AliasRegistry()
        registry.add("ucsc", "chr1", "digestA")
        registry.add("refseq", "NC_000001.11", "digestA")
        registry.add("ucsc", "chr2", "digestB")
        assert registry.reverse_lookup("digestA") == [("refseq", "NC_000001.11"), ("ucsc", "chr1")]
        assert registry.reverse_lookup("digestC") == []

    def test_remove_drops_empty_namespace(self):
        registry = AliasRegistry()
        registry.add("ucsc", "chr1", "digestA")
        assert registry.remove("ucsc", "chr1")
        assert not registry.remove("ucsc", "chr1")
        assert registry.namespaces() == []
        assert not registry

    def test_listing_is_sorted(self):
        registry = AliasRegistry()
        for alias in ["chr2", "chr10", "chr1"]:
            registry.add("ucsc", alias, "d")
        assert registry.list_aliases("ucsc") == ["chr1", "chr10", "chr2"]
        assert registry.list_aliases("unknown") == []

    def test_invalid_alias_rejected(self):
        registry = AliasRegistry()
        with pytest.raises(ValueError):
            registry.add("", "chr1", "d")
        with pytest.raises(ValueError):
            registry.add("ucsc", "chr\t1", "d")


class TestAliasFiles:
    """Test TSV persistence of aliases."""

    def test_load_tsv(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "ucsc.tsv"
            path.write_text("# header\nchr1\tdigestA\n\nchr2\tdigestB\n")
            registry = AliasRegistry()
            assert registry.load_tsv("ucsc", path) == 2
            assert registry.resolve("ucsc", "chr2") == "digestB"

    def test_load_tsv_bad_row(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "bad.tsv"
            path.write_text("chr1 digestA\n")
            with pytest.raises(FormatError):
                AliasRegistry().load_tsv("ucsc", path)

    def test_load_tsv_missing_file(self):
        with pytest.raises(FileNotFoundError):
            AliasRegistry().load_tsv("ucsc", "/nonexistent/aliases.tsv")

    def test_load_text(self):
        registry = AliasRegistry()
        assert registry.load_text("ucsc", "chr1\tdigestA\r\n") == 1
        assert registry.resolve("ucsc", "chr1") == "digestA"

    def test_write_dir_and_load_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            registry = AliasRegistry()
            registry.add("ucsc", "chr1", "digestA")
            registry.add("refseq", "NC_1", "digestA")
            registry.write_dir(tmpdir)

            assert sorted(p.name for p in Path(tmpdir).glob("*.tsv")) == ["refseq.tsv", "ucsc.tsv"]
            reloaded = AliasRegistry()
            assert reloaded.load_dir(tmpdir) == 2
            assert reloaded.reverse_lookup("digestA") == registry.reverse_lookup("digestA")

    def test_write_dir_removes_stale_namespaces(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            registry = AliasRegistry()
            registry.add("ucsc", "chr1", "digestA")
            registry.add("refseq", "NC_1", "digestA")
            registry.write_dir(tmpdir)
            registry.remove("refseq", "NC_1")
            registry.write_dir(tmpdir)
            assert [p.name for p in Path(tmpdir).glob("*.tsv")] == ["ucsc.tsv"]
