"""Tests for the extractor registry."""

from pathlib import Path

import pytest

from doctree.errors import RegistryError
from doctree.indexer import GoExtractor, MarkdownExtractor, PythonExtractor, Registry, default_registry
from doctree.indexer.base import Extractor
from doctree.schema import Index


class StubExtractor(Extractor):
    def __init__(self, language: str, extensions: set[str]):
        self.language = language
        self.extensions = frozenset(extensions)

    def index_dir(self, directory, ctx=None):
        return Index(language=self.language)


class TestRegistry:
    def test_lookup_by_language_and_extension(self):
        text = StubExtractor("text", {"txt"})
        registry = Registry([text])
        assert registry.get("text") is text
        assert registry.for_extension(".TXT") is text
        assert registry.for_extension("txt") is text
        assert registry.get("go") is None
        assert "text" in registry
        assert len(registry) == 1

    def test_duplicate_language_rejected(self):
        with pytest.raises(RegistryError, match="already registered"):
            Registry([StubExtractor("text", {"txt"}), StubExtractor("text", {"text"})])

    def test_conflicting_extension_rejected(self):
        with pytest.raises(RegistryError, match="claimed by both"):
            Registry([StubExtractor("text", {"txt"}), StubExtractor("notes", {"txt"})])

    def test_missing_language_rejected(self):
        with pytest.raises(RegistryError):
            Registry([StubExtractor("", {"txt"})])

    def test_default_registry(self):
        registry = default_registry()
        assert registry.languages() == ["python", "go", "markdown"]
        assert isinstance(registry.for_extension("py"), PythonExtractor)
        assert isinstance(registry.for_extension("go"), GoExtractor)
        assert isinstance(registry.for_extension("markdown"), MarkdownExtractor)


class TestDispatch:
    @pytest.fixture
    def registry(self) -> Registry:
        return Registry([PythonExtractor(), GoExtractor(), MarkdownExtractor()])

    def test_dispatch_finds_languages(self, tmp_path: Path, registry: Registry):
        (tmp_path / "lib").mkdir()
        (tmp_path / "lib" / "mod.py").write_text("")
        (tmp_path / "README.md").write_text("# Readme\n")
        languages = [e.language for e in registry.dispatch(tmp_path)]
        assert languages == ["python", "markdown"]

    def test_dispatch_is_recursive(self, tmp_path: Path, registry: Registry):
        deep = tmp_path / "a" / "b" / "c"
        deep.mkdir(parents=True)
        (deep / "main.go").write_text("package main\n")
        assert [e.language for e in registry.dispatch(tmp_path)] == ["go"]

    def test_only_test_files_not_dispatched(self, tmp_path: Path, registry: Registry):
        (tmp_path / "tests").mkdir()
        (tmp_path / "tests" / "check.py").write_text("")
        (tmp_path / "server_test.go").write_text("package server\n")
        assert registry.dispatch(tmp_path) == []

    def test_empty_directory(self, tmp_path: Path, registry: Registry):
        assert registry.dispatch(tmp_path) == []

    def test_dispatch_agrees_with_extractor(self, tmp_path: Path, registry: Registry):
        (tmp_path / "mod.py").write_text("")
        (tmp_path / "tests").mkdir()
        (tmp_path / "tests" / "check.py").write_text("")
        for extractor in registry.dispatch(tmp_path):
            assert list(extractor.source_files(tmp_path))
