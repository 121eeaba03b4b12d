"""Tests for the indexer driver."""

import threading
import time
from pathlib import Path

import pytest

from doctree.cancel import CancelToken, check
from doctree.errors import IndexIOError, OperationCancelled
from doctree.indexer import Indexer, Registry, default_registry
from doctree.indexer.base import Extractor
from doctree.schema import Index, Library, Page
from doctree.search import SearchEngine
from doctree.store import IndexStore


class FileListExtractor(Extractor):
    """Indexes each accepted file as one page."""

    def __init__(self, language: str, extension: str, fail: bool = False):
        self.language = language
        self.extensions = frozenset({extension})
        self.fail = fail
        self.threads: set[str] = set()

    def index_dir(self, directory, ctx=None):
        self.threads.add(threading.current_thread().name)
        files = list(self.source_files(directory, ctx))
        if self.fail:
            raise IndexIOError(f"Cannot read {directory}", str(directory))
        pages = tuple(
            Page(path=f.relative_path, title=f.relative_path, search_key=(f.relative_path,))
            for f in files
        )
        return Index(
            language=self.language,
            num_files=len(files),
            num_bytes=sum(f.size for f in files),
            libraries=(Library(name="lib", id="lib", pages=pages),),
        )


@pytest.fixture
def store(tmp_path: Path):
    index_store = IndexStore(tmp_path / "index.db")
    index_store.initialize()
    yield index_store
    index_store.close()


@pytest.fixture
def source(tmp_path: Path) -> Path:
    root = tmp_path / "src"
    root.mkdir()
    (root / "a.txt").write_text("hello")
    (root / "b.dat").write_text("data")
    return root


class TestIndexProject:
    def test_indexes_each_language(self, store: IndexStore, source: Path):
        registry = Registry([FileListExtractor("text", "txt"), FileListExtractor("data", "dat")])
        indexes = Indexer(store, registry).index_project("acme", source)

        assert sorted(indexes) == ["data", "text"]
        assert store.list() == [("acme", "data"), ("acme", "text")]
        assert store.get("acme", "text") == indexes["text"]
        assert indexes["text"].num_bytes == 5

    def test_runs_on_worker_threads(self, store: IndexStore, source: Path):
        text = FileListExtractor("text", "txt")
        Indexer(store, Registry([text])).index_project("acme", source)
        assert all(name.startswith("doctree-index") for name in text.threads)

    def test_reindex_replaces(self, store: IndexStore, source: Path):
        indexer = Indexer(store, Registry([FileListExtractor("text", "txt")]))
        indexer.index_project("acme", source)
        (source / "c.txt").write_text("more")
        indexer.index_project("acme", source)

        pages = [p.path for _, p in store.get("acme", "text").iter_pages()]
        assert pages == ["a.txt", "c.txt"]

    def test_removes_stale_languages(self, store: IndexStore, source: Path):
        registry = Registry([FileListExtractor("text", "txt"), FileListExtractor("data", "dat")])
        indexer = Indexer(store, registry)
        indexer.index_project("acme", source)

        (source / "b.dat").unlink()
        indexer.index_project("acme", source)
        assert store.languages("acme") == ["text"]

    def test_other_projects_untouched(self, store: IndexStore, source: Path, tmp_path: Path):
        indexer = Indexer(store, Registry([FileListExtractor("text", "txt")]))
        indexer.index_project("acme", source)
        empty = tmp_path / "empty"
        empty.mkdir()

        assert indexer.index_project("other", empty) == {}
        assert store.list() == [("acme", "text")]

    def test_failure_propagates(self, store: IndexStore, source: Path):
        registry = Registry([FileListExtractor("text", "txt", fail=True)])
        with pytest.raises(IndexIOError, match="Cannot read"):
            Indexer(store, registry).index_project("acme", source)
        assert store.list() == []

    def test_cancelled(self, store: IndexStore, source: Path):
        ctx = CancelToken()
        ctx.cancel()
        with pytest.raises(OperationCancelled):
            Indexer(store, Registry([FileListExtractor("text", "txt")])).index_project("acme", source, ctx)
        assert store.list() == []

    def test_not_a_directory(self, store: IndexStore, tmp_path: Path):
        with pytest.raises(ValueError, match="Not a directory"):
            Indexer(store, Registry([])).index_project("acme", tmp_path / "missing")

    def test_empty_project_name(self, store: IndexStore, source: Path):
        with pytest.raises(ValueError):
            Indexer(store, Registry([])).index_project("", source)

    def test_invalid_worker_count(self, store: IndexStore):
        with pytest.raises(ValueError):
            Indexer(store, Registry([]), max_workers=0)


class TestIndexProjects:
    def test_indexes_several_projects(self, store: IndexStore, tmp_path: Path):
        roots = {}
        for name in ("one", "two"):
            root = tmp_path / name
            root.mkdir()
            (root / f"{name}.txt").write_text(name)
            roots[name] = root

        indexed = Indexer(store, Registry([FileListExtractor("text", "txt")])).index_projects(roots)
        assert sorted(indexed) == ["one", "two"]
        assert store.list() == [("one", "text"), ("two", "text")]

    def test_missing_root_keeps_stored_indexes(self, store: IndexStore, source: Path, tmp_path: Path):
        indexer = Indexer(store, Registry([FileListExtractor("text", "txt")]))
        indexer.index_project("acme", source)

        with pytest.raises(ValueError, match="Not a directory"):
            indexer.index_projects({"acme": tmp_path / "does-not-exist"})
        assert store.list() == [("acme", "text")]

    def test_one_bad_root_indexes_nothing(self, store: IndexStore, source: Path, tmp_path: Path):
        indexer = Indexer(store, Registry([FileListExtractor("text", "txt")]))
        with pytest.raises(ValueError, match="Not a directory"):
            indexer.index_projects({"acme": source, "beta": tmp_path / "does-not-exist"})
        assert store.list() == []

    def test_interrupt_stops_pending_writes(self, store: IndexStore, source: Path, monkeypatch):
        started = threading.Event()

        class SlowExtractor(FileListExtractor):
            def index_dir(self, directory, ctx=None):
                started.set()
                deadline = time.monotonic() + 2
                while time.monotonic() < deadline:
                    check(ctx)
                    time.sleep(0.01)
                return super().index_dir(directory, ctx)

        def interrupted_wait(futures, return_when):
            started.wait(5)
            raise KeyboardInterrupt

        monkeypatch.setattr("doctree.indexer.indexer.wait", interrupted_wait)
        with pytest.raises(KeyboardInterrupt):
            Indexer(store, Registry([SlowExtractor("text", "txt")])).index_projects({"acme": source})
        assert store.list() == []


class TestEndToEnd:
    def test_index_and_search(self, store: IndexStore, tmp_path: Path):
        root = tmp_path / "acme"
        (root / "pkg").mkdir(parents=True)
        (root / "pkg" / "__init__.py").write_text('def run():\n    """Run it."""\n')
        (root / "go.mod").write_text("module example.com/acme\n")
        (root / "serve.go").write_text("package acme\n\n// Serve serves.\nfunc Serve() {}\n")
        (root / "README.md").write_text("# Acme\n\n## Running\n\nUse run.\n")

        indexes = Indexer(store, default_registry()).index_project("acme", root)
        assert sorted(indexes) == ["go", "markdown", "python"]

        results = SearchEngine(store).search("pkg.run")
        assert results[0].search_key == "pkg.run"
        assert results[0].detail == "Run it."

        results = SearchEngine(store).search("serve", project="acme")
        assert results[0].search_key == "example.com/acme.Serve"
