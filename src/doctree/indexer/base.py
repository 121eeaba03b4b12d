"""Contract implemented by every language extractor."""

from abc import ABC, abstractmethod
from collections.abc import Iterator
from pathlib import Path

from doctree.cancel import CancelToken, check
from doctree.errors import IndexIOError
from doctree.indexer.walker import SourceFile, walk_source_tree
from doctree.schema import Index


class Extractor(ABC):
    """
    Turns the sources of one language under a directory into an ``Index``.

    Subclasses declare ``language`` and ``extensions`` and implement
    ``index_dir``. File discovery goes through ``source_files`` so that the
    registry's dispatch and the extractor agree on which files count.
    """

    language: str = ""
    extensions: frozenset[str] = frozenset()

    def is_test_path(self, relative_path: str) -> bool:
        """Whether a file is a test fixture that should not be documented."""
        return False

    def accepts(self, relative_path: str, extension: str | None = None) -> bool:
        """Whether this extractor indexes the file at ``relative_path``."""
        if extension is None:
            extension = Path(relative_path).suffix.lower().lstrip(".")
        return extension in self.extensions and not self.is_test_path(relative_path)

    def source_files(self, directory: Path, ctx: CancelToken | None = None) -> Iterator[SourceFile]:
        """Yield the files under ``directory`` this extractor is responsible for."""
        try:
            for source in walk_source_tree(directory, ctx):
                if self.accepts(source.relative_path, source.extension):
                    yield source
        except OSError as e:
            raise IndexIOError(f"Cannot walk {e.filename or directory}: {e}", str(directory)) from e

    def read_source(self, source: SourceFile, ctx: CancelToken | None = None) -> bytes:
        """Read a file, checking for cancellation first."""
        check(ctx)
        try:
            return source.path.read_bytes()
        except OSError as e:
            raise IndexIOError(f"Cannot read {source.relative_path}: {e}", str(source.path)) from e

    @abstractmethod
    def index_dir(self, directory: Path, ctx: CancelToken | None = None) -> Index:
        """
        Index every accepted file under ``directory``.

        Raises:
            IndexIOError: if a file or directory cannot be read.
            ParseError: if a file cannot be parsed and the extractor aborts.
            OperationCancelled: if ``ctx`` fires before the run completes.
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} language={self.language!r}>"
