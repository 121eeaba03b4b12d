"""Registry mapping language tags and file extensions to extractors."""

import logging
from collections.abc import Iterable
from pathlib import Path
from types import MappingProxyType

from doctree.cancel import CancelToken
from doctree.errors import IndexIOError, RegistryError
from doctree.indexer.base import Extractor
from doctree.indexer.walker import walk_source_tree

logger = logging.getLogger(__name__)


class Registry:
    """
    Immutable set of extractors assembled once at startup.

    Registering the same language twice, or two languages claiming the same
    file extension, fails immediately with ``RegistryError``. Because nothing
    changes after construction, one registry can be shared by any number of
    indexing threads.
    """

    def __init__(self, extractors: Iterable[Extractor]):
        by_language: dict[str, Extractor] = {}
        by_extension: dict[str, Extractor] = {}
        for extractor in extractors:
            language = extractor.language
            if not language:
                raise RegistryError(f"{extractor!r} does not declare a language")
            if language in by_language:
                raise RegistryError(f"Extractor for language '{language}' already registered")
            for ext in sorted(extractor.extensions):
                owner = by_extension.get(ext)
                if owner is not None:
                    raise RegistryError(
                        f"Extension '.{ext}' claimed by both '{owner.language}' and '{language}'"
                    )
                by_extension[ext] = extractor
            by_language[language] = extractor
            logger.debug("Registered %s extractor for %s", language, sorted(extractor.extensions))

        self._by_language = MappingProxyType(by_language)
        self._by_extension = MappingProxyType(by_extension)

    def __len__(self) -> int:
        return len(self._by_language)

    def __contains__(self, language: object) -> bool:
        return language in self._by_language

    def languages(self) -> list[str]:
        """Registered language tags in registration order."""
        return list(self._by_language)

    def get(self, language: str) -> Extractor | None:
        """Get the extractor for a language tag."""
        return self._by_language.get(language)

    def for_extension(self, extension: str) -> Extractor | None:
        """Get the extractor responsible for a file extension (with or without the dot)."""
        return self._by_extension.get(extension.lower().lstrip("."))

    def dispatch(self, directory: Path, ctx: CancelToken | None = None) -> list[Extractor]:
        """
        Find the extractors that have something to index under ``directory``.

        The walk is recursive and uses each extractor's own ``accepts`` rule,
        so an extractor is only returned when its ``index_dir`` would find at
        least one file. Order follows registration order.

        Raises:
            IndexIOError: if the directory cannot be walked.
            OperationCancelled: if ``ctx`` fires during the walk.
        """
        found: set[str] = set()
        try:
            for source in walk_source_tree(directory, ctx):
                extractor = self._by_extension.get(source.extension)
                if extractor is None or extractor.language in found:
                    continue
                if extractor.accepts(source.relative_path, source.extension):
                    found.add(extractor.language)
                    if len(found) == len(self._by_language):
                        break
        except OSError as e:
            raise IndexIOError(f"Cannot walk {e.filename or directory}: {e}", str(directory)) from e

        matched = [ext for lang, ext in self._by_language.items() if lang in found]
        logger.debug("Dispatch %s: %s", directory, [e.language for e in matched])
        return matched


def default_registry() -> Registry:
    """Registry with the built-in Python, Go and Markdown extractors."""
    from doctree.indexer.golang import GoExtractor
    from doctree.indexer.markdown import MarkdownExtractor
    from doctree.indexer.python import PythonExtractor

    return Registry([PythonExtractor(), GoExtractor(), MarkdownExtractor()])
