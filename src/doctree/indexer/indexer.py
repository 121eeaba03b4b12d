"""Indexer that runs extractors over project directories and stores the results."""

import logging
from collections.abc import Mapping
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from pathlib import Path

from doctree.cancel import CancelToken, check
from doctree.indexer.base import Extractor
from doctree.indexer.registry import Registry
from doctree.schema import Index
from doctree.store import IndexStore

logger = logging.getLogger(__name__)


class Indexer:
    """
    Indexes project directories into an ``IndexStore``.

    Every (project, language) pair is an independent unit of work: the
    extractors that apply to a project run concurrently on a thread pool and
    each result replaces the stored index for its key. The source tree is the
    source of truth; stored indexes can be regenerated at any time.

    Thread Safety:
        Extractors share no mutable state and the store serializes its own
        writes, so several projects can be indexed at once.
    """

    def __init__(self, store: IndexStore, registry: Registry, max_workers: int = 4):
        """
        Initialize the indexer.

        Args:
            store: Store receiving the indexes
            registry: Extractors available for dispatch
            max_workers: Maximum number of extractor runs in parallel
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.store = store
        self.registry = registry
        self.max_workers = max_workers

    def index_project(
        self,
        project: str,
        root: Path,
        ctx: CancelToken | None = None,
    ) -> dict[str, Index]:
        """
        Index every language found under ``root`` as ``project``.

        Languages stored for the project but no longer found under ``root``
        are removed from the store.

        Returns:
            The stored indexes keyed by language.

        Raises:
            IndexIOError, ParseError: from the first extractor run that fails;
                the remaining runs are cancelled.
            OperationCancelled: if ``ctx`` fires.
        """
        root = _checked_root(project, root)

        logger.info("Indexing project %s from %s", project, root)
        extractors = self.registry.dispatch(root, ctx)
        if not extractors:
            logger.info("Project %s: no supported source files found", project)

        results = self._run_all([(project, root, extractor) for extractor in extractors], ctx)
        indexes = {language: index for (_, language), index in results.items()}

        self._remove_stale(project, indexes)
        logger.info(
            "Project %s: %d languages indexed (%s)",
            project,
            len(indexes),
            ", ".join(sorted(indexes)) or "none",
        )
        return indexes

    def index_projects(
        self,
        roots: Mapping[str, Path],
        ctx: CancelToken | None = None,
    ) -> dict[str, dict[str, Index]]:
        """
        Index several projects, all their extractor runs sharing one pool.

        Every root is checked before anything is dispatched, so one bad path
        leaves all stored indexes untouched.
        """
        checked = {project: _checked_root(project, root) for project, root in roots.items()}
        jobs: list[tuple[str, Path, Extractor]] = []
        for project, root in checked.items():
            logger.info("Indexing project %s from %s", project, root)
            for extractor in self.registry.dispatch(root, ctx):
                jobs.append((project, root, extractor))

        results = self._run_all(jobs, ctx)
        indexed: dict[str, dict[str, Index]] = {project: {} for project in roots}
        for (project, language), index in results.items():
            indexed[project][language] = index
        for project, indexes in indexed.items():
            self._remove_stale(project, indexes)
        return indexed

    def _remove_stale(self, project: str, indexes: Mapping[str, Index]) -> None:
        """Delete stored languages of ``project`` that were not indexed this run."""
        for language in self.store.languages(project):
            if language not in indexes:
                self.store.delete(project, language)
                logger.info("Project %s: removed stale %s index", project, language)

    def index_language(
        self,
        project: str,
        root: Path,
        extractor: Extractor,
        ctx: CancelToken | None = None,
    ) -> Index:
        """Run one extractor and store its index."""
        check(ctx)
        index = extractor.index_dir(Path(root), ctx)
        self.store.put(project, extractor.language, index, ctx)
        logger.info(
            "Project %s: %s indexed (%d files, %d bytes)",
            project,
            extractor.language,
            index.num_files,
            index.num_bytes,
        )
        return index

    def _run_all(
        self,
        jobs: list[tuple[str, Path, Extractor]],
        ctx: CancelToken | None,
    ) -> dict[tuple[str, str], Index]:
        if not jobs:
            return {}

        # Siblings are cancelled as soon as one run fails
        run_ctx = ctx.child() if ctx is not None else CancelToken()
        futures: dict[Future, tuple[str, str]] = {}
        with ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(jobs)),
            thread_name_prefix="doctree-index",
        ) as pool:
            try:
                for project, root, extractor in jobs:
                    future = pool.submit(self.index_language, project, root, extractor, run_ctx)
                    futures[future] = (project, extractor.language)

                done, _ = wait(futures, return_when=FIRST_EXCEPTION)
            except BaseException:
                # Leaving the block joins the workers, so stop them first
                run_ctx.cancel("indexing interrupted")
                for future in futures:
                    future.cancel()
                raise
            failed = [f for f in done if f.exception() is not None]
            if failed:
                run_ctx.cancel("sibling indexing run failed")
                for future in futures:
                    future.cancel()

        if failed:
            first = failed[0]
            project, language = futures[first]
            logger.error("Indexing %s/%s failed: %s", project, language, first.exception())
            raise first.exception()  # type: ignore[misc]

        return {futures[future]: future.result() for future in futures}


def _checked_root(project: str, root: Path) -> Path:
    root = Path(root)
    if not root.is_dir():
        raise ValueError(f"Not a directory: {root}")
    if not project:
        raise ValueError("Project name must not be empty")
    return root
