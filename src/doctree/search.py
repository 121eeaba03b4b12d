"""Search engine over the stored documentation indexes.

The engine loads the indexes in scope from the ``IndexStore``, flattens every
page and symbol into a ``SearchEntry`` keyed by the terms of its full search
key, and ranks entries against a query:

- each query term matched, in order, against the entry's terms adds
  MATCH_WEIGHT, and EXACT_BONUS more when the term matches exactly rather than
  as a substring;
- PROJECT_BONUS is added when the query also names the entry's project;
- ties prefer shallower entries, then the lexical order of the full path.

Category nodes ("Functions", "Types") only group symbols for display and are
not indexed unless ``include_categories`` is enabled.
"""

import logging
import re
import threading
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from doctree.cancel import CancelToken, check
from doctree.errors import IndexNotFoundError
from doctree.schema import Index, Section, join_search_key
from doctree.store import IndexStore

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"\w+|[^\w\s]")
WORD_PATTERN = re.compile(r"\w+")

MATCH_WEIGHT = 10.0
EXACT_BONUS = 5.0
PROJECT_BONUS = 3.0

# How many candidates are scored between two cancellation checks
CANCEL_CHECK_INTERVAL = 1024


def tokenize(text: str) -> list[str]:
    """
    Split text into search tokens.

    Identifier runs and single punctuation characters are tokens, whitespace
    separates tokens: ``"pkg.sub.run"`` -> ``["pkg", ".", "sub", ".", "run"]``.
    """
    return TOKEN_PATTERN.findall(text)


def match_terms(tokens: Sequence[str]) -> tuple[str, ...]:
    """Lower-cased identifier tokens used for matching; punctuation is dropped."""
    terms = []
    for token in tokens:
        for part in tokenize(token):
            if WORD_PATTERN.fullmatch(part):
                terms.append(part.lower())
    return tuple(terms)


def score_terms(query_terms: Sequence[str], entry_terms: Sequence[str]) -> float:
    """
    Best weighted in-order alignment of query terms against entry terms.

    Query terms may be skipped (they simply do not score); each one matched
    keeps the relative order of the query.
    """
    if not query_terms or not entry_terms:
        return 0.0
    previous = [0.0] * (len(entry_terms) + 1)
    for query_term in query_terms:
        current = [0.0] * (len(entry_terms) + 1)
        for j, entry_term in enumerate(entry_terms, start=1):
            best = max(current[j - 1], previous[j])
            if query_term == entry_term:
                best = max(best, previous[j - 1] + MATCH_WEIGHT + EXACT_BONUS)
            elif query_term in entry_term:
                best = max(best, previous[j - 1] + MATCH_WEIGHT)
            current[j] = best
        previous = current
    return previous[-1]


class EntryKind(str, Enum):
    PAGE = "page"
    SYMBOL = "symbol"
    CATEGORY = "category"


@dataclass(frozen=True)
class SearchEntry:
    """One searchable page or section."""

    project: str
    language: str
    library: str
    page_path: str
    section_path: tuple[str, ...]
    label: str
    detail: str
    search_key: tuple[str, ...]
    terms: tuple[str, ...]
    depth: int
    kind: EntryKind

    @property
    def path(self) -> str:
        return "".join(self.search_key)


@dataclass(frozen=True)
class SearchResult:
    """A ranked match."""

    project: str
    language: str
    library: str
    page_path: str
    section_path: tuple[str, ...]
    label: str
    detail: str
    score: float
    search_key: str

    def to_dict(self) -> dict:
        return {
            "project": self.project,
            "language": self.language,
            "library": self.library,
            "page_path": self.page_path,
            "section_path": list(self.section_path),
            "label": self.label,
            "detail": self.detail,
            "score": self.score,
            "search_key": self.search_key,
        }


def iter_entries(
    project: str,
    index: Index,
    include_categories: bool = False,
    ctx: CancelToken | None = None,
) -> Iterator[SearchEntry]:
    """Flatten an index into search entries, pages first, in emitted order."""
    for library, page in index.iter_pages():
        check(ctx)
        yield SearchEntry(
            project=project,
            language=index.language,
            library=library.id,
            page_path=page.path,
            section_path=(),
            label=page.title,
            detail=page.detail,
            search_key=tuple(page.search_key),
            terms=match_terms(page.search_key),
            depth=0,
            kind=EntryKind.PAGE,
        )

        def walk(sections: Sequence[Section], prefix: tuple[str, ...], path: tuple[str, ...], depth: int):
            for section in sections:
                key = join_search_key(prefix, section.search_key)
                section_path = path + (section.id,)
                if section.is_category:
                    if include_categories:
                        yield SearchEntry(
                            project=project,
                            language=index.language,
                            library=library.id,
                            page_path=page.path,
                            section_path=section_path,
                            label=section.label,
                            detail=section.detail,
                            search_key=key,
                            terms=match_terms(key) + match_terms([section.label]),
                            depth=depth + 1,
                            kind=EntryKind.CATEGORY,
                        )
                    yield from walk(section.children, key, section_path, depth)
                    continue
                yield SearchEntry(
                    project=project,
                    language=index.language,
                    library=library.id,
                    page_path=page.path,
                    section_path=section_path,
                    label=section.label,
                    detail=section.detail,
                    search_key=key,
                    terms=match_terms(key),
                    depth=depth + 1,
                    kind=EntryKind.SYMBOL,
                )
                yield from walk(section.children, key, section_path, depth + 1)

        yield from walk(page.sections, tuple(page.search_key), (), 0)


class SearchIndex:
    """Immutable retrieval structure built from a set of stored indexes."""

    def __init__(self, entries: Sequence[SearchEntry], generation: int = 0):
        self.entries = list(entries)
        self.generation = generation
        self.projects = sorted({entry.project for entry in self.entries})

        postings: dict[str, set[int]] = {}
        for i, entry in enumerate(self.entries):
            for term in entry.terms:
                postings.setdefault(term, set()).add(i)
        self._postings = postings
        self._vocabulary = sorted(postings)

    def __len__(self) -> int:
        return len(self.entries)

    def _candidates(self, query_terms: Sequence[str]) -> set[int]:
        candidates: set[int] = set()
        for query_term in set(query_terms):
            for term in self._vocabulary:
                if query_term in term:
                    candidates |= self._postings[term]
        return candidates

    def query(
        self,
        query: str,
        project: str | None = None,
        limit: int | None = None,
        ctx: CancelToken | None = None,
    ) -> list[SearchResult]:
        """
        Rank the entries matching ``query``.

        Args:
            query: Free-form query, e.g. ``"run"`` or ``"pkg.run"``
            project: Only consider entries of this project
            limit: Maximum number of results, applied after ranking

        Returns:
            Results ordered by descending score, then depth, then path. An
            empty list when nothing matches or the project is unknown.
        """
        query_terms = match_terms(tokenize(query))
        if not query_terms:
            return []
        named = {p for p in self.projects if p.lower() in query_terms or p.lower() in query.lower().split()}

        ranked: list[tuple[tuple, SearchResult]] = []
        for n, i in enumerate(sorted(self._candidates(query_terms))):
            if n % CANCEL_CHECK_INTERVAL == 0:
                check(ctx)
            entry = self.entries[i]
            if project is not None and entry.project != project:
                continue
            score = score_terms(query_terms, entry.terms)
            if score <= 0:
                continue
            if entry.project in named:
                score += PROJECT_BONUS
            result = SearchResult(
                project=entry.project,
                language=entry.language,
                library=entry.library,
                page_path=entry.page_path,
                section_path=entry.section_path,
                label=entry.label,
                detail=entry.detail,
                score=score,
                search_key=entry.path,
            )
            sort_key = (
                -score,
                entry.depth,
                entry.path,
                entry.project,
                entry.language,
                entry.page_path,
                entry.section_path,
            )
            ranked.append((sort_key, result))

        ranked.sort(key=lambda item: item[0])
        results = [result for _, result in ranked]
        if limit is not None:
            results = results[: max(limit, 0)]
        return results


class SearchEngine:
    """
    Builds and caches search indexes over an ``IndexStore``.

    Built indexes are cached per project scope and rebuilt as soon as the
    store's generation counter moves, i.e. after any put or delete. Scopes of
    an older generation are dropped on rebuild and unknown projects are
    never cached.
    """

    def __init__(self, store: IndexStore, include_categories: bool = False):
        self.store = store
        self.include_categories = include_categories
        self._cache: dict[str | None, SearchIndex] = {}
        self._lock = threading.Lock()

    def build(self, project: str | None = None, ctx: CancelToken | None = None) -> SearchIndex:
        """
        Load the indexes in scope and build a search index over them.

        Raises:
            SchemaVersionError: if a stored index is newer than this reader.
            IndexIOError: if the store cannot be read.
            OperationCancelled: if ``ctx`` fires during the build.
        """
        generation = self.store.generation()
        with self._lock:
            cached = self._cache.get(project)
            if cached is not None and cached.generation == generation:
                return cached

        keys = [key for key in self.store.list() if project is None or key[0] == project]
        entries: list[SearchEntry] = []
        for key_project, language in keys:
            check(ctx)
            try:
                index = self.store.get(key_project, language, ctx)
            except IndexNotFoundError:
                continue  # deleted since list(); the next generation drops it anyway
            entries.extend(iter_entries(key_project, index, self.include_categories, ctx))

        built = SearchIndex(entries, generation)
        logger.debug(
            "Built search index for %s: %d entries from %d indexes",
            project or "all projects",
            len(built),
            len(keys),
        )
        if project is not None and not keys:
            return built  # unknown project
        with self._lock:
            stale = [scope for scope, cached in self._cache.items() if cached.generation != generation]
            for scope in stale:
                del self._cache[scope]
            self._cache[project] = built
        return built

    def search(
        self,
        query: str,
        project: str | None = None,
        limit: int | None = None,
        ctx: CancelToken | None = None,
    ) -> list[SearchResult]:
        """Search all projects, or only ``project`` when given."""
        return self.build(project, ctx).query(query, project=project, limit=limit, ctx=ctx)

    def invalidate(self) -> None:
        """Drop all cached search indexes."""
        with self._lock:
            self._cache.clear()


def search(
    store_location: Path,
    query: str,
    project: str | None = None,
    limit: int | None = None,
    ctx: CancelToken | None = None,
) -> list[SearchResult]:
    """
    One-shot search against the index database at ``store_location``.

    A location with no database yet has nothing indexed, which is an empty
    result rather than an error.
    """
    store_location = Path(store_location)
    if not store_location.exists():
        logger.debug("No index store at %s", store_location)
        return []
    store = IndexStore(store_location)
    try:
        return SearchEngine(store).search(query, project=project, limit=limit, ctx=ctx)
    finally:
        store.close()
