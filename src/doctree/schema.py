"""Documentation schema shared by every language extractor.

An extractor run over one directory for one language produces an ``Index``:

    Index
    └── Library (the project itself, or a dependency)
        └── Page (one source file or module)
            └── Section* (symbols, or category nodes that only group symbols)

Every object is an immutable dataclass. ``Index.to_dict()`` /
``Index.from_dict()`` define the stored JSON document, which always embeds
``schema_version`` so readers can refuse records they do not understand.
"""

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from doctree.errors import SchemaError, SchemaVersionError

# Bump when the stored document changes in a way older readers cannot handle.
LATEST_VERSION = 1

LANGUAGE_PYTHON = "python"
LANGUAGE_GO = "go"
LANGUAGE_MARKDOWN = "markdown"

SearchKey = tuple[str, ...]


class SectionRole(str, Enum):
    """Role of a section node in the documentation tree."""

    SYMBOL = "symbol"
    CATEGORY = "category"  # display grouping only, e.g. "Functions"


@dataclass(frozen=True)
class Section:
    """A symbol (function, type, heading...) or a category grouping symbols."""

    id: str
    short_label: str
    label: str
    detail: str = ""
    search_key: SearchKey = ()
    role: SectionRole = SectionRole.SYMBOL
    children: tuple["Section", ...] = ()

    @property
    def is_category(self) -> bool:
        return self.role is SectionRole.CATEGORY

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "short_label": self.short_label,
            "label": self.label,
            "detail": self.detail,
            "search_key": list(self.search_key),
            "role": self.role.value,
            "children": [child.to_dict() for child in self.children],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Section":
        try:
            role = SectionRole(data.get("role", SectionRole.SYMBOL.value))
        except ValueError as e:
            raise SchemaError(f"Unknown section role in section '{data.get('id')}'") from e
        return cls(
            id=str(data["id"]),
            short_label=str(data.get("short_label", "")),
            label=str(data.get("label", "")),
            detail=str(data.get("detail", "")),
            search_key=_key(data.get("search_key")),
            role=role,
            children=tuple(cls.from_dict(child) for child in data.get("children", ())),
        )


@dataclass(frozen=True)
class Page:
    """Documentation for one source file or module."""

    path: str
    title: str
    detail: str = ""
    search_key: SearchKey = ()
    sections: tuple[Section, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "title": self.title,
            "detail": self.detail,
            "search_key": list(self.search_key),
            "sections": [section.to_dict() for section in self.sections],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Page":
        return cls(
            path=str(data["path"]),
            title=str(data.get("title", "")),
            detail=str(data.get("detail", "")),
            search_key=_key(data.get("search_key")),
            sections=tuple(Section.from_dict(s) for s in data.get("sections", ())),
        )


@dataclass(frozen=True)
class Library:
    """A named group of pages: the indexed project itself or a dependency."""

    name: str
    id: str
    repository: str = ""
    version: str = ""
    version_type: str = ""
    pages: tuple[Page, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "id": self.id,
            "repository": self.repository,
            "version": self.version,
            "version_type": self.version_type,
            "pages": [page.to_dict() for page in self.pages],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Library":
        return cls(
            name=str(data.get("name", "")),
            id=str(data["id"]),
            repository=str(data.get("repository", "")),
            version=str(data.get("version", "")),
            version_type=str(data.get("version_type", "")),
            pages=tuple(Page.from_dict(p) for p in data.get("pages", ())),
        )


@dataclass(frozen=True)
class Index:
    """Everything one extractor found for one language in one directory."""

    language: str
    schema_version: int = LATEST_VERSION
    num_files: int = 0
    num_bytes: int = 0
    libraries: tuple[Library, ...] = field(default_factory=tuple)

    def iter_pages(self) -> Iterator[tuple[Library, Page]]:
        """Yield (library, page) pairs in emitted order."""
        for library in self.libraries:
            for page in library.pages:
                yield library, page

    def validate(self) -> None:
        """
        Check the structural invariants of the tree.

        Raises:
            SchemaError: naming the first violation found.
        """
        library_ids: set[str] = set()
        for library in self.libraries:
            if library.id in library_ids:
                raise SchemaError(f"Duplicate library id '{library.id}'")
            library_ids.add(library.id)

            page_paths: set[str] = set()
            for page in library.pages:
                if page.path in page_paths:
                    raise SchemaError(
                        f"Duplicate page path '{page.path}' in library '{library.id}'"
                    )
                page_paths.add(page.path)
                _validate_sections(page.sections, f"{library.id}:{page.path}", set())

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "language": self.language,
            "num_files": self.num_files,
            "num_bytes": self.num_bytes,
            "libraries": [library.to_dict() for library in self.libraries],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Index":
        """
        Build an Index from its stored document.

        Raises:
            SchemaVersionError: if the document is newer than LATEST_VERSION.
            SchemaError: if the document is malformed.
        """
        if not isinstance(data, Mapping):
            raise SchemaError("Index document must be a mapping")
        version = data.get("schema_version")
        if not isinstance(version, int) or isinstance(version, bool):
            raise SchemaError(f"Missing or invalid schema_version: {version!r}")
        if version > LATEST_VERSION:
            raise SchemaVersionError(version, LATEST_VERSION)
        try:
            return cls(
                schema_version=version,
                language=str(data["language"]),
                num_files=int(data.get("num_files", 0)),
                num_bytes=int(data.get("num_bytes", 0)),
                libraries=tuple(Library.from_dict(lib) for lib in data.get("libraries", ())),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            if isinstance(e, SchemaError):
                raise
            raise SchemaError(f"Malformed index document: {e!r}") from e


def join_search_key(prefix: Sequence[str], key: Sequence[str]) -> SearchKey:
    """
    Append a child's search key to its parent's.

    A child key that already starts with the whole prefix is absolute and is
    returned unchanged, so extractors may emit either relative or fully
    qualified keys.
    """
    prefix = tuple(prefix)
    key = tuple(key)
    if prefix and key[: len(prefix)] == prefix:
        return key
    return prefix + key


def _key(value: Any) -> SearchKey:
    if value is None:
        return ()
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise SchemaError(f"search_key must be a list of strings, got {value!r}")
    return tuple(str(token) for token in value)


def _validate_sections(sections: Sequence[Section], where: str, ancestors: set[int]) -> None:
    ids: set[str] = set()
    for section in sections:
        if section.id in ids:
            raise SchemaError(f"Duplicate section id '{section.id}' under {where}")
        ids.add(section.id)
        if id(section) in ancestors:
            raise SchemaError(f"Cycle detected at section '{section.id}' under {where}")
        _validate_sections(
            section.children, f"{where}/{section.id}", ancestors | {id(section)}
        )
