"""Markdown extractor: one page per document, one section per heading."""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from doctree.cancel import CancelToken
from doctree.indexer.base import Extractor
from doctree.indexer.chunker import first_paragraph, split_by_headings, truncate
from doctree.indexer.parser import parse_frontmatter
from doctree.schema import LANGUAGE_MARKDOWN, Index, Library, Page, Section

logger = logging.getLogger(__name__)

TEST_DIRS = {"testdata", "fixtures"}


def slugify(text: str) -> str:
    """GitHub-style anchor for a heading."""
    slug = re.sub(r"[^\w\- ]", "", text.lower()).strip()
    return re.sub(r"\s+", "-", slug) or "section"


@dataclass
class _Heading:
    text: str
    level: int
    content: str
    children: list["_Heading"] = field(default_factory=list)


class MarkdownExtractor(Extractor):
    """
    Documents Markdown files as a tree of headings.

    Frontmatter (YAML) may set ``title``, ``description`` and ``tags``.
    Section search keys are relative (``["#", heading]``), so the full key of
    a heading is the page key followed by the keys of its ancestors.

    Parse policy: a file that is not valid UTF-8 is skipped and a warning names
    it; every other file is indexed.
    """

    language = LANGUAGE_MARKDOWN
    extensions = frozenset({"md", "markdown"})

    def is_test_path(self, relative_path: str) -> bool:
        return any(part in TEST_DIRS for part in PurePosixPath(relative_path).parts[:-1])

    def index_dir(self, directory: Path, ctx: CancelToken | None = None) -> Index:
        directory = Path(directory)
        pages: list[Page] = []
        num_files = 0
        num_bytes = 0
        for source in self.source_files(directory, ctx):
            content = self.read_source(source, ctx)
            try:
                text = content.decode("utf-8")
            except UnicodeDecodeError as e:
                logger.warning("Skipping file with invalid UTF-8 encoding: %s (%s)", source.relative_path, e)
                continue
            num_files += 1
            num_bytes += len(content)
            pages.append(self._page(source.relative_path, text))

        logger.info("Markdown: indexed %d files (%d bytes) under %s", num_files, num_bytes, directory)
        name = directory.resolve().name or str(directory)
        return Index(
            language=self.language,
            num_files=num_files,
            num_bytes=num_bytes,
            libraries=(Library(name=name, id=name, pages=tuple(pages)),),
        )

    def _page(self, relative_path: str, text: str) -> Page:
        metadata, body = parse_frontmatter(text, relative_path)

        roots: list[_Heading] = []
        stack: list[_Heading] = []
        intro = ""
        first_title: str | None = None
        for block in split_by_headings(body):
            if block.heading is None:
                intro = block.content
                continue
            if first_title is None and block.level == 1:
                first_title = block.heading
            node = _Heading(block.heading, block.level, block.content)
            while stack and stack[-1].level >= node.level:
                stack.pop()
            (stack[-1].children if stack else roots).append(node)
            stack.append(node)

        detail = metadata.description or first_paragraph(intro)
        if metadata.tags:
            tags = ", ".join(metadata.tags)
            detail = f"{detail}\n\nTags: {tags}" if detail else f"Tags: {tags}"

        stem = str(PurePosixPath(relative_path).with_suffix(""))
        return Page(
            path=relative_path,
            title=metadata.title or first_title or PurePosixPath(relative_path).stem,
            detail=detail,
            search_key=(stem,),
            sections=_sections(roots),
        )


def _sections(headings: list[_Heading]) -> tuple[Section, ...]:
    sections = []
    used: set[str] = set()
    for heading in headings:
        slug = slugify(heading.text)
        section_id = slug
        count = 0
        while section_id in used:
            count += 1
            section_id = f"{slug}-{count}"
        used.add(section_id)
        sections.append(
            Section(
                id=section_id,
                short_label=heading.text,
                label=heading.text,
                detail=truncate(heading.content),
                search_key=("#", heading.text),
                children=_sections(heading.children),
            )
        )
    return tuple(sections)
