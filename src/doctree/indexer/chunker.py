"""Splitting Markdown bodies into heading blocks."""

import re
from dataclasses import dataclass

# Maximum characters kept as the detail text of one heading
MAX_DETAIL_CHARS = 6000

HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+?)(?:\s+#+)?\s*$")
FENCE_PATTERN = re.compile(r"^\s*(```|~~~)")


@dataclass
class HeadingBlock:
    """A heading and the text up to the next heading."""

    heading: str | None  # None for text before the first heading
    level: int
    content: str
    char_offset: int


def split_by_headings(content: str) -> list[HeadingBlock]:
    """
    Split content at ATX headings (``#`` to ``######``).

    Lines inside fenced code blocks are never treated as headings. Text before
    the first heading is returned as a block with ``heading=None`` when it is
    not empty.
    """
    blocks: list[HeadingBlock] = []
    heading: str | None = None
    level = 0
    offset = 0
    lines: list[str] = []
    in_fence = False
    position = 0

    for line in content.splitlines(keepends=True):
        stripped = line.rstrip("\n")
        if FENCE_PATTERN.match(stripped):
            in_fence = not in_fence
        match = None if in_fence else HEADING_PATTERN.match(stripped)
        if match:
            text = "".join(lines).strip()
            if heading is not None or text:
                blocks.append(HeadingBlock(heading, level, text, offset))
            heading = match.group(2).strip()
            level = len(match.group(1))
            offset = position
            lines = []
        else:
            lines.append(line)
        position += len(line)

    text = "".join(lines).strip()
    if heading is not None or text:
        blocks.append(HeadingBlock(heading, level, text, offset))
    return blocks


def truncate(text: str, max_chars: int = MAX_DETAIL_CHARS) -> str:
    """Cut ``text`` at the last paragraph break that fits in ``max_chars``."""
    if len(text) <= max_chars:
        return text
    cut = text.rfind("\n\n", 0, max_chars)
    if cut <= 0:
        cut = max_chars
    return text[:cut].rstrip()


def first_paragraph(text: str) -> str:
    """First non-empty paragraph of ``text``."""
    for paragraph in re.split(r"\n\s*\n", text):
        paragraph = paragraph.strip()
        if paragraph:
            return paragraph
    return ""
