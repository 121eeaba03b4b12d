"""Parser for YAML frontmatter in Markdown documents."""

import logging
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)


@dataclass
class FrontmatterData:
    """Parsed frontmatter data."""

    title: str | None = None
    description: str | None = None
    tags: list[str] | None = None
    raw: dict | None = None


def parse_frontmatter(content: str, file_path: str) -> tuple[FrontmatterData, str]:
    """
    Parse YAML frontmatter from markdown content.

    Invalid YAML is logged and the document is treated as having no
    frontmatter.

    Args:
        content: The full markdown content
        file_path: Path used in log messages

    Returns:
        Tuple of (FrontmatterData, content_without_frontmatter)
    """
    data = FrontmatterData()
    body = content

    if content.startswith("---"):
        parts = content.split("---", 2)
        if len(parts) >= 3:
            try:
                raw = yaml.safe_load(parts[1])
                if isinstance(raw, dict):
                    data.raw = raw
                    title = raw.get("title")
                    if title is not None:
                        data.title = str(title)
                    description = raw.get("description")
                    if description is not None:
                        data.description = str(description)

                    tags = raw.get("tags")
                    if isinstance(tags, list):
                        data.tags = [str(t) for t in tags]

                    # Body is everything after the closing ---
                    body = parts[2].lstrip("\n")
            except yaml.YAMLError as e:
                logger.debug("Invalid YAML frontmatter in %s: %s", file_path, e)

    return data, body
