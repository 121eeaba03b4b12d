"""Source tree walker shared by the registry and the extractors."""

import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from doctree.cancel import CancelToken, check

# Directories that hold dependencies or build output rather than project sources
SKIP_DIRS = {
    "node_modules",
    "__pycache__",
    "vendor",
    "venv",
    "site-packages",
}


@dataclass
class SourceFile:
    """Information about a discovered file."""

    path: Path  # Absolute path
    relative_path: str  # POSIX path relative to the walked root
    extension: str  # Lower case, without the dot ("py", "go", "md")
    size: int


def file_extension(name: str) -> str:
    """Return the lower-cased extension of ``name`` without the leading dot."""
    return Path(name).suffix.lower().lstrip(".")


def walk_source_tree(root: Path, ctx: CancelToken | None = None) -> Iterator[SourceFile]:
    """
    Walk ``root`` recursively and yield every candidate source file.

    Files are yielded in sorted order so repeated runs over the same tree emit
    pages in the same order. Hidden files and directories, and the directories
    in SKIP_DIRS, are skipped. A missing root yields nothing.

    Raises:
        OSError: if a directory cannot be listed.
    """
    if not root.is_dir():
        return

    def on_error(error: OSError) -> None:
        raise error

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
        check(ctx)
        # Prune in place so os.walk does not descend into skipped directories
        dirnames[:] = sorted(
            d for d in dirnames if not d.startswith(".") and d not in SKIP_DIRS
        )
        current = Path(dirpath)
        for filename in sorted(filenames):
            if filename.startswith("."):
                continue
            file_path = current / filename
            if not file_path.is_file():
                continue
            yield SourceFile(
                path=file_path,
                relative_path=file_path.relative_to(root).as_posix(),
                extension=file_extension(filename),
                size=file_path.stat().st_size,
            )
