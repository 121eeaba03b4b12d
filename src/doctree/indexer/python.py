"""Python extractor built on the tree-sitter Python grammar."""

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from doctree.cancel import CancelToken
from doctree.indexer.base import Extractor
from doctree.indexer.treesitter import clean_python_docstring, field_text, new_parser, node_text
from doctree.schema import LANGUAGE_PYTHON, Index, Library, Page, Section, SectionRole

logger = logging.getLogger(__name__)

# Any of these in a relative path marks the file as a test
TEST_MARKERS = ("test_", "_test", "tests")


def is_public(name: str) -> bool:
    """
    Python visibility convention.

    ``_private`` names are hidden, ``__dunder__`` names are kept.
    """
    return not (name.startswith("_") and not name.endswith("_"))


def module_name(relative_path: str) -> str:
    """Dotted module name for a file path, e.g. ``pkg/sub/mod.py`` -> ``pkg.sub.mod``."""
    path = Path(relative_path)
    parts = list(path.with_suffix("").parts)
    if len(parts) > 1 and parts[-1] == "__init__":
        parts.pop()
    return ".".join(parts)


def _definitions(block: Any) -> Iterator[Any]:
    """Yield function and class definitions directly inside a block, unwrapping decorators."""
    for child in block.named_children:
        if child.type == "decorated_definition":
            child = child.child_by_field_name("definition")
            if child is None:
                continue
        if child.type in ("function_definition", "class_definition"):
            yield child


def _docstring(block: Any | None) -> str:
    """Docstring of a module or definition body: a leading string expression."""
    if block is None:
        return ""
    for child in block.named_children:
        if child.type == "comment":
            continue
        if child.type == "expression_statement" and child.named_children:
            first = child.named_children[0]
            if first.type == "string":
                return clean_python_docstring(node_text(first))
        return ""
    return ""


class PythonExtractor(Extractor):
    """
    Documents modules, public top-level functions, classes and their methods.

    Parse policy: tree-sitter recovers from syntax errors, so a file that does
    not parse cleanly is still indexed with whatever definitions were
    recovered, and a warning names the file.
    """

    language = LANGUAGE_PYTHON
    extensions = frozenset({"py", "py3"})
    grammar = "tree_sitter_python"

    def is_test_path(self, relative_path: str) -> bool:
        return any(marker in relative_path for marker in TEST_MARKERS)

    def index_dir(self, directory: Path, ctx: CancelToken | None = None) -> Index:
        directory = Path(directory)
        parser = new_parser(self.grammar)

        pages: list[Page] = []
        num_files = 0
        num_bytes = 0
        for source in self.source_files(directory, ctx):
            content = self.read_source(source, ctx)
            num_files += 1
            num_bytes += len(content)

            tree = parser.parse(content)
            if tree.root_node.has_error:
                logger.warning("Syntax errors in %s, indexing recovered definitions", source.relative_path)
            pages.append(self._module_page(source.relative_path, tree.root_node))

        logger.info("Python: indexed %d files (%d bytes) under %s", num_files, num_bytes, directory)
        name = directory.resolve().name or str(directory)
        return Index(
            language=self.language,
            num_files=num_files,
            num_bytes=num_bytes,
            libraries=(Library(name=name, id=name, pages=tuple(pages)),),
        )

    def _module_page(self, relative_path: str, root: Any) -> Page:
        mod_name = module_name(relative_path)
        functions: list[Section] = []
        classes: list[Section] = []
        seen: set[str] = set()

        for node in _definitions(root):
            if node.type == "function_definition":
                section = self._function(node, (mod_name,))
                target = functions
            else:
                section = self._class(node, mod_name)
                target = classes
            if section is None or section.id in seen:
                continue  # private, or redefined later in the module
            seen.add(section.id)
            target.append(section)

        sections = []
        if functions:
            sections.append(
                Section(
                    id="func",
                    short_label="func",
                    label="Functions",
                    role=SectionRole.CATEGORY,
                    children=tuple(functions),
                )
            )
        if classes:
            sections.append(
                Section(
                    id="class",
                    short_label="class",
                    label="Classes",
                    role=SectionRole.CATEGORY,
                    children=tuple(classes),
                )
            )

        return Page(
            path=relative_path,
            title=f"Module {mod_name}",
            detail=_docstring(root),
            search_key=(mod_name,),
            sections=tuple(sections),
        )

    def _function(self, node: Any, parent_key: tuple[str, ...]) -> Section | None:
        name = field_text(node, "name")
        if not name or not is_public(name):
            return None

        keyword = "def"
        if node.children and node.children[0].type == "async":
            keyword = "async def"
        label = f"{keyword} {name}{field_text(node, 'parameters')}"
        result = field_text(node, "return_type")
        if result:
            label += f" -> {result}"

        return Section(
            id=name,
            short_label=name,
            label=label,
            detail=_docstring(node.child_by_field_name("body")),
            search_key=parent_key + (".", name),
        )

    def _class(self, node: Any, mod_name: str) -> Section | None:
        name = field_text(node, "name")
        if not name or not is_public(name):
            return None

        body = node.child_by_field_name("body")
        methods: list[Section] = []
        seen: set[str] = set()
        if body is not None:
            for child in _definitions(body):
                if child.type != "function_definition":
                    continue
                method = self._function(child, (mod_name, ".", name))
                if method is None or method.id in seen:
                    continue
                seen.add(method.id)
                methods.append(method)

        return Section(
            id=name,
            short_label=name,
            label=f"class {name}{field_text(node, 'superclasses')}",
            detail=_docstring(body),
            search_key=(mod_name, ".", name),
            children=tuple(methods),
        )
