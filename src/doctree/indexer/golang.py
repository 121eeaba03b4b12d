"""Go extractor built on the tree-sitter Go grammar."""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

from doctree.cancel import CancelToken
from doctree.errors import IndexIOError, ParseError
from doctree.indexer.base import Extractor
from doctree.indexer.treesitter import clean_line_comments, field_text, new_parser, node_text
from doctree.schema import LANGUAGE_GO, Index, Library, Page, Section, SectionRole

logger = logging.getLogger(__name__)

MODULE_PATTERN = re.compile(r"^module\s+(\S+)", re.MULTILINE)


def is_exported(name: str) -> bool:
    """Go visibility convention: exported identifiers start with an upper case letter."""
    return bool(name) and name[0].isupper()


def read_module_path(directory: Path) -> str | None:
    """
    Module path declared in ``go.mod``, or None when there is no ``go.mod``.

    Raises:
        IndexIOError: if ``go.mod`` cannot be read.
        ParseError: if ``go.mod`` has no module directive.
    """
    go_mod = directory / "go.mod"
    if not go_mod.is_file():
        return None
    try:
        content = go_mod.read_text(encoding="utf-8")
    except OSError as e:
        raise IndexIOError(f"Cannot read {go_mod}: {e}", str(go_mod)) from e
    except UnicodeDecodeError as e:
        raise ParseError(str(go_mod), f"invalid UTF-8: {e}") from e
    match = MODULE_PATTERN.search(content)
    if match is None:
        raise ParseError(str(go_mod), "no module directive")
    return match.group(1).strip('"`')


@dataclass
class _Package:
    """Declarations collected for one package directory."""

    directory: str
    name: str = ""
    docs: str = ""
    functions: dict[str, Section] = field(default_factory=dict)
    types: dict[str, Section] = field(default_factory=dict)
    methods: dict[str, dict[str, Section]] = field(default_factory=dict)


class GoExtractor(Extractor):
    """
    Documents Go packages: exported functions, exported types and their methods.

    Files are grouped into one page per package directory. Parse policy is the
    same as the Python extractor: syntax errors are logged and whatever
    tree-sitter recovered is indexed. A malformed ``go.mod`` raises
    ``ParseError``.
    """

    language = LANGUAGE_GO
    extensions = frozenset({"go"})
    grammar = "tree_sitter_go"

    def is_test_path(self, relative_path: str) -> bool:
        path = PurePosixPath(relative_path)
        return path.name.endswith("_test.go") or "testdata" in path.parts

    def index_dir(self, directory: Path, ctx: CancelToken | None = None) -> Index:
        directory = Path(directory)
        parser = new_parser(self.grammar)
        module_path = read_module_path(directory)

        packages: dict[str, _Package] = {}
        num_files = 0
        num_bytes = 0
        for source in self.source_files(directory, ctx):
            content = self.read_source(source, ctx)
            num_files += 1
            num_bytes += len(content)

            tree = parser.parse(content)
            if tree.root_node.has_error:
                logger.warning("Syntax errors in %s, indexing recovered declarations", source.relative_path)

            package_dir = str(PurePosixPath(source.relative_path).parent)
            package = packages.setdefault(package_dir, _Package(directory=package_dir))
            self._collect(package, tree.root_node, self._import_path(module_path, directory, package_dir))

        pages = [
            self._package_page(package, self._import_path(module_path, directory, package.directory))
            for package in packages.values()
        ]

        logger.info("Go: indexed %d files (%d bytes) under %s", num_files, num_bytes, directory)
        name = module_path or directory.resolve().name or str(directory)
        return Index(
            language=self.language,
            num_files=num_files,
            num_bytes=num_bytes,
            libraries=(Library(name=name, id=name, pages=tuple(pages)),),
        )

    @staticmethod
    def _import_path(module_path: str | None, directory: Path, package_dir: str) -> str:
        base = module_path or directory.resolve().name
        if package_dir in ("", "."):
            return base
        return f"{base}/{package_dir}" if base else package_dir

    def _collect(self, package: _Package, root: Any, import_path: str) -> None:
        comments: list[Any] = []
        for node in root.named_children:
            if node.type == "comment":
                if comments and comments[-1].end_point[0] + 1 < node.start_point[0]:
                    comments = []
                comments.append(node)
                continue

            docs = ""
            if comments and comments[-1].end_point[0] + 1 >= node.start_point[0]:
                docs = clean_line_comments([node_text(c) for c in comments])
            comments = []

            if node.type == "package_clause":
                if not package.name:
                    for child in node.named_children:
                        if child.type == "package_identifier":
                            package.name = node_text(child)
                if docs and not package.docs:
                    package.docs = docs
            elif node.type == "function_declaration":
                self._add_function(package, node, docs, import_path)
            elif node.type == "method_declaration":
                self._add_method(package, node, docs, import_path)
            elif node.type == "type_declaration":
                self._add_types(package, node, docs, import_path)

    def _add_function(self, package: _Package, node: Any, docs: str, import_path: str) -> None:
        name = field_text(node, "name")
        if not is_exported(name) or name in package.functions:
            return
        label = f"func {name}{field_text(node, 'parameters')}"
        result = field_text(node, "result")
        if result:
            label += f" {result}"
        package.functions[name] = Section(
            id=name,
            short_label=name,
            label=label,
            detail=docs,
            search_key=(import_path, ".", name),
        )

    def _add_method(self, package: _Package, node: Any, docs: str, import_path: str) -> None:
        name = field_text(node, "name")
        receiver = field_text(node, "receiver")
        receiver_type = _receiver_type(node.child_by_field_name("receiver"))
        if not is_exported(name) or not is_exported(receiver_type):
            return
        methods = package.methods.setdefault(receiver_type, {})
        if name in methods:
            return
        label = f"func {receiver} {name}{field_text(node, 'parameters')}"
        result = field_text(node, "result")
        if result:
            label += f" {result}"
        methods[name] = Section(
            id=name,
            short_label=name,
            label=label,
            detail=docs,
            search_key=(import_path, ".", receiver_type, ".", name),
        )

    def _add_types(self, package: _Package, node: Any, docs: str, import_path: str) -> None:
        specs = [c for c in node.named_children if c.type in ("type_spec", "type_alias")]
        for spec in specs:
            name = field_text(spec, "name")
            if not is_exported(name) or name in package.types:
                continue
            type_node = spec.child_by_field_name("type")
            if type_node is not None and type_node.type == "struct_type":
                kind = "struct"
            elif type_node is not None and type_node.type == "interface_type":
                kind = "interface"
            else:
                kind = node_text(type_node)
            separator = " = " if spec.type == "type_alias" else " "
            package.types[name] = Section(
                id=name,
                short_label=name,
                label=f"type {name}{separator}{kind}".rstrip(),
                detail=docs,
                search_key=(import_path, ".", name),
            )

    def _package_page(self, package: _Package, import_path: str) -> Page:
        types = []
        for name, section in package.types.items():
            methods = package.methods.get(name, {})
            if methods:
                section = Section(
                    id=section.id,
                    short_label=section.short_label,
                    label=section.label,
                    detail=section.detail,
                    search_key=section.search_key,
                    children=tuple(methods.values()),
                )
            types.append(section)

        sections = []
        if package.functions:
            sections.append(
                Section(
                    id="func",
                    short_label="func",
                    label="Functions",
                    role=SectionRole.CATEGORY,
                    children=tuple(package.functions.values()),
                )
            )
        if types:
            sections.append(
                Section(
                    id="type",
                    short_label="type",
                    label="Types",
                    role=SectionRole.CATEGORY,
                    children=tuple(types),
                )
            )

        return Page(
            path=package.directory,
            title=f"Package {package.name or PurePosixPath(import_path).name}",
            detail=package.docs,
            search_key=(import_path,),
            sections=tuple(sections),
        )


def _receiver_type(receiver: Any | None) -> str:
    """Name of the receiver type: ``(s *Server)`` -> ``Server``, ``(l List[T])`` -> ``List``."""
    if receiver is None:
        return ""
    for param in receiver.named_children:
        if param.type != "parameter_declaration":
            continue
        text = field_text(param, "type").lstrip("*").strip()
        return text.split("[", 1)[0]
    return ""
