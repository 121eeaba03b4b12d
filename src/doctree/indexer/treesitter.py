"""Thin helpers around tree-sitter shared by the grammar-based extractors.

The extractors only walk nodes (``type``, ``children``, ``child_by_field_name``,
``text``), so swapping the grammar package for a language never touches the
schema or the search engine.
"""

import importlib
import inspect
import threading
from typing import Any

import tree_sitter

_languages: dict[str, tree_sitter.Language] = {}
_languages_lock = threading.Lock()


def load_language(grammar_module: str) -> tree_sitter.Language:
    """
    Load (and cache) the tree-sitter language exported by ``grammar_module``.

    Raises:
        ValueError: if the grammar package is not installed.
    """
    with _languages_lock:
        language = _languages.get(grammar_module)
        if language is None:
            try:
                module = importlib.import_module(grammar_module)
            except ImportError as err:
                raise ValueError(f"Grammar not available: {grammar_module}") from err
            language = tree_sitter.Language(module.language())
            _languages[grammar_module] = language
        return language


def new_parser(grammar_module: str) -> tree_sitter.Parser:
    """Create a parser for one grammar. Parsers are not shared between threads."""
    return tree_sitter.Parser(load_language(grammar_module))


def node_text(node: Any | None) -> str:
    """Return the source text of a node, or "" for a missing node."""
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def field_text(node: Any, field_name: str) -> str:
    return node_text(node.child_by_field_name(field_name))


def clean_python_docstring(literal: str) -> str:
    """Strip prefixes and quotes from a Python string literal and dedent it."""
    text = literal.lstrip("rRuUbBfF")
    for quote in ('"""', "'''", '"', "'"):
        if text.startswith(quote) and text.endswith(quote) and len(text) >= 2 * len(quote):
            text = text[len(quote) : -len(quote)]
            break
    return inspect.cleandoc(text)


def clean_line_comments(comments: list[str]) -> str:
    """Join ``//`` comment lines into a doc string."""
    lines = []
    for comment in comments:
        if comment.startswith("//"):
            comment = comment[2:]
            if comment.startswith(" "):
                comment = comment[1:]
        elif comment.startswith("/*") and comment.endswith("*/"):
            comment = inspect.cleandoc(comment[2:-2])
        lines.append(comment.rstrip())
    return "\n".join(lines).strip()
