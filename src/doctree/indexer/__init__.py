"""
Indexer package for doctree.

Language extractors turn source trees into documentation indexes; the
registry decides which extractors apply to a directory and the Indexer runs
them and writes the results to the index store.
"""

from doctree.indexer.base import Extractor
from doctree.indexer.golang import GoExtractor
from doctree.indexer.indexer import Indexer
from doctree.indexer.markdown import MarkdownExtractor
from doctree.indexer.python import PythonExtractor
from doctree.indexer.registry import Registry, default_registry
from doctree.indexer.walker import SourceFile, walk_source_tree

__all__ = [
    "Extractor",
    "GoExtractor",
    "Indexer",
    "MarkdownExtractor",
    "PythonExtractor",
    "Registry",
    "SourceFile",
    "default_registry",
    "walk_source_tree",
]
