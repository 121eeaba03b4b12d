"""
doctree - multi-language documentation index and symbol search.

Indexes source trees (Python, Go, Markdown) into a common documentation
schema, stores one index per project and language, and answers ranked symbol
searches across projects.

Stack:
- Python + FastMCP (search service)
- tree-sitter grammars (Python, Go)
- SQLite (index store)
"""

__version__ = "0.1.0"
