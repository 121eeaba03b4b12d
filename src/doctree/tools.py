"""MCP tools for the doctree server.

This module defines the tools exposed by the MCP server:
- search: Ranked symbol search across all indexed projects
- list_indexes: List the stored (project, language) indexes
- index_directory: Index a source directory as a project (write tool)
"""

import logging
from pathlib import Path

from fastmcp import FastMCP

from doctree.auth import require_index_access
from doctree.config import Config
from doctree.indexer import Indexer
from doctree.search import SearchEngine
from doctree.store import IndexStore

logger = logging.getLogger(__name__)

MAX_DETAIL_CHARS = 500


def search_symbols(
    engine: SearchEngine,
    query: str,
    project: str | None = None,
    limit: int = 20,
) -> list[dict]:
    """Run a search and shape the results for MCP clients."""
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")
    results = engine.search(query, project=project or None, limit=limit)
    shaped = []
    for result in results:
        item = result.to_dict()
        if len(item["detail"]) > MAX_DETAIL_CHARS:
            item["detail"] = item["detail"][:MAX_DETAIL_CHARS] + "..."
        item["score"] = round(result.score, 2)
        shaped.append(item)
    return shaped


def list_stored_indexes(store: IndexStore, project: str | None = None) -> list[dict]:
    """Describe the stored indexes."""
    return [
        {
            "project": info.project,
            "language": info.language,
            "schema_version": info.schema_version,
            "num_files": info.num_files,
            "num_bytes": info.num_bytes,
            "indexed_at": info.indexed_at.isoformat(),
        }
        for info in store.list_info(project or None)
    ]


def index_path(config: Config, indexer: Indexer, path: str, project: str | None = None) -> dict:
    """Index a directory, refusing in read-only mode."""
    require_index_access(config, "index_directory")
    root = Path(path).expanduser()
    if not root.is_dir():
        raise ValueError(f"Not a directory: {path}")
    name = project or root.resolve().name
    indexes = indexer.index_project(name, root)
    return {
        "project": name,
        "languages": {
            language: {"num_files": index.num_files, "num_bytes": index.num_bytes}
            for language, index in sorted(indexes.items())
        },
    }


def register_tools(mcp: FastMCP, engine: SearchEngine, indexer: Indexer, config: Config) -> None:
    """Register all tools with the FastMCP server.

    Args:
        mcp: FastMCP server instance
        engine: Search engine over the index store
        indexer: Indexer writing to the same store
        config: Configuration (read-only mode)
    """

    @mcp.tool()
    def search(query: str, project: str | None = None, limit: int = 20) -> list[dict]:
        """Search for modules, functions, types and headings across indexed projects.

        Matching is lexical over the symbol path: "run", "pkg.run" and
        "server start" all work. Results rank exact name matches above
        substring matches and top-level symbols above nested ones.

        Args:
            query: Search query, e.g. a symbol name or dotted path
            project: Optional project name to restrict the search to
            limit: Maximum number of results to return (default: 20)

        Returns:
            List of search results with:
            - project: Project name
            - language: Language of the index the match came from
            - library: Library identifier
            - page_path: File (or package directory) of the match
            - section_path: Section ids from the page down to the match
            - label: Signature or heading
            - detail: Documentation text (truncated)
            - score: Relevance score (higher is better)
            - search_key: Fully qualified path of the match
        """
        return search_symbols(engine, query, project=project, limit=limit)

    @mcp.tool()
    def list_indexes(project: str | None = None) -> list[dict]:
        """List stored indexes, one per project and language.

        Args:
            project: Optional project name filter

        Returns:
            List of indexes with project, language, schema_version,
            num_files, num_bytes and indexed_at.
        """
        return list_stored_indexes(engine.store, project)

    @mcp.tool()
    def index_directory(path: str, project: str | None = None) -> dict:
        """Index a source directory on the server's filesystem.

        Every supported language found under the directory is indexed and
        replaces the previous index of that project and language.

        Args:
            path: Directory to index
            project: Project name (default: the directory name)

        Returns:
            Dictionary with the project name and per-language file and byte counts.
        """
        return index_path(config, indexer, path, project)

    logger.debug("Registered tools: search, list_indexes, index_directory")
