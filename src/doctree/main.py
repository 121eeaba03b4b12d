"""Main entry point for doctree: indexing, search and the MCP server."""

import argparse
import logging
import sys
from pathlib import Path

from fastmcp import FastMCP

from doctree.auth import get_auth_provider
from doctree.config import Config
from doctree.errors import DoctreeError, SchemaVersionError
from doctree.indexer import Indexer, default_registry
from doctree.search import SearchEngine, search
from doctree.store import IndexStore
from doctree.tools import register_tools

logger = logging.getLogger(__name__)


def create_server(config: Config) -> FastMCP:
    """Create and configure the MCP server with all components.

    Args:
        config: Configuration instance with all settings.
    """
    auth_provider = get_auth_provider(config)

    mcp = FastMCP(
        name="doctree",
        instructions=(
            "doctree indexes source code in several languages into documentation "
            "and searches it. Use the search tool to find modules, functions, types "
            "and headings across all indexed projects, optionally limited to one project."
        ),
        auth=auth_provider,
    )

    logger.info("Opening index store at %s", config.index_db)
    store = IndexStore(config.index_db)
    store.initialize()

    indexer = Indexer(store, default_registry(), max_workers=config.workers)
    engine = SearchEngine(store)

    index_count = len(store.list())
    if index_count == 0:
        logger.info("Index store is empty, use the index_directory tool or 'doctree index'")
    else:
        logger.info("Index store holds %d indexes", index_count)

    logger.info("Registering tools...")
    register_tools(mcp, engine, indexer, config)

    logger.info("Server configured successfully")
    return mcp


def run_index(config: Config, args: argparse.Namespace) -> int:
    root = Path(args.directory).expanduser()
    project = args.project or root.resolve().name
    store = IndexStore(config.index_db)
    try:
        indexer = Indexer(store, default_registry(), max_workers=config.workers)
        indexes = indexer.index_project(project, root)
    finally:
        store.close()

    if not indexes:
        print(f"{project}: no supported source files found under {root}")
    for language, index in sorted(indexes.items()):
        print(f"{project}: {language}: {index.num_files} files, {index.num_bytes} bytes")
    return 0


def run_search(config: Config, args: argparse.Namespace) -> int:
    results = search(config.index_db, args.query, project=args.project, limit=args.limit)
    if not results:
        print("No results.")
    for result in results:
        print(f"{result.score:6.1f}  {result.search_key}  [{result.project}/{result.language}]")
        print(f"        {result.label}  ({result.page_path})")
    return 0


def run_list(config: Config, args: argparse.Namespace) -> int:
    infos = []
    if config.index_db.exists():
        store = IndexStore(config.index_db)
        try:
            infos = store.list_info(args.project)
        finally:
            store.close()

    if not infos:
        print("Nothing indexed yet.")
    for info in infos:
        print(
            f"{info.project}  {info.language}  {info.num_files} files  "
            f"{info.num_bytes} bytes  indexed {info.indexed_at:%Y-%m-%d %H:%M}"
        )
    return 0


def run_serve(config: Config, args: argparse.Namespace) -> int:
    logger.info("=" * 50)
    logger.info("doctree starting...")
    logger.info("  DATA_DIR:  %s", config.data_dir)
    logger.info("  DB:        %s", config.index_db)
    logger.info("  PORT:      %s", config.port)
    logger.info("  AUTH:      %s", "enabled" if config.auth_token else "disabled")
    logger.info("  READ_ONLY: %s", config.read_only)
    logger.info("=" * 50)

    mcp = create_server(config)
    logger.info("Starting MCP server on port %s...", config.port)
    mcp.run(transport="sse", host=args.host, port=config.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="doctree",
        description="doctree - documentation index and symbol search for source trees",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    index_cmd = commands.add_parser("index", help="Index a source directory")
    index_cmd.add_argument("directory", nargs="?", default=".", help="Directory to index")
    index_cmd.add_argument("--project", help="Project name (default: directory name)")
    index_cmd.set_defaults(handler=run_index)

    search_cmd = commands.add_parser("search", help="Search indexed projects")
    search_cmd.add_argument("query", help="Search query, e.g. 'pkg.run'")
    search_cmd.add_argument("--project", help="Search in a specific project")
    search_cmd.add_argument("--limit", type=int, default=20, help="Maximum results")
    search_cmd.set_defaults(handler=run_search)

    list_cmd = commands.add_parser("list", help="List stored indexes")
    list_cmd.add_argument("--project", help="Only list this project")
    list_cmd.set_defaults(handler=run_list)

    serve_cmd = commands.add_parser("serve", help="Run the MCP server")
    serve_cmd.add_argument("--host", default="0.0.0.0", help="Interface to bind")
    serve_cmd.add_argument(
        "--read-only",
        action="store_true",
        help="Run in read-only mode (disable the index_directory tool)",
    )
    serve_cmd.set_defaults(handler=run_serve)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main function - dispatches the subcommand."""
    args = build_parser().parse_args(argv)

    # Configure logging here to avoid side effects on import
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    read_only = getattr(args, "read_only", False)
    try:
        config = Config.from_env(read_only_override=True if read_only else None)
        return args.handler(config, args)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except SchemaVersionError as e:
        logger.error("%s. Upgrade doctree or reindex the project.", e)
        return 1
    except (DoctreeError, ValueError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
