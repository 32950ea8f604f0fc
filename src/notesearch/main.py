"""Main entry point for the notesearch MCP server."""

import argparse
import logging
import sys

from fastmcp import FastMCP

from notesearch.config import Config, get_config
from notesearch.saved import SavedSearchStore
from notesearch.search import SearchEngine
from notesearch.sync import SyncManager
from notesearch.tools import register_tools
from notesearch.vault import VaultLoader

logger = logging.getLogger(__name__)


def create_server(config: Config) -> tuple[FastMCP, SyncManager]:
    """Create and configure the MCP server with all components.

    Args:
        config: Configuration instance with all settings.

    Returns:
        Tuple of (server, sync manager). The sync manager is not started;
        the caller decides whether background syncing runs.
    """
    mcp = FastMCP(
        name="notesearch",
        instructions=(
            "notesearch indexes a vault of markdown notes. Use the search tool for "
            "exact, boolean (AND/OR/NOT) or fuzzy queries with filters such as "
            "tag:, folder:, created:, modified: and words:. Use smart_search when "
            "unsure which mode fits."
        ),
    )

    logger.info("Building search index from %s", config.notes_root)
    engine = SearchEngine(
        fuzzy_threshold=config.fuzzy_threshold,
        strict_filters=config.strict_filters,
    )
    loader = VaultLoader(config.notes_root, engine)
    doc_count = loader.reindex()
    logger.info("Initial index complete: %d documents indexed", doc_count)

    saved = SavedSearchStore(config.saved_searches_path)
    sync_manager = SyncManager(loader, config.sync_interval)

    logger.info("Registering search tools...")
    register_tools(mcp, engine, saved, config, sync_manager)

    logger.info("Server configured successfully")
    return mcp, sync_manager


def main() -> None:
    """Main function - starts the MCP server."""
    # Configure logging here to avoid side effects on import
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="notesearch - MCP search server for notes")
    parser.add_argument(
        "--no-sync",
        action="store_true",
        help="Disable background sync with the notes folder",
    )
    parser.add_argument(
        "--transport",
        choices=("sse", "stdio"),
        default="sse",
        help="MCP transport (default: sse)",
    )
    args = parser.parse_args()

    try:
        config = get_config()
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        sys.exit(2)

    logger.info("=" * 50)
    logger.info("notesearch starting...")
    logger.info("  NOTESEARCH_ROOT:  %s", config.notes_root)
    logger.info("  NOTESEARCH_PORT:  %s", config.port)
    logger.info("  SAVED SEARCHES:   %s", config.saved_searches_path)
    logger.info("  FUZZY THRESHOLD:  %s", config.fuzzy_threshold)
    logger.info("  STRICT FILTERS:   %s", config.strict_filters)
    logger.info("  SYNC INTERVAL:    %s", config.sync_interval or "disabled")
    logger.info("=" * 50)

    sync_manager: SyncManager | None = None
    try:
        mcp, sync_manager = create_server(config)

        if args.no_sync:
            logger.info("Background sync disabled by --no-sync")
        else:
            sync_manager.start()

        if args.transport == "stdio":
            mcp.run(transport="stdio")
        else:
            logger.info("Starting MCP server on port %s...", config.port)
            mcp.run(transport="sse", host="0.0.0.0", port=config.port)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Server error")
        sys.exit(1)
    finally:
        if sync_manager is not None:
            sync_manager.stop()


if __name__ == "__main__":
    main()
