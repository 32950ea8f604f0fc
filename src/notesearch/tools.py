"""MCP tools for the notesearch server.

This module defines the tools exposed by the MCP server:
- search: Exact, boolean or fuzzy search with filters and pagination
- smart_search: Search with the matching mode picked from the query
- quick_search: Index-backed term search
- explain_query: Describe a boolean query in plain words
- search_suggestions: Title and tag suggestions for a partial query
- list_tags / list_folders: Tag and folder listings with counts
- save_search / list_saved_searches / run_saved_search / delete_saved_search
- export_saved_searches / import_saved_searches: YAML backup and restore
- sync_notes / index_status: Refresh the index from disk and report on it
"""

import logging

from fastmcp import FastMCP

from notesearch.config import Config
from notesearch.saved import SavedSearchStore
from notesearch.search import (
    FilterSyntaxError,
    SearchEngine,
    SearchFilters,
    describe_filters,
    explain_query as explain_boolean_query,
    parse_filter_query,
)
from notesearch.sync import SyncManager

logger = logging.getLogger(__name__)

FILTER_KEYS = ("tags", "exclude_tags", "folder", "file_type", "has_links", "has_backlinks")


def build_filters(
    tags: list[str] | None = None,
    exclude_tags: list[str] | None = None,
    folder: str | None = None,
    file_type: str | None = None,
    has_links: bool | None = None,
    has_backlinks: bool | None = None,
) -> SearchFilters | None:
    """Build explicit filters from tool arguments, or None if none are set."""
    filters = SearchFilters(
        tags=list(tags) if tags else None,
        exclude_tags=list(exclude_tags) if exclude_tags else None,
        folder=folder or None,
        file_type=file_type or None,
        has_links=has_links,
        has_backlinks=has_backlinks,
    )
    return None if filters.is_empty() else filters


def register_tools(
    mcp: FastMCP,
    engine: SearchEngine,
    saved: SavedSearchStore,
    config: Config,
    sync: SyncManager | None = None,
) -> None:
    """Register all search tools with the FastMCP server.

    Args:
        mcp: FastMCP server instance
        engine: Search engine to query
        saved: Saved search store
        config: Configuration with default limits and thresholds
        sync: Sync manager for the vault; sync_notes and index_status are
            only registered when one is given
    """

    def _limit(limit: int | None) -> int:
        return limit if limit is not None else config.default_limit

    @mcp.tool()
    def search(
        query: str,
        fuzzy: bool = False,
        boolean: bool = False,
        fuzzy_threshold: float | None = None,
        tags: list[str] | None = None,
        exclude_tags: list[str] | None = None,
        folder: str | None = None,
        file_type: str | None = None,
        has_links: bool | None = None,
        has_backlinks: bool | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> dict:
        """Search notes with filters, a matching mode and pagination.

        Inline filters are supported in the query: tag:a,b  -tag:a
        created:2024-01-01..2024-06-30  modified:2024-05-01  words:100..500
        haslinks:true  hasbacklinks:false  folder:projects

        Args:
            query: Free text, "quoted phrases" and inline filters
            fuzzy: Typo-tolerant matching with relevance ranking
            boolean: Treat the query as AND/OR/NOT with parentheses
            fuzzy_threshold: Similarity threshold between 0 and 1
            tags: Notes must have all of these tags
            exclude_tags: Notes must have none of these tags
            folder: Notes must be in this folder
            file_type: Notes must have this file suffix (e.g. ".md")
            has_links: Require (or forbid) outgoing [[links]]
            has_backlinks: Require (or forbid) backlinks
            limit: Maximum number of results, 0 for all
            offset: Number of results to skip

        Returns:
            Dict with:
            - results: list of {id, title, score, match_type, matches}
            - filters: human-readable description of the active filters
            - error: message if the query could not be parsed (strict mode)
        """
        explicit = build_filters(tags, exclude_tags, folder, file_type, has_links, has_backlinks)
        try:
            _, inline = parse_filter_query(query, strict=config.strict_filters)
            results = engine.search(
                query,
                filters=explicit,
                fuzzy=fuzzy,
                fuzzy_threshold=fuzzy_threshold,
                boolean=boolean,
                limit=_limit(limit),
                offset=offset,
            )
        except FilterSyntaxError as e:
            logger.info("Rejected search %r: %s", query, e)
            return {"results": [], "filters": [], "error": str(e)}

        return {
            "results": [r.to_dict() for r in results],
            "filters": describe_filters(inline.merged(explicit)),
            "error": None,
        }

    @mcp.tool()
    def smart_search(query: str, limit: int | None = None, offset: int = 0) -> dict:
        """Search notes, switching to boolean mode when the query has AND/OR/NOT.

        Args:
            query: Free text, phrases, inline filters and optional operators
            limit: Maximum number of results
            offset: Number of results to skip

        Returns:
            Dict with results and error (see search).
        """
        try:
            results = engine.smart_search(query, limit=_limit(limit), offset=offset)
        except FilterSyntaxError as e:
            return {"results": [], "error": str(e)}
        return {"results": [r.to_dict() for r in results], "error": None}

    @mcp.tool()
    def quick_search(query: str, limit: int | None = None) -> list[dict]:
        """Fast term search through the inverted index.

        Bare words must all be present as whole terms; "quoted" parts are
        matched as phrases; tag:x and folder:x narrow the candidates.

        Args:
            query: Search query
            limit: Maximum number of results

        Returns:
            List of {id, title, score, match_type, matches}.
        """
        return [r.to_dict() for r in engine.quick_search(query, limit=_limit(limit))]

    @mcp.tool()
    def explain_query(query: str) -> dict:
        """Explain how a query will be interpreted.

        Args:
            query: Query with optional operators and inline filters

        Returns:
            Dict with the boolean explanation of the text part, the residual
            text and the active filters.
        """
        try:
            residual, filters = parse_filter_query(query, strict=config.strict_filters)
        except FilterSyntaxError as e:
            return {"explanation": None, "query": query, "filters": [], "error": str(e)}
        return {
            "explanation": explain_boolean_query(residual),
            "query": residual,
            "filters": describe_filters(filters),
            "error": None,
        }

    @mcp.tool()
    def search_suggestions(query: str, limit: int = 5) -> list[str]:
        """Suggest note titles and tag filters matching a partial query.

        Args:
            query: Partial query text
            limit: Maximum number of suggestions
        """
        return engine.suggestions(query, limit)

    @mcp.tool()
    def list_tags() -> list[dict]:
        """List all tags with the number of notes using them, most used first."""
        return [{"name": name, "count": count} for name, count in engine.all_tags()]

    @mcp.tool()
    def list_folders() -> list[dict]:
        """List all folders with the number of notes in them, largest first."""
        return [{"name": name, "count": count} for name, count in engine.all_folders()]

    @mcp.tool()
    def save_search(
        name: str,
        query: str,
        description: str | None = None,
        tags: list[str] | None = None,
        exclude_tags: list[str] | None = None,
        folder: str | None = None,
        file_type: str | None = None,
        has_links: bool | None = None,
        has_backlinks: bool | None = None,
    ) -> dict:
        """Save a query (and optional explicit filters) for later reuse.

        Args:
            name: Display name
            query: Query text
            description: Optional description
            tags, exclude_tags, folder, file_type, has_links, has_backlinks:
                Explicit filters applied whenever the search is run

        Returns:
            The saved search.
        """
        values = {
            "tags": tags,
            "exclude_tags": exclude_tags,
            "folder": folder,
            "file_type": file_type,
            "has_links": has_links,
            "has_backlinks": has_backlinks,
        }
        filters = {key: value for key, value in values.items() if value is not None}
        return saved.save(name, query, filters=filters, description=description).to_dict()

    @mcp.tool()
    def list_saved_searches(order: str = "created", limit: int | None = None) -> list[dict]:
        """List saved searches.

        Args:
            order: "created" (default), "frequent" or "recent"
            limit: Maximum number of entries
        """
        if order == "frequent":
            searches = saved.frequent(limit or len(saved.list()))
        elif order == "recent":
            searches = saved.recent(limit or len(saved.list()))
        else:
            searches = saved.list()[:limit] if limit else saved.list()
        return [s.to_dict() for s in searches]

    @mcp.tool()
    def run_saved_search(search_id: str, limit: int | None = None, offset: int = 0) -> dict:
        """Run a saved search and record its use.

        Args:
            search_id: Id of the saved search
            limit: Maximum number of results
            offset: Number of results to skip
        """
        entry = saved.record_use(search_id)
        if entry is None:
            return {"results": [], "error": f"Saved search not found: {search_id}"}

        kwargs = {key: entry.filters.get(key) for key in FILTER_KEYS}
        try:
            results = engine.smart_search(
                entry.query,
                filters=build_filters(**kwargs),
                limit=_limit(limit),
                offset=offset,
            )
        except FilterSyntaxError as e:
            return {"results": [], "error": str(e)}
        return {"results": [r.to_dict() for r in results], "error": None}

    @mcp.tool()
    def delete_saved_search(search_id: str) -> dict:
        """Delete a saved search.

        Args:
            search_id: Id of the saved search
        """
        deleted = saved.delete(search_id)
        return {"deleted": deleted, "id": search_id}

    @mcp.tool()
    def export_saved_searches() -> dict:
        """Export all saved searches as YAML, for backup or another vault.

        Returns:
            Dict with the YAML text and the number of searches.
        """
        data = saved.export()
        return {"data": data, "count": len(saved.list())}

    @mcp.tool()
    def import_saved_searches(data: str, merge: bool = True) -> dict:
        """Import saved searches from YAML produced by export_saved_searches.

        Args:
            data: YAML list of saved searches
            merge: Keep existing searches and skip imported ids already
                saved (default). False replaces every saved search.

        Returns:
            Dict with the imported searches and an error message if the
            data could not be read.
        """
        try:
            added = saved.import_(data, merge=merge)
        except ValueError as e:
            return {"imported": [], "error": str(e)}
        return {"imported": [s.to_dict() for s in added], "error": None}

    if sync is None:
        return

    @mcp.tool()
    def sync_notes(full: bool = False) -> dict:
        """Pick up notes added, edited or deleted on disk since the last sync.

        Args:
            full: Rebuild the whole index instead of syncing changes

        Returns:
            Dict with added/updated/deleted counts, the index size, the
            duration in seconds and an error message if the sync failed.
        """
        return sync.sync_now(full=full).to_dict()

    @mcp.tool()
    def index_status() -> dict:
        """Report the index size and the state of vault syncing.

        Returns:
            Dict with:
            - documents, tags, folders: index counts
            - sync: background flag, interval, number of runs and the last
              sync report (null before the first run)
        """
        return {
            "documents": len(engine),
            "tags": len(engine.all_tags()),
            "folders": len(engine.all_folders()),
            "sync": sync.status(),
        }
