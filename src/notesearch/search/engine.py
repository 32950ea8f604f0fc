"""Search engine owning the inverted index and the indexed documents."""

import logging
import re
from collections.abc import Iterable

from notesearch.search.advanced import (
    SearchOptions,
    display_title,
    get_search_suggestions,
    resolve_query,
    run_search,
)
from notesearch.search.boolean import has_boolean_operators
from notesearch.search.fuzzy import DEFAULT_THRESHOLD
from notesearch.search.index import (
    FOLDER_PREFIX,
    TAG_PREFIX,
    InvertedIndex,
    find_matches,
    tokenize,
)
from notesearch.search.locking import ReadWriteLock
from notesearch.search.models import Document, MatchSpan, SearchFilters, SearchResult

logger = logging.getLogger(__name__)

# Bare words, "double" or 'single' quoted phrases
QUERY_PART_PATTERN = re.compile(r"""(?:[^\s"']+|"[^"]*"|'[^']*')+""")

TITLE_TERM_SCORE = 10.0
CONTENT_TERM_SCORE = 2.0
TITLE_PHRASE_SCORE = 20.0
CONTENT_PHRASE_SCORE = 5.0
TAG_SCORE = 15.0
FOLDER_SCORE = 10.0


class SearchEngine:
    """
    In-memory search engine over a collection of notes.

    Each instance owns its own index; there is no shared global state.

    Thread Safety:
        Every public method takes an internal reader/writer lock. Searches
        share the read side and run concurrently; mutations take the write
        side, so a search never sees a half-applied change. The lock is not
        reentrant, so public methods never call each other while holding it.
    """

    def __init__(
        self,
        fuzzy_threshold: float = DEFAULT_THRESHOLD,
        strict_filters: bool = False,
    ):
        """
        Initialize an empty engine.

        Args:
            fuzzy_threshold: Default similarity threshold for fuzzy searches
            strict_filters: Raise on malformed inline filters instead of
                excluding every document
        """
        self.fuzzy_threshold = fuzzy_threshold
        self.strict_filters = strict_filters
        self.index = InvertedIndex()
        self._documents: dict[str, Document] = {}
        self._lock = ReadWriteLock()

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._documents)

    def __contains__(self, doc_id: object) -> bool:
        with self._lock.read():
            return doc_id in self._documents

    # Mutations

    def _add(self, doc: Document) -> None:
        if doc.id in self._documents:
            self._remove(doc.id)
        self._documents[doc.id] = doc
        self.index.add_document(doc)

    def _remove(self, doc_id: str) -> bool:
        if doc_id not in self._documents:
            return False
        self.index.remove_document(doc_id)
        del self._documents[doc_id]
        return True

    def add_document(self, doc: Document) -> None:
        with self._lock.write():
            self._add(doc)

    def remove_document(self, doc_id: str) -> None:
        """Remove a document. Unknown ids are ignored."""
        with self._lock.write():
            self._remove(doc_id)

    def update_document(self, doc: Document) -> None:
        """Replace a document. Searches see either the old or the new version."""
        with self._lock.write():
            self._remove(doc.id)
            self._add(doc)

    def apply_changes(
        self,
        upserts: Iterable[Document] = (),
        removals: Iterable[str] = (),
    ) -> tuple[int, int]:
        """
        Apply a batch of changes under a single write lock.

        Searches observe the whole batch or none of it.

        Args:
            upserts: Documents to add or replace
            removals: Ids of documents to drop; unknown ids are ignored

        Returns:
            Tuple of (upserted, removed) counts.
        """
        upserted = removed = 0
        with self._lock.write():
            for doc in upserts:
                self._add(doc)
                upserted += 1
            for doc_id in removals:
                if self._remove(doc_id):
                    removed += 1
        if upserted or removed:
            logger.debug("Applied %d upserts and %d removals", upserted, removed)
        return upserted, removed

    def rebuild(self, documents: Iterable[Document]) -> int:
        """Drop everything and index ``documents``. Returns the document count."""
        with self._lock.write():
            self.index.clear()
            self._documents.clear()
            for doc in documents:
                self._add(doc)
            count = len(self._documents)
        logger.info("Search index rebuilt: %d documents", count)
        return count

    # Queries

    def get_document(self, doc_id: str) -> Document | None:
        with self._lock.read():
            return self._documents.get(doc_id)

    def documents(self) -> list[Document]:
        """All documents in insertion order."""
        with self._lock.read():
            return list(self._documents.values())

    def _candidates(self, filters: SearchFilters) -> list[Document]:
        """Narrow documents through the synthetic tag/folder index terms."""
        required: list[str] = []
        if filters.tags:
            required.extend(f"{TAG_PREFIX}{tag.lower()}" for tag in filters.tags)
        if filters.folder:
            required.append(f"{FOLDER_PREFIX}{filters.folder.lower()}")

        if not required:
            return list(self._documents.values())

        ids = self.index.candidates(required)
        return [doc for doc_id, doc in self._documents.items() if doc_id in ids]

    def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        fuzzy: bool = False,
        fuzzy_threshold: float | None = None,
        boolean: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[SearchResult]:
        """
        Search indexed documents.

        Args:
            query: Free text with optional inline filters
            filters: Explicit filters, winning over inline ones on conflict
            fuzzy: Use typo-tolerant matching and relevance ranking
            fuzzy_threshold: Similarity threshold, defaults to the engine's
            boolean: Evaluate the query as a boolean expression
            limit: Maximum number of results (None for all)
            offset: Number of results to skip

        Returns:
            Ranked, paginated list of SearchResult.

        Raises:
            FilterSyntaxError: In strict mode, for malformed inline filters.
        """
        options = SearchOptions(
            query=query,
            filters=filters,
            fuzzy=fuzzy,
            fuzzy_threshold=fuzzy_threshold if fuzzy_threshold is not None else self.fuzzy_threshold,
            boolean=boolean,
            limit=limit,
            offset=offset,
            strict_filters=self.strict_filters,
        )
        residual, final_filters = resolve_query(options)
        with self._lock.read():
            candidates = self._candidates(final_filters)
        # Documents are replaced, never mutated, so the snapshot stays consistent
        return run_search(candidates, residual, final_filters, options)

    def smart_search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[SearchResult]:
        """Search with boolean mode picked from the query. Never fuzzy."""
        return self.search(
            query,
            filters=filters,
            boolean=has_boolean_operators(query),
            fuzzy=False,
            limit=limit,
            offset=offset,
        )

    def quick_search(
        self,
        query: str,
        limit: int = 50,
        tags: Iterable[str] = (),
        folders: Iterable[str] = (),
    ) -> list[SearchResult]:
        """
        Index-backed term search.

        Bare terms are intersected through the index, quoted parts are
        matched as phrases, and ``tag:``/``folder:`` parts narrow by the
        synthetic index terms. Documents scoring zero are dropped.
        """
        if not query.strip():
            return []

        terms: list[str] = []
        phrases: list[str] = []
        query_tags = [tag.lower() for tag in tags]
        query_folders = [folder.lower() for folder in folders]

        for part in QUERY_PART_PATTERN.findall(query):
            if part.startswith(TAG_PREFIX):
                query_tags.append(part[len(TAG_PREFIX) :].lower())
            elif part.startswith(FOLDER_PREFIX):
                query_folders.append(part[len(FOLDER_PREFIX) :].lower())
            elif len(part) >= 2 and part[0] == part[-1] and part[0] in "\"'":
                phrases.append(part[1:-1].lower())
            else:
                terms.extend(sorted(tokenize(part)))

        required = (
            terms
            + [f"{TAG_PREFIX}{tag}" for tag in query_tags]
            + [f"{FOLDER_PREFIX}{folder}" for folder in query_folders]
        )
        results: list[SearchResult] = []
        with self._lock.read():
            candidate_ids = self.index.candidates(required)
            for doc_id, doc in self._documents.items():
                if doc_id not in candidate_ids:
                    continue
                score, matches = self._score_quick(doc, terms, phrases, query_tags, query_folders)
                if score > 0:
                    results.append(
                        SearchResult(
                            id=doc_id, title=display_title(doc), score=score, matches=matches
                        )
                    )

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    @staticmethod
    def _score_quick(
        doc: Document,
        terms: list[str],
        phrases: list[str],
        tags: list[str],
        folders: list[str],
    ) -> tuple[float, list[MatchSpan]]:
        score = 0.0
        matches: list[MatchSpan] = []
        title = doc.title.lower()

        for term in terms:
            if term in title:
                score += TITLE_TERM_SCORE
            spans = find_matches(doc.content, term)
            matches.extend(spans)
            score += len(spans) * CONTENT_TERM_SCORE

        for phrase in phrases:
            if phrase in title:
                score += TITLE_PHRASE_SCORE
            spans = find_matches(doc.content, phrase)
            matches.extend(spans)
            score += len(spans) * CONTENT_PHRASE_SCORE

        doc_tags = [tag.lower() for tag in doc.tags]
        for tag in tags:
            if any(tag in doc_tag for doc_tag in doc_tags):
                score += TAG_SCORE

        if doc.folder:
            folder = doc.folder.lower()
            for wanted in folders:
                if wanted in folder:
                    score += FOLDER_SCORE

        return score, matches

    def suggestions(self, query: str, limit: int = 5) -> list[str]:
        return get_search_suggestions(self.documents(), query, limit)

    def all_tags(self) -> list[tuple[str, int]]:
        """Tags with document counts, most used first."""
        with self._lock.read():
            return self.index.term_counts(TAG_PREFIX)

    def all_folders(self) -> list[tuple[str, int]]:
        """Folders with document counts, most used first."""
        with self._lock.read():
            return self.index.term_counts(FOLDER_PREFIX)
