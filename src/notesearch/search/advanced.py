"""Advanced search: filters, a matching mode, ranking and pagination.

The pipeline always runs in the same order:

1. Extract inline filters from the query and merge explicit filters over them
2. Apply filters to shrink the document set
3. Match the residual query with exactly one mode (exact, boolean or fuzzy)
4. Score and sort
5. Paginate
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

from notesearch.search.boolean import (
    QueryParseError,
    compile_query,
    filter_with_boolean,
    has_boolean_operators,
    positive_terms,
)
from notesearch.search.filters import apply_filters, parse_filter_query
from notesearch.search.fuzzy import DEFAULT_THRESHOLD, find_fuzzy_matches, fuzzy_match, rank_results
from notesearch.search.index import CONTEXT_CHARS, TAG_PREFIX, find_matches
from notesearch.search.models import (
    Document,
    MatchSpan,
    SearchFilters,
    SearchResult,
)

logger = logging.getLogger(__name__)

MATCH_EXACT = "exact"
MATCH_BOOLEAN = "boolean"
MATCH_FUZZY = "fuzzy"

TITLE_TERM_SCORE = 10.0
CONTENT_HIT_SCORE = 2.0

# "quoted phrase" or a run of anything but whitespace and quotes
EXACT_PART_PATTERN = re.compile(r'"([^"]*)"|([^\s"]+)')


@dataclass
class SearchOptions:
    """Options for a single advanced search."""

    query: str = ""
    filters: SearchFilters | None = None
    fuzzy: bool = False
    fuzzy_threshold: float = DEFAULT_THRESHOLD
    boolean: bool = False
    limit: int | None = None
    offset: int = 0
    strict_filters: bool = False


def display_title(doc: Document) -> str:
    return doc.title or doc.path or doc.id


def paginate(results: list[SearchResult], limit: int | None, offset: int = 0) -> list[SearchResult]:
    """Slice results after sorting.

    A falsy ``limit`` (None or 0) means no limit; a negative one returns
    nothing. Negative offsets count as 0.
    """
    start = max(0, offset or 0)
    if not limit:
        return results[start:]
    return results[start : start + max(0, limit)]


def _query_needles(query: str) -> list[str]:
    """Bare words and quoted phrases of an exact-mode query.

    Words are split on whitespace only, so ``O'Brien`` stays one needle.
    Operator words are plain text here.
    """
    needles = []
    for match in EXACT_PART_PATTERN.finditer(query):
        phrase, word = match.groups()
        value = (phrase if phrase is not None else word).strip()
        if value and value not in needles:
            needles.append(value)
    return needles or [query]


def _exact_results(documents: list[Document], query: str) -> list[SearchResult]:
    needles = [needle.lower() for needle in _query_needles(query)]
    scored: list[tuple[bool, SearchResult]] = []

    for doc in documents:
        title_lower = doc.title.lower()
        content_lower = doc.content.lower()
        if not all(n in title_lower or n in content_lower for n in needles):
            continue

        matches: list[MatchSpan] = []
        score = 0.0
        for needle in needles:
            if needle in title_lower:
                score += TITLE_TERM_SCORE
            spans = find_matches(doc.content, needle)
            score += len(spans) * CONTENT_HIT_SCORE
            matches.extend(spans)

        title_hit = all(n in title_lower for n in needles)
        result = SearchResult(
            id=doc.id,
            title=display_title(doc),
            score=score,
            matches=matches,
            match_type=MATCH_EXACT,
        )
        scored.append((title_hit, result))

    # Title matches first; stable within each group
    scored.sort(key=lambda item: not item[0])
    return [result for _, result in scored]


def _boolean_highlight_terms(query: str) -> list[str]:
    try:
        return positive_terms(compile_query(query))
    except QueryParseError:
        return [query]


def _boolean_results(documents: list[Document], query: str) -> list[SearchResult]:
    highlight_terms = _boolean_highlight_terms(query)
    results = []
    for doc in filter_with_boolean(documents, query):
        matches = [span for term in highlight_terms for span in find_matches(doc.content, term)]
        results.append(
            SearchResult(
                id=doc.id,
                title=display_title(doc),
                score=float(len(matches)),
                matches=matches,
                match_type=MATCH_BOOLEAN,
            )
        )
    return results


def fuzzy_spans(content: str, query: str, threshold: float) -> list[MatchSpan]:
    """Line-oriented fuzzy match spans for highlighting."""
    spans: list[MatchSpan] = []
    for line_number, line in enumerate(content.split("\n"), start=1):
        for match in sorted(find_fuzzy_matches(line, query, threshold), key=lambda m: m.start):
            context_start = max(0, match.start - CONTEXT_CHARS)
            context = line[context_start : min(len(line), match.end + CONTEXT_CHARS)]
            spans.append(
                MatchSpan(
                    text=match.text,
                    start=match.start,
                    end=match.end,
                    line_number=line_number,
                    context=f"...{context}" if context_start > 0 else context,
                )
            )
    return spans


def _fuzzy_results(documents: list[Document], query: str, threshold: float) -> list[SearchResult]:
    matched = [
        doc
        for doc in documents
        if fuzzy_match(doc.title, query, threshold) or fuzzy_match(doc.content, query, threshold)
    ]
    return [
        SearchResult(
            id=doc.id,
            title=display_title(doc),
            score=score,
            matches=fuzzy_spans(doc.content, query, threshold),
            match_type=MATCH_FUZZY,
        )
        for doc, score in rank_results(matched, query)
    ]


def run_search(
    documents: Iterable[Document],
    query: str,
    filters: SearchFilters | None,
    options: SearchOptions,
) -> list[SearchResult]:
    """Filter, match, rank and paginate with an already parsed query.

    Args:
        documents: Documents in insertion order.
        query: Residual free-text query with inline filters removed.
        filters: Final filters to apply.
        options: Mode flags and pagination.
    """
    filtered = apply_filters(documents, filters)
    query = query.strip()

    if not query:
        results = [SearchResult(id=doc.id, title=display_title(doc)) for doc in filtered]
    elif options.boolean:
        results = _boolean_results(filtered, query)
    elif options.fuzzy:
        results = _fuzzy_results(filtered, query, options.fuzzy_threshold)
    else:
        results = _exact_results(filtered, query)

    logger.debug(
        "Search %r: %d filtered, %d matched (boolean=%s, fuzzy=%s)",
        query,
        len(filtered),
        len(results),
        options.boolean,
        options.fuzzy,
    )
    return paginate(results, options.limit, options.offset)


def resolve_query(options: SearchOptions) -> tuple[str, SearchFilters]:
    """Split inline filters out of the query and merge explicit filters over them."""
    residual, parsed = parse_filter_query(options.query, strict=options.strict_filters)
    return residual, parsed.merged(options.filters)


def advanced_search(documents: Iterable[Document], options: SearchOptions) -> list[SearchResult]:
    """Run the full search pipeline over a document collection."""
    residual, filters = resolve_query(options)
    return run_search(documents, residual, filters, options)


def smart_search(
    documents: Iterable[Document],
    query: str,
    filters: SearchFilters | None = None,
    limit: int | None = None,
    offset: int = 0,
    strict_filters: bool = False,
) -> list[SearchResult]:
    """Search with the matching mode picked from the query.

    Boolean mode is used when the query has a bare AND/OR/NOT. Fuzzy mode is
    never picked automatically.
    """
    options = SearchOptions(
        query=query,
        filters=filters,
        boolean=has_boolean_operators(query),
        fuzzy=False,
        limit=limit,
        offset=offset,
        strict_filters=strict_filters,
    )
    return advanced_search(documents, options)


def get_search_suggestions(documents: Iterable[Document], query: str, limit: int = 5) -> list[str]:
    """Suggest titles and ``tag:`` filters containing the query."""
    query_lower = query.lower()
    docs = list(documents)
    suggestions: list[str] = []

    for doc in docs:
        if len(suggestions) >= limit:
            break
        title = display_title(doc)
        if query_lower in title.lower() and title not in suggestions:
            suggestions.append(title)

    all_tags = sorted({tag for doc in docs for tag in doc.tags})
    for tag in all_tags:
        if len(suggestions) >= limit:
            break
        if query_lower in tag.lower():
            suggestions.append(f"{TAG_PREFIX}{tag}")

    return suggestions[:limit]


def build_query(
    terms: list[str] | None = None,
    phrases: list[str] | None = None,
    tags: list[str] | None = None,
    date_range: tuple[str | None, str | None] | None = None,
    operator: str = "AND",
) -> str:
    """Assemble a query string from its parts."""
    parts: list[str] = []

    if terms:
        parts.append(f" {operator} ".join(terms))

    if phrases:
        parts.extend(f'"{phrase}"' for phrase in phrases)

    if tags:
        parts.append(f"{TAG_PREFIX}{','.join(tags)}")

    if date_range:
        start, end = date_range
        if start and end:
            parts.append(f"modified:{start}..{end}")
        elif start:
            parts.append(f"modified:{start}")

    return " ".join(parts)
