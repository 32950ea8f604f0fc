"""
Search engine module for notesearch.

Holds the inverted index, the boolean query parser, the fuzzy matcher, the
metadata filters and the advanced search pipeline that composes them.
Everything here is in-memory and performs no I/O.
"""

from notesearch.search.advanced import (
    SearchOptions,
    advanced_search,
    build_query,
    get_search_suggestions,
    paginate,
    smart_search,
)
from notesearch.search.boolean import (
    QueryParseError,
    boolean_search,
    evaluate,
    explain_query,
    filter_with_boolean,
    parse,
    tokenize_query,
)
from notesearch.search.engine import SearchEngine
from notesearch.search.filters import (
    FilterSyntaxError,
    apply_filters,
    describe_filters,
    has_filter_syntax,
    parse_filter_query,
)
from notesearch.search.fuzzy import (
    find_fuzzy_matches,
    fuzzy_match,
    highlight_matches,
    levenshtein_distance,
    rank_results,
    similarity_score,
)
from notesearch.search.index import InvertedIndex, tokenize
from notesearch.search.models import (
    DateRange,
    Document,
    MatchSpan,
    NumberRange,
    SearchFilters,
    SearchResult,
)

__all__ = [
    "DateRange",
    "Document",
    "FilterSyntaxError",
    "InvertedIndex",
    "MatchSpan",
    "NumberRange",
    "QueryParseError",
    "SearchEngine",
    "SearchFilters",
    "SearchOptions",
    "SearchResult",
    "advanced_search",
    "apply_filters",
    "boolean_search",
    "build_query",
    "describe_filters",
    "evaluate",
    "explain_query",
    "filter_with_boolean",
    "find_fuzzy_matches",
    "fuzzy_match",
    "get_search_suggestions",
    "has_filter_syntax",
    "highlight_matches",
    "levenshtein_distance",
    "paginate",
    "parse",
    "parse_filter_query",
    "rank_results",
    "similarity_score",
    "smart_search",
    "tokenize",
    "tokenize_query",
]
