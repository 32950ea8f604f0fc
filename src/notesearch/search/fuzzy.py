"""Typo-tolerant matching based on Levenshtein edit distance."""

import re

from notesearch.search.models import Document, FuzzyMatch

WORD_PATTERN = re.compile(r"\w+")

DEFAULT_THRESHOLD = 0.7
RANKING_FUZZY_THRESHOLD = 0.8

# Composite ranking weights
TITLE_EXACT_WEIGHT = 100.0
TITLE_SIMILARITY_WEIGHT = 50.0
CONTENT_EXACT_WEIGHT = 10.0
CONTENT_FUZZY_WEIGHT = 5.0
EARLY_MATCH_BONUS = 20.0


def levenshtein_distance(a: str, b: str) -> int:
    """Minimum number of single character edits turning ``a`` into ``b``."""
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i] + [0] * len(b)
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current[j] = min(
                previous[j] + 1,  # deletion
                current[j - 1] + 1,  # insertion
                previous[j - 1] + cost,  # substitution
            )
        previous = current

    return previous[len(b)]


def similarity_score(a: str, b: str) -> float:
    """Case-insensitive similarity in [0, 1]; identical strings score 1."""
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    distance = levenshtein_distance(a.lower(), b.lower())
    return 1.0 - distance / max_len


def fuzzy_match(text: str, query: str, threshold: float = DEFAULT_THRESHOLD) -> bool:
    """True if text contains the query, or any word is similar enough to it."""
    text_lower = text.lower()
    query_lower = query.lower()

    if query_lower in text_lower:
        return True

    return any(similarity_score(word, query_lower) >= threshold for word in text_lower.split())


def find_fuzzy_matches(
    text: str, query: str, threshold: float = DEFAULT_THRESHOLD
) -> list[FuzzyMatch]:
    """Find every word similar to the query, best matches first."""
    query_lower = query.lower()
    matches: list[FuzzyMatch] = []

    for word_match in WORD_PATTERN.finditer(text):
        score = similarity_score(word_match.group(0), query_lower)
        if score >= threshold:
            matches.append(
                FuzzyMatch(
                    text=word_match.group(0),
                    start=word_match.start(),
                    end=word_match.end(),
                    score=score,
                )
            )

    matches.sort(key=lambda m: m.score, reverse=True)
    return matches


def score_document(doc: Document, query: str) -> float:
    """Composite relevance score of a document for a query."""
    query_lower = query.lower()
    title_lower = doc.title.lower()
    content_lower = doc.content.lower()

    score = 0.0
    if query_lower in title_lower:
        score += TITLE_EXACT_WEIGHT

    score += similarity_score(title_lower, query_lower) * TITLE_SIMILARITY_WEIGHT

    if query_lower:
        score += content_lower.count(query_lower) * CONTENT_EXACT_WEIGHT

    fuzzy_hits = find_fuzzy_matches(doc.content, query, RANKING_FUZZY_THRESHOLD)
    score += len(fuzzy_hits) * CONTENT_FUZZY_WEIGHT

    first_match = content_lower.find(query_lower) if query_lower else -1
    if first_match != -1:
        score += max(0.0, EARLY_MATCH_BONUS - first_match / 10)

    return score


def rank_results(documents: list[Document], query: str) -> list[tuple[Document, float]]:
    """Score documents for a query and sort best first.

    The sort is stable: documents with equal scores keep their input order.
    """
    scored = [(doc, score_document(doc, query)) for doc in documents]
    return sorted(scored, key=lambda item: item[1], reverse=True)


def highlight_matches(
    text: str,
    query: str,
    threshold: float = DEFAULT_THRESHOLD,
    marker: tuple[str, str] = ("<mark>", "</mark>"),
) -> str:
    """Wrap every fuzzy match of the query in ``marker``."""
    matches = find_fuzzy_matches(text, query, threshold)
    if not matches:
        return text

    open_marker, close_marker = marker
    result = text
    for match in sorted(matches, key=lambda m: m.start, reverse=True):
        result = (
            result[: match.start]
            + open_marker
            + result[match.start : match.end]
            + close_marker
            + result[match.end :]
        )
    return result
