"""Inverted index mapping normalized terms to document ids.

The index keeps two maps in lockstep:

- ``term -> {document id}`` used to find candidates for a query
- ``document id -> {term}`` used to remove a document precisely

A document id is present in a term's bucket if and only if the term is in
the term set recorded for that document. Buckets that become empty are
deleted. The index stores ids and terms only, never document bodies.
"""

import logging
import re
from collections.abc import Iterable

from notesearch.search.filters import extract_folder
from notesearch.search.models import Document, MatchSpan

logger = logging.getLogger(__name__)

NON_WORD_PATTERN = re.compile(r"[^\w\s-]")
MIN_TERM_LENGTH = 3
CONTEXT_CHARS = 20

TAG_PREFIX = "tag:"
FOLDER_PREFIX = "folder:"


def tokenize(text: str) -> set[str]:
    """Normalize text into a set of index terms.

    Lowercases, replaces anything that is not a word character, whitespace
    or hyphen with a space, splits on whitespace and drops terms of two
    characters or fewer.
    """
    if not text:
        return set()
    cleaned = NON_WORD_PATTERN.sub(" ", text.lower())
    return {term.strip() for term in cleaned.split() if len(term.strip()) >= MIN_TERM_LENGTH}


def extract_terms(doc: Document) -> set[str]:
    """Compute every index term for a document, including synthetic ones."""
    terms = tokenize(doc.title) | tokenize(doc.content)

    for alias in doc.aliases:
        terms |= tokenize(alias)

    for tag in doc.tags:
        tag_lower = tag.lower()
        terms.add(f"{TAG_PREFIX}{tag_lower}")
        terms.add(tag_lower)

    folder = doc.folder or extract_folder(doc.path)
    if folder:
        terms.add(f"{FOLDER_PREFIX}{folder.lower()}")
        terms |= tokenize(folder)

    return terms


def find_matches(content: str, needle: str) -> list[MatchSpan]:
    """Find every case-insensitive occurrence of ``needle`` line by line."""
    matches: list[MatchSpan] = []
    if not needle:
        return matches

    needle_lower = needle.lower()
    for line_number, line in enumerate(content.split("\n"), start=1):
        if not line:
            continue
        line_lower = line.lower()
        index = line_lower.find(needle_lower)
        while index != -1:
            end = index + len(needle)
            context_start = max(0, index - CONTEXT_CHARS)
            context = line[context_start : min(len(line), end + CONTEXT_CHARS)]
            matches.append(
                MatchSpan(
                    text=line[index:end],
                    start=index,
                    end=end,
                    line_number=line_number,
                    context=f"...{context}" if context_start > 0 else context,
                )
            )
            index = line_lower.find(needle_lower, end)

    return matches


class InvertedIndex:
    """Bidirectional term/document index.

    Thread Safety:
        None is provided. Mutations must be serialized by the caller relative
        to each other and to reads; concurrent reads are safe.
    """

    def __init__(self) -> None:
        self._term_to_docs: dict[str, set[str]] = {}
        self._doc_to_terms: dict[str, frozenset[str]] = {}

    def __len__(self) -> int:
        return len(self._doc_to_terms)

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._doc_to_terms

    def add_document(self, doc: Document) -> None:
        """Index a document. Re-adding an existing id replaces it."""
        if doc.id in self._doc_to_terms:
            self.remove_document(doc.id)

        terms = frozenset(extract_terms(doc))
        self._doc_to_terms[doc.id] = terms
        for term in terms:
            self._term_to_docs.setdefault(term, set()).add(doc.id)

        logger.debug("Indexed document %s (%d terms)", doc.id, len(terms))

    def remove_document(self, doc_id: str) -> None:
        """Remove a document. Unknown ids are ignored."""
        terms = self._doc_to_terms.pop(doc_id, None)
        if terms is None:
            return

        for term in terms:
            bucket = self._term_to_docs.get(term)
            if bucket is None:
                continue
            bucket.discard(doc_id)
            if not bucket:
                del self._term_to_docs[term]

        logger.debug("Removed document %s from index", doc_id)

    def update_document(self, doc: Document) -> None:
        """Replace a document's terms: remove, then add."""
        self.remove_document(doc.id)
        self.add_document(doc)

    def clear(self) -> None:
        self._term_to_docs.clear()
        self._doc_to_terms.clear()

    def lookup(self, term: str) -> set[str]:
        """Return a copy of the ids indexed under ``term``."""
        return set(self._term_to_docs.get(term, ()))

    def candidates(self, terms: Iterable[str]) -> set[str]:
        """Intersect the buckets of every required term.

        With no terms, every indexed document is a candidate.
        """
        result: set[str] | None = None
        for term in terms:
            bucket = self._term_to_docs.get(term)
            if bucket is None:
                return set()
            result = set(bucket) if result is None else result & bucket
            if not result:
                return set()

        if result is None:
            return set(self._doc_to_terms)
        return result

    def terms_for(self, doc_id: str) -> frozenset[str]:
        return self._doc_to_terms.get(doc_id, frozenset())

    def document_ids(self) -> set[str]:
        return set(self._doc_to_terms)

    def terms(self) -> set[str]:
        return set(self._term_to_docs)

    def term_counts(self, prefix: str) -> list[tuple[str, int]]:
        """Count documents per term sharing ``prefix``, most common first.

        Used to list tags (``tag:``) and folders (``folder:``).
        """
        counts = [
            (term[len(prefix) :], len(doc_ids))
            for term, doc_ids in self._term_to_docs.items()
            if term.startswith(prefix)
        ]
        return sorted(counts, key=lambda item: (-item[1], item[0]))
