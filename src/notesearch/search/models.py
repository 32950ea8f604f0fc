"""Data models for the search engine."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from enum import Enum


@dataclass
class Document:
    """Represents a note that can be indexed and searched."""

    id: str
    title: str = ""
    content: str = ""
    tags: list[str] = field(default_factory=list)
    folder: str | None = None
    path: str = ""  # File name or relative path, used by the file type filter
    created_at: datetime | date | str | None = None
    modified_at: datetime | date | str | None = None
    word_count: int | None = None  # Derived from content when None
    link_count: int | None = None  # Derived from [[wikilinks]] when None
    backlink_count: int | None = None  # Supplied by the link graph, 0 when None
    aliases: list[str] = field(default_factory=list)


@dataclass
class MatchSpan:
    """A single match inside a line of document content."""

    text: str
    start: int
    end: int
    line_number: int  # 1-based
    context: str

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "start": self.start,
            "end": self.end,
            "line_number": self.line_number,
            "context": self.context,
        }


@dataclass
class FuzzyMatch:
    """A word in a text that is similar enough to a query."""

    text: str
    start: int
    end: int
    score: float


@dataclass
class SearchResult:
    """Represents a ranked search hit."""

    id: str
    title: str
    score: float = 0.0
    matches: list[MatchSpan] = field(default_factory=list)
    match_type: str | None = None  # exact, fuzzy, boolean or None (filters only)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "score": round(self.score, 2),
            "match_type": self.match_type,
            "matches": [m.to_dict() for m in self.matches],
        }


@dataclass
class DateRange:
    """Datetime range. Either bound may be open.

    The end is inclusive unless ``end_exclusive`` is set, as it is for a
    single day, which runs from midnight up to (not including) the next one.
    """

    start: datetime | None = None
    end: datetime | None = None
    end_exclusive: bool = False
    malformed: bool = False  # Set when parsed from an unusable value


@dataclass
class NumberRange:
    """Inclusive integer range. Either bound may be open."""

    min: int | None = None
    max: int | None = None
    malformed: bool = False


@dataclass
class SearchFilters:
    """Structured metadata predicates. Unset fields impose no constraint."""

    date_created: DateRange | None = None
    date_modified: DateRange | None = None
    tags: list[str] | None = None
    exclude_tags: list[str] | None = None
    word_count: NumberRange | None = None
    has_links: bool | None = None
    has_backlinks: bool | None = None
    folder: str | None = None
    file_type: str | None = None

    def merged(self, explicit: SearchFilters | None) -> SearchFilters:
        """Return a copy where every field set on ``explicit`` wins."""
        if explicit is None:
            return SearchFilters(**{f.name: getattr(self, f.name) for f in fields(self)})
        values = {}
        for f in fields(self):
            override = getattr(explicit, f.name)
            values[f.name] = override if override is not None else getattr(self, f.name)
        return SearchFilters(**values)

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


class TokenKind(Enum):
    """Kinds of tokens produced by the boolean query tokenizer."""

    TERM = "TERM"
    PHRASE = "PHRASE"
    OPERATOR = "OPERATOR"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"


@dataclass(frozen=True)
class SearchToken:
    kind: TokenKind
    value: str


# Boolean query AST


@dataclass(frozen=True)
class Term:
    value: str


@dataclass(frozen=True)
class Phrase:
    value: str


@dataclass(frozen=True)
class Not:
    child: SearchNode


@dataclass(frozen=True)
class And:
    left: SearchNode
    right: SearchNode


@dataclass(frozen=True)
class Or:
    left: SearchNode
    right: SearchNode


SearchNode = Term | Phrase | Not | And | Or
