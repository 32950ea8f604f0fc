"""Boolean query parser and evaluator.

Supports ``AND``, ``OR`` and ``NOT`` with precedence ``NOT > AND > OR``,
parentheses for grouping and double-quoted phrases for literal matches.

Examples:
- ``react AND hooks``: both terms must be present
- ``react OR vue``: either term must be present
- ``react AND NOT tutorial``: first term present, second absent
- ``(react OR vue) AND hooks``: grouped operations
- ``"exact phrase"``: match the phrase verbatim
"""

import logging
import re
from typing import Protocol, TypeVar

from notesearch.search.models import (
    And,
    Not,
    Or,
    Phrase,
    SearchNode,
    SearchToken,
    Term,
    TokenKind,
)

logger = logging.getLogger(__name__)

OPERATORS = frozenset({"AND", "OR", "NOT"})
WORD_BREAK_CHARS = frozenset("()\"'")

# Bare, case-sensitive operator keyword outside of quotes
BARE_OPERATOR_PATTERN = re.compile(r"(?<![\w\"])(AND|OR|NOT)(?![\w\"])")
QUOTED_PATTERN = re.compile(r'"[^"]*"?')


class QueryParseError(ValueError):
    """Raised when a boolean query violates the grammar."""


class Searchable(Protocol):
    title: str
    content: str


T = TypeVar("T", bound=Searchable)


def tokenize_query(query: str) -> list[SearchToken]:
    """Split a query into terms, phrases, operators and parentheses."""
    tokens: list[SearchToken] = []
    i = 0
    length = len(query)

    while i < length:
        char = query[i]

        if char.isspace():
            i += 1
            continue

        if char == '"':
            end = query.find('"', i + 1)
            if end == -1:
                end = length
            tokens.append(SearchToken(TokenKind.PHRASE, query[i + 1 : end]))
            i = end + 1
            continue

        if char == "(":
            tokens.append(SearchToken(TokenKind.LPAREN, "("))
            i += 1
            continue

        if char == ")":
            tokens.append(SearchToken(TokenKind.RPAREN, ")"))
            i += 1
            continue

        start = i
        while i < length and not query[i].isspace() and query[i] not in WORD_BREAK_CHARS:
            i += 1
        if i == start:
            # A lone apostrophe is a separator, not a word
            i += 1
            continue

        word = query[start:i]
        if word.upper() in OPERATORS:
            tokens.append(SearchToken(TokenKind.OPERATOR, word.upper()))
        else:
            tokens.append(SearchToken(TokenKind.TERM, word))

    return tokens


class _Parser:
    """Recursive descent parser with one token of lookahead.

    Grammar:
        Expression := Or
        Or         := And ( OR And )*
        And        := Not ( AND Not )*
        Not        := NOT? Primary
        Primary    := '(' Expression ')' | PHRASE | TERM
    """

    def __init__(self, tokens: list[SearchToken]):
        self.tokens = tokens
        self.position = 0

    def peek(self) -> SearchToken | None:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return None

    def at_operator(self, value: str) -> bool:
        token = self.peek()
        return token is not None and token.kind is TokenKind.OPERATOR and token.value == value

    def parse(self) -> SearchNode | None:
        if not self.tokens:
            return None
        node = self.parse_or()
        if node is None:
            raise QueryParseError(f"Unexpected token {self.peek()!r}")
        if self.position < len(self.tokens):
            raise QueryParseError(f"Unexpected trailing token {self.peek()!r}")
        return node

    def parse_or(self) -> SearchNode | None:
        left = self.parse_and()
        while self.at_operator("OR"):
            self.position += 1
            right = self.parse_and()
            if left is None or right is None:
                raise QueryParseError("Expected expression around OR")
            left = Or(left, right)
        return left

    def parse_and(self) -> SearchNode | None:
        left = self.parse_not()
        while self.at_operator("AND"):
            self.position += 1
            right = self.parse_not()
            if left is None or right is None:
                raise QueryParseError("Expected expression around AND")
            left = And(left, right)
        return left

    def parse_not(self) -> SearchNode | None:
        if self.at_operator("NOT"):
            self.position += 1
            child = self.parse_primary()
            if child is None:
                raise QueryParseError("Expected expression after NOT")
            return Not(child)
        return self.parse_primary()

    def parse_primary(self) -> SearchNode | None:
        token = self.peek()
        if token is None:
            return None

        if token.kind is TokenKind.LPAREN:
            self.position += 1
            expr = self.parse_or()
            closing = self.peek()
            if expr is None:
                raise QueryParseError("Expected expression inside parentheses")
            if closing is None or closing.kind is not TokenKind.RPAREN:
                raise QueryParseError("Expected closing parenthesis")
            self.position += 1
            return expr

        if token.kind is TokenKind.PHRASE:
            self.position += 1
            return Phrase(token.value)

        if token.kind is TokenKind.TERM:
            self.position += 1
            return Term(token.value)

        return None


def parse(tokens: list[SearchToken]) -> SearchNode | None:
    """Parse tokens into an AST.

    Returns None for an empty token list.

    Raises:
        QueryParseError: If the tokens do not form a valid expression.
    """
    return _Parser(tokens).parse()


def evaluate(node: SearchNode | None, text: str) -> bool:
    """Evaluate an AST against text. An empty query matches nothing."""
    if node is None:
        return False
    return _evaluate(node, text.lower())


def _evaluate(node: SearchNode, text_lower: str) -> bool:
    match node:
        case Term(value) | Phrase(value):
            return value.lower() in text_lower
        case Not(child):
            return not _evaluate(child, text_lower)
        case And(left, right):
            return _evaluate(left, text_lower) and _evaluate(right, text_lower)
        case Or(left, right):
            return _evaluate(left, text_lower) or _evaluate(right, text_lower)
    raise TypeError(f"Unknown search node: {node!r}")


def compile_query(query: str) -> SearchNode | None:
    """Tokenize and parse a query string."""
    return parse(tokenize_query(query))


def boolean_search(query: str, text: str) -> bool:
    """Evaluate a boolean query against text.

    Malformed queries fall back to a plain substring match of the original
    query.
    """
    try:
        ast = compile_query(query)
    except QueryParseError as e:
        logger.warning("Boolean search parse error for %r: %s", query, e)
        return query.lower() in text.lower()
    return evaluate(ast, text)


def filter_with_boolean(items: list[T], query: str) -> list[T]:
    """Keep the items whose ``title content`` satisfies the query."""
    try:
        ast = compile_query(query)
    except QueryParseError as e:
        logger.warning("Boolean filter parse error for %r: %s", query, e)
        query_lower = query.lower()
        return [item for item in items if query_lower in f"{item.title} {item.content}".lower()]

    return [item for item in items if evaluate(ast, f"{item.title} {item.content}")]


def positive_terms(node: SearchNode | None) -> list[str]:
    """Collect term and phrase values that are not negated."""
    values: list[str] = []

    def walk(current: SearchNode, negated: bool) -> None:
        match current:
            case Term(value) | Phrase(value):
                if not negated and value not in values:
                    values.append(value)
            case Not(child):
                walk(child, not negated)
            case And(left, right) | Or(left, right):
                walk(left, negated)
                walk(right, negated)

    if node is not None:
        walk(node, False)
    return values


def _explain(node: SearchNode | None) -> str:
    match node:
        case None:
            return ""
        case Term(value):
            return f'contains "{value}"'
        case Phrase(value):
            return f'contains exact phrase "{value}"'
        case Not(child):
            return f"does NOT ({_explain(child)})"
        case And(left, right):
            return f"({_explain(left)}) AND ({_explain(right)})"
        case Or(left, right):
            return f"({_explain(left)}) OR ({_explain(right)})"
    return ""


def explain_query(query: str) -> str:
    """Describe a boolean query in plain words."""
    try:
        return _explain(compile_query(query))
    except QueryParseError:
        return f'contains "{query}"'


def has_boolean_operators(query: str) -> bool:
    """True if the query has a bare uppercase AND/OR/NOT outside of quotes."""
    unquoted = QUOTED_PATTERN.sub(" ", query)
    return BARE_OPERATOR_PATTERN.search(unquoted) is not None
