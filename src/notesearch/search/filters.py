"""Metadata filters and the inline filter syntax.

Inline syntax recognised inside a free-text query::

    tag:a,b  -tag:a,b  created:2024-01-01  created:2024-01-01..2024-06-30
    modified:...  words:100  words:100..1000  haslinks:true  hasbacklinks:false
    folder:name

Every recognised token is removed from the query; the rest is returned as
the residual free-text query.

Filters fail closed: a document lacking the metadata a filter needs is
excluded, and so is every document when a filter value was malformed.
"""

import logging
import re
from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone
from pathlib import PurePosixPath

from notesearch.search.models import DateRange, Document, NumberRange, SearchFilters

logger = logging.getLogger(__name__)

WIKILINK_PATTERN = re.compile(r"\[\[([^\]]+)\]\]")
RANGE_SEPARATOR = ".."
ONE_DAY = timedelta(days=1)

# Each pattern only matches at the start of a whitespace-delimited token so
# that ``-tag:`` is never read as ``tag:``.
EXCLUDE_TAG_PATTERN = re.compile(r"(?<!\S)-tag:(\S+)")
TAG_PATTERN = re.compile(r"(?<!\S)tag:(\S+)")
CREATED_PATTERN = re.compile(r"(?<!\S)created:(\S+)")
MODIFIED_PATTERN = re.compile(r"(?<!\S)modified:(\S+)")
WORDS_PATTERN = re.compile(r"(?<!\S)words:(\S+)")
HAS_LINKS_PATTERN = re.compile(r"(?<!\S)haslinks:(true|false)(?!\S)")
HAS_BACKLINKS_PATTERN = re.compile(r"(?<!\S)hasbacklinks:(true|false)(?!\S)")
FOLDER_PATTERN = re.compile(r"(?<!\S)folder:(\S+)")

FILTER_PREFIX_PATTERN = re.compile(
    r"(?<!\S)-?(tag|created|modified|words|folder|haslinks|hasbacklinks):"
)


class FilterSyntaxError(ValueError):
    """Raised in strict mode when an inline filter value cannot be parsed."""


def to_datetime(value: datetime | date | str | float | None) -> datetime | None:
    """Normalize a timestamp to a naive UTC datetime, or None if unusable."""
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        result = value
    elif isinstance(value, date):
        result = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        result = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            result = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if result.tzinfo is not None:
        result = result.astimezone(timezone.utc).replace(tzinfo=None)
    return result


def count_words(text: str) -> int:
    return len(text.split())


def count_links(text: str) -> int:
    return len(WIKILINK_PATTERN.findall(text))


def extract_folder(file_path: str) -> str:
    parts = PurePosixPath(file_path).parts
    return parts[0] if len(parts) > 1 else ""


def _split_tags(value: str) -> list[str]:
    return [tag for tag in value.split(",") if tag]


def _normalize_tags(tags: Iterable[str]) -> set[str]:
    return {tag.lower() for tag in tags}


def _in_date_range(value: datetime | date | str | None, date_range: DateRange) -> bool:
    if date_range.malformed:
        return False

    moment = to_datetime(value)
    if moment is None:
        return False

    if date_range.start is not None and moment < date_range.start:
        return False
    if date_range.end is not None:
        past_end = moment >= date_range.end if date_range.end_exclusive else moment > date_range.end
        if past_end:
            return False
    return True


def matches_filters(doc: Document, filters: SearchFilters) -> bool:
    """Check one document against every active filter."""
    if filters.date_created is not None:
        if not _in_date_range(doc.created_at, filters.date_created):
            return False

    if filters.date_modified is not None:
        if not _in_date_range(doc.modified_at, filters.date_modified):
            return False

    doc_tags = _normalize_tags(doc.tags)

    # Must have all of these tags
    if filters.tags:
        if not _normalize_tags(filters.tags) <= doc_tags:
            return False

    # Must have none of these tags
    if filters.exclude_tags:
        if _normalize_tags(filters.exclude_tags) & doc_tags:
            return False

    if filters.word_count is not None:
        word_range = filters.word_count
        if word_range.malformed:
            return False
        words = doc.word_count if doc.word_count is not None else count_words(doc.content)
        if word_range.min is not None and words < word_range.min:
            return False
        if word_range.max is not None and words > word_range.max:
            return False

    if filters.has_links is not None:
        links = doc.link_count if doc.link_count is not None else count_links(doc.content)
        if filters.has_links != (links > 0):
            return False

    if filters.has_backlinks is not None:
        backlinks = doc.backlink_count or 0
        if filters.has_backlinks != (backlinks > 0):
            return False

    if filters.folder:
        folder = doc.folder or extract_folder(doc.path)
        if folder.lower() != filters.folder.lower():
            return False

    if filters.file_type:
        file_name = (doc.path or doc.id).lower()
        if not file_name.endswith(filters.file_type.lower()):
            return False

    return True


def apply_filters(documents: Iterable[Document], filters: SearchFilters | None) -> list[Document]:
    """Keep the documents that pass every filter, preserving order."""
    docs = list(documents)
    if filters is None or filters.is_empty():
        return docs
    return [doc for doc in docs if matches_filters(doc, filters)]


def parse_date_range(value: str, strict: bool = False) -> DateRange:
    """Parse ``YYYY-MM-DD`` (that whole day) or ``START..END``."""
    if RANGE_SEPARATOR in value:
        start_text, _, end_text = value.partition(RANGE_SEPARATOR)
        start = to_datetime(start_text) if start_text else None
        end = to_datetime(end_text) if end_text else None
        end_exclusive = False
        malformed = (bool(start_text) and start is None) or (bool(end_text) and end is None)
    else:
        start = to_datetime(value)
        end = start + ONE_DAY if start is not None else None
        end_exclusive = True
        malformed = start is None

    if malformed:
        if strict:
            raise FilterSyntaxError(f"Invalid date range: {value!r}")
        logger.warning("Malformed date filter %r excludes every document", value)
    return DateRange(start=start, end=end, end_exclusive=end_exclusive, malformed=malformed)


def _parse_int(text: str) -> int | None:
    try:
        return int(text)
    except ValueError:
        return None


def parse_number_range(value: str, strict: bool = False) -> NumberRange:
    """Parse ``N`` (exactly N) or ``MIN..MAX``."""
    if RANGE_SEPARATOR in value:
        min_text, _, max_text = value.partition(RANGE_SEPARATOR)
        low = _parse_int(min_text) if min_text else None
        high = _parse_int(max_text) if max_text else None
        malformed = (bool(min_text) and low is None) or (bool(max_text) and high is None)
    else:
        low = high = _parse_int(value)
        malformed = low is None

    if malformed:
        if strict:
            raise FilterSyntaxError(f"Invalid number range: {value!r}")
        logger.warning("Malformed word count filter %r excludes every document", value)
    return NumberRange(min=low, max=high, malformed=malformed)


def _consume(pattern: re.Pattern[str], query: str) -> tuple[list[str], str]:
    values = [m.group(1) for m in pattern.finditer(query)]
    if values:
        query = pattern.sub(" ", query)
    return values, query


def parse_filter_query(query: str, strict: bool = False) -> tuple[str, SearchFilters]:
    """Extract inline filters from a query.

    Args:
        query: Free-text query possibly containing filter tokens.
        strict: Raise FilterSyntaxError on malformed values instead of
            producing a filter that excludes every document.

    Returns:
        Tuple of (residual_query, filters).
    """
    filters = SearchFilters()
    residual = query

    values, residual = _consume(EXCLUDE_TAG_PATTERN, residual)
    if values:
        filters.exclude_tags = [tag for value in values for tag in _split_tags(value)]

    values, residual = _consume(TAG_PATTERN, residual)
    if values:
        filters.tags = [tag for value in values for tag in _split_tags(value)]

    values, residual = _consume(CREATED_PATTERN, residual)
    if values:
        filters.date_created = parse_date_range(values[-1], strict=strict)

    values, residual = _consume(MODIFIED_PATTERN, residual)
    if values:
        filters.date_modified = parse_date_range(values[-1], strict=strict)

    values, residual = _consume(WORDS_PATTERN, residual)
    if values:
        filters.word_count = parse_number_range(values[-1], strict=strict)

    values, residual = _consume(HAS_LINKS_PATTERN, residual)
    if values:
        filters.has_links = values[-1] == "true"

    values, residual = _consume(HAS_BACKLINKS_PATTERN, residual)
    if values:
        filters.has_backlinks = values[-1] == "true"

    values, residual = _consume(FOLDER_PATTERN, residual)
    if values:
        filters.folder = values[-1]

    return " ".join(residual.split()), filters


def has_filter_syntax(query: str) -> bool:
    return FILTER_PREFIX_PATTERN.search(query) is not None


def _format_date(value: datetime) -> str:
    return value.date().isoformat()


def _describe_date_range(date_range: DateRange) -> str:
    if date_range.malformed:
        return "invalid range"
    single_day = date_range.start is not None and date_range.end == date_range.start + ONE_DAY
    if single_day and date_range.end_exclusive:
        return f"on {_format_date(date_range.start)}"
    if date_range.start and date_range.end:
        return f"{_format_date(date_range.start)} to {_format_date(date_range.end)}"
    if date_range.start:
        return f"after {_format_date(date_range.start)}"
    if date_range.end:
        return f"before {_format_date(date_range.end)}"
    return "any time"


def describe_filters(filters: SearchFilters) -> list[str]:
    """Human-readable description of each active filter."""
    descriptions: list[str] = []

    if filters.tags:
        descriptions.append(f"Tagged: {', '.join(filters.tags)}")

    if filters.exclude_tags:
        descriptions.append(f"Not tagged: {', '.join(filters.exclude_tags)}")

    if filters.date_created is not None:
        descriptions.append(f"Created: {_describe_date_range(filters.date_created)}")

    if filters.date_modified is not None:
        descriptions.append(f"Modified: {_describe_date_range(filters.date_modified)}")

    if filters.word_count is not None:
        low, high = filters.word_count.min, filters.word_count.max
        if filters.word_count.malformed:
            descriptions.append("Words: invalid range")
        elif low is not None and high is not None and low == high:
            descriptions.append(f"Exactly {low} words")
        elif low is not None and high is not None:
            descriptions.append(f"{low}-{high} words")
        elif low is not None:
            descriptions.append(f"At least {low} words")
        elif high is not None:
            descriptions.append(f"At most {high} words")

    if filters.has_links is not None:
        descriptions.append("Has links" if filters.has_links else "No links")

    if filters.has_backlinks is not None:
        descriptions.append("Has backlinks" if filters.has_backlinks else "No backlinks")

    if filters.folder:
        descriptions.append(f"Folder: {filters.folder}")

    if filters.file_type:
        descriptions.append(f"File type: {filters.file_type}")

    return descriptions
