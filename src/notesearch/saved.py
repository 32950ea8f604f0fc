"""Saved searches persisted to a YAML file.

A saved search is a named query plus optional explicit filters that can be
re-run later. The store is an explicit instance owned by the server; there
is no global registry.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)


@dataclass
class SavedSearch:
    """A named, reusable search."""

    id: str
    name: str
    query: str
    filters: dict = field(default_factory=dict)  # Keyword arguments for search tools
    description: str | None = None
    created: datetime = field(default_factory=datetime.now)
    last_used: datetime | None = None
    use_count: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "query": self.query,
            "filters": self.filters,
            "description": self.description,
            "created": self.created.isoformat(),
            "last_used": self.last_used.isoformat() if self.last_used else None,
            "use_count": self.use_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> SavedSearch:
        last_used = data.get("last_used")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            query=str(data.get("query", "")),
            filters=dict(data.get("filters") or {}),
            description=data.get("description"),
            created=_parse_datetime(data.get("created")) or datetime.now(),
            last_used=_parse_datetime(last_used),
            use_count=int(data.get("use_count", 0)),
        )


def _parse_datetime(value: object) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


def generate_id() -> str:
    return f"search_{uuid.uuid4().hex[:12]}"


def _dump(searches: list[SavedSearch]) -> str:
    return yaml.safe_dump([s.to_dict() for s in searches], sort_keys=False, allow_unicode=True)


def _parse_entries(raw: list, assign_ids: bool = False) -> list[SavedSearch]:
    """Build saved searches from YAML entries, skipping invalid ones."""
    searches = []
    for item in raw:
        if isinstance(item, dict) and "id" not in item and assign_ids:
            item = {**item, "id": generate_id()}
        if not isinstance(item, dict) or "id" not in item:
            logger.debug("Skipping invalid saved search entry: %r", item)
            continue
        searches.append(SavedSearch.from_dict(item))
    return searches


class SavedSearchStore:
    """YAML-backed collection of saved searches."""

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()

    def _load(self) -> list[SavedSearch]:
        if not self.path.exists():
            return []

        try:
            raw = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Error loading saved searches from %s: %s", self.path, e)
            return []

        if not isinstance(raw, list):
            return []
        return _parse_entries(raw)

    def _store(self, searches: list[SavedSearch]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(_dump(searches), encoding="utf-8")
        tmp_path.replace(self.path)

    def list(self) -> list[SavedSearch]:
        with self._lock:
            return self._load()

    def get(self, search_id: str) -> SavedSearch | None:
        with self._lock:
            return next((s for s in self._load() if s.id == search_id), None)

    def save(
        self,
        name: str,
        query: str,
        filters: dict | None = None,
        description: str | None = None,
    ) -> SavedSearch:
        """Save a new search and return it."""
        search = SavedSearch(
            id=generate_id(),
            name=name,
            query=query,
            filters=filters or {},
            description=description,
        )
        with self._lock:
            searches = self._load()
            searches.append(search)
            self._store(searches)
        logger.info("Saved search %s (%s)", search.id, name)
        return search

    def update(self, search_id: str, **updates) -> SavedSearch | None:
        """Update fields of a saved search. Returns None if it does not exist."""
        allowed = {"name", "query", "filters", "description"}
        unknown = set(updates) - allowed
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        with self._lock:
            searches = self._load()
            for search in searches:
                if search.id == search_id:
                    for key, value in updates.items():
                        setattr(search, key, value)
                    self._store(searches)
                    return search
        return None

    def delete(self, search_id: str) -> bool:
        with self._lock:
            searches = self._load()
            remaining = [s for s in searches if s.id != search_id]
            if len(remaining) == len(searches):
                return False
            self._store(remaining)
        logger.info("Deleted saved search %s", search_id)
        return True

    def record_use(self, search_id: str) -> SavedSearch | None:
        """Bump the use count and last-used time of a saved search."""
        with self._lock:
            searches = self._load()
            for search in searches:
                if search.id == search_id:
                    search.use_count += 1
                    search.last_used = datetime.now()
                    self._store(searches)
                    return search
        return None

    def frequent(self, limit: int = 5) -> list[SavedSearch]:
        """Most used searches first."""
        return sorted(self.list(), key=lambda s: s.use_count, reverse=True)[:limit]

    def recent(self, limit: int = 5) -> list[SavedSearch]:
        """Most recently used searches first; never-used ones are omitted."""
        used = [s for s in self.list() if s.last_used is not None]
        return sorted(used, key=lambda s: s.last_used, reverse=True)[:limit]

    def export(self) -> str:
        """Every saved search as a YAML document, in creation order."""
        return _dump(self.list())

    def import_(self, data: str, merge: bool = True) -> list[SavedSearch]:
        """
        Load saved searches from YAML written by export().

        Args:
            data: YAML list of saved searches. Entries without an id get a
                new one; entries that are not mappings are skipped.
            merge: Keep the current searches and add the imported ones whose
                id is not taken yet. When False, the imported searches
                replace everything.

        Returns:
            The searches that were added.

        Raises:
            ValueError: If ``data`` is not valid YAML or not a list.
        """
        try:
            raw = yaml.safe_load(data)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid saved search data: {e}") from e
        if not isinstance(raw, list):
            raise ValueError("Saved search data must be a list of searches")

        incoming = _parse_entries(raw, assign_ids=True)
        with self._lock:
            current = self._load() if merge else []
            taken = {s.id for s in current}
            added = []
            for search in incoming:
                if search.id in taken:
                    logger.debug("Skipping imported search %s: id already saved", search.id)
                    continue
                taken.add(search.id)
                added.append(search)
            self._store(current + added)

        logger.info("Imported %d saved searches (merge=%s)", len(added), merge)
        return added
