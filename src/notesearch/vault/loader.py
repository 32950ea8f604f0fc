"""Loader that keeps a SearchEngine in sync with a vault on disk."""

import logging
import threading
from datetime import datetime
from pathlib import Path

from notesearch.search.engine import SearchEngine
from notesearch.search.models import Document
from notesearch.vault.parser import parse_note
from notesearch.vault.walker import FileInfo, walk_vault

logger = logging.getLogger(__name__)


class VaultLoader:
    """
    Loader that feeds notes from the vault into a search engine.

    The filesystem is always the source of truth. The engine is a derived
    index that can be rebuilt at any time.

    Thread Safety:
        reindex, sync, load_file and forget run one at a time under the
        loader's own lock, which also guards the mtime/hash bookkeeping.
        Each of them hands its changes to the engine in a single call, so
        concurrent searches see a sync either fully applied or not at all.
    """

    def __init__(self, root: Path, engine: SearchEngine):
        """
        Initialize the loader.

        Args:
            root: Path to the notes vault
            engine: Engine instance to populate
        """
        self.root = root
        self.engine = engine
        self._seen: dict[str, tuple[float, str]] = {}  # path -> (mtime, hash)
        self._write_lock = threading.Lock()

    def reindex(self) -> int:
        """
        Perform a full reindex of the vault.

        Returns the number of documents indexed.
        """
        with self._write_lock:
            logger.info("Starting full reindex of %s", self.root)

            documents = []
            self._seen.clear()
            for file_info in walk_vault(self.root):
                doc = self._read_document(file_info)
                if doc is not None:
                    documents.append(doc)
                    self._seen[file_info.relative_path] = (file_info.mtime, file_info.content_hash)

            count = self.engine.rebuild(documents)
            logger.info("Reindex complete: %d documents indexed", count)
            return count

    def sync(self) -> tuple[int, int, int]:
        """
        Sync the engine with filesystem changes.

        Uses mtime as fast-path and content hash for edge cases.

        Returns:
            Tuple of (added, updated, deleted) counts.
        """
        with self._write_lock:
            logger.debug("Syncing index with %s", self.root)

            added = 0
            updated = 0
            upserts: list[Document] = []
            seen_paths: set[str] = set()

            for file_info in walk_vault(self.root):
                seen_paths.add(file_info.relative_path)
                known = self._seen.get(file_info.relative_path)

                if known is not None and abs(file_info.mtime - known[0]) <= 0.001:
                    continue
                if known is not None and known[1] == file_info.content_hash:
                    # Only mtime changed
                    self._seen[file_info.relative_path] = (file_info.mtime, known[1])
                    continue

                doc = self._read_document(file_info)
                if doc is None:
                    continue
                upserts.append(doc)
                self._seen[file_info.relative_path] = (file_info.mtime, file_info.content_hash)
                if known is None:
                    added += 1
                else:
                    updated += 1

            removals = [path for path in self._seen if path not in seen_paths]
            for path in removals:
                del self._seen[path]

            _, deleted = self.engine.apply_changes(upserts, removals)

            logger.debug(
                "Sync complete: %d added, %d updated, %d deleted",
                added,
                updated,
                deleted,
            )
            return added, updated, deleted

    def load_file(self, file_info: FileInfo) -> bool:
        """Index a single file (thread-safe). Returns False if it was skipped."""
        with self._write_lock:
            return self._load(file_info)

    def forget(self, relative_path: str) -> None:
        """Drop a note from the engine (thread-safe). Unknown paths are ignored."""
        with self._write_lock:
            self.engine.remove_document(relative_path)
            self._seen.pop(relative_path, None)

    def _load(self, file_info: FileInfo) -> bool:
        doc = self._read_document(file_info)
        if doc is None:
            return False
        self.engine.update_document(doc)
        self._seen[file_info.relative_path] = (file_info.mtime, file_info.content_hash)
        return True

    def _read_document(self, file_info: FileInfo) -> Document | None:
        """Read and parse a note file into a Document."""
        # Validate path is within the vault (prevent symlink escapes)
        try:
            file_info.path.resolve().relative_to(self.root.resolve())
        except ValueError:
            logger.warning("Skipping file outside vault: %s", file_info.relative_path)
            return None
        except OSError as e:
            logger.warning("Cannot resolve path %s: %s", file_info.relative_path, e)
            return None

        try:
            content = file_info.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            logger.warning(
                "Skipping file with invalid UTF-8 encoding: %s (%s)",
                file_info.relative_path,
                e,
            )
            return None
        except OSError as e:
            logger.warning("Cannot read %s: %s", file_info.relative_path, e)
            return None

        metadata, body = parse_note(content, file_info.relative_path)

        return Document(
            id=file_info.relative_path,
            title=metadata.title,
            content=body,
            tags=metadata.tags,
            folder=metadata.folder or None,
            path=file_info.relative_path,
            created_at=metadata.created,
            modified_at=metadata.modified or datetime.fromtimestamp(file_info.mtime),
            aliases=metadata.aliases,
        )
