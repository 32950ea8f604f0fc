"""File walker for discovering notes in a vault."""

import hashlib
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

NOTE_SUFFIXES = (".md", ".markdown")


@dataclass
class FileInfo:
    """Information about a discovered note file."""

    path: Path  # Absolute path
    relative_path: str  # Relative to the vault root, always with "/" separators
    folder: str  # Parent directory relative to the root, or "" for root notes
    filename: str
    mtime: float
    content_hash: str


def compute_hash(content: bytes) -> str:
    """Compute SHA-256 hash of content."""
    return hashlib.sha256(content).hexdigest()


def walk_vault(root: Path) -> Iterator[FileInfo]:
    """
    Walk the vault directory and yield FileInfo for each markdown note.

    Structure expected:
    <NOTESEARCH_ROOT>/
    ├── inbox.md
    ├── projects/
    │   ├── rust-ownership.md
    │   └── archive/
    │       └── old-plan.md
    └── .notesearch/        (hidden, skipped)
    """
    if not root.exists():
        return

    for file_path in sorted(root.rglob("*")):
        if not file_path.is_file() or file_path.suffix.lower() not in NOTE_SUFFIXES:
            continue

        # Skip hidden files and directories
        relative_parts = file_path.relative_to(root).parts
        if any(part.startswith(".") for part in relative_parts):
            continue

        folder = "/".join(relative_parts[:-1])
        relative_path = "/".join(relative_parts)

        stat = file_path.stat()
        content = file_path.read_bytes()

        yield FileInfo(
            path=file_path,
            relative_path=relative_path,
            folder=folder,
            filename=file_path.name,
            mtime=stat.st_mtime,
            content_hash=compute_hash(content),
        )
