"""
Vault module for notesearch.

Reads markdown notes from disk and keeps a SearchEngine in sync with them.
The filesystem is the source of truth; the in-memory index is rebuilt from
it at startup and refreshed by periodic syncs.
"""

from notesearch.vault.loader import VaultLoader
from notesearch.vault.parser import NoteMetadata, parse_note, strip_frontmatter
from notesearch.vault.walker import FileInfo, compute_hash, walk_vault

__all__ = [
    "FileInfo",
    "NoteMetadata",
    "VaultLoader",
    "compute_hash",
    "parse_note",
    "strip_frontmatter",
    "walk_vault",
]
