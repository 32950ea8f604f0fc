"""notesearch - in-memory search engine for markdown notes."""

__version__ = "0.1.0"
