"""Configuration module for notesearch.

Loads configuration from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes")


@dataclass
class Config:
    """Application configuration."""

    notes_root: Path
    port: int
    saved_searches_path: Path
    fuzzy_threshold: float
    default_limit: int
    sync_interval: int
    strict_filters: bool

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        default_root = str(Path.home() / "notes")
        notes_root = Path(os.getenv("NOTESEARCH_ROOT", default_root)).expanduser()

        port_str = os.getenv("NOTESEARCH_PORT", "8080")
        try:
            port = int(port_str)
            if not 1 <= port <= 65535:
                raise ValueError(f"Port must be between 1 and 65535, got {port}")
        except ValueError as e:
            raise ValueError(f"Invalid NOTESEARCH_PORT value '{port_str}': {e}") from e

        default_saved = str(notes_root / ".notesearch" / "saved-searches.yaml")
        saved_searches_path = Path(os.getenv("NOTESEARCH_SAVED", default_saved)).expanduser()

        threshold_str = os.getenv("NOTESEARCH_FUZZY_THRESHOLD", "0.7")
        try:
            fuzzy_threshold = float(threshold_str)
            if not 0.0 <= fuzzy_threshold <= 1.0:
                raise ValueError(f"Threshold must be between 0 and 1, got {fuzzy_threshold}")
        except ValueError as e:
            raise ValueError(
                f"Invalid NOTESEARCH_FUZZY_THRESHOLD value '{threshold_str}': {e}"
            ) from e

        limit_str = os.getenv("NOTESEARCH_DEFAULT_LIMIT", "50")
        try:
            default_limit = int(limit_str)
            if default_limit <= 0:
                raise ValueError(f"Limit must be positive, got {default_limit}")
        except ValueError as e:
            raise ValueError(f"Invalid NOTESEARCH_DEFAULT_LIMIT value '{limit_str}': {e}") from e

        # Sync interval in seconds, 0 disables background sync
        interval_str = os.getenv("NOTESEARCH_SYNC_INTERVAL", "30")
        try:
            sync_interval = int(interval_str)
            if sync_interval < 0:
                raise ValueError(f"Sync interval must be >= 0, got {sync_interval}")
        except ValueError as e:
            raise ValueError(
                f"Invalid NOTESEARCH_SYNC_INTERVAL value '{interval_str}': {e}"
            ) from e

        strict_filters = _parse_bool(os.getenv("NOTESEARCH_STRICT_FILTERS", ""))

        return cls(
            notes_root=notes_root,
            port=port,
            saved_searches_path=saved_searches_path,
            fuzzy_threshold=fuzzy_threshold,
            default_limit=default_limit,
            sync_interval=sync_interval,
            strict_filters=strict_filters,
        )


# Global config instance (lazy loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _config
    _config = None
