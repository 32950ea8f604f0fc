"""Parser for note frontmatter with fallback to body and path inference."""

import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath

import yaml

logger = logging.getLogger(__name__)


@dataclass
class NoteMetadata:
    """Parsed note metadata."""

    title: str = ""
    tags: list[str] = field(default_factory=list)
    aliases: list[str] = field(default_factory=list)
    created: str | None = None
    modified: str | None = None
    folder: str = ""
    raw: dict | None = None


# First level-one heading in the body
HEADING_PATTERN = re.compile(r"^#\s+(.+?)\s*#*\s*$", re.MULTILINE)

# Inline #tags, not headings and not inside words or URLs
INLINE_TAG_PATTERN = re.compile(r"(?<![\w#/&])#([A-Za-z][\w/-]*)")


def _as_list(value: object) -> list[str]:
    """Frontmatter lists may be YAML lists or comma separated strings."""
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return []


def parse_note(content: str, file_path: str) -> tuple[NoteMetadata, str]:
    """
    Parse YAML frontmatter from a markdown note.

    Missing fields are inferred: the title from the first heading or the
    file name, tags from inline ``#tags`` and the folder from the path.

    Args:
        content: The full markdown content
        file_path: Path relative to the vault root (e.g., "projects/rust.md")

    Returns:
        Tuple of (NoteMetadata, content_without_frontmatter)
    """
    data = NoteMetadata()
    body = content

    if content.startswith("---"):
        parts = content.split("---", 2)
        if len(parts) >= 3:
            try:
                raw = yaml.safe_load(parts[1])
                if isinstance(raw, dict):
                    data.raw = raw
                    if raw.get("title") is not None:
                        data.title = str(raw["title"]).strip()
                    data.tags = [tag.lstrip("#") for tag in _as_list(raw.get("tags"))]
                    data.aliases = _as_list(raw.get("aliases"))

                    # Dates may be parsed by YAML as date objects
                    created = raw.get("created")
                    if created is not None:
                        data.created = str(created)
                    modified = raw.get("modified", raw.get("updated"))
                    if modified is not None:
                        data.modified = str(modified)

                    body = parts[2].lstrip("\n")
            except yaml.YAMLError as e:
                logger.debug("Invalid YAML frontmatter in %s: %s", file_path, e)

    if not data.title:
        match = HEADING_PATTERN.search(body)
        if match:
            data.title = match.group(1).strip()
        else:
            data.title = PurePosixPath(file_path).stem

    for tag in INLINE_TAG_PATTERN.findall(body):
        if tag not in data.tags:
            data.tags.append(tag)

    path_parts = PurePosixPath(file_path).parts
    data.folder = "/".join(path_parts[:-1])

    return data, body


def strip_frontmatter(content: str) -> str:
    """Remove YAML frontmatter from content."""
    if content.startswith("---"):
        parts = content.split("---", 2)
        if len(parts) >= 3:
            return parts[2].lstrip("\n")
    return content
