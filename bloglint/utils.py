"""Utility functions for bloglint.

This module contains small helpers used throughout the bloglint codebase:
string processing, path classification and date extraction from filenames.

Key functions:
    slugify: Convert filenames to URL slugs.
    titleize: Convert filenames to human-readable titles.
    extract_date_from_name: Extract date from a Jekyll post filename.
    is_markdown: Check if a path is a Markdown file.
    is_html: Check if a path is an HTML file.
    build_tags_index: Build index of documents by tags.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

MARKDOWN_SUFFIXES = (".md", ".markdown", ".mkd", ".mkdn")


def _has_date_prefix(parts: list[str]) -> bool:
    return len(parts) >= 4 and all(p.isdigit() for p in parts[:3])


def strip_date_prefix(name: str) -> str:
    """Remove a leading ``YYYY-MM-DD-`` from a filename stem.

    Args:
        name: Filename stem.

    Returns:
        The stem without its date prefix, or unchanged when there is none.
    """
    parts = name.split("-")
    if _has_date_prefix(parts):
        return "-".join(parts[3:])
    return name


def slugify(name: str) -> str:
    """Convert filename (without extension) to slug, dropping date prefix.

    Args:
        name: Filename stem.

    Returns:
        URL-friendly slug.
    """
    cleaned = strip_date_prefix(name)
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", cleaned)
    cleaned = cleaned.strip("-").lower()
    return cleaned or "index"


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Removes date prefixes (YYYY-MM-DD), replaces hyphens and underscores
    with spaces, and capitalizes each word.

    Args:
        filename: Filename with or without extension.

    Returns:
        Human-readable title string.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'

        >>> titleize("privacy-policy.md")
        'Privacy Policy'
    """
    base = strip_date_prefix(Path(filename).stem)
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def extract_date_from_name(name: str) -> datetime | None:
    """Extract a date from a filename with YYYY-MM-DD prefix.

    Args:
        name: Filename stem (without extension).

    Returns:
        datetime object if a valid date prefix is found, None otherwise.

    Examples:
        >>> extract_date_from_name("2024-01-15-hello-world")
        datetime(2024, 1, 15, 0, 0)

        >>> extract_date_from_name("hello-world")
        None
    """
    parts = name.split("-")
    if len(parts) >= 4 and all(p.isdigit() for p in parts[:3]):
        try:
            return datetime(int(parts[0]), int(parts[1]), int(parts[2]))
        except ValueError:
            return None
    return None


def is_internal_path(path: Path) -> bool:
    """Check if a path is internal (contains components starting with _).

    Internal paths include layouts, includes, posts and drafts, which
    Jekyll never publishes as plain pages.

    Args:
        path: Path to check.

    Returns:
        True if any path component starts with underscore.
    """
    return any(part.startswith("_") for part in path.parts)


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file.

    Args:
        path: Path to check.

    Returns:
        True if the file has a Markdown extension (case-insensitive).
    """
    return path.suffix.lower() in MARKDOWN_SUFFIXES


def is_html(path: Path) -> bool:
    """Check if a path is an HTML file.

    Args:
        path: Path to check.

    Returns:
        True if the file has .html or .htm extension.
    """
    return path.suffix.lower() in (".html", ".htm")


def extract_number_from_name(name: str) -> int | None:
    """Extract a leading number from a filename for sorting.

    Handles filenames like "01-intro.md", "2-getting-started.md", etc.
    If the filename has a date prefix, extracts number after the date.

    Args:
        name: Filename stem (without extension).

    Returns:
        The extracted number, or None if no number found.
    """
    parts = name.split("-")

    if _has_date_prefix(parts):
        if parts[3].isdigit():
            return int(parts[3])
        return None

    if parts and parts[0].isdigit():
        return int(parts[0])

    return None


def strip_number_prefix(name: str) -> str:
    """Strip date and number prefixes from filename for sorting comparison.

    Args:
        name: Filename stem (without extension).

    Returns:
        Filename with date and number prefixes removed.
    """
    parts = name.split("-")

    if _has_date_prefix(parts):
        parts = parts[3:]
        if parts and parts[0].isdigit():
            parts = parts[1:]
    elif parts and parts[0].isdigit():
        parts = parts[1:]

    return "-".join(parts) if parts else name


def build_tags_index(documents: Iterable) -> dict[str, list]:
    """Build an index mapping tags to lists of documents containing that tag.

    Args:
        documents: Iterable of objects with a 'tags' attribute.

    Returns:
        Dictionary mapping tag names to lists of documents.
    """
    tags: dict[str, list] = {}
    for document in documents:
        for tag in document.tags:
            tags.setdefault(tag, []).append(document)
    return tags

