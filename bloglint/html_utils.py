"""HTML utility functions for bloglint.

This module provides the HTML string helpers the link checker needs:
finding URL attributes and id attributes, building heading anchors and
joining site URLs.

Functions:
    find_url_attributes: Collect href/src/action values from HTML.
    find_ids: Collect id attribute values from HTML.
    is_skipped_url: Whether a URL uses a scheme that is never checked.
    generate_heading_id: kramdown-style anchor for a heading.
    join_root_url: Join a base URL with a path.
"""

from __future__ import annotations

import html
import re

# URL attribute regex pattern for finding href, src, action attributes
_URL_ATTR_RE = re.compile(
    r'(?P<prefix>(?<![\w-])(?:href|src|action)\s*=\s*["\'])(?P<url>[^"\']*)(?P<suffix>["\'])',
    re.IGNORECASE,
)

_ID_ATTR_RE = re.compile(r'(?<![\w-])(?:id|name)\s*=\s*["\']([^"\']+)["\']', re.IGNORECASE)

_TAG_RE = re.compile(r"<[^>]+>")

# URL prefixes that are never checked
_URL_SKIP_PREFIXES = (
    "mailto:",
    "tel:",
    "javascript:",
    "data:",
    "sms:",
    "ftp:",
)


def find_url_attributes(text: str) -> list[str]:
    """Return href, src and action values found in HTML, in order.

    Args:
        text: HTML content to scan.

    Returns:
        Attribute values with HTML entities unescaped.

    Examples:
        >>> find_url_attributes('<a href="/about/">About</a><img src="x.png">')
        ['/about/', 'x.png']
    """
    return [html.unescape(m.group("url")) for m in _URL_ATTR_RE.finditer(text)]


def find_ids(text: str) -> list[str]:
    """Return id (and legacy anchor name) values defined in HTML."""
    return [html.unescape(value) for value in _ID_ATTR_RE.findall(text)]


def is_skipped_url(url: str) -> bool:
    """Check whether a URL uses a scheme the link checker ignores."""
    return url.strip().lower().startswith(_URL_SKIP_PREFIXES)


def strip_tags(text: str) -> str:
    """Remove HTML tags and unescape entities."""
    return html.unescape(_TAG_RE.sub("", text))


def generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Follows kramdown's auto id rules closely enough for link checking:
    markup is dropped, punctuation removed, whitespace turned into dashes.

    Args:
        text: The heading text, possibly containing inline HTML.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = strip_tags(text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = slug.lstrip("0123456789-_")
    return slug or "section"


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Args:
        root_url: Base URL (e.g., https://example.com/blog).
        path: Path beginning with or without a leading slash.

    Returns:
        Combined URL with proper slash handling.

    Examples:
        >>> join_root_url('https://example.com', '/about')
        'https://example.com/about'

        >>> join_root_url('https://example.com/', 'about')
        'https://example.com/about'
    """
    if not root_url:
        return path if path.startswith("/") else f"/{path}"
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"
