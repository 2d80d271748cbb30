"""Front matter parsing for bloglint.

Jekyll only treats a file as a page when it starts with a YAML front matter
block fenced by ``---`` lines. This module extracts that block, normalizes
the keys the blog relies on, and writes new blocks for scaffolded posts.

Key names:
- FrontMatter: Normalized view of a front matter mapping.
- FrontMatterError: Raised when the YAML block cannot be parsed.
- extract_frontmatter: Split a file into (mapping, body).
- dump_frontmatter: Serialize a mapping as a fenced YAML block.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

import yaml

FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(?P<yaml>.*?)^(?:---|\.\.\.)[ \t]*\r?$\n?",
    re.DOTALL | re.MULTILINE,
)

KNOWN_KEYS = (
    "layout",
    "title",
    "permalink",
    "author",
    "tags",
    "image",
    "nav_exclude",
    "categories",
    "category",
    "date",
    "published",
    "slug",
)


class FrontMatterError(Exception):
    """Malformed front matter block.

    Attributes:
        message: Human-readable error message.
        line: 1-based line in the source file, when known.
    """

    def __init__(self, message: str, line: int | None = None):
        self.message = message
        self.line = line
        super().__init__(f"line {line}: {message}" if line else message)


def extract_frontmatter(text: str) -> tuple[dict[str, Any], str] | None:
    """Extract YAML front matter from content.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (front matter dict, remaining content), or None when the
        file has no front matter block.

    Raises:
        FrontMatterError: If the block is not valid YAML or not a mapping.
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return None
    try:
        data = yaml.safe_load(match.group("yaml"))
    except yaml.YAMLError as exc:
        line = None
        mark = getattr(exc, "problem_mark", None)
        if mark is not None:
            # The YAML block starts after the opening fence.
            line = mark.line + 2
        problem = getattr(exc, "problem", None) or str(exc)
        raise FrontMatterError(f"Invalid YAML: {problem}", line) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontMatterError(
            f"Front matter must be a mapping, got {type(data).__name__}", 2
        )
    return data, text[match.end() :]


def body_line_offset(text: str) -> int:
    """Return the number of lines that precede the body of a content file."""
    match = FRONTMATTER_RE.match(text)
    if not match:
        return 0
    return match.group(0).count("\n")


def split_words(value: Any) -> list[str]:
    """Normalize a list-or-string field the way Jekyll does.

    Strings are split on whitespace; lists keep their items as strings.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return [str(value)]


def coerce_datetime(value: Any) -> datetime | None:
    """Convert a YAML date value into a naive datetime.

    Accepts datetime and date objects (PyYAML's timestamp types) and
    ISO-like strings such as ``2021-05-02 10:00:00 +0200``. UTC offsets
    are dropped and the wall-clock time as written is kept, so front
    matter dates compare with dates taken from filenames and mtimes.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        for fmt in ("%Y-%m-%d %H:%M:%S %z", "%Y-%m-%d %H:%M %z", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d"):
            try:
                return datetime.strptime(text, fmt).replace(tzinfo=None)
            except ValueError:
                continue
        try:
            return datetime.fromisoformat(text).replace(tzinfo=None)
        except ValueError:
            return None
    return None


@dataclass
class FrontMatter:
    """Normalized front matter record.

    Attributes:
        layout: Layout identifier the theme renders the page with.
        title: Page title.
        permalink: Explicit URL, overriding the derived one.
        author: Author name.
        tags: Publication tags.
        image: Optional header image path.
        nav_exclude: Whether the theme hides the page from navigation.
        categories: Categories (``categories`` plus ``category``).
        date: Explicit publication date.
        published: False when the file is held back from publishing.
        slug: Explicit slug for ``:slug`` permalinks.
        extra: All other keys.
    """

    layout: str | None = None
    title: str | None = None
    permalink: str | None = None
    author: str | None = None
    tags: list[str] = field(default_factory=list)
    image: str | None = None
    nav_exclude: bool = False
    categories: list[str] = field(default_factory=list)
    date: datetime | None = None
    published: bool = True
    slug: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, mapping: dict[str, Any]) -> FrontMatter:
        def text(key: str) -> str | None:
            value = mapping.get(key)
            if value is None:
                return None
            return str(value)

        categories = split_words(mapping.get("categories"))
        categories.extend(split_words(mapping.get("category")))
        return cls(
            layout=text("layout"),
            title=text("title"),
            permalink=text("permalink"),
            author=text("author"),
            tags=split_words(mapping.get("tags")),
            image=text("image"),
            nav_exclude=mapping.get("nav_exclude") is True,
            categories=categories,
            date=coerce_datetime(mapping.get("date")),
            published=mapping.get("published", True) is not False,
            slug=text("slug"),
            extra={k: v for k, v in mapping.items() if k not in KNOWN_KEYS},
        )


def dump_frontmatter(mapping: dict[str, Any]) -> str:
    """Serialize a mapping as a fenced YAML front matter block.

    Args:
        mapping: Keys and values, written in insertion order.

    Returns:
        The block including both ``---`` fences and a trailing newline.
    """
    payload = yaml.safe_dump(
        mapping,
        allow_unicode=True,
        sort_keys=False,
        default_flow_style=None,
        width=1000,
    )
    return f"---\n{payload}---\n"
