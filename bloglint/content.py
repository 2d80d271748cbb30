"""Content discovery for bloglint.

This module finds the content files of a Jekyll source tree, reads their front
matter, applies ``defaults`` from ``_config.yml`` and derives the URL each
file is published at. The result is a list of Document objects.

Key classes:
- Document: Dataclass representing one content file with front matter.
- Link: A link target found in a document body.
- FileContentLoader: Discovers posts, drafts and pages.
- FrontMatterDefaults: Applies Jekyll ``defaults`` scopes.
- UrlDeriver: Expands permalink styles and patterns.
- DefaultDocumentBuilder: Builds Document objects from source files.
- ContentProcessor: Facade combining loader and builder.
"""

from __future__ import annotations

import fnmatch
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .frontmatter import (
    FrontMatter,
    FrontMatterError,
    body_line_offset,
    extract_frontmatter,
)
from .utils import (
    extract_date_from_name,
    is_html,
    is_internal_path,
    is_markdown,
    slugify,
    strip_date_prefix,
    titleize,
)

if TYPE_CHECKING:
    from .protocols import ContentLoader, DocumentBuilder

LOGGER = logging.getLogger(__name__)

POSTS_DIR = "_posts"
DRAFTS_DIR = "_drafts"

PERMALINK_STYLES = {
    "date": "/:categories/:year/:month/:day/:title:output_ext",
    "pretty": "/:categories/:year/:month/:day/:title/",
    "ordinal": "/:categories/:year/:y_day/:title:output_ext",
    "none": "/:categories/:title:output_ext",
}

_PLACEHOLDER_RE = re.compile(
    r":(short_year|output_ext|categories|basename|i_month|i_day|y_day|"
    r"year|month|day|title|slug|path)"
)


@dataclass
class Link:
    """A link target found in a document.

    Attributes:
        url: Target as written, after Liquid expansion.
        kind: "link", "image" or "html" (raw HTML attribute).
        line: 1-based line in the source file, when it could be located.
    """

    url: str
    kind: str = "link"
    line: int | None = None


@dataclass
class UnresolvedTag:
    """A ``post_url`` or ``link`` Liquid tag whose target does not exist."""

    tag: str
    argument: str
    line: int | None = None


@dataclass
class Document:
    """Represents one content file with front matter.

    Attributes:
        path: Path to the source file.
        rel_path: Path relative to the source directory, POSIX style.
        kind: "post", "draft" or "page".
        frontmatter: Front matter mapping after defaults were applied.
        meta: Normalized front matter.
        body: Body text after the front matter block.
        title: Front matter title, or a title derived from the filename.
        date: Publication date.
        slug: URL-friendly slug.
        url: URL path the page is published at.
        draft: Whether the document is a draft or unpublished.
        body_offset: Number of lines preceding the body in the file.
        own_frontmatter: Front matter as written in the file, without defaults.
        field_lines: Line of each top-level key of the own front matter.
        anchors: Ids defined by the document (headings and id attributes).
        links: Link targets found in the body.
        unresolved: Liquid link tags that could not be expanded.
    """

    path: Path
    rel_path: str
    kind: str
    frontmatter: dict[str, Any]
    meta: FrontMatter
    body: str
    title: str
    date: datetime
    slug: str
    url: str
    draft: bool = False
    body_offset: int = 0
    own_frontmatter: dict[str, Any] = field(default_factory=dict)
    field_lines: dict[str, int] = field(default_factory=dict)
    anchors: set[str] = field(default_factory=set)
    links: list[Link] = field(default_factory=list)
    unresolved: list[UnresolvedTag] = field(default_factory=list)

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def layout(self) -> str | None:
        return self.meta.layout

    @property
    def tags(self) -> list[str]:
        return self.meta.tags

    @property
    def is_post(self) -> bool:
        return self.kind in ("post", "draft")

    @property
    def source_type(self) -> str:
        return "html" if is_html(self.path) else "markdown"


_KEY_LINE_RE = re.compile(r"^([A-Za-z_][\w-]*)\s*:", re.MULTILINE)


def _field_lines(raw: str) -> dict[str, int]:
    offset = body_line_offset(raw)
    header = "\n".join(raw.splitlines()[:offset])
    lines: dict[str, int] = {}
    for match in _KEY_LINE_RE.finditer(header):
        lines.setdefault(match.group(1), header.count("\n", 0, match.start()) + 1)
    return lines


def content_kind(rel: Path) -> str | None:
    """Classify a path relative to the source directory.

    Returns:
        "post", "draft", "page", or None for files Jekyll does not publish.
    """
    parts = rel.parts
    if POSTS_DIR in parts[:-1]:
        return "post"
    if parts[0] == DRAFTS_DIR:
        return "draft"
    if is_internal_path(rel) or any(part.startswith(".") for part in parts):
        return None
    return "page"


class FileContentLoader:
    """Loads content files from a Jekyll source directory.

    This class is responsible for discovering the Markdown and HTML files
    Jekyll would process. It only handles file discovery.

    Attributes:
        source_dir: Directory containing site content.
        exclude: Jekyll ``exclude`` entries.
        destination: Name of the build output directory.
    """

    def __init__(
        self,
        source_dir: Path,
        exclude: list[str] | None = None,
        destination: str = "_site",
    ):
        self.source_dir = source_dir
        self.exclude = list(exclude or [])
        self.destination = destination

    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        """Return all content files.

        Args:
            include_drafts: Whether to include files under ``_drafts``.

        Returns:
            Sorted list of paths to content files.
        """
        files: list[Path] = []
        for path in sorted(self.source_dir.rglob("*")):
            if path.is_dir():
                continue
            if not (is_markdown(path) or is_html(path)):
                continue
            rel = path.relative_to(self.source_dir)
            if self.is_excluded(rel):
                continue
            kind = content_kind(rel)
            if kind is None:
                continue
            if kind == "draft" and not include_drafts:
                continue
            files.append(path)
        return files

    def is_excluded(self, rel: Path) -> bool:
        """Check a relative path against the destination and ``exclude``."""
        posix = rel.as_posix()
        if rel.parts[0] == self.destination.strip("/"):
            return True
        for entry in self.exclude:
            pattern = str(entry).strip("/")
            if not pattern:
                continue
            if posix == pattern or posix.startswith(f"{pattern}/"):
                return True
            if fnmatch.fnmatch(posix, pattern) or fnmatch.fnmatch(rel.parts[0], pattern):
                return True
        return False


class FrontMatterDefaults:
    """Applies Jekyll front matter ``defaults`` scopes.

    Each entry has a ``scope`` (optional ``path`` prefix or glob and optional
    ``type``) and ``values``. More specific scopes win over general ones,
    and the file's own front matter wins over every default.
    """

    _TYPES = {
        "posts": ("post", "draft"),
        "drafts": ("draft",),
        "pages": ("page",),
    }

    def __init__(self, defaults: list[dict[str, Any]] | None = None):
        self.defaults = [d for d in (defaults or []) if isinstance(d, dict)]

    def values_for(self, rel_path: str, kind: str) -> dict[str, Any]:
        matches: list[tuple[tuple[int, int], dict[str, Any]]] = []
        for entry in self.defaults:
            scope = entry.get("scope") or {}
            values = entry.get("values") or {}
            if not isinstance(scope, dict) or not isinstance(values, dict):
                continue
            scope_path = str(scope.get("path") or "").strip("/")
            scope_type = scope.get("type")
            if scope_type and kind not in self._TYPES.get(str(scope_type), ()):
                continue
            if scope_path and not self._path_matches(rel_path, scope_path):
                continue
            matches.append(((len(scope_path), 1 if scope_type else 0), values))
        merged: dict[str, Any] = {}
        for _, values in sorted(matches, key=lambda item: item[0]):
            merged.update(values)
        return merged

    @staticmethod
    def _path_matches(rel_path: str, scope_path: str) -> bool:
        if "*" in scope_path:
            return fnmatch.fnmatch(rel_path, scope_path) or fnmatch.fnmatch(
                rel_path, f"{scope_path}/*"
            )
        return rel_path == scope_path or rel_path.startswith(f"{scope_path}/")

    def apply(self, own: dict[str, Any], rel_path: str, kind: str) -> dict[str, Any]:
        merged = self.values_for(rel_path, kind)
        merged.update(own)
        return merged


class UrlDeriver:
    """Derives URLs for documents.

    Posts use the configured permalink style (or a custom pattern) unless
    they set an explicit ``permalink``. Pages map to their path in the
    source tree.
    """

    def __init__(self, permalink: str = "date"):
        self.permalink = permalink or "date"
        self.pattern = PERMALINK_STYLES.get(self.permalink, self.permalink)
        self.pretty_pages = self.permalink == "pretty" or self.pattern.endswith("/")

    def derive_post(
        self,
        date: datetime,
        title: str,
        slug: str,
        categories: list[str],
        permalink: str | None = None,
        output_ext: str = ".html",
    ) -> str:
        pattern = permalink or self.pattern
        values = {
            "year": f"{date.year:04d}",
            "short_year": f"{date.year % 100:02d}",
            "month": f"{date.month:02d}",
            "i_month": str(date.month),
            "day": f"{date.day:02d}",
            "i_day": str(date.day),
            "y_day": f"{date.timetuple().tm_yday:03d}",
            "title": title,
            "slug": slug,
            "categories": "/".join(dict.fromkeys(c.lower() for c in categories)),
            "output_ext": output_ext,
        }
        return self._expand(pattern, values)

    def derive_page(self, rel: Path, permalink: str | None = None) -> str:
        parent = "" if rel.parent == Path(".") else rel.parent.as_posix()
        if permalink:
            values = {
                "path": parent,
                "basename": rel.stem,
                "output_ext": ".html",
            }
            return self._expand(permalink, values)
        if rel.stem == "index":
            return f"/{parent}/" if parent else "/"
        if self.pretty_pages:
            return f"/{parent}/{rel.stem}/" if parent else f"/{rel.stem}/"
        return f"/{parent}/{rel.stem}.html" if parent else f"/{rel.stem}.html"

    @staticmethod
    def _expand(pattern: str, values: dict[str, str]) -> str:
        url = _PLACEHOLDER_RE.sub(
            lambda m: values.get(m.group(1), m.group(0)), pattern
        )
        url = re.sub(r"/{2,}", "/", url)
        if not url.startswith("/"):
            url = f"/{url}"
        return url


class DefaultDocumentBuilder:
    """Builds Document objects from source files.

    Attributes:
        source_dir: Directory containing site content.
        defaults: Front matter defaults resolver.
        url_deriver: URL deriver instance.
    """

    def __init__(self, source_dir: Path, config: dict[str, Any] | None = None):
        config = config or {}
        self.source_dir = source_dir
        self.defaults = FrontMatterDefaults(config.get("defaults"))
        self.url_deriver = UrlDeriver(str(config.get("permalink") or "date"))

    def build(self, path: Path) -> Document | None:
        """Build a Document from a source file.

        Args:
            path: Path to the source file.

        Returns:
            Document, or None when the file has no front matter (Jekyll
            copies such files verbatim).

        Raises:
            FrontMatterError: If the front matter block is malformed or the
                file is not valid UTF-8.
        """
        rel = path.relative_to(self.source_dir)
        rel_path = rel.as_posix()
        kind = content_kind(rel) or "page"
        try:
            raw = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise FrontMatterError("File is not valid UTF-8", None) from exc

        extracted = extract_frontmatter(raw)
        if extracted is None:
            LOGGER.debug("Skipping %s: no front matter", rel_path)
            return None
        own, body = extracted
        frontmatter = self.defaults.apply(own, rel_path, kind)
        meta = FrontMatter.from_mapping(frontmatter)

        stem = path.stem
        if kind == "post":
            # category/_posts/... contributes "category"
            path_categories = list(rel.parts[: rel.parts.index(POSTS_DIR)])
            meta.categories = path_categories + meta.categories

        date = meta.date
        if date is None and kind == "post":
            date = extract_date_from_name(stem)
        if date is None:
            date = datetime.fromtimestamp(path.stat().st_mtime)

        title_part = meta.slug or strip_date_prefix(stem)
        slug = slugify(meta.slug or stem)

        if kind == "page":
            url = self.url_deriver.derive_page(rel, meta.permalink)
        else:
            url = self.url_deriver.derive_post(
                date, title_part, slug, meta.categories, meta.permalink
            )

        return Document(
            path=path,
            rel_path=rel_path,
            kind=kind,
            frontmatter=frontmatter,
            meta=meta,
            body=body,
            title=meta.title or titleize(path.name),
            date=date,
            slug=slug,
            url=url,
            draft=kind == "draft" or not meta.published,
            body_offset=body_line_offset(raw),
            own_frontmatter=own,
            field_lines=_field_lines(raw),
        )


class ContentProcessor:
    """Facade for discovering content files and building Document objects.

    Attributes:
        source_dir: Directory containing site content.
    """

    def __init__(
        self,
        source_dir: Path,
        config: dict[str, Any] | None = None,
        content_loader: ContentLoader | None = None,
        document_builder: DocumentBuilder | None = None,
    ):
        config = config or {}
        self.source_dir = source_dir
        self._content_loader = content_loader or FileContentLoader(
            source_dir,
            exclude=config.get("exclude"),
            destination=str(config.get("destination") or "_site"),
        )
        self._document_builder = document_builder or DefaultDocumentBuilder(source_dir, config)

    def load(
        self,
        include_drafts: bool = False,
        errors: list[tuple[Path, FrontMatterError]] | None = None,
    ) -> list[Document]:
        """Load all content files and create Document objects.

        Args:
            include_drafts: Whether to include drafts and unpublished files.
            errors: When given, files with malformed front matter are
                recorded here and skipped instead of raising.

        Returns:
            List of Document objects.
        """
        documents: list[Document] = []
        for path in self._content_loader.iter_files(include_drafts):
            try:
                document = self._document_builder.build(path)
            except FrontMatterError as exc:
                if errors is None:
                    raise
                errors.append((path, exc))
                continue
            if document is None:
                continue
            if not document.meta.published and not include_drafts:
                LOGGER.debug("Skipping unpublished %s", document.rel_path)
                continue
            documents.append(document)
        LOGGER.info("Loaded %d documents from %s", len(documents), self.source_dir)
        return documents
