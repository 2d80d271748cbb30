from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from pathlib import Path
from typing import Any
from urllib.parse import unquote

from .content import POSTS_DIR, Document, FileContentLoader
from .utils import build_tags_index, extract_number_from_name, strip_number_prefix


class DocumentCollection(Sequence[Document]):
    """Lightweight helper for working with lists of Documents."""

    def __init__(self, documents: Iterable[Document]):
        self._documents = list(documents)
        # Stable sort cache for .sorted()/latest() to avoid recomputing repeatedly
        self._sorted_cache: DocumentCollection | None = None

    def __iter__(self) -> Iterator[Document]:
        return iter(self._documents)

    def __len__(self) -> int:
        return len(self._documents)

    def __getitem__(self, item):
        return self._documents[item]

    def posts(self) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if d.is_post)

    def pages(self) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if not d.is_post)

    def with_tag(self, tag: str) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if tag in d.tags)

    def drafts(self) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if d.draft)

    def published(self) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if not d.draft)

    def sorted(self, reverse: bool = True) -> DocumentCollection:
        """Sort documents by date, then by number prefix, then by filename.

        Args:
            reverse: If True (default), newest/highest first. If False, oldest/lowest first.

        Returns:
            A new DocumentCollection with sorted documents.
        """
        if self._sorted_cache is None or reverse is False:

            def sort_key(d: Document):
                number = extract_number_from_name(d.path.stem)
                num_key = number if number is not None else (0 if not reverse else float("inf"))
                name_key = strip_number_prefix(d.path.stem).lower()
                return (d.date, num_key, name_key)

            sorted_documents = sorted(self._documents, key=sort_key, reverse=reverse)
            if reverse:
                self._sorted_cache = DocumentCollection(sorted_documents)
            return DocumentCollection(sorted_documents)
        return self._sorted_cache

    def latest(self, count: int = 5) -> DocumentCollection:
        return DocumentCollection(self.sorted()[:count])

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"DocumentCollection({len(self._documents)} documents)"


class TagCollection(Mapping[str, DocumentCollection]):
    """Mapping of tag name to DocumentCollection with convenience helpers."""

    def __init__(self, mapping: dict[str, Iterable[Document]]):
        self._mapping = {k: DocumentCollection(v) for k, v in mapping.items()}

    @classmethod
    def from_documents(cls, documents: Iterable[Document]) -> TagCollection:
        return cls(build_tags_index(documents))

    def __getitem__(self, key: str) -> DocumentCollection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def most_common(self) -> list[tuple[str, int]]:
        """Tags with their document counts, most used first, then by name."""
        counts = [(tag, len(docs)) for tag, docs in self._mapping.items()]
        return sorted(counts, key=lambda item: (-item[1], item[0].lower()))

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TagCollection({len(self._mapping)} tags)"


class SiteIndex:
    """Lookup tables over all documents of a site.

    Rules and the link resolver use this to find documents by URL, by
    source path or by post name, and to check static files.

    Attributes:
        documents: All loaded documents.
        source_dir: Jekyll source directory.
        config: Loaded configuration.
        baseurl: Site ``baseurl`` without trailing slash.
        site_url: Site ``url`` without trailing slash.
    """

    def __init__(
        self,
        documents: Iterable[Document],
        source_dir: Path,
        config: dict[str, Any] | None = None,
    ):
        self.config = config or {}
        self.documents = DocumentCollection(documents)
        self.source_dir = source_dir
        self.baseurl = str(self.config.get("baseurl") or "").rstrip("/")
        self.site_url = str(self.config.get("url") or "").rstrip("/")
        self._loader = FileContentLoader(
            source_dir,
            exclude=self.config.get("exclude"),
            destination=str(self.config.get("destination") or "_site"),
        )
        self.url_map: dict[str, list[Document]] = {}
        self.by_rel_path: dict[str, Document] = {}
        self.posts_by_name: dict[str, Document] = {}
        for document in self.documents:
            self.url_map.setdefault(document.url, []).append(document)
            self.by_rel_path[document.rel_path] = document
            if document.kind == "post":
                rel = Path(document.rel_path)
                inner = rel.parts[rel.parts.index(POSTS_DIR) + 1 :]
                self.posts_by_name.setdefault(document.path.stem, document)
                self.posts_by_name.setdefault(
                    Path(*inner).with_suffix("").as_posix(), document
                )
        self.known_layouts = self._discover_layouts()

    def _discover_layouts(self) -> set[str]:
        layouts = set(self.config.get("bloglint", {}).get("layouts", {}) or {})
        layout_dir = self.source_dir / "_layouts"
        if layout_dir.is_dir():
            for path in layout_dir.rglob("*"):
                if path.is_file():
                    rel = path.relative_to(layout_dir).with_suffix("")
                    layouts.add(rel.as_posix())
        return layouts

    def find_document(self, url: str) -> Document | None:
        """Find the document published at url, trying Jekyll's URL variants."""
        candidates = [url]
        if url.endswith("/"):
            candidates.append(f"{url}index.html")
        elif url.endswith("/index.html"):
            candidates.append(url[: -len("index.html")])
        else:
            candidates.append(f"{url}/")
            if not Path(url).suffix:
                candidates.append(f"{url}.html")
        for candidate in candidates:
            matches = self.url_map.get(candidate)
            if matches:
                return matches[0]
        return None

    def find_by_rel_path(self, rel_path: str) -> Document | None:
        return self.by_rel_path.get(rel_path.strip("/"))

    def find_post(self, name: str) -> Document | None:
        return self.posts_by_name.get(name.strip().strip("/"))

    def static_file_exists(self, url_path: str) -> bool:
        """Check whether url_path maps to a file Jekyll copies verbatim."""
        rel = unquote(url_path).lstrip("/")
        if not rel:
            return False
        rel_path = Path(rel)
        if any(part.startswith(("_", ".")) for part in rel_path.parts):
            return False
        if self._loader.is_excluded(rel_path):
            return False
        target = self.source_dir / rel_path
        if target.is_file():
            return True
        return target.is_dir() and (target / "index.html").is_file()
