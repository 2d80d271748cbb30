"""Link extraction and validation for bloglint.

Links are collected from document bodies after the few Liquid constructs
that produce URLs have been expanded. Markdown is parsed with mistune;
HTML sources and raw HTML inside Markdown are scanned for href, src and
action attributes. Internal targets are resolved against the URLs derived
for every document and against static files in the source tree.

Key classes:
- LiquidExpander: Expands site.baseurl, post_url, link and URL filters.
- LinkExtractor: Collects links and anchors from a document.
- LinkResolver: Classifies and resolves a link target.
- ExternalLinkChecker: Checks http(s) targets with requests.
- LinkRule: Rule reporting broken links and anchors.
"""

from __future__ import annotations

import fnmatch
import logging
import posixpath
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import unquote, urljoin, urlsplit

import mistune
import requests

from . import __version__
from .content import Document, Link, UnresolvedTag
from .html_utils import (
    find_ids,
    find_url_attributes,
    generate_heading_id,
    is_skipped_url,
    join_root_url,
)
from .rules import ERROR, WARNING, Issue
from .utils import MARKDOWN_SUFFIXES, is_html

if TYPE_CHECKING:
    from .collections import SiteIndex
    from .protocols import LinkChecker

LOGGER = logging.getLogger(__name__)

_SITE_VAR_RE = re.compile(r"\{\{-?\s*site\.(baseurl|url)\s*-?\}\}")
_POST_URL_RE = re.compile(r"\{%-?\s*post_url\s+(\S+?)\s*-?%\}")
_LINK_TAG_RE = re.compile(r"\{%-?\s*link\s+(\S+?)\s*-?%\}")
_URL_FILTER_RE = re.compile(
    r"""\{\{-?\s*(["'])(?P<path>[^"']*)\1\s*\|\s*(?P<filter>relative_url|absolute_url)\s*-?\}\}"""
)
_HEADING_ATTR_RE = re.compile(r"\s*\{:?\s*#(?P<id>[\w:-]+)\s*\}\s*$")

# Fragments browsers always understand
_IMPLICIT_ANCHORS = {"top"}


class LiquidExpander:
    """Expands the Liquid constructs that produce URLs.

    Only ``{{ site.baseurl }}``, ``{{ site.url }}``, ``{% post_url %}``,
    ``{% link %}`` and the ``relative_url``/``absolute_url`` filters applied
    to string literals are understood. Everything else is left untouched;
    links still containing Liquid are skipped by the resolver.
    """

    def __init__(self, site: SiteIndex):
        self.site = site

    def expand(self, document: Document) -> str:
        """Return the document body with URL-producing Liquid expanded.

        Tags whose target cannot be found are recorded on
        ``document.unresolved`` and left in place.
        """
        site = self.site
        body = document.body

        def site_var(match: re.Match) -> str:
            return site.baseurl if match.group(1) == "baseurl" else site.site_url

        def url_filter(match: re.Match) -> str:
            path = match.group("path")
            relative = join_root_url(site.baseurl, path)
            if match.group("filter") == "absolute_url":
                return f"{site.site_url}{relative}"
            return relative

        def post_url(match: re.Match) -> str:
            target = site.find_post(match.group(1))
            if target is None:
                self._unresolved(document, body, match, "post_url")
                return match.group(0)
            return target.url

        def link_tag(match: re.Match) -> str:
            target = site.find_by_rel_path(match.group(1))
            if target is None:
                if site.static_file_exists(match.group(1)):
                    return "/" + match.group(1).strip("/")
                self._unresolved(document, body, match, "link")
                return match.group(0)
            return target.url

        body = _POST_URL_RE.sub(post_url, body)
        body = _LINK_TAG_RE.sub(link_tag, body)
        body = _URL_FILTER_RE.sub(url_filter, body)
        return _SITE_VAR_RE.sub(site_var, body)

    @staticmethod
    def _unresolved(document: Document, body: str, match: re.Match, tag: str) -> None:
        line = body.count("\n", 0, match.start()) + 1 + document.body_offset
        document.unresolved.append(UnresolvedTag(tag, match.group(1), line))


class _CollectingRenderer(mistune.HTMLRenderer):
    """Markdown renderer recording link targets and heading anchors.

    Attributes:
        links: (url, kind) pairs in document order.
        anchors: Ids the rendered page defines.
    """

    def __init__(self):
        super().__init__(escape=False)
        self.links: list[tuple[str, str]] = []
        self.anchors: list[str] = []
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        match = _HEADING_ATTR_RE.search(text)
        if match:
            heading_id = match.group("id")
            text = text[: match.start()]
        else:
            base_id = generate_heading_id(text)
            if base_id in self._heading_id_counts:
                self._heading_id_counts[base_id] += 1
                heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
            else:
                self._heading_id_counts[base_id] = 0
                heading_id = base_id
        self.anchors.append(heading_id)
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def link(self, text: str, url: str, title: str | None = None) -> str:
        self.links.append((url, "link"))
        return super().link(text, url, title)

    def image(self, text: str, url: str, title: str | None = None) -> str:
        self.links.append((url, "image"))
        return super().image(text, url, title)

    def block_html(self, html: str) -> str:
        self._scan_html(html)
        return super().block_html(html)

    def inline_html(self, html: str) -> str:
        self._scan_html(html)
        return super().inline_html(html)

    def _scan_html(self, html: str) -> None:
        self.links.extend((url, "html") for url in find_url_attributes(html))
        self.anchors.extend(find_ids(html))


class LinkExtractor:
    """Collects links and anchors from documents.

    Populates ``links``, ``anchors`` and ``unresolved`` on each document.
    Every document must be scanned before links are resolved, since a link
    may point at an anchor of any other page.
    """

    def __init__(self, site: SiteIndex):
        self.site = site
        self.expander = LiquidExpander(site)

    def scan(self, documents: Iterable[Document]) -> None:
        for document in documents:
            self.extract(document)

    def extract(self, document: Document) -> None:
        document.links = []
        document.anchors = set()
        document.unresolved = []
        body = self.expander.expand(document)

        if is_html(document.path):
            found = [(url, "html") for url in find_url_attributes(body)]
            anchors = find_ids(body)
        else:
            renderer = _CollectingRenderer()
            markdown = mistune.create_markdown(
                renderer=renderer, plugins=["strikethrough", "table", "url"]
            )
            markdown(body)
            found = renderer.links
            anchors = renderer.anchors

        document.anchors.update(anchors)
        cursor = 0
        for url, kind in found:
            line = None
            index = body.find(url, cursor)
            if index < 0:
                index = body.find(url)
            if index >= 0:
                cursor = index + len(url)
                line = body.count("\n", 0, index) + 1 + document.body_offset
            document.links.append(Link(url=url, kind=kind, line=line))
        LOGGER.debug(
            "%s: %d links, %d anchors",
            document.rel_path,
            len(document.links),
            len(document.anchors),
        )


@dataclass
class Resolution:
    """Outcome of resolving one link target.

    Attributes:
        kind: "skip", "external" or "internal".
        url: Normalized URL (external) or path (internal).
        found: Whether the internal target exists.
        target: Document the link points to, when it is one.
        fragment: Fragment of the link, if any.
        anchor_found: Whether the fragment exists in the target.
    """

    kind: str
    url: str
    found: bool = True
    target: Document | None = None
    fragment: str = ""
    anchor_found: bool = True


class LinkResolver:
    """Classifies and resolves link targets against a SiteIndex.

    Attributes:
        ignore: fnmatch patterns for URLs or paths that are never checked.
    """

    def __init__(self, ignore: Iterable[str] | None = None):
        self.ignore = [str(pattern) for pattern in (ignore or [])]

    def _ignored(self, value: str) -> bool:
        return any(fnmatch.fnmatch(value, pattern) for pattern in self.ignore)

    def resolve(self, url: str, document: Document, site: SiteIndex) -> Resolution:
        raw = url.strip()
        if not raw or is_skipped_url(raw) or "{{" in raw or "{%" in raw:
            return Resolution("skip", raw)
        if self._ignored(raw):
            return Resolution("skip", raw)

        parts = urlsplit(raw)
        if parts.scheme in ("http", "https") or raw.startswith("//"):
            site_host = urlsplit(site.site_url).netloc.lower() if site.site_url else ""
            if not site_host or parts.netloc.lower() != site_host:
                external = raw if parts.scheme else f"https:{raw}"
                return Resolution("external", external.split("#", 1)[0])
        elif parts.scheme:
            return Resolution("skip", raw)

        path = unquote(parts.path)
        fragment = unquote(parts.fragment)
        if not path:
            return self._with_fragment(Resolution("internal", document.url, True, document), fragment)

        if not path.startswith("/"):
            source_relative = self._source_relative(path, document, site)
            if source_relative is not None:
                return self._with_fragment(
                    Resolution("internal", source_relative.url, True, source_relative),
                    fragment,
                )
            path = urljoin(document.url, path)
        elif site.baseurl and (path == site.baseurl or path.startswith(f"{site.baseurl}/")):
            path = path[len(site.baseurl) :] or "/"

        if self._ignored(path):
            return Resolution("skip", path)

        target = site.find_document(path)
        if target is not None:
            return self._with_fragment(Resolution("internal", path, True, target), fragment)
        if site.static_file_exists(path):
            return Resolution("internal", path, True, None, fragment)
        return Resolution("internal", path, False, None, fragment)

    @staticmethod
    def _source_relative(path: str, document: Document, site: SiteIndex) -> Document | None:
        """Resolve ``[x](other.md)`` style links to source files."""
        if posixpath.splitext(path)[1].lower() not in MARKDOWN_SUFFIXES + (".html",):
            return None
        base = posixpath.dirname(document.rel_path)
        candidate = posixpath.normpath(posixpath.join(base, path))
        return site.find_by_rel_path(candidate)

    @staticmethod
    def _with_fragment(resolution: Resolution, fragment: str) -> Resolution:
        resolution.fragment = fragment
        target = resolution.target
        if fragment and target is not None and fragment not in _IMPLICIT_ANCHORS:
            resolution.anchor_found = fragment in target.anchors
        return resolution


class ExternalLinkChecker:
    """Checks external URLs over HTTP.

    Uses ``HEAD`` first and retries with ``GET`` for servers that refuse
    it. Results are cached per URL for the lifetime of the checker.

    Attributes:
        timeout: Request timeout in seconds.
        session: requests session used for all calls.
    """

    RETRY_WITH_GET = (403, 405, 501)

    def __init__(
        self,
        timeout: float = 10,
        user_agent: str | None = None,
        session: requests.Session | None = None,
    ):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = user_agent or f"bloglint/{__version__}"
        self._cache: dict[str, str | None] = {}

    def check(self, url: str) -> str | None:
        """Return an error description for url, or None when it is reachable."""
        if url in self._cache:
            return self._cache[url]
        error = None
        try:
            response = self.session.head(url, allow_redirects=True, timeout=self.timeout)
            if response.status_code in self.RETRY_WITH_GET:
                response = self.session.get(
                    url, allow_redirects=True, timeout=self.timeout, stream=True
                )
                response.close()
            if response.status_code >= 400:
                error = f"HTTP {response.status_code}"
        except requests.RequestException as exc:
            LOGGER.warning("External check failed for %s: %s", url, exc)
            error = f"{type(exc).__name__}: {exc}"
        LOGGER.debug("Checked %s: %s", url, error or "ok")
        self._cache[url] = error
        return error


class LinkRule:
    """Reports broken internal links, missing anchors and failing external links.

    Attributes:
        resolver: LinkResolver used for every target.
        external_checker: Optional ExternalLinkChecker; external links are
            not requested when it is None.
    """

    def __init__(
        self,
        resolver: LinkResolver | None = None,
        external_checker: LinkChecker | None = None,
    ):
        self.resolver = resolver or LinkResolver()
        self.external_checker = external_checker

    def check(self, document: Document, site: SiteIndex) -> Iterator[Issue]:
        for tag in document.unresolved:
            yield Issue(
                document.path,
                "unresolved-liquid",
                f"{{% {tag.tag} {tag.argument} %}} does not match any file",
                ERROR,
                tag.line,
            )
        for link in document.links:
            result = self.resolver.resolve(link.url, document, site)
            if result.kind == "skip":
                continue
            if result.kind == "external":
                if self.external_checker is None:
                    continue
                error = self.external_checker.check(result.url)
                if error:
                    yield Issue(
                        document.path,
                        "external-link",
                        f"{link.url}: {error}",
                        WARNING,
                        link.line,
                    )
                continue
            if not result.found:
                yield Issue(
                    document.path,
                    "broken-link",
                    f"{link.url} does not match any page or file (resolved to {result.url})",
                    ERROR,
                    link.line,
                )
            elif not result.anchor_found:
                target = result.target.rel_path if result.target else result.url
                yield Issue(
                    document.path,
                    "missing-anchor",
                    f"{link.url}: #{result.fragment} is not defined in {target}",
                    WARNING,
                    link.line,
                )
