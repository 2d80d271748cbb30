"""Front matter rules for bloglint.

Each rule checks one concern of a document and yields Issue objects.
Rules are collected in a RuleRegistry so new checks can be added without
touching the existing ones.

Key classes:
- Issue: A single problem found in a content file.
- LayoutRule: Layout present and known.
- RequiredFieldsRule: Fields required by the chosen layout are present.
- FieldTypesRule: Known keys carry values of the right type.
- PermalinkRule: Explicit permalinks are root-relative.
- ImageRule: Header images exist in the source tree.
- PostNameRule: Post filenames carry a date prefix.
- DuplicateUrlRule: No two documents publish to the same URL.
- RuleRegistry: Ordered collection of rules.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .frontmatter import coerce_datetime
from .utils import extract_date_from_name

if TYPE_CHECKING:
    from .collections import SiteIndex
    from .content import Document
    from .protocols import Rule

ERROR = "error"
WARNING = "warning"


@dataclass(frozen=True)
class Issue:
    """A problem found in a content file.

    Attributes:
        path: Path to the offending source file.
        code: Stable identifier, e.g. "missing-field".
        message: Human-readable description.
        severity: "error" or "warning".
        line: 1-based line number, when known.
    """

    path: Path
    code: str
    message: str
    severity: str = ERROR
    line: int | None = None

    @property
    def is_error(self) -> bool:
        return self.severity == ERROR

    def sort_key(self) -> tuple:
        return (str(self.path), self.line or 0, self.code, self.message)

    def to_dict(self, root: Path | None = None) -> dict[str, Any]:
        path = self.path
        if root is not None:
            try:
                path = path.relative_to(root)
            except ValueError:
                pass
        return {
            "path": path.as_posix(),
            "line": self.line,
            "code": self.code,
            "severity": self.severity,
            "message": self.message,
        }


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def _is_text(value: Any) -> bool:
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def _is_words(value: Any) -> bool:
    if isinstance(value, str):
        return True
    if isinstance(value, (list, tuple)):
        return all(_is_text(item) for item in value)
    return False


class LayoutRule:
    """Reports documents without a layout or with a layout nobody provides."""

    def check(self, document: Document, site: SiteIndex) -> Iterator[Issue]:
        layout = document.frontmatter.get("layout")
        if layout is None:
            yield Issue(
                document.path,
                "missing-layout",
                "No layout set in front matter or defaults",
                WARNING,
                1,
            )
            return
        if not isinstance(layout, str) or layout in ("none", "null"):
            return
        if layout not in site.known_layouts:
            yield Issue(
                document.path,
                "unknown-layout",
                f"Layout '{layout}' is not configured and not found in _layouts/",
                WARNING,
                document.field_lines.get("layout"),
            )


class RequiredFieldsRule:
    """Reports fields the chosen layout requires but the document lacks.

    Attributes:
        layouts: Mapping of layout name to its settings (``required`` list).
    """

    def __init__(self, layouts: dict[str, Any]):
        self.layouts = layouts or {}

    def required_for(self, layout: str) -> list[str]:
        settings = self.layouts.get(layout) or {}
        if not isinstance(settings, dict):
            return []
        return [str(name) for name in settings.get("required") or []]

    def check(self, document: Document, site: SiteIndex) -> Iterator[Issue]:
        layout = document.frontmatter.get("layout")
        if not isinstance(layout, str):
            return
        for name in self.required_for(layout):
            if _is_empty(document.frontmatter.get(name)):
                yield Issue(
                    document.path,
                    "missing-field",
                    f"Layout '{layout}' requires '{name}'",
                    ERROR,
                    document.field_lines.get(name, 1),
                )


class FieldTypesRule:
    """Reports known front matter keys with values of the wrong type."""

    TEXT_FIELDS = ("layout", "title", "author", "permalink", "image", "slug", "category")
    WORD_FIELDS = ("tags", "categories")
    BOOL_FIELDS = ("nav_exclude", "published")

    def check(self, document: Document, site: SiteIndex) -> Iterator[Issue]:
        data = document.frontmatter
        for name in self.TEXT_FIELDS:
            if name in data and data[name] is not None and not _is_text(data[name]):
                yield self._issue(document, name, "must be a string", data[name])
        for name in self.WORD_FIELDS:
            if name in data and data[name] is not None and not _is_words(data[name]):
                yield self._issue(document, name, "must be a list of strings or a string", data[name])
        for name in self.BOOL_FIELDS:
            if name in data and not isinstance(data[name], bool):
                yield self._issue(document, name, "must be true or false", data[name])
        if "date" in data and coerce_datetime(data["date"]) is None:
            yield self._issue(document, "date", "is not a valid date", data["date"])

    @staticmethod
    def _issue(document: Document, name: str, problem: str, value: Any) -> Issue:
        return Issue(
            document.path,
            "invalid-field",
            f"'{name}' {problem} (got {type(value).__name__}: {value!r})",
            ERROR,
            document.field_lines.get(name),
        )


class PermalinkRule:
    """Reports explicit permalinks that are not root-relative."""

    def check(self, document: Document, site: SiteIndex) -> Iterator[Issue]:
        permalink = document.frontmatter.get("permalink")
        if not isinstance(permalink, str) or not permalink:
            return
        if not permalink.startswith("/"):
            yield Issue(
                document.path,
                "invalid-permalink",
                f"Permalink '{permalink}' must start with '/'",
                ERROR,
                document.field_lines.get("permalink"),
            )


class ImageRule:
    """Reports header images that do not exist in the source tree."""

    def check(self, document: Document, site: SiteIndex) -> Iterator[Issue]:
        image = document.frontmatter.get("image")
        if not isinstance(image, str) or not image.strip():
            return
        image = image.strip()
        if image.startswith(("http://", "https://", "//")) or "{{" in image:
            return
        path = image if image.startswith("/") else f"/{image}"
        if site.baseurl and path.startswith(f"{site.baseurl}/"):
            path = path[len(site.baseurl) :]
        if not site.static_file_exists(path):
            yield Issue(
                document.path,
                "missing-image",
                f"Image '{image}' not found in the source tree",
                ERROR,
                document.field_lines.get("image"),
            )


class PostNameRule:
    """Reports posts whose filename lacks a valid YYYY-MM-DD- prefix."""

    def check(self, document: Document, site: SiteIndex) -> Iterator[Issue]:
        if document.kind != "post":
            return
        if extract_date_from_name(document.path.stem) is None:
            yield Issue(
                document.path,
                "invalid-post-name",
                "Post filenames must start with a valid YYYY-MM-DD- date",
                WARNING,
            )


class DuplicateUrlRule:
    """Reports documents that publish to the same URL as another document."""

    def check(self, document: Document, site: SiteIndex) -> Iterator[Issue]:
        clashes = [d for d in site.url_map.get(document.url, []) if d is not document]
        if clashes:
            others = ", ".join(d.rel_path for d in clashes)
            yield Issue(
                document.path,
                "duplicate-url",
                f"URL {document.url} is also produced by {others}",
                ERROR,
                document.field_lines.get("permalink"),
            )


class RuleRegistry:
    """Registry for document rules.

    Rules run in registration order; adding a rule never requires
    changing the existing ones.
    """

    def __init__(self, rules: Iterable[Rule] | None = None):
        self._rules: list[Rule] = list(rules or [])

    def register(self, rule: Rule) -> None:
        """Register a new rule.

        Args:
            rule: An object with ``check(document, site)``.
        """
        self._rules.append(rule)

    @property
    def rules(self) -> list[Rule]:
        return list(self._rules)

    def run(self, documents: Iterable[Document], site: SiteIndex) -> list[Issue]:
        """Run every rule over every document.

        Returns:
            Issues sorted by path, line and code.
        """
        issues: list[Issue] = []
        for document in documents:
            for rule in self._rules:
                issues.extend(rule.check(document, site))
        return sorted(issues, key=Issue.sort_key)


def create_default_registry(
    config: dict[str, Any],
    check_external: bool = False,
    session=None,
) -> RuleRegistry:
    """Create a registry with the standard front matter and link rules.

    Args:
        config: Loaded site configuration.
        check_external: Whether external links are requested over HTTP.
        session: Optional requests session for the external checker.

    Returns:
        RuleRegistry configured with the default rules.
    """
    # Import here to avoid circular imports
    from .links import ExternalLinkChecker, LinkResolver, LinkRule

    settings = config.get("bloglint", {})
    registry = RuleRegistry()
    registry.register(LayoutRule())
    registry.register(RequiredFieldsRule(settings.get("layouts", {})))
    registry.register(FieldTypesRule())
    registry.register(PermalinkRule())
    registry.register(ImageRule())
    registry.register(PostNameRule())
    registry.register(DuplicateUrlRule())

    external = None
    if check_external:
        external = ExternalLinkChecker(
            timeout=float(settings.get("external_timeout", 10)),
            user_agent=str(settings.get("user_agent") or "bloglint"),
            session=session,
        )
    registry.register(
        LinkRule(LinkResolver(ignore=settings.get("ignore_links") or []), external)
    )
    return registry
