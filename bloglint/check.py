"""Site checking for bloglint.

This module contains the core logic for checking a Jekyll source tree.
It loads configuration, processes content, scans links and runs the rules.

Key functions:
- check_site: Main function to check the entire site.
- load_config: Loads site configuration from _config.yml.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from . import __version__
from .collections import SiteIndex
from .content import ContentProcessor, Document
from .frontmatter import FrontMatterError
from .links import LinkExtractor
from .rules import ERROR, WARNING, Issue, RuleRegistry, create_default_registry

LOGGER = logging.getLogger(__name__)

CONFIG_FILENAME = "_config.yml"


class CheckError(Exception):
    """Error that prevents checking the site, with file context.

    Attributes:
        source_path: Path to the file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


DEFAULT_CONFIG: dict[str, Any] = {
    "source": ".",
    "destination": "_site",
    "permalink": "date",
    "baseurl": "",
    "url": "",
    "exclude": [
        "Gemfile",
        "Gemfile.lock",
        "node_modules",
        "vendor",
        "README.md",
        "LICENSE",
    ],
    "defaults": [],
    "bloglint": {
        "layouts": {
            "post": {"required": ["title", "author", "tags"]},
            "page": {"required": ["title"]},
            "home": {"required": []},
            "default": {"required": []},
        },
        "check_external": False,
        "external_timeout": 10,
        "user_agent": f"bloglint/{__version__}",
        "ignore_links": ["/feed.xml", "/sitemap.xml", "/robots.txt"],
    },
}


@dataclass
class CheckResult:
    """Result of a site check.

    Attributes:
        documents: All documents that were checked.
        issues: Problems found, sorted by path and line.
        config: Configuration the check ran with.
        source_dir: Jekyll source directory.
    """

    documents: list[Document]
    issues: list[Issue]
    config: dict[str, Any]
    source_dir: Path

    @property
    def errors(self) -> list[Issue]:
        return [issue for issue in self.issues if issue.severity == ERROR]

    @property
    def warnings(self) -> list[Issue]:
        return [issue for issue in self.issues if issue.severity == WARNING]

    @property
    def ok(self) -> bool:
        return not self.errors

    def failed(self, strict: bool = False) -> bool:
        """Whether the check should fail, counting warnings when strict."""
        return bool(self.errors or (strict and self.warnings))


def load_config(project_root: Path) -> dict[str, Any]:
    """Load site configuration from _config.yml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.

    Raises:
        CheckError: If _config.yml is not valid YAML or its layout
            settings have the wrong shape.
    """
    config_path = project_root / CONFIG_FILENAME
    config = copy.deepcopy(DEFAULT_CONFIG)
    if not config_path.exists():
        return config
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise CheckError(config_path, f"Invalid YAML: {exc}", exc) from exc
    if not isinstance(loaded, dict):
        LOGGER.warning("Ignoring %s: top level is not a mapping", config_path)
        return config

    settings = loaded.pop("bloglint", None)
    config.update(loaded)
    if isinstance(settings, dict):
        layouts = settings.pop("layouts", None)
        config["bloglint"].update(settings)
        if layouts is not None and not isinstance(layouts, dict):
            raise CheckError(config_path, "bloglint.layouts must be a mapping")
        for name, values in (layouts or {}).items():
            if values is not None and not isinstance(values, dict):
                raise CheckError(config_path, f"bloglint.layouts.{name} must be a mapping")
            if not isinstance((values or {}).get("required", []), list):
                raise CheckError(config_path, f"bloglint.layouts.{name}.required must be a list")
            merged = dict(config["bloglint"]["layouts"].get(name) or {})
            merged.update(values or {})
            config["bloglint"]["layouts"][name] = merged
    return config


def check_site(
    project_root: Path,
    include_drafts: bool = False,
    check_external: bool | None = None,
    registry: RuleRegistry | None = None,
) -> CheckResult:
    """Check the entire site.

    Args:
        project_root: Root directory of the project (where _config.yml lives).
        include_drafts: Whether to check drafts and unpublished files.
        check_external: Request external links over HTTP; None uses the
            ``bloglint.check_external`` setting.
        registry: Optional custom rule registry.

    Returns:
        CheckResult containing documents and issues.
    """
    config = load_config(project_root)
    source_dir = project_root / str(config.get("source") or ".")
    if not source_dir.is_dir():
        raise FileNotFoundError(f"Expected source directory at {source_dir}")
    if check_external is None:
        check_external = bool(config["bloglint"].get("check_external"))

    errors: list[tuple[Path, FrontMatterError]] = []
    documents = ContentProcessor(source_dir, config).load(
        include_drafts=include_drafts, errors=errors
    )
    issues = [
        Issue(path, "frontmatter-invalid", exc.message, ERROR, exc.line)
        for path, exc in errors
    ]

    site = SiteIndex(documents, source_dir, config)
    LinkExtractor(site).scan(documents)

    registry = registry or create_default_registry(config, check_external=check_external)
    issues.extend(registry.run(documents, site))
    issues.sort(key=Issue.sort_key)
    LOGGER.info(
        "Checked %d documents: %d issues",
        len(documents),
        len(issues),
    )
    return CheckResult(
        documents=documents,
        issues=issues,
        config=config,
        source_dir=source_dir,
    )
