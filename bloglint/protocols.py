"""Protocol definitions for bloglint.

This module defines the interfaces used between the loading, checking and
link-validation components, so that each can be replaced in tests or
extended with new implementations.
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .collections import SiteIndex
    from .content import Document
    from .rules import Issue


@runtime_checkable
class ContentLoader(Protocol):
    """Protocol for discovering content files.

    This separates file discovery from document construction.
    """

    @abstractmethod
    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        """Return all content files.

        Args:
            include_drafts: Whether to include draft files.

        Returns:
            List of paths to content files.
        """
        ...


@runtime_checkable
class DocumentBuilder(Protocol):
    """Protocol for building Document objects."""

    @abstractmethod
    def build(self, path: Path) -> Document | None:
        """Build a Document from a source file.

        Args:
            path: Path to the source file.

        Returns:
            Document, or None when the file is not a page.
        """
        ...


@runtime_checkable
class Rule(Protocol):
    """Protocol for document rules.

    Implementations check a single concern and yield zero or more issues.
    """

    @abstractmethod
    def check(self, document: Document, site: SiteIndex) -> Iterable[Issue]:
        """Check one document.

        Args:
            document: Document to check.
            site: Index of every document of the site.

        Returns:
            Issues found in the document.
        """
        ...


@runtime_checkable
class LinkChecker(Protocol):
    """Protocol for checking external URLs."""

    @abstractmethod
    def check(self, url: str) -> str | None:
        """Return an error description, or None when url is reachable."""
        ...
