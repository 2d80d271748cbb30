"""bloglint: front matter and link checker for Jekyll blogs.

This package reads a Jekyll blog source tree (posts, pages, ``_config.yml``),
models the front matter of every content file, derives the public URL each
page will be published at, and reports problems before the site generator runs.

The main entry point is the CLI module, which provides commands for checking
a site, listing its content, creating new posts and re-checking on change.

Architecture:
- content: discovery of content files and construction of Document objects.
- rules: front matter completeness and type checks.
- links: link extraction and resolution against the derived URL map.
- check: configuration loading and the check_site orchestration.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
