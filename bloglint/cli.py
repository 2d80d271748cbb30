"""Command-line interface for bloglint.

This module defines the CLI commands using Click framework.
It provides commands for checking a Jekyll blog, listing its content and
creating new posts.

Commands:
- check: Check front matter and links of the whole site.
- list: List posts and pages with their URLs.
- tags: Show tags with their post counts.
- post: Create a new post interactively.
- watch: Re-check the site whenever a file changes.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path

import click
import questionary

from . import __version__
from .check import CheckError, CheckResult, check_site, load_config
from .content import POSTS_DIR
from .frontmatter import dump_frontmatter, split_words
from .utils import is_markdown, slugify, strip_date_prefix


@click.group()
@click.version_option(version=__version__, prog_name="bloglint")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
def cli(verbose: bool):
    """Front matter and link checker for Jekyll blogs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.option("--drafts", is_flag=True, help="Include drafts and unpublished files")
@click.option(
    "--external/--no-external",
    default=None,
    help="Request external links over HTTP (overrides _config.yml)",
)
@click.option("--strict", is_flag=True, help="Fail on warnings as well as errors")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Output format",
)
def check(drafts: bool, external: bool | None, strict: bool, output_format: str):
    """Check front matter and links of the site."""
    project_root = Path.cwd()
    result = _run_check(project_root, drafts, external)

    if output_format == "json":
        payload = {
            "documents": len(result.documents),
            "errors": len(result.errors),
            "warnings": len(result.warnings),
            "issues": [issue.to_dict(result.source_dir) for issue in result.issues],
        }
        click.echo(json.dumps(payload, indent=2))
    else:
        _print_report(result)

    if result.failed(strict):
        raise SystemExit(1)


@cli.command(name="list")
@click.option("--drafts", is_flag=True, help="Include drafts and unpublished files")
@click.option("--tag", default=None, help="Only show documents with this tag")
def list_documents(drafts: bool, tag: str | None):
    """List posts (newest first) and pages with their URLs."""
    from .collections import DocumentCollection

    project_root = Path.cwd()
    result = _run_check(project_root, drafts, external=False)
    documents = DocumentCollection(result.documents)
    if tag:
        documents = documents.with_tag(tag)

    posts = documents.posts().sorted()
    pages = sorted(documents.pages(), key=lambda d: d.url)
    for document in posts:
        marker = click.style(" (draft)", fg="yellow") if document.draft else ""
        click.echo(
            f"{document.date:%Y-%m-%d}  {document.url}  {document.title}{marker}"
        )
    for document in pages:
        click.echo(f"{'page':<10}  {document.url}  {document.title}")
    if not posts and not pages:
        click.echo("No documents found.")


@cli.command()
def tags():
    """Show tags with their post counts, most used first."""
    from .collections import TagCollection

    project_root = Path.cwd()
    result = _run_check(project_root, drafts=False, external=False)
    counts = TagCollection.from_documents(result.documents).most_common()
    if not counts:
        click.echo("No tags found.")
        return
    width = max(len(tag) for tag, _ in counts)
    for tag, count in counts:
        click.echo(f"{tag:<{width}}  {count}")


@cli.command()
def post():
    """Create a new post interactively."""
    project_root = Path.cwd()
    try:
        config = load_config(project_root)
    except CheckError as exc:
        _report_fatal(project_root, exc)
    source_dir = project_root / str(config.get("source") or ".")
    if not source_dir.is_dir():
        raise click.ClickException(f"No source directory found at {source_dir}")
    posts_dir = source_dir / POSTS_DIR

    title = questionary.text(
        "Title:",
        validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
        style=_questionary_style(),
    ).ask()
    if title is None:
        raise click.Abort()
    title = title.strip()

    slug = questionary.text(
        "Slug:",
        default=slugify(title),
        validate=lambda x: slugify(x) == x.strip() or "Use lowercase letters, digits and hyphens",
        style=_questionary_style(),
    ).ask()
    if slug is None:
        raise click.Abort()
    slug = slug.strip()

    author = questionary.text(
        "Author:",
        default=str(config.get("author") or ""),
        style=_questionary_style(),
    ).ask()
    if author is None:
        raise click.Abort()

    tag_text = questionary.text(
        "Tags (comma or space separated):",
        style=_questionary_style(),
    ).ask()
    if tag_text is None:
        raise click.Abort()

    image = questionary.text(
        "Header image (optional):",
        style=_questionary_style(),
    ).ask()
    if image is None:
        raise click.Abort()

    filename = f"{datetime.now():%Y-%m-%d}-{slug}.md"
    target_path = posts_dir / filename
    if target_path.exists():
        raise click.ClickException(
            f"File already exists: {target_path.relative_to(project_root)}"
        )

    # Same slug with a different date would publish a confusing twin
    conflicting = [
        f.name for f in _existing_posts(posts_dir) if _extract_slug(f.name) == slug
    ]
    if conflicting:
        raise click.ClickException(
            f"A post with slug '{slug}' already exists: {conflicting[0]}"
        )

    frontmatter = {
        "layout": "post",
        "title": title,
        "author": author.strip(),
        "tags": split_words(tag_text.replace(",", " ")),
    }
    if image.strip():
        frontmatter["image"] = image.strip()

    posts_dir.mkdir(parents=True, exist_ok=True)
    target_path.write_text(dump_frontmatter(frontmatter) + "\n", encoding="utf-8")
    click.echo(f"Created {target_path.relative_to(project_root)}")


@cli.command()
@click.option("--drafts", is_flag=True, help="Include drafts and unpublished files")
@click.option(
    "--external/--no-external",
    default=None,
    help="Request external links over HTTP (overrides _config.yml)",
)
def watch(drafts: bool, external: bool | None):
    """Re-check the site whenever a file changes."""
    project_root = Path.cwd()
    from .watcher import Watcher

    try:
        watcher = Watcher(
            project_root,
            include_drafts=drafts,
            check_external=external,
            on_result=_print_report,
            on_error=lambda exc: _print_error(project_root, exc),
        )
    except CheckError as exc:
        _report_fatal(project_root, exc)
    click.echo(f"Watching {watcher.source_dir} (Ctrl+C to stop)")
    watcher.start()


def _run_check(project_root: Path, drafts: bool, external: bool | None) -> CheckResult:
    try:
        return check_site(project_root, include_drafts=drafts, check_external=external)
    except (CheckError, FileNotFoundError) as exc:
        _report_fatal(project_root, exc)


def _report_fatal(project_root: Path, exc: Exception):
    _print_error(project_root, exc)
    raise SystemExit(1) from None


def _print_error(project_root: Path, exc: Exception) -> None:
    """Display a user-friendly message for an error that stops the check."""
    click.echo(click.style("Check failed:", fg="red", bold=True), err=True)
    if isinstance(exc, CheckError):
        try:
            rel_path = exc.source_path.relative_to(project_root)
        except ValueError:
            rel_path = exc.source_path
        click.echo(click.style(f"  File: {rel_path}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
    else:
        click.echo(click.style(f"  Error: {exc}", fg="white"), err=True)


def _print_report(result: CheckResult) -> None:
    for issue in result.issues:
        data = issue.to_dict(result.source_dir)
        location = data["path"]
        if issue.line:
            location = f"{location}:{issue.line}"
        color = "red" if issue.is_error else "yellow"
        click.echo(
            f"{location}: {click.style(issue.severity, fg=color)} "
            f"[{issue.code}] {issue.message}"
        )
    summary = (
        f"Checked {len(result.documents)} documents: "
        f"{len(result.errors)} errors, {len(result.warnings)} warnings"
    )
    click.echo(click.style(summary, fg="red" if result.errors else "green", bold=True))


def _existing_posts(folder: Path) -> list[Path]:
    """Get Markdown posts in a folder, sorted by name."""
    if not folder.exists():
        return []
    return sorted(f for f in folder.iterdir() if f.is_file() and is_markdown(f))


def _extract_slug(filename: str) -> str:
    """Extract slug from filename, removing date prefix and extension."""
    return strip_date_prefix(Path(filename).stem).lower()


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()
