"""Watch mode for bloglint.

Re-runs the site check whenever a file in the source tree changes:
- Watches the source directory recursively with watchdog.
- Ignores the build output, VCS metadata and dependency folders.
- Debounces bursts of events and skips events that did not change content.

Key classes:
- Watcher: Runs the initial check and re-checks on change.
- _ChangeHandler: File system event handler for triggering re-checks.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .check import CheckError, CheckResult, check_site, load_config

LOGGER = logging.getLogger(__name__)

IGNORED_PARTS = (".git", ".jekyll-cache", ".sass-cache", "node_modules", "vendor")


class Watcher:
    """Re-checks a site when its sources change.

    Attributes:
        project_root: Root directory of the project.
        source_dir: Jekyll source directory being watched.
        output_dir: Build output directory, ignored by the watcher.
        include_drafts: Whether drafts are checked.
        check_external: Whether external links are requested.
        on_result: Callback receiving each CheckResult.
        on_error: Callback receiving fatal check errors.
    """

    def __init__(
        self,
        project_root: Path,
        include_drafts: bool = False,
        check_external: bool | None = None,
        on_result: Callable[[CheckResult], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
    ):
        self.project_root = project_root
        config = load_config(project_root)
        self.source_dir = project_root / str(config.get("source") or ".")
        self.output_dir = self.source_dir / str(config.get("destination") or "_site")
        self.include_drafts = include_drafts
        self.check_external = check_external
        self.on_result = on_result or (lambda result: None)
        self.on_error = on_error or (lambda exc: LOGGER.error("%s", exc))
        self._observer: Observer | None = None
        self._checking = False
        self._last_check_at = 0.0
        self._last_signature: tuple | None = None
        self._debounce_seconds = 0.2

    def start(self) -> None:  # pragma: no cover - integration path
        self.run_check()
        self._last_signature = self._compute_signature()
        self._start_observer()
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    def _start_observer(self) -> None:
        handler = _ChangeHandler(self)
        observer = Observer()
        observer.schedule(handler, str(self.source_dir), recursive=True)
        if self.source_dir.resolve() != self.project_root.resolve():
            # _config.yml lives in the project root
            observer.schedule(handler, str(self.project_root), recursive=False)
        observer.start()
        self._observer = observer

    def run_check(self) -> CheckResult | None:
        """Run one check and hand the result (or error) to the callbacks."""
        try:
            result = check_site(
                self.project_root,
                include_drafts=self.include_drafts,
                check_external=self.check_external,
            )
        except (CheckError, FileNotFoundError) as exc:
            self.on_error(exc)
            return None
        self.on_result(result)
        return result

    def recheck(self) -> None:
        now = time.time()
        if self._checking or (now - self._last_check_at) < self._debounce_seconds:
            return
        signature = self._compute_signature()
        if signature is not None and signature == self._last_signature:
            return
        self._checking = True
        try:
            LOGGER.info("Change detected; re-checking %s", self.source_dir)
            self.run_check()
            self._last_signature = signature
        finally:
            self._checking = False
            self._last_check_at = time.time()

    def is_ignored(self, path: Path) -> bool:
        try:
            path.relative_to(self.output_dir)
            return True
        except ValueError:
            pass
        return any(part in IGNORED_PARTS for part in path.parts)

    def _compute_signature(self) -> tuple | None:
        entries: list[tuple] = []
        if not self.source_dir.exists():
            return None
        for path in sorted(self.source_dir.rglob("*")):
            if path.is_dir() or self.is_ignored(path):
                continue
            try:
                stat = path.stat()
            except OSError:
                continue
            rel = path.relative_to(self.source_dir)
            entries.append((str(rel), stat.st_mtime_ns, stat.st_size))
        return tuple(entries) if entries else None


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, watcher: Watcher):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event):
        if event.is_directory:
            return
        path = Path(event.src_path)
        if self.watcher.is_ignored(path):
            return
        self.watcher.recheck()
