"""
Watch mode for the css-blocks application stage.

Re-runs the same stage instance whenever block fragments or analyses in
the input directory change. The stage's snapshot differ turns events that
did not change any input into no-ops.
"""

from __future__ import annotations

import argparse
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from cssblocks.build.stage import CSSBlocksApplicationStage
from cssblocks.commands.build import config_from_args, make_stage
from cssblocks.core.tree import match_globs
from cssblocks.core.utils import INPUT_GLOBS, log

DEBOUNCE_SECONDS = 0.5


# =============================================================================
# Debouncer
# =============================================================================


class Debouncer:
    """Batches rapid file change events into a single callback.

    Collects paths for `delay` seconds after the last event, then calls
    `callback` once with every path seen.
    """

    def __init__(self, delay: float, callback: Callable[[list[Path]], None]):
        self.delay = delay
        self.callback = callback
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._pending_paths: list[Path] = []

    def trigger(self, path: Path) -> None:
        """Register a change event. Resets the debounce timer."""
        with self._lock:
            if path not in self._pending_paths:
                self._pending_paths.append(path)

            if self._timer is not None:
                self._timer.cancel()

            self._timer = threading.Timer(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            if not self._pending_paths:
                return
            paths = list(self._pending_paths)
            self._pending_paths.clear()
            self._timer = None

        self.callback(paths)

    def cancel(self) -> None:
        """Cancel any pending debounce timer."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending_paths.clear()


# =============================================================================
# Rebuilder
# =============================================================================


class Rebuilder:
    """Runs the stage for each batch of changes and counts the outcomes.

    Debounced batches fire on timer threads; a batch that arrives while a
    build is running waits for it, so build cycles never overlap.
    """

    def __init__(self, stage: CSSBlocksApplicationStage):
        self.stage = stage
        self._lock = threading.Lock()
        self.build_count = 0
        self.skip_count = 0
        self.failure_count = 0

    def execute(self, paths: list[Path]) -> None:
        with self._lock:
            self._execute(paths)

    def _execute(self, paths: list[Path]) -> None:
        start = time.time()
        try:
            result = self.stage.build()
        except Exception as e:
            # The stage already reported the failure; keep watching.
            self.failure_count += 1
            log.error(f"Rebuild failed after {time.time() - start:.1f}s: {e}")
            return
        if result.rebuilt:
            self.build_count += 1
            log.success(f"[{self.build_count}] Rebuilt after {len(paths)} change(s) in {time.time() - start:.1f}s")
        else:
            self.skip_count += 1


# =============================================================================
# File System Event Handler
# =============================================================================


class BlockInputEventHandler(FileSystemEventHandler):
    """Forwards events for block fragments and analyses to the debouncer."""

    def __init__(self, input_dir: Path, debouncer: Debouncer):
        super().__init__()
        self.input_dir = input_dir
        self.debouncer = debouncer

    def is_input(self, path: Path) -> bool:
        try:
            relative = path.resolve().relative_to(self.input_dir.resolve())
        except ValueError:
            return False
        return match_globs(relative.as_posix(), INPUT_GLOBS)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle(Path(event.src_path))

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle(Path(event.src_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle(Path(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle(Path(event.src_path))
            self._handle(Path(event.dest_path))

    def _handle(self, path: Path) -> None:
        if self.is_input(path):
            log.dim(f"Change detected: {path.name}")
            self.debouncer.trigger(path)


# =============================================================================
# Watch Command
# =============================================================================


def cmd_watch(args: argparse.Namespace) -> int:
    """Execute the watch command."""
    config = config_from_args(args)
    if not config.input_dir.exists():
        log.error(f"Input directory not found: {config.input_dir}")
        return 1

    log.header(f"CSS Blocks Watch Mode: {config.app_name}")
    stage = make_stage(config)
    rebuilder = Rebuilder(stage)

    # Initial build so the output exists before the first change
    rebuilder.execute([])

    debouncer = Debouncer(DEBOUNCE_SECONDS, rebuilder.execute)
    handler = BlockInputEventHandler(config.input_dir, debouncer)

    observer = Observer()
    observer.schedule(handler, str(config.input_dir), recursive=True)
    observer.start()

    log.info(f"Watching {config.input_dir} for changes... (Ctrl+C to stop)")

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        log.header("Shutting down")
        debouncer.cancel()
        observer.stop()
        observer.join(timeout=5)
        log.info(f"Rebuilds performed: {rebuilder.build_count} ({rebuilder.skip_count} skipped, {rebuilder.failure_count} failed)")
        log.success("Watch mode stopped")

    return 0
