"""Debounced watcher on the input directory.

watchdog delivers events on its observer thread; they are handed to the
event loop and re-arm a timer, so a burst of writes yields a single trigger
once the directory has been quiet for ``delay`` seconds.
"""

import asyncio
import logging
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger("autoocr.watcher")


class InputChangeHandler(FileSystemEventHandler):
    """Watchdog handler that reports new or rewritten files."""

    def __init__(self, on_change: Callable[[], None]) -> None:
        super().__init__()
        self._on_change = on_change

    def on_created(self, event: FileSystemEvent) -> None:
        self._handle(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._handle(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._handle(event)

    def _handle(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        path = Path(str(getattr(event, "dest_path", "") or event.src_path))
        logger.debug("change detected: %s", path.name)
        self._on_change()


class DirectoryWatcher:
    def __init__(self, input_dir: Path, delay: float, shutdown: asyncio.Event) -> None:
        self._input_dir = Path(input_dir)
        self._delay = delay
        self._shutdown = shutdown
        self._loop: asyncio.AbstractEventLoop | None = None
        self._timer: asyncio.TimerHandle | None = None
        self.trigger: asyncio.Queue[None] = asyncio.Queue()

        if not self._input_dir.is_dir():
            raise FileNotFoundError(f"input directory {self._input_dir} does not exist")
        self._observer = Observer()
        self._observer.schedule(InputChangeHandler(self._from_thread), str(self._input_dir), recursive=False)

    def _from_thread(self) -> None:
        loop = self._loop
        if loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(self.notify)

    def notify(self) -> None:
        """Record a change; must be called on the event loop."""
        loop = self._loop or asyncio.get_running_loop()
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self._delay, self._fire)

    def _fire(self) -> None:
        self._timer = None
        logger.debug("input dir quiet for %.1fs, triggering", self._delay)
        self.trigger.put_nowait(None)

    async def run(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._observer.start()
        logger.info("Watching %s", self._input_dir)
        try:
            await self._shutdown.wait()
        finally:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._observer.stop()
            await asyncio.to_thread(self._observer.join)
            logger.info("Watcher stopped")
