import asyncio
import logging
import os
import time
from pathlib import Path

logger = logging.getLogger("autoocr.cleanup")


class RetentionCleaner:
    """Deletes files older than ``max_age`` seconds from a set of directories.

    Only the immediate entries of each directory are considered and
    subdirectories are left alone. Age is taken from the modification time,
    whatever state the job the file belongs to is in.
    """

    def __init__(
        self,
        directories: list[Path],
        max_age: float,
        interval: float,
        shutdown: asyncio.Event,
    ) -> None:
        self._directories = [Path(d) for d in directories]
        self._max_age = max_age
        self._interval = interval
        self._shutdown = shutdown

    def sweep(self, now: float | None = None) -> list[Path]:
        cutoff = (time.time() if now is None else now) - self._max_age
        removed: list[Path] = []
        for d in self._directories:
            try:
                with os.scandir(d) as it:
                    entries = list(it)
            except OSError as e:
                logger.debug("cleanup: cannot read dir %s: %s", d, e)
                continue
            for entry in entries:
                try:
                    if entry.is_dir():
                        continue
                    mtime = entry.stat().st_mtime
                except OSError:
                    continue
                if mtime >= cutoff:
                    continue
                p = Path(entry.path)
                try:
                    p.unlink()
                except OSError as e:
                    logger.debug("cleanup: failed to remove %s: %s", p, e)
                else:
                    logger.info("cleanup: removed old file %s", p)
                    removed.append(p)
        return removed

    async def run(self) -> None:
        await asyncio.to_thread(self.sweep)
        while True:
            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                await asyncio.to_thread(self.sweep)
            else:
                logger.info("Cleaner stopped")
                return
