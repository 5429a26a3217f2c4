import asyncio
import logging
import os
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable

logger = logging.getLogger("autoocr.stream")


def split_lines(data: str) -> list[str]:
    """Split a chunk of log text into lines.

    A chunk ending exactly at a newline yields no trailing empty line; a
    chunk without any newline comes back as a single line.
    """
    if data == "":
        return []
    parts = data.split("\n")
    if parts[-1] == "":
        parts.pop()
    return [p.rstrip("\r") for p in parts]


def sse_frame(line: str) -> str:
    return f"data: {line}\n\n"


class LogTail:
    """Incremental reader over a file that is appended to by someone else.

    Each poll returns the lines of whatever was appended since the previous
    one, an unterminated last piece included. The file may disappear or be
    replaced at any time; both are treated as "nothing new yet".
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.offset = 0

    def poll(self) -> list[str]:
        try:
            size = os.stat(self.path).st_size
        except OSError as e:
            logger.debug("stat %s failed: %s", self.path, e)
            return []
        if size < self.offset:
            logger.debug("%s shrank from %d to %d bytes, rereading", self.path.name, self.offset, size)
            self.offset = 0
        if size == self.offset:
            return []

        try:
            with open(self.path, "rb") as f:
                f.seek(self.offset)
                data = f.read(size - self.offset)
        except OSError as e:
            logger.debug("read %s failed: %s", self.path, e)
            return []
        self.offset += len(data)
        return split_lines(data.decode("utf-8", errors="replace"))


async def tail_events(
    path: Path,
    is_disconnected: Callable[[], Awaitable[bool]],
    poll_interval: float = 0.5,
) -> AsyncIterator[str]:
    """Yield one server-sent event per new line until the client goes away."""
    tail = LogTail(path)
    while not await is_disconnected():
        for line in tail.poll():
            yield sse_frame(line)
        await asyncio.sleep(poll_interval)
    logger.debug("client disconnected from %s", path.name)
