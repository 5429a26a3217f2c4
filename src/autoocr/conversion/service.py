import asyncio
import logging
import os
import time
from datetime import datetime
from pathlib import Path

from .interfaces import ConverterGateway, JobPaths

logger = logging.getLogger("autoocr.processor")


class Processor:
    """Converts every file waiting in the input directory.

    Progress for each file is appended to its debug marker in the output
    directory; on success the Markdown output and the success marker are
    written next to it. The input file is consumed either way.

    ``trigger()`` never blocks. Triggers arriving while a pass is running are
    coalesced into a single follow-up pass, so at most one pass runs at a time.
    """

    def __init__(
        self,
        input_dir: Path,
        output_dir: Path,
        converter: ConverterGateway,
        shutdown: asyncio.Event,
        *,
        out_permissions: int = 0o644,
    ) -> None:
        self._input_dir = Path(input_dir)
        self._output_dir = Path(output_dir)
        self._converter = converter
        self._shutdown = shutdown
        self._out_permissions = out_permissions
        self._wake = asyncio.Event()

    def trigger(self) -> None:
        self._wake.set()

    async def run(self) -> None:
        # pick up whatever was dropped while we were not running
        self._wake.set()
        while True:
            wake = asyncio.create_task(self._wake.wait())
            stop = asyncio.create_task(self._shutdown.wait())
            _, pending = await asyncio.wait({wake, stop}, return_when=asyncio.FIRST_COMPLETED)
            for t in pending:
                t.cancel()
            if self._shutdown.is_set():
                logger.info("Processor stopped")
                return
            self._wake.clear()
            await self.process_pending()

    def pending_inputs(self) -> list[Path]:
        try:
            with os.scandir(self._input_dir) as it:
                names = sorted(
                    e.name for e in it
                    if not e.name.startswith(".") and e.is_file()
                )
        except OSError as e:
            logger.warning("cannot read input dir %s: %s", self._input_dir, e)
            return []
        return [self._input_dir / n for n in names]

    async def process_pending(self) -> int:
        """Run one pass over the input directory; returns the number converted."""
        converted = 0
        for path in self.pending_inputs():
            if self._shutdown.is_set():
                break
            if await self.process_file(path):
                converted += 1
        return converted

    async def process_file(self, input_path: Path) -> bool:
        paths = JobPaths.for_input(input_path, self._output_dir)
        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("cannot create output dir %s: %s", self._output_dir, e)
            return False

        logger.info("Processing %s", input_path.name)
        self._append(paths.debug_path, f"Processing {input_path.name}")
        started = time.monotonic()
        try:
            md = await asyncio.to_thread(self._converter.convert_to_markdown, str(input_path))
            self._append(paths.debug_path, f"Converted {len(md)} characters, writing output")
            await asyncio.to_thread(self._write_output, paths, md)
        except Exception as e:
            logger.exception("conversion of %s failed", input_path.name)
            self._append(paths.debug_path, f"Conversion failed: {e}")
            return False
        finally:
            self._consume(input_path)

        elapsed = time.monotonic() - started
        self._append(paths.debug_path, f"Done in {elapsed:.1f}s: {paths.output_path.name}")
        try:
            paths.success_path.write_text(paths.output_path.name + "\n", encoding="utf-8")
        except OSError as e:
            logger.error("cannot write success marker %s: %s", paths.success_path, e)
            return False
        logger.info("Finished %s -> %s", input_path.name, paths.output_path.name)
        return True

    def _write_output(self, paths: JobPaths, md: str) -> None:
        with paths.output_path.open("w", encoding="utf-8") as f:
            f.write(md)
        os.chmod(paths.output_path, self._out_permissions)

    def _append(self, debug_path: Path, message: str) -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        try:
            with debug_path.open("a", encoding="utf-8") as f:
                f.write(f"[{stamp}] {message}\n")
        except OSError as e:
            logger.debug("cannot append to %s: %s", debug_path, e)

    def _consume(self, input_path: Path) -> None:
        try:
            input_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("cannot remove input %s: %s", input_path, e)
