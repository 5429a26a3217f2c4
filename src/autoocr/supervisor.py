"""Lifecycle supervision for the background tasks of one process.

The supervisor owns the shared shutdown event that every loop waits on, the
list of tasks that must finish before the process exits, and the loop that
turns watcher triggers and termination signals into processor runs and
shutdown.
"""

import asyncio
import contextlib
import logging
import signal
from typing import Coroutine

import uvicorn

from autoocr.conversion.interfaces import TriggerTarget

logger = logging.getLogger("autoocr.supervisor")

TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class WebServer(uvicorn.Server):
    """uvicorn server that leaves process signals to the Supervisor."""

    @contextlib.contextmanager
    def capture_signals(self):
        yield

    def install_signal_handlers(self) -> None:
        pass


class Supervisor:
    def __init__(self, shutdown_timeout: float = 5.0) -> None:
        self.shutdown = asyncio.Event()
        self.shutdown_timeout = shutdown_timeout
        self.signals: asyncio.Queue[int] = asyncio.Queue()
        self.failed = False
        self._tasks: list[asyncio.Task] = []
        self._installed: list[int] = []

    def spawn(self, name: str, coro: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        task.add_done_callback(self._on_task_done)
        self._tasks.append(task)
        return task

    def cancel(self) -> None:
        if not self.shutdown.is_set():
            logger.info("Shutting down")
            self.shutdown.set()

    def fail(self, message: str) -> None:
        logger.critical(message)
        self.failed = True
        self.cancel()

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("task %s crashed", task.get_name(), exc_info=exc)
            self.fail(f"Background task {task.get_name()} failed, stopping")

    def install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in TERMINATION_SIGNALS:
            loop.add_signal_handler(sig, self.signals.put_nowait, sig)
            self._installed.append(sig)

    def remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        while self._installed:
            loop.remove_signal_handler(self._installed.pop())

    async def coordinate(self, triggers: asyncio.Queue, target: TriggerTarget) -> None:
        """Forward every watcher trigger to ``target`` until a signal arrives."""
        logger.info("Waiting for changes...")
        while True:
            got_trigger = asyncio.create_task(triggers.get())
            got_signal = asyncio.create_task(self.signals.get())
            stopped = asyncio.create_task(self.shutdown.wait())
            done, pending = await asyncio.wait(
                {got_trigger, got_signal, stopped}, return_when=asyncio.FIRST_COMPLETED
            )
            for t in pending:
                t.cancel()

            if got_signal in done:
                logger.info("Received %s", signal.Signals(got_signal.result()).name)
                self.cancel()
                return
            if stopped in done:
                return
            target.trigger()

    async def serve_web(self, server: uvicorn.Server) -> None:
        try:
            await server.serve()
        except SystemExit:
            # uvicorn exits this way when it cannot bind
            self.fail("Error starting web server")
            return
        if not server.started and not self.shutdown.is_set():
            self.fail("Web server exited before it started")

    async def stop_server_on_shutdown(self, server: uvicorn.Server, server_task: asyncio.Task) -> None:
        await self.shutdown.wait()
        logger.info("Shutting down webserver")
        server.should_exit = True
        done, _ = await asyncio.wait({server_task}, timeout=self.shutdown_timeout)
        if not done:
            logger.error("Webserver did not stop within %.1fs, forcing exit", self.shutdown_timeout)
            server.force_exit = True
            server_task.cancel()
            await asyncio.wait({server_task})

    async def join(self) -> None:
        """Return once every spawned task, including late ones, has finished."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.wait(pending)
