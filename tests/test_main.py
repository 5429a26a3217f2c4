from __future__ import annotations

import asyncio
import os
import signal
import socket
import sys
from pathlib import Path

import httpx
import pytest

from autoocr import main
from autoocr.config import Settings
from autoocr.conversion.adapters import DoclingConverter
from conftest import FakeConverter


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def live_settings(tmp_path: Path) -> Settings:
    return Settings(
        input_dir=tmp_path / "input",
        output_dir=tmp_path / "output",
        host="127.0.0.1",
        port=_free_port(),
        watch_delay_sec=0.05,
        shutdown_timeout_sec=1.0,
        stream_poll_sec=0.02,
    )


def test_missing_docling_fails_at_construction(monkeypatch):
    monkeypatch.setitem(sys.modules, "docling.document_converter", None)

    with pytest.raises(ImportError):
        DoclingConverter()


def test_converter_failure_is_fatal_at_startup(monkeypatch, live_settings):
    monkeypatch.setitem(sys.modules, "docling.document_converter", None)

    assert asyncio.run(main.serve(live_settings, converter_factory=DoclingConverter)) == 1


def test_sub_second_shutdown_bound_is_rounded_up(monkeypatch, live_settings):
    configs = []

    def capture(config):
        configs.append(config)
        raise RuntimeError("stop before serving")

    monkeypatch.setattr(main, "WebServer", capture)
    settings = live_settings.with_overrides(shutdown_timeout_sec=0.3)

    assert asyncio.run(main.serve(settings, converter_factory=FakeConverter)) == 1
    assert configs[0].timeout_graceful_shutdown == 1


def test_sigterm_with_open_stream_exits_within_shutdown_bound(live_settings):
    base_url = f"http://127.0.0.1:{live_settings.port}"

    async def scenario() -> tuple[int, str, float]:
        loop = asyncio.get_running_loop()
        served = asyncio.create_task(main.serve(live_settings, converter_factory=FakeConverter))

        async with httpx.AsyncClient(base_url=base_url, timeout=5) as client:
            for _ in range(100):
                try:
                    if (await client.get("/health")).status_code == 200:
                        break
                except httpx.TransportError:
                    pass
                await asyncio.sleep(0.05)
            else:
                pytest.fail("server never came up")

            (live_settings.output_dir / "job.debug.txt").write_text("hello\n")
            async with client.stream("GET", "/stream", params={"file": "job.debug.txt"}) as response:
                first = await response.aiter_lines().__anext__()

                started = loop.time()
                os.kill(os.getpid(), signal.SIGTERM)
                code = await asyncio.wait_for(served, timeout=live_settings.shutdown_timeout_sec + 5)
                return code, first, loop.time() - started

    code, first, elapsed = asyncio.run(scenario())

    assert code == 0
    assert first == "data: hello"
    assert elapsed < live_settings.shutdown_timeout_sec + 1.5
