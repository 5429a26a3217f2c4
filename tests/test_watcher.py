from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from autoocr.watcher import DirectoryWatcher


def test_missing_directory_fails_at_construction(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        DirectoryWatcher(tmp_path / "missing", 0.1, asyncio.Event())


def test_burst_of_changes_yields_single_trigger(tmp_path: Path):
    async def scenario() -> int:
        watcher = DirectoryWatcher(tmp_path, 0.05, asyncio.Event())
        for _ in range(5):
            watcher.notify()
            await asyncio.sleep(0.01)
        assert watcher.trigger.empty()
        await asyncio.sleep(0.2)
        return watcher.trigger.qsize()

    assert asyncio.run(scenario()) == 1


def test_separate_bursts_yield_separate_triggers(tmp_path: Path):
    async def scenario() -> int:
        watcher = DirectoryWatcher(tmp_path, 0.02, asyncio.Event())
        watcher.notify()
        await asyncio.sleep(0.1)
        watcher.notify()
        await asyncio.sleep(0.1)
        return watcher.trigger.qsize()

    assert asyncio.run(scenario()) == 2


def test_file_drop_triggers_through_observer(tmp_path: Path):
    async def scenario() -> None:
        shutdown = asyncio.Event()
        watcher = DirectoryWatcher(tmp_path, 0.05, shutdown)
        task = asyncio.create_task(watcher.run())
        await asyncio.sleep(0.2)
        (tmp_path / "1_scan.pdf").write_bytes(b"%PDF")
        try:
            await asyncio.wait_for(watcher.trigger.get(), timeout=5)
        finally:
            shutdown.set()
            await asyncio.wait_for(task, timeout=5)

    asyncio.run(scenario())
