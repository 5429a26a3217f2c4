from __future__ import annotations

import asyncio
from pathlib import Path

from autoocr.streaming import LogTail, split_lines, sse_frame, tail_events


def test_split_lines_boundaries():
    assert split_lines("a\nb\n") == ["a", "b"]
    assert split_lines("a\nb") == ["a", "b"]
    assert split_lines("no newline") == ["no newline"]
    assert split_lines("") == []
    assert split_lines("\n") == [""]
    assert split_lines("crlf\r\n") == ["crlf"]


def test_sse_frame():
    assert sse_frame("step1") == "data: step1\n\n"


def test_log_tail_reads_only_the_delta(tmp_path: Path):
    path = tmp_path / "job.debug.txt"
    path.write_text("Debug for scan.pdf\n")
    tail = LogTail(path)

    assert tail.poll() == ["Debug for scan.pdf"]
    assert tail.poll() == []

    with path.open("a") as f:
        f.write("one\ntwo\n")
    assert tail.poll() == ["one", "two"]


def test_log_tail_sends_unterminated_delta_as_one_line(tmp_path: Path):
    path = tmp_path / "job.debug.txt"
    path.write_text("")
    tail = LogTail(path)

    with path.open("a") as f:
        f.write("Finished: out.pdf")
    assert tail.poll() == ["Finished: out.pdf"]

    with path.open("a") as f:
        f.write("\nnext\n")
    assert tail.poll() == ["", "next"]


def test_tail_events_streams_last_line_without_newline(tmp_path: Path):
    path = tmp_path / "job.debug.txt"
    path.write_text("Finished: out.pdf")
    calls = 0

    async def is_disconnected() -> bool:
        nonlocal calls
        calls += 1
        return calls > 5

    async def collect() -> list[str]:
        return [frame async for frame in tail_events(path, is_disconnected, poll_interval=0)]

    assert asyncio.run(collect()) == ["data: Finished: out.pdf\n\n"]


def test_log_tail_survives_vanished_and_truncated_file(tmp_path: Path):
    path = tmp_path / "job.debug.txt"
    path.write_text("first\nsecond\n")
    tail = LogTail(path)
    assert tail.poll() == ["first", "second"]

    path.unlink()
    assert tail.poll() == []

    path.write_text("new\n")
    assert tail.poll() == ["new"]


def test_tail_events_one_frame_per_appended_line(tmp_path: Path):
    path = tmp_path / "job.debug.txt"
    path.write_text("")
    writes = ["step1\n", "step2\n"]
    calls = 0

    async def is_disconnected() -> bool:
        nonlocal calls
        if calls < len(writes):
            with path.open("a") as f:
                f.write(writes[calls])
        calls += 1
        return calls > len(writes) + 1

    async def collect() -> list[str]:
        return [frame async for frame in tail_events(path, is_disconnected, poll_interval=0)]

    assert asyncio.run(collect()) == ["data: step1\n\n", "data: step2\n\n"]


def test_tail_events_stops_on_disconnect(tmp_path: Path):
    path = tmp_path / "job.debug.txt"
    path.write_text("already there\n")

    async def is_disconnected() -> bool:
        return True

    async def collect() -> list[str]:
        return [frame async for frame in tail_events(path, is_disconnected, poll_interval=0)]

    assert asyncio.run(collect()) == []
