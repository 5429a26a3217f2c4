from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from autoocr.config import Settings
from autoocr.webapi import create_app


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        input_dir=tmp_path / "input",
        output_dir=tmp_path / "output",
        max_upload_mb=1,
        stream_poll_sec=0.01,
    )


@pytest.fixture
def client(settings: Settings) -> TestClient:
    return TestClient(create_app(settings))


class FakeConverter:
    def __init__(self, markdown: str = "# converted\n", error: Exception | None = None) -> None:
        self.markdown = markdown
        self.error = error
        self.calls: list[str] = []

    def convert_to_markdown(self, input_uri: str) -> str:
        self.calls.append(input_uri)
        if self.error is not None:
            raise self.error
        return self.markdown


class RecordingTarget:
    def __init__(self) -> None:
        self.count = 0

    def trigger(self) -> None:
        self.count += 1
