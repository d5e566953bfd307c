"""Shared fixtures for the dashboard test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from tests.sample_data import SAMPLE_CSV


@pytest.fixture()
def sample_csv() -> str:
    return SAMPLE_CSV


@pytest.fixture()
def write_csv(tmp_path: Path) -> Callable[..., Path]:
    """Write CSV text (or raw bytes) into a temp file and return its path."""

    def _write_csv(content: str | bytes, file_name: str = "sales.csv") -> Path:
        file_path = tmp_path / file_name
        if isinstance(content, bytes):
            file_path.write_bytes(content)
        else:
            file_path.write_text(content, encoding="utf-8", newline="")
        return file_path

    return _write_csv
