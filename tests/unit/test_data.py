"""Unit tests for data loading helpers and settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.data import (
    clear_dashboard_cache,
    format_amount,
    load_dashboard_data,
    progress_caption,
    source_signature,
)
from core.ingestion import IngestionProgress
from core.settings import DashboardSettings
from tests.sample_data import SAMPLE_CSV


@pytest.mark.parametrize(
    ("value", "expected"),
    [(1234567.8, "1,234,568"), (0, "0"), (None, "N/A"), ("abc", "N/A"), (float("nan"), "N/A")],
)
def test_format_amount(value, expected) -> None:
    """Amounts should print with thousands separators and no decimals."""
    assert format_amount(value) == expected


def test_progress_caption_with_and_without_total() -> None:
    """Progress text should only mention size and percent when the total is known."""
    assert progress_caption(IngestionProgress(bytes_read=10, total_bytes=0, rows_read=5000)) == "Rows processed: 5,000"
    assert (
        progress_caption(IngestionProgress(bytes_read=3_000_000, total_bytes=6_000_000, rows_read=12))
        == "Rows processed: 12 · 3MB (50%)"
    )


def test_source_signature_tracks_file_changes(write_csv) -> None:
    """File signatures should include size so a rewritten file busts the cache."""
    path = write_csv(SAMPLE_CSV)
    before = source_signature(str(path))

    path.write_text(SAMPLE_CSV + "2020,3,Acme,1,1,1\n", encoding="utf-8")

    assert source_signature(str(path)) != before
    assert source_signature("https://example.test/a.csv") == ("https://example.test/a.csv",)


def test_load_dashboard_data_reads_source(write_csv) -> None:
    """Dashboard data should expose the snapshot and its month and supplier lists."""
    path = write_csv(SAMPLE_CSV, file_name="dashboard.csv")

    data = load_dashboard_data(str(path))

    assert data["months"] == ["2020-01", "2020-02"]
    assert data["suppliers"] == ["Acme", "Beta"]
    assert data["snapshot"].rows_read == 3


def test_load_dashboard_data_caches_until_file_changes(write_csv) -> None:
    """Repeat loads should hit the cache silently and a rewritten file should be read again."""
    clear_dashboard_cache()
    path = write_csv(SAMPLE_CSV, file_name="cached.csv")
    reports = []

    first = load_dashboard_data(str(path), on_progress=reports.append)
    reports_after_first = len(reports)
    second = load_dashboard_data(str(path), on_progress=reports.append)

    assert reports_after_first > 0
    assert len(reports) == reports_after_first
    assert second is first

    path.write_text(SAMPLE_CSV + "2020,3,Acme,1,1,1\n", encoding="utf-8")
    third = load_dashboard_data(str(path), on_progress=reports.append)

    assert third["snapshot"].rows_read == 4
    assert len(reports) > reports_after_first


def test_settings_read_prefixed_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Settings should come from DASHBOARD_ environment variables."""
    monkeypatch.setenv("DASHBOARD_CSV_SOURCE", str(tmp_path / "x.csv"))
    monkeypatch.setenv("DASHBOARD_PROGRESS_EVERY_ROWS", "0")
    monkeypatch.setenv("DASHBOARD_LOG_LEVEL", "debug")

    settings = DashboardSettings()

    assert settings.CSV_SOURCE == str(tmp_path / "x.csv")
    assert settings.PROGRESS_EVERY_ROWS == 1
    assert settings.LOG_LEVEL == "DEBUG"


def test_settings_reject_unknown_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    """An unknown log level should fail validation."""
    monkeypatch.setenv("DASHBOARD_LOG_LEVEL", "chatty")

    with pytest.raises(ValueError):
        DashboardSettings()


def test_settings_reject_unknown_encoding(monkeypatch: pytest.MonkeyPatch) -> None:
    """An encoding Python has no codec for should fail validation up front."""
    monkeypatch.setenv("DASHBOARD_ENCODING", "no-such-codec")

    with pytest.raises(ValueError):
        DashboardSettings()
