"""Integration tests for the FastAPI dashboard service."""

from __future__ import annotations

import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from tests.sample_data import SAMPLE_CSV


def _wait_until_settled(client: TestClient, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        body = client.get("/status").json()
        if body["status"] in {"ready", "error"} or time.monotonic() > deadline:
            return body
        time.sleep(0.01)


@pytest.fixture()
def client(write_csv):
    app = create_app(source=str(write_csv(SAMPLE_CSV)))
    with TestClient(app) as test_client:
        _wait_until_settled(test_client)
        yield test_client


def test_status_reports_final_progress(client: TestClient) -> None:
    """Once loaded, status should be ready with the final row count."""
    body = client.get("/status").json()

    assert body["status"] == "ready"
    assert body["progress"]["rows_read"] == 3
    assert body["progress"]["percent"] == 100
    assert body["error"] is None


def test_meta_endpoints(client: TestClient) -> None:
    """Month and supplier lists should come straight from the snapshot."""
    assert client.get("/meta/months").json() == {"values": ["2020-01", "2020-02"]}
    assert client.get("/meta/suppliers", params={"q": "be"}).json() == {"values": ["Beta"]}


def test_overview_for_supplier(client: TestClient) -> None:
    """Posting filters should return the overview payload for that supplier."""
    response = client.post("/overview", json={"supplier": "Beta", "show_retail_transfers": False})

    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Beta"
    assert [row["retail_sales"] for row in body["rows"]] == [0.0, 7.0]
    assert body["series"] == ["retail_sales", "warehouse_sales"]
    assert body["chart"] is not None


def test_export_overview_csv(client: TestClient) -> None:
    """The export endpoint should return the monthly series as CSV."""
    response = client.post("/export/overview", json={})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.strip().splitlines()
    assert lines[0] == "month_key,retail_sales,retail_transfers,warehouse_sales"
    assert lines[1] == "2020-01,13.0,3.0,5.0"


def test_reload_replaces_run(client: TestClient) -> None:
    """Reload should start a fresh run that ends ready again."""
    response = client.post("/reload")

    assert response.status_code == 202
    assert _wait_until_settled(client)["status"] == "ready"


def test_schema_error_is_reported_distinctly(write_csv) -> None:
    """A bad header should surface as a 422 naming the missing columns."""
    app = create_app(source=str(write_csv("YEAR,MONTH\n2020,1\n", file_name="bad.csv")))
    with TestClient(app) as test_client:
        status = _wait_until_settled(test_client)
        response = test_client.get("/meta/months")

    assert status["status"] == "error"
    assert status["type"] == "SchemaError"
    assert response.status_code == 422
    assert "supplier" in response.json()["error"]


def test_missing_source_is_reported_as_bad_gateway(tmp_path: Path) -> None:
    """An unreadable source should surface as a 502 SourceError."""
    app = create_app(source=str(tmp_path / "missing.csv"))
    with TestClient(app) as test_client:
        _wait_until_settled(test_client)
        response = test_client.post("/overview", json={})

    assert response.status_code == 502
    assert response.json()["type"] == "SourceError"
