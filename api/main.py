from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import DashboardFiltersModel, MetaListResponse, ProgressModel, StatusResponse
from core.aggregation import ResultSnapshot
from core.data import build_coordinator, get_source
from core.errors import DashboardError, SchemaError, SourceError, StreamingUnsupportedError
from core.filters import DashboardFilters, normalize_filters
from core.metrics_overview import compute_overview
from core.runs import ERROR, READY, LoadState, RunSlot
from core.selection import filter_suppliers, series_frame
from core.settings import configure_logging, get_settings

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    SourceError: 502,
    StreamingUnsupportedError: 501,
    SchemaError: 422,
}


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


def _status_payload(state: LoadState) -> StatusResponse:
    progress = ProgressModel(**asdict(state.progress), percent=state.progress.percent)
    if state.error is None:
        return StatusResponse(status=state.status, progress=progress)
    return StatusResponse(
        status=state.status,
        progress=progress,
        error=str(state.error),
        type=type(state.error).__name__,
        message=state.error.user_message,
    )


def _error_response(exc: DashboardError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(type(exc), 500)
    return JSONResponse(
        status_code=status_code,
        content={"error": str(exc), "type": type(exc).__name__, "message": exc.user_message},
    )


def create_app(source: Optional[str] = None) -> FastAPI:
    settings = get_settings()
    slot = RunSlot(build_coordinator())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.LOG_LEVEL)
        slot.start(source or get_source())
        yield
        slot.cancel()

    app = FastAPI(title="Warehouse & Retail Sales Dashboard API", version="0.1.0", lifespan=lifespan)
    app.state.run_slot = slot

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _ready_snapshot() -> ResultSnapshot | JSONResponse:
        state = slot.state
        if state.status == READY and state.snapshot is not None:
            return state.snapshot
        if state.status == ERROR and state.error is not None:
            return _error_response(state.error)
        return _json(_status_payload(state).model_dump(), status_code=503)

    def _filters(model: DashboardFiltersModel, snapshot: ResultSnapshot) -> DashboardFilters:
        return normalize_filters(model.model_dump(), available_suppliers=snapshot.suppliers)

    @app.get("/status")
    def status():
        return _json(_status_payload(slot.state).model_dump())

    @app.post("/reload")
    async def reload():
        slot.start(source or get_source())
        return _json(_status_payload(slot.state).model_dump(), status_code=202)

    @app.get("/meta/suppliers")
    def meta_suppliers(q: str = Query(default="")):
        snapshot = _ready_snapshot()
        if isinstance(snapshot, JSONResponse):
            return snapshot
        return _json(MetaListResponse(values=filter_suppliers(snapshot.suppliers, q)).model_dump())

    @app.get("/meta/months")
    def meta_months():
        snapshot = _ready_snapshot()
        if isinstance(snapshot, JSONResponse):
            return snapshot
        return _json(MetaListResponse(values=list(snapshot.month_keys)).model_dump())

    @app.post("/overview")
    def overview(filters: DashboardFiltersModel):
        snapshot = _ready_snapshot()
        if isinstance(snapshot, JSONResponse):
            return snapshot
        try:
            return _json(compute_overview(_filters(filters, snapshot), snapshot))
        except Exception as exc:
            logger.exception("overview failed")
            return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})

    @app.post("/export/overview")
    def export_overview(filters: DashboardFiltersModel):
        snapshot = _ready_snapshot()
        if isinstance(snapshot, JSONResponse):
            return snapshot
        f = _filters(filters, snapshot)
        csv_bytes = series_frame(snapshot, f.supplier).to_csv(index=False).encode("utf-8")
        return Response(
            content=csv_bytes,
            media_type="text/csv",
            headers={"Content-Disposition": "attachment; filename=overview.csv"},
        )

    return app


app = create_app()
