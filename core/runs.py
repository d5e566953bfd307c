from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from core.aggregation import ResultSnapshot
from core.errors import DashboardError
from core.ingestion import CancelToken, IngestionCoordinator, IngestionProgress

logger = logging.getLogger(__name__)

IDLE = "idle"
LOADING = "loading"
READY = "ready"
ERROR = "error"


@dataclass(frozen=True)
class LoadState:
    status: str = IDLE
    progress: IngestionProgress = field(default_factory=IngestionProgress)
    snapshot: Optional[ResultSnapshot] = None
    error: Optional[DashboardError] = None


class RunSlot:
    """Holds at most one in-flight ingestion run.

    ``start`` cancels whatever is running and swaps in the new run in one
    step. Progress, results and failures of a superseded run are dropped, so
    ``state`` only ever reflects the newest run.
    """

    def __init__(self, coordinator: Optional[IngestionCoordinator] = None):
        self.coordinator = coordinator or IngestionCoordinator()
        self.state = LoadState()
        self._token: Optional[CancelToken] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, source: Any) -> asyncio.Task:
        if self._stop_active():
            logger.info("Replacing in-flight ingestion run")
        token = CancelToken()
        self._token = token
        self.state = LoadState(status=LOADING)
        self._task = asyncio.get_running_loop().create_task(self._run(source, token))
        return self._task

    def cancel(self) -> None:
        if self._stop_active():
            self.state = LoadState()

    async def wait(self) -> LoadState:
        task = self._task
        if task is not None:
            await asyncio.wait({task})
        return self.state

    def _stop_active(self) -> bool:
        was_active = self.active
        if self._token is not None:
            self._token.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._token = None
        self._task = None
        return was_active

    def _is_current(self, token: CancelToken) -> bool:
        return self._token is token and not token.cancelled

    async def _run(self, source: Any, token: CancelToken) -> None:
        def on_progress(progress: IngestionProgress) -> None:
            if self._is_current(token):
                self.state = replace(self.state, progress=progress)

        try:
            snapshot = await self.coordinator.run(source, on_progress=on_progress, cancel_token=token)
        except DashboardError as exc:
            if self._is_current(token):
                self.state = replace(self.state, status=ERROR, error=exc)
            return
        except Exception as exc:
            logger.exception("Ingestion run crashed")
            if self._is_current(token):
                error = DashboardError(f"{type(exc).__name__}: {exc}")
                self.state = replace(self.state, status=ERROR, error=error)
            return
        if snapshot is not None and self._is_current(token):
            self.state = LoadState(status=READY, progress=self.state.progress, snapshot=snapshot)
