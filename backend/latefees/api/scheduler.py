"""
Scheduler API - cron and manual pipeline runs, plus run history.

GET /run is the cron trigger and uses the scheduler settings; POST /run is a
manual run with an explicit mode. Both require the cron bearer secret.
History is kept in memory for the life of the process.
"""
import logging
import uuid
from collections import deque
from typing import Deque, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from latefees.api.deps import ClientFactory, get_client_factory, require_cron_secret
from latefees.config import EnvMode, Settings, get_settings
from latefees.models import PipelineResult, SchedulerRun
from latefees.services.pipeline import run_pipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scheduler", dependencies=[Depends(require_cron_secret)])

MAX_HISTORY = 50


class RunHistory:
    """Most recent runs first, capped at MAX_HISTORY."""

    def __init__(self, limit: int = MAX_HISTORY):
        self._runs: Deque[SchedulerRun] = deque(maxlen=limit)

    def add(self, result: PipelineResult, trigger: str) -> SchedulerRun:
        run = SchedulerRun(id=str(uuid.uuid4()), trigger=trigger, **result.model_dump())
        self._runs.appendleft(run)
        return run

    def list(self) -> List[SchedulerRun]:
        return list(self._runs)

    def clear(self) -> None:
        self._runs.clear()


run_history = RunHistory()


class ManualRunRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mode: Optional[str] = None
    auto_submit: bool = Field(False, alias="autoSubmit")


async def _run(
    mode: EnvMode,
    auto_submit: bool,
    trigger: str,
    clients: ClientFactory,
    settings: Settings,
) -> SchedulerRun:
    logger.info(f"[SCHEDULER] {trigger} run: mode={mode.value}, auto_submit={auto_submit}")
    result = await run_pipeline(
        mode,
        auto_submit,
        reporting=clients.reporting(mode),
        transactional=clients.transactional(mode),
        settings=settings,
    )
    logger.info(
        f"[SCHEDULER] {trigger} run complete: status={result.status.value}, "
        f"submitted={result.submitted_rows}, amount=${result.total_amount:,.2f}"
    )
    return run_history.add(result, trigger)


@router.get("/run")
async def cron_run(
    clients: ClientFactory = Depends(get_client_factory),
    settings: Settings = Depends(get_settings),
):
    """GET: Cron trigger. Mode and auto-submit come from settings."""
    if not settings.scheduler_enabled:
        logger.info("[SCHEDULER] Cron run skipped: scheduler disabled")
        return {"status": "skipped", "message": "Scheduler is disabled via SCHEDULER_ENABLED"}

    run = await _run(settings.scheduler_env_mode, settings.scheduler_auto_submit, "cron", clients, settings)
    return run.model_dump(by_alias=True, mode="json")


@router.post("/run")
async def manual_run(
    request: Optional[ManualRunRequest] = None,
    clients: ClientFactory = Depends(get_client_factory),
    settings: Settings = Depends(get_settings),
):
    """POST: Manual run. Anything other than mode "test" runs live; autoSubmit defaults to false."""
    request = request or ManualRunRequest()
    mode = EnvMode.TEST if request.mode == "test" else EnvMode.LIVE
    run = await _run(mode, request.auto_submit, "manual", clients, settings)
    return run.model_dump(by_alias=True, mode="json")


@router.get("/history")
async def get_history():
    """GET: Recorded runs, newest first."""
    runs = run_history.list()
    return {"runs": [r.model_dump(by_alias=True, mode="json") for r in runs], "count": len(runs)}


@router.delete("/history")
async def clear_history():
    """DELETE: Forget all recorded runs."""
    run_history.clear()
    return {"status": "cleared"}
