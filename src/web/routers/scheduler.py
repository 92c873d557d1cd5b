"""Scheduler admin router: status, start and stop of the report poller."""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from src.core.config import settings
from src.core.schemas import StandardResponse
from src.reporting.scheduler import report_scheduler
from src.web.dependencies import require_admin
from src.web.responses import http_error

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/scheduler",
    tags=["Scheduler"],
    dependencies=[Depends(require_admin)],
)


class StartRequest(BaseModel):
    interval_minutes: int = Field(settings.scheduler_interval_minutes, ge=1, le=1440)


@router.get("/status", response_model=StandardResponse[dict], summary="Scheduler Status")
async def get_status():
    try:
        statistics = await report_scheduler.get_report_counts()
        return StandardResponse(data={"scheduler": report_scheduler.get_status(), "statistics": statistics})
    except Exception as e:
        raise http_error(e, "Failed to get scheduler status")


@router.post("/start", response_model=StandardResponse[dict], summary="Start Scheduler")
async def start(request: StartRequest = StartRequest()):
    report_scheduler.start(request.interval_minutes)
    return StandardResponse(data=report_scheduler.get_status(), message="Scheduler started successfully")


@router.post("/stop", response_model=StandardResponse[dict], summary="Stop Scheduler")
async def stop():
    report_scheduler.stop()
    return StandardResponse(data=report_scheduler.get_status(), message="Scheduler stopped successfully")
