"""Scheduled reports router: CRUD, activation toggle and manual runs."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from src.core.schemas import PaginatedResponse, StandardResponse
from src.reporting.scheduler import report_scheduler
from src.reporting.service import (
    ScheduledReportCreate, ScheduledReportUpdate, report_service
)
from src.web.dependencies import get_current_user_id
from src.web.responses import http_error, paginated
from src.web.serializers import serialize, serialize_list

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/scheduled-reports",
    tags=["Scheduled Reports"]
)

# Lease internals stay server-side
HIDDEN_FIELDS = ["claim_token", "claimed_at"]


@router.get("/options", response_model=StandardResponse[dict], summary="Schedule Options")
async def get_schedule_options():
    """Frequencies, weekdays, delivery methods and formats for building a schedule."""
    return StandardResponse(data=report_service.get_schedule_options())


@router.get("", response_model=PaginatedResponse[dict], summary="List Scheduled Reports")
async def list_scheduled_reports(
    is_active: Optional[bool] = None,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: int = Depends(get_current_user_id),
):
    try:
        result = await report_service.list_scheduled_reports(user_id, is_active=is_active, limit=limit, offset=offset)
        return paginated(serialize_list(result["reports"], exclude=HIDDEN_FIELDS), result["total"], limit, offset)
    except Exception as e:
        raise http_error(e, "Failed to fetch scheduled reports")


@router.post("", response_model=StandardResponse[dict], status_code=status.HTTP_201_CREATED, summary="Create Scheduled Report")
async def create_scheduled_report(request: ScheduledReportCreate, user_id: int = Depends(get_current_user_id)):
    try:
        report = await report_service.create_scheduled_report(request, created_by_id=user_id)
        return StandardResponse(
            data=serialize(report, exclude=HIDDEN_FIELDS),
            message="Scheduled report created successfully",
        )
    except Exception as e:
        raise http_error(e, "Failed to create scheduled report")


@router.get("/{report_id}", response_model=StandardResponse[dict], summary="Get Scheduled Report")
async def get_scheduled_report(report_id: int, user_id: int = Depends(get_current_user_id)):
    try:
        report = await report_service.get_scheduled_report(report_id, user_id=user_id)
        return StandardResponse(data=serialize(report, exclude=HIDDEN_FIELDS))
    except Exception as e:
        raise http_error(e, "Failed to fetch scheduled report")


@router.put("/{report_id}", response_model=StandardResponse[dict], summary="Update Scheduled Report")
async def update_scheduled_report(
    report_id: int,
    request: ScheduledReportUpdate,
    user_id: int = Depends(get_current_user_id),
):
    try:
        report = await report_service.update_scheduled_report(report_id, request, user_id)
        return StandardResponse(
            data=serialize(report, exclude=HIDDEN_FIELDS),
            message="Scheduled report updated successfully",
        )
    except Exception as e:
        raise http_error(e, "Failed to update scheduled report")


@router.delete("/{report_id}", response_model=StandardResponse[dict], summary="Delete Scheduled Report")
async def delete_scheduled_report(report_id: int, user_id: int = Depends(get_current_user_id)):
    try:
        await report_service.delete_scheduled_report(report_id, user_id)
        return StandardResponse(data={"id": report_id}, message="Scheduled report deleted successfully")
    except Exception as e:
        raise http_error(e, "Failed to delete scheduled report")


@router.post("/{report_id}/toggle", response_model=StandardResponse[dict], summary="Toggle Scheduled Report")
async def toggle_scheduled_report(report_id: int, user_id: int = Depends(get_current_user_id)):
    try:
        report = await report_service.toggle_scheduled_report(report_id, user_id)
        state = "activated" if report.is_active else "deactivated"
        return StandardResponse(
            data=serialize(report, fields=["id", "is_active", "next_run"]),
            message=f"Scheduled report {state} successfully",
        )
    except Exception as e:
        raise http_error(e, "Failed to toggle scheduled report")


@router.post("/{report_id}/run", response_model=StandardResponse[dict], summary="Run Scheduled Report Now")
async def run_scheduled_report_now(report_id: int, user_id: int = Depends(get_current_user_id)):
    """Execute immediately and wait for the outcome."""
    try:
        outcome = await report_scheduler.run_now(report_id, created_by_id=user_id)
    except Exception as e:
        raise http_error(e, "Failed to run scheduled report")

    return StandardResponse(
        status="success" if outcome.success else "error",
        data={
            "success": outcome.success,
            "error": outcome.error,
            "filename": outcome.artifact.filename if outcome.artifact else None,
            "deliveries": [
                {"email": d.email, "method": d.method, "success": d.success, "error": d.error}
                for d in outcome.deliveries
            ],
        },
        message="Scheduled report executed successfully" if outcome.success else "Scheduled report failed",
    )
