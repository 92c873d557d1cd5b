"""Reports router: report templates, on-demand generation and artifact download."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field
from starlette.background import BackgroundTask

from src.core.models import ReportFormat
from src.core.schemas import PaginatedResponse, StandardResponse
from src.reporting.errors import AccessDenied
from src.reporting.scheduler import cleanup_file
from src.reporting.service import report_service
from src.reporting.templates import ReportTemplateSpec, validate_template
from src.reporting.workflow import report_engine
from src.web.dependencies import get_current_user_id
from src.web.responses import http_error, paginated
from src.web.serializers import serialize, serialize_list

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/report-templates",
    tags=["Reporting"]
)

download_router = APIRouter(
    prefix="/reports",
    tags=["Reporting"]
)

EXTENSIONS = {
    ReportFormat.PDF: "pdf",
    ReportFormat.EXCEL: "xlsx",
    ReportFormat.CSV: "csv",
    ReportFormat.JSON: "json",
}


# --- Schemas ---

class GenerateRequest(BaseModel):
    format: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)


# --- Templates ---

@router.get("", response_model=PaginatedResponse[dict], summary="List Report Templates")
async def list_templates(
    type: Optional[str] = None,
    category: Optional[str] = None,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: int = Depends(get_current_user_id),
):
    """Templates owned by the caller plus public and system templates."""
    try:
        result = await report_service.list_templates(user_id, type=type, category=category, limit=limit, offset=offset)
        return paginated(serialize_list(result["templates"]), result["total"], limit, offset)
    except Exception as e:
        raise http_error(e, "Failed to fetch report templates")


@router.post("", response_model=StandardResponse[dict], status_code=status.HTTP_201_CREATED, summary="Create Report Template")
async def create_template(spec: ReportTemplateSpec, user_id: int = Depends(get_current_user_id)):
    try:
        template = await report_service.create_template(spec, created_by_id=user_id)
        return StandardResponse(data=serialize(template), message="Report template created successfully")
    except Exception as e:
        raise http_error(e, "Failed to create report template")


@router.post("/validate", response_model=StandardResponse[dict], summary="Validate Report Template")
async def validate(spec: ReportTemplateSpec):
    """Check a template without saving it."""
    errors = validate_template(spec)
    return StandardResponse(data={"valid": not errors, "errors": errors})


@router.get("/{template_id}", response_model=StandardResponse[dict], summary="Get Report Template")
async def get_template(template_id: int, user_id: int = Depends(get_current_user_id)):
    try:
        template = await report_service.get_template(template_id, user_id=user_id)
        return StandardResponse(data=serialize(template))
    except Exception as e:
        raise http_error(e, "Failed to fetch report template")


@router.put("/{template_id}", response_model=StandardResponse[dict], summary="Update Report Template")
async def update_template(template_id: int, spec: ReportTemplateSpec, user_id: int = Depends(get_current_user_id)):
    try:
        template = await report_service.update_template(template_id, spec, user_id)
        return StandardResponse(data=serialize(template), message="Report template updated successfully")
    except Exception as e:
        raise http_error(e, "Failed to update report template")


@router.delete("/{template_id}", response_model=StandardResponse[dict], summary="Delete Report Template")
async def delete_template(template_id: int, user_id: int = Depends(get_current_user_id)):
    try:
        await report_service.delete_template(template_id, user_id)
        return StandardResponse(data={"id": template_id}, message="Report template deleted successfully")
    except Exception as e:
        raise http_error(e, "Failed to delete report template")


@router.post("/{template_id}/generate", summary="Generate Report")
async def generate(
    template_id: int,
    request: GenerateRequest,
    user_id: int = Depends(get_current_user_id),
):
    """Generate a report and return the file; the file is removed once sent."""
    try:
        template = await report_service.get_template(template_id, user_id=user_id)
        artifact = await report_engine.generate(template_id, request.parameters, request.format)
    except Exception as e:
        raise http_error(e, "Failed to generate report")

    return FileResponse(
        artifact.path,
        media_type=artifact.media_type,
        filename=f"{template.name}.{EXTENSIONS[artifact.format]}",
        background=BackgroundTask(cleanup_file, artifact.path),
    )


# --- Downloads ---

@download_router.get("/download/{report_id}", summary="Download Scheduled Report")
async def download(report_id: int, user_id: int = Depends(get_current_user_id)):
    """Latest artifact of a scheduled report, while it has not been cleaned up."""
    try:
        report = await report_service.get_scheduled_report(report_id)
        recipient_ids = {r.get("user_id") for r in report.recipients or []}
        if user_id != report.created_by_id and user_id not in recipient_ids:
            raise AccessDenied("Access denied to this report")
    except Exception as e:
        raise http_error(e, "Failed to download report")

    path = Path(report.last_artifact_path) if report.last_artifact_path else None
    if path is None or not path.is_file():
        raise HTTPException(status_code=404, detail="Report file is no longer available")

    return FileResponse(path, filename=path.name)
