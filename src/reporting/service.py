"""Public service interface for the Reporting module.

Other modules should import from here, not from reporting.database directly.
"""
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select, or_, func
from sqlalchemy.ext.asyncio import async_sessionmaker

from src.core.database import async_session_factory
from src.core.models import ReportFormat
from src.core.utils import utcnow, to_naive_utc
from src.reporting.database import DeliveryMethod, ReportTemplateModel, ScheduledReportModel
from src.reporting.errors import (
    AccessDenied, ScheduledReportNotFound, TemplateNotFound, ValidationFailed
)
from src.reporting.schedule import Frequency, Schedule, compute_next_run
from src.reporting.templates import DatasetType, ReportTemplateSpec, validate_template

logger = logging.getLogger(__name__)


# --- Request models ---

class Recipient(BaseModel):
    user_id: Optional[int] = None
    email: Optional[str] = None
    name: Optional[str] = None
    delivery_method: DeliveryMethod = DeliveryMethod.EMAIL

    @field_validator('delivery_method', mode='before')
    @classmethod
    def upper_method(cls, v):
        return v.upper() if isinstance(v, str) else v


class ScheduledReportCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    template_id: int
    schedule: Schedule
    recipients: List[Recipient] = Field(..., min_length=1)
    parameters: Dict[str, Any] = Field(default_factory=dict)
    format: ReportFormat = ReportFormat.PDF
    is_active: bool = True
    retention_days: int = Field(30, ge=1)


class ScheduledReportUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    template_id: Optional[int] = None
    schedule: Optional[Schedule] = None
    recipients: Optional[List[Recipient]] = Field(None, min_length=1)
    parameters: Optional[Dict[str, Any]] = None
    format: Optional[ReportFormat] = None
    is_active: Optional[bool] = None
    retention_days: Optional[int] = Field(None, ge=1)


SCHEDULE_OPTIONS = {
    "frequencies": [
        {"value": Frequency.DAILY.value, "label": "Daily", "description": "Run every day at specified time"},
        {"value": Frequency.WEEKLY.value, "label": "Weekly", "description": "Run weekly on specified day and time"},
        {"value": Frequency.MONTHLY.value, "label": "Monthly", "description": "Run monthly on specified date and time"},
        {"value": Frequency.QUARTERLY.value, "label": "Quarterly", "description": "Run every quarter"},
        {"value": Frequency.YEARLY.value, "label": "Yearly", "description": "Run annually"},
        {"value": Frequency.CUSTOM.value, "label": "Custom", "description": "Use custom cron expression"},
    ],
    "days_of_week": [
        {"value": i, "label": label}
        for i, label in enumerate(
            ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
        )
    ],
    "delivery_methods": [
        {"value": DeliveryMethod.EMAIL.value, "label": "Email Attachment",
         "description": "Send report as email attachment"},
        {"value": DeliveryMethod.DOWNLOAD_LINK.value, "label": "Download Link",
         "description": "Send download link via notification"},
        {"value": DeliveryMethod.BOTH.value, "label": "Both",
         "description": "Send both email attachment and download link"},
    ],
    "formats": [
        {"value": ReportFormat.PDF.value, "label": "PDF", "description": "Portable Document Format"},
        {"value": ReportFormat.EXCEL.value, "label": "Excel", "description": "Microsoft Excel spreadsheet"},
        {"value": ReportFormat.CSV.value, "label": "CSV", "description": "Comma-separated values"},
        {"value": ReportFormat.JSON.value, "label": "JSON", "description": "JavaScript Object Notation"},
    ],
}


def next_run_for(schedule: Schedule):
    """Next run as the naive UTC value stored on the row."""
    return to_naive_utc(compute_next_run(schedule, utcnow()))


class ReportService:
    """Template and scheduled report management."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or async_session_factory

    # ──── Templates ────

    async def list_templates(
        self,
        user_id: int,
        type: Optional[str] = None,
        category: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """Templates the user owns, plus public and system templates, most used first."""
        async with self.session_factory() as session:
            stmt = select(ReportTemplateModel).where(or_(
                ReportTemplateModel.created_by_id == user_id,
                ReportTemplateModel.is_public.is_(True),
                ReportTemplateModel.is_system.is_(True),
            ))
            if type:
                stmt = stmt.where(ReportTemplateModel.type == DatasetType.normalize(type))
            if category:
                stmt = stmt.where(ReportTemplateModel.category == category.upper())

            total = await session.scalar(select(func.count()).select_from(stmt.subquery()))
            stmt = stmt.order_by(
                ReportTemplateModel.usage_count.desc(),
                ReportTemplateModel.created_at.desc(),
                ReportTemplateModel.id.desc(),
            ).limit(limit).offset(offset)
            result = await session.execute(stmt)
            return {"templates": list(result.scalars().all()), "total": total or 0}

    async def get_template(self, template_id: int, user_id: Optional[int] = None) -> ReportTemplateModel:
        async with self.session_factory() as session:
            template = await session.get(ReportTemplateModel, template_id)
        if template is None:
            raise TemplateNotFound(template_id)
        if user_id is not None and not self._can_view(template, user_id):
            raise AccessDenied("Access denied to this report template")
        return template

    @staticmethod
    def _can_view(template: ReportTemplateModel, user_id: int) -> bool:
        return bool(template.is_public or template.is_system or template.created_by_id == user_id)

    async def create_template(
        self,
        spec: ReportTemplateSpec,
        created_by_id: Optional[int],
        is_system: bool = False,
    ) -> ReportTemplateModel:
        """
        Raises:
            ValidationFailed: the template has structural errors.
        """
        errors = validate_template(spec)
        if errors:
            raise ValidationFailed(errors)

        async with self.session_factory() as session:
            template = ReportTemplateModel(created_by_id=created_by_id, is_system=is_system, usage_count=0)
            template.apply_spec(spec)
            session.add(template)
            await session.commit()
            await session.refresh(template)

        logger.info(f"Created report template {template.id} '{template.name}'")
        return template

    async def update_template(self, template_id: int, spec: ReportTemplateSpec, user_id: int) -> ReportTemplateModel:
        """Only the creator may edit a template; system templates are read-only."""
        errors = validate_template(spec)
        if errors:
            raise ValidationFailed(errors)

        async with self.session_factory() as session:
            template = await session.get(ReportTemplateModel, template_id)
            if template is None or template.created_by_id != user_id:
                raise TemplateNotFound(template_id)
            if template.is_system:
                raise AccessDenied("System templates cannot be modified")
            template.apply_spec(spec)
            await session.commit()
            await session.refresh(template)

        logger.info(f"Updated report template {template_id}")
        return template

    async def delete_template(self, template_id: int, user_id: int):
        async with self.session_factory() as session:
            template = await session.get(ReportTemplateModel, template_id)
            if template is None or template.created_by_id != user_id or template.is_system:
                raise TemplateNotFound(template_id)

            in_use = await session.scalar(
                select(func.count(ScheduledReportModel.id)).where(ScheduledReportModel.template_id == template_id)
            )
            if in_use:
                raise ValidationFailed([f"Template is used by {in_use} scheduled report(s)"])

            await session.delete(template)
            await session.commit()

        logger.info(f"Deleted report template {template_id}")

    # ──── Scheduled reports ────

    async def list_scheduled_reports(
        self,
        user_id: int,
        is_active: Optional[bool] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Dict[str, Any]:
        async with self.session_factory() as session:
            stmt = select(ScheduledReportModel).where(ScheduledReportModel.created_by_id == user_id)
            if is_active is not None:
                stmt = stmt.where(ScheduledReportModel.is_active.is_(is_active))

            total = await session.scalar(select(func.count()).select_from(stmt.subquery()))
            stmt = stmt.order_by(ScheduledReportModel.created_at.desc(), ScheduledReportModel.id.desc())
            result = await session.execute(stmt.limit(limit).offset(offset))
            return {"reports": list(result.scalars().all()), "total": total or 0}

    async def get_scheduled_report(self, report_id: int, user_id: Optional[int] = None) -> ScheduledReportModel:
        async with self.session_factory() as session:
            report = await session.get(ScheduledReportModel, report_id)
        if report is None or (user_id is not None and report.created_by_id != user_id):
            raise ScheduledReportNotFound(report_id)
        return report

    async def _require_template(self, session, template_id: int):
        if await session.get(ReportTemplateModel, template_id) is None:
            raise TemplateNotFound(template_id)

    async def create_scheduled_report(self, data: ScheduledReportCreate, created_by_id: int) -> ScheduledReportModel:
        """Create a scheduled report; next_run is computed from the schedule."""
        async with self.session_factory() as session:
            await self._require_template(session, data.template_id)

            report = ScheduledReportModel(
                name=data.name,
                description=data.description,
                template_id=data.template_id,
                schedule=data.schedule.model_dump(mode="json"),
                recipients=[r.model_dump(mode="json") for r in data.recipients],
                parameters=data.parameters,
                format=data.format.value,
                is_active=data.is_active,
                retention_days=data.retention_days,
                next_run=next_run_for(data.schedule),
                run_count=0,
                failure_count=0,
                last_delivery_failures=0,
                created_by_id=created_by_id,
            )
            session.add(report)
            await session.commit()
            await session.refresh(report)

        logger.info(f"Created scheduled report {report.id} '{report.name}', next run {report.next_run}")
        return report

    async def update_scheduled_report(
        self,
        report_id: int,
        data: ScheduledReportUpdate,
        user_id: int,
    ) -> ScheduledReportModel:
        """Apply the given fields; a changed schedule or reactivation recomputes next_run."""
        changes = data.model_dump(exclude_unset=True)
        async with self.session_factory() as session:
            report = await session.get(ScheduledReportModel, report_id)
            if report is None or report.created_by_id != user_id:
                raise ScheduledReportNotFound(report_id)
            reactivated = changes.get("is_active") is True and not report.is_active

            if data.template_id is not None:
                await self._require_template(session, data.template_id)
                report.template_id = data.template_id
            for key in ("name", "description", "parameters", "is_active", "retention_days"):
                if key in changes:
                    setattr(report, key, changes[key])
            if data.format is not None:
                report.format = data.format.value
            if data.recipients is not None:
                report.recipients = [r.model_dump(mode="json") for r in data.recipients]
            if data.schedule is not None:
                report.schedule = data.schedule.model_dump(mode="json")
                report.next_run = next_run_for(data.schedule)
            elif reactivated:
                report.next_run = next_run_for(report.schedule_spec())

            await session.commit()
            await session.refresh(report)

        logger.info(f"Updated scheduled report {report_id}")
        return report

    async def delete_scheduled_report(self, report_id: int, user_id: int):
        async with self.session_factory() as session:
            report = await session.get(ScheduledReportModel, report_id)
            if report is None or report.created_by_id != user_id:
                raise ScheduledReportNotFound(report_id)
            await session.delete(report)
            await session.commit()
        logger.info(f"Deleted scheduled report {report_id}")

    async def toggle_scheduled_report(self, report_id: int, user_id: int) -> ScheduledReportModel:
        """Flip is_active; reactivation recomputes next_run from now."""
        async with self.session_factory() as session:
            report = await session.get(ScheduledReportModel, report_id)
            if report is None or report.created_by_id != user_id:
                raise ScheduledReportNotFound(report_id)

            report.is_active = not report.is_active
            if report.is_active:
                report.next_run = next_run_for(report.schedule_spec())
            await session.commit()
            await session.refresh(report)

        logger.info(f"Scheduled report {report_id} {'activated' if report.is_active else 'deactivated'}")
        return report

    @staticmethod
    def get_schedule_options() -> Dict[str, Any]:
        return SCHEDULE_OPTIONS


# Singleton
report_service = ReportService()
