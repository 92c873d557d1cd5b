"""Database models for report templates and scheduled reports."""

from datetime import datetime
from enum import Enum as PyEnum
from typing import List, Optional

from sqlalchemy import (
    Integer, String, Boolean, DateTime, ForeignKey, Text, JSON, Index
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from src.core.database import Base
from src.core.models import ReportFormat
from src.reporting.schedule import Schedule
from src.reporting.templates import ReportTemplateSpec, TemplateCategory


class DeliveryMethod(str, PyEnum):
    """How a recipient receives a generated report"""
    EMAIL = "EMAIL"
    DOWNLOAD_LINK = "DOWNLOAD_LINK"
    BOTH = "BOTH"


class ReportTemplateModel(Base):
    """
    Reusable definition of what a report contains.
    Fields, filters, sort keys, layout and styling are stored as JSON documents.
    """
    __tablename__ = "report_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(20), default=TemplateCategory.OPERATIONAL.value)

    fields: Mapped[List[dict]] = mapped_column(JSON, default=list)
    filters: Mapped[List[dict]] = mapped_column(JSON, default=list)
    sort_by: Mapped[List[dict]] = mapped_column(JSON, default=list)
    group_by: Mapped[List[str]] = mapped_column(JSON, default=list)
    format: Mapped[str] = mapped_column(String(10), default=ReportFormat.PDF.value)
    layout: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    styling: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False)
    created_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)

    last_used: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, onupdate=func.now())

    scheduled_reports: Mapped[List["ScheduledReportModel"]] = relationship(
        "ScheduledReportModel",
        back_populates="template"
    )

    __table_args__ = (
        Index('idx_template_type_category', 'type', 'category'),
    )

    def to_spec(self) -> ReportTemplateSpec:
        """Validated, engine-facing view of the stored template."""
        payload = {
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "category": self.category or TemplateCategory.OPERATIONAL.value,
            "fields": self.fields or [],
            "filters": self.filters or [],
            "sort_by": self.sort_by or [],
            "group_by": self.group_by or [],
            "format": self.format or ReportFormat.PDF.value,
            "is_public": bool(self.is_public),
        }
        if self.layout:
            payload["layout"] = self.layout
        if self.styling:
            payload["styling"] = self.styling
        return ReportTemplateSpec.model_validate(payload)

    def apply_spec(self, spec: ReportTemplateSpec):
        """Copy a validated spec onto the row."""
        data = spec.model_dump(mode="json")
        self.name = data["name"]
        self.description = data["description"]
        self.type = data["type"]
        self.category = data["category"]
        self.fields = data["fields"]
        self.filters = data["filters"]
        self.sort_by = data["sort_by"]
        self.group_by = data["group_by"]
        self.format = data["format"]
        self.layout = data["layout"]
        self.styling = data["styling"]
        self.is_public = data["is_public"]

    def __repr__(self):
        return f"<ReportTemplateModel(id={self.id}, name='{self.name}', type='{self.type}')>"


class ScheduledReportModel(Base):
    """
    Binds a template to a recurrence schedule and a recipient list.

    next_run, last_run, run_count, failure_count, last_error and the claim
    columns are only written by the scheduler.
    """
    __tablename__ = "scheduled_reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    template_id: Mapped[int] = mapped_column(ForeignKey("report_templates.id"), nullable=False, index=True)

    # {frequency, cron_expression, day_of_week, day_of_month, time: {hour, minute}, timezone}
    schedule: Mapped[dict] = mapped_column(JSON, nullable=False)
    # [{user_id, email, name, delivery_method}]
    recipients: Mapped[List[dict]] = mapped_column(JSON, nullable=False)
    parameters: Mapped[dict] = mapped_column(JSON, default=dict)
    format: Mapped[str] = mapped_column(String(10), default=ReportFormat.PDF.value)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    next_run: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_run: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    run_count: Mapped[int] = mapped_column(Integer, default=0)
    failure_count: Mapped[int] = mapped_column(Integer, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_delivery_failures: Mapped[int] = mapped_column(Integer, default=0)
    last_artifact_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Lease taken by the poller before execution
    claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    claim_token: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    retention_days: Mapped[int] = mapped_column(Integer, default=30)
    created_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, onupdate=func.now())

    template: Mapped["ReportTemplateModel"] = relationship(
        "ReportTemplateModel",
        back_populates="scheduled_reports"
    )

    __table_args__ = (
        Index('idx_scheduled_next_run_active', 'next_run', 'is_active'),
    )

    def schedule_spec(self) -> Schedule:
        return Schedule.model_validate(self.schedule)

    def __repr__(self):
        return f"<ScheduledReportModel(id={self.id}, name='{self.name}', next_run={self.next_run})>"
