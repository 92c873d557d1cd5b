"""
Reporting Module - Report Templates, Generation and Scheduled Delivery.
"""

from src.reporting.workflow import ReportEngine, generate_report
from src.reporting.service import ReportService, report_service
from src.reporting.scheduler import ReportScheduler, RunOutcome, report_scheduler

__all__ = [
    "ReportEngine",
    "generate_report",
    "ReportService",
    "report_service",
    "ReportScheduler",
    "RunOutcome",
    "report_scheduler",
]
