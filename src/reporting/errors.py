"""Error types raised by the reporting module."""
from typing import List, Optional


class ReportingError(Exception):
    """Base class for reporting failures."""


class TemplateNotFound(ReportingError):
    def __init__(self, template_id):
        super().__init__(f"Report template not found: {template_id}")
        self.template_id = template_id


class ScheduledReportNotFound(ReportingError):
    def __init__(self, report_id):
        super().__init__(f"Scheduled report not found: {report_id}")
        self.report_id = report_id


class UnsupportedFormat(ReportingError):
    def __init__(self, output_format):
        super().__init__(f"Unsupported report format: {output_format}")
        self.output_format = output_format


class ValidationFailed(ReportingError):
    """A template or schedule failed structural validation."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors) or "validation failed")
        self.errors = list(errors)


class GenerationFailed(ReportingError):
    """Fetching or rendering a report raised."""


class UnsupportedDataset(GenerationFailed):
    def __init__(self, dataset_type):
        super().__init__(f"Unsupported template type: {dataset_type}")
        self.dataset_type = dataset_type


class DeliveryFailed(ReportingError):
    """Delivering an artifact to one recipient failed."""

    def __init__(self, email: Optional[str], method: str, reason: str):
        super().__init__(f"Delivery via {method} to {email or 'unknown recipient'} failed: {reason}")
        self.email = email
        self.method = method
        self.reason = reason


class ClaimConflict(ReportingError):
    """Another worker holds the lease on a due scheduled report."""

    def __init__(self, report_id):
        super().__init__(f"Scheduled report {report_id} is already claimed")
        self.report_id = report_id


class AccessDenied(ReportingError):
    """The caller may not perform this action on the resource."""
