"""Excel report generator with a styled header row."""

import re
from datetime import date, datetime
from typing import Any, Dict, Optional

from openpyxl import Workbook
from openpyxl.styles import PatternFill, Font, Alignment
from openpyxl.utils import get_column_letter

from src.core.models import ReportFormat
from src.core.utils import utcnow
from src.reporting.filters import format_field_value, resolve
from src.reporting.templates import ReportField, ReportTemplateSpec
from .base import Artifact, BaseGenerator, ReportData, iter_groups

COLUMN_WIDTH = 15
MAX_SHEET_TITLE = 31


def sheet_title(name: str) -> str:
    """Excel sheet names are limited to 31 characters and forbid []:*?/\\"""
    cleaned = re.sub(r'[\[\]:*?/\\]', ' ', name or "").strip()
    return cleaned[:MAX_SHEET_TITLE] or "Report"


def _cell_value(record: Dict[str, Any], field: ReportField) -> Any:
    value = format_field_value(resolve(record, field.source), field)
    if isinstance(value, (str, int, float, bool, datetime, date)):
        return value
    return str(value)


class ExcelReportGenerator(BaseGenerator):
    """One worksheet named after the template; one row per record."""

    format = ReportFormat.EXCEL
    extension = "xlsx"
    media_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

    def generate(
        self,
        template: ReportTemplateSpec,
        data: ReportData,
        parameters: Optional[Dict[str, Any]] = None,
        generated_at: Optional[datetime] = None,
        filename: str = None,
    ) -> Artifact:
        """Generate Excel report."""
        generated_at = generated_at or utcnow()
        output_file = self.output_dir / self._get_filename(template.name, filename)

        # Create workbook
        wb = Workbook()
        wb.remove(wb.active)  # Remove default sheet
        self._create_data_sheet(wb, template, data)

        # Save workbook
        wb.save(output_file)

        return self._artifact(output_file, data, generated_at)

    def _create_data_sheet(self, wb: Workbook, template: ReportTemplateSpec, data: ReportData):
        ws = wb.create_sheet(sheet_title(template.name))
        fields = template.visible_fields()
        color = template.styling.primary_color.lstrip('#')

        # Headers
        for col, report_field in enumerate(fields, start=1):
            cell = ws.cell(1, col, report_field.label)
            cell.alignment = Alignment(horizontal='center', vertical='center')
            cell.fill = PatternFill(start_color=color, end_color=color, fill_type="solid")
            cell.font = Font(bold=True, color="FFFFFF")

        # Freeze top row
        ws.freeze_panes = "A2"

        # Data rows
        row = 2
        for group, records in iter_groups(data):
            if group is not None:
                ws.cell(row, 1, f"Group: {group}").font = Font(bold=True)
                row += 1
            for record in records:
                for col, report_field in enumerate(fields, start=1):
                    ws.cell(row, col, _cell_value(record, report_field))
                row += 1
            if group is not None:
                row += 1  # Empty row between groups

        # Fixed column widths
        for col in range(1, max(len(fields), 1) + 1):
            ws.column_dimensions[get_column_letter(col)].width = COLUMN_WIDTH
