"""CSV report generator."""

import csv
import io
from datetime import datetime
from typing import Any, Dict, Optional

from src.core.models import ReportFormat
from src.core.utils import utcnow
from src.reporting.templates import ReportTemplateSpec
from .base import Artifact, BaseGenerator, ReportData, iter_groups


class CSVReportGenerator(BaseGenerator):
    """Header line plus one fully-quoted line per record."""

    format = ReportFormat.CSV
    extension = "csv"
    media_type = "text/csv"

    def render(self, template: ReportTemplateSpec, data: ReportData) -> str:
        """Render to text; identical input always yields identical output."""
        fields = template.visible_fields()
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow([f.label for f in fields])

        for group, records in iter_groups(data):
            if group is not None:
                writer.writerow([f"Group: {group}"])
            for record in records:
                writer.writerow(self._row(record, fields))
            if group is not None:
                buffer.write("\n")

        return buffer.getvalue()

    def generate(
        self,
        template: ReportTemplateSpec,
        data: ReportData,
        parameters: Optional[Dict[str, Any]] = None,
        generated_at: Optional[datetime] = None,
        filename: str = None,
    ) -> Artifact:
        generated_at = generated_at or utcnow()
        output_file = self.output_dir / self._get_filename(template.name, filename)
        output_file.write_text(self.render(template, data), encoding="utf-8")
        return self._artifact(output_file, data, generated_at)
