"""JSON report generator."""

import json
from datetime import datetime
from typing import Any, Dict, Optional

from src.core.models import ReportFormat
from src.core.utils import utcnow
from src.reporting.templates import ReportTemplateSpec
from .base import Artifact, BaseGenerator, ReportData, count_records, is_grouped


class JSONReportGenerator(BaseGenerator):
    """Structured envelope with the template header, raw records and a summary."""

    format = ReportFormat.JSON
    extension = "json"
    media_type = "application/json"

    def build_envelope(
        self,
        template: ReportTemplateSpec,
        data: ReportData,
        parameters: Optional[Dict[str, Any]],
        generated_at: datetime,
    ) -> Dict[str, Any]:
        if is_grouped(data):
            processed = [{"group": key, "items": items} for key, items in data.items()]
        else:
            processed = data

        return {
            "template": {
                "name": template.name,
                "type": template.type.value,
                "generated_at": generated_at.isoformat(),
                "parameters": parameters or {},
            },
            "data": processed,
            "summary": {
                "total_records": count_records(data),
                "fields": [
                    {"name": f.name, "label": f.label, "type": f.type.value}
                    for f in template.visible_fields()
                ],
            },
        }

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
        envelope = self.build_envelope(template, data, parameters, generated_at)
        output_file.write_text(json.dumps(envelope, indent=2, default=str), encoding="utf-8")
        return self._artifact(output_file, data, generated_at)
