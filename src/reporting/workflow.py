"""Report generation pipeline: fetch → filter → sort → group → render."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, Union

from sqlalchemy.ext.asyncio import async_sessionmaker

from src.core.config import settings
from src.core.database import async_session_factory
from src.core.models import ReportFormat
from src.core.utils import utcnow
from src.reporting.database import ReportTemplateModel
from src.reporting.datasets import DatasetRegistry, dataset_registry
from src.reporting.errors import GenerationFailed, ReportingError, TemplateNotFound, UnsupportedFormat
from src.reporting.filters import apply_filters, apply_grouping, apply_sorting, resolve
from src.reporting.templates import ReportTemplateSpec
from .generators.base import Artifact, BaseGenerator, ReportData
from .generators.csv_generator import CSVReportGenerator
from .generators.excel_generator import ExcelReportGenerator
from .generators.json_generator import JSONReportGenerator
from .generators.pdf_generator import PDFReportGenerator

logger = logging.getLogger(__name__)

GENERATORS: Dict[ReportFormat, Type[BaseGenerator]] = {
    ReportFormat.PDF: PDFReportGenerator,
    ReportFormat.EXCEL: ExcelReportGenerator,
    ReportFormat.CSV: CSVReportGenerator,
    ReportFormat.JSON: JSONReportGenerator,
}


def resolve_format(value: Union[str, ReportFormat, None]) -> ReportFormat:
    """
    Raises:
        UnsupportedFormat: for anything outside PDF/EXCEL/CSV/JSON.
    """
    try:
        return ReportFormat(value.upper() if isinstance(value, str) else value)
    except ValueError:
        raise UnsupportedFormat(value)


def prepare_data(template: ReportTemplateSpec, records: List[Dict[str, Any]]) -> ReportData:
    """Apply the template's filters, then sort keys, then grouping."""
    filtered = apply_filters(records, template.filters)
    ordered = apply_sorting(filtered, template.sort_by)
    return apply_grouping(ordered, template.group_by)


def check_paths(template: ReportTemplateSpec, records: List[Dict[str, Any]]) -> List[str]:
    """
    Best-effort check that referenced paths exist in at least one record.
    Unresolved paths render empty; they are only logged.
    """
    if not records:
        return []
    paths = [f.source for f in template.fields]
    paths += [f.field for f in template.filters]
    paths += [s.field for s in template.sort_by]
    paths += list(template.group_by)
    missing = []
    for path in dict.fromkeys(paths):
        if all(resolve(record, path) is None for record in records):
            missing.append(path)
    return missing


class ReportEngine:
    """Generates report artifacts from stored templates."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        registry: Optional[DatasetRegistry] = None,
        output_dir: Optional[Union[str, Path]] = None,
    ):
        self.session_factory = session_factory or async_session_factory
        self.registry = registry or dataset_registry
        self.output_dir = Path(output_dir or settings.reports_dir)

    async def generate(
        self,
        template_id: int,
        parameters: Optional[Dict[str, Any]] = None,
        format_override: Union[str, ReportFormat, None] = None,
        filename: Optional[str] = None,
    ) -> Artifact:
        """
        Generate a report from a stored template.

        Args:
            template_id: ReportTemplate primary key
            parameters: runtime parameters (start_date, end_date, candidate_ids, ...)
            format_override: output format; defaults to the template's format
            filename: optional artifact file name

        Returns:
            The rendered artifact

        Raises:
            TemplateNotFound: the template does not exist
            UnsupportedFormat: the requested format is unknown
            GenerationFailed: fetching or rendering raised
        """
        if not template_id:
            raise TemplateNotFound(template_id)
        parameters = parameters or {}

        async with self.session_factory() as session:
            model = await session.get(ReportTemplateModel, template_id)
            if model is None:
                raise TemplateNotFound(template_id)

            template = model.to_spec()
            output_format = resolve_format(format_override or template.format)

            model.last_used = utcnow()
            model.usage_count = (model.usage_count or 0) + 1
            await session.commit()

            try:
                fetcher = self.registry.get(template.type)
                records = await fetcher(session, parameters)
            except ReportingError:
                raise
            except Exception as e:
                logger.error(f"Fetching data for template {template_id} failed: {e}", exc_info=True)
                raise GenerationFailed(f"Failed to fetch report data: {e}") from e

        logger.info(f"Fetched {len(records)} records for template '{template.name}' ({template.type.value})")
        return await asyncio.to_thread(self.render, template, records, output_format, parameters, filename)

    def render(
        self,
        template: ReportTemplateSpec,
        records: List[Dict[str, Any]],
        output_format: Union[str, ReportFormat],
        parameters: Optional[Dict[str, Any]] = None,
        filename: Optional[str] = None,
    ) -> Artifact:
        """Run filter/sort/group over fetched records and write the artifact."""
        output_format = resolve_format(output_format)

        missing = check_paths(template, records)
        if missing:
            logger.warning(f"Template '{template.name}' references unresolved paths: {', '.join(missing)}")

        try:
            data = prepare_data(template, records)
            generator = GENERATORS[output_format](self.output_dir)
            artifact = generator.generate(template, data, parameters or {}, filename=filename)
        except ReportingError:
            raise
        except Exception as e:
            logger.error(f"Rendering {output_format.value} for '{template.name}' failed: {e}", exc_info=True)
            raise GenerationFailed(f"Failed to render report: {e}") from e

        logger.info(f"Generated {output_format.value} report {artifact.filename} ({artifact.record_count} records)")
        return artifact


# Singleton
report_engine = ReportEngine()


async def generate_report(
    template_id: int,
    parameters: Optional[Dict[str, Any]] = None,
    format_override: Union[str, ReportFormat, None] = None,
) -> Artifact:
    """Generate a report with the application-wide engine."""
    return await report_engine.generate(template_id, parameters, format_override)
