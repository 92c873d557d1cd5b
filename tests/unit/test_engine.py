"""
Unit tests for the report generation engine.
"""
import csv
import json
import pytest
from unittest.mock import AsyncMock

from src.core.models import ReportFormat
from src.reporting.database import ReportTemplateModel
from src.reporting.datasets import DatasetRegistry
from src.reporting.errors import GenerationFailed, TemplateNotFound, UnsupportedDataset, UnsupportedFormat
from src.reporting.workflow import ReportEngine, check_paths, prepare_data, resolve_format
from src.reporting.templates import ReportTemplateSpec


def read_csv(path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


async def reload_template(session_factory, template_id):
    async with session_factory() as session:
        return await session.get(ReportTemplateModel, template_id)

# --- Pure helpers ---

def test_resolve_format():
    assert resolve_format("excel") == ReportFormat.EXCEL
    assert resolve_format(ReportFormat.PDF) == ReportFormat.PDF
    with pytest.raises(UnsupportedFormat):
        resolve_format("docx")


def test_prepare_data_filters_then_sorts_then_groups():
    template = ReportTemplateSpec(
        name="t", type="CUSTOM",
        fields=[{"name": "n", "label": "N", "source": "n"}],
        filters=[{"field": "score", "operator": "GREATER_THAN", "value": 1}],
        sort_by=[{"field": "n", "direction": "DESC"}],
        group_by=["team"],
    )
    records = [
        {"n": "a", "score": 5, "team": "x"},
        {"n": "b", "score": 0, "team": "x"},
        {"n": "c", "score": 3, "team": "y"},
        {"n": "d", "score": 2, "team": "x"},
    ]
    grouped = prepare_data(template, records)

    assert list(grouped) == ["x", "y"]
    assert [r["n"] for r in grouped["x"]] == ["d", "a"]


def test_check_paths_reports_unresolved():
    template = ReportTemplateSpec(
        name="t", type="CUSTOM",
        fields=[{"name": "n", "label": "N", "source": "n"}, {"name": "z", "label": "Z", "source": "nested.z"}],
    )
    assert check_paths(template, [{"n": 1}]) == ["nested.z"]
    assert check_paths(template, []) == []

# --- Engine ---

@pytest.mark.asyncio
async def test_generate_candidate_csv(engine, session_factory, candidate_template, candidates):
    artifact = await engine.generate(candidate_template.id)

    rows = read_csv(artifact.path)
    assert rows[0] == ["Candidate ID", "Name", "Status"]
    assert rows[1:] == [["HTD-003", "Divya Shah", "HIRED"], ["HTD-001", "Meera Nair", "HIRED"]]
    assert artifact.format == ReportFormat.CSV
    assert artifact.record_count == 2

    stored = await reload_template(session_factory, candidate_template.id)
    assert stored.usage_count == 1
    assert stored.last_used is not None


@pytest.mark.asyncio
async def test_generate_format_override(engine, candidate_template, candidates):
    artifact = await engine.generate(candidate_template.id, format_override="json", filename="hired.json")

    payload = json.loads(artifact.path.read_text())
    assert artifact.filename == "hired.json"
    assert payload["summary"]["total_records"] == 2
    assert payload["template"]["type"] == "CANDIDATE_REPORT"


@pytest.mark.asyncio
async def test_generate_passes_parameters_to_fetcher(engine, candidate_template, candidates):
    artifact = await engine.generate(candidate_template.id, parameters={"candidate_ids": [candidates[0].id]})
    assert artifact.record_count == 1


@pytest.mark.asyncio
async def test_generate_unknown_template(engine, users):
    with pytest.raises(TemplateNotFound):
        await engine.generate(9999)
    with pytest.raises(TemplateNotFound):
        await engine.generate(None)


@pytest.mark.asyncio
async def test_unsupported_format_fails_before_fetch(session_factory, candidate_template, tmp_path):
    fetcher = AsyncMock(return_value=[])
    registry = DatasetRegistry()
    registry.register("CANDIDATE_REPORT", fetcher)
    engine = ReportEngine(session_factory=session_factory, registry=registry, output_dir=tmp_path)

    with pytest.raises(UnsupportedFormat):
        await engine.generate(candidate_template.id, format_override="docx")

    fetcher.assert_not_called()
    stored = await reload_template(session_factory, candidate_template.id)
    assert stored.usage_count == 0


@pytest.mark.asyncio
async def test_unregistered_dataset(session_factory, candidate_template, tmp_path):
    engine = ReportEngine(session_factory=session_factory, registry=DatasetRegistry(), output_dir=tmp_path)

    with pytest.raises(UnsupportedDataset) as exc_info:
        await engine.generate(candidate_template.id)
    assert isinstance(exc_info.value, GenerationFailed)


@pytest.mark.asyncio
async def test_fetch_errors_wrapped(session_factory, candidate_template, tmp_path):
    registry = DatasetRegistry()
    registry.register("CANDIDATE_REPORT", AsyncMock(side_effect=RuntimeError("db down")))
    engine = ReportEngine(session_factory=session_factory, registry=registry, output_dir=tmp_path)

    with pytest.raises(GenerationFailed, match="db down"):
        await engine.generate(candidate_template.id)


@pytest.mark.asyncio
async def test_empty_dataset_renders_header_only(engine, candidate_template, users):
    artifact = await engine.generate(candidate_template.id)

    assert read_csv(artifact.path) == [["Candidate ID", "Name", "Status"]]
    assert artifact.record_count == 0
