"""
Unit tests for template and scheduled report management.
"""
import pytest
from datetime import timedelta
from pydantic import ValidationError

from src.core.utils import utcnow
from src.reporting.database import ScheduledReportModel
from src.reporting.errors import AccessDenied, ScheduledReportNotFound, TemplateNotFound, ValidationFailed
from src.reporting.service import ReportService, ScheduledReportCreate, ScheduledReportUpdate
from src.reporting.templates import ReportTemplateSpec


@pytest.fixture
def service(session_factory):
    return ReportService(session_factory=session_factory)


def make_spec(**overrides):
    values = dict(
        name="Payments",
        type="PAYMENT",
        fields=[{"name": "amount", "label": "Amount", "source": "amount", "format": "currency"}],
        format="EXCEL",
    )
    values.update(overrides)
    return ReportTemplateSpec(**values)


def make_schedule_request(template_id, **overrides):
    values = dict(
        name="Weekly Payments",
        template_id=template_id,
        schedule={"frequency": "WEEKLY", "day_of_week": 1, "time": {"hour": 8, "minute": 30}},
        recipients=[{"user_id": 1, "email": "asha@example.com", "delivery_method": "email"}],
        format="CSV",
    )
    values.update(overrides)
    return ScheduledReportCreate(**values)

# --- Templates ---

@pytest.mark.asyncio
async def test_create_and_list_templates(service, users, candidate_template):
    owner, other = users["owner"].id, users["recipient"].id
    created = await service.create_template(make_spec(), created_by_id=owner)
    public = await service.create_template(make_spec(name="Shared", is_public=True), created_by_id=other)
    await service.create_template(make_spec(name="Private"), created_by_id=other)

    assert created.type == "PAYMENT_REPORT"
    assert created.usage_count == 0

    listing = await service.list_templates(owner)
    assert listing["total"] == 3
    assert {t.id for t in listing["templates"]} == {created.id, public.id, candidate_template.id}

    payments = await service.list_templates(owner, type="payment")
    assert payments["total"] == 2


@pytest.mark.asyncio
async def test_create_invalid_template(service, users):
    with pytest.raises(ValidationFailed) as exc_info:
        await service.create_template(make_spec(fields=[]), created_by_id=users["owner"].id)
    assert exc_info.value.errors == ["Template must have at least one field"]


@pytest.mark.asyncio
async def test_private_template_hidden_from_others(service, users, candidate_template):
    assert (await service.get_template(candidate_template.id, users["owner"].id)).id == candidate_template.id
    with pytest.raises(AccessDenied):
        await service.get_template(candidate_template.id, users["recipient"].id)
    with pytest.raises(TemplateNotFound):
        await service.get_template(404)


@pytest.mark.asyncio
async def test_update_template_owner_only(service, users, candidate_template):
    updated = await service.update_template(candidate_template.id, make_spec(name="Renamed"), users["owner"].id)
    assert updated.name == "Renamed"
    assert updated.format == "EXCEL"

    with pytest.raises(TemplateNotFound):
        await service.update_template(candidate_template.id, make_spec(), users["recipient"].id)


@pytest.mark.asyncio
async def test_system_template_is_read_only(service, users):
    template = await service.create_template(make_spec(), created_by_id=users["owner"].id, is_system=True)

    with pytest.raises(AccessDenied):
        await service.update_template(template.id, make_spec(name="x"), users["owner"].id)
    with pytest.raises(TemplateNotFound):
        await service.delete_template(template.id, users["owner"].id)


@pytest.mark.asyncio
async def test_delete_template_in_use(service, users, scheduled_report, candidate_template):
    with pytest.raises(ValidationFailed):
        await service.delete_template(candidate_template.id, users["owner"].id)

    await service.delete_scheduled_report(scheduled_report.id, users["owner"].id)
    await service.delete_template(candidate_template.id, users["owner"].id)
    with pytest.raises(TemplateNotFound):
        await service.get_template(candidate_template.id)

# --- Scheduled reports ---

@pytest.mark.asyncio
async def test_create_scheduled_report_computes_next_run(service, users, candidate_template):
    report = await service.create_scheduled_report(make_schedule_request(candidate_template.id), users["owner"].id)

    assert report.next_run > utcnow()
    assert (report.next_run.weekday(), report.next_run.hour, report.next_run.minute) == (0, 8, 30)
    assert report.recipients[0]["delivery_method"] == "EMAIL"
    assert report.schedule["frequency"] == "WEEKLY"
    assert report.run_count == 0


@pytest.mark.asyncio
async def test_create_scheduled_report_unknown_template(service, users):
    with pytest.raises(TemplateNotFound):
        await service.create_scheduled_report(make_schedule_request(404), users["owner"].id)


def test_scheduled_report_request_validation():
    with pytest.raises(ValidationError):
        make_schedule_request(1, recipients=[])
    with pytest.raises(ValidationError):
        make_schedule_request(1, schedule={"frequency": "MONTHLY"})
    with pytest.raises(ValidationError):
        make_schedule_request(1, format="DOCX")


@pytest.mark.asyncio
async def test_update_schedule_recomputes_next_run(service, users, scheduled_report):
    changed = await service.update_scheduled_report(
        scheduled_report.id,
        ScheduledReportUpdate(schedule={"frequency": "MONTHLY", "day_of_month": 1}),
        users["owner"].id,
    )
    assert changed.next_run.day == 1
    assert changed.next_run > utcnow()

    renamed = await service.update_scheduled_report(
        scheduled_report.id, ScheduledReportUpdate(name="Renamed"), users["owner"].id
    )
    assert renamed.name == "Renamed"
    assert renamed.next_run == changed.next_run


@pytest.mark.asyncio
async def test_scheduled_reports_are_private(service, users, scheduled_report):
    other = users["recipient"].id
    with pytest.raises(ScheduledReportNotFound):
        await service.get_scheduled_report(scheduled_report.id, other)
    with pytest.raises(ScheduledReportNotFound):
        await service.update_scheduled_report(scheduled_report.id, ScheduledReportUpdate(name="x"), other)
    with pytest.raises(ScheduledReportNotFound):
        await service.toggle_scheduled_report(scheduled_report.id, other)
    assert (await service.list_scheduled_reports(other))["total"] == 0


@pytest.mark.asyncio
async def test_toggle_recomputes_next_run_on_activation(service, users, scheduled_report):
    owner = users["owner"].id

    paused = await service.toggle_scheduled_report(scheduled_report.id, owner)
    assert paused.is_active is False
    assert paused.next_run < utcnow()

    resumed = await service.toggle_scheduled_report(scheduled_report.id, owner)
    assert resumed.is_active is True
    assert resumed.next_run > utcnow()
    assert resumed.next_run - utcnow() <= timedelta(days=1)


@pytest.mark.asyncio
async def test_update_reactivation_recomputes_next_run(service, session_factory, users, scheduled_report):
    owner = users["owner"].id
    await service.update_scheduled_report(scheduled_report.id, ScheduledReportUpdate(is_active=False), owner)
    async with session_factory() as session:
        stored = await session.get(ScheduledReportModel, scheduled_report.id)
        stored.next_run = utcnow() - timedelta(days=30)
        await session.commit()

    resumed = await service.update_scheduled_report(
        scheduled_report.id, ScheduledReportUpdate(is_active=True), owner
    )

    assert resumed.is_active is True
    assert resumed.next_run > utcnow()
    assert (resumed.next_run.hour, resumed.next_run.minute) == (9, 0)


@pytest.mark.asyncio
async def test_update_already_active_keeps_next_run(service, users, scheduled_report):
    updated = await service.update_scheduled_report(
        scheduled_report.id, ScheduledReportUpdate(is_active=True), users["owner"].id
    )
    assert updated.next_run == scheduled_report.next_run


@pytest.mark.asyncio
async def test_list_scheduled_reports_filters(service, users, scheduled_report):
    owner = users["owner"].id
    assert (await service.list_scheduled_reports(owner, is_active=True))["total"] == 1
    assert (await service.list_scheduled_reports(owner, is_active=False))["total"] == 0


def test_schedule_options_weekdays_start_sunday():
    options = ReportService.get_schedule_options()
    assert options["days_of_week"][0] == {"value": 0, "label": "Sunday"}
    assert [f["value"] for f in options["formats"]] == ["PDF", "EXCEL", "CSV", "JSON"]
