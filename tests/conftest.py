"""
Shared pytest fixtures for the HTD reporting test suite.
"""
import os
import tempfile

# Point the application at a throwaway SQLite database before src is imported
_TEST_DIR = tempfile.mkdtemp(prefix="htd-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DIR}/app.db")
os.environ.setdefault("REPORTS_DIR", os.path.join(_TEST_DIR, "reports"))
os.environ.setdefault("SCHEDULER_AUTOSTART", "false")
os.environ.pop("SENDGRID_API_KEY", None)

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from src.core.database import Base
from src.core.models import ReportFormat
from src.core.utils import utcnow
from src.notifications.service import NotificationService
from src.reporting.database import ReportTemplateModel, ScheduledReportModel
from src.reporting.delivery import DeliveryDispatcher
from src.reporting.scheduler import ReportScheduler
from src.reporting.workflow import ReportEngine
from src.staffing.database import (
    UserModel, CandidateModel, TrainingModel, PaymentModel, CandidateStatus, PaymentStatus
)

# Import so every table is registered on Base.metadata
from src.notifications import database as notifications_db  # noqa


# --- Database Fixtures ---

@pytest.fixture
async def session_factory(tmp_path):
    """Async SQLite session factory on a fresh database file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db", poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def async_db_session(session_factory):
    async with session_factory() as session:
        yield session


# --- Collaborator Fixtures ---

@pytest.fixture
def mock_mailer():
    """Mail transport double; accepts every message."""
    mailer = MagicMock()
    mailer.send_email.return_value = True
    return mailer


@pytest.fixture
def mock_notifications():
    notifications = MagicMock()
    notifications.create_notification = AsyncMock()
    return notifications


@pytest.fixture
def engine(session_factory, tmp_path):
    return ReportEngine(session_factory=session_factory, output_dir=tmp_path / "reports")


@pytest.fixture
def report_scheduler(session_factory, engine, mock_mailer, mock_notifications, tmp_path):
    """Scheduler wired to the test database with mail and notifications mocked."""
    dispatcher = DeliveryDispatcher(mailer=mock_mailer, notifications=mock_notifications)
    scheduler = ReportScheduler(
        session_factory=session_factory,
        engine=engine,
        dispatcher=dispatcher,
        notifications=mock_notifications,
        reports_dir=tmp_path / "reports",
    )
    yield scheduler
    if scheduler.scheduler.running:
        scheduler.scheduler.shutdown(wait=False)


@pytest.fixture
def notification_service(session_factory, mock_mailer):
    return NotificationService(session_factory=session_factory, mailer=mock_mailer)


# --- Mock Data Fixtures ---

@pytest.fixture
async def users(async_db_session):
    owner = UserModel(name="Asha Admin", email="asha@example.com", role="admin")
    recipient = UserModel(name="Ravi Recruiter", email="ravi@example.com", role="user")
    async_db_session.add_all([owner, recipient])
    await async_db_session.commit()
    return {"owner": owner, "recipient": recipient}


@pytest.fixture
async def candidates(async_db_session, users):
    """Three active candidates: two HIRED, one DEPLOYED."""
    rows = [
        CandidateModel(
            candidate_id="HTD-001", name="Meera Nair", email="meera@example.com",
            status=CandidateStatus.HIRED.value, user_id=users["recipient"].id,
            experience=[{"type": "IT", "company_name": "Infy", "role": "Dev",
                         "start_date": "2020-01-01", "end_date": "2020-03-01"}],
        ),
        CandidateModel(
            candidate_id="HTD-002", name="Arjun Rao", email="arjun@example.com",
            status=CandidateStatus.DEPLOYED.value,
        ),
        CandidateModel(
            candidate_id="HTD-003", name="Divya Shah", email="divya@example.com",
            status=CandidateStatus.HIRED.value,
        ),
    ]
    async_db_session.add_all(rows)
    await async_db_session.commit()

    training = TrainingModel(
        candidate_id=rows[0].id, name="Java Bootcamp", technology="Java", status="IN_PROGRESS",
        start_date=datetime(2024, 1, 1), expected_end_date=datetime(2024, 1, 31),
        modules=[{"name": "Core", "status": "COMPLETED"}, {"name": "Spring", "status": "IN_PROGRESS"}],
        evaluations=[{"month": 1, "year": 2024, "rating": 4}, {"month": 2, "year": 2024, "rating": 5}],
        expenses=[{"type": "TRAVEL", "amount": 100.0}, {"type": "FOOD", "amount": 50.5}],
    )
    payments = [
        PaymentModel(candidate_id=rows[0].id, amount=1000.0, status=PaymentStatus.COMPLETED.value,
                     payment_date=datetime(2024, 2, 1), processed_by_id=users["owner"].id),
        PaymentModel(candidate_id=rows[0].id, amount=500.0, status=PaymentStatus.PENDING.value),
    ]
    async_db_session.add(training)
    async_db_session.add_all(payments)
    await async_db_session.commit()
    return rows


def candidate_template_kwargs(**overrides):
    values = dict(
        name="Hired Candidates",
        description="Candidates currently hired",
        type="CANDIDATE_REPORT",
        category="OPERATIONAL",
        fields=[
            {"name": "candidate_id", "label": "Candidate ID", "type": "TEXT", "source": "candidate_id", "order": 0},
            {"name": "name", "label": "Name", "type": "TEXT", "source": "name", "order": 1},
            {"name": "status", "label": "Status", "type": "TEXT", "source": "status", "order": 2},
        ],
        filters=[{"field": "status", "operator": "EQUALS", "value": "HIRED"}],
        sort_by=[{"field": "name", "direction": "ASC"}],
        group_by=[],
        format=ReportFormat.CSV.value,
        usage_count=0,
    )
    values.update(overrides)
    return values


@pytest.fixture
async def candidate_template(async_db_session, users):
    template = ReportTemplateModel(created_by_id=users["owner"].id, **candidate_template_kwargs())
    async_db_session.add(template)
    await async_db_session.commit()
    return template


@pytest.fixture
async def scheduled_report(async_db_session, users, candidate_template):
    """Active DAILY report that was due a minute ago."""
    report = ScheduledReportModel(
        name="Daily Hired",
        template_id=candidate_template.id,
        schedule={"frequency": "DAILY", "time": {"hour": 9, "minute": 0}, "timezone": "UTC"},
        recipients=[
            {"user_id": users["owner"].id, "email": "asha@example.com", "name": "Asha", "delivery_method": "EMAIL"},
            {"user_id": users["recipient"].id, "email": "ravi@example.com", "name": "Ravi", "delivery_method": "EMAIL"},
        ],
        parameters={},
        format=ReportFormat.CSV.value,
        is_active=True,
        next_run=utcnow() - timedelta(minutes=1),
        run_count=0,
        failure_count=0,
        last_delivery_failures=0,
        created_by_id=users["owner"].id,
    )
    async_db_session.add(report)
    await async_db_session.commit()
    return report
