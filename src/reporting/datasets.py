"""
Dataset fetchers for report generation.

Each template type maps to an async fetcher returning plain dict records.
Fetchers push the runtime parameters (date range, explicit id lists) down to
the database and enrich the rows with derived fields the stored documents do
not carry. New dataset types are added with ``dataset_registry.register``.
"""

import logging
import math
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.utils import to_naive_utc, utcnow
from src.reporting.errors import UnsupportedDataset
from src.reporting.templates import DatasetType
from src.staffing.database import (
    CandidateModel, TrainingModel, PaymentModel, PaymentStatus, TrainingStatus
)

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
Fetcher = Callable[[AsyncSession, Dict[str, Any]], Awaitable[List[Record]]]


class DatasetRegistry:
    """Maps a dataset tag to the fetcher that loads its records."""

    def __init__(self):
        self._fetchers: Dict[str, Fetcher] = {}

    def register(self, dataset_type, fetcher: Optional[Fetcher] = None):
        """Register a fetcher; usable directly or as a decorator."""
        key = DatasetType.normalize(getattr(dataset_type, "value", dataset_type))

        def decorator(fn: Fetcher) -> Fetcher:
            self._fetchers[key] = fn
            return fn

        if fetcher is not None:
            return decorator(fetcher)
        return decorator

    def get(self, dataset_type) -> Fetcher:
        key = DatasetType.normalize(getattr(dataset_type, "value", dataset_type))
        try:
            return self._fetchers[key]
        except KeyError:
            raise UnsupportedDataset(dataset_type)

    def types(self) -> List[str]:
        return sorted(self._fetchers)


dataset_registry = DatasetRegistry()


# ──── Parameter helpers ────

def _to_datetime(value: Any) -> Optional[datetime]:
    """Parse a stored or supplied date; None when absent or malformed."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, str):
        from dateutil import parser as date_parser
        try:
            return to_naive_utc(date_parser.isoparse(value))
        except (ValueError, OverflowError):
            return None
    return None


def _date_bound(parameters: Dict[str, Any], key: str) -> Optional[datetime]:
    raw = parameters.get(key)
    parsed = _to_datetime(raw)
    if raw not in (None, "") and parsed is None:
        logger.warning(f"Ignoring malformed report parameter {key}={raw!r}")
    return parsed


def _id_list(parameters: Dict[str, Any], key: str) -> List[Any]:
    ids = parameters.get(key) or []
    if not isinstance(ids, (list, tuple)):
        ids = [ids]
    return list(ids)


def _within(column, start: Optional[datetime], end: Optional[datetime]) -> list:
    clauses = []
    if start is not None:
        clauses.append(column >= start)
    if end is not None:
        clauses.append(column <= end)
    return clauses


# ──── Enrichment (pure, tolerant of partial data) ────

def calculate_experience(candidate: Record) -> Dict[str, int]:
    """Months of IT and non-IT experience; each entry counts ceil(days / 30)."""
    totals = {"IT": 0, "NON-IT": 0}
    for entry in candidate.get("experience") or []:
        if not isinstance(entry, dict):
            continue
        kind = (entry.get("type") or "").upper()
        if kind not in totals:
            continue
        start, end = _to_datetime(entry.get("start_date")), _to_datetime(entry.get("end_date"))
        if start is None or end is None:
            logger.warning(
                f"Skipping experience entry with unusable dates for candidate {candidate.get('id')}"
            )
            continue
        days = (end - start).total_seconds() / 86400
        totals[kind] += max(0, math.ceil(days / 30))
    return {
        "it_months": totals["IT"],
        "non_it_months": totals["NON-IT"],
        "total_months": totals["IT"] + totals["NON-IT"],
    }


def calculate_training_duration(training: Record, today: Optional[datetime] = None) -> int:
    """Days between start and actual (or expected) end; 0 when dates are unusable."""
    start = _to_datetime(training.get("start_date"))
    if start is None:
        return 0
    end_raw = training.get("actual_end_date") or training.get("expected_end_date")
    end = _to_datetime(end_raw) if end_raw else (today or utcnow())
    if end is None:
        logger.warning(f"Malformed end date on training {training.get('id')}")
        return 0
    return max(0, math.ceil((end - start).total_seconds() / 86400))


def calculate_total_expenses(training: Record) -> float:
    total = 0.0
    for expense in training.get("expenses") or []:
        amount = expense.get("amount") if isinstance(expense, dict) else None
        if isinstance(amount, (int, float)) and not isinstance(amount, bool):
            total += amount
    return total


def calculate_average_rating(training: Record) -> float:
    ratings = [
        e.get("rating") for e in training.get("evaluations") or []
        if isinstance(e, dict) and isinstance(e.get("rating"), (int, float)) and not isinstance(e.get("rating"), bool)
    ]
    if not ratings:
        return 0
    return sum(ratings) / len(ratings)


def calculate_completion_percentage(training: Record) -> int:
    modules = [m for m in training.get("modules") or [] if isinstance(m, dict)]
    if not modules:
        return 0
    completed = sum(1 for m in modules if m.get("status") == TrainingStatus.COMPLETED.value)
    return round(completed / len(modules) * 100)


def enrich_training(training: Record, today: Optional[datetime] = None) -> Record:
    training["duration"] = calculate_training_duration(training, today)
    training["total_expenses"] = calculate_total_expenses(training)
    training["average_rating"] = calculate_average_rating(training)
    training["completion_percentage"] = calculate_completion_percentage(training)
    return training


def _person(model) -> Optional[Record]:
    if model is None:
        return None
    return {"id": model.id, "name": model.name, "email": model.email}


# ──── Fetchers ────

@dataset_registry.register(DatasetType.CANDIDATE_REPORT)
async def fetch_candidates(session: AsyncSession, parameters: Dict[str, Any]) -> List[Record]:
    stmt = (
        select(CandidateModel)
        .where(CandidateModel.is_active.is_(True))
        .options(
            selectinload(CandidateModel.user),
            selectinload(CandidateModel.trainings),
            selectinload(CandidateModel.payments),
        )
        .order_by(CandidateModel.id)
    )
    candidate_ids = _id_list(parameters, "candidate_ids")
    if candidate_ids:
        stmt = stmt.where(CandidateModel.id.in_(candidate_ids))
    for clause in _within(CandidateModel.created_at, _date_bound(parameters, "start_date"), _date_bound(parameters, "end_date")):
        stmt = stmt.where(clause)

    result = await session.execute(stmt)
    records = []
    for candidate in result.scalars().all():
        record = candidate.to_dict()
        record["user"] = _person(candidate.user)
        record["trainings"] = [enrich_training(t.to_dict()) for t in candidate.trainings]
        payments = [p.to_dict() for p in candidate.payments if p.status == PaymentStatus.COMPLETED.value]
        record["payments"] = payments
        record["total_payments"] = sum(p.get("amount") or 0 for p in payments)
        record["experience_data"] = calculate_experience(record)
        records.append(record)
    return records


@dataset_registry.register(DatasetType.TRAINING_REPORT)
async def fetch_trainings(session: AsyncSession, parameters: Dict[str, Any]) -> List[Record]:
    stmt = select(TrainingModel).options(selectinload(TrainingModel.candidate)).order_by(TrainingModel.id)
    training_ids = _id_list(parameters, "training_ids")
    if training_ids:
        stmt = stmt.where(TrainingModel.id.in_(training_ids))
    for clause in _within(TrainingModel.start_date, _date_bound(parameters, "start_date"), _date_bound(parameters, "end_date")):
        stmt = stmt.where(clause)

    result = await session.execute(stmt)
    today = utcnow()
    records = []
    for training in result.scalars().all():
        record = training.to_dict()
        candidate = training.candidate
        record["candidate"] = None if candidate is None else {
            "id": candidate.id,
            "name": candidate.name,
            "candidate_id": candidate.candidate_id,
            "email": candidate.email,
            "status": candidate.status,
        }
        records.append(enrich_training(record, today))
    return records


@dataset_registry.register(DatasetType.PAYMENT_REPORT)
async def fetch_payments(session: AsyncSession, parameters: Dict[str, Any]) -> List[Record]:
    stmt = (
        select(PaymentModel)
        .where(PaymentModel.status == PaymentStatus.COMPLETED.value)
        .options(selectinload(PaymentModel.candidate), selectinload(PaymentModel.processed_by))
        .order_by(PaymentModel.id)
    )
    candidate_ids = _id_list(parameters, "candidate_ids")
    if candidate_ids:
        stmt = stmt.where(PaymentModel.candidate_id.in_(candidate_ids))
    for clause in _within(PaymentModel.payment_date, _date_bound(parameters, "start_date"), _date_bound(parameters, "end_date")):
        stmt = stmt.where(clause)

    result = await session.execute(stmt)
    records = []
    for payment in result.scalars().all():
        record = payment.to_dict()
        candidate = payment.candidate
        record["candidate"] = None if candidate is None else {
            "id": candidate.id,
            "name": candidate.name,
            "candidate_id": candidate.candidate_id,
            "email": candidate.email,
        }
        record["processed_by"] = _person(payment.processed_by)
        records.append(record)
    return records


@dataset_registry.register(DatasetType.ANALYTICS_REPORT)
async def fetch_analytics(session: AsyncSession, parameters: Dict[str, Any]) -> List[Record]:
    """Headline metrics as {category, metric, value} rows."""
    start, end = _date_bound(parameters, "start_date"), _date_bound(parameters, "end_date")
    rows: List[Record] = []

    stmt = select(CandidateModel.status, func.count(CandidateModel.id)).where(CandidateModel.is_active.is_(True))
    for clause in _within(CandidateModel.created_at, start, end):
        stmt = stmt.where(clause)
    result = await session.execute(stmt.group_by(CandidateModel.status).order_by(CandidateModel.status))
    candidate_total = 0
    for status, count in result.all():
        rows.append({"category": "candidates", "metric": f"status:{status}", "value": count})
        candidate_total += count
    rows.append({"category": "candidates", "metric": "total", "value": candidate_total})

    stmt = select(TrainingModel.status, func.count(TrainingModel.id))
    for clause in _within(TrainingModel.start_date, start, end):
        stmt = stmt.where(clause)
    result = await session.execute(stmt.group_by(TrainingModel.status).order_by(TrainingModel.status))
    for status, count in result.all():
        rows.append({"category": "trainings", "metric": f"status:{status}", "value": count})

    stmt = select(func.count(PaymentModel.id), func.coalesce(func.sum(PaymentModel.amount), 0)).where(
        PaymentModel.status == PaymentStatus.COMPLETED.value
    )
    for clause in _within(PaymentModel.payment_date, start, end):
        stmt = stmt.where(clause)
    count, total = (await session.execute(stmt)).one()
    rows.append({"category": "payments", "metric": "completed_count", "value": count})
    rows.append({"category": "payments", "metric": "completed_amount", "value": float(total or 0)})

    return rows


@dataset_registry.register(DatasetType.CUSTOM_REPORT)
async def fetch_custom(session: AsyncSession, parameters: Dict[str, Any]) -> List[Record]:
    """Caller-supplied records passed in ``parameters['records']``."""
    records = parameters.get("records") or []
    if not isinstance(records, list):
        logger.warning("CUSTOM report parameter 'records' is not a list; treating as empty")
        return []
    return [dict(r) for r in records if isinstance(r, dict)]
