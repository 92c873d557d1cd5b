"""
Database models for the staffing domain.

Only the columns report generation reads are modelled here; the wider
candidate/training CRUD lives outside this service. Nested documents
(experience, modules, evaluations, expenses) are stored as JSON lists.
"""
from datetime import datetime
from enum import Enum as PyEnum
from typing import List, Optional

from sqlalchemy import (
    Integer, String, Boolean, DateTime, Float, ForeignKey, JSON, Index
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from src.core.database import Base
from src.core.models import UserRole


class CandidateStatus(str, PyEnum):
    """Lifecycle status of a candidate"""
    HIRED = "HIRED"
    IN_TRAINING = "IN_TRAINING"
    DEPLOYED = "DEPLOYED"
    INACTIVE = "INACTIVE"


class TrainingStatus(str, PyEnum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class PaymentStatus(str, PyEnum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class UserModel(Base):
    """Application user; recipient of reports and notifications."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(20), default=UserRole.USER.value)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    def __repr__(self):
        return f"<UserModel(id={self.id}, email='{self.email}')>"


class CandidateModel(Base):
    __tablename__ = "candidates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    candidate_id: Mapped[Optional[str]] = mapped_column(String(50), unique=True, nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    contact_number: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=CandidateStatus.HIRED.value, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    # [{type: IT|NON-IT, company_name, role, start_date, end_date, salary}]
    experience: Mapped[Optional[List[dict]]] = mapped_column(JSON, nullable=True)
    skills: Mapped[Optional[List[dict]]] = mapped_column(JSON, nullable=True)

    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), index=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, onupdate=func.now())

    user: Mapped[Optional["UserModel"]] = relationship("UserModel")
    trainings: Mapped[List["TrainingModel"]] = relationship(
        "TrainingModel",
        back_populates="candidate",
        cascade="all, delete-orphan"
    )
    payments: Mapped[List["PaymentModel"]] = relationship(
        "PaymentModel",
        back_populates="candidate",
        cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<CandidateModel(id={self.id}, name='{self.name}', status='{self.status}')>"


class TrainingModel(Base):
    __tablename__ = "trainings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    candidate_id: Mapped[int] = mapped_column(ForeignKey("candidates.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    technology: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=TrainingStatus.NOT_STARTED.value)

    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)
    expected_end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    actual_end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # [{name, status, trainer, start_date, end_date}]
    modules: Mapped[Optional[List[dict]]] = mapped_column(JSON, nullable=True)
    # [{month, year, rating, comments}]
    evaluations: Mapped[Optional[List[dict]]] = mapped_column(JSON, nullable=True)
    # [{type, amount, date}]
    expenses: Mapped[Optional[List[dict]]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    candidate: Mapped["CandidateModel"] = relationship("CandidateModel", back_populates="trainings")

    def __repr__(self):
        return f"<TrainingModel(id={self.id}, name='{self.name}')>"


class PaymentModel(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    candidate_id: Mapped[int] = mapped_column(ForeignKey("candidates.id"), nullable=False, index=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    payment_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.PENDING.value, index=True)
    payment_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    processed_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    candidate: Mapped["CandidateModel"] = relationship("CandidateModel", back_populates="payments")
    processed_by: Mapped[Optional["UserModel"]] = relationship("UserModel")

    __table_args__ = (
        Index('idx_payment_status_date', 'status', 'payment_date'),
    )

    def __repr__(self):
        return f"<PaymentModel(id={self.id}, amount={self.amount}, status='{self.status}')>"
