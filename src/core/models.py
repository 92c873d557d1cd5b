"""
Core enums for the HTD reporting service.

NOTE: These are NOT database models. For SQLAlchemy ORM models, see each module's database.py:
  - User/Candidate/Training/Payment → src/staffing/database.py
  - ReportTemplate/ScheduledReport → src/reporting/database.py
  - Notification → src/notifications/database.py

The enums below are shared across modules for consistent values in
database columns, API payloads and business logic.
"""
from enum import Enum


class ReportFormat(str, Enum):
    PDF = "PDF"
    EXCEL = "EXCEL"
    CSV = "CSV"
    JSON = "JSON"


class UserRole(str, Enum):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"
