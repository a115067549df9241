from datetime import datetime, timezone
import enum

from sqlalchemy import Column, Integer, String, Boolean, Enum, JSON, CheckConstraint

from gymcore.db.base_class import Base
from gymcore.db.types import UTCDateTime


class ReportCadence(str, enum.Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ReportFormat(str, enum.Enum):
    CSV = "csv"
    PDF = "pdf"
    XLSX = "xlsx"


class ReportSchedule(Base):
    """Programación recurrente de un reporte"""
    __tablename__ = "report_schedules"

    id = Column(Integer, primary_key=True, index=True)
    report_id = Column(String(64), nullable=False, index=True)
    cadence = Column(Enum(ReportCadence), nullable=False)
    timezone = Column(String(64), nullable=False, default="UTC")
    last_run_at = Column(UTCDateTime, nullable=True)
    next_run_at = Column(UTCDateTime, nullable=True, index=True)
    delivery_emails = Column(JSON, nullable=False, default=list)
    format = Column(Enum(ReportFormat), nullable=False, default=ReportFormat.CSV)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        CheckConstraint(
            "last_run_at IS NULL OR next_run_at IS NULL OR next_run_at >= last_run_at",
            name="check_next_run_after_last_run",
        ),
    )
