"""
Daily rider report model.

One row per rider per day. Opened at the first shift start,
submitted by the rider with declared collections, then approved
or rejected by an admin.
"""

from datetime import date, datetime

from sqlalchemy import (
    BigInteger, Boolean, Date, DateTime, ForeignKey, Integer,
    String, UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from marketplace_ledger.models.base import Base
from marketplace_ledger.models.enums import ReportStatus


VALID_TRANSITIONS: dict[ReportStatus, set[ReportStatus]] = {
    ReportStatus.DRAFT: {ReportStatus.SUBMITTED},
    ReportStatus.SUBMITTED: {ReportStatus.APPROVED, ReportStatus.REJECTED},
    ReportStatus.APPROVED: set(),
    # No resubmission path exists for a rejected report
    ReportStatus.REJECTED: set(),
}


class DailyReport(Base):
    __tablename__ = "daily_reports"
    __table_args__ = (
        UniqueConstraint("rider_id", "report_date", name="uq_daily_report_rider_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    rider_id: Mapped[int] = mapped_column(
        ForeignKey("riders.id"), nullable=False, index=True
    )
    report_date: Mapped[date] = mapped_column(Date, nullable=False)
    shift_started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    shift_ended_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    total_deliveries: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    declared_cash_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    declared_pos_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    declared_yape_plin_cents: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    expected_cash_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    expected_pos_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    expected_yape_plin_cents: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    # Signed: positive means the rider declared more cash than expected
    cash_discrepancy_cents: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    has_discrepancy: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    status: Mapped[ReportStatus] = mapped_column(
        SAEnum(
            ReportStatus,
            name="report_status_enum",
            values_callable=lambda e: [m.value for m in e],
            create_constraint=True,
        ),
        nullable=False,
        default=ReportStatus.DRAFT,
    )
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    reviewed_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def can_transition_to(self, new_status: ReportStatus) -> bool:
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def __repr__(self) -> str:
        return f"<DailyReport rider={self.rider_id} {self.report_date} ({self.status.value})>"
