"""
Recharge code model.

A single-use voucher that deposits a fixed amount into a rider's
credit account. Status only ever moves forward:
pending -> redeemed or pending -> voided.
"""

from datetime import datetime

from sqlalchemy import (
    BigInteger, CheckConstraint, DateTime, ForeignKey,
    Integer, String, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from marketplace_ledger.models.base import Base
from marketplace_ledger.models.enums import RechargeCodeStatus


class RechargeCode(Base):
    __tablename__ = "recharge_codes"
    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_recharge_code_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    # Stored normalized: no separators, upper case, check character last
    code: Mapped[str] = mapped_column(
        String(16), unique=True, nullable=False, index=True
    )
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[RechargeCodeStatus] = mapped_column(
        SAEnum(
            RechargeCodeStatus,
            name="recharge_code_status_enum",
            values_callable=lambda e: [m.value for m in e],
            create_constraint=True,
        ),
        nullable=False,
        default=RechargeCodeStatus.PENDING,
    )
    intended_rider_id: Mapped[int | None] = mapped_column(
        ForeignKey("riders.id"), nullable=True, index=True
    )
    created_by: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    redeemed_by: Mapped[int | None] = mapped_column(
        ForeignKey("riders.id"), nullable=True
    )
    redeemed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    voided_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    void_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<RechargeCode {self.code} {self.amount_cents}c ({self.status.value})>"
