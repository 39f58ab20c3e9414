"""
Settlement model.

The payout record for one restaurant or rider over an inclusive
date range. Restaurant settlements fill the sales/commission
figures, rider settlements the fee/bonus/fuel figures; the other
group stays at zero.

The settlement has a state machine governing its lifecycle.
Invalid state transitions are rejected.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger, Date, DateTime, Integer, Numeric, String,
    UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from marketplace_ledger.models.base import Base
from marketplace_ledger.models.enums import EntityType, SettlementStatus


# Valid state transitions; the state machine reads only this table
VALID_TRANSITIONS: dict[SettlementStatus, set[SettlementStatus]] = {
    SettlementStatus.PENDING: {SettlementStatus.PAID, SettlementStatus.DISPUTED},
    SettlementStatus.DISPUTED: {SettlementStatus.PENDING, SettlementStatus.PAID},
    SettlementStatus.PAID: set(),  # Terminal
}

# Columns written from SettlementFigures. Replaced as a group,
# never patched one at a time.
FIGURE_FIELDS = (
    "total_orders",
    "gross_sales_cents",
    "commission_percentage",
    "commission_cents",
    "delivery_fees_cents",
    "bonuses_cents",
    "fuel_reimbursement_cents",
    "fixed_salary_cents",
    "cash_collected_cents",
    "pos_collected_cents",
    "yape_plin_collected_cents",
    "net_payout_cents",
)


class Settlement(Base):
    __tablename__ = "settlements"
    __table_args__ = (
        # Idempotency guard for retried creates over the same period
        UniqueConstraint(
            "entity_type", "entity_id", "period_start", "period_end",
            name="uq_settlement_entity_period",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    entity_type: Mapped[EntityType] = mapped_column(
        SAEnum(
            EntityType,
            name="settlement_entity_type_enum",
            values_callable=lambda e: [m.value for m in e],
            create_constraint=True,
        ),
        nullable=False,
    )
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[SettlementStatus] = mapped_column(
        SAEnum(
            SettlementStatus,
            name="settlement_status_enum",
            values_callable=lambda e: [m.value for m in e],
            create_constraint=True,
        ),
        nullable=False,
        default=SettlementStatus.PENDING,
    )

    total_orders: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Restaurant figures
    gross_sales_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    commission_percentage: Mapped[Decimal | None] = mapped_column(
        Numeric(5, 2), nullable=True
    )
    commission_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Rider figures
    delivery_fees_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    bonuses_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    fuel_reimbursement_cents: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    fixed_salary_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    cash_collected_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    pos_collected_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    yape_plin_collected_cents: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )

    net_payout_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def can_transition_to(self, new_status: SettlementStatus) -> bool:
        """Check if a state transition is valid."""
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def figures_snapshot(self) -> dict:
        """Money fields as plain values, for audit before/after."""
        snapshot = {field: getattr(self, field) for field in FIGURE_FIELDS}
        if snapshot["commission_percentage"] is not None:
            snapshot["commission_percentage"] = str(snapshot["commission_percentage"])
        snapshot["status"] = self.status.value
        return snapshot

    def __repr__(self) -> str:
        return (
            f"<Settlement {self.entity_type.value}:{self.entity_id} "
            f"{self.period_start}..{self.period_end} ({self.status.value})>"
        )
