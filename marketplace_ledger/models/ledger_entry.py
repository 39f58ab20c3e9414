"""
Ledger entry model.

Each entry records one signed change to one credit account.
Entries are immutable: once posted they are never modified or
deleted. A correction is a new entry.
"""

from datetime import datetime

from sqlalchemy import (
    BigInteger, CheckConstraint, DateTime, ForeignKey,
    Integer, String, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace_ledger.models.base import Base
from marketplace_ledger.models.enums import LedgerReason


class LedgerEntry(Base):
    """
    An immutable, signed balance movement.

    Positive delta_cents is a deposit, negative a debit.
    balance_after_cents is the account balance right after this
    entry was applied, which makes the history readable without
    re-summing it.
    """

    __tablename__ = "credit_ledger_entries"
    __table_args__ = (
        CheckConstraint("delta_cents <> 0", name="ck_ledger_entry_non_zero"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("credit_accounts.id"), nullable=False, index=True
    )
    delta_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_after_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reason: Mapped[LedgerReason] = mapped_column(
        SAEnum(
            LedgerReason,
            name="ledger_reason_enum",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    # Business reference: recharge code, order code, liquidation id...
    ref_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    account: Mapped["Account"] = relationship(back_populates="entries")

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.reason.value} {self.delta_cents:+d}c "
            f"-> {self.balance_after_cents}c>"
        )
