"""
Credit account model.

One prepaid balance per rider or restaurant. balance_cents is a
cache of the sum of the account's ledger entries; it is only
ever changed by LedgerService, in the same transaction as the
entry that explains the change.
"""

from datetime import datetime

from sqlalchemy import (
    BigInteger, CheckConstraint, DateTime, Integer,
    UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace_ledger.models.base import Base
from marketplace_ledger.models.enums import AccountType


class Account(Base):
    __tablename__ = "credit_accounts"
    __table_args__ = (
        UniqueConstraint("account_type", "owner_id", name="uq_credit_account_owner"),
        CheckConstraint("balance_cents >= 0", name="ck_credit_account_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    account_type: Mapped[AccountType] = mapped_column(
        SAEnum(
            AccountType,
            name="credit_account_type_enum",
            values_callable=lambda e: [m.value for m in e],
            create_constraint=True,
        ),
        nullable=False,
    )
    # riders.id or restaurants.id depending on account_type
    owner_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    balance_cents: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    entries: Mapped[list["LedgerEntry"]] = relationship(
        back_populates="account"
    )

    def __repr__(self) -> str:
        return (
            f"<Account {self.account_type.value}:{self.owner_id} "
            f"{self.balance_cents}c>"
        )
