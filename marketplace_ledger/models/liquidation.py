"""
Restaurant liquidation model.

Records that accumulated restaurant credits were paid out.
At most one liquidation per restaurant per day.
"""

from datetime import date, datetime

from sqlalchemy import (
    BigInteger, Date, DateTime, ForeignKey, Integer, String,
    UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from marketplace_ledger.models.base import Base
from marketplace_ledger.models.enums import LiquidationMethod


class RestaurantLiquidation(Base):
    __tablename__ = "restaurant_liquidations"
    __table_args__ = (
        UniqueConstraint(
            "restaurant_id", "liquidation_date",
            name="uq_liquidation_restaurant_date",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    restaurant_id: Mapped[int] = mapped_column(
        ForeignKey("restaurants.id"), nullable=False, index=True
    )
    liquidation_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_before_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    payment_method: Mapped[LiquidationMethod] = mapped_column(
        SAEnum(
            LiquidationMethod,
            name="liquidation_method_enum",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    proof_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_by: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
