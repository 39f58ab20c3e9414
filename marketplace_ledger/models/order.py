"""
Order model.

Owned by the orders collaborator. Settlements and daily
reconciliation only read delivered orders; nothing in this
service writes to this table.
"""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, String, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from marketplace_ledger.models.base import Base
from marketplace_ledger.models.enums import OrderStatus, PaymentMethod


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    restaurant_id: Mapped[int] = mapped_column(
        ForeignKey("restaurants.id"), nullable=False, index=True
    )
    rider_id: Mapped[int | None] = mapped_column(
        ForeignKey("riders.id"), nullable=True, index=True
    )
    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(
            OrderStatus,
            name="order_status_enum",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    subtotal_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    delivery_fee_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    rider_bonus_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SAEnum(
            PaymentMethod,
            name="payment_method_enum",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    # Set when the customer paid differently than they chose at checkout
    actual_payment_method: Mapped[PaymentMethod | None] = mapped_column(
        SAEnum(
            PaymentMethod,
            name="actual_payment_method_enum",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=True,
    )
    delivered_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    @property
    def effective_payment_method(self) -> PaymentMethod:
        """The method actually used, falling back to the one chosen at checkout."""
        return self.actual_payment_method or self.payment_method

    def __repr__(self) -> str:
        return f"<Order {self.code} ({self.status.value})>"
