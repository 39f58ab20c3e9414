"""
Rider model.

Owned by the identity collaborator; this service only reads the
pay configuration that settlements and credits depend on.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, Boolean, DateTime, Numeric, String, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from marketplace_ledger.models.base import Base
from marketplace_ledger.models.enums import PayType


class Rider(Base):
    __tablename__ = "riders"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    pay_type: Mapped[PayType] = mapped_column(
        SAEnum(
            PayType,
            name="pay_type_enum",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    # Share of the delivery fee kept by a commission rider
    commission_percentage: Mapped[Decimal | None] = mapped_column(
        Numeric(5, 2), nullable=True
    )
    fixed_salary_cents: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<Rider {self.name} ({self.pay_type.value})>"
