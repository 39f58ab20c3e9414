"""
Pydantic schemas for settlement operations.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from marketplace_ledger.models.enums import EntityType, PayType, SettlementStatus


class SettlementFigures(BaseModel):
    """
    Money totals for one entity over one period.

    Produced only by the settlement computer. Frozen, so two
    computations over the same inputs compare equal and a stored
    settlement can be checked against a fresh preview.
    """
    entity_type: EntityType
    entity_id: int
    period_start: date
    period_end: date
    total_orders: int = 0

    # Restaurant
    gross_sales_cents: int = 0
    commission_percentage: Decimal | None = None
    commission_cents: int = 0

    # Rider
    pay_type: PayType | None = None
    delivery_fees_cents: int = 0
    bonuses_cents: int = 0
    fuel_reimbursement_cents: int = 0
    fixed_salary_cents: int = 0
    # Informational: already in the rider's hands, never part of the payout
    cash_collected_cents: int = 0
    pos_collected_cents: int = 0
    yape_plin_collected_cents: int = 0

    net_payout_cents: int = 0

    model_config = {"frozen": True}


# --- Request Schemas ---

class SettlementPeriod(BaseModel):
    entity_type: EntityType
    entity_id: int
    period_start: date
    period_end: date
    fuel_reimbursement_cents: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def period_must_be_ordered(self):
        if self.period_end < self.period_start:
            raise ValueError("period_end must not precede period_start")
        return self


class SettlementCreate(SettlementPeriod):
    notes: str | None = Field(default=None, max_length=500)


class DisputeRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=500)


class FuelAdjustment(BaseModel):
    fuel_reimbursement_cents: int = Field(ge=0)


# --- Response Schemas ---

class SettlementPreview(BaseModel):
    figures: SettlementFigures
    has_overlap: bool
    overlap_period: str | None = None


class SettlementResponse(BaseModel):
    id: int
    entity_type: EntityType
    entity_id: int
    period_start: date
    period_end: date
    status: SettlementStatus
    total_orders: int
    gross_sales_cents: int
    commission_percentage: Decimal | None
    commission_cents: int
    delivery_fees_cents: int
    bonuses_cents: int
    fuel_reimbursement_cents: int
    fixed_salary_cents: int
    cash_collected_cents: int
    pos_collected_cents: int
    yape_plin_collected_cents: int
    net_payout_cents: int
    paid_at: datetime | None
    notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
