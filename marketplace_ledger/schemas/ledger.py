"""
Pydantic schemas for credit ledger operations.

These define the API contract — what data comes in,
what data goes out. They are separate from the database
models because the API shape and the storage shape
are often different.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from marketplace_ledger.models.enums import (
    AccountType,
    LedgerReason,
    LiquidationMethod,
)


# --- Request Schemas ---

class AccountOpen(BaseModel):
    account_type: AccountType
    owner_id: int


class AdjustmentRequest(BaseModel):
    """Manual signed correction of a credit balance."""
    account_type: AccountType
    owner_id: int
    amount_cents: int
    notes: str = Field(min_length=5, max_length=255)

    @field_validator("amount_cents")
    @classmethod
    def amount_must_be_non_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("amount_cents must be non-zero")
        return v

    @field_validator("notes")
    @classmethod
    def notes_must_not_be_blank(cls, v: str) -> str:
        if len(v.strip()) < 5:
            raise ValueError("notes must have at least 5 characters")
        return v.strip()


class LiquidationRequest(BaseModel):
    restaurant_id: int
    amount_cents: int = Field(gt=0)
    payment_method: LiquidationMethod
    proof_url: str | None = Field(default=None, max_length=500)
    notes: str | None = Field(default=None, max_length=255)
    liquidation_date: date | None = None


# --- Response Schemas ---

class AccountResponse(BaseModel):
    id: int
    account_type: AccountType
    owner_id: int
    balance_cents: int
    created_at: datetime

    model_config = {"from_attributes": True}


class CreditHealth(BaseModel):
    balance_cents: int
    status: str
    can_receive_cash_orders: bool


class AccountBalanceResponse(BaseModel):
    account_id: int
    account_type: AccountType
    owner_id: int
    balance_cents: int
    health: CreditHealth | None = None


class LedgerEntryResponse(BaseModel):
    id: int
    account_id: int
    delta_cents: int
    balance_after_cents: int
    reason: LedgerReason
    ref_id: str | None
    notes: str | None
    created_by: int | None
    created_at: datetime

    model_config = {"from_attributes": True}


class BalanceChangeResponse(BaseModel):
    account_type: AccountType
    owner_id: int
    amount_cents: int
    new_balance_cents: int


class LiquidationResponse(BaseModel):
    id: int
    restaurant_id: int
    liquidation_date: date
    amount_cents: int
    balance_before_cents: int
    payment_method: LiquidationMethod
    proof_url: str | None
    notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class DeliveryCredits(BaseModel):
    """Credit movements posted for one delivered order."""
    order_id: int
    restaurant_commission_cents: int
    platform_delivery_share_cents: int
    rider_delivery_share_cents: int
    rider_food_debit_cents: int
    rider_commission_debit_cents: int
    restaurant_credit_cents: int
    rider_balance_cents: int | None = None
