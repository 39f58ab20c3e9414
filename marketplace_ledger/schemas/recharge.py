"""
Pydantic schemas for recharge code operations.
"""

from datetime import datetime

from pydantic import BaseModel, Field, computed_field

from marketplace_ledger.models.enums import RechargeCodeStatus
from marketplace_ledger.recharge_tokens import format_code


class RechargeCodeIssue(BaseModel):
    amount_cents: int = Field(gt=0)
    intended_rider_id: int | None = None
    notes: str | None = Field(default=None, max_length=255)


class RedeemRequest(BaseModel):
    code: str = Field(min_length=1, max_length=32)
    rider_id: int


class VoidRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=255)


class RechargeCodeResponse(BaseModel):
    id: int
    code: str
    amount_cents: int
    status: RechargeCodeStatus
    intended_rider_id: int | None
    created_by: int
    redeemed_by: int | None
    redeemed_at: datetime | None
    voided_at: datetime | None
    void_reason: str | None
    notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def display_code(self) -> str:
        return format_code(self.code)


class RedeemResponse(BaseModel):
    code: str
    amount_cents: int
    new_balance_cents: int
