"""
Pydantic schemas for daily cash reconciliation.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field

from marketplace_ledger.models.enums import ReportStatus


class ExpectedTotals(BaseModel):
    """What the rider should hold, from delivered orders of the day."""
    total_deliveries: int = 0
    expected_cash_cents: int = 0
    expected_pos_cents: int = 0
    expected_yape_plin_cents: int = 0

    model_config = {"frozen": True}


# --- Request Schemas ---

class ShiftEvent(BaseModel):
    at: datetime | None = None


class ReportSubmit(BaseModel):
    declared_cash_cents: int = Field(ge=0)
    declared_pos_cents: int = Field(default=0, ge=0)
    declared_yape_plin_cents: int = Field(default=0, ge=0)
    notes: str | None = Field(default=None, max_length=500)


class ReportReview(BaseModel):
    admin_notes: str | None = Field(default=None, max_length=500)


# --- Response Schemas ---

class DailyReportResponse(BaseModel):
    id: int
    rider_id: int
    report_date: date
    status: ReportStatus
    shift_started_at: datetime | None
    shift_ended_at: datetime | None
    total_deliveries: int
    declared_cash_cents: int
    declared_pos_cents: int
    declared_yape_plin_cents: int
    expected_cash_cents: int
    expected_pos_cents: int
    expected_yape_plin_cents: int
    cash_discrepancy_cents: int
    has_discrepancy: bool
    notes: str | None
    admin_notes: str | None
    submitted_at: datetime | None
    reviewed_at: datetime | None

    model_config = {"from_attributes": True}


class DailyReportView(BaseModel):
    """Stored report next to the live expected totals for the day."""
    report: DailyReportResponse | None
    live_expected: ExpectedTotals
