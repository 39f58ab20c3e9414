"""
Daily reconciliation API endpoints.
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from marketplace_ledger.api.deps import get_actor
from marketplace_ledger.errors import LedgerError
from marketplace_ledger.models.base import get_db
from marketplace_ledger.schemas.actor import Actor
from marketplace_ledger.schemas.reconciliation import (
    DailyReportResponse,
    DailyReportView,
    ReportReview,
    ReportSubmit,
    ShiftEvent,
)
from marketplace_ledger.services.reconciliation_service import ReconciliationService

router = APIRouter(prefix="/daily-reports", tags=["Daily Reports"])


@router.get("/{rider_id}/{report_date}", response_model=DailyReportView)
def get_report(
    rider_id: int,
    report_date: date,
    db: Session = Depends(get_db),
):
    """Stored report (if any) next to what the day's orders say."""
    service = ReconciliationService(db)
    report = service.get_report(rider_id, report_date)
    return DailyReportView(
        report=DailyReportResponse.model_validate(report) if report else None,
        live_expected=service.compute_expected(rider_id, report_date),
    )


@router.post(
    "/{rider_id}/{report_date}/open",
    response_model=DailyReportResponse,
    status_code=201,
)
def open_report(
    rider_id: int,
    report_date: date,
    request: ShiftEvent,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    service = ReconciliationService(db)
    try:
        report = service.open_report(rider_id, report_date, actor, request.at)
        db.commit()
        return report
    except LedgerError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{rider_id}/{report_date}/close-shift", response_model=DailyReportResponse)
def close_shift(
    rider_id: int,
    report_date: date,
    request: ShiftEvent,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    service = ReconciliationService(db)
    try:
        report = service.close_shift(rider_id, report_date, actor, request.at)
        db.commit()
        return report
    except LedgerError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{rider_id}/{report_date}/submit", response_model=DailyReportResponse)
def submit_report(
    rider_id: int,
    report_date: date,
    request: ReportSubmit,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """Rider declares what they collected."""
    service = ReconciliationService(db)
    try:
        report = service.submit(rider_id, report_date, request, actor)
        db.commit()
        return report
    except LedgerError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{rider_id}/{report_date}/approve", response_model=DailyReportResponse)
def approve_report(
    rider_id: int,
    report_date: date,
    request: ReportReview,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    service = ReconciliationService(db)
    try:
        report = service.approve(rider_id, report_date, actor, request.admin_notes)
        db.commit()
        return report
    except LedgerError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{rider_id}/{report_date}/reject", response_model=DailyReportResponse)
def reject_report(
    rider_id: int,
    report_date: date,
    request: ReportReview,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    service = ReconciliationService(db)
    try:
        report = service.reject(rider_id, report_date, request.admin_notes, actor)
        db.commit()
        return report
    except LedgerError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))
