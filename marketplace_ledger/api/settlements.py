"""
Settlement API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from marketplace_ledger.api.deps import get_actor
from marketplace_ledger.errors import LedgerError
from marketplace_ledger.models.base import get_db
from marketplace_ledger.models.enums import EntityType, SettlementStatus
from marketplace_ledger.schemas.actor import Actor
from marketplace_ledger.schemas.settlement import (
    DisputeRequest,
    FuelAdjustment,
    SettlementCreate,
    SettlementPeriod,
    SettlementPreview,
    SettlementResponse,
)
from marketplace_ledger.services.settlement_service import SettlementService

router = APIRouter(prefix="/settlements", tags=["Settlements"])


@router.post("/preview", response_model=SettlementPreview)
def preview_settlement(
    request: SettlementPeriod,
    db: Session = Depends(get_db),
):
    """Compute figures for a period without saving anything."""
    service = SettlementService(db)
    try:
        return service.preview(request)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("", response_model=SettlementResponse, status_code=201)
def create_settlement(
    request: SettlementCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """
    Create a settlement for a period.

    Retrying the same request returns 409 instead of a second row.
    """
    service = SettlementService(db)
    try:
        settlement = service.create(request, actor)
        db.commit()
        return settlement
    except LedgerError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("", response_model=list[SettlementResponse])
def list_settlements(
    entity_type: EntityType | None = None,
    entity_id: int | None = None,
    status: SettlementStatus | None = None,
    limit: int = 50,
    db: Session = Depends(get_db),
):
    service = SettlementService(db)
    return service.list_settlements(
        entity_type=entity_type, entity_id=entity_id, status=status, limit=limit,
    )


@router.get("/{settlement_id}", response_model=SettlementResponse)
def get_settlement(
    settlement_id: int,
    db: Session = Depends(get_db),
):
    service = SettlementService(db)
    try:
        return service.get(settlement_id)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{settlement_id}/paid", response_model=SettlementResponse)
def mark_paid(
    settlement_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    service = SettlementService(db)
    try:
        settlement = service.mark_paid(settlement_id, actor)
        db.commit()
        return settlement
    except LedgerError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{settlement_id}/disputed", response_model=SettlementResponse)
def mark_disputed(
    settlement_id: int,
    request: DisputeRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    service = SettlementService(db)
    try:
        settlement = service.mark_disputed(settlement_id, actor, request.notes)
        db.commit()
        return settlement
    except LedgerError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{settlement_id}/reopen", response_model=SettlementResponse)
def reopen(
    settlement_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    service = SettlementService(db)
    try:
        settlement = service.reopen(settlement_id, actor)
        db.commit()
        return settlement
    except LedgerError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{settlement_id}/fuel", response_model=SettlementResponse)
def adjust_fuel(
    settlement_id: int,
    request: FuelAdjustment,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """Replace fuel reimbursement and recompute the rider's payout."""
    service = SettlementService(db)
    try:
        settlement = service.adjust_fuel_reimbursement(
            settlement_id, request.fuel_reimbursement_cents, actor
        )
        db.commit()
        return settlement
    except LedgerError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))
