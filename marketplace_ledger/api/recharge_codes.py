"""
Recharge code API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from marketplace_ledger.api.deps import get_actor
from marketplace_ledger.errors import LedgerError
from marketplace_ledger.models.base import get_db
from marketplace_ledger.models.enums import RechargeCodeStatus
from marketplace_ledger.schemas.actor import Actor
from marketplace_ledger.schemas.recharge import (
    RechargeCodeIssue,
    RechargeCodeResponse,
    RedeemRequest,
    RedeemResponse,
    VoidRequest,
)
from marketplace_ledger.recharge_tokens import format_code
from marketplace_ledger.services.recharge_service import RechargeService

router = APIRouter(prefix="/recharge-codes", tags=["Recharge Codes"])


@router.post("", response_model=RechargeCodeResponse, status_code=201)
def issue_code(
    request: RechargeCodeIssue,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """Issue a pending recharge code."""
    service = RechargeService(db)
    try:
        recharge = service.issue(request, actor)
        db.commit()
        return recharge
    except LedgerError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("", response_model=list[RechargeCodeResponse])
def list_codes(
    status: RechargeCodeStatus | None = None,
    rider_id: int | None = None,
    limit: int = 50,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """Codes newest first. Agents only see their own."""
    service = RechargeService(db)
    try:
        return service.list_codes(actor, status=status, rider_id=rider_id, limit=limit)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/redeem", response_model=RedeemResponse)
def redeem_code(
    request: RedeemRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """
    Redeem a code into the rider's credit account.

    The code flip and the deposit commit together.
    """
    service = RechargeService(db)
    try:
        balance = service.redeem(request.code, request.rider_id, actor)
        recharge = service.get_code(request.code)
        db.commit()
    except LedgerError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return RedeemResponse(
        code=format_code(recharge.code),
        amount_cents=recharge.amount_cents,
        new_balance_cents=balance,
    )


@router.post("/{code}/void", response_model=RechargeCodeResponse)
def void_code(
    code: str,
    request: VoidRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """Void a pending code."""
    service = RechargeService(db)
    try:
        recharge = service.void(code, request.reason, actor)
        db.commit()
        return recharge
    except LedgerError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))
