"""
Credit ledger API endpoints.

The API layer is thin: it resolves the actor, calls the service,
and owns the transaction. Business rule violations roll back and
map to the status code carried by the error.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from marketplace_ledger.api.deps import get_actor
from marketplace_ledger.errors import LedgerError
from marketplace_ledger.models.base import get_db
from marketplace_ledger.models.enums import AccountType
from marketplace_ledger.schemas.actor import Actor, ADMIN_ROLES
from marketplace_ledger.schemas.ledger import (
    AccountBalanceResponse,
    AccountOpen,
    AccountResponse,
    AdjustmentRequest,
    BalanceChangeResponse,
    DeliveryCredits,
    LedgerEntryResponse,
    LiquidationRequest,
    LiquidationResponse,
)
from marketplace_ledger.services.delivery_credit_service import DeliveryCreditService
from marketplace_ledger.services.ledger_service import LedgerService, credit_health
from marketplace_ledger.services.liquidation_service import LiquidationService

router = APIRouter(prefix="/credits", tags=["Credits"])


@router.post("/accounts", response_model=AccountResponse, status_code=201)
def open_account(
    request: AccountOpen,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """Open a zero-balance credit account for a rider or restaurant."""
    service = LedgerService(db)
    try:
        account = service.open_account(request.account_type, request.owner_id, actor)
        db.commit()
        return account
    except LedgerError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get(
    "/accounts/{account_type}/{owner_id}",
    response_model=AccountBalanceResponse,
)
def get_balance(
    account_type: AccountType,
    owner_id: int,
    db: Session = Depends(get_db),
):
    """
    Current balance, verified against the ledger.

    Rider balances also carry their credit health.
    """
    service = LedgerService(db)
    try:
        account = service.get_account(account_type, owner_id)
        balance = service.get_balance(account)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return AccountBalanceResponse(
        account_id=account.id,
        account_type=account.account_type,
        owner_id=account.owner_id,
        balance_cents=balance,
        health=credit_health(balance) if account_type == AccountType.RIDER else None,
    )


@router.get(
    "/accounts/{account_type}/{owner_id}/entries",
    response_model=list[LedgerEntryResponse],
)
def get_entries(
    account_type: AccountType,
    owner_id: int,
    limit: int = 50,
    db: Session = Depends(get_db),
):
    """Ledger history for one account, newest first."""
    service = LedgerService(db)
    try:
        account = service.get_account(account_type, owner_id)
        return service.get_entries(account, limit=limit)
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/adjustments", response_model=BalanceChangeResponse, status_code=201)
def adjust_balance(
    request: AdjustmentRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """Owner-only signed correction."""
    service = LedgerService(db)
    try:
        balance = service.adjust(
            request.account_type,
            request.owner_id,
            request.amount_cents,
            request.notes,
            actor,
        )
        db.commit()
    except LedgerError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return BalanceChangeResponse(
        account_type=request.account_type,
        owner_id=request.owner_id,
        amount_cents=request.amount_cents,
        new_balance_cents=balance,
    )


@router.post("/liquidations", response_model=LiquidationResponse, status_code=201)
def liquidate_restaurant(
    request: LiquidationRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """Pay out restaurant credits and debit its account."""
    service = LiquidationService(db)
    try:
        liquidation = service.liquidate(request, actor)
        db.commit()
        return liquidation
    except LedgerError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post(
    "/deliveries/{order_id}", response_model=DeliveryCredits, status_code=201
)
def process_delivery(
    order_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """Post the rider debits and restaurant credit for a delivered order."""
    service = DeliveryCreditService(db)
    try:
        result = service.process_delivery(order_id, actor)
        db.commit()
        return result
    except LedgerError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/integrity")
def check_integrity(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """Compare every cached balance with its ledger sum."""
    try:
        actor.require(ADMIN_ROLES, "run integrity checks")
    except LedgerError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return LedgerService(db).check_integrity()
