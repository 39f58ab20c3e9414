"""
Restaurant liquidation.

Restaurants accumulate credits from delivered orders. Staff pay
the balance out periodically; the payout debits the restaurant's
credit account and is recorded with its proof of payment.
"""

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace_ledger.config import get_settings
from marketplace_ledger.errors import Conflict, NotFound, ValidationError
from marketplace_ledger.models import (
    AccountType,
    LedgerReason,
    Restaurant,
    RestaurantLiquidation,
)
from marketplace_ledger.schemas.actor import Actor, STAFF_ROLES
from marketplace_ledger.schemas.ledger import LiquidationRequest
from marketplace_ledger.services.audit_service import AuditEvent, AuditService
from marketplace_ledger.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)


class LiquidationService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger = LedgerService(db)
        self.audit = AuditService(db)

    def liquidate(
        self, request: LiquidationRequest, actor: Actor
    ) -> RestaurantLiquidation:
        actor.require(STAFF_ROLES, "liquidate restaurant credits")

        threshold = get_settings().LIQUIDATION_PROOF_THRESHOLD_CENTS
        if request.amount_cents > threshold and not (request.proof_url or "").strip():
            raise ValidationError(
                f"Proof of payment is required above {threshold} cents"
            )

        restaurant = self.db.get(Restaurant, request.restaurant_id)
        if not restaurant:
            raise NotFound(f"Restaurant {request.restaurant_id} not found")

        liquidation_date = request.liquidation_date or date.today()
        existing = self.db.execute(
            select(RestaurantLiquidation.id).where(
                RestaurantLiquidation.restaurant_id == restaurant.id,
                RestaurantLiquidation.liquidation_date == liquidation_date,
            )
        ).first()
        if existing:
            raise Conflict(
                f"Restaurant {restaurant.id} was already liquidated on {liquidation_date}"
            )

        account = self.ledger.get_account(AccountType.RESTAURANT, restaurant.id)

        # The debit locks the account; balance_before is derived from the
        # locked result so a concurrent deposit cannot make it stale.
        balance_after = self.ledger.debit(
            account,
            request.amount_cents,
            LedgerReason.LIQUIDATION,
            actor,
            ref_id=f"liquidation:{restaurant.id}:{liquidation_date.isoformat()}",
            notes=request.notes,
        )
        balance_before = balance_after + request.amount_cents

        liquidation = RestaurantLiquidation(
            restaurant_id=restaurant.id,
            liquidation_date=liquidation_date,
            amount_cents=request.amount_cents,
            balance_before_cents=balance_before,
            payment_method=request.payment_method,
            proof_url=request.proof_url,
            notes=request.notes,
            created_by=actor.id,
        )
        self.db.add(liquidation)
        try:
            self.db.flush()
        except IntegrityError:
            raise Conflict(
                f"Restaurant {restaurant.id} was already liquidated on {liquidation_date}"
            ) from None

        self.audit.emit(
            AuditEvent.RESTAURANT_LIQUIDATED, actor, "restaurant", restaurant.id,
            before={"balance_cents": balance_before},
            after={
                "balance_cents": balance_after,
                "amount_cents": request.amount_cents,
                "payment_method": request.payment_method.value,
                "liquidation_id": liquidation.id,
            },
        )
        self.db.flush()

        logger.info(
            "Liquidated %s cents for restaurant %s via %s",
            request.amount_cents, restaurant.id, request.payment_method.value,
        )
        return liquidation
