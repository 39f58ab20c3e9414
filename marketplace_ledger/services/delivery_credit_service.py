"""
Delivery credit processing.

Runs once per order as the orders collaborator marks it delivered:

1. Restaurant commission = platform percentage of the subtotal
2. The delivery fee is split between the rider and the platform
3. A commission rider who collected cash owes the food cost and
   the platform's delivery share; both are debited from credits
4. The restaurant is credited subtotal - commission

Digital payments never touch rider credits, and fixed-salary riders
do not hold credits at all. Every amount is posted through
LedgerService, so a rider without enough credits fails the whole
delivery with InsufficientBalance instead of going negative.
"""

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace_ledger.errors import Conflict, NotFound, ValidationError
from marketplace_ledger.models import (
    AccountType,
    ActorRole,
    LedgerEntry,
    LedgerReason,
    Order,
    OrderStatus,
    PaymentMethod,
    PayType,
    Restaurant,
    Rider,
)
from marketplace_ledger.schemas.actor import Actor, STAFF_ROLES
from marketplace_ledger.schemas.ledger import DeliveryCredits
from marketplace_ledger.services.audit_service import AuditEvent, AuditService
from marketplace_ledger.services.ledger_service import LedgerService
from marketplace_ledger.services.settlement_computer import round_half_up

logger = logging.getLogger(__name__)

PROCESSABLE_STATUSES = {OrderStatus.PICKED_UP, OrderStatus.DELIVERED}


def delivery_split(delivery_fee_cents: int, rider: Rider) -> tuple[int, int]:
    """
    Split a delivery fee into (platform share, rider share).

    A commission rider keeps their percentage of the fee; the
    platform keeps the whole fee of a fixed-salary rider.
    """
    if rider.pay_type == PayType.COMMISSION:
        percentage = Decimal(rider.commission_percentage or 0)
        rider_share = round_half_up(
            Decimal(delivery_fee_cents) * percentage / Decimal(100)
        )
        return delivery_fee_cents - rider_share, rider_share
    return delivery_fee_cents, 0


class DeliveryCreditService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger = LedgerService(db)
        self.audit = AuditService(db)

    def _already_processed(self, order: Order) -> bool:
        return self.db.execute(
            select(LedgerEntry.id)
            .where(LedgerEntry.ref_id == f"order:{order.id}")
            .limit(1)
        ).first() is not None

    def process_delivery(self, order_id: int, actor: Actor) -> DeliveryCredits:
        """
        Post the credit movements for one delivered order.

        Raises Conflict if the order was already processed and
        InsufficientBalance if a cash rider cannot cover the debit.
        """
        actor.require(STAFF_ROLES | {ActorRole.SYSTEM}, "process delivery credits")

        # Locked so two calls for one order cannot both pass the
        # already-processed check.
        order = self.db.execute(
            select(Order).where(Order.id == order_id).with_for_update()
        ).scalar_one_or_none()
        if not order:
            raise NotFound(f"Order {order_id} not found")
        if order.status not in PROCESSABLE_STATUSES:
            raise ValidationError(
                f"Order {order.code} is {order.status.value} and cannot be processed"
            )
        if order.rider_id is None:
            raise ValidationError(f"Order {order.code} has no rider assigned")
        if self._already_processed(order):
            raise Conflict(f"Order {order.code} credits were already processed")

        restaurant = self.db.get(Restaurant, order.restaurant_id)
        if not restaurant:
            raise NotFound(f"Restaurant {order.restaurant_id} not found")
        rider = self.db.get(Rider, order.rider_id)
        if not rider:
            raise NotFound(f"Rider {order.rider_id} not found")

        commission = round_half_up(
            Decimal(order.subtotal_cents)
            * Decimal(restaurant.commission_percentage or 0)
            / Decimal(100)
        )
        platform_share, rider_share = delivery_split(order.delivery_fee_cents, rider)
        ref_id = f"order:{order.id}"

        food_debit = 0
        commission_debit = 0
        rider_balance = None
        is_cash = order.effective_payment_method == PaymentMethod.CASH
        if rider.pay_type == PayType.COMMISSION and is_cash:
            rider_account = self.ledger.get_account(AccountType.RIDER, rider.id)
            food_debit = order.subtotal_cents
            commission_debit = platform_share
            if food_debit > 0:
                rider_balance = self.ledger.debit(
                    rider_account, food_debit, LedgerReason.ORDER_FOOD_DEBIT,
                    actor, ref_id=ref_id, notes=f"Food cost of order {order.code}",
                )
            if commission_debit > 0:
                rider_balance = self.ledger.debit(
                    rider_account, commission_debit,
                    LedgerReason.ORDER_COMMISSION_DEBIT, actor, ref_id=ref_id,
                    notes=f"Platform delivery share of order {order.code}",
                )

        restaurant_credit = order.subtotal_cents - commission
        if restaurant_credit > 0:
            restaurant_account = self.ledger.get_account(
                AccountType.RESTAURANT, restaurant.id
            )
            self.ledger.deposit(
                restaurant_account, restaurant_credit, LedgerReason.ORDER_CREDIT,
                actor, ref_id=ref_id, notes=f"Credit for order {order.code}",
            )

        result = DeliveryCredits(
            order_id=order.id,
            restaurant_commission_cents=commission,
            platform_delivery_share_cents=platform_share,
            rider_delivery_share_cents=rider_share,
            rider_food_debit_cents=food_debit,
            rider_commission_debit_cents=commission_debit,
            restaurant_credit_cents=restaurant_credit,
            rider_balance_cents=rider_balance,
        )
        self.audit.emit(
            AuditEvent.DELIVERY_CREDITS_PROCESSED, actor, "order", order.id,
            after=result.model_dump(),
        )
        self.db.flush()

        logger.info(
            "Processed credits for order %s: rider -%s, restaurant +%s",
            order.code, food_debit + commission_debit, restaurant_credit,
        )
        return result
