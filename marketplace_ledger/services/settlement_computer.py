"""
Settlement computation.

The functions at module level are pure: they take order snapshots
and pay configuration and return SettlementFigures. Nothing here
reads the clock or writes to the database, so a preview and the
settlement created from it always agree.

Money rules:
- Restaurant: gross = sum of subtotals, commission is the platform's
  percentage of gross rounded half up to a whole cent, net = gross - commission.
- Commission rider: net = delivery fees + rider bonuses + fuel.
- Fixed-salary rider: net = salary + rider bonuses + fuel.
- What a rider collected from customers (cash, POS, Yape/Plin) is
  reported next to the payout, never added to it.
"""

from collections.abc import Iterable
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

from marketplace_ledger.errors import NotFound, ValidationError
from marketplace_ledger.models import (
    EntityType,
    Order,
    PaymentMethod,
    PayType,
    Restaurant,
    Rider,
)
from marketplace_ledger.schemas.settlement import SettlementFigures
from marketplace_ledger.services.order_service import OrderReader
from marketplace_ledger.services.pay_plan import Commission, FixedSalary, PayPlan, pay_plan_for

PAYMENT_GROUPS = {
    PaymentMethod.CASH: "cash",
    PaymentMethod.POS: "pos",
    PaymentMethod.YAPE: "yape_plin",
    PaymentMethod.PLIN: "yape_plin",
}


def round_half_up(value: Decimal) -> int:
    """Round to a whole number of cents, halves away from zero."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def collected_by_group(orders: Iterable[Order]) -> dict[str, int]:
    """Sum order totals into cash / pos / yape_plin buckets."""
    totals = {"cash": 0, "pos": 0, "yape_plin": 0}
    for order in orders:
        totals[PAYMENT_GROUPS[order.effective_payment_method]] += order.total_cents
    return totals


def validate_period(period_start: date, period_end: date) -> None:
    if period_end < period_start:
        raise ValidationError(
            f"period_end {period_end} precedes period_start {period_start}"
        )


def compute_restaurant_figures(
    restaurant_id: int,
    period_start: date,
    period_end: date,
    orders: list[Order],
    commission_percentage: Decimal,
) -> SettlementFigures:
    validate_period(period_start, period_end)

    percentage = Decimal(commission_percentage or 0)
    gross = sum(order.subtotal_cents for order in orders)
    commission = round_half_up(Decimal(gross) * percentage / Decimal(100))

    return SettlementFigures(
        entity_type=EntityType.RESTAURANT,
        entity_id=restaurant_id,
        period_start=period_start,
        period_end=period_end,
        total_orders=len(orders),
        gross_sales_cents=gross,
        commission_percentage=percentage,
        commission_cents=commission,
        net_payout_cents=gross - commission,
    )


def compute_rider_figures(
    rider_id: int,
    period_start: date,
    period_end: date,
    orders: list[Order],
    plan: PayPlan,
    fuel_reimbursement_cents: int = 0,
) -> SettlementFigures:
    validate_period(period_start, period_end)
    if fuel_reimbursement_cents < 0:
        raise ValidationError("fuel_reimbursement_cents must not be negative")

    delivery_fees = sum(order.delivery_fee_cents for order in orders)
    bonuses = sum(order.rider_bonus_cents for order in orders)
    collected = collected_by_group(orders)

    if isinstance(plan, FixedSalary):
        pay_type = PayType.FIXED_SALARY
        fixed_salary = plan.amount_cents
        net = fixed_salary + bonuses + fuel_reimbursement_cents
    elif isinstance(plan, Commission):
        pay_type = PayType.COMMISSION
        fixed_salary = 0
        net = delivery_fees + bonuses + fuel_reimbursement_cents
    else:
        raise ValidationError(f"Unknown pay plan {plan!r}")

    return SettlementFigures(
        entity_type=EntityType.RIDER,
        entity_id=rider_id,
        period_start=period_start,
        period_end=period_end,
        total_orders=len(orders),
        pay_type=pay_type,
        delivery_fees_cents=delivery_fees,
        bonuses_cents=bonuses,
        fuel_reimbursement_cents=fuel_reimbursement_cents,
        fixed_salary_cents=fixed_salary,
        cash_collected_cents=collected["cash"],
        pos_collected_cents=collected["pos"],
        yape_plin_collected_cents=collected["yape_plin"],
        net_payout_cents=net,
    )


class SettlementComputer:
    """Loads profile and orders, then delegates to the pure functions."""

    def __init__(self, db: Session):
        self.db = db
        self.orders = OrderReader(db)

    def compute(
        self,
        entity_type: EntityType,
        entity_id: int,
        period_start: date,
        period_end: date,
        fuel_reimbursement_cents: int = 0,
    ) -> SettlementFigures:
        validate_period(period_start, period_end)

        if entity_type == EntityType.RESTAURANT:
            if fuel_reimbursement_cents:
                raise ValidationError("Fuel reimbursement only applies to riders")
            restaurant = self.db.get(Restaurant, entity_id)
            if not restaurant:
                raise NotFound(f"Restaurant {entity_id} not found")
            orders = self.orders.delivered_for_restaurant(
                entity_id, period_start, period_end
            )
            return compute_restaurant_figures(
                entity_id, period_start, period_end, orders,
                restaurant.commission_percentage,
            )

        rider = self.db.get(Rider, entity_id)
        if not rider:
            raise NotFound(f"Rider {entity_id} not found")
        orders = self.orders.delivered_for_rider(entity_id, period_start, period_end)
        return compute_rider_figures(
            entity_id, period_start, period_end, orders,
            pay_plan_for(rider), fuel_reimbursement_cents,
        )
