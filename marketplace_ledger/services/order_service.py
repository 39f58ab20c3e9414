"""
Read-only access to delivered orders.

Orders belong to the orders collaborator. Settlements and daily
reconciliation only ever look at delivered ones, bucketed by the
calendar date of delivery.
"""

from datetime import date, datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace_ledger.models import Order, OrderStatus


def _day_bounds(period_start: date, period_end: date) -> tuple[datetime, datetime]:
    """Half-open datetime range covering the inclusive date range."""
    return (
        datetime.combine(period_start, time.min),
        datetime.combine(period_end + timedelta(days=1), time.min),
    )


class OrderReader:

    def __init__(self, db: Session):
        self.db = db

    def _delivered(self, period_start: date, period_end: date):
        lower, upper = _day_bounds(period_start, period_end)
        return (
            select(Order)
            .where(
                Order.status == OrderStatus.DELIVERED,
                Order.delivered_at >= lower,
                Order.delivered_at < upper,
            )
            .order_by(Order.delivered_at, Order.id)
        )

    def delivered_for_restaurant(
        self, restaurant_id: int, period_start: date, period_end: date
    ) -> list[Order]:
        query = self._delivered(period_start, period_end).where(
            Order.restaurant_id == restaurant_id
        )
        return list(self.db.execute(query).scalars().all())

    def delivered_for_rider(
        self, rider_id: int, period_start: date, period_end: date
    ) -> list[Order]:
        query = self._delivered(period_start, period_end).where(
            Order.rider_id == rider_id
        )
        return list(self.db.execute(query).scalars().all())

    def delivered_for_rider_on(self, rider_id: int, day: date) -> list[Order]:
        return self.delivered_for_rider(rider_id, day, day)
