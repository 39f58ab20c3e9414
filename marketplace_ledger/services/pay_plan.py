"""
Rider pay plans.

A rider is paid either a share of delivery activity or a fixed
salary, never both. The settlement computer branches on the plan
type instead of on nullable rider columns.
"""

from dataclasses import dataclass
from decimal import Decimal

from marketplace_ledger.errors import ValidationError
from marketplace_ledger.models import PayType, Rider


@dataclass(frozen=True)
class Commission:
    percentage: Decimal


@dataclass(frozen=True)
class FixedSalary:
    amount_cents: int


PayPlan = Commission | FixedSalary


def pay_plan_for(rider: Rider) -> PayPlan:
    """Build the pay plan from the rider's identity record."""
    if rider.pay_type == PayType.FIXED_SALARY:
        if rider.fixed_salary_cents is None or rider.fixed_salary_cents < 0:
            raise ValidationError(f"Rider {rider.id} has no valid fixed salary")
        return FixedSalary(amount_cents=rider.fixed_salary_cents)
    return Commission(percentage=rider.commission_percentage or Decimal("0"))
