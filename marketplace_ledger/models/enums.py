"""
Shared enumerations for database models.

Values are the lowercase strings used on the wire, so an enum
member can be dropped straight into a JSON response.
"""

import enum


class AccountType(str, enum.Enum):
    """Who owns a credit account."""
    RIDER = "rider"
    RESTAURANT = "restaurant"


class EntityType(str, enum.Enum):
    """Who a settlement pays."""
    RIDER = "rider"
    RESTAURANT = "restaurant"


class LedgerReason(str, enum.Enum):
    """Why a ledger entry was posted."""
    RECHARGE = "recharge"
    ORDER_FOOD_DEBIT = "order_food_debit"
    ORDER_COMMISSION_DEBIT = "order_commission_debit"
    ORDER_CREDIT = "order_credit"
    LIQUIDATION = "liquidation"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"


class RechargeCodeStatus(str, enum.Enum):
    PENDING = "pending"
    REDEEMED = "redeemed"
    VOIDED = "voided"


class SettlementStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    DISPUTED = "disputed"


class ReportStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class PayType(str, enum.Enum):
    COMMISSION = "commission"
    FIXED_SALARY = "fixed_salary"


class PaymentMethod(str, enum.Enum):
    """How the customer paid for an order."""
    CASH = "cash"
    POS = "pos"
    YAPE = "yape"
    PLIN = "plin"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    PICKED_UP = "picked_up"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class LiquidationMethod(str, enum.Enum):
    """How a restaurant liquidation was paid out."""
    YAPE = "yape"
    PLIN = "plin"
    TRANSFER = "transfer"
    CASH = "cash"


class ActorRole(str, enum.Enum):
    OWNER = "owner"
    CITY_ADMIN = "city_admin"
    AGENT = "agent"
    RIDER = "rider"
    RESTAURANT = "restaurant"
    SYSTEM = "system"
