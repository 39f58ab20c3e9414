"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from marketplace_ledger.models.base import Base
from marketplace_ledger.models.enums import (
    AccountType,
    ActorRole,
    EntityType,
    LedgerReason,
    LiquidationMethod,
    OrderStatus,
    PaymentMethod,
    PayType,
    RechargeCodeStatus,
    ReportStatus,
    SettlementStatus,
)
from marketplace_ledger.models.audit_log import AuditLog
from marketplace_ledger.models.rider import Rider
from marketplace_ledger.models.restaurant import Restaurant
from marketplace_ledger.models.order import Order
from marketplace_ledger.models.account import Account
from marketplace_ledger.models.ledger_entry import LedgerEntry
from marketplace_ledger.models.recharge_code import RechargeCode
from marketplace_ledger.models.settlement import Settlement
from marketplace_ledger.models.daily_report import DailyReport
from marketplace_ledger.models.liquidation import RestaurantLiquidation

__all__ = [
    "Base",
    "AccountType",
    "ActorRole",
    "EntityType",
    "LedgerReason",
    "LiquidationMethod",
    "OrderStatus",
    "PaymentMethod",
    "PayType",
    "RechargeCodeStatus",
    "ReportStatus",
    "SettlementStatus",
    "AuditLog",
    "Rider",
    "Restaurant",
    "Order",
    "Account",
    "LedgerEntry",
    "RechargeCode",
    "Settlement",
    "DailyReport",
    "RestaurantLiquidation",
]
