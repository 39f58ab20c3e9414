"""Business logic services."""

from marketplace_ledger.services.audit_service import AuditService
from marketplace_ledger.services.delivery_credit_service import DeliveryCreditService
from marketplace_ledger.services.ledger_service import LedgerService
from marketplace_ledger.services.liquidation_service import LiquidationService
from marketplace_ledger.services.recharge_service import RechargeService
from marketplace_ledger.services.reconciliation_service import ReconciliationService
from marketplace_ledger.services.settlement_computer import SettlementComputer
from marketplace_ledger.services.settlement_service import SettlementService

__all__ = [
    "AuditService",
    "DeliveryCreditService",
    "LedgerService",
    "LiquidationService",
    "RechargeService",
    "ReconciliationService",
    "SettlementComputer",
    "SettlementService",
]
