"""
Audit trail.

Every mutating operation in the ledger, recharge, settlement and
reconciliation services reports itself here. The event is added
to the caller's session, so it commits or rolls back together
with the change it describes, and is mirrored to the log.
"""

import logging

from pydantic_core import to_jsonable_python
from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace_ledger.models.audit_log import AuditLog
from marketplace_ledger.schemas.actor import Actor

logger = logging.getLogger(__name__)


class AuditEvent:
    """Standardized audit event constants."""
    ACCOUNT_OPENED = "ACCOUNT_OPENED"
    CREDIT_DEPOSITED = "CREDIT_DEPOSITED"
    CREDIT_DEBITED = "CREDIT_DEBITED"
    DELIVERY_CREDITS_PROCESSED = "DELIVERY_CREDITS_PROCESSED"

    RECHARGE_CODE_ISSUED = "RECHARGE_CODE_ISSUED"
    RECHARGE_CODE_REDEEMED = "RECHARGE_CODE_REDEEMED"
    RECHARGE_CODE_VOIDED = "RECHARGE_CODE_VOIDED"

    RESTAURANT_LIQUIDATED = "RESTAURANT_LIQUIDATED"

    SETTLEMENT_CREATED = "SETTLEMENT_CREATED"
    SETTLEMENT_PAID = "SETTLEMENT_PAID"
    SETTLEMENT_DISPUTED = "SETTLEMENT_DISPUTED"
    SETTLEMENT_REOPENED = "SETTLEMENT_REOPENED"
    SETTLEMENT_FUEL_ADJUSTED = "SETTLEMENT_FUEL_ADJUSTED"

    DAILY_REPORT_OPENED = "DAILY_REPORT_OPENED"
    DAILY_REPORT_SHIFT_CLOSED = "DAILY_REPORT_SHIFT_CLOSED"
    DAILY_REPORT_SUBMITTED = "DAILY_REPORT_SUBMITTED"
    DAILY_REPORT_APPROVED = "DAILY_REPORT_APPROVED"
    DAILY_REPORT_REJECTED = "DAILY_REPORT_REJECTED"


class AuditService:

    def __init__(self, db: Session):
        self.db = db

    def emit(
        self,
        event_type: str,
        actor: Actor,
        entity_type: str,
        entity_id,
        before: dict | None = None,
        after: dict | None = None,
    ) -> AuditLog:
        """Record one event in the current transaction."""
        event = AuditLog(
            event_type=event_type,
            actor_id=actor.id,
            actor_role=actor.role.value,
            entity_type=entity_type,
            entity_id=str(entity_id),
            before=to_jsonable_python(before) if before is not None else None,
            after=to_jsonable_python(after) if after is not None else None,
        )
        self.db.add(event)
        logger.info(
            "%s %s:%s by %s:%s",
            event_type, entity_type, entity_id, actor.role.value, actor.id,
        )
        return event

    def get_events(
        self,
        entity_type: str | None = None,
        entity_id=None,
        limit: int = 100,
    ) -> list[AuditLog]:
        """Return events, newest first, optionally for one entity."""
        query = select(AuditLog).order_by(AuditLog.id.desc()).limit(limit)
        if entity_type is not None:
            query = query.where(AuditLog.entity_type == entity_type)
        if entity_id is not None:
            query = query.where(AuditLog.entity_id == str(entity_id))
        return list(self.db.execute(query).scalars().all())
