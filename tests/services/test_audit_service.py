"""
Tests for the audit trail.
"""

import logging
from datetime import date

from marketplace_ledger.models import ActorRole, AuditLog
from marketplace_ledger.schemas.actor import Actor
from marketplace_ledger.services.audit_service import AuditEvent, AuditService


AGENT = Actor(id=7, role=ActorRole.AGENT)


class TestAuditService:

    def test_emit_stores_event(self, db_session):
        service = AuditService(db_session)
        service.emit(
            AuditEvent.RECHARGE_CODE_ISSUED, AGENT, "recharge_code", 42,
            after={"amount_cents": 5000, "issued_on": date(2025, 3, 10)},
        )
        db_session.commit()

        event = db_session.query(AuditLog).one()
        assert event.event_type == "RECHARGE_CODE_ISSUED"
        assert event.actor_id == 7
        assert event.actor_role == "agent"
        assert event.entity_id == "42"
        assert event.after == {"amount_cents": 5000, "issued_on": "2025-03-10"}
        assert event.before is None

    def test_event_rolls_back_with_transaction(self, db_session):
        AuditService(db_session).emit(
            AuditEvent.SETTLEMENT_PAID, AGENT, "settlement", 1,
        )
        db_session.rollback()

        assert db_session.query(AuditLog).count() == 0

    def test_emit_logs_event(self, db_session, caplog):
        with caplog.at_level(logging.INFO, logger="marketplace_ledger.services.audit_service"):
            AuditService(db_session).emit(
                AuditEvent.SETTLEMENT_PAID, AGENT, "settlement", 3,
            )
        assert "SETTLEMENT_PAID settlement:3 by agent:7" in caplog.text

    def test_get_events_filters_by_entity(self, db_session):
        service = AuditService(db_session)
        service.emit(AuditEvent.SETTLEMENT_CREATED, AGENT, "settlement", 1)
        service.emit(AuditEvent.SETTLEMENT_PAID, AGENT, "settlement", 1)
        service.emit(AuditEvent.SETTLEMENT_CREATED, AGENT, "settlement", 2)
        db_session.commit()

        events = service.get_events(entity_type="settlement", entity_id=1)
        assert [e.event_type for e in events] == ["SETTLEMENT_PAID", "SETTLEMENT_CREATED"]
