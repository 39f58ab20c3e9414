"""
Tests for the settlement workflow.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.dialects import postgresql

from marketplace_ledger.errors import (
    Conflict,
    Forbidden,
    Immutable,
    NotFound,
    ValidationError,
)
from marketplace_ledger.models import (
    ActorRole,
    AuditLog,
    EntityType,
    PaymentMethod,
    Settlement,
    SettlementStatus,
)
from marketplace_ledger.schemas.actor import Actor
from marketplace_ledger.schemas.settlement import SettlementCreate, SettlementPeriod
from marketplace_ledger.services.settlement_service import (
    SettlementService,
    entity_lock_query,
)


OWNER = Actor(id=1, role=ActorRole.OWNER)
AGENT = Actor(id=7, role=ActorRole.AGENT)


def rider_period(rider, start=date(2025, 3, 1), end=date(2025, 3, 15), fuel=0):
    return SettlementCreate(
        entity_type=EntityType.RIDER,
        entity_id=rider.id,
        period_start=start,
        period_end=end,
        fuel_reimbursement_cents=fuel,
    )


def setup_rider_with_orders(make_restaurant, make_rider, make_order):
    """Helper: commission rider with 24000 in fees and a 500 bonus."""
    restaurant = make_restaurant()
    rider = make_rider()
    make_order(restaurant, rider, delivery_fee_cents=12000, rider_bonus_cents=500,
               delivered_at=datetime(2025, 3, 3, 12, 0))
    make_order(restaurant, rider, delivery_fee_cents=12000,
               delivered_at=datetime(2025, 3, 9, 19, 30))
    return rider


def create(db_session, request, actor=OWNER):
    settlement = SettlementService(db_session).create(request, actor)
    db_session.commit()
    return settlement


class TestPreviewAndCreate:

    def test_preview_matches_created_settlement(
        self, db_session, make_restaurant, make_rider, make_order
    ):
        rider = setup_rider_with_orders(make_restaurant, make_rider, make_order)
        service = SettlementService(db_session)
        request = rider_period(rider, fuel=1000)

        preview = service.preview(request)
        settlement = create(db_session, request)

        assert preview.has_overlap is False
        assert preview.figures.net_payout_cents == 25500
        assert settlement.net_payout_cents == 25500
        assert settlement.delivery_fees_cents == 24000
        assert settlement.bonuses_cents == 500
        assert settlement.fuel_reimbursement_cents == 1000
        assert settlement.status == SettlementStatus.PENDING
        assert settlement.created_by == OWNER.id

    def test_preview_reports_overlap(
        self, db_session, make_restaurant, make_rider, make_order
    ):
        rider = setup_rider_with_orders(make_restaurant, make_rider, make_order)
        create(db_session, rider_period(rider))

        preview = SettlementService(db_session).preview(SettlementPeriod(
            entity_type=EntityType.RIDER, entity_id=rider.id,
            period_start=date(2025, 3, 10), period_end=date(2025, 3, 20),
        ))
        assert preview.has_overlap is True
        assert preview.overlap_period == "2025-03-01 - 2025-03-15"

    def test_repeated_create_conflicts(
        self, db_session, make_restaurant, make_rider, make_order
    ):
        rider = setup_rider_with_orders(make_restaurant, make_rider, make_order)
        create(db_session, rider_period(rider))

        with pytest.raises(Conflict):
            create(db_session, rider_period(rider))
        db_session.rollback()

        assert db_session.query(Settlement).count() == 1

    def test_overlapping_period_conflicts(
        self, db_session, make_restaurant, make_rider, make_order
    ):
        rider = setup_rider_with_orders(make_restaurant, make_rider, make_order)
        create(db_session, rider_period(rider))

        with pytest.raises(Conflict, match="already covers"):
            create(db_session, rider_period(
                rider, start=date(2025, 3, 15), end=date(2025, 3, 31)
            ))

    def test_adjacent_period_allowed(
        self, db_session, make_restaurant, make_rider, make_order
    ):
        rider = setup_rider_with_orders(make_restaurant, make_rider, make_order)
        create(db_session, rider_period(rider))
        second = create(db_session, rider_period(
            rider, start=date(2025, 3, 16), end=date(2025, 3, 31)
        ))
        assert second.total_orders == 0

    def test_other_entity_same_period_allowed(
        self, db_session, make_restaurant, make_rider, make_order
    ):
        rider = setup_rider_with_orders(make_restaurant, make_rider, make_order)
        other = make_rider(name="Other")
        create(db_session, rider_period(rider))
        create(db_session, rider_period(other))

        assert db_session.query(Settlement).count() == 2

    def test_overlap_committed_by_another_session_conflicts(
        self, db_session, other_session, make_restaurant, make_rider, make_order
    ):
        rider = setup_rider_with_orders(make_restaurant, make_rider, make_order)
        SettlementService(other_session).create(rider_period(rider), OWNER)
        other_session.commit()

        with pytest.raises(Conflict, match="already covers"):
            SettlementService(db_session).create(rider_period(
                rider, start=date(2025, 3, 10), end=date(2025, 3, 20)
            ), OWNER)
        db_session.rollback()

        assert db_session.query(Settlement).count() == 1

    def test_create_locks_the_entity_row(self):
        statement = entity_lock_query(EntityType.RIDER, 5)
        sql = str(statement.compile(dialect=postgresql.dialect()))
        assert "FROM riders" in sql
        assert sql.rstrip().endswith("FOR UPDATE")

    def test_unknown_entity_not_found(self, db_session):
        with pytest.raises(NotFound, match="Restaurant 999"):
            create(db_session, SettlementCreate(
                entity_type=EntityType.RESTAURANT,
                entity_id=999,
                period_start=date(2025, 3, 1),
                period_end=date(2025, 3, 15),
            ))

    def test_agent_cannot_create(self, db_session, make_rider):
        rider = make_rider()
        with pytest.raises(Forbidden):
            create(db_session, rider_period(rider), actor=AGENT)

    def test_restaurant_settlement(self, db_session, make_restaurant, make_order):
        restaurant = make_restaurant(commission_percentage=Decimal("10.00"))
        make_order(restaurant, subtotal_cents=100000)

        settlement = create(db_session, SettlementCreate(
            entity_type=EntityType.RESTAURANT, entity_id=restaurant.id,
            period_start=date(2025, 3, 1), period_end=date(2025, 3, 15),
        ))
        assert settlement.commission_cents == 10000
        assert settlement.net_payout_cents == 90000


class TestTransitions:

    def test_pending_to_paid(self, db_session, make_rider):
        settlement = create(db_session, rider_period(make_rider()))
        paid = SettlementService(db_session).mark_paid(settlement.id, OWNER)
        db_session.commit()

        assert paid.status == SettlementStatus.PAID
        assert paid.paid_at is not None

    def test_dispute_then_reopen_then_pay(self, db_session, make_rider):
        settlement = create(db_session, rider_period(make_rider()))
        service = SettlementService(db_session)

        service.mark_disputed(settlement.id, OWNER, notes="Missing two orders")
        assert settlement.status == SettlementStatus.DISPUTED
        assert settlement.notes == "Missing two orders"

        service.reopen(settlement.id, OWNER)
        assert settlement.status == SettlementStatus.PENDING

        service.mark_paid(settlement.id, OWNER)
        assert settlement.status == SettlementStatus.PAID

    def test_disputed_can_be_paid(self, db_session, make_rider):
        settlement = create(db_session, rider_period(make_rider()))
        service = SettlementService(db_session)
        service.mark_disputed(settlement.id, OWNER)

        assert service.mark_paid(settlement.id, OWNER).status == SettlementStatus.PAID

    def test_reopen_pending_is_invalid(self, db_session, make_rider):
        settlement = create(db_session, rider_period(make_rider()))
        with pytest.raises(Conflict, match="pending -> pending"):
            SettlementService(db_session).reopen(settlement.id, OWNER)

    def test_dispute_twice_is_invalid(self, db_session, make_rider):
        settlement = create(db_session, rider_period(make_rider()))
        service = SettlementService(db_session)
        service.mark_disputed(settlement.id, OWNER)

        with pytest.raises(Conflict):
            service.mark_disputed(settlement.id, OWNER)

    @pytest.mark.parametrize("action", ["mark_paid", "mark_disputed", "reopen"])
    def test_paid_is_immutable(self, db_session, make_rider, action):
        settlement = create(db_session, rider_period(make_rider()))
        service = SettlementService(db_session)
        service.mark_paid(settlement.id, OWNER)
        db_session.commit()

        with pytest.raises(Immutable):
            getattr(service, action)(settlement.id, OWNER)

    def test_transitions_are_audited(self, db_session, make_rider):
        settlement = create(db_session, rider_period(make_rider()))
        SettlementService(db_session).mark_paid(settlement.id, OWNER)
        db_session.commit()

        events = db_session.query(AuditLog).filter(
            AuditLog.entity_type == "settlement"
        ).order_by(AuditLog.id).all()
        assert [e.event_type for e in events] == ["SETTLEMENT_CREATED", "SETTLEMENT_PAID"]
        assert events[1].before == {"status": "pending"}


class TestFuelAdjustment:

    def test_fuel_change_recomputes_net(
        self, db_session, make_restaurant, make_rider, make_order
    ):
        rider = setup_rider_with_orders(make_restaurant, make_rider, make_order)
        settlement = create(db_session, rider_period(rider, fuel=1000))

        updated = SettlementService(db_session).adjust_fuel_reimbursement(
            settlement.id, 2500, OWNER
        )
        db_session.commit()

        assert updated.fuel_reimbursement_cents == 2500
        assert updated.net_payout_cents == 27000

    def test_fuel_change_refreshes_every_figure(
        self, db_session, make_restaurant, make_rider, make_order
    ):
        rider = setup_rider_with_orders(make_restaurant, make_rider, make_order)
        settlement = create(db_session, rider_period(rider, fuel=1000))
        assert settlement.total_orders == 2

        # Delivered late but inside the period
        restaurant = make_restaurant(name="Late Kitchen")
        make_order(restaurant, rider, delivery_fee_cents=3000, rider_bonus_cents=200,
                   payment_method=PaymentMethod.YAPE,
                   delivered_at=datetime(2025, 3, 12, 20, 0))

        updated = SettlementService(db_session).adjust_fuel_reimbursement(
            settlement.id, 2500, OWNER
        )
        db_session.commit()

        assert updated.total_orders == 3
        assert updated.delivery_fees_cents == 27000
        assert updated.bonuses_cents == 700
        assert updated.cash_collected_cents == 24000
        assert updated.pos_collected_cents == 0
        assert updated.yape_plin_collected_cents == 3000
        assert updated.fuel_reimbursement_cents == 2500
        assert updated.net_payout_cents == 30200

    def test_fuel_after_paid_is_immutable(
        self, db_session, make_restaurant, make_rider, make_order
    ):
        rider = setup_rider_with_orders(make_restaurant, make_rider, make_order)
        settlement = create(db_session, rider_period(rider, fuel=1000))
        service = SettlementService(db_session)
        service.mark_paid(settlement.id, OWNER)
        db_session.commit()

        with pytest.raises(Immutable):
            service.adjust_fuel_reimbursement(settlement.id, 5000, OWNER)
        db_session.rollback()

        stored = service.get(settlement.id)
        assert stored.fuel_reimbursement_cents == 1000
        assert stored.net_payout_cents == 25500

    def test_fuel_on_restaurant_settlement_rejected(
        self, db_session, make_restaurant
    ):
        restaurant = make_restaurant()
        settlement = create(db_session, SettlementCreate(
            entity_type=EntityType.RESTAURANT, entity_id=restaurant.id,
            period_start=date(2025, 3, 1), period_end=date(2025, 3, 15),
        ))
        with pytest.raises(ValidationError):
            SettlementService(db_session).adjust_fuel_reimbursement(
                settlement.id, 100, OWNER
            )


class TestListSettlements:

    def test_filter_by_status(self, db_session, make_rider):
        first = create(db_session, rider_period(make_rider(name="A")))
        create(db_session, rider_period(make_rider(name="B")))
        service = SettlementService(db_session)
        service.mark_paid(first.id, OWNER)
        db_session.commit()

        paid = service.list_settlements(status=SettlementStatus.PAID)
        assert [s.id for s in paid] == [first.id]
        assert len(service.list_settlements(entity_type=EntityType.RIDER)) == 2
