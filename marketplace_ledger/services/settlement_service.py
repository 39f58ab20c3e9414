"""
Settlement workflow.

Creates settlements from computed figures and moves them through
their lifecycle:

    pending -> paid | disputed
    disputed -> pending | paid
    paid is terminal

A paid settlement is immutable. At most one settlement may cover
any given day for one entity: creates lock the entity row before
the overlap check, and the unique constraint catches a retried
request racing the first one.
"""

import logging
from datetime import datetime

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace_ledger.errors import Conflict, Immutable, NotFound, ValidationError
from marketplace_ledger.models import (
    EntityType,
    Restaurant,
    Rider,
    Settlement,
    SettlementStatus,
)
from marketplace_ledger.models.settlement import FIGURE_FIELDS
from marketplace_ledger.schemas.actor import Actor, ADMIN_ROLES
from marketplace_ledger.schemas.settlement import (
    SettlementCreate,
    SettlementFigures,
    SettlementPeriod,
    SettlementPreview,
)
from marketplace_ledger.services.audit_service import AuditEvent, AuditService
from marketplace_ledger.services.settlement_computer import SettlementComputer

logger = logging.getLogger(__name__)


def _figure_values(figures: SettlementFigures) -> dict:
    return {field: getattr(figures, field) for field in FIGURE_FIELDS}


ENTITY_MODELS = {
    EntityType.RIDER: Rider,
    EntityType.RESTAURANT: Restaurant,
}


def entity_lock_query(entity_type: EntityType, entity_id: int) -> Select:
    """Row lock on the rider or restaurant a settlement pays."""
    model = ENTITY_MODELS[entity_type]
    return select(model).where(model.id == entity_id).with_for_update()


class SettlementService:

    def __init__(self, db: Session):
        self.db = db
        self.computer = SettlementComputer(db)
        self.audit = AuditService(db)

    # --- Reads ---

    def get(self, settlement_id: int) -> Settlement:
        settlement = self.db.get(Settlement, settlement_id)
        if not settlement:
            raise NotFound(f"Settlement {settlement_id} not found")
        return settlement

    def list_settlements(
        self,
        entity_type: EntityType | None = None,
        entity_id: int | None = None,
        status: SettlementStatus | None = None,
        limit: int = 50,
    ) -> list[Settlement]:
        query = select(Settlement).order_by(
            Settlement.period_start.desc(), Settlement.id.desc()
        ).limit(limit)
        if entity_type is not None:
            query = query.where(Settlement.entity_type == entity_type)
        if entity_id is not None:
            query = query.where(Settlement.entity_id == entity_id)
        if status is not None:
            query = query.where(Settlement.status == status)
        return list(self.db.execute(query).scalars().all())

    def find_overlap(self, period: SettlementPeriod) -> Settlement | None:
        """Any settlement for the entity sharing at least one day with the period."""
        return self.db.execute(
            select(Settlement)
            .where(
                Settlement.entity_type == period.entity_type,
                Settlement.entity_id == period.entity_id,
                Settlement.period_start <= period.period_end,
                Settlement.period_end >= period.period_start,
            )
            .limit(1)
        ).scalar_one_or_none()

    def preview(self, period: SettlementPeriod) -> SettlementPreview:
        """Compute figures without persisting anything."""
        figures = self.computer.compute(
            period.entity_type,
            period.entity_id,
            period.period_start,
            period.period_end,
            period.fuel_reimbursement_cents,
        )
        overlap = self.find_overlap(period)
        return SettlementPreview(
            figures=figures,
            has_overlap=overlap is not None,
            overlap_period=(
                f"{overlap.period_start} - {overlap.period_end}" if overlap else None
            ),
        )

    # --- Mutations ---

    def create(self, request: SettlementCreate, actor: Actor) -> Settlement:
        actor.require(ADMIN_ROLES, "create settlements")

        # Creates for one entity queue on this lock, so two overlapping
        # periods cannot both pass the check below.
        entity = self.db.execute(
            entity_lock_query(request.entity_type, request.entity_id)
        ).scalar_one_or_none()
        if not entity:
            raise NotFound(
                f"{request.entity_type.value.capitalize()} {request.entity_id} not found"
            )

        overlap = self.find_overlap(request)
        if overlap:
            logger.warning(
                "Rejected settlement for %s %s: overlaps %s..%s",
                request.entity_type.value, request.entity_id,
                overlap.period_start, overlap.period_end,
            )
            raise Conflict(
                f"A settlement already covers {overlap.period_start} - "
                f"{overlap.period_end} for this {request.entity_type.value}"
            )

        figures = self.computer.compute(
            request.entity_type,
            request.entity_id,
            request.period_start,
            request.period_end,
            request.fuel_reimbursement_cents,
        )

        settlement = Settlement(
            entity_type=request.entity_type,
            entity_id=request.entity_id,
            period_start=request.period_start,
            period_end=request.period_end,
            status=SettlementStatus.PENDING,
            notes=request.notes,
            created_by=actor.id,
            **_figure_values(figures),
        )
        self.db.add(settlement)
        try:
            self.db.flush()
        except IntegrityError:
            raise Conflict("Settlement for this period already exists") from None

        self.audit.emit(
            AuditEvent.SETTLEMENT_CREATED, actor, "settlement", settlement.id,
            after=settlement.figures_snapshot(),
        )
        self.db.flush()

        logger.info(
            "Created settlement %s for %s %s (%s..%s) net=%s",
            settlement.id, settlement.entity_type.value, settlement.entity_id,
            settlement.period_start, settlement.period_end,
            settlement.net_payout_cents,
        )
        return settlement

    def _lock_mutable(self, settlement_id: int) -> Settlement:
        settlement = self.db.execute(
            select(Settlement)
            .where(Settlement.id == settlement_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not settlement:
            raise NotFound(f"Settlement {settlement_id} not found")
        if settlement.status == SettlementStatus.PAID:
            raise Immutable(f"Settlement {settlement_id} is paid and cannot change")
        return settlement

    def _transition(
        self,
        settlement_id: int,
        new_status: SettlementStatus,
        event_type: str,
        actor: Actor,
        notes: str | None = None,
    ) -> Settlement:
        actor.require(ADMIN_ROLES, "change settlement status")

        settlement = self._lock_mutable(settlement_id)
        if not settlement.can_transition_to(new_status):
            raise Conflict(
                f"Invalid transition: {settlement.status.value} -> {new_status.value}"
            )

        old_status = settlement.status
        settlement.status = new_status
        if new_status == SettlementStatus.PAID:
            settlement.paid_at = datetime.utcnow()
        if notes:
            settlement.notes = notes

        self.audit.emit(
            event_type, actor, "settlement", settlement.id,
            before={"status": old_status.value},
            after={"status": new_status.value, "notes": notes},
        )
        self.db.flush()

        logger.info(
            "Settlement %s: %s -> %s",
            settlement.id, old_status.value, new_status.value,
        )
        return settlement

    def mark_paid(self, settlement_id: int, actor: Actor) -> Settlement:
        return self._transition(
            settlement_id, SettlementStatus.PAID, AuditEvent.SETTLEMENT_PAID, actor
        )

    def mark_disputed(
        self, settlement_id: int, actor: Actor, notes: str | None = None
    ) -> Settlement:
        return self._transition(
            settlement_id, SettlementStatus.DISPUTED,
            AuditEvent.SETTLEMENT_DISPUTED, actor, notes,
        )

    def reopen(self, settlement_id: int, actor: Actor) -> Settlement:
        return self._transition(
            settlement_id, SettlementStatus.PENDING,
            AuditEvent.SETTLEMENT_REOPENED, actor,
        )

    def adjust_fuel_reimbursement(
        self, settlement_id: int, new_amount_cents: int, actor: Actor
    ) -> Settlement:
        """
        Change fuel on an unpaid rider settlement.

        Every derived figure is recomputed for the stored period, so
        the row stays equal to what a fresh preview would produce.
        """
        actor.require(ADMIN_ROLES, "adjust settlements")
        if new_amount_cents < 0:
            raise ValidationError("fuel_reimbursement_cents must not be negative")

        settlement = self._lock_mutable(settlement_id)
        if settlement.entity_type != EntityType.RIDER:
            raise ValidationError("Fuel reimbursement only applies to rider settlements")

        before = settlement.figures_snapshot()
        figures = self.computer.compute(
            settlement.entity_type,
            settlement.entity_id,
            settlement.period_start,
            settlement.period_end,
            new_amount_cents,
        )
        for field, value in _figure_values(figures).items():
            setattr(settlement, field, value)

        self.audit.emit(
            AuditEvent.SETTLEMENT_FUEL_ADJUSTED, actor, "settlement", settlement.id,
            before=before,
            after=settlement.figures_snapshot(),
        )
        self.db.flush()
        return settlement
