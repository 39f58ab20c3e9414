"""
Daily cash reconciliation.

Riders collect money from customers on the platform's behalf. At
the end of the day the rider declares what they hold per payment
method; the expected amounts come from the day's delivered orders.
Only cash is gated: a cash difference above the configured
tolerance flags the report, and a flagged report can only be
rejected, never approved.
"""

import logging
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace_ledger.config import get_settings
from marketplace_ledger.errors import Conflict, Forbidden, NotFound, ValidationError
from marketplace_ledger.models import ActorRole, DailyReport, ReportStatus, Rider
from marketplace_ledger.schemas.actor import Actor, ADMIN_ROLES, STAFF_ROLES
from marketplace_ledger.schemas.reconciliation import ExpectedTotals, ReportSubmit
from marketplace_ledger.services.audit_service import AuditEvent, AuditService
from marketplace_ledger.services.order_service import OrderReader
from marketplace_ledger.services.settlement_computer import collected_by_group

logger = logging.getLogger(__name__)


def has_cash_discrepancy(
    declared_cash_cents: int, expected_cash_cents: int, tolerance_cents: int
) -> bool:
    return abs(declared_cash_cents - expected_cash_cents) > tolerance_cents


class ReconciliationService:

    def __init__(self, db: Session):
        self.db = db
        self.orders = OrderReader(db)
        self.audit = AuditService(db)

    def _require_rider_or_staff(self, rider_id: int, actor: Actor, action: str) -> None:
        actor.require(
            STAFF_ROLES | {ActorRole.RIDER, ActorRole.SYSTEM}, action
        )
        if actor.role == ActorRole.RIDER and actor.id != rider_id:
            raise Forbidden(f"Riders may only {action} for themselves")

    def get_report(self, rider_id: int, report_date: date) -> DailyReport | None:
        return self.db.execute(
            select(DailyReport).where(
                DailyReport.rider_id == rider_id,
                DailyReport.report_date == report_date,
            )
        ).scalar_one_or_none()

    def _require_report(self, rider_id: int, report_date: date) -> DailyReport:
        report = self.get_report(rider_id, report_date)
        if not report:
            raise NotFound(f"No daily report for rider {rider_id} on {report_date}")
        return report

    def open_report(
        self,
        rider_id: int,
        report_date: date,
        actor: Actor,
        shift_started_at: datetime | None = None,
    ) -> DailyReport:
        """
        Open the day's draft report at the first shift start.

        Calling it again the same day returns the existing report.
        """
        self._require_rider_or_staff(rider_id, actor, "open daily reports")
        if not self.db.get(Rider, rider_id):
            raise NotFound(f"Rider {rider_id} not found")

        existing = self.get_report(rider_id, report_date)
        if existing:
            return existing

        report = DailyReport(
            rider_id=rider_id,
            report_date=report_date,
            shift_started_at=shift_started_at or datetime.utcnow(),
            status=ReportStatus.DRAFT,
        )
        self.db.add(report)
        try:
            self.db.flush()
        except IntegrityError:
            raise Conflict(
                f"Daily report for rider {rider_id} on {report_date} already exists"
            ) from None

        self.audit.emit(
            AuditEvent.DAILY_REPORT_OPENED, actor, "daily_report", report.id,
            after={"rider_id": rider_id, "report_date": report_date},
        )
        self.db.flush()
        return report

    def close_shift(
        self,
        rider_id: int,
        report_date: date,
        actor: Actor,
        shift_ended_at: datetime | None = None,
    ) -> DailyReport:
        self._require_rider_or_staff(rider_id, actor, "close shifts")
        report = self._require_report(rider_id, report_date)
        if report.status != ReportStatus.DRAFT:
            raise Conflict(f"Report is already {report.status.value}")

        report.shift_ended_at = shift_ended_at or datetime.utcnow()
        self.audit.emit(
            AuditEvent.DAILY_REPORT_SHIFT_CLOSED, actor, "daily_report", report.id,
            after={"shift_ended_at": report.shift_ended_at},
        )
        self.db.flush()
        return report

    def compute_expected(self, rider_id: int, report_date: date) -> ExpectedTotals:
        """Totals of the rider's delivered orders that day, by payment group."""
        orders = self.orders.delivered_for_rider_on(rider_id, report_date)
        collected = collected_by_group(orders)
        return ExpectedTotals(
            total_deliveries=len(orders),
            expected_cash_cents=collected["cash"],
            expected_pos_cents=collected["pos"],
            expected_yape_plin_cents=collected["yape_plin"],
        )

    def submit(
        self,
        rider_id: int,
        report_date: date,
        request: ReportSubmit,
        actor: Actor,
    ) -> DailyReport:
        """
        Rider declares collections; expected totals are snapshotted.
        """
        actor.require({ActorRole.RIDER}, "submit daily reports")
        if actor.id != rider_id:
            raise Forbidden("Riders may only submit their own report")
        for name in ("declared_cash_cents", "declared_pos_cents", "declared_yape_plin_cents"):
            if getattr(request, name) < 0:
                raise ValidationError(f"{name} must not be negative")

        report = self._require_report(rider_id, report_date)
        if not report.can_transition_to(ReportStatus.SUBMITTED):
            raise Conflict(f"Report is already {report.status.value}")

        expected = self.compute_expected(rider_id, report_date)
        tolerance = get_settings().CASH_DISCREPANCY_TOLERANCE_CENTS

        report.total_deliveries = expected.total_deliveries
        report.declared_cash_cents = request.declared_cash_cents
        report.declared_pos_cents = request.declared_pos_cents
        report.declared_yape_plin_cents = request.declared_yape_plin_cents
        report.expected_cash_cents = expected.expected_cash_cents
        report.expected_pos_cents = expected.expected_pos_cents
        report.expected_yape_plin_cents = expected.expected_yape_plin_cents
        report.cash_discrepancy_cents = (
            request.declared_cash_cents - expected.expected_cash_cents
        )
        report.has_discrepancy = has_cash_discrepancy(
            request.declared_cash_cents, expected.expected_cash_cents, tolerance
        )
        report.notes = request.notes
        report.status = ReportStatus.SUBMITTED
        report.submitted_at = datetime.utcnow()

        if report.has_discrepancy:
            logger.warning(
                "Cash discrepancy of %s cents for rider %s on %s",
                report.cash_discrepancy_cents, rider_id, report_date,
            )

        self.audit.emit(
            AuditEvent.DAILY_REPORT_SUBMITTED, actor, "daily_report", report.id,
            before={"status": ReportStatus.DRAFT.value},
            after={
                "status": report.status.value,
                "declared_cash_cents": report.declared_cash_cents,
                "expected_cash_cents": report.expected_cash_cents,
                "cash_discrepancy_cents": report.cash_discrepancy_cents,
                "has_discrepancy": report.has_discrepancy,
            },
        )
        self.db.flush()
        return report

    def _review(
        self,
        rider_id: int,
        report_date: date,
        new_status: ReportStatus,
        event_type: str,
        actor: Actor,
        admin_notes: str | None,
    ) -> DailyReport:
        actor.require(ADMIN_ROLES, "review daily reports")
        if new_status == ReportStatus.REJECTED:
            if not admin_notes or not admin_notes.strip():
                raise ValidationError("A rejection needs admin notes")
            admin_notes = admin_notes.strip()

        report = self._require_report(rider_id, report_date)
        if not report.can_transition_to(new_status):
            raise Conflict(
                f"Invalid transition: {report.status.value} -> {new_status.value}"
            )
        if new_status == ReportStatus.APPROVED and report.has_discrepancy:
            raise Conflict(
                f"Report has a cash discrepancy of {report.cash_discrepancy_cents} "
                "cents and must be rejected"
            )

        old_status = report.status
        report.status = new_status
        report.admin_notes = admin_notes
        report.reviewed_by = actor.id
        report.reviewed_at = datetime.utcnow()

        self.audit.emit(
            event_type, actor, "daily_report", report.id,
            before={"status": old_status.value},
            after={"status": new_status.value, "admin_notes": admin_notes},
        )
        self.db.flush()
        return report

    def approve(
        self,
        rider_id: int,
        report_date: date,
        actor: Actor,
        admin_notes: str | None = None,
    ) -> DailyReport:
        return self._review(
            rider_id, report_date, ReportStatus.APPROVED,
            AuditEvent.DAILY_REPORT_APPROVED, actor, admin_notes,
        )

    def reject(
        self,
        rider_id: int,
        report_date: date,
        admin_notes: str,
        actor: Actor,
    ) -> DailyReport:
        return self._review(
            rider_id, report_date, ReportStatus.REJECTED,
            AuditEvent.DAILY_REPORT_REJECTED, actor, admin_notes,
        )
