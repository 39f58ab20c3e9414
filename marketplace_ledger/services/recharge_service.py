"""
Recharge code service.

Agents sell prepaid credit to riders by issuing single-use codes.
A code leaves `pending` exactly once: either a rider redeems it and
the amount is deposited into the rider's credit account, or staff
void it. Both transitions are compare-and-set updates, so two
concurrent redemptions of one code produce one deposit and one
Conflict.
"""

import logging
from datetime import datetime

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace_ledger.config import get_settings
from marketplace_ledger.errors import (
    Conflict,
    Forbidden,
    NotFound,
    ValidationError,
)
from marketplace_ledger.models import (
    AccountType,
    ActorRole,
    LedgerReason,
    PayType,
    RechargeCode,
    RechargeCodeStatus,
    Rider,
)
from marketplace_ledger.recharge_tokens import (
    format_code,
    generate_code,
    is_valid_code,
    normalize_code,
)
from marketplace_ledger.schemas.actor import Actor, STAFF_ROLES
from marketplace_ledger.schemas.recharge import RechargeCodeIssue
from marketplace_ledger.services.audit_service import AuditEvent, AuditService
from marketplace_ledger.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

MAX_GENERATION_ATTEMPTS = 5


class RechargeService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger = LedgerService(db)
        self.audit = AuditService(db)

    def issue(self, request: RechargeCodeIssue, actor: Actor) -> RechargeCode:
        """
        Issue a new pending code.

        Only staff sell credit. When the code is meant for one rider,
        that rider must exist and be on a commission plan.
        """
        actor.require(STAFF_ROLES, "issue recharge codes")

        max_amount = get_settings().RECHARGE_CODE_MAX_AMOUNT_CENTS
        if request.amount_cents <= 0:
            raise ValidationError("amount_cents must be positive")
        if request.amount_cents > max_amount:
            raise ValidationError(
                f"amount_cents must not exceed {max_amount}"
            )

        if request.intended_rider_id is not None:
            self._commission_rider(request.intended_rider_id)

        code = self._unused_code()
        recharge = RechargeCode(
            code=code,
            amount_cents=request.amount_cents,
            status=RechargeCodeStatus.PENDING,
            intended_rider_id=request.intended_rider_id,
            created_by=actor.id,
            notes=request.notes,
        )
        self.db.add(recharge)
        try:
            self.db.flush()
        except IntegrityError:
            raise Conflict("Recharge code collision, please retry") from None

        self.audit.emit(
            AuditEvent.RECHARGE_CODE_ISSUED, actor, "recharge_code", recharge.id,
            after={
                "code": format_code(code),
                "amount_cents": recharge.amount_cents,
                "intended_rider_id": recharge.intended_rider_id,
            },
        )
        self.db.flush()
        return recharge

    def _unused_code(self) -> str:
        """Draw tokens until one is not already taken."""
        for _ in range(MAX_GENERATION_ATTEMPTS):
            code = generate_code()
            taken = self.db.execute(
                select(RechargeCode.id).where(RechargeCode.code == code)
            ).first()
            if not taken:
                return code
            logger.warning("Recharge code collision on %s, drawing again", code)
        raise Conflict("Could not generate a unique recharge code")

    def _commission_rider(self, rider_id: int) -> Rider:
        rider = self.db.get(Rider, rider_id)
        if not rider:
            raise NotFound(f"Rider {rider_id} not found")
        if rider.pay_type != PayType.COMMISSION:
            raise ValidationError(
                f"Rider {rider_id} is on a fixed salary and does not use credits"
            )
        return rider

    def _find(self, raw_code: str) -> RechargeCode:
        code = normalize_code(raw_code)
        if not is_valid_code(code):
            raise ValidationError("Invalid recharge code format")

        recharge = self.db.execute(
            select(RechargeCode).where(RechargeCode.code == code)
        ).scalar_one_or_none()
        if not recharge:
            raise NotFound("Recharge code not found")
        return recharge

    def get_code(self, raw_code: str) -> RechargeCode:
        return self._find(raw_code)

    def redeem(self, raw_code: str, rider_id: int, actor: Actor) -> int:
        """
        Redeem a code into a rider's credit account.

        Returns the rider's new balance. The code flip and the deposit
        share the caller's transaction.
        """
        actor.require(STAFF_ROLES | {ActorRole.RIDER}, "redeem recharge codes")
        if actor.role == ActorRole.RIDER and actor.id != rider_id:
            raise Forbidden("Riders may only redeem codes for themselves")

        recharge = self._find(raw_code)
        if recharge.status != RechargeCodeStatus.PENDING:
            raise Conflict(f"Recharge code already {recharge.status.value}")
        if (
            recharge.intended_rider_id is not None
            and recharge.intended_rider_id != rider_id
        ):
            raise Forbidden("This recharge code was issued for another rider")

        self._commission_rider(rider_id)
        account = self.ledger.get_account(AccountType.RIDER, rider_id)

        now = datetime.utcnow()
        result = self.db.execute(
            update(RechargeCode)
            .where(
                RechargeCode.id == recharge.id,
                RechargeCode.status == RechargeCodeStatus.PENDING,
            )
            .values(
                status=RechargeCodeStatus.REDEEMED,
                redeemed_by=rider_id,
                redeemed_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(
                "Lost redemption race on code %s for rider %s",
                format_code(recharge.code), rider_id,
            )
            raise Conflict("Recharge code was already used")
        self.db.refresh(recharge)

        balance = self.ledger.deposit(
            account,
            recharge.amount_cents,
            LedgerReason.RECHARGE,
            actor,
            ref_id=recharge.code,
        )

        self.audit.emit(
            AuditEvent.RECHARGE_CODE_REDEEMED, actor, "recharge_code", recharge.id,
            before={"status": RechargeCodeStatus.PENDING.value},
            after={
                "status": recharge.status.value,
                "redeemed_by": rider_id,
                "amount_cents": recharge.amount_cents,
                "balance_after_cents": balance,
            },
        )
        self.db.flush()
        return balance

    def void(self, raw_code: str, reason: str, actor: Actor) -> RechargeCode:
        """Void a pending code. Agents may only void codes they issued."""
        actor.require(STAFF_ROLES, "void recharge codes")
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to void a code")

        recharge = self._find(raw_code)
        if actor.role == ActorRole.AGENT and recharge.created_by != actor.id:
            raise Forbidden("Agents may only void codes they issued")
        if recharge.status != RechargeCodeStatus.PENDING:
            raise Conflict(f"Recharge code already {recharge.status.value}")

        result = self.db.execute(
            update(RechargeCode)
            .where(
                RechargeCode.id == recharge.id,
                RechargeCode.status == RechargeCodeStatus.PENDING,
            )
            .values(
                status=RechargeCodeStatus.VOIDED,
                voided_by=actor.id,
                voided_at=datetime.utcnow(),
                void_reason=reason.strip(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise Conflict("Recharge code is no longer pending")
        self.db.refresh(recharge)

        self.audit.emit(
            AuditEvent.RECHARGE_CODE_VOIDED, actor, "recharge_code", recharge.id,
            before={"status": RechargeCodeStatus.PENDING.value},
            after={"status": recharge.status.value, "reason": reason.strip()},
        )
        self.db.flush()
        return recharge

    def list_codes(
        self,
        actor: Actor,
        status: RechargeCodeStatus | None = None,
        rider_id: int | None = None,
        limit: int = 50,
    ) -> list[RechargeCode]:
        """Newest first. Agents only see the codes they issued."""
        actor.require(STAFF_ROLES, "list recharge codes")

        query = select(RechargeCode).order_by(RechargeCode.id.desc()).limit(limit)
        if actor.role == ActorRole.AGENT:
            query = query.where(RechargeCode.created_by == actor.id)
        if status is not None:
            query = query.where(RechargeCode.status == status)
        if rider_id is not None:
            query = query.where(
                or_(
                    RechargeCode.intended_rider_id == rider_id,
                    RechargeCode.redeemed_by == rider_id,
                )
            )
        return list(self.db.execute(query).scalars().all())
