"""
Credit ledger service — the core of the credit system.

This service enforces the fundamental rules:
1. Every balance change is explained by exactly one ledger entry
2. Entries are immutable (append-only)
3. A balance never goes below zero
4. The cached balance always equals the sum of its entries

No other service writes balances directly.
All credit movements go through this service.
"""

import logging
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace_ledger.config import get_settings
from marketplace_ledger.errors import (
    Conflict,
    InsufficientBalance,
    InvariantViolation,
    NotFound,
    ValidationError,
)
from marketplace_ledger.models import (
    Account,
    AccountType,
    ActorRole,
    LedgerEntry,
    LedgerReason,
    PayType,
    Restaurant,
    Rider,
)
from marketplace_ledger.schemas.actor import Actor, STAFF_ROLES
from marketplace_ledger.schemas.ledger import CreditHealth
from marketplace_ledger.services.audit_service import AuditEvent, AuditService

logger = logging.getLogger(__name__)

OWNER_MODELS = {
    AccountType.RIDER: Rider,
    AccountType.RESTAURANT: Restaurant,
}


def credit_health(balance_cents: int) -> CreditHealth:
    """
    Classify a rider balance.

    Below the minimum a rider may not take cash orders, since
    the platform could not recover the food cost from credits.
    """
    settings = get_settings()
    if balance_cents >= settings.CREDIT_WARNING_CENTS:
        status = "healthy"
    elif balance_cents >= settings.CREDIT_MINIMUM_CENTS:
        status = "warning"
    elif balance_cents > 0:
        status = "critical"
    else:
        status = "blocked"
    return CreditHealth(
        balance_cents=balance_cents,
        status=status,
        can_receive_cash_orders=balance_cents >= settings.CREDIT_MINIMUM_CENTS,
    )


class LedgerService:
    """
    All credit balance operations pass through this service.

    The service takes a database session as a constructor
    argument. The caller controls the transaction boundary —
    they decide when to commit or rollback.
    """

    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    # --- Accounts ---

    def open_account(
        self, account_type: AccountType, owner_id: int, actor: Actor
    ) -> Account:
        """
        Open a zero-balance account for a rider or restaurant.

        Raises Conflict if the owner already has an account.
        """
        actor.require(STAFF_ROLES | {ActorRole.SYSTEM}, "open credit accounts")

        owner = self.db.get(OWNER_MODELS[account_type], owner_id)
        if not owner:
            raise NotFound(f"{account_type.value.capitalize()} {owner_id} not found")

        existing = self.db.execute(
            select(Account).where(
                Account.account_type == account_type,
                Account.owner_id == owner_id,
            )
        ).scalar_one_or_none()
        if existing:
            raise Conflict(
                f"{account_type.value.capitalize()} {owner_id} already has an account"
            )

        account = Account(
            account_type=account_type,
            owner_id=owner_id,
            balance_cents=0,
        )
        self.db.add(account)
        try:
            self.db.flush()
        except IntegrityError:
            raise Conflict(
                f"{account_type.value.capitalize()} {owner_id} already has an account"
            ) from None

        self.audit.emit(
            AuditEvent.ACCOUNT_OPENED, actor, "credit_account", account.id,
            after={"account_type": account_type.value, "owner_id": owner_id},
        )
        self.db.flush()
        return account

    def get_account(self, account_type: AccountType, owner_id: int) -> Account:
        account = self.db.execute(
            select(Account).where(
                Account.account_type == account_type,
                Account.owner_id == owner_id,
            )
        ).scalar_one_or_none()
        if not account:
            raise NotFound(
                f"No credit account for {account_type.value} {owner_id}"
            )
        return account

    def _lock_account(self, account_id: int) -> Account:
        """
        Load an account with a row lock, refreshing any cached copy.

        The lock is held until the caller's transaction ends, so two
        mutations on one account run one after the other.
        """
        account = self.db.execute(
            select(Account)
            .where(Account.id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not account:
            raise NotFound(f"Account {account_id} not found")
        return account

    # --- Mutations ---

    def deposit(
        self,
        account: Account,
        amount_cents: int,
        reason: LedgerReason,
        actor: Actor,
        ref_id: str | None = None,
        notes: str | None = None,
    ) -> int:
        """Add credits. Returns the new balance."""
        self._validate_amount(amount_cents)
        return self._apply(account, amount_cents, reason, actor, ref_id, notes)

    def debit(
        self,
        account: Account,
        amount_cents: int,
        reason: LedgerReason,
        actor: Actor,
        ref_id: str | None = None,
        notes: str | None = None,
    ) -> int:
        """
        Remove credits. Returns the new balance.

        Raises InsufficientBalance if the balance would go negative.
        """
        self._validate_amount(amount_cents)
        return self._apply(account, -amount_cents, reason, actor, ref_id, notes)

    def adjust(
        self,
        account_type: AccountType,
        owner_id: int,
        amount_cents: int,
        notes: str,
        actor: Actor,
    ) -> int:
        """
        Manual signed correction by the platform owner.

        A negative adjustment obeys the same no-overdraft rule as
        any other debit.
        """
        actor.require({ActorRole.OWNER}, "adjust credit balances")
        if amount_cents == 0:
            raise ValidationError("Adjustment amount must be non-zero")
        if not notes or len(notes.strip()) < 5:
            raise ValidationError("Adjustment notes must have at least 5 characters")

        if account_type == AccountType.RIDER:
            rider = self.db.get(Rider, owner_id)
            if rider and rider.pay_type != PayType.COMMISSION:
                raise ValidationError("Only commission riders use credits")

        account = self.get_account(account_type, owner_id)
        if amount_cents > 0:
            return self.deposit(
                account, amount_cents, LedgerReason.ADJUSTMENT, actor,
                notes=notes.strip(),
            )
        return self.debit(
            account, -amount_cents, LedgerReason.ADJUSTMENT, actor,
            notes=notes.strip(),
        )

    def _validate_amount(self, amount_cents: int) -> None:
        if not isinstance(amount_cents, int) or isinstance(amount_cents, bool):
            raise ValidationError("amount_cents must be an integer")
        if amount_cents <= 0:
            raise ValidationError("amount_cents must be positive")

    def _apply(
        self,
        account: Account,
        delta: int,
        reason: LedgerReason,
        actor: Actor,
        ref_id: str | None,
        notes: str | None,
    ) -> int:
        locked = self._lock_account(account.id)

        # Single conditional statement: the database refuses the
        # change rather than us checking a value that may be stale.
        result = self.db.execute(
            update(Account)
            .where(
                Account.id == locked.id,
                Account.balance_cents + delta >= 0,
            )
            .values(
                balance_cents=Account.balance_cents + delta,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(
                "Rejected debit of %s on account %s (balance %s)",
                -delta, locked.id, locked.balance_cents,
            )
            raise InsufficientBalance(
                f"Insufficient balance: available={locked.balance_cents}, "
                f"requested={-delta}"
            )

        self.db.refresh(locked)
        balance_after = locked.balance_cents

        entry = LedgerEntry(
            account_id=locked.id,
            delta_cents=delta,
            balance_after_cents=balance_after,
            reason=reason,
            ref_id=ref_id,
            notes=notes,
            created_by=actor.id,
        )
        self.db.add(entry)
        self.db.flush()

        self.audit.emit(
            AuditEvent.CREDIT_DEPOSITED if delta > 0 else AuditEvent.CREDIT_DEBITED,
            actor, "credit_account", locked.id,
            before={"balance_cents": balance_after - delta},
            after={
                "balance_cents": balance_after,
                "delta_cents": delta,
                "reason": reason.value,
                "ref_id": ref_id,
                "entry_id": entry.id,
            },
        )
        self.db.flush()

        logger.info(
            "Account %s %+d (%s) -> %s",
            locked.id, delta, reason.value, balance_after,
        )
        return balance_after

    # --- Reads ---

    def _ledger_sum(self, account_id: int) -> int:
        total = self.db.execute(
            select(func.coalesce(func.sum(LedgerEntry.delta_cents), 0)).where(
                LedgerEntry.account_id == account_id
            )
        ).scalar()
        return int(total)

    def get_balance(self, account: Account) -> int:
        """
        Return the balance after checking it against the ledger.

        A mismatch means a write bypassed this service. That is
        never a user error, so it is logged as critical and raised
        as InvariantViolation.
        """
        fresh = self.db.execute(
            select(Account)
            .where(Account.id == account.id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not fresh:
            raise NotFound(f"Account {account.id} not found")

        ledger_sum = self._ledger_sum(fresh.id)
        if fresh.balance_cents != ledger_sum:
            logger.critical(
                "Balance drift on account %s: cached=%s ledger=%s",
                fresh.id, fresh.balance_cents, ledger_sum,
            )
            raise InvariantViolation(
                f"Account {fresh.id} balance {fresh.balance_cents} "
                f"does not match ledger sum {ledger_sum}"
            )
        return fresh.balance_cents

    def get_entries(self, account: Account, limit: int = 50) -> list[LedgerEntry]:
        """Return entries for an account, newest first."""
        entries = self.db.execute(
            select(LedgerEntry)
            .where(LedgerEntry.account_id == account.id)
            .order_by(LedgerEntry.id.desc())
            .limit(limit)
        ).scalars().all()
        return list(entries)

    def check_integrity(self) -> dict:
        """Compare every cached balance with its ledger sum."""
        sums = (
            select(
                LedgerEntry.account_id.label("account_id"),
                func.sum(LedgerEntry.delta_cents).label("ledger_sum"),
            )
            .group_by(LedgerEntry.account_id)
            .subquery()
        )
        rows = self.db.execute(
            select(
                Account.id,
                Account.balance_cents,
                func.coalesce(sums.c.ledger_sum, 0),
            ).outerjoin(sums, sums.c.account_id == Account.id)
        ).all()

        mismatches = [
            {
                "account_id": account_id,
                "balance_cents": balance,
                "ledger_sum_cents": int(ledger_sum),
            }
            for account_id, balance, ledger_sum in rows
            if balance != int(ledger_sum)
        ]
        if mismatches:
            logger.critical("Ledger integrity check failed: %s", mismatches)

        return {
            "is_consistent": not mismatches,
            "accounts_checked": len(rows),
            "mismatches": mismatches,
        }
