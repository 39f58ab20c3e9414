"""
Tests for recharge code issue, redeem and void.
"""

import pytest

from marketplace_ledger.errors import Conflict, Forbidden, NotFound, ValidationError
from marketplace_ledger.models import (
    AccountType,
    ActorRole,
    LedgerEntry,
    LedgerReason,
    PayType,
    RechargeCodeStatus,
)
from marketplace_ledger.recharge_tokens import (
    ALPHABET,
    check_character,
    format_code,
    generate_code,
    is_valid_code,
    normalize_code,
)
from marketplace_ledger.schemas.actor import Actor
from marketplace_ledger.schemas.recharge import RechargeCodeIssue
from marketplace_ledger.services.ledger_service import LedgerService
from marketplace_ledger.services.recharge_service import RechargeService


AGENT = Actor(id=7, role=ActorRole.AGENT)
OTHER_AGENT = Actor(id=8, role=ActorRole.AGENT)
ADMIN = Actor(id=2, role=ActorRole.CITY_ADMIN)


def setup_rider(db_session, make_rider, **kwargs):
    """Helper: rider with an open credit account."""
    rider = make_rider(**kwargs)
    LedgerService(db_session).open_account(AccountType.RIDER, rider.id, Actor.system())
    db_session.commit()
    return rider


def issue(db_session, amount_cents=5000, actor=AGENT, **kwargs):
    recharge = RechargeService(db_session).issue(
        RechargeCodeIssue(amount_cents=amount_cents, **kwargs), actor
    )
    db_session.commit()
    return recharge


def rider_actor(rider):
    return Actor(id=rider.id, role=ActorRole.RIDER)


class TestTokens:

    def test_generated_codes_are_valid(self):
        for _ in range(50):
            code = generate_code()
            assert len(code) == 9
            assert set(code) <= set(ALPHABET)
            assert is_valid_code(code)

    def test_single_character_typo_detected(self):
        code = generate_code()
        replacement = ALPHABET[(ALPHABET.index(code[3]) + 1) % len(ALPHABET)]
        typo = code[:3] + replacement + code[4:]
        assert not is_valid_code(typo)

    def test_format_and_normalize(self):
        payload = "ABCDEFGH"
        code = payload + check_character(payload)
        assert format_code(code) == f"ABC-DEF-GH{code[-1]}"
        assert normalize_code(f" abc-def -gh{code[-1].lower()} ") == code

    def test_ambiguous_characters_rejected(self):
        assert not is_valid_code("ABCDEFGH0")
        assert not is_valid_code("ABCDEFG")


class TestIssue:

    def test_issue_creates_pending_code(self, db_session):
        recharge = issue(db_session, amount_cents=5000)

        assert recharge.status == RechargeCodeStatus.PENDING
        assert recharge.amount_cents == 5000
        assert recharge.created_by == AGENT.id
        assert is_valid_code(recharge.code)

    def test_amount_above_maximum_rejected(self, db_session):
        with pytest.raises(ValidationError, match="must not exceed 100000"):
            issue(db_session, amount_cents=100001)

    def test_rider_cannot_issue(self, db_session, make_rider):
        rider = setup_rider(db_session, make_rider)
        with pytest.raises(Forbidden):
            issue(db_session, actor=rider_actor(rider))

    def test_intended_rider_must_exist(self, db_session):
        with pytest.raises(NotFound):
            issue(db_session, intended_rider_id=12345)

    def test_intended_rider_must_use_credits(self, db_session, make_rider):
        rider = setup_rider(
            db_session, make_rider,
            pay_type=PayType.FIXED_SALARY, fixed_salary_cents=100000,
        )
        with pytest.raises(ValidationError, match="fixed salary"):
            issue(db_session, intended_rider_id=rider.id)


class TestRedeem:

    def test_redeem_deposits_amount(self, db_session, make_rider):
        rider = setup_rider(db_session, make_rider)
        recharge = issue(db_session, amount_cents=5000)
        service = RechargeService(db_session)

        balance = service.redeem(format_code(recharge.code), rider.id, rider_actor(rider))
        db_session.commit()

        assert balance == 5000
        assert recharge.status == RechargeCodeStatus.REDEEMED
        assert recharge.redeemed_by == rider.id
        entry = db_session.query(LedgerEntry).one()
        assert entry.reason == LedgerReason.RECHARGE
        assert entry.ref_id == recharge.code

    def test_redeem_accepts_lowercase_with_spaces(self, db_session, make_rider):
        rider = setup_rider(db_session, make_rider)
        recharge = issue(db_session)
        raw = " " + format_code(recharge.code).lower().replace("-", " ") + " "

        balance = RechargeService(db_session).redeem(raw, rider.id, rider_actor(rider))
        assert balance == 5000

    def test_redeem_twice_conflicts(self, db_session, make_rider):
        rider = setup_rider(db_session, make_rider)
        recharge = issue(db_session)
        service = RechargeService(db_session)
        service.redeem(recharge.code, rider.id, rider_actor(rider))
        db_session.commit()

        with pytest.raises(Conflict, match="already redeemed"):
            service.redeem(recharge.code, rider.id, rider_actor(rider))

    def test_malformed_code_rejected(self, db_session, make_rider):
        rider = setup_rider(db_session, make_rider)
        with pytest.raises(ValidationError, match="format"):
            RechargeService(db_session).redeem("NOT-A-CODE", rider.id, rider_actor(rider))

    def test_unknown_code_not_found(self, db_session, make_rider):
        rider = setup_rider(db_session, make_rider)
        with pytest.raises(NotFound):
            RechargeService(db_session).redeem(generate_code(), rider.id, rider_actor(rider))

    def test_code_for_another_rider_forbidden(self, db_session, make_rider):
        intended = setup_rider(db_session, make_rider, name="Intended")
        other = setup_rider(db_session, make_rider, name="Other")
        recharge = issue(db_session, intended_rider_id=intended.id)

        with pytest.raises(Forbidden, match="another rider"):
            RechargeService(db_session).redeem(recharge.code, other.id, rider_actor(other))

    def test_rider_cannot_redeem_for_someone_else(self, db_session, make_rider):
        rider = setup_rider(db_session, make_rider, name="A")
        other = setup_rider(db_session, make_rider, name="B")
        recharge = issue(db_session)

        with pytest.raises(Forbidden, match="themselves"):
            RechargeService(db_session).redeem(recharge.code, other.id, rider_actor(rider))

    def test_fixed_salary_rider_cannot_redeem(self, db_session, make_rider):
        rider = setup_rider(
            db_session, make_rider,
            pay_type=PayType.FIXED_SALARY, fixed_salary_cents=100000,
        )
        recharge = issue(db_session)

        with pytest.raises(ValidationError):
            RechargeService(db_session).redeem(recharge.code, rider.id, rider_actor(rider))

    def test_redeem_voided_code_conflicts(self, db_session, make_rider):
        rider = setup_rider(db_session, make_rider)
        recharge = issue(db_session)
        service = RechargeService(db_session)
        service.void(recharge.code, "sold by mistake", AGENT)
        db_session.commit()

        with pytest.raises(Conflict, match="already voided"):
            service.redeem(recharge.code, rider.id, rider_actor(rider))

    def test_racing_redeem_yields_one_deposit(self, db_session, other_session, make_rider):
        rider = setup_rider(db_session, make_rider)
        recharge = issue(db_session)
        code = recharge.code

        # The second session reads the code while it is still pending
        stale = RechargeService(other_session).get_code(code)
        assert stale.status == RechargeCodeStatus.PENDING

        RechargeService(db_session).redeem(code, rider.id, rider_actor(rider))
        db_session.commit()

        with pytest.raises(Conflict):
            RechargeService(other_session).redeem(code, rider.id, rider_actor(rider))
        other_session.rollback()

        account = LedgerService(db_session).get_account(AccountType.RIDER, rider.id)
        assert LedgerService(db_session).get_balance(account) == 5000
        assert db_session.query(LedgerEntry).count() == 1


class TestVoid:

    def test_void_pending_code(self, db_session):
        recharge = issue(db_session)
        voided = RechargeService(db_session).void(recharge.code, "customer refund", AGENT)
        db_session.commit()

        assert voided.status == RechargeCodeStatus.VOIDED
        assert voided.voided_by == AGENT.id
        assert voided.voided_at is not None

    def test_void_keeps_issuer_notes(self, db_session):
        recharge = issue(db_session, notes="Paid cash at kiosk 3")
        voided = RechargeService(db_session).void(recharge.code, "duplicate sale", AGENT)
        db_session.commit()

        assert voided.notes == "Paid cash at kiosk 3"
        assert voided.void_reason == "duplicate sale"

    def test_void_redeemed_code_conflicts(self, db_session, make_rider):
        rider = setup_rider(db_session, make_rider)
        recharge = issue(db_session)
        service = RechargeService(db_session)
        service.redeem(recharge.code, rider.id, rider_actor(rider))
        db_session.commit()

        with pytest.raises(Conflict, match="already redeemed"):
            service.void(recharge.code, "too late", AGENT)

    def test_void_requires_reason(self, db_session):
        recharge = issue(db_session)
        with pytest.raises(ValidationError, match="reason"):
            RechargeService(db_session).void(recharge.code, "   ", AGENT)

    def test_agent_cannot_void_another_agents_code(self, db_session):
        recharge = issue(db_session)
        with pytest.raises(Forbidden):
            RechargeService(db_session).void(recharge.code, "not mine", OTHER_AGENT)

    def test_admin_can_void_any_code(self, db_session):
        recharge = issue(db_session)
        voided = RechargeService(db_session).void(recharge.code, "audit cleanup", ADMIN)
        assert voided.status == RechargeCodeStatus.VOIDED


class TestListCodes:

    def test_agent_sees_only_own_codes(self, db_session):
        issue(db_session, actor=AGENT)
        issue(db_session, actor=OTHER_AGENT)
        service = RechargeService(db_session)

        assert len(service.list_codes(AGENT)) == 1
        assert len(service.list_codes(ADMIN)) == 2

    def test_filter_by_status(self, db_session):
        first = issue(db_session)
        issue(db_session)
        service = RechargeService(db_session)
        service.void(first.code, "wrong amount", AGENT)
        db_session.commit()

        voided = service.list_codes(ADMIN, status=RechargeCodeStatus.VOIDED)
        assert [c.id for c in voided] == [first.id]
