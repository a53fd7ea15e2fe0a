"""Tests for one-time code issuance, expiry and consumption."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from models import db
from models.one_time_code import OneTimeCode
from models.user import User
from services import otp
from services.errors import ExpiredCode, InvalidOrUsedCode


def _create_user(email: str = "learner@example.com") -> User:
    user = User(email=email, full_name="Learner")
    user.set_password("Password123")
    db.session.add(user)
    db.session.commit()
    return user


def test_generate_code_is_always_six_digits():
    for _ in range(500):
        code = otp.generate_code()
        assert len(code) == 6
        assert code.isdigit()
        assert otp.CODE_MIN <= int(code) <= otp.CODE_MAX


def test_issue_code_sets_expiry_and_leaves_it_unused(app):
    with app.app_context():
        user = _create_user()
        issued_at = datetime(2024, 1, 1, 12, 0, 0)

        record = otp.issue_code(
            db.session, user, otp.EMAIL_VERIFICATION, ttl_minutes=5, now=issued_at
        )

        assert record.used_at is None
        assert record.expires_at == issued_at + timedelta(minutes=5)
        assert record.purpose == otp.EMAIL_VERIFICATION


def test_issuing_again_replaces_previous_code(app):
    with app.app_context():
        user = _create_user()
        otp.issue_code(db.session, user, otp.PASSWORD_RESET)
        second = otp.issue_code(db.session, user, otp.PASSWORD_RESET)
        second_code = second.code

        rows = OneTimeCode.query.filter_by(
            user_id=user.id, purpose=otp.PASSWORD_RESET
        ).all()
        assert len(rows) == 1
        assert rows[0].code == second_code
        assert rows[0].used_at is None


def test_issuing_for_one_purpose_keeps_the_other(app):
    with app.app_context():
        user = _create_user()
        verification = otp.issue_code(db.session, user, otp.EMAIL_VERIFICATION)
        otp.issue_code(db.session, user, otp.PASSWORD_RESET)

        active = otp.active_codes(db.session, user, otp.EMAIL_VERIFICATION)
        assert [row.id for row in active] == [verification.id]


def test_consume_applies_mutation_and_marks_used(app):
    with app.app_context():
        user = _create_user()
        record = otp.issue_code(db.session, user, otp.EMAIL_VERIFICATION)
        now = datetime.utcnow()

        consumed = otp.consume_code(
            db.session,
            user,
            otp.EMAIL_VERIFICATION,
            record.code,
            lambda account, when: account.mark_email_verified(when),
            now=now,
        )

        assert consumed.used_at == now
        assert user.email_verified is True
        assert user.email_verified_at == now


def test_code_is_accepted_only_once(app):
    with app.app_context():
        user = _create_user()
        record = otp.issue_code(db.session, user, otp.PASSWORD_RESET)
        code = record.code

        otp.consume_code(
            db.session, user, otp.PASSWORD_RESET, code, lambda *_: None
        )
        with pytest.raises(InvalidOrUsedCode):
            otp.consume_code(
                db.session, user, otp.PASSWORD_RESET, code, lambda *_: None
            )


def test_code_consumed_by_a_concurrent_request_is_rejected(app):
    with app.app_context():
        user = _create_user()
        record = otp.issue_code(db.session, user, otp.PASSWORD_RESET)
        code = record.code

        def _first_request(account, _when):
            account.set_password("FirstPassword1")

        def _second_request(account, _when):
            # The other request finishes between this one's check and its write.
            otp.consume_code(
                db.session, account, otp.PASSWORD_RESET, code, _first_request
            )
            account.set_password("SecondPassword2")

        with pytest.raises(InvalidOrUsedCode):
            otp.consume_code(
                db.session, user, otp.PASSWORD_RESET, code, _second_request
            )

        stored = OneTimeCode.query.filter_by(code=code).one()
        assert stored.used_at is not None
        refreshed = db.session.get(User, user.id)
        assert refreshed.check_password("FirstPassword1")
        assert not refreshed.check_password("SecondPassword2")


def test_wrong_code_is_rejected(app):
    with app.app_context():
        user = _create_user()
        record = otp.issue_code(db.session, user, otp.PASSWORD_RESET)
        wrong = "100000" if record.code != "100000" else "100001"

        with pytest.raises(InvalidOrUsedCode):
            otp.consume_code(
                db.session, user, otp.PASSWORD_RESET, wrong, lambda *_: None
            )


def test_code_from_other_purpose_is_rejected(app):
    with app.app_context():
        user = _create_user()
        record = otp.issue_code(db.session, user, otp.EMAIL_VERIFICATION)

        with pytest.raises(InvalidOrUsedCode):
            otp.consume_code(
                db.session, user, otp.PASSWORD_RESET, record.code, lambda *_: None
            )


def test_expiry_boundary(app):
    with app.app_context():
        user = _create_user()
        issued_at = datetime(2024, 1, 1, 12, 0, 0)
        record = otp.issue_code(
            db.session, user, otp.PASSWORD_RESET, ttl_minutes=5, now=issued_at
        )
        code = record.code

        with pytest.raises(ExpiredCode):
            otp.consume_code(
                db.session,
                user,
                otp.PASSWORD_RESET,
                code,
                lambda *_: None,
                now=issued_at + timedelta(minutes=5),
            )
        with pytest.raises(ExpiredCode):
            otp.consume_code(
                db.session,
                user,
                otp.PASSWORD_RESET,
                code,
                lambda *_: None,
                now=issued_at + timedelta(hours=1),
            )

        consumed = otp.consume_code(
            db.session,
            user,
            otp.PASSWORD_RESET,
            code,
            lambda *_: None,
            now=issued_at + timedelta(minutes=5) - timedelta(seconds=1),
        )
        assert consumed.used_at is not None


def test_failed_mutation_leaves_code_unused(app):
    with app.app_context():
        user = _create_user()
        record = otp.issue_code(db.session, user, otp.PASSWORD_RESET)
        record_id = record.id
        original_hash = user.password_hash

        def _explode(account, _when):
            account.set_password("NewPassword123")
            raise RuntimeError("disk full")

        with pytest.raises(RuntimeError):
            otp.consume_code(
                db.session, user, otp.PASSWORD_RESET, record.code, _explode
            )

        refreshed = db.session.get(OneTimeCode, record_id)
        assert refreshed.used_at is None
        assert db.session.get(User, user.id).password_hash == original_hash


def test_unknown_purpose_is_rejected(app):
    with app.app_context():
        user = _create_user()
        with pytest.raises(ValueError):
            otp.issue_code(db.session, user, "LOGIN")
