# tests/services/auth/test_codes.py
"""
Tests for the one-time code store.

Tests:
- Code generation per purpose
- Issue/consume, single use
- Reissue invalidates the previous code
- Wrong, expired and cross-purpose codes
- Only hashes are stored
- Concurrent consumption (exactly one winner)
- Purge of dead codes
"""

import threading
from datetime import date, timedelta

from sqlalchemy import select

from authcore.models import OneTimeCode, Profile, User, UserRole
from authcore.services.auth.codes import OneTimeCodeStore
from authcore.services.auth.tokens import TokenPurpose

TEN_MINUTES = timedelta(minutes=10)


# =============================================================================
# TEST: GENERATION
# =============================================================================


class TestCodeGeneration:
    """Tests for plaintext code generation."""

    def test_otp_is_six_digits(self, code_store: OneTimeCodeStore):
        code = code_store.generate(TokenPurpose.OTP_CHALLENGE)

        assert len(code) == 6
        assert code.isdigit()

    def test_otp_length_configurable(self):
        code = OneTimeCodeStore(otp_length=8).generate(TokenPurpose.OTP_CHALLENGE)

        assert len(code) == 8

    def test_link_codes_are_long_and_random(self, code_store: OneTimeCodeStore):
        first = code_store.generate(TokenPurpose.PASSWORD_RESET)
        second = code_store.generate(TokenPurpose.PASSWORD_RESET)

        assert len(first) >= 40
        assert first != second


# =============================================================================
# TEST: ISSUE & CONSUME
# =============================================================================


class TestIssueAndConsume:
    """Tests for the issue/consume lifecycle."""

    def test_issued_code_can_be_consumed(self, db, make_user, code_store):
        user = make_user()
        code = code_store.issue(db, user.id, TokenPurpose.OTP_CHALLENGE, TEN_MINUTES)

        assert code_store.consume(db, user.id, TokenPurpose.OTP_CHALLENGE, code) is True

    def test_code_is_single_use(self, db, make_user, code_store):
        """Second consume of the same code fails."""
        user = make_user()
        code = code_store.issue(db, user.id, TokenPurpose.OTP_CHALLENGE, TEN_MINUTES)

        assert code_store.consume(db, user.id, TokenPurpose.OTP_CHALLENGE, code) is True
        assert code_store.consume(db, user.id, TokenPurpose.OTP_CHALLENGE, code) is False

    def test_wrong_code_rejected_and_real_code_still_live(self, db, make_user, code_store):
        user = make_user()
        code = code_store.issue(db, user.id, TokenPurpose.OTP_CHALLENGE, TEN_MINUTES)
        wrong = "000000" if code != "000000" else "111111"

        assert code_store.consume(db, user.id, TokenPurpose.OTP_CHALLENGE, wrong) is False
        assert code_store.consume(db, user.id, TokenPurpose.OTP_CHALLENGE, code) is True

    def test_reissue_invalidates_previous_code(self, db, make_user, code_store):
        """At most one live code per (user, purpose)."""
        user = make_user()
        first = code_store.issue(db, user.id, TokenPurpose.PASSWORD_RESET, TEN_MINUTES)
        second = code_store.issue(db, user.id, TokenPurpose.PASSWORD_RESET, TEN_MINUTES)

        assert code_store.consume(db, user.id, TokenPurpose.PASSWORD_RESET, first) is False
        assert code_store.consume(db, user.id, TokenPurpose.PASSWORD_RESET, second) is True

        live = db.scalars(
            select(OneTimeCode).where(
                OneTimeCode.user_id == user.id,
                OneTimeCode.consumed_at.is_(None),
            )
        ).all()
        assert live == []

    def test_expired_code_rejected(self, db, make_user, code_store):
        user = make_user()
        code = code_store.issue(db, user.id, TokenPurpose.OTP_CHALLENGE, timedelta(seconds=-1))

        assert code_store.consume(db, user.id, TokenPurpose.OTP_CHALLENGE, code) is False

    def test_code_bound_to_purpose(self, db, make_user, code_store):
        user = make_user()
        code = code_store.issue(db, user.id, TokenPurpose.EMAIL_VERIFY, TEN_MINUTES)

        assert code_store.consume(db, user.id, TokenPurpose.PASSWORD_RESET, code) is False
        assert code_store.consume(db, user.id, TokenPurpose.EMAIL_VERIFY, code) is True

    def test_code_bound_to_user(self, db, make_user, code_store):
        alice = make_user("alice")
        bob = make_user("bob")
        code = code_store.issue(db, alice.id, TokenPurpose.OTP_CHALLENGE, TEN_MINUTES)

        assert code_store.consume(db, bob.id, TokenPurpose.OTP_CHALLENGE, code) is False

    def test_empty_code_rejected(self, db, make_user, code_store):
        user = make_user()
        code_store.issue(db, user.id, TokenPurpose.OTP_CHALLENGE, TEN_MINUTES)

        assert code_store.consume(db, user.id, TokenPurpose.OTP_CHALLENGE, "") is False

    def test_only_hash_is_stored(self, db, make_user, code_store):
        user = make_user()
        code = code_store.issue(db, user.id, TokenPurpose.OTP_CHALLENGE, TEN_MINUTES)

        row = db.scalars(select(OneTimeCode).where(OneTimeCode.user_id == user.id)).one()

        assert row.code_hash != code
        assert len(row.code_hash) == 64


# =============================================================================
# TEST: PURGE
# =============================================================================


class TestPurge:
    """Tests for removing dead codes."""

    def test_purge_removes_consumed_and_expired(self, db, make_user, code_store):
        user = make_user()
        consumed = code_store.issue(db, user.id, TokenPurpose.OTP_CHALLENGE, TEN_MINUTES)
        code_store.consume(db, user.id, TokenPurpose.OTP_CHALLENGE, consumed)
        code_store.issue(db, user.id, TokenPurpose.PASSWORD_RESET, timedelta(seconds=-1))
        live = code_store.issue(db, user.id, TokenPurpose.EMAIL_VERIFY, TEN_MINUTES)

        assert code_store.purge_expired(db) == 2
        assert code_store.consume(db, user.id, TokenPurpose.EMAIL_VERIFY, live) is True


# =============================================================================
# TEST: CONCURRENCY
# =============================================================================


class TestConcurrentConsume:
    """Two requests racing for the same code."""

    def test_exactly_one_consumer_wins(self, file_session_factory, code_store):
        with file_session_factory() as db:
            user = User(username="racer", email="racer@example.com", hashed_password="x", is_verified=True)
            db.add(user)
            db.flush()
            db.add(Profile(user_id=user.id, date_of_birth=date(1990, 1, 1)))
            db.add(UserRole(user_id=user.id, role_slug="user"))
            db.commit()
            user_id = user.id
            code = code_store.issue(db, user_id, TokenPurpose.OTP_CHALLENGE, TEN_MINUTES)

        barrier = threading.Barrier(2)
        results: list[bool] = []
        lock = threading.Lock()

        def consume() -> None:
            with file_session_factory() as session:
                barrier.wait()
                outcome = code_store.consume(session, user_id, TokenPurpose.OTP_CHALLENGE, code)
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=consume) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert sorted(results) == [False, True]
