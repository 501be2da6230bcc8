"""Tests for app.services.auth: login, refresh-token rotation, revocation, access-token checks."""

import unittest
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

from app.core.security import create_access_token, decode_access_token
from app.models import RefreshToken
from app.services import auth as auth_service
from app.services.audit import (
    EVENT_LOGIN,
    EVENT_LOGIN_FAILED,
    EVENT_REFRESH,
    EVENT_REFRESH_FAILED,
    OUTCOME_FAILURE,
    OUTCOME_SUCCESS,
    AuditEvent,
)
from app.services.auth import (
    AccountDisabledError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
)
from tests.factories import DEFAULT_PASSWORD, create_user, make_engine, make_session_factory


class RecordingSink:
    """Audit sink that keeps events in memory."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    def record(self, event: AuditEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[str]:
        return [e.kind for e in self.events]


class AuthServiceTestCase(unittest.TestCase):
    """Auth service against an in-memory database with one active user."""

    def setUp(self) -> None:
        self.engine = make_engine()
        self.db = make_session_factory(self.engine)()
        self.audit = RecordingSink()
        self.user = create_user(self.db, email="agent@example.com")

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()

    def token_count(self) -> int:
        return self.db.query(RefreshToken).count()


class TestValidateCredentials(AuthServiceTestCase):
    """Credential checks fail the same way for every wrong input."""

    def test_valid_credentials_return_user(self) -> None:
        user = auth_service.validate_credentials(
            self.db, "agent@example.com", DEFAULT_PASSWORD, audit=self.audit
        )
        self.assertIsNotNone(user)
        self.assertEqual(user.id, self.user.id)
        self.assertEqual(self.audit.events, [])
        self.assertEqual(self.token_count(), 0)

    def test_wrong_password(self) -> None:
        self.assertIsNone(
            auth_service.validate_credentials(self.db, "agent@example.com", "nope-nope", audit=self.audit)
        )
        self.assertEqual(self.audit.events[0].kind, EVENT_LOGIN_FAILED)
        self.assertEqual(self.audit.events[0].detail["reason"], "bad_password")

    def test_unknown_email(self) -> None:
        self.assertIsNone(
            auth_service.validate_credentials(self.db, "ghost@example.com", DEFAULT_PASSWORD, audit=self.audit)
        )
        self.assertEqual(self.audit.events[0].detail["reason"], "unknown_email")

    def test_email_match_is_case_sensitive(self) -> None:
        self.assertIsNone(
            auth_service.validate_credentials(self.db, "AGENT@example.com", DEFAULT_PASSWORD, audit=self.audit)
        )

    def test_inactive_user(self) -> None:
        create_user(self.db, email="off@example.com", is_active=False)
        self.assertIsNone(
            auth_service.validate_credentials(self.db, "off@example.com", DEFAULT_PASSWORD, audit=self.audit)
        )
        self.assertEqual(self.audit.events[0].detail["reason"], "inactive")


class TestLogin(AuthServiceTestCase):
    """Login issues an access token and persists a refresh token."""

    def test_login_issues_tokens_and_stamps_last_login(self) -> None:
        result = auth_service.authenticate(self.db, "agent@example.com", DEFAULT_PASSWORD, audit=self.audit)
        payload = decode_access_token(result.access_token)
        self.assertEqual(payload["sub"], str(self.user.id))
        self.assertEqual(payload["email"], "agent@example.com")
        self.assertEqual(payload["role"], self.user.role)
        self.assertEqual(result.user.email, "agent@example.com")
        self.assertFalse(hasattr(result.user, "password_hash"))
        self.assertEqual(self.token_count(), 1)
        self.db.refresh(self.user)
        self.assertIsNotNone(self.user.last_login)
        self.assertEqual(self.audit.kinds(), [EVENT_LOGIN])

    def test_each_login_adds_a_session(self) -> None:
        first = auth_service.authenticate(self.db, "agent@example.com", DEFAULT_PASSWORD)
        second = auth_service.authenticate(self.db, "agent@example.com", DEFAULT_PASSWORD)
        self.assertNotEqual(first.refresh_token, second.refresh_token)
        self.assertEqual(self.token_count(), 2)

    def test_bad_credentials_raise(self) -> None:
        with self.assertRaises(InvalidCredentialsError) as ctx:
            auth_service.authenticate(self.db, "agent@example.com", "wrong-pass", audit=self.audit)
        self.assertEqual(ctx.exception.message, "Invalid credentials")
        self.assertEqual(self.token_count(), 0)


class TestRefresh(AuthServiceTestCase):
    """Refresh rotation, expiry and deactivated users."""

    def test_rotation_consumes_old_token(self) -> None:
        login = auth_service.authenticate(self.db, "agent@example.com", DEFAULT_PASSWORD)
        pair = auth_service.refresh(self.db, login.refresh_token, audit=self.audit)

        self.assertNotEqual(pair.refresh_token, login.refresh_token)
        self.assertEqual(decode_access_token(pair.access_token)["sub"], str(self.user.id))
        self.assertEqual(self.token_count(), 1)
        self.assertEqual(self.audit.kinds(), [EVENT_REFRESH])

        with self.assertRaises(InvalidOrExpiredTokenError):
            auth_service.refresh(self.db, login.refresh_token, audit=self.audit)
        self.assertEqual(self.audit.events[-1].kind, EVENT_REFRESH_FAILED)
        # The replacement token still works.
        auth_service.refresh(self.db, pair.refresh_token)

    def test_unknown_and_empty_token(self) -> None:
        with self.assertRaises(InvalidOrExpiredTokenError):
            auth_service.refresh(self.db, "f" * 128)
        with self.assertRaises(InvalidOrExpiredTokenError):
            auth_service.refresh(self.db, "")

    def test_expired_token(self) -> None:
        now = datetime.now(UTC)
        self.db.add(
            RefreshToken(
                token="expired-token",
                user_id=self.user.id,
                expires_at=now - timedelta(seconds=1),
                created_at=now - timedelta(days=8),
            )
        )
        self.db.commit()
        with self.assertRaises(InvalidOrExpiredTokenError):
            auth_service.refresh(self.db, "expired-token")

    def test_deactivated_user_cannot_refresh(self) -> None:
        login = auth_service.authenticate(self.db, "agent@example.com", DEFAULT_PASSWORD)
        self.user.is_active = False
        self.db.commit()
        with self.assertRaises(AccountDisabledError):
            auth_service.refresh(self.db, login.refresh_token, audit=self.audit)
        self.assertEqual(self.audit.events[-1].outcome, OUTCOME_FAILURE)

    def test_refresh_reflects_role_change(self) -> None:
        login = auth_service.authenticate(self.db, "agent@example.com", DEFAULT_PASSWORD)
        self.user.role = "MANAGER"
        self.db.commit()
        pair = auth_service.refresh(self.db, login.refresh_token)
        self.assertEqual(decode_access_token(pair.access_token)["role"], "MANAGER")


class TestRefreshConcurrentReplay(unittest.TestCase):
    """A token consumed between lookup and delete must not yield a second pair."""

    def test_lost_delete_race_rolls_back(self) -> None:
        row = MagicMock()
        row.id = 7
        row.user_id = 3
        row.expires_at = datetime.now(UTC) + timedelta(days=1)
        user = MagicMock()
        user.id = 3
        user.is_active = True
        session = MagicMock()
        session.query.return_value.filter.return_value.first.return_value = row
        session.query.return_value.filter.return_value.delete.return_value = 0

        with patch.object(auth_service.users, "find_by_id", return_value=user):
            with self.assertRaises(InvalidOrExpiredTokenError):
                auth_service.refresh(session, "token-value", audit=RecordingSink())

        session.rollback.assert_called_once()
        session.commit.assert_not_called()
        session.add.assert_not_called()


class TestLogout(AuthServiceTestCase):
    """Single-session and all-session revocation."""

    def test_logout_is_idempotent(self) -> None:
        login = auth_service.authenticate(self.db, "agent@example.com", DEFAULT_PASSWORD)
        auth_service.logout(self.db, login.refresh_token)
        self.assertEqual(self.token_count(), 0)
        auth_service.logout(self.db, login.refresh_token)
        auth_service.logout(self.db, None)
        with self.assertRaises(InvalidOrExpiredTokenError):
            auth_service.refresh(self.db, login.refresh_token)

    def test_logout_keeps_other_sessions(self) -> None:
        first = auth_service.authenticate(self.db, "agent@example.com", DEFAULT_PASSWORD)
        second = auth_service.authenticate(self.db, "agent@example.com", DEFAULT_PASSWORD)
        auth_service.logout(self.db, first.refresh_token)
        auth_service.refresh(self.db, second.refresh_token)

    def test_logout_all_revokes_only_that_user(self) -> None:
        other = create_user(self.db, email="other@example.com")
        auth_service.authenticate(self.db, "agent@example.com", DEFAULT_PASSWORD)
        auth_service.authenticate(self.db, "agent@example.com", DEFAULT_PASSWORD)
        kept = auth_service.authenticate(self.db, "other@example.com", DEFAULT_PASSWORD)

        revoked = auth_service.logout_all(self.db, self.user.id, audit=self.audit)

        self.assertEqual(revoked, 2)
        self.assertEqual(self.token_count(), 1)
        self.assertEqual(self.audit.events[-1].outcome, OUTCOME_SUCCESS)
        self.assertEqual(self.audit.events[-1].detail["revoked"], 2)
        pair = auth_service.refresh(self.db, kept.refresh_token)
        self.assertEqual(decode_access_token(pair.access_token)["sub"], str(other.id))


class TestValidateAccessToken(AuthServiceTestCase):
    """Access tokens resolve to an active user or raise."""

    def test_active_user_resolves(self) -> None:
        payload = decode_access_token(create_access_token(self.user.id, self.user.email, self.user.role))
        user = auth_service.validate_access_token(self.db, payload)
        self.assertEqual(user.id, self.user.id)

    def test_deactivation_locks_out_existing_token(self) -> None:
        payload = decode_access_token(create_access_token(self.user.id, self.user.email, self.user.role))
        self.user.is_active = False
        self.db.commit()
        self.assertIsNone(auth_service.validate_access_token(self.db, payload))

    def test_unknown_or_malformed_subject(self) -> None:
        self.assertIsNone(auth_service.validate_access_token(self.db, {"sub": "999"}))
        self.assertIsNone(auth_service.validate_access_token(self.db, {"sub": "abc"}))
        self.assertIsNone(auth_service.validate_access_token(self.db, {}))


if __name__ == "__main__":
    unittest.main()
