"""Tests for the create_user CLI (session_scope patched onto in-memory SQLite)."""

import io
import unittest
from contextlib import contextmanager, redirect_stderr, redirect_stdout
from unittest.mock import patch

from app.core.security import verify_password
from app.models import User
from app.scripts import create_user
from tests.factories import make_engine, make_session_factory


class TestCreateUserScript(unittest.TestCase):
    """create_user command line entry point."""

    def setUp(self) -> None:
        self.engine = make_engine()
        self.SessionTesting = make_session_factory(self.engine)

        @contextmanager
        def scope():
            db = self.SessionTesting()
            try:
                yield db
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

        patcher = patch.object(create_user, "session_scope", scope)
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self) -> None:
        self.engine.dispose()

    def run_main(self, *argv: str) -> tuple[int, str, str]:
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = create_user.main(list(argv))
        return code, out.getvalue(), err.getvalue()

    def test_creates_user_with_hashed_password(self) -> None:
        code, out, _ = self.run_main("boss@example.com", "s3cret-pass", "Ada", "Boss", "SUPER_ADMIN")
        self.assertEqual(code, 0)
        self.assertIn("boss@example.com", out)
        with self.SessionTesting() as db:
            user = db.query(User).filter(User.email == "boss@example.com").one()
            self.assertEqual(user.role, "SUPER_ADMIN")
            self.assertTrue(user.is_active)
            self.assertNotEqual(user.password_hash, "s3cret-pass")
            self.assertTrue(verify_password("s3cret-pass", user.password_hash))

    def test_default_role_is_agent(self) -> None:
        self.run_main("agent@example.com", "s3cret-pass", "Al", "Agent")
        with self.SessionTesting() as db:
            self.assertEqual(db.query(User).one().role, "AGENT")

    def test_duplicate_email_rejected(self) -> None:
        self.run_main("agent@example.com", "s3cret-pass", "Al", "Agent")
        code, _, err = self.run_main("agent@example.com", "other-pass", "Al", "Agent")
        self.assertEqual(code, 1)
        self.assertIn("already exists", err)

    def test_short_password_rejected(self) -> None:
        code, _, err = self.run_main("agent@example.com", "abc", "Al", "Agent")
        self.assertEqual(code, 1)
        self.assertIn("Password", err)


if __name__ == "__main__":
    unittest.main()
