"""Admin session and retry helper tests."""

from datetime import timedelta

import pytest
from sqlalchemy.orm.exc import StaleDataError

from storefront.errors import ValidationError
from storefront.extensions import db
from storefront.models import AdminSession
from storefront.services import concurrency, session_service
from storefront.time_utils import utcnow


class TestSessions:

    def test_token_is_hashed_at_rest(self, admin):
        session, token = session_service.create_session(admin.id)
        assert len(token) == 64
        assert session.token_hash == session_service.hash_token(token)
        assert session.token_hash != token

    def test_validate_returns_actor(self, admin, admin_token):
        actor = session_service.validate_session(admin_token)
        assert actor.id == admin.id
        assert actor.source == "admin"

    def test_expired_token(self, admin, admin_token):
        record = AdminSession.query.filter_by(token_hash=session_service.hash_token(admin_token)).one()
        record.expires_at = utcnow() - timedelta(minutes=1)
        db.session.commit()
        assert session_service.validate_session(admin_token) is None

    def test_unknown_token(self, db_session):
        assert session_service.validate_session("f" * 64) is None
        assert session_service.validate_session("") is None

    def test_duplicate_admin_rejected(self, admin):
        with pytest.raises(ValidationError):
            session_service.create_admin("Someone Else", admin.email.upper())


class TestRunWithRetry:

    def test_retries_stale_data(self, db_session):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise StaleDataError("row changed")
            return "done"

        assert concurrency.run_with_retry(flaky, backoff_base=0) == "done"
        assert len(calls) == 3

    def test_gives_up_after_attempts(self, db_session):
        def always_stale():
            raise StaleDataError("row changed")

        with pytest.raises(StaleDataError):
            concurrency.run_with_retry(always_stale, attempts=2, backoff_base=0)

    def test_other_errors_not_retried(self, db_session):
        calls = []

        def broken():
            calls.append(1)
            raise ValueError("boom")

        with pytest.raises(ValueError):
            concurrency.run_with_retry(broken, backoff_base=0)
        assert len(calls) == 1
