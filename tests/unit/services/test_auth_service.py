"""
Unit tests for the identity service and auth event channel.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta
from unittest.mock import Mock

import duckdb
import jwt
import pytest

from photovault.error_handling import AuthenticationError
from photovault.models.user import Session, User
from photovault.services.auth import AuthEvent, AuthEventChannel, AuthEventType, IdentityService
from tests.conftest import TEST_JWT_SECRET


class TestAuthEventChannel:
    """Test cases for AuthEventChannel."""

    def test_subscribe_and_unsubscribe(self):
        channel = AuthEventChannel()
        received = []
        unsubscribe = channel.subscribe(received.append)

        channel.publish(AuthEvent(type=AuthEventType.SIGNED_IN, user_id="u1"))
        unsubscribe()
        channel.publish(AuthEvent(type=AuthEventType.SIGNED_OUT, user_id="u1"))

        assert [event.type for event in received] == [AuthEventType.SIGNED_IN]

    def test_failing_callback_does_not_block_others(self):
        channel = AuthEventChannel()
        received = []
        channel.subscribe(Mock(side_effect=RuntimeError("callback failed")))
        channel.subscribe(received.append)

        channel.publish(AuthEvent(type=AuthEventType.SIGNED_IN, user_id="u1"))

        assert len(received) == 1

    def test_poll_drains_pending_events(self):
        channel = AuthEventChannel()
        channel.publish(AuthEvent(type=AuthEventType.SIGNED_IN, user_id="u1"))
        channel.publish(AuthEvent(type=AuthEventType.SIGNED_OUT, user_id="u1"))

        assert [event.type for event in channel.poll()] == [AuthEventType.SIGNED_IN, AuthEventType.SIGNED_OUT]
        assert channel.poll() == []

    def test_poll_keeps_latest_when_full(self):
        channel = AuthEventChannel(max_pending=2)
        for user_id in ["u1", "u2", "u3"]:
            channel.publish(AuthEvent(type=AuthEventType.SIGNED_IN, user_id=user_id))

        assert [event.user_id for event in channel.poll()] == ["u2", "u3"]

    def test_concurrent_publishers_on_full_channel(self):
        channel = AuthEventChannel(max_pending=4)

        def publish(index: int) -> None:
            channel.publish(AuthEvent(type=AuthEventType.SIGNED_IN, user_id=f"u{index}"))

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(publish, range(400)))

        assert len(channel.poll()) == 4


class TestSignUp:
    """Test cases for IdentityService.sign_up."""

    def test_sign_up_creates_user_and_profile(self, identity, db):
        user = identity.sign_up("Alice@Example.com ", "secret123")

        assert user.email == "alice@example.com"
        assert db.execute_query("SELECT COUNT(*) FROM auth_users WHERE id = ?", (user.id,))[0][0] == 1
        assert db.execute_query("SELECT COUNT(*) FROM profiles WHERE user_id = ?", (user.id,))[0][0] == 1

    def test_sign_up_does_not_sign_in(self, identity):
        identity.sign_up("alice@example.com", "secret123")
        assert identity.events.poll() == []

    def test_password_is_hashed(self, identity, db):
        user = identity.sign_up("alice@example.com", "secret123")
        stored = db.execute_query("SELECT password_hash FROM auth_users WHERE id = ?", (user.id,))[0][0]

        assert "secret123" not in stored
        assert stored.startswith("pbkdf2_sha256$1000$")

    def test_duplicate_email(self, identity):
        identity.sign_up("alice@example.com", "secret123")

        with pytest.raises(AuthenticationError, match="User already registered") as exc_info:
            identity.sign_up("ALICE@example.com", "another123")
        assert exc_info.value.code == "user_already_exists"

    def test_short_password(self, identity):
        with pytest.raises(AuthenticationError, match="at least 6 characters") as exc_info:
            identity.sign_up("alice@example.com", "12345")
        assert exc_info.value.code == "weak_password"

    def test_invalid_email(self, identity):
        with pytest.raises(AuthenticationError, match="invalid format") as exc_info:
            identity.sign_up("not-an-email", "secret123")
        assert exc_info.value.code == "invalid_email"

    def test_provisioning_failure_rolls_back(self, db, monkeypatch):
        monkeypatch.setattr(IdentityService, "PASSWORD_HASH_ITERATIONS", 1000)
        provisioner = Mock()
        provisioner.provision.side_effect = duckdb.Error("profile insert failed")
        identity = IdentityService(db=db, jwt_secret=TEST_JWT_SECRET, provisioner=provisioner)

        with pytest.raises(AuthenticationError) as exc_info:
            identity.sign_up("alice@example.com", "secret123")

        assert exc_info.value.code == "signup_failed"
        assert db.execute_query("SELECT COUNT(*) FROM auth_users")[0][0] == 0
        assert db.execute_query("SELECT COUNT(*) FROM profiles")[0][0] == 0


class TestSignIn:
    """Test cases for sign-in and sessions."""

    def test_sign_in_returns_session(self, identity):
        user = identity.sign_up("alice@example.com", "secret123")

        session = identity.sign_in("alice@example.com", "secret123")

        assert session.user_id == user.id
        assert session.user.email == "alice@example.com"
        assert session.expires_at > datetime.now(UTC)

    def test_sign_in_publishes_event(self, identity):
        identity.sign_up("alice@example.com", "secret123")
        session = identity.sign_in("alice@example.com", "secret123")

        events = identity.events.poll()
        assert [event.type for event in events] == [AuthEventType.SIGNED_IN]
        assert events[0].session == session

    @pytest.mark.parametrize("email,password", [("alice@example.com", "wrong-pass"), ("bob@example.com", "secret123")])
    def test_invalid_credentials(self, identity, email, password):
        identity.sign_up("alice@example.com", "secret123")

        with pytest.raises(AuthenticationError, match="Invalid login credentials") as exc_info:
            identity.sign_in(email, password)
        assert exc_info.value.code == "invalid_credentials"

    def test_get_session(self, identity, make_session):
        session = make_session("alice@example.com")

        restored = identity.get_session(session.access_token)

        assert restored is not None
        assert restored.user_id == session.user_id
        assert restored.access_token == session.access_token

    def test_get_session_expired(self, db, monkeypatch):
        monkeypatch.setattr(IdentityService, "PASSWORD_HASH_ITERATIONS", 1000)
        identity = IdentityService(db=db, jwt_secret=TEST_JWT_SECRET, session_ttl=-10)
        identity.sign_up("alice@example.com", "secret123")
        session = identity.sign_in("alice@example.com", "secret123")
        assert len(identity._active_sessions) == 1

        assert identity.get_session(session.access_token) is None
        assert identity._active_sessions == {}

    def test_get_session_garbage_token(self, identity):
        assert identity.get_session("not-a-token") is None

    def test_sign_out_revokes_session(self, identity, make_session):
        session = make_session("alice@example.com")
        identity.events.poll()

        identity.sign_out(session)

        assert identity.get_session(session.access_token) is None
        assert [event.type for event in identity.events.poll()] == [AuthEventType.SIGNED_OUT]

    def test_sign_out_unknown_session_is_noop(self, identity):
        session = Session(
            access_token="garbage",
            user=User(id="u1", email="a@example.com"),
            expires_at=datetime.now(UTC) + timedelta(hours=1),
        )
        identity.sign_out(session)
        assert identity.events.poll() == []

    def test_sign_out_leaves_other_sessions(self, identity, make_session):
        first = make_session("alice@example.com")
        second = identity.sign_in("alice@example.com", "secret123")

        identity.sign_out(first)

        assert identity.get_session(second.access_token) is not None


class TestResolveCaller:
    """Test cases for IdentityService.resolve_caller."""

    def test_anonymous(self, identity):
        assert identity.resolve_caller(None) is None

    def test_uses_token_not_session_user(self, identity, make_session):
        session = make_session("alice@example.com")
        tampered = Session(
            access_token=session.access_token,
            user=User(id="someone-else", email="x@example.com"),
            expires_at=session.expires_at,
        )

        assert identity.resolve_caller(tampered) == session.user_id

    def test_forged_token(self, identity, make_session):
        session = make_session("alice@example.com")
        now = datetime.now(UTC)
        forged_token = jwt.encode(
            {"sub": "victim", "sid": "x", "iat": now, "exp": now + timedelta(hours=1)},
            "attacker-secret",
            algorithm="HS256",
        )
        forged = Session(access_token=forged_token, user=session.user, expires_at=session.expires_at)

        with pytest.raises(AuthenticationError) as exc_info:
            identity.resolve_caller(forged)
        assert exc_info.value.code == "invalid_session"

    def test_signed_out_session(self, identity, make_session):
        session = make_session("alice@example.com")
        identity.sign_out(session)

        with pytest.raises(AuthenticationError):
            identity.resolve_caller(session)


class TestDeleteUser:
    """Test cases for IdentityService.delete_user."""

    def test_delete_user_cascades(self, identity, db, make_session):
        session = make_session("alice@example.com")
        db.execute_query(
            "INSERT INTO photos VALUES (?, ?, ?, ?, ?, ?)",
            ("p1", session.user_id, "a.jpg", f"{session.user_id}/1.jpg", 10, datetime(2024, 1, 1)),
        )
        identity.events.poll()

        assert identity.delete_user(session.user_id) is True

        for table, column in [("auth_users", "id"), ("profiles", "user_id"), ("photos", "user_id")]:
            count = db.execute_query(f"SELECT COUNT(*) FROM {table} WHERE {column} = ?", (session.user_id,))
            assert count[0][0] == 0
        assert identity.get_session(session.access_token) is None
        assert [event.type for event in identity.events.poll()] == [AuthEventType.USER_DELETED]

    def test_delete_user_leaves_other_users(self, identity, db, make_session):
        alice = make_session("alice@example.com")
        bob = make_session("bob@example.com")

        identity.delete_user(alice.user_id)

        assert db.execute_query("SELECT COUNT(*) FROM profiles WHERE user_id = ?", (bob.user_id,))[0][0] == 1
        assert identity.get_session(bob.access_token) is not None

    def test_delete_unknown_user(self, identity):
        assert identity.delete_user("missing") is False
