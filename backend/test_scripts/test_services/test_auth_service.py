"""
Auth Service Tests

Password hashing and the in-memory SessionManager (sessions and
auth-state listeners).
"""
from datetime import timedelta

import pytest

from backend.app.services.auth_service import (
    AuthIdentity,
    SessionManager,
    hash_password,
    verify_password,
    )


# ============================================================================
# PASSWORDS
# ============================================================================

def test_hash_and_verify_password():
    hashed = hash_password("correct horse", rounds=4)
    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)


def test_verify_password_with_garbage_hash():
    assert verify_password("whatever", "not-a-bcrypt-hash") is False


# ============================================================================
# SESSIONS
# ============================================================================

@pytest.fixture
def manager():
    return SessionManager(expire_hours=1)


def test_create_and_get_session(manager):
    auth_session = manager.create_session("user-1", "ama@example.com")

    assert manager.get_user_id(auth_session.session_id) == "user-1"
    assert manager.current_identity(auth_session.session_id) == AuthIdentity("user-1", "ama@example.com")
    assert manager.get_active_session_count() == 1


def test_unknown_session(manager):
    assert manager.get_session("nope") is None
    assert manager.current_identity(None) is None
    assert manager.delete_session("nope") is False


def test_expired_session_is_removed(manager):
    auth_session = manager.create_session("user-1", "ama@example.com")
    auth_session.expires_at = auth_session.created_at - timedelta(seconds=1)

    assert manager.get_session(auth_session.session_id) is None
    assert manager.get_active_session_count() == 0


def test_cleanup_expired_sessions(manager):
    old = manager.create_session("user-1", "ama@example.com")
    manager.create_session("user-2", "kofi@example.com")
    old.expires_at = old.created_at - timedelta(seconds=1)

    assert manager.cleanup_expired_sessions() == 1
    assert manager.get_active_session_count() == 1


def test_delete_user_sessions(manager):
    manager.create_session("user-1", "ama@example.com")
    manager.create_session("user-1", "ama@example.com")
    keep = manager.create_session("user-2", "kofi@example.com")

    assert manager.delete_user_sessions("user-1") == 2
    assert manager.get_user_id(keep.session_id) == "user-2"


# ============================================================================
# AUTH-STATE LISTENERS
# ============================================================================

def test_listener_receives_identity_then_none(manager):
    events = []
    manager.subscribe(events.append)

    auth_session = manager.create_session("user-1", "ama@example.com")
    manager.delete_session(auth_session.session_id)

    assert events == [AuthIdentity("user-1", "ama@example.com"), None]


def test_unsubscribe_stops_notifications(manager):
    events = []
    unsubscribe = manager.subscribe(events.append)
    assert manager.listener_count == 1

    unsubscribe()
    unsubscribe()
    manager.create_session("user-1", "ama@example.com")

    assert events == []
    assert manager.listener_count == 0


def test_faulty_listener_does_not_break_sign_in(manager):
    events = []

    def broken(_identity):
        raise RuntimeError("boom")

    manager.subscribe(broken)
    manager.subscribe(events.append)

    auth_session = manager.create_session("user-1", "ama@example.com")

    assert manager.get_user_id(auth_session.session_id) == "user-1"
    assert len(events) == 1


def test_clear_drops_sessions_and_listeners(manager):
    manager.subscribe(lambda _identity: None)
    manager.create_session("user-1", "ama@example.com")

    manager.clear()

    assert manager.get_active_session_count() == 0
    assert manager.listener_count == 0
