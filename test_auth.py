"""
Tests for the session context
"""
from types import SimpleNamespace

import pytest
from supabase import AuthError

from auth import AuthenticationError, AuthManager, SessionContext


class InvalidCredentials(AuthError):
    def __init__(self, message):
        Exception.__init__(self, message)
        self.message = message


class FakeAuthClient:
    def __init__(self, session=None, password="secret"):
        self.session = session
        self.password = password
        self.sign_out_calls = 0
        self.listeners = []

    def on_auth_state_change(self, callback):
        self.listeners.append(callback)
        return SimpleNamespace(unsubscribe=lambda: self.listeners.remove(callback))

    def emit(self, event, session):
        self.session = session
        for callback in list(self.listeners):
            callback(event, session)

    def get_session(self):
        return self.session

    def sign_in_with_password(self, credentials):
        if credentials["password"] != self.password:
            raise InvalidCredentials("Invalid login credentials")
        self.session = SimpleNamespace(user=SimpleNamespace(email=credentials["email"]))
        return SimpleNamespace(session=self.session, user=self.session.user)

    def sign_out(self):
        self.sign_out_calls += 1
        self.session = None


def test_starts_from_existing_session():
    existing = SimpleNamespace(user=SimpleNamespace(email="ops@shop.io"))
    context = SessionContext(FakeAuthClient(session=existing))

    assert context.get_current_session() is existing
    assert context.identity == "ops@shop.io"


def test_sign_in_notifies_observers():
    context = SessionContext(FakeAuthClient())
    seen = []
    context.subscribe(seen.append)

    context.sign_in("ops@shop.io", "secret")

    assert context.get_current_session() is not None
    assert [s.user.email for s in seen] == ["ops@shop.io"]


def test_failed_sign_in_raises_with_service_message():
    context = SessionContext(FakeAuthClient())
    seen = []
    context.subscribe(seen.append)

    with pytest.raises(AuthenticationError, match="Invalid login credentials"):
        context.sign_in("ops@shop.io", "wrong")

    assert context.get_current_session() is None
    assert seen == []


def test_sign_out_clears_session_and_notifies():
    auth_client = FakeAuthClient()
    context = SessionContext(auth_client)
    context.sign_in("ops@shop.io", "secret")
    seen = []
    context.subscribe(seen.append)

    context.sign_out()

    assert auth_client.sign_out_calls == 1
    assert context.get_current_session() is None
    assert seen == [None]


def test_unsubscribe_stops_delivery_and_is_idempotent():
    context = SessionContext(FakeAuthClient())
    first, second = [], []
    unsubscribe_first = context.subscribe(first.append)
    context.subscribe(second.append)

    context.sign_in("ops@shop.io", "secret")
    unsubscribe_first()
    unsubscribe_first()
    context.sign_out()

    assert len(first) == 1
    assert len(second) == 2
    assert second[-1] is None


def test_observer_may_unsubscribe_itself_during_notification():
    context = SessionContext(FakeAuthClient())
    calls = []

    def once(session):
        calls.append(session)
        unsubscribe()

    unsubscribe = context.subscribe(once)
    context.sign_in("ops@shop.io", "secret")
    context.sign_out()

    assert len(calls) == 1


def test_auth_manager_reports_signed_in_state():
    context = SessionContext(FakeAuthClient())
    manager = AuthManager(context)

    assert not manager.is_signed_in()
    context.sign_in("ops@shop.io", "secret")
    assert manager.is_signed_in()


def test_token_refresh_reaches_observers_on_next_read():
    auth_client = FakeAuthClient()
    context = SessionContext(auth_client)
    context.sign_in("ops@shop.io", "secret")
    seen = []
    context.subscribe(seen.append)

    refreshed = SimpleNamespace(user=SimpleNamespace(email="ops@shop.io"))
    auth_client.emit("TOKEN_REFRESHED", refreshed)

    assert seen == []
    assert context.get_current_session() is refreshed
    assert seen == [refreshed]

    # reading again does not repeat the notification
    context.get_current_session()
    assert seen == [refreshed]


def test_expired_session_closes_the_login_gate():
    auth_client = FakeAuthClient()
    context = SessionContext(auth_client)
    manager = AuthManager(context)
    context.sign_in("ops@shop.io", "secret")
    seen = []
    context.subscribe(seen.append)

    auth_client.emit("SIGNED_OUT", None)

    assert not manager.is_signed_in()
    assert seen == [None]


def test_close_stops_listening_to_the_auth_client():
    auth_client = FakeAuthClient()
    context = SessionContext(auth_client)
    seen = []
    context.subscribe(seen.append)

    context.close()
    context.close()

    assert auth_client.listeners == []
    assert seen == []


def test_expiry_during_load_discards_screen_results():
    from main import still_current
    from utils import ScreenGuard

    auth_client = FakeAuthClient()
    context = SessionContext(auth_client)
    context.sign_in("ops@shop.io", "secret")
    guard = ScreenGuard({})
    context.subscribe(lambda session: guard.leave())

    token = guard.begin("Dashboard")
    assert still_current(token, guard, context)

    auth_client.emit("SIGNED_OUT", None)

    assert not still_current(token, guard, context)
