import logging
import threading
from typing import Any, Callable, List, Optional

import streamlit as st
from supabase import AuthError

from config import APP_TITLE

logger = logging.getLogger(__name__)

SessionCallback = Callable[[Optional[Any]], None]


class AuthenticationError(Exception):
    """Sign-in was rejected by the auth service."""


class SessionContext:
    """Holds the signed-in session and notifies observers when it changes.

    Session changes made by the auth client itself (token refresh, expiry)
    arrive on the client's refresh thread. They are recorded there and
    applied on the next ``get_current_session`` call, so observers always
    run on the caller's thread.
    """

    _NO_EVENT = object()

    def __init__(self, auth_client):
        self.auth_client = auth_client
        self._observers: List[SessionCallback] = []
        self._lock = threading.Lock()
        self._pending: Any = self._NO_EVENT
        self._session = auth_client.get_session()
        self._subscription = auth_client.on_auth_state_change(self._on_auth_event)

    def _on_auth_event(self, event: str, session: Optional[Any]) -> None:
        logger.debug("Auth event %s", event)
        with self._lock:
            self._pending = None if event == "SIGNED_OUT" else session

    def get_current_session(self) -> Optional[Any]:
        with self._lock:
            pending, self._pending = self._pending, self._NO_EVENT
        if pending is not self._NO_EVENT:
            self._set_session(pending)
        return self._session

    @property
    def identity(self) -> str:
        user = getattr(self._session, "user", None)
        return getattr(user, "email", "") or ""

    def subscribe(self, callback: SessionCallback) -> Callable[[], None]:
        """Register an observer; the returned function unregisters it."""
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def close(self) -> None:
        """Stop listening to the auth client and drop every observer."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._observers.clear()

    def _set_session(self, session: Optional[Any]) -> None:
        if session is self._session:
            return
        self._session = session
        for callback in list(self._observers):
            callback(session)

    def sign_in(self, identity: str, secret: str) -> None:
        """Sign in with email and password."""
        try:
            response = self.auth_client.sign_in_with_password({
                "email": identity,
                "password": secret,
            })
        except AuthError as e:
            logger.warning("Sign-in failed for %s: %s", identity, e)
            raise AuthenticationError(getattr(e, "message", None) or str(e)) from e

        logger.info("Signed in %s", identity)
        with self._lock:
            self._pending = self._NO_EVENT
        self._set_session(response.session)

    def sign_out(self) -> None:
        try:
            self.auth_client.sign_out()
        except AuthError as e:
            logger.warning("Remote sign-out failed: %s", e)

        logger.info("Signed out %s", self.identity)
        with self._lock:
            self._pending = self._NO_EVENT
        self._set_session(None)


class AuthManager:
    """Gates the dashboard behind a signed-in session."""

    def __init__(self, session_context: SessionContext):
        self.session_context = session_context

    def is_signed_in(self) -> bool:
        return self.session_context.get_current_session() is not None

    def require_login(self) -> bool:
        """Show only the login form until a session exists."""
        if self.is_signed_in():
            return True

        self._render_login_form()
        st.stop()

    def _render_login_form(self) -> None:
        """Render the login form."""
        st.title(APP_TITLE)
        st.caption("Login to manage your inventory system")

        with st.form("auth_form"):
            email = st.text_input("Email Address", key="auth_email", placeholder="admin@ezlaunch.io")
            password = st.text_input("Password", type="password", key="auth_pass")
            submitted = st.form_submit_button("Sign In")

        if submitted:
            try:
                self.session_context.sign_in(email.strip(), password)
            except AuthenticationError as e:
                st.error(str(e))
            else:
                st.rerun()

        st.caption("Authorized Personnel Only")

    def render_sign_out(self) -> None:
        """Render the signed-in identity and a sign-out button in the sidebar."""
        with st.sidebar:
            st.caption(f"Signed in as {self.session_context.identity or 'unknown'}")
            if st.button("Sign Out", key="auth_sign_out"):
                self.session_context.sign_out()
                st.rerun()
