"""Application session: the current auth session plus change notification."""

import logging
import threading
from typing import Callable

from .remote.auth import AuthClient, AuthError, Session, SessionStore
from .remote.client import RestClient

log = logging.getLogger(__name__)

AuthListener = Callable[[str, Session | None], None]

INITIAL_SESSION = "INITIAL_SESSION"
SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"


class Subscription:
    """Handle returned by ``AppSession.subscribe``."""

    def __init__(self, owner: "AppSession", token: int) -> None:
        self._owner = owner
        self._token = token

    def unsubscribe(self) -> None:
        self._owner._unsubscribe(self._token)


class AppSession:
    """Holds the signed-in session and notifies views when it changes.

    Every view receives this object through the app context and subscribes
    in its constructor; ``View.close()`` drops the subscription.
    """

    def __init__(self, auth: AuthClient, store: SessionStore, rest: RestClient) -> None:
        self.auth = auth
        self.store = store
        self.rest = rest
        self._session: Session | None = None
        self._restored = False
        self._listeners: dict[int, AuthListener] = {}
        self._next_token = 0
        self._lock = threading.Lock()

    @property
    def current(self) -> Session | None:
        return self._session

    def subscribe(self, callback: AuthListener) -> Subscription:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._listeners[token] = callback
        return Subscription(self, token)

    def _unsubscribe(self, token: int) -> None:
        with self._lock:
            self._listeners.pop(token, None)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def _notify(self, event: str) -> None:
        with self._lock:
            callbacks = list(self._listeners.values())
        for callback in callbacks:
            callback(event, self._session)

    def _set(self, session: Session | None, event: str | None) -> None:
        self._session = session
        self._restored = True
        self.rest.set_access_token(session.access_token if session else None)
        if session:
            self.store.save(session)
        else:
            self.store.clear()
        if event:
            self._notify(event)

    def get_session(self) -> Session | None:
        """Return the current session, restoring and refreshing a persisted one."""
        if not self._restored:
            self._restored = True
            stored = self.store.load()
            if stored:
                self._session = stored
                self.rest.set_access_token(stored.access_token)
                self._notify(INITIAL_SESSION)

        session = self._session
        if session and session.expired:
            try:
                refreshed = self.auth.refresh(session.refresh_token)
            except AuthError as e:
                log.warning("Session refresh failed, signing out: %s", e)
                self._set(None, SIGNED_OUT)
                return None
            self._set(refreshed, TOKEN_REFRESHED)
        return self._session

    def begin_sign_in(self, redirect_to: str, provider: str = "google") -> tuple[str, str]:
        """Start an OAuth sign-in. Returns (authorize url, code verifier)."""
        return self.auth.authorize_url(provider, redirect_to)

    def complete_sign_in(self, auth_code: str, code_verifier: str) -> Session:
        """
        Finish an OAuth sign-in and notify subscribers.

        Raises:
            AuthError: If the code exchange fails
        """
        session = self.auth.exchange_code(auth_code, code_verifier)
        self._set(session, SIGNED_IN)
        return session

    def sign_out(self) -> None:
        session = self._session
        if session:
            try:
                self.auth.sign_out(session.access_token)
            except AuthError as e:
                log.warning("Remote sign-out failed: %s", e)
        self._set(None, SIGNED_OUT)
