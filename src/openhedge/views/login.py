"""OAuth sign-in page."""

import logging

from rich.console import Group
from rich.panel import Panel
from rich.text import Text

from ..app import AppContext
from ..remote.auth import AuthError, Session
from .base import View

log = logging.getLogger(__name__)


class LoginView(View):
    """Sign in with the configured OAuth provider.

    Already signed in, the view sets ``redirect`` to the landing page.
    """

    title = "Sign In"

    def __init__(self, app: AppContext) -> None:
        super().__init__(app)
        self.error: str | None = None
        self.authorize_url: str | None = None
        self._verifier: str | None = None
        if self.app.session.get_session() is not None:
            self.redirect = "/"

    def start(self) -> str:
        """Begin the PKCE flow; returns the URL to open in a browser."""
        self.error = None
        self.authorize_url, self._verifier = self.app.session.begin_sign_in(
            self.config.oauth_redirect_url, provider=self.config.oauth_provider
        )
        return self.authorize_url

    def complete(self, auth_code: str) -> Session | None:
        """Exchange the code captured by the redirect for a session."""
        if self._verifier is None:
            self.error = "Sign-in was not started"
            return None
        try:
            session = self.app.session.complete_sign_in(auth_code, self._verifier)
        except AuthError as e:
            log.error("Sign-in failed: %s", e)
            self.error = str(e)
            return None
        finally:
            self._verifier = None
        self.redirect = "/"
        return session

    def render(self):
        parts = [
            Text("Welcome to OpenHedge", style="bold"),
            Text("Sign in to access your portfolio and watchlist.", style="grey62"),
        ]
        if self.authorize_url:
            parts.append(Text(f"Open in your browser: {self.authorize_url}", style="cyan"))
        if self.error:
            parts.append(Text(self.error, style="red"))
        return Panel(Group(*parts), border_style="grey23")
