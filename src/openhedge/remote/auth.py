"""Auth collaborator: OAuth sign-in (PKCE), token refresh, session persistence."""

import base64
import hashlib
import logging
import secrets
import time
from dataclasses import asdict, dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from urllib.parse import parse_qs, urlencode, urlparse

import httpx
import yaml

from ..config import Config

log = logging.getLogger(__name__)


class AuthError(Exception):
    """Sign-in, refresh or sign-out failed."""


@dataclass
class Session:
    """An authenticated session."""

    access_token: str
    refresh_token: str
    expires_at: int  # epoch seconds
    user_id: str
    email: str | None = None

    @property
    def expired(self) -> bool:
        # Treat tokens within a minute of expiry as expired
        return time.time() >= self.expires_at - 60

    @classmethod
    def from_token_response(cls, data: dict) -> "Session":
        user = data.get("user") or {}
        expires_at = data.get("expires_at")
        if expires_at is None:
            expires_at = int(time.time()) + int(data.get("expires_in", 3600))
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token", ""),
            expires_at=int(expires_at),
            user_id=user.get("id", ""),
            email=user.get("email"),
        )

    def to_dict(self) -> dict:
        return asdict(self)


def _code_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode()).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode()


class AuthClient:
    """HTTP client for the hosted auth endpoints."""

    def __init__(self, config: Config, transport: httpx.BaseTransport | None = None) -> None:
        self.config = config
        self.base_url = f"{config.supabase_url}/auth/v1"
        self._client = httpx.Client(
            base_url=self.base_url,
            headers={"apikey": config.supabase_key},
            timeout=config.http_timeout,
            transport=transport,
        )

    def authorize_url(self, provider: str, redirect_to: str) -> tuple[str, str]:
        """
        Build the OAuth authorize URL for a PKCE sign-in.

        Returns:
            (url to open in a browser, code verifier to keep for the exchange)
        """
        verifier = secrets.token_urlsafe(48)
        query = urlencode(
            {
                "provider": provider,
                "redirect_to": redirect_to,
                "code_challenge": _code_challenge(verifier),
                "code_challenge_method": "s256",
            }
        )
        return f"{self.base_url}/authorize?{query}", verifier

    def _token(self, grant_type: str, body: dict) -> Session:
        try:
            response = self._client.post("/token", params={"grant_type": grant_type}, json=body)
        except httpx.HTTPError as e:
            raise AuthError(f"Token request failed: {e}") from e
        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            message = payload.get("error_description") or payload.get("msg") or payload.get("error")
            raise AuthError(message or f"Token request returned HTTP {response.status_code}")
        return Session.from_token_response(response.json())

    def exchange_code(self, auth_code: str, code_verifier: str) -> Session:
        """Exchange an OAuth authorization code for a session."""
        return self._token("pkce", {"auth_code": auth_code, "code_verifier": code_verifier})

    def refresh(self, refresh_token: str) -> Session:
        """Trade a refresh token for a fresh session."""
        return self._token("refresh_token", {"refresh_token": refresh_token})

    def sign_out(self, access_token: str) -> None:
        try:
            response = self._client.post(
                "/logout", headers={"Authorization": f"Bearer {access_token}"}
            )
        except httpx.HTTPError as e:
            raise AuthError(f"Sign-out failed: {e}") from e
        if response.status_code >= 400:
            raise AuthError(f"Sign-out returned HTTP {response.status_code}")

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "AuthClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()


class SessionStore:
    """Persists the current session as YAML in the data directory."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> Session | None:
        if not self.path.exists():
            return None
        with open(self.path) as f:
            data = yaml.safe_load(f) or {}
        try:
            return Session(**data)
        except TypeError:
            log.warning("Ignoring malformed session file %s", self.path)
            return None

    def save(self, session: Session) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            yaml.dump(session.to_dict(), f, default_flow_style=False, sort_keys=False)
        self.path.chmod(0o600)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


def wait_for_oauth_code(port: int, timeout: float = 300.0) -> str | None:
    """
    Serve one request on 127.0.0.1:port and capture the OAuth ``code``.

    Returns:
        The authorization code, or None on timeout or provider error
    """
    captured: dict[str, str] = {}

    class _Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:  # noqa: N802
            query = parse_qs(urlparse(self.path).query)
            if "code" in query:
                captured["code"] = query["code"][0]
                body = b"Signed in. You can close this window and return to the terminal."
            else:
                captured["error"] = query.get("error_description", ["unknown error"])[0]
                body = b"Sign-in failed. Return to the terminal for details."
            self.send_response(200)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format: str, *args) -> None:
            log.debug("oauth callback: " + format, *args)

    server = HTTPServer(("127.0.0.1", port), _Handler)
    server.timeout = timeout
    try:
        server.handle_request()
    finally:
        server.server_close()

    if "error" in captured:
        log.error("OAuth provider returned an error: %s", captured["error"])
    return captured.get("code")
